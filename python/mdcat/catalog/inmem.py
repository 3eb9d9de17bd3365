"""
An implementation of the catalog store interface based on a simple in-memory look-up.

This is provided primarily for testing purposes
"""
from copy import deepcopy
from collections.abc import Mapping, MutableMapping
from typing import Iterator
from . import base

from mdcat.base.config import merge_config

class InMemoryCatalogClient(base.CatalogClient):
    """
    an in-memory CatalogClient implementation
    """

    def __init__(self, dbdata: Mapping, config: Mapping, kind: str, notifier=None):
        self._db = dbdata
        super(InMemoryCatalogClient, self).__init__(config, kind, self._db, notifier)

    def _get_from_coll(self, collname, id) -> MutableMapping:
        return deepcopy(self._db.get(collname, {}).get(id))

    def _select_from_coll(self, collname, **constraints) -> Iterator[MutableMapping]:
        # take a snapshot so that callers may update the collection while iterating
        for rec in list(self._db.get(collname, {}).values()):
            cancel = False
            for ck, cv in constraints.items():
                if rec.get(ck) != cv:
                    cancel = True
                    break
            if cancel:
                continue
            yield deepcopy(rec)

    def _delete_from(self, collname, id):
        if collname in self._db and id in self._db[collname]:
            del self._db[collname][id]
            return True
        return False

    def _upsert(self, coll: str, recdata: Mapping) -> bool:
        if 'id' not in recdata:
            raise base.DBIOException("_upsert(): record is missing 'id' property")
        if coll not in self._db:
            self._db[coll] = {}
        exists = bool(self._db[coll].get(recdata['id']))
        self._db[coll][recdata['id']] = deepcopy(recdata)
        return not exists


class InMemoryCatalogClientFactory(base.CatalogClientFactory):
    """
    a CatalogClientFactory that creates InMemoryCatalogClient instances in which records are stored
    in data structures kept in memory.  Records remain in memory for the life of the factory and all
    the clients it creates.
    """

    def __init__(self, config: Mapping, _dbdata = None, notifier=None):
        """
        Create the factory with the given configuration.

        :param dict  config:  the configuration parameters used to configure clients
        :param dict _dbdata:  the initial data for the database.  (Note: internal knowledge of
                              of the in-memory data structure required to use this input.)  If
                              not provided, an empty database is created.
        :param ChangeNotifier notifier:  the notifier clients should send change signals to
        """
        super(InMemoryCatalogClientFactory, self).__init__(config, notifier)
        self._db = {
            base.GROUPS_COLL: {},
            base.MEMBERSHIPS_COLL: {},
            base.GROUP_ENTITIES_COLL: {}
        }
        if _dbdata:
            self._db.update(deepcopy(_dbdata))

    def create_client(self, kind: str, config: Mapping={}):
        cfg = merge_config(config, deepcopy(self._cfg))
        return InMemoryCatalogClient(self._db, cfg, kind, self.notifier)
