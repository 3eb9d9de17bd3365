"""
An implementation of the catalog store interface that uses a MongoDB database as its backend store
"""
import re
from copy import deepcopy
from collections.abc import Mapping, MutableMapping
from typing import Iterator
from . import base

from pymongo import MongoClient, ASCENDING

from mdcat.base.config import ConfigurationException, merge_config

_dburl_re = re.compile(r"^mongodb://(\w+(:\S+)?@)?\w+(\.\w+)*(:\d+)?/\w+(\?\w.*)?$")

class MongoCatalogClient(base.CatalogClient):
    """
    an implementation of CatalogClient using a MongoDB database as the backend store.
    """

    def __init__(self, dburl: str, config: Mapping, kind: str, notifier=None):
        """
        create the client with its connector to the MongoDB database

        :param str   dburl:  the URL of MongoDB database in the form, 'mongodb://USER:PW@HOST:PORT/DBNAME'
        :param dict config:  the configuration for the CatalogClient
        :param str    kind:  the kind of entity the client handles
        """
        if not _dburl_re.match(dburl):
            raise ValueError("CatalogClient: Bad dburl format (need 'mongodb://[USER:PASS@]HOST[:PORT]/DBNAME'): "+
                             dburl)
        self._dburl = dburl
        self._mngocli = None
        super(MongoCatalogClient, self).__init__(config, kind, None, notifier)

    def connect(self):
        """
        establish a connection to the database.  This will set the native property to the pymongo
        database object.
        """
        self._mngocli = MongoClient(self._dburl)
        self._native = self._mngocli.get_database()
        self._ensure_indexes()

    def _ensure_indexes(self):
        # the archival sweep selects versions by metaId and status
        coll = self._native[self._coll]
        coll.create_index([("id", ASCENDING)], unique=True)
        coll.create_index([("metaId", ASCENDING), ("status", ASCENDING)])

    def disconnect(self):
        """
        close the connection to the database.
        """
        if self._mngocli:
            try:
                self._mngocli.close()
            finally:
                self._mngocli = None
                self._native = None

    @property
    def native(self):
        """
        the native pymongo database object that contains the catalog collections.  Accessing this
        property will implicitly connect this client to the underlying MongoDB database.
        """
        if self._native is None:
            self.connect()
        return self._native

    def _upsert(self, collname: str, recdata: Mapping) -> bool:
        try:
            id = recdata['id']
        except KeyError:
            raise base.DBIOException("_upsert(): record is missing required 'id' property")
        key = {"id": id}

        try:
            coll = self.native[collname]
            result = coll.replace_one(key, deepcopy(recdata), upsert=True)
            return result.matched_count == 0

        except base.DBIOException:
            raise
        except Exception as ex:
            raise base.DBIOException("Failed to save record with id=%s: %s" % (id, str(ex)), cause=ex)

    def _get_from_coll(self, collname, id) -> MutableMapping:
        key = {"id": id}

        try:
            coll = self.native[collname]
            return coll.find_one(key, {'_id': False})

        except Exception as ex:
            raise base.DBIOException("Failed to access record with id=%s: %s" % (id, str(ex)), cause=ex)

    def _select_from_coll(self, collname, **constraints) -> Iterator[MutableMapping]:
        try:
            coll = self.native[collname]

            for rec in coll.find(constraints, {'_id': False}):
                yield rec

        except Exception as ex:
            raise base.DBIOException("Failed while selecting records: " + str(ex), cause=ex)

    def _delete_from(self, collname, id):
        key = {"id": id}
        try:
            coll = self.native[collname]

            results = coll.delete_one(key)
            return results.deleted_count > 0

        except Exception as ex:
            raise base.DBIOException("Failed while deleting record with id=%s: %s" % (id, str(ex)),
                                     cause=ex)


class MongoCatalogClientFactory(base.CatalogClientFactory):
    """
    a CatalogClientFactory that creates MongoCatalogClient instances in which records are stored in a
    MongoDB database.

    In addition to :py:class:`common configuration parameters <mdcat.catalog.base.CatalogClient>`,
    this implementation also supports:

    ``db_url``
        the URL for the MongoDB connection, of the form,
        ``mongodb://``*[USER*``:``*PASS*``@``*]HOST[*``:``*PORT]*``/``*DBNAME*
    """

    def __init__(self, config: Mapping, dburl: str = None, notifier=None):
        """
        Create the factory with the given configuration.

        :param dict config:  the configuration parameters used to configure clients
        :param str   dburl:  the URL for the MongoDB connection; it takes the same form as the
                             ``db_url`` configuration parameter.  If
                             not provided, the value of the ``db_url`` configuration
                             parameter will be used.
        :raise ConfigurationException:  if the database's URL is provided neither as an
                             argument nor a configuration parameter.
        :raise ValueError:  if the specified database URL is of an incorrect form
        """
        super(MongoCatalogClientFactory, self).__init__(config, notifier)
        if not dburl:
            dburl = self._cfg.get("db_url")
            if not dburl:
                raise ConfigurationException("Missing required configuration parameter: db_url")
        if not _dburl_re.match(dburl):
            raise ValueError("MongoCatalogClientFactory: Bad dburl format (need "+
                             "'mongodb://[USER:PASS@]HOST[:PORT]/DBNAME'): "+
                             dburl)
        self._dburl = dburl

    def create_client(self, kind: str, config: Mapping = {}):
        cfg = merge_config(config, deepcopy(self._cfg))
        return MongoCatalogClient(self._dburl, cfg, kind, self.notifier)
