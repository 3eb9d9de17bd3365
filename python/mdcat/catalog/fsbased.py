"""
An implementation of the catalog store interface that persists data to files on disk.
"""
import os
from pathlib import Path
from copy import deepcopy
from collections.abc import Mapping, MutableMapping
from typing import Iterator
from . import base

from mdcat.utils import read_json, write_json
from mdcat.base.config import ConfigurationException, merge_config

class FSBasedCatalogClient(base.CatalogClient):
    """
    an implementation of CatalogClient in which the data is persisted to flat files on disk, one
    JSON file per record, with a subdirectory for each collection.
    """

    def __init__(self, dbroot: str, config: Mapping, kind: str, notifier=None):
        self._root = Path(dbroot)
        if not self._root.is_dir():
            raise base.DBIOException("FSBasedCatalogClient: %s: does not exist as a directory" % dbroot)
        super(FSBasedCatalogClient, self).__init__(config, kind, self._root, notifier)

    def _ensure_collection(self, collname):
        collpath = self._root / collname
        if not collpath.exists():
            os.makedirs(collpath, exist_ok=True)

    def _recpath(self, collname, id) -> Path:
        # a record file must sit directly within its collection's directory
        if not isinstance(id, str) or "\0" in id:
            raise base.DBIOException("%r: illegal record identifier" % (id,))
        collpath = (self._root / collname).resolve()
        recpath = (collpath / (id+".json")).resolve()
        if recpath.parent != collpath:
            raise base.DBIOException("%s: illegal record identifier" % id)
        return recpath

    def _read_rec(self, collname, id):
        recpath = self._recpath(collname, id)
        if not recpath.is_file():
            return None
        try:
            return read_json(str(recpath))
        except ValueError as ex:
            raise base.DBIOException(id+": Unable to read DB record as JSON: "+str(ex), cause=ex)
        except IOError as ex:
            raise base.DBIOException(str(recpath)+": unable to read DB record: "+str(ex), cause=ex)

    def _write_rec(self, collname, id, data):
        recpath = self._recpath(collname, id)
        self._ensure_collection(collname)
        exists = recpath.exists()
        try:
            write_json(data, str(recpath))
        except Exception as ex:
            raise base.DBIOException(id+": Unable to write DB record: "+str(ex), cause=ex)
        return not exists

    def _get_from_coll(self, collname, id) -> MutableMapping:
        return self._read_rec(collname, id)

    def _select_from_coll(self, collname, **constraints) -> Iterator[MutableMapping]:
        collpath = self._root / collname
        if not collpath.is_dir():
            return
        for root, dirs, files in os.walk(collpath):
            for fn in files:
                if not fn.endswith(".json"):
                    continue
                try:
                    rec = read_json(os.path.join(root, fn))
                except ValueError:
                    # skip over corrupted records
                    continue
                except FileNotFoundError:
                    # deleted since the directory was listed
                    continue

                cancel = False
                for ck, cv in constraints.items():
                    if rec.get(ck) != cv:
                        cancel = True
                        break
                if cancel:
                    continue
                yield rec

    def _delete_from(self, collname, id):
        recpath = self._recpath(collname, id)
        if recpath.is_file():
            recpath.unlink()
            return True
        return False

    def _upsert(self, coll: str, recdata: Mapping) -> bool:
        try:
            return self._write_rec(coll, recdata['id'], recdata)
        except KeyError:
            raise base.DBIOException("_upsert(): record is missing 'id' property")


class FSBasedCatalogClientFactory(base.CatalogClientFactory):
    """
    a CatalogClientFactory that creates FSBasedCatalogClient instances in which records are stored
    in JSON files on disk under a specified directory.

    In addition to :py:class:`common configuration parameters <mdcat.catalog.base.CatalogClient>`,
    this implementation also supports:

    ``db_root_dir``
         the root directory where the database's record files will be store below.  If not specified,
         this value must be provided to the constructor directly.
    """

    def __init__(self, config: Mapping, dbroot: str = None, notifier=None):
        """
        Create the factory with the given configuration.

        :param dict config:  the configuration parameters used to configure clients
        :param str  dbroot:  the root directory to use to store database record files below; if
                             not provided, the value of the ``db_root_dir`` configuration
                             parameter will be used.
        :raise ConfigurationException:  if the database's root directory is provided neither as an
                             argument nor a configuration parameter.
        :raise DBIOException:  if the specified root directory does not exist
        """
        super(FSBasedCatalogClientFactory, self).__init__(config, notifier)
        if not dbroot:
            dbroot = self.cfg.get("db_root_dir")
            if not dbroot:
                raise ConfigurationException("Missing required configuration parameter: db_root_dir")
        if not os.path.isdir(dbroot):
            raise base.DBIOException("FSBasedCatalogClientFactory: %s: does not exist as a directory" %
                                     dbroot)
        self._dbroot = dbroot

    def create_client(self, kind: str, config: Mapping = {}):
        cfg = merge_config(config, deepcopy(self._cfg))
        return FSBasedCatalogClient(self._dbroot, cfg, kind, self.notifier)
