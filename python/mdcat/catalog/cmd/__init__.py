"""
package that provides implementations of commands that can be part of a command-line tool providing
administrative operations on the catalog.  This package is incorporated into
:py:mod:`mdcat.catalog.cli.mdcatadm`.

(See :py:mod:`mdcat.utils.cli` for information on the framework for building up tool suites like
``mdcatadm``.)

The commands are organized into two suites:
  - ``entity``:  show, change the state of, or delete entity versions
  - ``group``:   create groups and add members to them

This module also provides the functions the commands use to connect to the catalog's backend store
as given by the ``dbio`` configuration parameter.
"""
import os
from collections.abc import Mapping
from logging import Logger

from mdcat.base.config import ConfigurationException
from ..base import CatalogClientFactory
from ..inmem import InMemoryCatalogClientFactory
from ..fsbased import FSBasedCatalogClientFactory
from ..mongo import MongoCatalogClientFactory
from ..service import CatalogServiceFactory, CatalogService

def create_client_factory(args, config: Mapping) -> CatalogClientFactory:
    """
    create the factory for clients of the backend store described by the ``dbio`` configuration
    parameter.  Its ``factory`` parameter selects the type of store: "fsbased", "mongo", or "inmem".
    :raises ConfigurationException:  if the given configuration is insufficient or erroneous
    """
    dbiocfg = config.get("dbio", {})
    dbtype = dbiocfg.get("factory")
    if not dbtype:
        raise ConfigurationException("required dbio.factory param missing")

    elif dbtype == "fsbased":
        wdir = args.workdir
        if not wdir:
            wdir = config.get("working_dir", ".")
        dbdir = dbiocfg.get('db_root_dir')
        if not dbdir:
            # use a default under the working directory
            dbdir = os.path.join(wdir, "dbfiles")
        elif not os.path.isabs(dbdir):
            # if relative, make it relative to the work directory
            if not os.path.exists(wdir):
                raise ConfigurationException(f"{wdir}: working directory does not exist")
            dbdir = os.path.join(wdir, dbdir)
        if not os.path.exists(dbdir):
            os.makedirs(dbdir)
        return FSBasedCatalogClientFactory(dbiocfg, dbdir)

    elif dbtype == "mongo":
        dburl = os.environ.get("MDCAT_MONGODB_URL")
        if not dburl:
            dburl = dbiocfg.get("db_url")
        if not dburl:
            # Build the DB URL from its pieces with env vars taking precedence over the config
            port = ":%s" % os.environ.get("MDCAT_MONGODB_PORT", dbiocfg.get("port", "27017"))
            user = os.environ.get("MDCAT_MONGODB_USER", dbiocfg.get("user"))
            cred = ""
            if user:
                pasw = os.environ.get("MDCAT_MONGODB_PASS", dbiocfg.get("pw", user))
                cred = "%s:%s@" % (user, pasw)
            host = os.environ.get("MDCAT_MONGODB_HOST", dbiocfg.get("host", "localhost"))
            dburl = "mongodb://%s%s%s/mdcat" % (cred, host, port)

        return MongoCatalogClientFactory(dbiocfg, dburl)

    elif dbtype == "inmem":
        return InMemoryCatalogClientFactory(dbiocfg)

    raise ConfigurationException(f"unrecognized factory: {dbtype}")

def create_service(kind: str, args, config: Mapping, log: Logger) -> CatalogService:
    """
    create a CatalogService for entities of the given kind, attached to the configured backend store.
    Side effects are run synchronously so that they complete before the command exits.
    :raises ConfigurationException:  if the given configuration is insufficient or erroneous
    """
    svccfg = dict(config)
    svccfg['side_effects'] = dict(config.get('side_effects', {}), asynchronous=False)
    factory = CatalogServiceFactory(create_client_factory(args, config), svccfg, log)
    return factory.create_service_for(kind)
