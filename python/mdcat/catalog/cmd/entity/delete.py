"""
CLI command that removes a catalog entity version from the store.
"""
import logging, argparse
from logging import Logger
from collections.abc import Mapping

from mdcat.base.config import ConfigurationException
from mdcat.utils.cli import CommandFailure
from mdcat.catalog import CatalogException
from mdcat.catalog.base import NotAuthorized, ObjectNotFound, InvalidTransition
from mdcat.catalog.cli import get_user

from .. import create_service
from . import check_kind

default_name = "delete"
help = "remove an entity version from the store"
description = \
"""Remove an entity version from the store.  Published and archived versions cannot be removed."""

def load_into(subparser: argparse.ArgumentParser, as_cmd: str=None):
    """
    load this command into a CLI by defining the command's arguments and options.
    :rtype: None
    """
    p = subparser
    p.description = description
    p.cmd = as_cmd
    p.add_argument("kind", metavar="KIND", type=str, help="the kind of entity (e.g. dataproduct)")
    p.add_argument("instid", metavar="INSTANCEID", type=str,
                   help="the instanceId of the version to remove")

    return None

def execute(args, config: Mapping=None, log: Logger=None):
    """
    execute this command: delete an entity version
    """
    if not log:
        log = logging.getLogger(default_name)
    if not config:
        config = {}

    kind = check_kind(default_name, args.kind)
    user = get_user(args, config)
    try:
        svc = create_service(kind, args, config, log)
    except ConfigurationException as ex:
        raise CommandFailure(default_name, "Config error: "+str(ex), 6) from ex

    try:
        svc.delete_entity(args.instid, user)
    except ObjectNotFound as ex:
        raise CommandFailure(default_name, f"{args.instid}: {kind.lower()} version not found", 1) from ex
    except NotAuthorized as ex:
        raise CommandFailure(default_name, f"{args.instid}: insufficient authorization to delete", 9) from ex
    except InvalidTransition as ex:
        raise CommandFailure(default_name, str(ex), 1) from ex
    except CatalogException as ex:
        raise CommandFailure(default_name, f"Unexpected failure: {str(ex)}", 1) from ex
    finally:
        svc.close()

    log.info("%s %s: deleted", kind.lower(), args.instid)
