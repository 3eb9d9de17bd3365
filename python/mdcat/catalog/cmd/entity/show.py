"""
CLI command that prints the versions of a catalog entity as JSON
"""
import logging, argparse, json, sys
from logging import Logger
from collections.abc import Mapping

from mdcat.base.config import ConfigurationException
from mdcat.utils.cli import CommandFailure
from mdcat.catalog import CatalogException
from mdcat.catalog.cli import get_user

from .. import create_service
from . import check_kind

default_name = "show"
help = "print the versions of an entity as JSON"
description = \
"""print as JSON the stored versions of an entity (or all entities of a kind).  Use "all" as the
METAID to show every entity of the given kind.
"""

def load_into(subparser: argparse.ArgumentParser, as_cmd: str=None):
    """
    load this command into a CLI by defining the command's arguments and options.
    :param argparser.ArgumentParser subparser:  the argument parser instance to define this command's
                                                interface into it
    :param str as_cmd:  the subcommand name assigned to the action provided by this module
    :rtype: None
    """
    p = subparser
    p.description = description
    p.cmd = as_cmd
    p.add_argument("kind", metavar="KIND", type=str, help="the kind of entity (e.g. dataproduct)")
    p.add_argument("metaid", metavar="METAID", type=str,
                   help="the metaId of the entity to show, or 'all'")
    p.add_argument("instid", metavar="INSTANCEID", type=str, nargs="?", default=None,
                   help="the instanceId of the particular version to show")

    return None

def execute(args, config: Mapping=None, log: Logger=None):
    """
    execute this command: print the requested versions
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
        found = svc.get_entities(args.metaid, args.instid, user)
    except CatalogException as ex:
        raise CommandFailure(default_name, str(ex), 1) from ex
    finally:
        svc.close()

    if not found:
        raise CommandFailure(default_name, "%s: no matching versions found" % args.metaid, 1)
    json.dump([e.to_dict() for e in found], sys.stdout, indent=4)
    sys.stdout.write("\n")
