"""
CLI command that changes the status of a catalog entity version.
"""
import logging, argparse
from logging import Logger
from collections.abc import Mapping

from mdcat.base.config import ConfigurationException
from mdcat.utils.cli import CommandFailure
from mdcat.catalog import CatalogException, status
from mdcat.catalog.base import NotAuthorized, ObjectNotFound, InvalidTransition
from mdcat.catalog.cli import get_user

from .. import create_service
from . import check_kind

default_name = "setstate"
help = "change the status of an entity version"
description = \
"""Change the status of an entity version.  The change is subject to the same lifecycle rules that
apply to any other user; thus, depending on the change, it may result in a new version of the
entity (e.g. a change to a published version) or in archiving other versions (when publishing).
Versions cannot be set to "archived" directly.
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
    p.add_argument("instid", metavar="INSTANCEID", type=str,
                   help="the instanceId of the version to change the state of")
    p.add_argument("newstate", metavar="STATE", type=str,
                   help="the desired state, one of 'draft', 'submitted', 'published', 'discarded'")

    return None

def execute(args, config: Mapping=None, log: Logger=None):
    """
    execute this command: change the status of an entity version
    """
    if not log:
        log = logging.getLogger(default_name)
    if not config:
        config = {}

    kind = check_kind(default_name, args.kind)
    try:
        newstate = status.normalize(args.newstate)
    except ValueError as ex:
        raise CommandFailure(default_name, "Unrecognized state requested: "+args.newstate, 2) from ex

    user = get_user(args, config)
    try:
        svc = create_service(kind, args, config, log)
    except ConfigurationException as ex:
        raise CommandFailure(default_name, "Config error: "+str(ex), 6) from ex

    try:
        out = svc.update_entity({ "instanceId": args.instid, "status": newstate }, user)
    except ObjectNotFound as ex:
        raise CommandFailure(default_name, f"{args.instid}: {kind.lower()} version not found", 1) from ex
    except NotAuthorized as ex:
        raise CommandFailure(default_name, f"{args.instid}: insufficient authorization to update", 9) from ex
    except InvalidTransition as ex:
        raise CommandFailure(default_name, str(ex), 1) from ex
    except CatalogException as ex:
        raise CommandFailure(default_name, f"Unexpected failure: {str(ex)}", 1) from ex
    finally:
        svc.close()

    if out.instance_id != args.instid:
        log.info("%s %s: saved as new version %s (%s)", kind.lower(), args.instid, out.instance_id,
                 out.status)
    else:
        log.info("%s %s: state set to %s", kind.lower(), args.instid, out.status)
