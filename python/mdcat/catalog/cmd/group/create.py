"""
CLI command that creates a new group
"""
import logging, argparse
from logging import Logger
from collections.abc import Mapping

from mdcat.base.config import ConfigurationException
from mdcat.utils.cli import CommandFailure
from mdcat.catalog import CatalogException
from mdcat.catalog.base import AlreadyExists

from . import open_group_index

default_name = "create"
help = "create a new group"
description = \
"""create a new group that entities can be assigned to and users can join.  The group named "ALL"
(or as configured via the public_group parameter) serves as the public group.
"""

def load_into(subparser: argparse.ArgumentParser, as_cmd: str=None):
    """
    load this command into a CLI by defining the command's arguments and options.
    :rtype: None
    """
    p = subparser
    p.description = description
    p.cmd = as_cmd
    p.add_argument("name", metavar="NAME", type=str, help="the (unique) name for the new group")
    p.add_argument("-d", "--description", type=str, dest="desc", metavar="DESC",
                   help="a description of the group's purpose")
    p.add_argument("-i", "--id", type=str, dest="gid", metavar="ID",
                   help="the identifier to assign to the group (default: a generated one)")

    return None

def execute(args, config: Mapping=None, log: Logger=None):
    """
    execute this command: create the group
    """
    if not log:
        log = logging.getLogger(default_name)
    if not config:
        config = {}

    try:
        groups = open_group_index(args, config)
    except ConfigurationException as ex:
        raise CommandFailure(default_name, "Config error: "+str(ex), 6) from ex

    try:
        grp = groups.create_group(args.name, args.desc, args.gid)
    except AlreadyExists as ex:
        raise CommandFailure(default_name, str(ex), 1) from ex
    except CatalogException as ex:
        raise CommandFailure(default_name, f"Unexpected failure: {str(ex)}", 1) from ex

    log.info("Created group %s with id=%s", grp.name, grp.id)
