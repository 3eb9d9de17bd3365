"""
the ``group`` command suite: administrative operations on the catalog's groups.

This module defines a set of subcommands to a command called (by default) "group".  These
subcommands include
  - ``create``:     create a new group
  - ``addmember``:  add a user to a group with a given role
"""
import argparse
from collections.abc import Mapping

from mdcat.utils import cli
from mdcat.catalog import kinds
from mdcat.catalog.base import GroupIndex
from .. import create_client_factory

default_name = "group"
help = "manage catalog groups via subcommands"
description = \
"""create groups and manage their memberships"""

def load_into(subparser: argparse.ArgumentParser, as_cmd: str=None):
    """
    load this command into a CLI by defining the command's arguments and options.
    :param argparser.ArgumentParser subparser:  the argument parser instance to define this command's
                                                interface into it
    """
    from . import create, addmember

    subparser.description = description

    if not as_cmd:
        as_cmd = default_name
    out = cli.CommandSuite(as_cmd, subparser)
    out.load_subcommand(create)
    out.load_subcommand(addmember)

    return out

def open_group_index(args, config: Mapping) -> GroupIndex:
    """
    return the membership index of the configured backend store
    :raises ConfigurationException:  if the given configuration is insufficient or erroneous
    """
    dbcfg = dict(config.get("dbio", {}))
    if config.get("public_group"):
        dbcfg.setdefault("public_group", config["public_group"])
    # the index is shared by all kinds
    return create_client_factory(args, config).create_client(kinds.DATAPRODUCT, dbcfg).groups
