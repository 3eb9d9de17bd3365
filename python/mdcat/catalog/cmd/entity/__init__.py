"""
the ``entity`` command suite: administrative operations on catalog entity versions.

This module defines a set of subcommands to a command called (by default) "entity".  These
subcommands include
  - ``show``:      print the versions of an entity as JSON
  - ``setstate``:  change the status of an entity version through its lifecycle rules
  - ``delete``:    remove an entity version from the store
"""
import argparse

from mdcat.utils import cli
from mdcat.catalog import kinds

default_name = "entity"
help = "manage catalog entity versions via subcommands"
description = \
"""apply an action to a catalog entity version"""

def load_into(subparser: argparse.ArgumentParser, as_cmd: str=None):
    """
    load this command into a CLI by defining the command's arguments and options.
    :param argparser.ArgumentParser subparser:  the argument parser instance to define this command's
                                                interface into it
    """
    from . import show, setstate, delete

    subparser.description = description

    if not as_cmd:
        as_cmd = default_name
    out = cli.CommandSuite(as_cmd, subparser)
    out.load_subcommand(show)
    out.load_subcommand(setstate)
    out.load_subcommand(delete)

    return out

def check_kind(cmdname: str, kind: str) -> str:
    """
    return the canonical form of a kind name given on the command line
    :raises CommandFailure:  if the kind is not recognized
    """
    try:
        return kinds.normalize(kind)
    except ValueError as ex:
        raise cli.CommandFailure(cmdname, str(ex), 2)
