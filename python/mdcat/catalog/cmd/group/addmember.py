"""
CLI command that adds a user to a group
"""
import logging, argparse
from logging import Logger
from collections.abc import Mapping

from mdcat.base.config import ConfigurationException
from mdcat.utils.cli import CommandFailure
from mdcat.catalog import CatalogException, roles

from . import open_group_index

default_name = "addmember"
help = "add a user to a group"
description = \
"""add a user to a group with a given role, replacing any membership the user already has in the
group.  Unless --pending is given, the membership is recorded as accepted.
"""

def load_into(subparser: argparse.ArgumentParser, as_cmd: str=None):
    """
    load this command into a CLI by defining the command's arguments and options.
    :rtype: None
    """
    p = subparser
    p.description = description
    p.cmd = as_cmd
    p.add_argument("group", metavar="GROUPNAME", type=str, help="the name of the group to join")
    p.add_argument("userid", metavar="USERID", type=str, help="the identifier of the user to add")
    p.add_argument("role", metavar="ROLE", type=str,
                   help="the user's role in the group, one of 'viewer', 'editor', 'reviewer', 'admin'")
    p.add_argument("-p", "--pending", action="store_true", dest="pending",
                   help="record the membership as pending approval rather than accepted")

    return None

def execute(args, config: Mapping=None, log: Logger=None):
    """
    execute this command: add the membership
    """
    if not log:
        log = logging.getLogger(default_name)
    if not config:
        config = {}

    role = args.role.upper()
    if role not in roles.ROLES:
        raise CommandFailure(default_name, "Unrecognized role: "+args.role, 2)

    try:
        groups = open_group_index(args, config)
    except ConfigurationException as ex:
        raise CommandFailure(default_name, "Config error: "+str(ex), 6) from ex

    grp = groups.get_group_by_name(args.group)
    if not grp:
        raise CommandFailure(default_name, f"{args.group}: group not found", 1)

    reqstat = roles.PENDING if args.pending else roles.ACCEPTED
    try:
        groups.add_membership(args.userid, grp.id, role, reqstat)
    except CatalogException as ex:
        raise CommandFailure(default_name, f"Unexpected failure: {str(ex)}", 1) from ex

    log.info("Added %s to group %s as %s (%s)", args.userid, grp.name, role, reqstat)
