"""
a module that defines the top-level command-line programs for the metadata catalog.
"""
from collections.abc import Mapping
from getpass import getuser

from ..base import User

def get_user(args, config: Mapping) -> User:
    """
    return the User that a CLI program/command acts on behalf of.  Administrative commands act
    with the privileges of a system administrator; the user's identity is taken from the
    ``--actor-id`` option or, if not given, the login name of the user running the program.
    """
    who = args.actor
    if not who:
        who = getuser()
    return User(who, is_admin=True)
