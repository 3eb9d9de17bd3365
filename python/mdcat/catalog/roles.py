"""
the roles a user can hold within a group and the resolution of a user's memberships into a
map of group identifiers to effective roles.

A user may belong to many groups and hold a different role in each.  Roles are totally ordered
by priority: ``ADMIN`` > ``REVIEWER`` > ``EDITOR`` > ``VIEWER``.  Only memberships whose request
has been ``ACCEPTED`` count toward a user's roles.
"""
from logging import Logger, getLogger
from collections.abc import Mapping, Iterable
from typing import Dict

# group roles
ADMIN    = "ADMIN"
REVIEWER = "REVIEWER"
EDITOR   = "EDITOR"
VIEWER   = "VIEWER"

ROLES = (ADMIN, REVIEWER, EDITOR, VIEWER)

_priority = { ADMIN: 4, REVIEWER: 3, EDITOR: 2, VIEWER: 1 }

# roles that allow a user to contribute entities to a group
WRITER_ROLES = frozenset([ADMIN, REVIEWER, EDITOR])

# membership request states
PENDING  = "PENDING"
ACCEPTED = "ACCEPTED"
REJECTED = "REJECTED"

REQUEST_STATES = (PENDING, ACCEPTED, REJECTED)

RoleMap = Dict[str, str]

def priority(role: str) -> int:
    """
    return the priority rank of the given role; unrecognized roles rank below all others (0).
    """
    return _priority.get(role, 0)

def highest_role(roles: Iterable) -> str:
    """
    return the highest-priority role from the given roles, or None if no recognized role is given.
    When the highest priority appears more than once, the first one seen is kept.
    """
    out = None
    for role in roles:
        if priority(role) > priority(out):
            out = role
    return out

def effective_role(groups: Iterable, rolemap: Mapping) -> str:
    """
    return the highest-priority role a user holds across the given groups
    :param groups:       the identifiers of the groups an entity belongs to
    :param Map rolemap:  the user's resolved roles keyed by group identifier
    :return:  the effective role, or None if the user holds no role in any of the groups
    """
    return highest_role(rolemap[g] for g in groups if g in rolemap)

def writable_groups(rolemap: Mapping) -> list:
    """
    return the identifiers of the groups in which the role map grants a contributing role
    (``EDITOR``, ``REVIEWER``, or ``ADMIN``)
    """
    return [g for g, r in rolemap.items() if r in WRITER_ROLES]


class GroupRoleResolver:
    """
    a resolver of users' roles in groups.  It draws on a membership index (see
    :py:class:`~mdcat.catalog.base.GroupIndex`) that can list a user's accepted memberships.

    A role map produced by :py:meth:`resolve_roles` is meant to be computed once per catalog
    operation and reused for every permission check made during that operation.
    """

    def __init__(self, memberships, log: Logger=None):
        """
        create the resolver
        :param GroupIndex memberships:  the membership index to query
        :param Logger             log:  the logger to send warnings to
        """
        self._idx = memberships
        if not log:
            log = getLogger("MDCAT").getChild("roles")
        self.log = log

    def resolve_roles(self, user) -> RoleMap:
        """
        return the map of group identifiers to the highest-priority role the user holds in that
        group.  Groups in which the user holds no accepted membership do not appear in the map.
        The membership index is queried exactly once.
        :param User user:  the user to resolve roles for
        """
        out = {}
        for gid, role in self._idx.list_accepted_memberships(user.id):
            if role not in _priority:
                self.log.warning("Ignoring unrecognized role for %s in group %s: %s", user.id, gid, role)
                continue
            if priority(role) > priority(out.get(gid)):
                out[gid] = role
        return out
