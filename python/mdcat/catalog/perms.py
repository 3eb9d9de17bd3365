"""
the policy that decides whether a user may read or write a version of a catalog entity.

A decision depends only on the version's status, its groups and its editor, and on the user's
role map as produced by :py:class:`~mdcat.catalog.roles.GroupRoleResolver`.  System
administrators may do anything except author a version whose (target) status is ``ARCHIVED``;
that status is only reached by publishing a newer version.  Otherwise, the user's effective role
across the version's groups is looked up in the tables below, where ``OWNER`` means that the
permission is granted only if the user is the version's editor.
"""
from collections.abc import Mapping

from . import status, roles
from .base import MetadataEntity, User
from mdcat.base.config import ConfigurationException

OWNER = "owner"

# status -> role -> permission
READ_POLICY = {
    status.DRAFT:     { roles.VIEWER: False, roles.EDITOR: OWNER, roles.REVIEWER: False, roles.ADMIN: True },
    status.SUBMITTED: { roles.VIEWER: False, roles.EDITOR: OWNER, roles.REVIEWER: True,  roles.ADMIN: True },
    status.PUBLISHED: { roles.VIEWER: True,  roles.EDITOR: True,  roles.REVIEWER: True,  roles.ADMIN: True },
    status.ARCHIVED:  { roles.VIEWER: True,  roles.EDITOR: True,  roles.REVIEWER: True,  roles.ADMIN: True },
    status.DISCARDED: { roles.VIEWER: False, roles.EDITOR: OWNER, roles.REVIEWER: True,  roles.ADMIN: True },
}

# target status -> role -> permission
WRITE_POLICY = {
    status.DRAFT:     { roles.VIEWER: False, roles.EDITOR: True,  roles.REVIEWER: False, roles.ADMIN: True },
    status.SUBMITTED: { roles.VIEWER: False, roles.EDITOR: OWNER, roles.REVIEWER: False, roles.ADMIN: True },
    status.PUBLISHED: { roles.VIEWER: False, roles.EDITOR: False, roles.REVIEWER: True,  roles.ADMIN: True },
    status.ARCHIVED:  { roles.VIEWER: False, roles.EDITOR: False, roles.REVIEWER: False, roles.ADMIN: False },
    status.DISCARDED: { roles.VIEWER: False, roles.EDITOR: False, roles.REVIEWER: True,  roles.ADMIN: True },
}

# policies for versions that belong to no group
ADMIN_ONLY = "admin"
OPEN = "open"

class PermissionEvaluator:
    """
    the decision-maker for read and write permissions on entity versions.

    Versions with no groups are, by default, accessible only to system administrators.  The
    alternative policy, ``"open"``, lets any user read them and write them (to any status but
    ``ARCHIVED``).
    """

    def __init__(self, empty_groups_policy: str=ADMIN_ONLY):
        """
        create the evaluator
        :param str empty_groups_policy:  how to treat versions that belong to no groups: either
                                  ``"admin"`` (admin-only access) or ``"open"`` (open to all)
        :raises ConfigurationException:  if the policy name is not recognized
        """
        if empty_groups_policy not in (ADMIN_ONLY, OPEN):
            raise ConfigurationException("empty_groups_policy: unrecognized value: " +
                                         str(empty_groups_policy))
        self._open_empty = empty_groups_policy == OPEN

    def can_read(self, entity: MetadataEntity, user: User, rolemap: Mapping) -> bool:
        """
        return True if the given user may see the given entity version
        :param MetadataEntity entity:  the version in question
        :param User             user:  the user requesting access
        :param Mapping       rolemap:  the user's roles, keyed by group identifier
        """
        if user.is_admin:
            return True
        if not entity.groups:
            return self._open_empty
        return self._decide(READ_POLICY, entity, user, rolemap)

    def can_write(self, entity: MetadataEntity, user: User, rolemap: Mapping) -> bool:
        """
        return True if the given user may store the given entity version.  The version's status
        is the status it would be stored with (i.e. the target status); for a request to change
        an existing version, the version's groups and editor are those of the stored version.
        :param MetadataEntity entity:  the version to be written
        :param User             user:  the user requesting the write
        :param Mapping       rolemap:  the user's roles, keyed by group identifier
        """
        target = entity.status or status.DEFAULT
        if target == status.ARCHIVED:
            return False
        if user.is_admin:
            return True
        if not entity.groups:
            return self._open_empty
        return self._decide(WRITE_POLICY, entity, user, rolemap)

    def _decide(self, policy, entity, user, rolemap):
        role = roles.effective_role(entity.groups, rolemap)
        if not role:
            return False
        perm = policy.get(entity.status or status.DEFAULT, {}).get(role, False)
        if perm == OWNER:
            return bool(entity.editor_id) and entity.editor_id == user.id
        return perm
