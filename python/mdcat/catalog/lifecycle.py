"""
the rules for moving catalog entity versions through their lifecycle.

Given the stored version of an entity (if any) and a requested version, the
:py:class:`LifecycleTransitionEngine` decides how the request is to be carried out and returns
the decision as a :py:class:`WritePlan`.  A request either rewrites the stored version in place
(keeping its ``instanceId``) or *forks* a new version: a new ``instanceId`` linked to its
ancestor via ``instanceChangedId``.  The rules, by (current status, requested status):

=========================  =================================================================
DRAFT -> DRAFT             in place if the user owns the draft (or is a system admin);
                           otherwise fork, chaining to the draft's own ancestor
DRAFT|SUBMITTED -> DISCARDED   in place
PUBLISHED -> DISCARDED     in place
PUBLISHED -> other         fork as a DRAFT that chains to the published version
DRAFT -> SUBMITTED         in place; a review request is due
SUBMITTED -> PUBLISHED     in place; all other published versions must be archived
ARCHIVED -> any            rejected
=========================  =================================================================

Any other pair is rejected, as is any request whose target status is ``ARCHIVED``: a version is
only archived (in place, from ``PUBLISHED``) when a newer version is published (see
:py:meth:`LifecycleTransitionEngine.plan_supersede`).

The engine does not consult or change the store, and it does not check permissions; the caller
is expected to have confirmed that the user may write the requested status beforehand.
"""
import uuid
from collections.abc import Mapping, Callable

from . import status, roles
from .base import MetadataEntity, User, InvalidTransition

IN_PLACE = "in-place"
FORK = "fork"
CREATE = "create"

DEF_PROVENANCE = "catalog"

class WritePlan(object):
    """
    a description of how a write request is to be carried out
    """

    def __init__(self, action: str, entity: MetadataEntity, ancestor: MetadataEntity=None,
                 archive_others: bool=False, request_review: bool=False):
        """
        :param str  action:  one of ``IN_PLACE``, ``FORK``, or ``CREATE``
        :param MetadataEntity entity:    the version to store
        :param MetadataEntity ancestor:  the stored version the request was made against, if any
        :param bool archive_others:  True if all other published versions of the entity must be
                                     archived once the version is stored
        :param bool request_review:  True if a review request should be sent once the version is
                                     stored
        """
        self.action = action
        self.entity = entity
        self.ancestor = ancestor
        self.archive_others = archive_others
        self.request_review = request_review

    @property
    def is_fork(self) -> bool:
        """
        True if the plan creates a new version derived from a stored one
        """
        return self.action == FORK

    def __str__(self):
        return "<WritePlan: {} {}>".format(self.action, str(self.entity))


class LifecycleTransitionEngine:
    """
    the decision-maker that turns a write request into a :py:class:`WritePlan`.  The version to
    store is fully prepared by the engine: identifiers, lineage, groups, editor, and provenance
    are all set.
    """

    def __init__(self, public_group: Callable=None, provenance: str=DEF_PROVENANCE):
        """
        create the engine
        :param Callable public_group:  a function that returns the identifier of the public group
                                       (or None if there is none); this is used to assign groups to
                                       new entities when the user has no group to contribute to.
        :param str provenance:  the marker to record as the provenance of every version written
        """
        self._pubgrp = public_group
        self._prov = provenance

    def mint_id(self) -> str:
        """
        return a new unique identifier
        """
        return str(uuid.uuid4())

    def default_groups(self, rolemap: Mapping) -> list:
        """
        return the groups to assign to a new entity whose author did not specify any: the groups
        the user may contribute to or, failing that, the public group.
        """
        out = roles.writable_groups(rolemap)
        if not out and self._pubgrp:
            pub = self._pubgrp()
            if pub:
                out = [pub]
        return out

    def plan_create(self, requested: MetadataEntity, user: User, rolemap: Mapping) -> WritePlan:
        """
        plan the creation of a brand new entity (one with no stored ancestor).
        :param MetadataEntity requested:  the version submitted by the user
        :param User user:      the user creating the entity
        :param Mapping rolemap:  the user's roles, keyed by group identifier
        :raises InvalidTransition:  if the requested status is ``ARCHIVED``
        """
        target = requested.status or status.DEFAULT
        if target == status.ARCHIVED:
            raise InvalidTransition(None, target, "New entities may not be created as ARCHIVED")

        out = requested.copy()
        out.status = target
        if not out.meta_id:
            out.meta_id = self.mint_id()
        if not out.instance_id:
            out.instance_id = self.mint_id()
        if not out.groups:
            out.groups = self.default_groups(rolemap)
        out.editor_id = user.id
        out.provenance = self._prov

        return WritePlan(CREATE, out, None, target == status.PUBLISHED, target == status.SUBMITTED)

    def plan_derive(self, ancestor: MetadataEntity, requested: MetadataEntity, user: User) -> WritePlan:
        """
        plan the creation of a new version derived from a given stored version.  This is the
        request to create an entity while naming the ``instanceId`` of an existing version.
        :raises InvalidTransition:  if the ancestor is ``ARCHIVED`` or the requested status is
                                    ``ARCHIVED``
        """
        target = requested.status or status.DEFAULT
        self.check_writable(ancestor, target)

        out = self._fork(ancestor, requested, user, ancestor.instance_id)
        out.status = target
        return WritePlan(FORK, out, ancestor, target == status.PUBLISHED, target == status.SUBMITTED)

    def plan_update(self, current: MetadataEntity, requested: MetadataEntity, user: User) -> WritePlan:
        """
        plan the change of a stored version.  If the requested version carries no content (i.e. no
        ``uid``), only the status is changed; otherwise, its content replaces the stored content.
        :param MetadataEntity current:    the stored version
        :param MetadataEntity requested:  the version submitted by the user
        :param User user:      the user requesting the change
        :raises InvalidTransition:  if the change is not allowed by the lifecycle rules
        """
        cur = current.status or status.DEFAULT
        target = requested.status or status.DEFAULT
        self.check_writable(current, target)

        if cur == status.DRAFT and target == status.DRAFT:
            if user.is_admin or user.id == current.editor_id:
                return WritePlan(IN_PLACE, self._in_place(current, requested, target), current)
            # another user's draft is never overwritten
            lineage = current.instance_changed_id or current.instance_id
            out = self._fork(current, requested, user, lineage)
            out.status = status.DRAFT
            return WritePlan(FORK, out, current)

        if cur in (status.DRAFT, status.SUBMITTED, status.PUBLISHED) and target == status.DISCARDED:
            return WritePlan(IN_PLACE, self._in_place(current, requested, target), current)

        if cur == status.PUBLISHED:
            out = self._fork(current, requested, user, current.instance_id)
            out.status = status.DRAFT
            return WritePlan(FORK, out, current)

        if cur == status.DRAFT and target == status.SUBMITTED:
            return WritePlan(IN_PLACE, self._in_place(current, requested, target), current,
                             request_review=True)

        if cur == status.SUBMITTED and target == status.PUBLISHED:
            return WritePlan(IN_PLACE, self._in_place(current, requested, target), current,
                             archive_others=True)

        raise InvalidTransition(cur, target, recid=current.instance_id)

    def plan_supersede(self, published: MetadataEntity) -> MetadataEntity:
        """
        return a copy of the given published version that has been archived in place.  This is
        applied to the other published versions of an entity when a newer version is published.
        :raises InvalidTransition:  if the given version is not currently published
        """
        if published.status != status.PUBLISHED:
            raise InvalidTransition(published.status, status.ARCHIVED, recid=published.instance_id)
        out = published.copy()
        out.status = status.ARCHIVED
        out.provenance = self._prov
        return out

    def check_writable(self, current: MetadataEntity, target: str):
        """
        confirm that the given stored version may be written to the given target status at all,
        regardless of who is asking: ARCHIVED versions may not be changed, and no version may be
        directly written as ARCHIVED.
        :raises InvalidTransition:  if the write is not allowed
        """
        if current.status == status.ARCHIVED:
            raise InvalidTransition(current.status, target, "ARCHIVED versions may not be changed",
                                    current.instance_id)
        if target == status.ARCHIVED:
            raise InvalidTransition(current.status, target,
                                    "Versions are only archived when a newer version is published",
                                    current.instance_id)

    def check_deletable(self, current: MetadataEntity):
        """
        confirm that the given stored version may be removed from the store.  ARCHIVED and
        PUBLISHED versions are never removed; a published version is retired by publishing a
        newer version or by discarding it.
        :raises InvalidTransition:  if the version may not be deleted
        """
        if current.status in (status.ARCHIVED, status.PUBLISHED):
            raise InvalidTransition(current.status, None,
                                    "%s versions may not be deleted" % current.status,
                                    current.instance_id)

    def _content_source(self, current, requested):
        return requested if requested.has_content() else current

    def _in_place(self, current, requested, target):
        out = self._content_source(current, requested).copy()
        out.meta_id = current.meta_id
        out.instance_id = current.instance_id
        out.instance_changed_id = current.instance_changed_id
        out.editor_id = current.editor_id
        out.groups = current.groups
        out.status = target
        out.provenance = self._prov
        return out

    def _fork(self, ancestor, requested, user, lineage):
        out = self._content_source(ancestor, requested).copy()
        out.meta_id = ancestor.meta_id
        out.instance_id = self.mint_id()
        out.instance_changed_id = lineage
        out.groups = requested.groups or ancestor.groups
        out.editor_id = user.id
        out.provenance = self._prov
        return out
