"""
The catalog service: the entry point for reading and changing the entities of one kind on behalf
of a user.

A :py:class:`CatalogService` ties together the components of the engine: for each operation it
resolves the user's group roles (once), checks the user's permissions with the
:py:class:`~mdcat.catalog.perms.PermissionEvaluator`, consults the
:py:class:`~mdcat.catalog.lifecycle.LifecycleTransitionEngine` to decide what a write must do to
the stored versions, carries out the write through the backend store, and finally dispatches the
best-effort side effects (review requests, re-pointing of downstream associations).

The service offers two flavors of its four operations.  The *raising* methods,
:py:meth:`~CatalogService.get_entities`, :py:meth:`~CatalogService.create_entity`,
:py:meth:`~CatalogService.update_entity`, and :py:meth:`~CatalogService.delete_entity`, return
entity versions and signal failures with exceptions (:py:class:`~mdcat.catalog.base.InvalidRequest`,
:py:class:`~mdcat.catalog.base.NotAuthorized`, etc.).  The *tagged* methods, :py:meth:`~CatalogService.get`,
:py:meth:`~CatalogService.create`, :py:meth:`~CatalogService.update`, and
:py:meth:`~CatalogService.delete`, never raise; they return a :py:class:`CatalogResult` whose
``status`` is one of ``OK``, ``UNAUTHORIZED``, or ``ERROR``.  These are intended for use by
web-service and other orchestration layers.
"""
import threading
from contextlib import nullcontext
from collections import namedtuple
from collections.abc import Mapping
from logging import Logger, getLogger
from typing import List, Union

from mdcat.base.config import ConfigurationException
from . import CatalogSystem, CatalogException, status, kinds
from .base import (User, MetadataEntity, CatalogClientFactory, DEF_PUBLIC_GROUP, ENTITY_PROPS,
                   is_valid_id, InvalidRequest, NotAuthorized, ObjectNotFound, CollaboratorFailure)
from .roles import GroupRoleResolver
from .perms import PermissionEvaluator, ADMIN_ONLY
from .lifecycle import LifecycleTransitionEngine, WritePlan, DEF_PROVENANCE, CREATE
from .review import NotificationGateway, create_notification_gateway, format_review_request
from .propagate import AssociationPropagator, create_association_propagator
from .dispatch import SideEffectDispatcher

# result statuses
OK = "OK"
UNAUTHORIZED = "UNAUTHORIZED"
ERROR = "ERROR"

# the wildcard for metaId and instanceId in read requests
ALL = "all"

CatalogResult = namedtuple("CatalogResult", "status payload message error")
CatalogResult.__doc__ = \
    """
    the outcome of a catalog operation: ``status`` is one of ``OK``, ``UNAUTHORIZED``, or ``ERROR``;
    ``payload`` holds the operation's output when it succeeded; ``message`` describes the failure
    when it did not; ``error`` holds the exception that caused the failure, if any.
    """
CatalogResult.__new__.__defaults__ = (None, None, None)

EntityData = Union[MetadataEntity, Mapping]

# publishes of the same entity are serialized within the process.  Entities share a fixed set of
# locks, so unrelated entities may occasionally wait on each other.
PUBLISH_LOCK_COUNT = 64
_publish_locks = tuple(threading.Lock() for i in range(PUBLISH_LOCK_COUNT))

def _publish_lock_for(kind: str, metaid: str):
    return _publish_locks[hash((kind, metaid)) % PUBLISH_LOCK_COUNT]


class CatalogService(CatalogSystem):
    """
    a service for reading, creating, updating, and deleting the entities of a particular kind.

    This service supports the following configuration parameters:

    ``public_group``
        (*str*) the name of the group that represents everyone (default: "ALL")
    ``empty_groups_policy``
        (*str*) how to treat versions that belong to no group: "admin" (only system administrators
        may access them; the default) or "open" (anyone may)
    ``provenance``
        (*str*) the marker to record as the provenance of every version written (default: "catalog")
    ``serialize_publish``
        (*bool*) if True (default), publishing versions of the same entity is serialized within
        the process so that the archiving of superseded versions does not race
    ``side_effects``
        (*dict*) the configuration for the :py:class:`~mdcat.catalog.dispatch.SideEffectDispatcher`
    ``review``
        (*dict*) the configuration for the gateway that sends review requests (see
        :py:func:`~mdcat.catalog.review.create_notification_gateway`); if not provided, review
        requests are not sent.
    ``associations``
        (*dict*) the configuration for the propagator that re-points downstream associations
        (see :py:func:`~mdcat.catalog.propagate.create_association_propagator`); if not provided,
        associations are not re-pointed.
    ``kinds``
        (*dict*) overrides of the per-kind policies (see :py:class:`~mdcat.catalog.kinds.KindPolicy`)
    ``dbio``
        (*dict*) the configuration passed to the backend store client
    """

    def __init__(self, kind: str, dbclient_factory: CatalogClientFactory, config: Mapping={},
                 log: Logger=None, review_gateway: NotificationGateway=None,
                 propagator: AssociationPropagator=None, dispatcher: SideEffectDispatcher=None):
        """
        create the service
        :param str                  kind:  the kind of entity this service manages
        :param CatalogClientFactory dbclient_factory:  the factory to use to create the client for
                                           the backend store
        :param dict               config:  the service configuration (see class documentation)
        :param Logger                log:  the logger to use for log messages
        :param NotificationGateway review_gateway:  the gateway to send review requests with; if
                                           not provided, one is created from the configuration
        :param AssociationPropagator propagator:  the propagator to re-point associations with; if
                                           not provided, one is created from the configuration
        :param SideEffectDispatcher dispatcher:  the dispatcher to run side effects with; if not
                                           provided, one is created from the configuration
        """
        super(CatalogService, self).__init__("Catalog Service", "catalog")

        self.cfg = config
        for param in "dbio side_effects review associations kinds".split():
            if not isinstance(self.cfg.get(param, {}), Mapping):
                raise ConfigurationException("%s: value is not a object as required: %s" %
                                             (param, type(self.cfg.get(param))))

        try:
            self.kind = kinds.normalize(kind)
        except ValueError as ex:
            raise ConfigurationException(str(ex), cause=ex)
        if not log:
            log = getLogger(self.system_abbrev).getChild(self.subsystem_abbrev).getChild(self.kind.lower())
        self.log = log

        self._dbfact = dbclient_factory
        dbcfg = dict(self.cfg.get("dbio", {}))
        if self.cfg.get("public_group"):
            dbcfg.setdefault("public_group", self.cfg["public_group"])
        self._dbcfg = dbcfg
        self.dbcli = dbclient_factory.create_client(self.kind, self._dbcfg)
        self._subclis = {}

        self.kinds = kinds.KindPolicy(self.cfg.get("kinds"))
        self.roles = GroupRoleResolver(self.dbcli.groups, self.log.getChild("roles"))
        self.perms = PermissionEvaluator(self.cfg.get("empty_groups_policy", ADMIN_ONLY))
        self.engine = LifecycleTransitionEngine(self._public_group_id,
                                                self.cfg.get("provenance", DEF_PROVENANCE))
        self._serialize = self.cfg.get("serialize_publish", True)

        if review_gateway is None:
            review_gateway = create_notification_gateway(self.cfg.get("review"))
        self.review = review_gateway
        if propagator is None:
            propagator = create_association_propagator(self.cfg.get("associations"),
                                                       self.log.getChild("associations"))
        self.propagator = propagator
        if dispatcher is None:
            dispatcher = SideEffectDispatcher(self.cfg.get("side_effects"), self.log.getChild("sideeffects"))
        self.dispatcher = dispatcher

    def _public_group_id(self):
        grp = self.dbcli.groups.public_group()
        if not grp:
            self.log.warning("Public group, %s, is not defined",
                             self.cfg.get("public_group", DEF_PUBLIC_GROUP))
            return None
        return grp.id

    def _roles_for(self, user: User):
        # system administrators bypass group roles
        if user.is_admin:
            return {}
        return self.roles.resolve_roles(user)

    def _as_entity(self, entity: EntityData) -> MetadataEntity:
        if entity is None:
            raise InvalidRequest("No entity provided")
        if isinstance(entity, MetadataEntity):
            entity = entity.to_dict()
        elif not isinstance(entity, Mapping):
            raise InvalidRequest("Entity is not an object: " + str(type(entity)))

        # only the properties of the entity model are accepted from the caller
        extra = [p for p in entity if p not in ENTITY_PROPS]
        if extra:
            self.log.debug("Ignoring unrecognized entity properties: %s", ", ".join(map(str, extra)))
        try:
            entity = MetadataEntity({p: v for p, v in entity.items() if p in ENTITY_PROPS})
        except ValueError as ex:
            raise InvalidRequest(str(ex), entity.get('instanceId'))

        if not entity.kind:
            entity = MetadataEntity(entity.to_dict(), self.kind)
        errs = entity.validate()
        if entity.kind != self.kind:
            errs.append("kind: %s does not match the service's kind, %s" % (entity.kind, self.kind))
        if errs:
            raise InvalidRequest(recid=entity.instance_id, errors=errs)
        return entity

    def get_entities(self, meta_id: str, instance_id: str=None, user: User=None) -> List[MetadataEntity]:
        """
        return the versions of entities matching the given identifiers that the user may read.
        Versions that do not exist or that the user may not read are left out of the results.
        :param str     meta_id:  the metaId of the entity of interest, or "all" for all entities
        :param str instance_id:  the instanceId of the version of interest; if None or "all",
                                 all versions of the entity are returned.
        :param User       user:  the user requesting the versions
        :raises InvalidRequest:  if ``meta_id`` is not provided
        :raises NotAuthorized:   if the service's kind may only be read by system administrators
                                 and the user is not one
        """
        if not meta_id:
            raise InvalidRequest("A metaId must be provided", errors=["missing metaId"])
        if not user:
            raise InvalidRequest("No user provided")
        if self.kinds.is_privacy_restricted(self.kind) and not user.is_admin:
            raise NotAuthorized(user.id, "read %s entities" % self.kind.lower())

        if instance_id and instance_id != ALL and not is_valid_id(instance_id):
            raise InvalidRequest("Not a legal instanceId: %s" % instance_id, errors=["illegal instanceId"])

        rolemap = self._roles_for(user)
        if instance_id and instance_id != ALL:
            cand = self.dbcli.retrieve(instance_id)
            cands = [cand] if cand and (meta_id == ALL or cand.meta_id == meta_id) else []
        elif meta_id == ALL:
            cands = self.dbcli.retrieve_all()
        else:
            cands = self.dbcli.select_versions(meta_id)

        return [e for e in cands if self.perms.can_read(e, user, rolemap)]

    def create_entity(self, entity: EntityData, user: User) -> MetadataEntity:
        """
        create a new entity or a new version of an existing one.  If the given entity includes the
        ``instanceId`` of a stored version, the new version is derived from (i.e. forked from) that
        version.
        :param entity:     the entity to create as a MetadataEntity or its dictionary form
        :param User user:  the user creating the entity
        :return:  the version as it was stored
        :raises InvalidRequest:    if the entity is malformed
        :raises NotAuthorized:     if the user may not write the entity
        :raises InvalidTransition: if the requested status cannot be written (or the version to
                                   derive from is ARCHIVED)
        """
        entity = self._as_entity(entity)
        rolemap = self._roles_for(user)

        ancestor = None
        if entity.instance_id:
            ancestor = self.dbcli.retrieve(entity.instance_id)

        if ancestor:
            if entity.meta_id and entity.meta_id != ancestor.meta_id:
                raise InvalidRequest("metaId does not match that of version %s" % ancestor.instance_id,
                                     entity.instance_id)
            if not self.perms.can_read(ancestor, user, rolemap):
                raise NotAuthorized(user.id, "derive a version from " + ancestor.instance_id)
            plan = self.engine.plan_derive(ancestor, entity, user)
        else:
            plan = self.engine.plan_create(entity, user, rolemap)

        if not self.perms.can_write(plan.entity, user, rolemap):
            raise NotAuthorized(user.id, "create a %s %s" % (plan.entity.status, self.kind.lower()))

        return self._commit(plan, user)

    def update_entity(self, entity: EntityData, user: User) -> MetadataEntity:
        """
        change a stored version of an entity.  The stored version is identified by the given
        entity's ``instanceId``; its requested status selects the change.  If the given entity
        has no ``uid``, only the status is changed; otherwise, the given content replaces the stored
        content.  Depending on the change requested, the change is either made to the stored
        version or saved as a new version (see :py:mod:`~mdcat.catalog.lifecycle`).
        :param entity:     the requested version as a MetadataEntity or its dictionary form
        :param User user:  the user requesting the change
        :return:  the version as it was stored
        :raises InvalidRequest:    if the entity is malformed or lacks an ``instanceId``
        :raises ObjectNotFound:    if the stored version does not exist
        :raises NotAuthorized:     if the user may not make the change
        :raises InvalidTransition: if the change is not allowed from the version's status
        """
        entity = self._as_entity(entity)
        if not entity.instance_id:
            raise InvalidRequest("An instanceId must be provided", errors=["missing instanceId"])
        if not entity.status:
            entity.status = status.DEFAULT

        current = self.dbcli.retrieve(entity.instance_id)
        if not current:
            raise ObjectNotFound(entity.instance_id)
        if entity.meta_id and entity.meta_id != current.meta_id:
            raise InvalidRequest("metaId does not match that of the stored version", current.instance_id)

        self.engine.check_writable(current, entity.status)

        # permission rests on the stored version's groups and editor and the requested status
        rolemap = self._roles_for(user)
        subject = current.copy()
        subject.status = entity.status
        if not self.perms.can_write(subject, user, rolemap):
            raise NotAuthorized(user.id, "change %s to %s" % (current.instance_id, entity.status))

        plan = self.engine.plan_update(current, entity, user)
        if plan.is_fork and set(plan.entity.groups) != set(current.groups) and \
           not self.perms.can_write(plan.entity, user, rolemap):
            raise NotAuthorized(user.id, "assign groups %s" % ", ".join(plan.entity.groups))

        return self._commit(plan, user)

    def delete_entity(self, instance_id: str, user: User) -> MetadataEntity:
        """
        remove a version of an entity from the store.
        :param str instance_id:  the instanceId of the version to remove
        :param User       user:  the user requesting the removal
        :return:  the version that was removed
        :raises InvalidRequest:    if ``instance_id`` is not provided
        :raises ObjectNotFound:    if the version does not exist
        :raises InvalidTransition: if the version is ARCHIVED or PUBLISHED
        :raises NotAuthorized:     if the user may not change the version
        """
        if not instance_id:
            raise InvalidRequest("An instanceId must be provided", errors=["missing instanceId"])
        if not is_valid_id(instance_id):
            raise InvalidRequest("Not a legal instanceId: %s" % instance_id, errors=["illegal instanceId"])

        current = self.dbcli.retrieve(instance_id)
        if not current:
            raise ObjectNotFound(instance_id)
        self.engine.check_deletable(current)

        rolemap = self._roles_for(user)
        if not self.perms.can_write(current, user, rolemap):
            raise NotAuthorized(user.id, "delete " + instance_id)

        try:
            self.dbcli.delete(instance_id)
        except CollaboratorFailure as ex:
            self.log.error("Failed to delete %s version %s: %s", self.kind.lower(), instance_id, str(ex))
            raise

        self.log.info("Deleted %s version %s (%s) for %s", self.kind.lower(), instance_id,
                      current.status, user.id)
        return current

    def _commit(self, plan: WritePlan, user: User) -> MetadataEntity:
        entity = plan.entity
        lock = nullcontext()
        if plan.archive_others and self._serialize:
            lock = _publish_lock_for(self.kind, entity.meta_id)

        with lock:
            try:
                self.dbcli.upsert(entity)
                for gid in entity.groups:
                    self.dbcli.groups.add_entity_to_group(entity.meta_id, gid)
            except CollaboratorFailure as ex:
                self.log.error("Failed to save %s version %s: %s", self.kind.lower(),
                               entity.instance_id, str(ex))
                raise

            if plan.archive_others:
                self._archive_others(entity)

        if plan.action == CREATE:
            self.log.info("Created %s version %s (%s) for %s", self.kind.lower(), entity.instance_id,
                          entity.status, user.id)
        elif plan.is_fork:
            self.log.info("Created %s version %s (%s) from %s for %s", self.kind.lower(),
                          entity.instance_id, entity.status, plan.ancestor.instance_id, user.id)
        else:
            self.log.info("Updated %s version %s (%s) for %s", self.kind.lower(), entity.instance_id,
                          entity.status, user.id)

        if plan.request_review and self.review:
            self.dispatcher.dispatch("review request for "+entity.instance_id,
                                     self._request_review, entity, user)
        if plan.is_fork and self.propagator and self.kinds.has_nested_references(self.kind):
            self.dispatcher.dispatch("re-pointing associations for "+entity.instance_id,
                                     self._relink, plan.ancestor, entity)

        return entity

    def _archive_others(self, published: MetadataEntity):
        # the other versions are archived one by one; a failure leaves the rest published
        for version in self.dbcli.select_versions(published.meta_id, status.PUBLISHED):
            if version.instance_id == published.instance_id:
                continue
            try:
                self.dbcli.upsert(self.engine.plan_supersede(version))
            except CollaboratorFailure as ex:
                self.log.error("Failed to archive %s version %s: %s", self.kind.lower(),
                               version.instance_id, str(ex))
                raise
            self.log.info("Archived %s version %s (superseded by %s)", self.kind.lower(),
                          version.instance_id, published.instance_id)

    def _request_review(self, entity: MetadataEntity, user: User):
        names = []
        for gid in entity.groups:
            grp = self.dbcli.groups.get_group(gid)
            names.append(grp.name if grp and grp.name else gid)

        subject, body = format_review_request(entity, user, names, self.review.subject_prefix)
        self.review.notify(self.review.audience, subject, body)
        self.log.info("Requested review of %s version %s", self.kind.lower(), entity.instance_id)

    def _subrecord_client(self, kind: str):
        if kind not in self._subclis:
            self._subclis[kind] = self._dbfact.create_client(kind, self._dbcfg)
        return self._subclis[kind]

    def _relink(self, ancestor: MetadataEntity, fork: MetadataEntity):
        prop = self.kinds.nested_reference_property(self.kind)
        subcli = self._subrecord_client(self.kinds.nested_reference_kind(self.kind))
        n = self.propagator.relink(ancestor, fork, prop, subcli.retrieve)
        self.log.debug("Re-pointed associations of %d %s sub-records of %s", n, prop,
                       fork.instance_id)

    def get(self, meta_id: str, instance_id: str=None, user: User=None) -> CatalogResult:
        """
        return the versions matching the given identifiers that the user may read as a
        :py:class:`CatalogResult` whose payload is a list of entity dictionaries.  See
        :py:meth:`get_entities`.
        """
        return self._tagged(lambda: [e.to_dict() for e in self.get_entities(meta_id, instance_id, user)])

    def create(self, entity: EntityData, user: User) -> CatalogResult:
        """
        create an entity (see :py:meth:`create_entity`), returning a :py:class:`CatalogResult`
        whose payload is the stored version's dictionary.
        """
        return self._tagged(lambda: self.create_entity(entity, user).to_dict())

    def update(self, entity: EntityData, user: User) -> CatalogResult:
        """
        change an entity (see :py:meth:`update_entity`), returning a :py:class:`CatalogResult`
        whose payload is the stored version's dictionary.
        """
        return self._tagged(lambda: self.update_entity(entity, user).to_dict())

    def delete(self, instance_id: str, user: User) -> CatalogResult:
        """
        remove a version (see :py:meth:`delete_entity`), returning a :py:class:`CatalogResult`
        whose payload is the removed version's dictionary.
        """
        return self._tagged(lambda: self.delete_entity(instance_id, user).to_dict())

    def _tagged(self, op) -> CatalogResult:
        try:
            return CatalogResult(OK, op())
        except NotAuthorized as ex:
            return CatalogResult(UNAUTHORIZED, None, str(ex), ex)
        except InvalidRequest as ex:
            return CatalogResult(ERROR, None, ex.format_errors(), ex)
        except CatalogException as ex:
            return CatalogResult(ERROR, None, str(ex), ex)
        except Exception as ex:
            self.log.exception("Unexpected error while processing %s request: %s",
                               self.kind.lower(), str(ex))
            return CatalogResult(ERROR, None, "Internal error: "+str(ex), ex)

    def close(self):
        """
        release the resources held by this service, waiting for any outstanding side effects
        to finish.
        """
        self.dispatcher.shutdown()


class CatalogServiceFactory:
    """
    a factory object that creates CatalogService instances attached to the backend store.

    The factory shares one review gateway, one association propagator, and one side-effect
    dispatcher among all the services it creates.  The configuration provided to this factory will
    be passed directly to the service instances it creates; see the :py:class:`CatalogService`
    documentation for the configuration parameters supported.
    """
    def __init__(self, dbclient_factory: CatalogClientFactory, config: Mapping={}, log: Logger=None):
        """
        create a service factory associated with a particular backend store.
        :param CatalogClientFactory dbclient_factory:  the factory instance to use to create a
                                 client to talk to the backend store.
        :param Mapping  config:  the configuration for the services
        :param Logger      log:  the Logger to use in the services; if not provided, each service
                                 will use a logger named after the kind it manages.
        """
        self._dbclifact = dbclient_factory
        self._cfg = config
        self._log = log

        deflog = getLogger(CatalogSystem().system_abbrev).getChild("catalog")
        self.review = create_notification_gateway(self._cfg.get("review"))
        self.propagator = create_association_propagator(self._cfg.get("associations"),
                                                        deflog.getChild("associations"))
        self.dispatcher = SideEffectDispatcher(self._cfg.get("side_effects"),
                                               deflog.getChild("sideeffects"))

    def create_service_for(self, kind: str) -> CatalogService:
        """
        create a service that manages entities of a particular kind
        :param str kind:  the kind of entity the service should manage
        """
        return CatalogService(kind, self._dbclifact, self._cfg, self._log, self.review,
                              self.propagator, self.dispatcher)

    def close(self):
        """
        release the resources shared by the services created by this factory
        """
        self.dispatcher.shutdown()
