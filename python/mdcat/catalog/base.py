"""
The abstract interface for interacting with the catalog's backend store, along with the model of
the records kept in it.

This interface is based on the following model:

  *  Entity versions of each kind (data products, distributions, etc.) are kept in their own
     collection, keyed by the version's ``instanceId``.
  *  Groups, group memberships, and the registrations of entities with groups are kept in three
     further collections shared by all kinds; these make up the *membership index*
     (:py:class:`GroupIndex`).
  *  A record can be expressed as a Python dictionary which can be exported into JSON

Backend implementations need only provide a handful of low-level primitives (see
:py:class:`CatalogClient`); the record-store contract used by the catalog service is built on top
of them.
"""
import uuid
from abc import ABC, abstractmethod
from copy import deepcopy
from collections.abc import Mapping, MutableMapping
from typing import List, Iterator, Tuple

from . import CatalogException, status, roles, kinds

GROUPS_COLL = "groups"
MEMBERSHIPS_COLL = "memberships"
GROUP_ENTITIES_COLL = "group_entities"

# the name of the group that represents everyone
DEF_PUBLIC_GROUP = "ALL"

# the top-level properties of an entity version
ENTITY_PROPS = ("kind", "metaId", "instanceId", "uid", "status", "editorId", "groups",
                "instanceChangedId", "provenance", "data")

__all__ = [ "User", "MetadataEntity", "Group", "GroupMembership", "CatalogClient", "GroupIndex",
            "CatalogClientFactory", "DEF_PUBLIC_GROUP", "DBIOException", "InvalidRequest",
            "NotAuthorized", "ObjectNotFound", "InvalidTransition", "CollaboratorFailure",
            "AlreadyExists", "ENTITY_PROPS", "is_valid_id" ]

def is_valid_id(id) -> bool:
    """
    return True if the given value can serve as a record identifier.  Identifiers become record keys
    (and file names, in the file-based store), so they may not contain path separators, NUL
    characters, or "..".
    """
    return isinstance(id, str) and bool(id) and ".." not in id and \
           not any(c in id for c in "/\\\0")


class User(object):
    """
    a description of the (already authenticated) user requesting a catalog operation
    """

    def __init__(self, userid: str, is_admin: bool=False, first_name: str=None, last_name: str=None,
                 email: str=None):
        """
        describe the user
        :param str   userid:  the user's unique identifier
        :param bool is_admin:  True if the user is a system administrator, who may bypass group-based
                               permission checks
        """
        if not userid:
            raise ValueError("User(): userid must be provided")
        self._id = userid
        self._admin = bool(is_admin)
        self.first_name = first_name
        self.last_name = last_name
        self.email = email

    @property
    def id(self) -> str:
        """
        the user's unique identifier
        """
        return self._id

    @property
    def is_admin(self) -> bool:
        """
        True if this user is a system administrator
        """
        return self._admin

    @property
    def name(self) -> str:
        """
        the user's full name for display purposes (or the identifier if no name is known)
        """
        out = " ".join(n for n in [self.first_name, self.last_name] if n)
        return out or self._id

    def __str__(self):
        return "<User: {}{}>".format(self._id, " (admin)" if self._admin else "")


class MetadataEntity(object):
    """
    a single version of a catalog entity.

    The version is represented by a dictionary with the following properties:

    ``kind``
        the kind of entity (see :py:mod:`~mdcat.catalog.kinds`)
    ``metaId``
        the identifier shared by all versions of the entity
    ``instanceId``
        the identifier of this version
    ``uid``
        the content identifier of the entity; a version given without one carries no content
    ``status``
        the lifecycle state of this version (see :py:mod:`~mdcat.catalog.status`)
    ``editorId``
        the identifier of the user that authored this version
    ``groups``
        the identifiers of the groups this version belongs to
    ``instanceChangedId``
        the ``instanceId`` of the version this one was derived from
    ``provenance``
        a marker identifying the subsystem that last wrote this version
    ``data``
        the user-edited content of the entity

    A version is a local copy; changes are not stored until it is passed to a
    :py:class:`CatalogClient` via :py:meth:`~CatalogClient.upsert`.
    """

    def __init__(self, recdata: Mapping=None, kind: str=None):
        """
        initialize the entity from its dictionary representation
        :param dict recdata:  the entity properties
        :param str     kind:  the kind of entity; if given, it overrides the value in ``recdata``
        """
        self._data = deepcopy(dict(recdata)) if recdata else {}
        self._data.pop('id', None)
        if kind:
            self._data['kind'] = kind
        if self._data.get('kind'):
            self._data['kind'] = kinds.normalize(self._data['kind'])
        if self._data.get('status'):
            self._data['status'] = status.normalize(self._data['status'])
        if self._data.get('groups') is None:
            self._data['groups'] = []
        if 'data' not in self._data:
            self._data['data'] = {}

    @property
    def kind(self) -> str:
        return self._data.get('kind')

    @property
    def meta_id(self) -> str:
        """
        the identifier shared by all versions of this entity
        """
        return self._data.get('metaId')

    @meta_id.setter
    def meta_id(self, val):
        self._data['metaId'] = val

    @property
    def instance_id(self) -> str:
        """
        the identifier unique to this version
        """
        return self._data.get('instanceId')

    @instance_id.setter
    def instance_id(self, val):
        self._data['instanceId'] = val

    @property
    def uid(self) -> str:
        return self._data.get('uid')

    @uid.setter
    def uid(self, val):
        self._data['uid'] = val

    @property
    def status(self) -> str:
        return self._data.get('status')

    @status.setter
    def status(self, val):
        self._data['status'] = status.normalize(val)

    @property
    def editor_id(self) -> str:
        """
        the identifier of the user that authored (and owns) this version
        """
        return self._data.get('editorId')

    @editor_id.setter
    def editor_id(self, val):
        self._data['editorId'] = val

    @property
    def groups(self) -> List[str]:
        """
        the identifiers of the groups this version belongs to
        """
        return list(self._data.get('groups', []))

    @groups.setter
    def groups(self, val):
        self._data['groups'] = list(val) if val else []

    @property
    def instance_changed_id(self) -> str:
        """
        the instanceId of the version that this version was derived from, or None
        """
        return self._data.get('instanceChangedId')

    @instance_changed_id.setter
    def instance_changed_id(self, val):
        self._data['instanceChangedId'] = val

    @property
    def provenance(self) -> str:
        return self._data.get('provenance')

    @provenance.setter
    def provenance(self, val):
        self._data['provenance'] = val

    @property
    def data(self) -> MutableMapping:
        """
        the user-edited content of the entity
        """
        return self._data['data']

    @data.setter
    def data(self, val: Mapping):
        self._data['data'] = deepcopy(dict(val)) if val else {}

    @property
    def title(self) -> str:
        """
        the title given in the entity's content, or None if it has none
        """
        return self.data.get('title')

    def has_content(self) -> bool:
        """
        return True if this version carries user content (i.e. a ``uid``)
        """
        return bool(self.uid)

    def validate(self) -> List[str]:
        """
        return a list of errors found in the identifying properties of this entity.  An empty list
        is returned if none are found.
        """
        errs = []
        if not self.kind:
            errs.append("missing kind")
        for prop in ("metaId", "instanceId", "instanceChangedId"):
            if self._data.get(prop) and not is_valid_id(self._data[prop]):
                errs.append("%s: not a legal identifier" % prop)
        if not isinstance(self._data.get('groups', []), (list, tuple)):
            errs.append("groups: not a list")
        elif not all(isinstance(g, str) for g in self._data.get('groups', [])):
            errs.append("groups: contains non-string identifiers")
        elif not all(is_valid_id(g) for g in self._data.get('groups', [])):
            errs.append("groups: contains illegal identifiers")
        if not isinstance(self._data.get('data', {}), Mapping):
            errs.append("data: not an object")
        return errs

    def copy(self):
        """
        return an independent copy of this entity version
        """
        return MetadataEntity(self._data)

    def to_dict(self) -> MutableMapping:
        """
        return a copy of this version in its dictionary form
        """
        return deepcopy(self._data)

    def __eq__(self, other):
        return isinstance(other, MetadataEntity) and self._data == other._data

    def __str__(self):
        return "<{} {} v{} ({})>".format(self.kind, self.meta_id, self.instance_id, self.status)


class Group(object):
    """
    a group of users that entities can be assigned to
    """

    def __init__(self, recdata: Mapping):
        if not recdata.get('id'):
            raise ValueError("Group data is missing its 'id' property")
        self._data = deepcopy(dict(recdata))

    @property
    def id(self) -> str:
        return self._data['id']

    @property
    def name(self) -> str:
        return self._data.get('name')

    @property
    def description(self) -> str:
        return self._data.get('description')

    def to_dict(self) -> MutableMapping:
        return deepcopy(self._data)

    def __str__(self):
        return "<Group: {} ({})>".format(self.id, self.name)


class GroupMembership(object):
    """
    a user's membership in a group: the role the user holds there and the state of the user's
    request to join.  Only accepted memberships confer a role.
    """

    def __init__(self, recdata: Mapping):
        self._data = deepcopy(dict(recdata))

    @property
    def user_id(self) -> str:
        return self._data.get('userId')

    @property
    def group_id(self) -> str:
        return self._data.get('groupId')

    @property
    def role(self) -> str:
        return self._data.get('role')

    @property
    def request_status(self) -> str:
        return self._data.get('requestStatus')

    @property
    def accepted(self) -> bool:
        """
        True if this membership has been accepted and, thus, confers its role
        """
        return self.request_status == roles.ACCEPTED

    def to_dict(self) -> MutableMapping:
        return deepcopy(self._data)

    def __str__(self):
        return "<Membership: {} in {} as {} ({})>".format(self.user_id, self.group_id, self.role,
                                                          self.request_status)


class GroupIndex(object):
    """
    the membership index: an interface for creating groups, managing users' memberships in them,
    and registering entities with them.  A group has a unique identifier and a name; the name of
    each group must also be unique.  One group, the *public group* (named "ALL" by default),
    stands for everyone.
    """

    def __init__(self, dbclient, public_group: str=DEF_PUBLIC_GROUP):
        """
        initialize the interface with the groups collection
        :param CatalogClient dbclient:  the database client to use to interact with the database backend
        :param str       public_group:  the name of the group that represents everyone
        """
        self._cli = dbclient
        self._pubname = public_group

    def create_group(self, name: str, description: str=None, gid: str=None) -> Group:
        """
        create a new group.
        :param str name:         the name of the group to create
        :param str description:  a description of the group's purpose
        :param str gid:          the identifier to assign to the group; if not given, one is minted
        :raises AlreadyExists:  if a group with the given name or identifier already exists
        """
        if not name:
            raise ValueError("create_group(): name must be provided")
        if self.get_group_by_name(name):
            raise AlreadyExists("A group with name={} already exists".format(name))
        if not gid:
            gid = str(uuid.uuid4())
        elif self.get_group(gid):
            raise AlreadyExists("A group with id={} already exists".format(gid))

        out = Group({ "id": gid, "name": name, "description": description })
        self._cli._upsert(GROUPS_COLL, out.to_dict())
        return out

    def get_group(self, gid: str) -> Group:
        """
        return the group with the given identifier or None if it does not exist
        """
        m = self._cli._get_from_coll(GROUPS_COLL, gid)
        if not m:
            return None
        return Group(m)

    def get_group_by_name(self, name: str) -> Group:
        """
        return the group with the given name or None if it does not exist
        """
        for m in self._cli._select_from_coll(GROUPS_COLL, name=name):
            return Group(m)
        return None

    def public_group(self) -> Group:
        """
        return the group that stands for everyone, or None if it has not been created
        """
        return self.get_group_by_name(self._pubname)

    def select_groups(self) -> Iterator[Group]:
        """
        iterate through all of the defined groups
        """
        for m in self._cli._select_from_coll(GROUPS_COLL):
            yield Group(m)

    def add_membership(self, userid: str, gid: str, role: str,
                       request_status: str=roles.ACCEPTED) -> GroupMembership:
        """
        register a user as a member of a group, replacing any existing membership for that user
        in that group.
        :param str userid:  the identifier of the user joining the group
        :param str    gid:  the identifier of the group
        :param str   role:  the role the user should hold in the group
        :param str request_status:  the state of the user's request to join
        :raises ObjectNotFound:  if the group does not exist
        """
        if role not in roles.ROLES:
            raise InvalidRequest("Unrecognized group role: " + str(role))
        if request_status not in roles.REQUEST_STATES:
            raise InvalidRequest("Unrecognized membership request status: " + str(request_status))
        if not self.get_group(gid):
            raise ObjectNotFound(gid, message="Group with id=%s does not exist" % gid)

        out = GroupMembership({ "userId": userid, "groupId": gid, "role": role,
                                "requestStatus": request_status })
        rec = out.to_dict()
        rec['id'] = self._membership_id(gid, userid)
        self._cli._upsert(MEMBERSHIPS_COLL, rec)
        return out

    def _membership_id(self, gid, userid):
        return "{}:{}".format(gid, userid)

    def remove_membership(self, userid: str, gid: str) -> bool:
        """
        remove a user from a group
        :return:  True if the user was a member and was removed; False, otherwise
        """
        return bool(self._cli._delete_from(MEMBERSHIPS_COLL, self._membership_id(gid, userid)))

    def select_memberships(self, userid: str) -> List[GroupMembership]:
        """
        return all of the memberships (in any request state) for the given user
        """
        return [GroupMembership(m) for m in self._cli._select_from_coll(MEMBERSHIPS_COLL, userId=userid)]

    def list_accepted_memberships(self, userid: str) -> List[Tuple[str, str]]:
        """
        return the (group identifier, role) pairs for each of the user's accepted memberships
        """
        return [(m['groupId'], m['role'])
                for m in self._cli._select_from_coll(MEMBERSHIPS_COLL, userId=userid,
                                                     requestStatus=roles.ACCEPTED)]

    def add_entity_to_group(self, metaid: str, gid: str) -> bool:
        """
        register an entity with a group.  Registering an entity already registered with the group
        has no effect.
        :return:  True if the registration is new; False if it already existed
        """
        regid = self._membership_id(gid, metaid)
        if self._cli._get_from_coll(GROUP_ENTITIES_COLL, regid):
            return False
        self._cli._upsert(GROUP_ENTITIES_COLL, { "id": regid, "groupId": gid, "metaId": metaid })
        return True

    def select_entities_in_group(self, gid: str) -> List[str]:
        """
        return the metaIds of the entities registered with the given group
        """
        return [m['metaId'] for m in self._cli._select_from_coll(GROUP_ENTITIES_COLL, groupId=gid)]

    def select_groups_for_entity(self, metaid: str) -> List[str]:
        """
        return the identifiers of the groups the given entity is registered with
        """
        return [m['groupId'] for m in self._cli._select_from_coll(GROUP_ENTITIES_COLL, metaId=metaid)]


class CatalogClient(ABC):
    """
    a client connected to the database for entities of a particular kind

    As this class is abstract, implementations provide support for specific storage backends.
    All implementations support the following common configuration parameters:

    ``public_group``
         (str) _optional_.  the name of the group that stands for everyone (default: "ALL")
    """

    def __init__(self, config: Mapping, kind: str, nativeclient=None, notifier=None):
        """
        initialize the base client.
        :param dict  config:  the configuration data for the client
        :param str     kind:  the kind of entity this client handles
        :param nativeclient:  where applicable, the native client object to use to connect the back
                              end database.  The type and use of this client is implementation-specific
        :param ChangeNotifier notifier:  the notifier to alert listeners to changes with; if None,
                              no change signals are sent.
        """
        self._cfg = config
        self._native = nativeclient
        self._kind = kinds.normalize(kind)
        self._coll = self._kind.lower()
        self._groups = GroupIndex(self, self._cfg.get("public_group", DEF_PUBLIC_GROUP))
        self.notifier = notifier

    @property
    def kind(self) -> str:
        """
        the kind of entity this client handles
        """
        return self._kind

    @property
    def collection(self) -> str:
        """
        the name of the collection holding this client's entities
        """
        return self._coll

    @property
    def native(self):
        """
        an object that represents access to the native database.  Its type depends on the backend.
        """
        return self._native

    @property
    def groups(self) -> GroupIndex:
        """
        access to the membership index
        """
        return self._groups

    def retrieve(self, instid: str) -> MetadataEntity:
        """
        return the entity version with the given instanceId, or None if it does not exist
        """
        rec = self._get_from_coll(self._coll, instid)
        if not rec:
            return None
        return MetadataEntity(rec)

    def retrieve_all(self) -> List[MetadataEntity]:
        """
        return all stored versions of all entities of this client's kind
        """
        return [MetadataEntity(r) for r in self._select_from_coll(self._coll)]

    def retrieve_all_with_status(self, state: str) -> List[MetadataEntity]:
        """
        return all stored versions with the given status
        """
        return [MetadataEntity(r) for r in self._select_from_coll(self._coll, status=state)]

    def select_versions(self, metaid: str, state: str=None) -> List[MetadataEntity]:
        """
        return all stored versions of the entity with the given metaId
        :param str metaid:  the entity's metaId
        :param str  state:  if given, return only those versions with this status
        """
        cnsts = { "metaId": metaid }
        if state:
            cnsts['status'] = state
        return [MetadataEntity(r) for r in self._select_from_coll(self._coll, **cnsts)]

    def upsert(self, entity: MetadataEntity) -> str:
        """
        save the given entity version, replacing any existing version with the same instanceId.
        :return:  the instanceId of the saved version
        :raises DBIOException:  if the version lacks its identifiers or could not be saved
        """
        if not entity.instance_id or not entity.meta_id:
            raise DBIOException("upsert(): entity is missing its metaId or instanceId")
        if entity.kind != self._kind:
            raise DBIOException("upsert(): entity kind, %s, does not match the client's kind, %s" %
                                (entity.kind, self._kind))
        rec = entity.to_dict()
        rec['id'] = entity.instance_id
        added = self._upsert(self._coll, rec)
        self._announce("create" if added else "update", entity)
        return entity.instance_id

    def delete(self, instid: str) -> bool:
        """
        remove the entity version with the given instanceId from the store
        :return:  True if the version existed and was removed; False, otherwise
        """
        entity = self.retrieve(instid)
        if not entity:
            return False
        out = bool(self._delete_from(self._coll, instid))
        if out:
            self._announce("delete", entity)
        return out

    def _announce(self, action: str, entity: MetadataEntity):
        # scope the change signal to the entity and its groups
        if self.notifier:
            self.notifier.notify("entity-{},{},{},{}".format(action, self._kind, entity.meta_id,
                                                             "|".join(entity.groups)))

    @abstractmethod
    def _upsert(self, coll: str, recdata: Mapping) -> bool:
        """
        insert or update a data record into the specified collection.
        :param str coll:  the name of the record collection to insert the record into.
        :param Mapping recdata:  the record to update or insert.  This dictionary must include a an
                          "id" property.  If a record with the same value of "id" exists in the
                          collection, that record will be replaced by this one; otherwise, this
                          record will just be added.
        :return:  True if the record, based on its `id` property, was added for the first time.
        """
        raise NotImplementedError()

    @abstractmethod
    def _get_from_coll(self, collname, id) -> MutableMapping:
        """
        return a record with a given identifier from the specified collection
        :param str collname:   the logical name of the database collection (e.g. table, etc.) to pull
                               the record from.
        :param str id:         the identifier for the record of interest
        """
        raise NotImplementedError()

    @abstractmethod
    def _select_from_coll(self, collname, **constraints) -> Iterator[MutableMapping]:
        """
        return an iterator to the records from a specified collection that match the set of
        given constraints.

        :param str collname:   the logical name of the database collection (e.g. table, etc.) to pull
                               the record from.
        :param dict constraints:  the constraints on properties in the record.  The returned records
                               must all have properties matching the keys in the given constraint
                               dictionary with corresponding matching values
        """
        raise NotImplementedError()

    @abstractmethod
    def _delete_from(self, collname, id) -> bool:
        """
        delete a record with the given id from the named collection.  Nothing should happen if the record
        does not exist in the database collection.

        :param str collname:   the logical name of the database collection (e.g. table, etc.) to pull
                               the record from.
        :param str id:  the identifier for the record to be deleted.
        :return:  True if the record existed and was deleted
        """
        raise NotImplementedError()


class CatalogClientFactory(ABC):
    """
    an abstract class for creating client connections to the database
    """

    def __init__(self, config: Mapping, notifier=None):
        """
        initialize the factory with its configuration.  The configuration provided here serves as
        the default parameters for the client as these can be overridden by the configuration
        parameters provided via :py:meth:`create_client`.

        :param dict config:  the CatalogClient configuration
        :param ChangeNotifier notifier:  the notifier clients should send change signals to.  If not
                             provided, one is created if the configuration includes a
                             ``client_notifier`` object.
        """
        self._cfg = config
        if notifier is None and self._cfg.get("client_notifier"):
            from .notifier import create_notifier
            notifier = create_notifier(self._cfg["client_notifier"])
        self.notifier = notifier

    @property
    def cfg(self) -> Mapping:
        return self._cfg

    @abstractmethod
    def create_client(self, kind: str, config: Mapping={}):
        """
        create a client connected to the database and the entities of the given kind

        .. code-block::
           :caption: Example

           # connect to the data product collection
           client = InMemoryCatalogClientFactory(configdata).create_client(kinds.DATAPRODUCT)

        :param str      kind:  the kind of entity the client should handle
        :param Mapping config:  the configuration to pass into the client.  This will be merged into and
                                override the configuration provided to the factory at construction time.
        """
        raise NotImplementedError()


class InvalidRequest(CatalogException):
    """
    an exception indicating that a request is missing required information or is otherwise
    malformed.  The ``errors`` property lists the individual problems found.
    """
    def __init__(self, message: str=None, recid: str=None, errors: List[str]=None, sys=None):
        """
        initialize the exception
        :param str message:  a brief description of the problem with the request
        :param str   recid:  the id of the entity the request concerns
        :param [str] errors: a listing of the individual errors uncovered in the request
        """
        if errors:
            if not message:
                if len(errors) == 1:
                    message = "Invalid request: " + errors[0]
                else:
                    message = "Encountered %d errors in request, including: %s" % (len(errors), errors[0])
        elif message:
            errors = [message]
        else:
            message = "Invalid request"
            errors = []

        super(InvalidRequest, self).__init__(message, sys=sys)
        self.record_id = recid
        self.errors = errors

    def format_errors(self):
        """
        format into a string the listing of the errors encountered that resulted in this exception.
        """
        if not self.errors:
            return str(self)
        out = ""
        if self.record_id:
            out += "%s: " % self.record_id
        out += "Errors encountered in request:\n  * "
        out += "\n  * ".join([str(e) for e in self.errors])
        return out


class NotAuthorized(CatalogException):
    """
    an exception indicating that the user attempted an operation that they are not authorized to
    """

    def __init__(self, who: str = None, op: str = None, message: str = None, sys=None):
        """
        create the exception
        :param str who:     the identifier of the user who requested the operation
        :param str op:      a brief phrase or term identifying the unauthorized operation. (A verb
                            or verb phrase is recommended.)
        :param str message: the message describing why the exception was raised; if not given,
                            a default message is constructed from `who` and `op`.
        """
        self.user_id = who
        self.operation = op
        if not message:
            if not op:
                op = "effect an unspecified action"
            message = "User "
            if who:
                message += who + " "
            message += "is not authorized to {}".format(op)

        super(NotAuthorized, self).__init__(message, sys=sys)


class ObjectNotFound(CatalogException):
    """
    an exception indicating that the requested entity version (or group) does not exist.
    """

    def __init__(self, recid, message=None, sys=None):
        if not message:
            message = "Requested entity version with instanceId=%s does not exist" % recid
        super(ObjectNotFound, self).__init__(message, sys=sys)
        self.record_id = recid


class InvalidTransition(CatalogException):
    """
    an exception indicating that the requested change of status is not allowed from the entity's
    current status.  The offending pair is available via the ``current`` and ``requested``
    attributes.
    """

    def __init__(self, current: str, requested: str, message: str=None, recid: str=None, sys=None):
        self.current = current
        self.requested = requested
        self.record_id = recid
        if not message:
            message = "Transition from %s to %s is not allowed" % (current, requested)
            if recid:
                message = "%s: %s" % (recid, message)
        super(InvalidTransition, self).__init__(message, sys=sys)


class CollaboratorFailure(CatalogException):
    """
    an exception indicating that an external collaborator (the store, the notification gateway,
    or an association service) failed to carry out a request
    """
    pass


class DBIOException(CollaboratorFailure):
    """
    an exception indicating a failure while interacting with the backend store
    """
    pass


class AlreadyExists(CatalogException):
    """
    an exception indicating a disallowed attempt to create a record that already exists
    """
    pass
