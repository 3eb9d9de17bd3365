"""
catalog:  the entity lifecycle and permission engine for a shared, versioned catalog of metadata
records.

Catalog entities (data products, distributions, software descriptions, organizations, etc.) are
authored collaboratively by users organized into groups.  This package decides, for every
create, read, update, or delete request, whether the requesting user may carry it out, and what a
state-changing request must do to the stored versions of the entity.

The model
---------
Each *entity* is kept as a series of *versions*.  All versions of an entity share a ``metaId``;
each version has its own ``instanceId``.  A version records the version it was derived from
(``instanceChangedId``), the user that authored it (``editorId``), its lifecycle ``status`` (see
:py:mod:`~mdcat.catalog.status`), and the set of ``groups`` it belongs to.  The groups determine
who can see and change the version: a user's permissions on a version are given by the
highest-priority role (see :py:mod:`~mdcat.catalog.roles`) that user holds, via an accepted
membership, in any of the version's groups.

Components
----------
:py:class:`~mdcat.catalog.roles.GroupRoleResolver`
    reduces a user's accepted group memberships into a map of group to role
:py:class:`~mdcat.catalog.perms.PermissionEvaluator`
    decides whether a user may read or write a version given its status and groups
:py:class:`~mdcat.catalog.lifecycle.LifecycleTransitionEngine`
    decides how a requested status change is carried out: rewriting the version in place or
    forking a new version, and which follow-up effects (archiving, review requests) are due
:py:class:`~mdcat.catalog.service.CatalogService`
    the entry point that ties the above together with a backend store
    (:py:class:`~mdcat.catalog.base.CatalogClient`) and the best-effort collaborators that send
    review requests and re-point downstream associations.

Backend stores are created via a :py:class:`~mdcat.catalog.base.CatalogClientFactory`; this
package provides in-memory (for testing), file-based, and MongoDB implementations.
"""
from mdcat.base import MDCatException, SystemInfoMixin

try:
    from .version import __version__
except ImportError:
    __version__ = "(unset)"

_CATSYSNAME = "Metadata Catalog"
_CATSYSABBREV = "MDCAT"

class CatalogSystem(SystemInfoMixin):
    """
    A SystemInfoMixin representing the catalog system.
    """
    def __init__(self, subsysname="", subsysabbrev=""):
        super(CatalogSystem, self).__init__(_CATSYSNAME, _CATSYSABBREV,
                                            subsysname, subsysabbrev, __version__)

system = CatalogSystem()

class CatalogException(MDCatException):
    """
    A general base class for exceptions that occur while using the catalog engine
    """
    pass

from . import status, roles, kinds
from .base import *
from .inmem import InMemoryCatalogClientFactory
from .fsbased import FSBasedCatalogClientFactory
from .mongo import MongoCatalogClientFactory
from .perms import PermissionEvaluator
from .lifecycle import LifecycleTransitionEngine, WritePlan
from .service import CatalogService, CatalogServiceFactory, CatalogResult
