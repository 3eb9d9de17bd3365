"""
the lifecycle states a catalog entity version can be in.

A newly authored version starts out as a ``DRAFT``.  It can be submitted for review
(``SUBMITTED``) and then published (``PUBLISHED``).  Publishing a version archives (``ARCHIVED``)
any other published version of the same entity.  Drafts, submissions and published versions can
also be abandoned (``DISCARDED``).  No transition leads out of ``ARCHIVED``.
"""

# Available entity states:
#
DRAFT      = "DRAFT"       # version is being edited
SUBMITTED  = "SUBMITTED"   # version has been submitted and awaits review
PUBLISHED  = "PUBLISHED"   # version is the current public release of the entity
ARCHIVED   = "ARCHIVED"    # version was superseded by a newer published version
DISCARDED  = "DISCARDED"   # version was abandoned

STATES = (DRAFT, SUBMITTED, PUBLISHED, ARCHIVED, DISCARDED)

DEFAULT = DRAFT

def normalize(state: str) -> str:
    """
    return the canonical form of the given state name (matching is case-insensitive).  None is
    returned unchanged.
    :raises ValueError:  if the given value is not a recognized state
    """
    if state is None:
        return None
    out = str(state).strip().upper()
    if out not in STATES:
        raise ValueError("Unrecognized entity status: " + str(state))
    return out

def is_terminal(state: str) -> bool:
    """
    return True if no transition may lead out of the given state
    """
    return state == ARCHIVED
