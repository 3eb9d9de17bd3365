"""
the kinds of entities kept in the catalog and the policies that vary by kind.

Every :py:class:`~mdcat.catalog.base.MetadataEntity` carries a ``kind``.  Rather than testing
for a particular kind where a special rule applies, components ask the :py:class:`KindPolicy`
for the capability in question (e.g. whether reads are restricted to administrators).
"""
from collections.abc import Mapping

DATAPRODUCT          = "DATAPRODUCT"
DISTRIBUTION         = "DISTRIBUTION"
WEBSERVICE           = "WEBSERVICE"
OPERATION            = "OPERATION"
SOFTWARESOURCECODE   = "SOFTWARESOURCECODE"
SOFTWAREAPPLICATION  = "SOFTWAREAPPLICATION"
ORGANIZATION         = "ORGANIZATION"
PERSON               = "PERSON"
CONTACTPOINT         = "CONTACTPOINT"
EQUIPMENT            = "EQUIPMENT"
FACILITY             = "FACILITY"
CATEGORY             = "CATEGORY"
CATEGORYSCHEME       = "CATEGORYSCHEME"
MAPPING              = "MAPPING"

KINDS = (DATAPRODUCT, DISTRIBUTION, WEBSERVICE, OPERATION, SOFTWARESOURCECODE, SOFTWAREAPPLICATION,
         ORGANIZATION, PERSON, CONTACTPOINT, EQUIPMENT, FACILITY, CATEGORY, CATEGORYSCHEME, MAPPING)

# kinds that hold personal or contact data; only system administrators may read them
PRIVACY_RESTRICTED = frozenset([PERSON, ORGANIZATION, CONTACTPOINT])

# kinds that embed references to sub-records, mapped to the data property holding the references
NESTED_REFERENCES = {
    DATAPRODUCT: "distribution"
}

def normalize(kind: str) -> str:
    """
    return the canonical form of the given kind name (matching is case-insensitive)
    :raises ValueError:  if the given value is not a recognized kind
    """
    if not kind:
        raise ValueError("Entity kind not specified")
    out = str(kind).strip().upper()
    if out not in KINDS:
        raise ValueError("Unrecognized entity kind: " + str(kind))
    return out

class KindPolicy:
    """
    the per-kind policy hooks consulted by the catalog service.  The defaults can be overridden
    via a configuration with the following (optional) parameters:

    ``privacy_restricted``
        (*[str]*) the kinds that only system administrators may read
    ``nested_references``
        (*dict*) a mapping of kind to the name of the data property listing the sub-records
        that versions of that kind refer to; the property is named after the kind of
        the sub-records (e.g. "distribution")
    """

    def __init__(self, config: Mapping=None):
        if not config:
            config = {}
        self._restricted = frozenset(normalize(k)
                                     for k in config.get("privacy_restricted", PRIVACY_RESTRICTED))
        self._nested = dict((normalize(k), v)
                            for k, v in config.get("nested_references", NESTED_REFERENCES).items())

    def is_privacy_restricted(self, kind: str) -> bool:
        """
        return True if entities of the given kind may only be read by system administrators
        """
        return kind in self._restricted

    def nested_reference_property(self, kind: str) -> str:
        """
        return the name of the data property that lists the sub-records referenced by entities of
        the given kind, or None if the kind does not embed such references
        """
        return self._nested.get(kind)

    def has_nested_references(self, kind: str) -> bool:
        return kind in self._nested

    def nested_reference_kind(self, kind: str) -> str:
        """
        return the kind of the sub-records referenced by entities of the given kind, or None if
        the kind does not embed such references.  The referencing property is named after the
        kind of sub-record it lists.
        """
        prop = self._nested.get(kind)
        if not prop:
            return None
        return normalize(prop)
