"""
an interface and implementations for re-pointing downstream associations when an entity that
embeds references to sub-records is forked.

Some kinds of entity (see :py:class:`~mdcat.catalog.kinds.KindPolicy`) carry, in their content, a
list of references to sub-records; for example, a data product lists its distributions.  External
services may hold associations keyed by the ``instanceId`` of a sub-record (e.g. the converter
service's plugin relations for a distribution).  When a new version of the container is forked,
each of its sub-records is matched, by ``metaId``, to the corresponding sub-record of the ancestor,
and the associations held for the old sub-record are re-created for the new one.

Re-pointing is best-effort: the failure to re-point one item is logged and the remaining items are
still attempted.
"""
import json
from abc import ABC, abstractmethod
from logging import Logger, getLogger
from collections.abc import Mapping, Callable
from typing import List, Tuple

import requests

from mdcat.base.config import ConfigurationException
from .base import CollaboratorFailure, MetadataEntity

__all__ = [ "AssociationPropagator", "ConverterServicePropagator", "SimulatedPropagator",
            "create_association_propagator", "referenced_ids", "match_references" ]

def referenced_ids(entity: MetadataEntity, prop: str) -> List[str]:
    """
    return the instanceIds of the sub-records referenced by an entity via the given content
    property.  A reference may be given either as an identifier string or as an object with an
    ``instanceId`` property.
    """
    refs = entity.data.get(prop) or []
    if isinstance(refs, (str, Mapping)):
        refs = [refs]
    out = []
    for ref in refs:
        if isinstance(ref, Mapping):
            ref = ref.get("instanceId")
        if ref and isinstance(ref, str):
            out.append(ref)
    return out

def match_references(ancestor: MetadataEntity, fork: MetadataEntity, prop: str,
                     resolve: Callable) -> List[Tuple[MetadataEntity, MetadataEntity]]:
    """
    pair up the sub-records referenced by a fork with those referenced by its ancestor.  Sub-records
    are paired when they share a ``metaId``; a pair that refers to the very same version is
    left out as there is nothing to re-point.
    :param MetadataEntity ancestor:  the version the fork was derived from
    :param MetadataEntity     fork:  the new version
    :param str                prop:  the content property holding the references
    :param Callable        resolve:  a function that takes an instanceId and returns the
                                     referenced sub-record (or None if it cannot be found)
    :return:  a list of (old sub-record, new sub-record) pairs
    """
    old = [s for s in (resolve(i) for i in referenced_ids(ancestor, prop)) if s]
    new = [s for s in (resolve(i) for i in referenced_ids(fork, prop)) if s]

    out = []
    for nsub in new:
        for osub in old:
            if nsub.meta_id and nsub.meta_id == osub.meta_id and \
               nsub.instance_id != osub.instance_id:
                out.append((osub, nsub))
    return out


class AssociationPropagator(ABC):
    """
    an interface for re-creating the associations held for one sub-record version for another
    """

    def __init__(self, config: Mapping, log: Logger=None):
        self.cfg = config
        if not log:
            log = getLogger("MDCAT").getChild("associations")
        self.log = log

    def relink(self, ancestor: MetadataEntity, fork: MetadataEntity, prop: str,
               resolve: Callable) -> int:
        """
        re-point the associations of the sub-records of an ancestor to the matching sub-records of
        a fork of it.  Failures are logged; they are not raised.
        :param MetadataEntity ancestor:  the version the fork was derived from
        :param MetadataEntity     fork:  the new version
        :param str                prop:  the content property holding the sub-record references
        :param Callable        resolve:  a function that takes an instanceId and returns the
                                         referenced sub-record (or None if it cannot be found)
        :return:  the number of sub-records whose associations were re-pointed without error
        """
        try:
            pairs = match_references(ancestor, fork, prop, resolve)
        except Exception as ex:
            self.log.error("Failed to match %s sub-records of %s: %s", prop, fork.instance_id, str(ex))
            return 0

        done = 0
        for osub, nsub in pairs:
            try:
                self.repoint(osub.instance_id, nsub.instance_id)
                done += 1
            except Exception as ex:
                self.log.error("Failed to associate plugins for %s %s: %s",
                               (nsub.kind or "sub-record").lower(), nsub.instance_id, str(ex))
        return done

    @abstractmethod
    def repoint(self, old_instid: str, new_instid: str) -> int:
        """
        re-create the associations held for one sub-record version for another
        :param str old_instid:  the instanceId of the sub-record the associations are held for
        :param str new_instid:  the instanceId of the sub-record to associate
        :return:  the number of associations re-created
        :raises CollaboratorFailure:  if the associations of the old version could not be retrieved
        """
        raise NotImplementedError()


class ConverterServicePropagator(AssociationPropagator):
    """
    an AssociationPropagator that re-points the plugin relations held by the converter service.

    This implementation supports the following configuration parameters:

    ``service_endpoint``
        (*str*) *required*. the base URL of the converter service API
    ``timeout``
        (*int*) the number of seconds to wait for the service to respond (default: 30)
    """
    system_name = "converter"

    def __init__(self, config: Mapping, log: Logger=None):
        super(ConverterServicePropagator, self).__init__(config, log)
        self.endpoint = self.cfg.get("service_endpoint")
        if not self.endpoint:
            raise ConfigurationException("associations: Missing required config param: service_endpoint")
        self.endpoint = self.endpoint.rstrip('/')
        self.timeout = self.cfg.get("timeout", 30)

    def get_relations(self, instid: str) -> List[Mapping]:
        """
        return the plugin relations held for the sub-record version with the given instanceId
        """
        url = f"{self.endpoint}/distributions/{instid}"
        try:
            resp = requests.get(url, headers={ "Accept": "application/json" }, timeout=self.timeout)
        except Exception as ex:
            raise CollaboratorFailure(f"Failed to GET plugin relations for {instid}: {ex}", cause=ex)

        if resp.status_code == 404:
            return []
        if resp.status_code >= 300:
            raise CollaboratorFailure(
                f"Converter service error: {resp.status_code} {resp.reason}\n{resp.text}"
            )
        try:
            data = resp.json()
        except ValueError as ex:
            raise CollaboratorFailure(f"Converter service returned unparseable data for {instid}: {ex}",
                                      cause=ex)
        return [r.get("relation") for r in (data or {}).get("relations", []) if r.get("relation")]

    def repoint(self, old_instid: str, new_instid: str) -> int:
        done = 0
        url = f"{self.endpoint}/plugin-relations"
        headers = { "Content-Type": "application/json", "Accept": "application/json" }
        for rel in self.get_relations(old_instid):
            newrel = {
                "id":             rel.get("id"),
                "input_format":   rel.get("input_format"),
                "output_format":  rel.get("output_format"),
                "plugin_id":      rel.get("plugin_id"),
                "relation_id":    new_instid
            }
            try:
                resp = requests.post(url, headers=headers, data=json.dumps(newrel), timeout=self.timeout)
                if resp.status_code >= 300:
                    raise CollaboratorFailure(f"{resp.status_code} {resp.reason}")
                done += 1
            except Exception as ex:
                self.log.error("Failed to re-point plugin relation %s to %s: %s",
                               rel.get("id"), new_instid, str(ex))
        return done


class SimulatedPropagator(AssociationPropagator):
    """
    an AssociationPropagator that keeps associations in memory.  Associations are kept in the
    ``relations`` dictionary, keyed by the instanceId of the sub-record they are held for.  This
    is intended for testing and demonstration.
    """
    system_name = "sim"

    def __init__(self, config: Mapping=None, log: Logger=None):
        if config is None:
            config = {}
        super(SimulatedPropagator, self).__init__(config, log)
        self.relations = {}

    def repoint(self, old_instid: str, new_instid: str) -> int:
        rels = [dict(r, relation_id=new_instid) for r in self.relations.get(old_instid, [])]
        self.relations.setdefault(new_instid, []).extend(rels)
        return len(rels)


_propagator_classes = {
    ConverterServicePropagator.system_name:  ConverterServicePropagator,
    SimulatedPropagator.system_name:         SimulatedPropagator
}

def create_association_propagator(config: Mapping, log: Logger=None) -> AssociationPropagator:
    """
    a factory function that creates the propagator for re-pointing downstream associations.  If
    ``config`` is not given or is empty, None is returned; this disables re-pointing.

    If non-empty, the given configuration must include the ``name`` parameter, which identifies
    which class will be instantiated ("converter" or "sim").

    :raises ConfigurationException: if the given, non-empty configuration lacks a ``name`` or its
                                    value is unrecognized.
    """
    if not config:
        return None

    if not config.get('name'):
        raise ConfigurationException("associations: missing required name parameter")

    cls = _propagator_classes.get(config['name'])
    if not cls:
        raise ConfigurationException("associations: name not supported: "+config['name'])

    return cls(config, log)
