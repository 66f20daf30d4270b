"""Reference resolution for fetched FHIR bundles.

A reference field (``medicationReference``) is replaced by data taken from
the resource it points to (``medicationCodeableConcept``), following the
rules in :mod:`cdss.fhir.mappings`. Opaque ids are fetched through the
resource fetcher, which may resolve further references on the way down.
Absolute URLs are fetched directly and a failure there only leaves the
field unresolved.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, FrozenSet, Optional, Tuple

import httpx

from ..errors import ReferenceCycleError
from ..models import ReferenceRule
from .bundle import iter_resources
from .mappings import ReferenceMappings
from .types import ContainerType, ResourceType, TypeKey, is_url

if TYPE_CHECKING:
    from .client import ResourceFetcher

logger = logging.getLogger("cdss")


def reference_id(reference: str) -> str:
    """``Medication/123`` -> ``123``; a bare id is returned unchanged."""
    return reference.rsplit("/", 1)[-1]


class ReferenceResolver:
    """Replaces configured reference fields with resolved data, in place."""

    def __init__(
        self,
        fetcher: "ResourceFetcher",
        mappings: ReferenceMappings,
        client: httpx.AsyncClient,
    ):
        self.fetcher = fetcher
        self.mappings = mappings
        self.client = client

    async def resolve_references(
        self,
        bundle: Dict[str, Any],
        container_type: ContainerType,
        visited: Optional[FrozenSet[Tuple[str, TypeKey]]] = None,
    ) -> Dict[str, Any]:
        """Resolve every configured reference of every entry; returns ``bundle``.

        Entries are processed in order, and reference keys in mapping order.
        A container type without mappings leaves the bundle untouched.
        """
        if not isinstance(container_type, ContainerType):
            raise ValueError(f"Reference resolution expects a list type, got {container_type}")

        rules = self.mappings.get(container_type)
        if not rules or not isinstance(bundle, dict):
            return bundle

        visited = visited or frozenset()
        for resource in iter_resources(bundle):
            await self.resolve_resource(resource, rules, visited)
        return bundle

    async def resolve_single(
        self,
        resource: Dict[str, Any],
        resource_type: ResourceType,
        visited: Optional[FrozenSet[Tuple[str, TypeKey]]] = None,
    ) -> Dict[str, Any]:
        """Resolve the references of one fetched resource of ``resource_type``."""
        rules = self.mappings.get(resource_type)
        if not rules:
            return resource
        visited = visited or frozenset()
        if resource.get("id") is not None:
            visited = visited | {(str(resource["id"]), resource_type)}
        return await self.resolve_resource(resource, rules, visited)

    async def resolve_resource(
        self,
        resource: Dict[str, Any],
        rules: Dict[str, ReferenceRule],
        visited: FrozenSet[Tuple[str, TypeKey]] = frozenset(),
    ) -> Dict[str, Any]:
        for key, rule in rules.items():
            if resource.get(key) is None:
                logger.debug(f"No {key} on {resource.get('resourceType')}/{resource.get('id')}, skipping")
                continue
            if resource.get(rule.target_field) is not None:
                continue

            address = _address(resource[key])
            if not address:
                logger.warning(f"{key} on {resource.get('resourceType')}/{resource.get('id')} has no reference")
                continue

            if is_url(address):
                resolved = await self._resolve_url(address, key, resource, rule)
            else:
                resolved = await self._resolve_id(address, key, resource, rule, visited)

            if resolved and rule.delete_source:
                logger.debug(f"Deleting {key} from {resource.get('resourceType')}/{resource.get('id')}")
                del resource[key]
        return resource

    async def _resolve_id(
        self,
        address: str,
        key: str,
        resource: Dict[str, Any],
        rule: ReferenceRule,
        visited: FrozenSet[Tuple[str, TypeKey]],
    ) -> bool:
        identifier = reference_id(address)
        marker = (identifier, rule.target_type)
        if marker in visited:
            raise ReferenceCycleError(identifier, rule.target_type)

        logger.info(f"{key} references {address}, retrieving {rule.target_type.resource_name}/{identifier}")
        target = await self.fetcher.fetch(identifier, rule.target_type, visited | {marker})
        value = _project(target, rule.value_field)
        if value is None:
            logger.warning(f"{rule.target_type.resource_name}/{identifier} has no {rule.value_field}, leaving {key} unresolved")
            return False
        resource[rule.target_field] = value
        return True

    async def _resolve_url(self, url: str, key: str, resource: Dict[str, Any], rule: ReferenceRule) -> bool:
        logger.warning(f"{key} is an absolute URL ({url}), fetching it with an unauthenticated GET")
        try:
            response = await self.client.get(url)
            response.raise_for_status()
            target = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Was not able to fetch {url}, leaving {key} unresolved: {e}")
            return False

        resource[rule.target_field] = target
        return True


def _address(reference: Any) -> Optional[str]:
    if isinstance(reference, dict):
        reference = reference.get("reference")
    if isinstance(reference, str):
        return reference
    return None


def _project(target: Any, field: str) -> Any:
    if isinstance(target, dict):
        return target.get(field)
    return getattr(target, field, None)
