"""FHIR client: fetches resources through the configured endpoint table."""
from __future__ import annotations

import logging
from typing import Any, Dict, FrozenSet, Optional, Tuple, Union

import httpx

from ..config import DirectEndpoint, EndpointConfig, TemplatedEndpoint
from ..errors import UnexpectedResourceType, UnroutableResourceType, UpstreamHTTPError
from .mappings import REFERENCE_MAPPINGS, ReferenceMappings
from .references import ReferenceResolver
from .types import ContainerType, ResourceType, TypeKey, list_of, parse_type

logger = logging.getLogger("cdss")

# Routing key -> EndpointConfig attribute
ROUTES: Dict[TypeKey, str] = {
    list_of(ResourceType.IMMUNIZATION): "immunization_by_patient_id",
    list_of(ResourceType.OBSERVATION): "observation_by_patient_id",
    list_of(ResourceType.MEDICATION_REQUEST): "medication_request_by_patient_id",
    list_of(ResourceType.MEDICATION_STATEMENT): "medication_statement_by_patient_id",
    list_of(ResourceType.CONDITION): "condition_by_patient_id",
    ResourceType.MEDICATION: "medication_by_id",
    ResourceType.PATIENT: "patient_by_id",
}

Visited = FrozenSet[Tuple[str, TypeKey]]


class ResourceFetcher:
    """Fetches single resources and patient bundles, resolving references in lists.

    Args:
        config: Endpoint table.
        client: HTTP client used for templated endpoints.
        mappings: Reference mappings applied to list results.
        reference_client: HTTP client for absolute-URL references
            (defaults to ``client``).
    """

    def __init__(
        self,
        config: EndpointConfig,
        client: httpx.AsyncClient,
        mappings: ReferenceMappings = REFERENCE_MAPPINGS,
        reference_client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config
        self.client = client
        self.resolver = ReferenceResolver(self, mappings, reference_client or client)

    async def fetch(
        self,
        identifier: str,
        resource_type: Union[str, TypeKey],
        visited: Optional[Visited] = None,
    ) -> Any:
        """Fetch ``resource_type`` for ``identifier``.

        ``identifier`` is a patient id for list types and a resource id
        otherwise. List results are returned with their references resolved.

        Raises:
            UnroutableResourceType: No endpoint is configured for the type.
            UpstreamHTTPError: A templated endpoint answered with a non-200 status.
        """
        key = parse_type(resource_type)
        attribute = ROUTES.get(key) if key is not None else None
        endpoint = self.config.endpoint(attribute) if attribute else None
        if endpoint is None:
            raise UnroutableResourceType(resource_type)

        logger.debug(f"Fetching {key} for {identifier}")
        result = await self._call_endpoint(endpoint, identifier, key)

        if result is None:
            return result
        if isinstance(key, ContainerType):
            result = await self.resolver.resolve_references(result, key, visited)
        elif isinstance(result, dict) and key in self.resolver.mappings:
            result = await self.resolver.resolve_single(result, key, visited)
        return result

    async def fetch_patient(self, patient_id: str) -> Dict[str, Any]:
        """Fetch a Patient resource and check that it really is one."""
        patient = await self.fetch(patient_id, ResourceType.PATIENT)
        actual = patient.get("resourceType") if isinstance(patient, dict) else type(patient).__name__
        if actual != "Patient":
            raise UnexpectedResourceType("Patient", actual)
        return patient

    async def fetch_rule(self, rule_id: str) -> Dict[str, Any]:
        """Fetch a compiled rule (ELM JSON) by id; libraries are fetched by include path."""
        endpoint = self.config.rule_by_id
        if endpoint is None:
            raise UnroutableResourceType("Rule")
        return await self._call_endpoint(endpoint, rule_id, "Rule")

    async def _call_endpoint(self, endpoint: Any, identifier: str, label: Any) -> Any:
        if isinstance(endpoint, DirectEndpoint):
            return await endpoint.call(identifier)
        if isinstance(endpoint, TemplatedEndpoint):
            url = endpoint.render(identifier)
            response = await self.client.request(endpoint.method, url)
            if response.status_code != 200:
                logger.warning(f"{label} request to {url} failed with HTTP {response.status_code}")
                raise UpstreamHTTPError(label, response.status_code)
            return response.json()
        raise UnroutableResourceType(label)
