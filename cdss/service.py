"""End-to-end rule execution for a patient.

``CdssService`` wires the fetcher, the engine invoker and the usage recorder
together around one ``EndpointConfig``::

    async with CdssService(config, engine, code_service_factory=make_code_service) as cdss:
        results = await cdss.execute_rule_with_patient("p1", "ImmunizationRule")
        print(results["p1"]["Recommendations"])
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping, Optional

import httpx

from .config import EndpointConfig
from .fhir.bundle import patient_ids
from .fhir.client import ResourceFetcher
from .fhir.mappings import REFERENCE_MAPPINGS, ReferenceMappings
from .rules.engine import RECOMMENDATIONS_FIELD, CodeService, CqlEngine, EngineInvoker
from .rules.planner import expected_libraries, expected_parameters, rule_identity
from .usage import UsageRecorder

logger = logging.getLogger("cdss")

VACCINE_FIELD = "VaccineName"

# (config, use_default_vsac_address) -> code service
CodeServiceFactory = Callable[[EndpointConfig, bool], Optional[CodeService]]


class CdssService:
    """Fetch inputs, run a rule, extract recommendations and record usage."""

    def __init__(
        self,
        config: EndpointConfig,
        engine: CqlEngine,
        code_service_factory: Optional[CodeServiceFactory] = None,
        client: Optional[httpx.AsyncClient] = None,
        mappings: ReferenceMappings = REFERENCE_MAPPINGS,
    ):
        self.config = config
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=config.timeout)
        self.fetcher = ResourceFetcher(config, self.client, mappings=mappings)
        self.invoker = EngineInvoker(engine, api_key=config.vsac_api_key)
        self.usage = UsageRecorder(config.record_usage, self.client)
        self.code_service_factory = code_service_factory

    async def __aenter__(self) -> "CdssService":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    def code_service(self, use_default_vsac_address: bool = False) -> Optional[CodeService]:
        if self.code_service_factory is None:
            return None
        return self.code_service_factory(self.config, use_default_vsac_address)

    async def fetch_inputs(self, patient_id: str, rule: Dict[str, Any]) -> tuple:
        """Fetch every library and parameter ``rule`` declares, in declaration order."""
        libraries: Dict[str, Any] = {}
        for library in expected_libraries(rule) or []:
            logger.debug(f"Fetching library {library.name} from {library.path}")
            libraries[library.name] = await self.fetcher.fetch_rule(library.path)

        parameters: Dict[str, Any] = {}
        for parameter in expected_parameters(rule) or []:
            parameters[parameter.name] = await self.fetcher.fetch(patient_id, parameter.type)
        return libraries, parameters

    async def execute_rule_with_patient(
        self, patient_id: str, rule_id: str, should_record_usage: bool = True
    ) -> Optional[Dict[str, Any]]:
        """Run rule ``rule_id`` for patient ``patient_id`` with inputs fetched from the endpoints."""
        patient = await self.fetcher.fetch_patient(patient_id)
        rule = await self.fetcher.fetch_rule(rule_id)
        libraries, parameters = await self.fetch_inputs(patient_id, rule)

        results = await self.invoker.execute(
            patient, rule, libraries, parameters, code_service=self.code_service(False)
        )
        if should_record_usage:
            await self._record_routine(rule, patient, results)
        return results

    async def execute_rule_with_patient_libs_params(
        self,
        patient: Dict[str, Any],
        rule: Dict[str, Any],
        libraries: Optional[Mapping[str, Any]] = None,
        parameters: Optional[Mapping[str, Any]] = None,
        should_record_usage: bool = True,
        use_default_vsac_address: bool = True,
    ) -> Optional[Dict[str, Any]]:
        """Run ``rule`` with caller-supplied patient, libraries and parameters."""
        results = await self.invoker.execute(
            patient, rule, libraries, parameters, code_service=self.code_service(use_default_vsac_address)
        )
        if should_record_usage:
            await self._record_routine(rule, patient, results)
        return results

    async def record_acted_usage(self, rule_id: str, patient_id: str, vaccine: Optional[str], recommendation: Any) -> None:
        await self.usage.record_acted_usage(rule_id, patient_id, vaccine, recommendation)

    async def record_declined_usage(self, rule_id: str, patient_id: str, vaccine: Optional[str], recommendation: Any) -> None:
        await self.usage.record_declined_usage(rule_id, patient_id, vaccine, recommendation)

    async def _record_routine(self, rule: Dict[str, Any], patient: Dict[str, Any], results: Optional[Dict[str, Any]]) -> None:
        rule_id, _ = rule_identity(rule)
        ids = patient_ids(patient)
        patient_id = ids[0] if ids else None
        patient_result = (results or {}).get(patient_id)
        if not isinstance(patient_result, dict):
            logger.warning(f"No results for patient {patient_id}, skipping usage recording for {rule_id}")
            return
        await self.usage.record_routine_usage(
            rule_id,
            patient_id,
            patient_result.get(VACCINE_FIELD),
            patient_result.get(RECOMMENDATIONS_FIELD),
        )
