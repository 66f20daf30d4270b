"""Run a compiled rule through the CQL engine for one patient bundle.

The engine and the terminology (value set) service are external. They are
reached through the two small protocols below, so any engine binding that
can load ELM JSON, wrap FHIR resources and execute against a patient source
can be plugged in.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, runtime_checkable

from ..errors import (
    MissingLibraries,
    MissingLibrary,
    MissingParameter,
    MissingParameters,
    MissingPatient,
    MissingRule,
)
from ..fhir.bundle import create_bundle, iter_resources, patient_ids
from ..models import ParameterSpec, RulePlan
from .planner import plan, rule_identity
from .recommendations import extract

logger = logging.getLogger("cdss")

RECOMMENDATIONS_FIELD = "Recommendations"


@runtime_checkable
class CodeService(Protocol):
    """Terminology service that makes a library's value sets available."""

    async def ensure_value_sets_in_library_with_api_key(
        self, library: Any, check_codes: bool, api_key: Optional[str]
    ) -> Any: ...


class Executor(Protocol):
    def with_parameters(self, parameters: Dict[str, Any]) -> "Executor": ...

    async def exec(self, patient_source: Any) -> Mapping[str, Any]: ...


@runtime_checkable
class CqlEngine(Protocol):
    """Binding to a CQL execution engine."""

    def library(self, rule: Dict[str, Any], repository: Optional[Dict[str, Any]] = None) -> Any: ...

    def executor(self, library: Any, code_service: Optional[CodeService]) -> Executor: ...

    def patient_source(self, bundles: Sequence[Dict[str, Any]]) -> Any: ...

    def wrap(self, resource: Any) -> Any: ...


class EngineInvoker:
    """Checks a rule's inputs, prepares them for the engine and runs it.

    Args:
        engine: CQL engine binding.
        code_service: Default terminology service.
        api_key: Default API key handed to the terminology service.
    """

    def __init__(self, engine: CqlEngine, code_service: Optional[CodeService] = None, api_key: Optional[str] = None):
        self.engine = engine
        self.code_service = code_service
        self.api_key = api_key

    async def execute(
        self,
        patient: Optional[Dict[str, Any]],
        rule: Optional[Dict[str, Any]],
        libraries: Optional[Mapping[str, Any]] = None,
        parameters: Optional[Mapping[str, Any]] = None,
        code_service: Optional[CodeService] = None,
        api_key: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """Execute ``rule`` against ``patient``.

        Returns the engine's results keyed by patient id, plus a ``library``
        entry with the rule's name and version. Every patient result gets a
        ``Recommendations`` list. Returns ``None`` when value sets could not be
        gathered.

        Raises:
            MissingPatient, MissingRule: ``patient`` or ``rule`` is None.
            MissingLibraries, MissingLibrary: A declared library was not supplied.
            MissingParameters, MissingParameter: A declared parameter was not supplied.
        """
        if patient is None:
            raise MissingPatient()
        if rule is None:
            raise MissingRule()

        rule_plan = plan(rule)
        repository = self.check_libraries(rule_plan, libraries)
        self.check_parameters(rule_plan, parameters)

        code_service = code_service or self.code_service
        api_key = api_key if api_key is not None else self.api_key
        rule_id, rule_version = rule_identity(rule)

        ids = patient_ids(patient)
        patient_bundle = create_bundle(patient)
        patient_source = self.engine.patient_source([patient_bundle])

        library = self.engine.library(rule, repository)

        if code_service is not None:
            try:
                ensured = await code_service.ensure_value_sets_in_library_with_api_key(library, True, api_key)
            except Exception as e:
                logger.error(f"Ran into error when gathering valuesets for library {rule_id}-{rule_version}: {e}")
                return None
            if ensured is False:
                logger.warning(f"Value sets for library {rule_id}-{rule_version} were reported incomplete")

        executor = self.engine.executor(library, code_service)
        executor = executor.with_parameters(self.build_parameters(rule_plan, parameters))

        logger.info(f"Executing {rule_id}-{rule_version} for patients {ids}")
        raw = await executor.exec(patient_source)

        results: Dict[str, Any] = dict(raw.get("patientResults") or {})
        results["library"] = {"name": rule_id, "version": rule_version}

        for patient_id in ids:
            patient_result = results.get(patient_id)
            if not isinstance(patient_result, dict):
                logger.warning(f"No results for patient {patient_id} from {rule_id}-{rule_version}")
                continue
            patient_result[RECOMMENDATIONS_FIELD] = extract(patient_result)
        return results

    @staticmethod
    def check_libraries(rule_plan: RulePlan, libraries: Optional[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
        """Repository of the declared libraries, or None when none are declared."""
        if not rule_plan.requires_libraries:
            return None
        if libraries is None:
            raise MissingLibraries()

        repository: Dict[str, Any] = {}
        for expected in rule_plan.libraries:
            library = libraries.get(expected.name)
            if library is None:
                raise MissingLibrary(expected.name)
            repository[expected.name] = library
        return repository

    @staticmethod
    def check_parameters(rule_plan: RulePlan, parameters: Optional[Mapping[str, Any]]) -> None:
        if not rule_plan.requires_parameters:
            return
        if parameters is None:
            raise MissingParameters()
        for expected in rule_plan.parameters:
            if parameters.get(expected.name) is None:
                raise MissingParameter(expected.name)

    def build_parameters(self, rule_plan: RulePlan, parameters: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        """Wrap every declared parameter value for the engine."""
        if not rule_plan.requires_parameters:
            return {}
        return {
            expected.name: self._wrap_parameter(expected, parameters[expected.name])
            for expected in rule_plan.parameters
        }

    def _wrap_parameter(self, expected: ParameterSpec, value: Any) -> Any:
        if not expected.is_list:
            return self.engine.wrap(value)

        wrapped: List[Any] = []
        if isinstance(value, dict) and (value.get("entry") is not None or value.get("resourceType") == "Bundle"):
            wrapped = [self.engine.wrap(resource) for resource in iter_resources(value)]
        elif isinstance(value, (list, tuple)):
            wrapped = [self.engine.wrap(resource) for resource in value]
        else:
            logger.warning(f"Parameter {expected.name} expects a list but got {type(value).__name__}")
        return wrapped
