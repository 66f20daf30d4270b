"""Pytest configuration for CDSS tests."""

import copy
import json

import httpx
import pytest

from cdss.config import EndpointConfig, TemplatedEndpoint

FHIR_BASE = "http://fhir.test/fhir"

IMMUNIZATION_LIST = "ListTypeSpecifier<{http://hl7.org/fhir}Immunization>"
MEDICATION_REQUEST_LIST = "ListTypeSpecifier<{http://hl7.org/fhir}MedicationRequest>"


# =============================================================================
# Test doubles for the external engine and terminology service
# =============================================================================

class FakeExecutor:
    def __init__(self, engine):
        self.engine = engine

    def with_parameters(self, parameters):
        self.engine.parameters = parameters
        return self

    async def exec(self, patient_source):
        self.engine.exec_calls += 1
        self.engine.patient_sources.append(patient_source)
        return {"patientResults": copy.deepcopy(self.engine.patient_results)}


class FakeEngine:
    """Records what it was given and returns canned patient results."""

    def __init__(self, patient_results=None):
        self.patient_results = patient_results or {}
        self.parameters = None
        self.repository = "unset"
        self.exec_calls = 0
        self.patient_sources = []

    def library(self, rule, repository=None):
        self.repository = repository
        return {"rule": rule, "repository": repository}

    def executor(self, library, code_service):
        return FakeExecutor(self)

    def patient_source(self, bundles):
        return list(bundles)

    def wrap(self, resource):
        return ("wrapped", resource)


class FakeCodeService:
    def __init__(self, error=None, result=True):
        self.error = error
        self.result = result
        self.calls = []

    async def ensure_value_sets_in_library_with_api_key(self, library, check_codes, api_key):
        self.calls.append((library, check_codes, api_key))
        if self.error:
            raise self.error
        return self.result


class Router:
    """httpx MockTransport handler keyed by (method, url)."""

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, str(request.url))
        if key not in self.routes:
            return httpx.Response(404, json={"resourceType": "OperationOutcome"})
        route = self.routes[key]
        if isinstance(route, Exception):
            raise route
        if isinstance(route, httpx.Response):
            return route
        return httpx.Response(200, json=route)

    def urls(self):
        return [str(r.url) for r in self.requests]

    def bodies(self):
        return [json.loads(r.content) for r in self.requests if r.content]


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def sample_patient():
    return {"resourceType": "Patient", "id": "p1", "birthDate": "2020-01-01"}


@pytest.fixture
def immunization_bundle():
    return {
        "resourceType": "Bundle",
        "type": "searchset",
        "entry": [
            {"resource": {"resourceType": "Immunization", "id": "imm1", "status": "completed"}},
        ],
    }


@pytest.fixture
def medication():
    return {
        "resourceType": "Medication",
        "id": "med1",
        "code": {"coding": [{"system": "http://www.nlm.nih.gov/research/umls/rxnorm", "code": "197361"}]},
    }


@pytest.fixture
def medication_request_bundle():
    return {
        "resourceType": "Bundle",
        "entry": [
            {"resource": {
                "resourceType": "MedicationRequest",
                "id": "mr1",
                "medicationReference": {"reference": "Medication/med1"},
            }},
        ],
    }


@pytest.fixture
def immunization_rule():
    """Rule declaring a list-of-Immunization parameter and no libraries."""
    return {
        "library": {
            "identifier": {"id": "ImmunizationRule", "version": "1.0.0"},
            "parameters": {"def": [
                {"name": "Imm", "parameterTypeSpecifier": {
                    "type": "ListTypeSpecifier",
                    "elementType": {"name": "{http://hl7.org/fhir}Immunization", "type": "NamedTypeSpecifier"},
                }},
            ]},
        }
    }


@pytest.fixture
def rule_with_library(immunization_rule):
    rule = copy.deepcopy(immunization_rule)
    rule["library"]["includes"] = {"def": [{"localIdentifier": "FHIRHelpers", "path": "FHIRHelpers"}]}
    return rule


@pytest.fixture
def fhir_helpers():
    return {"library": {"identifier": {"id": "FHIRHelpers", "version": "4.0.1"}}}


@pytest.fixture
def router():
    return Router()


@pytest.fixture
async def client(router):
    async with httpx.AsyncClient(transport=httpx.MockTransport(router)) as c:
        yield c


@pytest.fixture
def templated_config():
    return EndpointConfig(
        patient_by_id=TemplatedEndpoint(f"{FHIR_BASE}/Patient/{{{{patientId}}}}"),
        medication_by_id=TemplatedEndpoint(f"{FHIR_BASE}/Medication/{{{{medicationId}}}}"),
        medication_request_by_patient_id=TemplatedEndpoint(
            f"{FHIR_BASE}/MedicationRequest?patient={{{{patientId}}}}"
        ),
        immunization_by_patient_id=TemplatedEndpoint(f"{FHIR_BASE}/Immunization?patient={{{{patientId}}}}"),
        rule_by_id=TemplatedEndpoint("http://rules.test/rules/{{ruleId}}"),
        record_usage=TemplatedEndpoint("http://rules.test/usage", method="POST"),
        vsac_api_key="test-key",
    )
