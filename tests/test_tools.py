"""Tests for the MCP tools, called through an in-memory FastMCP client."""

import json

import pytest
from fastmcp import Client

from cdss.fastmcp import mcp, set_service
from cdss.fastmcp import tools  # noqa: F401
from cdss.service import CdssService

from conftest import FHIR_BASE, FakeEngine


@pytest.fixture
def service(templated_config, client, router, sample_patient, immunization_bundle, immunization_rule,
            medication_request_bundle, medication):
    router.routes.update({
        ("GET", f"{FHIR_BASE}/Patient/p1"): sample_patient,
        ("GET", f"{FHIR_BASE}/Immunization?patient=p1"): immunization_bundle,
        ("GET", f"{FHIR_BASE}/MedicationRequest?patient=p1"): medication_request_bundle,
        ("GET", f"{FHIR_BASE}/Medication/med1"): medication,
        ("GET", "http://rules.test/rules/ImmunizationRule"): immunization_rule,
        ("POST", "http://rules.test/usage"): {},
    })
    engine = FakeEngine({"p1": {"VaccineName": "MMR", "Recommendation2": "Recheck", "Recommendation1": "Give MMR"}})
    service = CdssService(templated_config, engine, client=client)
    set_service(service)
    yield service
    set_service(None)


async def _call(name, arguments):
    async with Client(mcp) as mcp_client:
        result = await mcp_client.call_tool(name, arguments)
    return json.loads(result.content[0].text)


@pytest.mark.asyncio
async def test_tools_are_registered():
    async with Client(mcp) as mcp_client:
        names = {tool.name for tool in await mcp_client.list_tools()}
    assert {
        "evaluate_rule_for_patient",
        "list_rule_inputs",
        "fetch_patient_resources",
        "record_recommendation_usage",
    } <= names


@pytest.mark.asyncio
async def test_evaluate_rule_for_patient(service, router):
    data = await _call("evaluate_rule_for_patient", {"patient_id": "p1", "rule_id": "ImmunizationRule"})

    assert data["vaccine"] == "MMR"
    assert data["rule"] == {"name": "ImmunizationRule", "version": "1.0.0"}
    assert data["recommendations"] == [
        {"text": "Give MMR", "priority": 1},
        {"text": "Recheck", "priority": 2},
    ]
    assert router.bodies()[-1]["status"] == "ROUTINE"


@pytest.mark.asyncio
async def test_evaluate_reports_errors(service):
    data = await _call("evaluate_rule_for_patient", {"patient_id": "nobody", "rule_id": "ImmunizationRule"})
    assert data["error"].startswith("UpstreamHTTPError")


@pytest.mark.asyncio
async def test_list_rule_inputs(service):
    data = await _call("list_rule_inputs", {"rule_id": "ImmunizationRule"})
    assert data["parameters"] == [
        {"name": "Imm", "type": "ListTypeSpecifier<{http://hl7.org/fhir}Immunization>"},
    ]
    assert data["libraries"] is None


@pytest.mark.asyncio
async def test_fetch_patient_resources_resolves_references(service, medication):
    data = await _call("fetch_patient_resources", {"patient_id": "p1", "resource_type": "MedicationRequest"})
    request = data["bundle"]["entry"][0]["resource"]
    assert request["medicationCodeableConcept"] == medication["code"]


@pytest.mark.asyncio
async def test_record_recommendation_usage(service, router):
    data = await _call("record_recommendation_usage", {
        "rule_id": "ImmunizationRule",
        "patient_id": "p1",
        "recommendation": "Give MMR",
        "status": "DECLINED",
    })
    assert data["recorded"] is True
    assert router.bodies()[-1]["status"] == "DECLINED"


@pytest.mark.asyncio
async def test_record_usage_reports_configuration_errors(monkeypatch):
    monkeypatch.delenv("CDSS_ENGINE_FACTORY", raising=False)
    set_service(None)

    data = await _call("record_recommendation_usage", {
        "rule_id": "ImmunizationRule",
        "patient_id": "p1",
        "recommendation": "Give MMR",
        "status": "ACTED",
    })

    assert data["error"].startswith("ConfigurationError")
