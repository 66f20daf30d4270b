"""CDSS tools exposed over MCP."""
from __future__ import annotations

import logging
from typing import Annotated, Any, Dict, Literal, Optional

import httpx
from pydantic import Field

from ..errors import CdssError
from ..fhir.types import ResourceType, list_of
from ..models import UsageStatus
from ..rules.engine import RECOMMENDATIONS_FIELD
from ..rules.planner import plan
from ..service import VACCINE_FIELD
from .app import get_service, mcp

logger = logging.getLogger("cdss")

PATIENT_RESOURCES = {
    "Immunization": list_of(ResourceType.IMMUNIZATION),
    "Observation": list_of(ResourceType.OBSERVATION),
    "MedicationRequest": list_of(ResourceType.MEDICATION_REQUEST),
    "MedicationStatement": list_of(ResourceType.MEDICATION_STATEMENT),
    "Condition": list_of(ResourceType.CONDITION),
}


def _error(e: Exception) -> Dict[str, Any]:
    logger.error(f"Tool call failed: {e}")
    return {"error": f"{type(e).__name__}: {e}"}


def _dump(recommendations: Any) -> Any:
    if recommendations is None:
        return None
    return [r.model_dump() if hasattr(r, "model_dump") else r for r in recommendations]


# =============================================================================
# Rule execution
# =============================================================================

@mcp.tool()
async def evaluate_rule_for_patient(
    patient_id: Annotated[str, Field(description="FHIR id of the patient.")],
    rule_id: Annotated[str, Field(description="Id of the compiled CQL rule.")],
    record_usage: Annotated[bool, Field(description="Record a ROUTINE usage entry for the result.")] = True,
) -> Dict[str, Any]:
    """Run a CQL rule for a patient and return its recommendations, most important first."""
    try:
        results = await get_service().execute_rule_with_patient(patient_id, rule_id, record_usage)
    except (CdssError, httpx.HTTPError) as e:
        return _error(e)

    if results is None:
        return {
            "patient_id": patient_id,
            "rule_id": rule_id,
            "recommendations": None,
            "message": "Value sets could not be gathered; the rule was not evaluated",
        }

    patient_result = results.get(patient_id) or {}
    return {
        "patient_id": patient_id,
        "rule": results.get("library"),
        "vaccine": patient_result.get(VACCINE_FIELD),
        "recommendations": _dump(patient_result.get(RECOMMENDATIONS_FIELD)),
    }


@mcp.tool()
async def list_rule_inputs(
    rule_id: Annotated[str, Field(description="Id of the compiled CQL rule.")],
) -> Dict[str, Any]:
    """List the libraries and parameters a rule needs before it can run."""
    try:
        rule = await get_service().fetcher.fetch_rule(rule_id)
    except (CdssError, httpx.HTTPError) as e:
        return _error(e)
    return {"rule_id": rule_id, **plan(rule).model_dump()}


# =============================================================================
# Patient data
# =============================================================================

@mcp.tool()
async def fetch_patient_resources(
    patient_id: Annotated[str, Field(description="FHIR id of the patient.")],
    resource_type: Annotated[
        Literal["Immunization", "Observation", "MedicationRequest", "MedicationStatement", "Condition"],
        Field(description="Kind of resource to list for the patient."),
    ],
) -> Dict[str, Any]:
    """Fetch a patient's resources of one kind, with references resolved."""
    try:
        bundle = await get_service().fetcher.fetch(patient_id, PATIENT_RESOURCES[resource_type])
    except (CdssError, httpx.HTTPError) as e:
        return _error(e)
    return {"patient_id": patient_id, "resource_type": resource_type, "bundle": bundle}


# =============================================================================
# Usage
# =============================================================================

@mcp.tool()
async def record_recommendation_usage(
    rule_id: Annotated[str, Field(description="Id of the rule that produced the recommendation.")],
    patient_id: Annotated[str, Field(description="FHIR id of the patient.")],
    recommendation: Annotated[str, Field(description="Recommendation text.")],
    status: Annotated[Literal["ACTED", "DECLINED"], Field(description="What the clinician did.")],
    vaccine: Annotated[Optional[str], Field(description="Vaccine the recommendation is about.")] = None,
) -> Dict[str, Any]:
    """Record that a clinician acted on or declined a recommendation."""
    try:
        service = get_service()
        if UsageStatus(status) is UsageStatus.ACTED:
            await service.record_acted_usage(rule_id, patient_id, vaccine, recommendation)
        else:
            await service.record_declined_usage(rule_id, patient_id, vaccine, recommendation)
    except (CdssError, httpx.HTTPError) as e:
        return _error(e)
    return {"recorded": True, "status": status, "rule_id": rule_id, "patient_id": patient_id}
