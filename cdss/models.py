"""Pydantic models shared across the CDSS pipeline."""
from __future__ import annotations

from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .fhir.types import LIST, ResourceType, TypeKey, parse_type


class ReferenceRule(BaseModel):
    """How one reference field on a resource is replaced by resolved data."""
    model_config = ConfigDict(frozen=True)

    target_field: str = Field(description="Field that receives the resolved data")
    target_type: ResourceType = Field(description="Kind of resource the reference points to")
    value_field: str = Field(description="Property extracted from the referenced resource")
    delete_source: bool = Field(
        default=False,
        description="Remove the reference field once it has been resolved",
    )


class ParameterSpec(BaseModel):
    """A parameter a rule declares, with its ELM type name."""
    model_config = ConfigDict(frozen=True)

    name: str
    type: str

    @property
    def is_list(self) -> bool:
        return LIST.matches(self.type)

    @property
    def type_key(self) -> Optional[TypeKey]:
        return parse_type(self.type)


class LibrarySpec(BaseModel):
    """A library include: ``name`` is the local identifier, ``path`` its rule id."""
    model_config = ConfigDict(frozen=True)

    name: str
    path: str


class RulePlan(BaseModel):
    """Inputs a rule needs before it can be executed.

    ``None`` means the rule carries no such declaration; it is handled the
    same way as an empty list.
    """
    parameters: Optional[List[ParameterSpec]] = None
    libraries: Optional[List[LibrarySpec]] = None

    @property
    def requires_parameters(self) -> bool:
        return bool(self.parameters)

    @property
    def requires_libraries(self) -> bool:
        return bool(self.libraries)


class Recommendation(BaseModel):
    """One recommendation; priority 1 is the most important."""
    model_config = ConfigDict(frozen=True)

    text: str
    priority: int = 1


class UsageStatus(str, Enum):
    ACTED = "ACTED"
    DECLINED = "DECLINED"
    ROUTINE = "ROUTINE"


class UsageRecord(BaseModel):
    """Audit record posted to the usage sink."""
    vaccine: Optional[str] = None
    patient_id: str = Field(alias="patientId")
    timestamp: str
    rule: str
    recommendation: Optional[Any] = None
    recommendations: Optional[List[Recommendation]] = None
    status: UsageStatus

    model_config = ConfigDict(populate_by_name=True)

    def to_body(self) -> dict:
        """JSON body for the sink; only one of the recommendation keys is sent."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
