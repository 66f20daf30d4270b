"""Reference mappings: which reference fields get replaced by embedded data.

Each key is a resource kind or a list of one. The value maps a reference
field on that kind (e.g. ``medicationReference``) to the rule describing
where the resolved data goes and what to extract from the referenced
resource. For ``MedicationRequest``, ``medicationReference`` is resolved to a
``Medication``, its ``code`` is copied into ``medicationCodeableConcept`` and
the reference is dropped.

Referenced kinds must not carry mappings that lead back to the holder; the
resolver fails closed if they do.
"""
from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from ..models import ReferenceRule
from .types import ResourceType, TypeKey, list_of

ReferenceMappings = Mapping[TypeKey, Mapping[str, ReferenceRule]]


_MEDICATION_REQUEST_REFERENCES = MappingProxyType({
    "medicationReference": ReferenceRule(
        target_field="medicationCodeableConcept",
        target_type=ResourceType.MEDICATION,
        value_field="code",
        delete_source=True,
    ),
})

REFERENCE_MAPPINGS: ReferenceMappings = MappingProxyType({
    ResourceType.MEDICATION_REQUEST: _MEDICATION_REQUEST_REFERENCES,
    list_of(ResourceType.MEDICATION_REQUEST): _MEDICATION_REQUEST_REFERENCES,
})


def build_mappings(mappings: dict) -> ReferenceMappings:
    """Freeze a ``{TypeKey: {field: ReferenceRule}}`` dict into a read-only table."""
    return MappingProxyType({
        key: MappingProxyType(dict(rules)) for key, rules in mappings.items()
    })
