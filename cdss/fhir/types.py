"""FHIR resource kinds and list containers as they appear in ELM type specifiers."""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

FHIR_NAMESPACE = "{http://hl7.org/fhir}"
LIST_SPECIFIER = "ListTypeSpecifier"

# Permissive: scheme, optional user info, host, optional port and path.
_URL_PATTERN = re.compile(r"(?:https?)://(\w+:?\w*)?(\S+)(:\d+)?(/|/([\w#!:.?+=&%!\-/]))?")
_LIST_PATTERN = re.compile(r"^\s*(\w+)\s*<\s*(.+?)\s*>\s*$")


class ResourceType(Enum):
    """Resource kinds the pipeline knows how to fetch or resolve."""
    PATIENT = FHIR_NAMESPACE + "Patient"
    IMMUNIZATION = FHIR_NAMESPACE + "Immunization"
    MEDICATION_REQUEST = FHIR_NAMESPACE + "MedicationRequest"
    MEDICATION_STATEMENT = FHIR_NAMESPACE + "MedicationStatement"
    MEDICATION = FHIR_NAMESPACE + "Medication"
    OBSERVATION = FHIR_NAMESPACE + "Observation"
    CONDITION = FHIR_NAMESPACE + "Condition"
    CODEABLE_CONCEPT = FHIR_NAMESPACE + "CodeableConcept"

    @property
    def resource_name(self) -> str:
        """Plain FHIR name, e.g. ``MedicationRequest``."""
        return self.value[len(FHIR_NAMESPACE):]

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ContainerType:
    """A list of ``element`` resources; ``ContainerType()`` is the bare list."""
    element: Optional[ResourceType] = None

    @property
    def is_bare(self) -> bool:
        return self.element is None

    def matches(self, type_name: str) -> bool:
        """Prefix test used to decide whether a declared type is list-shaped."""
        return type_name.startswith(str(self))

    def __str__(self) -> str:
        if self.element is None:
            return LIST_SPECIFIER
        return f"{LIST_SPECIFIER}<{self.element.value}>"


TypeKey = Union[ResourceType, ContainerType]

LIST = ContainerType()


def list_of(resource_type: ResourceType) -> ContainerType:
    return ContainerType(resource_type)


def is_fhir_list(type_name: Union[str, TypeKey]) -> bool:
    if isinstance(type_name, ContainerType):
        return True
    if isinstance(type_name, ResourceType):
        return False
    return LIST_SPECIFIER in type_name


def is_url(value: str) -> bool:
    return bool(value) and _URL_PATTERN.search(value) is not None


def parse_type(type_name: Union[str, TypeKey]) -> Optional[TypeKey]:
    """Turn a declared type name into a routing key.

    Accepts ``{http://hl7.org/fhir}Immunization`` and
    ``ListTypeSpecifier<{http://hl7.org/fhir}Immunization>``. Returns ``None``
    for types that are not FHIR resource kinds (``Integer``, ``Array<String>``).
    """
    if isinstance(type_name, (ResourceType, ContainerType)):
        return type_name

    match = _LIST_PATTERN.match(type_name)
    if match:
        container, element = match.groups()
        if container != LIST_SPECIFIER:
            return None
        element_type = _resource_type(element)
        return ContainerType(element_type) if element_type else None

    if type_name.strip() == LIST_SPECIFIER:
        return LIST
    return _resource_type(type_name)


def _resource_type(name: str) -> Optional[ResourceType]:
    name = name.strip()
    if not name.startswith(FHIR_NAMESPACE):
        name = FHIR_NAMESPACE + name
    try:
        return ResourceType(name)
    except ValueError:
        return None
