"""FHIR layer: resource kinds, bundles, reference mappings and the fetcher.

The fetcher and resolver live in :mod:`cdss.fhir.client` and
:mod:`cdss.fhir.references`.
"""
from .types import (
    ContainerType,
    LIST,
    ResourceType,
    TypeKey,
    is_fhir_list,
    is_url,
    list_of,
    parse_type,
)
from .bundle import create_bundle, iter_resources, patient_ids

__all__ = [
    "ContainerType",
    "LIST",
    "ResourceType",
    "TypeKey",
    "is_fhir_list",
    "is_url",
    "list_of",
    "parse_type",
    "create_bundle",
    "iter_resources",
    "patient_ids",
]
