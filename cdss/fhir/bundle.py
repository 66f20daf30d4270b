"""Helpers for FHIR Bundle handling."""
from __future__ import annotations

from typing import Any, Dict, Iterator, List, Optional


def create_bundle(resource: Optional[Dict[str, Any]], url: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """Wrap a single resource in a Bundle; Bundles are returned unchanged."""
    if resource is None:
        return None
    if resource.get("resourceType") == "Bundle":
        return resource

    entry: Dict[str, Any] = {"resource": resource}
    if url is not None:
        entry["fullUrl"] = url
    return {"resourceType": "Bundle", "entry": [entry]}


def iter_resources(bundle: Optional[Dict[str, Any]]) -> Iterator[Dict[str, Any]]:
    """Yield the resource of every bundle entry that carries one."""
    if not bundle:
        return
    for entry in bundle.get("entry") or []:
        resource = entry.get("resource")
        if resource is not None:
            yield resource


def patient_ids(patient: Dict[str, Any]) -> List[str]:
    """Ids of every Patient in a Bundle, or the id of a bare Patient resource."""
    if patient.get("resourceType") == "Bundle":
        return [
            resource.get("id")
            for resource in iter_resources(patient)
            if resource.get("resourceType") == "Patient"
        ]
    return [patient.get("id")]
