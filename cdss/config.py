"""Endpoint configuration for the CDSS pipeline.

Every operation that talks to the outside world (patient lookup, rule
lookup, usage recording, ...) is described by one endpoint entry. An entry
is either a Python callable invoked directly with the identifier, or an
address template such as ``http://fhir/Patient/{{patientId}}`` fetched over
HTTP with the configured method.

The configuration is built once (from a mapping or from ``CDSS_*``
environment variables) and passed into every component.
"""
from __future__ import annotations

import importlib
import inspect
import os
import re
from dataclasses import dataclass, field, fields
from typing import Any, Callable, Dict, Mapping, Optional, Union

from .errors import ConfigurationError

DEFAULT_TIMEOUT = 30.0

_PLACEHOLDER = re.compile(r"\{\{\s*\w+\s*\}\}")


@dataclass(frozen=True)
class DirectEndpoint:
    """Endpoint served by a callable; sync and async callables are both accepted."""
    handler: Callable[..., Any]

    async def call(self, *args: Any) -> Any:
        result = self.handler(*args)
        if inspect.isawaitable(result):
            result = await result
        return result


@dataclass(frozen=True)
class TemplatedEndpoint:
    """Endpoint reached over HTTP; ``{{...}}`` placeholders take the identifier."""
    address: str
    method: str = "GET"

    def render(self, identifier: Any) -> str:
        return _PLACEHOLDER.sub(lambda _: str(identifier), self.address)


Endpoint = Union[DirectEndpoint, TemplatedEndpoint]


# camelCase operation name -> (attribute, default HTTP method)
ENDPOINT_NAMES: Dict[str, tuple] = {
    "patientById": ("patient_by_id", "GET"),
    "medicationById": ("medication_by_id", "GET"),
    "medicationRequestByPatientId": ("medication_request_by_patient_id", "GET"),
    "medicationStatementByPatientId": ("medication_statement_by_patient_id", "GET"),
    "immunizationByPatientId": ("immunization_by_patient_id", "GET"),
    "observationByPatientId": ("observation_by_patient_id", "GET"),
    "conditionByPatientId": ("condition_by_patient_id", "GET"),
    "ruleById": ("rule_by_id", "GET"),
    "recordUsage": ("record_usage", "POST"),
}


@dataclass(frozen=True)
class EndpointConfig:
    """Read-only endpoint table plus terminology and metadata settings."""
    patient_by_id: Optional[Endpoint] = None
    medication_by_id: Optional[Endpoint] = None
    medication_request_by_patient_id: Optional[Endpoint] = None
    medication_statement_by_patient_id: Optional[Endpoint] = None
    immunization_by_patient_id: Optional[Endpoint] = None
    observation_by_patient_id: Optional[Endpoint] = None
    condition_by_patient_id: Optional[Endpoint] = None
    rule_by_id: Optional[Endpoint] = None
    record_usage: Optional[Endpoint] = None

    vsac_svs: Optional[str] = None
    vsac_fhir: Optional[str] = None
    vsac_api_key: Optional[str] = field(default=None, repr=False)

    system_name: Optional[str] = None
    remote_address: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT

    def endpoint(self, name: str) -> Optional[Endpoint]:
        return getattr(self, name)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "EndpointConfig":
        """Build from the camelCase endpoint table.

        Example::

            {
                "metadata": {"systemName": "ehr", "vsacApiKey": "..."},
                "patientById": {"address": "http://fhir/Patient/{{patientId}}", "method": "GET"},
                "ruleById": {"address": load_rule},
                "vsacSvs": {"address": "https://vsac.nlm.nih.gov/vsac/svs/"},
            }
        """
        values: Dict[str, Any] = {}
        for key, (attribute, default_method) in ENDPOINT_NAMES.items():
            entry = data.get(key)
            if entry is None:
                continue
            values[attribute] = _endpoint_from_entry(key, entry, default_method)

        for key, attribute in (("vsacSvs", "vsac_svs"), ("vsacFhir", "vsac_fhir")):
            entry = data.get(key)
            if isinstance(entry, Mapping):
                values[attribute] = entry.get("address")
            elif entry is not None:
                values[attribute] = entry

        metadata = data.get("metadata") or {}
        values["system_name"] = metadata.get("systemName")
        values["remote_address"] = metadata.get("remoteAddress")
        values["vsac_api_key"] = metadata.get("vsacApiKey")
        if "timeout" in data:
            values["timeout"] = float(data["timeout"])
        return cls(**values)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, prefix: str = "CDSS_") -> "EndpointConfig":
        """Build from environment variables.

        ``CDSS_PATIENT_BY_ID_URL`` (and ``..._METHOD``) for each endpoint,
        ``CDSS_VSAC_SVS_URL``, ``CDSS_VSAC_FHIR_URL``, ``CDSS_VSAC_API_KEY``,
        ``CDSS_SYSTEM_NAME``, ``CDSS_REMOTE_ADDRESS`` and ``CDSS_HTTP_TIMEOUT``.
        """
        env = os.environ if environ is None else environ
        values: Dict[str, Any] = {}
        for attribute, default_method in ENDPOINT_NAMES.values():
            name = prefix + attribute.upper()
            address = env.get(f"{name}_URL")
            if address:
                method = env.get(f"{name}_METHOD", default_method).upper()
                values[attribute] = TemplatedEndpoint(address=address, method=method)

        values["vsac_svs"] = env.get(f"{prefix}VSAC_SVS_URL")
        values["vsac_fhir"] = env.get(f"{prefix}VSAC_FHIR_URL")
        values["vsac_api_key"] = env.get(f"{prefix}VSAC_API_KEY")
        values["system_name"] = env.get(f"{prefix}SYSTEM_NAME")
        values["remote_address"] = env.get(f"{prefix}REMOTE_ADDRESS")

        timeout = env.get(f"{prefix}HTTP_TIMEOUT")
        if timeout:
            try:
                values["timeout"] = float(timeout)
            except ValueError as e:
                raise ConfigurationError(f"{prefix}HTTP_TIMEOUT must be a number, got {timeout!r}") from e
        return cls(**values)

    def describe(self) -> Dict[str, Any]:
        """Non-secret summary used by health checks and logs."""
        summary: Dict[str, Any] = {}
        for f in fields(self):
            if f.name == "vsac_api_key":
                continue
            value = getattr(self, f.name)
            if isinstance(value, DirectEndpoint):
                value = getattr(value.handler, "__qualname__", repr(value.handler))
            elif isinstance(value, TemplatedEndpoint):
                value = f"{value.method} {value.address}"
            summary[f.name] = value
        return summary


def _endpoint_from_entry(key: str, entry: Any, default_method: str) -> Optional[Endpoint]:
    if isinstance(entry, (DirectEndpoint, TemplatedEndpoint)):
        return entry
    if callable(entry):
        return DirectEndpoint(entry)
    if not isinstance(entry, Mapping):
        raise ConfigurationError(f"Endpoint '{key}' must be a mapping or callable, got {type(entry).__name__}")

    address = entry.get("address")
    if address is None:
        return None
    if callable(address):
        return DirectEndpoint(address)
    if isinstance(address, str):
        return TemplatedEndpoint(address=address, method=str(entry.get("method", default_method)).upper())
    raise ConfigurationError(f"Endpoint '{key}' address must be a string or callable")


def load_object(path: str) -> Any:
    """Import ``package.module:attribute``."""
    module_name, sep, attribute = path.partition(":")
    if not sep or not module_name or not attribute:
        raise ConfigurationError(f"Expected 'module:attribute', got {path!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import {module_name!r}: {e}") from e
    try:
        obj = module
        for part in attribute.split("."):
            obj = getattr(obj, part)
    except AttributeError as e:
        raise ConfigurationError(f"{module_name!r} has no attribute {attribute!r}") from e
    return obj
