"""Inspect a compiled rule (ELM JSON) for the inputs it needs."""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from ..models import LibrarySpec, ParameterSpec, RulePlan


def _library(rule: Any) -> Dict[str, Any]:
    if not isinstance(rule, dict):
        return {}
    return rule.get("library") or {}


def _definitions(rule: Any, section: str) -> Optional[list]:
    definitions = (_library(rule).get(section) or {}).get("def")
    if not isinstance(definitions, list):
        return None
    return definitions


def _type_name(specifier: Dict[str, Any]) -> str:
    if specifier.get("name") is not None:
        return specifier["name"]
    element = specifier.get("elementType") or {}
    return f"{specifier.get('type')}<{element.get('name')}>"


def expected_parameters(rule: Any) -> Optional[List[ParameterSpec]]:
    """Parameters declared by ``rule``.

    Scalar types keep their name (``Integer``); list types become
    ``ListTypeSpecifier<{http://hl7.org/fhir}Immunization>``. Returns ``None``
    when the rule has no parameter declarations.
    """
    definitions = _definitions(rule, "parameters")
    if definitions is None:
        return None
    return [
        ParameterSpec(name=p["name"], type=_type_name(p.get("parameterTypeSpecifier") or {}))
        for p in definitions
    ]


def expected_libraries(rule: Any) -> Optional[List[LibrarySpec]]:
    """Libraries included by ``rule`` as ``(local identifier, path)``, or ``None``."""
    definitions = _definitions(rule, "includes")
    if definitions is None:
        return None
    return [LibrarySpec(name=lib["localIdentifier"], path=lib["path"]) for lib in definitions]


def plan(rule: Any) -> RulePlan:
    return RulePlan(parameters=expected_parameters(rule), libraries=expected_libraries(rule))


def rule_identity(rule: Dict[str, Any]) -> Tuple[Optional[str], Optional[str]]:
    """``(id, version)`` from the rule's library identifier."""
    identifier = _library(rule).get("identifier") or {}
    return identifier.get("id"), identifier.get("version")
