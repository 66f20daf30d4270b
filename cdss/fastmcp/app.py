"""FastMCP application instance for the CDSS server.

The CQL engine and terminology service are plugged in through environment
variables naming a ``module:attribute`` factory:

- CDSS_ENGINE_FACTORY: ``factory(config) -> CqlEngine``
- CDSS_CODE_SERVICE_FACTORY: ``factory(config, use_default_vsac_address) -> CodeService``

Endpoints come from ``CDSS_*`` variables (see ``EndpointConfig.from_env``).
"""
from __future__ import annotations

import os
from typing import Optional

from fastmcp import FastMCP

from ..config import EndpointConfig, load_object
from ..errors import ConfigurationError
from ..service import CdssService

ENGINE_FACTORY_ENV = "CDSS_ENGINE_FACTORY"
CODE_SERVICE_FACTORY_ENV = "CDSS_CODE_SERVICE_FACTORY"

INSTRUCTIONS = """
CDSS MCP Server - CQL decision support over FHIR

Available Tools:
1. evaluate_rule_for_patient - Run a rule for a patient and get ordered recommendations
2. list_rule_inputs - Libraries and parameters a rule needs
3. fetch_patient_resources - Patient data as the rule sees it (references resolved)
4. record_recommendation_usage - Record that a recommendation was acted on or declined

Recommendations are ordered; priority 1 comes first.
"""

_service: Optional[CdssService] = None


def create_mcp_server() -> FastMCP:
    return FastMCP(name="CDSS MCP Server", instructions=INSTRUCTIONS)


def build_service(config: Optional[EndpointConfig] = None) -> CdssService:
    """Build the service from the environment."""
    config = config or EndpointConfig.from_env()

    engine_path = os.environ.get(ENGINE_FACTORY_ENV)
    if not engine_path:
        raise ConfigurationError(f"{ENGINE_FACTORY_ENV} is not set; a CQL engine binding is required")
    engine = load_object(engine_path)(config)

    code_service_path = os.environ.get(CODE_SERVICE_FACTORY_ENV)
    code_service_factory = load_object(code_service_path) if code_service_path else None

    return CdssService(config, engine, code_service_factory=code_service_factory)


def get_service() -> CdssService:
    global _service
    if _service is None:
        _service = build_service()
    return _service


def set_service(service: Optional[CdssService]) -> None:
    """Install (or clear) the service used by the tools."""
    global _service
    _service = service


# Default server instance - tools register to this via decorators
mcp = create_mcp_server()
