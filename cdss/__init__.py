"""CQL clinical decision support.

Runs compiled CQL rules against a patient's FHIR record:

- rules.planner: which libraries and parameters a rule needs
- fhir.client / fhir.references: fetch FHIR data and resolve references
- rules.engine: run the rule through a CQL engine binding
- rules.recommendations: ordered recommendations from the raw results
- usage: audit trail of produced recommendations
- service: the whole flow behind one object

Usage:
    # MCP server exposing the flow as tools
    python -m cdss.fastmcp.server
"""
from .config import DirectEndpoint, EndpointConfig, TemplatedEndpoint
from .models import Recommendation, UsageStatus
from .service import CdssService

__version__ = "1.0.0"
__all__ = [
    "CdssService",
    "DirectEndpoint",
    "EndpointConfig",
    "TemplatedEndpoint",
    "Recommendation",
    "UsageStatus",
]
