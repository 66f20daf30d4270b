"""Rule planning, execution and recommendation extraction."""
from .planner import expected_libraries, expected_parameters, plan, rule_identity
from .recommendations import extract
from .engine import CodeService, CqlEngine, EngineInvoker

__all__ = [
    "expected_libraries",
    "expected_parameters",
    "plan",
    "rule_identity",
    "extract",
    "CodeService",
    "CqlEngine",
    "EngineInvoker",
]
