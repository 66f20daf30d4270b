"""Exceptions raised by the CDSS pipeline."""
from __future__ import annotations

from typing import Any


class CdssError(Exception):
    """Base class for every error raised by this package."""


# =============================================================================
# Caller input (fatal preconditions)
# =============================================================================

class MissingPatient(CdssError, ValueError):
    def __init__(self):
        super().__init__("Patient is undefined")


class MissingRule(CdssError, ValueError):
    def __init__(self):
        super().__init__("Rule is undefined")


class MissingLibraries(CdssError, ValueError):
    def __init__(self):
        super().__init__("Rule expects libraries, but they are undefined")


class MissingLibrary(CdssError, ValueError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f'Rule expects library "{name}", but it is undefined')


class MissingParameters(CdssError, ValueError):
    def __init__(self):
        super().__init__("Rule expects parameters, but they are undefined")


class MissingParameter(CdssError, ValueError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f'Rule expects parameter "{name}", but it is undefined')


class ConfigurationError(CdssError, ValueError):
    """Endpoint configuration could not be built."""


# =============================================================================
# Upstream / transport
# =============================================================================

class UnroutableResourceType(CdssError, RuntimeError):
    def __init__(self, resource_type: Any):
        self.resource_type = resource_type
        super().__init__(f"Could not find proper endpoint type for {resource_type}")


class UpstreamHTTPError(CdssError, RuntimeError):
    def __init__(self, resource_type: Any, status_code: int):
        self.resource_type = resource_type
        self.status_code = status_code
        super().__init__(f"{resource_type} responded with HTTP {status_code}")


class UnexpectedResourceType(CdssError, RuntimeError):
    def __init__(self, expected: str, actual: Any):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Requested {expected} was not a {expected}, rather it is {actual}")


class ReferenceCycleError(CdssError, RuntimeError):
    def __init__(self, identifier: str, resource_type: Any):
        self.identifier = identifier
        self.resource_type = resource_type
        super().__init__(f"Reference cycle detected while resolving {resource_type} {identifier}")


# =============================================================================
# Engine output
# =============================================================================

class UnrecognizedRecommendationShape(CdssError, TypeError):
    def __init__(self, value: Any):
        self.value = value
        super().__init__(
            "Recommendation function returned unrecognized type. "
            f"Expect list of strings or single string, got {type(value).__name__} instead"
        )
