"""Turn a rule's raw per-patient output into ordered recommendations.

Rules report recommendations in one of two shapes:

- a single ``Recommendation`` definition holding a string or a list of
  strings; every entry gets priority 1 and keeps its position;
- numbered ``Recommendation1``, ``Recommendation2``, ... definitions; the
  suffix is the priority and results are sorted on it numerically, so
  ``Recommendation10`` comes after ``Recommendation9``.
"""
from __future__ import annotations

import logging
import re
from typing import Any, List, Mapping, Optional

from ..errors import UnrecognizedRecommendationShape
from ..models import Recommendation

logger = logging.getLogger("cdss")

RECOMMENDATION_FIELD = "Recommendation"

_NUMBERED_FIELD = re.compile(rf"^{RECOMMENDATION_FIELD}(\d+)$")


def extract(patient_result: Optional[Mapping[str, Any]]) -> Optional[List[Recommendation]]:
    if patient_result is None:
        return None

    single = patient_result.get(RECOMMENDATION_FIELD)
    if single is not None:
        if isinstance(single, str):
            return [Recommendation(text=single, priority=1)]
        if isinstance(single, (list, tuple)):
            if not all(isinstance(item, str) for item in single):
                raise UnrecognizedRecommendationShape(single)
            return [Recommendation(text=item, priority=1) for item in single]
        raise UnrecognizedRecommendationShape(single)

    numbered = []
    for key, value in patient_result.items():
        match = _NUMBERED_FIELD.match(key)
        if match is None or value is None:
            continue
        if not isinstance(value, str):
            logger.warning(f"Skipping {key}: expected a string, got {type(value).__name__}")
            continue
        numbered.append(Recommendation(text=value, priority=int(match.group(1))))

    return sorted(numbered, key=lambda r: r.priority)
