"""Audit trail of produced recommendations (routine, acted upon, declined)."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

import httpx

from .config import DirectEndpoint, TemplatedEndpoint
from .errors import UnroutableResourceType, UpstreamHTTPError
from .models import Recommendation, UsageRecord, UsageStatus

logger = logging.getLogger("cdss")


def current_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class UsageRecorder:
    """Sends usage records to the configured ``recordUsage`` endpoint.

    A callable endpoint receives ``(rule_id, patient_id, vaccine,
    recommendation, status)``; an address endpoint gets the record as JSON.
    """

    def __init__(self, endpoint: Optional[Any], client: httpx.AsyncClient):
        self.endpoint = endpoint
        self.client = client

    async def record(
        self,
        rule_id: str,
        patient_id: str,
        vaccine: Optional[str],
        recommendation: Any,
        status: UsageStatus,
    ) -> None:
        if self.endpoint is None:
            raise UnroutableResourceType("Usage")

        if isinstance(self.endpoint, DirectEndpoint):
            await self.endpoint.call(rule_id, patient_id, vaccine, recommendation, status)
            return

        if not isinstance(self.endpoint, TemplatedEndpoint):
            raise UnroutableResourceType("Usage")

        record = self.build_record(rule_id, patient_id, vaccine, recommendation, status)
        url = self.endpoint.render(patient_id)
        response = await self.client.request(self.endpoint.method, url, json=record.to_body())
        if response.status_code != 200:
            logger.error(f"Recording {status.value} usage of {rule_id} failed with HTTP {response.status_code}")
            raise UpstreamHTTPError("Usage", response.status_code)
        logger.info(f"Recorded {status.value} usage of {rule_id} for patient {patient_id}")

    @staticmethod
    def build_record(
        rule_id: str,
        patient_id: str,
        vaccine: Optional[str],
        recommendation: Any,
        status: UsageStatus,
    ) -> UsageRecord:
        # Routine records carry the whole list, acted/declined a single recommendation.
        if status is UsageStatus.ROUTINE:
            return UsageRecord(
                vaccine=vaccine,
                patient_id=patient_id,
                timestamp=current_timestamp(),
                rule=rule_id,
                recommendations=list(recommendation or []),
                status=status,
            )
        return UsageRecord(
            vaccine=vaccine,
            patient_id=patient_id,
            timestamp=current_timestamp(),
            rule=rule_id,
            recommendation=_plain(recommendation),
            status=status,
        )

    async def record_routine_usage(
        self, rule_id: str, patient_id: str, vaccine: Optional[str], recommendations: Optional[Sequence[Recommendation]]
    ) -> None:
        await self.record(rule_id, patient_id, vaccine, recommendations, UsageStatus.ROUTINE)

    async def record_acted_usage(self, rule_id: str, patient_id: str, vaccine: Optional[str], recommendation: Any) -> None:
        await self.record(rule_id, patient_id, vaccine, recommendation, UsageStatus.ACTED)

    async def record_declined_usage(self, rule_id: str, patient_id: str, vaccine: Optional[str], recommendation: Any) -> None:
        await self.record(rule_id, patient_id, vaccine, recommendation, UsageStatus.DECLINED)


def _plain(value: Any) -> Any:
    if isinstance(value, Recommendation):
        return value.model_dump()
    return value
