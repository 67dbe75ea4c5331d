"""Per-source fetch health bookkeeping."""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional

import structlog

from ..config.settings import settings
from ..ingestion.interfaces import SourceHealthRecord, StorageInterface, utc_now

logger = structlog.get_logger()

ZERO_ITEMS_REASON = "Returned 0 items"


@dataclass
class FetchOutcome:
    """Result of one source fetch as seen by health tracking."""
    source_id: str
    item_count: int = 0
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.item_count > 0


def next_health_record(
    previous: Optional[SourceHealthRecord],
    outcome: FetchOutcome,
    now: datetime,
) -> SourceHealthRecord:
    """New record for a source after one fetch.

    Success resets the failure counter. Errors, timeouts and empty results
    increment it and keep the last success untouched.
    """
    if outcome.succeeded:
        return SourceHealthRecord(
            last_fetch_at=now,
            last_success_at=now,
            last_item_count=outcome.item_count,
            consecutive_failures=0,
            last_error=None,
        )

    previous = previous or SourceHealthRecord()
    return SourceHealthRecord(
        last_fetch_at=now,
        last_success_at=previous.last_success_at,
        last_item_count=previous.last_item_count,
        consecutive_failures=previous.consecutive_failures + 1,
        last_error=outcome.error or ZERO_ITEMS_REASON,
    )


class SourceHealthTracker:
    """Reads, updates and writes back the whole health map."""

    def __init__(self, storage: StorageInterface, failure_threshold: int = None):
        self.storage = storage
        self.failure_threshold = failure_threshold or settings.health_failure_threshold

    async def record_outcomes(
        self,
        outcomes: Iterable[FetchOutcome],
        now: datetime = None,
    ) -> Dict[str, SourceHealthRecord]:
        now = now or utc_now()
        health = self.storage.get_source_health()

        updated = []
        for outcome in outcomes:
            health[outcome.source_id] = next_health_record(health.get(outcome.source_id), outcome, now)
            updated.append(outcome.source_id)

        for source_id in updated:
            record = health[source_id]
            if record.consecutive_failures >= self.failure_threshold:
                logger.warning(
                    "source_persistently_failing",
                    source=source_id,
                    consecutive_failures=record.consecutive_failures,
                    error=record.last_error,
                )

        self.storage.update_source_health(health)
        return health

    def unhealthy_sources(self, health: Dict[str, SourceHealthRecord] = None) -> List[str]:
        """Sources at or past the failure threshold."""
        if health is None:
            health = self.storage.get_source_health()
        return sorted(
            source_id
            for source_id, record in health.items()
            if record.consecutive_failures >= self.failure_threshold
        )
