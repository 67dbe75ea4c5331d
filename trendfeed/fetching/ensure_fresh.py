"""Freshness coordinator: re-fetch stale sources, persist results, track health."""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Set, Tuple

import structlog

from ..config.settings import settings
from ..errors import AdapterTimeoutError
from ..ingestion.adapters import AdapterRegistry
from ..ingestion.interfaces import (
    ContentItem, SourceAdapter, SourceConfig, StorageInterface, TimeRange,
    deduplicate_items, utc_now,
)
from .background import BackgroundTasks
from .health import FetchOutcome, SourceHealthTracker
from .refresh_progress import RefreshProgressTracker

logger = structlog.get_logger()


@dataclass
class FetchFailure:
    """A stale source that could not be fetched."""
    source: str
    source_id: str
    error: str

    def to_dict(self) -> dict:
        return {"source": self.source, "sourceId": self.source_id, "error": self.error}


@dataclass
class FreshnessResult:
    stale_count: int
    fresh_count: int
    failures: List[FetchFailure] = field(default_factory=list)
    refreshed_source_ids: List[str] = field(default_factory=list)
    new_items: int = 0


class FreshnessCoordinator:
    """Decides which sources need fetching and fans out the fetches.

    Every stale source with an adapter is fetched concurrently, each bounded by
    the adapter timeout. One failure never cancels its siblings and never
    raises to the caller; it is reported in ``FreshnessResult.failures``.
    Backing store errors do raise.
    """

    def __init__(
        self,
        storage: StorageInterface,
        adapters: AdapterRegistry = None,
        progress: RefreshProgressTracker = None,
        health: SourceHealthTracker = None,
        background: BackgroundTasks = None,
        timeout_seconds: float = None,
    ):
        self.storage = storage
        self.adapters = adapters or AdapterRegistry()
        self.progress = progress
        self.health = health
        self.background = background or BackgroundTasks()
        self.timeout_seconds = timeout_seconds or settings.adapter_timeout_seconds
        self._inflight: Set[asyncio.Task] = set()

    async def ensure_fresh(
        self,
        sources: List[SourceConfig],
        time_range: TimeRange,
        now: datetime = None,
    ) -> FreshnessResult:
        """Refresh stale sources.

        The refresh runs in its own task: a caller that goes away does not
        stop it, so its results still land in the store.
        """
        task = asyncio.ensure_future(self._refresh(sources, time_range, now))
        self._inflight.add(task)
        task.add_done_callback(self._forget)
        return await asyncio.shield(task)

    def _forget(self, task: asyncio.Task) -> None:
        self._inflight.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.debug("refresh_task_failed", error=str(task.exception()))

    async def _refresh(
        self,
        sources: List[SourceConfig],
        time_range: TimeRange,
        now: Optional[datetime],
    ) -> FreshnessResult:
        now = now or utc_now()
        stale_ids, fresh_ids = self.storage.get_freshness(sources, now)
        result = FreshnessResult(stale_count=len(stale_ids), fresh_count=len(fresh_ids))

        if not stale_ids:
            return result

        logger.info(
            "selective_fetch",
            stale=len(stale_ids),
            fresh=len(fresh_ids),
            total=len(sources),
        )

        stale = set(stale_ids)
        pairs: List[Tuple[SourceConfig, SourceAdapter]] = []
        for source in sources:
            if source.id not in stale:
                continue
            adapter = self.adapters.create(source)
            if adapter is None:
                logger.debug("source_unsupported", source=source.id)
                continue
            pairs.append((source, adapter))

        if not pairs:
            return result

        session_token = None
        if self.progress is not None and not self.progress.in_progress:
            session_token = self.progress.start_session(source for source, _ in pairs)

        results = await asyncio.gather(
            *(self._fetch_one(source, adapter, time_range) for source, adapter in pairs),
            return_exceptions=True,
        )

        fetched: List[ContentItem] = []
        outcomes: List[FetchOutcome] = []
        for (source, _), outcome in zip(pairs, results):
            if isinstance(outcome, BaseException):
                message = str(outcome) or type(outcome).__name__
                result.failures.append(FetchFailure(source=source.name, source_id=source.id, error=message))
                outcomes.append(FetchOutcome(source_id=source.id, error=message))
                logger.warning("adapter_failed", source=source.id, error=message)
            else:
                fetched.extend(outcome)
                result.refreshed_source_ids.append(source.id)
                outcomes.append(FetchOutcome(source_id=source.id, item_count=len(outcome)))

        result.new_items = self._persist(fetched, now)
        self.storage.update_last_fetched(result.refreshed_source_ids, now)

        if session_token is not None:
            self.progress.end_session(session_token)

        if self.health is not None:
            self.background.spawn(self.health.record_outcomes(outcomes, now), name="record_source_health")

        logger.info(
            "sources_refreshed",
            refreshed=len(result.refreshed_source_ids),
            failed=len(result.failures),
            new_items=result.new_items,
        )
        return result

    async def _fetch_one(
        self,
        source: SourceConfig,
        adapter: SourceAdapter,
        time_range: TimeRange,
    ) -> List[ContentItem]:
        if self.progress is not None:
            self.progress.mark_fetching(source.id)
        try:
            items = await asyncio.wait_for(adapter.fetch(time_range), self.timeout_seconds)
        except asyncio.TimeoutError:
            self._mark_failed(source.id)
            raise AdapterTimeoutError(source.id, self.timeout_seconds)
        except Exception:
            self._mark_failed(source.id)
            raise
        if self.progress is not None:
            self.progress.mark_done(source.id)
        return list(items or [])

    def _mark_failed(self, source_id: str) -> None:
        if self.progress is not None:
            self.progress.mark_failed(source_id)

    def _persist(self, fetched: List[ContentItem], now: datetime) -> int:
        """Store new items; already stored ids keep their stored content."""
        unique = deduplicate_items(fetched)
        if not unique:
            return 0

        existing = self.storage.get_existing_ids([i.id for i in unique])
        saved = self.storage.cache_content(deduplicate_items(unique, existing))
        self.storage.update_engagement([i for i in unique if i.id in existing])

        self.background.spawn(self._record_snapshots(unique, now), name="record_engagement_snapshots")
        return saved

    async def _record_snapshots(self, items: List[ContentItem], now: datetime) -> None:
        self.storage.record_engagement_snapshots(items, now)
