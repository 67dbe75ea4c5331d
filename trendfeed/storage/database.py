"""Database operations for the backing store."""

import json
import math
from contextlib import contextmanager
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import sessionmaker
from sqlalchemy.exc import SQLAlchemyError
import structlog

from .models import (
    ContentItemModel, EngagementSnapshotModel, SettingModel,
    SourceHealthModel, SourceStateModel, init_db,
)
from ..config.settings import settings
from ..config.sources import freshness_window
from ..errors import StoreError
from ..ingestion.interfaces import (
    ContentItem, SourceConfig, SourceHealthRecord, StorageInterface, TimeRange,
    engagement_from_dict, ensure_utc, utc_now,
)
from ..scoring.sentiment import analyze_sentiment

logger = structlog.get_logger()

# Keep IN (...) lists under SQLite's bound parameter limit
CHUNK_SIZE = 500

# Snapshot windows for velocity tracking
SNAPSHOT_LOOKBACK = timedelta(hours=6)
VELOCITY_LOOKBACK = timedelta(hours=24)
MIN_VELOCITY_INTERVAL_HOURS = 0.5

BOOST_KEYWORDS_KEY = "boostKeywords"


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Store timestamps as naive UTC."""
    if value is None:
        return None
    return ensure_utc(value).replace(tzinfo=None)


def _chunks(values: List[Any], size: int = CHUNK_SIZE):
    for i in range(0, len(values), size):
        yield values[i:i + size]


class ContentStorage(StorageInterface):
    """SQL-backed store for content, freshness, health, settings and snapshots."""

    def __init__(self, database_url: str = None):
        if database_url is None:
            database_url = settings.database_url

        # Ensure data directory exists
        if database_url.startswith("sqlite:///"):
            db_path = database_url.replace("sqlite:///", "")
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        self.engine = init_db(database_url)
        self.Session = sessionmaker(bind=self.engine, expire_on_commit=False)

    @contextmanager
    def _session(self, operation: str):
        session = self.Session()
        try:
            yield session
        except SQLAlchemyError as e:
            session.rollback()
            logger.error("store_operation_failed", operation=operation, error=str(e))
            raise StoreError(f"{operation} failed: {e}") from e
        finally:
            session.close()

    # === Freshness ===

    def get_freshness(
        self,
        sources: List[SourceConfig],
        now: datetime = None,
    ) -> Tuple[List[str], List[str]]:
        """Split sources into (stale, fresh) ids by their category window."""
        if not sources:
            return [], []
        now = now or utc_now()

        with self._session("get_freshness") as session:
            rows = session.query(SourceStateModel.id, SourceStateModel.last_fetched_at)\
                .filter(SourceStateModel.id.in_([s.id for s in sources]))\
                .all()
        last_fetched = {row.id: ensure_utc(row.last_fetched_at) for row in rows}

        stale, fresh = [], []
        for source in sources:
            fetched_at = last_fetched.get(source.id)
            if fetched_at is None or now - fetched_at > freshness_window(source.category):
                stale.append(source.id)
            else:
                fresh.append(source.id)
        return stale, fresh

    def update_last_fetched(self, source_ids: List[str], now: datetime = None) -> None:
        if not source_ids:
            return
        now = _naive_utc(now or utc_now())

        with self._session("update_last_fetched") as session:
            for source_id in source_ids:
                state = session.get(SourceStateModel, source_id)
                if state is None:
                    state = SourceStateModel(id=source_id)
                    session.add(state)
                state.last_fetched_at = now
            session.commit()
        logger.debug("sources_marked_fetched", count=len(source_ids))

    # === Content ===

    def get_existing_ids(self, item_ids: List[str]) -> set:
        existing = set()
        with self._session("get_existing_ids") as session:
            for chunk in _chunks(list(item_ids)):
                rows = session.query(ContentItemModel.id)\
                    .filter(ContentItemModel.id.in_(chunk))\
                    .all()
                existing.update(row.id for row in rows)
        return existing

    def cache_content(self, items: List[ContentItem]) -> int:
        """Insert items whose id is not stored yet. Stored rows win."""
        if not items:
            return 0

        existing = self.get_existing_ids([i.id for i in items])
        saved = 0
        with self._session("cache_content") as session:
            for item in items:
                if item.id in existing:
                    continue
                existing.add(item.id)
                session.add(self._item_to_model(item))
                saved += 1
            session.commit()

        logger.info("content_cached", saved=saved, total=len(items))
        return saved

    def update_engagement(self, items: List[ContentItem]) -> int:
        """Refresh engagement counters of stored items, leaving other fields as stored."""
        with_metrics = {i.id: i for i in items if i.engagement is not None}
        if not with_metrics:
            return 0

        updated = 0
        with self._session("update_engagement") as session:
            for chunk in _chunks(list(with_metrics)):
                models = session.query(ContentItemModel)\
                    .filter(ContentItemModel.id.in_(chunk))\
                    .all()
                for model in models:
                    engagement = with_metrics[model.id].engagement
                    model.engagement_type = engagement.kind
                    model.engagement = json.dumps(engagement.to_dict())
                    updated += 1
            session.commit()
        return updated

    def get_cached_content_by_source_ids(
        self,
        source_ids: List[str],
        time_range: TimeRange,
        limit: int = None,
        now: datetime = None,
    ) -> List[ContentItem]:
        """Newest items first, capped per source so busy sources cannot crowd out the rest."""
        if not source_ids:
            return []
        limit = limit or settings.max_items_per_query
        max_per_source = max(
            settings.max_items_per_source,
            math.ceil(limit / len(source_ids) * 2),
        )
        cutoff = _naive_utc(time_range.cutoff(now))

        with self._session("get_cached_content") as session:
            models = session.query(ContentItemModel)\
                .filter(ContentItemModel.source_id.in_(source_ids))\
                .filter(ContentItemModel.published_at >= cutoff)\
                .order_by(ContentItemModel.published_at.desc())\
                .all()

        per_source: Dict[str, int] = {}
        items = []
        for model in models:
            count = per_source.get(model.source_id, 0)
            if count >= max_per_source:
                continue
            per_source[model.source_id] = count + 1
            items.append(self._model_to_item(model))
            if len(items) >= limit:
                break
        return items

    def clean_old_content(self, days_to_keep: int = None) -> int:
        days_to_keep = days_to_keep or settings.content_retention_days
        cutoff = _naive_utc(utc_now() - timedelta(days=days_to_keep))
        with self._session("clean_old_content") as session:
            deleted = session.query(ContentItemModel)\
                .filter(ContentItemModel.fetched_at < cutoff)\
                .delete(synchronize_session=False)
            session.commit()
        return deleted

    def _item_to_model(self, item: ContentItem) -> ContentItemModel:
        sentiment, sentiment_score = item.sentiment, item.sentiment_score
        if sentiment is None:
            result = analyze_sentiment(item.title, item.description)
            sentiment, sentiment_score = result.sentiment.value, result.score
        return ContentItemModel(
            id=item.id,
            source_id=item.source_id,
            title=item.title,
            description=item.description,
            url=item.url,
            image_url=item.image_url,
            author=item.author,
            tags=json.dumps(item.tags) if item.tags else None,
            engagement_type=item.engagement.kind if item.engagement else None,
            engagement=json.dumps(item.engagement.to_dict()) if item.engagement else None,
            sentiment=sentiment,
            sentiment_score=sentiment_score,
            published_at=_naive_utc(item.published_at),
            fetched_at=_naive_utc(item.fetched_at),
        )

    def _model_to_item(self, model: ContentItemModel) -> ContentItem:
        """Convert database model to ContentItem."""
        engagement = None
        if model.engagement:
            engagement = engagement_from_dict(model.engagement_type, json.loads(model.engagement))
        return ContentItem(
            id=model.id,
            source_id=model.source_id,
            title=model.title,
            description=model.description,
            url=model.url,
            image_url=model.image_url,
            author=model.author,
            tags=json.loads(model.tags) if model.tags else [],
            engagement=engagement,
            sentiment=model.sentiment,
            sentiment_score=model.sentiment_score,
            published_at=ensure_utc(model.published_at),
            fetched_at=ensure_utc(model.fetched_at),
        )

    # === Source health ===

    def get_source_health(self) -> Dict[str, SourceHealthRecord]:
        with self._session("get_source_health") as session:
            rows = session.query(SourceHealthModel).all()
            return {
                row.source_id: SourceHealthRecord(
                    last_fetch_at=ensure_utc(row.last_fetch_at),
                    last_success_at=ensure_utc(row.last_success_at),
                    last_item_count=row.last_item_count or 0,
                    consecutive_failures=row.consecutive_failures or 0,
                    last_error=row.last_error,
                )
                for row in rows
            }

    def update_source_health(self, health: Dict[str, SourceHealthRecord]) -> None:
        """Overwrite the stored record of every source in the map."""
        with self._session("update_source_health") as session:
            for source_id, record in health.items():
                session.merge(SourceHealthModel(
                    source_id=source_id,
                    last_fetch_at=_naive_utc(record.last_fetch_at),
                    last_success_at=_naive_utc(record.last_success_at),
                    last_item_count=record.last_item_count,
                    consecutive_failures=record.consecutive_failures,
                    last_error=record.last_error,
                ))
            session.commit()
        logger.debug("source_health_updated", sources=len(health))

    # === Settings ===

    def get_setting(self, key: str, default: Any = None) -> Any:
        with self._session("get_setting") as session:
            row = session.get(SettingModel, key)
            return json.loads(row.value) if row else default

    def update_setting(self, key: str, value: Any) -> None:
        with self._session("update_setting") as session:
            session.merge(SettingModel(key=key, value=json.dumps(value)))
            session.commit()

    def get_enabled_source_ids(self, sources: Iterable[SourceConfig]) -> List[str]:
        """Catalogue defaults overridden by stored enable/disable flags."""
        sources = list(sources)
        overrides = self._source_states([s.id for s in sources])
        enabled = []
        for source in sources:
            state = overrides.get(source.id)
            flag = state.enabled if state is not None and state.enabled is not None else source.enabled
            if flag:
                enabled.append(source.id)
        return enabled

    def set_source_enabled(self, source_id: str, enabled: bool) -> None:
        with self._session("set_source_enabled") as session:
            state = session.get(SourceStateModel, source_id)
            if state is None:
                state = SourceStateModel(id=source_id)
                session.add(state)
            state.enabled = enabled
            session.commit()
        logger.info("source_toggled", source=source_id, enabled=enabled)

    def get_all_source_priorities(self, sources: Iterable[SourceConfig]) -> Dict[str, int]:
        sources = list(sources)
        overrides = self._source_states([s.id for s in sources])
        priorities = {}
        for source in sources:
            state = overrides.get(source.id)
            priorities[source.id] = (
                state.priority if state is not None and state.priority is not None
                else source.default_priority
            )
        return priorities

    def set_source_priority(self, source_id: str, priority: int) -> None:
        if not 1 <= priority <= 5:
            raise ValueError(f"Priority must be between 1 and 5, got {priority}")
        with self._session("set_source_priority") as session:
            state = session.get(SourceStateModel, source_id)
            if state is None:
                state = SourceStateModel(id=source_id)
                session.add(state)
            state.priority = priority
            session.commit()
        logger.info("source_priority_set", source=source_id, priority=priority)

    def get_boost_keywords(self) -> List[str]:
        return self.get_setting(BOOST_KEYWORDS_KEY, [])

    def set_boost_keywords(self, keywords: List[str]) -> None:
        self.update_setting(BOOST_KEYWORDS_KEY, [k.strip() for k in keywords if k.strip()])

    def _source_states(self, source_ids: List[str]) -> Dict[str, SourceStateModel]:
        with self._session("get_source_states") as session:
            rows = session.query(SourceStateModel)\
                .filter(SourceStateModel.id.in_(source_ids))\
                .all()
            return {row.id: row for row in rows}

    # === Engagement snapshots ===

    def record_engagement_snapshots(self, items: List[ContentItem], now: datetime = None) -> int:
        """Store one snapshot per item carrying metrics, with velocity vs the previous one."""
        with_metrics = [i for i in items if i.engagement is not None]
        if not with_metrics:
            return 0
        now = ensure_utc(now or utc_now())
        window_start = _naive_utc(now - SNAPSHOT_LOOKBACK)

        with self._session("record_engagement_snapshots") as session:
            latest: Dict[str, EngagementSnapshotModel] = {}
            for chunk in _chunks([i.id for i in with_metrics]):
                previous = session.query(EngagementSnapshotModel)\
                    .filter(EngagementSnapshotModel.content_id.in_(chunk))\
                    .filter(EngagementSnapshotModel.snapshot_at >= window_start)\
                    .order_by(EngagementSnapshotModel.snapshot_at.desc())\
                    .all()
                for snap in previous:
                    latest.setdefault(snap.content_id, snap)

            for item in with_metrics:
                current = item.engagement.primary_metric()
                velocity = 0.0
                previous = latest.get(item.id)
                if previous is not None:
                    hours = (now - ensure_utc(previous.snapshot_at)).total_seconds() / 3600
                    if hours >= MIN_VELOCITY_INTERVAL_HOURS:
                        velocity = (current - (previous.primary_value or 0.0)) / hours
                    else:
                        velocity = previous.velocity or 0.0

                session.add(EngagementSnapshotModel(
                    content_id=item.id,
                    snapshot_at=_naive_utc(now),
                    metrics=json.dumps(item.engagement.to_dict()),
                    primary_value=current,
                    velocity=velocity,
                ))
            session.commit()

        return len(with_metrics)

    def get_bulk_velocities(self, item_ids: List[str], now: datetime = None) -> Dict[str, float]:
        """Velocity of the most recent snapshot per item within the last 24h."""
        if not item_ids:
            return {}
        window_start = _naive_utc((now or utc_now()) - VELOCITY_LOOKBACK)

        velocities: Dict[str, float] = {}
        with self._session("get_bulk_velocities") as session:
            for chunk in _chunks(list(item_ids)):
                rows = session.query(EngagementSnapshotModel.content_id, EngagementSnapshotModel.velocity)\
                    .filter(EngagementSnapshotModel.content_id.in_(chunk))\
                    .filter(EngagementSnapshotModel.snapshot_at >= window_start)\
                    .order_by(EngagementSnapshotModel.snapshot_at.desc(), EngagementSnapshotModel.id.desc())\
                    .all()
                for row in rows:
                    velocities.setdefault(row.content_id, row.velocity or 0.0)
        return velocities

    def cleanup_old_snapshots(self, days_to_keep: int = None) -> int:
        days_to_keep = days_to_keep or settings.snapshot_retention_days
        cutoff = _naive_utc(utc_now() - timedelta(days=days_to_keep))
        with self._session("cleanup_old_snapshots") as session:
            deleted = session.query(EngagementSnapshotModel)\
                .filter(EngagementSnapshotModel.snapshot_at < cutoff)\
                .delete(synchronize_session=False)
            session.commit()
        return deleted
