"""Feed query service."""

from datetime import datetime, timedelta
from typing import Dict, List, Optional

import structlog

from ..cache.memory_cache import MemoryCache, feed_cache_key
from ..config.settings import settings
from ..config.sources import SourceCatalog
from ..errors import InvalidQueryError
from ..fetching.background import BackgroundTasks
from ..fetching.ensure_fresh import FreshnessCoordinator, FreshnessResult
from ..fetching.health import SourceHealthTracker
from ..fetching.refresh_progress import RefreshProgressTracker
from ..ingestion.adapters import AdapterRegistry
from ..ingestion.interfaces import ContentItem, SourceCategory, SourceConfig, TimeRange, ensure_utc, utc_now
from ..scoring.feed_modes import FeedMode, score_items_by_feed_mode
from ..scoring.trending import ScoringConfig, score_and_sort_items, score_label
from ..storage.database import ContentStorage

logger = structlog.get_logger()

TRENDING_CACHE_MODE = "trending"
DISCOVERY_CACHE_MODE = "discovery"
TIME_RANGE_SETTING = "timeRange"
LAST_CLEANUP_SETTING = "lastCleanupTime"


def parse_time_range(value: Optional[str]) -> Optional[TimeRange]:
    if value is None:
        return None
    try:
        return TimeRange(value)
    except ValueError:
        raise InvalidQueryError(f"Invalid timeRange: {value}", [t.value for t in TimeRange])


def parse_feed_mode(value: Optional[str]) -> FeedMode:
    if value is None:
        return FeedMode.HOT
    try:
        return FeedMode(value)
    except ValueError:
        raise InvalidQueryError(f"Invalid mode: {value}", [m.value for m in FeedMode])


def parse_category(value: Optional[str]) -> Optional[SourceCategory]:
    if value is None:
        return None
    try:
        return SourceCategory(value)
    except ValueError:
        raise InvalidQueryError(f"Invalid category: {value}", [c.value for c in SourceCategory])


# Discovery names social sources "social-blogs"
DISCOVERY_CATEGORY_ALIASES = {SourceCategory.SOCIAL: "social-blogs"}
DISCOVERY_CATEGORIES = [
    "news", "newsletters", "social-blogs", "ai-labs",
    "dev-platforms", "community", "leaderboards",
]
DISCOVERY_DEFAULT_LIMIT = 100


def discovery_category_name(category: SourceCategory) -> str:
    return DISCOVERY_CATEGORY_ALIASES.get(category, category.value)


def parse_discovery_categories(value: Optional[str]) -> List[str]:
    """Comma-separated discovery category names, all of which must be valid."""
    if not value:
        raise InvalidQueryError("Missing required parameter: categories", DISCOVERY_CATEGORIES)
    requested = [c.strip() for c in value.split(",")]
    invalid = [c for c in requested if c not in DISCOVERY_CATEGORIES]
    if invalid:
        raise InvalidQueryError(f"Invalid categories: {', '.join(invalid)}", DISCOVERY_CATEGORIES)
    return requested


def parse_required_time_range(value: Optional[str]) -> TimeRange:
    if not value:
        raise InvalidQueryError("Missing required parameter: timeRange", [t.value for t in TimeRange])
    return parse_time_range(value)


def _label(score: Optional[float]) -> Optional[str]:
    return score_label(score) if score is not None else None


class FeedService:
    """Answers feed queries from the store, refreshing stale sources first."""

    def __init__(
        self,
        storage: ContentStorage = None,
        catalog: SourceCatalog = None,
        adapters: AdapterRegistry = None,
        cache: MemoryCache = None,
        progress: RefreshProgressTracker = None,
        background: BackgroundTasks = None,
    ):
        self.storage = storage or ContentStorage()
        self.catalog = catalog or SourceCatalog()
        self.cache = cache or MemoryCache(settings.feed_cache_ttl_seconds, settings.feed_cache_max_size)
        self.progress = progress or RefreshProgressTracker()
        self.background = background or BackgroundTasks()
        self.health = SourceHealthTracker(self.storage)
        self.coordinator = FreshnessCoordinator(
            self.storage,
            adapters=adapters,
            progress=self.progress,
            health=self.health,
            background=self.background,
        )

    # === Queries ===

    def resolve_sources(
        self,
        category: SourceCategory = None,
        source_id: str = None,
    ) -> List[SourceConfig]:
        enabled_ids = self.storage.get_enabled_source_ids(self.catalog)
        return self.catalog.filter(enabled_ids, category=category, source_id=source_id)

    def _resolve_time_range(self, time_range: Optional[TimeRange]) -> TimeRange:
        if time_range is not None:
            return time_range
        return TimeRange(self.storage.get_setting(TIME_RANGE_SETTING, settings.default_time_range))

    async def get_feed(
        self,
        category: SourceCategory = None,
        source_id: str = None,
        time_range: TimeRange = None,
        mode: FeedMode = FeedMode.HOT,
        now: datetime = None,
    ) -> dict:
        """Ranked feed for the enabled sources matching the filters."""
        self.maybe_run_cleanup()

        time_range = self._resolve_time_range(time_range)
        targets = self.resolve_sources(category, source_id)
        target_ids = [s.id for s in targets]

        cache_key = feed_cache_key(target_ids, time_range, mode)
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        freshness = await self.coordinator.ensure_fresh(targets, time_range, now)
        items = self.storage.get_cached_content_by_source_ids(target_ids, time_range, now=now)

        if mode in (FeedMode.HOT, FeedMode.RISING):
            velocities = self.storage.get_bulk_velocities([i.id for i in items], now)
        else:
            velocities = {}

        scored = score_items_by_feed_mode(
            items,
            velocities,
            mode,
            now=now,
            engagement_types=self.catalog.engagement_types_by_source(),
            half_life_hours=settings.recency_half_life_hours,
        )

        response = self._build_response(scored, freshness, mode.value, now)
        self.cache.set(cache_key, response)
        return response

    async def get_trending(
        self,
        category: SourceCategory = None,
        source_id: str = None,
        time_range: TimeRange = None,
        normalize_categories: bool = True,
        now: datetime = None,
    ) -> dict:
        """Feed ranked by the trending score engine."""
        time_range = self._resolve_time_range(time_range)
        targets = self.resolve_sources(category, source_id)
        target_ids = [s.id for s in targets]

        mode_key = TRENDING_CACHE_MODE if normalize_categories else f"{TRENDING_CACHE_MODE}-raw"
        cache_key = feed_cache_key(target_ids, time_range, mode_key)
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        freshness = await self.coordinator.ensure_fresh(targets, time_range, now)
        items = self.storage.get_cached_content_by_source_ids(target_ids, time_range, now=now)

        config = ScoringConfig(
            priorities=self.storage.get_all_source_priorities(self.catalog),
            boost_keywords=self.storage.get_boost_keywords(),
            engagement_types=self.catalog.engagement_types_by_source(),
        )
        categories = self.catalog.categories_by_source() if normalize_categories else None
        scored = score_and_sort_items(items, config, now=now, categories=categories)

        response = self._build_response(scored, freshness, TRENDING_CACHE_MODE, now)
        self.cache.set(cache_key, response)
        return response

    async def get_discovery_items(
        self,
        categories: List[str],
        time_range: TimeRange,
        limit: int = DISCOVERY_DEFAULT_LIMIT,
        offset: int = 0,
        now: datetime = None,
    ) -> dict:
        """One page of trending items for the requested discovery categories.

        The full scored list is cached so later pages skip the refresh and rescoring.
        """
        limit = max(1, limit)
        offset = max(0, offset)
        wanted = set(categories)
        category_names = {
            source_id: discovery_category_name(category)
            for source_id, category in self.catalog.categories_by_source().items()
        }
        targets = [s for s in self.resolve_sources() if category_names[s.id] in wanted]
        target_ids = [s.id for s in targets]

        if not target_ids:
            scored = []
        else:
            cache_key = feed_cache_key(target_ids, time_range, DISCOVERY_CACHE_MODE)
            scored = self.cache.get(cache_key)
            if scored is None:
                await self.coordinator.ensure_fresh(targets, time_range, now)
                items = self.storage.get_cached_content_by_source_ids(target_ids, time_range, now=now)
                config = ScoringConfig(
                    priorities=self.storage.get_all_source_priorities(self.catalog),
                    boost_keywords=self.storage.get_boost_keywords(),
                    engagement_types=self.catalog.engagement_types_by_source(),
                )
                scored = score_and_sort_items(items, config, now=now)
                self.cache.set(cache_key, scored)

        counts = {name: 0 for name in categories}
        for item in scored:
            name = category_names.get(item.source_id)
            if name in counts:
                counts[name] += 1

        page = scored[offset:offset + limit]
        return {
            "meta": {
                "totalItems": len(scored),
                "returnedItems": len(page),
                "offset": offset,
                "limit": limit,
                "timeRange": time_range.value,
                "categories": counts,
            },
            "items": [self._discovery_item(item, category_names) for item in page],
        }

    def _discovery_item(self, item: ContentItem, category_names: Dict[str, str]) -> dict:
        source = self.catalog.get(item.source_id)
        return {
            "id": item.id,
            "title": item.title,
            "source": source.name if source else item.source_id,
            "summary": item.description,
            "url": item.url,
            "category": category_names.get(item.source_id, SourceCategory.NEWS.value),
            "tags": list(item.tags),
            "trendingScore": item.trending_score,
            "scoreLabel": _label(item.trending_score),
            "sentiment": item.sentiment,
            "publishedAt": item.published_at.isoformat(),
            "addedAt": item.fetched_at.isoformat() if item.fetched_at else None,
        }

    def _build_response(
        self,
        items: List[ContentItem],
        freshness: FreshnessResult,
        mode: str,
        now: Optional[datetime],
    ) -> dict:
        response = {
            "success": True,
            "count": len(items),
            "items": [dict(item.to_dict(), scoreLabel=_label(item.trending_score)) for item in items],
            "fetchedAt": (now or utc_now()).isoformat(),
            "cached": freshness.stale_count == 0,
            "mode": mode,
        }
        if freshness.failures:
            response["failures"] = [f.to_dict() for f in freshness.failures]
        return response

    # === Diagnostics ===

    def refresh_progress(self) -> dict:
        return self.progress.snapshot()

    def source_health(self) -> dict:
        health = self.storage.get_source_health()
        unhealthy = set(self.health.unhealthy_sources(health))
        return {
            source_id: {**record.to_dict(), "unhealthy": source_id in unhealthy}
            for source_id, record in health.items()
        }

    # === Settings mutations (invalidate computed feeds) ===

    def set_source_enabled(self, source_id: str, enabled: bool) -> None:
        self.catalog.require(source_id)
        self.storage.set_source_enabled(source_id, enabled)
        self.cache.clear()

    def set_source_priority(self, source_id: str, priority: int) -> None:
        self.catalog.require(source_id)
        self.storage.set_source_priority(source_id, priority)
        self.cache.clear()

    def set_boost_keywords(self, keywords: List[str]) -> None:
        self.storage.set_boost_keywords(keywords)
        self.cache.clear()

    # === Maintenance ===

    def maybe_run_cleanup(self, now: datetime = None) -> None:
        """Schedule retention cleanup at most once per cleanup interval."""
        self.background.spawn(self._cleanup_if_due(now), name="retention_cleanup")

    async def _cleanup_if_due(self, now: Optional[datetime]) -> None:
        now = now or utc_now()
        last = self.storage.get_setting(LAST_CLEANUP_SETTING)
        if last and now - ensure_utc(datetime.fromisoformat(last)) < timedelta(hours=settings.cleanup_interval_hours):
            return

        self.storage.update_setting(LAST_CLEANUP_SETTING, now.isoformat())
        content = self.storage.clean_old_content(settings.content_retention_days)
        snapshots = self.storage.cleanup_old_snapshots(settings.snapshot_retention_days)
        logger.info("retention_cleanup", content_removed=content, snapshots_removed=snapshots)
