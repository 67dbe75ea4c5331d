"""Interface definitions for content ingestion."""

import hashlib
from dataclasses import dataclass, field, fields, asdict
from datetime import datetime, timedelta, timezone
from typing import ClassVar, Dict, Iterable, List, Optional, Tuple, Type
from enum import Enum


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SourceCategory(Enum):
    """Closed set of source categories."""
    AI_LABS = "ai-labs"
    DEV_PLATFORMS = "dev-platforms"
    SOCIAL = "social"
    NEWS = "news"
    COMMUNITY = "community"
    NEWSLETTERS = "newsletters"
    LEADERBOARDS = "leaderboards"


class FetchMethod(Enum):
    """How a source is fetched."""
    RSS = "rss"
    API = "api"
    SCRAPE = "scrape"


class TimeRange(Enum):
    """Query window over publication time."""
    HOUR_1 = "1h"
    HOURS_12 = "12h"
    HOURS_24 = "24h"
    HOURS_48 = "48h"
    DAYS_7 = "7d"

    @property
    def delta(self) -> timedelta:
        return _TIME_RANGE_DELTAS[self]

    def cutoff(self, now: datetime = None) -> datetime:
        """Earliest publication time included in this range."""
        return (now or utc_now()) - self.delta


_TIME_RANGE_DELTAS = {
    TimeRange.HOUR_1: timedelta(hours=1),
    TimeRange.HOURS_12: timedelta(hours=12),
    TimeRange.HOURS_24: timedelta(hours=24),
    TimeRange.HOURS_48: timedelta(hours=48),
    TimeRange.DAYS_7: timedelta(days=7),
}


@dataclass(frozen=True)
class SourceConfig:
    """Static description of a feed."""
    id: str
    name: str
    category: SourceCategory
    url: str
    method: FetchMethod = FetchMethod.RSS
    feed_url: Optional[str] = None
    requires_key: bool = False
    api_key_env_var: Optional[str] = None
    default_priority: int = 3
    enabled: bool = True
    icon: str = ""
    engagement_type: str = "rss"


# --- Engagement metrics: one variant per metric-bearing source type ---

@dataclass
class EngagementMetrics:
    """Base for per-source-type engagement counters."""
    kind: ClassVar[str] = ""
    primary_fields: ClassVar[Tuple[str, ...]] = ()

    def get(self, name: str) -> Optional[float]:
        return getattr(self, name, None)

    def to_dict(self) -> Dict[str, float]:
        """Populated counters only."""
        return {k: v for k, v in asdict(self).items() if v is not None}

    def is_empty(self) -> bool:
        return all(v is None for v in asdict(self).values())

    def primary_metric(self) -> float:
        """Headline counter used for velocity tracking."""
        for name in self.primary_fields:
            value = getattr(self, name)
            if value:
                return float(value)
        return 0.0


@dataclass
class YouTubeEngagement(EngagementMetrics):
    kind: ClassVar[str] = "youtube"
    primary_fields: ClassVar[Tuple[str, ...]] = ("views", "likes")
    views: Optional[int] = None
    likes: Optional[int] = None
    comments: Optional[int] = None


@dataclass
class GitHubEngagement(EngagementMetrics):
    kind: ClassVar[str] = "github"
    primary_fields: ClassVar[Tuple[str, ...]] = ("stars",)
    stars: Optional[int] = None
    forks: Optional[int] = None


@dataclass
class RedditEngagement(EngagementMetrics):
    kind: ClassVar[str] = "reddit"
    primary_fields: ClassVar[Tuple[str, ...]] = ("upvotes",)
    upvotes: Optional[int] = None
    comments: Optional[int] = None


@dataclass
class HackerNewsEngagement(EngagementMetrics):
    kind: ClassVar[str] = "hackernews"
    primary_fields: ClassVar[Tuple[str, ...]] = ("upvotes",)
    upvotes: Optional[int] = None
    comments: Optional[int] = None


@dataclass
class HuggingFaceEngagement(EngagementMetrics):
    kind: ClassVar[str] = "huggingface"
    primary_fields: ClassVar[Tuple[str, ...]] = ("likes", "downloads")
    downloads: Optional[int] = None
    likes: Optional[int] = None


@dataclass
class MediumEngagement(EngagementMetrics):
    kind: ClassVar[str] = "medium"
    primary_fields: ClassVar[Tuple[str, ...]] = ("claps",)
    claps: Optional[int] = None
    responses: Optional[int] = None


ENGAGEMENT_VARIANTS: Dict[str, Type[EngagementMetrics]] = {
    cls.kind: cls
    for cls in (
        YouTubeEngagement, GitHubEngagement, RedditEngagement,
        HackerNewsEngagement, HuggingFaceEngagement, MediumEngagement,
    )
}


def engagement_from_dict(kind: str, data: Optional[dict]) -> Optional[EngagementMetrics]:
    """Rebuild an engagement variant from persisted counters.

    Unknown kinds (plain feeds) and empty payloads yield None. Counters that do
    not belong to the variant are ignored.
    """
    if not data:
        return None
    cls = ENGAGEMENT_VARIANTS.get(kind)
    if cls is None:
        return None
    names = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in data.items() if k in names})


@dataclass
class ContentItem:
    """A single piece of aggregated content."""
    id: str
    source_id: str
    title: str
    url: str
    published_at: datetime
    fetched_at: datetime = field(default_factory=utc_now)
    description: Optional[str] = None
    author: Optional[str] = None
    image_url: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    engagement: Optional[EngagementMetrics] = None
    sentiment: Optional[str] = None  # positive, neutral or negative
    sentiment_score: Optional[float] = None

    # Derived per request, never stored
    trending_score: Optional[float] = None
    velocity_score: Optional[float] = None
    matched_keywords: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to the JSON shape served by the query surface."""
        return {
            "id": self.id,
            "sourceId": self.source_id,
            "title": self.title,
            "description": self.description,
            "url": self.url,
            "imageUrl": self.image_url,
            "author": self.author,
            "tags": list(self.tags),
            "publishedAt": self.published_at.isoformat() if self.published_at else None,
            "fetchedAt": self.fetched_at.isoformat() if self.fetched_at else None,
            "engagement": self.engagement.to_dict() if self.engagement else None,
            "sentiment": self.sentiment,
            "sentimentScore": self.sentiment_score,
            "trendingScore": self.trending_score,
            "velocityScore": self.velocity_score,
            "matchedKeywords": list(self.matched_keywords) or None,
        }


@dataclass
class SourceHealthRecord:
    """Operational state of one source."""
    last_fetch_at: Optional[datetime] = None
    last_success_at: Optional[datetime] = None
    last_item_count: int = 0
    consecutive_failures: int = 0
    last_error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "last_fetch_at": self.last_fetch_at.isoformat() if self.last_fetch_at else None,
            "last_success_at": self.last_success_at.isoformat() if self.last_success_at else None,
            "last_item_count": self.last_item_count,
            "consecutive_failures": self.consecutive_failures,
            "last_error": self.last_error,
        }


def create_content_id(source_id: str, unique_identifier: str) -> str:
    """Stable content id: source prefix plus a 64-bit hash of the identifier."""
    digest = hashlib.sha256(f"{source_id}:{unique_identifier}".encode()).hexdigest()[:16]
    return f"{source_id}-{digest}"


def deduplicate_items(
    items: Iterable[ContentItem],
    existing_ids: Iterable[str] = (),
) -> List[ContentItem]:
    """Drop repeated ids. First occurrence wins; ids in existing_ids always win."""
    seen = set(existing_ids)
    unique = []
    for item in items:
        if item.id in seen:
            continue
        seen.add(item.id)
        unique.append(item)
    return unique


class SourceAdapter:
    """Interface for a per-source fetcher."""

    def __init__(self, source: SourceConfig):
        self.source = source

    async def fetch(self, time_range: Optional[TimeRange] = None) -> List[ContentItem]:
        """Fetch normalized items. May raise; must not write anywhere."""
        raise NotImplementedError


class StorageInterface:
    """Interface for the backing store."""

    def get_freshness(self, sources: List[SourceConfig], now: datetime = None) -> Tuple[List[str], List[str]]:
        """Split sources into (stale, fresh) ids."""
        raise NotImplementedError

    def update_last_fetched(self, source_ids: List[str], now: datetime = None) -> None:
        """Advance freshness timestamps."""
        raise NotImplementedError

    def get_existing_ids(self, item_ids: List[str]) -> set:
        """Ids already persisted."""
        raise NotImplementedError

    def cache_content(self, items: List[ContentItem]) -> int:
        """Persist new items, return count saved."""
        raise NotImplementedError

    def update_engagement(self, items: List[ContentItem]) -> int:
        """Refresh engagement counters of already persisted items."""
        raise NotImplementedError

    def get_cached_content_by_source_ids(
        self, source_ids: List[str], time_range: TimeRange, limit: int = None
    ) -> List[ContentItem]:
        """Items for the given sources published within the range."""
        raise NotImplementedError

    def get_source_health(self) -> Dict[str, SourceHealthRecord]:
        raise NotImplementedError

    def update_source_health(self, health: Dict[str, SourceHealthRecord]) -> None:
        raise NotImplementedError

    def record_engagement_snapshots(self, items: List[ContentItem], now: datetime = None) -> int:
        raise NotImplementedError

    def get_bulk_velocities(self, item_ids: List[str], now: datetime = None) -> Dict[str, float]:
        raise NotImplementedError
