"""Source catalogue loader and freshness windows."""

import json
from datetime import timedelta
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from ..errors import UnknownSourceError
from ..ingestion.interfaces import FetchMethod, SourceCategory, SourceConfig
from ..scoring.engagement import get_source_engagement_type
from .settings import settings


def load_sources(config_path: str = None) -> List[SourceConfig]:
    """Load source configurations from JSON file."""
    if config_path is None:
        config_path = settings.config_dir / "sources.json"

    with open(config_path, encoding="utf-8") as f:
        data = json.load(f)

    default_priority = data.get("settings", {}).get("default_priority", 3)

    sources = []
    for source_data in data.get("sources", []):
        source_id = source_data["id"]
        sources.append(SourceConfig(
            id=source_id,
            name=source_data.get("name", source_id),
            category=SourceCategory(source_data["category"]),
            url=source_data.get("url", ""),
            method=FetchMethod(source_data.get("method", "rss")),
            feed_url=source_data.get("feed_url"),
            requires_key=source_data.get("requires_key", False),
            api_key_env_var=source_data.get("api_key_env_var"),
            default_priority=source_data.get("default_priority", default_priority),
            enabled=source_data.get("enabled", True),
            icon=source_data.get("icon", ""),
            engagement_type=source_data.get(
                "engagement_type", get_source_engagement_type(source_id)
            ),
        ))

    return sources


def freshness_window(category: SourceCategory) -> timedelta:
    """How long a fetch of a source in this category stays fresh."""
    seconds = {
        SourceCategory.COMMUNITY: settings.freshness_community_seconds,
        SourceCategory.SOCIAL: settings.freshness_social_seconds,
        SourceCategory.NEWS: settings.freshness_news_seconds,
        SourceCategory.AI_LABS: settings.freshness_ai_labs_seconds,
        SourceCategory.DEV_PLATFORMS: settings.freshness_dev_platforms_seconds,
        SourceCategory.NEWSLETTERS: settings.freshness_newsletters_seconds,
        SourceCategory.LEADERBOARDS: settings.freshness_leaderboards_seconds,
    }[category]
    return timedelta(seconds=seconds)


class SourceCatalog:
    """Lookup over the configured sources."""

    def __init__(self, sources: Iterable[SourceConfig] = None):
        if sources is None:
            sources = load_sources()
        self._sources: Dict[str, SourceConfig] = {s.id: s for s in sources}

    def __iter__(self):
        return iter(self._sources.values())

    def __len__(self) -> int:
        return len(self._sources)

    def __contains__(self, source_id: str) -> bool:
        return source_id in self._sources

    def get(self, source_id: str) -> Optional[SourceConfig]:
        return self._sources.get(source_id)

    def require(self, source_id: str) -> SourceConfig:
        source = self._sources.get(source_id)
        if source is None:
            raise UnknownSourceError(f"Unknown source: {source_id}")
        return source

    def filter(
        self,
        enabled_ids: Iterable[str],
        category: SourceCategory = None,
        source_id: str = None,
    ) -> List[SourceConfig]:
        """Enabled sources, optionally narrowed to one category or one id."""
        enabled = set(enabled_ids)
        result = [s for s in self._sources.values() if s.id in enabled]
        if category is not None:
            result = [s for s in result if s.category == category]
        if source_id is not None:
            result = [s for s in result if s.id == source_id]
        return result

    def categories_by_source(self) -> Dict[str, SourceCategory]:
        return {s.id: s.category for s in self._sources.values()}

    def engagement_types_by_source(self) -> Dict[str, str]:
        return {s.id: s.engagement_type for s in self._sources.values()}
