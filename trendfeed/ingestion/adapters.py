"""Source adapters: RSS feed fetcher and adapter registry."""

import html
import os
import re
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

import aiohttp
import feedparser
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential
import structlog

from .interfaces import (
    ContentItem, FetchMethod, SourceAdapter, SourceConfig, TimeRange,
    create_content_id, utc_now,
)
from ..config.settings import settings

logger = structlog.get_logger()

MAX_DESCRIPTION_CHARS = 300

AdapterFactory = Callable[[SourceConfig], SourceAdapter]


def _is_retryable(exc: BaseException) -> bool:
    """Client errors (4xx) are final, everything else may be transient."""
    if isinstance(exc, aiohttp.ClientResponseError):
        return exc.status >= 500 or exc.status == 429
    return isinstance(exc, (aiohttp.ClientError, TimeoutError))


def clean_description(text: str) -> str:
    """Strip markup and collapse whitespace, truncated for display."""
    if not text:
        return ""
    cleaned = re.sub(r"<[^>]*>", "", text)
    cleaned = html.unescape(re.sub(r"\s+", " ", cleaned)).strip()
    if len(cleaned) > MAX_DESCRIPTION_CHARS:
        return cleaned[:MAX_DESCRIPTION_CHARS] + "..."
    return cleaned


def filter_by_time_range(
    items: List[ContentItem],
    time_range: Optional[TimeRange],
    now: datetime = None,
) -> List[ContentItem]:
    if time_range is None:
        return items
    cutoff = time_range.cutoff(now)
    return [i for i in items if i.published_at >= cutoff]


class RSSAdapter(SourceAdapter):
    """Async RSS/Atom adapter with retries."""

    def __init__(self, source: SourceConfig):
        super().__init__(source)
        self.feed_url = source.feed_url or source.url

    async def fetch(self, time_range: Optional[TimeRange] = None) -> List[ContentItem]:
        content = await self._download()
        feed = feedparser.parse(content)

        fetched_at = utc_now()
        items = []
        for entry in feed.entries:
            item = self._parse_entry(entry, fetched_at)
            if item:
                items.append(item)

        items = filter_by_time_range(items, time_range, fetched_at)
        logger.info("feed_fetched", source=self.source.id, items=len(items))
        return items

    @retry(
        stop=stop_after_attempt(settings.fetch_max_retries),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception(_is_retryable),
        reraise=True,
    )
    async def _download(self) -> str:
        async with aiohttp.ClientSession(
            headers={"User-Agent": settings.fetch_user_agent}
        ) as session:
            async with session.get(self.feed_url) as response:
                response.raise_for_status()
                return await response.text()

    def _parse_entry(self, entry, fetched_at: datetime) -> Optional[ContentItem]:
        """Parse a feed entry into a ContentItem."""
        url = getattr(entry, "link", None)
        if not url:
            return None

        # Parse date
        published_at = None
        for attr in ["published_parsed", "updated_parsed"]:
            parsed = getattr(entry, attr, None)
            if parsed:
                try:
                    published_at = datetime(*parsed[:6], tzinfo=timezone.utc)
                    break
                except (TypeError, ValueError):
                    pass

        tags = [t.get("term") for t in getattr(entry, "tags", []) if t.get("term")]

        image_url = None
        for media in getattr(entry, "media_thumbnail", []) or []:
            if media.get("url"):
                image_url = media["url"]
                break

        return ContentItem(
            id=create_content_id(self.source.id, getattr(entry, "id", None) or url),
            source_id=self.source.id,
            title=html.unescape(getattr(entry, "title", "")).strip(),
            url=url,
            description=clean_description(getattr(entry, "summary", "")) or None,
            author=getattr(entry, "author", None),
            image_url=image_url,
            tags=tags,
            published_at=published_at or fetched_at,
            fetched_at=fetched_at,
        )


class AdapterRegistry:
    """Resolves an adapter for a source, or None when the source is unsupported."""

    def __init__(self, method_factories: Dict[FetchMethod, AdapterFactory] = None):
        if method_factories is None:
            method_factories = {FetchMethod.RSS: RSSAdapter}
        self._by_method = dict(method_factories)
        self._by_source: Dict[str, AdapterFactory] = {}

    def register(self, source_id: str, factory: AdapterFactory) -> None:
        """Use a dedicated adapter for one source id."""
        self._by_source[source_id] = factory

    def create(self, source: SourceConfig) -> Optional[SourceAdapter]:
        factory = self._by_source.get(source.id)
        if factory is not None:
            return factory(source)

        if source.requires_key and not os.environ.get(source.api_key_env_var or ""):
            logger.debug("adapter_missing_key", source=source.id)
            return None

        factory = self._by_method.get(source.method)
        if factory is None:
            return None
        if source.method == FetchMethod.RSS and not (source.feed_url or source.url):
            return None
        return factory(source)
