"""Pytest configuration and shared fixtures."""

import asyncio
import os
import tempfile
from datetime import datetime, timedelta, timezone

import pytest

from trendfeed.config.sources import SourceCatalog
from trendfeed.ingestion.interfaces import (
    ContentItem, FetchMethod, SourceAdapter, SourceCategory, SourceConfig,
    create_content_id,
)
from trendfeed.storage.database import ContentStorage


NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeAdapter(SourceAdapter):
    """Adapter returning canned items, an error, or hanging past the timeout."""

    def __init__(self, source, items=None, error=None, delay=0.0):
        super().__init__(source)
        self.items = items or []
        self.error = error
        self.delay = delay
        self.calls = 0

    async def fetch(self, time_range=None):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.items)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def temp_db():
    """Provide a temporary database file."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name
    yield f"sqlite:///{db_path}"
    # Cleanup
    try:
        os.unlink(db_path)
    except FileNotFoundError:
        pass


@pytest.fixture
def storage(temp_db):
    return ContentStorage(temp_db)


@pytest.fixture
def sample_sources():
    """A small catalogue: two feeds, one community source and one keyed API source."""
    return [
        SourceConfig(
            id="openai-blog", name="OpenAI Blog", category=SourceCategory.AI_LABS,
            url="https://openai.com/blog", feed_url="https://openai.com/blog/rss.xml",
            default_priority=5,
        ),
        SourceConfig(
            id="verge-ai", name="The Verge AI", category=SourceCategory.NEWS,
            url="https://www.theverge.com/ai-artificial-intelligence",
            feed_url="https://www.theverge.com/rss/ai-artificial-intelligence/index.xml",
        ),
        SourceConfig(
            id="reddit-ml", name="r/MachineLearning", category=SourceCategory.COMMUNITY,
            url="https://www.reddit.com/r/MachineLearning", method=FetchMethod.API,
            engagement_type="reddit",
        ),
        SourceConfig(
            id="youtube", name="YouTube", category=SourceCategory.SOCIAL,
            url="https://www.youtube.com", method=FetchMethod.API,
            requires_key=True, api_key_env_var="TRENDFEED_TEST_YOUTUBE_KEY",
            engagement_type="youtube",
        ),
    ]


@pytest.fixture
def sample_catalog(sample_sources):
    return SourceCatalog(sample_sources)


@pytest.fixture
def make_item():
    """Factory for ContentItems published a given number of hours before `now`."""
    def _make(source_id="openai-blog", key="post-1", hours_ago=1.0, engagement=None, now=NOW, **kwargs):
        published_at = now - timedelta(hours=hours_ago)
        return ContentItem(
            id=create_content_id(source_id, key),
            source_id=source_id,
            title=kwargs.pop("title", f"{source_id} {key}"),
            url=kwargs.pop("url", f"https://example.com/{source_id}/{key}"),
            published_at=published_at,
            fetched_at=kwargs.pop("fetched_at", now),
            engagement=engagement,
            **kwargs,
        )
    return _make


@pytest.fixture
def fake_adapter_cls():
    return FakeAdapter
