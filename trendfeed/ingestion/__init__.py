"""Content ingestion - item model and source adapters."""

from .interfaces import (
    ContentItem, SourceConfig, SourceCategory, FetchMethod, TimeRange,
    EngagementMetrics, SourceHealthRecord, SourceAdapter, StorageInterface,
    create_content_id, deduplicate_items, engagement_from_dict,
)
from .adapters import RSSAdapter, AdapterRegistry

__all__ = [
    "ContentItem", "SourceConfig", "SourceCategory", "FetchMethod", "TimeRange",
    "EngagementMetrics", "SourceHealthRecord", "SourceAdapter", "StorageInterface",
    "create_content_id", "deduplicate_items", "engagement_from_dict",
    "RSSAdapter", "AdapterRegistry",
]
