"""Scoring - engagement normalization, trending score, feed modes and sentiment."""

from .engagement import calculate_engagement_score, get_source_quality_baseline, scale_metric
from .trending import ScoringConfig, ScoringWeights, score_and_sort_items, normalize_across_categories
from .feed_modes import FeedMode, score_items_by_feed_mode
from .sentiment import analyze_sentiment

__all__ = [
    "calculate_engagement_score", "get_source_quality_baseline", "scale_metric",
    "ScoringConfig", "ScoringWeights", "score_and_sort_items", "normalize_across_categories",
    "FeedMode", "score_items_by_feed_mode",
    "analyze_sentiment",
]
