"""Trending score engine.

Blends four signals into a 0-100 score:

* source priority (1-5, linearized to 0-1)
* engagement, blended with the item's percentile rank inside its source type
* recency, exponential decay from publication time
* keyword boost for configured keywords
"""

import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Hashable, Iterable, List, Optional, Tuple

from ..config.settings import settings
from ..ingestion.interfaces import ContentItem, utc_now, ensure_utc
from .engagement import calculate_engagement_score, get_source_engagement_type


PERCENTILE_WEIGHT = 0.7
LOW_ENGAGEMENT_FLOOR = 0.15
SINGLE_ITEM_PERCENTILE = 0.5

CATEGORY_MIN_ITEMS = 3
CATEGORY_SCORE_FLOOR = 15.0
CATEGORY_SCORE_CEILING = 85.0
CATEGORY_RESCALED_WEIGHT = 0.8


@dataclass
class ScoringWeights:
    priority: float = 0.15
    engagement: float = 0.50
    recency: float = 0.25
    keyword: float = 0.10

    @classmethod
    def from_settings(cls) -> "ScoringWeights":
        return cls(
            priority=settings.weight_priority,
            engagement=settings.weight_engagement,
            recency=settings.weight_recency,
            keyword=settings.weight_keyword,
        )


@dataclass
class ScoringConfig:
    """Inputs of one scoring pass."""
    priorities: Dict[str, int] = field(default_factory=dict)
    boost_keywords: List[str] = field(default_factory=list)
    weights: ScoringWeights = field(default_factory=ScoringWeights.from_settings)
    engagement_types: Dict[str, str] = field(default_factory=dict)
    default_priority: int = 3
    half_life_hours: float = field(default_factory=lambda: settings.recency_half_life_hours)

    def engagement_type(self, source_id: str) -> str:
        return self.engagement_types.get(source_id) or get_source_engagement_type(source_id)


def priority_score(priority: int) -> float:
    """Linearize a 1-5 priority to 0-1."""
    priority = max(1, min(5, priority))
    return (priority - 1) / 4


def recency_score(published_at: datetime, now: datetime = None, half_life_hours: float = 24.0) -> float:
    """Exponential decay e^(-age/half_life); future dates score 1."""
    now = now or utc_now()
    age_hours = (now - ensure_utc(published_at)).total_seconds() / 3600
    return math.exp(-max(0.0, age_hours) / half_life_hours)


def keyword_boost(item: ContentItem, keywords: List[str]) -> Tuple[float, List[str]]:
    """Case-insensitive substring match over title, description and tags."""
    if not keywords:
        return 0.0, []

    text = " ".join([item.title or "", item.description or "", " ".join(item.tags)]).lower()
    matched = [kw for kw in keywords if kw and kw.lower() in text]

    score = min(1.0, len(matched) / len(keywords) * 2)
    return score, matched


def percentile_ranks(scored: Iterable[Tuple[Hashable, float]]) -> Dict[Hashable, float]:
    """rank/(n-1) by ascending score; a single entry gets 0.5."""
    ordered = sorted(scored, key=lambda pair: pair[1])
    n = len(ordered)
    if n == 1:
        return {ordered[0][0]: SINGLE_ITEM_PERCENTILE}
    return {key: rank / (n - 1) for rank, (key, _) in enumerate(ordered)}


def engagement_percentiles(
    items: List[ContentItem],
    absolute_scores: Dict[str, float],
    config: ScoringConfig,
) -> Dict[str, float]:
    """Percentile of each item within its source-type group."""
    groups: Dict[str, List[Tuple[str, float]]] = defaultdict(list)
    for item in items:
        groups[config.engagement_type(item.source_id)].append((item.id, absolute_scores[item.id]))

    percentiles: Dict[str, float] = {}
    for members in groups.values():
        percentiles.update(percentile_ranks(members))
    return percentiles


def dampen_percentile(percentile: float, absolute: float) -> float:
    """Scale the rank down for items below the engagement floor."""
    if absolute < LOW_ENGAGEMENT_FLOOR:
        return percentile * (absolute / LOW_ENGAGEMENT_FLOOR)
    return percentile


def blended_engagement(absolute: float, percentile: Optional[float]) -> float:
    if percentile is None:
        return absolute
    return PERCENTILE_WEIGHT * dampen_percentile(percentile, absolute) + (1 - PERCENTILE_WEIGHT) * absolute


def calculate_trending_score(
    item: ContentItem,
    config: ScoringConfig,
    now: datetime = None,
    absolute_engagement: float = None,
    percentile: float = None,
) -> Tuple[float, List[str]]:
    """Score one item on a 0-100 scale. Returns (score, matched keywords)."""
    weights = config.weights

    if absolute_engagement is None:
        absolute_engagement = calculate_engagement_score(
            item.source_id, item.engagement, config.engagement_type(item.source_id)
        )

    priority = config.priorities.get(item.source_id, config.default_priority)
    kw_score, matched = keyword_boost(item, config.boost_keywords)

    combined = (
        priority_score(priority) * weights.priority
        + blended_engagement(absolute_engagement, percentile) * weights.engagement
        + recency_score(item.published_at, now, config.half_life_hours) * weights.recency
        + kw_score * weights.keyword
    )

    score = max(0.0, min(100.0, combined * 100))
    return round(score, 2), matched


def normalize_across_categories(
    items: List[ContentItem],
    categories: Dict[str, Hashable],
) -> List[ContentItem]:
    """Rescale scores per content category so no category dominates.

    Categories with at least three items are min-max rescaled into [15, 85]
    and blended 80/20 with the original score. Smaller categories are left
    untouched.
    """
    groups: Dict[Hashable, List[ContentItem]] = defaultdict(list)
    for item in items:
        groups[categories.get(item.source_id)].append(item)

    for members in groups.values():
        if len(members) < CATEGORY_MIN_ITEMS:
            continue

        scores = [m.trending_score or 0.0 for m in members]
        low, high = min(scores), max(scores)
        span = CATEGORY_SCORE_CEILING - CATEGORY_SCORE_FLOOR

        for member, original in zip(members, scores):
            if high > low:
                rescaled = CATEGORY_SCORE_FLOOR + (original - low) / (high - low) * span
            else:
                rescaled = CATEGORY_SCORE_FLOOR + span / 2
            blended = CATEGORY_RESCALED_WEIGHT * rescaled + (1 - CATEGORY_RESCALED_WEIGHT) * original
            member.trending_score = round(max(0.0, min(100.0, blended)), 2)

    return items


def score_and_sort_items(
    items: List[ContentItem],
    config: ScoringConfig,
    now: datetime = None,
    categories: Dict[str, Hashable] = None,
) -> List[ContentItem]:
    """Score items in place and return them sorted by score descending.

    Ties on the rounded score are broken by absolute engagement.
    """
    now = now or utc_now()

    absolute = {
        item.id: calculate_engagement_score(
            item.source_id, item.engagement, config.engagement_type(item.source_id)
        )
        for item in items
    }
    percentiles = engagement_percentiles(items, absolute, config)

    for item in items:
        score, matched = calculate_trending_score(
            item, config, now,
            absolute_engagement=absolute[item.id],
            percentile=percentiles.get(item.id),
        )
        item.trending_score = score
        item.matched_keywords = matched

    if categories is not None:
        normalize_across_categories(items, categories)

    return sorted(items, key=lambda i: (-(i.trending_score or 0.0), -absolute[i.id]))


def score_label(score: float) -> str:
    """Human-readable bucket for a trending score."""
    if score >= 80:
        return "Hot"
    if score >= 60:
        return "Trending"
    if score >= 40:
        return "Notable"
    if score >= 20:
        return "Normal"
    return "Low"
