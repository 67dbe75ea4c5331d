"""Feed-mode scoring profiles (Hot / Rising / Top)."""

import math
from datetime import datetime
from enum import Enum
from typing import Dict, List

from ..ingestion.interfaces import ContentItem, utc_now
from .engagement import calculate_engagement_score, get_source_engagement_type
from .trending import percentile_ranks, recency_score


RISING_TOP_QUINTILE = 0.8
RISING_POPULAR_PENALTY = 0.6


class FeedMode(Enum):
    HOT = "hot"          # high engagement + recent
    RISING = "rising"    # gaining momentum fast
    TOP = "top"          # highest engagement


def normalize_velocity(velocity: float) -> float:
    """log10 scale: 10/h ~ 0.26, 100/h ~ 0.5, 1000/h ~ 0.75, saturating near 10k/h."""
    if velocity <= 0:
        return 0.0
    return min(1.0, math.log10(velocity + 1) / 4)


def hot_score(engagement: float, recency: float, velocity: float) -> float:
    return (engagement * 0.50 + recency * 0.30 + normalize_velocity(velocity) * 0.20) * 100


def rising_score(engagement: float, recency: float, velocity: float, engagement_percentile: float) -> float:
    penalty = RISING_POPULAR_PENALTY if engagement_percentile > RISING_TOP_QUINTILE else 1.0
    return (normalize_velocity(velocity) * 0.70 + recency * 0.20 + engagement * 0.10) * penalty * 100


def top_score(engagement: float) -> float:
    return engagement * 100


def score_items_by_feed_mode(
    items: List[ContentItem],
    velocities: Dict[str, float],
    mode: FeedMode,
    now: datetime = None,
    engagement_types: Dict[str, str] = None,
    half_life_hours: float = 24.0,
) -> List[ContentItem]:
    """Score items in place for the given mode, return them sorted descending."""
    now = now or utc_now()
    engagement_types = engagement_types or {}

    absolute = {
        item.id: calculate_engagement_score(
            item.source_id,
            item.engagement,
            engagement_types.get(item.source_id) or get_source_engagement_type(item.source_id),
        )
        for item in items
    }
    percentiles = percentile_ranks(absolute.items()) if absolute else {}

    for item in items:
        velocity = velocities.get(item.id, 0.0) or 0.0
        engagement = absolute[item.id]

        if mode is FeedMode.TOP:
            score = top_score(engagement)
        else:
            recency = recency_score(item.published_at, now, half_life_hours)
            if mode is FeedMode.RISING:
                score = rising_score(engagement, recency, velocity, percentiles.get(item.id, 0.0))
            else:
                score = hot_score(engagement, recency, velocity)

        item.trending_score = round(max(0.0, min(100.0, score)), 1)
        item.velocity_score = velocity

    return sorted(items, key=lambda i: (-(i.trending_score or 0.0), -absolute[i.id]))
