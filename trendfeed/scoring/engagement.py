"""Source-specific engagement normalization.

Each metric-bearing source type declares which counters matter, how much each
one weighs, and two thresholds per counter: a "baseline" (respectable) and a
"viral" (outlier) value. Raw counters are mapped through a piecewise scale so
that scores are comparable between items of the same source type:

    [0, baseline]      -> [0.0, 0.4]   linear
    (baseline, viral]  -> (0.4, 0.8]   linear
    > viral            -> (0.8, 1.0)   square-root taper, never reaching 1.0

Feeds without engagement data (plain RSS) fall back to a per-source quality
baseline so they are not buried below metric-bearing content.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..ingestion.interfaces import EngagementMetrics


# Score bands of the piecewise scale
BASELINE_BAND = 0.4
VIRAL_BAND = 0.8


class SourceQualityTier:
    """Baseline engagement for sources without metrics."""
    OFFICIAL = 0.55   # Official labs, primary announcements
    NEWS = 0.45       # Established journalism, peer-reviewed
    QUALITY = 0.35    # Expert blogs, newsletters, dev platforms
    OTHER = 0.25      # Unimplemented scrapers, leaderboards


SOURCE_QUALITY_MAP: Dict[str, float] = {
    # Official AI labs
    "openai-blog": SourceQualityTier.OFFICIAL,
    "anthropic-blog": SourceQualityTier.OFFICIAL,
    "google-ai-blog": SourceQualityTier.OFFICIAL,
    "deepmind-blog": SourceQualityTier.OFFICIAL,
    "meta-ai-blog": SourceQualityTier.OFFICIAL,
    "microsoft-ai": SourceQualityTier.OFFICIAL,
    "nvidia-ai": SourceQualityTier.OFFICIAL,
    "mistral-ai": SourceQualityTier.OFFICIAL,
    "cohere-blog": SourceQualityTier.OFFICIAL,
    "stability-ai": SourceQualityTier.OFFICIAL,
    "aws-ai-blog": SourceQualityTier.OFFICIAL,
    "apple-ml": SourceQualityTier.OFFICIAL,

    # News and academic
    "verge-ai": SourceQualityTier.NEWS,
    "techcrunch-ai": SourceQualityTier.NEWS,
    "venturebeat-ai": SourceQualityTier.NEWS,
    "mit-tech-review": SourceQualityTier.NEWS,
    "ars-technica-ai": SourceQualityTier.NEWS,
    "wired-ai": SourceQualityTier.NEWS,
    "arxiv-cs-ai": SourceQualityTier.NEWS,
    "arxiv-cs-cl": SourceQualityTier.NEWS,
    "papers-with-code": SourceQualityTier.NEWS,

    # Blogs and newsletters
    "langchain-blog": SourceQualityTier.QUALITY,
    "llamaindex-blog": SourceQualityTier.QUALITY,
    "wandb-blog": SourceQualityTier.QUALITY,
    "import-ai": SourceQualityTier.QUALITY,
    "the-batch": SourceQualityTier.QUALITY,
    "latent-space": SourceQualityTier.QUALITY,
    "simon-willison": SourceQualityTier.QUALITY,
    "ahead-of-ai": SourceQualityTier.QUALITY,
    "interconnects": SourceQualityTier.QUALITY,

    # Leaderboards and unimplemented scrapers
    "lmsys-arena": SourceQualityTier.OTHER,
    "open-llm-leaderboard": SourceQualityTier.OTHER,
    "artificial-analysis": SourceQualityTier.OTHER,
}


def get_source_quality_baseline(source_id: str) -> float:
    """Tier baseline for a source, QUALITY for unknown sources."""
    return SOURCE_QUALITY_MAP.get(source_id, SourceQualityTier.QUALITY)


@dataclass(frozen=True)
class MetricConfig:
    name: str
    weight: float      # weights of one source type sum to 1
    baseline: float    # "good" threshold
    viral: float       # outlier threshold


@dataclass(frozen=True)
class QualityRatioConfig:
    numerator: str
    denominator: str
    ideal_ratio: float
    weight: float      # maximum multiplicative bonus


@dataclass(frozen=True)
class SourceEngagementConfig:
    source_type: str
    metrics: List[MetricConfig] = field(default_factory=list)
    quality_ratio: Optional[QualityRatioConfig] = None


ENGAGEMENT_CONFIGS: Dict[str, SourceEngagementConfig] = {
    "youtube": SourceEngagementConfig(
        source_type="youtube",
        metrics=[
            MetricConfig("views", 0.40, baseline=10_000, viral=1_000_000),
            MetricConfig("likes", 0.35, baseline=500, viral=50_000),
            MetricConfig("comments", 0.25, baseline=50, viral=5_000),
        ],
        quality_ratio=QualityRatioConfig("likes", "views", ideal_ratio=0.04, weight=0.2),
    ),
    "github": SourceEngagementConfig(
        source_type="github",
        metrics=[
            MetricConfig("stars", 0.60, baseline=100, viral=10_000),
            MetricConfig("forks", 0.40, baseline=20, viral=1_000),
        ],
        quality_ratio=QualityRatioConfig("forks", "stars", ideal_ratio=0.10, weight=0.15),
    ),
    "reddit": SourceEngagementConfig(
        source_type="reddit",
        metrics=[
            MetricConfig("upvotes", 0.60, baseline=100, viral=5_000),
            MetricConfig("comments", 0.40, baseline=20, viral=500),
        ],
        quality_ratio=QualityRatioConfig("comments", "upvotes", ideal_ratio=0.15, weight=0.15),
    ),
    "hackernews": SourceEngagementConfig(
        source_type="hackernews",
        metrics=[
            MetricConfig("upvotes", 0.50, baseline=50, viral=500),
            MetricConfig("comments", 0.50, baseline=30, viral=300),
        ],
        quality_ratio=QualityRatioConfig("comments", "upvotes", ideal_ratio=0.50, weight=0.1),
    ),
    "huggingface": SourceEngagementConfig(
        source_type="huggingface",
        metrics=[
            MetricConfig("downloads", 0.50, baseline=1_000, viral=100_000),
            MetricConfig("likes", 0.50, baseline=50, viral=5_000),
        ],
        quality_ratio=QualityRatioConfig("likes", "downloads", ideal_ratio=0.01, weight=0.15),
    ),
    "medium": SourceEngagementConfig(
        source_type="medium",
        metrics=[
            MetricConfig("claps", 0.70, baseline=100, viral=5_000),
            MetricConfig("responses", 0.30, baseline=5, viral=100),
        ],
    ),
    "rss": SourceEngagementConfig(source_type="rss"),
}


def get_source_engagement_type(source_id: str) -> str:
    """Map a source id to its engagement type. Feeds default to "rss"."""
    if source_id == "youtube":
        return "youtube"
    if source_id == "github-trending":
        return "github"
    if source_id == "hackernews":
        return "hackernews"
    if source_id == "huggingface":
        return "huggingface"
    if source_id.startswith("reddit-"):
        return "reddit"
    if source_id.startswith("medium-"):
        return "medium"
    return "rss"


def get_engagement_config(engagement_type: str) -> SourceEngagementConfig:
    return ENGAGEMENT_CONFIGS.get(engagement_type, ENGAGEMENT_CONFIGS["rss"])


def scale_metric(value: float, baseline: float, viral: float) -> float:
    """Piecewise scale of one raw counter into [0, 1)."""
    if value <= 0:
        return 0.0
    if value <= baseline:
        return BASELINE_BAND * value / baseline
    if value <= viral:
        return BASELINE_BAND + (VIRAL_BAND - BASELINE_BAND) * (value - baseline) / (viral - baseline)
    return VIRAL_BAND + (1.0 - VIRAL_BAND) * (1.0 - math.sqrt(viral / value))


def _quality_ratio_multiplier(
    ratio: Optional[QualityRatioConfig],
    engagement: EngagementMetrics,
) -> float:
    if ratio is None:
        return 1.0
    numerator = engagement.get(ratio.numerator) or 0
    denominator = engagement.get(ratio.denominator) or 0
    if numerator <= 0 or denominator <= 0:
        return 1.0
    actual = numerator / denominator
    return 1.0 + min(actual / ratio.ideal_ratio, 1.0) * ratio.weight


def calculate_engagement_score(
    source_id: str,
    engagement: Optional[EngagementMetrics],
    engagement_type: str = None,
) -> float:
    """Absolute engagement score in [0, 1].

    Returns the source quality baseline when the source type has no metrics
    or the item carries none.
    """
    config = get_engagement_config(engagement_type or get_source_engagement_type(source_id))

    if not config.metrics or engagement is None or engagement.is_empty():
        return get_source_quality_baseline(source_id)

    score = 0.0
    for metric in config.metrics:
        value = engagement.get(metric.name)
        if not value:
            continue
        score += scale_metric(value, metric.baseline, metric.viral) * metric.weight

    score *= _quality_ratio_multiplier(config.quality_ratio, engagement)
    return max(0.0, min(1.0, score))
