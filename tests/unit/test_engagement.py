"""Unit tests for engagement normalization."""

import pytest

from trendfeed.ingestion.interfaces import (
    GitHubEngagement, MediumEngagement, RedditEngagement, YouTubeEngagement,
)
from trendfeed.scoring.engagement import (
    ENGAGEMENT_CONFIGS, SourceQualityTier, calculate_engagement_score,
    get_engagement_config, get_source_engagement_type, get_source_quality_baseline,
    scale_metric,
)


class TestScaleMetric:
    """Tests for the piecewise counter scale."""

    def test_zero_and_negative(self):
        assert scale_metric(0, 100, 10_000) == 0.0
        assert scale_metric(-5, 100, 10_000) == 0.0

    def test_baseline_band(self):
        assert scale_metric(50, 100, 10_000) == pytest.approx(0.2)
        assert scale_metric(100, 100, 10_000) == pytest.approx(0.4)

    def test_viral_band(self):
        assert scale_metric(10_000, 100, 10_000) == pytest.approx(0.8)
        mid = scale_metric(500_000, 10_000, 1_000_000)
        assert 0.4 < mid < 0.8

    def test_above_viral_never_reaches_one(self):
        assert 0.8 < scale_metric(40_000, 100, 10_000) < 1.0
        assert scale_metric(10 ** 12, 100, 10_000) < 1.0

    def test_monotonic(self):
        values = [1, 10, 99, 100, 101, 5_000, 10_000, 10_001, 100_000, 10 ** 8]
        scaled = [scale_metric(v, 100, 10_000) for v in values]
        assert scaled == sorted(scaled)
        assert len(set(scaled)) == len(scaled)


class TestSourceTypes:
    """Tests for source type lookups."""

    def test_engagement_type_mapping(self):
        assert get_source_engagement_type("youtube") == "youtube"
        assert get_source_engagement_type("github-trending") == "github"
        assert get_source_engagement_type("reddit-localllama") == "reddit"
        assert get_source_engagement_type("hackernews") == "hackernews"
        assert get_source_engagement_type("medium-ai") == "medium"
        assert get_source_engagement_type("openai-blog") == "rss"

    def test_unknown_type_falls_back_to_rss(self):
        assert get_engagement_config("nonexistent").source_type == "rss"

    def test_metric_weights_sum_to_one(self):
        for config in ENGAGEMENT_CONFIGS.values():
            if config.metrics:
                assert sum(m.weight for m in config.metrics) == pytest.approx(1.0)

    def test_quality_baselines(self):
        assert get_source_quality_baseline("openai-blog") == SourceQualityTier.OFFICIAL
        assert get_source_quality_baseline("verge-ai") == SourceQualityTier.NEWS
        assert get_source_quality_baseline("lmsys-arena") == SourceQualityTier.OTHER
        assert get_source_quality_baseline("some-new-blog") == SourceQualityTier.QUALITY


class TestCalculateEngagementScore:
    """Tests for the absolute engagement score."""

    def test_plain_feed_gets_quality_baseline(self):
        assert calculate_engagement_score("openai-blog", None) == pytest.approx(0.55)
        assert calculate_engagement_score("verge-ai", None) == pytest.approx(0.45)

    def test_metric_source_without_metrics_gets_baseline(self):
        assert calculate_engagement_score("reddit-ml", None) == pytest.approx(0.35)
        assert calculate_engagement_score("reddit-ml", RedditEngagement()) == pytest.approx(0.35)

    def test_single_metric_weighted(self):
        """Views alone contribute their scaled value times the views weight."""
        score = calculate_engagement_score("youtube", YouTubeEngagement(views=500_000))
        expected = scale_metric(500_000, 10_000, 1_000_000) * 0.40
        assert score == pytest.approx(expected)

    def test_quality_ratio_bonus(self):
        """Likes/views ratio multiplies the score when both counters are present."""
        without_ratio = calculate_engagement_score("youtube", YouTubeEngagement(views=100_000))
        with_likes = calculate_engagement_score("youtube", YouTubeEngagement(views=100_000, likes=4_000))
        likes_only = scale_metric(4_000, 500, 50_000) * 0.35
        assert with_likes > without_ratio + likes_only

    def test_score_clamped(self):
        huge = GitHubEngagement(stars=10 ** 9, forks=10 ** 9)
        assert 0.0 <= calculate_engagement_score("github-trending", huge) <= 1.0

    def test_monotonic_in_counter(self):
        scores = [
            calculate_engagement_score("reddit-ml", RedditEngagement(upvotes=n, comments=10))
            for n in (1, 50, 100, 1_000, 5_000, 50_000)
        ]
        assert scores == sorted(scores)

    def test_engagement_type_override(self):
        """An explicit type wins over the id-derived one."""
        score = calculate_engagement_score("my-claps-feed", MediumEngagement(claps=100), "medium")
        assert score == pytest.approx(0.4 * 0.70)
