"""Unit tests for the trending score engine."""

import math
from datetime import timedelta

import pytest

from trendfeed.ingestion.interfaces import RedditEngagement, YouTubeEngagement
from trendfeed.scoring.trending import (
    ScoringConfig, ScoringWeights, blended_engagement, calculate_trending_score,
    dampen_percentile, keyword_boost, normalize_across_categories, percentile_ranks,
    priority_score, recency_score, score_and_sort_items, score_label,
)


def default_config(**kwargs):
    kwargs.setdefault("weights", ScoringWeights())
    kwargs.setdefault("half_life_hours", 24.0)
    return ScoringConfig(**kwargs)


class TestSignals:
    """Tests for the individual score signals."""

    def test_priority_linearized(self):
        assert priority_score(1) == 0.0
        assert priority_score(3) == 0.5
        assert priority_score(5) == 1.0

    def test_priority_clamped(self):
        assert priority_score(0) == 0.0
        assert priority_score(9) == 1.0

    def test_recency_decay(self, now):
        assert recency_score(now, now) == pytest.approx(1.0)
        assert recency_score(now - timedelta(hours=1), now) == pytest.approx(0.96, abs=0.005)
        assert recency_score(now - timedelta(hours=24), now) == pytest.approx(math.exp(-1))

    def test_recency_future_dates_score_one(self, now):
        assert recency_score(now + timedelta(hours=3), now) == 1.0

    def test_keyword_boost(self, make_item):
        item = make_item(title="New GPT model released", tags=["agents"])
        score, matched = keyword_boost(item, ["gpt", "agents", "robotics", "vision"])
        assert matched == ["gpt", "agents"]
        assert score == 1.0

    def test_keyword_boost_partial(self, make_item):
        item = make_item(title="Robotics roundup")
        score, matched = keyword_boost(item, ["gpt", "agents", "robotics", "vision"])
        assert matched == ["robotics"]
        assert score == pytest.approx(0.5)

    def test_keyword_boost_without_keywords(self, make_item):
        assert keyword_boost(make_item(), []) == (0.0, [])


class TestPercentiles:
    """Tests for percentile ranking and dampening."""

    def test_single_item_gets_half(self):
        assert percentile_ranks([("a", 0.3)]) == {"a": 0.5}

    def test_ranks_spread_over_unit_interval(self):
        ranks = percentile_ranks([("c", 0.9), ("a", 0.1), ("b", 0.5)])
        assert ranks == {"a": 0.0, "b": 0.5, "c": 1.0}

    def test_ranks_are_permutation_of_expected_values(self):
        pairs = [(str(i), v) for i, v in enumerate([0.4, 0.2, 0.8, 0.6, 0.1])]
        ranks = percentile_ranks(pairs)
        assert sorted(ranks.values()) == [0.0, 0.25, 0.5, 0.75, 1.0]

    def test_dampening_below_floor(self):
        assert dampen_percentile(1.0, 0.075) == pytest.approx(0.5)
        assert dampen_percentile(1.0, 0.0) == 0.0

    def test_no_dampening_above_floor(self):
        assert dampen_percentile(0.8, 0.15) == 0.8
        assert dampen_percentile(0.8, 0.6) == 0.8

    def test_blend(self):
        assert blended_engagement(0.4, None) == 0.4
        assert blended_engagement(0.4, 1.0) == pytest.approx(0.7 + 0.3 * 0.4)


class TestCalculateTrendingScore:
    """Tests for single-item scoring."""

    def test_plain_feed_item(self, make_item, now):
        """Default priority, baseline engagement, one hour old, no keywords."""
        item = make_item("openai-blog", hours_ago=1)
        score, matched = calculate_trending_score(item, default_config(), now)

        expected = (0.5 * 0.15 + 0.55 * 0.50 + math.exp(-1 / 24) * 0.25) * 100
        assert score == pytest.approx(expected, abs=0.01)
        assert matched == []

    def test_configured_priority_used(self, make_item, now):
        item = make_item("openai-blog")
        low, _ = calculate_trending_score(item, default_config(priorities={"openai-blog": 1}), now)
        high, _ = calculate_trending_score(item, default_config(priorities={"openai-blog": 5}), now)
        assert high - low == pytest.approx(15.0, abs=0.01)

    def test_score_bounds(self, make_item, now):
        weights = ScoringWeights(priority=10, engagement=10, recency=10, keyword=10)
        item = make_item("openai-blog", title="gpt", hours_ago=0)
        score, _ = calculate_trending_score(
            item, default_config(weights=weights, boost_keywords=["gpt"], priorities={"openai-blog": 5}), now
        )
        assert score == 100.0

    def test_rounded_to_two_decimals(self, make_item, now):
        score, _ = calculate_trending_score(make_item(hours_ago=7.3), default_config(), now)
        assert score == round(score, 2)


class TestScoreAndSort:
    """Tests for batch scoring."""

    def test_feed_item_outranks_mid_video(self, make_item, now):
        """Official feed item beats a YouTube video with views between baseline and viral."""
        feed = make_item("openai-blog", key="a", hours_ago=1)
        video = make_item(
            "youtube", key="b", hours_ago=1,
            engagement=YouTubeEngagement(views=500_000),
        )
        config = default_config(engagement_types={"youtube": "youtube"})

        ranked = score_and_sort_items([video, feed], config, now)

        assert [i.id for i in ranked] == [feed.id, video.id]
        assert feed.trending_score == pytest.approx(57.23, abs=0.01)
        assert video.trending_score == pytest.approx(52.57, abs=0.01)

    def test_percentiles_grouped_by_source_type(self, make_item, now):
        """Each type's best item gets the top percentile regardless of the other type."""
        reddit = [
            make_item("reddit-ml", key=str(n), engagement=RedditEngagement(upvotes=n))
            for n in (200, 2_000)
        ]
        videos = [
            make_item("youtube", key=str(n), engagement=YouTubeEngagement(views=n))
            for n in (20_000, 2_000_000)
        ]
        config = default_config(engagement_types={"reddit-ml": "reddit", "youtube": "youtube"})

        ranked = score_and_sort_items(reddit + videos, config, now)
        assert len(ranked) == 4
        assert all(0.0 <= i.trending_score <= 100.0 for i in ranked)
        assert ranked[0].id in (reddit[1].id, videos[1].id)

    def test_ties_broken_by_absolute_engagement(self, make_item, now):
        weights = ScoringWeights(priority=0.5, engagement=0.0, recency=0.5, keyword=0.0)
        low = make_item("reddit-ml", key="low", engagement=RedditEngagement(upvotes=10))
        high = make_item("reddit-ml", key="high", engagement=RedditEngagement(upvotes=1_000))

        ranked = score_and_sort_items([low, high], default_config(weights=weights), now)

        assert low.trending_score == high.trending_score
        assert [i.id for i in ranked] == [high.id, low.id]

    def test_matched_keywords_attached(self, make_item, now):
        item = make_item(title="Claude agents update")
        score_and_sort_items([item], default_config(boost_keywords=["agents"]), now)
        assert item.matched_keywords == ["agents"]

    def test_empty_input(self, now):
        assert score_and_sort_items([], default_config(), now) == []


class TestNormalizeAcrossCategories:
    """Tests for per-category rescaling."""

    def _scored(self, make_item, source_id, scores):
        items = []
        for n, score in enumerate(scores):
            item = make_item(source_id, key=str(n))
            item.trending_score = score
            items.append(item)
        return items

    def test_small_category_untouched(self, make_item):
        items = self._scored(make_item, "verge-ai", [20.0, 70.0])
        normalize_across_categories(items, {"verge-ai": "news"})
        assert [i.trending_score for i in items] == [20.0, 70.0]

    def test_rescaled_into_band(self, make_item):
        items = self._scored(make_item, "openai-blog", [10.0, 50.0, 90.0])
        normalize_across_categories(items, {"openai-blog": "ai-labs"})
        assert [i.trending_score for i in items] == pytest.approx([14.0, 50.0, 86.0])

    def test_flat_category_goes_to_midpoint(self, make_item):
        items = self._scored(make_item, "openai-blog", [30.0, 30.0, 30.0])
        normalize_across_categories(items, {"openai-blog": "ai-labs"})
        assert [i.trending_score for i in items] == pytest.approx([46.0, 46.0, 46.0])

    def test_categories_independent(self, make_item):
        labs = self._scored(make_item, "openai-blog", [10.0, 20.0, 30.0])
        news = self._scored(make_item, "verge-ai", [80.0])
        normalize_across_categories(labs + news, {"openai-blog": "ai-labs", "verge-ai": "news"})
        assert news[0].trending_score == 80.0
        assert labs[0].trending_score == pytest.approx(0.8 * 15 + 0.2 * 10)


class TestScoreLabel:

    def test_labels(self):
        assert score_label(85) == "Hot"
        assert score_label(65) == "Trending"
        assert score_label(45) == "Notable"
        assert score_label(25) == "Normal"
        assert score_label(5) == "Low"
