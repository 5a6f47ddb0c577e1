"""Tests for review aggregation."""

import pytest

from bathroom_arena import CostBucket, Location, Metric, ReviewAggregator, TimePeriod
from conftest import make_review


@pytest.fixture
def aggregator() -> ReviewAggregator:
    return ReviewAggregator()


class TestAverage:
    """Tests for per-metric averages."""

    def test_no_reviews(self) -> None:
        """No reviews means no average, not zero."""
        assert ReviewAggregator.average([], Metric.OVERALL) is None

    def test_one_decimal(self) -> None:
        """Averages are rounded to one decimal."""
        reviews = [make_review("loc", overall=1), make_review("loc", overall=2), make_review("loc", overall=2)]
        assert ReviewAggregator.average(reviews, Metric.OVERALL) == 1.7

    def test_half_rounds_up(self) -> None:
        """2.25 rounds to 2.3."""
        reviews = [
            make_review("loc", cleanliness=2),
            make_review("loc", cleanliness=2),
            make_review("loc", cleanliness=2),
            make_review("loc", cleanliness=3),
        ]
        assert ReviewAggregator.average(reviews, Metric.CLEANLINESS) == 2.3

    def test_each_metric(self) -> None:
        """Every metric reads its own field."""
        review = make_review("loc", overall=9, cleanliness=1, smell=2, supplies=4, privacy=5)
        assert ReviewAggregator.average([review], Metric.OVERALL) == 9
        assert ReviewAggregator.average([review], Metric.CLEANLINESS) == 1
        assert ReviewAggregator.average([review], Metric.SMELL) == 2
        assert ReviewAggregator.average([review], Metric.SUPPLIES) == 4
        assert ReviewAggregator.average([review], Metric.PRIVACY) == 5


class TestModeCost:
    """Tests for the modal cost bucket."""

    def test_no_reviews(self) -> None:
        assert ReviewAggregator.mode_cost([]) is None

    def test_clear_majority(self) -> None:
        """[1, 1, 2] -> 1."""
        reviews = [make_review("loc", cost=c) for c in (1, 1, 2)]
        assert ReviewAggregator.mode_cost(reviews) == 1

    def test_tie_keeps_first_bucket_scanned(self) -> None:
        """[2, 1, 1, 2] in that order -> 2.

        Buckets are scanned in order of first appearance (2 then 1); bucket 1
        only equals bucket 2's count, so it never replaces it.
        """
        reviews = [make_review("loc", cost=c) for c in (2, 1, 1, 2)]
        assert ReviewAggregator.mode_cost(reviews) == 2

    def test_tie_order_matters(self) -> None:
        """[1, 2, 2, 1] -> 1."""
        reviews = [make_review("loc", cost=c) for c in (1, 2, 2, 1)]
        assert ReviewAggregator.mode_cost(reviews) == 1

    def test_default_cost_is_free(self) -> None:
        reviews = [make_review("loc")]
        assert ReviewAggregator.mode_cost(reviews) == CostBucket.FREE


class TestCrowdByPeriod:
    """Tests for the time-of-day crowd profile."""

    @pytest.mark.parametrize(
        "hour,period",
        [
            (0, TimePeriod.NIGHT),
            (5, TimePeriod.NIGHT),
            (6, TimePeriod.MORNING),
            (11, TimePeriod.MORNING),
            (12, TimePeriod.AFTERNOON),
            (17, TimePeriod.AFTERNOON),
            (18, TimePeriod.EVENING),
            (23, TimePeriod.EVENING),
        ],
    )
    def test_period_boundaries(self, hour: int, period: TimePeriod) -> None:
        """Hours fall into [0,6), [6,12), [12,18), [18,24)."""
        crowd = ReviewAggregator.crowd_by_period([make_review("loc", hour=hour, crowdedness=4)])
        assert crowd.get(period).count == 1
        assert crowd.get(period).avg == 4
        assert crowd.populated_periods() == 1

    def test_empty_buckets(self) -> None:
        """Buckets without reviews report no average."""
        crowd = ReviewAggregator.crowd_by_period([make_review("loc", hour=8)])
        assert crowd.night.avg is None
        assert crowd.night.count == 0

    def test_average_per_bucket(self) -> None:
        reviews = [
            make_review("loc", hour=8, crowdedness=1),
            make_review("loc", hour=9, crowdedness=2),
            make_review("loc", hour=19, crowdedness=5),
        ]
        crowd = ReviewAggregator.crowd_by_period(reviews)
        assert crowd.morning.avg == 1.5
        assert crowd.morning.count == 2
        assert crowd.evening.avg == 5


class TestCrowdThreshold:
    """Tests for the crowd sufficiency gate."""

    def test_two_morning_reviews(self, aggregator: ReviewAggregator) -> None:
        """Two reviews in one bucket are not enough."""
        reviews = [make_review("loc", hour=8), make_review("loc", hour=10)]
        assert aggregator.aggregate(reviews).crowd_threshold_met is False

    def test_three_reviews_two_buckets(self, aggregator: ReviewAggregator) -> None:
        """Three reviews across morning and evening are enough."""
        reviews = [make_review("loc", hour=8), make_review("loc", hour=10), make_review("loc", hour=20)]
        assert aggregator.aggregate(reviews).crowd_threshold_met is True

    def test_three_reviews_one_bucket(self, aggregator: ReviewAggregator) -> None:
        """Volume alone does not make a trend."""
        reviews = [make_review("loc", hour=h) for h in (7, 8, 9)]
        assert aggregator.aggregate(reviews).crowd_threshold_met is False

    def test_custom_thresholds(self) -> None:
        aggregator = ReviewAggregator(min_reviews=1, min_periods=1)
        assert aggregator.aggregate([make_review("loc")]).crowd_threshold_met is True


class TestAggregate:
    """Tests for the full statistics bundle."""

    def test_empty(self, aggregator: ReviewAggregator) -> None:
        stats = aggregator.aggregate([])
        assert stats.review_count == 0
        assert stats.avg_overall is None
        assert stats.mode_cost is None
        assert stats.crowd_threshold_met is False

    def test_bundle(self, aggregator: ReviewAggregator) -> None:
        reviews = [
            make_review("loc", overall=8, cost=1, hour=8),
            make_review("loc", overall=6, cost=1, hour=13),
            make_review("loc", overall=7, cost=3, hour=20),
        ]
        stats = aggregator.aggregate(reviews)
        assert stats.review_count == 3
        assert stats.avg_overall == 7
        assert stats.avg_smell == 3
        assert stats.mode_cost == 1
        assert stats.crowd_by_period.populated_periods() == 3
        assert stats.crowd_threshold_met is True


class TestLocationFigures:
    """Tests for win rate and summaries."""

    def test_win_rate_counts_ties_as_half(self) -> None:
        location = Location(name="x", comparisons=5, wins=3, losses=1, ties=1)
        assert ReviewAggregator.win_rate(location) == 70

    def test_win_rate_without_comparisons(self) -> None:
        assert ReviewAggregator.win_rate(Location(name="x")) is None

    def test_summary_rounds_rating(self, aggregator: ReviewAggregator) -> None:
        location = Location(id="loc", name="Cafe", elo_rating=1232.5, comparisons=1, wins=1)
        summary = aggregator.summarize(location, [make_review("loc", overall=4)])
        assert summary.elo_rating == 1233
        assert summary.review_count == 1
        assert summary.avg_overall == 4
        assert summary.wins == 1
