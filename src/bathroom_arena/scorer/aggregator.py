"""Descriptive statistics for a location's reviews.

This module provides the ReviewAggregator which turns the reviews attached
to one location into the numbers shown on detail pages and leaderboards:
per-metric averages, the modal cost bucket and a time-of-day crowd profile
guarded by a sufficiency gate. Everything is recomputed from the reviews on
each call; nothing is cached.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from ..models import (
    CrowdBucket,
    CrowdByPeriod,
    Location,
    LocationSummary,
    Metric,
    Review,
    ReviewStats,
    TimePeriod,
)
from .rounding import round_half_up, round_int

if TYPE_CHECKING:
    from ..config import Config


def _mean_1dp(values: Sequence[float]) -> float | None:
    if not values:
        return None
    return round_half_up(sum(values) / len(values), 1)


class ReviewAggregator:
    """Calculates aggregate statistics from a location's reviews.

    Example:
        ```python
        stats = ReviewAggregator().aggregate(reviews)
        print(stats.avg_overall, stats.mode_cost)
        if stats.crowd_threshold_met:
            print(stats.crowd_by_period.morning.avg)
        ```
    """

    def __init__(self, min_reviews: int = 3, min_periods: int = 2):
        """Initialize the aggregator.

        Args:
            min_reviews: Reviews required before the crowd profile is shown.
            min_periods: Populated time bands required as well.
        """
        self.min_reviews = min_reviews
        self.min_periods = min_periods

    @classmethod
    def from_config(cls, config: Config) -> ReviewAggregator:
        return cls(min_reviews=config.crowd_min_reviews, min_periods=config.crowd_min_periods)

    @staticmethod
    def average(reviews: Sequence[Review], metric: Metric) -> float | None:
        """Mean of one metric rounded to one decimal, or None without reviews."""
        return _mean_1dp([metric.value_of(r) for r in reviews])

    @staticmethod
    def mode_cost(reviews: Sequence[Review]) -> int | None:
        """Most frequently reported cost bucket.

        Buckets are scanned in the order they first appear among the reviews
        and the best bucket is only replaced on a strictly greater count, so
        on a tie the earliest bucket keeps it. ``[2, 1, 1, 2]`` yields 2.

        Returns:
            The cost bucket value (0-3), or None without reviews.
        """
        counts: dict[int, int] = {}
        order: list[int] = []
        for review in reviews:
            cost = int(review.cost)
            if cost not in counts:
                counts[cost] = 0
                order.append(cost)
            counts[cost] += 1

        best_value: int | None = None
        best_count = 0
        for cost in order:
            if counts[cost] > best_count:
                best_value = cost
                best_count = counts[cost]
        return best_value

    @staticmethod
    def crowd_by_period(reviews: Sequence[Review]) -> CrowdByPeriod:
        """Average crowdedness per time-of-day band.

        The band comes from the hour of ``visited_at`` as stored; no timezone
        conversion is applied.
        """
        buckets: dict[TimePeriod, list[int]] = {period: [] for period in TimePeriod}
        for review in reviews:
            buckets[TimePeriod.from_hour(review.visited_at.hour)].append(review.crowdedness)

        return CrowdByPeriod(
            **{
                period.value: CrowdBucket(avg=_mean_1dp(values), count=len(values))
                for period, values in buckets.items()
            }
        )

    def crowd_threshold_met(self, review_count: int, crowd: CrowdByPeriod) -> bool:
        """Whether the crowd profile has enough spread to be displayed.

        A single report must not look like a time-of-day trend, so both a
        minimum number of reviews and a minimum number of populated bands
        are required.
        """
        return review_count >= self.min_reviews and crowd.populated_periods() >= self.min_periods

    def aggregate(self, reviews: Sequence[Review]) -> ReviewStats:
        """Compute every statistic for one location's reviews.

        Args:
            reviews: Reviews of a single location, in stored order.

        Returns:
            ReviewStats with averages, modal cost and crowd profile.
        """
        crowd = self.crowd_by_period(reviews)
        return ReviewStats(
            review_count=len(reviews),
            avg_overall=self.average(reviews, Metric.OVERALL),
            avg_cleanliness=self.average(reviews, Metric.CLEANLINESS),
            avg_smell=self.average(reviews, Metric.SMELL),
            avg_supplies=self.average(reviews, Metric.SUPPLIES),
            avg_privacy=self.average(reviews, Metric.PRIVACY),
            mode_cost=self.mode_cost(reviews),
            crowd_by_period=crowd,
            crowd_threshold_met=self.crowd_threshold_met(len(reviews), crowd),
        )

    @staticmethod
    def win_rate(location: Location) -> int | None:
        """Percentage of points won, counting ties as half a win."""
        if location.comparisons == 0:
            return None
        return round_int((location.wins + location.ties * 0.5) / location.comparisons * 100)

    def summarize(self, location: Location, reviews: Sequence[Review]) -> LocationSummary:
        """Build the card shown for a location in pairs and listings."""
        return LocationSummary(
            id=location.id,
            name=location.name,
            address=location.address,
            category=location.category,
            elo_rating=round_int(location.elo_rating),
            comparisons=location.comparisons,
            wins=location.wins,
            losses=location.losses,
            ties=location.ties,
            review_count=len(reviews),
            avg_overall=self.average(reviews, Metric.OVERALL),
            avg_cleanliness=self.average(reviews, Metric.CLEANLINESS),
            avg_smell=self.average(reviews, Metric.SMELL),
            avg_supplies=self.average(reviews, Metric.SUPPLIES),
            avg_privacy=self.average(reviews, Metric.PRIVACY),
        )
