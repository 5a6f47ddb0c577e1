"""Elo rating system for location comparisons.

This module implements the Elo rating system commonly used in chess and other
competitive games, adapted for head-to-head votes between locations.

Each side of a vote uses its own K-factor, chosen from that side's own
comparison count, so a fresh location moves faster than an established one.
As a consequence the two deltas of one vote are only equal and opposite when
both sides sit in the same K bracket.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel

from ..models import DEFAULT_RATING, EloResult, Outcome
from .rounding import round_int

if TYPE_CHECKING:
    from ..config import Config


class KSchedule(BaseModel):
    """Comparison-count thresholds mapped to K-factors.

    Attributes:
        new: K while comparisons < ``new_below``.
        new_below: Upper bound (exclusive) of the "new" bracket.
        mid: K while comparisons < ``mid_below``.
        mid_below: Upper bound (exclusive) of the "mid" bracket.
        stable: K for everything else.
    """

    new: int = 64
    new_below: int = 10
    mid: int = 48
    mid_below: int = 30
    stable: int = 32

    @classmethod
    def from_config(cls, config: Config) -> KSchedule:
        return cls(
            new=config.k_new,
            new_below=config.k_new_below,
            mid=config.k_mid,
            mid_below=config.k_mid_below,
            stable=config.k_stable,
        )

    def k_for(self, comparisons: int) -> int:
        if comparisons < self.new_below:
            return self.new
        elif comparisons < self.mid_below:
            return self.mid
        else:
            return self.stable


DEFAULT_SCHEDULE = KSchedule()


class ELO:
    """Elo rating system for location rankings.

    Example:
        ```python
        # Two fresh locations at 1200, A wins
        result = ELO.update(1200, 1200, 0, 0, Outcome.A)
        # result.delta_a == 32, result.delta_b == -32
        # result.new_rating_a == 1232, result.new_rating_b == 1168
        ```
    """

    DEFAULT_RATING = DEFAULT_RATING

    @staticmethod
    def expected_score(rating_a: float, rating_b: float) -> float:
        """Calculate expected score for A against B.

        The expected score is the probability of A winning given the rating
        gap. A 400 point gap predicts roughly 91% for the stronger side.

        Args:
            rating_a: Elo rating of A.
            rating_b: Elo rating of B.

        Returns:
            Expected score between 0 and 1.

        Example:
            ```python
            ELO.expected_score(1200, 1200)  # 0.5
            ELO.expected_score(1600, 1200)  # ~0.91
            ```
        """
        return 1 / (1 + 10 ** ((rating_b - rating_a) / 400))

    @staticmethod
    def k_factor(comparisons: int, schedule: KSchedule | None = None) -> int:
        """K-factor for a location with ``comparisons`` prior votes.

        Defaults: fewer than 10 → 64, fewer than 30 → 48, otherwise 32.
        """
        return (schedule or DEFAULT_SCHEDULE).k_for(comparisons)

    @staticmethod
    def update(
        rating_a: float,
        rating_b: float,
        comparisons_a: int,
        comparisons_b: int,
        outcome: Outcome,
        schedule: KSchedule | None = None,
    ) -> EloResult:
        """Compute new ratings after one vote.

        Deltas are rounded once, to the nearest integer, and then added to
        the stored float ratings. Ratings are not clamped.

        Args:
            rating_a: Current rating of A.
            rating_b: Current rating of B.
            comparisons_a: Prior comparisons of A (selects A's K).
            comparisons_b: Prior comparisons of B (selects B's K).
            outcome: Vote outcome from A's point of view.
            schedule: Optional K schedule; the default is used otherwise.

        Returns:
            EloResult with new ratings and integer deltas.
        """
        expected_a = ELO.expected_score(rating_a, rating_b)
        expected_b = ELO.expected_score(rating_b, rating_a)

        k_a = ELO.k_factor(comparisons_a, schedule)
        k_b = ELO.k_factor(comparisons_b, schedule)

        delta_a = round_int(k_a * (outcome.score_a() - expected_a))
        delta_b = round_int(k_b * (outcome.score_b() - expected_b))

        return EloResult(
            new_rating_a=rating_a + delta_a,
            new_rating_b=rating_b + delta_b,
            delta_a=delta_a,
            delta_b=delta_b,
        )

    @staticmethod
    def pair_score(
        rating_a: float,
        rating_b: float,
        comparisons_a: int,
        comparisons_b: int,
    ) -> float:
        """Score a candidate pair for prioritization (lower is better).

        Close ratings make the outcome uncertain and so more informative;
        fewer comparisons mean the pair needs more data.
        """
        return abs(rating_a - rating_b) + (comparisons_a + comparisons_b) / 2 * 5
