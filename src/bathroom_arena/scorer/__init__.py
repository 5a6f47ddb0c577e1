"""Scoring module for Bathroom Arena.

This module provides the Elo rating system for head-to-head votes and the
aggregator that turns reviews into descriptive statistics.

Components:
    - ELO: Elo expected score, K schedule, update rule and pair scoring
    - KSchedule: Comparison-count thresholds mapped to K-factors
    - ReviewAggregator: Averages, modal cost and crowd profile from reviews
    - BadgeAwarder: Achievement badges from one user's reviews

Example:
    ```python
    from bathroom_arena.scorer import ELO, ReviewAggregator
    from bathroom_arena.models import Outcome

    result = ELO.update(1200, 1200, 0, 0, Outcome.A)
    stats = ReviewAggregator().aggregate(reviews)
    ```
"""

from .aggregator import ReviewAggregator
from .badges import BadgeAwarder
from .elo import ELO, KSchedule
from .rounding import round_half_up, round_int

__all__ = [
    "BadgeAwarder",
    "ELO",
    "KSchedule",
    "ReviewAggregator",
    "round_half_up",
    "round_int",
]
