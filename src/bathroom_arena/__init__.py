"""Bathroom Arena - Rank locations from reviews and head-to-head votes.

Users review places and vote on pairs; the package keeps an Elo rating per
location, picks the most informative next pair for each user, and
aggregates reviews into averages, a modal cost and a time-of-day crowd
profile.

Example:
    ```python
    from bathroom_arena import Arena, print_results

    arena = Arena()
    cafe = arena.add_location("Corner Cafe", category="restaurant")
    gas = arena.add_location("Shell on 5th", category="gas station")
    arena.submit_review("user_1", cafe.id, overall=8)
    arena.submit_review("user_1", gas.id, overall=3)

    pair = arena.get_pair("user_1")
    print_results(arena.vote("user_1", pair.a.id, pair.b.id, winner_id=pair.a.id))
    print_results(arena.leaderboard())
    ```
"""

try:
    from ._version import __version__
except ImportError:
    __version__ = "0.0.0"  # fallback for editable installs without build

from .arena import Arena
from .config import ArenaConfig, Config
from .exceptions import (
    BathroomArenaError,
    ConfigError,
    LocationNotFoundError,
    RankingValidationError,
    ReviewValidationError,
    StorageError,
    VoteValidationError,
)
from .matchmaker import PersonalSelector, SeedingSelector, get_selector
from .reporter import TextReporter, print_results
from .scorer import ELO, BadgeAwarder, KSchedule, ReviewAggregator
from .storage import RatingStore, SQLiteRatingStore
from .models import (
    Badge,
    Comparison,
    CostBucket,
    CrowdBucket,
    CrowdByPeriod,
    EloResult,
    LeaderboardEntry,
    Location,
    LocationDetail,
    LocationSummary,
    Metric,
    NotEnoughData,
    Outcome,
    Pair,
    PersonalRankingEntry,
    RankedLocation,
    Review,
    ReviewStats,
    TimePeriod,
    UserProfile,
    UserStats,
    VoteResult,
)

__all__ = [
    # Main entry point
    "Arena",
    # Configuration
    "Config",
    "ArenaConfig",
    # Core models
    "Location",
    "Review",
    "Comparison",
    "PersonalRankingEntry",
    "Outcome",
    "Metric",
    "CostBucket",
    "TimePeriod",
    # Result models
    "EloResult",
    "ReviewStats",
    "CrowdBucket",
    "CrowdByPeriod",
    "LocationSummary",
    "LocationDetail",
    "LeaderboardEntry",
    "VoteResult",
    "Pair",
    "NotEnoughData",
    "UserStats",
    "RankedLocation",
    "UserProfile",
    "Badge",
    # Scorer
    "ELO",
    "KSchedule",
    "ReviewAggregator",
    "BadgeAwarder",
    # Matchmaker
    "PersonalSelector",
    "SeedingSelector",
    "get_selector",
    # Storage
    "RatingStore",
    "SQLiteRatingStore",
    # Reporter
    "TextReporter",
    "print_results",
    # Exceptions
    "BathroomArenaError",
    "VoteValidationError",
    "ReviewValidationError",
    "RankingValidationError",
    "LocationNotFoundError",
    "StorageError",
    "ConfigError",
]
