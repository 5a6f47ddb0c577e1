"""Core data models for Bathroom Arena.

This module defines the primary data structures used throughout the package:
- Location: A reviewable place carrying its Elo record
- Review: One user's structured report about one visit
- Comparison: One head-to-head vote between two locations
- Result types: Elo updates, aggregate statistics, pairs and listings

All models serialize with camelCase aliases so they can be returned by the
HTTP layer unchanged, while Python code keeps using snake_case names.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum, IntEnum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

DEFAULT_RATING = 1200.0


def new_id() -> str:
    """Generate a new opaque record id."""
    return uuid.uuid4().hex


class ArenaModel(BaseModel):
    """Base model with camelCase aliases for JSON output."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Outcome(str, Enum):
    """Result of a head-to-head vote from location A's point of view."""

    A = "a"
    B = "b"
    TIE = "tie"

    def score_a(self) -> float:
        """Actual score for side A (win 1.0, tie 0.5, loss 0.0)."""
        if self is Outcome.A:
            return 1.0
        if self is Outcome.TIE:
            return 0.5
        return 0.0

    def score_b(self) -> float:
        """Actual score for side B."""
        return 1.0 - self.score_a()


class CostBucket(IntEnum):
    """Reported cost category of a visit."""

    FREE = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3

    @property
    def label(self) -> str:
        return ("Free", "$", "$$", "$$$")[self.value]


class Metric(str, Enum):
    """Review attributes that can be averaged for a location."""

    OVERALL = "overall"
    CLEANLINESS = "cleanliness"
    SMELL = "smell"
    SUPPLIES = "supplies"
    PRIVACY = "privacy"

    def value_of(self, review: Review) -> int:
        """Read this metric from a review."""
        return _METRIC_ACCESSORS[self](review)


_METRIC_ACCESSORS = {
    Metric.OVERALL: lambda r: r.overall,
    Metric.CLEANLINESS: lambda r: r.cleanliness,
    Metric.SMELL: lambda r: r.smell,
    Metric.SUPPLIES: lambda r: r.supplies,
    Metric.PRIVACY: lambda r: r.privacy,
}


class TimePeriod(str, Enum):
    """Fixed time-of-day bands used for the crowd profile."""

    NIGHT = "night"
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"

    @classmethod
    def from_hour(cls, hour: int) -> TimePeriod:
        """Map an hour of day (0-23) to its band."""
        if hour < 6:
            return cls.NIGHT
        elif hour < 12:
            return cls.MORNING
        elif hour < 18:
            return cls.AFTERNOON
        else:
            return cls.EVENING


class Location(ArenaModel):
    """A physical location that can be reviewed and compared.

    Attributes:
        id: Unique identifier.
        name: Display name.
        address: Human readable address.
        category: Free-form type (e.g. "restaurant", "gas station").
        city: Optional denormalized city name.
        elo_rating: Current comparative strength rating.
        comparisons: Number of votes this location took part in.
        wins: Decisive votes won.
        losses: Decisive votes lost.
        ties: Votes ending in a tie.
        created_at: When the location was first added.
    """

    id: str = Field(default_factory=new_id)
    name: str
    address: str = ""
    category: str = ""
    city: str | None = None
    elo_rating: float = DEFAULT_RATING
    comparisons: int = Field(default=0, ge=0)
    wins: int = Field(default=0, ge=0)
    losses: int = Field(default=0, ge=0)
    ties: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=datetime.now)


class Review(ArenaModel):
    """One user's structured report about a visit to a location.

    Attributes:
        id: Unique identifier.
        user_id: Author of the review.
        location_id: Reviewed location.
        overall: Overall score, 1-10.
        cleanliness: 1-5.
        supplies: 1-5.
        smell: 1-5.
        privacy: 1-5.
        crowdedness: 1-5, used for the time-of-day crowd profile.
        cost: Cost category (Free, $, $$, $$$).
        notes: Optional free text.
        visited_at: Naive local time of the visit.
        created_at: When the review was stored.
    """

    id: str = Field(default_factory=new_id)
    user_id: str
    location_id: str
    overall: int = Field(ge=1, le=10)
    cleanliness: int = Field(default=3, ge=1, le=5)
    supplies: int = Field(default=3, ge=1, le=5)
    smell: int = Field(default=3, ge=1, le=5)
    privacy: int = Field(default=3, ge=1, le=5)
    crowdedness: int = Field(default=3, ge=1, le=5)
    cost: CostBucket = CostBucket.FREE
    notes: str | None = None
    visited_at: datetime = Field(default_factory=datetime.now)
    created_at: datetime = Field(default_factory=datetime.now)

    def sub_score_total(self) -> int:
        """Sum of the four 1-5 sub-scores used for content similarity."""
        return self.cleanliness + self.smell + self.supplies + self.privacy


class Comparison(ArenaModel):
    """A single head-to-head vote. Never mutated once stored.

    Attributes:
        id: Unique identifier.
        user_id: Voting user.
        location_a_id: First location shown.
        location_b_id: Second location shown.
        winner_id: Id of the winner, or None for a tie.
        created_at: When the vote was cast.
    """

    id: str = Field(default_factory=new_id)
    user_id: str
    location_a_id: str
    location_b_id: str
    winner_id: str | None = None
    created_at: datetime = Field(default_factory=datetime.now)

    @model_validator(mode="after")
    def _check_pair(self) -> Comparison:
        if self.location_a_id == self.location_b_id:
            raise ValueError("A comparison needs two distinct locations")
        if self.winner_id not in (None, self.location_a_id, self.location_b_id):
            raise ValueError("winner_id must be one of the two compared locations")
        return self

    @property
    def outcome(self) -> Outcome:
        if self.winner_id is None:
            return Outcome.TIE
        if self.winner_id == self.location_a_id:
            return Outcome.A
        return Outcome.B


class PersonalRankingEntry(ArenaModel):
    """Position of a location in one user's personal list."""

    user_id: str
    location_id: str
    position: int = Field(ge=1)


class EloResult(ArenaModel):
    """Outcome of one Elo update.

    Attributes:
        new_rating_a: Rating of A after the update.
        new_rating_b: Rating of B after the update.
        delta_a: Integer points gained (positive) or lost by A.
        delta_b: Integer points gained or lost by B.
    """

    new_rating_a: float
    new_rating_b: float
    delta_a: int
    delta_b: int


class CrowdBucket(ArenaModel):
    """Crowdedness statistics for one time-of-day band."""

    avg: float | None = None
    count: int = 0


class CrowdByPeriod(ArenaModel):
    """Crowdedness statistics for all four time-of-day bands."""

    night: CrowdBucket = Field(default_factory=CrowdBucket)
    morning: CrowdBucket = Field(default_factory=CrowdBucket)
    afternoon: CrowdBucket = Field(default_factory=CrowdBucket)
    evening: CrowdBucket = Field(default_factory=CrowdBucket)

    def get(self, period: TimePeriod) -> CrowdBucket:
        return getattr(self, period.value)

    def populated_periods(self) -> int:
        """Number of bands with at least one review."""
        return sum(1 for period in TimePeriod if self.get(period).count > 0)


class ReviewStats(ArenaModel):
    """Descriptive statistics derived from a location's reviews.

    Attributes:
        review_count: Number of reviews.
        avg_overall: Mean overall score (1 decimal) or None.
        avg_cleanliness: Mean cleanliness or None.
        avg_smell: Mean smell or None.
        avg_supplies: Mean supplies or None.
        avg_privacy: Mean privacy or None.
        mode_cost: Most frequently reported cost bucket or None.
        crowd_by_period: Crowdedness per time-of-day band.
        crowd_threshold_met: Whether the crowd profile has enough spread
            to be shown.
    """

    review_count: int = 0
    avg_overall: float | None = None
    avg_cleanliness: float | None = None
    avg_smell: float | None = None
    avg_supplies: float | None = None
    avg_privacy: float | None = None
    mode_cost: int | None = None
    crowd_by_period: CrowdByPeriod = Field(default_factory=CrowdByPeriod)
    crowd_threshold_met: bool = False


class LocationSummary(ArenaModel):
    """Card shown for a location in pairs and listings."""

    id: str
    name: str
    address: str = ""
    category: str = ""
    elo_rating: int
    comparisons: int = 0
    wins: int = 0
    losses: int = 0
    ties: int = 0
    review_count: int = 0
    avg_overall: float | None = None
    avg_cleanliness: float | None = None
    avg_smell: float | None = None
    avg_supplies: float | None = None
    avg_privacy: float | None = None


class LocationDetail(LocationSummary):
    """Full detail view: summary, reviews and every aggregate."""

    city: str | None = None
    reviews: list[Review] = Field(default_factory=list)
    mode_cost: int | None = None
    crowd_by_period: CrowdByPeriod = Field(default_factory=CrowdByPeriod)
    crowd_threshold_met: bool = False


class LeaderboardEntry(ArenaModel):
    """A location with its leaderboard position."""

    rank: int
    id: str
    name: str
    address: str = ""
    category: str = ""
    elo_rating: int
    wins: int = 0
    losses: int = 0
    ties: int = 0
    comparisons: int = 0
    win_rate: int | None = None
    review_count: int = 0
    avg_overall: float | None = None


class VoteResult(ArenaModel):
    """Rating change reported back to the voter."""

    delta_a: int
    delta_b: int
    new_rating_a: int
    new_rating_b: int


class Pair(ArenaModel):
    """Two locations to present for a head-to-head vote."""

    status: Literal["ok"] = "ok"
    a: LocationSummary
    b: LocationSummary


class NotEnoughData(ArenaModel):
    """Nothing to compare right now. Not an error."""

    status: Literal["not_enough_data"] = "not_enough_data"
    reason: str = ""


PairResult = Annotated[Union[Pair, NotEnoughData], Field(discriminator="status")]


class PopularLocation(ArenaModel):
    """A location with its recent review count."""

    id: str
    name: str
    address: str = ""
    review_count: int


class ScoredLocation(ArenaModel):
    """A location with its recent average overall score."""

    id: str
    name: str
    address: str = ""
    avg_score: float | None = None


class TopReviewer(ArenaModel):
    """A user ranked by the number of distinct locations reviewed."""

    user_id: str
    locations_visited: int
    is_you: bool = False


class UserStats(ArenaModel):
    """Personal and community statistics for one user."""

    total_visited: int = 0
    most_popular_recently: list[PopularLocation] = Field(default_factory=list)
    worst_recently: list[ScoredLocation] = Field(default_factory=list)
    top_reviewers: list[TopReviewer] = Field(default_factory=list)


class RankedLocation(ArenaModel):
    """One entry of a user's personal list with the location and that user's reviews of it."""

    user_id: str
    location_id: str
    position: int = Field(ge=1)
    location: LocationSummary
    reviews: list[Review] = Field(default_factory=list)


class Badge(ArenaModel):
    """An achievement earned from a user's review history."""

    id: str
    name: str
    emoji: str
    description: str


class UserProfile(ArenaModel):
    """Public profile of one user.

    Attributes:
        user_id: The user.
        review_count: Reviews written, counting repeat visits.
        avg_score: Mean overall score (1 decimal) or None without reviews.
        rankings: Personal list, best first.
        badges: Earned badges in award order.
    """

    user_id: str
    review_count: int = 0
    avg_score: float | None = None
    rankings: list[RankedLocation] = Field(default_factory=list)
    badges: list[Badge] = Field(default_factory=list)
