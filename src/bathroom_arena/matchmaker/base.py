"""Base selector interface for choosing the next pair to compare.

This module defines the abstract base class that all pair selection
policies inherit from, plus the snapshot of pool state a selector works on.
Selectors never write: they read a snapshot once per request and return
either a ``Pair`` or ``NotEnoughData``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from ..models import Comparison, Location, LocationSummary, NotEnoughData, Pair, Review
from ..scorer import ReviewAggregator

if TYPE_CHECKING:
    from ..storage import RatingStore


class PoolSnapshot(BaseModel):
    """Pool state read at the start of a pair request.

    Attributes:
        user_id: The user asking for a pair.
        locations: Candidate locations in pool order.
        comparisons: This user's votes relevant to the selector.
        reviews: All reviews of the pool locations, keyed by location id.
        now: Time the snapshot was taken.
    """

    user_id: str
    locations: list[Location] = Field(default_factory=list)
    comparisons: list[Comparison] = Field(default_factory=list)
    reviews: dict[str, list[Review]] = Field(default_factory=dict)
    now: datetime = Field(default_factory=datetime.now)

    def get(self, location_id: str) -> Location | None:
        for location in self.locations:
            if location.id == location_id:
                return location
        return None

    def reviews_for(self, location_id: str) -> list[Review]:
        return self.reviews.get(location_id, [])

    def user_reviews_for(self, location_id: str) -> list[Review]:
        return [r for r in self.reviews_for(location_id) if r.user_id == self.user_id]


class ComparisonHistory(BaseModel):
    """One location's record within a single user's votes.

    Attributes:
        beaten: Locations it has beaten. Ties are recorded here too.
        lost_to: Locations it has lost to. Ties are recorded here too.
        count: Votes it took part in.
    """

    beaten: set[str] = Field(default_factory=set)
    lost_to: set[str] = Field(default_factory=set)
    count: int = 0

    @property
    def faced(self) -> set[str]:
        return self.beaten | self.lost_to


def build_history(
    location_ids: Iterable[str],
    comparisons: Iterable[Comparison],
) -> dict[str, ComparisonHistory]:
    """Derive per-location history from a user's votes.

    Only locations in ``location_ids`` get a record; a vote against a
    location outside that set still counts for the member that took part.
    """
    history = {location_id: ComparisonHistory() for location_id in location_ids}

    for comp in comparisons:
        a_rec = history.get(comp.location_a_id)
        b_rec = history.get(comp.location_b_id)
        if a_rec is None and b_rec is None:
            continue
        if a_rec is not None:
            a_rec.count += 1
        if b_rec is not None:
            b_rec.count += 1

        if comp.winner_id == comp.location_a_id:
            if a_rec is not None:
                a_rec.beaten.add(comp.location_b_id)
            if b_rec is not None:
                b_rec.lost_to.add(comp.location_a_id)
        elif comp.winner_id == comp.location_b_id:
            if b_rec is not None:
                b_rec.beaten.add(comp.location_a_id)
            if a_rec is not None:
                a_rec.lost_to.add(comp.location_b_id)
        else:
            # Tie: the opponent is a reference point on both sides
            if a_rec is not None:
                a_rec.beaten.add(comp.location_b_id)
                a_rec.lost_to.add(comp.location_b_id)
            if b_rec is not None:
                b_rec.beaten.add(comp.location_a_id)
                b_rec.lost_to.add(comp.location_a_id)

    return history


class BaseSelector(ABC):
    """Abstract base class for pair selection policies.

    Implementations:
    - PersonalSelector: Places a user's newly reviewed location into their
      own ordering with as few votes as possible
    - SeedingSelector: Gives never-compared locations a first exposure
    """

    def __init__(self, aggregator: ReviewAggregator | None = None):
        self.aggregator = aggregator or ReviewAggregator()

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the policy's name identifier."""
        ...

    @abstractmethod
    def load_snapshot(self, store: RatingStore, user_id: str, now: datetime | None = None) -> PoolSnapshot:
        """Read the pool state this policy needs from the store."""
        ...

    @abstractmethod
    def select(self, snapshot: PoolSnapshot, focus_id: str | None = None) -> Pair | NotEnoughData:
        """Choose the next pair to present.

        Args:
            snapshot: Pool state read at the start of the request.
            focus_id: Optional location the caller wants placed.

        Returns:
            A Pair, or NotEnoughData when nothing useful is left to compare.
        """
        ...

    def summarize(self, location: Location, snapshot: PoolSnapshot) -> LocationSummary:
        return self.aggregator.summarize(location, snapshot.reviews_for(location.id))

    def make_pair(self, a: Location, b: Location, snapshot: PoolSnapshot) -> Pair:
        return Pair(a=self.summarize(a, snapshot), b=self.summarize(b, snapshot))
