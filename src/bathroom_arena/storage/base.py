"""Abstract rating store interface.

The ranking core only needs stable read access to locations, reviews and
votes plus one atomic write per vote. This interface is that contract; the
SQLite implementation lives in ``storage.sqlite``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager
from datetime import datetime

from ..models import Comparison, EloResult, Location, PersonalRankingEntry, Review

RateFunction = Callable[[Location, Location], EloResult]


class RatingStore(ABC):
    """
    Durable records for locations, reviews and comparison votes.

    Implementations:
        - SQLiteRatingStore: sqlite3 file or in-memory database
    """

    # --- Transactions ---

    @abstractmethod
    def transaction(self, immediate: bool = False) -> AbstractContextManager[RatingStore]:
        """
        Group writes so they all land or none do.

        Nested calls join the outer transaction.

        Args:
            immediate: Take the write lock when the transaction starts.
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the underlying connection."""
        pass

    def __enter__(self) -> RatingStore:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # --- Locations ---

    @abstractmethod
    def add_location(self, location: Location) -> Location:
        """Insert a new location and return it."""
        pass

    @abstractmethod
    def get_location(self, location_id: str) -> Location | None:
        """Read one location, or None if unknown."""
        pass

    @abstractmethod
    def list_locations(self, order_by: str = "elo", category: str | None = None) -> list[Location]:
        """
        List locations.

        Args:
            order_by: "elo" for rating descending, "created" for insertion order.
            category: Optional exact category filter.
        """
        pass

    # --- Reviews ---

    @abstractmethod
    def add_review(self, review: Review) -> Review:
        """Insert a review and return it."""
        pass

    @abstractmethod
    def reviews_for_location(self, location_id: str) -> list[Review]:
        """All reviews of a location in insertion order."""
        pass

    @abstractmethod
    def reviews_by_user(self, user_id: str) -> list[Review]:
        """All reviews written by a user in insertion order."""
        pass

    @abstractmethod
    def reviews_since(self, since: datetime) -> list[Review]:
        """Reviews created at or after ``since``."""
        pass

    def reviewed_location_ids(self, user_id: str) -> set[str]:
        """Ids of every location the user has reviewed."""
        return {r.location_id for r in self.reviews_by_user(user_id)}

    def iter_reviews_by_location(self, location_ids: list[str]) -> Iterator[tuple[str, list[Review]]]:
        """
        Iterate over reviews grouped by location.

        Yields:
            Tuples of (location_id, reviews_list)
        """
        for location_id in location_ids:
            yield location_id, self.reviews_for_location(location_id)

    # --- Comparisons ---

    @abstractmethod
    def comparisons_by_user(self, user_id: str, since: datetime | None = None) -> list[Comparison]:
        """A user's votes in the order they were cast."""
        pass

    @abstractmethod
    def record_vote(self, comparison: Comparison, rate: RateFunction) -> EloResult:
        """
        Atomically store a vote and apply its rating change.

        Both locations are read inside the transaction and passed to
        ``rate``; the Comparison row and both Location updates are then
        written together.

        Raises:
            LocationNotFoundError: If either location is unknown.
            StorageError: If the transaction fails; nothing is written.
        """
        pass

    @abstractmethod
    def record_review(self, review: Review) -> PersonalRankingEntry:
        """
        Atomically store a review and append its location to the author's
        personal list.

        Raises:
            StorageError: If the transaction fails; nothing is written.
        """
        pass

    # --- Personal rankings ---

    @abstractmethod
    def get_rankings(self, user_id: str) -> list[PersonalRankingEntry]:
        """A user's personal list ordered by position."""
        pass

    @abstractmethod
    def ensure_ranking(self, user_id: str, location_id: str) -> PersonalRankingEntry:
        """Append a location to the bottom of a user's list if missing."""
        pass

    @abstractmethod
    def reorder_rankings(self, user_id: str, order: list[str]) -> list[PersonalRankingEntry]:
        """Rewrite positions so ``order`` comes first, in that order."""
        pass
