"""Personal bracket-narrowing pair selection.

When a user reviews a new location this policy interleaves it into that
user's own preference ordering with as few votes as possible. The pool is
every location the user has reviewed; history comes only from the user's
own votes, while global Elo ratings serve as a coarse distance proxy.

Each location's known wins and losses define a bracket: the best rating it
has beaten (floor) and the lowest rating it has lost to (ceiling). The next
opponent is the unfaced pool member nearest the middle of that bracket, the
way a binary search halves its interval.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import TYPE_CHECKING

from ..models import Location, NotEnoughData, Pair
from ..scorer import ReviewAggregator
from .base import BaseSelector, ComparisonHistory, PoolSnapshot, build_history

if TYPE_CHECKING:
    from ..config import Config
    from ..storage import RatingStore

logger = logging.getLogger(__name__)

MAX_COMPARISONS_PER_LOCATION = 4
MIN_BRACKET_WIDTH = 100.0


class PersonalPool:
    """One user's pool with the bracket logic evaluated against it.

    Example:
        ```python
        pool = PersonalPool(snapshot)
        pool.is_settled("loc_a")
        pool.bracket("loc_a")  # (floor, ceiling), either may be None
        ```
    """

    def __init__(
        self,
        snapshot: PoolSnapshot,
        max_comparisons: int = MAX_COMPARISONS_PER_LOCATION,
        min_bracket_width: float = MIN_BRACKET_WIDTH,
    ):
        self.snapshot = snapshot
        self.locations = snapshot.locations
        self.max_comparisons = max_comparisons
        self.min_bracket_width = min_bracket_width
        self.history: dict[str, ComparisonHistory] = build_history(
            (loc.id for loc in self.locations), snapshot.comparisons
        )

    def record(self, location_id: str) -> ComparisonHistory:
        return self.history.get(location_id) or ComparisonHistory()

    @property
    def max_rating(self) -> float:
        return max(loc.elo_rating for loc in self.locations)

    @property
    def min_rating(self) -> float:
        return min(loc.elo_rating for loc in self.locations)

    def _ratings_of(self, ids: set[str]) -> list[float]:
        return [loc.elo_rating for loc in self.locations if loc.id in ids]

    def bracket(self, location_id: str) -> tuple[float | None, float | None]:
        """Return ``(floor, ceiling)`` for a location.

        The floor is the highest rating it has beaten, the ceiling the lowest
        rating it has lost to. Only pool members count; either bound is None
        when unknown.
        """
        rec = self.record(location_id)
        beaten = self._ratings_of(rec.beaten)
        lost_to = self._ratings_of(rec.lost_to)
        floor = max(beaten) if beaten else None
        ceiling = min(lost_to) if lost_to else None
        return floor, ceiling

    def is_settled(self, location: Location | str) -> bool:
        """Whether another vote would no longer refine this location's place.

        Checked in order: the comparison cap; only wins while already at the
        top of the pool; only losses while already at the bottom; a bracket
        that is too narrow or has no other pool member strictly inside it.
        """
        if isinstance(location, str):
            found = self.snapshot.get(location)
            if found is None:
                return False
            location = found

        rec = self.record(location.id)
        if rec.count == 0:
            return False
        if rec.count >= self.max_comparisons:
            return True

        floor, ceiling = self.bracket(location.id)

        if ceiling is None and floor is not None and location.elo_rating >= self.max_rating:
            return True
        if floor is None and ceiling is not None and location.elo_rating <= self.min_rating:
            return True

        if floor is not None and ceiling is not None:
            if ceiling - floor < self.min_bracket_width:
                return True
            in_between = [
                loc
                for loc in self.locations
                if loc.id != location.id and floor < loc.elo_rating < ceiling
            ]
            if not in_between:
                return True

        return False

    def sub_score(self, location_id: str) -> float | None:
        """Average of this user's four 1-5 sub-scores for a location."""
        mine = self.snapshot.user_reviews_for(location_id)
        if not mine:
            return None
        return sum(r.sub_score_total() for r in mine) / (len(mine) * 4)

    def target_rating(self, location_id: str) -> float | None:
        """Rating in the middle of the open bracket, or None without one."""
        floor, ceiling = self.bracket(location_id)
        if floor is not None and ceiling is not None:
            return (floor + ceiling) / 2
        if floor is not None:
            return (floor + self.max_rating) / 2
        if ceiling is not None:
            return (ceiling + self.min_rating) / 2
        return None


class PersonalSelector(BaseSelector):
    """Bracket-narrowing selector over one user's reviewed locations.

    Example:
        ```python
        selector = PersonalSelector()
        snapshot = selector.load_snapshot(store, "user_1")
        result = selector.select(snapshot)
        if isinstance(result, Pair):
            print(result.a.name, "vs", result.b.name)
        ```
    """

    def __init__(
        self,
        aggregator: ReviewAggregator | None = None,
        max_comparisons: int = MAX_COMPARISONS_PER_LOCATION,
        min_bracket_width: float = MIN_BRACKET_WIDTH,
    ):
        super().__init__(aggregator)
        self.max_comparisons = max_comparisons
        self.min_bracket_width = min_bracket_width

    @classmethod
    def from_config(cls, config: Config, aggregator: ReviewAggregator | None = None) -> PersonalSelector:
        return cls(
            aggregator=aggregator,
            max_comparisons=config.max_comparisons_per_location,
            min_bracket_width=config.min_bracket_width,
        )

    @property
    def name(self) -> str:
        return "personal"

    def load_snapshot(self, store: RatingStore, user_id: str, now: datetime | None = None) -> PoolSnapshot:
        """Pool of locations the user reviewed, ordered by rating descending."""
        pool_ids = store.reviewed_location_ids(user_id)
        locations = [loc for loc in store.list_locations(order_by="elo") if loc.id in pool_ids]
        return PoolSnapshot(
            user_id=user_id,
            locations=locations,
            comparisons=store.comparisons_by_user(user_id),
            reviews={loc.id: store.reviews_for_location(loc.id) for loc in locations},
            now=now or datetime.now(),
        )

    def pool(self, snapshot: PoolSnapshot) -> PersonalPool:
        return PersonalPool(snapshot, self.max_comparisons, self.min_bracket_width)

    def select(self, snapshot: PoolSnapshot, focus_id: str | None = None) -> Pair | NotEnoughData:
        """Choose the focus location and its most informative opponent."""
        if len(snapshot.locations) < 2:
            return NotEnoughData(reason="Fewer than 2 reviewed locations to compare")

        pool = self.pool(snapshot)

        if focus_id is not None:
            focus = snapshot.get(focus_id)
            if focus is None:
                return NotEnoughData(reason=f"Location '{focus_id}' is not in this user's pool")
            if pool.is_settled(focus):
                logger.debug(f"Focus {focus_id} already settled for user {snapshot.user_id}")
                return NotEnoughData(reason=f"Location '{focus_id}' is already settled")
        else:
            focus = self._least_compared_unsettled(pool)
            if focus is None:
                return NotEnoughData(reason="Every reviewed location is settled")

        rec = pool.record(focus.id)
        faced = rec.faced | {focus.id}
        candidates = [loc for loc in snapshot.locations if loc.id not in faced]
        if not candidates:
            return NotEnoughData(reason=f"Location '{focus.id}' has faced every other location")

        target = pool.target_rating(focus.id) if rec.count > 0 else None
        if target is None:
            opponent = self._closest_sub_score(pool, focus, candidates)
            logger.debug(f"Opening pair for {focus.id}: {opponent.id} by sub-score")
        else:
            opponent = self._closest_rating(candidates, target)
            logger.debug(f"Narrowing {focus.id} toward {target:.1f}: {opponent.id}")

        return self.make_pair(focus, opponent, snapshot)

    @staticmethod
    def _least_compared_unsettled(pool: PersonalPool) -> Location | None:
        focus: Location | None = None
        best_count = 0
        for loc in pool.locations:
            if pool.is_settled(loc):
                continue
            count = pool.record(loc.id).count
            if focus is None or count < best_count:
                focus = loc
                best_count = count
        return focus

    @staticmethod
    def _closest_sub_score(pool: PersonalPool, focus: Location, candidates: list[Location]) -> Location:
        focus_avg = pool.sub_score(focus.id)
        if focus_avg is None:
            return candidates[0]

        def distance(loc: Location) -> float:
            avg = pool.sub_score(loc.id)
            return math.inf if avg is None else abs(avg - focus_avg)

        best = candidates[0]
        for candidate in candidates[1:]:
            if distance(candidate) < distance(best):
                best = candidate
        return best

    @staticmethod
    def _closest_rating(candidates: list[Location], target: float) -> Location:
        best = candidates[0]
        for candidate in candidates[1:]:
            if abs(candidate.elo_rating - target) < abs(best.elo_rating - target):
                best = candidate
        return best
