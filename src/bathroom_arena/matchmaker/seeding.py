"""Global seeding pair selection.

Gives a location that nobody has compared yet its first exposure. Fresh
locations are paired with each other when possible so established
locations keep their evaluation budget; a lone fresh location is paired
with the highest-rated established one to bootstrap its rating.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from itertools import combinations
from typing import TYPE_CHECKING

from ..models import Location, NotEnoughData, Pair
from ..scorer import ELO, ReviewAggregator
from .base import BaseSelector, PoolSnapshot

if TYPE_CHECKING:
    from ..config import Config
    from ..storage import RatingStore

logger = logging.getLogger(__name__)

RECENCY_DAYS = 14


def _pair_key(a: str, b: str) -> frozenset[str]:
    return frozenset((a, b))


class SeedingSelector(BaseSelector):
    """Selector that bootstraps ratings for never-compared locations.

    Candidate pairs of fresh locations are ranked by ``ELO.pair_score``
    (lower is better). Pairs the user voted on within ``recency_days`` are
    skipped unless every candidate pair is that recent.
    """

    def __init__(
        self,
        aggregator: ReviewAggregator | None = None,
        recency_days: int = RECENCY_DAYS,
    ):
        super().__init__(aggregator)
        self.recency_days = recency_days

    @classmethod
    def from_config(cls, config: Config, aggregator: ReviewAggregator | None = None) -> SeedingSelector:
        return cls(aggregator=aggregator, recency_days=config.recency_days)

    @property
    def name(self) -> str:
        return "seeding"

    def load_snapshot(self, store: RatingStore, user_id: str, now: datetime | None = None) -> PoolSnapshot:
        """All locations plus this user's votes inside the recency window."""
        now = now or datetime.now()
        locations = store.list_locations(order_by="created")
        return PoolSnapshot(
            user_id=user_id,
            locations=locations,
            comparisons=store.comparisons_by_user(user_id, since=now - timedelta(days=self.recency_days)),
            reviews={loc.id: store.reviews_for_location(loc.id) for loc in locations},
            now=now,
        )

    def recent_pairs(self, snapshot: PoolSnapshot) -> set[frozenset[str]]:
        cutoff = snapshot.now - timedelta(days=self.recency_days)
        return {
            _pair_key(c.location_a_id, c.location_b_id)
            for c in snapshot.comparisons
            if c.user_id == snapshot.user_id and c.created_at >= cutoff
        }

    def select(self, snapshot: PoolSnapshot, focus_id: str | None = None) -> Pair | NotEnoughData:
        """Pick a first-exposure pair.

        ``focus_id`` restricts the fresh side to that location when given.
        """
        if len(snapshot.locations) < 2:
            return NotEnoughData(reason="Fewer than 2 locations to compare")

        fresh = [loc for loc in snapshot.locations if loc.comparisons == 0]
        if focus_id is not None:
            fresh_focus = [loc for loc in fresh if loc.id == focus_id]
            if not fresh_focus:
                return NotEnoughData(reason=f"Location '{focus_id}' has already been compared")
            others = [loc for loc in fresh if loc.id != focus_id]
            if others:
                return self._best_fresh_pair(snapshot, [(fresh_focus[0], o) for o in others])
            return self._bootstrap(snapshot, fresh_focus[0])

        if not fresh:
            return NotEnoughData(reason="Every location has been compared at least once")
        if len(fresh) == 1:
            return self._bootstrap(snapshot, fresh[0])
        return self._best_fresh_pair(snapshot, list(combinations(fresh, 2)))

    def _best_fresh_pair(
        self,
        snapshot: PoolSnapshot,
        pairs: list[tuple[Location, Location]],
    ) -> Pair:
        recent = self.recent_pairs(snapshot)
        eligible = [(a, b) for a, b in pairs if _pair_key(a.id, b.id) not in recent]
        if not eligible:
            logger.debug(f"All {len(pairs)} seeding pairs seen recently by {snapshot.user_id}; ignoring recency")
            eligible = pairs

        a, b = min(
            eligible,
            key=lambda p: ELO.pair_score(p[0].elo_rating, p[1].elo_rating, p[0].comparisons, p[1].comparisons),
        )
        return self.make_pair(a, b, snapshot)

    def _bootstrap(self, snapshot: PoolSnapshot, fresh: Location) -> Pair | NotEnoughData:
        established = [loc for loc in snapshot.locations if loc.comparisons > 0]
        if not established:
            return NotEnoughData(reason="No other location to pair with")

        best = established[0]
        for loc in established[1:]:
            if loc.elo_rating > best.elo_rating:
                best = loc
        logger.debug(f"Bootstrapping {fresh.id} against top-rated {best.id}")
        return self.make_pair(fresh, best, snapshot)
