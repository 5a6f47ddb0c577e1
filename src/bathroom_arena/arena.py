"""Main Arena class for Bathroom Arena.

This module provides the primary entry point for the Bathroom Arena SDK.
The Arena class orchestrates the rating store, pair selection, Elo updates
and review aggregation for each request.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .config import ArenaConfig, Config
from .exceptions import (
    LocationNotFoundError,
    RankingValidationError,
    ReviewValidationError,
    VoteValidationError,
)
from .matchmaker import BaseSelector, get_selector
from .models import (
    Comparison,
    CostBucket,
    EloResult,
    LeaderboardEntry,
    Location,
    LocationDetail,
    NotEnoughData,
    Pair,
    PopularLocation,
    RankedLocation,
    Review,
    ScoredLocation,
    TopReviewer,
    UserProfile,
    UserStats,
    VoteResult,
)
from .scorer import ELO, BadgeAwarder, KSchedule, ReviewAggregator, round_half_up, round_int
from .storage import RatingStore, SQLiteRatingStore

logger = logging.getLogger(__name__)

LEADERBOARD_SORTS = ("elo", "overall")
STATS_WINDOW_DAYS = 30


class Arena:
    """Main entry point for Bathroom Arena.

    The Arena class provides methods to review locations, vote on
    head-to-head pairs and read the resulting rankings.

    Example:
        ```python
        from bathroom_arena import Arena

        arena = Arena()
        cafe = arena.add_location("Corner Cafe", category="restaurant")
        gas = arena.add_location("Shell on 5th", category="gas station")

        arena.submit_review("user_1", cafe.id, overall=8)
        arena.submit_review("user_1", gas.id, overall=3)

        pair = arena.get_pair("user_1")
        result = arena.vote("user_1", pair.a.id, pair.b.id, winner_id=pair.a.id)
        print(result.delta_a, result.new_rating_a)
        ```
    """

    def __init__(self, config: Config | None = None, store: RatingStore | None = None):
        """Initialize the Arena.

        Args:
            config: Optional configuration. Uses defaults if not provided.
            store: Optional rating store. A SQLite store at ``config.db_path``
                is opened if not provided.
        """
        self.config = config or Config()
        if self.config.verbose:
            logging.getLogger("bathroom_arena").setLevel(logging.DEBUG)
        self.store = store or SQLiteRatingStore.from_config(self.config)
        self.aggregator = ReviewAggregator.from_config(self.config)
        self.schedule = KSchedule.from_config(self.config)
        self.selector: BaseSelector = get_selector(self.config.pair_policy, self.config, self.aggregator)

    @classmethod
    def from_config(cls, path: str | Path) -> Arena:
        """Create an Arena from a YAML configuration file.

        Locations listed under ``seed_locations`` are added unless a
        location with the same id (or the same name and address) exists.

        Args:
            path: Path to the YAML configuration file.

        Returns:
            Arena instance configured from the file.

        Example:
            ```python
            arena = Arena.from_config("./arena.yaml")
            print(arena.leaderboard())
            ```
        """
        arena_config = ArenaConfig.from_yaml(path)
        arena = cls(config=arena_config.arena)
        arena.seed(arena_config.seed_locations)
        return arena

    def close(self) -> None:
        self.store.close()

    def seed(self, entries: list[dict[str, Any]]) -> list[Location]:
        """Add seed locations that are not already present."""
        existing = self.store.list_locations(order_by="created")
        known_ids = {loc.id for loc in existing}
        known_names = {(loc.name, loc.address) for loc in existing}

        added = []
        for entry in entries:
            location_id = entry.get("id")
            if location_id in known_ids:
                continue
            if location_id is None and (entry["name"], entry.get("address", "")) in known_names:
                continue
            added.append(
                self.add_location(
                    entry["name"],
                    address=entry.get("address", ""),
                    category=entry.get("category", ""),
                    city=entry.get("city"),
                    location_id=location_id,
                )
            )
        if added:
            logger.info(f"Seeded {len(added)} locations")
        return added

    # --- Locations ---

    def add_location(
        self,
        name: str,
        *,
        address: str = "",
        category: str = "",
        city: str | None = None,
        location_id: str | None = None,
    ) -> Location:
        """Create a location at the default rating.

        Raises:
            ValueError: If the name is empty.
        """
        if not name or not name.strip():
            raise ValueError("Location name is required")

        fields: dict[str, Any] = {
            "name": name.strip(),
            "address": address,
            "category": category,
            "city": city,
            "elo_rating": self.config.default_rating,
        }
        if location_id:
            fields["id"] = location_id

        location = self.store.add_location(Location(**fields))
        logger.info(f"Added location {location.id} ({location.name})")
        return location

    def _require_location(self, location_id: str) -> Location:
        location = self.store.get_location(location_id)
        if location is None:
            raise LocationNotFoundError(location_id)
        return location

    def location_detail(self, location_id: str) -> LocationDetail:
        """Full detail for one location: summary, reviews and aggregates.

        Reviews are listed newest first.

        Raises:
            LocationNotFoundError: If the location does not exist.
        """
        location = self._require_location(location_id)
        reviews = self.store.reviews_for_location(location_id)

        summary = self.aggregator.summarize(location, reviews)
        stats = self.aggregator.aggregate(reviews)

        return LocationDetail(
            **summary.model_dump(),
            city=location.city,
            reviews=list(reversed(reviews)),
            mode_cost=stats.mode_cost,
            crowd_by_period=stats.crowd_by_period,
            crowd_threshold_met=stats.crowd_threshold_met,
        )

    def leaderboard(
        self,
        sort: str = "elo",
        category: str | None = None,
        limit: int = 100,
    ) -> list[LeaderboardEntry]:
        """Ranked locations that have been compared or reviewed at least once.

        Args:
            sort: "elo" for rating descending, "overall" for average overall
                score descending (unreviewed last, rating breaks ties).
            category: Optional exact category filter.
            limit: Maximum number of entries.

        Raises:
            ValueError: If ``sort`` is not supported.
        """
        if sort not in LEADERBOARD_SORTS:
            raise ValueError(f"Unknown sort '{sort}'. Valid sorts: {list(LEADERBOARD_SORTS)}")

        locations = self.store.list_locations(order_by="elo", category=category)

        rows = []
        for location, (_, reviews) in zip(
            locations, self.store.iter_reviews_by_location([loc.id for loc in locations])
        ):
            if location.comparisons == 0 and not reviews:
                continue
            rows.append((location, self.aggregator.summarize(location, reviews)))

        if sort == "overall":
            # Stable sort keeps rating order among equal averages
            rows.sort(key=lambda row: (row[1].avg_overall is None, -(row[1].avg_overall or 0)))

        return [
            LeaderboardEntry(
                rank=rank,
                id=location.id,
                name=location.name,
                address=location.address,
                category=location.category,
                elo_rating=summary.elo_rating,
                wins=location.wins,
                losses=location.losses,
                ties=location.ties,
                comparisons=location.comparisons,
                win_rate=ReviewAggregator.win_rate(location),
                review_count=summary.review_count,
                avg_overall=summary.avg_overall,
            )
            for rank, (location, summary) in enumerate(rows[:limit], start=1)
        ]

    # --- Pairs and votes ---

    def get_pair(
        self,
        user_id: str,
        focus_location_id: str | None = None,
        now: datetime | None = None,
    ) -> Pair | NotEnoughData:
        """Choose the next pair for a user to vote on.

        Uses the selector named by ``config.pair_policy``.

        Args:
            user_id: The voting user.
            focus_location_id: Optional location to place next.
            now: Optional clock override.

        Returns:
            A Pair, or NotEnoughData when nothing useful is left to compare.
        """
        snapshot = self.selector.load_snapshot(self.store, user_id, now=now)
        result = self.selector.select(snapshot, focus_location_id)
        if isinstance(result, NotEnoughData):
            logger.debug(f"No pair for {user_id} ({self.selector.name}): {result.reason}")
        return result

    @staticmethod
    def _validate_vote(
        user_id: str,
        location_a_id: str,
        location_b_id: str,
        winner_id: str | None,
    ) -> None:
        if not user_id:
            raise VoteValidationError("a user id is required", "user_id")
        if not location_a_id:
            raise VoteValidationError("a location id is required", "location_a_id")
        if not location_b_id:
            raise VoteValidationError("a location id is required", "location_b_id")
        if location_a_id == location_b_id:
            raise VoteValidationError("cannot compare a location with itself", "location_b_id")
        if winner_id not in (None, location_a_id, location_b_id):
            raise VoteValidationError("winner must be one of the two compared locations", "winner_id")

    def vote(
        self,
        user_id: str,
        location_a_id: str,
        location_b_id: str,
        winner_id: str | None = None,
    ) -> VoteResult:
        """Record a head-to-head vote and update both ratings.

        The vote, both rating updates and both win/loss/tie counters are
        written in one transaction.

        Args:
            user_id: The voting user.
            location_a_id: First location shown.
            location_b_id: Second location shown.
            winner_id: The preferred location, or None for a tie.

        Returns:
            VoteResult with integer deltas and the new ratings rounded for display.

        Raises:
            VoteValidationError: If the vote is malformed. Nothing is written.
            LocationNotFoundError: If either location does not exist.
            StorageError: If the write fails. Nothing is written.
        """
        self._validate_vote(user_id, location_a_id, location_b_id, winner_id)

        comparison = Comparison(
            user_id=user_id,
            location_a_id=location_a_id,
            location_b_id=location_b_id,
            winner_id=winner_id,
        )
        outcome = comparison.outcome

        def rate(location_a: Location, location_b: Location) -> EloResult:
            return ELO.update(
                location_a.elo_rating,
                location_b.elo_rating,
                location_a.comparisons,
                location_b.comparisons,
                outcome,
                self.schedule,
            )

        result = self.store.record_vote(comparison, rate)
        logger.info(
            f"Vote by {user_id}: {location_a_id} vs {location_b_id} ({outcome.value}) "
            f"{result.delta_a:+d}/{result.delta_b:+d}"
        )

        return VoteResult(
            delta_a=result.delta_a,
            delta_b=result.delta_b,
            new_rating_a=round_int(result.new_rating_a),
            new_rating_b=round_int(result.new_rating_b),
        )

    # --- Reviews ---

    def submit_review(
        self,
        user_id: str,
        location_id: str,
        overall: int | None,
        *,
        cleanliness: int | None = None,
        supplies: int | None = None,
        smell: int | None = None,
        privacy: int | None = None,
        crowdedness: int | None = None,
        cost: int | None = None,
        notes: str | None = None,
        visited_at: datetime | None = None,
    ) -> Review:
        """Store a review and add the location to the user's personal list.

        Only ``overall`` is required. Missing sub-scores default to 3, a
        missing cost to Free and a missing visit time to now.

        Raises:
            ReviewValidationError: If a required field is missing or a score
                is out of range.
            LocationNotFoundError: If the location does not exist.
        """
        if not user_id:
            raise ReviewValidationError("a user id is required", "user_id")
        if not location_id:
            raise ReviewValidationError("a location id is required", "location_id")
        if overall is None:
            raise ReviewValidationError("an overall score is required", "overall")

        optional = {
            "cleanliness": cleanliness,
            "supplies": supplies,
            "smell": smell,
            "privacy": privacy,
            "crowdedness": crowdedness,
            "notes": notes,
            "visited_at": visited_at,
        }
        fields: dict[str, Any] = {k: v for k, v in optional.items() if v is not None}
        fields["cost"] = CostBucket.FREE if cost is None else cost

        try:
            review = Review(user_id=user_id, location_id=location_id, overall=overall, **fields)
        except ValidationError as e:
            error = e.errors()[0]
            field = str(error["loc"][0]) if error["loc"] else None
            raise ReviewValidationError(error["msg"], field) from e

        self._require_location(location_id)

        self.store.record_review(review)

        logger.info(f"Review {review.id} by {user_id} for {location_id} (overall {review.overall})")
        return review

    # --- Personal rankings ---

    def personal_rankings(self, user_id: str) -> list[RankedLocation]:
        """A user's personal list, best first.

        Each entry carries the location summary and the user's own reviews
        of it, oldest first.
        """
        entries = self.store.get_rankings(user_id)
        reviews_by_location = dict(
            self.store.iter_reviews_by_location([entry.location_id for entry in entries])
        )

        ranked = []
        for entry in entries:
            location = self.store.get_location(entry.location_id)
            if location is None:
                continue
            reviews = reviews_by_location.get(entry.location_id, [])
            ranked.append(
                RankedLocation(
                    user_id=user_id,
                    location_id=entry.location_id,
                    position=entry.position,
                    location=self.aggregator.summarize(location, reviews),
                    reviews=[r for r in reviews if r.user_id == user_id],
                )
            )
        return ranked

    def reorder_rankings(self, user_id: str, order: list[str]) -> list[RankedLocation]:
        """Rewrite a user's list so ``order`` comes first, in that order.

        Raises:
            RankingValidationError: If ``order`` names a location outside the
                user's list or repeats one.
        """
        if not isinstance(order, list):
            raise RankingValidationError("order must be a list of location ids", user_id)
        self.store.reorder_rankings(user_id, order)
        logger.info(f"Reordered {len(order)} rankings for {user_id}")
        return self.personal_rankings(user_id)

    # --- Profiles ---

    def user_profile(self, user_id: str) -> UserProfile:
        """Public profile: review count, mean overall score, personal list and badges.

        Users are opaque ids, so an unknown user gets an empty profile.
        """
        reviews = self.store.reviews_by_user(user_id)
        avg_score = None
        if reviews:
            avg_score = round_half_up(sum(r.overall for r in reviews) / len(reviews), 1)

        location_ids = list(dict.fromkeys(r.location_id for r in reviews))
        locations: dict[str, Location] = {}
        first_authors: dict[str, str] = {}
        for location_id, location_reviews in self.store.iter_reviews_by_location(location_ids):
            location = self.store.get_location(location_id)
            if location is not None:
                locations[location_id] = location
            if location_reviews:
                first_authors[location_id] = location_reviews[0].user_id

        badges = BadgeAwarder.award(user_id, reviews, locations, first_authors)
        logger.debug(f"Profile for {user_id}: {len(reviews)} reviews, {len(badges)} badges")

        return UserProfile(
            user_id=user_id,
            review_count=len(reviews),
            avg_score=avg_score,
            rankings=self.personal_rankings(user_id),
            badges=badges,
        )

    # --- Stats ---

    def user_stats(self, user_id: str, now: datetime | None = None) -> UserStats:
        """Personal and community statistics.

        Args:
            user_id: The user the statistics are for.
            now: Optional clock override for the 30 day window.

        Returns:
            UserStats with the user's distinct locations reviewed, the three
            most reviewed and three lowest scored locations of the last 30
            days, and the five users with the most distinct locations.
        """
        now = now or datetime.now()
        recent = self.store.reviews_since(now - timedelta(days=STATS_WINDOW_DAYS))

        by_location: dict[str, list[Review]] = {}
        for review in recent:
            by_location.setdefault(review.location_id, []).append(review)

        names = {loc.id: loc for loc in self.store.list_locations(order_by="created")}

        popular = sorted(by_location.items(), key=lambda item: -len(item[1]))[:3]
        most_popular = [
            PopularLocation(
                id=location_id,
                name=names[location_id].name,
                address=names[location_id].address,
                review_count=len(reviews),
            )
            for location_id, reviews in popular
            if location_id in names
        ]

        averages = {
            location_id: sum(r.overall for r in reviews) / len(reviews)
            for location_id, reviews in by_location.items()
        }
        worst = sorted(averages.items(), key=lambda item: item[1])[:3]
        worst_recently = [
            ScoredLocation(
                id=location_id,
                name=names[location_id].name,
                address=names[location_id].address,
                avg_score=round_half_up(avg, 1),
            )
            for location_id, avg in worst
            if location_id in names
        ]

        visited: dict[str, set[str]] = {}
        for _, reviews in self.store.iter_reviews_by_location(list(names)):
            for review in reviews:
                visited.setdefault(review.user_id, set()).add(review.location_id)
        counts = Counter({uid: len(locations) for uid, locations in visited.items()})
        top_reviewers = [
            TopReviewer(user_id=uid, locations_visited=count, is_you=uid == user_id)
            for uid, count in counts.most_common(5)
        ]

        return UserStats(
            total_visited=len(visited.get(user_id, set())),
            most_popular_recently=most_popular,
            worst_recently=worst_recently,
            top_reviewers=top_reviewers,
        )
