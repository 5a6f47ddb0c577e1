"""
SQLite rating store with transaction support.

Provides every read and write the ranking core needs on top of a single
sqlite3 connection. Writes under transient lock contention are retried with
exponential backoff; anything else fails fast with ``StorageError``.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ..exceptions import LocationNotFoundError, RankingValidationError, StorageError
from ..models import Comparison, EloResult, Location, Outcome, PersonalRankingEntry, Review
from .base import RateFunction, RatingStore

if TYPE_CHECKING:
    from ..config import Config

logger = logging.getLogger(__name__)

T = TypeVar("T")

SCHEMA_VERSION = "1.0"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS meta_info (
    key     TEXT PRIMARY KEY,
    value   TEXT
);

CREATE TABLE IF NOT EXISTS locations (
    id           TEXT PRIMARY KEY,
    name         TEXT NOT NULL,
    address      TEXT NOT NULL DEFAULT '',
    category     TEXT NOT NULL DEFAULT '',
    city         TEXT,
    elo_rating   REAL NOT NULL,
    comparisons  INTEGER NOT NULL DEFAULT 0,
    wins         INTEGER NOT NULL DEFAULT 0,
    losses       INTEGER NOT NULL DEFAULT 0,
    ties         INTEGER NOT NULL DEFAULT 0,
    created_at   TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS reviews (
    id           TEXT PRIMARY KEY,
    user_id      TEXT NOT NULL,
    location_id  TEXT NOT NULL REFERENCES locations(id),
    overall      INTEGER NOT NULL,
    cleanliness  INTEGER NOT NULL,
    supplies     INTEGER NOT NULL,
    smell        INTEGER NOT NULL,
    privacy      INTEGER NOT NULL,
    crowdedness  INTEGER NOT NULL,
    cost         INTEGER NOT NULL,
    notes        TEXT,
    visited_at   TEXT NOT NULL,
    created_at   TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS comparisons (
    id             TEXT PRIMARY KEY,
    user_id        TEXT NOT NULL,
    location_a_id  TEXT NOT NULL REFERENCES locations(id),
    location_b_id  TEXT NOT NULL REFERENCES locations(id),
    winner_id      TEXT,
    created_at     TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS user_rankings (
    user_id      TEXT NOT NULL,
    location_id  TEXT NOT NULL REFERENCES locations(id),
    position     INTEGER NOT NULL,
    PRIMARY KEY (user_id, location_id)
);

CREATE INDEX IF NOT EXISTS idx_reviews_location ON reviews(location_id);
CREATE INDEX IF NOT EXISTS idx_reviews_user ON reviews(user_id);
CREATE INDEX IF NOT EXISTS idx_comparisons_user ON comparisons(user_id);
"""


def create_schema(conn: sqlite3.Connection) -> None:
    """Create all tables and record the schema version."""
    conn.executescript(_SCHEMA)
    conn.execute(
        "INSERT OR IGNORE INTO meta_info (key, value) VALUES ('schema_version', ?)",
        (SCHEMA_VERSION,),
    )


def get_connection(db_path: str | Path, timeout: float = 5.0) -> sqlite3.Connection:
    """
    Open a connection to the rating database, creating the schema if needed.

    The connection runs in autocommit mode; multi-statement writes go
    through ``SQLiteRatingStore.transaction``.
    """
    db_path = str(db_path)
    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path, timeout=timeout, check_same_thread=False, isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    create_schema(conn)
    return conn


def is_transient(exc: BaseException) -> bool:
    """Lock contention that is worth retrying."""
    if not isinstance(exc, sqlite3.OperationalError):
        return False
    message = str(exc).lower()
    return "locked" in message or "busy" in message


def _tally(outcome: Outcome, side: Outcome) -> tuple[int, int, int]:
    """(wins, losses, ties) increments for one side of a vote."""
    if outcome is Outcome.TIE:
        return 0, 0, 1
    if outcome is side:
        return 1, 0, 0
    return 0, 1, 0


def _row_to_location(row: sqlite3.Row) -> Location:
    return Location(
        id=row["id"],
        name=row["name"],
        address=row["address"],
        category=row["category"],
        city=row["city"],
        elo_rating=row["elo_rating"],
        comparisons=row["comparisons"],
        wins=row["wins"],
        losses=row["losses"],
        ties=row["ties"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _row_to_review(row: sqlite3.Row) -> Review:
    return Review(
        id=row["id"],
        user_id=row["user_id"],
        location_id=row["location_id"],
        overall=row["overall"],
        cleanliness=row["cleanliness"],
        supplies=row["supplies"],
        smell=row["smell"],
        privacy=row["privacy"],
        crowdedness=row["crowdedness"],
        cost=row["cost"],
        notes=row["notes"],
        visited_at=datetime.fromisoformat(row["visited_at"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _row_to_comparison(row: sqlite3.Row) -> Comparison:
    return Comparison(
        id=row["id"],
        user_id=row["user_id"],
        location_a_id=row["location_a_id"],
        location_b_id=row["location_b_id"],
        winner_id=row["winner_id"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


class SQLiteRatingStore(RatingStore):
    """
    Handles all database operations for the rating store.

    Supports:
        - Transactions (nested calls join the outer one)
        - Thread-safe access to one shared connection
        - Retries on transient lock contention
        - Resource cleanup
    """

    def __init__(self, db_path: str | Path = ":memory:", retries: int = 5, timeout: float = 5.0):
        """
        Initialize storage.

        Creates the database and schema if needed.

        Args:
            db_path: Database file, or ":memory:" for a private in-process store.
            retries: Attempts for an operation under lock contention.
            timeout: Seconds SQLite waits on a lock before reporting it.
        """
        self.db_path = str(db_path)
        self.retries = retries
        self.conn: sqlite3.Connection | None = get_connection(self.db_path, timeout=timeout)
        self._lock = threading.RLock()
        self._depth = 0

    @classmethod
    def from_config(cls, config: Config) -> SQLiteRatingStore:
        return cls(db_path=config.db_path or ":memory:", retries=config.storage_retries)

    def close(self) -> None:
        """Close database connection and cleanup resources."""
        if self.conn:
            self.conn.close()
            self.conn = None

    def _connection(self) -> sqlite3.Connection:
        if self.conn is None:
            raise StorageError("Store is closed")
        return self.conn

    @contextmanager
    def transaction(self, immediate: bool = False) -> Iterator[SQLiteRatingStore]:
        """Begin a transaction; commit on success, roll back on any error.

        Example:
            ```python
            with store.transaction(immediate=True):
                store.add_review(review)
                store.ensure_ranking(review.user_id, review.location_id)
            ```
        """
        try:
            with self._transaction(immediate):
                yield self
        except sqlite3.Error as e:
            raise self._storage_error("run transaction", e) from e

    @contextmanager
    def _transaction(self, immediate: bool = False) -> Iterator[SQLiteRatingStore]:
        with self._lock:
            if self._depth > 0:
                self._depth += 1
                try:
                    yield self
                finally:
                    self._depth -= 1
                return

            conn = self._connection()
            conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
            self._depth = 1
            try:
                yield self
                conn.execute("COMMIT")
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
            finally:
                self._depth = 0

    def _run(self, operation: str, fn: Callable[[], T]) -> T:
        """Run ``fn`` with retries and translate sqlite errors.

        Inside an open transaction ``fn`` runs once and sqlite errors pass
        through untranslated, so whoever opened the transaction can retry
        all of it.
        """
        with self._lock:
            if self._depth > 0:
                return fn()
            try:
                for attempt in Retrying(
                    stop=stop_after_attempt(self.retries),
                    wait=wait_exponential(multiplier=0.05, max=1.0),
                    retry=retry_if_exception(is_transient),
                    before_sleep=before_sleep_log(logger, logging.WARNING),
                    reraise=True,
                ):
                    with attempt:
                        result = fn()
                return result
            except sqlite3.Error as e:
                raise self._storage_error(operation, e) from e

    @staticmethod
    def _storage_error(operation: str, error: sqlite3.Error) -> StorageError:
        logger.error(f"Failed to {operation}: {error}")
        return StorageError(f"Failed to {operation}: {error}", retryable=is_transient(error))

    # --- Locations ---

    def add_location(self, location: Location) -> Location:
        """Insert a new location."""

        def write() -> Location:
            self._connection().execute(
                """
                INSERT INTO locations (
                    id, name, address, category, city, elo_rating,
                    comparisons, wins, losses, ties, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    location.id,
                    location.name,
                    location.address,
                    location.category,
                    location.city,
                    location.elo_rating,
                    location.comparisons,
                    location.wins,
                    location.losses,
                    location.ties,
                    location.created_at.isoformat(),
                ),
            )
            return location

        return self._run("add location", write)

    def get_location(self, location_id: str) -> Location | None:
        """Read one location."""

        def read() -> Location | None:
            row = self._connection().execute(
                "SELECT * FROM locations WHERE id = ?", (location_id,)
            ).fetchone()
            return _row_to_location(row) if row else None

        return self._run("read location", read)

    def list_locations(self, order_by: str = "elo", category: str | None = None) -> list[Location]:
        """List locations by rating (descending) or insertion order."""
        orderings = {
            "elo": "elo_rating DESC, rowid ASC",
            "created": "rowid ASC",
        }
        if order_by not in orderings:
            raise ValueError(f"Unknown ordering '{order_by}'. Valid orderings: {list(orderings)}")

        def read() -> list[Location]:
            sql = "SELECT * FROM locations"
            params: tuple = ()
            if category:
                sql += " WHERE category = ?"
                params = (category,)
            sql += f" ORDER BY {orderings[order_by]}"
            return [_row_to_location(row) for row in self._connection().execute(sql, params)]

        return self._run("list locations", read)

    # --- Reviews ---

    def add_review(self, review: Review) -> Review:
        """Insert a review."""

        def write() -> Review:
            self._connection().execute(
                """
                INSERT INTO reviews (
                    id, user_id, location_id, overall, cleanliness, supplies,
                    smell, privacy, crowdedness, cost, notes, visited_at, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    review.id,
                    review.user_id,
                    review.location_id,
                    review.overall,
                    review.cleanliness,
                    review.supplies,
                    review.smell,
                    review.privacy,
                    review.crowdedness,
                    int(review.cost),
                    review.notes,
                    review.visited_at.isoformat(),
                    review.created_at.isoformat(),
                ),
            )
            return review

        return self._run("add review", write)

    def _select_reviews(self, where: str, params: tuple) -> list[Review]:
        rows = self._connection().execute(
            f"SELECT * FROM reviews WHERE {where} ORDER BY rowid ASC", params
        )
        return [_row_to_review(row) for row in rows]

    def reviews_for_location(self, location_id: str) -> list[Review]:
        return self._run(
            "read reviews", lambda: self._select_reviews("location_id = ?", (location_id,))
        )

    def reviews_by_user(self, user_id: str) -> list[Review]:
        return self._run("read reviews", lambda: self._select_reviews("user_id = ?", (user_id,)))

    def reviews_since(self, since: datetime) -> list[Review]:
        return self._run(
            "read reviews", lambda: self._select_reviews("created_at >= ?", (since.isoformat(),))
        )

    def reviewed_location_ids(self, user_id: str) -> set[str]:
        def read() -> set[str]:
            rows = self._connection().execute(
                "SELECT DISTINCT location_id FROM reviews WHERE user_id = ?", (user_id,)
            )
            return {row["location_id"] for row in rows}

        return self._run("read reviewed locations", read)

    # --- Comparisons ---

    def comparisons_by_user(self, user_id: str, since: datetime | None = None) -> list[Comparison]:
        def read() -> list[Comparison]:
            sql = "SELECT * FROM comparisons WHERE user_id = ?"
            params: tuple = (user_id,)
            if since is not None:
                sql += " AND created_at >= ?"
                params += (since.isoformat(),)
            sql += " ORDER BY rowid ASC"
            return [_row_to_comparison(row) for row in self._connection().execute(sql, params)]

        return self._run("read comparisons", read)

    def _insert_comparison(self, comparison: Comparison) -> None:
        self._connection().execute(
            """
            INSERT INTO comparisons (
                id, user_id, location_a_id, location_b_id, winner_id, created_at
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                comparison.id,
                comparison.user_id,
                comparison.location_a_id,
                comparison.location_b_id,
                comparison.winner_id,
                comparison.created_at.isoformat(),
            ),
        )

    def _apply_result(self, location_id: str, new_rating: float, tally: tuple[int, int, int]) -> None:
        wins, losses, ties = tally
        self._connection().execute(
            """
            UPDATE locations
               SET elo_rating = ?,
                   comparisons = comparisons + 1,
                   wins = wins + ?,
                   losses = losses + ?,
                   ties = ties + ?
             WHERE id = ?
            """,
            (new_rating, wins, losses, ties, location_id),
        )

    def record_vote(self, comparison: Comparison, rate: RateFunction) -> EloResult:
        """Insert the vote and update both locations in one transaction."""

        def write() -> EloResult:
            with self._transaction(immediate=True):
                location_a = self.get_location(comparison.location_a_id)
                if location_a is None:
                    raise LocationNotFoundError(comparison.location_a_id)
                location_b = self.get_location(comparison.location_b_id)
                if location_b is None:
                    raise LocationNotFoundError(comparison.location_b_id)

                result = rate(location_a, location_b)
                outcome = comparison.outcome

                self._insert_comparison(comparison)
                self._apply_result(location_a.id, result.new_rating_a, _tally(outcome, Outcome.A))
                self._apply_result(location_b.id, result.new_rating_b, _tally(outcome, Outcome.B))
            return result

        return self._run("record vote", write)

    def record_review(self, review: Review) -> PersonalRankingEntry:
        """Insert the review and append its location to the author's list, atomically."""

        def write() -> PersonalRankingEntry:
            with self._transaction(immediate=True):
                self.add_review(review)
                return self.ensure_ranking(review.user_id, review.location_id)

        return self._run("record review", write)

    # --- Personal rankings ---

    def get_rankings(self, user_id: str) -> list[PersonalRankingEntry]:
        def read() -> list[PersonalRankingEntry]:
            rows = self._connection().execute(
                "SELECT * FROM user_rankings WHERE user_id = ? ORDER BY position ASC",
                (user_id,),
            )
            return [
                PersonalRankingEntry(
                    user_id=row["user_id"],
                    location_id=row["location_id"],
                    position=row["position"],
                )
                for row in rows
            ]

        return self._run("read rankings", read)

    def ensure_ranking(self, user_id: str, location_id: str) -> PersonalRankingEntry:
        """Append to the bottom of the user's list unless already present."""

        def write() -> PersonalRankingEntry:
            with self._transaction(immediate=True):
                conn = self._connection()
                row = conn.execute(
                    "SELECT position FROM user_rankings WHERE user_id = ? AND location_id = ?",
                    (user_id, location_id),
                ).fetchone()
                if row is not None:
                    return PersonalRankingEntry(
                        user_id=user_id, location_id=location_id, position=row["position"]
                    )

                max_row = conn.execute(
                    "SELECT MAX(position) AS top FROM user_rankings WHERE user_id = ?",
                    (user_id,),
                ).fetchone()
                position = (max_row["top"] or 0) + 1
                conn.execute(
                    "INSERT INTO user_rankings (user_id, location_id, position) VALUES (?, ?, ?)",
                    (user_id, location_id, position),
                )
                return PersonalRankingEntry(user_id=user_id, location_id=location_id, position=position)

        return self._run("update rankings", write)

    def reorder_rankings(self, user_id: str, order: list[str]) -> list[PersonalRankingEntry]:
        """Give ``order`` positions 1..n; unlisted entries follow in their old order."""
        if len(set(order)) != len(order):
            raise RankingValidationError("order contains duplicate locations", user_id)

        def write() -> list[PersonalRankingEntry]:
            with self._transaction(immediate=True):
                current = [entry.location_id for entry in self.get_rankings(user_id)]
                unknown = [location_id for location_id in order if location_id not in current]
                if unknown:
                    raise RankingValidationError(
                        f"not in the user's list: {', '.join(unknown)}", user_id
                    )
                listed = set(order)
                rest = [location_id for location_id in current if location_id not in listed]
                for position, location_id in enumerate(order + rest, start=1):
                    self._connection().execute(
                        "UPDATE user_rankings SET position = ? WHERE user_id = ? AND location_id = ?",
                        (position, user_id, location_id),
                    )
            return self.get_rankings(user_id)

        return self._run("reorder rankings", write)
