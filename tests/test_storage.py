"""Tests for the SQLite rating store."""

import sqlite3
from datetime import datetime, timedelta

import pytest

from bathroom_arena import (
    ELO,
    Comparison,
    LocationNotFoundError,
    RankingValidationError,
    SQLiteRatingStore,
    StorageError,
)
from conftest import make_location, make_review


# ============================================================================
# Test Fixtures
# ============================================================================


def rate_for(comparison: Comparison):
    """Rate function as the Arena builds it."""
    return lambda loc_a, loc_b: ELO.update(
        loc_a.elo_rating, loc_b.elo_rating, loc_a.comparisons, loc_b.comparisons, comparison.outcome
    )


def cast(store: SQLiteRatingStore, a: str, b: str, winner: str | None, user_id: str = "user_1"):
    comparison = Comparison(user_id=user_id, location_a_id=a, location_b_id=b, winner_id=winner)
    return store.record_vote(comparison, rate_for(comparison))


class FailingStore(SQLiteRatingStore):
    """Store whose rating write fails on the second location."""

    def __init__(self, error: sqlite3.Error, fail_times: int = 1_000, **kwargs):
        super().__init__(**kwargs)
        self.error = error
        self.fail_times = fail_times
        self.calls = 0

    def _apply_result(self, location_id, new_rating, tally):
        self.calls += 1
        if self.calls % 2 == 0 and self.fail_times > 0:
            self.fail_times -= 1
            raise self.error
        super()._apply_result(location_id, new_rating, tally)


@pytest.fixture
def pair_store(store: SQLiteRatingStore) -> SQLiteRatingStore:
    store.add_location(make_location("a"))
    store.add_location(make_location("b"))
    return store


# ============================================================================
# Locations and reviews
# ============================================================================


class TestLocations:
    """Tests for location records."""

    def test_add_and_get(self, store: SQLiteRatingStore) -> None:
        store.add_location(make_location("a", 1234.5, address="1 Main St", category="cafe", city="Austin"))
        loc = store.get_location("a")
        assert loc is not None
        assert loc.elo_rating == 1234.5
        assert loc.address == "1 Main St"
        assert loc.city == "Austin"
        assert loc.comparisons == 0

    def test_get_unknown(self, store: SQLiteRatingStore) -> None:
        assert store.get_location("missing") is None

    def test_duplicate_id(self, store: SQLiteRatingStore) -> None:
        store.add_location(make_location("a"))
        with pytest.raises(StorageError) as exc_info:
            store.add_location(make_location("a"))
        assert exc_info.value.retryable is False

    def test_list_by_rating_then_creation(self, store: SQLiteRatingStore) -> None:
        store.add_location(make_location("low", 1100))
        store.add_location(make_location("tie1", 1200))
        store.add_location(make_location("high", 1300))
        store.add_location(make_location("tie2", 1200))
        ids = [loc.id for loc in store.list_locations(order_by="elo")]
        assert ids == ["high", "tie1", "tie2", "low"]

    def test_list_by_creation(self, store: SQLiteRatingStore) -> None:
        store.add_location(make_location("first", 1100))
        store.add_location(make_location("second", 1300))
        assert [loc.id for loc in store.list_locations(order_by="created")] == ["first", "second"]

    def test_list_by_category(self, store: SQLiteRatingStore) -> None:
        store.add_location(make_location("a", category="cafe"))
        store.add_location(make_location("b", category="gas station"))
        assert [loc.id for loc in store.list_locations(category="cafe")] == ["a"]

    def test_unknown_ordering(self, store: SQLiteRatingStore) -> None:
        with pytest.raises(ValueError, match="Unknown ordering"):
            store.list_locations(order_by="name")


class TestReviews:
    """Tests for review records."""

    def test_insertion_order(self, pair_store: SQLiteRatingStore) -> None:
        for overall in (3, 9, 5):
            pair_store.add_review(make_review("a", overall=overall, cost=2))
        reviews = pair_store.reviews_for_location("a")
        assert [r.overall for r in reviews] == [3, 9, 5]
        assert reviews[0].cost == 2
        assert reviews[0].visited_at == datetime(2024, 6, 1, 9, 30)

    def test_by_user(self, pair_store: SQLiteRatingStore) -> None:
        pair_store.add_review(make_review("a", user_id="u1"))
        pair_store.add_review(make_review("b", user_id="u2"))
        pair_store.add_review(make_review("b", user_id="u1"))
        assert [r.location_id for r in pair_store.reviews_by_user("u1")] == ["a", "b"]
        assert pair_store.reviewed_location_ids("u1") == {"a", "b"}
        assert pair_store.reviewed_location_ids("u3") == set()

    def test_since(self, pair_store: SQLiteRatingStore) -> None:
        now = datetime(2024, 6, 30)
        old = make_review("a", overall=1)
        old.created_at = now - timedelta(days=40)
        recent = make_review("a", overall=2)
        recent.created_at = now - timedelta(days=2)
        pair_store.add_review(old)
        pair_store.add_review(recent)
        assert [r.overall for r in pair_store.reviews_since(now - timedelta(days=30))] == [2]

    def test_unknown_location_rejected(self, store: SQLiteRatingStore) -> None:
        with pytest.raises(StorageError):
            store.add_review(make_review("missing"))


# ============================================================================
# Votes
# ============================================================================


class TestRecordVote:
    """Tests for the transactional vote write."""

    def test_decisive(self, pair_store: SQLiteRatingStore) -> None:
        result = cast(pair_store, "a", "b", "a")
        assert result.delta_a == 32

        a = pair_store.get_location("a")
        b = pair_store.get_location("b")
        assert (a.elo_rating, a.comparisons, a.wins, a.losses, a.ties) == (1232, 1, 1, 0, 0)
        assert (b.elo_rating, b.comparisons, b.wins, b.losses, b.ties) == (1168, 1, 0, 1, 0)

    def test_tie(self, pair_store: SQLiteRatingStore) -> None:
        cast(pair_store, "a", "b", None)
        a = pair_store.get_location("a")
        b = pair_store.get_location("b")
        assert (a.ties, b.ties) == (1, 1)
        assert a.comparisons == a.wins + a.losses + a.ties

    def test_second_vote_reads_updated_ratings(self, pair_store: SQLiteRatingStore) -> None:
        cast(pair_store, "a", "b", "a")
        result = cast(pair_store, "a", "b", "a")
        # 1232 vs 1168 with K=64: 64 * (1 - 0.5913) = 26.2
        assert result.delta_a == 26

    def test_comparison_stored(self, pair_store: SQLiteRatingStore) -> None:
        cast(pair_store, "a", "b", "b", user_id="u9")
        rows = pair_store.comparisons_by_user("u9")
        assert len(rows) == 1
        assert rows[0].winner_id == "b"
        assert pair_store.comparisons_by_user("someone_else") == []

    def test_comparisons_since(self, pair_store: SQLiteRatingStore) -> None:
        cast(pair_store, "a", "b", "a")
        future = datetime.now() + timedelta(days=1)
        assert pair_store.comparisons_by_user("user_1", since=future) == []

    def test_unknown_location(self, pair_store: SQLiteRatingStore) -> None:
        with pytest.raises(LocationNotFoundError) as exc_info:
            cast(pair_store, "a", "missing", "a")
        assert exc_info.value.location_id == "missing"
        assert pair_store.comparisons_by_user("user_1") == []
        assert pair_store.get_location("a").comparisons == 0


class TestAtomicity:
    """Failures inside the vote transaction leave nothing behind."""

    def test_failure_rolls_back_everything(self) -> None:
        store = FailingStore(sqlite3.OperationalError("disk I/O error"))
        store.add_location(make_location("a"))
        store.add_location(make_location("b"))

        with pytest.raises(StorageError) as exc_info:
            cast(store, "a", "b", "a")
        assert exc_info.value.retryable is False

        a = store.get_location("a")
        b = store.get_location("b")
        assert (a.elo_rating, a.comparisons, a.wins) == (1200, 0, 0)
        assert (b.elo_rating, b.comparisons, b.losses) == (1200, 0, 0)
        assert store.comparisons_by_user("user_1") == []
        store.close()

    def test_transient_failure_retried(self) -> None:
        """A locked database is retried and the vote lands exactly once."""
        store = FailingStore(sqlite3.OperationalError("database is locked"), fail_times=1)
        store.add_location(make_location("a"))
        store.add_location(make_location("b"))

        result = cast(store, "a", "b", "a")
        assert result.delta_a == 32
        assert store.get_location("a").comparisons == 1
        assert store.get_location("a").elo_rating == 1232
        assert len(store.comparisons_by_user("user_1")) == 1
        store.close()

    def test_retries_exhausted(self) -> None:
        store = FailingStore(sqlite3.OperationalError("database is locked"), retries=2)
        store.add_location(make_location("a"))
        store.add_location(make_location("b"))

        with pytest.raises(StorageError) as exc_info:
            cast(store, "a", "b", "a")
        assert exc_info.value.retryable is True
        assert "Retry" in str(exc_info.value)
        assert store.get_location("b").comparisons == 0
        store.close()


class LockedReadStore(SQLiteRatingStore):
    """Store whose first read inside a transaction hits a locked database."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.failed = False

    def get_location(self, location_id):
        if self._depth > 0 and not self.failed:
            self.failed = True
            raise sqlite3.OperationalError("database is locked")
        return super().get_location(location_id)


class FailingRankingStore(SQLiteRatingStore):
    """Store whose ranking append fails after the review row is written."""

    def __init__(self, error: sqlite3.Error, fail_times: int = 1_000, **kwargs):
        super().__init__(**kwargs)
        self.error = error
        self.fail_times = fail_times

    def ensure_ranking(self, user_id, location_id):
        if self.fail_times > 0:
            self.fail_times -= 1
            raise self.error
        return super().ensure_ranking(user_id, location_id)


class TestInTransactionRetry:
    """Transient errors raised inside an open transaction retry the whole transaction."""

    def test_locked_read_during_vote(self) -> None:
        store = LockedReadStore()
        store.add_location(make_location("a"))
        store.add_location(make_location("b"))

        result = cast(store, "a", "b", "a")
        assert store.failed is True
        assert result.delta_a == 32
        assert store.get_location("a").elo_rating == 1232
        assert len(store.comparisons_by_user("user_1")) == 1
        store.close()

    def test_sqlite_error_surfaces_from_public_transaction(self, store: SQLiteRatingStore) -> None:
        """Inner calls pass raw errors up; the public transaction translates them."""
        store.add_location(make_location("a"))
        with pytest.raises(StorageError):
            with store.transaction():
                store.add_location(make_location("a"))


class TestRecordReview:
    """The review insert and ranking append land together."""

    def test_appends_ranking(self, pair_store: SQLiteRatingStore) -> None:
        entry = pair_store.record_review(make_review("b"))
        assert (entry.location_id, entry.position) == ("b", 1)
        assert len(pair_store.reviews_for_location("b")) == 1

    def test_transient_failure_retried(self) -> None:
        store = FailingRankingStore(sqlite3.OperationalError("database is locked"), fail_times=1)
        store.add_location(make_location("a"))

        store.record_review(make_review("a"))
        assert len(store.reviews_for_location("a")) == 1
        assert [e.location_id for e in store.get_rankings("user_1")] == ["a"]
        store.close()

    def test_failure_rolls_back_review(self) -> None:
        store = FailingRankingStore(sqlite3.OperationalError("disk I/O error"))
        store.add_location(make_location("a"))

        with pytest.raises(StorageError) as exc_info:
            store.record_review(make_review("a"))
        assert exc_info.value.retryable is False
        assert store.reviews_for_location("a") == []
        assert store.get_rankings("user_1") == []
        store.close()

    def test_retries_exhausted(self) -> None:
        store = FailingRankingStore(sqlite3.OperationalError("database is busy"), retries=2)
        store.add_location(make_location("a"))

        with pytest.raises(StorageError) as exc_info:
            store.record_review(make_review("a"))
        assert exc_info.value.retryable is True
        assert store.reviews_for_location("a") == []
        store.close()


class TestTransactions:
    """Tests for explicit transactions."""

    def test_rollback_on_error(self, store: SQLiteRatingStore) -> None:
        with pytest.raises(RuntimeError):
            with store.transaction():
                store.add_location(make_location("a"))
                raise RuntimeError("boom")
        assert store.get_location("a") is None

    def test_nested_joins_outer(self, store: SQLiteRatingStore) -> None:
        with pytest.raises(RuntimeError):
            with store.transaction(immediate=True):
                store.add_location(make_location("a"))
                with store.transaction():
                    store.add_location(make_location("b"))
                raise RuntimeError("boom")
        assert store.list_locations() == []

    def test_commit(self, store: SQLiteRatingStore) -> None:
        with store.transaction():
            store.add_location(make_location("a"))
        assert store.get_location("a") is not None

    def test_closed_store(self) -> None:
        store = SQLiteRatingStore()
        store.close()
        with pytest.raises(StorageError, match="closed"):
            store.get_location("a")

    def test_context_manager_closes(self) -> None:
        with SQLiteRatingStore() as store:
            store.add_location(make_location("a"))
        assert store.conn is None

    def test_file_database_persists(self, tmp_path) -> None:
        db_path = tmp_path / "nested" / "arena.db"
        with SQLiteRatingStore(db_path) as store:
            store.add_location(make_location("a", 1300))
        with SQLiteRatingStore(db_path) as store:
            assert store.get_location("a").elo_rating == 1300


# ============================================================================
# Personal rankings
# ============================================================================


class TestRankings:
    """Tests for personal ranking lists."""

    @pytest.fixture
    def ranked(self, store: SQLiteRatingStore) -> SQLiteRatingStore:
        for loc_id in ("a", "b", "c"):
            store.add_location(make_location(loc_id))
            store.ensure_ranking("u1", loc_id)
        return store

    def test_append_at_bottom(self, ranked: SQLiteRatingStore) -> None:
        entries = ranked.get_rankings("u1")
        assert [(e.location_id, e.position) for e in entries] == [("a", 1), ("b", 2), ("c", 3)]

    def test_existing_entry_untouched(self, ranked: SQLiteRatingStore) -> None:
        entry = ranked.ensure_ranking("u1", "a")
        assert entry.position == 1
        assert len(ranked.get_rankings("u1")) == 3

    def test_lists_are_per_user(self, ranked: SQLiteRatingStore) -> None:
        assert ranked.ensure_ranking("u2", "c").position == 1

    def test_reorder(self, ranked: SQLiteRatingStore) -> None:
        entries = ranked.reorder_rankings("u1", ["c", "a", "b"])
        assert [e.location_id for e in entries] == ["c", "a", "b"]
        assert [e.position for e in entries] == [1, 2, 3]

    def test_partial_reorder_keeps_rest(self, ranked: SQLiteRatingStore) -> None:
        entries = ranked.reorder_rankings("u1", ["c"])
        assert [e.location_id for e in entries] == ["c", "a", "b"]

    def test_unknown_location(self, ranked: SQLiteRatingStore) -> None:
        with pytest.raises(RankingValidationError, match="zz"):
            ranked.reorder_rankings("u1", ["zz", "a"])
        assert [e.location_id for e in ranked.get_rankings("u1")] == ["a", "b", "c"]

    def test_duplicates(self, ranked: SQLiteRatingStore) -> None:
        with pytest.raises(RankingValidationError, match="duplicate"):
            ranked.reorder_rankings("u1", ["a", "a"])
