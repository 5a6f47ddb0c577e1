"""Shared fixtures for Bathroom Arena tests."""

from datetime import datetime

import pytest

from bathroom_arena import Arena, Config, Location, Review, SQLiteRatingStore


def make_location(location_id: str, rating: float = 1200.0, **kwargs) -> Location:
    """Create a location with a fixed id and rating."""
    return Location(id=location_id, name=kwargs.pop("name", location_id.upper()), elo_rating=rating, **kwargs)


def make_review(
    location_id: str,
    user_id: str = "user_1",
    overall: int = 5,
    hour: int = 9,
    **kwargs,
) -> Review:
    """Create a review visited at the given hour of 2024-06-01."""
    return Review(
        user_id=user_id,
        location_id=location_id,
        overall=overall,
        visited_at=datetime(2024, 6, 1, hour, 30),
        **kwargs,
    )


@pytest.fixture
def store():
    """In-memory rating store."""
    store = SQLiteRatingStore(":memory:")
    yield store
    store.close()


@pytest.fixture
def arena(store) -> Arena:
    """Arena over an in-memory store with default settings."""
    return Arena(config=Config(db_path=":memory:"), store=store)
