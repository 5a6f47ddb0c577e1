"""Rating store module.

Provides durable storage for locations, reviews, votes and personal lists:
- RatingStore: Abstract interface the ranking core depends on
- SQLiteRatingStore: sqlite3 implementation with transactional votes
"""

from .base import RateFunction, RatingStore
from .sqlite import SQLiteRatingStore, create_schema, get_connection

__all__ = [
    "RateFunction",
    "RatingStore",
    "SQLiteRatingStore",
    "create_schema",
    "get_connection",
]
