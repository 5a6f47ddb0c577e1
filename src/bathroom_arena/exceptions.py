"""Custom exceptions for Bathroom Arena.

This module provides clear, actionable error messages for the ranking
engine. Running out of things to compare is not an error: selectors return
a ``NotEnoughData`` result instead of raising.
"""

from __future__ import annotations


class BathroomArenaError(Exception):
    """Base exception for all Bathroom Arena errors."""

    pass


class VoteValidationError(BathroomArenaError):
    """Invalid comparison vote.

    Raised before storage is touched when a vote is missing a location id,
    compares a location with itself, or names a winner outside the pair.
    """

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        full_message = message
        if field:
            full_message = f"Invalid vote field '{field}': {message}"
        super().__init__(full_message)


class ReviewValidationError(BathroomArenaError):
    """Invalid review submission.

    Raised when a review is missing its location or overall score, or when a
    score falls outside its allowed range.
    """

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        full_message = message
        if field:
            full_message = f"Invalid review field '{field}': {message}"
        super().__init__(full_message)


class LocationNotFoundError(BathroomArenaError):
    """Referenced location does not exist."""

    def __init__(self, location_id: str):
        self.location_id = location_id
        message = (
            f"Location '{location_id}' not found.\n"
            "Add it with Arena.add_location() before reviewing or voting on it."
        )
        super().__init__(message)


class StorageError(BathroomArenaError):
    """Error reading from or writing to the rating store.

    A failed write never leaves partial state behind. When ``retryable`` is
    true the failure came from transient contention and the caller may try
    the same request again.
    """

    def __init__(self, message: str, retryable: bool = False):
        self.retryable = retryable
        full_message = f"Storage error: {message}"
        if retryable:
            full_message += "\nThe database was busy. Retry the request."
        super().__init__(full_message)


class ConfigError(BathroomArenaError):
    """Error in configuration.

    Raised when configuration is invalid or missing required fields.
    """

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        full_message = message
        if field:
            full_message = f"Configuration error in '{field}': {message}"
        super().__init__(full_message)


class RankingValidationError(BathroomArenaError):
    """Invalid personal ranking reorder.

    Raised when a new order names a location that is not in the user's list.
    """

    def __init__(self, message: str, user_id: str | None = None):
        self.user_id = user_id
        full_message = message
        if user_id:
            full_message = f"Invalid ranking for user '{user_id}': {message}"
        super().__init__(full_message)
