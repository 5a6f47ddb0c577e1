"""
HTTP API for Bathroom Arena.

Exposes the Arena operations as a FastAPI application. Request and response
bodies use camelCase keys; a pair request that has nothing left to compare
answers 200 with a ``not_enough_data`` status rather than an error.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Literal, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from . import __version__
from .arena import Arena
from .exceptions import (
    LocationNotFoundError,
    RankingValidationError,
    ReviewValidationError,
    StorageError,
    VoteValidationError,
)
from .models import ArenaModel, NotEnoughData

logger = logging.getLogger(__name__)


# --- Request Models ---

class VoteRequest(ArenaModel):
    """Head-to-head vote. Missing ids are rejected by the Arena with a 400."""
    user_id: str = ""
    location_a_id: str = ""
    location_b_id: str = ""
    winner_id: Optional[str] = None


class LocationRequest(ArenaModel):
    """New location."""
    name: str = Field(min_length=1)
    address: str = ""
    category: str = ""
    city: Optional[str] = None


class ReviewRequest(ArenaModel):
    """Review submission. Only the location and overall score are required."""
    user_id: str = ""
    location_id: str = ""
    overall: Optional[int] = None
    cleanliness: Optional[int] = None
    supplies: Optional[int] = None
    smell: Optional[int] = None
    privacy: Optional[int] = None
    crowdedness: Optional[int] = None
    cost: Optional[int] = None
    notes: Optional[str] = None
    visited_at: Optional[datetime] = None


class RankingOrderRequest(ArenaModel):
    """New personal ordering, best first."""
    user_id: str
    order: list[str]


class HealthResponse(BaseModel):
    status: str
    version: str


def _dump(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)


def _error(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def create_app(arena: Arena | None = None) -> FastAPI:
    """
    Build the FastAPI application around an Arena.

    Args:
        arena: Arena to serve. A default in-memory Arena is created if omitted.

    Returns:
        Configured FastAPI application.
    """
    arena = arena or Arena()
    app = FastAPI(title="Bathroom Arena", version=__version__)
    app.state.arena = arena

    # --- Error mapping ---

    @app.exception_handler(VoteValidationError)
    @app.exception_handler(ReviewValidationError)
    async def validation_error_handler(request: Request, exc: VoteValidationError | ReviewValidationError):
        return _error(400, str(exc), field=exc.field)

    @app.exception_handler(RankingValidationError)
    async def ranking_error_handler(request: Request, exc: RankingValidationError):
        return _error(400, str(exc))

    @app.exception_handler(LocationNotFoundError)
    async def not_found_handler(request: Request, exc: LocationNotFoundError):
        return _error(404, str(exc), locationId=exc.location_id)

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return _error(503 if exc.retryable else 500, str(exc), retryable=exc.retryable)

    # --- Routes ---

    @app.get("/health", response_model=HealthResponse)
    def health():
        return HealthResponse(status="ok", version=__version__)

    @app.get("/pair")
    def get_pair(
        user_id: str = Query(..., alias="userId", min_length=1),
        focus_id: Optional[str] = Query(None, alias="focusId"),
    ):
        """Next pair to vote on for a user."""
        result = arena.get_pair(user_id, focus_id)
        if isinstance(result, NotEnoughData):
            return {"error": "not_enough_data", **_dump(result)}
        return _dump(result)

    @app.post("/vote")
    def vote(body: VoteRequest):
        """Record a vote and return both rating changes."""
        result = arena.vote(body.user_id, body.location_a_id, body.location_b_id, body.winner_id)
        return _dump(result)

    @app.get("/locations/{location_id}")
    def location_detail(location_id: str):
        """Location with its reviews and aggregates."""
        return _dump(arena.location_detail(location_id))

    @app.post("/locations", status_code=201)
    def add_location(body: LocationRequest):
        """Create a location at the default rating."""
        try:
            location = arena.add_location(
                body.name, address=body.address, category=body.category, city=body.city
            )
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e)) from e
        return _dump(location)

    @app.get("/leaderboard")
    def leaderboard(
        sort: Literal["elo", "overall"] = Query("elo"),
        category: Optional[str] = Query(None),
        limit: int = Query(100, ge=1, le=500),
    ):
        """Ranked locations, optionally filtered by category."""
        return [_dump(entry) for entry in arena.leaderboard(sort=sort, category=category, limit=limit)]

    @app.post("/reviews", status_code=201)
    def submit_review(body: ReviewRequest):
        """Store a review; the location joins the user's personal list."""
        review = arena.submit_review(
            body.user_id,
            body.location_id,
            body.overall,
            cleanliness=body.cleanliness,
            supplies=body.supplies,
            smell=body.smell,
            privacy=body.privacy,
            crowdedness=body.crowdedness,
            cost=body.cost,
            notes=body.notes,
            visited_at=body.visited_at,
        )
        return _dump(review)

    @app.get("/rankings")
    def personal_rankings(user_id: str = Query(..., alias="userId", min_length=1)):
        """A user's personal list, best first."""
        return [_dump(entry) for entry in arena.personal_rankings(user_id)]

    @app.put("/rankings")
    def reorder_rankings(body: RankingOrderRequest):
        """Rewrite a user's personal list."""
        return [_dump(entry) for entry in arena.reorder_rankings(body.user_id, body.order)]

    @app.get("/users/{user_id}")
    def user_profile(user_id: str):
        """Review count, mean score, personal list and badges."""
        return _dump(arena.user_profile(user_id))

    @app.get("/stats")
    def user_stats(user_id: str = Query(..., alias="userId", min_length=1)):
        """Personal and community statistics."""
        return _dump(arena.user_stats(user_id))

    return app
