"""Configuration for Bathroom Arena.

This module provides the Config class for customizing Arena behavior,
including the Elo schedule, pair selection policy, crowd thresholds and
storage settings.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .exceptions import ConfigError
from .models import DEFAULT_RATING

PAIR_POLICIES = {"personal", "seeding"}


class Config(BaseModel):
    """Configuration for Bathroom Arena.

    Attributes:
        default_rating: Elo rating given to a new location.
        k_new: K-factor while a location has fewer than ``k_new_below`` comparisons.
        k_new_below: Comparison count where ``k_new`` stops applying.
        k_mid: K-factor while fewer than ``k_mid_below`` comparisons.
        k_mid_below: Comparison count where ``k_mid`` stops applying.
        k_stable: K-factor for well established locations.
        pair_policy: Pair selection policy, "personal" or "seeding".
        max_comparisons_per_location: Personal comparisons after which a
            location counts as settled.
        min_bracket_width: Brackets narrower than this are settled.
        recency_days: Seeding mode skips pairs voted on within this window.
        crowd_min_reviews: Reviews needed before the crowd profile is shown.
        crowd_min_periods: Populated time bands needed before it is shown.
        db_path: SQLite database path (":memory:" for an in-process store).
        storage_retries: Attempts for a write under transient contention.
        verbose: Log selection and storage decisions at DEBUG level.
    """

    # Elo
    default_rating: float = Field(default=DEFAULT_RATING, ge=0)
    k_new: int = Field(default=64, ge=1, le=200)
    k_new_below: int = Field(default=10, ge=0)
    k_mid: int = Field(default=48, ge=1, le=200)
    k_mid_below: int = Field(default=30, ge=0)
    k_stable: int = Field(default=32, ge=1, le=200)

    # Pair selection
    # - "personal": narrow a newly reviewed location into the user's own list
    # - "seeding": give never-compared locations their first exposure
    pair_policy: str = Field(default="personal")
    max_comparisons_per_location: int = Field(default=4, ge=1, le=50)
    min_bracket_width: float = Field(default=100.0, ge=0)
    recency_days: int = Field(default=14, ge=0, le=365)

    # Review aggregation
    crowd_min_reviews: int = Field(default=3, ge=1)
    crowd_min_periods: int = Field(default=2, ge=1, le=4)

    # Storage
    db_path: str | None = None
    storage_retries: int = Field(default=5, ge=1, le=20)

    # Output
    verbose: bool = False

    @field_validator("pair_policy")
    @classmethod
    def validate_pair_policy(cls, v: str) -> str:
        """Validate the pair policy is supported."""
        if v not in PAIR_POLICIES:
            raise ValueError(
                f"Invalid pair_policy '{v}'. Must be one of: {', '.join(sorted(PAIR_POLICIES))}"
            )
        return v

    @model_validator(mode="after")
    def validate_k_schedule(self) -> Config:
        """K thresholds must increase and K values must not grow with experience."""
        if self.k_mid_below < self.k_new_below:
            raise ValueError("k_mid_below must be >= k_new_below")
        if not self.k_new >= self.k_mid >= self.k_stable:
            raise ValueError("K-factors must satisfy k_new >= k_mid >= k_stable")
        return self

    def model_post_init(self, __context: Any) -> None:
        """Load the database path from the environment if not provided."""
        if self.db_path is None:
            self.db_path = os.environ.get("BATHROOM_ARENA_DB", ":memory:")


class ArenaConfig(BaseModel):
    """Full Arena configuration, typically loaded from YAML.

    Attributes:
        arena: Ranking settings (maps to Config).
        seed_locations: Optional locations to create on startup.
    """

    arena: Config = Field(default_factory=Config)
    seed_locations: list[dict[str, Any]] = Field(default_factory=list)

    @classmethod
    def from_yaml(cls, path: str | Path) -> ArenaConfig:
        """Load configuration from a YAML file.

        The ``storage`` section is merged into the arena settings, so
        ``storage: {db_path: ./arena.db}`` and ``arena: {db_path: ...}`` are
        equivalent.

        Args:
            path: Path to the YAML configuration file.

        Returns:
            ArenaConfig instance.

        Raises:
            FileNotFoundError: If the config file doesn't exist.
            ValueError: If the YAML is invalid.
            ConfigError: If an arena setting is out of range.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path) as f:
            data = yaml.safe_load(f)

        if not isinstance(data, dict):
            raise ValueError(f"Invalid config file: expected dict, got {type(data).__name__}")

        arena_data = data.pop("arena", None) or {}
        if not isinstance(arena_data, dict):
            raise ValueError("Invalid config file: 'arena' must be a mapping")

        storage = data.pop("storage", None) or {}
        if not isinstance(storage, dict):
            raise ValueError("Invalid config file: 'storage' must be a mapping")
        if "path" in storage:
            storage["db_path"] = storage.pop("path")
        arena_data.update(storage)

        try:
            data["arena"] = Config(**arena_data)
        except ValidationError as e:
            error = e.errors()[0]
            field = ".".join(str(part) for part in error["loc"]) or None
            raise ConfigError(error["msg"], field) from e

        if "seed_locations" in data:
            for entry in data["seed_locations"]:
                if not isinstance(entry, dict) or "name" not in entry:
                    raise ValueError(f"Invalid seed location: {entry}")

        return cls(**data)
