"""Pair selection module.

Provides the policies that decide which two locations to show next:
- PersonalSelector: Narrows a location into one user's own ordering
- SeedingSelector: Gives never-compared locations their first exposure

Example:
    ```python
    from bathroom_arena.matchmaker import get_selector

    selector = get_selector("personal")
    snapshot = selector.load_snapshot(store, user_id)
    result = selector.select(snapshot)
    ```
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import BaseSelector, ComparisonHistory, PoolSnapshot, build_history
from .personal import PersonalPool, PersonalSelector
from .seeding import SeedingSelector

if TYPE_CHECKING:
    from ..config import Config
    from ..scorer import ReviewAggregator


def get_selector(
    name: str,
    config: Config | None = None,
    aggregator: ReviewAggregator | None = None,
) -> BaseSelector:
    """Factory function to get a pair selector by name.

    Args:
        name: Policy name. One of:
            - "personal": Bracket narrowing over the user's reviewed locations
            - "seeding": First exposure for never-compared locations
        config: Optional configuration supplying the policy's thresholds.
        aggregator: Optional aggregator used to build location summaries.

    Returns:
        Initialized selector instance.

    Raises:
        ValueError: If the policy name is not recognized.
    """
    selectors = {
        "personal": PersonalSelector,
        "seeding": SeedingSelector,
    }

    if name not in selectors:
        valid = list(selectors.keys())
        raise ValueError(f"Unknown pair policy '{name}'. Valid policies: {valid}")

    selector_class = selectors[name]
    if config is not None:
        return selector_class.from_config(config, aggregator=aggregator)
    return selector_class(aggregator=aggregator)


__all__ = [
    # Base
    "BaseSelector",
    "ComparisonHistory",
    "PoolSnapshot",
    "build_history",
    # Policies
    "PersonalPool",
    "PersonalSelector",
    "SeedingSelector",
    # Factory
    "get_selector",
]
