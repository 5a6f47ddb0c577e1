"""Half-up rounding shared by the Elo updater and review aggregation."""

from __future__ import annotations

import math


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round to ``ndigits`` decimals with halves rounded toward +infinity.

    Python's built-in ``round`` rounds halves to even (``round(22.5) == 22``);
    scores here round halves up (``2.25 -> 2.3``).

    Example:
        ```python
        round_half_up(2.25, 1)  # 2.3
        round_half_up(-0.5)     # 0.0
        ```
    """
    factor = 10**ndigits
    return math.floor(value * factor + 0.5) / factor


def round_int(value: float) -> int:
    """Round half up to an integer."""
    return math.floor(value + 0.5)
