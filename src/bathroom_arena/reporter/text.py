"""Text reporter for Bathroom Arena results.

Provides human-readable formatting for leaderboards, location details,
pairs and vote results.
"""

from __future__ import annotations

from ..models import (
    CostBucket,
    LeaderboardEntry,
    LocationDetail,
    NotEnoughData,
    Pair,
    TimePeriod,
    VoteResult,
)


def _fmt(value: float | None, suffix: str = "") -> str:
    return "-" if value is None else f"{value:.1f}{suffix}"


class TextReporter:
    """Formats results as human-readable text.

    Example:
        ```python
        reporter = TextReporter()
        print(reporter.format_leaderboard(arena.leaderboard()))
        ```
    """

    @staticmethod
    def _bar(fraction: float, width: int = 30) -> str:
        """Render a simple bar chart segment."""
        fraction = min(max(fraction, 0.0), 1.0)
        filled = int(fraction * width + 0.5)
        return "█" * filled + "░" * (width - filled)

    def format_leaderboard(self, entries: list[LeaderboardEntry]) -> str:
        """Format leaderboard entries as a table.

        Args:
            entries: Leaderboard entries in rank order.

        Returns:
            Formatted string.
        """
        lines = [
            "Leaderboard",
            f"{'=' * 50}",
        ]
        if not entries:
            lines.append("No compared or reviewed locations yet.")
            return "\n".join(lines)

        lines.extend([
            f"  {'Rank':<6} {'Location':<30} {'ELO':<8} {'W/L/T':<12} {'Win %':<7} {'Avg'}",
            f"  {'-' * 70}",
        ])
        for entry in entries:
            win_rate = "-" if entry.win_rate is None else f"{entry.win_rate}%"
            record = f"{entry.wins}/{entry.losses}/{entry.ties}"
            lines.append(
                f"  {entry.rank:<6} {entry.name[:30]:<30} {entry.elo_rating:<8} "
                f"{record:<12} {win_rate:<7} {_fmt(entry.avg_overall)}"
            )

        return "\n".join(lines)

    def format_location_detail(self, detail: LocationDetail) -> str:
        """Format a LocationDetail as text.

        The crowd profile is only shown once the sufficiency gate is met.

        Args:
            detail: The location detail to format.

        Returns:
            Formatted string.
        """
        lines = [
            f"{detail.name}",
            f"{'=' * 50}",
        ]
        if detail.address:
            lines.append(f"Address:  {detail.address}")
        if detail.category:
            lines.append(f"Type:     {detail.category}")
        lines.extend([
            f"ELO:      {detail.elo_rating}  ({detail.wins}W/{detail.losses}L/{detail.ties}T)",
            f"Reviews:  {detail.review_count}",
        ])

        if detail.review_count:
            lines.append("")
            lines.append(f"Overall:     {_fmt(detail.avg_overall, ' / 10')}")
            for label, value in (
                ("Cleanliness", detail.avg_cleanliness),
                ("Smell", detail.avg_smell),
                ("Supplies", detail.avg_supplies),
                ("Privacy", detail.avg_privacy),
            ):
                bar = self._bar((value or 0) / 5, 20)
                lines.append(f"{label + ':':<12} {bar} {_fmt(value)}")
            if detail.mode_cost is not None:
                lines.append(f"Cost:        {CostBucket(detail.mode_cost).label}")

        if detail.crowd_threshold_met:
            lines.append("")
            lines.append("Crowdedness by time of day:")
            for period in TimePeriod:
                bucket = detail.crowd_by_period.get(period)
                lines.append(f"  {period.value:<10} {_fmt(bucket.avg):>4}  ({bucket.count} reviews)")

        return "\n".join(lines)

    def format_pair(self, result: Pair | NotEnoughData) -> str:
        """Format the next pair to vote on."""
        if isinstance(result, NotEnoughData):
            return f"Nothing to compare: {result.reason}"
        return (
            f"[A] {result.a.name} (ELO {result.a.elo_rating})\n"
            f"    vs\n"
            f"[B] {result.b.name} (ELO {result.b.elo_rating})"
        )

    def format_vote(self, result: VoteResult) -> str:
        """Format the rating change from one vote."""
        return (
            f"A: {result.new_rating_a} ({result.delta_a:+d})  "
            f"B: {result.new_rating_b} ({result.delta_b:+d})"
        )


def print_results(result: list[LeaderboardEntry] | LocationDetail | Pair | NotEnoughData | VoteResult) -> None:
    """Convenience function to print formatted results.

    Automatically detects the result type and prints the appropriate format.

    Args:
        result: A leaderboard, location detail, pair or vote result.

    Example:
        ```python
        from bathroom_arena import Arena, print_results

        print_results(Arena().leaderboard())
        ```
    """
    reporter = TextReporter()

    if isinstance(result, list):
        print(reporter.format_leaderboard(result))
    elif isinstance(result, LocationDetail):
        print(reporter.format_location_detail(result))
    elif isinstance(result, (Pair, NotEnoughData)):
        print(reporter.format_pair(result))
    elif isinstance(result, VoteResult):
        print(reporter.format_vote(result))
    else:
        raise TypeError(f"Unsupported result type: {type(result).__name__}")
