"""Helpers for rendering leaderboards with rich."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence, Tuple

from rich.console import Console
from rich.table import Table

from trust_scoring.core.types import LeaderboardEntry

_CONSOLE: Console | None = None


@dataclass(slots=True)
class ColorPalette:
    """Color tokens used by the leaderboard tables."""

    table_border: str = "cyan"
    table_header: str = "bold cyan"
    row_alt: str = "dim"
    warning: str = "yellow"
    error: str = "red"


def get_console() -> Console:
    """Return a shared Rich console configured for plain output."""

    global _CONSOLE
    if _CONSOLE is None:
        _CONSOLE = Console(soft_wrap=True, markup=False, highlight=False)
    return _CONSOLE


def style_table(table: Table, palette: ColorPalette | None = None) -> None:
    palette = palette or ColorPalette()
    table.border_style = palette.table_border
    table.header_style = palette.table_header
    table.row_styles = ["", palette.row_alt]


def build_leaderboard_table(
    entries: Sequence[LeaderboardEntry],
    *,
    title: str | None = None,
    palette: ColorPalette | None = None,
) -> Table:
    """Build a table with one row per leaderboard entry."""

    table = Table(title=title)
    table.add_column("Rank", justify="right")
    table.add_column("Entity")
    table.add_column("Weighted mean", justify="right")
    table.add_column("Samples", justify="right")
    table.add_column("Coverage", justify="right")
    table.add_column("Total weight", justify="right")
    for entry in entries:
        table.add_row(
            str(entry.rank),
            entry.entity_id,
            f"{entry.weighted_mean_score:.4f}",
            str(entry.sample_count),
            f"{entry.coverage:.1%}",
            f"{entry.total_weight:.3f}",
        )
    style_table(table, palette)
    return table


def render_leaderboard(
    entries: Sequence[LeaderboardEntry],
    *,
    title: str | None = None,
    stats: Mapping[str, Any] | None = None,
    console: Console | None = None,
) -> None:
    """Print a leaderboard table, followed by its stats when given."""

    console = console or get_console()
    if not entries:
        console.print("No entities met the leaderboard criteria.", style=ColorPalette().warning)
    else:
        console.print(build_leaderboard_table(entries, title=title))
    if stats:
        summary = ", ".join(f"{key}={value}" for key, value in stats.items())
        console.print(summary)


def render_violations(violations: Sequence[Tuple[str, str]], *, console: Console | None = None) -> None:
    console = console or get_console()
    if not violations:
        console.print("No ranking violations.")
        return
    palette = ColorPalette()
    for adversary, altruist in violations:
        console.print(f"{adversary} outranks {altruist}", style=palette.error)


__all__ = [
    "ColorPalette",
    "build_leaderboard_table",
    "get_console",
    "render_leaderboard",
    "render_violations",
    "style_table",
]
