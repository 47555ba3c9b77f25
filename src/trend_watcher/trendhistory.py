from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .trendmodel import Stat

DEFAULT_HISTORY_LIMIT = 10


@dataclasses.dataclass(frozen=True)
class Trend:
    """Change of a directory's file count against its history."""

    highlight: bool
    delta: int
    text: str


def push_history(history: list[Stat], stat: Stat, limit: int) -> list[Stat]:
    """
    Append a stat to the history, evicting the oldest entries.

    Args:
        history: Past stats, oldest first. Not modified.
        stat: The stat being replaced by a newer run.
        limit: Maximum length of the returned history.

    Returns:
        A new list holding at most `limit` stats, newest last.

    Raises:
        ValueError: If limit is lower than 1.
    """
    if limit < 1:
        raise ValueError(f"History limit must be at least 1, got {limit}")

    kept = history[len(history) - limit + 1 :] if len(history) >= limit else history
    return [*kept, stat]


def analyze_history(history: list[Stat]) -> str:
    """Return the pairwise count deltas of the history, newest pair first."""
    if len(history) < 2:
        return ""

    deltas = [
        f":{history[idx].count - history[idx - 1].count:+d}"
        for idx in range(len(history) - 1, 0, -1)
    ]
    return "past" + "".join(deltas)


def get_trend(count: int, history: list[Stat]) -> Trend:
    """Compare the current count to the last run and summarize the history."""
    if not history:
        return Trend(highlight=False, delta=0, text="")

    delta = count - history[-1].count
    text = f" ({delta:+d}){analyze_history(history)}"
    return Trend(highlight=count > 0 or delta != 0, delta=delta, text=text)


def classify(count: int, history: list[Stat], highlight: bool) -> str:
    """Return the reporting class of a directory."""
    if not highlight:
        return "common"

    if count == 0:
        return "empty"

    if history:
        previous = history[-1].count
        if previous == 0:
            return "recent"
        if previous < count:
            return "increase"

    return "flat"
