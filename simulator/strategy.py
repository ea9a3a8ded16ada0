"""Moving-average crossover rule -- pure functions over a close series."""

from __future__ import annotations

from typing import Literal

Crossover = Literal["above", "below"]


def moving_average(values: list[float], window: int, end: int) -> float:
    """Mean of the `window` values ending at index `end` (inclusive)."""
    if window <= 0:
        raise ValueError("window must be positive")
    if end - window + 1 < 0 or end >= len(values):
        raise IndexError(f"window of {window} ending at {end} is outside the series")
    return sum(values[end - window + 1:end + 1]) / window


def first_signal_index(short_window: int, long_window: int) -> int:
    """Earliest bar with a full long window that the loop may act on."""
    return max(short_window, long_window - 1)


def crossover_state(
    closes: list[float],
    index: int,
    short_window: int,
    long_window: int,
) -> Crossover | None:
    """Where the short average sits relative to the long one at `index`.

    Returns None when the two are equal.
    """
    short_ma = moving_average(closes, short_window, index)
    long_ma = moving_average(closes, long_window, index)
    if short_ma > long_ma:
        return "above"
    if short_ma < long_ma:
        return "below"
    return None
