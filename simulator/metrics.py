"""Performance metrics -- pure Python math, no numpy/pandas required.

Calculates risk statistics from a per-bar equity curve.
"""

from __future__ import annotations

import math

from core.models.backtests import PerformanceMetrics


def calculate_metrics(
    equity_curve: list[float],
    trading_days: int = 252,
    risk_free_rate: float = 0.04,
) -> PerformanceMetrics:
    """Drawdown, volatility and Sharpe from one equity value per bar."""
    if len(equity_curve) < 2:
        return PerformanceMetrics()

    returns = bar_returns(equity_curve)
    max_dd, max_dd_bars = max_drawdown(equity_curve)

    return PerformanceMetrics(
        max_drawdown=max_dd,
        max_drawdown_duration_bars=max_dd_bars,
        volatility=stdev(returns) * math.sqrt(trading_days) if returns else 0.0,
        sharpe_ratio=sharpe_ratio(returns, risk_free_rate, trading_days),
    )


def bar_returns(equity_curve: list[float]) -> list[float]:
    """Simple returns between consecutive equity values."""
    return [
        (equity_curve[i] - equity_curve[i - 1]) / equity_curve[i - 1]
        for i in range(1, len(equity_curve))
        if equity_curve[i - 1] > 0
    ]


def sharpe_ratio(
    returns: list[float],
    risk_free_rate: float = 0.04,
    trading_days: int = 252,
) -> float:
    """Annualized Sharpe ratio of per-bar returns."""
    if not returns:
        return 0.0

    daily_rf = risk_free_rate / trading_days
    excess = [r - daily_rf for r in returns]

    std = stdev(excess)
    if std < 1e-12:
        return 0.0

    return (sum(excess) / len(excess)) / std * math.sqrt(trading_days)


def max_drawdown(equity_curve: list[float]) -> tuple[float, int]:
    """Largest peak-to-trough fall as a fraction, and its length in bars."""
    if not equity_curve:
        return 0.0, 0

    peak = equity_curve[0]
    max_dd = 0.0
    max_duration = 0
    dd_start = 0
    in_drawdown = False

    for i, value in enumerate(equity_curve):
        if value >= peak:
            if in_drawdown:
                max_duration = max(max_duration, i - dd_start)
            peak = value
            in_drawdown = False
        else:
            if not in_drawdown:
                dd_start = i
                in_drawdown = True
            max_dd = max(max_dd, (peak - value) / peak if peak > 0 else 0.0)

    if in_drawdown:
        max_duration = max(max_duration, len(equity_curve) - dd_start)

    return max_dd, max_duration


def stdev(values: list[float]) -> float:
    """Sample standard deviation."""
    if len(values) < 2:
        return 0.0
    avg = sum(values) / len(values)
    variance = sum((x - avg) ** 2 for x in values) / (len(values) - 1)
    return math.sqrt(variance)
