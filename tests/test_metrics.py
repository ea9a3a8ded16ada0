"""Tests for equity-curve performance metrics."""

import pytest

from simulator.metrics import bar_returns, calculate_metrics, max_drawdown, sharpe_ratio, stdev


class TestMaxDrawdown:
    def test_peak_to_trough(self):
        dd, duration = max_drawdown([100, 120, 90, 110, 130])
        assert dd == pytest.approx(0.25)
        assert duration == 2

    def test_unrecovered_drawdown_runs_to_end(self):
        dd, duration = max_drawdown([100, 80, 70])
        assert dd == pytest.approx(0.3)
        assert duration == 2

    def test_monotonic_curve(self):
        assert max_drawdown([1, 2, 3]) == (0.0, 0)

    def test_empty(self):
        assert max_drawdown([]) == (0.0, 0)


class TestReturns:
    def test_bar_returns(self):
        assert bar_returns([100, 110, 99]) == pytest.approx([0.1, -0.1])

    def test_stdev_needs_two_values(self):
        assert stdev([1.0]) == 0.0
        assert stdev([1.0, 3.0]) == pytest.approx(2 ** 0.5)

    def test_sharpe_zero_for_constant_returns(self):
        assert sharpe_ratio([0.01, 0.01, 0.01]) == 0.0

    def test_sharpe_sign_follows_excess_return(self):
        assert sharpe_ratio([0.02, 0.01, 0.03]) > 0
        assert sharpe_ratio([-0.02, -0.01, -0.03]) < 0


class TestCalculateMetrics:
    def test_flat_curve(self):
        metrics = calculate_metrics([100_000.0] * 10)
        assert metrics.max_drawdown == 0
        assert metrics.volatility == 0
        assert metrics.sharpe_ratio == 0

    def test_short_curve_defaults(self):
        metrics = calculate_metrics([100_000.0])
        assert metrics.max_drawdown == 0
        assert metrics.max_drawdown_duration_bars == 0
