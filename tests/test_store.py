"""Tests for the SQLite ledger store."""

from datetime import date, datetime, timedelta, timezone

import pytest

from core.data.store import Store
from core.errors import LedgerConflictError
from core.models.analysis import AgentAnalysis
from core.models.backtests import BacktestResult, BacktestTrade, PerformanceMetrics
from core.models.ledger import Position, Trade


def _trade(owner="alice", ticker="AAPL", when=None, **kwargs):
    fields = dict(
        owner=owner, ticker=ticker, action="buy", quantity=10, price=50.0,
        total_value=500.0, cash_after=99_500.0,
        trade_date=when or datetime.now(timezone.utc),
    )
    fields.update(kwargs)
    return Trade(**fields)


def _position(owner="alice", ticker="AAPL", version=0, **kwargs):
    fields = dict(
        owner=owner, ticker=ticker, quantity=10, average_price=50.0,
        cash_balance=99_500.0, total_value=100_000.0, version=version,
    )
    fields.update(kwargs)
    return Position(**fields)


class TestPositions:
    def test_insert_then_update(self, store):
        saved = store.commit_trade(_trade(), _position())
        assert saved.version == 1

        saved = store.commit_trade(_trade(), saved.model_copy(update={"quantity": 20}))
        assert saved.version == 2
        assert store.get_position("alice", "AAPL").quantity == 20

    def test_duplicate_insert_conflicts(self, store):
        store.commit_trade(_trade(), _position())
        with pytest.raises(LedgerConflictError):
            store.commit_trade(_trade(), _position())
        assert store.count_trades("alice") == 1

    def test_list_positions_by_owner(self, store):
        store.commit_trade(_trade(ticker="MSFT"), _position(ticker="MSFT"))
        store.commit_trade(_trade(ticker="AAPL"), _position(ticker="AAPL"))
        store.commit_trade(_trade(owner="bob"), _position(owner="bob"))

        assert [p.ticker for p in store.list_positions("alice")] == ["AAPL", "MSFT"]
        assert len(store.list_positions("bob")) == 1
        assert store.get_position("carol", "AAPL") is None

    def test_survives_reopen(self, tmp_path):
        first = Store(tmp_path)
        first.commit_trade(_trade(), _position())
        first.close()

        second = Store(tmp_path)
        try:
            assert second.get_position("alice", "AAPL").version == 1
            assert second.count_trades("alice") == 1
        finally:
            second.close()


class TestTrades:
    def test_newest_first_and_filtered(self, store):
        base = datetime(2024, 1, 1, tzinfo=timezone.utc)
        saved = store.commit_trade(_trade(when=base), _position())
        saved = store.commit_trade(_trade(when=base + timedelta(hours=1)), saved)
        store.commit_trade(_trade(ticker="MSFT", when=base + timedelta(hours=2)), _position(ticker="MSFT"))

        trades = store.list_trades("alice")
        assert [t.ticker for t in trades] == ["MSFT", "AAPL", "AAPL"]
        assert len(store.list_trades("alice", ticker="AAPL")) == 2
        assert len(store.list_trades("alice", limit=1)) == 1
        assert store.count_trades("alice") == 3


class TestAnalyses:
    def test_round_trip_with_details(self, store):
        analysis = AgentAnalysis(
            run_id="run_1", ticker="AAPL", agent_type="quant",
            reasoning="uptrend", recommendation="BUY", confidence=0.8,
            details={"raw": "uptrend", "prices": [3.0, 2.0, 1.0]},
        )
        store.append_analysis("alice", analysis)

        [stored] = store.recent_analyses("alice", ticker="AAPL")
        assert stored == analysis
        assert store.recent_analyses("alice", ticker="MSFT") == []

    def test_limit_keeps_most_recent(self, store):
        base = datetime(2024, 1, 1, tzinfo=timezone.utc)
        for i in range(5):
            store.append_analysis("alice", AgentAnalysis(
                ticker="AAPL", agent_type="risk", reasoning=str(i),
                recommendation="APPROVED", confidence=0.85,
                analyzed_at=base + timedelta(minutes=i),
            ))
        recent = store.recent_analyses("alice", limit=2)
        assert [a.reasoning for a in recent] == ["4", "3"]


class TestBacktestResults:
    def test_round_trip(self, store):
        result = BacktestResult(
            owner="alice", ticker="AAPL",
            start_date=date(2024, 1, 1), end_date=date(2024, 3, 1),
            initial_capital=100_000, final_value=101_000, total_return_pct=1.0,
            total_trades=2, win_rate=50.0,
            trade_history=[
                BacktestTrade(date=date(2024, 1, 15), action="buy", price=10.0, shares=9000),
                BacktestTrade(date=date(2024, 2, 15), action="sell", price=10.5, shares=9000),
            ],
            bars=40,
            metrics=PerformanceMetrics(max_drawdown=0.02, volatility=0.1, sharpe_ratio=1.2),
        )
        store.append_backtest_result(result)

        assert store.list_backtest_results("alice") == [result]
        assert store.list_backtest_results("bob") == []
