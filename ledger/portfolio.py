"""Portfolio views -- read-only access to an owner's ledger."""

from __future__ import annotations

from core.data.store import Store
from core.models.analysis import AgentAnalysis
from core.models.backtests import BacktestResult
from core.models.ledger import PortfolioSummary, Trade


class PortfolioTracker:
    """Reads positions, trades and audit records for one owner at a time."""

    def __init__(self, store: Store) -> None:
        self._store = store

    def get_summary(self, owner: str) -> PortfolioSummary:
        """Build a PortfolioSummary from the stored positions.

        Totals add up each position's cached values; nothing is revalued.
        """
        positions = self._store.list_positions(owner)
        return PortfolioSummary(
            owner=owner,
            positions=positions,
            total_value=sum(p.total_value for p in positions),
            cash_balance=sum(p.cash_balance for p in positions),
            trade_count=self._store.count_trades(owner),
        )

    def list_trades(self, owner: str, ticker: str | None = None, limit: int = 50) -> list[Trade]:
        return self._store.list_trades(owner, ticker=ticker, limit=limit)

    def recent_analyses(
        self,
        owner: str,
        ticker: str | None = None,
        limit: int = 20,
    ) -> list[AgentAnalysis]:
        return self._store.recent_analyses(owner, ticker=ticker, limit=limit)

    def list_backtests(self, owner: str, limit: int = 20) -> list[BacktestResult]:
        return self._store.list_backtest_results(owner, limit=limit)
