"""Trading service -- the entry points surfaced to the HTTP API and the CLI.

analyze_stock: orchestrator -> final recommendation -> trade execution
run_backtest:  market data -> crossover replay -> stored result

Both require an owner identity. Inputs are validated here so the engines
below only ever see normalized tickers and real dates.
"""

from __future__ import annotations

import logging
import re
from datetime import date

from core.auth import require_owner
from core.errors import ValidationError
from core.models.analysis import AgentAnalysis, AnalysisReport
from core.models.backtests import BacktestResult
from core.models.ledger import PortfolioSummary, Trade
from engine.orchestrator import Orchestrator
from ledger.execution import TradeExecutor
from ledger.portfolio import PortfolioTracker
from simulator.engine import BacktestEngine

logger = logging.getLogger(__name__)

_TICKER_RE = re.compile(r"^[A-Z0-9^][A-Z0-9.\-=^]{0,11}$")


def normalize_ticker(raw: object) -> str:
    """Upper-case and validate a ticker symbol."""
    if not isinstance(raw, str):
        raise ValidationError("Ticker must be a string")
    ticker = raw.strip().upper()
    if not _TICKER_RE.match(ticker):
        raise ValidationError(f"Invalid ticker: {raw!r}")
    return ticker


def parse_date(raw: object, field: str) -> date:
    """Accept a date or a YYYY-MM-DD string."""
    if isinstance(raw, date):
        return raw
    if not isinstance(raw, str):
        raise ValidationError(f"{field} must be a YYYY-MM-DD string")
    try:
        return date.fromisoformat(raw.strip())
    except ValueError:
        raise ValidationError(f"Invalid {field}: {raw!r} (expected YYYY-MM-DD)") from None


class TradingService:
    """Facade over the orchestrator, executor, backtester and ledger views."""

    def __init__(
        self,
        orchestrator: Orchestrator,
        executor: TradeExecutor,
        backtester: BacktestEngine,
        portfolio: PortfolioTracker,
        recent_limit: int = 20,
    ) -> None:
        self._orchestrator = orchestrator
        self._executor = executor
        self._backtester = backtester
        self._portfolio = portfolio
        self._recent_limit = recent_limit

    async def analyze_stock(self, owner: str | None, ticker: object) -> AnalysisReport:
        """Run the agent pipeline and act on its final recommendation."""
        owner = require_owner(owner)
        symbol = normalize_ticker(ticker)

        report = await self._orchestrator.analyze(symbol, owner)

        if report.final_recommendation != "HOLD" and report.current_price is not None:
            trade = await self._executor.execute(
                owner, symbol, report.final_recommendation, report.current_price
            )
            if trade is not None:
                report = report.model_copy(update={"trade_id": trade.id})

        return report

    async def run_backtest(
        self,
        owner: str | None,
        ticker: object,
        start_date: object,
        end_date: object,
    ) -> BacktestResult:
        """Replay the crossover strategy over [start_date, end_date]."""
        owner = require_owner(owner)
        symbol = normalize_ticker(ticker)
        start = parse_date(start_date, "start_date")
        end = parse_date(end_date, "end_date")
        if start > end:
            raise ValidationError(f"start_date {start} is after end_date {end}")

        return await self._backtester.run(owner, symbol, start, end)

    # ------------------------------------------------------------------
    # Read views
    # ------------------------------------------------------------------

    def get_portfolio(self, owner: str | None) -> PortfolioSummary:
        return self._portfolio.get_summary(require_owner(owner))

    def get_trades(self, owner: str | None, ticker: object = None, limit: int = 50) -> list[Trade]:
        symbol = normalize_ticker(ticker) if ticker else None
        return self._portfolio.list_trades(require_owner(owner), ticker=symbol, limit=limit)

    def get_recent_analyses(
        self,
        owner: str | None,
        ticker: object = None,
        limit: int | None = None,
    ) -> list[AgentAnalysis]:
        symbol = normalize_ticker(ticker) if ticker else None
        return self._portfolio.recent_analyses(
            require_owner(owner), ticker=symbol, limit=limit or self._recent_limit
        )

    def get_backtests(self, owner: str | None, limit: int = 20) -> list[BacktestResult]:
        return self._portfolio.list_backtests(require_owner(owner), limit=limit)
