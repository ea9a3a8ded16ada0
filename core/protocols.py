"""Core protocols -- the extension points of the decision pipeline.

The core imports these protocols. Plugins implement them.
The core NEVER imports concrete implementations.

All protocols use Python's structural subtyping (typing.Protocol):
if your class has the right methods, it implements the protocol.
No inheritance required.
"""

from __future__ import annotations

from datetime import date
from typing import Protocol, runtime_checkable

from core.models.analysis import AgentAnalysis
from core.models.backtests import BacktestResult
from core.models.ledger import Position, Trade
from core.models.market import PriceBar


# ---------------------------------------------------------------------------
# 1. MarketDataProvider -- the market data gateway
# ---------------------------------------------------------------------------

@runtime_checkable
class MarketDataProvider(Protocol):
    """Fetches a daily price series for one ticker.

    Implementations return bars ascending by date and raise
    DataUnavailableError on an empty series, an unknown ticker or a
    provider failure.
    """

    @property
    def name(self) -> str:
        """Unique provider name, e.g. 'financial_datasets', 'yahoo_finance'."""
        ...

    async def get_prices(
        self,
        ticker: str,
        start: date | None = None,
        end: date | None = None,
        limit: int | None = None,
    ) -> list[PriceBar]:
        """Return bars in [start, end]; with `limit`, only the most recent `limit` bars."""
        ...


# ---------------------------------------------------------------------------
# 2. LLMProvider -- the judgment provider
# ---------------------------------------------------------------------------

@runtime_checkable
class LLMProvider(Protocol):
    """Abstracts language model API calls.

    Implementations call LLM APIs via httpx (no SDK required) and raise
    ProviderError on timeout, quota or malformed responses. No retries.
    """

    @property
    def name(self) -> str:
        """Provider name, e.g. 'openai'."""
        ...

    async def complete(self, system: str, user: str) -> str:
        """Send a system + user prompt and return the free-text response."""
        ...


# ---------------------------------------------------------------------------
# 3. AIAgent -- one analytical stage
# ---------------------------------------------------------------------------

@runtime_checkable
class AIAgent(Protocol):
    """A single analysis stage in the orchestration graph.

    `depends_on` names the stages whose outputs must exist before this
    one runs; the orchestrator passes them in `upstream`.
    """

    @property
    def name(self) -> str:
        """Stage name, e.g. 'sentiment', 'risk'."""
        ...

    @property
    def depends_on(self) -> tuple[str, ...]:
        ...

    async def analyze(
        self,
        ticker: str,
        bars: list[PriceBar],
        upstream: dict[str, AgentAnalysis],
    ) -> AgentAnalysis:
        """Produce this stage's analysis."""
        ...


# ---------------------------------------------------------------------------
# 4. LedgerStore -- durable decision ledger
# ---------------------------------------------------------------------------

@runtime_checkable
class LedgerStore(Protocol):
    """Durable Position / Trade / audit storage, keyed by owner."""

    def get_position(self, owner: str, ticker: str) -> Position | None:
        ...

    def commit_trade(self, trade: Trade, position: Position) -> Position:
        """Append the trade and upsert the position as one transaction.

        Raises LedgerConflictError if the stored position version no longer
        matches `position.version`. Returns the position as stored.
        """
        ...

    def append_analysis(self, owner: str, analysis: AgentAnalysis) -> None:
        ...

    def append_backtest_result(self, result: BacktestResult) -> None:
        ...
