"""Shared fixtures: a temp-dir Store, a scripted judgment provider and a
static market data gateway. Nothing here touches the network.
"""

from __future__ import annotations

import asyncio
import time
from datetime import date, timedelta

import pytest

from core.config import BacktestConfig, TradingPolicy
from core.data.store import Store
from core.models.market import PriceBar
from plugins.agents.fundamentals import FundamentalsAnalyst
from plugins.agents.portfolio import PortfolioManager
from plugins.agents.quant import QuantAnalyst
from plugins.agents.risk import RiskManager
from plugins.agents.sentiment import SentimentAnalyst

CONFIDENCE = {
    "sentiment": 0.7,
    "fundamentals": 0.75,
    "quant": 0.8,
    "risk": 0.85,
    "portfolio": 0.9,
}

# System prompts start with a role line unique to each stage
STAGE_MARKERS = {
    "sentiment": "sentiment",
    "fundamentals": "fundamental",
    "quant": "quantitative",
    "risk": "risk management",
    "portfolio": "portfolio manager",
}


def make_bars(closes: list[float], start: date = date(2024, 1, 1)) -> list[PriceBar]:
    """One bar per close on consecutive days, open/high/low pinned to close."""
    return [
        PriceBar(
            date=start + timedelta(days=i),
            open=c, high=c, low=c, close=c, volume=1000.0,
        )
        for i, c in enumerate(closes)
    ]


class FakeLLM:
    """Scripted judgment provider keyed by stage.

    `responses[stage]` is the text returned; `delays[stage]` sleeps first;
    `failures[stage]` is raised instead of answering. Start and end times
    per stage are recorded so tests can check tier ordering.
    """

    name = "fake"

    def __init__(
        self,
        responses: dict[str, str] | None = None,
        delays: dict[str, float] | None = None,
        failures: dict[str, Exception] | None = None,
    ) -> None:
        self.responses = {
            "sentiment": "Overall sentiment is POSITIVE.",
            "fundamentals": "Strong balance sheet. BUY.",
            "quant": "Clear uptrend with rising momentum.",
            "risk": "Risk level MEDIUM.",
            "portfolio": "We should buy a starter position.",
        }
        self.responses.update(responses or {})
        self.delays = delays or {}
        self.failures = failures or {}
        self.calls: list[tuple[str, str, str]] = []
        self.started: dict[str, float] = {}
        self.finished: dict[str, float] = {}

    def _stage_for(self, system: str) -> str:
        lowered = system.lower()
        # most specific markers first
        for stage in ("portfolio", "risk", "quant", "fundamentals", "sentiment"):
            if STAGE_MARKERS[stage] in lowered:
                return stage
        raise AssertionError(f"Unrecognised system prompt: {system!r}")

    async def complete(self, system: str, user: str) -> str:
        stage = self._stage_for(system)
        self.calls.append((stage, system, user))
        self.started[stage] = time.monotonic()
        if stage in self.delays:
            await asyncio.sleep(self.delays[stage])
        if stage in self.failures:
            self.finished[stage] = time.monotonic()
            raise self.failures[stage]
        self.finished[stage] = time.monotonic()
        return self.responses[stage]

    def user_prompt(self, stage: str) -> str:
        for called, _, user in self.calls:
            if called == stage:
                return user
        raise AssertionError(f"{stage} was never called")


class StaticMarketData:
    """Serves a fixed bar series, filtered like a real gateway."""

    name = "static"

    def __init__(self, bars: list[PriceBar]) -> None:
        self.bars = bars
        self.requests: list[dict] = []

    async def get_prices(self, ticker, start=None, end=None, limit=None):
        self.requests.append({"ticker": ticker, "start": start, "end": end, "limit": limit})
        bars = [
            b for b in self.bars
            if (start is None or b.date >= start) and (end is None or b.date <= end)
        ]
        if limit is not None:
            bars = bars[-limit:]
        return bars


def build_agents(llm, confidence: dict[str, float] | None = None) -> list:
    confidence = confidence or CONFIDENCE
    return [
        cls(llm=llm, confidence=confidence[cls.stage])
        for cls in (SentimentAnalyst, FundamentalsAnalyst, QuantAnalyst, RiskManager, PortfolioManager)
    ]


@pytest.fixture
def store(tmp_path):
    s = Store(tmp_path)
    yield s
    s.close()


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def bars():
    return make_bars([100.0 + i for i in range(40)])


@pytest.fixture
def market_data(bars):
    return StaticMarketData(bars)


@pytest.fixture
def policy():
    return TradingPolicy()


@pytest.fixture
def backtest_config():
    return BacktestConfig()


def build_service(store, llm, market_data, policy=None, backtest_config=None):
    """A TradingService over the given fakes, wired the way main.py wires it."""
    from engine.orchestrator import Orchestrator
    from engine.service import TradingService
    from ledger.execution import TradeExecutor
    from ledger.portfolio import PortfolioTracker
    from simulator.engine import BacktestEngine

    return TradingService(
        orchestrator=Orchestrator(market_data, build_agents(llm), store, stage_timeout=5.0),
        executor=TradeExecutor(store, policy or TradingPolicy()),
        backtester=BacktestEngine(market_data, store, backtest_config or BacktestConfig()),
        portfolio=PortfolioTracker(store),
    )


@pytest.fixture
def service(store, fake_llm, market_data):
    return build_service(store, fake_llm, market_data)
