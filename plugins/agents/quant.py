"""Quant agent -- trend, momentum and key levels from closing prices."""

from __future__ import annotations

from core.models.analysis import AgentAnalysis
from core.models.market import PriceBar, closes
from plugins.agents.base import PromptAgent

SYSTEM_PROMPT = """You are a quantitative analyst. Analyze {ticker} technical \
patterns and provide: 1) Trend direction, 2) Momentum indicators, \
3) Key levels, 4) Recommendation"""

MAX_CLOSES = 30


def recent_closes(bars: list[PriceBar]) -> list[float]:
    """Up to MAX_CLOSES closes, newest first."""
    return list(reversed(closes(bars[-MAX_CLOSES:])))


class QuantAnalyst(PromptAgent):
    """Tier-1 stage. Sees the ticker and recent closing prices."""

    stage = "quant"

    def system_prompt(self, ticker: str) -> str:
        return SYSTEM_PROMPT.format(ticker=ticker)

    def user_prompt(
        self,
        ticker: str,
        bars: list[PriceBar],
        upstream: dict[str, AgentAnalysis],
    ) -> str:
        prices = ", ".join(f"{p:g}" for p in recent_closes(bars))
        return f"Analyze technical patterns for {ticker}. Recent closing prices: {prices}"

    def details(self, response: str, bars: list[PriceBar]) -> dict:
        return {"raw": response, "prices": recent_closes(bars)}
