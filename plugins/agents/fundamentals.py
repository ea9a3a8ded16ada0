"""Fundamentals agent -- valuation, growth and financial health."""

from __future__ import annotations

import json

from core.models.analysis import AgentAnalysis
from core.models.market import PriceBar
from plugins.agents.base import PromptAgent

SYSTEM_PROMPT = """You are a fundamental analysis expert. Analyze {ticker} \
fundamentals and provide: 1) Valuation assessment, 2) Growth prospects, \
3) Financial health, 4) Recommendation (BUY/SELL/HOLD)"""

# Most recent bars quoted in the prompt
RECENT_BARS = 5


class FundamentalsAnalyst(PromptAgent):
    """Tier-1 stage. Sees the ticker and the most recent price bars."""

    stage = "fundamentals"

    def system_prompt(self, ticker: str) -> str:
        return SYSTEM_PROMPT.format(ticker=ticker)

    def user_prompt(
        self,
        ticker: str,
        bars: list[PriceBar],
        upstream: dict[str, AgentAnalysis],
    ) -> str:
        recent = [b.model_dump(mode="json") for b in reversed(bars[-RECENT_BARS:])]
        return f"Analyze fundamentals for {ticker}. Recent price data: {json.dumps(recent)}"
