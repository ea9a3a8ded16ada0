"""Sentiment agent -- reads the market mood for a ticker."""

from __future__ import annotations

from core.models.analysis import AgentAnalysis
from core.models.market import PriceBar
from plugins.agents.base import PromptAgent

SYSTEM_PROMPT = """You are a sentiment analysis expert for financial markets. \
Analyze market sentiment for {ticker} and provide: \
1) Overall sentiment (POSITIVE/NEGATIVE/NEUTRAL), 2) Confidence score (0-1), \
3) Key sentiment drivers"""


class SentimentAnalyst(PromptAgent):
    """Tier-1 stage. Needs only the ticker."""

    stage = "sentiment"

    def system_prompt(self, ticker: str) -> str:
        return SYSTEM_PROMPT.format(ticker=ticker)

    def user_prompt(
        self,
        ticker: str,
        bars: list[PriceBar],
        upstream: dict[str, AgentAnalysis],
    ) -> str:
        return (
            f"Analyze current market sentiment for {ticker}. Consider recent news, "
            "social media trends, and general market mood."
        )
