"""Risk manager -- sizes risk from the Tier-1 calls and raw market data."""

from __future__ import annotations

from core.models.analysis import AgentAnalysis
from core.models.market import PriceBar
from plugins.agents.base import PromptAgent

SYSTEM_PROMPT = """You are a risk management expert. Assess risk for {ticker} \
and provide: 1) Risk level (LOW/MEDIUM/HIGH), 2) Position sizing \
recommendation, 3) Stop loss levels"""


class RiskManager(PromptAgent):
    """Tier-2 stage. Consumes only the Tier-1 recommendation tokens."""

    stage = "risk"
    depends_on = ("sentiment", "fundamentals", "quant")

    def system_prompt(self, ticker: str) -> str:
        return SYSTEM_PROMPT.format(ticker=ticker)

    def user_prompt(
        self,
        ticker: str,
        bars: list[PriceBar],
        upstream: dict[str, AgentAnalysis],
    ) -> str:
        parts = [
            f"Assess risk for {ticker}. "
            f"Sentiment: {upstream['sentiment'].recommendation}, "
            f"Fundamentals: {upstream['fundamentals'].recommendation}, "
            f"Quant: {upstream['quant'].recommendation}"
        ]
        if bars:
            window = [b.close for b in bars]
            parts.append(
                f"Latest close: {bars[-1].close:g} on {bars[-1].date.isoformat()}. "
                f"{len(bars)}-day range: {min(window):g} - {max(window):g}."
            )
        return "\n".join(parts)
