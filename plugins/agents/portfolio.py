"""Portfolio manager -- the final BUY/SELL/HOLD call."""

from __future__ import annotations

from core.models.analysis import AgentAnalysis
from core.models.market import PriceBar
from plugins.agents.base import PromptAgent

SYSTEM_PROMPT = """You are a portfolio manager making final trading decisions. \
Based on all agent recommendations, decide: BUY, SELL, or HOLD for {ticker}. \
Provide clear reasoning."""


class PortfolioManager(PromptAgent):
    """Terminal stage. Sees every prior token and its confidence."""

    stage = "portfolio"
    depends_on = ("sentiment", "fundamentals", "quant", "risk")

    def system_prompt(self, ticker: str) -> str:
        return SYSTEM_PROMPT.format(ticker=ticker)

    def user_prompt(
        self,
        ticker: str,
        bars: list[PriceBar],
        upstream: dict[str, AgentAnalysis],
    ) -> str:
        lines = [f"Make trading decision for {ticker}:"]
        for stage in self.depends_on:
            analysis = upstream[stage]
            lines.append(
                f"{stage.capitalize()}: {analysis.recommendation} ({analysis.confidence:g})"
            )
        return "\n".join(lines)
