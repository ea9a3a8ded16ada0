"""Agent analysis models -- the audit trail produced by each pipeline run."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

AgentType = Literal["market_data", "sentiment", "fundamentals", "quant", "risk", "portfolio"]


class AgentAnalysis(BaseModel):
    """One stage's output for one pipeline run. Never mutated after creation."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: f"ana_{uuid4().hex[:12]}")
    run_id: str = ""
    ticker: str
    agent_type: AgentType
    reasoning: str
    recommendation: str
    confidence: float = Field(ge=0.0, le=1.0)
    details: dict = Field(default_factory=dict)
    analyzed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class AnalysisReport(BaseModel):
    """What `analyze_stock` returns: every stage's analysis plus the final call."""

    run_id: str
    ticker: str
    analyses: list[AgentAnalysis]
    final_recommendation: str
    current_price: float | None = None
    trade_id: str | None = None

    def by_agent(self, agent_type: str) -> AgentAnalysis | None:
        for analysis in self.analyses:
            if analysis.agent_type == agent_type:
                return analysis
        return None
