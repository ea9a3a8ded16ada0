"""Shared flow for prompt-driven agents.

An agent renders a system + user prompt, asks the judgment provider for
free text, classifies that text with its stage vocabulary and wraps the
result in an AgentAnalysis. Provider failures propagate untouched.
"""

from __future__ import annotations

import logging

from core.models.analysis import AgentAnalysis
from core.models.market import PriceBar
from core.protocols import LLMProvider
from engine.classifier import classify

logger = logging.getLogger(__name__)


class PromptAgent:
    """Base class for the five analysis stages.

    Subclasses set `stage` and `depends_on`, and implement
    the two prompt builders.
    """

    stage: str = ""
    depends_on: tuple[str, ...] = ()

    def __init__(self, llm: LLMProvider, confidence: float) -> None:
        if not 0.0 <= confidence <= 1.0:
            raise ValueError(f"{self.stage} confidence must be in [0, 1], got {confidence}")
        self._llm = llm
        self._confidence = confidence

    @property
    def name(self) -> str:
        return self.stage

    @property
    def confidence(self) -> float:
        return self._confidence

    async def analyze(
        self,
        ticker: str,
        bars: list[PriceBar],
        upstream: dict[str, AgentAnalysis],
    ) -> AgentAnalysis:
        system = self.system_prompt(ticker)
        user = self.user_prompt(ticker, bars, upstream)

        logger.info("Running agent: %s (%s)", self.stage, ticker)
        response = await self._llm.complete(system, user)

        recommendation = classify(self.stage, response)
        logger.info(
            "Agent %s: recommendation=%s confidence=%.2f",
            self.stage, recommendation, self._confidence,
        )

        return AgentAnalysis(
            ticker=ticker,
            agent_type=self.stage,  # type: ignore[arg-type]
            reasoning=response,
            recommendation=recommendation,
            confidence=self._confidence,
            details=self.details(response, bars),
        )

    def system_prompt(self, ticker: str) -> str:
        raise NotImplementedError

    def user_prompt(
        self,
        ticker: str,
        bars: list[PriceBar],
        upstream: dict[str, AgentAnalysis],
    ) -> str:
        raise NotImplementedError

    def details(self, response: str, bars: list[PriceBar]) -> dict:
        return {"raw": response}
