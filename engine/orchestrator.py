"""Orchestrator -- multi-agent pipeline that turns a ticker into a recommendation.

For each request, the orchestrator:
1. Fetches the recent price window from the market data gateway
2. Builds the stage graph from the registered agents
   (sentiment | fundamentals | quant  ->  risk  ->  portfolio)
3. Runs it tier by tier; any stage failure aborts the whole analysis
4. Persists every stage's AgentAnalysis to the audit trail
5. Returns the analyses and the terminal stage's recommendation
"""

from __future__ import annotations

import asyncio
import logging
from uuid import uuid4

from core.errors import DataUnavailableError, ProviderError, TradingError
from core.models.analysis import AgentAnalysis, AnalysisReport
from core.models.market import PriceBar
from core.protocols import AIAgent, LedgerStore, MarketDataProvider
from engine.graph import Stage, StageFailed, StageGraph

logger = logging.getLogger(__name__)

FINAL_STAGE = "portfolio"


class Orchestrator:
    """Runs the agent graph for one ticker at a time.

    Holds no durable state of its own; analyses are written to the
    store as an audit side channel.
    """

    def __init__(
        self,
        market_data: MarketDataProvider,
        agents: list[AIAgent],
        store: LedgerStore,
        lookback_bars: int = 30,
        stage_timeout: float | None = 60.0,
        final_stage: str = FINAL_STAGE,
    ) -> None:
        self._market_data = market_data
        self._agents = agents
        self._store = store
        self._lookback = lookback_bars
        self._timeout = stage_timeout
        self._final_stage = final_stage

    async def analyze(self, ticker: str, owner: str) -> AnalysisReport:
        """Run the full pipeline. Raises ProviderError if any stage fails."""
        if not any(a.name == self._final_stage for a in self._agents):
            raise ProviderError(
                f"Analysis pipeline has no '{self._final_stage}' stage configured",
                stage=self._final_stage,
            )

        run_id = f"run_{uuid4().hex[:12]}"
        logger.info("Analyzing %s for %s [run=%s]", ticker, owner, run_id)

        bars = await self._market_data.get_prices(ticker, limit=self._lookback)
        if not bars:
            raise DataUnavailableError(f"No market data available for {ticker}")

        graph = self.build_graph(ticker, bars)
        try:
            results: dict[str, AgentAnalysis] = await graph.run()
        except StageFailed as e:
            raise self._as_provider_error(e) from e.cause

        analyses = [
            results[name].model_copy(update={"run_id": run_id})
            for tier in graph.tiers
            for name in tier
        ]
        self._persist(owner, analyses)

        final = results[self._final_stage].recommendation
        logger.info("Analysis of %s complete: %s [run=%s]", ticker, final, run_id)

        return AnalysisReport(
            run_id=run_id,
            ticker=ticker,
            analyses=analyses,
            final_recommendation=final,
            current_price=bars[-1].close,
        )

    def build_graph(self, ticker: str, bars: list[PriceBar]) -> StageGraph:
        """One graph node per agent, wired by the agent's declared dependencies."""
        stages = [
            Stage(
                name=agent.name,
                depends_on=tuple(agent.depends_on),
                run=self._stage_runner(agent, ticker, bars),
            )
            for agent in self._agents
        ]
        return StageGraph(stages, stage_timeout=self._timeout)

    def _stage_runner(self, agent: AIAgent, ticker: str, bars: list[PriceBar]):
        async def run(upstream: dict[str, AgentAnalysis]) -> AgentAnalysis:
            return await agent.analyze(ticker, bars, upstream)
        return run

    def _as_provider_error(self, failure: StageFailed) -> ProviderError:
        stage, cause = failure.stage, failure.cause
        if isinstance(cause, ProviderError):
            cause.stage = cause.stage or stage
            return cause
        if isinstance(cause, asyncio.TimeoutError):
            logger.error("Stage %s timed out after %ss", stage, self._timeout)
            return ProviderError(f"Stage '{stage}' timed out", stage=stage)
        if isinstance(cause, TradingError):
            return ProviderError(f"Stage '{stage}' failed: {cause.message}", stage=stage)
        logger.error("Stage %s failed: %r", stage, cause)
        return ProviderError(f"Stage '{stage}' failed: {cause}", stage=stage)

    def _persist(self, owner: str, analyses: list[AgentAnalysis]) -> None:
        """Best-effort audit write; one failed record does not undo the others."""
        for analysis in analyses:
            try:
                self._store.append_analysis(owner, analysis)
            except Exception:
                logger.exception(
                    "Failed to persist %s analysis for %s", analysis.agent_type, analysis.ticker
                )
