"""Pydantic data models shared across all components."""

from core.models.analysis import AgentAnalysis, AgentType, AnalysisReport
from core.models.backtests import BacktestResult, BacktestTrade, PerformanceMetrics
from core.models.ledger import PortfolioSummary, Position, Trade
from core.models.market import PriceBar

__all__ = [
    "AgentAnalysis",
    "AgentType",
    "AnalysisReport",
    "BacktestResult",
    "BacktestTrade",
    "PerformanceMetrics",
    "PortfolioSummary",
    "Position",
    "Trade",
    "PriceBar",
]
