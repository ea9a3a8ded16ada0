"""Backtest models -- replay results and performance metrics."""

from __future__ import annotations

import datetime as dt
from datetime import datetime, timezone
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class BacktestTrade(BaseModel):
    """A simulated fill recorded during a replay."""

    model_config = ConfigDict(frozen=True)

    date: dt.date
    action: Literal["buy", "sell"]
    price: float
    shares: float


class PerformanceMetrics(BaseModel):
    """Risk statistics derived from the per-bar equity curve."""

    max_drawdown: float = 0.0
    max_drawdown_duration_bars: int = 0
    volatility: float = 0.0
    sharpe_ratio: float = 0.0


class BacktestResult(BaseModel):
    """A record of one backtest invocation. Not linked to the live ledger."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: f"bt_{uuid4().hex[:12]}")
    owner: str = ""
    ticker: str
    start_date: dt.date
    end_date: dt.date
    initial_capital: float
    final_value: float
    total_return_pct: float
    total_trades: int
    win_rate: float = Field(ge=0.0, le=100.0)
    trade_history: list[BacktestTrade] = Field(default_factory=list)
    bars: int = 0
    metrics: PerformanceMetrics = Field(default_factory=PerformanceMetrics)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
