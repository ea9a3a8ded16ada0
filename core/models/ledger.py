"""Ledger models -- positions and the append-only trade log."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class Position(BaseModel):
    """Holding and cash for one (owner, ticker) pair.

    `total_value` is cached at update time using the price that triggered
    the update; it is not continuously revalued.
    """

    owner: str
    ticker: str
    quantity: float = Field(default=0.0, ge=0.0)
    average_price: float = Field(default=0.0, ge=0.0)
    cash_balance: float
    total_value: float
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    # optimistic concurrency token; 0 means "not yet stored"
    version: int = 0


class Trade(BaseModel):
    """An executed buy or sell. Immutable after creation."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: f"trd_{uuid4().hex[:12]}")
    owner: str
    ticker: str
    action: Literal["buy", "sell", "hold"]
    quantity: float = Field(ge=0.0)
    price: float = Field(gt=0.0)
    total_value: float
    cash_after: float
    trade_date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class PortfolioSummary(BaseModel):
    """All positions held by one owner, with cached totals."""

    owner: str
    positions: list[Position] = Field(default_factory=list)
    total_value: float = 0.0
    cash_balance: float = 0.0
    trade_count: int = 0
