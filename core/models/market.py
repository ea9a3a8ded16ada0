"""Market data models -- daily price bars."""

from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, ConfigDict, Field


class PriceBar(BaseModel):
    """One trading day of OHLCV data.

    Gateways return bars ascending by date. Bars are immutable once fetched.
    """

    model_config = ConfigDict(frozen=True)

    date: dt.date
    open: float
    high: float
    low: float
    close: float = Field(gt=0)
    volume: float = 0.0


def closes(bars: list[PriceBar]) -> list[float]:
    """Closing prices in bar order."""
    return [b.close for b in bars]
