"""Yahoo Finance market data provider -- fetches via httpx (no yfinance dependency).

Supports stocks, ETFs, indices, forex, crypto (Yahoo-style tickers).
Example tickers: AAPL, SPY, BTC-USD, EURUSD=X, GLD, TLT
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone

import httpx
from pydantic import ValidationError

from core.errors import DataUnavailableError
from core.models.market import PriceBar

logger = logging.getLogger(__name__)

# Yahoo Finance chart API endpoint
_CHART_URL = "https://query1.finance.yahoo.com/v8/finance/chart/{ticker}"

_ALIASES = {
    "BTC": "BTC-USD",
    "ETH": "ETH-USD",
    "SOL": "SOL-USD",
}


class YahooFinanceProvider:
    """Fetches daily bars from Yahoo Finance via their public chart API.

    Implements the MarketDataProvider protocol.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers={"User-Agent": "TradeCouncil/0.1"},
        )

    @property
    def name(self) -> str:
        return "yahoo_finance"

    def _normalize_ticker(self, ticker: str) -> str:
        """Map common shorthand symbols to Yahoo's expected format."""
        upper = ticker.upper()
        return _ALIASES.get(upper, upper)

    async def get_prices(
        self,
        ticker: str,
        start: date | None = None,
        end: date | None = None,
        limit: int | None = None,
    ) -> list[PriceBar]:
        """Fetch daily bars, ascending by date."""
        end = end or datetime.now(timezone.utc).date()
        if start is None:
            # calendar-day cushion for weekends and holidays
            start = end - timedelta(days=(limit or 30) * 2 + 10)

        params = {
            "period1": int(datetime.combine(start, time.min, timezone.utc).timestamp()),
            "period2": int(datetime.combine(end, time.max, timezone.utc).timestamp()),
            "interval": "1d",
            "includePrePost": "false",
        }

        query_ticker = self._normalize_ticker(ticker)
        url = _CHART_URL.format(ticker=query_ticker)
        try:
            response = await self._client.get(url, params=params)
        except httpx.HTTPError as e:
            raise DataUnavailableError(f"Market data request for {ticker} failed") from e

        if response.status_code != 200:
            logger.warning(
                "Yahoo Finance returned %d for %s", response.status_code, query_ticker
            )
            raise DataUnavailableError(
                f"Market data provider returned HTTP {response.status_code} for {ticker}"
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise DataUnavailableError(f"Malformed market data for {ticker}") from e

        chart = payload.get("chart") if isinstance(payload, dict) else None
        if not isinstance(chart, dict):
            raise DataUnavailableError(f"Malformed market data for {ticker}")

        result = chart.get("result")
        if not isinstance(result, list) or not result or not isinstance(result[0], dict):
            logger.warning("Yahoo Finance error for %s: %s", query_ticker, chart.get("error"))
            raise DataUnavailableError(f"No market data available for {ticker}")

        try:
            parsed = self._parse_chart_result(result[0])
        except (AttributeError, IndexError, TypeError) as e:
            raise DataUnavailableError(f"Malformed market data for {ticker}") from e

        bars = [b for b in parsed if start <= b.date <= end]
        if not bars:
            raise DataUnavailableError(f"No market data available for {ticker}")
        if limit is not None:
            bars = bars[-limit:]
        return bars

    def _parse_chart_result(self, result: dict) -> list[PriceBar]:
        """Parse a chart API result into PriceBars."""
        timestamps = result.get("timestamp", [])
        quote = result.get("indicators", {}).get("quote", [{}])[0]

        opens = quote.get("open", [])
        highs = quote.get("high", [])
        lows = quote.get("low", [])
        closes = quote.get("close", [])
        volumes = quote.get("volume", [])

        bars: list[PriceBar] = []
        for i, ts in enumerate(timestamps):
            close = closes[i] if i < len(closes) else None
            if close is None:
                continue  # skip days with no data

            def pick(series: list, default: float) -> float:
                value = series[i] if i < len(series) else None
                return default if value is None else value

            try:
                bars.append(PriceBar(
                    date=datetime.fromtimestamp(ts, tz=timezone.utc).date(),
                    open=pick(opens, close),
                    high=pick(highs, close),
                    low=pick(lows, close),
                    close=close,
                    volume=float(pick(volumes, 0.0)),
                ))
            except (ValidationError, TypeError, ValueError, OverflowError):
                logger.debug("Skipping unusable bar at %r", ts)

        return sorted(bars, key=lambda b: b.date)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()
