"""Financial Datasets market data provider -- daily prices via httpx.

Endpoint: https://api.financialdatasets.ai/stocks/prices/{ticker}
Auth: X-API-KEY header.
"""

from __future__ import annotations

import logging
from datetime import date

import httpx
from pydantic import ValidationError

from core.errors import DataUnavailableError
from core.models.market import PriceBar

logger = logging.getLogger(__name__)

_PRICES_URL = "https://api.financialdatasets.ai/stocks/prices/{ticker}"


class FinancialDatasetsProvider:
    """Fetches daily OHLCV bars from financialdatasets.ai.

    Implements the MarketDataProvider protocol.
    """

    def __init__(
        self,
        api_key: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers={"X-API-KEY": api_key},
        )

    @property
    def name(self) -> str:
        return "financial_datasets"

    async def get_prices(
        self,
        ticker: str,
        start: date | None = None,
        end: date | None = None,
        limit: int | None = None,
    ) -> list[PriceBar]:
        """Fetch bars for `ticker`, ascending by date."""
        params: dict[str, str | int] = {}
        if start is not None:
            params["start_date"] = start.isoformat()
        if end is not None:
            params["end_date"] = end.isoformat()
        if limit is not None:
            params["limit"] = limit

        url = _PRICES_URL.format(ticker=ticker)
        try:
            response = await self._client.get(url, params=params)
        except httpx.HTTPError as e:
            logger.warning("Financial Datasets request for %s failed: %s", ticker, e)
            raise DataUnavailableError(f"Market data request for {ticker} failed") from e

        if response.status_code != 200:
            logger.warning(
                "Financial Datasets returned %d for %s", response.status_code, ticker
            )
            raise DataUnavailableError(
                f"Market data provider returned HTTP {response.status_code} for {ticker}"
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise DataUnavailableError(f"Malformed market data for {ticker}") from e

        rows = payload.get("prices") if isinstance(payload, dict) else None
        if not isinstance(rows, list):
            raise DataUnavailableError(f"Malformed market data for {ticker}")

        bars = self._parse_prices(rows)
        if not bars:
            raise DataUnavailableError(f"No market data available for {ticker}")

        if limit is not None:
            bars = bars[-limit:]
        return bars

    def _parse_prices(self, rows: list) -> list[PriceBar]:
        """Parse rows into bars, skipping incomplete ones, sorted ascending."""
        bars: dict[date, PriceBar] = {}
        for row in rows:
            if not isinstance(row, dict):
                continue
            stamp = row.get("date") or row.get("time")
            close = row.get("close")
            if not stamp or close is None:
                continue
            try:
                day = date.fromisoformat(str(stamp)[:10])
            except ValueError:
                logger.debug("Skipping row with bad date: %r", stamp)
                continue

            def pick(field: str) -> float:
                value = row.get(field)
                return close if value is None else value

            try:
                bars[day] = PriceBar(
                    date=day,
                    open=pick("open"),
                    high=pick("high"),
                    low=pick("low"),
                    close=close,
                    volume=row.get("volume") or 0.0,
                )
            except ValidationError:
                logger.debug("Skipping unusable row for %s", day)
        return [bars[d] for d in sorted(bars)]

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()
