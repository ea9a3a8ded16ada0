"""Tests for the httpx-backed providers, served by httpx.MockTransport."""

import json
from datetime import date, datetime, timezone

import httpx
import pytest

from core.errors import DataUnavailableError, ProviderError
from plugins.ai_providers.openai import OpenAIProvider
from plugins.market_data.financial_datasets import FinancialDatasetsProvider
from plugins.market_data.yahoo_finance import YahooFinanceProvider


def _chat_reply(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


class TestOpenAIProvider:
    @pytest.mark.asyncio
    async def test_sends_system_and_user_prompt(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_chat_reply("Recommendation: BUY"))

        provider = OpenAIProvider(api_key="sk-test", transport=httpx.MockTransport(handler))
        try:
            text = await provider.complete("You are terse.", "Analyze AAPL")
        finally:
            await provider.close()

        assert text == "Recommendation: BUY"
        assert seen["auth"] == "Bearer sk-test"
        assert seen["body"]["model"] == "gpt-4o-mini"
        assert seen["body"]["temperature"] == 0.7
        assert seen["body"]["messages"] == [
            {"role": "system", "content": "You are terse."},
            {"role": "user", "content": "Analyze AAPL"},
        ]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [
        httpx.Response(429, json={"error": {"message": "quota"}}),
        httpx.Response(500, text="upstream down"),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"choices": []}),
        httpx.Response(200, json=_chat_reply("   ")),
    ])
    async def test_failures_become_provider_errors(self, response):
        provider = OpenAIProvider(
            api_key="sk-test", transport=httpx.MockTransport(lambda request: response)
        )
        try:
            with pytest.raises(ProviderError):
                await provider.complete("s", "u")
        finally:
            await provider.close()

    @pytest.mark.asyncio
    async def test_timeout_becomes_provider_error(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        provider = OpenAIProvider(api_key="sk-test", transport=httpx.MockTransport(handler))
        try:
            with pytest.raises(ProviderError, match="timed out"):
                await provider.complete("s", "u")
        finally:
            await provider.close()


class TestFinancialDatasetsProvider:
    @pytest.mark.asyncio
    async def test_parses_and_sorts_bars(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["host"] = request.url.host
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            seen["key"] = request.headers["X-API-KEY"]
            return httpx.Response(200, json={"prices": [
                {"time": "2024-01-03T00:00:00Z", "open": 11, "high": 12, "low": 10, "close": 11.5, "volume": 900},
                {"time": "2024-01-02T00:00:00Z", "open": 10, "high": 11, "low": 9, "close": 10.5, "volume": 800},
                {"time": "2024-01-04T00:00:00Z", "close": None},
            ]})

        provider = FinancialDatasetsProvider(api_key="fd-key", transport=httpx.MockTransport(handler))
        try:
            bars = await provider.get_prices(
                "AAPL", start=date(2024, 1, 1), end=date(2024, 1, 31)
            )
        finally:
            await provider.close()

        assert [b.date for b in bars] == [date(2024, 1, 2), date(2024, 1, 3)]
        assert bars[-1].close == 11.5
        assert seen["host"] == "api.financialdatasets.ai"
        assert seen["path"] == "/stocks/prices/AAPL"
        assert seen["params"] == {"start_date": "2024-01-01", "end_date": "2024-01-31"}
        assert seen["key"] == "fd-key"

    @pytest.mark.asyncio
    async def test_limit_keeps_most_recent(self):
        rows = [{"date": f"2024-01-{d:02d}", "close": float(d)} for d in range(1, 11)]
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"prices": rows}))
        provider = FinancialDatasetsProvider(api_key="k", transport=transport)
        try:
            bars = await provider.get_prices("AAPL", limit=3)
        finally:
            await provider.close()
        assert [b.close for b in bars] == [8.0, 9.0, 10.0]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [
        httpx.Response(404, json={"error": "unknown ticker"}),
        httpx.Response(200, json={"prices": []}),
        httpx.Response(200, text="<html>"),
        httpx.Response(200, json=[]),
        httpx.Response(200, json={"prices": {"close": 10}}),
        httpx.Response(200, json={"prices": ["2024-01-02", None]}),
    ])
    async def test_unusable_responses(self, response):
        provider = FinancialDatasetsProvider(
            api_key="k", transport=httpx.MockTransport(lambda request: response)
        )
        try:
            with pytest.raises(DataUnavailableError):
                await provider.get_prices("ZZZZ")
        finally:
            await provider.close()

    @pytest.mark.asyncio
    async def test_null_fields_fall_back_and_bad_rows_are_skipped(self):
        rows = [
            {"time": "2024-01-02", "open": None, "high": None, "low": None, "close": 10, "volume": None},
            {"time": "2024-01-03", "close": 0},
            {"time": "2024-01-04", "close": "n/a"},
        ]
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"prices": rows}))
        provider = FinancialDatasetsProvider(api_key="k", transport=transport)
        try:
            bars = await provider.get_prices("AAPL")
        finally:
            await provider.close()

        assert len(bars) == 1
        assert (bars[0].open, bars[0].high, bars[0].low, bars[0].close) == (10, 10, 10, 10)
        assert bars[0].volume == 0.0

    @pytest.mark.asyncio
    async def test_only_unusable_rows(self):
        rows = [{"time": "2024-01-02", "close": 0}, {"time": "2024-01-03", "close": -1}]
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"prices": rows}))
        provider = FinancialDatasetsProvider(api_key="k", transport=transport)
        try:
            with pytest.raises(DataUnavailableError):
                await provider.get_prices("AAPL")
        finally:
            await provider.close()


class TestYahooFinanceProvider:
    @pytest.mark.asyncio
    async def test_parses_chart_result(self):
        def ts(day):
            return int(datetime(2024, 1, day, 14, 30, tzinfo=timezone.utc).timestamp())

        payload = {"chart": {"result": [{
            "timestamp": [ts(2), ts(3), ts(4)],
            "indicators": {"quote": [{
                "open": [10, 11, None],
                "high": [11, 12, None],
                "low": [9, 10, None],
                "close": [10.5, 11.5, None],
                "volume": [100, None, None],
            }]},
        }], "error": None}}

        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            return httpx.Response(200, json=payload)

        provider = YahooFinanceProvider(transport=httpx.MockTransport(handler))
        try:
            bars = await provider.get_prices("btc", start=date(2024, 1, 1), end=date(2024, 1, 31))
        finally:
            await provider.close()

        assert seen["path"] == "/v8/finance/chart/BTC-USD"
        assert [b.close for b in bars] == [10.5, 11.5]
        assert bars[1].volume == 0.0

    @pytest.mark.asyncio
    async def test_chart_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(
            200, json={"chart": {"result": None, "error": {"code": "Not Found"}}}
        ))
        provider = YahooFinanceProvider(transport=transport)
        try:
            with pytest.raises(DataUnavailableError):
                await provider.get_prices("NOPE")
        finally:
            await provider.close()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        [],
        {"chart": "down"},
        {"chart": {"result": ["oops"]}},
        {"chart": {"result": [{"timestamp": [1704205800], "indicators": {"quote": []}}]}},
    ])
    async def test_malformed_chart(self, body):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=body))
        provider = YahooFinanceProvider(transport=transport)
        try:
            with pytest.raises(DataUnavailableError):
                await provider.get_prices("AAPL")
        finally:
            await provider.close()
