"""Tests for the trading service entry points."""

import pytest

from conftest import FakeLLM, StaticMarketData, build_service, make_bars
from core.errors import NoDataError, ProviderError, UnauthorizedError, ValidationError
from engine.service import normalize_ticker, parse_date


class TestInputValidation:
    @pytest.mark.parametrize("raw,expected", [
        ("aapl", "AAPL"),
        (" brk.b ", "BRK.B"),
        ("^GSPC", "^GSPC"),
        ("EURUSD=X", "EURUSD=X"),
        ("btc-usd", "BTC-USD"),
    ])
    def test_normalize_ticker(self, raw, expected):
        assert normalize_ticker(raw) == expected

    @pytest.mark.parametrize("raw", ["", "   ", "AA PL", "TOOLONGTICKER", "$AAPL", 42, None])
    def test_bad_tickers(self, raw):
        with pytest.raises(ValidationError):
            normalize_ticker(raw)

    def test_parse_date(self):
        assert parse_date("2024-03-01", "start_date").isoformat() == "2024-03-01"

    @pytest.mark.parametrize("raw", ["03/01/2024", "2024-13-01", "", 20240301])
    def test_bad_dates(self, raw):
        with pytest.raises(ValidationError):
            parse_date(raw, "start_date")


class TestAnalyzeStock:
    @pytest.mark.asyncio
    async def test_buy_recommendation_executes_trade(self, service, store, market_data):
        report = await service.analyze_stock("alice", "aapl")

        assert report.ticker == "AAPL"
        assert report.final_recommendation == "BUY"
        assert report.trade_id is not None

        [trade] = store.list_trades("alice")
        assert trade.id == report.trade_id
        assert trade.price == market_data.bars[-1].close
        assert trade.quantity == 71  # floor(10000 / 139)

    @pytest.mark.asyncio
    async def test_hold_recommendation_trades_nothing(self, store, market_data):
        llm = FakeLLM(responses={"portfolio": "No action warranted."})
        service = build_service(store, llm, market_data)

        report = await service.analyze_stock("alice", "AAPL")

        assert report.final_recommendation == "HOLD"
        assert report.trade_id is None
        assert store.count_trades("alice") == 0
        assert len(store.recent_analyses("alice")) == 5

    @pytest.mark.asyncio
    async def test_sell_without_position_trades_nothing(self, store, market_data):
        llm = FakeLLM(responses={"portfolio": "Time to SELL."})
        service = build_service(store, llm, market_data)

        report = await service.analyze_stock("alice", "AAPL")

        assert report.final_recommendation == "SELL"
        assert report.trade_id is None

    @pytest.mark.asyncio
    async def test_provider_failure_leaves_ledger_untouched(self, store, market_data):
        llm = FakeLLM(failures={"portfolio": ProviderError("rate limited")})
        service = build_service(store, llm, market_data)

        with pytest.raises(ProviderError):
            await service.analyze_stock("alice", "AAPL")
        assert store.count_trades("alice") == 0
        assert store.get_position("alice", "AAPL") is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("owner", [None, "", "   "])
    async def test_requires_owner(self, service, fake_llm, owner):
        with pytest.raises(UnauthorizedError):
            await service.analyze_stock(owner, "AAPL")
        assert fake_llm.calls == []

    @pytest.mark.asyncio
    async def test_rejects_bad_ticker_before_any_work(self, service, fake_llm, market_data):
        with pytest.raises(ValidationError):
            await service.analyze_stock("alice", "not a ticker")
        assert market_data.requests == []
        assert fake_llm.calls == []


class TestRunBacktest:
    @pytest.mark.asyncio
    async def test_stores_result(self, service, store):
        result = await service.run_backtest("alice", "aapl", "2024-01-01", "2024-02-09")

        assert result.ticker == "AAPL"
        assert result.bars == 40
        assert service.get_backtests("alice") == [result]

    @pytest.mark.asyncio
    async def test_start_after_end_rejected(self, service):
        with pytest.raises(ValidationError):
            await service.run_backtest("alice", "AAPL", "2024-02-01", "2024-01-01")

    @pytest.mark.asyncio
    async def test_no_data(self, store, fake_llm):
        service = build_service(store, fake_llm, StaticMarketData([]))
        with pytest.raises(NoDataError):
            await service.run_backtest("alice", "AAPL", "2024-01-01", "2024-02-01")

    @pytest.mark.asyncio
    async def test_requires_owner(self, service):
        with pytest.raises(UnauthorizedError):
            await service.run_backtest(None, "AAPL", "2024-01-01", "2024-02-01")


class TestReadViews:
    @pytest.mark.asyncio
    async def test_portfolio_summary(self, store, fake_llm):
        service = build_service(store, fake_llm, StaticMarketData(make_bars([50.0] * 5)))
        await service.analyze_stock("alice", "AAPL")

        summary = service.get_portfolio("alice")
        assert summary.trade_count == 1
        assert summary.cash_balance == 90_000
        assert summary.total_value == 100_000
        assert [p.ticker for p in summary.positions] == ["AAPL"]

        assert service.get_portfolio("bob").positions == []

    @pytest.mark.asyncio
    async def test_recent_analyses_by_ticker(self, service):
        await service.analyze_stock("alice", "AAPL")
        assert len(service.get_recent_analyses("alice", ticker="aapl")) == 5
        assert service.get_recent_analyses("alice", ticker="MSFT") == []
        assert len(service.get_recent_analyses("alice", limit=2)) == 2

    def test_views_require_owner(self, service):
        with pytest.raises(UnauthorizedError):
            service.get_trades("")
