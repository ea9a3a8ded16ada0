"""Backtest engine -- replays a moving-average crossover over history.

Runs against an ephemeral capital/shares pair scoped to one call. It
never touches live positions or trades and never calls the agents; the
only thing it writes is its own BacktestResult.

Usage:
    engine = BacktestEngine(market_data, store, BacktestConfig())
    result = await engine.run("alice", "AAPL", date(2024, 1, 1), date(2024, 6, 30))
"""

from __future__ import annotations

import logging
import math
from datetime import date

from core.config import BacktestConfig
from core.errors import NoDataError
from core.models.backtests import BacktestResult, BacktestTrade
from core.models.market import PriceBar, closes
from core.protocols import LedgerStore, MarketDataProvider
from simulator.metrics import calculate_metrics
from simulator.strategy import crossover_state, first_signal_index

logger = logging.getLogger(__name__)


def simulate(
    ticker: str,
    bars: list[PriceBar],
    config: BacktestConfig,
    start: date,
    end: date,
    owner: str = "",
) -> BacktestResult:
    """Deterministic replay of the crossover rule over `bars`.

    The last bar is only used for final valuation; at most one action
    happens per bar.
    """
    if not bars:
        raise NoDataError(f"No historical data for {ticker} between {start} and {end}")

    prices = closes(bars)
    capital = config.initial_capital
    shares = 0.0
    trades = 0
    wins = 0
    history: list[BacktestTrade] = []
    equity: list[float] = []

    first = first_signal_index(config.short_window, config.long_window)

    for i in range(len(bars) - 1):
        price = prices[i]

        if i >= first:
            state = crossover_state(prices, i, config.short_window, config.long_window)

            if state == "above" and shares == 0 and capital > price:
                bought = float(math.floor(capital * config.allocation / price))
                if bought > 0:
                    shares = bought
                    capital -= shares * price
                    trades += 1
                    history.append(BacktestTrade(
                        date=bars[i].date, action="buy", price=price, shares=shares,
                    ))

            elif state == "below" and shares > 0:
                proceeds = shares * price
                # profit against the most recent recorded fill
                if proceeds - shares * history[-1].price > 0:
                    wins += 1
                capital += proceeds
                trades += 1
                history.append(BacktestTrade(
                    date=bars[i].date, action="sell", price=price, shares=shares,
                ))
                shares = 0.0

        equity.append(capital + shares * price)

    final_value = capital + shares * prices[-1]
    equity.append(final_value)

    initial = config.initial_capital
    return BacktestResult(
        owner=owner,
        ticker=ticker,
        start_date=start,
        end_date=end,
        initial_capital=initial,
        final_value=final_value,
        total_return_pct=(final_value - initial) / initial * 100,
        total_trades=trades,
        win_rate=wins / trades * 100 if trades > 0 else 0.0,
        trade_history=history,
        bars=len(bars),
        metrics=calculate_metrics(equity),
    )


class BacktestEngine:
    """Fetches the price series, runs `simulate`, persists the result."""

    def __init__(
        self,
        market_data: MarketDataProvider,
        store: LedgerStore,
        config: BacktestConfig,
    ) -> None:
        if config.short_window >= config.long_window:
            raise ValueError("short_window must be smaller than long_window")
        self._market_data = market_data
        self._store = store
        self._config = config

    async def run(self, owner: str, ticker: str, start: date, end: date) -> BacktestResult:
        logger.info("Running backtest for %s from %s to %s", ticker, start, end)

        bars = await self._market_data.get_prices(ticker, start=start, end=end)
        if not bars:
            raise NoDataError(f"No historical data for {ticker} between {start} and {end}")

        result = simulate(ticker, bars, self._config, start, end, owner=owner)
        self._store.append_backtest_result(result)

        logger.info(
            "Backtest complete: %s | %d bars | %d trades | return %.2f%% | win rate %.1f%%",
            ticker, result.bars, result.total_trades, result.total_return_pct, result.win_rate,
        )
        return result
