"""TradeCouncil entrypoint -- wires all components together and starts the server.

Usage:
    python main.py
    python main.py --config /path/to/config.yaml
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from dataclasses import dataclass

from aiohttp import web

from core.auth import TokenAuthenticator
from core.config import AppConfig, load_config
from core.data.store import Store
from core.duration import parse_duration
from core.registry import PluginRegistry
from engine.orchestrator import Orchestrator
from engine.service import TradingService
from ledger.execution import TradeExecutor
from ledger.portfolio import PortfolioTracker
from server import create_app
from simulator.engine import BacktestEngine


def setup_logging(level: str) -> None:
    """Configure logging for the application."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # Quiet down noisy libraries
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="TradeCouncil multi-agent trading desk")
    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to config.yaml (default: ~/.tradecouncil/config.yaml)",
    )
    parser.add_argument(
        "--env",
        type=str,
        default=None,
        help="Path to .env file (default: ~/.tradecouncil/.env)",
    )
    return parser.parse_args()


def load_plugins(config: AppConfig, registry: PluginRegistry) -> None:
    """Instantiate and register providers and agents from config."""
    logger = logging.getLogger("tradecouncil.plugins")

    # 1. Judgment providers
    for provider_name, provider_config in config.ai.providers.items():
        if not provider_config.api_key:
            continue
        if provider_name == "openai":
            from plugins.ai_providers.openai import OpenAIProvider
            registry.register("llm", OpenAIProvider(
                api_key=provider_config.api_key,
                model=provider_config.model,
                base_url=provider_config.base_url,
                max_tokens=provider_config.max_tokens,
                temperature=provider_config.temperature,
                timeout=config.agents.stage_timeout_seconds,
            ))
            logger.info("Loaded AI provider: %s", provider_name)
        else:
            logger.warning("Unknown AI provider in config: %s", provider_name)

    # 2. Market data gateways
    timeout = parse_duration(config.market_data.timeout).total_seconds()
    for provider_name, provider_config in config.market_data.providers.items():
        if not provider_config.enabled:
            continue
        if provider_name == "financial_datasets":
            from plugins.market_data.financial_datasets import FinancialDatasetsProvider
            registry.register("market_data", FinancialDatasetsProvider(
                api_key=provider_config.api_key, timeout=timeout,
            ))
        elif provider_name == "yahoo_finance":
            from plugins.market_data.yahoo_finance import YahooFinanceProvider
            registry.register("market_data", YahooFinanceProvider(timeout=timeout))
        else:
            logger.warning("Unknown market data provider in config: %s", provider_name)
            continue
        logger.info("Loaded market data provider: %s", provider_name)

    # 3. Agents, all backed by the default judgment provider
    try:
        llm = registry.get("llm", config.ai.default_provider)
    except KeyError:
        logger.warning(
            "Default AI provider %s is not loaded; analysis is unavailable",
            config.ai.default_provider,
        )
        return

    from plugins.agents.fundamentals import FundamentalsAnalyst
    from plugins.agents.portfolio import PortfolioManager
    from plugins.agents.quant import QuantAnalyst
    from plugins.agents.risk import RiskManager
    from plugins.agents.sentiment import SentimentAnalyst

    confidence = config.agents.confidence
    for agent_cls in (SentimentAnalyst, FundamentalsAnalyst, QuantAnalyst, RiskManager, PortfolioManager):
        agent = agent_cls(llm=llm, confidence=getattr(confidence, agent_cls.stage))
        registry.register("agent", agent)


@dataclass
class Components:
    store: Store
    registry: PluginRegistry
    service: TradingService
    authenticator: TokenAuthenticator

    async def close(self) -> None:
        await self.registry.close()
        self.store.close()


def build_components(config: AppConfig, registry: PluginRegistry | None = None) -> Components:
    """Build the store, plugins and service from a loaded config."""
    if registry is None:
        registry = PluginRegistry()
        load_plugins(config, registry)

    try:
        market_data = registry.get("market_data", config.market_data.default_provider)
    except KeyError as e:
        raise ValueError(
            f"Market data provider '{config.market_data.default_provider}' is not configured"
        ) from e

    store = Store(config.home_path)
    orchestrator = Orchestrator(
        market_data=market_data,
        agents=registry.pipeline(),
        store=store,
        lookback_bars=config.market_data.lookback_bars,
        stage_timeout=config.agents.stage_timeout_seconds,
    )
    service = TradingService(
        orchestrator=orchestrator,
        executor=TradeExecutor(store, config.trading),
        backtester=BacktestEngine(market_data, store, config.backtest),
        portfolio=PortfolioTracker(store),
        recent_limit=config.agents.recent_limit,
    )
    return Components(
        store=store,
        registry=registry,
        service=service,
        authenticator=TokenAuthenticator(config.auth.tokens),
    )


async def run(config_path: str | None = None, env_path: str | None = None) -> None:
    """Initialize all components and start the server."""
    config = load_config(config_path=config_path, env_path=env_path)
    setup_logging(config.logging.level)
    logger = logging.getLogger("tradecouncil")
    logger.info("Configuration loaded from %s", config.home_path)

    components = build_components(config)
    logger.info("Plugin registry: %s", components.registry.summary())

    app = create_app(config, components.service, components.authenticator)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, config.server.host, config.server.port)
    await site.start()

    logger.info(
        "TradeCouncil running at http://%s:%d",
        config.server.host,
        config.server.port,
    )

    try:
        await asyncio.Event().wait()
    except (KeyboardInterrupt, asyncio.CancelledError):
        pass
    finally:
        logger.info("Shutting down...")
        await components.close()
        await runner.cleanup()
        logger.info("Shutdown complete")


def main() -> None:
    args = parse_args()
    setup_logging("INFO")
    try:
        asyncio.run(run(config_path=args.config, env_path=args.env))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
