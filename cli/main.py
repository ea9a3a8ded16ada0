"""TradeCouncil CLI -- the `tradecouncil` command.

Usage:
    tradecouncil start                                  Start the server
    tradecouncil analyze TICKER --owner ID              Run the agent pipeline once
    tradecouncil backtest TICKER START END --owner ID   Replay the crossover strategy
    tradecouncil portfolio --owner ID                   Show positions and cash
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path

from core.errors import TradingError


def _print_json(data: object) -> None:
    print(json.dumps(data, indent=2, default=str))


def _run_with_service(args: argparse.Namespace, call) -> None:
    """Build the components, run one service call, print its JSON result."""
    from core.config import load_config
    from main import build_components, setup_logging

    config = load_config(config_path=args.config)
    setup_logging(config.logging.level if args.verbose else "WARNING")

    async def _go() -> object:
        components = build_components(config)
        try:
            return await call(components.service)
        finally:
            await components.close()

    try:
        result = asyncio.run(_go())
    except TradingError as e:
        _print_json(e.to_dict())
        sys.exit(1)
    except ValueError as e:
        print(f"  Configuration error: {e}", file=sys.stderr)
        sys.exit(2)

    if isinstance(result, list):
        _print_json([r.model_dump(mode="json") for r in result])
    else:
        _print_json(result.model_dump(mode="json"))


def cmd_start(args: argparse.Namespace) -> None:
    """Start the TradeCouncil server."""
    from main import run, setup_logging
    setup_logging("INFO")

    try:
        asyncio.run(run(config_path=args.config))
    except KeyboardInterrupt:
        pass


def cmd_analyze(args: argparse.Namespace) -> None:
    """Run the five-agent pipeline for one ticker and execute its call."""
    async def call(service):
        return await service.analyze_stock(args.owner, args.ticker)
    _run_with_service(args, call)


def cmd_backtest(args: argparse.Namespace) -> None:
    """Replay the moving-average crossover over a date range."""
    async def call(service):
        return await service.run_backtest(args.owner, args.ticker, args.start, args.end)
    _run_with_service(args, call)


def cmd_portfolio(args: argparse.Namespace) -> None:
    """Show the owner's positions, cash and trade count."""
    async def call(service):
        return service.get_portfolio(args.owner)
    _run_with_service(args, call)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="tradecouncil",
        description="TradeCouncil -- multi-agent stock analysis and paper trading",
    )
    parser.add_argument("--home", type=str, default=None, help="TradeCouncil home directory")
    parser.add_argument("--config", "-c", type=str, default=None, help="Path to config.yaml")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log at the configured level")

    sub = parser.add_subparsers(dest="command")

    # start
    sub.add_parser("start", help="Start the TradeCouncil server")

    # analyze
    analyze_parser = sub.add_parser("analyze", help="Analyze a ticker and trade on the result")
    analyze_parser.add_argument("ticker", type=str)
    analyze_parser.add_argument("--owner", type=str, required=True, help="Ledger owner id")

    # backtest
    backtest_parser = sub.add_parser("backtest", help="Backtest the crossover strategy")
    backtest_parser.add_argument("ticker", type=str)
    backtest_parser.add_argument("start", type=str, help="Start date, YYYY-MM-DD")
    backtest_parser.add_argument("end", type=str, help="End date, YYYY-MM-DD")
    backtest_parser.add_argument("--owner", type=str, required=True, help="Ledger owner id")

    # portfolio
    portfolio_parser = sub.add_parser("portfolio", help="Show positions and cash")
    portfolio_parser.add_argument("--owner", type=str, required=True, help="Ledger owner id")

    return parser


def main() -> None:
    """CLI entrypoint."""
    parser = build_parser()
    args = parser.parse_args()

    if args.home:
        os.environ["TRADECOUNCIL_HOME"] = str(Path(args.home).expanduser())

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    commands = {
        "start": cmd_start,
        "analyze": cmd_analyze,
        "backtest": cmd_backtest,
        "portfolio": cmd_portfolio,
    }

    handler = commands.get(args.command)
    if handler:
        handler(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
