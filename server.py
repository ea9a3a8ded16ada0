"""Lightweight aiohttp server -- the core HTTP API.

Surfaces the two entry points (analyze, backtest) and the read-only
ledger views. Every route but /health resolves the caller's owner id
from a bearer token.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from aiohttp import web

from core.errors import TradingError, ValidationError

if TYPE_CHECKING:
    from core.auth import TokenAuthenticator
    from core.config import AppConfig
    from engine.service import TradingService

logger = logging.getLogger(__name__)


def create_app(
    config: AppConfig,
    service: TradingService,
    authenticator: TokenAuthenticator,
) -> web.Application:
    """Create and configure the aiohttp application."""
    app = web.Application(middlewares=[error_middleware])

    # Store references for route handlers
    app["config"] = config
    app["service"] = service
    app["authenticator"] = authenticator

    # Register routes
    app.router.add_get("/health", handle_health)
    app.router.add_post("/analyze", handle_analyze)
    app.router.add_post("/backtest", handle_backtest)
    app.router.add_get("/state/portfolio", handle_get_portfolio)
    app.router.add_get("/state/trades", handle_get_trades)
    app.router.add_get("/state/analyses", handle_get_analyses)
    app.router.add_get("/state/backtests", handle_get_backtests)

    return app


@web.middleware
async def error_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Render structured failures as {"error", "kind"} with their status."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except TradingError as e:
        if e.status >= 500:
            logger.warning("%s %s failed: %s", request.method, request.path, e.message)
        return web.json_response(e.to_dict(), status=e.status)
    except Exception:
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return web.json_response(
            {"error": "Internal server error", "kind": "internal_error"},
            status=500,
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _owner(request: web.Request) -> str:
    authenticator: TokenAuthenticator = request.app["authenticator"]
    return authenticator.owner_for_header(request.headers.get("Authorization"))


async def _json_body(request: web.Request) -> dict:
    try:
        body = await request.json()
    except json.JSONDecodeError:
        raise ValidationError("Invalid JSON") from None
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def _limit(request: web.Request, default: int) -> int:
    raw = request.query.get("limit")
    if raw is None:
        return default
    try:
        limit = int(raw)
    except ValueError:
        raise ValidationError(f"limit must be an integer, got {raw!r}") from None
    if limit < 1:
        raise ValidationError("limit must be at least 1")
    return limit


# ---------------------------------------------------------------------------
# Route handlers
# ---------------------------------------------------------------------------

async def handle_health(request: web.Request) -> web.Response:
    """GET /health -- health check."""
    return web.json_response({"status": "ok"})


async def handle_analyze(request: web.Request) -> web.Response:
    """POST /analyze -- run the agent pipeline and act on its recommendation.

    Body: {"ticker": "AAPL"}
    """
    owner = _owner(request)
    body = await _json_body(request)
    if "ticker" not in body:
        raise ValidationError("Missing required field: ticker")

    service: TradingService = request.app["service"]
    report = await service.analyze_stock(owner, body["ticker"])
    return web.json_response(report.model_dump(mode="json"))


async def handle_backtest(request: web.Request) -> web.Response:
    """POST /backtest -- replay the crossover strategy over a date range.

    Body: {"ticker": "AAPL", "start_date": "2024-01-01", "end_date": "2024-06-30"}
    """
    owner = _owner(request)
    body = await _json_body(request)
    missing = [f for f in ("ticker", "start_date", "end_date") if f not in body]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    service: TradingService = request.app["service"]
    result = await service.run_backtest(
        owner, body["ticker"], body["start_date"], body["end_date"]
    )
    return web.json_response(result.model_dump(mode="json"), status=201)


async def handle_get_portfolio(request: web.Request) -> web.Response:
    """GET /state/portfolio -- positions and totals for the caller."""
    service: TradingService = request.app["service"]
    summary = service.get_portfolio(_owner(request))
    return web.json_response(summary.model_dump(mode="json"))


async def handle_get_trades(request: web.Request) -> web.Response:
    """GET /state/trades -- most recent trades first, optionally for one ticker."""
    owner = _owner(request)
    service: TradingService = request.app["service"]
    trades = service.get_trades(
        owner, ticker=request.query.get("ticker"), limit=_limit(request, 50)
    )
    return web.json_response([t.model_dump(mode="json") for t in trades])


async def handle_get_analyses(request: web.Request) -> web.Response:
    """GET /state/analyses -- the agent analysis audit trail."""
    owner = _owner(request)
    service: TradingService = request.app["service"]
    config: AppConfig = request.app["config"]
    limit = _limit(request, config.agents.recent_limit)
    analyses = service.get_recent_analyses(
        owner, ticker=request.query.get("ticker"), limit=limit
    )
    return web.json_response([a.model_dump(mode="json") for a in analyses])


async def handle_get_backtests(request: web.Request) -> web.Response:
    """GET /state/backtests -- stored backtest results, newest first."""
    owner = _owner(request)
    service: TradingService = request.app["service"]
    results = service.get_backtests(owner, limit=_limit(request, 20))
    return web.json_response([r.model_dump(mode="json") for r in results])
