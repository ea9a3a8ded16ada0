"""Trade execution -- turns a final recommendation into a ledger mutation.

Sizing policy:
- BUY spends `buy_fraction` of the position's cash, in whole shares.
- SELL sells `sell_fraction` of the held quantity (fractional shares allowed).
- HOLD, or a trade that sizes to zero, is a no-op.

`average_price` is overwritten with the latest fill price rather than
volume-weighted. Stored positions and replayed results depend on this
exact formula.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections import Counter
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone

from core.config import TradingPolicy
from core.errors import ValidationError
from core.models.ledger import Position, Trade
from core.protocols import LedgerStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TradePlan:
    """The arithmetic of one fill, before anything is written."""

    action: str
    quantity: float
    price: float
    cash_before: float
    cash_after: float
    quantity_after: float

    @property
    def total_value(self) -> float:
        return self.quantity * self.price

    @property
    def position_value(self) -> float:
        return self.cash_after + self.quantity_after * self.price


def plan_trade(
    recommendation: str,
    price: float,
    position: Position | None,
    policy: TradingPolicy,
) -> TradePlan | None:
    """Size a trade. Returns None when there is nothing to do."""
    action = recommendation.strip().lower()
    if action not in ("buy", "sell"):
        return None
    if not price > 0:
        raise ValidationError(f"Current price must be positive, got {price}")

    cash = position.cash_balance if position is not None else policy.initial_cash
    held = position.quantity if position is not None else 0.0

    if action == "buy":
        quantity = float(math.floor(policy.buy_fraction * cash / price))
    else:
        if position is None:
            return None
        quantity = held * policy.sell_fraction

    if quantity <= 0:
        return None

    value = quantity * price
    if action == "buy":
        cash_after, quantity_after = cash - value, held + quantity
    else:
        cash_after, quantity_after = cash + value, held - quantity

    return TradePlan(
        action=action,
        quantity=quantity,
        price=price,
        cash_before=cash,
        cash_after=cash_after,
        quantity_after=quantity_after,
    )


class TradeExecutor:
    """Applies trade plans to the ledger, one (owner, ticker) at a time.

    The per-key lock serializes executions inside this process; the
    store's version check catches writers outside it.
    """

    def __init__(self, store: LedgerStore, policy: TradingPolicy) -> None:
        self._store = store
        self._policy = policy
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}
        self._lock_users: Counter[tuple[str, str]] = Counter()

    @asynccontextmanager
    async def _key_lock(self, key: tuple[str, str]):
        """Hold the lock for `key`; it is dropped once nobody holds or awaits it."""
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                del self._locks[key]

    async def execute(
        self,
        owner: str,
        ticker: str,
        recommendation: str,
        current_price: float,
    ) -> Trade | None:
        """Execute a BUY/SELL. Returns the recorded Trade, or None for a no-op.

        Raises LedgerConflictError if the position moved underneath us.
        """
        if recommendation.strip().upper() == "HOLD":
            return None

        async with self._key_lock((owner, ticker)):
            position = self._store.get_position(owner, ticker)
            plan = plan_trade(recommendation, current_price, position, self._policy)
            if plan is None:
                logger.warning(
                    "No trade for %s/%s: %s sized to zero", owner, ticker, recommendation
                )
                return None

            now = datetime.now(timezone.utc)
            trade = Trade(
                owner=owner,
                ticker=ticker,
                action=plan.action,  # type: ignore[arg-type]
                quantity=plan.quantity,
                price=plan.price,
                total_value=plan.total_value,
                cash_after=plan.cash_after,
                trade_date=now,
            )
            updated = Position(
                owner=owner,
                ticker=ticker,
                quantity=plan.quantity_after,
                average_price=plan.price,
                cash_balance=plan.cash_after,
                total_value=plan.position_value,
                last_updated=now,
                version=position.version if position is not None else 0,
            )
            self._store.commit_trade(trade, updated)

        logger.info(
            "Executed %s %g %s @ %.2f for %s (cash %.2f -> %.2f)",
            plan.action, plan.quantity, ticker, plan.price, owner,
            plan.cash_before, plan.cash_after,
        )
        return trade
