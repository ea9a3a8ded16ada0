"""SQLite storage layer for the decision ledger.

Positions, the trade log, the agent analysis audit trail and backtest
results all live in one SQLite file under the home directory. Every
write that touches more than one row goes through a single transaction.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import date, datetime
from pathlib import Path

from core.errors import LedgerConflictError
from core.models.analysis import AgentAnalysis
from core.models.backtests import BacktestResult, BacktestTrade, PerformanceMetrics
from core.models.ledger import Position, Trade

logger = logging.getLogger(__name__)


class Store:
    """Unified SQLite storage keyed by owner.

    The database lives at <home>/ledger.sqlite.
    """

    def __init__(self, home: Path) -> None:
        self._home = home
        self._db_path = home / "ledger.sqlite"
        self._db: sqlite3.Connection | None = None
        self._init_sqlite()

    # ------------------------------------------------------------------
    # SQLite
    # ------------------------------------------------------------------

    def _init_sqlite(self) -> None:
        """Initialize SQLite database and create tables if needed."""
        self._home.mkdir(parents=True, exist_ok=True)
        self._db = sqlite3.connect(str(self._db_path))
        self._db.row_factory = sqlite3.Row
        self._db.execute("PRAGMA journal_mode=WAL")

        self._db.executescript("""
            CREATE TABLE IF NOT EXISTS positions (
                owner TEXT NOT NULL,
                ticker TEXT NOT NULL,
                quantity REAL NOT NULL,
                average_price REAL NOT NULL,
                cash_balance REAL NOT NULL,
                total_value REAL NOT NULL,
                last_updated TEXT NOT NULL,
                version INTEGER NOT NULL,
                PRIMARY KEY (owner, ticker)
            );

            CREATE TABLE IF NOT EXISTS trades (
                id TEXT PRIMARY KEY,
                owner TEXT NOT NULL,
                ticker TEXT NOT NULL,
                action TEXT NOT NULL,
                quantity REAL NOT NULL,
                price REAL NOT NULL,
                total_value REAL NOT NULL,
                cash_after REAL NOT NULL,
                trade_date TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_trades_owner_date
                ON trades(owner, trade_date);

            CREATE TABLE IF NOT EXISTS agent_analysis (
                id TEXT PRIMARY KEY,
                owner TEXT NOT NULL,
                run_id TEXT NOT NULL,
                ticker TEXT NOT NULL,
                agent_type TEXT NOT NULL,
                reasoning TEXT NOT NULL,
                recommendation TEXT NOT NULL,
                confidence REAL NOT NULL,
                details TEXT,
                analyzed_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_analysis_owner_ticker
                ON agent_analysis(owner, ticker, analyzed_at);

            CREATE TABLE IF NOT EXISTS backtest_results (
                id TEXT PRIMARY KEY,
                owner TEXT NOT NULL,
                ticker TEXT NOT NULL,
                start_date TEXT NOT NULL,
                end_date TEXT NOT NULL,
                initial_capital REAL NOT NULL,
                final_value REAL NOT NULL,
                total_return_pct REAL NOT NULL,
                total_trades INTEGER NOT NULL,
                win_rate REAL NOT NULL,
                trade_history TEXT NOT NULL,
                bars INTEGER NOT NULL,
                metrics TEXT NOT NULL,
                created_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_backtest_owner_created
                ON backtest_results(owner, created_at);
        """)
        self._db.commit()
        logger.info("SQLite initialized at %s", self._db_path)

    @property
    def db(self) -> sqlite3.Connection:
        if self._db is None:
            raise RuntimeError("Store not initialized")
        return self._db

    def close(self) -> None:
        """Close the SQLite connection."""
        if self._db:
            self._db.close()
            self._db = None

    # ------------------------------------------------------------------
    # Positions + trades
    # ------------------------------------------------------------------

    def get_position(self, owner: str, ticker: str) -> Position | None:
        row = self.db.execute(
            "SELECT * FROM positions WHERE owner = ? AND ticker = ?",
            (owner, ticker),
        ).fetchone()
        return self._row_to_position(row) if row else None

    def list_positions(self, owner: str) -> list[Position]:
        rows = self.db.execute(
            "SELECT * FROM positions WHERE owner = ? ORDER BY ticker ASC",
            (owner,),
        ).fetchall()
        return [self._row_to_position(r) for r in rows]

    def commit_trade(self, trade: Trade, position: Position) -> Position:
        """Append a trade and upsert its position atomically.

        `position.version` must be the version that was read (0 for a new
        position). A mismatch rolls back the trade insert as well.
        """
        new_version = position.version + 1
        try:
            with self.db:
                self.db.execute(
                    """INSERT INTO trades
                       (id, owner, ticker, action, quantity, price, total_value,
                        cash_after, trade_date)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        trade.id,
                        trade.owner,
                        trade.ticker,
                        trade.action,
                        trade.quantity,
                        trade.price,
                        trade.total_value,
                        trade.cash_after,
                        trade.trade_date.isoformat(),
                    ),
                )
                if position.version == 0:
                    self.db.execute(
                        """INSERT INTO positions
                           (owner, ticker, quantity, average_price, cash_balance,
                            total_value, last_updated, version)
                           VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                        (
                            position.owner,
                            position.ticker,
                            position.quantity,
                            position.average_price,
                            position.cash_balance,
                            position.total_value,
                            position.last_updated.isoformat(),
                            new_version,
                        ),
                    )
                else:
                    cursor = self.db.execute(
                        """UPDATE positions
                           SET quantity = ?, average_price = ?, cash_balance = ?,
                               total_value = ?, last_updated = ?, version = ?
                           WHERE owner = ? AND ticker = ? AND version = ?""",
                        (
                            position.quantity,
                            position.average_price,
                            position.cash_balance,
                            position.total_value,
                            position.last_updated.isoformat(),
                            new_version,
                            position.owner,
                            position.ticker,
                            position.version,
                        ),
                    )
                    if cursor.rowcount != 1:
                        raise LedgerConflictError(
                            f"Position {position.owner}/{position.ticker} changed "
                            f"since version {position.version}"
                        )
        except sqlite3.IntegrityError as e:
            # a concurrent writer created the position first
            raise LedgerConflictError(
                f"Position {position.owner}/{position.ticker} was created concurrently"
            ) from e

        return position.model_copy(update={"version": new_version})

    def list_trades(self, owner: str, ticker: str | None = None, limit: int = 50) -> list[Trade]:
        """Most recent trades first."""
        if ticker:
            rows = self.db.execute(
                """SELECT * FROM trades WHERE owner = ? AND ticker = ?
                   ORDER BY trade_date DESC, rowid DESC LIMIT ?""",
                (owner, ticker, limit),
            ).fetchall()
        else:
            rows = self.db.execute(
                """SELECT * FROM trades WHERE owner = ?
                   ORDER BY trade_date DESC, rowid DESC LIMIT ?""",
                (owner, limit),
            ).fetchall()
        return [self._row_to_trade(r) for r in rows]

    def count_trades(self, owner: str) -> int:
        row = self.db.execute(
            "SELECT COUNT(*) AS n FROM trades WHERE owner = ?", (owner,)
        ).fetchone()
        return int(row["n"])

    def _row_to_position(self, row: sqlite3.Row) -> Position:
        return Position(
            owner=row["owner"],
            ticker=row["ticker"],
            quantity=row["quantity"],
            average_price=row["average_price"],
            cash_balance=row["cash_balance"],
            total_value=row["total_value"],
            last_updated=datetime.fromisoformat(row["last_updated"]),
            version=row["version"],
        )

    def _row_to_trade(self, row: sqlite3.Row) -> Trade:
        return Trade(
            id=row["id"],
            owner=row["owner"],
            ticker=row["ticker"],
            action=row["action"],
            quantity=row["quantity"],
            price=row["price"],
            total_value=row["total_value"],
            cash_after=row["cash_after"],
            trade_date=datetime.fromisoformat(row["trade_date"]),
        )

    # ------------------------------------------------------------------
    # Agent analysis audit trail
    # ------------------------------------------------------------------

    def append_analysis(self, owner: str, analysis: AgentAnalysis) -> None:
        """Insert one analysis record. Commits immediately."""
        self.db.execute(
            """INSERT INTO agent_analysis
               (id, owner, run_id, ticker, agent_type, reasoning, recommendation,
                confidence, details, analyzed_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                analysis.id,
                owner,
                analysis.run_id,
                analysis.ticker,
                analysis.agent_type,
                analysis.reasoning,
                analysis.recommendation,
                analysis.confidence,
                json.dumps(analysis.details) if analysis.details else None,
                analysis.analyzed_at.isoformat(),
            ),
        )
        self.db.commit()

    def recent_analyses(
        self,
        owner: str,
        ticker: str | None = None,
        limit: int = 20,
    ) -> list[AgentAnalysis]:
        """Most recent analyses first, optionally for one ticker."""
        conditions = ["owner = ?"]
        params: list = [owner]

        if ticker:
            conditions.append("ticker = ?")
            params.append(ticker)

        rows = self.db.execute(
            f"""SELECT * FROM agent_analysis WHERE {' AND '.join(conditions)}
                ORDER BY analyzed_at DESC, rowid DESC LIMIT ?""",
            params + [limit],
        ).fetchall()
        return [self._row_to_analysis(r) for r in rows]

    def _row_to_analysis(self, row: sqlite3.Row) -> AgentAnalysis:
        return AgentAnalysis(
            id=row["id"],
            run_id=row["run_id"],
            ticker=row["ticker"],
            agent_type=row["agent_type"],
            reasoning=row["reasoning"],
            recommendation=row["recommendation"],
            confidence=row["confidence"],
            details=json.loads(row["details"]) if row["details"] else {},
            analyzed_at=datetime.fromisoformat(row["analyzed_at"]),
        )

    # ------------------------------------------------------------------
    # Backtest results
    # ------------------------------------------------------------------

    def append_backtest_result(self, result: BacktestResult) -> None:
        self.db.execute(
            """INSERT INTO backtest_results
               (id, owner, ticker, start_date, end_date, initial_capital,
                final_value, total_return_pct, total_trades, win_rate,
                trade_history, bars, metrics, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                result.id,
                result.owner,
                result.ticker,
                result.start_date.isoformat(),
                result.end_date.isoformat(),
                result.initial_capital,
                result.final_value,
                result.total_return_pct,
                result.total_trades,
                result.win_rate,
                json.dumps([t.model_dump(mode="json") for t in result.trade_history]),
                result.bars,
                result.metrics.model_dump_json(),
                result.created_at.isoformat(),
            ),
        )
        self.db.commit()

    def list_backtest_results(self, owner: str, limit: int = 20) -> list[BacktestResult]:
        rows = self.db.execute(
            """SELECT * FROM backtest_results WHERE owner = ?
               ORDER BY created_at DESC, rowid DESC LIMIT ?""",
            (owner, limit),
        ).fetchall()
        return [self._row_to_backtest(r) for r in rows]

    def _row_to_backtest(self, row: sqlite3.Row) -> BacktestResult:
        return BacktestResult(
            id=row["id"],
            owner=row["owner"],
            ticker=row["ticker"],
            start_date=date.fromisoformat(row["start_date"]),
            end_date=date.fromisoformat(row["end_date"]),
            initial_capital=row["initial_capital"],
            final_value=row["final_value"],
            total_return_pct=row["total_return_pct"],
            total_trades=row["total_trades"],
            win_rate=row["win_rate"],
            trade_history=[BacktestTrade(**t) for t in json.loads(row["trade_history"])],
            bars=row["bars"],
            metrics=PerformanceMetrics.model_validate_json(row["metrics"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )
