"""SQLite store for the bot's events, orders, fills, snapshots and results."""
from __future__ import annotations

import json
import logging
import sqlite3
import threading
import uuid
from typing import Iterable, Optional

from updown_monitor.types import BotEvent, Fill, InventorySnapshot, Order, TradeResult

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS bot_events (
    id TEXT PRIMARY KEY,
    ts INTEGER NOT NULL,
    event_type TEXT NOT NULL,
    asset TEXT,
    market_id TEXT,
    reason_code TEXT,
    data TEXT,
    run_id TEXT,
    correlation_id TEXT
);

CREATE TABLE IF NOT EXISTS orders (
    id TEXT PRIMARY KEY,
    client_order_id TEXT,
    market_id TEXT,
    asset TEXT,
    side TEXT,
    intent_type TEXT,
    price REAL,
    qty REAL,
    filled_qty REAL,
    status TEXT,
    created_ts INTEGER NOT NULL,
    last_update_ts INTEGER
);

CREATE TABLE IF NOT EXISTS fill_logs (
    id TEXT PRIMARY KEY,
    ts INTEGER NOT NULL,
    asset TEXT,
    market_id TEXT,
    side TEXT,
    intent TEXT,
    fill_qty REAL,
    fill_price REAL,
    fill_notional REAL,
    order_id TEXT
);

CREATE TABLE IF NOT EXISTS snapshot_logs (
    id TEXT PRIMARY KEY,
    ts INTEGER NOT NULL,
    asset TEXT,
    market_id TEXT,
    up_shares REAL,
    down_shares REAL,
    bot_state TEXT,
    pair_cost REAL
);

CREATE TABLE IF NOT EXISTS trade_results (
    id TEXT PRIMARY KEY,
    asset TEXT,
    market_slug TEXT,
    profit_loss REAL,
    total_invested REAL,
    created_at_ms INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_bot_events_ts ON bot_events(ts);
CREATE INDEX IF NOT EXISTS idx_orders_created_ts ON orders(created_ts);
CREATE INDEX IF NOT EXISTS idx_fill_logs_ts ON fill_logs(ts);
CREATE INDEX IF NOT EXISTS idx_snapshot_logs_ts ON snapshot_logs(ts);
CREATE INDEX IF NOT EXISTS idx_trade_results_created ON trade_results(created_at_ms);
"""

# table -> (time column, market column)
TABLES: dict[str, tuple[str, str]] = {
    "bot_events": ("ts", "market_id"),
    "orders": ("created_ts", "market_id"),
    "fill_logs": ("ts", "market_id"),
    "snapshot_logs": ("ts", "market_id"),
    "trade_results": ("created_at_ms", "market_slug"),
}


class MonitorDatabase:
    """Thread-safe SQLite store.

    Uses WAL mode so the dashboard can read while an ingest job writes.
    """

    def __init__(self, db_path: str = "monitor_data.db", max_rows: int = 1000):
        self._db_path = db_path
        self.max_rows = max_rows
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA busy_timeout=5000")
        self._conn.executescript(_SCHEMA)
        self._conn.commit()
        self._columns = {table: self._table_columns(table) for table in TABLES}
        logger.info("MonitorDatabase initialized at %s", db_path)

    def _table_columns(self, table: str) -> list[str]:
        cur = self._conn.execute(f"PRAGMA table_info({table})")
        return [row[1] for row in cur.fetchall()]

    # ── write methods ────────────────────────────────────────

    def insert_rows(self, table: str, rows: Iterable[dict]) -> int:
        """Insert rows, ignoring duplicate ids and unknown columns.

        Returns:
            Number of rows actually inserted
        """
        if table not in TABLES:
            raise ValueError(f"unknown table {table!r}, expected one of {sorted(TABLES)}")
        columns = self._columns[table]
        placeholders = ", ".join("?" for _ in columns)
        sql = f"INSERT OR IGNORE INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"

        params = []
        for row in rows:
            row = dict(row)
            if not row.get("id"):
                row["id"] = uuid.uuid4().hex
            if table == "snapshot_logs" and "bot_state" not in row:
                row["bot_state"] = row.get("state")
            if isinstance(row.get("data"), (dict, list)):
                row["data"] = json.dumps(row["data"])
            params.append(tuple(row.get(c) for c in columns))

        with self._lock:
            try:
                before = self._conn.total_changes
                self._conn.executemany(sql, params)
                self._conn.commit()
                inserted = self._conn.total_changes - before
            except Exception:
                self._conn.rollback()
                logger.exception("Failed to insert %d rows into %s", len(params), table)
                return 0
        logger.info("Inserted %d/%d rows into %s", inserted, len(params), table)
        return inserted

    # ── read methods (called from dashboard) ─────────────────

    def _select(
        self,
        table: str,
        since_ms: int,
        asset: Optional[str],
        market_filter: Optional[str],
        limit: Optional[int],
    ) -> list[dict]:
        ts_col, market_col = TABLES[table]
        clauses = [f"{ts_col} >= ?"]
        args: list = [since_ms]
        if asset:
            clauses.append("asset = ?")
            args.append(asset)
        if market_filter:
            # LIKE is case-insensitive for ASCII in SQLite
            clauses.append(f"{market_col} LIKE ?")
            args.append(f"%{market_filter}%")
        args.append(limit or self.max_rows)

        sql = (
            f"SELECT * FROM {table} WHERE {' AND '.join(clauses)} "
            f"ORDER BY {ts_col} DESC LIMIT ?"
        )
        with self._lock:
            cur = self._conn.execute(sql, args)
            cols = [d[0] for d in cur.description]
            rows = [dict(zip(cols, row)) for row in cur.fetchall()]
        # newest rows win the limit, callers get them oldest first
        rows.reverse()
        return rows

    def get_events(self, since_ms: int, asset: Optional[str] = None,
                   market_filter: Optional[str] = None, limit: Optional[int] = None) -> list[BotEvent]:
        return [BotEvent.from_row(r) for r in self._select("bot_events", since_ms, asset, market_filter, limit)]

    def get_orders(self, since_ms: int, asset: Optional[str] = None,
                   market_filter: Optional[str] = None, limit: Optional[int] = None) -> list[Order]:
        return [Order.from_row(r) for r in self._select("orders", since_ms, asset, market_filter, limit)]

    def get_fills(self, since_ms: int, asset: Optional[str] = None,
                  market_filter: Optional[str] = None, limit: Optional[int] = None) -> list[Fill]:
        return [Fill.from_row(r) for r in self._select("fill_logs", since_ms, asset, market_filter, limit)]

    def get_snapshots(self, since_ms: int, asset: Optional[str] = None,
                      market_filter: Optional[str] = None, limit: Optional[int] = None) -> list[InventorySnapshot]:
        return [
            InventorySnapshot.from_row(r)
            for r in self._select("snapshot_logs", since_ms, asset, market_filter, limit)
        ]

    def get_trade_results(self, since_ms: int, asset: Optional[str] = None,
                          market_filter: Optional[str] = None, limit: Optional[int] = None) -> list[TradeResult]:
        return [
            TradeResult.from_row(r)
            for r in self._select("trade_results", since_ms, asset, market_filter, limit)
        ]

    def close(self) -> None:
        self._conn.close()
