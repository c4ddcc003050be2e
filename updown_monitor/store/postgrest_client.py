# updown_monitor/store/postgrest_client.py
from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Optional, TypeVar

import requests

from updown_monitor.config import StoreConfig
from updown_monitor.metrics import RollingLatency
from updown_monitor.types import BotEvent, Fill, InventorySnapshot, Order, TradeResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

# local table -> (hosted relation, time column, market column, ISO timestamps)
REST_TABLES: dict[str, tuple[str, str, str, bool]] = {
  "bot_events": ("bot_events", "ts", "market_id", False),
  "orders": ("orders", "created_ts", "market_id", False),
  "fill_logs": ("fill_logs", "ts", "market_id", False),
  "snapshot_logs": ("snapshot_logs", "ts", "market_id", False),
  "trade_results": ("live_trade_results", "created_at", "market_slug", True),
}


def _iso_ms(ts_ms: int) -> str:
  return datetime.fromtimestamp(ts_ms / 1000, tz=timezone.utc).isoformat(timespec="milliseconds")


class StoreError(RuntimeError):
  """A row-store read failed (transport error or non-2xx response)."""

  def __init__(self, message: str, status_code: Optional[int] = None):
    super().__init__(message)
    self.status_code = status_code


class PostgrestClient:
  """
  Read-only client for the hosted store's PostgREST endpoint.

  Mirrors MonitorDatabase's read methods: rows newer than ``since_ms``,
  optional exact asset match and case-insensitive market substring match,
  newest ``limit`` rows returned oldest first.
  """

  def __init__(self, cfg: StoreConfig, session: Optional[requests.Session] = None):
    if not cfg.rest_url:
      raise ValueError("PostgrestClient needs store.rest_url")
    self.base = cfg.rest_url.rstrip("/")
    self.timeout_sec = cfg.timeout_sec
    self.max_rows = cfg.max_rows
    self._session = session or requests.Session()

    api_key = cfg.api_key()
    if not api_key:
      logger.warning("%s is not set; requests will be anonymous", cfg.api_key_env)
    self._session.headers.update({
      "Accept": "application/json",
      "apikey": api_key,
      "Authorization": f"Bearer {api_key}",
    })
    self._lat_get = RollingLatency(maxlen=500)

  def latency(self) -> dict:
    return self._lat_get.snapshot()

  def _get_rows(
    self,
    table: str,
    since_ms: int,
    asset: Optional[str],
    market_filter: Optional[str],
    limit: Optional[int],
  ) -> list[dict]:
    relation, ts_col, market_col, iso = REST_TABLES[table]
    since = _iso_ms(int(since_ms)) if iso else str(int(since_ms))
    params: dict[str, Any] = {
      "select": "*",
      ts_col: f"gte.{since}",
      "order": f"{ts_col}.desc",
      "limit": limit or self.max_rows,
    }
    if asset:
      params["asset"] = f"eq.{asset}"
    if market_filter:
      params[market_col] = f"ilike.*{market_filter}*"

    url = f"{self.base}/{relation}"
    start = time.time()
    try:
      response = self._session.get(url, params=params, timeout=self.timeout_sec)
    except requests.RequestException as e:
      raise StoreError(f"GET {table} failed: {e}") from e
    finally:
      self._lat_get.add(time.time() - start)

    if not response.ok:
      raise StoreError(
        f"GET {table} returned {response.status_code}: {response.text[:200]}",
        status_code=response.status_code,
      )

    try:
      data = response.json()
    except ValueError as e:
      raise StoreError(f"GET {table} returned invalid JSON: {e}") from e
    if not isinstance(data, list):
      raise StoreError(f"Unexpected {table} response type: {type(data).__name__}")

    logger.debug("Fetched %d rows from %s", len(data), table)
    data.reverse()
    return data

  def _fetch(self, table: str, parse: Callable[[dict], T], since_ms: int, asset, market_filter, limit) -> list[T]:
    return [parse(row) for row in self._get_rows(table, since_ms, asset, market_filter, limit)]

  def get_events(self, since_ms: int, asset: Optional[str] = None,
                 market_filter: Optional[str] = None, limit: Optional[int] = None) -> list[BotEvent]:
    return self._fetch("bot_events", BotEvent.from_row, since_ms, asset, market_filter, limit)

  def get_orders(self, since_ms: int, asset: Optional[str] = None,
                 market_filter: Optional[str] = None, limit: Optional[int] = None) -> list[Order]:
    return self._fetch("orders", Order.from_row, since_ms, asset, market_filter, limit)

  def get_fills(self, since_ms: int, asset: Optional[str] = None,
                market_filter: Optional[str] = None, limit: Optional[int] = None) -> list[Fill]:
    return self._fetch("fill_logs", Fill.from_row, since_ms, asset, market_filter, limit)

  def get_snapshots(self, since_ms: int, asset: Optional[str] = None,
                    market_filter: Optional[str] = None, limit: Optional[int] = None) -> list[InventorySnapshot]:
    return self._fetch("snapshot_logs", InventorySnapshot.from_row, since_ms, asset, market_filter, limit)

  def get_trade_results(self, since_ms: int, asset: Optional[str] = None,
                        market_filter: Optional[str] = None, limit: Optional[int] = None) -> list[TradeResult]:
    return self._fetch("trade_results", TradeResult.from_row, since_ms, asset, market_filter, limit)

  def close(self) -> None:
    self._session.close()
