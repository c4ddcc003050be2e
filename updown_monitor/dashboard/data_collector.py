"""Assembles dashboard payloads from the row store and the analytics engines."""
from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from typing import TYPE_CHECKING, Callable, Optional

from updown_monitor.config import MonitorConfig
from updown_monitor.fillsync import replay_fills
from updown_monitor.health import (
    DEFAULT_TIME_RANGE,
    compute_health_metrics,
    compute_pnl_stats,
    hourly_pnl,
    parse_time_range,
    reconstruct_positions_from_fills,
)
from updown_monitor.health.pnl import HOUR_MS
from updown_monitor.metrics import RollingLatency

if TYPE_CHECKING:
    from updown_monitor.store import RowStore

logger = logging.getLogger(__name__)

# Fills replayed into the streak tracker
FILL_SYNC_LOOKBACK = "1h"

# Distinct (view, query) payloads kept; least recently used are evicted
MAX_CACHE_ENTRIES = 128


def _now_ms() -> int:
    return int(time.time() * 1000)


class HealthDataCollector:
    """Reads bot history from the store and caches computed payloads."""

    def __init__(
        self,
        store: "RowStore",
        config: Optional[MonitorConfig] = None,
        clock: Callable[[], int] = _now_ms,
    ):
        self._store = store
        self._config = config or MonitorConfig()
        self._clock = clock
        self._start_time = time.time()

        self._cache: OrderedDict[tuple, tuple[float, dict]] = OrderedDict()
        self._cache_lock = threading.Lock()
        self._lat_compute = RollingLatency(maxlen=500)

    # ── public API ───────────────────────────────────────────

    def collect_health(
        self,
        time_range: str = DEFAULT_TIME_RANGE,
        asset: Optional[str] = None,
        market_filter: Optional[str] = None,
    ) -> dict:
        range_ms = parse_time_range(time_range)
        return self._cached(
            ("health", time_range, asset, market_filter),
            lambda: self._build_health(time_range, range_ms, asset, market_filter),
        )

    def collect_fill_sync(self, market_id: Optional[str] = None, asset: Optional[str] = None) -> dict:
        return self._cached(
            ("fill_sync", market_id, asset),
            lambda: self._build_fill_sync(market_id, asset),
        )

    def collect_hourly_pnl(self, hours: int = 24, asset: Optional[str] = None) -> dict:
        if hours < 1 or hours > 24 * 30:
            raise ValueError("hours must be between 1 and 720")
        return self._cached(
            ("hourly_pnl", hours, asset),
            lambda: self._build_hourly_pnl(hours, asset),
        )

    def collect_realtime_snapshot(self) -> dict:
        """Default health view plus fill-sync state (for the SSE stream)."""
        return {
            "timestamp": time.time(),
            "uptime_sec": time.time() - self._start_time,
            "health": self.collect_health(),
            "fill_sync": self.collect_fill_sync(),
            "engine_latency": self._lat_compute.snapshot(),
        }

    # ── cache ────────────────────────────────────────────────

    def _cached(self, key: tuple, build: Callable[[], dict]) -> dict:
        ttl = self._config.dashboard.cache_ttl_sec
        now = time.time()
        with self._cache_lock:
            hit = self._cache.get(key)
            if hit is not None and now - hit[0] <= ttl:
                self._cache.move_to_end(key)
                return hit[1]

        try:
            data = build()
        except Exception:
            if hit is None:
                raise
            logger.exception("Failed to refresh %s, serving cached data", key[0])
            return hit[1]

        with self._cache_lock:
            self._cache[key] = (now, data)
            self._cache.move_to_end(key)
            while len(self._cache) > MAX_CACHE_ENTRIES:
                self._cache.popitem(last=False)
        return data

    # ── builders ─────────────────────────────────────────────

    def _build_health(
        self,
        time_range: str,
        range_ms: int,
        asset: Optional[str],
        market_filter: Optional[str],
    ) -> dict:
        now_ms = self._clock()
        since = now_ms - range_ms
        store = self._store

        events = store.get_events(since, asset, market_filter)
        orders = store.get_orders(since, asset, market_filter)
        fills = store.get_fills(since, asset, market_filter)
        snapshots = store.get_snapshots(since, asset, market_filter)
        results = store.get_trade_results(since, asset)

        start = time.time()
        metrics = compute_health_metrics(
            events, orders, fills, snapshots,
            config=self._config.thresholds,
            time_range_ms=range_ms,
            pnl_stats=compute_pnl_stats(results),
            now_ms=now_ms,
        )
        self._lat_compute.add(time.time() - start)

        return {
            "generated_at_ms": now_ms,
            "time_range": time_range,
            "asset": asset,
            "market_filter": market_filter,
            "row_counts": {
                "events": len(events),
                "orders": len(orders),
                "fills": len(fills),
                "snapshots": len(snapshots),
                "trade_results": len(results),
            },
            "metrics": metrics.to_dict(),
        }

    def _build_fill_sync(self, market_id: Optional[str], asset: Optional[str]) -> dict:
        now_ms = self._clock()
        market_filter = market_id
        since = now_ms - parse_time_range(FILL_SYNC_LOOKBACK)
        fills = self._store.get_fills(since, asset, market_id)

        if fills:
            # The filter is a case-insensitive substring; follow the matching
            # market the bot traded most recently
            market_id = max(fills, key=lambda f: f.ts).market_id

        cfg = self._config.fill_sync
        tracker = replay_fills(
            fills,
            window_size=cfg.window_size,
            max_streak=cfg.max_streak,
            max_fills=cfg.max_fills,
            market_id=market_id,
        )
        position = reconstruct_positions_from_fills(
            f for f in fills if f.market_id == market_id
        ).get(market_id)

        quotes = {}
        for side in ("UP", "DOWN"):
            decision = tracker.should_quote(side)
            quotes[side] = {"allowed": decision.allowed, "reason": decision.reason}

        return {
            "generated_at_ms": now_ms,
            "market_id": market_id,
            "market_filter": market_filter,
            "stats": tracker.get_stats().to_dict(),
            "should_quote": quotes,
            "position": position.to_dict() if position is not None else None,
        }

    def _build_hourly_pnl(self, hours: int, asset: Optional[str]) -> dict:
        now_ms = self._clock()
        since = (now_ms // HOUR_MS - (hours - 1)) * HOUR_MS
        results = self._store.get_trade_results(since, asset)
        return {
            "generated_at_ms": now_ms,
            "hours": hours,
            "asset": asset,
            "hourly": hourly_pnl(results, hours=hours, now_ms=now_ms).to_dict(),
        }
