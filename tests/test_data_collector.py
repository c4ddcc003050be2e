import json

import pytest

from updown_monitor.config import DashboardConfig, MonitorConfig
from updown_monitor.dashboard.data_collector import MAX_CACHE_ENTRIES, HealthDataCollector
from updown_monitor.store import MonitorDatabase, StoreError

WINDOW_START = 1767225600
MARKET = f"btc-updown-15m-{WINDOW_START}"
NOW_MS = (WINDOW_START + 10 * 60) * 1000
MIN = 60 * 1000


def _config(ttl=30.0):
    return MonitorConfig(dashboard=DashboardConfig(cache_ttl_sec=ttl))


@pytest.fixture
def db(tmp_path):
    database = MonitorDatabase(str(tmp_path / "monitor.db"))
    yield database
    database.close()


def _seed(db):
    db.insert_rows("fill_logs", [
        {"id": f"f{i}", "ts": NOW_MS - (5 - i) * MIN, "asset": "BTC", "market_id": MARKET,
         "side": "BUY", "intent": "ENTRY_UP", "fill_qty": 10, "fill_price": 0.45}
        for i in range(3)
    ])
    db.insert_rows("snapshot_logs", [
        {"id": "s1", "ts": NOW_MS - 2 * MIN, "asset": "BTC", "market_id": MARKET,
         "up_shares": 30, "down_shares": 0, "bot_state": "QUOTING"},
    ])
    db.insert_rows("orders", [
        {"id": f"o{i}", "created_ts": NOW_MS - 3 * MIN, "asset": "BTC", "market_id": MARKET,
         "status": "FILLED" if i else "FAILED"}
        for i in range(4)
    ])
    db.insert_rows("trade_results", [
        {"id": "r1", "asset": "BTC", "market_slug": MARKET, "profit_loss": 2.5,
         "total_invested": 20, "created_at_ms": NOW_MS - 20 * MIN},
    ])


def test_health_payload(db):
    _seed(db)
    collector = HealthDataCollector(db, _config(), clock=lambda: NOW_MS)

    payload = collector.collect_health("1h", asset="BTC")

    assert payload["time_range"] == "1h"
    assert payload["row_counts"] == {
        "events": 0, "orders": 4, "fills": 3, "snapshots": 1, "trade_results": 1,
    }
    metrics = payload["metrics"]
    assert metrics["status"] == "RED"  # 25% order failures
    assert metrics["order_failure_rate"] == pytest.approx(25.0)
    assert metrics["total_pnl"] == pytest.approx(2.5)
    assert metrics["risky_markets"][0]["market_id"] == MARKET
    json.dumps(payload)


def test_unknown_range_rejected(db):
    collector = HealthDataCollector(db, _config(), clock=lambda: NOW_MS)
    with pytest.raises(ValueError):
        collector.collect_health("2w")


def test_fill_sync_follows_latest_market(db):
    _seed(db)
    collector = HealthDataCollector(db, _config(), clock=lambda: NOW_MS)

    payload = collector.collect_fill_sync()

    assert payload["market_id"] == MARKET
    assert payload["stats"]["current_streak"] == 3
    assert payload["stats"]["streak_side"] == "UP"
    assert payload["should_quote"]["UP"]["allowed"] is False
    assert payload["should_quote"]["DOWN"] == {"allowed": True, "reason": "OK"}
    assert payload["position"]["up_shares"] == 30


def test_fill_sync_without_fills(db):
    collector = HealthDataCollector(db, _config(), clock=lambda: NOW_MS)
    payload = collector.collect_fill_sync()

    assert payload["market_id"] is None
    assert payload["position"] is None
    assert payload["should_quote"]["UP"]["reason"] == "Insufficient fill history"


def test_hourly_pnl_payload(db):
    _seed(db)
    collector = HealthDataCollector(db, _config(), clock=lambda: NOW_MS)

    payload = collector.collect_hourly_pnl(hours=2)

    assert payload["hours"] == 2
    assert len(payload["hourly"]["buckets"]) == 2
    assert payload["hourly"]["total_pnl"] == pytest.approx(2.5)
    with pytest.raises(ValueError):
        collector.collect_hourly_pnl(hours=0)


class CountingStore:
    """Delegates to a real store; can be switched to fail."""

    def __init__(self, inner):
        self.inner = inner
        self.calls = 0
        self.fail = False

    def __getattr__(self, name):
        target = getattr(self.inner, name)

        def wrapper(*args, **kwargs):
            self.calls += 1
            if self.fail:
                raise StoreError("store unavailable", status_code=503)
            return target(*args, **kwargs)

        return wrapper


def test_results_cached_within_ttl(db):
    store = CountingStore(db)
    collector = HealthDataCollector(store, _config(ttl=60), clock=lambda: NOW_MS)

    first = collector.collect_health()
    calls = store.calls
    assert collector.collect_health() is first
    assert store.calls == calls


def test_stale_cache_served_when_refresh_fails(db):
    _seed(db)
    store = CountingStore(db)
    collector = HealthDataCollector(store, _config(ttl=-1), clock=lambda: NOW_MS)

    first = collector.collect_health()
    store.fail = True
    assert collector.collect_health() == first


def test_failure_without_cache_propagates(db):
    store = CountingStore(db)
    store.fail = True
    collector = HealthDataCollector(store, _config(), clock=lambda: NOW_MS)
    with pytest.raises(StoreError):
        collector.collect_health()


def test_realtime_snapshot_bundles_views(db):
    _seed(db)
    collector = HealthDataCollector(db, _config(), clock=lambda: NOW_MS)
    snap = collector.collect_realtime_snapshot()

    assert snap["health"]["metrics"]["status"] == "RED"
    assert snap["fill_sync"]["market_id"] == MARKET
    json.dumps(snap)


@pytest.mark.parametrize("market", [MARKET.upper(), "btc-updown-15m", "1767225600"])
def test_fill_sync_resolves_market_filter(db, market):
    _seed(db)
    collector = HealthDataCollector(db, _config(), clock=lambda: NOW_MS)

    payload = collector.collect_fill_sync(market_id=market)

    assert payload["market_id"] == MARKET
    assert payload["market_filter"] == market
    assert payload["stats"]["current_streak"] == 3
    assert payload["stats"]["streak_side"] == "UP"
    assert payload["position"]["up_shares"] == 30


def test_fill_sync_unmatched_filter_is_empty(db):
    _seed(db)
    collector = HealthDataCollector(db, _config(), clock=lambda: NOW_MS)

    payload = collector.collect_fill_sync(market_id="eth-updown")

    assert payload["market_id"] == "eth-updown"
    assert payload["stats"]["total_recent"] == 0
    assert payload["position"] is None


def test_cache_size_is_bounded(db):
    collector = HealthDataCollector(db, _config(ttl=0), clock=lambda: NOW_MS)

    for i in range(MAX_CACHE_ENTRIES + 172):
        collector.collect_health(asset=f"A{i}")

    assert len(collector._cache) == MAX_CACHE_ENTRIES
    newest = ("health", "1h", f"A{MAX_CACHE_ENTRIES + 171}", None)
    assert newest in collector._cache
    assert ("health", "1h", "A0", None) not in collector._cache
