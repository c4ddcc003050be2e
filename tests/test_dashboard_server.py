import pytest
import requests

from updown_monitor.config import MonitorConfig
from updown_monitor.dashboard import DashboardServer
from updown_monitor.dashboard.data_collector import HealthDataCollector
from updown_monitor.store import MonitorDatabase

NOW_MS = (1767225600 + 600) * 1000


@pytest.fixture
def base_url(tmp_path):
    db = MonitorDatabase(str(tmp_path / "monitor.db"))
    db.insert_rows("snapshot_logs", [
        {"id": "s1", "ts": NOW_MS - 60_000, "asset": "BTC",
         "market_id": "btc-updown-15m-1767225600", "up_shares": 120, "down_shares": 20},
    ])
    collector = HealthDataCollector(db, MonitorConfig(), clock=lambda: NOW_MS)
    server = DashboardServer(collector, host="127.0.0.1", port=0)
    server.start()
    yield f"http://127.0.0.1:{server.server_port}"
    server.stop()
    db.close()


def test_health_endpoint(base_url):
    r = requests.get(f"{base_url}/api/health", params={"range": "15m", "asset": "BTC"}, timeout=5)

    assert r.status_code == 200
    body = r.json()
    assert body["time_range"] == "15m"
    assert body["metrics"]["status"] == "RED"
    assert body["metrics"]["invariants"]["no_position_over_100_per_side"] is False


def test_fill_sync_endpoint(base_url):
    r = requests.get(f"{base_url}/api/fill-sync", timeout=5)
    assert r.status_code == 200
    assert set(r.json()["should_quote"]) == {"UP", "DOWN"}


def test_hourly_pnl_endpoint(base_url):
    r = requests.get(f"{base_url}/api/pnl/hourly", params={"hours": "3"}, timeout=5)
    assert r.status_code == 200
    assert len(r.json()["hourly"]["buckets"]) == 3


@pytest.mark.parametrize("path", [
    "/api/health?range=2w",
    "/api/pnl/hourly?hours=abc",
    "/api/pnl/hourly?hours=0",
])
def test_bad_parameters_are_400(base_url, path):
    r = requests.get(base_url + path, timeout=5)
    assert r.status_code == 400
    assert "error" in r.json()


def test_unknown_path_is_404(base_url):
    r = requests.get(f"{base_url}/api/nope", timeout=5)
    assert r.status_code == 404
