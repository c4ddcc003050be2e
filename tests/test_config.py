import pytest

from updown_monitor.config import (
    ConfigError,
    DashboardConfig,
    FillSyncConfig,
    HealthThresholds,
    load_config,
)


def test_thresholds_default_caps(monkeypatch):
    monkeypatch.delenv("UPDOWN_MAX_SHARES_PER_SIDE", raising=False)
    monkeypatch.delenv("UPDOWN_MAX_TOTAL_SHARES_PER_MARKET", raising=False)
    t = HealthThresholds()
    assert t.max_shares_per_side == 100.0
    assert t.max_total_shares_per_market == 200.0


def test_thresholds_from_env(monkeypatch):
    monkeypatch.setenv("UPDOWN_MAX_SHARES_PER_SIDE", "75")
    monkeypatch.setenv("UPDOWN_DASHBOARD_PORT", "9100")
    assert HealthThresholds().max_shares_per_side == 75.0
    assert DashboardConfig().port == 9100


def test_bad_env_value_raises(monkeypatch):
    monkeypatch.setenv("UPDOWN_FILL_SYNC_MAX_STREAK", "three")
    with pytest.raises(ConfigError):
        FillSyncConfig()


def test_range_validation():
    with pytest.raises(ConfigError):
        HealthThresholds(max_shares_per_side=0)
    with pytest.raises(ConfigError):
        FillSyncConfig(window_size=10, max_fills=5)


def test_missing_file_defaults_to_sqlite(tmp_path):
    cfg = load_config(tmp_path / "absent.yaml")
    assert cfg.store.kind == "sqlite"
    assert cfg.store.max_rows == 1000


def test_postgrest_store(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text(
        "store:\n"
        "  kind: postgrest\n"
        "  rest_url: https://example.invalid/rest/v1\n"
        "  api_key_env: MY_KEY\n"
        "  max_rows: 500\n"
    )
    monkeypatch.setenv("MY_KEY", "secret")

    cfg = load_config(path)
    assert cfg.store.kind == "postgrest"
    assert cfg.store.max_rows == 500
    assert cfg.store.api_key() == "secret"


@pytest.mark.parametrize("body", [
    "store:\n  kind: postgrest\n",
    "store:\n  kind: mongo\n",
    "store:\n  unknown_key: 1\n",
    "store: [1, 2]\n",
    "- just\n- a list\n",
    "store: {kind: sqlite\n",
])
def test_invalid_files_raise(tmp_path, body):
    path = tmp_path / "config.yaml"
    path.write_text(body)
    with pytest.raises(ConfigError):
        load_config(path)
