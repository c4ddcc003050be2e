"""
Configuration models for the monitor.

Values default from environment variables so the monitor can be tuned from
the deployment dashboard (or a local .env file) without a config file.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field

DEFAULT_STREAM_INTERVAL_SEC = 2.0


class ConfigError(ValueError):
    """Raised when a configuration value is missing or out of range."""


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "")
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "")
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


@dataclass
class HealthThresholds:
    """Caps the health engine checks positions against."""

    max_shares_per_side: float = field(
        default_factory=lambda: _env_float("UPDOWN_MAX_SHARES_PER_SIDE", 100.0)
    )
    max_total_shares_per_market: float = field(
        default_factory=lambda: _env_float("UPDOWN_MAX_TOTAL_SHARES_PER_MARKET", 200.0)
    )
    # Fills closer than this to the window end count as late-expiry trading
    late_expiry_seconds: int = field(
        default_factory=lambda: _env_int("UPDOWN_LATE_EXPIRY_SECONDS", 180)
    )

    def __post_init__(self):
        if self.max_shares_per_side <= 0:
            raise ConfigError("max_shares_per_side must be positive")
        if self.max_total_shares_per_market <= 0:
            raise ConfigError("max_total_shares_per_market must be positive")
        if self.late_expiry_seconds < 0:
            raise ConfigError("late_expiry_seconds must not be negative")


@dataclass
class FillSyncConfig:
    """Streak tracker window settings."""

    window_size: int = field(default_factory=lambda: _env_int("UPDOWN_FILL_SYNC_WINDOW", 5))
    max_streak: int = field(default_factory=lambda: _env_int("UPDOWN_FILL_SYNC_MAX_STREAK", 3))
    max_fills: int = 20

    def __post_init__(self):
        if self.window_size < 1:
            raise ConfigError("window_size must be at least 1")
        if self.max_streak < 1:
            raise ConfigError("max_streak must be at least 1")
        if self.max_fills < self.window_size:
            raise ConfigError("max_fills must be >= window_size")


@dataclass
class DashboardConfig:
    """HTTP server settings."""

    host: str = field(default_factory=lambda: os.environ.get("UPDOWN_DASHBOARD_HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: _env_int("UPDOWN_DASHBOARD_PORT", 8080))
    cache_ttl_sec: float = field(default_factory=lambda: _env_float("UPDOWN_CACHE_TTL_SEC", 30.0))
    stream_interval_sec: float = DEFAULT_STREAM_INTERVAL_SEC


@dataclass
class MonitorConfig:
    """Main monitor configuration container."""
    thresholds: HealthThresholds = field(default_factory=HealthThresholds)
    fill_sync: FillSyncConfig = field(default_factory=FillSyncConfig)
    dashboard: DashboardConfig = field(default_factory=DashboardConfig)
