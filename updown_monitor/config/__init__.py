"""Configuration management."""
from __future__ import annotations

from updown_monitor.config.loader import Config, StoreConfig, load_config
from updown_monitor.config.models import (
    ConfigError,
    DashboardConfig,
    FillSyncConfig,
    HealthThresholds,
    MonitorConfig,
)

__all__ = [
    "Config",
    "ConfigError",
    "DashboardConfig",
    "FillSyncConfig",
    "HealthThresholds",
    "load_config",
    "MonitorConfig",
    "StoreConfig",
]
