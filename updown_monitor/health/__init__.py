"""Bot health metrics, positions and PnL statistics."""
from __future__ import annotations

from updown_monitor.health.metrics import (
    HealthMetrics,
    HealthStatus,
    Invariants,
    RiskyMarket,
    StatusReason,
    compute_health_metrics,
)
from updown_monitor.health.pnl import HourlyPnL, PnLStats, compute_pnl_stats, hourly_pnl
from updown_monitor.health.positions import (
    MarketPosition,
    compute_skew_pct,
    reconstruct_positions_from_fills,
)
from updown_monitor.health.ranges import DEFAULT_TIME_RANGE, TIME_RANGES, parse_time_range
from updown_monitor.health.timeline import bucket_by_time

__all__ = [
    "DEFAULT_TIME_RANGE",
    "HealthMetrics",
    "HealthStatus",
    "HourlyPnL",
    "Invariants",
    "MarketPosition",
    "PnLStats",
    "RiskyMarket",
    "StatusReason",
    "TIME_RANGES",
    "bucket_by_time",
    "compute_health_metrics",
    "compute_pnl_stats",
    "compute_skew_pct",
    "hourly_pnl",
    "parse_time_range",
    "reconstruct_positions_from_fills",
]
