"""
Bot health metrics engine.

Reduces a time-bounded slice of the bot's history (events, orders, fills,
inventory snapshots) to a GREEN / YELLOW / RED status with the reasons,
key numbers, invariant checks and 5-minute timelines behind it.

Status cascade:
  RED     per-side or per-market cap breach, hedge placed outside PAIRING,
          aggressive hedge fallback, order failure rate > 15%, worst skew > 85%
  YELLOW  (only when not RED) emergency rate 2-6/hour, order failure rate
          5-15%, worst skew 70-85%
  GREEN   otherwise
"""
from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Iterable, Optional, Sequence

from updown_monitor.config.models import HealthThresholds
from updown_monitor.health.pnl import PnLStats
from updown_monitor.health.positions import compute_skew_pct, reconstruct_positions_from_fills
from updown_monitor.health.timeline import BUCKET_MS, bucket_by_time, bucket_range
from updown_monitor.types import BotEvent, Fill, InventorySnapshot, Order, as_float
from updown_monitor.utils.slug_helpers import parse_market_window

logger = logging.getLogger(__name__)

DEFAULT_TIME_RANGE_MS = 60 * 60 * 1000

# Order failure rate (%) thresholds
FAILURE_RATE_RED = 15.0
FAILURE_RATE_YELLOW = 5.0
# Worst skew (%) thresholds
SKEW_RED = 85.0
SKEW_YELLOW = 70.0
# Emergency events per hour
EMERGENCY_RATE_YELLOW_MIN = 2.0
EMERGENCY_RATE_YELLOW_MAX = 6.0

# Risky market selection
RISKY_SKEW_PCT = 30.0
RISKY_SIDE_SHARES = 50.0
MAX_RISKY_MARKETS = 10

FAILED_ORDER_STATUSES = ("FAILED", "REJECTED")


class HealthStatus(str, Enum):
    GREEN = "GREEN"
    YELLOW = "YELLOW"
    RED = "RED"


@dataclass(frozen=True)
class StatusReason:
    # cap_breach | emergency_rate | order_failure | skew | hedge_outside_pairing | aggressive_hedge
    type: str
    message: str
    severity: HealthStatus


@dataclass(frozen=True)
class Invariants:
    no_position_over_100_per_side: bool
    no_total_over_200_per_market: bool
    no_hedges_outside_pairing: bool
    no_aggressive_hedge_fallback: bool
    no_late_expiry_trading: bool


@dataclass(frozen=True)
class RiskyMarket:
    market_id: str
    asset: str
    window_start: int
    window_end: int
    up_shares: float
    down_shares: float
    skew_pct: float
    time_left: float  # seconds
    state: str
    notes: str


@dataclass
class HealthMetrics:
    status: HealthStatus
    reasons: list[StatusReason]
    invariants: Invariants

    max_shares_per_side: float = 0.0
    max_total_shares_per_market: float = 0.0
    emergency_events_per_hour: float = 0.0
    order_failure_rate: float = 0.0
    worst_skew: float = 0.0

    one_sided_opens_count: int = 0
    pairing_started_count: int = 0
    pairing_timeout_revert_count: int = 0
    hedge_blocked_count: int = 0
    unwind_only_count: int = 0

    total_pnl: float = 0.0
    pnl: Optional[PnLStats] = None

    # 5-minute buckets: [{"timestamp": ms, ...}]
    exposure_over_time: list[dict] = field(default_factory=list)
    skew_over_time: list[dict] = field(default_factory=list)
    emergency_timeline: list[dict] = field(default_factory=list)
    order_failures_timeline: list[dict] = field(default_factory=list)

    risky_markets: list[RiskyMarket] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        for reason in data["reasons"]:
            reason["severity"] = HealthStatus(reason["severity"]).value
        data["pnl"] = self.pnl.to_dict() if self.pnl is not None else None
        return data


def _is_emergency(e: BotEvent) -> bool:
    return "EMERGENCY" in e.event_type or "EMERGENCY" in (e.reason_code or "")


def _hedge_outside_pairing(events: Sequence[BotEvent]) -> bool:
    """True if any HEDGE_PLACED has no earlier PAIRING_STARTED on its market."""
    first_pairing: dict[Optional[str], int] = {}
    for e in events:
        if e.event_type == "PAIRING_STARTED":
            prev = first_pairing.get(e.market_id)
            if prev is None or e.ts < prev:
                first_pairing[e.market_id] = e.ts

    for e in events:
        if e.event_type != "HEDGE_PLACED":
            continue
        started = first_pairing.get(e.market_id)
        if started is None or started >= e.ts:
            return True
    return False


def _aggressive_hedge(events: Iterable[BotEvent]) -> bool:
    return any(
        e.event_type == "AGGRESSIVE_HEDGE" or (e.data is not None and e.data.get("aggressive") is True)
        for e in events
    )


def _late_expiry_trading(fills: Iterable[Fill], late_expiry_seconds: int) -> bool:
    """True if a fill landed inside the last seconds of its market window."""
    for f in fills:
        window = parse_market_window(f.market_id)
        if window is None:
            continue
        fill_sec = f.ts / 1000.0
        if window.end_ts - late_expiry_seconds <= fill_sec <= window.end_ts:
            return True
    return False


def _risk_notes(snap: InventorySnapshot) -> str:
    if snap.up_shares > snap.down_shares * 2:
        return "One-sided (UP) - waiting for hedge"
    if snap.down_shares > snap.up_shares * 2:
        return "One-sided (DOWN) - waiting for hedge"
    if snap.state == "PAIRING":
        return "In pairing"
    if snap.state == "UNWIND_ONLY":
        return "Near expiry - unwind only"
    return ""


def _risky_markets(
    snapshots: Sequence[InventorySnapshot],
    start_ms: int,
    now_ms: int,
) -> list[RiskyMarket]:
    latest: dict[str, InventorySnapshot] = {}
    for snap in snapshots:
        existing = latest.get(snap.market_id)
        if existing is None or snap.ts > existing.ts:
            latest[snap.market_id] = snap

    out: list[RiskyMarket] = []
    for market_id, snap in latest.items():
        skew = compute_skew_pct(snap.up_shares, snap.down_shares)
        if not (skew > RISKY_SKEW_PCT or snap.up_shares > RISKY_SIDE_SHARES
                or snap.down_shares > RISKY_SIDE_SHARES):
            continue

        window = parse_market_window(market_id)
        if window is not None:
            window_start, window_end = window.start_ts * 1000, window.end_ts * 1000
            time_left = window.seconds_left(now_ms / 1000.0)
        else:
            window_start, window_end, time_left = start_ms, now_ms, 0.0

        out.append(RiskyMarket(
            market_id=market_id,
            asset=snap.asset,
            window_start=window_start,
            window_end=window_end,
            up_shares=snap.up_shares,
            down_shares=snap.down_shares,
            skew_pct=skew,
            time_left=time_left,
            state=snap.state,
            notes=_risk_notes(snap),
        ))

    out.sort(key=lambda m: m.skew_pct, reverse=True)
    return out[:MAX_RISKY_MARKETS]


def compute_health_metrics(
    events: Sequence[BotEvent],
    orders: Sequence[Order],
    fills: Sequence[Fill],
    snapshots: Sequence[InventorySnapshot],
    config: Optional[HealthThresholds] = None,
    time_range_ms: int = DEFAULT_TIME_RANGE_MS,
    pnl_stats: Optional[PnLStats] = None,
    now_ms: Optional[int] = None,
) -> HealthMetrics:
    """
    Compute the health snapshot for the last ``time_range_ms``.

    Args:
        events: Bot event log
        orders: Orders placed by the bot
        fills: Fill log, used for exposure when there are no snapshots
        snapshots: Periodic inventory snapshots
        config: Position caps and the late-expiry window
        time_range_ms: Length of the window ending at ``now_ms``
        pnl_stats: Settled-trade statistics; when absent total PnL comes
            from the latest PNL_UPDATE event
        now_ms: End of the window (defaults to the wall clock)

    Returns:
        HealthMetrics
    """
    cfg = config or HealthThresholds()
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    start_ms = now_ms - time_range_ms

    events = [e for e in events if e.ts >= start_ms]
    orders = [o for o in orders if o.created_ts >= start_ms]
    fills = [f for f in fills if f.ts >= start_ms]
    snapshots = [s for s in snapshots if s.ts >= start_ms]

    # ── exposure ─────────────────────────────────────────────
    max_per_side = 0.0
    max_total = 0.0
    if snapshots:
        for s in snapshots:
            max_per_side = max(max_per_side, s.up_shares, s.down_shares)
            max_total = max(max_total, s.up_shares + s.down_shares)
    else:
        for pos in reconstruct_positions_from_fills(fills).values():
            max_per_side = max(max_per_side, pos.up_shares, pos.down_shares)
            max_total = max(max_total, pos.total_shares)

    # ── rates and counters ───────────────────────────────────
    emergency_count = sum(1 for e in events if _is_emergency(e))
    hours_in_range = time_range_ms / (60 * 60 * 1000)
    emergency_per_hour = emergency_count / hours_in_range if hours_in_range > 0 else 0.0

    failed = sum(1 for o in orders if o.status in FAILED_ORDER_STATUSES)
    failure_rate = failed * 100.0 / len(orders) if orders else 0.0

    # ── 5-minute timelines ───────────────────────────────────
    event_buckets = bucket_by_time(events)
    snapshot_buckets = bucket_by_time(snapshots)
    emergency_timeline, failures_timeline = [], []
    exposure_over_time, skew_over_time = [], []
    for t in bucket_range(start_ms, now_ms, BUCKET_MS):
        bucket_events = event_buckets.get(t, [])
        bucket_snaps = snapshot_buckets.get(t, [])
        emergency_timeline.append({
            "timestamp": t,
            "count": sum(1 for e in bucket_events if "EMERGENCY" in e.event_type),
        })
        failures_timeline.append({
            "timestamp": t,
            "count": sum(1 for e in bucket_events if e.event_type == "ORDER_FAILED"),
        })
        exposure_over_time.append({
            "timestamp": t,
            "max_exposure": max((max(s.up_shares, s.down_shares) for s in bucket_snaps), default=0.0),
        })
        skew_over_time.append({
            "timestamp": t,
            "worst_skew": max((compute_skew_pct(s.up_shares, s.down_shares) for s in bucket_snaps), default=0.0),
        })

    worst_skew = max((b["worst_skew"] for b in skew_over_time), default=0.0)

    # ── invariants ───────────────────────────────────────────
    invariants = Invariants(
        no_position_over_100_per_side=max_per_side <= cfg.max_shares_per_side,
        no_total_over_200_per_market=max_total <= cfg.max_total_shares_per_market,
        no_hedges_outside_pairing=not _hedge_outside_pairing(events),
        no_aggressive_hedge_fallback=not _aggressive_hedge(events),
        no_late_expiry_trading=not _late_expiry_trading(fills, cfg.late_expiry_seconds),
    )

    # ── status ───────────────────────────────────────────────
    reasons: list[StatusReason] = []
    red = HealthStatus.RED
    if not invariants.no_position_over_100_per_side:
        reasons.append(StatusReason(
            "cap_breach",
            f"Position exceeds {cfg.max_shares_per_side:g} shares per side (observed: {max_per_side:g})",
            red,
        ))
    if not invariants.no_total_over_200_per_market:
        reasons.append(StatusReason(
            "cap_breach",
            f"Total shares exceed {cfg.max_total_shares_per_market:g} per market (observed: {max_total:g})",
            red,
        ))
    if not invariants.no_hedges_outside_pairing:
        reasons.append(StatusReason("hedge_outside_pairing", "Hedge placed outside PAIRING state detected", red))
    if not invariants.no_aggressive_hedge_fallback:
        reasons.append(StatusReason("aggressive_hedge", "Aggressive hedge fallback detected", red))
    if failure_rate > FAILURE_RATE_RED:
        reasons.append(StatusReason(
            "order_failure", f"Order failure rate > 15% ({failure_rate:.1f}%)", red,
        ))
    if worst_skew > SKEW_RED:
        reasons.append(StatusReason(
            "skew", f"Worst skew > 85% sustained ({worst_skew:.1f}%)", red,
        ))

    if reasons:
        status = HealthStatus.RED
    else:
        yellow = HealthStatus.YELLOW
        if EMERGENCY_RATE_YELLOW_MIN <= emergency_per_hour <= EMERGENCY_RATE_YELLOW_MAX:
            reasons.append(StatusReason(
                "emergency_rate", f"Emergency rate 2-6/hour ({emergency_per_hour:.1f}/hour)", yellow,
            ))
        if FAILURE_RATE_YELLOW <= failure_rate <= FAILURE_RATE_RED:
            reasons.append(StatusReason(
                "order_failure", f"Order failure rate 5-15% ({failure_rate:.1f}%)", yellow,
            ))
        if SKEW_YELLOW <= worst_skew <= SKEW_RED:
            reasons.append(StatusReason(
                "skew", f"Worst skew 70-85% ({worst_skew:.1f}%)", yellow,
            ))
        status = HealthStatus.YELLOW if reasons else HealthStatus.GREEN

    if not reasons:
        reasons.append(StatusReason("cap_breach", "All systems operating normally", HealthStatus.GREEN))

    # ── pnl ──────────────────────────────────────────────────
    if pnl_stats is not None:
        total_pnl = pnl_stats.total_pnl
    else:
        total_pnl = 0.0
        pnl_events = [e for e in events if e.event_type == "PNL_UPDATE"]
        if pnl_events:
            latest = max(pnl_events, key=lambda e: e.ts)
            total_pnl = as_float((latest.data or {}).get("pnl"))

    if status is not HealthStatus.GREEN:
        logger.info(
            "Health %s: %s", status.value, "; ".join(r.message for r in reasons),
        )

    return HealthMetrics(
        status=status,
        reasons=reasons,
        invariants=invariants,
        max_shares_per_side=max_per_side,
        max_total_shares_per_market=max_total,
        emergency_events_per_hour=emergency_per_hour,
        order_failure_rate=failure_rate,
        worst_skew=worst_skew,
        one_sided_opens_count=sum(1 for e in events if e.event_type in ("ONE_SIDED", "OPEN_ONE_SIDED")),
        pairing_started_count=sum(1 for e in events if e.event_type == "PAIRING_STARTED"),
        pairing_timeout_revert_count=sum(1 for e in events if e.event_type == "PAIRING_TIMEOUT_REVERT"),
        hedge_blocked_count=sum(1 for e in events if "HEDGE_BLOCKED" in e.event_type),
        unwind_only_count=sum(1 for e in events if e.event_type == "UNWIND_ONLY"),
        total_pnl=total_pnl,
        pnl=pnl_stats,
        exposure_over_time=exposure_over_time,
        skew_over_time=skew_over_time,
        emergency_timeline=emergency_timeline,
        order_failures_timeline=failures_timeline,
        risky_markets=_risky_markets(snapshots, start_ms, now_ms),
    )
