"""PnL statistics over settled trade results."""
from __future__ import annotations

import logging
import math
import time
from dataclasses import asdict, dataclass, field
from typing import Iterable, Optional

from updown_monitor.types import TradeResult

logger = logging.getLogger(__name__)

HOUR_MS = 60 * 60 * 1000


@dataclass(frozen=True)
class PnLStats:
    total_pnl: float = 0.0
    total_wins: float = 0.0
    total_losses: float = 0.0  # absolute value
    total_trades: int = 0
    win_count: int = 0
    loss_count: int = 0
    win_rate: float = 0.0
    avg_win: float = 0.0
    avg_loss: float = 0.0
    profit_factor: float = 0.0

    def to_dict(self) -> dict:
        data = asdict(self)
        # JSON has no infinity
        if math.isinf(self.profit_factor):
            data["profit_factor"] = None
        return data


@dataclass
class HourlyBucket:
    hour_start_ms: int
    pnl: float = 0.0
    trades: int = 0
    invested: float = 0.0


@dataclass
class HourlyPnL:
    buckets: list[HourlyBucket] = field(default_factory=list)
    total_pnl: float = 0.0
    total_trades: int = 0
    total_invested: float = 0.0
    profitable_hours: int = 0
    unprofitable_hours: int = 0
    best_hour: Optional[HourlyBucket] = None
    worst_hour: Optional[HourlyBucket] = None

    def to_dict(self) -> dict:
        return asdict(self)


def compute_pnl_stats(results: Iterable[TradeResult]) -> PnLStats:
    """
    Aggregate win/loss figures from settled results.

    Args:
        results: Settled trade results

    Returns:
        PnLStats; profit_factor is inf when there are wins but no losses
    """
    results = list(results)
    if not results:
        return PnLStats()

    wins = [r.profit_loss for r in results if r.profit_loss > 0]
    losses = [r.profit_loss for r in results if r.profit_loss < 0]
    total_wins = sum(wins)
    total_losses = abs(sum(losses))

    if total_losses > 0:
        profit_factor = total_wins / total_losses
    elif total_wins > 0:
        profit_factor = math.inf
    else:
        profit_factor = 0.0

    return PnLStats(
        total_pnl=sum(r.profit_loss for r in results),
        total_wins=total_wins,
        total_losses=total_losses,
        total_trades=len(results),
        win_count=len(wins),
        loss_count=len(losses),
        win_rate=len(wins) / len(results) * 100.0,
        avg_win=total_wins / len(wins) if wins else 0.0,
        avg_loss=total_losses / len(losses) if losses else 0.0,
        profit_factor=profit_factor,
    )


def hourly_pnl(
    results: Iterable[TradeResult],
    hours: int = 24,
    now_ms: Optional[int] = None,
) -> HourlyPnL:
    """
    Bucket settled results into the last ``hours`` clock hours.

    The newest bucket is the current (partial) hour. Results outside the
    covered span are ignored.
    """
    if hours < 1:
        raise ValueError("hours must be at least 1")
    if now_ms is None:
        now_ms = int(time.time() * 1000)

    current_hour = (now_ms // HOUR_MS) * HOUR_MS
    first_hour = current_hour - (hours - 1) * HOUR_MS
    buckets = [HourlyBucket(hour_start_ms=first_hour + i * HOUR_MS) for i in range(hours)]

    for r in results:
        if r.created_at_ms < first_hour or r.created_at_ms > now_ms:
            continue
        b = buckets[(r.created_at_ms - first_hour) // HOUR_MS]
        b.pnl += r.profit_loss
        b.trades += 1
        b.invested += r.total_invested

    out = HourlyPnL(
        buckets=buckets,
        total_pnl=sum(b.pnl for b in buckets),
        total_trades=sum(b.trades for b in buckets),
        total_invested=sum(b.invested for b in buckets),
        profitable_hours=sum(1 for b in buckets if b.pnl > 0),
        unprofitable_hours=sum(1 for b in buckets if b.pnl < 0),
        best_hour=max(buckets, key=lambda b: b.pnl),
        worst_hour=min(buckets, key=lambda b: b.pnl),
    )
    logger.debug(
        "Hourly PnL over %dh: total=%.2f trades=%d", hours, out.total_pnl, out.total_trades,
    )
    return out
