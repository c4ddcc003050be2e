"""Fill-sync streak tracking.

Keeps the most recent fills in a bounded buffer and stops quoting a side
when the latest fills all landed on it, so the bot does not keep buying one
leg while the other leg gets no fills.
"""
from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Iterable, Optional

from updown_monitor.types import Fill, Side

logger = logging.getLogger(__name__)

_OTHER_SIDE = {"UP": "DOWN", "DOWN": "UP"}


def _check_settings(window_size: int, max_streak: int) -> None:
    if window_size < 1:
        raise ValueError(f"window_size must be at least 1, got {window_size}")
    if max_streak < 1:
        raise ValueError(f"max_streak must be at least 1, got {max_streak}")


@dataclass(frozen=True)
class FillRecord:
    timestamp: float
    side: Side
    qty: float
    price: float
    market_id: str


@dataclass(frozen=True)
class FillSyncStats:
    total_recent: int
    recent_up: int
    recent_down: int
    current_streak: int
    streak_side: Optional[Side]

    def to_dict(self) -> dict:
        return {
            "total_recent": self.total_recent,
            "recent_up": self.recent_up,
            "recent_down": self.recent_down,
            "current_streak": self.current_streak,
            "streak_side": self.streak_side,
        }


@dataclass(frozen=True)
class ShouldQuoteResult:
    allowed: bool
    reason: str


class FillSyncTracker:
    """
    Thread-safe rolling window of recent fills.

    Responsibilities:
    - Keep the last ``max_fills`` fills (older ones drop off the front)
    - Report window counts and the current same-side streak
    - Veto quotes on the side that owns a streak of ``max_streak`` or more
    """

    def __init__(self, window_size: int = 5, max_streak: int = 3, max_fills: int = 20):
        _check_settings(window_size, max_streak)
        if max_fills < 1:
            raise ValueError(f"max_fills must be at least 1, got {max_fills}")
        self.window_size = window_size  # fills counted by get_stats()
        self.max_streak = max_streak    # streak length that stops quoting
        self.max_fills = max_fills
        self._fills: deque[FillRecord] = deque(maxlen=max_fills)
        self._lock = threading.RLock()

    def configure(self, window_size: int, max_streak: int) -> None:
        """Update window settings at runtime."""
        _check_settings(window_size, max_streak)
        with self._lock:
            self.window_size = window_size
            self.max_streak = max_streak
        logger.info("[FillSync] Configured: window=%d, maxStreak=%d", window_size, max_streak)

    def record_fill(
        self,
        side: Side,
        qty: float,
        price: float,
        market_id: str,
        timestamp: Optional[float] = None,
    ) -> None:
        """Append a fill; the deque trims the oldest past max_fills."""
        side = side.upper()  # type: ignore[assignment]
        if side not in _OTHER_SIDE:
            raise ValueError(f"side must be UP or DOWN, got {side!r}")

        with self._lock:
            self._fills.append(FillRecord(
                timestamp=time.time() if timestamp is None else timestamp,
                side=side,
                qty=qty,
                price=price,
                market_id=market_id,
            ))
            stats = self.get_stats()

        logger.debug(
            "[FillSync] %s fill recorded | Recent: %d UP / %d DOWN | Streak: %dx %s",
            side, stats.recent_up, stats.recent_down,
            stats.current_streak, stats.streak_side or "NONE",
        )

    def should_quote(self, side: Side) -> ShouldQuoteResult:
        """
        Decide whether quoting ``side`` is allowed.

        - Fewer than max_streak fills in the window: allow both sides
        - Latest max_streak+ fills all on ``side``: stop, wait for the other side
        - Otherwise: allow
        """
        stats = self.get_stats()

        if stats.total_recent < self.max_streak:
            return ShouldQuoteResult(allowed=True, reason="Insufficient fill history")

        if stats.current_streak >= self.max_streak and stats.streak_side == side.upper():
            other = _OTHER_SIDE[stats.streak_side]
            return ShouldQuoteResult(
                allowed=False,
                reason=(
                    f"Fill streak: {stats.current_streak}x {stats.streak_side} "
                    f"- waiting for {other} fill"
                ),
            )

        return ShouldQuoteResult(allowed=True, reason="OK")

    def get_stats(self) -> FillSyncStats:
        with self._lock:
            fills = list(self._fills)
            window = self.window_size

        recent = fills[-window:]
        recent_up = sum(1 for f in recent if f.side == "UP")

        # Walk back from the newest fill until the side changes
        streak = 0
        streak_side: Optional[Side] = None
        for f in reversed(fills):
            if streak_side is None:
                streak_side = f.side
                streak = 1
            elif f.side == streak_side:
                streak += 1
            else:
                break

        return FillSyncStats(
            total_recent=len(recent),
            recent_up=recent_up,
            recent_down=len(recent) - recent_up,
            current_streak=streak,
            streak_side=streak_side,
        )

    def reset(self) -> None:
        """Clear history, e.g. when the bot rolls to a new market."""
        with self._lock:
            self._fills.clear()
        logger.info("[FillSync] Tracker reset")

    def get_recent_fills(self) -> list[FillRecord]:
        with self._lock:
            return list(self._fills)

    def get_streak_info(self) -> tuple[int, Optional[Side]]:
        stats = self.get_stats()
        return stats.current_streak, stats.streak_side

    def __len__(self) -> int:
        with self._lock:
            return len(self._fills)


def replay_fills(
    fills: Iterable[Fill],
    window_size: int = 5,
    max_streak: int = 3,
    max_fills: int = 20,
    market_id: Optional[str] = None,
) -> FillSyncTracker:
    """Rebuild a tracker from recorded buy fills in timestamp order."""
    tracker = FillSyncTracker(window_size=window_size, max_streak=max_streak, max_fills=max_fills)
    for fill in sorted(fills, key=lambda f: f.ts):
        if market_id is not None and fill.market_id != market_id:
            continue
        if not fill.is_buy:
            continue
        tracker.record_fill(
            "UP" if fill.is_up else "DOWN",
            fill.fill_qty,
            fill.fill_price,
            fill.market_id,
            timestamp=fill.ts / 1000.0,
        )
    return tracker
