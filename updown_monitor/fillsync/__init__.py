"""Fill-sync streak tracking."""
from __future__ import annotations

from updown_monitor.fillsync.tracker import (
    FillRecord,
    FillSyncStats,
    FillSyncTracker,
    ShouldQuoteResult,
    replay_fills,
)

__all__ = [
    "FillRecord",
    "FillSyncStats",
    "FillSyncTracker",
    "ShouldQuoteResult",
    "replay_fills",
]
