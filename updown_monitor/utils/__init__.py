"""
Utility modules for the monitor.
"""
from __future__ import annotations

from updown_monitor.utils.slug_helpers import (
    MarketWindow,
    parse_market_window,
)

__all__ = [
    "MarketWindow",
    "parse_market_window",
]
