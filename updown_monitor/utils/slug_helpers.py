# updown_monitor/utils/slug_helpers.py
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal, Optional

Timespan = Literal["5m", "15m", "1h"]

TIMESPAN_TO_SEC: dict[str, int] = {
    "5m": 5 * 60,
    "15m": 15 * 60,
    "1h": 60 * 60,
}

# canonical: btc-updown-15m-<window start unix>
_SLUG_RE = re.compile(r"^([a-z0-9]+)-updown-(5m|15m|1h)-(\d{9,11})$")


@dataclass(frozen=True)
class MarketWindow:
  underlying: str
  timespan: str
  start_ts: int
  end_ts: int

  def seconds_left(self, now_unix: float) -> float:
    return max(0.0, self.end_ts - now_unix)


def window_sec_for_timespan(timespan: Timespan) -> int:
  return TIMESPAN_TO_SEC[timespan]


def slug_for_window(underlying: str, window_start_unix: int, timespan: Timespan) -> str:
  return f"{underlying}-updown-{timespan}-{int(window_start_unix)}"


def parse_market_window(market_id: Optional[str]) -> Optional[MarketWindow]:
  """Window bounds encoded in an up/down market slug, or None if it isn't one."""
  if not market_id:
    return None
  m = _SLUG_RE.match(market_id.strip().lower())
  if m is None:
    return None
  underlying, timespan, start = m.group(1), m.group(2), int(m.group(3))
  return MarketWindow(
    underlying=underlying,
    timespan=timespan,
    start_ts=start,
    end_ts=start + window_sec_for_timespan(timespan),  # type: ignore[arg-type]
  )
