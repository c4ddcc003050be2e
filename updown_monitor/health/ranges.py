from __future__ import annotations

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS

TIME_RANGES: dict[str, int] = {
    "15m": 15 * MINUTE_MS,
    "1h": HOUR_MS,
    "6h": 6 * HOUR_MS,
    "24h": DAY_MS,
    "7d": 7 * DAY_MS,
    "30d": 30 * DAY_MS,
    "all": 365 * DAY_MS,  # one year stands in for "all"
}

DEFAULT_TIME_RANGE = "1h"


def parse_time_range(label: str) -> int:
    """Milliseconds covered by a range label such as '1h' or '7d'."""
    try:
        return TIME_RANGES[label.strip().lower()]
    except KeyError:
        raise ValueError(
            f"unknown time range {label!r}, expected one of {sorted(TIME_RANGES)}"
        ) from None
