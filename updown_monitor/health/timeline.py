from __future__ import annotations

from collections import defaultdict
from typing import Callable, Iterable, TypeVar

T = TypeVar("T")

BUCKET_MS = 5 * 60 * 1000


def bucket_start(ts_ms: int, bucket_ms: int = BUCKET_MS) -> int:
    return (ts_ms // bucket_ms) * bucket_ms


def bucket_by_time(
    items: Iterable[T],
    bucket_ms: int = BUCKET_MS,
    key: Callable[[T], int] = lambda item: item.ts,  # type: ignore[attr-defined]
) -> dict[int, list[T]]:
    """Group items into fixed windows keyed by the window's start timestamp."""
    buckets: dict[int, list[T]] = defaultdict(list)
    for item in items:
        buckets[bucket_start(key(item), bucket_ms)].append(item)
    return dict(buckets)


def bucket_range(start_ms: int, end_ms: int, bucket_ms: int = BUCKET_MS) -> range:
    """Bucket start times covering [start_ms, end_ms], end inclusive."""
    return range(bucket_start(start_ms, bucket_ms), end_ms + 1, bucket_ms)
