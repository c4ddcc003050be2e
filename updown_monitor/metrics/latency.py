from __future__ import annotations
import threading
from collections import deque


class RollingLatency:
    """Percentiles over the last ``maxlen`` timing samples (seconds)."""

    def __init__(self, maxlen: int = 2000):
        self.samples = deque(maxlen=maxlen)
        self._lock = threading.Lock()

    def add(self, seconds: float) -> None:
        with self._lock:
            self.samples.append(seconds)

    def snapshot(self) -> dict:
        with self._lock:
            xs = sorted(self.samples)
        if not xs:
            return {"n": 0}
        n = len(xs)
        p50 = xs[int(0.50 * (n - 1))]
        p95 = xs[int(0.95 * (n - 1))]
        p99 = xs[int(0.99 * (n - 1))]
        avg = sum(xs) / n
        return {
            "n": n,
            "avg_ms": avg * 1000,
            "p50_ms": p50 * 1000,
            "p95_ms": p95 * 1000,
            "p99_ms": p99 * 1000,
        }
