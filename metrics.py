"""
In-process metrics for the helper.

Counts provider calls, cache hits and misses, and records how long bundle
builds take and how many options each ranking produced. Exposed through the
/metrics endpoint.
"""

import time
import threading
from contextlib import contextmanager
from typing import Dict, Any, Optional


class _Histogram:
    """Count/total/min/max accumulator for durations and sizes."""

    __slots__ = ("count", "total", "low", "high")

    def __init__(self):
        self.count = 0
        self.total = 0.0
        self.low = float('inf')
        self.high = 0.0

    def add(self, value: float) -> None:
        self.count += 1
        self.total += value
        self.low = min(self.low, value)
        self.high = max(self.high, value)

    def as_dict(self) -> Dict[str, float]:
        return {
            "count": self.count,
            "avg": round(self.total / self.count, 2) if self.count else 0.0,
            "min": round(self.low, 2) if self.count else 0.0,
            "max": round(self.high, 2),
        }


class Metrics:
    """
    Thread-safe metrics collector.

    Usage:
        metrics.inc("tmdb_requests", labels={"endpoint": "search"})

        with metrics.timer("bundle_build_ms"):
            bundle = builder.build(title, year)
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._counters: Dict[str, int] = {}
        self._histograms: Dict[str, _Histogram] = {}

    @staticmethod
    def _make_key(name: str, labels: Optional[Dict[str, Any]] = None) -> str:
        if not labels:
            return name
        label_str = ",".join(f"{k}={v}" for k, v in sorted(labels.items()))
        return f"{name}{{{label_str}}}"

    def inc(self, name: str, amount: int = 1, labels: Optional[Dict[str, Any]] = None) -> None:
        """Increment a counter."""
        key = self._make_key(name, labels)
        with self._lock:
            self._counters[key] = self._counters.get(key, 0) + amount

    def observe(self, name: str, value: float, labels: Optional[Dict[str, Any]] = None) -> None:
        """Record a histogram observation."""
        key = self._make_key(name, labels)
        with self._lock:
            self._histograms.setdefault(key, _Histogram()).add(value)

    @contextmanager
    def timer(self, name: str, labels: Optional[Dict[str, Any]] = None):
        """Record the duration of the with-block in milliseconds."""
        start = time.monotonic()
        try:
            yield
        finally:
            self.observe(name, (time.monotonic() - start) * 1000, labels)

    def get_counter(self, name: str, labels: Optional[Dict[str, Any]] = None) -> int:
        with self._lock:
            return self._counters.get(self._make_key(name, labels), 0)

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "counters": dict(self._counters),
                "histograms": {k: h.as_dict() for k, h in self._histograms.items()},
            }

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._histograms.clear()


# Global instance
metrics = Metrics()
