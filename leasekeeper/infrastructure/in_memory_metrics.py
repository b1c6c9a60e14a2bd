"""In-memory metrics sink used by participants when none is injected.

Observations are folded into running aggregates as they arrive, so a
participant that reconciles for months holds the same few numbers it held
after its first pass.
"""

import time
from collections import defaultdict
from contextlib import contextmanager
from typing import Any

from ..ports.metrics import MetricsPort


class RunningSummary:
    """Count, total and extremes of a stream of observations."""

    __slots__ = ("count", "total", "min", "max", "last")

    def __init__(self) -> None:
        self.count = 0
        self.total = 0.0
        self.min = 0.0
        self.max = 0.0
        self.last = 0.0

    def add(self, value: float) -> None:
        if self.count == 0:
            self.min = self.max = value
        else:
            self.min = min(self.min, value)
            self.max = max(self.max, value)
        self.count += 1
        self.total += value
        self.last = value

    @property
    def average(self) -> float:
        return self.total / self.count if self.count else 0.0

    def snapshot(self) -> dict[str, float]:
        return {
            "count": self.count,
            "average": round(self.average, 3),
            "min": round(self.min, 3),
            "max": round(self.max, 3),
            "last": round(self.last, 3),
        }


class InMemoryMetrics(MetricsPort):
    """Process-local counters, gauges and running summaries."""

    def __init__(self) -> None:
        self._counters: dict[str, int] = defaultdict(int)
        self._gauges: dict[str, float] = {}
        self._summaries: dict[str, RunningSummary] = defaultdict(RunningSummary)

    def increment(self, name: str, value: int = 1) -> None:
        self._counters[name] += value

    def gauge(self, name: str, value: float) -> None:
        self._gauges[name] = value

    def record(self, name: str, value: float) -> None:
        self._summaries[name].add(value)

    @contextmanager
    def timer(self, name: str):
        start = time.perf_counter()
        try:
            yield
        finally:
            self.record(name, (time.perf_counter() - start) * 1000)

    def counter(self, name: str) -> int:
        """Current value of a counter (0 if never incremented)."""
        return self._counters.get(name, 0)

    def summary(self, name: str) -> RunningSummary | None:
        return self._summaries.get(name)

    def get_all(self) -> dict[str, Any]:
        return {
            "counters": dict(self._counters),
            "gauges": dict(self._gauges),
            "summaries": {name: s.snapshot() for name, s in self._summaries.items()},
        }
