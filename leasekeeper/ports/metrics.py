"""Metrics port - Abstract interface for metrics collection.

Lets the election logic count claims, renewals and store failures without
depending on a specific metrics backend.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Any


class MetricsPort(ABC):
    """Abstract interface for metrics collection."""

    @abstractmethod
    def increment(self, name: str, value: int = 1) -> None:
        """Increment a counter metric.

        Args:
            name: The metric name (e.g., "lease.claims")
            value: The increment value (default: 1)
        """
        ...

    @abstractmethod
    def gauge(self, name: str, value: float) -> None:
        """Set a gauge metric.

        Args:
            name: The metric name (e.g., "lease.is_leader")
            value: The gauge value
        """
        ...

    @abstractmethod
    def record(self, name: str, value: float) -> None:
        """Record one observation of a duration or size."""
        ...

    @abstractmethod
    def timer(self, name: str) -> AbstractContextManager[Any]:
        """Create a context manager that records the duration of a block in ms."""
        ...

    @abstractmethod
    def get_all(self) -> dict[str, Any]:
        """Snapshot of every counter, gauge and recorded summary."""
        ...
