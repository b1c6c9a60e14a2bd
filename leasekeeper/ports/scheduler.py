"""Scheduler port - timers driving periodic and delayed reconciliation."""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

TimerCallback = Callable[[], Awaitable[Any] | Any]


class TimerHandle(ABC):
    """A scheduled timer."""

    @abstractmethod
    def cancel(self) -> None:
        """Cancel the timer if it has not fired. Idempotent."""
        ...

    @property
    @abstractmethod
    def cancelled(self) -> bool:
        """Whether cancel() has been called."""
        ...


class SchedulerPort(ABC):
    """Abstract timer source.

    Implementations run callbacks on the participant's event loop, never
    concurrently with each other.
    """

    @abstractmethod
    def call_every(self, interval_s: float, callback: TimerCallback) -> TimerHandle:
        """Run a callback every interval until cancelled.

        The first call happens one interval after scheduling.
        """
        ...

    @abstractmethod
    def call_later(self, delay_s: float, callback: TimerCallback) -> TimerHandle:
        """Run a callback once after a delay unless cancelled first."""
        ...
