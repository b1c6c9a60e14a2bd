"""Clock port abstraction for time handling.

Decouples the lease rule from system time so stale-lease detection can be
tested with a controlled clock.
"""

from abc import ABC, abstractmethod


class ClockPort(ABC):
    """Abstract clock interface for time operations."""

    @abstractmethod
    def now_ms(self) -> int:
        """Current wall-clock time as integer epoch milliseconds.

        Note:
            Participants sharing a store compare each other's timestamps,
            so every implementation must use the same epoch.
        """
        ...
