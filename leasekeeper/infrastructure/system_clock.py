"""System clock implementation."""

import time

from ..ports.clock import ClockPort


class SystemClock(ClockPort):
    """Default clock reading the wall clock as epoch milliseconds."""

    def now_ms(self) -> int:
        return int(time.time() * 1000)
