"""asyncio implementation of the scheduler port."""

from __future__ import annotations

import asyncio
import contextlib
import inspect

from ..ports.logger import LoggerPort
from ..ports.scheduler import SchedulerPort, TimerCallback, TimerHandle


class AsyncioTimerHandle(TimerHandle):
    """Timer backed by an asyncio task.

    Cancelling interrupts the task only while it sleeps. A callback already
    running, possibly the caller of ``cancel`` itself, finishes normally and
    the timer stops afterwards.
    """

    def __init__(self) -> None:
        self._task: asyncio.Task | None = None
        self._cancelled = False
        self._in_callback = False

    def attach(self, task: asyncio.Task) -> None:
        self._task = task

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._task is None or self._task.done() or self._in_callback:
            return
        if self._task is not asyncio.current_task():
            self._task.cancel()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def done(self) -> bool:
        return self._task is not None and self._task.done()

    async def wait_cancelled(self) -> None:
        """Wait until the underlying task has finished unwinding."""
        if self._task:
            with contextlib.suppress(asyncio.CancelledError):
                await self._task


class AsyncioScheduler(SchedulerPort):
    """Runs timer callbacks as tasks on the running event loop.

    A callback error is logged and does not stop a periodic timer.
    """

    def __init__(self, logger: LoggerPort | None = None) -> None:
        self._logger = logger or self._create_default_logger()

    def _create_default_logger(self) -> LoggerPort:
        from .simple_logger import SimpleLogger

        return SimpleLogger("leasekeeper.scheduler")

    def call_every(self, interval_s: float, callback: TimerCallback) -> TimerHandle:
        if interval_s <= 0:
            raise ValueError("Interval must be positive")
        handle = AsyncioTimerHandle()
        handle.attach(asyncio.create_task(self._run_periodic(interval_s, callback, handle)))
        return handle

    def call_later(self, delay_s: float, callback: TimerCallback) -> TimerHandle:
        if delay_s < 0:
            raise ValueError("Delay cannot be negative")
        handle = AsyncioTimerHandle()
        handle.attach(asyncio.create_task(self._run_once(delay_s, callback, handle)))
        return handle

    async def _run_periodic(
        self, interval_s: float, callback: TimerCallback, handle: AsyncioTimerHandle
    ) -> None:
        while not handle.cancelled:
            await asyncio.sleep(interval_s)
            if handle.cancelled:
                break
            await self._invoke(callback, handle)

    async def _run_once(
        self, delay_s: float, callback: TimerCallback, handle: AsyncioTimerHandle
    ) -> None:
        await asyncio.sleep(delay_s)
        if not handle.cancelled:
            await self._invoke(callback, handle)

    async def _invoke(self, callback: TimerCallback, handle: AsyncioTimerHandle) -> None:
        handle._in_callback = True
        try:
            result = callback()
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._logger.exception(f"Error in scheduled callback: {e}", exc_info=e)
        finally:
            handle._in_callback = False
