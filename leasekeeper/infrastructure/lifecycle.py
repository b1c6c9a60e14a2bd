"""Host integration: best-effort cleanup on termination signals.

Signal handlers run the participant's graceful shutdown. A crash or a
force-kill skips them entirely, which is why followers still rely on the
lease timeout.
"""

from __future__ import annotations

import asyncio
import signal
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING

from ..ports.logger import LoggerPort

if TYPE_CHECKING:
    from ..application.participant import Participant

DEFAULT_SHUTDOWN_SIGNALS: tuple[signal.Signals, ...] = (signal.SIGINT, signal.SIGTERM)


def install_shutdown_handlers(
    participant: Participant,
    loop: asyncio.AbstractEventLoop | None = None,
    signals: Iterable[signal.Signals] = DEFAULT_SHUTDOWN_SIGNALS,
    logger: LoggerPort | None = None,
    on_closed: Callable[[], object] | None = None,
) -> Callable[[], None]:
    """Close the participant when the process is asked to terminate.

    Args:
        participant: Participant to close
        loop: Loop to register on; defaults to the running loop
        signals: Signals treated as "about to terminate"
        logger: Logger for registration problems
        on_closed: Called after close() completes, e.g. to stop the host

    Returns:
        A callable that removes the installed handlers
    """
    if logger is None:
        from .simple_logger import SimpleLogger

        logger = SimpleLogger("leasekeeper.lifecycle")

    loop = loop or asyncio.get_running_loop()
    installed: list[signal.Signals] = []
    tasks: set[asyncio.Task] = set()

    async def shutdown(sig: signal.Signals) -> None:
        logger.info(f"Received {sig.name}, releasing lease", participant_id=participant.id)
        await participant.close()
        if on_closed is not None:
            on_closed()

    def handler(sig: signal.Signals) -> None:
        task = loop.create_task(shutdown(sig))
        tasks.add(task)
        task.add_done_callback(tasks.discard)

    for sig in signals:
        try:
            loop.add_signal_handler(sig, handler, sig)
            installed.append(sig)
        except (NotImplementedError, RuntimeError, ValueError) as e:
            # Windows event loops and non-main threads cannot install handlers
            logger.warning(f"Cannot install handler for {sig.name}: {e}")

    def remove() -> None:
        for sig in installed:
            loop.remove_signal_handler(sig)
        installed.clear()

    return remove
