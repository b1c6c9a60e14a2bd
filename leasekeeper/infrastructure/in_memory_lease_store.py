"""In-memory lease store shared by participants on one event loop.

``InMemoryLeaseMedium`` stands for the durable medium. Each participant gets
its own ``InMemoryLeaseStore`` view tagged with an origin; change
notifications reach every subscriber except views of the writing origin.
Like the real medium it offers no compare-and-set.
"""

from __future__ import annotations

import asyncio
import inspect
import uuid

from ..domain.models import LeaseRecord
from ..ports.change_listener import ChangeCallback, ChangeListenerPort, Subscription
from ..ports.lease_store import LeaseStorePort
from ..ports.logger import LoggerPort
from .serialization import decode_lease_record, encode_lease_record


class _Listener:
    def __init__(self, origin: str, key: str, callback: ChangeCallback) -> None:
        self.origin = origin
        self.key = key
        self.callback = callback
        self.active = True


class InMemoryLeaseMedium:
    """Process-local key-value medium holding raw encoded values."""

    def __init__(self, logger: LoggerPort | None = None) -> None:
        self._data: dict[str, bytes] = {}
        self._listeners: list[_Listener] = []
        self._logger = logger or self._create_default_logger()
        self._pending: set[asyncio.Future] = set()
        self.writes = 0

    def _create_default_logger(self) -> LoggerPort:
        from .simple_logger import SimpleLogger

        return SimpleLogger("leasekeeper.in_memory_store")

    def view(self, origin: str | None = None) -> InMemoryLeaseStore:
        """Create a store view for one execution context."""
        return InMemoryLeaseStore(self, origin=origin)

    def get_raw(self, key: str) -> bytes | None:
        return self._data.get(key)

    def put_raw(self, key: str, value: bytes, origin: str | None = None) -> None:
        """Store a raw payload; used directly to inject foreign or malformed content."""
        self._data[key] = value
        self.writes += 1
        self._notify(key, origin)

    def remove(self, key: str, origin: str | None = None) -> None:
        if self._data.pop(key, None) is not None:
            self._notify(key, origin)

    def keys(self) -> list[str]:
        return list(self._data)

    def add_listener(self, listener: _Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: _Listener) -> None:
        listener.active = False
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def _notify(self, key: str, origin: str | None) -> None:
        targets = [
            listener
            for listener in self._listeners
            if listener.key == key and (origin is None or listener.origin != origin)
        ]
        if not targets:
            return
        loop = asyncio.get_running_loop()
        for listener in targets:
            loop.call_soon(self._deliver, listener, key)

    def _deliver(self, listener: _Listener, key: str) -> None:
        if not listener.active:
            return
        try:
            result = listener.callback(key)
            if inspect.isawaitable(result):
                future = asyncio.ensure_future(result)
                self._pending.add(future)
                future.add_done_callback(self._pending.discard)
        except Exception as e:
            self._logger.exception(f"Change listener failed for key {key}: {e}", exc_info=e)


class _InMemorySubscription(Subscription):
    def __init__(self, medium: InMemoryLeaseMedium, listener: _Listener) -> None:
        self._medium = medium
        self._listener = listener

    async def unsubscribe(self) -> None:
        self._medium.remove_listener(self._listener)


class InMemoryLeaseStore(LeaseStorePort, ChangeListenerPort):
    """One execution context's view of an ``InMemoryLeaseMedium``."""

    def __init__(self, medium: InMemoryLeaseMedium | None = None, origin: str | None = None):
        self._medium = medium or InMemoryLeaseMedium()
        self._origin = origin or uuid.uuid4().hex

    @property
    def medium(self) -> InMemoryLeaseMedium:
        return self._medium

    @property
    def origin(self) -> str:
        return self._origin

    async def get(self, key: str) -> LeaseRecord | None:
        return decode_lease_record(self._medium.get_raw(key))

    async def set(self, key: str, record: LeaseRecord) -> None:
        self._medium.put_raw(key, encode_lease_record(record), origin=self._origin)

    async def delete(self, key: str) -> None:
        self._medium.remove(key, origin=self._origin)

    async def subscribe(self, key: str, callback: ChangeCallback) -> Subscription:
        listener = _Listener(self._origin, key, callback)
        self._medium.add_listener(listener)
        return _InMemorySubscription(self._medium, listener)
