"""In-process broadcast bus for participants sharing one event loop."""

from __future__ import annotations

import asyncio
import inspect
from collections import defaultdict

from ..ports.broadcast_bus import BroadcastBusPort, BusCallback
from ..ports.change_listener import Subscription
from ..ports.logger import LoggerPort


class _Registration:
    def __init__(self, endpoint: InMemoryBroadcastBus, topic: str, callback: BusCallback) -> None:
        self.endpoint = endpoint
        self.topic = topic
        self.callback = callback
        self.active = True


class InMemoryBroadcastHub:
    """Fan-out point shared by every ``InMemoryBroadcastBus`` endpoint.

    Delivery is scheduled on the loop, never inline with publish, and a
    failing subscriber is logged and skipped. Like a browser broadcast
    channel, an endpoint never hears its own messages.
    """

    def __init__(self, logger: LoggerPort | None = None) -> None:
        self._registrations: dict[str, list[_Registration]] = defaultdict(list)
        self._pending: set[asyncio.Future] = set()
        self._logger = logger or self._create_default_logger()
        self.published = 0

    def _create_default_logger(self) -> LoggerPort:
        from .simple_logger import SimpleLogger

        return SimpleLogger("leasekeeper.in_memory_bus")

    def endpoint(self) -> InMemoryBroadcastBus:
        return InMemoryBroadcastBus(self)

    def register(self, registration: _Registration) -> None:
        self._registrations[registration.topic].append(registration)

    def unregister(self, registration: _Registration) -> None:
        registration.active = False
        registrations = self._registrations.get(registration.topic, [])
        if registration in registrations:
            registrations.remove(registration)

    def subscriber_count(self, topic: str) -> int:
        return len(self._registrations.get(topic, []))

    def deliver(self, sender: InMemoryBroadcastBus, topic: str, message: bytes) -> None:
        self.published += 1
        targets = [r for r in self._registrations.get(topic, []) if r.endpoint is not sender]
        if not targets:
            return
        loop = asyncio.get_running_loop()
        for registration in targets:
            loop.call_soon(self._invoke, registration, message)

    def _invoke(self, registration: _Registration, message: bytes) -> None:
        if not registration.active:
            return
        try:
            result = registration.callback(message)
            if inspect.isawaitable(result):
                future = asyncio.ensure_future(result)
                self._pending.add(future)
                future.add_done_callback(self._pending.discard)
        except Exception as e:
            self._logger.exception(
                f"Bus subscriber failed on topic {registration.topic}: {e}", exc_info=e
            )


class _HubSubscription(Subscription):
    def __init__(self, hub: InMemoryBroadcastHub, registration: _Registration) -> None:
        self._hub = hub
        self._registration = registration

    async def unsubscribe(self) -> None:
        self._hub.unregister(self._registration)


class InMemoryBroadcastBus(BroadcastBusPort):
    """One participant's endpoint on an ``InMemoryBroadcastHub``."""

    def __init__(self, hub: InMemoryBroadcastHub | None = None) -> None:
        self.hub = hub or InMemoryBroadcastHub()
        self._subscriptions: list[_HubSubscription] = []
        self._closed = False

    async def publish(self, topic: str, message: bytes) -> None:
        if not self._closed:
            self.hub.deliver(self, topic, message)

    async def subscribe(self, topic: str, callback: BusCallback) -> Subscription:
        registration = _Registration(self, topic, callback)
        self.hub.register(registration)
        subscription = _HubSubscription(self.hub, registration)
        self._subscriptions.append(subscription)
        return subscription

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for subscription in self._subscriptions:
            await subscription.unsubscribe()
        self._subscriptions.clear()
