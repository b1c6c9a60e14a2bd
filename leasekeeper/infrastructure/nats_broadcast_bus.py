"""Core NATS publish/subscribe as the optional broadcast bus."""

from __future__ import annotations

import inspect

from nats.aio.msg import Msg

from ..domain.exceptions import BroadcastError
from ..ports.broadcast_bus import BroadcastBusPort, BusCallback
from ..ports.change_listener import Subscription
from ..ports.logger import LoggerPort
from .nats_connection import NATSConnection


class _NATSSubscription(Subscription):
    def __init__(self, bus: NATSBroadcastBus, subscription) -> None:
        self._bus = bus
        self._subscription = subscription
        self._active = True

    async def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._bus._forget(self)
        try:
            await self._subscription.unsubscribe()
        except Exception as e:
            # Closed connections drop their subscriptions anyway
            self._bus._logger.debug(f"Ignoring unsubscribe failure: {e}")


class NATSBroadcastBus(BroadcastBusPort):
    """Fire-and-forget messages over core NATS subjects.

    Core NATS echoes a client's own messages back to it; receivers filter
    by sender id.
    """

    def __init__(self, connection: NATSConnection, logger: LoggerPort | None = None):
        self._connection = connection
        self._logger = logger or self._create_default_logger()
        self._subscriptions: list[_NATSSubscription] = []

    def _create_default_logger(self) -> LoggerPort:
        from .simple_logger import SimpleLogger

        return SimpleLogger("leasekeeper.nats_bus")

    async def publish(self, topic: str, message: bytes) -> None:
        try:
            await self._connection.client.publish(topic, message)
        except Exception as e:
            raise BroadcastError(f"Failed to publish on {topic}: {e}", topic=topic) from e

    async def subscribe(self, topic: str, callback: BusCallback) -> Subscription:
        async def handler(msg: Msg) -> None:
            try:
                result = callback(msg.data)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self._logger.exception(f"Bus handler error on {topic}: {e}", exc_info=e)

        try:
            sub = await self._connection.client.subscribe(topic, cb=handler)
        except Exception as e:
            raise BroadcastError(f"Failed to subscribe to {topic}: {e}", topic=topic) from e

        subscription = _NATSSubscription(self, sub)
        self._subscriptions.append(subscription)
        return subscription

    def _forget(self, subscription: _NATSSubscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    async def close(self) -> None:
        """Drop this bus's subscriptions; the shared connection stays open."""
        for subscription in list(self._subscriptions):
            await subscription.unsubscribe()


async def create_broadcast_bus(
    connection: NATSConnection | None, logger: LoggerPort | None = None
) -> NATSBroadcastBus | None:
    """Feature-detect a broadcast bus; None means poll-only mode."""
    if connection is None or not await connection.is_connected():
        return None
    return NATSBroadcastBus(connection, logger=logger)
