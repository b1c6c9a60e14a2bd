"""Broadcast bus interface - optional best-effort publish/subscribe."""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

from .change_listener import Subscription

BusCallback = Callable[[bytes], Awaitable[Any] | Any]


class BroadcastBusPort(ABC):
    """Abstract interface for near-instant cross-participant signaling.

    No delivery, ordering or persistence guarantee. Hosts without a bus
    simply pass none and participants fall back to polling.
    """

    @abstractmethod
    async def publish(self, topic: str, message: bytes) -> None:
        """Publish a message to every current subscriber of a topic.

        Raises:
            BroadcastError: If the message could not be handed to the bus
        """
        ...

    @abstractmethod
    async def subscribe(self, topic: str, callback: BusCallback) -> Subscription:
        """Subscribe to a topic.

        Raises:
            BroadcastError: If the subscription could not be created
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release bus resources held by this participant."""
        ...
