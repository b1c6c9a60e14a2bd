"""Change listener interface - notifications of foreign writes to a key."""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

ChangeCallback = Callable[[str], Awaitable[Any] | Any]


class Subscription(ABC):
    """Handle returned by a subscribe call."""

    @abstractmethod
    async def unsubscribe(self) -> None:
        """Stop delivery. Calling it more than once is a no-op."""
        ...


class ChangeListenerPort(ABC):
    """Notifies a participant when another execution context modified a key.

    Writes made through the subscribing participant's own view of the
    store never fire the callback.
    """

    @abstractmethod
    async def subscribe(self, key: str, callback: ChangeCallback) -> Subscription:
        """Subscribe to foreign modifications of a key.

        Args:
            key: The namespace key to watch
            callback: Called with the key; may be sync or async

        Returns:
            Subscription handle used to deregister on shutdown
        """
        ...
