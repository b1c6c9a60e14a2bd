"""Domain-specific exceptions for lease election."""


class LeaseKeeperError(Exception):
    """Base exception for all leasekeeper errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(LeaseKeeperError):
    """Invalid participant or adapter configuration."""

    pass


class SerializationError(LeaseKeeperError):
    """Serialization/deserialization errors."""

    pass


class LeaseStoreError(LeaseKeeperError):
    """Base exception for lease store operations."""

    def __init__(
        self,
        message: str,
        key: str | None = None,
        operation: str | None = None,
    ):
        super().__init__(message)
        self.key = key
        self.operation = operation
        if key:
            self.details["key"] = key
        if operation:
            self.details["operation"] = operation


class StoreUnavailableError(LeaseStoreError):
    """Raised when the backing medium cannot serve a read, write or delete."""

    def __init__(self, operation: str, key: str | None = None, reason: str | None = None):
        message = f"Lease store unavailable. Cannot perform '{operation}' operation."
        if reason:
            message = f"{message} {reason}"
        super().__init__(message, key=key, operation=operation)


class BroadcastError(LeaseKeeperError):
    """Broadcast bus publish/subscribe errors."""

    def __init__(self, message: str, topic: str | None = None):
        super().__init__(message)
        self.topic = topic
        if topic:
            self.details["topic"] = topic
