"""Lease store interface - Port definition for the shared durable medium."""

from abc import ABC, abstractmethod

from ..domain.models import LeaseRecord


class LeaseStorePort(ABC):
    """Abstract interface for the shared key-value medium holding lease records.

    The store is durable but not atomic: a ``get`` followed by a ``set`` from
    two participants may interleave. There is no compare-and-set.
    """

    @abstractmethod
    async def get(self, key: str) -> LeaseRecord | None:
        """Read the lease record stored under a key.

        Args:
            key: The namespace key

        Returns:
            The decoded record, or None when the key is absent or its
            content cannot be parsed as a lease record

        Raises:
            LeaseStoreError: If the medium cannot be read
        """
        ...

    @abstractmethod
    async def set(self, key: str, record: LeaseRecord) -> None:
        """Overwrite the lease record under a key.

        Raises:
            LeaseStoreError: If the write fails (capacity, unavailability)
        """
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove the lease record under a key; deleting an absent key is a no-op.

        Raises:
            LeaseStoreError: If the medium cannot be written
        """
        ...
