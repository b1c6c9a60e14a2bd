"""Availability probe for lease stores."""

from ..domain.models import LeaseRecord
from ..ports.lease_store import LeaseStorePort
from ..ports.logger import LoggerPort

PROBE_KEY = "leasekeeper-probe"


async def probe_store(
    store: LeaseStorePort,
    key: str = PROBE_KEY,
    logger: LoggerPort | None = None,
) -> bool:
    """Write, read back and delete a sentinel record.

    Returns:
        True if the round trip succeeded, False on any failure. Never raises.
    """
    sentinel = LeaseRecord(owner_id="__probe__", acquired_at=0)
    try:
        await store.set(key, sentinel)
        ok = await store.get(key) == sentinel
        await store.delete(key)
        return ok
    except Exception as e:
        if logger is not None:
            logger.warning(f"Lease store probe failed: {e}", key=key)
        return False
