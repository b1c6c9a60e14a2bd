"""Factories wiring participants to concrete backends."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..ports.logger import LoggerPort
from ..ports.metrics import MetricsPort
from .config import KVStoreConfig, ParticipantConfig
from .in_memory_broadcast_bus import InMemoryBroadcastHub
from .in_memory_lease_store import InMemoryLeaseMedium
from .nats_broadcast_bus import create_broadcast_bus
from .nats_connection import NATSConnection
from .nats_kv_lease_store import NATSKVLeaseStore

if TYPE_CHECKING:
    from ..application.participant import Participant


def create_in_memory_participant(
    medium: InMemoryLeaseMedium,
    config: ParticipantConfig | None = None,
    hub: InMemoryBroadcastHub | None = None,
    **kwargs: Any,
) -> Participant:
    """Create a participant with its own view of a shared in-memory medium.

    Args:
        medium: Medium shared by every competing participant
        config: Participant options
        hub: Broadcast hub; without one the participant relies on polling
            and change notifications only
        **kwargs: Forwarded to ``Participant`` (scheduler, clock, logger, ...)
    """
    from ..application.participant import Participant

    return Participant(
        medium.view(),
        config,
        broadcast_bus=hub.endpoint() if hub is not None else None,
        **kwargs,
    )


async def create_nats_participant(
    connection: NATSConnection,
    config: ParticipantConfig | None = None,
    kv_config: KVStoreConfig | None = None,
    metrics: MetricsPort | None = None,
    logger: LoggerPort | None = None,
    **kwargs: Any,
) -> Participant:
    """Create a participant backed by a NATS KV bucket and core NATS bus.

    The connection must already be established. Each participant gets its
    own store instance so its own writes are not reported back to it.
    """
    from ..application.participant import Participant

    store = NATSKVLeaseStore(connection, config=kv_config, metrics=metrics, logger=logger)
    await store.connect()

    config = config or ParticipantConfig()
    bus = None
    if config.use_broadcast_bus:
        bus = await create_broadcast_bus(connection, logger=logger)

    return Participant(
        store,
        config,
        broadcast_bus=bus,
        metrics=metrics,
        logger=logger,
        **kwargs,
    )
