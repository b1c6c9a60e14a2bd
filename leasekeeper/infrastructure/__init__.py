"""Infrastructure layer - Concrete implementations of ports."""

from .asyncio_scheduler import AsyncioScheduler, AsyncioTimerHandle
from .config import KVStoreConfig, LogContext, NATSConnectionConfig, ParticipantConfig
from .factories import create_in_memory_participant, create_nats_participant
from .in_memory_broadcast_bus import InMemoryBroadcastBus, InMemoryBroadcastHub
from .in_memory_lease_store import InMemoryLeaseMedium, InMemoryLeaseStore
from .in_memory_metrics import InMemoryMetrics
from .lifecycle import install_shutdown_handlers
from .nats_broadcast_bus import NATSBroadcastBus, create_broadcast_bus
from .nats_connection import NATSConnection
from .nats_kv_lease_store import NATSKVLeaseStore
from .serialization import decode_lease_record, encode_lease_record
from .simple_logger import SimpleLogger
from .store_probe import probe_store
from .system_clock import SystemClock

__all__ = [
    "AsyncioScheduler",
    "AsyncioTimerHandle",
    "InMemoryBroadcastBus",
    "InMemoryBroadcastHub",
    "InMemoryLeaseMedium",
    "InMemoryLeaseStore",
    "InMemoryMetrics",
    "KVStoreConfig",
    "LogContext",
    "NATSBroadcastBus",
    "NATSConnection",
    "NATSConnectionConfig",
    "NATSKVLeaseStore",
    "ParticipantConfig",
    "SimpleLogger",
    "SystemClock",
    "create_broadcast_bus",
    "create_in_memory_participant",
    "create_nats_participant",
    "decode_lease_record",
    "encode_lease_record",
    "install_shutdown_handlers",
    "probe_store",
]
