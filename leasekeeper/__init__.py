"""leasekeeper - Single active owner election over a shared key-value store."""

from .application.participant import Participant
from .domain.enums import LeaseDecision, Visibility
from .domain.models import LeaseRecord
from .infrastructure.config import ParticipantConfig
from .infrastructure.in_memory_broadcast_bus import InMemoryBroadcastHub
from .infrastructure.in_memory_lease_store import InMemoryLeaseMedium

__all__ = [
    "InMemoryBroadcastHub",
    "InMemoryLeaseMedium",
    "LeaseDecision",
    "LeaseRecord",
    "Participant",
    "ParticipantConfig",
    "Visibility",
]
__version__ = "0.1.0"
