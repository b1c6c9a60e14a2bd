"""Domain layer - Lease records, identities and the acquisition rule."""

from .enums import BusMessageKind, LeaseDecision, TriggerSource, Visibility
from .exceptions import (
    BroadcastError,
    ConfigurationError,
    LeaseKeeperError,
    LeaseStoreError,
    SerializationError,
    StoreUnavailableError,
)
from .models import BusMessage, LeaseRecord
from .services import LeaseAcquisitionPolicy
from .value_objects import LeaseKey, ParticipantId

__all__ = [
    # Exceptions
    "BroadcastError",
    "ConfigurationError",
    "LeaseKeeperError",
    "LeaseStoreError",
    "SerializationError",
    "StoreUnavailableError",
    # Enums
    "BusMessageKind",
    "LeaseDecision",
    "TriggerSource",
    "Visibility",
    # Models
    "BusMessage",
    "LeaseRecord",
    # Services
    "LeaseAcquisitionPolicy",
    # Value objects
    "LeaseKey",
    "ParticipantId",
]
