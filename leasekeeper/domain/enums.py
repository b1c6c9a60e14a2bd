"""Domain enums for lease election."""

from enum import Enum


class LeaseDecision(str, Enum):
    """Outcome of evaluating the lease acquisition rule."""

    CLAIM_ABSENT = "CLAIM_ABSENT"
    CLAIM_EXPIRED = "CLAIM_EXPIRED"
    RENEW = "RENEW"
    FOLLOW = "FOLLOW"

    @property
    def takes_lease(self) -> bool:
        """Whether the caller writes the record and becomes leader."""
        return self is not LeaseDecision.FOLLOW


class BusMessageKind(str, Enum):
    """Kinds of broadcast bus notifications."""

    LEADERSHIP_CHANGED = "LEADERSHIP_CHANGED"
    CLOSING = "CLOSING"


class Visibility(str, Enum):
    """Host visibility of a participant's execution context."""

    VISIBLE = "VISIBLE"
    HIDDEN = "HIDDEN"


class TriggerSource(str, Enum):
    """Where a reconciliation request came from."""

    INITIAL = "initial"
    TICK = "tick"
    CHANGE = "change"
    BROADCAST = "broadcast"
    MANUAL = "manual"
    VISIBILITY = "visibility"
