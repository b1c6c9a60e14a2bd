"""Domain value objects for lease election.

These value objects give identity and naming concepts a validated type
instead of passing bare strings around.
"""

import re
import secrets
import time
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"
_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9_-]*$")


class ParticipantId(BaseModel):
    """Value object representing a participant identity.

    Generated once per participant and stable for its lifetime. The value is
    opaque to the protocol; only equality matters.
    """

    model_config = ConfigDict(frozen=True, strict=True)

    value: str = Field(..., min_length=1, max_length=128, description="The participant identifier")

    @field_validator("value")
    @classmethod
    def validate_participant_id(cls, v: str) -> str:
        """Participant IDs must not contain whitespace or control characters."""
        if not v.strip():
            raise ValueError("Participant ID cannot be empty or whitespace")
        if any(c.isspace() or ord(c) < 32 for c in v):
            raise ValueError("Participant ID cannot contain whitespace or control characters")
        return v

    @classmethod
    def generate(cls, prefix: str = "participant") -> "ParticipantId":
        """Create a collision-resistant id: ``<prefix>-<epoch ms>-<9 base36 chars>``."""
        suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
        return cls(value=f"{prefix}-{int(time.time() * 1000)}-{suffix}")

    def __str__(self) -> str:
        """String representation returns the value."""
        return self.value

    def __eq__(self, other: Any) -> bool:
        """Equality comparison."""
        if isinstance(other, ParticipantId):
            return self.value == other.value
        if isinstance(other, str):
            return self.value == other
        return False

    def __hash__(self) -> int:
        """Make hashable for use in sets and dicts."""
        return hash(self.value)


class LeaseKey(BaseModel):
    """Value object naming the store key and bus topic of one namespace.

    The key is ``<prefix>-<namespace>``; both parts are restricted to
    characters accepted by NATS KV keys and subjects.
    """

    model_config = ConfigDict(frozen=True, strict=True)

    prefix: str = Field(default="single-owner", min_length=1, max_length=64)
    namespace: str = Field(default="my-app", min_length=1, max_length=128)

    @field_validator("prefix", "namespace")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Names must start alphanumeric and contain only letters, digits, '-' and '_'."""
        if not _NAME_PATTERN.match(v):
            raise ValueError(
                f"Invalid name '{v}'. Must start with a letter or digit and "
                "contain only letters, numbers, hyphens, and underscores."
            )
        return v

    @property
    def key(self) -> str:
        """Store key holding the lease record."""
        return f"{self.prefix}-{self.namespace}"

    @property
    def topic(self) -> str:
        """Broadcast topic for leadership notifications."""
        return f"leasekeeper.{self.key}"

    def __str__(self) -> str:
        return self.key
