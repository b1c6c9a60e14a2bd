"""Configuration objects for participants and adapters."""

from __future__ import annotations

import re
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..domain.value_objects import LeaseKey

LeadershipCallback = Callable[[], Any]


class ParticipantConfig(BaseModel):
    """Recognized options of a lease election participant.

    Timing values are milliseconds. ``interval_ms`` must stay below
    ``timeout_ms`` and ``debounce_ms`` below ``interval_ms``, so lowering
    ``timeout_ms`` under the default interval of 10000 also requires passing
    ``interval_ms``. The callbacks may be plain callables or coroutine
    functions and take no arguments.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        str_strip_whitespace=True,
        strict=True,
    )

    namespace: str = Field(
        default="my-app",
        min_length=1,
        max_length=128,
        description="Name of the resource whose single owner is elected",
    )
    storage_prefix: str = Field(
        default="single-owner",
        min_length=1,
        max_length=64,
        description="Prefix of the store key, useful to isolate test runs",
    )
    timeout_ms: int = Field(
        default=15000,
        gt=0,
        description="Age after which a lease is considered abandoned",
    )
    interval_ms: int = Field(
        default=10000,
        gt=0,
        description="Period of reconciliation ticks and leader heartbeats",
    )
    debounce_ms: int = Field(
        default=100,
        ge=0,
        description="Delay between a change/bus notification and the reconciliation it triggers",
    )
    use_broadcast_bus: bool = Field(
        default=True,
        description="Use the broadcast bus for faster signaling when one is available",
    )
    debug: bool = Field(
        default=False,
        description="Log every reconciliation decision at DEBUG level",
    )

    on_become_leader: LeadershipCallback | None = Field(default=None, exclude=True)
    on_lose_leadership: LeadershipCallback | None = Field(default=None, exclude=True)
    on_other_detected: LeadershipCallback | None = Field(default=None, exclude=True)

    @model_validator(mode="after")
    def validate_timing(self) -> ParticipantConfig:
        """A leader must be able to renew before its own lease goes stale."""
        if self.interval_ms >= self.timeout_ms:
            raise ValueError(
                f"interval_ms ({self.interval_ms}) must be less than timeout_ms "
                f"({self.timeout_ms}); set interval_ms too when lowering timeout_ms"
            )
        if self.debounce_ms >= self.interval_ms:
            raise ValueError(
                f"debounce_ms ({self.debounce_ms}) must be less than "
                f"interval_ms ({self.interval_ms})"
            )
        return self

    @model_validator(mode="after")
    def validate_key_parts(self) -> ParticipantConfig:
        self.lease_key()
        return self

    def lease_key(self) -> LeaseKey:
        """Store key and bus topic derived from prefix and namespace."""
        return LeaseKey(prefix=self.storage_prefix, namespace=self.namespace)

    @property
    def interval_seconds(self) -> float:
        return self.interval_ms / 1000

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000


class NATSConnectionConfig(BaseModel):
    """Strongly-typed configuration for NATS connections."""

    model_config = ConfigDict(
        extra="forbid",
        str_strip_whitespace=True,
        strict=True,
        validate_assignment=True,
    )

    servers: list[str] = Field(
        default_factory=lambda: ["nats://localhost:4222"],
        min_length=1,
        description="List of NATS server URLs",
    )
    connection_name: str | None = Field(
        default=None,
        description="Client name reported to the server",
    )
    connect_timeout: float = Field(
        default=2.0,
        gt=0,
        description="Timeout for the initial connection in seconds",
    )
    max_reconnect_attempts: int = Field(
        default=10,
        ge=-1,
        description="Maximum reconnection attempts (-1 retries forever)",
    )
    reconnect_time_wait: float = Field(
        default=2.0,
        gt=0,
        description="Time to wait between reconnection attempts in seconds",
    )
    js_domain: str | None = Field(
        default=None,
        description="JetStream domain for multi-tenancy",
    )
    enable_jetstream: bool = Field(
        default=True,
        description="Whether to initialize JetStream (required by the KV lease store)",
    )

    @field_validator("servers")
    @classmethod
    def validate_servers(cls, v: list[str]) -> list[str]:
        """Validate server URLs format."""
        for server in v:
            if not server.startswith(("nats://", "tls://", "ws://", "wss://")):
                raise ValueError(
                    f"Invalid server URL: {server}. "
                    "Must start with nats://, tls://, ws://, or wss://"
                )
        return v

    def to_connection_params(self) -> dict[str, Any]:
        """Convert to keyword arguments for ``nats.connect``."""
        params: dict[str, Any] = {
            "servers": self.servers,
            "connect_timeout": self.connect_timeout,
            "max_reconnect_attempts": self.max_reconnect_attempts,
            "reconnect_time_wait": self.reconnect_time_wait,
        }
        if self.connection_name:
            params["name"] = self.connection_name
        return params


class KVStoreConfig(BaseModel):
    """Configuration of the JetStream KV bucket holding lease records."""

    model_config = ConfigDict(
        extra="forbid",
        str_strip_whitespace=True,
        strict=True,
        validate_assignment=True,
    )

    bucket: str = Field(
        default="leasekeeper",
        min_length=1,
        description="KV store bucket name",
    )
    history_size: int = Field(
        default=1,
        ge=1,
        le=64,
        description="Number of historical revisions to keep per key",
    )
    max_value_size: int = Field(
        default=1024,
        gt=0,
        description="Maximum value size in bytes",
    )
    create_bucket: bool = Field(
        default=True,
        description="Create the bucket when it does not exist",
    )

    @field_validator("bucket")
    @classmethod
    def validate_bucket_name(cls, v: str) -> str:
        """NATS KV bucket names are alphanumeric with underscores only."""
        if not re.match(r"^[a-zA-Z0-9_]+$", v):
            raise ValueError(
                f"Invalid bucket name: {v}. "
                "Must contain only alphanumeric characters and underscores"
            )
        return v


class LogContext(BaseModel):
    """Strongly-typed context for structured logging.

    Gives adapters a consistent set of keys to attach to log records.
    """

    model_config = ConfigDict(
        extra="allow",
        str_strip_whitespace=True,
        strict=False,
        validate_assignment=True,
    )

    namespace: str | None = Field(default=None, description="Election namespace")
    participant_id: str | None = Field(default=None, description="Participant identity")
    operation: str | None = Field(default=None, description="Current operation")
    component: str | None = Field(default=None, description="Component generating the log")
    error_code: str | None = Field(default=None, description="Structured error code")
    error_type: str | None = Field(default=None, description="Type of error encountered")
    duration_ms: float | None = Field(default=None, ge=0, description="Operation duration in ms")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging frameworks."""
        return {k: v for k, v in self.model_dump().items() if v is not None}

    def with_error(self, error: Exception) -> LogContext:
        """Create a new context with error information."""
        return LogContext(
            **{
                **self.model_dump(),
                "error_code": error.__class__.__name__,
                "error_type": type(error).__module__ + "." + type(error).__name__,
            }
        )

    def with_operation(self, operation: str, component: str | None = None) -> LogContext:
        """Create a new context with operation information."""
        return LogContext(
            **{
                **self.model_dump(),
                "operation": operation,
                "component": component or self.component,
            }
        )
