"""NATS connection shared by the KV lease store and the broadcast bus."""

from __future__ import annotations

import os

import nats
from nats.aio.client import Client as NATSClient
from nats.js import JetStreamContext

from ..domain.exceptions import ConfigurationError, StoreUnavailableError
from ..ports.logger import LoggerPort
from .config import LogContext, NATSConnectionConfig


class NATSConnection:
    """Owns one nats-py client and its JetStream context."""

    def __init__(
        self,
        config: NATSConnectionConfig | None = None,
        logger: LoggerPort | None = None,
    ):
        """Initialize the connection holder.

        Args:
            config: Connection configuration. If not provided, uses defaults.
            logger: Optional logger port. If not provided, uses simple logger.
        """
        self._config = config or NATSConnectionConfig()
        self._logger = logger or self._create_default_logger()
        self._client: NATSClient | None = None
        self._js: JetStreamContext | None = None

    def _create_default_logger(self) -> LoggerPort:
        from .simple_logger import SimpleLogger

        return SimpleLogger("leasekeeper.nats")

    async def connect(self, servers: list[str] | None = None) -> None:
        """Connect to NATS and initialize JetStream.

        Args:
            servers: Optional override for server URLs. If not provided, uses config.
        """
        if self._client and self._client.is_connected:
            return

        params = self._config.to_connection_params()
        if servers:
            params["servers"] = servers

        log_ctx = LogContext(operation="connect", component="NATSConnection")
        try:
            self._client = await nats.connect(**params)
        except Exception as e:
            self._logger.error(
                f"Failed to connect to NATS: {e}", **log_ctx.with_error(e).to_dict()
            )
            raise StoreUnavailableError("connect", reason=str(e)) from e

        if self._config.enable_jetstream:
            js_domain = self._config.js_domain or os.getenv("NATS_JS_DOMAIN")
            if js_domain:
                self._js = self._client.jetstream(domain=js_domain)
            else:
                self._js = self._client.jetstream()

        servers = ", ".join(params["servers"])
        self._logger.info(f"Connected to NATS at {servers}", **log_ctx.to_dict())

    async def disconnect(self) -> None:
        """Drain and close the client."""
        if self._client and not self._client.is_closed:
            await self._client.close()
        self._client = None
        self._js = None

    async def is_connected(self) -> bool:
        return self._client is not None and self._client.is_connected

    @property
    def client(self) -> NATSClient:
        if not self._client or not self._client.is_connected:
            raise StoreUnavailableError("client", reason="Not connected to NATS.")
        return self._client

    @property
    def jetstream(self) -> JetStreamContext:
        if not self._config.enable_jetstream:
            raise ConfigurationError("JetStream is disabled in the NATS connection config")
        if self._js is None:
            raise StoreUnavailableError("jetstream", reason="NATS JetStream not initialized.")
        return self._js
