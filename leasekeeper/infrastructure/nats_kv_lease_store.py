"""NATS KV lease store - JetStream Key-Value backend for lease records.

Writes are plain puts. The bucket's optimistic-concurrency primitives are
deliberately not used so that every backend exposes the same non-atomic
contract.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
from collections import deque

from nats.js.api import KeyValueConfig
from nats.js.errors import BucketNotFoundError, KeyNotFoundError
from nats.js.kv import KeyValue

from ..domain.exceptions import StoreUnavailableError
from ..domain.models import LeaseRecord
from ..ports.change_listener import ChangeCallback, ChangeListenerPort, Subscription
from ..ports.lease_store import LeaseStorePort
from ..ports.logger import LoggerPort
from ..ports.metrics import MetricsPort
from .config import KVStoreConfig, LogContext
from .in_memory_metrics import InMemoryMetrics
from .nats_connection import NATSConnection
from .serialization import decode_lease_record, encode_lease_record

_INVALID_KEY_CHARS = {".", "*", ">", "/", "\\", ":", " ", "\t"}
_OWN_REVISION_WINDOW = 256


class _WatchSubscription(Subscription):
    def __init__(self, task: asyncio.Task, watcher) -> None:
        self._task = task
        self._watcher = watcher
        self._active = True

    async def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        with contextlib.suppress(Exception):
            await self._watcher.stop()


class NATSKVLeaseStore(LeaseStorePort, ChangeListenerPort):
    """Lease store and change listener over a NATS JetStream KV bucket.

    One instance is one execution context's view: watch events carrying a
    revision this instance wrote itself are not reported. The server can
    deliver a watch entry before the put that created it has been acked, so
    the watch holds each entry until this instance has no write in flight.
    """

    def __init__(
        self,
        connection: NATSConnection,
        config: KVStoreConfig | None = None,
        metrics: MetricsPort | None = None,
        logger: LoggerPort | None = None,
        watch_poll_timeout: float = 5.0,
    ):
        self._connection = connection
        self._config = config or KVStoreConfig()
        self._metrics = metrics or InMemoryMetrics()
        self._logger = logger or self._create_default_logger()
        self._watch_poll_timeout = watch_poll_timeout
        self._kv: KeyValue | None = None
        self._own_revisions: deque[int] = deque(maxlen=_OWN_REVISION_WINDOW)
        self._writes_in_flight = 0
        self._writes_settled = asyncio.Event()
        self._writes_settled.set()

    def _create_default_logger(self) -> LoggerPort:
        from .simple_logger import SimpleLogger

        return SimpleLogger("leasekeeper.nats_kv_store")

    def _validate_key(self, key: str) -> None:
        for char in _INVALID_KEY_CHARS:
            if char in key:
                raise ValueError(
                    f"Key '{key}' contains invalid character '{char}'. "
                    f"NATS KV keys cannot contain: {', '.join(sorted(_INVALID_KEY_CHARS))}"
                )

    @property
    def bucket(self) -> str:
        return self._config.bucket

    async def connect(self) -> None:
        """Bind to the bucket, creating it when allowed by the config."""
        js = self._connection.jetstream
        log_ctx = LogContext(operation="connect_kv", component="NATSKVLeaseStore")
        try:
            try:
                self._kv = await js.key_value(self._config.bucket)
            except BucketNotFoundError:
                if not self._config.create_bucket:
                    raise
                self._kv = await js.create_key_value(
                    config=KeyValueConfig(
                        bucket=self._config.bucket,
                        history=self._config.history_size,
                        max_value_size=self._config.max_value_size,
                    )
                )
                self._logger.info(f"Created KV bucket {self._config.bucket}", **log_ctx.to_dict())
        except Exception as e:
            self._metrics.increment("kv.connect.error")
            self._logger.error(
                f"Failed to bind KV bucket '{self._config.bucket}': {e}",
                **log_ctx.with_error(e).to_dict(),
            )
            raise StoreUnavailableError("connect", reason=str(e)) from e

        self._logger.info(
            f"Connected to NATS KV bucket: {self._config.bucket}", **log_ctx.to_dict()
        )

    async def is_connected(self) -> bool:
        return self._kv is not None and await self._connection.is_connected()

    def _bucket(self, operation: str, key: str) -> KeyValue:
        if self._kv is None:
            raise StoreUnavailableError(operation, key=key, reason="KV bucket not bound.")
        self._validate_key(key)
        return self._kv

    async def get(self, key: str) -> LeaseRecord | None:
        kv = self._bucket("get", key)
        with self._metrics.timer("kv.get"):
            try:
                entry = await kv.get(key)
            except KeyNotFoundError:
                self._metrics.increment("kv.get.miss")
                return None
            except Exception as e:
                self._metrics.increment("kv.get.error")
                raise StoreUnavailableError("get", key=key, reason=str(e)) from e

        record = decode_lease_record(entry.value)
        if record is None and entry.value:
            self._logger.debug(f"Ignoring unparsable lease record under {key}", key=key)
        return record

    async def set(self, key: str, record: LeaseRecord) -> None:
        kv = self._bucket("set", key)
        self._writes_in_flight += 1
        self._writes_settled.clear()
        try:
            with self._metrics.timer("kv.put"):
                try:
                    revision = await kv.put(key, encode_lease_record(record))
                except Exception as e:
                    self._metrics.increment("kv.put.error")
                    raise StoreUnavailableError("set", key=key, reason=str(e)) from e
            self._own_revisions.append(revision)
        finally:
            self._writes_in_flight -= 1
            if self._writes_in_flight == 0:
                self._writes_settled.set()
        self._metrics.increment("kv.put.success")

    async def delete(self, key: str) -> None:
        kv = self._bucket("delete", key)
        try:
            await kv.delete(key)
        except KeyNotFoundError:
            return
        except Exception as e:
            self._metrics.increment("kv.delete.error")
            raise StoreUnavailableError("delete", key=key, reason=str(e)) from e
        self._metrics.increment("kv.delete.success")

    async def subscribe(self, key: str, callback: ChangeCallback) -> Subscription:
        kv = self._bucket("watch", key)
        try:
            watcher = await kv.watch(key, include_history=False)
        except Exception as e:
            raise StoreUnavailableError("watch", key=key, reason=str(e)) from e
        task = asyncio.create_task(self._watch_loop(watcher, key, callback))
        return _WatchSubscription(task, watcher)

    async def _watch_loop(self, watcher, key: str, callback: ChangeCallback) -> None:
        # Entries before the first None marker are the current state, not changes
        caught_up = False
        while True:
            try:
                update = await watcher.updates(timeout=self._watch_poll_timeout)
            except asyncio.TimeoutError:
                continue
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._logger.error(f"KV watch on {key} stopped: {e}", key=key)
                return

            if update is None:
                caught_up = True
                continue
            if not caught_up:
                continue
            await self._writes_settled.wait()
            if update.revision in self._own_revisions:
                continue

            try:
                result = callback(key)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self._logger.exception(f"Change callback failed for {key}: {e}", exc_info=e)
