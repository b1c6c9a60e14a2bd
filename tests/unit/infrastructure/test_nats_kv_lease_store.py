"""Unit tests for NATSKVLeaseStore."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, Mock

import pytest
import pytest_asyncio
from nats.js.errors import BucketNotFoundError, KeyNotFoundError

from leasekeeper.domain.exceptions import StoreUnavailableError
from leasekeeper.domain.models import LeaseRecord
from leasekeeper.infrastructure.config import KVStoreConfig
from leasekeeper.infrastructure.in_memory_metrics import InMemoryMetrics
from leasekeeper.infrastructure.nats_connection import NATSConnection
from leasekeeper.infrastructure.nats_kv_lease_store import NATSKVLeaseStore

KEY = "single-owner-app"


class FakeWatcher:
    """Replays a fixed sequence of watch updates, then idles."""

    def __init__(self, updates):
        self._updates = list(updates)
        self.stopped = False

    async def updates(self, timeout=None):
        if self._updates:
            return self._updates.pop(0)
        await asyncio.sleep(3600)

    async def stop(self):
        self.stopped = True


def _entry(revision, value=b'{"ownerId":"B","acquiredAt":1}'):
    return Mock(key=KEY, value=value, revision=revision)


@pytest.fixture
def kv():
    kv = MagicMock()
    kv.get = AsyncMock()
    kv.put = AsyncMock(return_value=1)
    kv.delete = AsyncMock()
    kv.watch = AsyncMock()
    return kv


@pytest.fixture
def js(kv):
    js = MagicMock()
    js.key_value = AsyncMock(return_value=kv)
    js.create_key_value = AsyncMock(return_value=kv)
    return js


@pytest.fixture
def connection(js):
    connection = Mock(spec=NATSConnection)
    connection.jetstream = js
    connection.is_connected = AsyncMock(return_value=True)
    return connection


@pytest.fixture
def metrics():
    return InMemoryMetrics()


@pytest_asyncio.fixture
async def store(connection, metrics, mock_logger):
    store = NATSKVLeaseStore(connection, metrics=metrics, logger=mock_logger)
    await store.connect()
    return store


class TestNATSKVLeaseStoreConnect:
    """Test bucket binding."""

    @pytest.mark.asyncio
    async def test_binds_existing_bucket(self, connection, js, mock_logger):
        store = NATSKVLeaseStore(connection, logger=mock_logger)

        await store.connect()

        js.key_value.assert_awaited_once_with("leasekeeper")
        js.create_key_value.assert_not_called()
        assert await store.is_connected()

    @pytest.mark.asyncio
    async def test_creates_missing_bucket(self, connection, js, mock_logger):
        js.key_value.side_effect = BucketNotFoundError()
        store = NATSKVLeaseStore(
            connection, KVStoreConfig(bucket="leases", history_size=3), logger=mock_logger
        )

        await store.connect()

        kv_config = js.create_key_value.call_args.kwargs["config"]
        assert kv_config.bucket == "leases"
        assert kv_config.history == 3

    @pytest.mark.asyncio
    async def test_missing_bucket_without_create(self, connection, js, mock_logger):
        js.key_value.side_effect = BucketNotFoundError()
        store = NATSKVLeaseStore(
            connection, KVStoreConfig(create_bucket=False), logger=mock_logger
        )

        with pytest.raises(StoreUnavailableError):
            await store.connect()
        js.create_key_value.assert_not_called()

    @pytest.mark.asyncio
    async def test_operations_before_connect(self, connection, mock_logger):
        store = NATSKVLeaseStore(connection, logger=mock_logger)

        with pytest.raises(StoreUnavailableError):
            await store.get(KEY)
        assert not await store.is_connected()


class TestNATSKVLeaseStoreOperations:
    """Test get/set/delete."""

    @pytest.mark.asyncio
    async def test_get_decodes_record(self, store, kv):
        kv.get.return_value = _entry(3, b'{"ownerId":"A","acquiredAt":1000}')

        assert await store.get(KEY) == LeaseRecord(owner_id="A", acquired_at=1000)

    @pytest.mark.asyncio
    async def test_get_missing_key(self, store, kv, metrics):
        kv.get.side_effect = KeyNotFoundError()

        assert await store.get(KEY) is None
        assert metrics.counter("kv.get.miss") == 1

    @pytest.mark.asyncio
    async def test_get_malformed_value_reads_as_absent(self, store, kv):
        kv.get.return_value = _entry(3, b"garbage")

        assert await store.get(KEY) is None

    @pytest.mark.asyncio
    async def test_get_failure_raises_store_unavailable(self, store, kv, metrics):
        kv.get.side_effect = ConnectionError("connection lost")

        with pytest.raises(StoreUnavailableError) as exc_info:
            await store.get(KEY)

        assert exc_info.value.operation == "get"
        assert metrics.counter("kv.get.error") == 1

    @pytest.mark.asyncio
    async def test_set_writes_wire_shape(self, store, kv):
        await store.set(KEY, LeaseRecord(owner_id="A", acquired_at=5))

        kv.put.assert_awaited_once_with(KEY, b'{"ownerId":"A","acquiredAt":5}')

    @pytest.mark.asyncio
    async def test_set_failure(self, store, kv):
        kv.put.side_effect = TimeoutError()

        with pytest.raises(StoreUnavailableError):
            await store.set(KEY, LeaseRecord(owner_id="A", acquired_at=5))

    @pytest.mark.asyncio
    async def test_delete_missing_key_is_noop(self, store, kv):
        kv.delete.side_effect = KeyNotFoundError()

        await store.delete(KEY)

    @pytest.mark.asyncio
    async def test_delete_failure(self, store, kv):
        kv.delete.side_effect = ConnectionError("connection lost")

        with pytest.raises(StoreUnavailableError):
            await store.delete(KEY)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("key", ["a.b", "a*", "a>", "a b", "a/b", "a:b"])
    async def test_invalid_keys_rejected(self, store, key):
        with pytest.raises(ValueError, match="invalid character"):
            await store.get(key)


class TestNATSKVLeaseStoreWatch:
    """Test change notifications through KV watch."""

    @pytest.mark.asyncio
    async def test_reports_only_foreign_changes_after_initial_state(self, store, kv):
        kv.put.return_value = 7
        await store.set(KEY, LeaseRecord(owner_id="A", acquired_at=1))
        watcher = FakeWatcher([_entry(5), None, _entry(7), _entry(8)])
        kv.watch.return_value = watcher
        seen = []

        subscription = await store.subscribe(KEY, seen.append)
        for _ in range(5):
            await asyncio.sleep(0)

        assert seen == [KEY]
        kv.watch.assert_awaited_once_with(KEY, include_history=False)

        await subscription.unsubscribe()
        assert watcher.stopped

    @pytest.mark.asyncio
    async def test_own_write_seen_before_its_ack_is_not_reported(self, store, kv):
        ack = asyncio.Event()

        async def slow_put(key, value):
            await ack.wait()
            return 9

        kv.put.side_effect = slow_put
        kv.watch.return_value = FakeWatcher([None, _entry(9), _entry(10)])
        seen = []

        writing = asyncio.create_task(store.set(KEY, LeaseRecord(owner_id="A", acquired_at=1)))
        await asyncio.sleep(0)
        subscription = await store.subscribe(KEY, seen.append)
        for _ in range(5):
            await asyncio.sleep(0)

        assert seen == []

        ack.set()
        await writing
        for _ in range(5):
            await asyncio.sleep(0)

        assert seen == [KEY]
        await subscription.unsubscribe()

    @pytest.mark.asyncio
    async def test_callback_errors_do_not_stop_watch(self, store, kv, mock_logger):
        calls = []

        def flaky(key):
            calls.append(key)
            raise RuntimeError("listener bug")

        kv.watch.return_value = FakeWatcher([None, _entry(2), _entry(3)])

        subscription = await store.subscribe(KEY, flaky)
        for _ in range(5):
            await asyncio.sleep(0)
        await subscription.unsubscribe()

        assert calls == [KEY, KEY]
        assert mock_logger.exception.call_count == 2

    @pytest.mark.asyncio
    async def test_watch_failure_raises(self, store, kv):
        kv.watch.side_effect = ConnectionError("no jetstream")

        with pytest.raises(StoreUnavailableError):
            await store.subscribe(KEY, lambda key: None)
