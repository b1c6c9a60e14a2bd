"""Tests for the in-memory lease medium and its per-participant views."""

import asyncio

import pytest

from leasekeeper.domain.models import LeaseRecord
from leasekeeper.infrastructure.in_memory_lease_store import InMemoryLeaseMedium

KEY = "single-owner-app"


async def _flush() -> None:
    # Notifications are delivered with call_soon
    await asyncio.sleep(0)
    await asyncio.sleep(0)


class TestInMemoryLeaseStore:
    """Test the get/set/delete contract."""

    @pytest.mark.asyncio
    async def test_views_share_the_medium(self, medium):
        a, b = medium.view("a"), medium.view("b")
        record = LeaseRecord(owner_id="A", acquired_at=10)

        await a.set(KEY, record)

        assert await b.get(KEY) == record
        assert medium.get_raw(KEY) == b'{"ownerId":"A","acquiredAt":10}'

    @pytest.mark.asyncio
    async def test_get_missing_key(self, medium):
        assert await medium.view().get(KEY) is None

    @pytest.mark.asyncio
    async def test_delete(self, medium):
        store = medium.view()
        await store.set(KEY, LeaseRecord(owner_id="A", acquired_at=0))

        await store.delete(KEY)

        assert await store.get(KEY) is None
        assert KEY not in medium.keys()

    @pytest.mark.asyncio
    async def test_malformed_raw_value_reads_as_absent(self, medium):
        medium.put_raw(KEY, b"{not json")

        assert await medium.view().get(KEY) is None

    @pytest.mark.asyncio
    async def test_last_writer_wins(self, medium):
        a, b = medium.view("a"), medium.view("b")

        await a.set(KEY, LeaseRecord(owner_id="A", acquired_at=1))
        await b.set(KEY, LeaseRecord(owner_id="B", acquired_at=1))

        assert (await a.get(KEY)).owner_id == "B"
        assert medium.writes == 2

    def test_default_view_gets_unique_origin(self):
        store = InMemoryLeaseMedium().view()

        assert store.origin
        assert store.origin != InMemoryLeaseMedium().view().origin


class TestInMemoryChangeListener:
    """Test foreign-write notifications."""

    @pytest.mark.asyncio
    async def test_foreign_write_is_reported(self, medium):
        a, b = medium.view("a"), medium.view("b")
        seen = []
        await a.subscribe(KEY, seen.append)

        await b.set(KEY, LeaseRecord(owner_id="B", acquired_at=0))
        await _flush()

        assert seen == [KEY]

    @pytest.mark.asyncio
    async def test_own_write_is_not_reported(self, medium):
        a = medium.view("a")
        seen = []
        await a.subscribe(KEY, seen.append)

        await a.set(KEY, LeaseRecord(owner_id="A", acquired_at=0))
        await a.delete(KEY)
        await _flush()

        assert seen == []

    @pytest.mark.asyncio
    async def test_foreign_delete_is_reported(self, medium):
        a, b = medium.view("a"), medium.view("b")
        await b.set(KEY, LeaseRecord(owner_id="B", acquired_at=0))
        seen = []
        await a.subscribe(KEY, seen.append)

        await b.delete(KEY)
        await _flush()

        assert seen == [KEY]

    @pytest.mark.asyncio
    async def test_deleting_missing_key_is_silent(self, medium):
        a, b = medium.view("a"), medium.view("b")
        seen = []
        await a.subscribe(KEY, seen.append)

        await b.delete(KEY)
        await _flush()

        assert seen == []

    @pytest.mark.asyncio
    async def test_other_keys_are_not_reported(self, medium):
        a, b = medium.view("a"), medium.view("b")
        seen = []
        await a.subscribe(KEY, seen.append)

        await b.set("single-owner-other", LeaseRecord(owner_id="B", acquired_at=0))
        await _flush()

        assert seen == []

    @pytest.mark.asyncio
    async def test_unsubscribe_stops_delivery(self, medium):
        a, b = medium.view("a"), medium.view("b")
        seen = []
        subscription = await a.subscribe(KEY, seen.append)

        await subscription.unsubscribe()
        await b.set(KEY, LeaseRecord(owner_id="B", acquired_at=0))
        await _flush()

        assert seen == []
        assert medium.listener_count == 0

    @pytest.mark.asyncio
    async def test_unsubscribe_drops_already_queued_delivery(self, medium):
        a, b = medium.view("a"), medium.view("b")
        seen = []
        subscription = await a.subscribe(KEY, seen.append)

        await b.set(KEY, LeaseRecord(owner_id="B", acquired_at=0))
        await subscription.unsubscribe()
        await _flush()

        assert seen == []

    @pytest.mark.asyncio
    async def test_injected_raw_write_reaches_everyone(self, medium):
        a = medium.view("a")
        seen = []
        await a.subscribe(KEY, seen.append)

        medium.put_raw(KEY, b'{"ownerId":"X","acquiredAt":0}')
        await _flush()

        assert seen == [KEY]

    @pytest.mark.asyncio
    async def test_async_and_failing_callbacks(self, medium, mock_logger):
        a, b, c = medium.view("a"), medium.view("b"), medium.view("c")
        seen = []

        async def record(key):
            seen.append(key)

        def explode(key):
            raise RuntimeError("listener bug")

        await a.subscribe(KEY, explode)
        await c.subscribe(KEY, record)

        await b.set(KEY, LeaseRecord(owner_id="B", acquired_at=0))
        await _flush()

        assert seen == [KEY]
        mock_logger.exception.assert_called_once()
