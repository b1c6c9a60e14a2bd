"""Tests for the asyncio scheduler."""

import asyncio

import pytest

from leasekeeper.infrastructure.asyncio_scheduler import AsyncioScheduler


@pytest.fixture
def scheduler(mock_logger):
    return AsyncioScheduler(logger=mock_logger)


@pytest.mark.asyncio
async def test_call_later_runs_once(scheduler):
    calls = []

    handle = scheduler.call_later(0.01, lambda: calls.append("fired"))
    await asyncio.sleep(0.05)

    assert calls == ["fired"]
    assert handle.done
    assert not handle.cancelled


@pytest.mark.asyncio
async def test_call_later_cancelled_before_firing(scheduler):
    calls = []

    handle = scheduler.call_later(0.05, lambda: calls.append("fired"))
    handle.cancel()
    await handle.wait_cancelled()
    await asyncio.sleep(0.08)

    assert calls == []
    assert handle.cancelled


@pytest.mark.asyncio
async def test_call_every_repeats_until_cancelled(scheduler):
    calls = []

    async def tick():
        calls.append("tick")

    handle = scheduler.call_every(0.01, tick)
    await asyncio.sleep(0.055)
    handle.cancel()
    await handle.wait_cancelled()
    count = len(calls)
    await asyncio.sleep(0.03)

    assert count >= 2
    assert len(calls) == count


@pytest.mark.asyncio
async def test_call_every_waits_one_interval_first(scheduler):
    calls = []

    handle = scheduler.call_every(0.05, lambda: calls.append("tick"))
    await asyncio.sleep(0.01)
    handle.cancel()

    assert calls == []


@pytest.mark.asyncio
async def test_periodic_timer_survives_callback_errors(scheduler, mock_logger):
    calls = []

    def flaky():
        calls.append("tick")
        raise RuntimeError("boom")

    handle = scheduler.call_every(0.01, flaky)
    await asyncio.sleep(0.045)
    handle.cancel()
    await handle.wait_cancelled()

    assert len(calls) >= 2
    assert mock_logger.exception.call_count == len(calls)


@pytest.mark.asyncio
async def test_invalid_durations_rejected(scheduler):
    with pytest.raises(ValueError):
        scheduler.call_every(0, lambda: None)
    with pytest.raises(ValueError):
        scheduler.call_later(-1, lambda: None)


@pytest.mark.asyncio
async def test_cancel_is_idempotent(scheduler):
    handle = scheduler.call_later(1, lambda: None)

    handle.cancel()
    handle.cancel()
    await handle.wait_cancelled()

    assert handle.cancelled
    assert handle.done


@pytest.mark.asyncio
async def test_cancel_from_own_callback_lets_it_finish(scheduler):
    steps = []
    handles = {}

    async def tick():
        handles["tick"].cancel()
        await asyncio.sleep(0)
        steps.append("finished")

    handles["tick"] = scheduler.call_every(0.01, tick)
    await asyncio.sleep(0.05)

    assert steps == ["finished"]
    assert handles["tick"].cancelled
    assert handles["tick"].done


@pytest.mark.asyncio
async def test_cancel_while_callback_runs_does_not_interrupt_it(scheduler):
    steps = []
    started = asyncio.Event()
    release = asyncio.Event()

    async def slow():
        started.set()
        await release.wait()
        steps.append("finished")

    handle = scheduler.call_later(0, slow)
    await started.wait()
    handle.cancel()
    release.set()
    await handle.wait_cancelled()

    assert steps == ["finished"]
    assert handle.cancelled
