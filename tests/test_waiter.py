import asyncio
import time

import pytest
from fakes import FakeCloud
from netreconciler.core.deadline import Deadline
from netreconciler.core.errors import (
    DeadlineExceededError,
    OperationCancelledError,
    TransientAPIError,
)
from netreconciler.execution.waiter import StatusWaiter, status_is


@pytest.mark.asyncio
async def test_times_out_at_deadline_not_earlier():
    cloud = FakeCloud()
    cloud.statuses["srv-1"] = ["BUILD"]
    waiter = StatusWaiter(cloud, poll_interval=0.05)
    started = time.monotonic()
    deadline = Deadline(0.2)

    with pytest.raises(DeadlineExceededError) as exc_info:
        await waiter.wait_until("srv-1", status_is("ACTIVE"), deadline)

    elapsed = time.monotonic() - started
    assert elapsed >= 0.2
    assert elapsed < 1.0
    assert isinstance(exc_info.value, TimeoutError)
    assert len(cloud.calls_to("get_status")) >= 4


@pytest.mark.asyncio
async def test_returns_status_once_predicate_holds():
    cloud = FakeCloud()
    cloud.statuses["srv-1"] = ["BUILD", "BUILD", "ACTIVE"]
    waiter = StatusWaiter(cloud, poll_interval=0.01)

    status = await waiter.wait_until("srv-1", status_is("active"), Deadline(5))

    assert status == "ACTIVE"
    assert len(cloud.calls_to("get_status")) == 3


@pytest.mark.asyncio
async def test_first_poll_is_immediate():
    cloud = FakeCloud()
    waiter = StatusWaiter(cloud, poll_interval=60)
    started = time.monotonic()

    assert await waiter.wait_until("srv-1", status_is("ACTIVE"), Deadline(5)) == "ACTIVE"
    assert time.monotonic() - started < 1.0


@pytest.mark.asyncio
async def test_missing_resource_counts_as_converged():
    cloud = FakeCloud()
    cloud.statuses["srv-1"] = []
    waiter = StatusWaiter(cloud, poll_interval=0.01)

    result = await waiter.wait_until("srv-1", lambda status: False, Deadline(5))

    assert result is None


@pytest.mark.asyncio
async def test_cancellation_interrupts_sleep():
    cloud = FakeCloud()
    cloud.statuses["srv-1"] = ["BUILD"]
    waiter = StatusWaiter(cloud, poll_interval=30)
    deadline = Deadline(60)
    asyncio.get_running_loop().call_later(0.05, deadline.cancel)
    started = time.monotonic()

    with pytest.raises(OperationCancelledError):
        await waiter.wait_until("srv-1", status_is("ACTIVE"), deadline)

    assert time.monotonic() - started < 5


@pytest.mark.asyncio
async def test_cancellation_is_distinct_from_timeout():
    deadline = Deadline(60)
    deadline.cancel()

    with pytest.raises(OperationCancelledError) as exc_info:
        await StatusWaiter(FakeCloud()).wait_until("srv-1", status_is("ACTIVE"), deadline)

    assert not isinstance(exc_info.value, TimeoutError)


@pytest.mark.asyncio
async def test_transient_poll_failure_keeps_polling():
    cloud = FakeCloud()
    cloud.fail("get_status", TransientAPIError("502 Bad Gateway"))
    waiter = StatusWaiter(cloud, poll_interval=0.01)

    assert await waiter.wait_until("srv-1", status_is("ACTIVE"), Deadline(5)) == "ACTIVE"
    assert len(cloud.calls_to("get_status")) == 2


def test_status_is_matches_any_value():
    predicate = status_is("ACTIVE", "shutoff")

    assert predicate("active")
    assert predicate("SHUTOFF")
    assert not predicate("ERROR")
