import time

import pytest
from netreconciler.core.deadline import Deadline
from netreconciler.core.errors import DeadlineExceededError, OperationCancelledError


class FakeClock:
    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_unbounded_deadline_never_expires():
    deadline = Deadline.never()

    assert deadline.remaining() is None
    assert not deadline.expired
    deadline.check()


def test_remaining_and_expiry_follow_clock():
    clock = FakeClock()
    deadline = Deadline(10, clock=clock)

    assert deadline.remaining() == 10
    clock.now += 4
    assert deadline.remaining() == 6
    clock.now += 6
    assert deadline.expired
    with pytest.raises(DeadlineExceededError):
        deadline.check("create_attachment")


def test_child_never_outlives_parent():
    clock = FakeClock()
    parent = Deadline(5, clock=clock)

    assert parent.child(60).remaining() == 5
    assert parent.child(2).remaining() == 2
    assert Deadline.never().child(None).remaining() is None


def test_child_shares_cancellation():
    parent = Deadline(30)
    child = parent.child(10)

    parent.cancel()

    assert child.cancelled
    with pytest.raises(OperationCancelledError):
        child.check()


def test_cancellation_is_reported_before_expiry():
    clock = FakeClock()
    deadline = Deadline(1, clock=clock)
    clock.now += 5
    deadline.cancel()

    with pytest.raises(OperationCancelledError):
        deadline.check()


@pytest.mark.asyncio
async def test_sleep_that_would_overrun_raises_before_sleeping():
    deadline = Deadline(0.5)
    started = time.monotonic()

    with pytest.raises(DeadlineExceededError):
        await deadline.sleep(10)

    assert time.monotonic() - started < 0.5


@pytest.mark.asyncio
async def test_clamped_sleep_ends_at_deadline():
    deadline = Deadline(0.05)

    await deadline.sleep(10, clamp=True)

    assert deadline.remaining() == pytest.approx(0, abs=0.02)


@pytest.mark.asyncio
async def test_sleep_on_cancelled_deadline_raises():
    deadline = Deadline(5)
    deadline.cancel()

    with pytest.raises(OperationCancelledError):
        await deadline.sleep(1)
