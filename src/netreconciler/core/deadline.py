"""Cancellable deadline threaded through a single reconciliation call."""

from __future__ import annotations

import asyncio
import time
from typing import Callable

from netreconciler.core.errors import DeadlineExceededError, OperationCancelledError


class Deadline:
    """A monotonic deadline paired with an external cancellation token.

    A ``Deadline`` with no timeout never expires but can still be cancelled.
    Children created with :meth:`child` share the parent's cancellation event
    and never outlive the parent.
    """

    def __init__(
        self,
        timeout: float | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        _event: asyncio.Event | None = None,
        _expires_at: float | None = None,
    ) -> None:
        self._clock = clock
        self._event = _event if _event is not None else asyncio.Event()
        if _expires_at is not None:
            self._expires_at: float | None = _expires_at
        elif timeout is not None:
            self._expires_at = clock() + max(timeout, 0.0)
        else:
            self._expires_at = None

    @classmethod
    def never(cls) -> "Deadline":
        return cls(None)

    def child(self, timeout: float | None) -> "Deadline":
        """Derive a tighter deadline sharing this one's cancellation."""
        expires_at = self._expires_at
        if timeout is not None:
            candidate = self._clock() + max(timeout, 0.0)
            expires_at = candidate if expires_at is None else min(expires_at, candidate)
        return Deadline(clock=self._clock, _event=self._event, _expires_at=expires_at)

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def expired(self) -> bool:
        return self._expires_at is not None and self._clock() >= self._expires_at

    def remaining(self) -> float | None:
        """Seconds left before expiry, or None for an unbounded deadline."""
        if self._expires_at is None:
            return None
        return max(self._expires_at - self._clock(), 0.0)

    def check(self, operation: str | None = None) -> None:
        """Raise if the call was cancelled or its deadline has elapsed."""
        details = {"operation": operation} if operation else None
        if self.cancelled:
            raise OperationCancelledError("Reconciliation cancelled", details)
        if self.expired:
            raise DeadlineExceededError("Deadline exceeded", details)

    async def sleep(self, seconds: float, *, clamp: bool = False) -> None:
        """Sleep unless cancelled, never past the deadline.

        Without ``clamp`` a sleep that would overrun the deadline raises
        DeadlineExceededError before sleeping. With ``clamp`` it is shortened
        to the time remaining.
        """
        self.check()
        remaining = self.remaining()
        if remaining is not None and seconds > remaining:
            if not clamp:
                raise DeadlineExceededError(
                    "Deadline would elapse during backoff",
                    {"backoff_seconds": seconds, "remaining_seconds": round(remaining, 3)},
                )
            seconds = remaining
        if seconds <= 0:
            return
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        raise OperationCancelledError("Reconciliation cancelled during sleep")
