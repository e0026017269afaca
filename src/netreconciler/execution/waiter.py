"""Polling of remote resource status until convergence."""

from __future__ import annotations

from typing import Callable

import structlog

from netreconciler.clients.base import StatusClient
from netreconciler.core.deadline import Deadline
from netreconciler.core.errors import DeadlineExceededError, NotFoundError, TransientAPIError

logger = structlog.get_logger()

StatusPredicate = Callable[[str], bool]


def status_is(*values: str) -> StatusPredicate:
    """Predicate matching any of ``values``, case-insensitively."""
    wanted = {value.upper() for value in values}

    def predicate(status: str) -> bool:
        return str(status).upper() in wanted

    return predicate


class StatusWaiter:
    """Blocks until a resource's status satisfies a predicate.

    A resource that has disappeared counts as converged: ``wait_until``
    returns ``None`` instead of a status.
    """

    def __init__(self, client: StatusClient, poll_interval: float = 5.0) -> None:
        self._client = client
        self._poll_interval = poll_interval

    async def wait_until(
        self,
        resource_id: str,
        predicate: StatusPredicate,
        deadline: Deadline,
    ) -> str | None:
        polls = 0
        last_status: str | None = None
        while True:
            deadline.check("wait_for_status")
            polls += 1
            try:
                status = await self._client.get_status(resource_id, deadline=deadline)
            except NotFoundError:
                logger.info("status_resource_gone", resource_id=resource_id, polls=polls)
                return None
            except TransientAPIError as exc:
                logger.warning("status_poll_failed", resource_id=resource_id, error=str(exc))
            else:
                last_status = status
                logger.debug("status_poll", resource_id=resource_id, status=status, polls=polls)
                if predicate(status):
                    logger.info("status_converged", resource_id=resource_id, status=status, polls=polls)
                    return status

            remaining = deadline.remaining()
            if remaining is not None and remaining <= 0:
                raise DeadlineExceededError(
                    f"Timed out waiting for {resource_id}",
                    {"resource_id": resource_id, "last_status": last_status, "polls": polls},
                )
            await deadline.sleep(self._poll_interval, clamp=True)
