"""Structured logging for reconciliation runs.

Events are snake_case and rendered as one JSON object per line. Fields bound
with :func:`log_scope` are merged into every event emitted inside the scope,
including those from the executor and the HTTP layer.
"""

import logging
from contextlib import contextmanager
from typing import Any, Iterator

import structlog

from netreconciler.core.errors import ConfigurationError


def configure_logging(level: int | str = logging.INFO) -> None:
    """Route structlog JSON events through the standard library root logger."""

    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ConfigurationError(f"Unknown log level '{level}'", {"log_level": level})
        level = resolved

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=level, format="%(message)s")


@contextmanager
def log_scope(**fields: Any) -> Iterator[structlog.stdlib.BoundLogger]:
    """Tag every event emitted within the block with ``fields``.

    Tasks spawned inside the block inherit the fields.
    """
    with structlog.contextvars.bound_contextvars(**fields):
        yield structlog.get_logger()
