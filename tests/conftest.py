"""Root test configuration."""

import logging

import pytest
import structlog

from netreconciler.config.settings import ReconcilerSettings


def pytest_configure(config):
    """Configure structlog for tests to suppress debug/info output."""
    logging.basicConfig(level=logging.WARNING, force=True)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


@pytest.fixture
def fast_settings():
    """Settings with zero backoff and a short poll interval."""
    return ReconcilerSettings(
        _env_file=None,
        poll_interval=0.01,
        create_backoff=0.0,
        status_timeout=5.0,
    )
