"""
Unified error handling for netreconciler.

Every failure the engine can surface derives from ReconcileError and carries
an exit code, so the CLI and library callers share one taxonomy.

Exit Codes:
- 0: Success
- 1: Warning (plan has changes, or advisory)
- 10: Configuration error
- 11: Remote API error (transient escalated, fatal, conflict)
- 12: Validation error (immutable-field change, malformed input)
- 13: Planning error (unsatisfiable constraint, no plan generated)
- 14: Deadline exceeded
- 130: Cancelled
- 127: Unknown/internal error
"""

from __future__ import annotations

import functools
import sys
import traceback
from enum import IntEnum
from typing import Any, Callable, TypeVar

import structlog

logger = structlog.get_logger()


class ExitCode(IntEnum):
    """Standardized exit codes for CLI commands."""

    SUCCESS = 0
    WARNING = 1
    CONFIG_ERROR = 10
    API_ERROR = 11
    VALIDATION_ERROR = 12
    PLANNING_ERROR = 13
    TIMEOUT = 14
    CANCELLED = 130
    UNKNOWN_ERROR = 127


class ReconcileError(Exception):
    """Base exception for netreconciler errors with exit code support."""

    exit_code: ExitCode = ExitCode.UNKNOWN_ERROR
    show_traceback: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(ReconcileError):
    """Raised for configuration-related errors."""

    exit_code = ExitCode.CONFIG_ERROR


class ValidationError(ReconcileError):
    """Caller supplied invalid input or an immutable-field change."""

    exit_code = ExitCode.VALIDATION_ERROR


class PlanningError(ReconcileError):
    """The diff yields an unsatisfiable constraint; no plan is generated."""

    exit_code = ExitCode.PLANNING_ERROR


class APIError(ReconcileError):
    """A remote control-plane call failed.

    ``operation`` names the failed operation, ``key`` the entity it targeted,
    ``remote_error`` the raw text returned by the platform and ``remote_id``
    the conflicting remote identifier when one is known.
    """

    exit_code = ExitCode.API_ERROR

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        key: Any = None,
        remote_error: str | None = None,
        remote_id: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        merged = dict(details or {})
        if operation is not None:
            merged.setdefault("operation", operation)
        if key is not None:
            merged.setdefault("key", key)
        if remote_error is not None:
            merged.setdefault("remote_error", remote_error)
        if remote_id is not None:
            merged.setdefault("remote_id", remote_id)
        super().__init__(message, merged)
        self.operation = operation
        self.key = key
        self.remote_error = remote_error if remote_error is not None else message
        self.remote_id = remote_id
        self.status_code = status_code

    def with_context(self, *, operation: str, key: Any) -> "APIError":
        """Return the same error annotated with the plan step that raised it."""
        self.operation = self.operation or operation
        self.key = self.key if self.key is not None else key
        self.details.setdefault("operation", self.operation)
        self.details.setdefault("key", self.key)
        self.details.setdefault("remote_error", self.remote_error)
        return self


class TransientAPIError(APIError):
    """Remote failure that is likely to succeed on retry."""


class NotFoundError(APIError):
    """The addressed remote resource does not exist."""


class FatalAPIError(APIError):
    """Remote failure that will not succeed on retry; aborts the plan."""


class ConflictError(FatalAPIError):
    """Address already bound elsewhere, not bound when expected, or a
    required resource is absent."""


class RetriesExhaustedError(FatalAPIError):
    """A transient failure persisted through every retry and fallback."""


class DeadlineExceededError(ReconcileError, TimeoutError):
    """The call's deadline elapsed before the work converged."""

    exit_code = ExitCode.TIMEOUT


class OperationCancelledError(ReconcileError):
    """The caller cancelled the reconciliation."""

    exit_code = ExitCode.CANCELLED


# Type variable for decorated functions
F = TypeVar("F", bound=Callable[..., int])


def main_with_error_handling(
    *,
    show_traceback: bool = False,
    log_errors: bool = True,
) -> Callable[[F], F]:
    """
    Decorator for CLI main functions that provides unified error handling.

    Args:
        show_traceback: If True, show full traceback for unexpected errors
        log_errors: If True, log errors to structlog

    Exit codes:
        - ReconcileError subclasses: Uses the error's exit_code
        - KeyboardInterrupt: Returns 130 (standard for SIGINT)
        - Other exceptions: Returns 127 (unknown error)
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> int:
            try:
                return func(*args, **kwargs)
            except ReconcileError as e:
                if log_errors:
                    logger.error(
                        "command_error",
                        error_type=type(e).__name__,
                        message=e.message,
                        exit_code=int(e.exit_code),
                        **{k: str(v) for k, v in e.details.items()},
                    )
                print(f"Error: {format_error_message(e)}", file=sys.stderr)
                if e.show_traceback or show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return e.exit_code
            except KeyboardInterrupt:
                if log_errors:
                    logger.info("command_interrupted")
                return 130
            except Exception as e:
                if log_errors:
                    logger.error(
                        "unexpected_error",
                        error_type=type(e).__name__,
                        message=str(e),
                        exit_code=int(ExitCode.UNKNOWN_ERROR),
                    )
                if show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return ExitCode.UNKNOWN_ERROR

        return wrapper  # type: ignore[return-value]

    return decorator


def format_error_message(error: ReconcileError) -> str:
    """Format an error message for display to users."""
    msg = error.message
    if error.details:
        detail_str = ", ".join(f"{k}={v}" for k, v in error.details.items())
        msg = f"{msg} ({detail_str})"
    return msg
