"""Core modules for netreconciler - error taxonomy and deadlines."""

from netreconciler.core.deadline import Deadline
from netreconciler.core.errors import (
    APIError,
    ConfigurationError,
    ConflictError,
    DeadlineExceededError,
    ExitCode,
    FatalAPIError,
    NotFoundError,
    OperationCancelledError,
    PlanningError,
    ReconcileError,
    RetriesExhaustedError,
    TransientAPIError,
    ValidationError,
    format_error_message,
    main_with_error_handling,
)

__all__ = [
    # Errors
    "ExitCode",
    "ReconcileError",
    "ConfigurationError",
    "ValidationError",
    "PlanningError",
    "APIError",
    "TransientAPIError",
    "NotFoundError",
    "FatalAPIError",
    "ConflictError",
    "RetriesExhaustedError",
    "DeadlineExceededError",
    "OperationCancelledError",
    "main_with_error_handling",
    "format_error_message",
    # Deadlines
    "Deadline",
]
