"""Plan execution, error classification and status polling."""

from netreconciler.execution.candidates import DEFAULT_OFFSETS, candidate_addresses
from netreconciler.execution.classifier import ErrorClass, classify, is_transient
from netreconciler.execution.executor import ApplyExecutor
from netreconciler.execution.results import AppliedResult, OperationOutcome, OutcomeStatus
from netreconciler.execution.waiter import StatusWaiter, status_is

__all__ = [
    "ApplyExecutor",
    "AppliedResult",
    "OperationOutcome",
    "OutcomeStatus",
    "ErrorClass",
    "classify",
    "is_transient",
    "DEFAULT_OFFSETS",
    "candidate_addresses",
    "StatusWaiter",
    "status_is",
]
