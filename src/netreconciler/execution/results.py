"""Result types for plan execution."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from netreconciler.core.errors import ReconcileError
from netreconciler.execution.classifier import ErrorClass
from netreconciler.planning.operations import Operation, ReconciliationPlan


class OutcomeStatus(str, Enum):
    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"
    NOT_STARTED = "not_started"


@dataclass
class OperationOutcome:
    """What happened to one plan step."""

    operation: Operation
    status: OutcomeStatus
    classification: ErrorClass | None = None
    attempts: int = 0
    error: BaseException | None = None
    best_effort: bool = False

    def to_dict(self) -> dict[str, Any]:
        data = {
            **self.operation.to_dict(),
            "status": self.status.value,
            "attempts": self.attempts,
        }
        if self.classification is not None:
            data["classification"] = self.classification.value
        if self.error is not None:
            data["error"] = str(self.error)
        if self.best_effort:
            data["best_effort"] = True
        return data


@dataclass
class AppliedResult:
    """Result of applying a reconciliation plan."""

    plan: ReconciliationPlan
    outcomes: list[OperationOutcome] = field(default_factory=list)
    error: ReconcileError | None = None
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        """Whether every step ran and no step aborted the plan."""
        return self.error is None

    @property
    def applied(self) -> list[OperationOutcome]:
        return [o for o in self.outcomes if o.status is OutcomeStatus.APPLIED]

    @property
    def failed(self) -> list[OperationOutcome]:
        return [o for o in self.outcomes if o.status is OutcomeStatus.FAILED]

    @property
    def not_started(self) -> list[OperationOutcome]:
        return [o for o in self.outcomes if o.status is OutcomeStatus.NOT_STARTED]

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "error": str(self.error) if self.error else None,
            "duration_seconds": round(self.duration_seconds, 3),
            "outcomes": [o.to_dict() for o in self.outcomes],
        }
