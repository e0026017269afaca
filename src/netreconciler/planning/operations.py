from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Iterator, Sequence

from netreconciler.domain.models import RuleObserved, RuleSpec


class OperationKind(str, Enum):
    CREATE_ATTACHMENT = "create_attachment"
    DELETE_ATTACHMENT = "delete_attachment"
    UPDATE_ATTACHMENT_GROUPS = "update_attachment_groups"
    ASSOCIATE_ADDRESS = "associate_address"
    DISASSOCIATE_ADDRESS = "disassociate_address"
    CREATE_RULE = "create_rule"
    DELETE_RULE = "delete_rule"


class RuleStrategy(str, Enum):
    """How rule collections are brought to the desired state."""

    SURGICAL = "surgical"
    FULL_REPLACE = "full_replace"


@dataclass(frozen=True)
class Operation:
    """A single step of a reconciliation plan."""

    kind: ClassVar[OperationKind]

    @property
    def key(self) -> Any:
        raise NotImplementedError

    def describe(self) -> str:
        return f"{self.kind.value}({self.key})"

    def to_dict(self) -> dict[str, Any]:
        return {"action": self.kind.value, "key": _jsonable(self.key)}


@dataclass(frozen=True)
class CreateAttachment(Operation):
    kind: ClassVar[OperationKind] = OperationKind.CREATE_ATTACHMENT

    instance_id: str
    network_id: str
    security_group_ids: tuple[str, ...] = ()
    fixed_ip: str | None = None

    @property
    def key(self) -> str:
        return self.network_id

    def to_dict(self) -> dict[str, Any]:
        return super().to_dict() | {
            "security_group_ids": list(self.security_group_ids),
            "fixed_ip": self.fixed_ip,
        }


@dataclass(frozen=True)
class DeleteAttachment(Operation):
    kind: ClassVar[OperationKind] = OperationKind.DELETE_ATTACHMENT

    instance_id: str
    network_id: str
    attachment_id: str | None = None

    @property
    def key(self) -> str:
        return self.network_id

    def to_dict(self) -> dict[str, Any]:
        return super().to_dict() | {"attachment_id": self.attachment_id}


@dataclass(frozen=True)
class UpdateAttachmentGroups(Operation):
    kind: ClassVar[OperationKind] = OperationKind.UPDATE_ATTACHMENT_GROUPS

    instance_id: str
    network_id: str
    security_group_ids: tuple[str, ...]
    attachment_id: str | None = None

    @property
    def key(self) -> str:
        return self.network_id

    def to_dict(self) -> dict[str, Any]:
        return super().to_dict() | {
            "attachment_id": self.attachment_id,
            "security_group_ids": list(self.security_group_ids),
        }


@dataclass(frozen=True)
class AssociateAddress(Operation):
    kind: ClassVar[OperationKind] = OperationKind.ASSOCIATE_ADDRESS

    instance_id: str
    network_id: str
    floating_ip_id: str
    attachment_id: str | None = None

    @property
    def key(self) -> str:
        return self.network_id

    def describe(self) -> str:
        return f"{self.kind.value}({self.floating_ip_id} -> {self.network_id})"

    def to_dict(self) -> dict[str, Any]:
        return super().to_dict() | {"floating_ip_id": self.floating_ip_id}


@dataclass(frozen=True)
class DisassociateAddress(Operation):
    kind: ClassVar[OperationKind] = OperationKind.DISASSOCIATE_ADDRESS

    instance_id: str
    network_id: str
    floating_ip_id: str

    @property
    def key(self) -> str:
        return self.network_id

    def describe(self) -> str:
        return f"{self.kind.value}({self.floating_ip_id} <- {self.network_id})"

    def to_dict(self) -> dict[str, Any]:
        return super().to_dict() | {"floating_ip_id": self.floating_ip_id}


@dataclass(frozen=True)
class CreateRule(Operation):
    kind: ClassVar[OperationKind] = OperationKind.CREATE_RULE

    group_id: str
    rule: RuleSpec

    @property
    def key(self) -> tuple[str, str, str, str]:
        return self.rule.key

    def describe(self) -> str:
        return f"{self.kind.value}({self.rule.describe()})"

    def to_dict(self) -> dict[str, Any]:
        return {"action": self.kind.value, "group_id": self.group_id, "rule": self.rule.to_dict()}


@dataclass(frozen=True)
class DeleteRule(Operation):
    kind: ClassVar[OperationKind] = OperationKind.DELETE_RULE

    group_id: str
    rule: RuleObserved
    best_effort: bool = False

    @property
    def key(self) -> tuple[str, str, str, str]:
        return self.rule.key

    def describe(self) -> str:
        return f"{self.kind.value}({self.rule.spec.describe()})"

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.kind.value,
            "group_id": self.group_id,
            "rule": self.rule.to_dict(),
            "best_effort": self.best_effort,
        }


@dataclass(frozen=True)
class ReconciliationPlan:
    """Ordered operations produced for one reconciliation call."""

    operations: tuple[Operation, ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def of(cls, operations: Sequence[Operation], **metadata: Any) -> "ReconciliationPlan":
        return cls(tuple(operations), dict(metadata))

    @property
    def has_changes(self) -> bool:
        return bool(self.operations)

    def __iter__(self) -> Iterator[Operation]:
        return iter(self.operations)

    def __len__(self) -> int:
        return len(self.operations)

    def __getitem__(self, index: int) -> Operation:
        return self.operations[index]

    def kinds(self) -> list[OperationKind]:
        return [op.kind for op in self.operations]

    def counts(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for op in self.operations:
            counts[op.kind.value] = counts.get(op.kind.value, 0) + 1
        return counts

    def to_dict(self) -> dict[str, Any]:
        return {
            "operations": [op.to_dict() for op in self.operations],
            "counts": self.counts(),
            "metadata": self.metadata,
        }


def _jsonable(value: Any) -> Any:
    if isinstance(value, tuple):
        return list(value)
    return value
