"""Differencing, validation and sequencing of reconciliation plans."""

from netreconciler.planning.differ import EntityDiff, diff_entities, index_by_key
from netreconciler.planning.operations import (
    AssociateAddress,
    CreateAttachment,
    CreateRule,
    DeleteAttachment,
    DeleteRule,
    DisassociateAddress,
    Operation,
    OperationKind,
    ReconciliationPlan,
    RuleStrategy,
    UpdateAttachmentGroups,
)
from netreconciler.planning.planner import attachment_matches, plan_attachments, plan_rules
from netreconciler.planning.validation import parse_strategy, reject_immutable_changes

__all__ = [
    "EntityDiff",
    "diff_entities",
    "index_by_key",
    "Operation",
    "OperationKind",
    "ReconciliationPlan",
    "RuleStrategy",
    "CreateAttachment",
    "DeleteAttachment",
    "UpdateAttachmentGroups",
    "AssociateAddress",
    "DisassociateAddress",
    "CreateRule",
    "DeleteRule",
    "attachment_matches",
    "plan_attachments",
    "plan_rules",
    "parse_strategy",
    "reject_immutable_changes",
]
