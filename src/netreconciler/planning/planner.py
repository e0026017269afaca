"""Builds reconciliation plans from desired and observed collections."""

from __future__ import annotations

from typing import Sequence

import structlog

from netreconciler.domain.models import (
    AttachmentObserved,
    AttachmentSpec,
    RuleObserved,
    RuleSpec,
)
from netreconciler.planning.differ import diff_entities, index_by_key, split_duplicates
from netreconciler.planning.operations import ReconciliationPlan, RuleStrategy
from netreconciler.planning.sequencer import sequence_attachments, sequence_rules
from netreconciler.planning.validation import (
    parse_strategy,
    validate_fixed_ips,
    validate_floating_ips,
    validate_not_empty,
    validate_primary,
)

logger = structlog.get_logger()


def attachment_matches(desired: AttachmentSpec, observed: AttachmentObserved) -> bool:
    """Group membership (as a set) and public address decide equality."""
    return (
        desired.security_group_ids == observed.security_group_ids
        and desired.floating_ip_id == observed.floating_ip_id
    )


def plan_attachments(
    instance_id: str,
    desired: Sequence[AttachmentSpec],
    observed: Sequence[AttachmentObserved],
) -> ReconciliationPlan:
    """Validate, diff and sequence an instance's network attachments.

    Raises:
        ValidationError: primary flag or fixed address constraints violated
        PlanningError: duplicate networks, empty desired set, or one address
            requested on two attachments
    """
    validate_not_empty(desired)
    validate_primary(desired)
    desired_map = index_by_key(desired, lambda att: att.key, what="network attachment")
    observed_map = index_by_key(observed, lambda att: att.key, what="observed attachment")
    validate_floating_ips(desired)
    validate_fixed_ips(desired_map, observed_map)

    diff = diff_entities(desired_map, observed_map, attachment_matches)
    operations = sequence_attachments(instance_id, diff, desired_map, observed_map)

    logger.debug(
        "attachment_plan_built",
        instance_id=instance_id,
        to_create=list(diff.to_create),
        to_update=list(diff.to_update),
        to_delete=list(diff.to_delete),
        operations=len(operations),
    )
    return ReconciliationPlan.of(operations, instance_id=instance_id, resource="attachments")


def plan_rules(
    group_id: str,
    desired: Sequence[RuleSpec],
    observed: Sequence[RuleObserved],
    strategy: RuleStrategy | str = RuleStrategy.SURGICAL,
) -> ReconciliationPlan:
    """Diff and sequence a security group's rule list.

    Rules have no update operation: any field difference changes the identity
    tuple and so yields a delete plus a create.
    """
    strategy = parse_strategy(strategy)
    desired_map = index_by_key(desired, lambda rule: rule.key, what="rule")
    observed_map, surplus = split_duplicates(observed, lambda rule: rule.key)

    diff = diff_entities(desired_map, observed_map)
    operations = sequence_rules(
        group_id,
        diff,
        desired_map,
        observed_map,
        strategy=strategy,
        surplus=surplus,
    )

    logger.debug(
        "rule_plan_built",
        group_id=group_id,
        strategy=strategy.value,
        to_create=len(diff.to_create),
        to_delete=len(diff.to_delete),
        duplicates=len(surplus),
        operations=len(operations),
    )
    return ReconciliationPlan.of(
        operations,
        group_id=group_id,
        resource="rules",
        strategy=strategy.value,
    )
