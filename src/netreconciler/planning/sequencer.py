"""Orders diff results into a safe execution plan.

Attachment plans obey two hard rules:

- create-before-delete: every CreateAttachment precedes every
  DeleteAttachment, so the instance never drops to zero attachments;
- disassociate-before-associate: a public address is released from its
  former attachment before it is bound anywhere else.
"""

from __future__ import annotations

from typing import Mapping, Sequence

from netreconciler.domain.models import (
    AttachmentObserved,
    AttachmentSpec,
    RuleKey,
    RuleObserved,
    RuleSpec,
)
from netreconciler.planning.differ import EntityDiff
from netreconciler.planning.operations import (
    AssociateAddress,
    CreateAttachment,
    CreateRule,
    DeleteAttachment,
    DeleteRule,
    DisassociateAddress,
    Operation,
    RuleStrategy,
    UpdateAttachmentGroups,
)


def _group_tuple(spec: AttachmentSpec) -> tuple[str, ...]:
    return spec.group_order or tuple(sorted(spec.security_group_ids))


def sequence_attachments(
    instance_id: str,
    diff: EntityDiff[str],
    desired: Mapping[str, AttachmentSpec],
    observed: Mapping[str, AttachmentObserved],
) -> list[Operation]:
    """Emit attachment operations in phases.

    1. disassociate addresses that change or move to another attachment
    2. create new attachments
    3. delete removed attachments
    4. update group memberships of kept attachments
    5. associate addresses
    """
    creates = set(diff.to_create)
    updates = set(diff.to_update)
    claimed = {spec.floating_ip_id for spec in desired.values() if spec.floating_ip_id}

    disassociations: list[Operation] = []
    for key in diff.to_update:
        current = observed[key].floating_ip_id
        if current and current != desired[key].floating_ip_id:
            disassociations.append(DisassociateAddress(instance_id, key, current))
    for key in diff.to_delete:
        current = observed[key].floating_ip_id
        if current and current in claimed:
            disassociations.append(DisassociateAddress(instance_id, key, current))

    creations: list[Operation] = [
        CreateAttachment(
            instance_id,
            key,
            security_group_ids=_group_tuple(desired[key]),
            fixed_ip=desired[key].fixed_ip,
        )
        for key in diff.to_create
    ]

    deletions: list[Operation] = [
        DeleteAttachment(instance_id, key, observed[key].attachment_id) for key in diff.to_delete
    ]

    group_updates: list[Operation] = [
        UpdateAttachmentGroups(
            instance_id,
            key,
            _group_tuple(desired[key]),
            attachment_id=observed[key].attachment_id,
        )
        for key in diff.to_update
        if desired[key].security_group_ids != observed[key].security_group_ids
    ]

    associations: list[Operation] = []
    for key, spec in desired.items():
        if not spec.floating_ip_id:
            continue
        if key in creates:
            associations.append(AssociateAddress(instance_id, key, spec.floating_ip_id))
        elif key in updates and spec.floating_ip_id != observed[key].floating_ip_id:
            associations.append(
                AssociateAddress(
                    instance_id,
                    key,
                    spec.floating_ip_id,
                    attachment_id=observed[key].attachment_id,
                )
            )

    return disassociations + creations + deletions + group_updates + associations


def sequence_rules(
    group_id: str,
    diff: EntityDiff[RuleKey],
    desired: Mapping[RuleKey, RuleSpec],
    observed: Mapping[RuleKey, RuleObserved],
    *,
    strategy: RuleStrategy = RuleStrategy.SURGICAL,
    surplus: Sequence[RuleObserved] = (),
) -> list[Operation]:
    """Emit rule operations for the selected strategy.

    Surgical plans delete each removed rule and create each new one. Full
    replacement deletes every observed rule (best effort) and recreates every
    desired rule, but only when something actually differs.
    """
    if diff.is_empty and not surplus:
        return []

    if strategy is RuleStrategy.FULL_REPLACE:
        everything = list(observed.values()) + list(surplus)
        return [DeleteRule(group_id, rule, best_effort=True) for rule in everything] + [
            CreateRule(group_id, rule) for rule in desired.values()
        ]

    deletions: list[Operation] = [DeleteRule(group_id, observed[key]) for key in diff.to_delete]
    deletions.extend(DeleteRule(group_id, rule) for rule in surplus)
    creations: list[Operation] = [CreateRule(group_id, desired[key]) for key in diff.to_create]
    return deletions + creations
