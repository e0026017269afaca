"""Pre-planning checks on desired state."""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Sequence

from netreconciler.core.errors import PlanningError, ValidationError
from netreconciler.domain.models import AttachmentObserved, AttachmentSpec
from netreconciler.planning.operations import RuleStrategy


def validate_primary(desired: Sequence[AttachmentSpec]) -> None:
    """At most one desired attachment may be flagged primary."""
    primary_count = sum(1 for att in desired if att.primary)
    if primary_count > 1:
        raise ValidationError(
            f"Only one network attachment can have primary=true, found {primary_count}.",
            {"primary_count": primary_count},
        )


def validate_fixed_ips(
    desired: Mapping[str, AttachmentSpec],
    observed: Mapping[str, AttachmentObserved],
) -> None:
    """An explicit private address cannot change on an existing attachment."""
    for network_id, spec in desired.items():
        current = observed.get(network_id)
        if current is None:
            continue
        reject_immutable_changes(
            {"fixed_ip": spec.fixed_ip},
            {"fixed_ip": current.ip_address},
            ("fixed_ip",),
            context={"network_id": network_id},
        )


def validate_floating_ips(desired: Iterable[AttachmentSpec]) -> None:
    """A public address maps to exactly one attachment."""
    owners: dict[str, str] = {}
    for att in desired:
        if att.floating_ip_id is None:
            continue
        if att.floating_ip_id in owners:
            raise PlanningError(
                f"Floating IP {att.floating_ip_id} is requested on networks "
                f"{owners[att.floating_ip_id]} and {att.network_id}.",
                {"floating_ip_id": att.floating_ip_id},
            )
        owners[att.floating_ip_id] = att.network_id


def validate_not_empty(desired: Sequence[AttachmentSpec]) -> None:
    if not desired:
        raise PlanningError("An instance must keep at least one network attachment.")


def reject_immutable_changes(
    desired: Mapping[str, Any],
    observed: Mapping[str, Any],
    fields: Iterable[str],
    *,
    context: Mapping[str, Any] | None = None,
) -> None:
    """Reject changes to fields that can only be set at creation time.

    A field missing or unset on either side is not considered a change.
    ``context`` is merged into the error details.
    """
    for name in fields:
        if name not in desired or name not in observed:
            continue
        if desired[name] is None or observed[name] is None:
            continue
        if desired[name] != observed[name]:
            raise ValidationError(
                f"Changing '{name}' is not supported in-place. Recreate the resource to change it.",
                {
                    **(context or {}),
                    "field": name,
                    "desired": desired[name],
                    "observed": observed[name],
                },
            )


def parse_strategy(value: Any) -> RuleStrategy:
    try:
        return RuleStrategy(getattr(value, "value", value))
    except ValueError as exc:
        raise ValidationError(
            f"Rule strategy '{value}' is not valid. Must be one of: surgical, full_replace.",
            {"strategy": str(value)},
        ) from exc
