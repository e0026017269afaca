"""
Loading of desired/observed state documents.

Attachment documents:

    instance_id: srv-123
    network_attachment:
      - network_id: net-a
        primary: true
        security_group_ids: [sg-web]
        floating_ip_id: fip-1

Rule documents (either a flat ``rules`` list or the ingress/egress split):

    security_group_id: sg-web
    ingress_rule:
      - protocol: tcp
        port_range: "80"
        source_cidr: 0.0.0.0/0
    egress_rule:
      - protocol: any
        destination_cidr: 0.0.0.0/0
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

import structlog
import yaml

from netreconciler.core.errors import ConfigurationError, ValidationError
from netreconciler.domain.models import (
    AttachmentObserved,
    AttachmentSpec,
    Direction,
    RuleObserved,
    RuleSpec,
    parse_direction,
)

logger = structlog.get_logger()

ATTACHMENTS = "attachments"
RULES = "rules"


@dataclass
class StateDocument:
    """A parsed desired or observed document."""

    kind: str
    target_id: str
    data: dict[str, Any]

    def attachment_specs(self) -> list[AttachmentSpec]:
        return parse_attachment_specs(self.data.get("network_attachment") or [])

    def observed_attachments(self) -> list[AttachmentObserved]:
        return parse_observed_attachments(self.data.get("network_attachment") or [])

    def rule_specs(self) -> list[RuleSpec]:
        return parse_rule_specs(self.data)

    def observed_rules(self) -> list[RuleObserved]:
        return parse_observed_rules(self.data)


def load_document(path: str | Path) -> StateDocument:
    """Read a YAML state document and detect its kind."""
    path = Path(path)
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except OSError as exc:
        raise ConfigurationError(f"Cannot read state file {path}: {exc}", {"path": str(path)}) from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {path}: {exc}", {"path": str(path)}) from exc

    if not isinstance(data, dict):
        raise ConfigurationError(f"State file {path} must contain a mapping", {"path": str(path)})

    logger.debug("loaded_state_document", path=str(path))
    if "instance_id" in data or "network_attachment" in data:
        return StateDocument(ATTACHMENTS, str(data.get("instance_id", "")), data)
    if any(name in data for name in ("security_group_id", "rules", "ingress_rule", "egress_rule")):
        return StateDocument(RULES, str(data.get("security_group_id", "")), data)
    raise ConfigurationError(
        f"State file {path} has neither network_attachment nor rule entries",
        {"path": str(path)},
    )


def parse_attachment_specs(items: Iterable[dict[str, Any]]) -> list[AttachmentSpec]:
    specs = []
    for item in items:
        specs.append(
            AttachmentSpec.build(
                item.get("network_id", ""),
                item.get("security_group_ids") or [],
                floating_ip_id=item.get("floating_ip_id"),
                primary=bool(item.get("primary", False)),
                fixed_ip=item.get("ip_address"),
            )
        )
    return specs


def parse_observed_attachments(items: Iterable[dict[str, Any]]) -> list[AttachmentObserved]:
    observed = []
    for item in items:
        groups = tuple(str(sg) for sg in item.get("security_group_ids") or [])
        observed.append(
            AttachmentObserved(
                network_id=str(item["network_id"]),
                attachment_id=item.get("attachment_id"),
                ip_address=item.get("ip_address"),
                floating_ip_id=item.get("floating_ip_id"),
                floating_ip=item.get("floating_ip"),
                security_group_ids=frozenset(groups),
                primary=bool(item.get("primary", False)),
                group_order=groups,
            )
        )
    return observed


def _rule_entries(data: dict[str, Any]) -> list[tuple[Direction, dict[str, Any]]]:
    entries: list[tuple[Direction, dict[str, Any]]] = []
    for item in data.get("rules") or []:
        entries.append((parse_direction(item.get("direction", "ingress")), item))
    for item in data.get("ingress_rule") or []:
        entries.append((Direction.INGRESS, item))
    for item in data.get("egress_rule") or []:
        entries.append((Direction.EGRESS, item))
    return entries


def _rule_from_entry(direction: Direction, item: dict[str, Any]) -> RuleSpec:
    cidr = item.get("cidr") or item.get("source_cidr") or item.get("destination_cidr")
    if not cidr:
        raise ValidationError("Rule is missing a CIDR", {"rule": item})
    return RuleSpec.build(
        protocol=item.get("protocol", ""),
        port_range=item.get("port_range", "all"),
        cidr=cidr,
        direction=direction,
    )


def parse_rule_specs(data: dict[str, Any]) -> list[RuleSpec]:
    return [_rule_from_entry(direction, item) for direction, item in _rule_entries(data)]


def parse_observed_rules(data: dict[str, Any]) -> list[RuleObserved]:
    rules = []
    for index, (direction, item) in enumerate(_rule_entries(data)):
        rule_id = str(item.get("id") or f"rule-{index}")
        rules.append(RuleObserved(rule_id=rule_id, spec=_rule_from_entry(direction, item)))
    return rules
