"""Domain models for attachments, addresses and firewall rules."""

from netreconciler.domain.models import (
    AttachmentObserved,
    AttachmentSpec,
    Direction,
    FloatingIP,
    PortRange,
    Protocol,
    RuleKey,
    RuleObserved,
    RuleSpec,
    parse_direction,
    parse_protocol,
    validate_cidr,
)

__all__ = [
    "AttachmentObserved",
    "AttachmentSpec",
    "Direction",
    "FloatingIP",
    "PortRange",
    "Protocol",
    "RuleKey",
    "RuleObserved",
    "RuleSpec",
    "parse_direction",
    "parse_protocol",
    "validate_cidr",
]
