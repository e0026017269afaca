"""
Domain models for network attachments and firewall rules.

These models carry the desired (caller-declared) and observed (remote)
configuration of:
- Network attachments: virtual NICs binding an instance to one network
- Firewall rules: security group rule identity tuples
- Floating IPs: public addresses bound 1:1 to an attachment
"""

from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable

from netreconciler.core.errors import ValidationError

PORT_MIN = 1
PORT_MAX = 65535

_RANGE_PATTERN = re.compile(r"^(\d+)-(\d+)$")


class Direction(str, Enum):
    """Traffic direction of a firewall rule."""

    INGRESS = "ingress"
    EGRESS = "egress"


class Protocol(str, Enum):
    """Protocols accepted by security group rules."""

    TCP = "tcp"
    UDP = "udp"
    ICMP = "icmp"
    ANY = "any"

    @property
    def has_ports(self) -> bool:
        return self in (Protocol.TCP, Protocol.UDP)


def parse_direction(value: str | Direction) -> Direction:
    try:
        return Direction(str(getattr(value, "value", value)).lower())
    except ValueError as exc:
        raise ValidationError(
            f"Direction '{value}' is not valid. Must be one of: ingress, egress.",
            {"direction": str(value)},
        ) from exc


def parse_protocol(value: str | Protocol) -> Protocol:
    try:
        return Protocol(str(getattr(value, "value", value)).lower())
    except ValueError as exc:
        raise ValidationError(
            f"Protocol '{value}' is not valid. Must be one of: tcp, udp, icmp, any (case-insensitive).",
            {"protocol": str(value)},
        ) from exc


def validate_cidr(value: str) -> str:
    """Validate CIDR notation (IPv4 or IPv6), returning the value unchanged."""
    try:
        ipaddress.ip_network(value, strict=False)
    except ValueError as exc:
        raise ValidationError(
            f"Value '{value}' is not a valid CIDR notation. Must be in format 'IP/prefix' "
            "(e.g., '10.0.0.0/8' for IPv4 or '2001:db8::/32' for IPv6).",
            {"cidr": value, "error": str(exc)},
        ) from exc
    if "/" not in value:
        raise ValidationError(
            f"Value '{value}' is missing a prefix length.",
            {"cidr": value},
        )
    return value


@dataclass(frozen=True, order=True)
class PortRange:
    """Inclusive port range; ``all`` is 1-65535."""

    start: int = PORT_MIN
    end: int = PORT_MAX

    @classmethod
    def all(cls) -> "PortRange":
        return cls(PORT_MIN, PORT_MAX)

    @classmethod
    def parse(cls, value: str | int | "PortRange" | None) -> "PortRange":
        """Parse ``all``, ``80`` or ``8000-8100``."""
        if isinstance(value, PortRange):
            return value
        if value is None:
            return cls.all()
        text = str(value).strip()
        if text.lower() == "all":
            return cls.all()

        match = _RANGE_PATTERN.match(text)
        if match:
            start, end = int(match.group(1)), int(match.group(2))
        elif text.isdigit():
            start = end = int(text)
        else:
            raise ValidationError(
                f"Port range '{text}' must be 'all', a single port number (1-65535), "
                "or a range in format 'start-end'.",
                {"port_range": text},
            )
        return cls.from_bounds(start, end)

    @classmethod
    def from_bounds(cls, start: int | None, end: int | None) -> "PortRange":
        """Build from API bounds; unset or 0-0 bounds mean all ports."""
        if not start and not end:
            return cls.all()
        start = int(start or end)  # type: ignore[arg-type]
        end = int(end or start)
        if not (PORT_MIN <= start <= PORT_MAX and PORT_MIN <= end <= PORT_MAX):
            raise ValidationError(
                f"Port range '{start}-{end}' contains ports outside valid range (1-65535).",
                {"port_range": f"{start}-{end}"},
            )
        if start > end:
            raise ValidationError(
                f"Port range '{start}-{end}' has start port ({start}) greater than end port ({end}).",
                {"port_range": f"{start}-{end}"},
            )
        return cls(start, end)

    @property
    def is_all(self) -> bool:
        return self.start == PORT_MIN and self.end == PORT_MAX

    def __str__(self) -> str:
        if self.is_all:
            return "all"
        if self.start == self.end:
            return str(self.start)
        return f"{self.start}-{self.end}"


RuleKey = tuple[str, str, str, str]


@dataclass(frozen=True)
class RuleSpec:
    """Desired firewall rule. Identity is the full field tuple."""

    direction: Direction
    protocol: Protocol
    port_range: PortRange
    cidr: str

    @classmethod
    def build(
        cls,
        *,
        protocol: str | Protocol,
        cidr: str,
        port_range: str | int | PortRange | None = "all",
        direction: str | Direction = Direction.INGRESS,
    ) -> "RuleSpec":
        proto = parse_protocol(protocol)
        ports = PortRange.parse(port_range) if proto.has_ports else PortRange.all()
        return cls(
            direction=parse_direction(direction),
            protocol=proto,
            port_range=ports,
            cidr=validate_cidr(cidr),
        )

    @property
    def key(self) -> RuleKey:
        return (self.direction.value, self.protocol.value, str(self.port_range), self.cidr)

    def describe(self) -> str:
        return f"{self.direction.value} {self.protocol.value}/{self.port_range} {self.cidr}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "direction": self.direction.value,
            "protocol": self.protocol.value,
            "port_range": str(self.port_range),
            "cidr": self.cidr,
        }


@dataclass(frozen=True)
class RuleObserved:
    """A rule as returned by the remote API."""

    rule_id: str
    spec: RuleSpec

    @property
    def key(self) -> RuleKey:
        return self.spec.key

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.rule_id, **self.spec.to_dict()}


@dataclass(frozen=True)
class AttachmentSpec:
    """Desired network attachment of an instance."""

    network_id: str
    security_group_ids: frozenset[str] = field(default_factory=frozenset)
    floating_ip_id: str | None = None
    primary: bool = False
    fixed_ip: str | None = None
    # Caller's group ordering, kept for presenting fresh state back in that order.
    group_order: tuple[str, ...] = field(default=(), compare=False)

    @classmethod
    def build(
        cls,
        network_id: str,
        security_group_ids: Iterable[str] = (),
        *,
        floating_ip_id: str | None = None,
        primary: bool = False,
        fixed_ip: str | None = None,
    ) -> "AttachmentSpec":
        if not network_id:
            raise ValidationError("network_id is required for a network attachment")
        ordered = tuple(dict.fromkeys(str(sg) for sg in security_group_ids))
        return cls(
            network_id=str(network_id),
            security_group_ids=frozenset(ordered),
            floating_ip_id=floating_ip_id or None,
            primary=bool(primary),
            fixed_ip=fixed_ip or None,
            group_order=ordered,
        )

    @property
    def key(self) -> str:
        return self.network_id


@dataclass(frozen=True)
class AttachmentObserved:
    """A network attachment as returned by the remote API."""

    network_id: str
    attachment_id: str | None = None
    ip_address: str | None = None
    floating_ip_id: str | None = None
    floating_ip: str | None = None
    security_group_ids: frozenset[str] = field(default_factory=frozenset)
    primary: bool = False
    group_order: tuple[str, ...] = field(default=(), compare=False)

    @property
    def key(self) -> str:
        return self.network_id

    def to_dict(self) -> dict[str, Any]:
        groups = list(self.group_order) or sorted(self.security_group_ids)
        return {
            "network_id": self.network_id,
            "attachment_id": self.attachment_id,
            "ip_address": self.ip_address,
            "primary": self.primary,
            "security_group_ids": groups,
            "floating_ip_id": self.floating_ip_id,
            "floating_ip": self.floating_ip,
        }


@dataclass(frozen=True)
class FloatingIP:
    """Public address record."""

    id: str
    address: str | None = None
    status: str | None = None
    device_id: str | None = None

    @property
    def is_associated(self) -> bool:
        return bool(self.device_id)
