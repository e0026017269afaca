from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable

from netreconciler.core.deadline import Deadline
from netreconciler.domain.models import (
    AttachmentObserved,
    FloatingIP,
    RuleObserved,
    RuleSpec,
)


@runtime_checkable
class AttachmentClient(Protocol):
    """CRUD contract for an instance's network attachments."""

    async def list_attachments(
        self, instance_id: str, *, deadline: Deadline | None = None
    ) -> list[AttachmentObserved]:
        ...

    async def create_attachment(
        self,
        instance_id: str,
        network_id: str,
        security_group_ids: Sequence[str],
        *,
        fixed_ip: str | None = None,
        deadline: Deadline | None = None,
    ) -> AttachmentObserved:
        ...

    async def delete_attachment(
        self, instance_id: str, attachment_id: str, *, deadline: Deadline | None = None
    ) -> None:
        ...

    async def update_attachment_groups(
        self,
        instance_id: str,
        attachment_id: str,
        security_group_ids: Sequence[str],
        *,
        deadline: Deadline | None = None,
    ) -> None:
        ...


@runtime_checkable
class AddressClient(Protocol):
    """Contract for binding public addresses to attachments."""

    async def associate(
        self,
        floating_ip_id: str,
        instance_id: str,
        attachment_id: str,
        *,
        deadline: Deadline | None = None,
    ) -> None:
        ...

    async def disassociate(self, floating_ip_id: str, *, deadline: Deadline | None = None) -> None:
        ...

    async def get_address(self, floating_ip_id: str, *, deadline: Deadline | None = None) -> FloatingIP:
        ...


@runtime_checkable
class RuleClient(Protocol):
    """CRUD contract for security group rules."""

    async def list_rules(self, group_id: str, *, deadline: Deadline | None = None) -> list[RuleObserved]:
        ...

    async def create_rule(
        self, group_id: str, rule: RuleSpec, *, deadline: Deadline | None = None
    ) -> RuleObserved:
        ...

    async def delete_rule(self, group_id: str, rule_id: str, *, deadline: Deadline | None = None) -> None:
        ...


@runtime_checkable
class StatusClient(Protocol):
    """Reads a resource's status; raises NotFoundError once it is gone."""

    async def get_status(self, resource_id: str, *, deadline: Deadline | None = None) -> str:
        ...


@runtime_checkable
class NetworkClient(Protocol):
    """Reads network metadata needed for candidate address selection."""

    async def get_cidr(self, network_id: str, *, deadline: Deadline | None = None) -> str:
        ...
