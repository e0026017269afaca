from __future__ import annotations

from typing import Any, Sequence

import structlog

from netreconciler.clients.http import BaseHTTPClient
from netreconciler.core.deadline import Deadline
from netreconciler.domain.models import (
    AttachmentObserved,
    FloatingIP,
    PortRange,
    RuleObserved,
    RuleSpec,
)

logger = structlog.get_logger()


def nic_from_payload(payload: dict[str, Any]) -> AttachmentObserved:
    """Map a NIC record to an observed attachment."""
    groups = tuple(str(sg) for sg in payload.get("sg_ids") or payload.get("security_group_ids") or [])
    addresses = payload.get("addresses") or []
    floating = payload.get("floating_ip") or {}
    return AttachmentObserved(
        network_id=str(payload["network_id"]),
        attachment_id=payload.get("id"),
        ip_address=addresses[0] if addresses else None,
        floating_ip_id=floating.get("id") or None,
        floating_ip=floating.get("address") or None,
        security_group_ids=frozenset(groups),
        primary=bool(payload.get("primary", False)),
        group_order=groups,
    )


def rule_from_payload(payload: dict[str, Any]) -> RuleObserved:
    """Map a security group rule record to an observed rule."""
    protocol = str(payload.get("protocol") or "any").lower()
    ports = PortRange.all()
    if protocol in ("tcp", "udp"):
        ports = PortRange.from_bounds(payload.get("port_min"), payload.get("port_max"))
    spec = RuleSpec.build(
        protocol=protocol,
        cidr=payload.get("remote_cidr") or "0.0.0.0/0",
        port_range=ports,
        direction=payload.get("direction", "ingress"),
    )
    return RuleObserved(rule_id=str(payload["id"]), spec=spec)


def rule_to_payload(rule: RuleSpec) -> dict[str, Any]:
    body: dict[str, Any] = {
        "direction": rule.direction.value,
        "protocol": rule.protocol.value,
        "remote_cidr": rule.cidr,
    }
    if rule.protocol.has_ports:
        body["port_min"] = rule.port_range.start
        body["port_max"] = rule.port_range.end
    return body


class VPSClient(BaseHTTPClient):
    """VPS control-plane client covering NICs, floating IPs, rules and status."""

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        *,
        project_id: str | None = None,
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff_factor: float = 2.0,
    ) -> None:
        super().__init__(
            base_url,
            timeout=timeout,
            max_retries=max_retries,
            backoff_factor=backoff_factor,
        )
        self._token = token
        self._project_id = project_id

    @classmethod
    def from_settings(cls, settings: Any) -> "VPSClient":
        return cls(
            settings.api_base_url,
            settings.api_token,
            project_id=settings.project_id,
            timeout=settings.http_timeout,
            max_retries=settings.http_max_retries,
            backoff_factor=settings.http_retry_backoff_factor,
        )

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        if self._project_id:
            headers["X-Project-ID"] = self._project_id
        return headers

    # Network attachments

    async def list_attachments(
        self, instance_id: str, *, deadline: Deadline | None = None
    ) -> list[AttachmentObserved]:
        data = await self.request(
            "GET",
            f"/servers/{instance_id}/nics",
            deadline=deadline,
            operation="list_attachments",
            key=instance_id,
        )
        return [nic_from_payload(item) for item in data.get("nics", [])]

    async def create_attachment(
        self,
        instance_id: str,
        network_id: str,
        security_group_ids: Sequence[str],
        *,
        fixed_ip: str | None = None,
        deadline: Deadline | None = None,
    ) -> AttachmentObserved:
        body: dict[str, Any] = {"network_id": network_id, "sg_ids": list(security_group_ids)}
        if fixed_ip:
            body["fixed_ip"] = fixed_ip
        data = await self.request(
            "POST",
            f"/servers/{instance_id}/nics",
            json=body,
            deadline=deadline,
            operation="create_attachment",
            key=network_id,
        )
        logger.debug("nic_created", instance_id=instance_id, network_id=network_id)
        return nic_from_payload({"network_id": network_id, **data})

    async def delete_attachment(
        self, instance_id: str, attachment_id: str, *, deadline: Deadline | None = None
    ) -> None:
        await self.request(
            "DELETE",
            f"/servers/{instance_id}/nics/{attachment_id}",
            deadline=deadline,
            operation="delete_attachment",
            key=attachment_id,
        )

    async def update_attachment_groups(
        self,
        instance_id: str,
        attachment_id: str,
        security_group_ids: Sequence[str],
        *,
        deadline: Deadline | None = None,
    ) -> None:
        await self.request(
            "PUT",
            f"/servers/{instance_id}/nics/{attachment_id}",
            json={"sg_ids": list(security_group_ids)},
            deadline=deadline,
            operation="update_attachment_groups",
            key=attachment_id,
        )

    # Floating IPs

    async def associate(
        self,
        floating_ip_id: str,
        instance_id: str,
        attachment_id: str,
        *,
        deadline: Deadline | None = None,
    ) -> None:
        await self.request(
            "POST",
            f"/servers/{instance_id}/nics/{attachment_id}/associate",
            json={"floating_ip_id": floating_ip_id},
            deadline=deadline,
            operation="associate_address",
            key=floating_ip_id,
        )

    async def disassociate(self, floating_ip_id: str, *, deadline: Deadline | None = None) -> None:
        await self.request(
            "POST",
            f"/floating_ips/{floating_ip_id}/disassociate",
            deadline=deadline,
            operation="disassociate_address",
            key=floating_ip_id,
        )

    async def get_address(self, floating_ip_id: str, *, deadline: Deadline | None = None) -> FloatingIP:
        data = await self.request(
            "GET",
            f"/floating_ips/{floating_ip_id}",
            deadline=deadline,
            operation="get_address",
            key=floating_ip_id,
        )
        record = data.get("floating_ip", data)
        return FloatingIP(
            id=str(record.get("id", floating_ip_id)),
            address=record.get("address"),
            status=record.get("status"),
            device_id=record.get("device_id") or None,
        )

    # Security group rules

    async def list_rules(self, group_id: str, *, deadline: Deadline | None = None) -> list[RuleObserved]:
        data = await self.request(
            "GET",
            f"/security_groups/{group_id}",
            deadline=deadline,
            operation="list_rules",
            key=group_id,
        )
        group = data.get("security_group", data)
        return [rule_from_payload(item) for item in group.get("rules", [])]

    async def create_rule(
        self, group_id: str, rule: RuleSpec, *, deadline: Deadline | None = None
    ) -> RuleObserved:
        data = await self.request(
            "POST",
            f"/security_groups/{group_id}/rules",
            json=rule_to_payload(rule),
            deadline=deadline,
            operation="create_rule",
            key=rule.key,
        )
        record = data.get("rule", data)
        return RuleObserved(rule_id=str(record.get("id", "")), spec=rule)

    async def delete_rule(self, group_id: str, rule_id: str, *, deadline: Deadline | None = None) -> None:
        await self.request(
            "DELETE",
            f"/security_groups/{group_id}/rules/{rule_id}",
            deadline=deadline,
            operation="delete_rule",
            key=rule_id,
        )

    # Status and networks

    async def get_status(self, resource_id: str, *, deadline: Deadline | None = None) -> str:
        data = await self.request(
            "GET",
            f"/servers/{resource_id}",
            deadline=deadline,
            operation="get_status",
            key=resource_id,
        )
        server = data.get("server", data)
        return str(server.get("status", ""))

    async def get_cidr(self, network_id: str, *, deadline: Deadline | None = None) -> str:
        data = await self.request(
            "GET",
            f"/networks/{network_id}",
            deadline=deadline,
            operation="get_cidr",
            key=network_id,
        )
        network = data.get("network", data)
        return str(network.get("cidr", ""))
