"""In-memory control plane implementing every client protocol."""

from __future__ import annotations

import itertools
from collections import defaultdict
from typing import Any, Sequence

from netreconciler.core.errors import NotFoundError
from netreconciler.domain.models import (
    AttachmentObserved,
    FloatingIP,
    RuleObserved,
    RuleSpec,
)


class FakeCloud:
    """Records every call and serves state from plain dictionaries.

    ``fail(method, *errors)`` scripts the next calls of ``method`` to raise;
    ``fail_always(method, error)`` makes every call raise. Listings come back
    in reverse creation order, as the remote API does not keep caller order.
    """

    def __init__(self) -> None:
        self.nics: dict[str, dict[str, dict[str, Any]]] = defaultdict(dict)
        self.addresses: dict[str, dict[str, Any]] = {}
        self.rules: dict[str, list[RuleObserved]] = defaultdict(list)
        self.statuses: dict[str, list[str]] = {}
        self.networks: dict[str, str] = {}
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self._scripted: dict[str, list[BaseException]] = defaultdict(list)
        self._always: dict[str, BaseException] = {}
        self._ids = itertools.count(1)

    # Scripting

    def fail(self, method: str, *errors: BaseException) -> None:
        self._scripted[method].extend(errors)

    def fail_always(self, method: str, error: BaseException) -> None:
        self._always[method] = error

    def calls_to(self, method: str) -> list[tuple[Any, ...]]:
        return [args for name, args in self.calls if name == method]

    def _record(self, method: str, *args: Any) -> None:
        self.calls.append((method, args))
        if method in self._always:
            raise self._always[method]
        if self._scripted[method]:
            raise self._scripted[method].pop(0)

    # Seeding

    def add_nic(
        self,
        instance_id: str,
        network_id: str,
        groups: Sequence[str] = (),
        *,
        ip_address: str | None = None,
        floating_ip_id: str | None = None,
        primary: bool = False,
    ) -> str:
        nic_id = f"nic-{next(self._ids)}"
        self.nics[instance_id][nic_id] = {
            "network_id": network_id,
            "groups": tuple(groups),
            "ip_address": ip_address or f"10.0.0.{100 + len(self.nics[instance_id])}",
            "floating_ip_id": None,
            "primary": primary,
        }
        if floating_ip_id:
            self.add_address(floating_ip_id)
            self._bind(instance_id, nic_id, floating_ip_id)
        return nic_id

    def add_address(self, floating_ip_id: str, address: str | None = None) -> None:
        if floating_ip_id not in self.addresses:
            suffix = len(self.addresses) + 10
            self.addresses[floating_ip_id] = {
                "address": address or f"203.0.113.{suffix}",
                "device_id": None,
            }

    def add_rule(self, group_id: str, rule: RuleSpec, rule_id: str | None = None) -> RuleObserved:
        observed = RuleObserved(rule_id or f"rule-{next(self._ids)}", rule)
        self.rules[group_id].append(observed)
        return observed

    def _bind(self, instance_id: str, nic_id: str, floating_ip_id: str) -> None:
        self.addresses[floating_ip_id]["device_id"] = nic_id
        self.nics[instance_id][nic_id]["floating_ip_id"] = floating_ip_id

    def _observed(self, nic_id: str, nic: dict[str, Any]) -> AttachmentObserved:
        fip_id = nic["floating_ip_id"]
        return AttachmentObserved(
            network_id=nic["network_id"],
            attachment_id=nic_id,
            ip_address=nic["ip_address"],
            floating_ip_id=fip_id,
            floating_ip=self.addresses[fip_id]["address"] if fip_id else None,
            security_group_ids=frozenset(nic["groups"]),
            primary=nic["primary"],
            group_order=tuple(sorted(nic["groups"], reverse=True)),
        )

    # AttachmentClient

    async def list_attachments(self, instance_id, *, deadline=None):
        self._record("list_attachments", instance_id)
        items = list(self.nics[instance_id].items())
        return [self._observed(nic_id, nic) for nic_id, nic in reversed(items)]

    async def create_attachment(
        self, instance_id, network_id, security_group_ids, *, fixed_ip=None, deadline=None
    ):
        self._record("create_attachment", instance_id, network_id, tuple(security_group_ids), fixed_ip)
        nic_id = self.add_nic(instance_id, network_id, security_group_ids, ip_address=fixed_ip)
        return self._observed(nic_id, self.nics[instance_id][nic_id])

    async def delete_attachment(self, instance_id, attachment_id, *, deadline=None):
        self._record("delete_attachment", instance_id, attachment_id)
        nic = self.nics[instance_id].pop(attachment_id, None)
        if nic is None:
            raise NotFoundError(f"NIC {attachment_id} not found", status_code=404)
        if nic["floating_ip_id"]:
            self.addresses[nic["floating_ip_id"]]["device_id"] = None

    async def update_attachment_groups(self, instance_id, attachment_id, security_group_ids, *, deadline=None):
        self._record("update_attachment_groups", instance_id, attachment_id, tuple(security_group_ids))
        if attachment_id not in self.nics[instance_id]:
            raise NotFoundError(f"NIC {attachment_id} not found", status_code=404)
        self.nics[instance_id][attachment_id]["groups"] = tuple(security_group_ids)

    # AddressClient

    async def associate(self, floating_ip_id, instance_id, attachment_id, *, deadline=None):
        self._record("associate", floating_ip_id, instance_id, attachment_id)
        self._bind(instance_id, attachment_id, floating_ip_id)

    async def disassociate(self, floating_ip_id, *, deadline=None):
        self._record("disassociate", floating_ip_id)
        record = self.addresses[floating_ip_id]
        for nics in self.nics.values():
            nic = nics.get(record["device_id"])
            if nic is not None:
                nic["floating_ip_id"] = None
        record["device_id"] = None

    async def get_address(self, floating_ip_id, *, deadline=None):
        self._record("get_address", floating_ip_id)
        record = self.addresses.get(floating_ip_id)
        if record is None:
            raise NotFoundError(f"Floating IP {floating_ip_id} not found", status_code=404)
        status = "ACTIVE" if record["device_id"] else "DOWN"
        return FloatingIP(floating_ip_id, record["address"], status, record["device_id"])

    # RuleClient

    async def list_rules(self, group_id, *, deadline=None):
        self._record("list_rules", group_id)
        return list(reversed(self.rules[group_id]))

    async def create_rule(self, group_id, rule, *, deadline=None):
        self._record("create_rule", group_id, rule)
        return self.add_rule(group_id, rule)

    async def delete_rule(self, group_id, rule_id, *, deadline=None):
        self._record("delete_rule", group_id, rule_id)
        remaining = [r for r in self.rules[group_id] if r.rule_id != rule_id]
        if len(remaining) == len(self.rules[group_id]):
            raise NotFoundError(f"Rule {rule_id} not found", status_code=404)
        self.rules[group_id] = remaining

    # StatusClient

    async def get_status(self, resource_id, *, deadline=None):
        self._record("get_status", resource_id)
        if resource_id not in self.statuses:
            return "ACTIVE"
        sequence = self.statuses[resource_id]
        if not sequence:
            raise NotFoundError(f"{resource_id} not found", status_code=404)
        return sequence.pop(0) if len(sequence) > 1 else sequence[0]

    # NetworkClient

    async def get_cidr(self, network_id, *, deadline=None):
        self._record("get_cidr", network_id)
        if network_id not in self.networks:
            raise NotFoundError(f"Network {network_id} not found", status_code=404)
        return self.networks[network_id]
