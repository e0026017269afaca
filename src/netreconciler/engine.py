"""Reconciliation facade tying planning, execution and polling together."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Callable, Hashable, Iterable, Sequence

from netreconciler.clients.base import (
    AddressClient,
    AttachmentClient,
    NetworkClient,
    RuleClient,
    StatusClient,
)
from netreconciler.config.settings import ReconcilerSettings, get_settings
from netreconciler.core.deadline import Deadline
from netreconciler.core.errors import ConfigurationError
from netreconciler.domain.models import (
    AttachmentObserved,
    AttachmentSpec,
    RuleObserved,
    RuleSpec,
)
from netreconciler.execution.executor import ApplyExecutor
from netreconciler.execution.results import AppliedResult
from netreconciler.execution.waiter import StatusPredicate, StatusWaiter, status_is
from netreconciler.logging import log_scope
from netreconciler.ordering import reorder_ids, reorder_to_match
from netreconciler.planning.operations import ReconciliationPlan, RuleStrategy
from netreconciler.planning.planner import plan_attachments, plan_rules


def _entity_key(entity: Any) -> Hashable:
    return entity.key


@dataclass
class ConvergeResult:
    """Plan, execution outcome and fresh state of one converge call."""

    plan: ReconciliationPlan
    result: AppliedResult
    entities: list[Any] = field(default_factory=list)
    status: str | None = None

    @property
    def changed(self) -> bool:
        return self.plan.has_changes

    def to_dict(self) -> dict[str, Any]:
        return {
            "plan": self.plan.to_dict(),
            "result": self.result.to_dict(),
            "status": self.status,
            "entities": [entity.to_dict() for entity in self.entities],
        }


class Reconciler:
    """Computes and applies minimal plans for attachments and rule lists.

    Clients are injected explicitly; a single object implementing every
    client protocol (such as ``VPSClient``) may be passed via ``from_client``.
    """

    def __init__(
        self,
        attachments: AttachmentClient | None = None,
        addresses: AddressClient | None = None,
        rules: RuleClient | None = None,
        status: StatusClient | None = None,
        networks: NetworkClient | None = None,
        *,
        settings: ReconcilerSettings | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._attachments = attachments
        self._rules = rules
        self._status = status
        self._executor = ApplyExecutor(
            attachments,
            addresses,
            rules,
            networks,
            create_attempts=self._settings.create_attempts,
            create_backoff=self._settings.create_backoff,
            candidate_offsets=self._settings.candidate_offsets,
            signatures=self._settings.all_transient_signatures,
        )

    @classmethod
    def from_client(cls, client: Any, settings: ReconcilerSettings | None = None) -> "Reconciler":
        return cls(client, client, client, client, client, settings=settings)

    @property
    def settings(self) -> ReconcilerSettings:
        return self._settings

    def reconcile(
        self,
        instance_id: str,
        desired: Sequence[AttachmentSpec],
        observed: Sequence[AttachmentObserved],
    ) -> ReconciliationPlan:
        return plan_attachments(instance_id, desired, observed)

    def reconcile_rules(
        self,
        group_id: str,
        desired: Sequence[RuleSpec],
        observed: Sequence[RuleObserved],
        strategy: RuleStrategy | str | None = None,
    ) -> ReconciliationPlan:
        return plan_rules(group_id, desired, observed, strategy or self._settings.rule_strategy)

    async def apply(self, plan: ReconciliationPlan, deadline: Deadline | None = None) -> AppliedResult:
        return await self._executor.apply(plan, deadline)

    async def wait_for_status(
        self,
        resource_id: str,
        predicate: StatusPredicate | None = None,
        *,
        timeout: float | None = None,
        deadline: Deadline | None = None,
    ) -> str | None:
        """Poll until ``predicate`` holds; returns None if the resource is gone."""
        if self._status is None:
            raise ConfigurationError("No status client configured")
        waiter = StatusWaiter(self._status, self._settings.poll_interval)
        bounded = (deadline or Deadline.never()).child(timeout)
        return await waiter.wait_until(
            resource_id,
            predicate or status_is(self._settings.active_status),
            bounded,
        )

    def reorder_to_match(
        self,
        order: Sequence[Hashable],
        fresh: Iterable[Any],
        key: Callable[[Any], Hashable] = _entity_key,
    ) -> list[Any]:
        return reorder_to_match(order, fresh, key)

    async def converge_instance(
        self,
        instance_id: str,
        desired: Sequence[AttachmentSpec],
        *,
        timeout: float | None = None,
        deadline: Deadline | None = None,
    ) -> ConvergeResult:
        """Bring an instance's attachments to ``desired`` and return fresh state.

        Raises the first fatal error of the apply phase. When anything changed
        the instance is polled until it reports the active status again.
        """
        attachments = self._need(self._attachments, "attachment")
        deadline = self._bounded(deadline, timeout)
        with log_scope(instance_id=instance_id) as log:
            observed = await attachments.list_attachments(instance_id, deadline=deadline)
            plan = self.reconcile(instance_id, desired, observed)
            log.info("instance_plan", operations=len(plan), counts=plan.counts())

            result = await self.apply(plan, deadline)
            result.raise_for_error()

            status = None
            if plan.has_changes and self._status is not None:
                status = await self.wait_for_status(instance_id, deadline=deadline)

            fresh = await attachments.list_attachments(instance_id, deadline=deadline)
            ordered = self.reorder_to_match([spec.key for spec in desired], fresh)
            present = [_present_attachment(att, desired) for att in ordered]
            log.info("instance_converged", changed=plan.has_changes, attachments=len(present))
        return ConvergeResult(plan, result, present, status)

    async def converge_rules(
        self,
        group_id: str,
        desired: Sequence[RuleSpec],
        strategy: RuleStrategy | str | None = None,
        *,
        timeout: float | None = None,
        deadline: Deadline | None = None,
    ) -> ConvergeResult:
        rules = self._need(self._rules, "rule")
        deadline = self._bounded(deadline, timeout)
        with log_scope(group_id=group_id) as log:
            observed = await rules.list_rules(group_id, deadline=deadline)
            plan = self.reconcile_rules(group_id, desired, observed, strategy)
            log.info("rule_plan", operations=len(plan), counts=plan.counts())

            result = await self.apply(plan, deadline)
            result.raise_for_error()

            fresh = await rules.list_rules(group_id, deadline=deadline)
            ordered = self.reorder_to_match([rule.key for rule in desired], fresh)
            log.info("rules_converged", changed=plan.has_changes, rules=len(ordered))
        return ConvergeResult(plan, result, ordered)

    def _bounded(self, deadline: Deadline | None, timeout: float | None) -> Deadline:
        if timeout is None and deadline is None:
            timeout = self._settings.status_timeout
        return (deadline or Deadline.never()).child(timeout)

    @staticmethod
    def _need(client: Any, name: str) -> Any:
        if client is None:
            raise ConfigurationError(f"No {name} client configured")
        return client


def _present_attachment(
    attachment: AttachmentObserved, desired: Sequence[AttachmentSpec]
) -> AttachmentObserved:
    """Carry the caller's primary flag and group order onto fresh state."""
    spec = next((s for s in desired if s.key == attachment.key), None)
    if spec is None:
        return dataclasses.replace(
            attachment, group_order=tuple(sorted(attachment.security_group_ids))
        )
    return dataclasses.replace(
        attachment,
        primary=spec.primary,
        group_order=tuple(reorder_ids(spec.group_order, attachment.security_group_ids)),
    )
