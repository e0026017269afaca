"""Sequential execution of reconciliation plans against the control plane."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, Sequence

import structlog
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt, wait_fixed

from netreconciler.clients.base import AddressClient, AttachmentClient, NetworkClient, RuleClient
from netreconciler.config.settings import DEFAULT_TRANSIENT_SIGNATURES
from netreconciler.core.deadline import Deadline
from netreconciler.core.errors import (
    APIError,
    ConfigurationError,
    ConflictError,
    DeadlineExceededError,
    NotFoundError,
    OperationCancelledError,
    ReconcileError,
    RetriesExhaustedError,
)
from netreconciler.domain.models import AttachmentObserved
from netreconciler.execution.candidates import DEFAULT_OFFSETS, candidate_addresses
from netreconciler.execution.classifier import ErrorClass, classify
from netreconciler.execution.results import AppliedResult, OperationOutcome, OutcomeStatus
from netreconciler.planning.operations import (
    AssociateAddress,
    CreateAttachment,
    CreateRule,
    DeleteAttachment,
    DeleteRule,
    DisassociateAddress,
    Operation,
    OperationKind,
    ReconciliationPlan,
    UpdateAttachmentGroups,
)

logger = structlog.get_logger()

StepResult = tuple[OutcomeStatus, int]


@dataclass
class RunContext:
    """State owned by a single ``apply`` call."""

    deadline: Deadline
    attachment_ids: dict[tuple[str, str], str] = field(default_factory=dict)


class ApplyExecutor:
    """Applies plan steps one at a time, in plan order.

    No step starts once the deadline is cancelled or expired. A fatal error
    aborts the remaining steps and nothing already applied is rolled back;
    re-planning against fresh observed state produces the corrective plan.
    Per-call state lives in a ``RunContext``, so one executor may serve
    concurrent ``apply`` calls.
    """

    def __init__(
        self,
        attachments: AttachmentClient | None = None,
        addresses: AddressClient | None = None,
        rules: RuleClient | None = None,
        networks: NetworkClient | None = None,
        *,
        create_attempts: int = 3,
        create_backoff: float = 2.0,
        candidate_offsets: Iterable[int] = DEFAULT_OFFSETS,
        signatures: Sequence[str] = DEFAULT_TRANSIENT_SIGNATURES,
    ) -> None:
        self._attachments = attachments
        self._addresses = addresses
        self._rules = rules
        self._networks = networks
        self._create_attempts = max(create_attempts, 1)
        self._create_backoff = create_backoff
        self._candidate_offsets = tuple(candidate_offsets)
        self._signatures = tuple(signatures)
        self._handlers: dict[OperationKind, Callable[[Any, RunContext], Awaitable[StepResult]]] = {
            OperationKind.CREATE_ATTACHMENT: self._create_attachment,
            OperationKind.DELETE_ATTACHMENT: self._delete_attachment,
            OperationKind.UPDATE_ATTACHMENT_GROUPS: self._update_groups,
            OperationKind.ASSOCIATE_ADDRESS: self._associate,
            OperationKind.DISASSOCIATE_ADDRESS: self._disassociate,
            OperationKind.CREATE_RULE: self._create_rule,
            OperationKind.DELETE_RULE: self._delete_rule,
        }

    async def apply(self, plan: ReconciliationPlan, deadline: Deadline | None = None) -> AppliedResult:
        """Execute ``plan``; failures are reported on the result, not raised."""
        run = RunContext(deadline or Deadline.never())
        result = AppliedResult(plan=plan)
        started = time.monotonic()

        for index, op in enumerate(plan):
            try:
                run.deadline.check(op.kind.value)
            except (DeadlineExceededError, OperationCancelledError) as exc:
                result.error = exc
                self._mark_not_started(result, plan.operations[index:])
                logger.warning(
                    "plan_interrupted",
                    reason=type(exc).__name__,
                    completed=index,
                    remaining=len(plan) - index,
                )
                break

            try:
                status, attempts = await self._handlers[op.kind](op, run)
            except ReconcileError as exc:
                error = self._annotate(exc, op)
                klass = classify(error, self._signatures)
                attempts = int(error.details.get("attempts", 1))
                best_effort = isinstance(op, DeleteRule) and op.best_effort
                result.outcomes.append(
                    OperationOutcome(
                        op,
                        OutcomeStatus.FAILED,
                        classification=klass,
                        attempts=attempts,
                        error=error,
                        best_effort=best_effort,
                    )
                )
                if best_effort and isinstance(error, APIError):
                    logger.warning(
                        "best_effort_delete_failed",
                        operation=op.kind.value,
                        key=str(op.key),
                        error=str(error),
                    )
                    continue
                logger.error(
                    "operation_failed",
                    operation=op.kind.value,
                    key=str(op.key),
                    classification=klass.value,
                    attempts=attempts,
                    error=str(error),
                )
                result.error = error
                self._mark_not_started(result, plan.operations[index + 1 :])
                break

            result.outcomes.append(OperationOutcome(op, status, attempts=attempts))
            logger.info(
                "operation_applied" if status is OutcomeStatus.APPLIED else "operation_skipped",
                operation=op.kind.value,
                key=str(op.key),
                attempts=attempts,
            )

        result.duration_seconds = time.monotonic() - started
        logger.info(
            "plan_applied",
            success=result.success,
            operations=len(plan),
            applied=len(result.applied),
            failed=len(result.failed),
            not_started=len(result.not_started),
        )
        return result

    # Attachments

    async def _create_attachment(self, op: CreateAttachment, run: RunContext) -> StepResult:
        client = self._require(self._attachments, "attachment")
        attempts = 0

        async def create(fixed_ip: str | None) -> AttachmentObserved:
            nonlocal attempts
            attempts += 1
            return await client.create_attachment(
                op.instance_id,
                op.network_id,
                op.security_group_ids,
                fixed_ip=fixed_ip,
                deadline=run.deadline,
            )

        try:
            created = await self._create_with_retry(op, create, run.deadline)
        except APIError as exc:
            if not self._is_transient(exc):
                raise
            retried = attempts
            created, last_error = None, exc
            if op.fixed_ip is None:
                created, last_error = await self._create_from_candidates(op, create, exc, run.deadline)
            if created is None:
                raise RetriesExhaustedError(
                    f"Creating attachment on network {op.network_id} failed after "
                    f"{retried} attempts: {last_error.remote_error}",
                    operation=op.kind.value,
                    key=op.key,
                    remote_error=last_error.remote_error,
                    status_code=last_error.status_code,
                    details={"attempts": retried, "candidates_tried": attempts - retried},
                ) from last_error

        if created.attachment_id:
            run.attachment_ids[(op.instance_id, op.network_id)] = created.attachment_id
        return OutcomeStatus.APPLIED, attempts

    async def _create_with_retry(
        self,
        op: CreateAttachment,
        create: Callable[[str | None], Awaitable[AttachmentObserved]],
        deadline: Deadline,
    ) -> AttachmentObserved:
        def log_retry(state: RetryCallState) -> None:
            error = state.outcome.exception() if state.outcome else None
            logger.warning(
                "create_attachment_retry",
                network_id=op.network_id,
                attempt=state.attempt_number,
                error=str(error),
            )

        async for attempt in AsyncRetrying(
            sleep=deadline.sleep,
            stop=stop_after_attempt(self._create_attempts),
            wait=wait_fixed(self._create_backoff),
            retry=retry_if_exception(self._is_transient),
            before_sleep=log_retry,
            reraise=True,
        ):
            with attempt:
                return await create(op.fixed_ip)
        raise AssertionError("unreachable")  # pragma: no cover

    async def _create_from_candidates(
        self,
        op: CreateAttachment,
        create: Callable[[str | None], Awaitable[AttachmentObserved]],
        last_error: APIError,
        deadline: Deadline,
    ) -> tuple[AttachmentObserved | None, APIError]:
        if self._networks is None:
            return None, last_error
        try:
            cidr = await self._networks.get_cidr(op.network_id, deadline=deadline)
        except APIError as exc:
            logger.warning("candidate_cidr_unavailable", network_id=op.network_id, error=str(exc))
            return None, last_error

        for candidate in candidate_addresses(cidr, self._candidate_offsets):
            deadline.check(op.kind.value)
            try:
                created = await create(candidate)
            except APIError as exc:
                if not self._is_transient(exc):
                    raise
                logger.warning(
                    "candidate_address_rejected",
                    network_id=op.network_id,
                    candidate=candidate,
                    error=str(exc),
                )
                last_error = exc
                continue
            logger.info("candidate_address_accepted", network_id=op.network_id, candidate=candidate)
            return created, last_error
        return None, last_error

    async def _delete_attachment(self, op: DeleteAttachment, run: RunContext) -> StepResult:
        client = self._require(self._attachments, "attachment")
        attachment_id = op.attachment_id or await self._resolve_attachment_id(
            op.instance_id, op.network_id, run, required=False
        )
        if attachment_id is None:
            logger.warning("attachment_already_absent", network_id=op.network_id)
            return OutcomeStatus.SKIPPED, 0
        try:
            await client.delete_attachment(op.instance_id, attachment_id, deadline=run.deadline)
        except NotFoundError:
            logger.warning("attachment_already_absent", network_id=op.network_id, attachment_id=attachment_id)
            return OutcomeStatus.SKIPPED, 1
        finally:
            run.attachment_ids.pop((op.instance_id, op.network_id), None)
        return OutcomeStatus.APPLIED, 1

    async def _update_groups(self, op: UpdateAttachmentGroups, run: RunContext) -> StepResult:
        client = self._require(self._attachments, "attachment")
        attachment_id = op.attachment_id or await self._resolve_attachment_id(
            op.instance_id, op.network_id, run
        )
        try:
            await client.update_attachment_groups(
                op.instance_id, attachment_id, op.security_group_ids, deadline=run.deadline
            )
        except NotFoundError as exc:
            raise self._absent(op, exc) from exc
        return OutcomeStatus.APPLIED, 1

    # Addresses

    async def _associate(self, op: AssociateAddress, run: RunContext) -> StepResult:
        client = self._require(self._addresses, "address")
        attachment_id = op.attachment_id or await self._resolve_attachment_id(
            op.instance_id, op.network_id, run
        )
        try:
            address = await client.get_address(op.floating_ip_id, deadline=run.deadline)
        except NotFoundError as exc:
            raise self._absent(op, exc) from exc

        if address.device_id == attachment_id:
            return OutcomeStatus.SKIPPED, 0
        if address.is_associated:
            raise ConflictError(
                f"Floating IP {op.floating_ip_id} is already bound to {address.device_id}",
                operation=op.kind.value,
                key=op.key,
                remote_id=address.device_id,
            )
        await client.associate(op.floating_ip_id, op.instance_id, attachment_id, deadline=run.deadline)
        return OutcomeStatus.APPLIED, 1

    async def _disassociate(self, op: DisassociateAddress, run: RunContext) -> StepResult:
        client = self._require(self._addresses, "address")
        try:
            address = await client.get_address(op.floating_ip_id, deadline=run.deadline)
        except NotFoundError as exc:
            raise self._absent(op, exc) from exc
        if not address.is_associated:
            raise ConflictError(
                f"Floating IP {op.floating_ip_id} is not bound to any attachment",
                operation=op.kind.value,
                key=op.key,
                remote_id=op.floating_ip_id,
            )
        await client.disassociate(op.floating_ip_id, deadline=run.deadline)
        return OutcomeStatus.APPLIED, 1

    # Rules

    async def _create_rule(self, op: CreateRule, run: RunContext) -> StepResult:
        client = self._require(self._rules, "rule")
        await client.create_rule(op.group_id, op.rule, deadline=run.deadline)
        return OutcomeStatus.APPLIED, 1

    async def _delete_rule(self, op: DeleteRule, run: RunContext) -> StepResult:
        client = self._require(self._rules, "rule")
        try:
            await client.delete_rule(op.group_id, op.rule.rule_id, deadline=run.deadline)
        except NotFoundError:
            logger.warning("rule_already_absent", group_id=op.group_id, rule_id=op.rule.rule_id)
            return OutcomeStatus.SKIPPED, 1
        return OutcomeStatus.APPLIED, 1

    # Helpers

    async def _resolve_attachment_id(
        self,
        instance_id: str,
        network_id: str,
        run: RunContext,
        *,
        required: bool = True,
    ) -> str | None:
        cached = run.attachment_ids.get((instance_id, network_id))
        if cached:
            return cached
        client = self._require(self._attachments, "attachment")
        for attachment in await client.list_attachments(instance_id, deadline=run.deadline):
            if attachment.attachment_id:
                run.attachment_ids[(instance_id, attachment.network_id)] = attachment.attachment_id
        attachment_id = run.attachment_ids.get((instance_id, network_id))
        if attachment_id is None and required:
            raise ConflictError(
                f"No attachment on network {network_id} for instance {instance_id}",
                key=network_id,
                remote_id=instance_id,
            )
        return attachment_id

    def _is_transient(self, error: BaseException) -> bool:
        return isinstance(error, APIError) and classify(error, self._signatures) is ErrorClass.TRANSIENT

    @staticmethod
    def _absent(op: Operation, error: APIError) -> ConflictError:
        return ConflictError(
            f"Required resource for {op.describe()} is absent: {error.remote_error}",
            operation=op.kind.value,
            key=op.key,
            remote_error=error.remote_error,
            status_code=error.status_code,
        )

    @staticmethod
    def _annotate(error: ReconcileError, op: Operation) -> ReconcileError:
        if isinstance(error, APIError):
            return error.with_context(operation=op.kind.value, key=op.key)
        error.details.setdefault("operation", op.kind.value)
        error.details.setdefault("key", op.key)
        return error

    @staticmethod
    def _mark_not_started(result: AppliedResult, remaining: Sequence[Operation]) -> None:
        result.outcomes.extend(OperationOutcome(op, OutcomeStatus.NOT_STARTED) for op in remaining)

    @staticmethod
    def _require(client: Any, name: str) -> Any:
        if client is None:
            raise ConfigurationError(f"No {name} client configured for this plan")
        return client
