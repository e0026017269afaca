"""
CLI command for planning (dry-run) a reconciliation.
"""

import json
from typing import Optional

from netreconciler.cli.ux import console, header, info, success
from netreconciler.config.loader import ATTACHMENTS, StateDocument, load_document
from netreconciler.core.errors import ConfigurationError, ExitCode
from netreconciler.planning.operations import OperationKind, ReconciliationPlan
from netreconciler.planning.planner import plan_attachments, plan_rules

_KIND_STYLES = {
    OperationKind.CREATE_ATTACHMENT: ("+", "create"),
    OperationKind.ASSOCIATE_ADDRESS: ("+", "create"),
    OperationKind.CREATE_RULE: ("+", "create"),
    OperationKind.DELETE_ATTACHMENT: ("-", "delete"),
    OperationKind.DISASSOCIATE_ADDRESS: ("-", "delete"),
    OperationKind.DELETE_RULE: ("-", "delete"),
    OperationKind.UPDATE_ATTACHMENT_GROUPS: ("~", "update"),
}


def build_plan(
    desired: StateDocument, observed: StateDocument, strategy: Optional[str] = None
) -> ReconciliationPlan:
    """Plan ``desired`` against ``observed``; both documents must be of one kind."""
    if desired.kind != observed.kind:
        raise ConfigurationError(
            f"Cannot plan {desired.kind} against {observed.kind}",
            {"desired": desired.kind, "observed": observed.kind},
        )
    target = desired.target_id or observed.target_id
    if desired.kind == ATTACHMENTS:
        return plan_attachments(target, desired.attachment_specs(), observed.observed_attachments())
    return plan_rules(
        target,
        desired.rule_specs(),
        observed.observed_rules(),
        strategy or "surgical",
    )


def print_plan_summary(plan: ReconciliationPlan) -> None:
    """Print plan steps in execution order."""
    target = plan.metadata.get("instance_id") or plan.metadata.get("group_id") or "?"
    header(f"Plan: {plan.metadata.get('resource', 'resources')} for {target}")
    console.print()

    if not plan.has_changes:
        success("No changes. Observed state matches desired state.")
        console.print()
        return

    for step, op in enumerate(plan, 1):
        symbol, style = _KIND_STYLES[op.kind]
        console.print(f"  [muted]{step:>3}.[/muted] [{style}]{symbol} {op.describe()}[/{style}]")
    console.print()

    counts = ", ".join(f"{count} {kind}" for kind, count in plan.counts().items())
    console.print(f"[bold]Total:[/bold] {len(plan)} operations ({counts})")
    console.print()
    info("Run 'netreconciler apply' with the desired file to converge.")


def print_plan_json(plan: ReconciliationPlan) -> None:
    print(json.dumps(plan.to_dict(), indent=2, default=str))


def plan_command(
    desired_path: str,
    observed_path: str,
    strategy: Optional[str] = None,
    output_format: str = "text",
    detailed_exit_code: bool = False,
) -> int:
    """
    Preview the operations a reconciliation would perform.

    Args:
        desired_path: YAML document with the desired state
        observed_path: YAML document with the observed state
        strategy: Rule strategy (surgical, full_replace)
        output_format: Output format (text, json)
        detailed_exit_code: Return 1 when the plan has changes

    Returns:
        Exit code
    """
    plan = build_plan(load_document(desired_path), load_document(observed_path), strategy)

    if output_format == "json":
        print_plan_json(plan)
    else:
        print_plan_summary(plan)

    if detailed_exit_code and plan.has_changes:
        return ExitCode.WARNING
    return ExitCode.SUCCESS
