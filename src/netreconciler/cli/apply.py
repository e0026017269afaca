"""
CLI command for converging live state to a desired document.
"""

import asyncio
import json
from typing import Optional

from netreconciler.cli.plan import print_plan_summary
from netreconciler.cli.ux import console, header, print_table, success, warning
from netreconciler.clients.vps import VPSClient
from netreconciler.config.loader import ATTACHMENTS, load_document
from netreconciler.config.settings import get_settings
from netreconciler.core.errors import ConfigurationError, ExitCode
from netreconciler.engine import ConvergeResult, Reconciler


def print_apply_summary(result: ConvergeResult, kind: str) -> None:
    print_plan_summary(result.plan)
    if not result.changed:
        return

    header("Converged state")
    if kind == ATTACHMENTS:
        rows = [
            [
                att.network_id,
                att.attachment_id or "",
                att.ip_address or "",
                ", ".join(att.group_order),
                att.floating_ip or "",
                "yes" if att.primary else "",
            ]
            for att in result.entities
        ]
        print_table(
            "Attachments",
            ["Network", "Attachment", "Address", "Groups", "Floating IP", "Primary"],
            rows,
        )
    else:
        rows = [[rule.rule_id, rule.spec.describe()] for rule in result.entities]
        print_table("Rules", ["ID", "Rule"], rows)
    console.print()
    success(f"Applied {len(result.result.applied)} of {len(result.plan)} operations")
    if result.result.failed:
        warning(f"{len(result.result.failed)} best-effort rule deletions failed")


def apply_command(
    desired_path: str,
    strategy: Optional[str] = None,
    timeout: Optional[float] = None,
    output_format: str = "text",
    reconciler: Optional[Reconciler] = None,
) -> int:
    """
    Converge an instance's attachments or a security group's rules.

    Args:
        desired_path: YAML document with the desired state
        strategy: Rule strategy (surgical, full_replace)
        timeout: Overall deadline in seconds (defaults to status_timeout)
        output_format: Output format (text, json)
        reconciler: Preconfigured engine; built from settings when omitted

    Returns:
        Exit code
    """
    document = load_document(desired_path)
    if not document.target_id:
        raise ConfigurationError(
            f"{desired_path} does not name the instance or security group to converge",
            {"path": desired_path},
        )

    if reconciler is None:
        settings = get_settings()
        reconciler = Reconciler.from_client(VPSClient.from_settings(settings), settings)

    if document.kind == ATTACHMENTS:
        coro = reconciler.converge_instance(
            document.target_id, document.attachment_specs(), timeout=timeout
        )
    else:
        coro = reconciler.converge_rules(
            document.target_id, document.rule_specs(), strategy, timeout=timeout
        )
    result = asyncio.run(coro)

    if output_format == "json":
        print(json.dumps(result.to_dict(), indent=2, default=str))
    else:
        print_apply_summary(result, document.kind)
    return ExitCode.SUCCESS
