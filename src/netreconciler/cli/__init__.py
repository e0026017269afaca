from __future__ import annotations

import argparse
from typing import Sequence

from netreconciler import __version__
from netreconciler.cli.apply import apply_command
from netreconciler.cli.plan import plan_command
from netreconciler.config.settings import get_settings
from netreconciler.core.errors import main_with_error_handling
from netreconciler.logging import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="netreconciler",
        description="Reconcile instance network attachments and security group rules",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", default=None, help="Log level (default from settings)")
    subparsers = parser.add_subparsers(dest="command")

    plan_parser = subparsers.add_parser("plan", help="Show the operations needed to converge")
    plan_parser.add_argument("--desired", required=True, help="Desired state YAML")
    plan_parser.add_argument("--observed", required=True, help="Observed state YAML")
    plan_parser.add_argument(
        "--strategy", choices=["surgical", "full_replace"], default=None, help="Rule strategy"
    )
    plan_parser.add_argument("--json", action="store_true", help="Print the plan as JSON")
    plan_parser.add_argument(
        "--detailed-exitcode",
        action="store_true",
        help="Exit with 1 when the plan contains changes",
    )

    apply_parser = subparsers.add_parser("apply", help="Converge live state to the desired document")
    apply_parser.add_argument("--desired", required=True, help="Desired state YAML")
    apply_parser.add_argument(
        "--strategy", choices=["surgical", "full_replace"], default=None, help="Rule strategy"
    )
    apply_parser.add_argument("--timeout", type=float, default=None, help="Deadline in seconds")
    apply_parser.add_argument("--json", action="store_true", help="Print the result as JSON")

    return parser


@main_with_error_handling()
def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.log_level or get_settings().log_level)
    output_format = "json" if getattr(args, "json", False) else "text"

    if args.command == "plan":
        return plan_command(
            args.desired,
            args.observed,
            strategy=args.strategy,
            output_format=output_format,
            detailed_exit_code=args.detailed_exitcode,
        )

    if args.command == "apply":
        return apply_command(
            args.desired,
            strategy=args.strategy,
            timeout=args.timeout,
            output_format=output_format,
        )

    parser.print_help()
    return 1
