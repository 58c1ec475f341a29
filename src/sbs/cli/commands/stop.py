"""
sbs stop command.

SUMMARY: Stop a work item's session (kill tmux, optionally delete the sandbox)
"""

from __future__ import annotations

import argparse
import sys

from sbs.cli import OutputFormatter, add_standard_flags, add_work_item_arg, build_gateways, confirm, find_repo_root_for
from sbs.core.exceptions import SessionNotFoundError, WorkItemIdError

SUMMARY = "Stop a work item's session (kill tmux, optionally delete the sandbox)"


def register_args(parser: argparse.ArgumentParser) -> None:
    add_work_item_arg(parser)
    parser.add_argument(
        "--delete-sandbox",
        action="store_true",
        help="Also delete the session's sandbox",
    )
    parser.add_argument(
        "--yes",
        "-y",
        action="store_true",
        help="Do not ask before deleting the sandbox",
    )
    add_standard_flags(parser)


def main(args: argparse.Namespace) -> int:
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))

    from sbs.core.session import SessionLifecycle, SessionStore
    from sbs.core.workitem import parse_work_item_id

    try:
        item = parse_work_item_id(args.work_item)
    except WorkItemIdError as e:
        formatter.error(e, error_code="invalid_work_item")
        return 1

    delete_sandbox = bool(args.delete_sandbox)
    if delete_sandbox and not args.yes:
        delete_sandbox = confirm(f"Delete the sandbox of {item.namespaced_id}?")
        if not delete_sandbox:
            formatter.text("Keeping sandbox.")

    repo_root = find_repo_root_for(args)
    gateways = build_gateways(repo_root)
    lifecycle = SessionLifecycle(SessionStore(), gateways.terminal, gateways.git, gateways.sandbox)
    try:
        record = lifecycle.stop(item.namespaced_id, delete_sandbox=delete_sandbox)
    except SessionNotFoundError as e:
        formatter.error(e, error_code="not_found")
        return 1

    formatter.success(
        {"session": record.to_dict(), "sandbox_deleted": delete_sandbox},
        f"Stopped {record.namespaced_id}",
    )
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    register_args(parser)
    sys.exit(main(parser.parse_args()))
