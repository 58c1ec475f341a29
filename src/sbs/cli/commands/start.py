"""
sbs start command.

SUMMARY: Start (or resume) the session for a work item
"""

from __future__ import annotations

import argparse
import sys

from sbs.cli import OutputFormatter, add_standard_flags, add_work_item_arg, build_gateways, get_repo_root
from sbs.core.exceptions import ProvisioningError, WorkItemIdError

SUMMARY = "Start (or resume) the session for a work item"


def register_args(parser: argparse.ArgumentParser) -> None:
    add_work_item_arg(parser)
    parser.add_argument(
        "--title",
        default="",
        help="Work item title (used in the branch name)",
    )
    add_standard_flags(parser)


def main(args: argparse.Namespace) -> int:
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))

    from sbs.core.config.domains import WorkspaceConfig
    from sbs.core.session import Repository, SessionLifecycle, SessionStore
    from sbs.core.workitem import parse_work_item_id

    try:
        item = parse_work_item_id(args.work_item)
    except WorkItemIdError as e:
        formatter.error(e, error_code="invalid_work_item")
        return 1
    if args.title:
        item = item.with_title(args.title)

    repo_root = get_repo_root(args)
    gateways = build_gateways(repo_root)
    repository = Repository(name=gateways.git.repository_name(), root=repo_root)
    lifecycle = SessionLifecycle(
        SessionStore(),
        gateways.terminal,
        gateways.git,
        gateways.sandbox,
        workspace_config=WorkspaceConfig(repo_root=repo_root),
    )

    try:
        record = lifecycle.start(item, repository)
    except ProvisioningError as e:
        formatter.error(e, error_code="provisioning_failed")
        return 1

    formatter.success(
        {"session": record.to_dict()},
        f"Started {record.namespaced_id}\n"
        f"  Branch:   {record.branch}\n"
        f"  Worktree: {record.worktree_path}\n"
        f"  Attach:   tmux attach -t {record.tmux_session}",
    )
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    register_args(parser)
    sys.exit(main(parser.parse_args()))
