"""
sbs list command.

SUMMARY: List sessions with their derived status
"""

from __future__ import annotations

import argparse
import sys

from sbs.cli import OutputFormatter, add_standard_flags, build_gateways, find_repo_root_for

SUMMARY = "List sessions with their derived status"


def register_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--all",
        "-a",
        dest="all_repos",
        action="store_true",
        help="List sessions of every repository (default: current repository only)",
    )
    add_standard_flags(parser)


def main(args: argparse.Namespace) -> int:
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))

    from sbs.core.config.domains import StatusConfig
    from sbs.core.session import SessionStore, StatusDetector
    from sbs.core.session.cleanup import ViewMode, sessions_in_view

    repo_root = find_repo_root_for(args)
    view = ViewMode.GLOBAL if args.all_repos or repo_root is None else ViewMode.REPOSITORY

    records = sessions_in_view(SessionStore().load_all(), view, repo_root)
    gateways = build_gateways(repo_root)
    detector = StatusDetector(
        gateways.terminal,
        gateways.sandbox,
        status_config=StatusConfig(repo_root=repo_root),
    )

    rows = []
    for record in records:
        status = detector.detect(record)
        rows.append(
            {
                "namespaced_id": record.namespaced_id,
                "title": record.issue_title,
                "repository": record.repository_name,
                "branch": record.branch,
                "worktree_path": record.worktree_path,
                "tmux_session": record.tmux_session,
                "resource_status": record.resource_status,
                **status.to_dict(),
            }
        )

    if formatter.json_mode:
        formatter.json_output({"view": view.value, "sessions": rows})
        return 0

    if not rows:
        formatter.text("No sessions found.")
        return 0
    width = max(len(r["namespaced_id"]) for r in rows)
    for r in rows:
        line = f"{r['namespaced_id']:<{width}}  {r['status']:<8}  {r['time_delta']:<8}  {r['title']}"
        if r["resource_status"] and r["resource_status"] != "active":
            line += f"  [{r['resource_status']}]"
        formatter.text(line.rstrip())
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    register_args(parser)
    sys.exit(main(parser.parse_args()))
