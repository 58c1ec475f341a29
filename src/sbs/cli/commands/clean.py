"""
sbs clean command.

SUMMARY: Clean up resources of stale sessions and orphaned issue branches

Individual resource failures do not change the exit code; they are listed
in the output.
"""

from __future__ import annotations

import argparse
import sys
from typing import List

from sbs.cli import (
    OutputFormatter,
    add_dry_run_flag,
    add_force_flag,
    add_standard_flags,
    build_gateways,
    confirm,
    find_repo_root_for,
    git_factory,
)

SUMMARY = "Clean up resources of stale sessions and orphaned issue branches"


def register_args(parser: argparse.ArgumentParser) -> None:
    add_dry_run_flag(parser)
    add_force_flag(parser)
    parser.add_argument("--stale", action="store_true", help="Clean stale sessions only (sandboxes + worktrees)")
    parser.add_argument(
        "--orphaned",
        action="store_true",
        help="Delete orphaned issue branches and drop records whose resources are all gone",
    )
    parser.add_argument("--branches", action="store_true", help="Delete orphaned issue branches only")
    parser.add_argument(
        "--all",
        dest="all_resources",
        action="store_true",
        help="Clean sandboxes, worktrees and orphaned branches",
    )
    parser.add_argument(
        "--global",
        dest="global_view",
        action="store_true",
        help="Consider sessions of every repository (default: current repository)",
    )
    parser.add_argument(
        "--keep-records",
        action="store_true",
        help="Keep session records even when all their resources are gone",
    )
    add_standard_flags(parser)


def _confirm_targets(targets: List, branches: List[str]) -> bool:
    if not targets and not branches:
        return True
    if targets:
        print(f"About to clean {len(targets)} stale session(s):", file=sys.stderr)
        for record in targets:
            print(f"  {record.namespaced_id}: {record.issue_title}", file=sys.stderr)
    if branches:
        print(f"About to delete {len(branches)} orphaned branch(es):", file=sys.stderr)
        for branch in branches:
            print(f"  {branch}", file=sys.stderr)
    return confirm("Proceed?")


def _render_text(formatter: OutputFormatter, report, dry_run: bool) -> None:
    results = report.results
    for detail in results.details:
        formatter.text(detail)
    if dry_run:
        formatter.text(f"Dry run: would clean {results.would_clean} session(s)")
        if results.orphaned_branches:
            formatter.text(f"Dry run: would delete {len(results.orphaned_branches)} orphaned branch(es)")
    else:
        formatter.text(
            f"Cleaned {results.cleaned_sessions} session(s): "
            f"{results.cleaned_sandboxes} sandbox(es), {results.cleaned_worktrees} worktree(s), "
            f"{results.cleaned_branches} branch(es); {results.removed_records} record(s) removed"
        )
    if results.errors:
        formatter.text(f"{len(results.errors)} error(s):")
        for err in results.errors:
            formatter.text(f"  - {err}")


def main(args: argparse.Namespace) -> int:
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))

    from sbs.core.config.domains import CleanupConfig
    from sbs.core.session import CleanupManager, Reconciler, SessionStore
    from sbs.core.session.cleanup import ViewMode, build_cli_options, parse_cleanup_mode, select_cleanup_mode

    repo_root = find_repo_root_for(args)
    cfg = CleanupConfig(repo_root=repo_root)
    mode = select_cleanup_mode(
        stale=args.stale,
        orphaned=args.orphaned,
        branches=args.branches,
        all_resources=args.all_resources,
        default=parse_cleanup_mode(cfg.default_mode),
    )
    view = ViewMode.GLOBAL if args.global_view or repo_root is None else ViewMode.REPOSITORY
    options = build_cli_options(
        dry_run=args.dry_run,
        force=args.force,
        mode=mode,
        keep_records=args.keep_records,
        max_workers=cfg.max_workers,
        view_mode=view,
        repository_root=repo_root,
    )

    gateways = build_gateways(repo_root)
    manager = CleanupManager(gateways.terminal, gateways.sandbox, gateways.git, git_factory=git_factory)
    report = Reconciler(SessionStore(), manager).run(options, confirm=_confirm_targets)

    if report.cancelled:
        formatter.text("Cancelled (use --force to skip confirmation).")
        if formatter.json_mode:
            formatter.json_output({"mode": mode.value, "cancelled": True})
        return 0

    if formatter.json_mode:
        formatter.json_output(
            {
                "mode": mode.value,
                "view": view.value,
                "dry_run": options.dry_run,
                "targets": [r.namespaced_id for r in report.targets],
                **report.results.to_dict(),
            }
        )
    else:
        _render_text(formatter, report, options.dry_run)
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    register_args(parser)
    sys.exit(main(parser.parse_args()))
