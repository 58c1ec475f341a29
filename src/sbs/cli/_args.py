"""Common CLI argument registration utilities."""
from __future__ import annotations

import argparse


def add_json_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output as JSON",
    )


def add_repo_root_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--repo-root",
        type=str,
        help="Override repository root path (default: the git repository containing the cwd)",
    )


def add_work_item_arg(parser: argparse.ArgumentParser) -> None:
    """Add the positional work item ID (``source:id``, ``123`` or ``#123``)."""
    parser.add_argument(
        "work_item",
        help="Work item ID, e.g. github:123, test:quick, or a bare issue number",
    )


def add_force_flag(parser: argparse.ArgumentParser, help_text: str = "Skip confirmation prompts") -> None:
    parser.add_argument(
        "--force",
        "-f",
        action="store_true",
        help=help_text,
    )


def add_dry_run_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--dry-run",
        "-n",
        action="store_true",
        help="Show what would be done without making changes",
    )


def add_standard_flags(parser: argparse.ArgumentParser) -> None:
    """Add --json and --repo-root."""
    add_json_flag(parser)
    add_repo_root_flag(parser)


__all__ = [
    "add_json_flag",
    "add_repo_root_flag",
    "add_work_item_arg",
    "add_force_flag",
    "add_dry_run_flag",
    "add_standard_flags",
]
