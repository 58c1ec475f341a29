"""Shared CLI utility functions.

Commands build their collaborators through these helpers so tests can
monkeypatch one place (``build_gateways``) instead of every command.
"""
from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from sbs.core.gateways import GitGateway, SandboxCliGateway, TmuxGateway
from sbs.core.gateways.base import SandboxGateway, TerminalGateway, VersionControlGateway
from sbs.core.utils.paths import find_repo_root, resolve_repo_root


def get_repo_root(args: argparse.Namespace) -> Path:
    """Repository root from ``--repo-root`` or the git repository containing the cwd.

    Raises:
        FileNotFoundError: Not inside a git repository and no override given.
    """
    if getattr(args, "repo_root", None):
        return Path(args.repo_root).expanduser().resolve()
    return resolve_repo_root()


def find_repo_root_for(args: argparse.Namespace) -> Optional[Path]:
    """Like :func:`get_repo_root` but None outside a repository."""
    if getattr(args, "repo_root", None):
        return Path(args.repo_root).expanduser().resolve()
    return find_repo_root(Path.cwd())


@dataclass
class Gateways:
    terminal: TerminalGateway
    sandbox: SandboxGateway
    git: Optional[VersionControlGateway]


def build_gateways(repo_root: Optional[Path]) -> Gateways:
    return Gateways(
        terminal=TmuxGateway(),
        sandbox=SandboxCliGateway(),
        git=GitGateway(repo_root) if repo_root is not None else None,
    )


def git_factory(repo_root: Path) -> VersionControlGateway:
    return GitGateway(repo_root)


def confirm(prompt: str) -> bool:
    """Ask a yes/no question on the terminal; anything but y/yes is no.

    The prompt goes to stderr so ``--json`` output on stdout stays clean.
    Without an interactive stdin the answer is always no.
    """
    if not sys.stdin.isatty():
        return False
    print(f"{prompt} [y/N]: ", end="", file=sys.stderr, flush=True)
    answer = sys.stdin.readline()
    return answer.strip().lower() in ("y", "yes")


__all__ = [
    "get_repo_root",
    "find_repo_root_for",
    "Gateways",
    "build_gateways",
    "git_factory",
    "confirm",
]
