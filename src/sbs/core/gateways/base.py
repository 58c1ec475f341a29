"""Capability contracts for external resources.

Every ``*_exists`` method answers True/False only when it can tell; when the
underlying tool cannot be queried it raises :class:`GatewayError`. Callers
treat that as "cannot tell", never as "absent".
"""
from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Mapping, Optional, Protocol, Sequence, runtime_checkable


@runtime_checkable
class TerminalGateway(Protocol):
    """Terminal multiplexer sessions (tmux)."""

    def session_exists(self, name: str) -> bool:
        ...

    def create_session(
        self,
        name: str,
        working_dir: Path,
        *,
        command: Optional[Sequence[str]] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> None:
        ...

    def kill_session(self, name: str) -> None:
        ...


@runtime_checkable
class SandboxGateway(Protocol):
    """Isolated execution sandboxes."""

    def sandbox_exists(self, name: str) -> bool:
        ...

    def delete_sandbox(self, name: str) -> None:
        ...

    def read_file(self, name: str, path: str, *, timeout: Optional[float] = None) -> bytes:
        ...


@runtime_checkable
class VersionControlGateway(Protocol):
    """Branches and worktrees of one repository."""

    def branch_exists(self, name: str) -> bool:
        ...

    def current_branch(self) -> Optional[str]:
        ...

    def create_branch(self, name: str) -> None:
        ...

    def create_worktree(self, branch: str, path: Path) -> None:
        ...

    def remove_worktree(self, path: Path) -> None:
        ...

    def list_worktrees(self) -> List[Dict[str, str]]:
        ...

    def worktree_exists(self, path: Path) -> bool:
        ...

    def list_issue_branches(self) -> List[str]:
        ...

    def delete_branch(self, name: str, *, force: bool = False) -> None:
        ...


__all__ = ["TerminalGateway", "SandboxGateway", "VersionControlGateway"]
