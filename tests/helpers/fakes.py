"""In-memory resource gateways.

Each fake records the calls it receives so tests can assert that nothing
destructive happened (dry runs) or that a failure was isolated.
"""
from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Set

from sbs.core.exceptions import BranchDeletionError, GatewayError


class FakeTerminal:
    def __init__(self, sessions: Optional[Set[str]] = None, *, broken: Optional[Set[str]] = None) -> None:
        self.sessions: Set[str] = set(sessions or ())
        # Names whose existence check fails ("cannot tell").
        self.broken: Set[str] = set(broken or ())
        self.created: List[Dict[str, object]] = []
        self.killed: List[str] = []
        self.fail_create = False

    def session_exists(self, name: str) -> bool:
        if name in self.broken:
            raise GatewayError(f"tmux unavailable for {name}", resource=name, operation="has-session")
        return name in self.sessions

    def create_session(
        self,
        name: str,
        working_dir: Path,
        *,
        command: Optional[Sequence[str]] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> None:
        if self.fail_create:
            raise GatewayError("tmux new-session failed", resource=name, operation="new-session")
        self.created.append({"name": name, "cwd": Path(working_dir), "command": command, "env": dict(env or {})})
        self.sessions.add(name)

    def kill_session(self, name: str) -> None:
        self.killed.append(name)
        self.sessions.discard(name)


class FakeSandbox:
    def __init__(
        self,
        sandboxes: Optional[Set[str]] = None,
        *,
        files: Optional[Dict[str, bytes]] = None,
        fail_delete: Optional[Set[str]] = None,
        fail_check: Optional[Set[str]] = None,
    ) -> None:
        self.sandboxes: Set[str] = set(sandboxes or ())
        # "<sandbox>:<path>" -> content
        self.files: Dict[str, bytes] = dict(files or {})
        self.fail_delete: Set[str] = set(fail_delete or ())
        self.fail_check: Set[str] = set(fail_check or ())
        self.deleted: List[str] = []
        self.delete_calls: List[str] = []
        self.reads: List[str] = []

    def sandbox_exists(self, name: str) -> bool:
        if name in self.fail_check:
            raise GatewayError(f"sandbox list failed for {name}", resource=name, operation="list")
        return name in self.sandboxes

    def delete_sandbox(self, name: str) -> None:
        self.delete_calls.append(name)
        if name in self.fail_delete:
            raise GatewayError(f"permission denied deleting {name}", resource=name, operation="delete")
        self.sandboxes.discard(name)
        self.deleted.append(name)

    def read_file(self, name: str, path: str, *, timeout: Optional[float] = None) -> bytes:
        self.reads.append(f"{name}:{path}")
        key = f"{name}:{path}"
        if name not in self.sandboxes or key not in self.files:
            raise GatewayError(f"cannot read {path} from {name}", resource=name, operation="read-file")
        return self.files[key]


class FakeGit:
    def __init__(
        self,
        *,
        branches: Optional[Sequence[str]] = None,
        current: str = "main",
        worktrees: Optional[Set[str]] = None,
        name: str = "demo",
    ) -> None:
        self.branches: List[str] = list(branches or [])
        self.current = current
        self.worktrees: Set[str] = set(worktrees or ())
        self.name = name
        self.deleted_branches: List[str] = []
        self.removed_worktrees: List[str] = []
        self.fail_worktree_remove: Set[str] = set()
        self.fail_create_worktree = False

    def branch_exists(self, name: str) -> bool:
        return name in self.branches

    def current_branch(self) -> Optional[str]:
        return self.current

    def create_branch(self, name: str) -> None:
        if name not in self.branches:
            self.branches.append(name)

    def create_worktree(self, branch: str, path: Path) -> None:
        if self.fail_create_worktree:
            raise GatewayError("worktree add failed", resource=str(path), operation="add-worktree")
        Path(path).mkdir(parents=True, exist_ok=True)
        self.worktrees.add(str(path))

    def remove_worktree(self, path: Path) -> None:
        if str(path) in self.fail_worktree_remove:
            raise GatewayError("worktree is locked", resource=str(path), operation="remove-worktree")
        self.worktrees.discard(str(path))
        self.removed_worktrees.append(str(path))

    def list_worktrees(self) -> List[Dict[str, str]]:
        return [{"worktree": p} for p in sorted(self.worktrees)]

    def worktree_exists(self, path: Path) -> bool:
        return str(path) in self.worktrees

    def list_issue_branches(self) -> List[str]:
        return [b for b in self.branches if b.startswith("issue-")]

    def delete_branch(self, name: str, *, force: bool = False) -> None:
        if name == self.current:
            raise BranchDeletionError(
                f"refusing to delete the current branch {name}",
                resource=name,
                operation="delete-branch",
            )
        if name in self.branches:
            self.branches.remove(name)
            self.deleted_branches.append(name)

    def repository_name(self) -> str:
        return self.name
