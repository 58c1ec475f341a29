"""Git gateway: branches and worktrees of one repository via the git CLI."""
from __future__ import annotations

import logging
import re
import shutil
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from sbs.core.exceptions import BranchDeletionError, GatewayError
from sbs.core.utils.subprocess import command_output, describe_failure, run_with_timeout

logger = logging.getLogger(__name__)

ISSUE_BRANCH_GLOB = "issue-*"
_REMOTE_NAME_RE = re.compile(r"[:/]([^/]+?)(?:\.git)?/?$")


def _parse_worktree_list(stdout: str) -> List[Dict[str, str]]:
    """Parse ``git worktree list --porcelain`` output."""
    worktrees: List[Dict[str, str]] = []
    current: Dict[str, str] = {}

    for raw in stdout.splitlines():
        line = raw.strip()
        if not line:
            if current:
                worktrees.append(current)
                current = {}
            continue
        if line.startswith("worktree "):
            if current:
                worktrees.append(current)
            current = {"path": line.split(" ", 1)[1]}
        elif line.startswith("HEAD "):
            current["head"] = line.split(" ", 1)[1]
        elif line.startswith("branch "):
            ref = line.split(" ", 1)[1]
            current["branch"] = ref[len("refs/heads/"):] if ref.startswith("refs/heads/") else ref

    if current:
        worktrees.append(current)
    return worktrees


def looks_like_worktree(path: Path) -> bool:
    """Guard for the filesystem fallback: only remove plausible worktree dirs."""
    text = str(path)
    if "sbs" not in text and "worktree" not in text:
        return False
    git_marker = path / ".git"
    return not path.exists() or git_marker.is_file() or not git_marker.exists()


class GitGateway:
    """Version-control gateway bound to a repository root."""

    def __init__(self, repo_root: Path) -> None:
        self.repo_root = Path(repo_root)

    def _run(self, args: Sequence[str], *, operation: str, resource: str = "git") -> subprocess.CompletedProcess:
        argv = ["git", *args]
        try:
            return run_with_timeout(
                argv,
                timeout_type="git",
                cwd=self.repo_root,
                capture_output=True,
                text=True,
            )
        except (subprocess.TimeoutExpired, OSError) as exc:
            raise GatewayError(
                f"git {operation} failed: {describe_failure(exc, argv)}",
                resource=resource,
                operation=operation,
            ) from exc

    def _check(self, args: Sequence[str], *, operation: str, resource: str = "git") -> str:
        result = self._run(args, operation=operation, resource=resource)
        if result.returncode != 0:
            raise GatewayError(
                f"git {operation} failed (rc={result.returncode}): {command_output(result)}",
                resource=resource,
                operation=operation,
            )
        return result.stdout or ""

    # ---- branches ------------------------------------------------------------

    def branch_exists(self, name: str) -> bool:
        result = self._run(
            ["rev-parse", "--verify", "--quiet", f"refs/heads/{name}"],
            operation="branch-exists",
            resource=name,
        )
        if result.returncode == 0:
            return True
        if result.returncode == 1:
            return False
        raise GatewayError(
            f"cannot check branch {name}: {command_output(result)}",
            resource=name,
            operation="branch-exists",
        )

    def current_branch(self) -> Optional[str]:
        """Checked-out branch name, or None on a detached HEAD."""
        result = self._run(["symbolic-ref", "--quiet", "--short", "HEAD"], operation="current-branch")
        if result.returncode != 0:
            return None
        return (result.stdout or "").strip() or None

    def create_branch(self, name: str) -> None:
        """Create ``name`` from HEAD; an existing branch is left untouched."""
        if self.branch_exists(name):
            return
        self._check(["branch", name, "HEAD"], operation="create-branch", resource=name)
        logger.info("Created branch %s in %s", name, self.repo_root)

    def list_issue_branches(self) -> List[str]:
        out = self._check(["branch", "--list", ISSUE_BRANCH_GLOB], operation="list-branches")
        branches: List[str] = []
        for line in out.splitlines():
            # Strip the current-branch (*) and other-worktree (+) markers.
            name = line.strip().lstrip("*+").strip()
            if name.startswith("issue-"):
                branches.append(name)
        return branches

    def delete_branch(self, name: str, *, force: bool = False) -> None:
        """Delete a local branch.

        A branch that does not exist is already in the desired state. The
        checked-out branch is never deleted, regardless of ``force``.

        Raises:
            BranchDeletionError: Refused (current branch) or git failed.
        """
        if not self.branch_exists(name):
            return
        if self.current_branch() == name:
            raise BranchDeletionError(
                f"cannot delete current branch: {name}",
                resource=name,
                operation="delete-branch",
            )
        flag = "-D" if force else "-d"
        result = self._run(["branch", flag, name], operation="delete-branch", resource=name)
        if result.returncode != 0:
            mode = "force" if force else "safe"
            raise BranchDeletionError(
                f"failed to delete branch {name} ({mode} deletion attempt): {command_output(result)}",
                resource=name,
                operation="delete-branch",
            )
        logger.info("Deleted branch %s", name)

    # ---- worktrees -----------------------------------------------------------

    def list_worktrees(self) -> List[Dict[str, str]]:
        """Linked worktrees (the primary checkout is excluded)."""
        out = self._check(["worktree", "list", "--porcelain"], operation="list-worktrees")
        main = str(self.repo_root.resolve())
        return [wt for wt in _parse_worktree_list(out) if str(Path(wt["path"]).resolve()) != main]

    def worktree_exists(self, path: Path) -> bool:
        """Authoritative check: the path is registered with git and present on disk."""
        target = Path(path).expanduser()
        if not target.exists():
            return False
        resolved = str(target.resolve())
        return any(str(Path(wt["path"]).resolve()) == resolved for wt in self.list_worktrees())

    def create_worktree(self, branch: str, path: Path) -> None:
        target = Path(path).expanduser()
        if target.exists() and self.worktree_exists(target):
            return
        if not self.branch_exists(branch):
            raise GatewayError(f"branch {branch} does not exist", resource=branch, operation="create-worktree")
        target.parent.mkdir(parents=True, exist_ok=True)
        self._check(["worktree", "add", str(target), branch], operation="create-worktree", resource=str(target))
        logger.info("Created worktree %s for %s", target, branch)

    def remove_worktree(self, path: Path) -> None:
        """Remove a worktree, falling back to deleting the directory.

        The fallback refuses paths that do not look like a worktree.
        """
        target = Path(path).expanduser()
        result = self._run(
            ["worktree", "remove", "--force", str(target)],
            operation="remove-worktree",
            resource=str(target),
        )
        if result.returncode == 0:
            logger.info("Removed worktree %s", target)
            return
        if not target.exists():
            self._run(["worktree", "prune"], operation="prune-worktrees")
            return
        if not looks_like_worktree(target):
            raise GatewayError(
                f"path doesn't appear to be a worktree: {target}",
                resource=str(target),
                operation="remove-worktree",
            )
        logger.warning("git worktree remove failed for %s (%s); removing directory", target, command_output(result))
        try:
            shutil.rmtree(target)
        except OSError as exc:
            raise GatewayError(
                f"failed to remove worktree directory {target}: {exc}",
                resource=str(target),
                operation="remove-worktree",
            ) from exc
        self._run(["worktree", "prune"], operation="prune-worktrees")

    # ---- repository ----------------------------------------------------------

    def repository_name(self) -> str:
        """Short repository name from the origin remote, else the directory name."""
        result = self._run(["remote", "get-url", "origin"], operation="remote-url")
        if result.returncode == 0:
            match = _REMOTE_NAME_RE.search((result.stdout or "").strip())
            if match:
                return match.group(1)
        return self.repo_root.name


__all__ = ["GitGateway", "ISSUE_BRANCH_GLOB", "looks_like_worktree"]
