"""Stale-session identification and resource cleanup.

Two phases that callers can run separately:

- **identify**: which sessions in a view (current repository or global) are
  stale. A session is stale when its tmux session is confirmed gone; a tmux
  check that fails counts as *not* stale.
- **cleanup**: delete the sandbox and worktree of given sessions according
  to :class:`CleanupOptions`. Failures are collected per resource and never
  abort the batch.

Orphaned branches (issue branches with no live session) are handled by
:func:`find_orphaned_branches` / :func:`delete_orphaned_branches`. Store
bookkeeping around a cleanup lives in :mod:`sbs.core.session.reconcile`.
"""
from __future__ import annotations

import logging
import shutil
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from sbs.core.exceptions import CleanupError, GatewayError
from sbs.core.gateways.base import SandboxGateway, TerminalGateway, VersionControlGateway
from sbs.core.gateways.git import looks_like_worktree
from sbs.core.workitem import work_item_from_branch

from .models import SESSION_ACTIVE, ResourceType, SessionRecord
from .naming import resolve_sandbox_name
from .store import filter_by_repository

logger = logging.getLogger(__name__)

GitFactory = Callable[[Path], VersionControlGateway]


class ViewMode(str, Enum):
    REPOSITORY = "repository"
    GLOBAL = "global"


class CleanupMode(str, Enum):
    DEFAULT = "default"
    STALE = "stale"
    ORPHANED = "orphaned"
    BRANCHES = "branches"
    ALL = "all"
    STALE_AND_BRANCHES = "stale_and_branches"


def parse_cleanup_mode(raw: Optional[str]) -> CleanupMode:
    v = str(raw or "").strip().lower()
    if not v:
        return CleanupMode.DEFAULT
    for mode in CleanupMode:
        if v == mode.value:
            return mode
    raise ValueError(f"Invalid cleanup mode: {raw} (expected one of: {', '.join(m.value for m in CleanupMode)})")


def select_cleanup_mode(
    *,
    stale: bool = False,
    orphaned: bool = False,
    branches: bool = False,
    all_resources: bool = False,
    default: CleanupMode = CleanupMode.DEFAULT,
) -> CleanupMode:
    """Map CLI flags to a mode: all > stale+branches > branches > orphaned > stale > default."""
    if all_resources:
        return CleanupMode.ALL
    if stale and branches:
        return CleanupMode.STALE_AND_BRANCHES
    if branches:
        return CleanupMode.BRANCHES
    if orphaned:
        return CleanupMode.ORPHANED
    if stale:
        return CleanupMode.STALE
    return default


@dataclass
class CleanupOptions:
    # what to clean
    clean_sandboxes: bool = False
    clean_worktrees: bool = False
    clean_branches: bool = False
    # drop records whose sandbox, worktree and tmux session are confirmed gone
    remove_gone_records: bool = False
    force_branch_delete: bool = False
    # behaviour
    dry_run: bool = False
    force: bool = False
    require_confirmation: bool = True
    verbose: bool = False
    silent: bool = False
    max_workers: int = 1
    # scope
    view_mode: ViewMode = ViewMode.GLOBAL
    repository_root: Optional[Path] = None

    @property
    def touches_sessions(self) -> bool:
        return self.clean_sandboxes or self.clean_worktrees or self.remove_gone_records


def build_cli_options(
    *,
    dry_run: bool,
    force: bool,
    mode: CleanupMode,
    keep_records: bool = False,
    max_workers: int = 1,
    view_mode: ViewMode = ViewMode.GLOBAL,
    repository_root: Optional[Path] = None,
) -> CleanupOptions:
    options = CleanupOptions(
        dry_run=dry_run,
        force=force,
        require_confirmation=not force,
        verbose=True,
        max_workers=max_workers,
        view_mode=view_mode,
        repository_root=repository_root,
    )
    if mode in (CleanupMode.DEFAULT, CleanupMode.STALE):
        options.clean_sandboxes = True
        options.clean_worktrees = True
        options.remove_gone_records = True
    elif mode is CleanupMode.ORPHANED:
        options.clean_branches = True
        options.remove_gone_records = True
    elif mode is CleanupMode.BRANCHES:
        options.clean_branches = True
    elif mode in (CleanupMode.ALL, CleanupMode.STALE_AND_BRANCHES):
        options.clean_sandboxes = True
        options.clean_worktrees = True
        options.clean_branches = True
        options.remove_gone_records = True
    if keep_records:
        options.remove_gone_records = False
    return options


def build_tui_options(view_mode: ViewMode, *, silent: bool = True, repository_root: Optional[Path] = None) -> CleanupOptions:
    """Dashboard preset: sandboxes only, no confirmation, records kept."""
    return CleanupOptions(
        clean_sandboxes=True,
        clean_worktrees=False,
        dry_run=False,
        force=True,
        require_confirmation=False,
        verbose=False,
        silent=silent,
        view_mode=view_mode,
        repository_root=repository_root,
    )


@dataclass
class SessionOutcome:
    """What happened to one session's resources during cleanup."""

    namespaced_id: str
    cleaned: List[str] = field(default_factory=list)
    gone: Set[str] = field(default_factory=set)
    errors: List[CleanupError] = field(default_factory=list)

    @property
    def all_gone(self) -> bool:
        required = {ResourceType.SANDBOX.value, ResourceType.WORKTREE.value, ResourceType.TERMINAL.value}
        return not self.errors and required <= self.gone


@dataclass
class CleanupResults:
    cleaned_sessions: int = 0
    cleaned_sandboxes: int = 0
    cleaned_worktrees: int = 0
    cleaned_branches: int = 0
    removed_records: int = 0
    would_clean: int = 0
    orphaned_branches: List[str] = field(default_factory=list)
    errors: List[CleanupError] = field(default_factory=list)
    details: List[str] = field(default_factory=list)
    # one per session passed to cleanup_sessions, in the same order
    outcomes: List[SessionOutcome] = field(default_factory=list)

    def merge(self, other: "CleanupResults") -> None:
        self.cleaned_sessions += other.cleaned_sessions
        self.cleaned_sandboxes += other.cleaned_sandboxes
        self.cleaned_worktrees += other.cleaned_worktrees
        self.cleaned_branches += other.cleaned_branches
        self.removed_records += other.removed_records
        self.would_clean += other.would_clean
        self.orphaned_branches.extend(other.orphaned_branches)
        self.errors.extend(other.errors)
        self.details.extend(other.details)
        self.outcomes.extend(other.outcomes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cleaned_sessions": self.cleaned_sessions,
            "cleaned_sandboxes": self.cleaned_sandboxes,
            "cleaned_worktrees": self.cleaned_worktrees,
            "cleaned_branches": self.cleaned_branches,
            "removed_records": self.removed_records,
            "would_clean": self.would_clean,
            "orphaned_branches": list(self.orphaned_branches),
            "errors": [e.to_json_error() for e in self.errors],
            "details": list(self.details),
        }


# ---- identification -----------------------------------------------------------


def sessions_in_view(
    records: Iterable[SessionRecord],
    view_mode: ViewMode,
    repository_root: Optional[Path] = None,
) -> List[SessionRecord]:
    if view_mode is ViewMode.REPOSITORY and repository_root is not None:
        return filter_by_repository(records, repository_root)
    return list(records)


def identify_stale_sessions(
    records: Iterable[SessionRecord],
    terminal: TerminalGateway,
    view_mode: ViewMode = ViewMode.GLOBAL,
    repository_root: Optional[Path] = None,
) -> List[SessionRecord]:
    """Sessions in the view whose tmux session is confirmed gone."""
    stale: List[SessionRecord] = []
    for record in sessions_in_view(records, view_mode, repository_root):
        if not record.tmux_session:
            stale.append(record)
            continue
        try:
            exists = terminal.session_exists(record.tmux_session)
        except GatewayError as exc:
            # Cannot tell: keep it.
            logger.warning("Treating %s as active: %s", record.namespaced_id, exc)
            continue
        if not exists:
            stale.append(record)
    return stale


def active_work_items(records: Iterable[SessionRecord], terminal: TerminalGateway) -> Set[str]:
    """Namespaced IDs whose stored status is active and whose tmux session exists.

    A tmux check that fails keeps the work item in the set.
    """
    active: Set[str] = set()
    for record in records:
        if record.status != SESSION_ACTIVE or not record.tmux_session:
            continue
        try:
            if terminal.session_exists(record.tmux_session):
                active.add(record.namespaced_id)
        except GatewayError as exc:
            logger.warning("Keeping branch of %s: %s", record.namespaced_id, exc)
            active.add(record.namespaced_id)
    return active


def find_orphaned_branches(
    records: Iterable[SessionRecord],
    git: VersionControlGateway,
    terminal: TerminalGateway,
) -> List[str]:
    """Issue branches whose work item has no live, active session."""
    active = active_work_items(records, terminal)
    orphaned: List[str] = []
    for branch in git.list_issue_branches():
        item = work_item_from_branch(branch)
        if item is not None and item.namespaced_id not in active:
            orphaned.append(branch)
    return orphaned


def delete_orphaned_branches(
    branches: Iterable[str],
    git: VersionControlGateway,
    *,
    force: bool = False,
) -> CleanupResults:
    """Delete branches, collecting failures. The current branch is always refused."""
    results = CleanupResults()
    for branch in branches:
        try:
            git.delete_branch(branch, force=force)
        except GatewayError as exc:
            err = CleanupError(
                f"failed to delete branch {branch}: {exc}",
                resource="branch",
                operation="delete",
                context={"branch": branch},
            )
            logger.warning("%s", err)
            results.errors.append(err)
            continue
        results.cleaned_branches += 1
        results.details.append(f"Deleted branch: {branch}")
    return results


# ---- cleanup ------------------------------------------------------------------


class CleanupManager:
    """Deletes session resources through the gateways.

    Args:
        terminal: tmux gateway.
        sandbox: sandbox gateway.
        git: gateway for the current repository (orphaned branches, and
            worktrees of records without a repository root).
        git_factory: builds a gateway for a record's own repository root.
    """

    def __init__(
        self,
        terminal: TerminalGateway,
        sandbox: Optional[SandboxGateway],
        git: Optional[VersionControlGateway] = None,
        *,
        git_factory: Optional[GitFactory] = None,
    ) -> None:
        self.terminal = terminal
        self.sandbox = sandbox
        self.git = git
        self.git_factory = git_factory

    def _git_for(self, record: SessionRecord) -> Optional[VersionControlGateway]:
        if record.repository_root and self.git_factory is not None:
            root = Path(record.repository_root).expanduser()
            if root.is_dir():
                return self.git_factory(root)
        return self.git

    # ---- identification (bound to this manager's gateways) -------------------

    def identify_stale_sessions(
        self,
        records: Iterable[SessionRecord],
        view_mode: ViewMode = ViewMode.GLOBAL,
        repository_root: Optional[Path] = None,
    ) -> List[SessionRecord]:
        return identify_stale_sessions(records, self.terminal, view_mode, repository_root)

    def find_orphaned_branches(self, records: Iterable[SessionRecord]) -> List[str]:
        if self.git is None:
            return []
        return find_orphaned_branches(records, self.git, self.terminal)

    # ---- per-resource steps --------------------------------------------------

    def _error(self, outcome: SessionOutcome, message: str, resource: str, operation: str, cause: Exception) -> None:
        err = CleanupError(
            f"{message}: {cause}",
            session_id=outcome.namespaced_id,
            resource=resource,
            operation=operation,
        )
        logger.warning("%s", err)
        outcome.errors.append(err)

    def _cleanup_sandbox(self, record: SessionRecord, options: CleanupOptions, outcome: SessionOutcome, details: List[str]) -> None:
        name = resolve_sandbox_name(record)
        if not name:
            outcome.gone.add(ResourceType.SANDBOX.value)
            return
        if self.sandbox is None:
            return
        try:
            exists = self.sandbox.sandbox_exists(name)
        except GatewayError as exc:
            self._error(outcome, f"could not check sandbox {name}", "sandbox", "check", exc)
            return
        if not exists:
            outcome.gone.add(ResourceType.SANDBOX.value)
            if options.verbose:
                details.append(f"Sandbox already gone: {name}")
            return
        if not options.clean_sandboxes:
            return
        if options.verbose:
            details.append(f"Attempting to delete sandbox: {name}")
        try:
            self.sandbox.delete_sandbox(name)
        except GatewayError as exc:
            self._error(outcome, f"failed to delete sandbox {name}", "sandbox", "delete", exc)
            return
        outcome.cleaned.append(ResourceType.SANDBOX.value)
        outcome.gone.add(ResourceType.SANDBOX.value)
        if options.verbose:
            details.append(f"Removed sandbox: {name}")

    def _worktree_exists(self, git: Optional[VersionControlGateway], path: Path) -> bool:
        if git is not None:
            return git.worktree_exists(path)
        return path.exists()

    def _remove_worktree(self, git: Optional[VersionControlGateway], path: Path) -> None:
        if git is not None:
            git.remove_worktree(path)
            return
        if not looks_like_worktree(path):
            raise GatewayError(f"path doesn't appear to be a worktree: {path}", resource=str(path), operation="remove-worktree")
        try:
            shutil.rmtree(path)
        except OSError as exc:
            raise GatewayError(str(exc), resource=str(path), operation="remove-worktree") from exc

    def _cleanup_worktree(self, record: SessionRecord, options: CleanupOptions, outcome: SessionOutcome, details: List[str]) -> None:
        if not record.worktree_path:
            outcome.gone.add(ResourceType.WORKTREE.value)
            return
        path = Path(record.worktree_path).expanduser()
        git = self._git_for(record)
        try:
            exists = self._worktree_exists(git, path)
        except GatewayError as exc:
            self._error(outcome, f"could not check worktree {path}", "worktree", "check", exc)
            return
        if not exists:
            outcome.gone.add(ResourceType.WORKTREE.value)
            if options.verbose:
                details.append(f"Worktree already gone: {path}")
            return
        if not options.clean_worktrees:
            return
        try:
            self._remove_worktree(git, path)
        except GatewayError as exc:
            self._error(outcome, f"failed to remove worktree {path}", "worktree", "remove", exc)
            return
        outcome.cleaned.append(ResourceType.WORKTREE.value)
        outcome.gone.add(ResourceType.WORKTREE.value)
        if options.verbose:
            details.append(f"Removed worktree: {path}")

    def _check_terminal(self, record: SessionRecord, outcome: SessionOutcome) -> None:
        if not record.tmux_session:
            outcome.gone.add(ResourceType.TERMINAL.value)
            return
        try:
            if not self.terminal.session_exists(record.tmux_session):
                outcome.gone.add(ResourceType.TERMINAL.value)
        except GatewayError as exc:
            logger.warning("Cannot confirm tmux session %s is gone: %s", record.tmux_session, exc)

    def cleanup_session(self, record: SessionRecord, options: CleanupOptions) -> CleanupResults:
        """Clean one session. Each resource is attempted even if another failed."""
        results = CleanupResults()
        outcome = SessionOutcome(record.namespaced_id)

        if options.clean_sandboxes or options.remove_gone_records:
            self._cleanup_sandbox(record, options, outcome, results.details)
        if options.clean_worktrees or options.remove_gone_records:
            self._cleanup_worktree(record, options, outcome, results.details)
        if options.remove_gone_records:
            self._check_terminal(record, outcome)

        results.cleaned_sandboxes = outcome.cleaned.count(ResourceType.SANDBOX.value)
        results.cleaned_worktrees = outcome.cleaned.count(ResourceType.WORKTREE.value)
        results.cleaned_sessions = 1 if outcome.cleaned else 0
        results.errors.extend(outcome.errors)
        results.outcomes.append(outcome)
        return results

    def _dry_run(self, sessions: List[SessionRecord]) -> CleanupResults:
        results = CleanupResults(would_clean=len(sessions))
        for record in sessions:
            detail = f"Would clean Work Item {record.namespaced_id}: {record.issue_title}"
            if record.worktree_path:
                detail += f"\n    Worktree: {record.worktree_path}"
            sandbox_name = resolve_sandbox_name(record)
            if sandbox_name:
                detail += f"\n    Sandbox: {sandbox_name}"
            results.details.append(detail)
        return results

    def cleanup_sessions(self, sessions: Iterable[SessionRecord], options: CleanupOptions) -> CleanupResults:
        """Clean the given sessions; never raises for a single resource failure.

        In dry-run mode no gateway is called; ``would_clean`` is the number
        of sessions passed in.
        """
        batch = list(sessions)
        if options.dry_run:
            return self._dry_run(batch)

        results = CleanupResults(would_clean=len(batch))
        if options.max_workers > 1 and len(batch) > 1:
            with ThreadPoolExecutor(max_workers=options.max_workers) as pool:
                # map() yields in input order, so merged details stay deterministic.
                per_session = list(pool.map(lambda r: self.cleanup_session(r, options), batch))
        else:
            per_session = [self.cleanup_session(r, options) for r in batch]
        for item in per_session:
            results.merge(item)
        return results

    def preview_orphaned_branches(self, records: Iterable[SessionRecord]) -> CleanupResults:
        """List orphaned issue branches without deleting anything."""
        results = CleanupResults()
        if self.git is None:
            return results
        try:
            orphaned = self.find_orphaned_branches(records)
        except GatewayError as exc:
            err = CleanupError(f"could not list issue branches: {exc}", resource="branch", operation="list")
            logger.warning("%s", err)
            results.errors.append(err)
            return results
        results.orphaned_branches = orphaned
        results.details.extend(f"Would delete branch: {b}" for b in orphaned)
        return results

    def delete_branches(self, branches: Iterable[str], options: CleanupOptions) -> CleanupResults:
        """Delete branches previously returned by :meth:`preview_orphaned_branches`."""
        results = CleanupResults(orphaned_branches=list(branches))
        if self.git is None or not results.orphaned_branches:
            return results
        results.merge(delete_orphaned_branches(results.orphaned_branches, self.git, force=options.force_branch_delete))
        return results

    def cleanup_orphaned_branches(self, records: Iterable[SessionRecord], options: CleanupOptions) -> CleanupResults:
        """Find and (unless dry-run) delete orphaned issue branches."""
        preview = self.preview_orphaned_branches(records)
        if options.dry_run or preview.errors:
            return preview
        return self.delete_branches(preview.orphaned_branches, options)

    def identify_and_cleanup_for_tui(
        self,
        records: Iterable[SessionRecord],
        view_mode: ViewMode,
        repository_root: Optional[Path] = None,
    ) -> CleanupResults:
        stale = self.identify_stale_sessions(records, view_mode, repository_root)
        return self.cleanup_sessions(stale, build_tui_options(view_mode, repository_root=repository_root))


__all__ = [
    "ViewMode",
    "CleanupMode",
    "CleanupOptions",
    "CleanupResults",
    "SessionOutcome",
    "CleanupManager",
    "parse_cleanup_mode",
    "select_cleanup_mode",
    "build_cli_options",
    "build_tui_options",
    "sessions_in_view",
    "identify_stale_sessions",
    "active_work_items",
    "find_orphaned_branches",
    "delete_orphaned_branches",
]
