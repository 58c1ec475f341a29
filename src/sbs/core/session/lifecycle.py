"""Start and stop sessions.

Provisioning runs branch -> worktree -> tmux session. Each step is recorded
in the session's resource-creation log and the record is saved after every
step, so an interruption leaves an accurate trail of what exists.
"""
from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from sbs.core.exceptions import GatewayError, ProvisioningError
from sbs.core.gateways.base import SandboxGateway, TerminalGateway, VersionControlGateway
from sbs.core.utils.time import utc_now, utc_timestamp
from sbs.core.workitem import DEFAULT_SOURCE, WorkItem

from .models import ResourceEntryStatus, ResourceType, SessionRecord
from .naming import Repository, resolve_sandbox_name
from .store import SessionStore, find, get

logger = logging.getLogger(__name__)

STEP_BRANCH = "branch"
STEP_WORKTREE = "worktree"
STEP_TERMINAL = "tmux"

ENV_WORK_ITEM = "SBS_WORK_ITEM"
ENV_SANDBOX_NAME = "SBS_SANDBOX_NAME"


class SessionLifecycle:
    """Provision and tear down the resources of one work item.

    The sandbox itself is created by the command launched inside the tmux
    session; this class only passes its name along and deletes it on stop.
    """

    def __init__(
        self,
        store: SessionStore,
        terminal: TerminalGateway,
        git: Optional[VersionControlGateway],
        sandbox: Optional[SandboxGateway] = None,
        *,
        workspace_config=None,
        scope: Optional[Path] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        if workspace_config is None:
            from sbs.core.config.domains import WorkspaceConfig

            workspace_config = WorkspaceConfig()
        self.store = store
        self.terminal = terminal
        self.git = git
        self.sandbox = sandbox
        self.workspace = workspace_config
        self.scope = scope
        self.clock = clock or utc_now

    # ---- persistence ---------------------------------------------------------

    def _persist(self, record: SessionRecord) -> None:
        with self.store.transaction(self.scope) as txn:
            for i, existing in enumerate(txn.records):
                if existing.namespaced_id == record.namespaced_id:
                    txn.records[i] = record.copy()
                    break
            else:
                txn.records.append(record.copy())

    def _new_record(self, item: WorkItem, repository: Repository) -> SessionRecord:
        now = utc_timestamp(self.clock())
        return SessionRecord(
            namespaced_id=item.namespaced_id,
            source_type=item.source,
            issue_number=int(item.id) if item.source == DEFAULT_SOURCE and item.id.isdigit() else 0,
            issue_title=item.title,
            friendly_title=repository.friendly_title(item),
            branch=item.branch_name,
            worktree_path=str(repository.worktree_path(item, self.workspace.worktree_base_path)),
            tmux_session=repository.tmux_session_name(item),
            sandbox_name=repository.sandbox_name(item),
            repository_name=repository.name,
            repository_root=str(repository.root),
            created_at=now,
            last_activity=now,
        )

    # ---- start ---------------------------------------------------------------

    def start(self, work_item: WorkItem, repository: Repository) -> SessionRecord:
        """Provision (or resume) the session for ``work_item``.

        Raises:
            ProvisioningError: A provisioning step failed; the record carries
                the failure point and reason.
        """
        if self.git is None:
            raise ProvisioningError(
                "Starting a session requires a git repository",
                session_id=work_item.namespaced_id,
                step=STEP_BRANCH,
            )
        existing = find(self.store.load(self.scope), work_item.namespaced_id)
        if existing is not None and existing.tmux_session:
            try:
                alive = self.terminal.session_exists(existing.tmux_session)
            except GatewayError as exc:
                raise ProvisioningError(
                    f"Cannot check tmux session {existing.tmux_session}: {exc}",
                    session_id=existing.namespaced_id,
                    step=STEP_TERMINAL,
                ) from exc
            if alive:
                existing.touch(self.clock())
                self._persist(existing)
                logger.info("Session %s already running; updated last activity", existing.namespaced_id)
                return existing

        if existing is not None:
            record = existing
            if work_item.title and not record.issue_title:
                record.issue_title = work_item.title
        else:
            record = self._new_record(work_item, repository)
        record.begin_step(STEP_BRANCH)
        self._persist(record)

        self._provision(record, STEP_BRANCH, ResourceType.BRANCH, record.branch, self._ensure_branch)
        self._provision(record, STEP_WORKTREE, ResourceType.WORKTREE, record.worktree_path, self._ensure_worktree)
        self._provision(record, STEP_TERMINAL, ResourceType.TERMINAL, record.tmux_session, self._ensure_terminal)

        record.mark_active()
        record.touch(self.clock())
        self._persist(record)
        logger.info("Started session %s", record.namespaced_id)
        return record

    def _provision(
        self,
        record: SessionRecord,
        step: str,
        resource_type: ResourceType,
        resource_id: str,
        action: Callable[[SessionRecord], bool],
    ) -> None:
        record.begin_step(step)
        try:
            created = action(record)
        except (GatewayError, OSError) as exc:
            record.record_resource(resource_type, resource_id, status=ResourceEntryStatus.FAILED, now=self.clock())
            record.mark_failed(step, str(exc))
            self._persist(record)
            logger.error("Provisioning %s for %s failed: %s", step, record.namespaced_id, exc)
            raise ProvisioningError(
                f"Failed to create {step} for {record.namespaced_id}: {exc}",
                session_id=record.namespaced_id,
                step=step,
            ) from exc
        if created:
            record.record_resource(resource_type, resource_id, now=self.clock())
        self._persist(record)

    def _ensure_branch(self, record: SessionRecord) -> bool:
        if self.git.branch_exists(record.branch):
            return False
        self.git.create_branch(record.branch)
        return True

    def _ensure_worktree(self, record: SessionRecord) -> bool:
        path = Path(record.worktree_path)
        if self.git.worktree_exists(path):
            return False
        path.parent.mkdir(parents=True, exist_ok=True)
        self.git.create_worktree(record.branch, path)
        return True

    def _ensure_terminal(self, record: SessionRecord) -> bool:
        if self.terminal.session_exists(record.tmux_session):
            return False
        env = {ENV_WORK_ITEM: record.namespaced_id}
        sandbox_name = resolve_sandbox_name(record)
        if sandbox_name:
            env[ENV_SANDBOX_NAME] = sandbox_name
        self.terminal.create_session(
            record.tmux_session,
            Path(record.worktree_path),
            command=self.workspace.launch_command() or None,
            env=env,
        )
        return True

    # ---- stop ----------------------------------------------------------------

    def stop(self, namespaced_id: str, *, delete_sandbox: bool = False) -> SessionRecord:
        """Kill the session's tmux session (and optionally its sandbox); mark it stopped.

        Raises:
            SessionNotFoundError: No record for ``namespaced_id``.
            GatewayError: A tmux or sandbox operation failed.
        """
        record = get(self.store.load(self.scope), namespaced_id)

        if record.tmux_session and self.terminal.session_exists(record.tmux_session):
            self.terminal.kill_session(record.tmux_session)
            logger.info("Killed tmux session %s", record.tmux_session)

        if delete_sandbox and self.sandbox is not None:
            name = resolve_sandbox_name(record)
            if name and self.sandbox.sandbox_exists(name):
                self.sandbox.delete_sandbox(name)
                record.record_resource(ResourceType.SANDBOX, name, status=ResourceEntryStatus.CLEANUP, now=self.clock())
                logger.info("Deleted sandbox %s", name)

        record.mark_stopped(self.clock())
        self._persist(record)
        return record


__all__ = ["SessionLifecycle", "STEP_BRANCH", "STEP_WORKTREE", "STEP_TERMINAL"]
