"""Store bookkeeping around a cleanup run.

Ordering, so that a crash or a failed save never loses track of resources
that were already deleted:

1. mark every target record ``resource_status = cleanup`` and save;
2. delete resources through :class:`CleanupManager`;
3. in a second transaction, drop records whose resources are confirmed
   gone, mark records with failures ``failed`` and restore the rest.

If step 3 cannot be saved the records stay in ``cleanup``; the next run
picks them up again (deleting something that is already gone is a no-op).

Namespaced IDs are not unique (every unidentifiable legacy record migrates
to ``github:unknown``), so records are matched across transactions by
:func:`record_key`, which also covers the resources a record points at.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from sbs.core.exceptions import CleanupError, SessionStoreError

from .cleanup import CleanupManager, CleanupOptions, CleanupResults, SessionOutcome
from .models import ResourceEntryStatus, ResourceStatus, ResourceType, SessionRecord
from .naming import resolve_sandbox_name
from .store import SessionStore

logger = logging.getLogger(__name__)

# Called with the stale sessions and the orphaned branches about to be deleted.
ConfirmCallback = Callable[[List[SessionRecord], List[str]], bool]

RecordKey = Tuple[str, ...]


def record_key(record: SessionRecord) -> RecordKey:
    return (
        record.namespaced_id,
        record.branch,
        record.worktree_path,
        record.tmux_session,
        record.sandbox_name,
        record.created_at,
    )


@dataclass
class ReconcileReport:
    """Outcome of :meth:`Reconciler.run`."""

    targets: List[SessionRecord] = field(default_factory=list)
    branches: List[str] = field(default_factory=list)
    results: CleanupResults = field(default_factory=CleanupResults)
    cancelled: bool = False

    @property
    def errors(self) -> List[CleanupError]:
        return self.results.errors


class Reconciler:
    """Identify stale sessions, clean them and update the store.

    Args:
        store: Session store to read targets from and write bookkeeping to.
        manager: Cleanup manager wired to the gateways.
        scope: Store scope (``None`` = canonical file).
    """

    def __init__(self, store: SessionStore, manager: CleanupManager, *, scope: Optional[Path] = None) -> None:
        self.store = store
        self.manager = manager
        self.scope = scope

    def identify(self, options: CleanupOptions) -> List[SessionRecord]:
        records = self.store.load(self.scope, persist_migrations=False)
        return self.manager.identify_stale_sessions(records, options.view_mode, options.repository_root)

    def run(self, options: CleanupOptions, *, confirm: Optional[ConfirmCallback] = None) -> ReconcileReport:
        records = self.store.load(self.scope, persist_migrations=not options.dry_run)
        targets = (
            self.manager.identify_stale_sessions(records, options.view_mode, options.repository_root)
            if options.touches_sessions
            else []
        )
        preview = self.manager.preview_orphaned_branches(records) if options.clean_branches else CleanupResults()
        report = ReconcileReport(targets=targets, branches=list(preview.orphaned_branches))

        if options.dry_run:
            report.results = self.manager.cleanup_sessions(targets, options)
            report.results.merge(preview)
            return report

        if options.require_confirmation and not options.force and confirm is not None:
            if not confirm(targets, report.branches):
                report.cancelled = True
                return report

        previous = self._mark_intent(targets)
        session_results = self.manager.cleanup_sessions(targets, options)
        report.results = session_results
        if options.clean_branches:
            report.results.errors.extend(preview.errors)
            report.results.merge(self.manager.delete_branches(report.branches, options))
        if targets:
            self._settle(report.results, list(zip(targets, session_results.outcomes)), options, previous)
        return report

    # ---- bookkeeping ---------------------------------------------------------

    def _mark_intent(self, targets: List[SessionRecord]) -> Dict[RecordKey, str]:
        """Persist ``cleanup`` on every target; return their previous resource status."""
        if not targets:
            return {}
        wanted = {record_key(r) for r in targets}
        previous: Dict[RecordKey, str] = {}
        with self.store.transaction(self.scope) as txn:
            for record in txn.records:
                key = record_key(record)
                if key in wanted:
                    previous.setdefault(key, record.resource_status)
                    record.resource_status = ResourceStatus.CLEANUP.value
        return previous

    def _settle(
        self,
        results: CleanupResults,
        paired: List[Tuple[SessionRecord, SessionOutcome]],
        options: CleanupOptions,
        previous: Dict[RecordKey, str],
    ) -> None:
        pending: Dict[RecordKey, List[SessionOutcome]] = {}
        for target, outcome in paired:
            pending.setdefault(record_key(target), []).append(outcome)

        removed: List[str] = []
        try:
            with self.store.transaction(self.scope) as txn:
                kept: List[SessionRecord] = []
                for record in txn.records:
                    key = record_key(record)
                    if key not in previous or not pending.get(key):
                        kept.append(record)
                        continue
                    outcome = pending[key].pop(0)
                    for resource in outcome.cleaned:
                        record.record_resource(
                            resource,
                            self._resource_id(record, resource),
                            status=ResourceEntryStatus.CLEANUP,
                        )
                    if outcome.errors:
                        first = outcome.errors[0]
                        record.mark_failed(f"cleanup:{first.resource or 'unknown'}", str(first))
                    elif options.remove_gone_records and outcome.all_gone:
                        removed.append(record.namespaced_id)
                        continue
                    else:
                        prior = previous[key]
                        # A record left over from an interrupted run has no better state to return to.
                        if prior == ResourceStatus.CLEANUP.value:
                            prior = ResourceStatus.ACTIVE.value
                        record.resource_status = prior
                    kept.append(record)
                txn.records[:] = kept
        except SessionStoreError as exc:
            err = CleanupError(
                f"failed to update session store after cleanup: {exc}",
                resource="store",
                operation="save",
            )
            logger.error("%s", err)
            results.errors.append(err)
            return
        results.removed_records += len(removed)
        results.details.extend(f"Removed session record: {nsid}" for nsid in removed)

    @staticmethod
    def _resource_id(record: SessionRecord, resource: str) -> str:
        if resource == ResourceType.SANDBOX.value:
            return resolve_sandbox_name(record) or ""
        if resource == ResourceType.WORKTREE.value:
            return record.worktree_path
        return ""


__all__ = ["Reconciler", "ReconcileReport", "ConfirmCallback", "record_key"]
