"""Upgrade pre-namespacing session records.

Records written before work items were namespaced carry only ``issue_number``
(and a branch name). Migration fills in ``source_type`` and ``namespaced_id``
and leaves every other field alone. It is a pure transform: inputs are not
mutated, and running it on its own output changes nothing.
"""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Tuple

from sbs.core.workitem import DEFAULT_SOURCE, parse_work_item_id, work_item_from_branch
from sbs.core.exceptions import WorkItemIdError

from .models import SessionRecord

logger = logging.getLogger(__name__)

TEST_SOURCE = "test"
UNKNOWN_ID = "unknown"

_COMMON_TITLE_WORDS = frozenset(
    {
        "development",
        "test",
        "fix",
        "bug",
        "feature",
        "add",
        "update",
        "remove",
        "implement",
        "create",
    }
)


def needs_migration(record: SessionRecord) -> bool:
    return not record.source_type.strip() or not record.namespaced_id.strip()


def extract_test_id_from_branch(branch: str) -> Optional[str]:
    """``issue-test-quick-fix-login`` -> ``quick``; title words are skipped."""
    parts = branch.split("-")
    for i, part in enumerate(parts[:-1]):
        if part == "test":
            candidate = parts[i + 1]
            if candidate and candidate.lower() not in _COMMON_TITLE_WORDS:
                return candidate
    return None


def _infer_identity(record: SessionRecord) -> Tuple[str, str]:
    """Return (source_type, namespaced_id) for a record that needs migration."""
    # A valid namespaced ID already says which source it belongs to.
    if record.namespaced_id.strip():
        try:
            item = parse_work_item_id(record.namespaced_id)
        except WorkItemIdError:
            item = None
        if item is not None and item.namespaced_id == record.namespaced_id:
            return item.source, item.namespaced_id

    if record.issue_number > 0:
        return DEFAULT_SOURCE, f"{DEFAULT_SOURCE}:{record.issue_number}"

    branch = record.branch or ""
    if "test-" in branch:
        test_id = extract_test_id_from_branch(branch) or UNKNOWN_ID
        return TEST_SOURCE, f"{TEST_SOURCE}:{test_id}"

    item = work_item_from_branch(branch) if branch else None
    if item is not None:
        return item.source, item.namespaced_id

    return DEFAULT_SOURCE, f"{DEFAULT_SOURCE}:{UNKNOWN_ID}"


def migrate_record(record: SessionRecord) -> SessionRecord:
    """Return a migrated copy of ``record`` (or an unchanged copy)."""
    migrated = record.copy()
    if not needs_migration(record):
        return migrated
    migrated.source_type, migrated.namespaced_id = _infer_identity(record)
    if migrated.namespaced_id.endswith(f":{UNKNOWN_ID}"):
        logger.warning(
            "Migrated session record with no recoverable identity to %s (branch=%r, worktree=%r)",
            migrated.namespaced_id,
            record.branch,
            record.worktree_path,
        )
    return migrated


def migrate_records(records: Iterable[SessionRecord]) -> List[SessionRecord]:
    """Migrate every record; already-migrated records pass through unchanged."""
    return [migrate_record(r) for r in records]


def count_pending(records: Iterable[SessionRecord]) -> int:
    return sum(1 for r in records if needs_migration(r))


__all__ = [
    "needs_migration",
    "extract_test_id_from_branch",
    "migrate_record",
    "migrate_records",
    "count_pending",
]
