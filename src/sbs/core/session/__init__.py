"""Session records and everything that reads or reconciles them."""
from __future__ import annotations

from .cleanup import (
    CleanupManager,
    CleanupMode,
    CleanupOptions,
    CleanupResults,
    ViewMode,
    build_cli_options,
    build_tui_options,
    select_cleanup_mode,
)
from .lifecycle import SessionLifecycle
from .migration import migrate_records, needs_migration
from .models import ResourceCreationEntry, ResourceStatus, ResourceType, SessionRecord
from .naming import Repository, resolve_sandbox_name
from .reconcile import ReconcileReport, Reconciler
from .status import SessionStatus, Status, StatusDetector
from .store import SessionStore, filter_by_repository, find, get

__all__ = [
    "SessionRecord",
    "ResourceCreationEntry",
    "ResourceStatus",
    "ResourceType",
    "SessionStore",
    "find",
    "get",
    "filter_by_repository",
    "migrate_records",
    "needs_migration",
    "Repository",
    "resolve_sandbox_name",
    "Status",
    "SessionStatus",
    "StatusDetector",
    "ViewMode",
    "CleanupMode",
    "CleanupOptions",
    "CleanupResults",
    "CleanupManager",
    "select_cleanup_mode",
    "build_cli_options",
    "build_tui_options",
    "Reconciler",
    "ReconcileReport",
    "SessionLifecycle",
]
