"""Durable session store.

The store is a single JSON array of session records. There is one canonical
file under the user config directory plus, for backward compatibility,
per-repository files at ``<repo>/.sbs/sessions.json``.

Concurrency: every read-modify-write runs under an advisory lock on a
``.lock`` sidecar (:meth:`SessionStore.transaction`). Callers that cannot
hold the lock across their work use :meth:`load_versioned` and
:meth:`save_if_unchanged`, which detect a concurrent writer instead.
"""
from __future__ import annotations

import hashlib
import json
import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Tuple

from sbs.core.exceptions import SessionNotFoundError, SessionStoreError, StoreConflictError, StoreCorruptedError
from sbs.core.schemas import validate_payload_safe
from sbs.core.utils.io import LockTimeoutError, acquire_file_lock, write_json_atomic

from .migration import count_pending, migrate_records, needs_migration
from .models import SessionRecord, records_from_dicts, records_to_dicts

logger = logging.getLogger(__name__)

SCHEMA_NAME = "sessions.schema.yaml"
MISSING_VERSION = "absent"

Scope = Optional[Path]


def _digest(raw: bytes) -> str:
    return hashlib.sha256(raw).hexdigest()


class StoreTransaction:
    """Records loaded under the store lock; saved on clean exit unless rolled back."""

    def __init__(self, path: Path, records: List[SessionRecord]) -> None:
        self.path = path
        self.records = records
        self._rolled_back = False

    def rollback(self) -> None:
        self._rolled_back = True

    @property
    def rolled_back(self) -> bool:
        return self._rolled_back


class SessionStore:
    """Load and save session records.

    Args:
        config_dir: User config directory holding the canonical file
            (defaults to ``$SBS_CONFIG_DIR`` / ``~/.config/sbs``).
        store_config: ``StoreConfig`` accessor (defaults to the loaded config).
    """

    def __init__(self, config_dir: Optional[Path] = None, *, store_config=None) -> None:
        if store_config is None:
            from sbs.core.config.domains import StoreConfig

            store_config = StoreConfig()
        if config_dir is None:
            from sbs.core.utils.paths import get_user_config_dir

            config_dir = get_user_config_dir(create=False)
        self.config_dir = Path(config_dir)
        self.config = store_config

    # ---- locations -----------------------------------------------------------

    @property
    def canonical_path(self) -> Path:
        return self.config_dir / self.config.filename

    def path_for(self, scope: Scope = None) -> Path:
        """``None`` = canonical file; a repository root = its legacy file."""
        if scope is None:
            return self.canonical_path
        return Path(scope) / self.config.legacy_filename

    # ---- raw I/O (caller holds the lock) -------------------------------------

    def _read(self, path: Path) -> Tuple[List[SessionRecord], str]:
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return [], MISSING_VERSION
        except OSError as exc:
            raise SessionStoreError(f"Cannot read session store {path}: {exc}", context={"path": str(path)}) from exc

        version = _digest(raw)
        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise StoreCorruptedError(
                f"Session store {path} is corrupt: {exc}",
                context={"path": str(path)},
            ) from exc

        errors = validate_payload_safe(data, SCHEMA_NAME)
        if errors:
            raise StoreCorruptedError(
                f"Session store {path} does not match the expected format: {errors[0]}",
                context={"path": str(path), "errors": errors},
            )
        return records_from_dicts(data), version

    def _write(self, path: Path, records: Iterable[SessionRecord]) -> None:
        try:
            write_json_atomic(path, records_to_dicts(list(records)))
        except OSError as exc:
            raise SessionStoreError(f"Cannot write session store {path}: {exc}", context={"path": str(path)}) from exc

    def _migrate(self, path: Path, records: List[SessionRecord], *, persist: bool = True) -> List[SessionRecord]:
        if not any(needs_migration(r) for r in records):
            return records
        migrated = migrate_records(records)
        if persist and self.config.auto_persist_migrations:
            try:
                self._write(path, migrated)
                logger.info("Persisted migrated session records to %s", path)
            except SessionStoreError as exc:
                logger.warning("Failed to save migrated sessions to %s: %s", path, exc)
        return migrated

    @contextmanager
    def _locked(self, path: Path) -> Iterator[Path]:
        try:
            with acquire_file_lock(path, timeout=self.config.lock_timeout_seconds) as locked:
                yield locked
        except LockTimeoutError as exc:
            raise SessionStoreError(str(exc), context={"path": str(path)}) from exc

    # ---- public API ----------------------------------------------------------

    def load(self, scope: Scope = None, *, persist_migrations: bool = True) -> List[SessionRecord]:
        """Load (and migrate) the records of one scope; a missing file is empty.

        With ``persist_migrations=False`` legacy records are migrated in memory
        only and the file is left as it is.

        Raises:
            StoreCorruptedError: The file exists but is not a valid store.
            SessionStoreError: I/O failure or lock timeout.
        """
        path = self.path_for(scope)
        if not path.exists():
            return []
        with self._locked(path):
            records, _ = self._read(path)
            return self._migrate(path, records, persist=persist_migrations)

    def save(self, records: Iterable[SessionRecord], scope: Scope = None) -> None:
        """Atomically replace the full record set of ``scope``."""
        path = self.path_for(scope)
        with self._locked(path):
            self._write(path, records)

    def load_versioned(self, scope: Scope = None) -> Tuple[List[SessionRecord], str]:
        """Load records plus an opaque version for :meth:`save_if_unchanged`."""
        path = self.path_for(scope)
        with self._locked(path):
            records, version = self._read(path)
            if any(needs_migration(r) for r in records):
                records = self._migrate(path, records)
                if self.config.auto_persist_migrations:
                    version = self._current_version(path)
            return records, version

    def save_if_unchanged(self, records: Iterable[SessionRecord], version: str, scope: Scope = None) -> str:
        """Save only if the file still has ``version``; return the new version.

        Raises:
            StoreConflictError: Another writer changed the store since the load.
        """
        path = self.path_for(scope)
        with self._locked(path):
            current = self._current_version(path)
            if current != version:
                raise StoreConflictError(
                    f"Session store {path} was modified concurrently",
                    context={"path": str(path), "expected": version, "found": current},
                )
            self._write(path, records)
            return self._current_version(path)

    def _current_version(self, path: Path) -> str:
        try:
            return _digest(path.read_bytes())
        except FileNotFoundError:
            return MISSING_VERSION

    @contextmanager
    def transaction(self, scope: Scope = None) -> Iterator[StoreTransaction]:
        """Hold the store lock across a read-modify-write cycle.

        The (mutable) ``records`` list of the yielded transaction is saved when
        the block exits normally. An exception or ``rollback()`` skips the save.
        """
        path = self.path_for(scope)
        with self._locked(path):
            records, _ = self._read(path)
            if any(needs_migration(r) for r in records):
                records = migrate_records(records)
            txn = StoreTransaction(path, records)
            yield txn
            if not txn.rolled_back:
                self._write(path, txn.records)

    # ---- aggregation ---------------------------------------------------------

    def discover_legacy_stores(self) -> List[Path]:
        """Find per-repository store files under the configured workspace roots.

        Depth-first, bounded by ``store.legacy_scan_depth``; hidden directories
        other than ``.sbs`` are skipped and symlinks are never followed.
        """
        found: List[Path] = []
        seen: set[Path] = set()
        rel = Path(self.config.legacy_filename)
        max_depth = self.config.legacy_scan_depth

        def _walk(directory: Path, depth: int) -> None:
            candidate = directory / rel
            if candidate.is_file() and not candidate.is_symlink():
                resolved = candidate.resolve()
                if resolved not in seen and resolved != self.canonical_path.resolve():
                    seen.add(resolved)
                    found.append(candidate)
            if depth >= max_depth:
                return
            try:
                entries = sorted(os.scandir(directory), key=lambda e: e.name)
            except OSError:
                return
            for entry in entries:
                if entry.name.startswith(".") or entry.is_symlink():
                    continue
                if entry.is_dir(follow_symlinks=False):
                    _walk(Path(entry.path), depth + 1)

        for root in self.config.legacy_scan_roots:
            if root.is_dir() and not root.is_symlink():
                _walk(root, 0)
        return found

    def load_all(self) -> List[SessionRecord]:
        """Canonical records plus any legacy per-repository records.

        De-duplicated by namespaced ID: the canonical set wins, then legacy
        sets in discovery order. A corrupt legacy store is skipped with a
        warning; a corrupt canonical store is a hard error.
        """
        merged: List[SessionRecord] = []
        seen: set[str] = set()

        def _add(records: Iterable[SessionRecord]) -> None:
            for record in records:
                if record.namespaced_id in seen:
                    continue
                seen.add(record.namespaced_id)
                merged.append(record)

        _add(self.load(None))
        for repo_root in self.legacy_scopes():
            try:
                _add(self.load(repo_root))
            except SessionStoreError as exc:
                logger.warning("Skipping unreadable legacy session store under %s: %s", repo_root, exc)
        return merged

    def legacy_scopes(self) -> List[Path]:
        """Repository roots of the discovered legacy stores."""
        depth = len(Path(self.config.legacy_filename).parts)
        return [legacy.parents[depth - 1] for legacy in self.discover_legacy_stores()]

    # ---- explicit migration --------------------------------------------------

    def pending_migrations(self, scope: Scope = None) -> int:
        """Number of records in ``scope`` that predate namespaced IDs."""
        path = self.path_for(scope)
        if not path.exists():
            return 0
        with self._locked(path):
            records, _ = self._read(path)
        return count_pending(records)

    def migrate(self, scope: Scope = None) -> int:
        """Migrate and persist ``scope``; return how many records changed."""
        path = self.path_for(scope)
        if not path.exists():
            return 0
        with self._locked(path):
            records, _ = self._read(path)
            pending = count_pending(records)
            if pending:
                self._write(path, migrate_records(records))
        return pending

    def consolidate_legacy(self) -> int:
        """Copy legacy records missing from the canonical store into it.

        Legacy files are left in place. Returns the number of records added.
        """
        added = 0
        with self.transaction(None) as txn:
            seen = {r.namespaced_id for r in txn.records}
            for repo_root in self.legacy_scopes():
                try:
                    legacy_records = self.load(repo_root)
                except SessionStoreError as exc:
                    logger.warning("Skipping unreadable legacy session store under %s: %s", repo_root, exc)
                    continue
                for record in legacy_records:
                    if record.namespaced_id in seen:
                        continue
                    if not record.repository_root:
                        record.repository_root = str(repo_root)
                    seen.add(record.namespaced_id)
                    txn.records.append(record)
                    added += 1
            if not added:
                txn.rollback()
        return added


def find(records: Iterable[SessionRecord], namespaced_id: str) -> Optional[SessionRecord]:
    for record in records:
        if record.namespaced_id == namespaced_id:
            return record
    return None


def get(records: Iterable[SessionRecord], namespaced_id: str) -> SessionRecord:
    record = find(records, namespaced_id)
    if record is None:
        raise SessionNotFoundError(
            f"No session found for work item {namespaced_id}",
            context={"namespaced_id": namespaced_id},
        )
    return record


def filter_by_repository(records: Iterable[SessionRecord], repo_root: Path | str) -> List[SessionRecord]:
    root = str(Path(repo_root).expanduser().resolve())
    out: List[SessionRecord] = []
    for record in records:
        if not record.repository_root:
            continue
        if str(Path(record.repository_root).expanduser().resolve()) == root:
            out.append(record)
    return out


__all__ = [
    "SessionStore",
    "StoreTransaction",
    "MISSING_VERSION",
    "find",
    "get",
    "filter_by_repository",
]
