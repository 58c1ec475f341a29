"""File I/O utilities for sbs core.

Single source of truth for safe file access patterns:
- Atomic writes with fsync and advisory locks
- Strict JSON reads (corruption is surfaced, never masked)
- Directory management utilities
"""
from __future__ import annotations

import fcntl
import json
import os
import tempfile
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator, Optional, TextIO, Union

import yaml

PathLike = Union[str, Path]

_THREAD_MUTEXES: dict[str, threading.Lock] = {}
_THREAD_MUTEXES_GUARD = threading.Lock()


class LockTimeoutError(TimeoutError):
    """Raised when an OS file lock cannot be acquired within timeout."""


def ensure_directory(path: PathLike) -> Path:
    """Ensure directory exists and return it.

    Raises:
        NotADirectoryError: If path exists but is not a directory
    """
    path = Path(path)
    if path.exists():
        if not path.is_dir():
            raise NotADirectoryError(f"Path exists but is not a directory: {path}")
        return path
    path.mkdir(parents=True, exist_ok=True)
    return path


def atomic_write(path: PathLike, write_fn: Callable[[TextIO], None], *, encoding: str = "utf-8") -> None:
    """Write to ``path`` atomically using a temp file + fsync + rename.

    - Parent directory is created if missing
    - Data is written to a temporary file in the same directory
    - File is fsync'd, then atomically replaced
    - Any leftover temp file is cleaned up on failure
    """
    path = Path(path)
    ensure_directory(path.parent)

    tmp_path: Optional[Path] = None
    try:
        with tempfile.NamedTemporaryFile(
            "w",
            encoding=encoding,
            dir=str(path.parent),
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as f:
            tmp_path = Path(f.name)
            write_fn(f)
            f.flush()
            os.fsync(f.fileno())

        os.replace(str(tmp_path), str(path))
    finally:
        if tmp_path is not None and tmp_path.exists():
            try:
                tmp_path.unlink()
            except OSError:
                # Best-effort cleanup; never fail callers on temp removal
                pass


def write_json_atomic(path: PathLike, data: Any, *, indent: int = 2) -> None:
    """Atomically write JSON ``data`` to ``path`` (UTF-8, trailing newline)."""

    def _writer(f: TextIO) -> None:
        json.dump(data, f, indent=indent, ensure_ascii=False)
        f.write("\n")

    atomic_write(path, _writer)


def read_json(path: PathLike) -> Any:
    """Read JSON from ``path``.

    Raises:
        FileNotFoundError: If the file does not exist
        json.JSONDecodeError: If the content is not valid JSON
    """
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def read_yaml(path: PathLike, default: Any = None, raise_on_error: bool = False) -> Any:
    """Read YAML with error handling.

    Returns ``default`` if the file is missing or empty. Parse errors propagate
    when ``raise_on_error`` is True, otherwise ``default`` is returned.
    """
    path = Path(path)
    if not path.exists():
        if raise_on_error:
            raise FileNotFoundError(f"File not found: {path}")
        return default
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (yaml.YAMLError, OSError):
        if raise_on_error:
            raise
        return default
    return default if data is None else data


def _thread_mutex(path: Path) -> threading.Lock:
    key = str(path.resolve())
    with _THREAD_MUTEXES_GUARD:
        lock = _THREAD_MUTEXES.get(key)
        if lock is None:
            lock = _THREAD_MUTEXES.setdefault(key, threading.Lock())
    return lock


@contextmanager
def acquire_file_lock(
    file_path: PathLike,
    timeout: float = 5.0,
    *,
    poll_interval: float = 0.05,
) -> Iterator[Path]:
    """Acquire an exclusive lock on ``<file_path>.lock`` with a timeout.

    Uses ``fcntl.flock`` with ``LOCK_EX | LOCK_NB`` in a retry loop. A sidecar
    ``.lock`` file is the lock target so the data file itself can be replaced
    atomically while the lock is held. Threads in the same process are
    serialized with an in-process mutex first (flock is per open file).

    Raises:
        LockTimeoutError: If the lock cannot be acquired within ``timeout``.
    """
    if timeout <= 0:
        raise ValueError(f"timeout must be positive (got {timeout})")

    start = time.monotonic()
    target = Path(file_path)
    lock_target = target.with_suffix(target.suffix + ".lock")
    ensure_directory(lock_target.parent)

    mutex = _thread_mutex(lock_target)
    if not mutex.acquire(timeout=timeout):
        raise LockTimeoutError(f"Could not acquire lock on {target} within {timeout}s")

    try:
        with open(lock_target, "a+") as fh:
            while True:
                try:
                    fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                    break
                except OSError:
                    if (time.monotonic() - start) >= timeout:
                        raise LockTimeoutError(
                            f"Could not acquire lock on {target} within {timeout}s"
                        )
                    time.sleep(poll_interval)
            try:
                yield target
            finally:
                fcntl.flock(fh.fileno(), fcntl.LOCK_UN)
    finally:
        mutex.release()


__all__ = [
    "LockTimeoutError",
    "ensure_directory",
    "atomic_write",
    "write_json_atomic",
    "read_json",
    "read_yaml",
    "acquire_file_lock",
]
