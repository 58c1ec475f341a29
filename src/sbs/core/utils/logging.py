from __future__ import annotations

import logging
import sys
from pathlib import Path

from .io import ensure_directory

_CONFIGURED_LOG_PATH: str | None = None
_SBS_FILE_HANDLER: logging.Handler | None = None


def _level_from_name(name: str) -> int:
    level = logging.getLevelName(str(name).upper())
    return level if isinstance(level, int) else logging.INFO


def configure_stdlib_logging(*, log_path: Path, level: str = "INFO") -> None:
    """Configure Python stdlib logging to write to `log_path` (no stderr handler).

    Idempotent per-process: if already configured for the same file, no-op.
    """
    global _CONFIGURED_LOG_PATH, _SBS_FILE_HANDLER

    resolved = str(Path(log_path).resolve())
    if _CONFIGURED_LOG_PATH == resolved and _SBS_FILE_HANDLER is not None:
        return

    ensure_directory(Path(resolved).parent)

    root = logging.getLogger()
    root.setLevel(_level_from_name(level))

    # Keep stdout/stderr clean for --json output. FileHandler is also a
    # StreamHandler, so only console streams are removed.
    for h in list(root.handlers):
        if isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) in (sys.stdout, sys.stderr):
            root.removeHandler(h)
            h.close()

    if _SBS_FILE_HANDLER is not None:
        root.removeHandler(_SBS_FILE_HANDLER)
        _SBS_FILE_HANDLER.close()
        _SBS_FILE_HANDLER = None

    fh = logging.FileHandler(resolved, encoding="utf-8")
    fh.setLevel(_level_from_name(level))
    fh.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root.addHandler(fh)

    _SBS_FILE_HANDLER = fh
    _CONFIGURED_LOG_PATH = resolved


def silence_console_logging() -> None:
    """Keep the lastResort handler from writing warnings to stderr.

    Used when file logging is disabled: the root logger gets a NullHandler so
    WARNING records from library code do not pollute CLI output.
    """
    root = logging.getLogger()
    if not root.handlers:
        root.addHandler(logging.NullHandler())


def reset_stdlib_logging_for_tests() -> None:
    """Test-only: clear configured handlers."""
    global _CONFIGURED_LOG_PATH, _SBS_FILE_HANDLER
    root = logging.getLogger()
    if _SBS_FILE_HANDLER is not None:
        root.removeHandler(_SBS_FILE_HANDLER)
        _SBS_FILE_HANDLER.close()
    _CONFIGURED_LOG_PATH = None
    _SBS_FILE_HANDLER = None


__all__ = ["configure_stdlib_logging", "silence_console_logging", "reset_stdlib_logging_for_tests"]
