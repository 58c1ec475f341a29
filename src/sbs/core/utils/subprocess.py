from __future__ import annotations

"""Subprocess helpers with config-driven timeouts and command logging.

- Timeouts come from the ``timeouts`` config section, bucketed by tool
  (git / tmux / sandbox / default) unless the caller passes ``timeout=``.
- Every invocation is logged on the ``sbs.cmdlog`` logger when
  ``logging.command_logging`` is enabled (argv, exit code, duration).
- No shell=True.
"""

import logging
import shlex
import subprocess
from pathlib import Path
from time import perf_counter
from typing import Any, List, Optional, Sequence

cmdlog = logging.getLogger("sbs.cmdlog")

_TIMEOUT_BUCKETS = frozenset({"git", "tmux", "sandbox"})


def _flatten_cmd(cmd: Any) -> List[str]:
    if isinstance(cmd, (list, tuple)):
        return [str(p) for p in cmd]
    return shlex.split(str(cmd))


def _infer_timeout_type(cmd: Any) -> str:
    parts = _flatten_cmd(cmd)
    if not parts:
        return "default"
    name = Path(parts[0]).name.lower()
    return name if name in _TIMEOUT_BUCKETS else "default"


def configured_timeout(cmd: Any, timeout_type: str | None = None) -> float:
    """Return the configured timeout (seconds) for ``cmd``."""
    from sbs.core.config.domains.timeouts import TimeoutsConfig

    cfg = TimeoutsConfig()
    ttype = timeout_type or _infer_timeout_type(cmd)
    return cfg.seconds_for(ttype)


def _command_logging_enabled() -> bool:
    try:
        from sbs.core.config.domains.logging import LoggingConfig

        return LoggingConfig().command_logging
    except Exception:
        # Logging must never break command execution.
        return False


def run_with_timeout(cmd: Sequence[str] | str, timeout_type: str | None = None, **kwargs: Any) -> subprocess.CompletedProcess:
    """Run a subprocess using the configured timeout bucket.

    Args:
        cmd: Command list/str passed through to ``subprocess.run``.
        timeout_type: Bucket name (``git``, ``tmux``, ``sandbox``, ``default``).
        **kwargs: Additional arguments forwarded to ``subprocess.run``.

    Returns:
        CompletedProcess from ``subprocess.run``.

    Raises:
        subprocess.TimeoutExpired: When the command exceeds its timeout.
        subprocess.CalledProcessError: When ``check=True`` and the exit code is non-zero.
        FileNotFoundError: When the executable is not installed.
    """
    explicit_timeout = kwargs.pop("timeout", None)
    timeout = explicit_timeout if explicit_timeout is not None else configured_timeout(cmd, timeout_type)
    argv = _flatten_cmd(cmd)
    log_commands = _command_logging_enabled()

    start = perf_counter()
    try:
        result = subprocess.run(argv, timeout=timeout, **kwargs)
    except subprocess.TimeoutExpired:
        if log_commands:
            cmdlog.info("timeout after %.1fs: %s", timeout, shlex.join(argv))
        raise
    except subprocess.CalledProcessError as exc:
        if log_commands:
            cmdlog.info(
                "failed rc=%s in %.3fs: %s", exc.returncode, perf_counter() - start, shlex.join(argv)
            )
        raise
    except OSError as exc:
        if log_commands:
            cmdlog.info("could not execute %s: %s", shlex.join(argv), exc)
        raise

    if log_commands:
        duration = perf_counter() - start
        if result.returncode == 0:
            cmdlog.debug("ok in %.3fs: %s", duration, shlex.join(argv))
        else:
            cmdlog.info("rc=%s in %.3fs: %s", result.returncode, duration, shlex.join(argv))
    return result


def command_output(result: subprocess.CompletedProcess) -> str:
    """Return combined stripped stdout/stderr text of a completed process."""
    parts: List[str] = []
    for stream in (result.stdout, result.stderr):
        if isinstance(stream, bytes):
            stream = stream.decode("utf-8", errors="replace")
        if stream:
            parts.append(stream.strip())
    return "\n".join(p for p in parts if p)


def describe_failure(exc: BaseException, argv: Optional[Sequence[str]] = None) -> str:
    """Short human description of a subprocess failure for error messages."""
    if isinstance(exc, subprocess.TimeoutExpired):
        return f"timed out after {exc.timeout}s"
    if isinstance(exc, FileNotFoundError):
        name = argv[0] if argv else (exc.filename or "command")
        return f"{name} not found on PATH"
    return str(exc)


__all__ = [
    "configured_timeout",
    "run_with_timeout",
    "command_output",
    "describe_failure",
]
