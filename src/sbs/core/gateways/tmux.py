"""tmux gateway."""
from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import List, Mapping, Optional, Sequence

from sbs.core.exceptions import GatewayError
from sbs.core.utils.subprocess import command_output, describe_failure, run_with_timeout

logger = logging.getLogger(__name__)

# tmux reports these when the session (or the whole server) is gone.
_ABSENT_MARKERS = ("can't find session", "no server running", "session not found", "error connecting to")


def _is_absent(result: subprocess.CompletedProcess) -> bool:
    text = command_output(result).lower()
    return any(marker in text for marker in _ABSENT_MARKERS)


class TmuxGateway:
    def __init__(self, executable: str = "tmux") -> None:
        self.executable = executable

    def _run(self, args: Sequence[str], *, operation: str, resource: str) -> subprocess.CompletedProcess:
        argv = [self.executable, *args]
        try:
            return run_with_timeout(argv, timeout_type="tmux", capture_output=True, text=True)
        except (subprocess.TimeoutExpired, OSError) as exc:
            raise GatewayError(
                f"tmux {operation} failed for {resource}: {describe_failure(exc, argv)}",
                resource=resource,
                operation=operation,
            ) from exc

    def session_exists(self, name: str) -> bool:
        result = self._run(["has-session", "-t", name], operation="has-session", resource=name)
        if result.returncode == 0:
            return True
        if result.returncode == 1:
            return False
        raise GatewayError(
            f"cannot check tmux session {name} (rc={result.returncode}): {command_output(result)}",
            resource=name,
            operation="has-session",
        )

    def create_session(
        self,
        name: str,
        working_dir: Path,
        *,
        command: Optional[Sequence[str]] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> None:
        args: List[str] = ["new-session", "-d", "-s", name, "-c", str(working_dir)]
        for key, value in sorted((env or {}).items()):
            args += ["-e", f"{key}={value}"]
        if command:
            args += [str(c) for c in command]
        result = self._run(args, operation="new-session", resource=name)
        if result.returncode != 0:
            raise GatewayError(
                f"failed to create tmux session {name}: {command_output(result)}",
                resource=name,
                operation="new-session",
            )
        logger.info("Created tmux session %s in %s", name, working_dir)

    def kill_session(self, name: str) -> None:
        """Kill a session; one that is already gone is not an error."""
        result = self._run(["kill-session", "-t", name], operation="kill-session", resource=name)
        if result.returncode == 0:
            logger.info("Killed tmux session %s", name)
            return
        if _is_absent(result):
            return
        raise GatewayError(
            f"failed to kill tmux session {name}: {command_output(result)}",
            resource=name,
            operation="kill-session",
        )

    def list_sessions(self) -> List[str]:
        result = self._run(["list-sessions", "-F", "#{session_name}"], operation="list-sessions", resource="tmux")
        if result.returncode != 0:
            if _is_absent(result):
                return []
            raise GatewayError(
                f"failed to list tmux sessions: {command_output(result)}",
                resource="tmux",
                operation="list-sessions",
            )
        return [line.strip() for line in (result.stdout or "").splitlines() if line.strip()]


__all__ = ["TmuxGateway"]
