"""Derived session status.

Status is recomputed on every query from external evidence and is never
persisted. Precedence:

1. a parsable shutdown artifact -> ``stopped`` (last change = its timestamp)
2. a confirmed tmux session -> ``active``
3. a present but unparsable artifact -> ``unknown``
4. a tmux check that could not tell -> ``unknown``
5. otherwise -> ``stale`` (last change = the record's last activity)

The shutdown artifact is read from inside the sandbox first and from the
worktree on disk when the sandbox cannot serve it.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Optional

from sbs.core.exceptions import GatewayError, StopArtifactError
from sbs.core.gateways.base import SandboxGateway, TerminalGateway
from sbs.core.utils.time import format_time_delta, parse_iso8601

from .models import SessionRecord
from .naming import resolve_sandbox_name

logger = logging.getLogger(__name__)

HOOK_KEY = "claude_code_hook"


class Status(str, Enum):
    ACTIVE = "active"
    STOPPED = "stopped"
    STALE = "stale"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class SessionStatus:
    status: Status
    last_change: Optional[datetime] = None
    time_delta: str = "unknown"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "last_change": self.last_change.isoformat() if self.last_change else None,
            "time_delta": self.time_delta,
        }


class ArtifactState(str, Enum):
    ABSENT = "absent"
    PARSED = "parsed"
    CORRUPT = "corrupt"


@dataclass(frozen=True)
class StopArtifact:
    state: ArtifactState
    timestamp: Optional[datetime] = None
    source: str = ""
    error: str = ""


def _timestamp_from(value: Any) -> Optional[datetime]:
    if not isinstance(value, str):
        return None
    try:
        return parse_iso8601(value)
    except ValueError:
        return None


def parse_stop_artifact(raw: bytes, *, max_size: Optional[int] = None) -> datetime:
    """Extract the stop timestamp from shutdown-artifact bytes.

    Accepts ``{"claude_code_hook": {"timestamp": ...}}`` or a top-level
    ``{"timestamp": ...}`` (RFC 3339).

    Raises:
        StopArtifactError: Empty, oversized, not a JSON object or no valid timestamp.
    """
    if max_size is not None and len(raw) > max_size:
        raise StopArtifactError(f"stop artifact too large ({len(raw)} > {max_size} bytes)")
    if not raw.strip():
        raise StopArtifactError("empty stop artifact")
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise StopArtifactError(f"invalid JSON in stop artifact: {exc}") from exc
    if not isinstance(data, dict):
        raise StopArtifactError("stop artifact is not a JSON object")

    hook = data.get(HOOK_KEY)
    if isinstance(hook, dict):
        ts = _timestamp_from(hook.get("timestamp"))
        if ts is not None:
            return ts
    ts = _timestamp_from(data.get("timestamp"))
    if ts is not None:
        return ts
    raise StopArtifactError("no valid timestamp found in stop artifact")


class StatusDetector:
    """Compute :class:`SessionStatus` for session records.

    Args:
        terminal: tmux gateway.
        sandbox: sandbox gateway; without one only the worktree copy of the
            artifact is consulted.
        status_config: ``StatusConfig`` accessor (defaults to the loaded config).
        clock: Returns "now" as an aware datetime (tests pin it).
    """

    def __init__(
        self,
        terminal: TerminalGateway,
        sandbox: Optional[SandboxGateway] = None,
        *,
        status_config=None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        if status_config is None:
            from sbs.core.config.domains import StatusConfig

            status_config = StatusConfig()
        self.terminal = terminal
        self.sandbox = sandbox
        self.config = status_config
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    # ---- evidence ------------------------------------------------------------

    def _from_bytes(self, raw: bytes, source: str) -> StopArtifact:
        try:
            ts = parse_stop_artifact(raw, max_size=self.config.max_file_size_bytes)
        except StopArtifactError as exc:
            return StopArtifact(ArtifactState.CORRUPT, source=source, error=str(exc))
        return StopArtifact(ArtifactState.PARSED, timestamp=ts, source=source)

    def _read_from_sandbox(self, record: SessionRecord) -> Optional[StopArtifact]:
        name = resolve_sandbox_name(record)
        if self.sandbox is None or not name:
            return None
        try:
            raw = self.sandbox.read_file(
                name, self.config.artifact_path, timeout=self.config.timeout_seconds
            )
        except GatewayError as exc:
            logger.debug("Sandbox read of stop artifact failed for %s: %s", record.namespaced_id, exc)
            return None
        return self._from_bytes(raw, "sandbox")

    def _read_from_worktree(self, record: SessionRecord) -> StopArtifact:
        if not record.worktree_path:
            return StopArtifact(ArtifactState.ABSENT)
        path = Path(record.worktree_path).expanduser() / self.config.artifact_path
        try:
            size = path.stat().st_size
            if size > self.config.max_file_size_bytes:
                return StopArtifact(
                    ArtifactState.CORRUPT,
                    source="worktree",
                    error=f"stop artifact too large ({size} bytes)",
                )
            raw = path.read_bytes()
        except FileNotFoundError:
            return StopArtifact(ArtifactState.ABSENT)
        except OSError as exc:
            # Present but unreadable is not the same as absent.
            return StopArtifact(ArtifactState.CORRUPT, source="worktree", error=str(exc))
        return self._from_bytes(raw, "worktree")

    def read_stop_artifact(self, record: SessionRecord) -> StopArtifact:
        if not self.config.tracking_enabled:
            return StopArtifact(ArtifactState.ABSENT)
        from_sandbox = self._read_from_sandbox(record)
        if from_sandbox is not None:
            return from_sandbox
        return self._read_from_worktree(record)

    def terminal_alive(self, record: SessionRecord) -> Optional[bool]:
        """True/False when tmux can tell, None when the check itself failed."""
        if not record.tmux_session:
            return False
        try:
            return self.terminal.session_exists(record.tmux_session)
        except GatewayError as exc:
            logger.warning("Cannot tell whether tmux session %s exists: %s", record.tmux_session, exc)
            return None

    # ---- status --------------------------------------------------------------

    def detect(self, record: SessionRecord) -> SessionStatus:
        now = self.clock()
        artifact = self.read_stop_artifact(record)

        if artifact.state is ArtifactState.PARSED and artifact.timestamp is not None:
            return SessionStatus(Status.STOPPED, artifact.timestamp, format_time_delta(artifact.timestamp, now))

        alive = self.terminal_alive(record)
        if alive:
            return SessionStatus(Status.ACTIVE, None, "now")

        if artifact.state is ArtifactState.CORRUPT:
            logger.warning(
                "Unparsable stop artifact for %s (%s): %s",
                record.namespaced_id,
                artifact.source,
                artifact.error,
            )
            return SessionStatus(Status.UNKNOWN, None, "unknown")

        if alive is None:
            return SessionStatus(Status.UNKNOWN, None, "unknown")

        last = record.last_activity_time
        return SessionStatus(Status.STALE, last, format_time_delta(last, now))

    def detect_all(self, records: Iterable[SessionRecord]) -> Dict[str, SessionStatus]:
        return {r.namespaced_id: self.detect(r) for r in records}


__all__ = [
    "Status",
    "SessionStatus",
    "ArtifactState",
    "StopArtifact",
    "parse_stop_artifact",
    "StatusDetector",
]
