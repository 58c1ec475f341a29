"""
Session record models.

A session record is one JSON object in the session store. Field names match
the on-disk format; keys this version does not know about are carried in
``extra`` and written back unchanged.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from sbs.core.utils.time import try_parse_iso8601, utc_now, utc_timestamp


class ResourceType(str, Enum):
    BRANCH = "branch"
    WORKTREE = "worktree"
    TERMINAL = "tmux"
    SANDBOX = "sandbox"


class ResourceEntryStatus(str, Enum):
    CREATED = "created"
    FAILED = "failed"
    CLEANUP = "cleanup"


class ResourceStatus(str, Enum):
    CREATING = "creating"
    ACTIVE = "active"
    CLEANUP = "cleanup"
    FAILED = "failed"


SESSION_ACTIVE = "active"
SESSION_STOPPED = "stopped"


def _value(v: Any) -> str:
    return v.value if isinstance(v, Enum) else str(v)


@dataclass
class ResourceCreationEntry:
    """One step of the append-only resource-creation audit trail."""

    resource_type: str
    resource_id: str
    created_at: str = ""
    status: str = ResourceEntryStatus.CREATED.value
    metadata: Dict[str, Any] = field(default_factory=dict)
    extra: Dict[str, Any] = field(default_factory=dict)

    _KNOWN = ("resource_type", "resource_id", "created_at", "status", "metadata")

    @property
    def created_time(self) -> Optional[datetime]:
        return try_parse_iso8601(self.created_at)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "created_at": self.created_at,
            "status": self.status,
            "metadata": dict(self.metadata),
        }
        data.update(self.extra)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResourceCreationEntry":
        return cls(
            resource_type=str(data.get("resource_type", "")),
            resource_id=str(data.get("resource_id", "")),
            created_at=str(data.get("created_at") or ""),
            status=str(data.get("status") or ResourceEntryStatus.CREATED.value),
            metadata=dict(data.get("metadata") or {}),
            extra={k: v for k, v in data.items() if k not in cls._KNOWN},
        )


# Serialized only when non-empty (legacy writers omitted them).
_OMIT_EMPTY = (
    "issue_number",
    "source_type",
    "namespaced_id",
    "resource_status",
    "current_creation_step",
    "failure_point",
    "failure_reason",
    "resource_creation_log",
)


@dataclass
class SessionRecord:
    """Bookkeeping for one work item's branch, worktree, tmux session and sandbox.

    ``status`` is the coarse state last written (``active`` / ``stopped``); it
    is never used as evidence of liveness. See
    :class:`sbs.core.session.status.StatusDetector` for the derived view.
    """

    namespaced_id: str = ""
    source_type: str = ""
    issue_number: int = 0
    issue_title: str = ""
    friendly_title: str = ""
    branch: str = ""
    worktree_path: str = ""
    tmux_session: str = ""
    sandbox_name: str = ""
    repository_name: str = ""
    repository_root: str = ""
    created_at: str = ""
    last_activity: str = ""
    status: str = SESSION_ACTIVE
    resource_status: str = ""
    current_creation_step: str = ""
    failure_point: str = ""
    failure_reason: str = ""
    resource_creation_log: List[ResourceCreationEntry] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    # ---- serialization -------------------------------------------------------

    @classmethod
    def _field_names(cls) -> List[str]:
        return [f.name for f in fields(cls) if f.name != "extra"]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionRecord":
        known = set(cls._field_names())
        kwargs: Dict[str, Any] = {}
        for name in known:
            if name not in data or data[name] is None:
                continue
            if name == "resource_creation_log":
                kwargs[name] = [ResourceCreationEntry.from_dict(e) for e in data[name]]
            elif name == "issue_number":
                kwargs[name] = int(data[name])
            else:
                kwargs[name] = str(data[name])
        kwargs["extra"] = {k: copy.deepcopy(v) for k, v in data.items() if k not in known}
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for name in self._field_names():
            value = getattr(self, name)
            if name in _OMIT_EMPTY and not value:
                continue
            if name == "resource_creation_log":
                value = [e.to_dict() for e in value]
            data[name] = value
        for key, value in self.extra.items():
            data.setdefault(key, copy.deepcopy(value))
        return data

    def copy(self) -> "SessionRecord":
        return SessionRecord.from_dict(self.to_dict())

    # ---- derived -------------------------------------------------------------

    @property
    def needs_migration(self) -> bool:
        """True when the record predates namespaced work item IDs."""
        return not self.source_type or not self.namespaced_id

    @property
    def title(self) -> str:
        return self.issue_title

    @property
    def last_activity_time(self) -> Optional[datetime]:
        return try_parse_iso8601(self.last_activity)

    @property
    def created_time(self) -> Optional[datetime]:
        return try_parse_iso8601(self.created_at)

    def resources_of(self, resource_type: ResourceType | str) -> List[ResourceCreationEntry]:
        kind = _value(resource_type)
        return [e for e in self.resource_creation_log if e.resource_type == kind]

    # ---- mutation ------------------------------------------------------------

    def touch(self, now: Optional[datetime] = None) -> None:
        self.last_activity = utc_timestamp(now or utc_now())

    def begin_step(self, step: str) -> None:
        self.resource_status = ResourceStatus.CREATING.value
        self.current_creation_step = step

    def record_resource(
        self,
        resource_type: ResourceType | str,
        resource_id: str,
        *,
        status: ResourceEntryStatus | str = ResourceEntryStatus.CREATED,
        metadata: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> ResourceCreationEntry:
        """Append an audit entry.

        The log is append-only and non-decreasing in time: an entry is never
        stamped earlier than the one before it, even if the clock moved back.
        """
        when = now or utc_now()
        if self.resource_creation_log:
            previous = self.resource_creation_log[-1].created_time
            if previous is not None and previous > when:
                when = previous
        entry = ResourceCreationEntry(
            resource_type=_value(resource_type),
            resource_id=resource_id,
            created_at=utc_timestamp(when),
            status=_value(status),
            metadata=dict(metadata or {}),
        )
        self.resource_creation_log.append(entry)
        return entry

    def mark_active(self) -> None:
        self.status = SESSION_ACTIVE
        self.resource_status = ResourceStatus.ACTIVE.value
        self.current_creation_step = ""
        self.failure_point = ""
        self.failure_reason = ""

    def mark_failed(self, step: str, reason: str) -> None:
        self.resource_status = ResourceStatus.FAILED.value
        self.failure_point = step
        self.failure_reason = reason

    def mark_stopped(self, now: Optional[datetime] = None) -> None:
        self.status = SESSION_STOPPED
        self.touch(now)


def records_from_dicts(items: List[Dict[str, Any]]) -> List[SessionRecord]:
    return [SessionRecord.from_dict(item) for item in items]


def records_to_dicts(records: List[SessionRecord]) -> List[Dict[str, Any]]:
    return [r.to_dict() for r in records]


__all__ = [
    "ResourceType",
    "ResourceEntryStatus",
    "ResourceStatus",
    "SESSION_ACTIVE",
    "SESSION_STOPPED",
    "ResourceCreationEntry",
    "SessionRecord",
    "records_from_dicts",
    "records_to_dicts",
]
