"""Resource names for sessions.

Generation (new sessions) and resolution (existing records) are kept apart.
Resolution is an ordered tuple of strategies; the first one that yields a
name wins, so older records keep resolving to the names they were created
with.
"""
from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Sequence, Tuple

from sbs.core.workitem import WorkItem

from .models import SessionRecord

DEFAULT_NAME_LENGTH = 30
_NON_ALNUM_RE = re.compile(r"[^a-zA-Z0-9]+")

NamingStrategy = Callable[[SessionRecord], Optional[str]]


@dataclass(frozen=True)
class Repository:
    """A git repository a session belongs to."""

    name: str
    root: Path

    def tmux_session_name(self, item: WorkItem) -> str:
        return f"work-issue-{self.name}-{item.source}-{item.id}"

    def sandbox_name(self, item: WorkItem) -> str:
        return f"work-issue-{self.name}-{item.source}-{item.id}"

    def worktree_path(self, item: WorkItem, base: Path) -> Path:
        return Path(base).expanduser() / self.name / f"issue-{item.source}-{item.id}"

    def friendly_title(self, item: WorkItem) -> str:
        return sanitize_name(f"{self.name}-{item.source}-{item.id}", max_length=0)


def fold_ascii(text: str) -> str:
    """Strip diacritics (``café`` -> ``cafe``)."""
    decomposed = unicodedata.normalize("NFD", text)
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    return unicodedata.normalize("NFC", stripped)


def sanitize_name(name: str, max_length: int = DEFAULT_NAME_LENGTH) -> str:
    """Make ``name`` safe for session/sandbox names: ``[a-z0-9-]``, no edge hyphens.

    ``max_length`` of 0 disables truncation. Truncation prefers a hyphen
    boundary when one exists.
    """
    if not name:
        return ""
    sanitized = _NON_ALNUM_RE.sub("-", fold_ascii(name)).strip("-").lower()
    if max_length and len(sanitized) > max_length:
        truncated = sanitized[:max_length]
        cut = truncated.rfind("-")
        sanitized = truncated[:cut] if 0 < cut < max_length - 1 else truncated
        sanitized = sanitized.rstrip("-")
    return sanitized


# ---- sandbox name resolution -------------------------------------------------


def stored_sandbox_name(record: SessionRecord) -> Optional[str]:
    return record.sandbox_name or None


def repository_sandbox_name(record: SessionRecord) -> Optional[str]:
    if record.repository_name and record.namespaced_id:
        return f"sbs-{record.namespaced_id}"
    return None


def legacy_sandbox_name(record: SessionRecord) -> Optional[str]:
    if record.namespaced_id:
        return f"work-issue-{record.namespaced_id}"
    return None


SANDBOX_NAME_STRATEGIES: Tuple[NamingStrategy, ...] = (
    stored_sandbox_name,
    repository_sandbox_name,
    legacy_sandbox_name,
)


def resolve_name(record: SessionRecord, strategies: Sequence[NamingStrategy]) -> Optional[str]:
    for strategy in strategies:
        name = strategy(record)
        if name:
            return name
    return None


def resolve_sandbox_name(record: SessionRecord) -> Optional[str]:
    return resolve_name(record, SANDBOX_NAME_STRATEGIES)


__all__ = [
    "Repository",
    "NamingStrategy",
    "fold_ascii",
    "sanitize_name",
    "stored_sandbox_name",
    "repository_sandbox_name",
    "legacy_sandbox_name",
    "SANDBOX_NAME_STRATEGIES",
    "resolve_name",
    "resolve_sandbox_name",
]
