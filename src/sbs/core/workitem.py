"""Work item identifiers.

A work item is addressed by a namespaced ID ``source:id`` (``github:123``,
``test:quick``). Bare numbers (``123`` / ``#123``) are legacy GitHub input and
are normalized to ``github:<n>`` here, before anything else sees them.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from sbs.core.exceptions import WorkItemIdError

DEFAULT_SOURCE = "github"
MAX_TITLE_SLUG_LENGTH = 100

_LEGACY_RE = re.compile(r"#?\d+")
_SLUG_RE = re.compile(r"[^a-z0-9]+")
_WHITESPACE_RE = re.compile(r"\s")
_BRANCH_RE = re.compile(r"^issue-(?P<source>[a-z][a-z0-9_]*)-(?P<id>[^-]+)(?:-.*)?$")
_LEGACY_BRANCH_RE = re.compile(r"^issue-(?P<number>\d+)(?:-.*)?$")


def title_slug(title: str) -> str:
    """Lower-case ``title`` and join alphanumeric runs with hyphens (<=100 chars)."""
    slug = _SLUG_RE.sub("-", (title or "").strip().lower()).strip("-")
    if len(slug) > MAX_TITLE_SLUG_LENGTH:
        slug = slug[:MAX_TITLE_SLUG_LENGTH].rstrip("-")
    return slug


@dataclass(frozen=True)
class WorkItem:
    source: str
    id: str
    title: str = ""
    state: str = ""
    url: str = ""

    @property
    def namespaced_id(self) -> str:
        return f"{self.source}:{self.id}"

    @property
    def branch_name(self) -> str:
        """``issue-<source>-<id>`` plus a title slug when there is a title."""
        base = f"issue-{self.source}-{self.id}"
        slug = title_slug(self.title)
        return f"{base}-{slug}" if slug else base

    def with_title(self, title: str) -> "WorkItem":
        return WorkItem(self.source, self.id, title, self.state, self.url)

    def __str__(self) -> str:
        return self.namespaced_id


def is_legacy_format(text: str) -> bool:
    return bool(_LEGACY_RE.fullmatch(text.strip()))


def parse_work_item_id(text: str) -> WorkItem:
    """Parse ``source:id`` or a legacy bare/``#`` number into a WorkItem.

    Raises:
        WorkItemIdError: Empty input, empty parts, embedded whitespace or
            more than one ``:`` separator.
    """
    raw = (text or "").strip()
    if not raw:
        raise WorkItemIdError("work item ID cannot be empty")

    if is_legacy_format(raw):
        number = raw.lstrip("#")
        return WorkItem(source=DEFAULT_SOURCE, id=str(int(number)))

    parts = raw.split(":")
    if len(parts) != 2:
        raise WorkItemIdError(
            f"invalid work item ID format: {raw} (expected 'source:id' or a number)",
            context={"input": raw},
        )
    source, item_id = parts
    if not source:
        raise WorkItemIdError(f"source cannot be empty in work item ID: {raw}", context={"input": raw})
    if not item_id:
        raise WorkItemIdError(f"id cannot be empty in work item ID: {raw}", context={"input": raw})
    if _WHITESPACE_RE.search(raw):
        raise WorkItemIdError(f"work item ID cannot contain whitespace: {raw}", context={"input": raw})
    return WorkItem(source=source, id=item_id)


def is_valid_namespaced_id(value: str) -> bool:
    try:
        item = parse_work_item_id(value)
    except WorkItemIdError:
        return False
    return item.namespaced_id == value


def work_item_from_branch(branch: str) -> Optional[WorkItem]:
    """Recover the work item a branch was created for, if it follows the pattern.

    ``issue-test-quick-fix-bug`` -> ``test:quick``;
    legacy ``issue-42-some-title`` -> ``github:42``.
    """
    name = branch.strip().lstrip("*").strip()
    legacy = _LEGACY_BRANCH_RE.match(name)
    if legacy:
        return WorkItem(source=DEFAULT_SOURCE, id=legacy.group("number"))
    match = _BRANCH_RE.match(name)
    if match:
        return WorkItem(source=match.group("source"), id=match.group("id"))
    return None


__all__ = [
    "WorkItem",
    "DEFAULT_SOURCE",
    "MAX_TITLE_SLUG_LENGTH",
    "title_slug",
    "is_legacy_format",
    "parse_work_item_id",
    "is_valid_namespaced_id",
    "work_item_from_branch",
]
