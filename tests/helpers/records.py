"""Builders for session records and store files."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List

from sbs.core.session.models import SessionRecord


def make_record(namespaced_id: str = "github:1", **overrides: Any) -> SessionRecord:
    """A fully migrated record with deterministic resource names."""
    source, _, item_id = namespaced_id.partition(":")
    data: Dict[str, Any] = {
        "namespaced_id": namespaced_id,
        "source_type": source,
        "issue_title": f"Work item {item_id}",
        "branch": f"issue-{source}-{item_id}",
        "worktree_path": f"/tmp/worktrees/demo/issue-{source}-{item_id}",
        "tmux_session": f"work-issue-demo-{source}-{item_id}",
        "sandbox_name": f"work-issue-demo-{source}-{item_id}",
        "repository_name": "demo",
        "repository_root": "/tmp/repos/demo",
        "created_at": "2024-01-01T10:00:00Z",
        "last_activity": "2024-01-01T12:00:00Z",
        "status": "active",
    }
    data.update(overrides)
    return SessionRecord.from_dict(data)


def write_store(path: Path, items: List[Dict[str, Any]]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(items, indent=2), encoding="utf-8")
    return path


def read_store(path: Path) -> List[Dict[str, Any]]:
    return json.loads(path.read_text(encoding="utf-8"))
