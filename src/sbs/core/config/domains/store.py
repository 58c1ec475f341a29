"""Domain-specific configuration for the session store."""
from __future__ import annotations

from functools import cached_property
from pathlib import Path
from typing import List

from ..base import BaseDomainConfig


class StoreConfig(BaseDomainConfig):
    def _config_section(self) -> str:
        return "store"

    @cached_property
    def filename(self) -> str:
        return str(self.section.get("filename") or "sessions.json")

    @cached_property
    def legacy_filename(self) -> str:
        """Per-repository store path, relative to the repository root."""
        return str(self.section.get("legacy_filename") or ".sbs/sessions.json")

    @cached_property
    def legacy_scan_roots(self) -> List[Path]:
        from sbs.core.utils.paths import expand_path

        return [expand_path(p) for p in (self.section.get("legacy_scan_roots") or [])]

    @cached_property
    def legacy_scan_depth(self) -> int:
        return int(self.section.get("legacy_scan_depth", 3))

    @cached_property
    def auto_persist_migrations(self) -> bool:
        return bool(self.section.get("auto_persist_migrations", True))

    @cached_property
    def lock_timeout_seconds(self) -> float:
        return float(self.section.get("lock_timeout_seconds", 5))


__all__ = ["StoreConfig"]
