"""Domain-specific configuration for cleanup defaults."""
from __future__ import annotations

from functools import cached_property

from ..base import BaseDomainConfig


class CleanupConfig(BaseDomainConfig):
    def _config_section(self) -> str:
        return "cleanup"

    @cached_property
    def max_workers(self) -> int:
        return max(1, int(self.section.get("max_workers", 1)))

    @cached_property
    def default_mode(self) -> str:
        return str(self.section.get("default_mode") or "default").lower()


__all__ = ["CleanupConfig"]
