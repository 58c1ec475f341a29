"""Domain-specific configuration for status detection."""
from __future__ import annotations

from functools import cached_property

from ..base import BaseDomainConfig


class StatusConfig(BaseDomainConfig):
    """Shutdown-artifact tracking settings.

    Ranges are enforced by ``ConfigManager.validate`` at load time.
    """

    def _config_section(self) -> str:
        return "status"

    @cached_property
    def tracking_enabled(self) -> bool:
        return bool(self.section.get("tracking", True))

    @cached_property
    def refresh_interval_seconds(self) -> int:
        return int(self.section.get("refresh_interval_seconds", 60))

    @cached_property
    def max_file_size_bytes(self) -> int:
        return int(self.section.get("max_file_size_bytes", 1024 * 1024))

    @cached_property
    def timeout_seconds(self) -> float:
        return float(self.section.get("timeout_seconds", 5))

    @cached_property
    def artifact_path(self) -> str:
        return str(self.section.get("artifact_path") or ".sbs/stop.json")


__all__ = ["StatusConfig"]
