"""Domain-specific configuration for sbs logging.

Controls:
- Whether CLI runs write a log file at all
- The log level and file location
- Whether every external command is logged on ``sbs.cmdlog``
"""
from __future__ import annotations

from functools import cached_property
from pathlib import Path

from ..base import BaseDomainConfig


class LoggingConfig(BaseDomainConfig):
    def _config_section(self) -> str:
        return "logging"

    @cached_property
    def enabled(self) -> bool:
        return bool(self.section.get("enabled", True))

    @cached_property
    def level(self) -> str:
        return str(self.section.get("level") or "info").lower()

    @cached_property
    def command_logging(self) -> bool:
        return bool(self.section.get("command_logging", False))

    @cached_property
    def log_path(self) -> Path:
        """Configured log file, defaulting to ``<user-config-dir>/logs/sbs.log``."""
        from sbs.core.utils.paths import expand_path, get_user_config_dir

        raw = str(self.section.get("path") or "").strip()
        if raw:
            return expand_path(raw)
        return get_user_config_dir(create=False) / "logs" / "sbs.log"


__all__ = ["LoggingConfig"]
