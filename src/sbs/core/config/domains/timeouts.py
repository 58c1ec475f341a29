"""Domain-specific configuration for subprocess timeouts."""
from __future__ import annotations

from functools import cached_property
from typing import Dict

from sbs.core.exceptions import ConfigError

from ..base import BaseDomainConfig

_BUCKETS = ("git", "tmux", "sandbox", "default")


class TimeoutsConfig(BaseDomainConfig):
    """Per-tool timeouts (seconds) used by ``run_with_timeout``."""

    def _config_section(self) -> str:
        return "timeouts"

    def _require(self, key: str) -> float:
        if key not in self.section:
            raise ConfigError(f"timeouts.{key} missing from configuration")
        return float(self.section[key])

    @cached_property
    def git_seconds(self) -> float:
        return self._require("git_seconds")

    @cached_property
    def tmux_seconds(self) -> float:
        return self._require("tmux_seconds")

    @cached_property
    def sandbox_seconds(self) -> float:
        return self._require("sandbox_seconds")

    @cached_property
    def default_seconds(self) -> float:
        return self._require("default_seconds")

    def seconds_for(self, bucket: str) -> float:
        """Timeout for a bucket name; unknown buckets use the default."""
        name = bucket if bucket in _BUCKETS else "default"
        return float(getattr(self, f"{name}_seconds"))

    def get_all_settings(self) -> Dict[str, float]:
        return {f"{b}_seconds": self.seconds_for(b) for b in _BUCKETS}


__all__ = ["TimeoutsConfig"]
