"""sbs configuration system.

Usage:
    from sbs.core.config import ConfigManager
    from sbs.core.config.domains import StatusConfig

    manager = ConfigManager(repo_root=Path("/path/to/repo"))
    config = manager.load_config()

    status = StatusConfig(repo_root=Path("/path/to/repo"))
    status.timeout_seconds
"""
from __future__ import annotations

from .base import BaseDomainConfig
from .cache import clear_all_caches, get_cached_config, is_cached
from .domains import (
    CleanupConfig,
    LoggingConfig,
    StatusConfig,
    StoreConfig,
    TimeoutsConfig,
    WorkspaceConfig,
)
from .manager import ConfigManager

__all__ = [
    "ConfigManager",
    "BaseDomainConfig",
    "get_cached_config",
    "clear_all_caches",
    "is_cached",
    "CleanupConfig",
    "LoggingConfig",
    "StatusConfig",
    "StoreConfig",
    "TimeoutsConfig",
    "WorkspaceConfig",
]
