"""Domain-specific configuration accessors.

Each class gives typed, cached access to one section of sbs configuration:

- WorkspaceConfig: worktree base path and tmux launch command
- StatusConfig: shutdown-artifact tracking and status-check bounds
- StoreConfig: session store locations and migration write-back
- LoggingConfig: CLI log file and command logging
- TimeoutsConfig: per-tool subprocess timeouts
- CleanupConfig: cleanup defaults
"""
from __future__ import annotations

from .cleanup import CleanupConfig
from .logging import LoggingConfig
from .status import StatusConfig
from .store import StoreConfig
from .timeouts import TimeoutsConfig
from .workspace import WorkspaceConfig

__all__ = [
    "CleanupConfig",
    "LoggingConfig",
    "StatusConfig",
    "StoreConfig",
    "TimeoutsConfig",
    "WorkspaceConfig",
]
