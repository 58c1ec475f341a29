"""Base class for domain-specific configuration accessors.

Domain configs share:
- Centralized caching via cache.py
- Optional repository scoping (repository config layer)
- Section access with an empty-dict default
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from functools import cached_property
from pathlib import Path
from typing import Any, Dict, Optional

from .cache import get_cached_config


class BaseDomainConfig(ABC):
    """Abstract base class for domain-specific configuration accessors.

    Usage:
        class MyConfig(BaseDomainConfig):
            def _config_section(self) -> str:
                return "my_section"

            @cached_property
            def my_setting(self) -> str:
                return self.section.get("my_setting", "default")

        cfg = MyConfig(repo_root=Path("/path/to/repo"))
        print(cfg.my_setting)
    """

    def __init__(self, repo_root: Optional[Path] = None, *, config: Optional[Dict[str, Any]] = None) -> None:
        """Initialize domain config.

        Args:
            repo_root: Repository root; adds the ``<repo>/.sbs/config.yaml`` layer.
            config: Pre-loaded config dict (skips loading; used by tests).
        """
        self._repo_root = repo_root
        self._config = config if config is not None else get_cached_config(repo_root=repo_root)

    @property
    def repo_root(self) -> Optional[Path]:
        return self._repo_root

    @abstractmethod
    def _config_section(self) -> str:
        """Return the top-level config key for this domain."""
        ...

    @cached_property
    def section(self) -> Dict[str, Any]:
        """This domain's configuration section (empty dict if absent)."""
        return self._config.get(self._config_section(), {}) or {}


__all__ = ["BaseDomainConfig"]
