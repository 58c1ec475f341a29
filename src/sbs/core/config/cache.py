"""Centralized configuration caching.

Provides a single source of truth for loaded configuration across all domain
configs. Cache keys include the repository root, a fingerprint of SBS_* env
vars and the mtimes of the config files, so edits are picked up without an
explicit clear.
"""
from __future__ import annotations

import hashlib
import os
from pathlib import Path
from typing import Any, Callable, Dict, Optional

_config_cache: Dict[str, Dict[str, Any]] = {}
_cache_clearers: Dict[str, Callable[[], None]] = {}


def _file_fingerprint(path: Optional[Path]) -> tuple[int, int]:
    if path is None:
        return (0, 0)
    try:
        st = path.stat()
    except OSError:
        return (0, 0)
    return (int(st.st_mtime_ns), int(st.st_size))


def _cache_key(repo_root: Optional[Path]) -> str:
    from sbs.core.utils.paths import get_repo_config_dir, get_user_config_dir

    base = str(repo_root.expanduser().resolve()) if repo_root else "__global__"

    env_items = sorted((k, v) for k, v in os.environ.items() if k.startswith("SBS_"))
    env_fp = hashlib.sha256(repr(env_items).encode("utf-8")).hexdigest()[:12]

    files = (
        _file_fingerprint(get_user_config_dir(create=False) / "config.yaml"),
        _file_fingerprint(get_repo_config_dir(repo_root) / "config.yaml" if repo_root else None),
    )
    cfg_fp = hashlib.sha256(repr(files).encode("utf-8")).hexdigest()[:12]
    return f"{base}:env={env_fp}:cfg={cfg_fp}"


def get_cached_config(repo_root: Optional[Path] = None, validate: bool = True) -> Dict[str, Any]:
    """Get configuration with caching.

    Returns the same config dict instance for the same inputs, avoiding
    repeated file I/O. Validation runs on the first (uncached) load.
    """
    key = _cache_key(repo_root)
    if key not in _config_cache:
        # Lazy import to avoid circular dependency
        from .manager import ConfigManager

        manager = ConfigManager(repo_root=repo_root)
        _config_cache[key] = manager._load_config_uncached(validate=validate)
    return _config_cache[key]


def clear_all_caches() -> None:
    """Clear the config cache and every registered higher-level cache."""
    _config_cache.clear()
    for clearer in list(_cache_clearers.values()):
        clearer()


def register_cache_clearer(name: str, clearer: Callable[[], None]) -> None:
    """Register an additional cache clearer to run inside `clear_all_caches()`."""
    _cache_clearers[name] = clearer


def is_cached(repo_root: Optional[Path] = None) -> bool:
    return _cache_key(repo_root) in _config_cache


__all__ = ["get_cached_config", "clear_all_caches", "register_cache_clearer", "is_cached"]
