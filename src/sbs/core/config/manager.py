"""
sbs configuration management (YAML layers + SBS_* environment overrides).
"""
from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

import yaml

from sbs.core.exceptions import ConfigError
from sbs.core.utils.io import read_yaml
from sbs.data import get_data_path

logger = logging.getLogger(__name__)

ENV_PREFIX = "SBS_"

# Environment variables that share the prefix but are not config overrides.
_RESERVED_ENV = frozenset({"SBS_CONFIG_DIR"})

# (section, key) -> inclusive (low, high)
_RANGES: Dict[Tuple[str, str], Tuple[int, int]] = {
    ("status", "refresh_interval_seconds"): (5, 600),
    ("status", "max_file_size_bytes"): (1024, 10 * 1024 * 1024),
    ("status", "timeout_seconds"): (1, 30),
}
_LOG_LEVELS = ("debug", "info", "error")
_CLEANUP_MODES = ("default", "stale", "orphaned", "branches", "all", "stale_and_branches")


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge dictionaries without mutating inputs (override wins).

    Lists are replaced, not concatenated.

    Example:
        >>> deep_merge({"a": 1, "b": {"c": 2}}, {"b": {"d": 3}})
        {'a': 1, 'b': {'c': 2, 'd': 3}}
    """
    result: Dict[str, Any] = dict(base)
    for key, value in (override or {}).items():
        if isinstance(result.get(key), dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


class ConfigManager:
    """Load, merge, and validate sbs configuration.

    Configuration sources (highest to lowest priority):
    1. Environment variables: SBS_<SECTION>__<KEY>
    2. Repository config: <repo>/.sbs/config.yaml
    3. User config: <user-config-dir>/config.yaml
    4. Bundled defaults: sbs.data/config/defaults.yaml
    """

    def __init__(self, repo_root: Optional[Path] = None) -> None:
        from sbs.core.utils.paths import get_repo_config_dir, get_user_config_dir

        self.repo_root = Path(repo_root).resolve() if repo_root else None
        self.defaults_path = get_data_path("config", "defaults.yaml")
        self.user_config_path = get_user_config_dir(create=False) / "config.yaml"
        self.repo_config_path = (
            get_repo_config_dir(self.repo_root) / "config.yaml" if self.repo_root else None
        )

    def load_yaml(self, path: Path) -> Dict[str, Any]:
        # Fail closed: a config file that exists but does not parse is fatal.
        try:
            data = read_yaml(path, default={}, raise_on_error=True)
        except FileNotFoundError:
            return {}
        except (yaml.YAMLError, OSError) as exc:
            raise ConfigError(f"Cannot parse config file {path}: {exc}", context={"path": str(path)}) from exc
        if not isinstance(data, dict):
            raise ConfigError(
                f"Config file {path} must contain a mapping at top level",
                context={"path": str(path)},
            )
        return data

    # ---- environment overrides -------------------------------------------

    def _as_bool(self, v: str) -> Optional[bool]:
        low = v.strip().lower()
        if low in {"true", "false"}:
            return low == "true"
        return None

    def _as_int(self, v: str) -> Optional[int]:
        if re.fullmatch(r"[-+]?\d+", v.strip() or " "):
            return int(v)
        return None

    def _as_float(self, v: str) -> Optional[float]:
        s = v.strip()
        if re.fullmatch(r"[-+]?\d*\.\d+", s) or re.fullmatch(r"[-+]?\d+\.\d*", s):
            return float(s)
        return None

    def _as_json(self, v: str) -> Optional[Any]:
        s = v.strip()
        if (s.startswith("{") and s.endswith("}")) or (s.startswith("[") and s.endswith("]")):
            try:
                return json.loads(s)
            except json.JSONDecodeError:
                return None
        return None

    def _coerce_type(self, value: str) -> Any:
        for caster in (self._as_bool, self._as_int, self._as_float, self._as_json):
            result = caster(value)
            if result is not None:
                return result
        return value.strip()

    def _iter_env_overrides(self) -> Iterator[Tuple[List[str], Any]]:
        for key in sorted(os.environ.keys()):
            if not key.startswith(ENV_PREFIX) or key in _RESERVED_ENV:
                continue
            raw = key[len(ENV_PREFIX):]
            if "__" not in raw:
                # Only SECTION__KEY paths are overrides; anything else is ignored.
                continue
            segs = [s.lower() for s in raw.split("__")]
            if any(not s for s in segs):
                raise ConfigError(f"Malformed {ENV_PREFIX}* key: empty segment in '{key}'")
            yield segs, self._coerce_type(os.environ[key])

    def apply_env_overrides(self, cfg: Dict[str, Any]) -> None:
        for path, value in self._iter_env_overrides():
            cur = cfg
            for part in path[:-1]:
                nxt = cur.get(part)
                if not isinstance(nxt, dict):
                    nxt = {}
                    cur[part] = nxt
                cur = nxt
            cur[path[-1]] = value

    # ---- loading -----------------------------------------------------------

    def _load_config_uncached(self, validate: bool = True) -> Dict[str, Any]:
        """Load and merge configuration from every layer (UNCACHED)."""
        cfg = self.load_yaml(self.defaults_path)
        cfg = deep_merge(cfg, self.load_yaml(self.user_config_path))
        if self.repo_config_path is not None:
            cfg = deep_merge(cfg, self.load_yaml(self.repo_config_path))
        self.apply_env_overrides(cfg)
        if validate:
            self.validate(cfg)
        return cfg

    def load_config(self, validate: bool = True) -> Dict[str, Any]:
        """Load configuration through the central cache.

        The returned dict is shared; treat it as immutable.
        """
        from .cache import get_cached_config

        return get_cached_config(repo_root=self.repo_root, validate=validate)

    def get(self, key: str, default: Any = None) -> Any:
        """Get a config value by dot-notation key (e.g. ``status.timeout_seconds``)."""
        current: Any = self.load_config()
        for part in key.split("."):
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default
        return current

    # ---- validation --------------------------------------------------------

    def validate(self, cfg: Dict[str, Any]) -> None:
        """Check value ranges; raise ConfigError naming every offending key."""
        problems: List[str] = []

        for (section, key), (low, high) in _RANGES.items():
            value = (cfg.get(section) or {}).get(key)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                problems.append(f"{section}.{key} must be a number (got {value!r})")
            elif not low <= value <= high:
                problems.append(f"{section}.{key}={value} out of range [{low}, {high}]")

        level = (cfg.get("logging") or {}).get("level")
        if level is not None and str(level).lower() not in _LOG_LEVELS:
            problems.append(f"logging.level={level!r} must be one of {', '.join(_LOG_LEVELS)}")

        for key, value in (cfg.get("timeouts") or {}).items():
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                problems.append(f"timeouts.{key} must be a positive number (got {value!r})")

        cleanup = cfg.get("cleanup") or {}
        workers = cleanup.get("max_workers", 1)
        if isinstance(workers, bool) or not isinstance(workers, int) or workers < 1:
            problems.append(f"cleanup.max_workers must be an integer >= 1 (got {workers!r})")
        mode = cleanup.get("default_mode")
        if mode is not None and str(mode).lower() not in _CLEANUP_MODES:
            problems.append(f"cleanup.default_mode={mode!r} must be one of {', '.join(_CLEANUP_MODES)}")

        if problems:
            raise ConfigError("Invalid configuration: " + "; ".join(problems), context={"problems": problems})


__all__ = ["ConfigManager", "deep_merge", "ENV_PREFIX"]
