"""Path resolution for sbs: user config dir, store locations, repository root."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from .io import ensure_directory

USER_CONFIG_DIR_ENV = "SBS_CONFIG_DIR"
DEFAULT_USER_CONFIG_DIR = "~/.config/sbs"
REPO_CONFIG_DIRNAME = ".sbs"


def expand_path(raw: str | Path, *, base: Optional[Path] = None) -> Path:
    """Expand ``~`` and make ``raw`` absolute (relative to ``base`` or home)."""
    p = Path(str(raw)).expanduser()
    if not p.is_absolute():
        p = (base or Path.home()) / p
    return p


def get_user_config_dir(*, create: bool = False) -> Path:
    """Return the user config directory (``$SBS_CONFIG_DIR`` or ``~/.config/sbs``)."""
    raw = os.environ.get(USER_CONFIG_DIR_ENV) or DEFAULT_USER_CONFIG_DIR
    resolved = expand_path(raw).resolve()
    if create:
        ensure_directory(resolved)
    return resolved


def get_repo_config_dir(repo_root: Path) -> Path:
    """Return ``<repo>/.sbs`` (not created)."""
    return Path(repo_root) / REPO_CONFIG_DIRNAME


def resolve_repo_root(start: Optional[Path] = None) -> Path:
    """Return the top-level directory of the git repository containing ``start``.

    Raises:
        FileNotFoundError: If ``start`` is not inside a git repository.
    """
    import subprocess

    from .subprocess import run_with_timeout

    cwd = Path(start or Path.cwd()).resolve()
    try:
        result = run_with_timeout(
            ["git", "rev-parse", "--show-toplevel"],
            timeout_type="git",
            cwd=cwd,
            capture_output=True,
            text=True,
            check=True,
        )
    except (subprocess.CalledProcessError, OSError) as exc:
        raise FileNotFoundError(f"not inside a git repository: {cwd}") from exc
    return Path(result.stdout.strip()).resolve()


def find_repo_root(start: Optional[Path] = None) -> Optional[Path]:
    """Like :func:`resolve_repo_root` but return None outside a repository."""
    try:
        return resolve_repo_root(start)
    except FileNotFoundError:
        return None


__all__ = [
    "USER_CONFIG_DIR_ENV",
    "REPO_CONFIG_DIRNAME",
    "expand_path",
    "get_user_config_dir",
    "get_repo_config_dir",
    "resolve_repo_root",
    "find_repo_root",
]
