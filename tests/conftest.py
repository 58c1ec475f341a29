import os
import sys
from pathlib import Path

import pytest

TESTS_ROOT = Path(__file__).resolve().parent
REPO_ROOT = TESTS_ROOT.parent
SRC_ROOT = REPO_ROOT / "src"

# Make src/ importable as 'sbs' and tests/ importable for 'helpers'
for p in (SRC_ROOT, TESTS_ROOT):
    if str(p) not in sys.path:
        sys.path.insert(0, str(p))

from helpers.cache_utils import reset_sbs_caches  # noqa: E402
from helpers.fakes import FakeGit, FakeSandbox, FakeTerminal  # noqa: E402


@pytest.fixture(autouse=True)
def isolated_config_dir(tmp_path, monkeypatch):
    """Every test gets its own user config dir and no SBS_* overrides.

    The developer's ``~/.config/sbs`` (sessions, config, logs) must never be
    read or written by the suite.
    """
    for key in list(os.environ):
        if key.startswith("SBS_"):
            monkeypatch.delenv(key, raising=False)
    config_dir = tmp_path / "sbs-config"
    config_dir.mkdir()
    monkeypatch.setenv("SBS_CONFIG_DIR", str(config_dir))
    # Keep legacy store discovery inside the sandboxed tmp dir.
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    reset_sbs_caches()
    yield config_dir
    reset_sbs_caches()


@pytest.fixture
def repo_root(tmp_path):
    """A directory standing in for a repository root (no git needed)."""
    root = tmp_path / "repos" / "demo"
    root.mkdir(parents=True)
    return root


@pytest.fixture
def fake_gateways(monkeypatch):
    """Replace the real tmux/sandbox/git gateways in every command module."""
    from sbs.cli._utils import Gateways

    gateways = Gateways(terminal=FakeTerminal(), sandbox=FakeSandbox(), git=FakeGit())

    def _build(repo_root):
        return gateways

    for name in ("clean", "list", "start", "stop"):
        monkeypatch.setattr(f"sbs.cli.commands.{name}.build_gateways", _build)
    monkeypatch.setattr("sbs.cli.commands.clean.git_factory", lambda root: gateways.git)
    return gateways
