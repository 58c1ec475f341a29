"""Tests for layered configuration, env overrides and validation."""
import pytest

from sbs.core.config import ConfigManager, clear_all_caches, get_cached_config, is_cached
from sbs.core.config.domains import CleanupConfig, LoggingConfig, StatusConfig, StoreConfig, WorkspaceConfig
from sbs.core.config.manager import deep_merge
from sbs.core.exceptions import ConfigError


def _write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


class TestLayers:
    def test_bundled_defaults(self):
        cfg = ConfigManager().load_config()
        assert cfg["status"]["artifact_path"] == ".sbs/stop.json"
        assert cfg["store"]["filename"] == "sessions.json"
        assert cfg["cleanup"]["default_mode"] == "default"

    def test_user_then_repo_then_env(self, isolated_config_dir, repo_root, monkeypatch):
        _write(isolated_config_dir / "config.yaml", "status:\n  timeout_seconds: 10\n  refresh_interval_seconds: 30\n")
        _write(repo_root / ".sbs" / "config.yaml", "status:\n  timeout_seconds: 20\n")
        monkeypatch.setenv("SBS_STATUS__REFRESH_INTERVAL_SECONDS", "90")

        status = StatusConfig(repo_root=repo_root)

        assert status.timeout_seconds == 20
        assert status.refresh_interval_seconds == 90
        # untouched keys keep their defaults
        assert status.max_file_size_bytes == 1048576

    def test_lists_are_replaced_not_merged(self, isolated_config_dir):
        _write(isolated_config_dir / "config.yaml", "store:\n  legacy_scan_roots: ['/srv/code']\n")
        assert [str(p) for p in StoreConfig().legacy_scan_roots] == ["/srv/code"]

    def test_unparsable_file_is_fatal(self, isolated_config_dir):
        _write(isolated_config_dir / "config.yaml", "status: [oops\n")
        with pytest.raises(ConfigError):
            ConfigManager().load_config()

    def test_non_mapping_file_is_fatal(self, isolated_config_dir):
        _write(isolated_config_dir / "config.yaml", "- just\n- a list\n")
        with pytest.raises(ConfigError):
            ConfigManager().load_config()


class TestEnvOverrides:
    @pytest.mark.parametrize(
        "raw, expected",
        [("true", True), ("False", False), ("42", 42), ("1.5", 1.5), ('["a", "b"]', ["a", "b"]), (" text ", "text")],
    )
    def test_coercion(self, raw, expected):
        assert ConfigManager()._coerce_type(raw) == expected

    def test_keys_without_section_separator_are_ignored(self, monkeypatch):
        monkeypatch.setenv("SBS_SOMETHING", "1")
        cfg = ConfigManager()._load_config_uncached()
        assert "something" not in cfg

    def test_config_dir_variable_is_not_an_override(self, isolated_config_dir):
        cfg = ConfigManager()._load_config_uncached()
        assert "config_dir" not in cfg

    def test_empty_segment_rejected(self, monkeypatch):
        monkeypatch.setenv("SBS_STATUS____TIMEOUT", "1")
        with pytest.raises(ConfigError):
            ConfigManager()._load_config_uncached()


class TestValidation:
    def test_every_problem_is_reported(self, isolated_config_dir):
        _write(
            isolated_config_dir / "config.yaml",
            "status:\n"
            "  refresh_interval_seconds: 1\n"
            "  max_file_size_bytes: 100\n"
            "  timeout_seconds: 31\n"
            "logging:\n"
            "  level: verbose\n"
            "cleanup:\n"
            "  max_workers: 0\n"
            "  default_mode: everything\n",
        )
        with pytest.raises(ConfigError) as excinfo:
            ConfigManager().load_config()

        problems = excinfo.value.context["problems"]
        joined = " ".join(problems)
        for key in (
            "status.refresh_interval_seconds",
            "status.max_file_size_bytes",
            "status.timeout_seconds",
            "logging.level",
            "cleanup.max_workers",
            "cleanup.default_mode",
        ):
            assert key in joined
        assert len(problems) == 6

    def test_range_bounds_are_inclusive(self, monkeypatch):
        monkeypatch.setenv("SBS_STATUS__REFRESH_INTERVAL_SECONDS", "600")
        monkeypatch.setenv("SBS_STATUS__TIMEOUT_SECONDS", "1")
        ConfigManager()._load_config_uncached()

    def test_negative_timeout_rejected(self, monkeypatch):
        monkeypatch.setenv("SBS_TIMEOUTS__GIT_SECONDS", "-1")
        with pytest.raises(ConfigError):
            ConfigManager()._load_config_uncached()


class TestCache:
    def test_same_inputs_share_one_dict(self):
        assert get_cached_config() is get_cached_config()
        assert is_cached()

    def test_clear_all_caches(self):
        get_cached_config()
        clear_all_caches()
        assert not is_cached()

    def test_config_edits_are_picked_up(self, isolated_config_dir):
        assert CleanupConfig().max_workers == 1
        _write(isolated_config_dir / "config.yaml", "cleanup:\n  max_workers: 4\n")
        assert CleanupConfig().max_workers == 4


class TestDomainAccessors:
    def test_injected_config(self):
        ws = WorkspaceConfig(config={"workspace": {"tmux_command": "claude", "tmux_command_args": ["--resume"]}})
        assert ws.launch_command() == ["claude", "--resume"]

    def test_no_command_wins(self):
        ws = WorkspaceConfig(config={"workspace": {"tmux_command": "claude", "no_command": True}})
        assert ws.launch_command() == []

    def test_default_log_path_under_config_dir(self, isolated_config_dir):
        assert LoggingConfig().log_path == isolated_config_dir.resolve() / "logs" / "sbs.log"


def test_deep_merge_does_not_mutate_inputs():
    base = {"a": {"b": 1}}
    merged = deep_merge(base, {"a": {"c": 2}})
    assert merged == {"a": {"b": 1, "c": 2}}
    assert base == {"a": {"b": 1}}
