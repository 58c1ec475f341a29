"""Tests for run_with_timeout timeout selection and command logging."""
import logging
import subprocess

import pytest

from sbs.core.utils import subprocess as sbs_subprocess
from sbs.core.utils.subprocess import command_output, configured_timeout, describe_failure, run_with_timeout


@pytest.fixture
def recorded_runs(monkeypatch):
    calls = []

    def _fake_run(argv, timeout=None, **kwargs):
        calls.append({"argv": argv, "timeout": timeout, **kwargs})
        return subprocess.CompletedProcess(argv, 0, stdout="ok\n", stderr="")

    monkeypatch.setattr(sbs_subprocess.subprocess, "run", _fake_run)
    return calls


def test_timeout_bucket_inferred_from_executable(recorded_runs):
    run_with_timeout(["git", "status"])
    run_with_timeout(["tmux", "ls"])
    run_with_timeout(["echo", "hi"])

    assert [c["timeout"] for c in recorded_runs] == [30, 10, 30]


def test_explicit_timeout_wins(recorded_runs):
    run_with_timeout(["sandbox", "list"], timeout=2.5)
    assert recorded_runs[0]["timeout"] == 2.5


def test_timeout_follows_env_override(monkeypatch):
    monkeypatch.setenv("SBS_TIMEOUTS__SANDBOX_SECONDS", "7")
    assert configured_timeout(["sandbox", "list"]) == 7


def test_string_commands_are_split_without_shell(recorded_runs):
    run_with_timeout("git rev-parse --show-toplevel")
    assert recorded_runs[0]["argv"] == ["git", "rev-parse", "--show-toplevel"]
    assert "shell" not in recorded_runs[0]


def test_command_logging(recorded_runs, monkeypatch, caplog):
    monkeypatch.setenv("SBS_LOGGING__COMMAND_LOGGING", "true")
    with caplog.at_level(logging.DEBUG, logger="sbs.cmdlog"):
        run_with_timeout(["git", "status"])
    assert any("git status" in r.getMessage() for r in caplog.records)


def test_command_output_joins_streams():
    result = subprocess.CompletedProcess(["x"], 1, stdout=b"out\n", stderr="err\n")
    assert command_output(result) == "out\nerr"


def test_describe_failure():
    assert describe_failure(subprocess.TimeoutExpired(["tmux"], 5)) == "timed out after 5s"
    assert describe_failure(FileNotFoundError(2, "No such file"), ["sandbox", "list"]) == "sandbox not found on PATH"
