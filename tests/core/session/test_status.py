"""Tests for derived session status."""
import json
from datetime import datetime, timedelta, timezone

import pytest

from helpers.fakes import FakeSandbox, FakeTerminal
from helpers.records import make_record

from sbs.core.config.domains import StatusConfig
from sbs.core.exceptions import StopArtifactError
from sbs.core.session.status import ArtifactState, Status, StatusDetector, parse_stop_artifact

NOW = datetime(2024, 1, 1, 14, 0, tzinfo=timezone.utc)
ARTIFACT = ".sbs/stop.json"


def _artifact(ts="2024-01-01T13:30:00Z", hook=True):
    body = {"claude_code_hook": {"timestamp": ts}} if hook else {"timestamp": ts}
    return json.dumps(body).encode("utf-8")


@pytest.fixture
def worktree(tmp_path):
    path = tmp_path / "worktrees" / "issue-github-1"
    (path / ".sbs").mkdir(parents=True)
    return path


def _detector(terminal=None, sandbox=None, **status):
    cfg = StatusConfig(config={"status": {"artifact_path": ARTIFACT, **status}})
    return StatusDetector(terminal or FakeTerminal(), sandbox, status_config=cfg, clock=lambda: NOW)


class TestParseStopArtifact:
    def test_hook_timestamp(self):
        assert parse_stop_artifact(_artifact()) == datetime(2024, 1, 1, 13, 30, tzinfo=timezone.utc)

    def test_top_level_timestamp(self):
        assert parse_stop_artifact(_artifact(hook=False)).hour == 13

    def test_hook_wins_over_top_level(self):
        raw = json.dumps({"timestamp": "2020-01-01T00:00:00Z",
                          "claude_code_hook": {"timestamp": "2024-01-01T13:30:00Z"}}).encode()
        assert parse_stop_artifact(raw).year == 2024

    def test_invalid_hook_timestamp_falls_back(self):
        raw = json.dumps({"timestamp": "2024-01-01T13:30:00Z",
                          "claude_code_hook": {"timestamp": "later"}}).encode()
        assert parse_stop_artifact(raw).year == 2024

    @pytest.mark.parametrize("raw", [b"", b"  \n", b"{oops", b"[1, 2]", b'{"timestamp": "yesterday"}', b"{}"])
    def test_rejected(self, raw):
        with pytest.raises(StopArtifactError):
            parse_stop_artifact(raw)

    def test_oversized(self):
        with pytest.raises(StopArtifactError):
            parse_stop_artifact(_artifact(), max_size=10)


class TestPrecedence:
    def test_stopped_beats_live_tmux(self, worktree):
        (worktree / ARTIFACT).write_bytes(_artifact())
        record = make_record(worktree_path=str(worktree))
        terminal = FakeTerminal({record.tmux_session})

        status = _detector(terminal).detect(record)

        assert status.status is Status.STOPPED
        assert status.last_change == datetime(2024, 1, 1, 13, 30, tzinfo=timezone.utc)
        assert status.time_delta == "30m ago"

    def test_active(self, worktree):
        record = make_record(worktree_path=str(worktree))
        status = _detector(FakeTerminal({record.tmux_session})).detect(record)
        assert (status.status, status.time_delta) == (Status.ACTIVE, "now")

    def test_live_tmux_beats_corrupt_artifact(self, worktree):
        (worktree / ARTIFACT).write_bytes(b"{broken")
        record = make_record(worktree_path=str(worktree))
        assert _detector(FakeTerminal({record.tmux_session})).detect(record).status is Status.ACTIVE

    def test_corrupt_artifact_is_unknown(self, worktree):
        (worktree / ARTIFACT).write_bytes(b"{broken")
        record = make_record(worktree_path=str(worktree))
        status = _detector().detect(record)
        assert (status.status, status.time_delta) == (Status.UNKNOWN, "unknown")

    def test_tmux_check_failure_is_unknown_not_stale(self, worktree):
        record = make_record(worktree_path=str(worktree))
        terminal = FakeTerminal(broken={record.tmux_session})
        assert _detector(terminal).detect(record).status is Status.UNKNOWN

    def test_stale_uses_last_activity(self, worktree):
        record = make_record(worktree_path=str(worktree), last_activity="2024-01-01T12:00:00Z")

        status = _detector().detect(record)

        assert status.status is Status.STALE
        assert status.last_change == NOW - timedelta(hours=2)
        assert status.time_delta == "2h ago"

    def test_stale_without_last_activity(self):
        record = make_record(worktree_path="", last_activity="")
        status = _detector().detect(record)
        assert (status.status, status.time_delta) == (Status.STALE, "unknown")

    def test_stored_status_is_not_evidence(self, worktree):
        record = make_record(worktree_path=str(worktree), status="active")
        assert _detector().detect(record).status is Status.STALE


class TestArtifactSources:
    def test_sandbox_copy_preferred(self, worktree):
        record = make_record(worktree_path=str(worktree))
        (worktree / ARTIFACT).write_bytes(b"{broken")
        sandbox = FakeSandbox({record.sandbox_name}, files={f"{record.sandbox_name}:{ARTIFACT}": _artifact()})

        artifact = _detector(sandbox=sandbox).read_stop_artifact(record)

        assert (artifact.state, artifact.source) == (ArtifactState.PARSED, "sandbox")

    def test_falls_back_to_worktree_when_sandbox_cannot_serve(self, worktree):
        record = make_record(worktree_path=str(worktree))
        (worktree / ARTIFACT).write_bytes(_artifact())
        sandbox = FakeSandbox()

        artifact = _detector(sandbox=sandbox).read_stop_artifact(record)

        assert (artifact.state, artifact.source) == (ArtifactState.PARSED, "worktree")
        assert sandbox.reads == [f"{record.sandbox_name}:{ARTIFACT}"]

    def test_oversized_worktree_file_is_corrupt(self, worktree):
        (worktree / ARTIFACT).write_bytes(_artifact() + b" " * 64)
        record = make_record(worktree_path=str(worktree))
        artifact = _detector(max_file_size_bytes=32).read_stop_artifact(record)
        assert artifact.state is ArtifactState.CORRUPT

    def test_tracking_disabled(self, worktree):
        (worktree / ARTIFACT).write_bytes(_artifact())
        record = make_record(worktree_path=str(worktree))
        assert _detector(tracking=False).read_stop_artifact(record).state is ArtifactState.ABSENT


def test_detect_all_and_to_dict(worktree):
    records = [make_record("github:1", worktree_path=str(worktree)), make_record("github:2", worktree_path="")]
    statuses = _detector(FakeTerminal({records[0].tmux_session})).detect_all(records)

    assert statuses["github:1"].to_dict() == {"status": "active", "last_change": None, "time_delta": "now"}
    assert statuses["github:2"].to_dict()["last_change"] == "2024-01-01T12:00:00+00:00"
