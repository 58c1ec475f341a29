"""Tests for SessionRecord serialization and the creation log."""
from datetime import datetime, timedelta, timezone

from helpers.records import make_record

from sbs.core.session.models import (
    ResourceEntryStatus,
    ResourceStatus,
    ResourceType,
    SessionRecord,
)

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class TestSerialization:
    def test_unknown_keys_survive_round_trip(self):
        data = make_record().to_dict()
        data["future_field"] = {"nested": [1, 2]}
        data["resource_creation_log"] = [
            {"resource_type": "branch", "resource_id": "b", "created_at": "2024-01-01T00:00:00Z",
             "status": "created", "metadata": {}, "annotation": "kept"}
        ]

        out = SessionRecord.from_dict(data).to_dict()

        assert out["future_field"] == {"nested": [1, 2]}
        assert out["resource_creation_log"][0]["annotation"] == "kept"

    def test_legacy_style_fields_omitted_when_empty(self):
        data = SessionRecord(branch="issue-1", status="active").to_dict()
        for key in ("issue_number", "source_type", "namespaced_id", "resource_status",
                    "failure_point", "resource_creation_log"):
            assert key not in data
        assert data["branch"] == "issue-1"

    def test_null_values_fall_back_to_defaults(self):
        record = SessionRecord.from_dict({"branch": "issue-1", "issue_title": None})
        assert record.issue_title == ""

    def test_copy_is_independent(self):
        record = make_record(future={"a": 1})
        clone = record.copy()
        clone.extra["future"]["a"] = 2
        assert record.extra["future"] == {"a": 1}

    def test_needs_migration(self):
        assert SessionRecord(issue_number=5).needs_migration
        assert not make_record().needs_migration


class TestCreationLog:
    def test_entries_never_go_back_in_time(self):
        record = make_record()
        record.record_resource(ResourceType.BRANCH, "b", now=NOW)
        entry = record.record_resource(ResourceType.WORKTREE, "w", now=NOW - timedelta(hours=1))
        assert entry.created_time == NOW

    def test_enum_values_are_stored_as_strings(self):
        record = make_record()
        record.record_resource(ResourceType.TERMINAL, "t", status=ResourceEntryStatus.FAILED, now=NOW)
        assert record.to_dict()["resource_creation_log"][0]["resource_type"] == "tmux"
        assert record.resources_of("tmux")[0].status == "failed"

    def test_state_transitions(self):
        record = make_record()
        record.begin_step("worktree")
        assert record.resource_status == ResourceStatus.CREATING.value
        record.mark_failed("worktree", "boom")
        assert (record.failure_point, record.failure_reason) == ("worktree", "boom")
        record.mark_active()
        assert record.resource_status == "active"
        assert record.failure_point == "" and record.current_creation_step == ""
        record.mark_stopped(NOW)
        assert record.status == "stopped"
        assert record.last_activity == "2024-06-01T12:00:00Z"
