"""Tests for store bookkeeping around cleanup runs."""
import pytest

from helpers.fakes import FakeGit, FakeSandbox, FakeTerminal
from helpers.records import make_record, read_store, write_store

from sbs.core.exceptions import SessionStoreError
from sbs.core.session.cleanup import CleanupManager, CleanupMode, build_cli_options
from sbs.core.session.reconcile import Reconciler
from sbs.core.session.store import SessionStore


@pytest.fixture
def store(isolated_config_dir):
    return SessionStore(isolated_config_dir)


def _setup(store, ids=("github:1", "github:2"), live=()):
    records = [make_record(nsid) for nsid in ids]
    store.save(records)
    terminal = FakeTerminal({r.tmux_session for r in records if r.namespaced_id in live})
    sandbox = FakeSandbox({r.sandbox_name for r in records})
    git = FakeGit(worktrees={r.worktree_path for r in records})
    return records, terminal, sandbox, git


def _options(mode=CleanupMode.DEFAULT, **kwargs):
    kwargs.setdefault("force", True)
    return build_cli_options(dry_run=kwargs.pop("dry_run", False), mode=mode, **kwargs)


def _stored(store):
    return {item["namespaced_id"]: item for item in read_store(store.canonical_path)}


class TestRun:
    def test_cleaned_records_are_removed(self, store):
        _, terminal, sandbox, git = _setup(store, live={"github:1"})

        report = Reconciler(store, CleanupManager(terminal, sandbox, git)).run(_options())

        assert [r.namespaced_id for r in report.targets] == ["github:2"]
        assert report.results.removed_records == 1
        assert "Removed session record: github:2" in report.results.details
        assert set(_stored(store)) == {"github:1"}

    def test_intent_is_persisted_before_deleting(self, store):
        records, terminal, sandbox, git = _setup(store)
        observed = []
        original = sandbox.delete_sandbox

        def _delete(name):
            observed.append({k: v.get("resource_status") for k, v in _stored(store).items()})
            original(name)

        sandbox.delete_sandbox = _delete

        Reconciler(store, CleanupManager(terminal, sandbox, git)).run(_options())

        assert observed[0] == {"github:1": "cleanup", "github:2": "cleanup"}

    def test_failed_resource_marks_record(self, store):
        records, terminal, sandbox, git = _setup(store)
        sandbox.fail_delete = {records[0].sandbox_name}

        report = Reconciler(store, CleanupManager(terminal, sandbox, git)).run(_options())

        stored = _stored(store)
        assert set(stored) == {"github:1"}
        assert stored["github:1"]["resource_status"] == "failed"
        assert stored["github:1"]["failure_point"] == "cleanup:sandbox"
        # the worktree was still removed and audited
        log = stored["github:1"]["resource_creation_log"]
        assert [(e["resource_type"], e["status"]) for e in log] == [("worktree", "cleanup")]
        assert len(report.errors) == 1

    def test_keep_records_restores_status(self, store):
        _, terminal, sandbox, git = _setup(store, ids=("github:1",))

        report = Reconciler(store, CleanupManager(terminal, sandbox, git)).run(_options(keep_records=True))

        stored = _stored(store)["github:1"]
        assert report.results.cleaned_sandboxes == 1
        assert stored.get("resource_status", "") == ""
        assert {e["resource_type"] for e in stored["resource_creation_log"]} == {"sandbox", "worktree"}

    def test_leftover_cleanup_status_becomes_active(self, store):
        store.save([make_record("github:1", resource_status="cleanup")])
        terminal = FakeTerminal()
        sandbox = FakeSandbox(fail_check=set())

        Reconciler(store, CleanupManager(terminal, sandbox, FakeGit())).run(_options(keep_records=True))

        assert _stored(store)["github:1"]["resource_status"] == "active"

    def test_dry_run_leaves_store_untouched(self, store):
        _, terminal, sandbox, git = _setup(store)
        before = store.canonical_path.read_bytes()

        report = Reconciler(store, CleanupManager(terminal, sandbox, git)).run(_options(dry_run=True))

        assert report.results.would_clean == 2
        assert sandbox.delete_calls == []
        assert store.canonical_path.read_bytes() == before

    def test_dry_run_does_not_persist_migrations(self, store):
        write_store(store.canonical_path, [{"issue_number": 7, "branch": "issue-7", "status": "active"}])
        before = store.canonical_path.read_bytes()

        report = Reconciler(store, CleanupManager(FakeTerminal(), FakeSandbox(), FakeGit())).run(
            _options(dry_run=True)
        )

        assert [r.namespaced_id for r in report.targets] == ["github:7"]
        assert store.canonical_path.read_bytes() == before

    def test_confirmation_lists_orphaned_branches(self, store):
        _, terminal, sandbox, _ = _setup(store)
        git = FakeGit(branches=["main", "issue-github-3"])
        prompted = []

        def _confirm(targets, branches):
            prompted.append((targets, branches))
            return False

        report = Reconciler(store, CleanupManager(terminal, sandbox, git)).run(
            _options(CleanupMode.BRANCHES, force=False), confirm=_confirm
        )

        assert report.cancelled
        assert prompted == [([], ["issue-github-3"])]
        assert git.deleted_branches == []

    def test_records_sharing_an_id_settle_separately(self, store):
        write_store(
            store.canonical_path,
            [
                {"branch": "feature/a", "sandbox_name": "sb-a", "status": "active"},
                {"branch": "feature/b", "sandbox_name": "sb-b", "status": "active"},
            ],
        )
        sandbox = FakeSandbox({"sb-b"}, fail_delete={"sb-b"})

        report = Reconciler(store, CleanupManager(FakeTerminal(), sandbox, FakeGit())).run(_options())

        assert [r.namespaced_id for r in report.targets] == ["github:unknown", "github:unknown"]
        stored = read_store(store.canonical_path)
        assert [item["sandbox_name"] for item in stored] == ["sb-b"]
        assert stored[0]["resource_status"] == "failed"
        assert report.results.removed_records == 1

    def test_declined_confirmation_cancels(self, store):
        _, terminal, sandbox, git = _setup(store)
        prompted = []

        def _confirm(targets, branches):
            prompted.append((len(targets), branches))
            return False

        report = Reconciler(store, CleanupManager(terminal, sandbox, git)).run(
            _options(force=False), confirm=_confirm
        )

        assert report.cancelled
        assert prompted == [(2, [])]
        assert sandbox.delete_calls == []
        assert all("resource_status" not in item for item in _stored(store).values())

    def test_force_skips_confirmation(self, store):
        _, terminal, sandbox, git = _setup(store)

        def _confirm(targets, branches):
            raise AssertionError("should not prompt")

        report = Reconciler(store, CleanupManager(terminal, sandbox, git)).run(_options(), confirm=_confirm)
        assert not report.cancelled

    def test_branch_mode_does_not_touch_sessions(self, store):
        records, terminal, sandbox, _ = _setup(store)
        git = FakeGit(branches=["issue-github-1", "issue-github-2"])

        report = Reconciler(store, CleanupManager(terminal, sandbox, git)).run(_options(CleanupMode.BRANCHES))

        assert report.targets == []
        assert git.deleted_branches == ["issue-github-1", "issue-github-2"]
        assert set(_stored(store)) == {"github:1", "github:2"}

    def test_failed_final_save_is_reported(self, store, monkeypatch):
        _, terminal, sandbox, git = _setup(store)
        writes = []
        original = store._write

        def _write(path, records):
            writes.append(path)
            if len(writes) > 1:
                raise SessionStoreError("disk full")
            original(path, records)

        monkeypatch.setattr(store, "_write", _write)

        report = Reconciler(store, CleanupManager(terminal, sandbox, git)).run(_options())

        assert report.results.removed_records == 0
        assert report.errors[-1].resource == "store"
        assert {item["resource_status"] for item in _stored(store).values()} == {"cleanup"}


def test_identify_is_read_only(store):
    _, terminal, sandbox, git = _setup(store, live={"github:1"})
    before = store.canonical_path.read_bytes()

    stale = Reconciler(store, CleanupManager(terminal, sandbox, git)).identify(_options())

    assert [r.namespaced_id for r in stale] == ["github:2"]
    assert sandbox.delete_calls == []
    assert store.canonical_path.read_bytes() == before
