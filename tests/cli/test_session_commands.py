"""Tests for `sbs start`, `sbs stop`, `sbs list` and `sbs migrate`."""
import json

from helpers.records import make_record, read_store, write_store

from sbs.cli._dispatcher import build_parser, main
from sbs.core.session.store import SessionStore


def test_all_commands_are_discovered():
    help_text = build_parser().format_help()
    for name in ("clean", "list", "migrate", "start", "stop"):
        assert name in help_text


class TestStart:
    def test_start_then_list(self, repo_root, fake_gateways, tmp_path, monkeypatch, capsys):
        monkeypatch.setenv("SBS_WORKSPACE__WORKTREE_BASE_PATH", str(tmp_path / "wt"))

        rc = main(["start", "42", "--title", "Fix login", "--json", "--repo-root", str(repo_root)])

        session = json.loads(capsys.readouterr().out)["session"]
        assert rc == 0
        assert session["namespaced_id"] == "github:42"
        assert session["branch"] == "issue-github-42-fix-login"
        assert fake_gateways.terminal.created[0]["name"] == "work-issue-demo-github-42"

        assert main(["list", "--json", "--repo-root", str(repo_root)]) == 0
        listing = json.loads(capsys.readouterr().out)
        assert listing["view"] == "repository"
        assert [(s["namespaced_id"], s["status"]) for s in listing["sessions"]] == [("github:42", "active")]

    def test_invalid_work_item(self, repo_root, fake_gateways, capsys):
        rc = main(["start", "a:b:c", "--json", "--repo-root", str(repo_root)])
        assert rc == 1
        assert json.loads(capsys.readouterr().err)["error"] == "invalid_work_item"

    def test_provisioning_failure(self, repo_root, fake_gateways, tmp_path, monkeypatch, capsys):
        monkeypatch.setenv("SBS_WORKSPACE__WORKTREE_BASE_PATH", str(tmp_path / "wt"))
        fake_gateways.terminal.fail_create = True

        rc = main(["start", "test:quick", "--json", "--repo-root", str(repo_root)])

        err = json.loads(capsys.readouterr().err)
        assert rc == 1
        assert err["error"] == "provisioning_failed"
        assert err["context"]["step"] == "tmux"


class TestStop:
    def test_stop(self, repo_root, fake_gateways, capsys):
        record = make_record("github:1")
        SessionStore().save([record])
        fake_gateways.terminal.sessions.add(record.tmux_session)
        fake_gateways.sandbox.sandboxes.add(record.sandbox_name)

        rc = main(["stop", "github:1", "--delete-sandbox", "--yes", "--json", "--repo-root", str(repo_root)])

        payload = json.loads(capsys.readouterr().out)
        assert rc == 0
        assert payload["sandbox_deleted"] is True
        assert payload["session"]["status"] == "stopped"
        assert fake_gateways.sandbox.deleted == [record.sandbox_name]

    def test_stop_unknown(self, repo_root, fake_gateways, capsys):
        rc = main(["stop", "github:404", "--repo-root", str(repo_root)])
        assert rc == 1
        assert "No session found" in capsys.readouterr().err


class TestList:
    def test_global_text_listing(self, repo_root, fake_gateways, capsys):
        SessionStore().save([make_record("github:1"), make_record("test:quick", resource_status="failed")])

        rc = main(["list", "--all", "--repo-root", str(repo_root)])

        lines = capsys.readouterr().out.splitlines()
        assert rc == 0
        assert lines[0].startswith("github:1    stale")
        assert lines[1].endswith("[failed]")

    def test_empty(self, repo_root, fake_gateways, capsys):
        assert main(["list", "--repo-root", str(repo_root)]) == 0
        assert "No sessions found." in capsys.readouterr().out


class TestMigrate:
    def test_dry_run_then_migrate(self, capsys, monkeypatch):
        monkeypatch.setenv("SBS_STORE__AUTO_PERSIST_MIGRATIONS", "false")
        path = write_store(SessionStore().canonical_path, [{"issue_number": 3, "branch": "issue-3", "status": "active"}])

        assert main(["migrate", "--dry-run", "--json"]) == 0
        assert json.loads(capsys.readouterr().out)["migrated"] == 1
        assert "namespaced_id" not in read_store(path)[0]

        assert main(["migrate"]) == 0
        assert "Migrated 1 record(s)" in capsys.readouterr().out
        assert read_store(path)[0]["namespaced_id"] == "github:3"
