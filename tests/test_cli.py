"""Tests for the command line interface."""

import pytest

from planledger import cli
from planledger.config import ENV_CONFIG, ENV_DB


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv(ENV_DB, raising=False)
    monkeypatch.delenv(ENV_CONFIG, raising=False)
    # Keep pytest's own SIGINT handling
    monkeypatch.setattr(cli.signal, "signal", lambda signum, handler: None)


@pytest.fixture
def root(tmp_path):
    root = tmp_path / "plans"
    (root / "d").mkdir(parents=True)
    (root / "d" / "PART_rev1.par").write_bytes(b"master")
    (root / "d" / "PART_rev1.pdf").write_bytes(b"drawing")
    return root


@pytest.fixture
def db(tmp_path):
    return str(tmp_path / "ledger.db")


def run(*argv):
    cli.main(list(argv))


class TestFormatSize:
    def test_units(self):
        assert cli.format_size(512) == "512 B"
        assert cli.format_size(2048) == "2.0 KB"
        assert cli.format_size(5 * 1024 * 1024) == "5.0 MB"


class TestCommands:
    """Tests for the CLI subcommands."""

    def test_scan(self, root, db, capsys):
        run("--db", db, "scan", "--no-progress", str(root))

        out = capsys.readouterr().out
        assert "Scan Summary" in out
        assert "Events created" in out
        assert "FILE CREATED" in out

    def test_scan_missing_root(self, tmp_path, db):
        with pytest.raises(SystemExit) as exc:
            run("--db", db, "scan", "--no-progress", str(tmp_path / "missing"))
        assert exc.value.code == 1

    def test_stats(self, root, db, capsys):
        run("--db", db, "scan", "--no-progress", str(root))
        capsys.readouterr()

        run("--db", db, "stats")

        out = capsys.readouterr().out
        assert "DirectoryCreated" in out
        assert "masters rows" in out
        assert "3 / 3" in out

    def test_rebuild(self, root, db, capsys):
        run("--db", db, "scan", "--no-progress", str(root))
        capsys.readouterr()

        run("--db", db, "rebuild")

        out = capsys.readouterr().out
        assert "Replayed 3 event(s)" in out
        assert "masters: 1" in out

    def test_reconcile_dry_run(self, root, db, capsys):
        run("--db", db, "reconcile", "--dry-run", str(root))

        out = capsys.readouterr().out
        assert "Discrepancies" in out
        assert "missing_event" in out
        assert "(dry run)" in out

    def test_reconcile_records_events(self, root, db, capsys):
        run("--db", db, "reconcile", str(root))
        capsys.readouterr()

        run("--db", db, "stats")
        assert "3 / 3" in capsys.readouterr().out

    def test_reconcile_skip_scan_without_snapshot(self, root, db):
        with pytest.raises(SystemExit) as exc:
            run("--db", db, "reconcile", "--skip-scan", str(root))
        assert exc.value.code == 1

    def test_watch_timeout(self, root, db, capsys):
        run("--db", db, "watch", "--timeout", "0.5", str(root))
        assert "Watcher stopped" in capsys.readouterr().out

    def test_db_from_environment(self, root, tmp_path, monkeypatch):
        monkeypatch.setenv(ENV_DB, str(tmp_path / "env.db"))

        run("scan", "--no-progress", str(root))

        assert (tmp_path / "env.db").exists()

    def test_command_required(self):
        with pytest.raises(SystemExit) as exc:
            run()
        assert exc.value.code == 2
