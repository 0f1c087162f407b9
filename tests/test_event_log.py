"""Tests for the SQLite event log."""

import threading

import pytest

from planledger.eventlog.exceptions import EventLogClosedError
from planledger.eventlog.models import (
    DirectoryCreated,
    DirectoryDeleted,
    FileCreated,
    FileDeleted,
    FileModified,
    FileRenamed,
    Origin,
)
from planledger.eventlog.store import EventLog


class TestEventLog:
    """Tests for EventLog class."""

    def test_create_log(self, tmp_path):
        db_path = tmp_path / "ledger.db"
        log = EventLog(db_path)
        assert db_path.exists()
        assert log.last_id() == 0
        log.close()

    def test_append_assigns_increasing_ids(self, tmp_path):
        with EventLog(tmp_path / "ledger.db") as log:
            first = log.append(FileCreated(path="a.par"))
            second = log.append(FileCreated(path="b.par"))

            assert first.id > 0
            assert second.id > first.id
            assert log.last_id() == second.id

    def test_append_enriches_metadata(self, tmp_path):
        with EventLog(tmp_path / "ledger.db") as log:
            stored = log.append(DirectoryCreated(path="PUMPS", origin=Origin.INITIAL))

            assert stored.meta_data == {
                "file_type": "directory",
                "event_type": "DirectoryCreated",
                "origin": "initial",
            }

    def test_get_round_trips_event(self, tmp_path):
        with EventLog(tmp_path / "ledger.db") as log:
            event = FileModified(
                path="a.par", origin=Origin.RECONCILED, content_hash="h2",
                modified_at=123.5, size=42, previous_hash="h1",
            )
            stored = log.append(event)

            loaded = log.get(stored.id)
            assert loaded.event == event
            assert loaded.stored_at == pytest.approx(stored.stored_at)
            assert loaded.meta_data == stored.meta_data

    def test_get_missing(self, tmp_path):
        with EventLog(tmp_path / "ledger.db") as log:
            assert log.get(99) is None

    def test_query_filters(self, tmp_path):
        with EventLog(tmp_path / "ledger.db") as log:
            log.append(FileCreated(path="a.par", origin=Origin.INITIAL))
            log.append(FileModified(path="a.par"))
            log.append(DirectoryCreated(path="d"))

            assert len(log.query(event_class="File%")) == 2
            assert len(log.query(event_class="Directory%")) == 1
            assert [s.event_class for s in log.query(path="a.par")] == ["FileCreated", "FileModified"]
            assert len(log.query(origin="initial")) == 1

    def test_query_order_and_limit(self, tmp_path):
        with EventLog(tmp_path / "ledger.db") as log:
            for i in range(5):
                log.append(FileCreated(path=f"f{i}.par"))

            newest = log.query(descending=True, limit=2)
            assert [s.path for s in newest] == ["f4.par", "f3.par"]

            after = log.query(after_id=newest[1].id)
            assert [s.path for s in after] == ["f4.par"]

    def test_iter_events_batches(self, tmp_path):
        with EventLog(tmp_path / "ledger.db") as log:
            for i in range(7):
                log.append(FileCreated(path=f"f{i}.par"))

            ids = [s.id for s in log.iter_events(batch_size=3)]
            assert ids == sorted(ids)
            assert len(ids) == 7

            newest_first = [s.id for s in log.iter_events(descending=True, batch_size=3)]
            assert newest_first == sorted(ids, reverse=True)

    def test_iter_events_after_id(self, tmp_path):
        with EventLog(tmp_path / "ledger.db") as log:
            stored = [log.append(FileCreated(path=f"f{i}.par")) for i in range(4)]

            paths = [s.path for s in log.iter_events(after_id=stored[1].id)]
            assert paths == ["f2.par", "f3.par"]

    def test_latest_oldest_first(self, tmp_path):
        with EventLog(tmp_path / "ledger.db") as log:
            for i in range(5):
                log.append(FileCreated(path=f"f{i}.par"))

            assert [s.path for s in log.latest(3)] == ["f2.par", "f3.par", "f4.par"]

    def test_counts(self, tmp_path):
        with EventLog(tmp_path / "ledger.db") as log:
            log.append(FileCreated(path="a.par"))
            log.append(FileCreated(path="b.par"))
            log.append(FileDeleted(path="a.par"))

            assert log.count() == 3
            assert log.count("File%") == 3
            assert log.count_by_class() == {"FileCreated": 2, "FileDeleted": 1}

    def test_timeline_keeps_latest_per_path(self, tmp_path):
        with EventLog(tmp_path / "ledger.db") as log:
            log.append(FileCreated(path="a.par"))
            last = log.append(FileDeleted(path="a.par"))
            log.append(FileCreated(path="b.par"))

            timeline = log.timeline()
            assert set(timeline) == {"a.par", "b.par"}
            assert timeline["a.par"].id == last.id

    def test_latest_hashes_excludes_deleted(self, tmp_path):
        with EventLog(tmp_path / "ledger.db") as log:
            log.append(FileCreated(path="a.par", content_hash="h1"))
            log.append(FileModified(path="a.par", content_hash="h2"))
            log.append(FileCreated(path="b.par", content_hash="h3"))
            log.append(FileDeleted(path="b.par"))
            log.append(FileRenamed(path="c.par", old_path="x.par", content_hash="h4"))
            log.append(DirectoryCreated(path="d"))

            assert log.latest_hashes() == {"a.par": "h2", "c.par": "h4"}

    def test_data_persists_across_instances(self, tmp_path):
        db_path = tmp_path / "ledger.db"
        with EventLog(db_path) as log:
            log.append(DirectoryDeleted(path="old"))

        with EventLog(db_path) as log:
            assert log.count() == 1
            assert isinstance(log.latest(1)[0].event, DirectoryDeleted)

    def test_closed_log_rejects_operations(self, tmp_path):
        log = EventLog(tmp_path / "ledger.db")
        log.close()

        with pytest.raises(EventLogClosedError):
            log.append(FileCreated(path="a.par"))
        with pytest.raises(EventLogClosedError):
            log.query()

    def test_concurrent_appends(self, tmp_path):
        with EventLog(tmp_path / "ledger.db") as log:
            def writer(n):
                for i in range(20):
                    log.append(FileCreated(path=f"w{n}/f{i}.par"))

            threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
            for t in threads:
                t.start()
            for t in threads:
                t.join()

            assert log.count() == 80
            ids = [s.id for s in log.iter_events()]
            assert len(set(ids)) == 80
