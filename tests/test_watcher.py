"""Tests for the live watcher."""

import threading
import time
from pathlib import Path

import pytest
from watchdog.events import (
    DirCreatedEvent,
    DirModifiedEvent,
    DirMovedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from planledger.eventlog.models import (
    DirectoryCreated,
    DirectoryDeleted,
    DirectoryRenamed,
    FileCreated,
    FileDeleted,
    FileModified,
    FileRenamed,
    Origin,
)
from planledger.watcher.config import WatcherConfig
from planledger.watcher.exceptions import RootNotFoundError, WatcherAlreadyRunningError
from planledger.watcher.fs_watcher import FSEventHandler
from planledger.watcher.hasher import fingerprint
from planledger.watcher.models import RawFSEvent
from planledger.watcher.process import FileSystemWatcher


@pytest.fixture
def root(tmp_path):
    root = tmp_path / "plans"
    root.mkdir()
    return root.resolve()


@pytest.fixture
def published():
    return []


@pytest.fixture
def watcher(root, published):
    return FileSystemWatcher(root, published.append)


class TestFSEventHandler:
    """Tests for FSEventHandler class."""

    def test_file_created(self, tmp_path):
        events = []
        handler = FSEventHandler(events.append, WatcherConfig(), tmp_path)

        handler.on_created(FileCreatedEvent(str(tmp_path / "a.par")))

        assert len(events) == 1
        assert events[0].event_type == "created"
        assert events[0].is_directory is False

    def test_directory_created(self, tmp_path):
        events = []
        handler = FSEventHandler(events.append, WatcherConfig(), tmp_path)

        handler.on_created(DirCreatedEvent(str(tmp_path / "d")))

        assert events[0].is_directory is True

    def test_ignored_file(self, tmp_path):
        events = []
        handler = FSEventHandler(events.append, WatcherConfig(), tmp_path)

        handler.on_created(FileCreatedEvent(str(tmp_path / "~$lock.doc")))
        handler.on_modified(FileModifiedEvent(str(tmp_path / "x.swp")))

        assert events == []

    def test_directory_modified_ignored(self, tmp_path):
        events = []
        handler = FSEventHandler(events.append, WatcherConfig(), tmp_path)

        handler.on_modified(DirModifiedEvent(str(tmp_path / "d")))

        assert events == []

    def test_move_from_temporary_name(self, tmp_path):
        events = []
        handler = FSEventHandler(events.append, WatcherConfig(), tmp_path)

        handler.on_moved(FileMovedEvent(str(tmp_path / "save.tmp"), str(tmp_path / "a.par")))

        assert len(events) == 1
        assert events[0].dest_path == tmp_path / "a.par"

    def test_deleted(self, tmp_path):
        events = []
        handler = FSEventHandler(events.append, WatcherConfig(), tmp_path)

        handler.on_deleted(FileDeletedEvent(str(tmp_path / "a.par")))

        assert events[0].event_type == "deleted"

    def test_outside_root(self, tmp_path):
        events = []
        handler = FSEventHandler(events.append, WatcherConfig(), tmp_path / "root")

        handler.on_created(FileCreatedEvent(str(tmp_path / "other" / "a.par")))
        handler.on_moved(FileMovedEvent(str(tmp_path / "other" / "a.par"), str(tmp_path / "root" / "a.par")))

        assert len(events) == 1
        assert events[0].event_type == "moved"


class TestFileSystemWatcherHandle:
    """Tests for turning raw notifications into events."""

    def test_root_must_exist(self, tmp_path):
        with pytest.raises(RootNotFoundError):
            FileSystemWatcher(tmp_path / "missing", print)

    def test_file_created(self, root, watcher, published):
        path = root / "PUMP_revA.par"
        path.write_bytes(b"v1")

        event = watcher.handle(RawFSEvent("created", path))

        assert isinstance(event, FileCreated)
        assert event.path == "PUMP_revA.par"
        assert event.origin is Origin.REAL_TIME
        assert event.content_hash == fingerprint(path)
        assert event.size == 2
        assert published == [event]
        assert watcher.hash_cache == {"PUMP_revA.par": fingerprint(path)}

    def test_created_then_gone(self, root, watcher, published):
        assert watcher.handle(RawFSEvent("created", root / "gone.par")) is None
        assert published == []

    def test_directory_created(self, root, watcher, published):
        (root / "PUMPS").mkdir()

        event = watcher.handle(RawFSEvent("created", root / "PUMPS", is_directory=True))

        assert isinstance(event, DirectoryCreated)

    def test_modification_with_same_content_suppressed(self, root, published):
        path = root / "a.par"
        path.write_bytes(b"same")
        watcher = FileSystemWatcher(root, published.append, initial_hashes={"a.par": fingerprint(path)})

        assert watcher.handle(RawFSEvent("modified", path)) is None
        assert published == []
        assert watcher.stats.suppressed == 1

    def test_modification_with_new_content(self, root, published):
        path = root / "a.par"
        path.write_bytes(b"old")
        old_hash = fingerprint(path)
        watcher = FileSystemWatcher(root, published.append, initial_hashes={"a.par": old_hash})

        path.write_bytes(b"new")
        event = watcher.handle(RawFSEvent("modified", path))

        assert isinstance(event, FileModified)
        assert event.previous_hash == old_hash
        assert event.content_hash == fingerprint(path)
        assert watcher.hash_cache["a.par"] == event.content_hash

    def test_file_deleted(self, root, published):
        watcher = FileSystemWatcher(root, published.append, initial_hashes={"a.par": "h"})

        event = watcher.handle(RawFSEvent("deleted", root / "a.par"))

        assert isinstance(event, FileDeleted)
        assert watcher.hash_cache == {}

    def test_directory_deleted_evicts_cache(self, root, published):
        watcher = FileSystemWatcher(
            root, published.append,
            initial_hashes={"d/a.par": "h1", "d/sub/b.par": "h2", "other.par": "h3"},
        )

        event = watcher.handle(RawFSEvent("deleted", root / "d", is_directory=True))

        assert isinstance(event, DirectoryDeleted)
        assert watcher.hash_cache == {"other.par": "h3"}

    def test_directory_delete_detected_from_cache(self, root, published):
        # Some platforms report directory deletions without the directory flag
        watcher = FileSystemWatcher(root, published.append, initial_hashes={"d/a.par": "h1"})

        event = watcher.handle(RawFSEvent("deleted", root / "d"))

        assert isinstance(event, DirectoryDeleted)

    def test_file_renamed(self, root, published):
        (root / "new.par").write_bytes(b"content")
        watcher = FileSystemWatcher(root, published.append, initial_hashes={"old.par": "h"})

        event = watcher.handle(RawFSEvent("moved", root / "old.par", root / "new.par"))

        assert isinstance(event, FileRenamed)
        assert event.old_path == "old.par"
        assert event.content_hash == "h"
        assert watcher.hash_cache == {"new.par": "h"}

    def test_directory_renamed_rekeys_cache(self, root, published):
        (root / "B").mkdir()
        watcher = FileSystemWatcher(
            root, published.append, initial_hashes={"A/x.par": "h1", "A/sub/y.par": "h2"},
        )

        event = watcher.handle(RawFSEvent("moved", root / "A", root / "B", is_directory=True))

        assert isinstance(event, DirectoryRenamed)
        assert event.path == "B"
        assert watcher.hash_cache == {"B/x.par": "h1", "B/sub/y.par": "h2"}

    def test_child_moves_of_renamed_directory_skipped(self, root, published):
        (root / "B" / "sub").mkdir(parents=True)
        (root / "B" / "f.par").write_bytes(b"f")
        watcher = FileSystemWatcher(root, published.append, initial_hashes={"A/f.par": "h1"})

        watcher.handle(RawFSEvent("moved", root / "A", root / "B", is_directory=True))
        assert watcher.handle(RawFSEvent("moved", root / "A" / "f.par", root / "B" / "f.par")) is None
        assert watcher.handle(RawFSEvent("moved", root / "A" / "sub", root / "B" / "sub", is_directory=True)) is None

        assert [type(e) for e in published] == [DirectoryRenamed]
        assert watcher.stats.suppressed == 2
        assert watcher.hash_cache == {"B/f.par": "h1"}

    def test_unrelated_move_after_directory_rename(self, root, published):
        (root / "B").mkdir()
        (root / "B" / "g.par").write_bytes(b"g")
        watcher = FileSystemWatcher(root, published.append)

        watcher.handle(RawFSEvent("moved", root / "A", root / "B", is_directory=True))
        event = watcher.handle(RawFSEvent("moved", root / "C" / "g.par", root / "B" / "g.par"))

        assert isinstance(event, FileRenamed)
        assert event.old_path == "C/g.par"

    def test_move_out_of_root_is_delete(self, root, tmp_path, published):
        watcher = FileSystemWatcher(root, published.append, initial_hashes={"a.par": "h"})

        event = watcher.handle(RawFSEvent("moved", root / "a.par", tmp_path / "a.par"))

        assert isinstance(event, FileDeleted)

    def test_move_into_root_is_create(self, root, tmp_path, watcher):
        (root / "a.par").write_bytes(b"x")

        event = watcher.handle(RawFSEvent("moved", tmp_path / "a.par", root / "a.par"))

        assert isinstance(event, FileCreated)

    def test_publish_error_counted(self, root):
        def broken(event):
            raise RuntimeError("log unavailable")

        watcher = FileSystemWatcher(root, broken)
        (root / "a.par").write_bytes(b"x")

        assert watcher.handle(RawFSEvent("created", root / "a.par")) is None
        assert watcher.stats.errors == 1


class TestFileSystemWatcherLoop:
    """Tests for the blocking watch loop."""

    def test_timeout(self, watcher):
        start = time.monotonic()
        watcher.start(timeout=0.3)
        assert time.monotonic() - start < 5
        assert not watcher.is_running

    def test_stop_from_another_thread(self, watcher):
        thread = threading.Thread(target=watcher.start)
        thread.start()
        time.sleep(0.3)
        assert watcher.is_running

        watcher.stop()
        thread.join(timeout=5)
        assert not thread.is_alive()

    def test_already_running(self, watcher):
        thread = threading.Thread(target=watcher.start, kwargs={"timeout": 2})
        thread.start()
        time.sleep(0.3)
        try:
            with pytest.raises(WatcherAlreadyRunningError):
                watcher.start()
        finally:
            watcher.stop()
            thread.join(timeout=5)

    def test_live_file_creation(self, root, published):
        config = WatcherConfig(poll_interval_ms=100)
        watcher = FileSystemWatcher(root, published.append, config=config)
        thread = threading.Thread(target=watcher.start, kwargs={"timeout": 10})
        thread.start()
        time.sleep(0.5)

        (root / "PUMP_revA.par").write_bytes(b"live")

        deadline = time.monotonic() + 5
        while time.monotonic() < deadline and not published:
            time.sleep(0.1)
        watcher.stop()
        thread.join(timeout=5)

        created = [e for e in published if isinstance(e, FileCreated)]
        assert created and created[0].path == "PUMP_revA.par"

    def test_live_directory_rename(self, root, published):
        (root / "A" / "sub").mkdir(parents=True)
        (root / "A" / "f.par").write_bytes(b"f")
        (root / "A" / "sub" / "g.par").write_bytes(b"g")
        config = WatcherConfig(poll_interval_ms=100)
        watcher = FileSystemWatcher(root, published.append, config=config)
        thread = threading.Thread(target=watcher.start, kwargs={"timeout": 10})
        thread.start()
        time.sleep(0.5)

        (root / "A").rename(root / "B")

        deadline = time.monotonic() + 5
        while time.monotonic() < deadline and not published:
            time.sleep(0.1)
        time.sleep(0.5)
        watcher.stop()
        thread.join(timeout=5)

        renames = [(type(e).__name__, e.path, e.old_path) for e in published]
        assert renames == [("DirectoryRenamed", "B", "A")]
