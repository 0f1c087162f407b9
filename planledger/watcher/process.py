"""Live watcher: turns filesystem notifications into events."""

import logging
import os
import queue
import stat as stat_module
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

from ..eventlog.models import (
    DirectoryCreated,
    DirectoryDeleted,
    DirectoryRenamed,
    FileCreated,
    FileDeleted,
    FileModified,
    FileRenamed,
    FileSystemEvent,
    Origin,
)
from .config import WatcherConfig
from .exceptions import WatcherAlreadyRunningError
from .fs_watcher import FSEventHandler, create_observer
from .hasher import fingerprint
from .models import RawFSEvent, WatchStats
from .scanner import validate_root

logger = logging.getLogger(__name__)

Publisher = Callable[[FileSystemEvent], Any]

# Seconds during which moves under a just-renamed directory count as part of it
REKEY_WINDOW = 2.0


class FileSystemWatcher:
    """
    Watches a root and publishes real-time events.

    Keeps a cache of the last known content hash per file so that
    notifications which leave the content unchanged are not recorded as
    modifications. The cache should be seeded from the file projection so
    that a restart does not report every file as modified.
    """

    def __init__(
        self,
        root: Union[str, Path],
        publish: Publisher,
        config: Optional[WatcherConfig] = None,
        initial_hashes: Optional[Mapping[str, str]] = None,
    ):
        """
        Initialize the watcher.

        Args:
            root: Directory to watch
            publish: Called with every event the watcher produces
            config: Watcher configuration
            initial_hashes: Known ``path -> content hash`` entries

        Raises:
            RootNotFoundError: If the root is missing or not a directory
        """
        self.root = validate_root(root)
        self.config = config or WatcherConfig()
        self._publish = publish
        self._hashes: Dict[str, str] = dict(initial_hashes or {})
        self._rekeyed: Dict[str, Tuple[str, float]] = {}
        self._raw_events: "queue.Queue[RawFSEvent]" = queue.Queue()
        self._handler = FSEventHandler(self._raw_events.put, self.config, self.root)
        self._observer = None
        self._running = False
        self._stop_event = threading.Event()
        self._lock = threading.Lock()
        self.stats = WatchStats()

    @property
    def hash_cache(self) -> Dict[str, str]:
        """Copy of the current ``path -> content hash`` cache."""
        return dict(self._hashes)

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self, timeout: Optional[float] = None) -> WatchStats:
        """
        Watch the root (blocking).

        Runs until stop() is called, the process is interrupted, or the
        timeout elapses.

        Args:
            timeout: Seconds to watch for; None or 0 watches indefinitely

        Returns:
            Counters for the session

        Raises:
            WatcherAlreadyRunningError: If already running
        """
        with self._lock:
            if self._running:
                raise WatcherAlreadyRunningError("Watcher is already running")
            self._running = True
            self._stop_event.clear()

        deadline = time.monotonic() + timeout if timeout else None
        interval = self.config.poll_interval_ms / 1000.0

        try:
            self._observer = create_observer(self.config)
            self._observer.schedule(self._handler, str(self.root), recursive=True)
            self._observer.start()
            logger.info(f"Watching {self.root} ({len(self._hashes)} cached hashes)")

            while not self._stop_event.is_set():
                wait = interval
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        logger.info("Watch timeout reached")
                        break
                    wait = min(wait, remaining)

                try:
                    raw = self._raw_events.get(timeout=wait)
                except queue.Empty:
                    continue
                self.handle(raw)
        except KeyboardInterrupt:
            logger.info("Watch interrupted")
        finally:
            self._shutdown()

        return self.stats

    def stop(self) -> None:
        """Ask the watch loop to finish."""
        self._stop_event.set()

    def _shutdown(self) -> None:
        """Stop notifications, then handle whatever is already queued."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5.0)
            self._observer = None

        while True:
            try:
                raw = self._raw_events.get_nowait()
            except queue.Empty:
                break
            self.handle(raw)

        with self._lock:
            self._running = False
        logger.info(f"Watcher stopped: {self.stats.to_dict()}")

    def handle(self, raw: RawFSEvent) -> Optional[FileSystemEvent]:
        """
        Handle one raw notification.

        Errors are logged and counted; they never end the watch loop.

        Returns:
            The published event, or None if nothing was published
        """
        self.stats.received += 1
        try:
            return self._handle(raw)
        except Exception as e:
            self.stats.errors += 1
            logger.error(f"Error handling {raw.event_type} event for {raw.src_path}: {e}")
            return None

    def _handle(self, raw: RawFSEvent) -> Optional[FileSystemEvent]:
        if raw.event_type == "moved":
            return self._on_moved(raw)

        rel = self._relative(raw.src_path)
        if rel is None:
            return None

        if raw.event_type == "created":
            if raw.is_directory:
                return self._on_directory_created(rel, raw.src_path)
            return self._on_file_created(rel, raw.src_path)
        if raw.event_type == "modified":
            return self._on_file_modified(rel, raw.src_path)
        if raw.event_type == "deleted":
            if raw.is_directory or self._has_cached_children(rel):
                return self._on_directory_deleted(rel)
            return self._on_file_deleted(rel)

        logger.debug(f"Ignoring raw event type: {raw.event_type}")
        return None

    def _relative(self, path: Optional[Path]) -> Optional[str]:
        """Root-relative posix path, or None for paths outside the root or ignored."""
        if path is None:
            return None
        try:
            rel = Path(path).relative_to(self.root).as_posix()
        except ValueError:
            return None
        if rel in ("", "."):
            return None
        if self.config.should_ignore(rel):
            return None
        return rel

    def _emit(self, event: FileSystemEvent) -> FileSystemEvent:
        self._publish(event)
        self.stats.emitted += 1
        logger.debug(f"Published {event.event_class}: {event.path}")
        return event

    # File events

    def _on_file_created(self, rel: str, abs_path: Path) -> Optional[FileSystemEvent]:
        try:
            st = os.stat(abs_path)
        except FileNotFoundError:
            logger.warning(f"File vanished before it could be recorded: {rel}")
            return None
        if stat_module.S_ISDIR(st.st_mode):
            return self._on_directory_created(rel, abs_path)

        content_hash = fingerprint(abs_path, self.config.hash_threshold_bytes)
        event = self._emit(FileCreated(
            path=rel,
            origin=Origin.REAL_TIME,
            content_hash=content_hash,
            modified_at=st.st_mtime,
            size=st.st_size,
        ))
        if content_hash is not None:
            self._hashes[rel] = content_hash
        return event

    def _on_file_modified(self, rel: str, abs_path: Path) -> Optional[FileSystemEvent]:
        try:
            st = os.stat(abs_path)
        except FileNotFoundError:
            logger.debug(f"Modified file already gone: {rel}")
            return None
        if not stat_module.S_ISREG(st.st_mode):
            return None

        content_hash = fingerprint(abs_path, self.config.hash_threshold_bytes)
        if content_hash is None:
            return None

        previous_hash = self._hashes.get(rel)
        if content_hash == previous_hash:
            self.stats.suppressed += 1
            logger.debug(f"Content unchanged, skipping modification of {rel}")
            return None

        event = self._emit(FileModified(
            path=rel,
            origin=Origin.REAL_TIME,
            content_hash=content_hash,
            modified_at=st.st_mtime,
            size=st.st_size,
            previous_hash=previous_hash,
        ))
        self._hashes[rel] = content_hash
        return event

    def _on_file_deleted(self, rel: str) -> FileSystemEvent:
        event = self._emit(FileDeleted(path=rel, origin=Origin.REAL_TIME))
        self._hashes.pop(rel, None)
        return event

    # Directory events

    def _on_directory_created(self, rel: str, abs_path: Path) -> FileSystemEvent:
        try:
            modified_at = os.stat(abs_path).st_mtime
        except OSError:
            modified_at = None
        return self._emit(DirectoryCreated(
            path=rel, origin=Origin.REAL_TIME, modified_at=modified_at
        ))

    def _on_directory_deleted(self, rel: str) -> FileSystemEvent:
        event = self._emit(DirectoryDeleted(path=rel, origin=Origin.REAL_TIME))
        evicted = self._evict_under(rel)
        if evicted:
            logger.debug(f"Evicted {evicted} cached hash(es) under {rel}")
        return event

    def _has_cached_children(self, rel: str) -> bool:
        prefix = rel + "/"
        return any(key.startswith(prefix) for key in self._hashes)

    def _evict_under(self, rel: str) -> int:
        prefix = rel + "/"
        doomed = [key for key in self._hashes if key == rel or key.startswith(prefix)]
        for key in doomed:
            del self._hashes[key]
        return len(doomed)

    # Moves

    def _on_moved(self, raw: RawFSEvent) -> Optional[FileSystemEvent]:
        src = self._relative(raw.src_path)
        dest = self._relative(raw.dest_path)

        if src is None and dest is None:
            return None
        if src is None:
            if raw.is_directory:
                return self._on_directory_created(dest, raw.dest_path)
            return self._on_file_created(dest, raw.dest_path)
        if dest is None:
            if raw.is_directory:
                return self._on_directory_deleted(src)
            return self._on_file_deleted(src)

        if self._already_rekeyed(src, dest):
            self.stats.suppressed += 1
            logger.debug(f"Move {src} -> {dest} covered by its directory rename")
            return None

        if raw.is_directory:
            return self._on_directory_moved(src, dest, raw.dest_path)
        return self._on_file_moved(src, dest, raw.dest_path)

    def _already_rekeyed(self, src: str, dest: str) -> bool:
        """Whether a move is the echo of a recent rename of one of its ancestors."""
        now = time.monotonic()
        for old, (new, at) in list(self._rekeyed.items()):
            if now - at > REKEY_WINDOW:
                del self._rekeyed[old]
                continue
            prefix = old + "/"
            if src.startswith(prefix) and dest == new + "/" + src[len(prefix):]:
                return True
        return False

    def _on_file_moved(self, src: str, dest: str, abs_dest: Path) -> FileSystemEvent:
        try:
            st = os.stat(abs_dest)
        except FileNotFoundError:
            logger.warning(f"Renamed file vanished before it could be recorded: {dest}")
            return self._on_file_deleted(src)

        content_hash = self._hashes.get(src) or fingerprint(abs_dest, self.config.hash_threshold_bytes)
        event = self._emit(FileRenamed(
            path=dest,
            old_path=src,
            origin=Origin.REAL_TIME,
            content_hash=content_hash,
            modified_at=st.st_mtime,
            size=st.st_size,
        ))
        self._hashes.pop(src, None)
        if content_hash is not None:
            self._hashes[dest] = content_hash
        return event

    def _on_directory_moved(self, src: str, dest: str, abs_dest: Path) -> FileSystemEvent:
        try:
            modified_at = os.stat(abs_dest).st_mtime
        except OSError:
            modified_at = None
        event = self._emit(DirectoryRenamed(
            path=dest, old_path=src, origin=Origin.REAL_TIME, modified_at=modified_at
        ))

        prefix = src + "/"
        moved = {key: value for key, value in self._hashes.items() if key.startswith(prefix)}
        for key, value in moved.items():
            del self._hashes[key]
            self._hashes[dest + "/" + key[len(prefix):]] = value
        self._rekeyed[src] = (dest, time.monotonic())
        return event
