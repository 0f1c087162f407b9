"""Filesystem notifications using the watchdog library."""

import time
from pathlib import Path
from typing import Callable, Optional

from watchdog.events import (
    FileSystemEventHandler,
    DirCreatedEvent,
    DirDeletedEvent,
    DirModifiedEvent,
    DirMovedEvent,
)
from watchdog.observers import Observer
from watchdog.observers.polling import PollingObserver

from .config import WatcherConfig
from .models import RawFSEvent


class FSEventHandler(FileSystemEventHandler):
    """
    Converts watchdog notifications for one root into RawFSEvents.

    Temporary files and paths outside the root are dropped here; a move is
    kept while either of its ends is of interest.
    """

    def __init__(
        self,
        callback: Callable[[RawFSEvent], None],
        config: WatcherConfig,
        root: Path,
    ):
        super().__init__()
        self.callback = callback
        self.config = config
        self.root = root

    def _should_ignore(self, path: Path) -> bool:
        try:
            rel = path.relative_to(self.root)
        except ValueError:
            return True
        return self.config.should_ignore(rel.as_posix())

    def _emit(self, event_type: str, src_path: Path, dest_path: Optional[Path] = None, is_directory: bool = False):
        """Emit a RawFSEvent to the callback."""
        if dest_path is None and self._should_ignore(src_path):
            return
        if dest_path is not None and self._should_ignore(src_path) and self._should_ignore(dest_path):
            return

        raw_event = RawFSEvent(
            event_type=event_type,
            src_path=src_path,
            dest_path=dest_path,
            is_directory=is_directory,
            timestamp=time.time(),
        )
        self.callback(raw_event)

    def on_created(self, event):
        is_dir = isinstance(event, DirCreatedEvent)
        self._emit("created", Path(event.src_path), is_directory=is_dir)

    def on_deleted(self, event):
        is_dir = isinstance(event, DirDeletedEvent)
        self._emit("deleted", Path(event.src_path), is_directory=is_dir)

    def on_modified(self, event):
        # Directory mtime changes carry no content change of their own
        if isinstance(event, DirModifiedEvent):
            return
        self._emit("modified", Path(event.src_path))

    def on_moved(self, event):
        # Children of a moved directory are re-keyed by the directory move itself
        if event.is_synthetic:
            return
        is_dir = isinstance(event, DirMovedEvent)
        self._emit(
            "moved",
            Path(event.src_path),
            Path(event.dest_path),
            is_directory=is_dir,
        )


def create_observer(config: WatcherConfig):
    """Create the watchdog observer selected by the configuration."""
    if config.use_polling:
        return PollingObserver(timeout=config.poll_interval_ms / 1000.0)
    return Observer()
