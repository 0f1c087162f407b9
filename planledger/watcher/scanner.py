"""Initial crawl of a watched root."""

import logging
import os
import stat as stat_module
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, NamedTuple, Optional, Set, Tuple, Union

from ..eventlog.models import DirectoryCreated, FileCreated, FileSystemEvent, Origin
from .config import WatcherConfig
from .exceptions import RootNotFoundError
from .hasher import fingerprint

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, str], None]
ErrorCallback = Callable[[str, Exception], None]


class WalkEntry(NamedTuple):
    """One item found while walking the root."""
    path: str
    abs_path: str
    is_dir: bool
    stat: os.stat_result


@dataclass
class ScanStats:
    """Counters for a single scan."""
    directories: int = 0
    files: int = 0
    total_size: int = 0
    errors: int = 0
    total: int = 0

    @property
    def items(self) -> int:
        return self.directories + self.files

    def to_dict(self) -> dict:
        return {
            "directories": self.directories,
            "files": self.files,
            "total_size": self.total_size,
            "errors": self.errors,
            "total": self.total,
        }


def validate_root(root: Union[str, Path]) -> Path:
    """
    Resolve a watched root and make sure it is a directory.

    Raises:
        RootNotFoundError: If the root is missing or not a directory
    """
    root = Path(root).expanduser()
    if not root.exists():
        raise RootNotFoundError(f"Root path does not exist: {root}")
    if not root.is_dir():
        raise RootNotFoundError(f"Root path is not a directory: {root}")
    return root.resolve()


class FileSystemScanner:
    """
    Depth-first crawl of a root that emits creation events.

    Directories are visited before their contents and entries are sorted by
    name. Symlinked directories are followed when configured, with a guard
    against symlink cycles.
    """

    def __init__(self, root: Union[str, Path], config: Optional[WatcherConfig] = None):
        """
        Initialize the scanner.

        Args:
            root: Directory to crawl
            config: Watcher configuration (ignore patterns, hash threshold)

        Raises:
            RootNotFoundError: If the root is missing or not a directory
        """
        self.root = validate_root(root)
        self.config = config or WatcherConfig()
        self.stats = ScanStats()

    def walk(self, on_error: Optional[ErrorCallback] = None) -> Iterator[WalkEntry]:
        """
        Walk the root depth-first, directories before their contents.

        Args:
            on_error: Called with (path, exception) for unreadable items

        Yields:
            WalkEntry for every directory and regular file
        """
        on_error = on_error or _log_walk_error
        root_stat = os.stat(self.root)
        ancestors = {(root_stat.st_dev, root_stat.st_ino)}
        yield from self._walk_dir(str(self.root), "", ancestors, on_error)

    def _walk_dir(
        self,
        directory: str,
        rel_dir: str,
        ancestors: Set[Tuple[int, int]],
        on_error: ErrorCallback,
    ) -> Iterator[WalkEntry]:
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            on_error(rel_dir or ".", e)
            return

        follow = self.config.follow_symlinks
        for entry in entries:
            rel_path = f"{rel_dir}/{entry.name}" if rel_dir else entry.name
            if self.config.should_ignore(rel_path):
                continue

            try:
                if entry.is_symlink() and not follow:
                    continue
                st = entry.stat(follow_symlinks=follow)
            except OSError as e:
                on_error(rel_path, e)
                continue

            if stat_module.S_ISDIR(st.st_mode):
                key = (st.st_dev, st.st_ino)
                if st.st_ino and key in ancestors:
                    on_error(rel_path, OSError(f"Symlink cycle detected at {rel_path}"))
                    continue
                yield WalkEntry(rel_path, entry.path, True, st)
                ancestors.add(key)
                try:
                    yield from self._walk_dir(entry.path, rel_path, ancestors, on_error)
                finally:
                    ancestors.discard(key)
            elif stat_module.S_ISREG(st.st_mode):
                yield WalkEntry(rel_path, entry.path, False, st)
            else:
                logger.debug(f"Skipping special file: {rel_path}")

    def count(self) -> int:
        """First pass: count the items a scan will visit."""
        return sum(1 for _ in self.walk(on_error=lambda path, e: None))

    def scan(self, progress: Optional[ProgressCallback] = None) -> Iterator[FileSystemEvent]:
        """
        Crawl the root and produce one creation event per item.

        Statistics are reset on every call, so the generator can be run again.

        Args:
            progress: Called with (current, total, path) after each item

        Yields:
            DirectoryCreated and FileCreated events with ``initial`` origin
        """
        self.stats = ScanStats()
        total = self.count()
        self.stats.total = total
        logger.info(f"Scanning {self.root} ({total} items)")

        current = 0
        for entry in self.walk(on_error=self._record_error):
            current += 1
            try:
                event = self._to_event(entry)
            except (OSError, ValueError) as e:
                self._record_error(entry.path, e)
                continue

            if progress:
                progress(current, total, entry.path)
            yield event

        logger.info(
            f"Scan of {self.root} finished: {self.stats.directories} directories, "
            f"{self.stats.files} files, {self.stats.errors} errors"
        )

    def _to_event(self, entry: WalkEntry) -> FileSystemEvent:
        if entry.is_dir:
            event = DirectoryCreated(
                path=entry.path,
                origin=Origin.INITIAL,
                modified_at=entry.stat.st_mtime,
            )
            self.stats.directories += 1
            return event

        content_hash = fingerprint(entry.abs_path, self.config.hash_threshold_bytes)
        event = FileCreated(
            path=entry.path,
            origin=Origin.INITIAL,
            content_hash=content_hash,
            modified_at=entry.stat.st_mtime,
            size=entry.stat.st_size,
        )
        if content_hash is None:
            self.stats.errors += 1
        self.stats.files += 1
        self.stats.total_size += entry.stat.st_size
        return event

    def _record_error(self, path: str, error: Exception) -> None:
        self.stats.errors += 1
        logger.warning(f"Scan error at {path}: {error}")


def _log_walk_error(path: str, error: Exception) -> None:
    logger.warning(f"Cannot read {path}: {error}")
