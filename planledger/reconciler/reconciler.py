"""Detects drift between the filesystem and the event log."""

import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from ..eventlog.models import (
    DirectoryCreated,
    DirectoryDeleted,
    DirectoryRenamed,
    FileCreated,
    FileDeleted,
    FileModified,
    FileSystemEvent,
    Origin,
    is_valid_event_path,
)
from ..eventlog.store import EventLog
from ..watcher.config import WatcherConfig
from ..watcher.hasher import fingerprint
from ..watcher.scanner import FileSystemScanner
from .exceptions import SnapshotNotFoundError
from .models import Discrepancy, DiscrepancyReason, ItemState, ReconcileResult, TimelineEntry
from .snapshot import SnapshotStore

logger = logging.getLogger(__name__)

Publisher = Callable[[FileSystemEvent], Any]


def _is_under(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix + "/")


def _rebase(path: str, old_prefix: str, new_prefix: str) -> str:
    return new_prefix + path[len(old_prefix):]


class FileSystemReconciler:
    """
    Compares what is on disk with what the event log says and emits
    ``reconciled`` events for every difference.

    Runs in two phases: paths the log believes exist but are gone, then
    paths on disk the log is missing or has stale. Deletions are emitted
    first, deepest paths first, so children go before their parents.
    """

    def __init__(
        self,
        root: Union[str, Path],
        log: EventLog,
        publish: Publisher,
        config: Optional[WatcherConfig] = None,
        snapshots: Optional[SnapshotStore] = None,
    ):
        """
        Initialize the reconciler.

        Args:
            root: Watched root
            log: Event log holding the recorded history
            publish: Called with every corrective event
            config: Watcher configuration (ignore patterns, hash threshold)
            snapshots: Where crawls are saved for ``skip_scan`` runs

        Raises:
            RootNotFoundError: If the root is missing or not a directory
        """
        self.config = config or WatcherConfig()
        self.scanner = FileSystemScanner(root, self.config)
        self.root = self.scanner.root
        self.log = log
        self._publish = publish
        self.snapshots = snapshots
        self.errors = 0

    def crawl(self) -> Dict[str, ItemState]:
        """Read the current state of every item under the root."""
        state: Dict[str, ItemState] = {}
        self.errors = 0

        for entry in self.scanner.walk(on_error=self._record_error):
            if entry.is_dir:
                state[entry.path] = ItemState("directory", modified_at=entry.stat.st_mtime)
                continue

            content_hash = fingerprint(entry.abs_path, self.config.hash_threshold_bytes)
            if content_hash is None:
                self.errors += 1
            state[entry.path] = ItemState(
                "file",
                modified_at=entry.stat.st_mtime,
                size=entry.stat.st_size,
                content_hash=content_hash,
            )

        logger.debug(f"Crawled {len(state)} items under {self.root}")
        return state

    def _record_error(self, path: str, error: Exception) -> None:
        self.errors += 1
        logger.warning(f"Cannot read {path}: {error}")

    def current_state(self, skip_scan: bool = False) -> Dict[str, ItemState]:
        """
        Get the filesystem state to reconcile against.

        Args:
            skip_scan: Use the last saved snapshot instead of crawling

        Raises:
            SnapshotNotFoundError: If ``skip_scan`` is set and no snapshot exists
        """
        if skip_scan:
            if self.snapshots is None:
                raise SnapshotNotFoundError("No snapshot store configured")
            state = self.snapshots.load(self.root)
            logger.info(f"Using saved snapshot of {self.root} ({len(state)} items)")
            return state

        state = self.crawl()
        if self.snapshots is not None:
            self.snapshots.save(self.root, state)
        return state

    def build_timeline(self) -> Dict[str, TimelineEntry]:
        """
        Get the latest recorded fate of every path in the log.

        The log is read newest first and the first event seen for a path
        wins. The old path of a rename counts as deleted. Older events
        under a directory that was later renamed are followed to the new
        location, and those under a directory that was later deleted count
        as deleted.
        """
        timeline: Dict[str, TimelineEntry] = {}
        # Newer directory renames and deletes, newest first:
        # (old_prefix, new_prefix) for a rename, (prefix, None) for a delete.
        covers: List[Tuple[str, Optional[str]]] = []

        for stored in self.log.iter_events(descending=True):
            event = stored.event
            path, gone = self._resolve(event.path, covers)
            if path not in timeline:
                timeline[path] = TimelineEntry(
                    stored, is_delete=gone or event.is_delete, is_directory=event.is_directory
                )

            if event.is_rename:
                old_path, _ = self._resolve(event.old_path, covers)
                if old_path not in timeline:
                    timeline[old_path] = TimelineEntry(
                        stored, is_delete=True, is_directory=event.is_directory
                    )
                if isinstance(event, DirectoryRenamed):
                    covers.append((event.old_path, event.path))
            elif isinstance(event, DirectoryDeleted):
                covers.append((event.path, None))

        return timeline

    @staticmethod
    def _resolve(path: str, covers: List[Tuple[str, Optional[str]]]) -> Tuple[str, bool]:
        """Follow a path through the newer directory renames and deletes."""
        for prefix, new_prefix in reversed(covers):
            if not _is_under(path, prefix):
                continue
            if new_prefix is None:
                return path, True
            path = _rebase(path, prefix, new_prefix)
        return path, False

    def find_discrepancies(
        self,
        state: Optional[Dict[str, ItemState]] = None,
        skip_scan: bool = False,
    ) -> List[Discrepancy]:
        """
        Compare the filesystem with the log without emitting anything.

        Args:
            state: Filesystem state to use instead of reading it
            skip_scan: Use the last saved snapshot when ``state`` is not given

        Returns:
            Discrepancies, vanished items first
        """
        if state is None:
            state = self.current_state(skip_scan)
        timeline = self.build_timeline()
        discrepancies: List[Discrepancy] = []

        # Phase 1: recorded items that are gone
        for path, entry in timeline.items():
            if not is_valid_event_path(path):
                logger.debug(f"Skipping malformed path in timeline: {path!r}")
                continue
            if entry.is_delete or path in state:
                continue
            if self.config.should_ignore(path):
                continue
            discrepancies.append(Discrepancy(
                path, DiscrepancyReason.MISSING_FROM_FILESYSTEM, last_event=entry
            ))

        # Phase 2: items on disk
        for path, item in state.items():
            entry = timeline.get(path)
            if entry is None:
                reason = DiscrepancyReason.MISSING_EVENT
            elif entry.is_delete:
                reason = DiscrepancyReason.DELETED_BUT_EXISTS
            elif (
                not item.is_directory
                and item.modified_at is not None
                and item.modified_at > entry.stored_at
            ):
                reason = DiscrepancyReason.MODIFIED_AFTER_EVENT
            else:
                continue
            discrepancies.append(Discrepancy(path, reason, state=item, last_event=entry))

        return discrepancies

    @staticmethod
    def order_for_emission(discrepancies: List[Discrepancy]) -> List[Discrepancy]:
        """Vanished items first, deepest path first, then everything else."""
        deletions = [
            d for d in discrepancies if d.reason is DiscrepancyReason.MISSING_FROM_FILESYSTEM
        ]
        others = [
            d for d in discrepancies if d.reason is not DiscrepancyReason.MISSING_FROM_FILESYSTEM
        ]
        # Deeper first; at equal depth, reverse lexicographic
        deletions.sort(key=lambda d: (d.depth, d.path), reverse=True)
        return deletions + others

    def to_event(self, discrepancy: Discrepancy) -> FileSystemEvent:
        """Build the corrective event for a discrepancy."""
        path = discrepancy.path
        reason = discrepancy.reason
        item = discrepancy.state

        if reason is DiscrepancyReason.MISSING_FROM_FILESYSTEM:
            if discrepancy.is_directory:
                return DirectoryDeleted(path=path, origin=Origin.RECONCILED)
            return FileDeleted(path=path, origin=Origin.RECONCILED)

        if reason is DiscrepancyReason.MODIFIED_AFTER_EVENT:
            return FileModified(
                path=path,
                origin=Origin.RECONCILED,
                content_hash=item.content_hash,
                modified_at=item.modified_at,
                size=item.size,
                previous_hash=discrepancy.last_event.content_hash,
            )

        if item.is_directory:
            return DirectoryCreated(path=path, origin=Origin.RECONCILED, modified_at=item.modified_at)
        return FileCreated(
            path=path,
            origin=Origin.RECONCILED,
            content_hash=item.content_hash,
            modified_at=item.modified_at,
            size=item.size,
        )

    def reconcile(self, skip_scan: bool = False, dry_run: bool = False) -> ReconcileResult:
        """
        Run a full reconciliation.

        Args:
            skip_scan: Compare against the last saved snapshot instead of crawling
            dry_run: Find discrepancies but emit nothing

        Returns:
            Counts of scanned items, discrepancies, emitted events and failures

        Raises:
            SnapshotNotFoundError: If ``skip_scan`` is set and no snapshot exists
        """
        started = time.monotonic()
        logger.info(f"Starting reconciliation of {self.root}")

        state = self.current_state(skip_scan)
        result = ReconcileResult(scanned=len(state))
        result.discrepancies = self.order_for_emission(self.find_discrepancies(state))

        if not dry_run:
            for discrepancy in result.discrepancies:
                try:
                    event = self.to_event(discrepancy)
                    self._publish(event)
                except Exception as e:
                    result.failures += 1
                    logger.error(
                        f"Failed to emit reconciliation event for {discrepancy.path} "
                        f"({discrepancy.reason.value}): {e}"
                    )
                    continue
                result.events_created += 1
                logger.debug(f"Reconciled {discrepancy.path}: {discrepancy.reason.value} -> {event.event_class}")

        result.duration = time.monotonic() - started
        logger.info(
            f"Reconciliation of {self.root} finished: {result.scanned} scanned, "
            f"{len(result.discrepancies)} discrepancies, {result.events_created} events, "
            f"{result.failures} failures"
        )
        return result
