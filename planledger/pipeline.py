"""
Wires the event log, the event bus and the projector chain together.

Every command runs through a Pipeline: events produced by the scanner,
the watcher or the reconciler are published on the bus, appended to the
log and folded into the projections by the runner.
"""

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union

from .config import LedgerConfig
from .eventlog.bus import EventBus, log_event
from .eventlog.models import FileSystemEvent, StoredEvent
from .eventlog.store import EventLog
from .projectors.runner import ProjectionRunner
from .projectors.store import ProjectionStore
from .reconciler.models import ReconcileResult
from .reconciler.reconciler import FileSystemReconciler
from .reconciler.snapshot import SnapshotStore
from .watcher.models import WatchStats
from .watcher.process import FileSystemWatcher
from .watcher.scanner import FileSystemScanner, ProgressCallback, ScanStats

logger = logging.getLogger(__name__)


@dataclass
class ScanReport:
    """Outcome of an initial scan."""
    stats: ScanStats
    events_created: int = 0
    duration: float = 0.0
    last_events: List[StoredEvent] = field(default_factory=list)

    @property
    def throughput(self) -> float:
        """Items per second."""
        return self.stats.items / self.duration if self.duration > 0 else 0.0


class Pipeline:
    """
    Event log, projections and bus for one database.

    Usage:
        with Pipeline(LedgerConfig(db_path="ledger.db")) as pipeline:
            pipeline.scan("/srv/plans")
    """

    def __init__(self, config: Optional[LedgerConfig] = None, async_dispatch: bool = False):
        """
        Open the database and subscribe the projector chain.

        Args:
            config: Configuration
            async_dispatch: Run listeners on the bus worker thread
        """
        self.config = config or LedgerConfig()
        db_path = Path(self.config.db_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)

        self.log = EventLog(db_path)
        self.store = ProjectionStore(db_path)
        self.snapshots = SnapshotStore(db_path)
        self.runner = ProjectionRunner(self.store, self.config.projectors, log=self.log)
        self.bus = EventBus(self.log, async_dispatch=async_dispatch)
        self.bus.subscribe(log_event)
        self.bus.subscribe(self.runner)

        # Project whatever other processes appended since the last run
        self.runner.catch_up()

    def publish(self, event: FileSystemEvent) -> StoredEvent:
        """Record an event and run the listeners on it."""
        return self.bus.publish(event)

    def scan(self, root: Union[str, Path], progress: Optional[ProgressCallback] = None) -> ScanReport:
        """
        Record every item under a root with ``initial`` origin.

        Raises:
            RootNotFoundError: If the root is missing or not a directory
        """
        scanner = FileSystemScanner(root, self.config.watcher)
        report = ScanReport(stats=scanner.stats)
        started = time.monotonic()

        for event in scanner.scan(progress=progress):
            self.publish(event)
            report.events_created += 1

        self.bus.drain()
        report.stats = scanner.stats
        report.duration = time.monotonic() - started
        report.last_events = self.log.latest(5)
        return report

    def reconciler(self, root: Union[str, Path]) -> FileSystemReconciler:
        return FileSystemReconciler(
            root, self.log, self.publish, config=self.config.watcher, snapshots=self.snapshots
        )

    def reconcile(
        self,
        root: Union[str, Path],
        skip_scan: bool = False,
        dry_run: bool = False,
    ) -> ReconcileResult:
        """
        Bring the log back in line with the filesystem.

        Raises:
            RootNotFoundError: If the root is missing or not a directory
            SnapshotNotFoundError: If ``skip_scan`` is set and no snapshot exists
        """
        result = self.reconciler(root).reconcile(skip_scan=skip_scan, dry_run=dry_run)
        self.bus.drain()
        return result

    def known_hashes(self) -> Dict[str, str]:
        """
        Content hashes to seed the watcher with.

        The file projection wins; the log fills in the paths it omits.
        """
        hashes = self.log.latest_hashes()
        hashes.update(self.store.file_hashes())
        return hashes

    def watcher(self, root: Union[str, Path]) -> FileSystemWatcher:
        return FileSystemWatcher(
            root, self.publish, config=self.config.watcher, initial_hashes=self.known_hashes()
        )

    def watch(self, root: Union[str, Path], timeout: Optional[float] = None) -> WatchStats:
        """
        Watch a root until stopped, interrupted or timed out.

        Raises:
            RootNotFoundError: If the root is missing or not a directory
        """
        stats = self.watcher(root).start(timeout=timeout)
        self.bus.drain()
        return stats

    def rebuild(self) -> int:
        """Clear the projections and replay the whole log. Returns events applied."""
        self.bus.drain()
        started = time.monotonic()
        applied = self.runner.rebuild()
        logger.info(f"Rebuilt projections from {applied} event(s) in {time.monotonic() - started:.2f}s")
        return applied

    def stats(self) -> dict:
        """Event and projection row counts."""
        return {
            "events": self.log.count(),
            "last_event_id": self.log.last_id(),
            "checkpoint": self.runner.checkpoint,
            "events_by_class": self.log.count_by_class(),
            "projections": self.store.counts(),
        }

    def close(self) -> None:
        """Finish dispatching, then close the stores."""
        self.bus.close()
        self.store.close()
        self.log.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
