"""
Reconciler Package

Finds where the filesystem and the event log disagree and emits the
events that bring the log back in line.
"""

from .exceptions import ReconcileError, SnapshotNotFoundError

from .models import (
    DiscrepancyReason,
    Discrepancy,
    ItemState,
    ReconcileResult,
    TimelineEntry,
)

from .snapshot import SnapshotStore
from .reconciler import FileSystemReconciler


__all__ = [
    # Exceptions
    "ReconcileError",
    "SnapshotNotFoundError",
    # Models
    "DiscrepancyReason",
    "Discrepancy",
    "ItemState",
    "ReconcileResult",
    "TimelineEntry",
    # Components
    "SnapshotStore",
    "FileSystemReconciler",
]
