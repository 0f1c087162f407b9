"""Data models for the reconciler package."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ..eventlog.models import StoredEvent


class DiscrepancyReason(Enum):
    """Why the filesystem and the event log disagree about a path."""
    MISSING_FROM_FILESYSTEM = "missing_from_filesystem"
    MISSING_EVENT = "missing_event"
    DELETED_BUT_EXISTS = "deleted_but_exists"
    MODIFIED_AFTER_EVENT = "modified_after_event"


@dataclass
class ItemState:
    """
    Observed state of one item on disk.

    Attributes:
        file_type: ``file`` or ``directory``
        modified_at: Modification time (Unix timestamp)
        size: Size in bytes (files only)
        content_hash: Content fingerprint (files only, None if unreadable)
    """
    file_type: str
    modified_at: Optional[float] = None
    size: Optional[int] = None
    content_hash: Optional[str] = None

    @property
    def is_directory(self) -> bool:
        return self.file_type == "directory"

    def to_dict(self) -> dict:
        return {
            "file_type": self.file_type,
            "modified_at": self.modified_at,
            "size": self.size,
            "content_hash": self.content_hash,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ItemState":
        return cls(
            file_type=data["file_type"],
            modified_at=data.get("modified_at"),
            size=data.get("size"),
            content_hash=data.get("content_hash"),
        )


@dataclass
class Discrepancy:
    """
    A mismatch between the filesystem and the event log.

    Attributes:
        path: Root-relative path
        reason: Kind of mismatch
        state: Current state on disk (None when the item is gone)
        last_event: Latest timeline entry for the path, if any
    """
    path: str
    reason: DiscrepancyReason
    state: Optional[ItemState] = None
    last_event: Optional["TimelineEntry"] = None

    @property
    def is_directory(self) -> bool:
        if self.state is not None:
            return self.state.is_directory
        return self.last_event is not None and self.last_event.is_directory

    @property
    def depth(self) -> int:
        return self.path.count("/")

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "reason": self.reason.value,
            "file_type": "directory" if self.is_directory else "file",
            "last_event_id": self.last_event.stored.id if self.last_event else None,
        }


@dataclass
class ReconcileResult:
    """Outcome of a reconcile run."""
    scanned: int = 0
    discrepancies: List[Discrepancy] = field(default_factory=list)
    events_created: int = 0
    failures: int = 0
    duration: float = 0.0

    def counts_by_reason(self) -> dict:
        counts = {reason.value: 0 for reason in DiscrepancyReason}
        for discrepancy in self.discrepancies:
            counts[discrepancy.reason.value] += 1
        return counts

    def to_dict(self) -> dict:
        return {
            "scanned": self.scanned,
            "discrepancies": len(self.discrepancies),
            "events_created": self.events_created,
            "failures": self.failures,
            "duration": self.duration,
            "by_reason": self.counts_by_reason(),
        }


@dataclass
class TimelineEntry:
    """
    Latest recorded fate of one path.

    Attributes:
        stored: Event that decided the fate
        is_delete: Whether the path no longer exists according to the log
        is_directory: Whether the path is a directory
    """
    stored: StoredEvent
    is_delete: bool
    is_directory: bool

    @property
    def content_hash(self) -> Optional[str]:
        return None if self.is_delete else self.stored.event.content_hash

    @property
    def stored_at(self) -> float:
        return self.stored.stored_at
