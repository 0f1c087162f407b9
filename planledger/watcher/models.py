"""Data models for the file watcher package."""

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


@dataclass
class RawFSEvent:
    """
    A watchdog notification queued for the watch loop.

    Attributes:
        event_type: ``created``, ``deleted``, ``modified`` or ``moved``
        src_path: Absolute path the notification is about
        dest_path: Absolute destination of a move
        is_directory: Whether watchdog reported a directory
        timestamp: When the notification arrived (Unix timestamp)
    """
    event_type: str
    src_path: Path
    dest_path: Optional[Path] = None
    is_directory: bool = False
    timestamp: float = field(default_factory=time.time)


@dataclass
class WatchStats:
    """Counters for a watch session."""
    received: int = 0
    emitted: int = 0
    suppressed: int = 0
    errors: int = 0

    def to_dict(self) -> dict:
        return {
            "received": self.received,
            "emitted": self.emitted,
            "suppressed": self.suppressed,
            "errors": self.errors,
        }
