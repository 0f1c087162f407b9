"""
Event Log Package

Immutable filesystem events, the SQLite log they are appended to, and the
bus that hands recorded events to listeners.
"""

from .models import (
    Origin,
    FileSystemEvent,
    FileCreated,
    FileModified,
    FileDeleted,
    FileRenamed,
    DirectoryCreated,
    DirectoryDeleted,
    DirectoryRenamed,
    StoredEvent,
    EVENT_TYPES,
    enrich,
    normalize_event_path,
    is_valid_event_path,
)

from .exceptions import (
    EventLogError,
    EventLogClosedError,
    InvalidEventPathError,
    UnknownEventError,
)

from .store import EventLog
from .bus import EventBus, log_event
from .monitor import EventMonitor, format_event


__all__ = [
    # Models
    "Origin",
    "FileSystemEvent",
    "FileCreated",
    "FileModified",
    "FileDeleted",
    "FileRenamed",
    "DirectoryCreated",
    "DirectoryDeleted",
    "DirectoryRenamed",
    "StoredEvent",
    "EVENT_TYPES",
    "enrich",
    "normalize_event_path",
    "is_valid_event_path",
    # Exceptions
    "EventLogError",
    "EventLogClosedError",
    "InvalidEventPathError",
    "UnknownEventError",
    # Components
    "EventLog",
    "EventBus",
    "log_event",
    "EventMonitor",
    "format_event",
]
