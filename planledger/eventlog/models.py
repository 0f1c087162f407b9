"""Data models for the event log package."""

import re
import time
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Type

from .exceptions import InvalidEventPathError, UnknownEventError


class Origin(Enum):
    """Where an event came from."""
    INITIAL = "initial"
    REAL_TIME = "real-time"
    RECONCILED = "reconciled"


_DRIVE_RE = re.compile(r"^[A-Za-z]:")


def normalize_event_path(path: Any) -> str:
    """
    Normalize and validate a root-relative event path.

    Backslashes become forward slashes and empty or ``.`` segments are
    dropped.

    Args:
        path: Candidate path (str or Path)

    Returns:
        The normalized path

    Raises:
        InvalidEventPathError: If the path is empty, absolute, or contains
            a ``..`` segment
    """
    text = str(path).replace("\\", "/")
    if text.startswith("/") or _DRIVE_RE.match(text):
        raise InvalidEventPathError(f"path must be relative to the root: {path!r}")

    segments = [s for s in text.split("/") if s not in ("", ".")]
    if not segments:
        raise InvalidEventPathError(f"path must not be empty: {path!r}")
    if ".." in segments:
        raise InvalidEventPathError(f"path must not contain '..': {path!r}")

    return "/".join(segments)


def is_valid_event_path(path: Any) -> bool:
    """Check whether a path would be accepted by an event."""
    try:
        normalize_event_path(path)
    except InvalidEventPathError:
        return False
    return True


@dataclass(frozen=True)
class FileSystemEvent:
    """
    Base class for all filesystem events.

    Attributes:
        path: Root-relative, forward-slash separated path
        origin: Provenance of the event (initial scan, live watch, reconciler)
        content_hash: Content fingerprint of the file, if known
        modified_at: Filesystem modification time (Unix timestamp)
        size: File size in bytes
    """
    path: str
    origin: Origin = Origin.REAL_TIME
    content_hash: Optional[str] = None
    modified_at: Optional[float] = None
    size: Optional[int] = None

    is_directory: ClassVar[bool] = False
    is_delete: ClassVar[bool] = False
    is_rename: ClassVar[bool] = False

    def __post_init__(self):
        object.__setattr__(self, "path", normalize_event_path(self.path))
        if not isinstance(self.origin, Origin):
            object.__setattr__(self, "origin", Origin(self.origin))
        if self.size is not None and self.size < 0:
            raise ValueError(f"size must be non-negative: {self.size}")

    @property
    def event_class(self) -> str:
        return type(self).__name__

    @property
    def file_type(self) -> str:
        return "directory" if self.is_directory else "file"

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        data: Dict[str, Any] = {"event_class": self.event_class}
        for f in fields(self):
            value = getattr(self, f.name)
            data[f.name] = value.value if isinstance(value, Origin) else value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "FileSystemEvent":
        """
        Create an event from a dictionary.

        When called on the base class, the concrete type is chosen from the
        ``event_class`` key.
        """
        event_cls = cls
        if cls is FileSystemEvent:
            name = data.get("event_class")
            event_cls = EVENT_TYPES.get(name)
            if event_cls is None:
                raise UnknownEventError(f"Unknown event class: {name}")

        names = {f.name for f in fields(event_cls)}
        return event_cls(**{k: v for k, v in data.items() if k in names})


def _validate_old_path(event: FileSystemEvent) -> None:
    if not event.old_path:
        raise InvalidEventPathError(f"{event.event_class} requires old_path")
    object.__setattr__(event, "old_path", normalize_event_path(event.old_path))


@dataclass(frozen=True)
class FileCreated(FileSystemEvent):
    """A file appeared."""
    pass


@dataclass(frozen=True)
class FileModified(FileSystemEvent):
    """A file's content changed."""
    previous_hash: Optional[str] = None


@dataclass(frozen=True)
class FileDeleted(FileSystemEvent):
    """A file was removed."""
    is_delete: ClassVar[bool] = True


@dataclass(frozen=True)
class FileRenamed(FileSystemEvent):
    """A file was moved from ``old_path`` to ``path``."""
    old_path: str = ""

    is_rename: ClassVar[bool] = True

    def __post_init__(self):
        super().__post_init__()
        _validate_old_path(self)


@dataclass(frozen=True)
class DirectoryCreated(FileSystemEvent):
    """A directory appeared."""
    is_directory: ClassVar[bool] = True


@dataclass(frozen=True)
class DirectoryDeleted(FileSystemEvent):
    """A directory was removed, together with everything under it."""
    is_directory: ClassVar[bool] = True
    is_delete: ClassVar[bool] = True


@dataclass(frozen=True)
class DirectoryRenamed(FileSystemEvent):
    """A directory was moved from ``old_path`` to ``path``."""
    old_path: str = ""

    is_directory: ClassVar[bool] = True
    is_rename: ClassVar[bool] = True

    def __post_init__(self):
        super().__post_init__()
        _validate_old_path(self)


EVENT_TYPES: Dict[str, Type[FileSystemEvent]] = {
    cls.__name__: cls
    for cls in (
        FileCreated,
        FileModified,
        FileDeleted,
        FileRenamed,
        DirectoryCreated,
        DirectoryDeleted,
        DirectoryRenamed,
    )
}


def enrich(event: FileSystemEvent) -> Dict[str, str]:
    """
    Build the metadata stored alongside an event.

    Args:
        event: The event being recorded

    Returns:
        New metadata dictionary; the event itself is left untouched
    """
    return {
        "file_type": event.file_type,
        "event_type": event.event_class,
        "origin": event.origin.value,
    }


@dataclass(frozen=True)
class StoredEvent:
    """
    An event as persisted in the event log.

    Attributes:
        id: Monotonically increasing sequence number
        event: The recorded event
        stored_at: Unix timestamp at which the event was appended
        meta_data: Metadata produced by :func:`enrich`
    """
    id: int
    event: FileSystemEvent
    stored_at: float = field(default_factory=time.time)
    meta_data: Dict[str, Any] = field(default_factory=dict)

    @property
    def path(self) -> str:
        return self.event.path

    @property
    def event_class(self) -> str:
        return self.event.event_class

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "event": self.event.to_dict(),
            "stored_at": self.stored_at,
            "meta_data": dict(self.meta_data),
        }
