"""Base class for projectors."""

from ..eventlog.models import (
    DirectoryCreated,
    DirectoryDeleted,
    DirectoryRenamed,
    FileCreated,
    FileDeleted,
    FileModified,
    FileRenamed,
    StoredEvent,
)
from .store import ProjectionStore


class Projector:
    """
    A fold of the event log into one projection table.

    Subclasses override the ``on_*`` hooks they care about. Every hook must be
    idempotent: applying the same event to the same state twice leaves the
    state unchanged.
    """

    name = "projector"
    weight = 0

    def __init__(self, store: ProjectionStore):
        self.store = store

    def apply(self, stored: StoredEvent) -> None:
        """
        Apply one stored event.

        Raises:
            TypeError: If the event is not one of the known event types
        """
        event = stored.event
        if isinstance(event, FileCreated):
            self.on_file_created(event, stored)
        elif isinstance(event, FileModified):
            self.on_file_modified(event, stored)
        elif isinstance(event, FileDeleted):
            self.on_file_deleted(event, stored)
        elif isinstance(event, FileRenamed):
            self.on_file_renamed(event, stored)
        elif isinstance(event, DirectoryCreated):
            self.on_directory_created(event, stored)
        elif isinstance(event, DirectoryDeleted):
            self.on_directory_deleted(event, stored)
        elif isinstance(event, DirectoryRenamed):
            self.on_directory_renamed(event, stored)
        else:
            raise TypeError(f"Unsupported event type: {type(event).__name__}")

    def on_file_created(self, event: FileCreated, stored: StoredEvent) -> None:
        pass

    def on_file_modified(self, event: FileModified, stored: StoredEvent) -> None:
        pass

    def on_file_deleted(self, event: FileDeleted, stored: StoredEvent) -> None:
        pass

    def on_file_renamed(self, event: FileRenamed, stored: StoredEvent) -> None:
        pass

    def on_directory_created(self, event: DirectoryCreated, stored: StoredEvent) -> None:
        pass

    def on_directory_deleted(self, event: DirectoryDeleted, stored: StoredEvent) -> None:
        pass

    def on_directory_renamed(self, event: DirectoryRenamed, stored: StoredEvent) -> None:
        pass
