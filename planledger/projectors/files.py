"""File projection: one row per recorded file or directory."""

import logging
from typing import Optional

from ..eventlog.models import (
    DirectoryCreated,
    DirectoryDeleted,
    DirectoryRenamed,
    FileCreated,
    FileDeleted,
    FileModified,
    FileRenamed,
    FileSystemEvent,
    StoredEvent,
)
from .base import Projector
from .config import FileSystemProjectionConfig
from .models import FileRecord
from .naming import is_omitted, parse_path
from .store import ProjectionStore

logger = logging.getLogger(__name__)


class FileProjection(Projector):
    """Maintains the ``files`` table."""

    name = "files"
    weight = 1

    def __init__(self, store: ProjectionStore, config: Optional[FileSystemProjectionConfig] = None):
        super().__init__(store)
        self.config = config or FileSystemProjectionConfig()

    def is_omitted(self, path: str) -> bool:
        return is_omitted(path, self.config.omit_directories, self.config.omit_directory_prefixes)

    def build_record(
        self,
        path: str,
        is_directory: bool,
        origin: Optional[str],
        content_hash: Optional[str],
        size: Optional[int],
        modified_at: Optional[float],
    ) -> Optional[FileRecord]:
        """Build the row for a path, or None if the path is excluded."""
        if self.is_omitted(path):
            return None

        parsed = parse_path(path, is_directory=is_directory)
        if not is_directory and parsed.extension in self.config.omit_extensions:
            return None

        return FileRecord(
            path=path,
            name=parsed.name,
            file_type="directory" if is_directory else "file",
            extension=parsed.extension,
            revision=parsed.revision,
            part_name=parsed.part_name,
            core_name=parsed.core_name,
            product_main_type=parsed.product_main_type,
            product_sub_type=parsed.product_sub_type,
            parent=parsed.parent,
            parent_path=parsed.parent_path,
            depth=parsed.depth,
            origin=origin,
            content_hash=None if is_directory else content_hash,
            size=None if is_directory else size,
            modified_at=modified_at,
        )

    def _update(self, event: FileSystemEvent, stored: StoredEvent) -> None:
        record = self.build_record(
            event.path,
            is_directory=event.is_directory,
            origin=event.origin.value,
            content_hash=event.content_hash,
            size=event.size,
            modified_at=event.modified_at if event.modified_at is not None else stored.stored_at,
        )
        if record is None:
            logger.debug(f"Omitted from file projection: {event.path}")
            return
        self.store.upsert_file(record)

    def on_file_created(self, event: FileCreated, stored: StoredEvent) -> None:
        self._update(event, stored)

    def on_file_modified(self, event: FileModified, stored: StoredEvent) -> None:
        self._update(event, stored)

    def on_directory_created(self, event: DirectoryCreated, stored: StoredEvent) -> None:
        self._update(event, stored)

    def on_file_deleted(self, event: FileDeleted, stored: StoredEvent) -> None:
        self.store.delete_file(event.path)

    def on_directory_deleted(self, event: DirectoryDeleted, stored: StoredEvent) -> None:
        removed = self.store.delete_files_under(event.path)
        logger.debug(f"Removed {removed} file row(s) under {event.path}")

    def on_file_renamed(self, event: FileRenamed, stored: StoredEvent) -> None:
        self.store.delete_file(event.old_path)
        self._update(event, stored)

    def on_directory_renamed(self, event: DirectoryRenamed, stored: StoredEvent) -> None:
        old_prefix = event.old_path
        rows = self.store.files_under(old_prefix)
        self.store.delete_files_under(old_prefix)

        self._update(event, stored)
        for row in rows:
            if row.path == old_prefix:
                continue
            new_path = event.path + row.path[len(old_prefix):]
            record = self.build_record(
                new_path,
                is_directory=row.is_directory,
                origin=event.origin.value,
                content_hash=row.content_hash,
                size=row.size,
                modified_at=row.modified_at,
            )
            if record is not None:
                self.store.upsert_file(record)
