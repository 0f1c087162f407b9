"""Master files projection: master documents that have a slave next to them."""

import logging
from typing import Optional

from ..eventlog.models import (
    DirectoryDeleted,
    DirectoryRenamed,
    FileCreated,
    FileDeleted,
    FileModified,
    FileRenamed,
    StoredEvent,
)
from .base import Projector
from .config import MasterFilesConfig
from .models import FileRecord, MasterRecord
from .naming import is_omitted, parent_path, revision_sort_key
from .store import ProjectionStore

logger = logging.getLogger(__name__)


class MasterFilesProjection(Projector):
    """
    Maintains the ``masters`` table.

    A file with a master extension is a master while a file with a slave
    extension and the same part name lives in the same folder. Reads the
    ``files`` table, so it runs after the file projection.
    """

    name = "masters"
    weight = 2

    def __init__(self, store: ProjectionStore, config: Optional[MasterFilesConfig] = None):
        super().__init__(store)
        self.config = config or MasterFilesConfig()

    def is_omitted(self, path: str) -> bool:
        return is_omitted(path, self.config.omit_directories, self.config.omit_directory_prefixes)

    def is_master_ext(self, extension: Optional[str]) -> bool:
        return (extension or "") in self.config.master_extensions

    def is_slave_ext(self, extension: Optional[str]) -> bool:
        return (extension or "") in self.config.slave_extensions

    # Event hooks

    def on_file_created(self, event: FileCreated, stored: StoredEvent) -> None:
        if not self.is_omitted(event.path):
            self.refresh_for_path(event.path)

    def on_file_modified(self, event: FileModified, stored: StoredEvent) -> None:
        if not self.is_omitted(event.path):
            self.refresh_for_path(event.path)

    def on_file_deleted(self, event: FileDeleted, stored: StoredEvent) -> None:
        self._forget(event.path)

    def on_directory_deleted(self, event: DirectoryDeleted, stored: StoredEvent) -> None:
        removed = self.store.delete_masters_under(event.path)
        logger.debug(f"Removed {removed} master row(s) under {event.path}")

    def on_file_renamed(self, event: FileRenamed, stored: StoredEvent) -> None:
        self._forget(event.old_path)
        if not self.is_omitted(event.path):
            self.refresh_for_path(event.path)

    def on_directory_renamed(self, event: DirectoryRenamed, stored: StoredEvent) -> None:
        self.store.delete_masters_under(event.old_path)
        for file in self.store.files_under(event.path):
            if self.is_master_ext(file.extension):
                self.evaluate(file)

    # Core logic

    def _forget(self, path: str) -> None:
        """Drop rows for a vanished master or slave, then re-check its folder."""
        self.store.delete_masters_referencing(path)
        self.refresh_folder(parent_path(path))

    def refresh_for_path(self, path: str) -> None:
        """Re-evaluate the masters affected by a created or modified file."""
        file = self.store.get_file(path)
        if file is None:
            logger.debug(f"No file row for {path} yet, skipping master refresh")
            return

        if self.is_master_ext(file.extension):
            self.evaluate(file)

        if self.is_slave_ext(file.extension):
            candidates = self.store.find_files(
                parent_path=file.parent_path,
                part_name=file.part_name,
                extensions=self.config.master_extensions,
            )
            for candidate in candidates:
                self.evaluate(candidate)

    def refresh_folder(self, folder: Optional[str]) -> None:
        """Re-evaluate every master candidate in a folder."""
        candidates = self.store.find_files(
            parent_path=folder, extensions=self.config.master_extensions
        )
        for candidate in candidates:
            self.evaluate(candidate)

    def evaluate(self, file: FileRecord) -> None:
        """Create, update or delete the master row for a candidate file."""
        if self.is_omitted(file.path):
            return

        slave = self.locate_slave(file)
        if slave is None:
            self.store.delete_master(file.path)
            return

        self.store.upsert_master(MasterRecord(
            path=file.path,
            name=file.name,
            extension=file.extension,
            master_revision=file.revision,
            part_name=file.part_name,
            core_name=file.core_name,
            parent=file.parent,
            parent_path=file.parent_path,
            content_hash=file.content_hash,
            size=file.size,
            modified_at=file.modified_at,
            slave_path=slave.path,
            slave_revision=slave.revision,
        ))

    def locate_slave(self, file: FileRecord) -> Optional[FileRecord]:
        """The slave with the greatest revision in the same folder and part name."""
        slaves = self.store.find_files(
            parent_path=file.parent_path,
            part_name=file.part_name,
            extensions=self.config.slave_extensions,
        )
        if not slaves:
            return None
        return max(slaves, key=lambda s: (revision_sort_key(s.revision), s.path))
