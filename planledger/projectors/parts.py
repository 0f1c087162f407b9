"""Parts projection: part files resolved against their master."""

import logging
from typing import Iterable, Optional

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
from .config import MasterFilesConfig, PartsConfig
from .models import PartRecord
from .naming import is_omitted, parse_path, revision_sort_key
from .store import ProjectionStore

logger = logging.getLogger(__name__)


class PartsProjection(Projector):
    """
    Maintains the ``parts`` table.

    Reads the ``files`` and ``masters`` tables, so it runs last.
    """

    name = "parts"
    weight = 3

    def __init__(
        self,
        store: ProjectionStore,
        config: Optional[PartsConfig] = None,
        master_config: Optional[MasterFilesConfig] = None,
    ):
        super().__init__(store)
        self.master_config = master_config or MasterFilesConfig()
        self.config = config or PartsConfig(
            omit_directories=self.master_config.omit_directories,
            omit_directory_prefixes=self.master_config.omit_directory_prefixes,
        )

    def is_omitted(self, path: str) -> bool:
        return is_omitted(
            path, self.config.omit_directories or [], self.config.omit_directory_prefixes or []
        )

    def is_part_ext(self, extension: Optional[str]) -> bool:
        return (extension or "") in self.config.part_extensions

    def is_slave_ext(self, extension: Optional[str]) -> bool:
        return (extension or "") in self.master_config.slave_extensions

    # Event hooks

    def on_file_created(self, event: FileCreated, stored: StoredEvent) -> None:
        self.dispatch_refreshes(event.path)

    def on_file_modified(self, event: FileModified, stored: StoredEvent) -> None:
        self.dispatch_refreshes(event.path)

    def on_file_deleted(self, event: FileDeleted, stored: StoredEvent) -> None:
        self._forget(event.path)

    def on_directory_deleted(self, event: DirectoryDeleted, stored: StoredEvent) -> None:
        linked = self.store.part_paths_linked_under(event.path)
        removed = self.store.delete_parts_under(event.path)
        logger.debug(f"Removed {removed} part row(s) under {event.path}")
        self.refresh_paths(linked)

    def on_file_renamed(self, event: FileRenamed, stored: StoredEvent) -> None:
        self._forget(event.old_path)
        self.dispatch_refreshes(event.path)

    def on_directory_renamed(self, event: DirectoryRenamed, stored: StoredEvent) -> None:
        linked = self.store.part_paths_linked_under(event.old_path)
        self.store.delete_parts_under(event.old_path)

        for file in self.store.files_under(event.path):
            if file.is_directory:
                continue
            self.dispatch_refreshes(file.path)
        self.refresh_paths(linked)

    # Dispatch

    def _forget(self, path: str) -> None:
        """Drop the row of a vanished file and re-resolve the parts that used it."""
        linked = self.store.part_paths_linked_under(path)
        self.store.delete_part(path)

        # The file row is already gone, so derive the name from the path.
        parsed = parse_path(path)
        if self.is_slave_ext(parsed.extension):
            self.refresh_by_part_name(parsed.part_name)
        self.refresh_paths(linked)

    def dispatch_refreshes(self, path: str) -> None:
        """Refresh the parts affected by a created or modified file."""
        if self.is_omitted(path):
            return

        file = self.store.get_file(path)
        if file is None:
            logger.debug(f"No file row for {path} yet, skipping part refresh")
            return

        if self.is_part_ext(file.extension):
            self.refresh_for_path(file.path)

        master = self.store.get_master(file.path)
        if self.is_slave_ext(file.extension) or master is not None:
            self.refresh_by_part_name(file.part_name)

        if master is not None:
            # Parts linked by content hash may carry another part name
            self.refresh_paths(self.store.part_paths_linked_under(file.path))
            if master.content_hash:
                self.refresh_paths(self.store.part_paths_by_hash(master.content_hash))

    def refresh_by_part_name(self, part_name: Optional[str]) -> None:
        """Refresh every existing part row sharing a part name."""
        self.refresh_paths(self.store.part_paths_by_name(part_name))

    def refresh_paths(self, paths: Iterable[str]) -> None:
        for path in paths:
            self.refresh_for_path(path)

    # Core

    def refresh_for_path(self, path: str) -> None:
        """Resolve a part against its master and write its row."""
        file = self.store.get_file(path)
        if file is None or not self.is_part_ext(file.extension) or self.is_omitted(path):
            return

        masters = self.store.find_masters(file.part_name, file.content_hash)
        master = None
        if masters:
            master = max(masters, key=lambda m: (revision_sort_key(m.slave_revision), m.path))

        content_as_master = bool(
            master is not None
            and file.content_hash
            and master.content_hash
            and file.content_hash == master.content_hash
        )

        self.store.upsert_part(PartRecord(
            path=file.path,
            name=file.name,
            extension=file.extension,
            revision=file.revision,
            part_name=file.part_name,
            core_name=file.core_name,
            parent=file.parent,
            parent_path=file.parent_path,
            content_hash=file.content_hash,
            size=file.size,
            modified_at=file.modified_at,
            master_path=master.path if master else None,
            master_revision=master.master_revision if master else None,
            slave_path=master.slave_path if master else None,
            slave_revision=master.slave_revision if master else None,
            content_as_master=content_as_master,
        ))
