"""Row models for the projection tables."""

from dataclasses import asdict, dataclass, fields
from typing import List, Optional


@dataclass
class FileRecord:
    """
    One row of the ``files`` projection.

    Attributes:
        path: Root-relative path (unique)
        name: Basename without extension (full basename for directories)
        file_type: ``file`` or ``directory``
        extension: Lower-cased extension, None for directories
        revision: Revision token parsed from the name
        part_name: Name with the revision stripped
        core_name: Part name without its leading ``<PRODUCT>_`` prefix
        product_main_type: First path segment
        product_sub_type: Remaining path segments joined by ``/``
        parent: Name of the containing folder
        parent_path: Path of the containing folder
        depth: Number of ``/`` in the path
        origin: Origin of the last event that wrote the row
        content_hash: Content fingerprint
        size: Size in bytes
        modified_at: Modification time (Unix timestamp)
    """
    path: str
    name: str
    file_type: str
    extension: Optional[str] = None
    revision: Optional[str] = None
    part_name: Optional[str] = None
    core_name: Optional[str] = None
    product_main_type: Optional[str] = None
    product_sub_type: Optional[str] = None
    parent: Optional[str] = None
    parent_path: Optional[str] = None
    depth: int = 0
    origin: Optional[str] = None
    content_hash: Optional[str] = None
    size: Optional[int] = None
    modified_at: Optional[float] = None

    @property
    def is_directory(self) -> bool:
        return self.file_type == "directory"

    @classmethod
    def columns(cls) -> List[str]:
        return [f.name for f in fields(cls)]

    @classmethod
    def from_row(cls, row) -> "FileRecord":
        return cls(**{name: row[name] for name in cls.columns()})

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class MasterRecord:
    """One row of the ``masters`` projection: a master file with its slave."""
    path: str
    name: str
    extension: Optional[str] = None
    master_revision: Optional[str] = None
    part_name: Optional[str] = None
    core_name: Optional[str] = None
    parent: Optional[str] = None
    parent_path: Optional[str] = None
    content_hash: Optional[str] = None
    size: Optional[int] = None
    modified_at: Optional[float] = None
    slave_path: Optional[str] = None
    slave_revision: Optional[str] = None

    @classmethod
    def columns(cls) -> List[str]:
        return [f.name for f in fields(cls)]

    @classmethod
    def from_row(cls, row) -> "MasterRecord":
        return cls(**{name: row[name] for name in cls.columns()})

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class PartRecord:
    """One row of the ``parts`` projection: a part resolved against its master."""
    path: str
    name: str
    extension: Optional[str] = None
    revision: Optional[str] = None
    part_name: Optional[str] = None
    core_name: Optional[str] = None
    parent: Optional[str] = None
    parent_path: Optional[str] = None
    content_hash: Optional[str] = None
    size: Optional[int] = None
    modified_at: Optional[float] = None
    master_path: Optional[str] = None
    master_revision: Optional[str] = None
    slave_path: Optional[str] = None
    slave_revision: Optional[str] = None
    content_as_master: bool = False

    @classmethod
    def columns(cls) -> List[str]:
        return [f.name for f in fields(cls)]

    @classmethod
    def from_row(cls, row) -> "PartRecord":
        data = {name: row[name] for name in cls.columns()}
        data["content_as_master"] = bool(data["content_as_master"])
        return cls(**data)

    def to_dict(self) -> dict:
        return asdict(self)
