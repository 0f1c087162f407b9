"""
Configuration for the projectors package.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union


def _normalize_extensions(values) -> List[str]:
    return [str(v).strip().lstrip(".").lower() for v in values if str(v).strip()]


def _normalize_names(values) -> List[str]:
    return [str(v).strip().lower() for v in values if str(v).strip()]


@dataclass
class FileSystemProjectionConfig:
    """Configuration for the file projection."""
    omit_extensions: List[str] = field(default_factory=lambda: ["cfg", "db"])
    omit_directories: List[str] = field(default_factory=lambda: ["build", "debug"])
    omit_directory_prefixes: List[str] = field(default_factory=lambda: ["00"])

    def __post_init__(self):
        self.omit_extensions = _normalize_extensions(self.omit_extensions)
        self.omit_directories = _normalize_names(self.omit_directories)
        self.omit_directory_prefixes = _normalize_names(self.omit_directory_prefixes)


@dataclass
class MasterFilesConfig:
    """Configuration for the master files projection."""
    master_extensions: List[str] = field(
        default_factory=lambda: ["par", "asm", "doc", "docx", "xls", "xlsx"]
    )
    slave_extensions: List[str] = field(default_factory=lambda: ["pdf"])
    omit_directories: List[str] = field(
        default_factory=lambda: ["ARCHIVO", "MODIFICAR", ".git", ".svn"]
    )
    omit_directory_prefixes: List[str] = field(default_factory=lambda: ["00", "_", "."])

    def __post_init__(self):
        self.master_extensions = _normalize_extensions(self.master_extensions)
        self.slave_extensions = _normalize_extensions(self.slave_extensions)
        self.omit_directories = _normalize_names(self.omit_directories)
        self.omit_directory_prefixes = _normalize_names(self.omit_directory_prefixes)


@dataclass
class PartsConfig:
    """
    Configuration for the parts projection.

    The omit lists default to the master files omit lists when left unset.
    """
    part_extensions: List[str] = field(
        default_factory=lambda: ["par", "asm", "doc", "docx", "xls", "xlsx"]
    )
    omit_directories: Optional[List[str]] = None
    omit_directory_prefixes: Optional[List[str]] = None

    def __post_init__(self):
        self.part_extensions = _normalize_extensions(self.part_extensions)
        if self.omit_directories is not None:
            self.omit_directories = _normalize_names(self.omit_directories)
        if self.omit_directory_prefixes is not None:
            self.omit_directory_prefixes = _normalize_names(self.omit_directory_prefixes)


@dataclass
class ProjectorsConfig:
    """Configuration for all projectors, one section per projector."""
    filesystem: FileSystemProjectionConfig = field(default_factory=FileSystemProjectionConfig)
    masterfiles: MasterFilesConfig = field(default_factory=MasterFilesConfig)
    parts: PartsConfig = field(default_factory=PartsConfig)

    def __post_init__(self):
        if isinstance(self.filesystem, dict):
            self.filesystem = FileSystemProjectionConfig(**self.filesystem)
        if isinstance(self.masterfiles, dict):
            self.masterfiles = MasterFilesConfig(**self.masterfiles)
        if isinstance(self.parts, dict):
            self.parts = PartsConfig(**self.parts)

        if self.parts.omit_directories is None:
            self.parts.omit_directories = list(self.masterfiles.omit_directories)
        if self.parts.omit_directory_prefixes is None:
            self.parts.omit_directory_prefixes = list(self.masterfiles.omit_directory_prefixes)

    @classmethod
    def from_dict(cls, data: dict) -> "ProjectorsConfig":
        """Create from a dictionary with ``filesystem``, ``masterfiles`` and ``parts`` sections."""
        return cls(
            filesystem=data.get("filesystem", {}),
            masterfiles=data.get("masterfiles", {}),
            parts=data.get("parts", {}),
        )

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ProjectorsConfig":
        """Load from a JSON file."""
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_dict(json.load(f))
