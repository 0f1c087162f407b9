"""
Projectors Package

Folds the event log into the files, masters and parts projections.
"""

from .config import (
    FileSystemProjectionConfig,
    MasterFilesConfig,
    PartsConfig,
    ProjectorsConfig,
)

from .exceptions import ProjectionError, ProjectionStoreError

from .models import FileRecord, MasterRecord, PartRecord
from .naming import (
    ParsedPath,
    parse_path,
    extract_revision,
    extract_part_name,
    extract_core_name,
    is_omitted,
    revision_sort_key,
)
from .store import ProjectionStore
from .base import Projector
from .files import FileProjection
from .masters import MasterFilesProjection
from .parts import PartsProjection
from .runner import ProjectionRunner, default_projectors


__all__ = [
    # Config
    "FileSystemProjectionConfig",
    "MasterFilesConfig",
    "PartsConfig",
    "ProjectorsConfig",
    # Exceptions
    "ProjectionError",
    "ProjectionStoreError",
    # Models
    "FileRecord",
    "MasterRecord",
    "PartRecord",
    # Naming
    "ParsedPath",
    "parse_path",
    "extract_revision",
    "extract_part_name",
    "extract_core_name",
    "is_omitted",
    "revision_sort_key",
    # Components
    "ProjectionStore",
    "Projector",
    "FileProjection",
    "MasterFilesProjection",
    "PartsProjection",
    "ProjectionRunner",
    "default_projectors",
]
