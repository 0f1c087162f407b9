"""
File Watcher Package

Observes a watched root and turns its state into filesystem events.

Features:
- Content fingerprints (SHA-256, MD5 for very large files)
- Initial depth-first scan with progress reporting
- Live watching via watchdog with no-op modification suppression
"""

from .models import RawFSEvent, WatchStats

from .config import WatcherConfig, DEFAULT_HASH_THRESHOLD_BYTES

from .exceptions import (
    WatcherError,
    RootNotFoundError,
    WatcherAlreadyRunningError,
)

from .hasher import fingerprint, algorithm_for
from .scanner import FileSystemScanner, ScanStats, WalkEntry, validate_root
from .fs_watcher import FSEventHandler, create_observer
from .process import FileSystemWatcher


__all__ = [
    # Models
    "RawFSEvent",
    "WatchStats",
    # Config
    "WatcherConfig",
    "DEFAULT_HASH_THRESHOLD_BYTES",
    # Exceptions
    "WatcherError",
    "RootNotFoundError",
    "WatcherAlreadyRunningError",
    # Components
    "fingerprint",
    "algorithm_for",
    "FileSystemScanner",
    "ScanStats",
    "WalkEntry",
    "validate_root",
    "FSEventHandler",
    "create_observer",
    # Main Process
    "FileSystemWatcher",
]
