"""Configuration for the file watcher package."""

import fnmatch
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import List

DEFAULT_HASH_THRESHOLD_BYTES = 100 * 1024 * 1024


@dataclass
class WatcherConfig:
    """
    Configuration options for the scanner and the live watcher.
    
    Attributes:
        hash_threshold_bytes: Files up to this size are hashed with SHA-256,
            larger files with MD5
        follow_symlinks: Whether to descend into symlinked directories
        ignore_patterns: Glob patterns for temporary files that are never
            recorded
        poll_interval_ms: How often the watch loop wakes up to check for stop
        use_polling: Use watchdog's polling observer instead of native events
    """
    hash_threshold_bytes: int = DEFAULT_HASH_THRESHOLD_BYTES
    follow_symlinks: bool = True
    ignore_patterns: List[str] = field(default_factory=lambda: [
        "*.tmp",
        "*.swp",
        "*.swo",
        "*~",
        "~$*",
        ".~lock.*",
        ".DS_Store",
        "Thumbs.db",
    ])
    poll_interval_ms: int = 500
    use_polling: bool = False

    def should_ignore(self, path: str) -> bool:
        """
        Check if a root-relative path should be ignored.
        
        Args:
            path: Forward-slash separated path
            
        Returns:
            True if the basename matches one of the ignore patterns
        """
        name = PurePosixPath(path).name
        for pattern in self.ignore_patterns:
            if fnmatch.fnmatch(name, pattern):
                return True
        return False
