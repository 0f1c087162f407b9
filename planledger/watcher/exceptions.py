"""Custom exceptions for the file watcher package."""


class WatcherError(Exception):
    """Base exception for all watcher errors."""
    pass


class RootNotFoundError(WatcherError):
    """Watched root does not exist or is not a directory."""
    pass


class WatcherAlreadyRunningError(WatcherError):
    """Watcher is already running."""
    pass
