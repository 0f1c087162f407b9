"""Custom exceptions for the reconciler package."""


class ReconcileError(Exception):
    """Base exception for reconciler errors."""
    pass


class SnapshotNotFoundError(ReconcileError):
    """No saved filesystem snapshot to reconcile against."""
    pass
