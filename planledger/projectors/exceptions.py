"""
Custom exceptions for the projectors package.
"""


class ProjectionError(Exception):
    """Base exception for projection errors."""
    pass


class ProjectionStoreError(ProjectionError):
    """Error in projection store operations."""
    pass
