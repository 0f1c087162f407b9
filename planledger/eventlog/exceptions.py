"""Custom exceptions for the event log package."""


class EventLogError(Exception):
    """Base exception for all event log errors."""
    pass


class EventLogClosedError(EventLogError):
    """Operation attempted on a closed event log."""
    pass


class InvalidEventPathError(EventLogError, ValueError):
    """Event path is absolute, empty or escapes the watched root."""
    pass


class UnknownEventError(EventLogError):
    """Stored event class is not one of the known event types."""
    pass
