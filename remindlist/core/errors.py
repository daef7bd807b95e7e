"""Error taxonomy shared by the core and its adapters.

Pure functions raise ValidationError on malformed input. Adapters raise
StoreUnavailable / MessagingError, which the I/O-facing core operations turn
into failure results.
"""

from __future__ import annotations


class RemindListError(Exception):
    """Base class for every error raised by RemindList."""


class ValidationError(RemindListError):
    """Raised for a bad interval, time of day, or input shape. Never retried."""


class NotFoundError(RemindListError):
    """Raised when a task or metadata row is missing."""


class StoreUnavailable(RemindListError):
    """Raised when the tabular store cannot be reached or rejects a request."""


class DuplicateError(RemindListError):
    """Internal signal: a keyed append found an existing row.

    Consumed by the metadata create -> update fallback, never surfaced.
    """

    def __init__(self, key: str) -> None:
        super().__init__(f"Row with key {key!r} already exists")
        self.key = key


class MessagingError(RemindListError):
    """Raised when the messaging collaborator fails to deliver a message."""
