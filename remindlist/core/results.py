"""Structured results returned by I/O-facing core operations.

Callers branch on ``success`` and show ``message`` to users; they never need
to inspect a traceback.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from remindlist.data.models import ChannelMetadata, RecurringTask


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    STORE_UNAVAILABLE = "store_unavailable"
    MESSAGING = "messaging"


class UpsertOutcome(str, Enum):
    CREATED = "created"
    UPDATED_EXISTING = "updated_existing"


@dataclass
class OperationResult:
    """Outcome of a single store-facing operation."""

    success: bool
    message: str | None = None
    error: ErrorKind | None = None

    @classmethod
    def ok(cls, message: str | None = None) -> OperationResult:
        return cls(success=True, message=message)

    @classmethod
    def fail(cls, error: ErrorKind, message: str) -> OperationResult:
        return cls(success=False, message=message, error=error)


@dataclass
class TaskResult(OperationResult):
    task: RecurringTask | None = None


@dataclass
class MetadataResult(OperationResult):
    metadata: ChannelMetadata | None = None


@dataclass
class UpsertResult(MetadataResult):
    """Result of create_channel_metadata.

    ``outcome`` tells whether a new row was appended or a concurrent
    creator's row was updated instead.
    """

    outcome: UpsertOutcome | None = None


@dataclass
class TaskServiceResult(OperationResult):
    task: RecurringTask | None = None
    message_id: str | None = None
