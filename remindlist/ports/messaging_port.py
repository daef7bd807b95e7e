"""Messaging port — abstract interface for showing tasks and notices in chat.

Core modules depend on this protocol, never on a specific chat platform.
Implementations raise MessagingError when a send fails.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from remindlist.core.views import TaskView


class MessagingPort(Protocol):
    """Abstract messaging interface used by the task service and sweep."""

    async def send_task(self, channel_id: str, view: TaskView) -> str:
        """Post a new task message and return its message reference."""
        ...

    async def update_task(self, channel_id: str, message_id: str, view: TaskView) -> bool: ...

    async def delete_task(self, channel_id: str, message_id: str) -> bool:
        """Remove a task message; True when it is gone afterwards."""
        ...

    async def send_notice(
        self, channel_id: str, text: str, thread_id: str | None = None,
    ) -> str | None: ...
