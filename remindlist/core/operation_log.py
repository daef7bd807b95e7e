"""
RemindList — Operation Log.

Posts one line per user action (add, complete, edit, pause, inventory,
delete) to the channel's operation-log topic, so a shared list keeps a
record of who changed what. Channels without a configured topic, or with the
log switched off, get nothing. A log post that fails never fails the action
it describes.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from remindlist.core.errors import MessagingError
from remindlist.core.schedule import DEFAULT_TIMEZONE

if TYPE_CHECKING:
    from remindlist.core.results import OperationResult
    from remindlist.data.metadata_store import MetadataStore
    from remindlist.ports.messaging_port import MessagingPort

logger = logging.getLogger(__name__)


def format_log_message(
    action: str,
    result: OperationResult,
    user: str,
    now: datetime,
    tz: ZoneInfo = DEFAULT_TIMEZONE,
) -> str:
    lines = [
        f"[{now.astimezone(tz):%Y/%m/%d %H:%M:%S}] {user}",
        f"Action: {action}",
        f"Result: {'✅ success' if result.success else '❌ failed'}",
    ]
    if not result.success and result.message:
        lines.append(f"Error: {result.message}")
    task = getattr(result, "task", None)
    if task is not None:
        lines.append(f"Task: {task.title}")
    return "\n".join(lines)


class OperationLog:
    """Writes action records to the channel's operation-log topic."""

    def __init__(
        self,
        metadata_store: MetadataStore,
        messenger: MessagingPort,
        *,
        tz: ZoneInfo = DEFAULT_TIMEZONE,
    ) -> None:
        self._metadata = metadata_store
        self._messenger = messenger
        self._tz = tz

    async def record(
        self,
        channel_id: str,
        action: str,
        result: OperationResult,
        user: str,
        now: datetime,
    ) -> bool:
        """Post the record; False when logging is off or the post failed."""
        found = await self._metadata.get_channel_metadata(channel_id)
        if not found.success or not found.metadata.operation_log_thread_id:
            return False

        text = format_log_message(action, result, user, now, self._tz)
        try:
            await self._messenger.send_notice(
                channel_id, text, thread_id=found.metadata.operation_log_thread_id,
            )
        except MessagingError as exc:
            logger.warning("Operation log post failed for channel %s: %s", channel_id, exc)
            return False
        return True
