"""Telegram messaging adapter — implements MessagingPort.

Wraps a telegram.Bot instance. Each task is one chat message that is edited
in place as its state changes; notices go to the chat or to a forum topic.
"""

from __future__ import annotations

import logging

from telegram import Bot
from telegram.error import BadRequest, TelegramError

from remindlist.core.errors import MessagingError
from remindlist.core.views import TaskView

logger = logging.getLogger(__name__)

_PROGRESS_WIDTH = 10


def render_task(view: TaskView) -> str:
    """Plain-text rendering of a task message."""
    filled = round(view.progress * _PROGRESS_WIDTH)
    bar = "▓" * filled + "░" * (_PROGRESS_WIDTH - filled)
    icon = "⏸" if view.is_paused else ("❗" if view.is_overdue else "\U0001f514")

    lines = [f"{icon} {view.title}"]
    if view.description:
        lines.append(view.description)
    lines += [
        f"Due: {view.due_text}",
        f"{view.status_text}  {bar}",
        f"{view.interval_text}, reminder {view.remind_before_text}",
    ]
    if view.inventory_text:
        lines.append(view.inventory_text)
    return "\n".join(lines)


class TelegramMessenger:
    """Telegram implementation of MessagingPort."""

    def __init__(self, bot: Bot) -> None:
        self._bot = bot

    async def send_task(self, channel_id: str, view: TaskView) -> str:
        try:
            message = await self._bot.send_message(chat_id=channel_id, text=render_task(view))
        except TelegramError as exc:
            logger.error("Failed to post task '%s' to %s: %s", view.title, channel_id, exc)
            raise MessagingError(f"Failed to post task message: {exc}") from exc
        return str(message.message_id)

    async def update_task(self, channel_id: str, message_id: str, view: TaskView) -> bool:
        try:
            await self._bot.edit_message_text(
                chat_id=channel_id, message_id=int(message_id), text=render_task(view),
            )
        except BadRequest as exc:
            if "message is not modified" in str(exc).lower():
                return True
            logger.warning("Could not edit task message %s in %s: %s", message_id, channel_id, exc)
            return False
        except TelegramError as exc:
            logger.warning("Could not edit task message %s in %s: %s", message_id, channel_id, exc)
            return False
        return True

    async def delete_task(self, channel_id: str, message_id: str) -> bool:
        try:
            await self._bot.delete_message(chat_id=channel_id, message_id=int(message_id))
        except BadRequest as exc:
            if "message to delete not found" in str(exc).lower():
                return True
            logger.warning("Could not delete task message %s in %s: %s", message_id, channel_id, exc)
            return False
        except TelegramError as exc:
            logger.warning("Could not delete task message %s in %s: %s", message_id, channel_id, exc)
            return False
        return True

    async def send_notice(
        self, channel_id: str, text: str, thread_id: str | None = None,
    ) -> str | None:
        try:
            message = await self._bot.send_message(
                chat_id=channel_id,
                text=text,
                message_thread_id=int(thread_id) if thread_id else None,
            )
        except TelegramError as exc:
            logger.error("Failed to send notice to %s: %s", channel_id, exc)
            raise MessagingError(f"Failed to send notice: {exc}") from exc
        return str(message.message_id)
