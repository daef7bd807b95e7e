"""Tests for remindlist.adapters.telegram_messenger."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from telegram.error import BadRequest, Forbidden, NetworkError

from remindlist.adapters.telegram_messenger import TelegramMessenger, render_task
from remindlist.core.errors import MessagingError
from remindlist.core.views import TaskView


def _view(**overrides) -> TaskView:
    fields = dict(
        title="Water plants",
        due_text="2026/1/5 09:00",
        status_text="Remaining: 3 days",
        interval_text="Every 7 days",
        remind_before_text="1h before",
        is_overdue=False,
        is_paused=False,
        progress=0.5,
    )
    fields.update(overrides)
    return TaskView(**fields)


@pytest.fixture
def bot():
    mock = MagicMock()
    mock.send_message = AsyncMock(return_value=MagicMock(message_id=42))
    mock.edit_message_text = AsyncMock()
    return mock


@pytest.fixture
def messenger(bot):
    return TelegramMessenger(bot)


class TestRenderTask:
    def test_basic_layout(self):
        text = render_task(_view())
        lines = text.split("\n")
        assert lines[0].endswith("Water plants")
        assert "Due: 2026/1/5 09:00" in lines
        assert "▓▓▓▓▓░░░░░" in text
        assert "Every 7 days, reminder 1h before" in lines

    def test_optional_lines(self):
        text = render_task(_view(description="Balcony only", inventory_text="Fertilizer: 3"))
        assert "Balcony only" in text
        assert text.endswith("Fertilizer: 3")

    def test_state_icons(self):
        assert render_task(_view(is_paused=True, is_overdue=True)).startswith("⏸")
        assert render_task(_view(is_overdue=True)).startswith("❗")


class TestSendTask:
    @pytest.mark.asyncio
    async def test_returns_message_id_as_text(self, messenger, bot):
        assert await messenger.send_task("-100123", _view()) == "42"
        assert bot.send_message.call_args.kwargs["chat_id"] == "-100123"

    @pytest.mark.asyncio
    async def test_failure_raises_messaging_error(self, messenger, bot):
        bot.send_message.side_effect = Forbidden("bot was kicked from the group chat")
        with pytest.raises(MessagingError):
            await messenger.send_task("-100123", _view())


class TestUpdateTask:
    @pytest.mark.asyncio
    async def test_edits_in_place(self, messenger, bot):
        assert await messenger.update_task("-100123", "555", _view()) is True
        kwargs = bot.edit_message_text.call_args.kwargs
        assert kwargs["message_id"] == 555
        assert kwargs["text"] == render_task(_view())

    @pytest.mark.asyncio
    async def test_unchanged_message_counts_as_success(self, messenger, bot):
        bot.edit_message_text.side_effect = BadRequest(
            "Message is not modified: specified new message content and reply markup "
            "are exactly the same as a current content and reply markup of the message",
        )
        assert await messenger.update_task("-100123", "555", _view()) is True

    @pytest.mark.asyncio
    async def test_deleted_message_returns_false(self, messenger, bot):
        bot.edit_message_text.side_effect = BadRequest("Message to edit not found")
        assert await messenger.update_task("-100123", "555", _view()) is False

    @pytest.mark.asyncio
    async def test_network_error_returns_false(self, messenger, bot):
        bot.edit_message_text.side_effect = NetworkError("timed out")
        assert await messenger.update_task("-100123", "555", _view()) is False


class TestDeleteTask:
    @pytest.mark.asyncio
    async def test_deletes_message(self, messenger, bot):
        bot.delete_message = AsyncMock(return_value=True)
        assert await messenger.delete_task("-100123", "555") is True
        bot.delete_message.assert_awaited_once_with(chat_id="-100123", message_id=555)

    @pytest.mark.asyncio
    async def test_already_gone_counts_as_deleted(self, messenger, bot):
        bot.delete_message = AsyncMock(side_effect=BadRequest("Message to delete not found"))
        assert await messenger.delete_task("-100123", "555") is True

    @pytest.mark.asyncio
    async def test_too_old_message_returns_false(self, messenger, bot):
        bot.delete_message = AsyncMock(side_effect=BadRequest("Message can't be deleted for everyone"))
        assert await messenger.delete_task("-100123", "555") is False


class TestSendNotice:
    @pytest.mark.asyncio
    async def test_thread_id_is_passed_as_int(self, messenger, bot):
        await messenger.send_notice("-100123", "Reminder", thread_id="77")
        assert bot.send_message.call_args.kwargs["message_thread_id"] == 77

    @pytest.mark.asyncio
    async def test_without_thread(self, messenger, bot):
        assert await messenger.send_notice("-100123", "Reminder") == "42"
        assert bot.send_message.call_args.kwargs["message_thread_id"] is None

    @pytest.mark.asyncio
    async def test_failure_raises_messaging_error(self, messenger, bot):
        bot.send_message.side_effect = NetworkError("timed out")
        with pytest.raises(MessagingError):
            await messenger.send_notice("-100123", "Reminder")
