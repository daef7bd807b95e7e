"""
RemindList — Telegram Bot.

Composition root and chat surface. Builds the store, repository, metadata
store, task service and reminder sweep once per process, keeps them in
``bot_data``, and maps commands onto task service operations.

Commands that act on an existing task are sent as a reply to that task's
message. Chats not in ALLOWED_CHAT_IDS are silently ignored.
"""

from __future__ import annotations

import logging
from datetime import datetime
from functools import wraps
from typing import TYPE_CHECKING, Any, Callable, Coroutine

from telegram import Update
from telegram.ext import Application, ApplicationBuilder, CommandHandler, ContextTypes

from remindlist.config import settings
from remindlist.core.durations import format_remind_before_input, parse_remind_before_input
from remindlist.core.errors import ValidationError
from remindlist.core.inventory import format_inventory_input, parse_inventory_input
from remindlist.core.operation_log import OperationLog
from remindlist.core.reminder_sweep import ReminderSweep
from remindlist.core.results import TaskServiceResult
from remindlist.core.task_service import TaskInput, TaskService
from remindlist.data.metadata_store import MetadataStore
from remindlist.data.task_repository import TaskRepository

if TYPE_CHECKING:
    from remindlist.core.results import OperationResult
    from remindlist.data.models import RecurringTask
    from remindlist.ports.messaging_port import MessagingPort
    from remindlist.ports.table_store_port import TableStorePort

logger = logging.getLogger(__name__)

ADD_USAGE = (
    "Usage: /remindadd <title> | <every N days> | [HH:MM] | [lead D:HH:MM]\n"
    "Example: /remindadd Water the plants | 3 | 09:00 | 2:00"
)
EDIT_USAGE = (
    "Reply to a task with: /remindedit [title] | [every N days] | [HH:MM] | [lead D:HH:MM]\n"
    "Leave a field empty to keep it, e.g. /remindedit | 7 | |"
)
ITEMS_USAGE = (
    "Reply to a task with: /reminditems <name, stock N, consume N>; ...\n"
    "Use /reminditems - to remove all items."
)


# ---------------------------------------------------------------------------
# Security: silent-ignore decorator
# ---------------------------------------------------------------------------


def authorized_only(
    func: Callable[..., Coroutine[Any, Any, None]],
) -> Callable[..., Coroutine[Any, Any, None]]:
    """Decorator that silently ignores commands from chats not allow-listed."""

    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        chat = update.effective_chat
        if chat is None or chat.id not in settings.ALLOWED_CHAT_IDS:
            cid = chat.id if chat else "unknown"
            logger.warning("Unauthorized access attempt from chat_id=%s", cid)
            return
        return await func(update, context)

    return wrapper


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def _split_fields(text: str) -> list[str]:
    return [part.strip() for part in text.split("|")]


def _parse_interval(raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"Interval must be a whole number of days, got {raw!r}") from None


def parse_add_args(text: str) -> TaskInput:
    """Parse "/remindadd" arguments into a TaskInput.

    Raises:
        ValidationError: on a missing title/interval or a malformed field.
    """
    fields = _split_fields(text)
    if len(fields) < 2 or not fields[0] or not fields[1]:
        raise ValidationError(ADD_USAGE)
    if len(fields) > 4:
        raise ValidationError(ADD_USAGE)

    task_input = TaskInput(title=fields[0], interval_days=_parse_interval(fields[1]))
    if len(fields) > 2 and fields[2]:
        task_input.time_of_day = fields[2]
    if len(fields) > 3 and fields[3]:
        task_input.remind_before_minutes = parse_remind_before_input(fields[3])
    return task_input


def parse_edit_args(text: str) -> dict[str, Any]:
    """Parse "/remindedit" arguments into update_task_settings keyword args."""
    fields = _split_fields(text)
    if not text.strip() or len(fields) > 4:
        raise ValidationError(EDIT_USAGE)

    changes: dict[str, Any] = {}
    title, interval, time_of_day, lead = (fields + [""] * 4)[:4]
    if title:
        changes["title"] = title
    if interval:
        changes["interval_days"] = _parse_interval(interval)
    if time_of_day:
        changes["time_of_day"] = time_of_day
    if lead:
        changes["remind_before_minutes"] = parse_remind_before_input(lead)
    if not changes:
        raise ValidationError(EDIT_USAGE)
    return changes


def edit_prompt(task: RecurringTask) -> str:
    """Usage text with the task's current settings filled in."""
    current = (
        f"/remindedit {task.title} | {task.interval_days} | {task.time_of_day} | "
        f"{format_remind_before_input(task.remind_before_minutes)}"
    )
    return f"{EDIT_USAGE}\n\nCurrent settings:\n{current}"


def items_prompt(task: RecurringTask) -> str:
    if not task.inventory_items:
        return f"{ITEMS_USAGE}\n\n\"{task.title}\" has no items yet."
    return f"{ITEMS_USAGE}\n\nCurrent items:\n/reminditems {format_inventory_input(task.inventory_items)}"


def _command_text(update: Update) -> str:
    """Message text with the leading /command removed."""
    text = update.message.text or ""
    _, _, rest = text.partition(" ")
    return rest.strip()


def _now() -> datetime:
    return datetime.now(settings.tz)


def _replied_message_id(update: Update) -> str | None:
    reply = update.message.reply_to_message
    return str(reply.message_id) if reply else None


async def _reply(update: Update, result: OperationResult) -> None:
    if result.success:
        await update.message.reply_text(result.message or "Done.")
    else:
        await update.message.reply_text(f"⚠️ {result.message}")


async def _log_operation(
    update: Update, context: ContextTypes.DEFAULT_TYPE, action: str, result: OperationResult,
) -> None:
    operation_log: OperationLog = context.bot_data["operation_log"]
    user = update.effective_user
    await operation_log.record(
        str(update.effective_chat.id),
        action,
        result,
        user.full_name if user else "unknown",
        _now(),
    )


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


@authorized_only
async def cmd_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start — welcome message."""
    await update.message.reply_text(
        "RemindList keeps recurring chores in this chat.\n\n"
        "• /remindinit [title] sets the chat up\n"
        "• /remindadd adds a task\n"
        "• Reply to a task with /reminddone when it is done\n\n"
        "Type /help for the full command list."
    )


@authorized_only
async def cmd_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help — list available commands."""
    await update.message.reply_text(
        "Available commands:\n"
        "/remindinit [title] — set up (or re-sync) this chat's reminder list\n"
        "/remindadd <title> | <days> | [HH:MM] | [lead] — add a recurring task\n"
        "/reminddone — mark the replied-to task as done\n"
        "/remindedit [title] | [days] | [HH:MM] | [lead] — change the replied-to task\n"
        "/remindpause, /remindresume — pause or resume the replied-to task\n"
        "/reminditems <name, stock N, consume N; ...> — set the replied-to task's stock\n"
        "/reminddelete — delete the replied-to task\n"
        "/remindnotice — post reminders into the current topic\n"
        "/remindlog [off] — record actions in the current topic\n"
        "/help — Show this message"
    )


@authorized_only
async def cmd_remindinit(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /remindinit [title] — set up or re-sync the chat."""
    service: TaskService = context.bot_data["task_service"]
    title = _command_text(update) or None
    result = await service.initialize_channel(str(update.effective_chat.id), _now(), title)
    await _reply(update, result)


@authorized_only
async def cmd_remindadd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /remindadd — create a task and post its message."""
    service: TaskService = context.bot_data["task_service"]
    try:
        task_input = parse_add_args(_command_text(update))
    except ValidationError as exc:
        await update.message.reply_text(str(exc))
        return

    result = await service.add_task(str(update.effective_chat.id), task_input, _now())
    await _reply(update, result)
    await _log_operation(update, context, "Add", result)


NOT_A_REPLY = "Reply to a task message to use this command."


def _task_command(action: str):
    """Wrap a handler that acts on the task message being replied to.

    The outcome is logged as ``action``. A ValidationError raised by the
    handler is shown to the user and not logged.
    """

    def decorator(
        run: Callable[[TaskService, str, str, Update], Coroutine[Any, Any, OperationResult]],
    ) -> Callable[[Update, ContextTypes.DEFAULT_TYPE], Coroutine[Any, Any, None]]:
        @authorized_only
        @wraps(run)
        async def handler(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
            message_id = _replied_message_id(update)
            if message_id is None:
                await update.message.reply_text(NOT_A_REPLY)
                return
            service: TaskService = context.bot_data["task_service"]
            try:
                result = await run(service, str(update.effective_chat.id), message_id, update)
            except ValidationError as exc:
                await update.message.reply_text(str(exc))
                return
            await _reply(update, result)
            await _log_operation(update, context, action, result)

        return handler

    return decorator


@_task_command("Complete")
async def cmd_reminddone(service: TaskService, channel_id: str, message_id: str, update: Update):
    return await service.complete_task(channel_id, message_id, _now())


@_task_command("Pause")
async def cmd_remindpause(service: TaskService, channel_id: str, message_id: str, update: Update):
    return await service.set_paused(channel_id, message_id, True, _now())


@_task_command("Resume")
async def cmd_remindresume(service: TaskService, channel_id: str, message_id: str, update: Update):
    return await service.set_paused(channel_id, message_id, False, _now())


@_task_command("Edit")
async def cmd_remindedit(service: TaskService, channel_id: str, message_id: str, update: Update):
    text = _command_text(update)
    if not text:
        found = await service.get_task(channel_id, message_id)
        if not found.success:
            return found
        raise ValidationError(edit_prompt(found.task))
    changes = parse_edit_args(text)
    return await service.update_task_settings(channel_id, message_id, _now(), **changes)


@_task_command("Inventory")
async def cmd_reminditems(service: TaskService, channel_id: str, message_id: str, update: Update):
    text = _command_text(update)
    if not text:
        found = await service.get_task(channel_id, message_id)
        if not found.success:
            return found
        raise ValidationError(items_prompt(found.task))
    items = [] if text == "-" else parse_inventory_input(text)
    return await service.set_inventory(channel_id, message_id, items, _now())


@authorized_only
async def cmd_reminddelete(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /reminddelete — remove the replied-to task and its message."""
    message_id = _replied_message_id(update)
    if message_id is None:
        await update.message.reply_text(NOT_A_REPLY)
        return

    channel_id = str(update.effective_chat.id)
    repository: TaskRepository = context.bot_data["repository"]
    messenger: MessagingPort = context.bot_data["messenger"]

    found = await repository.find_task_by_message_id(channel_id, message_id)
    if not found.success:
        result = TaskServiceResult(success=False, message=found.message, error=found.error)
    else:
        deleted = await repository.delete_task(channel_id, found.task.id)
        if not deleted.success:
            result = TaskServiceResult(
                success=False, message=deleted.message, error=deleted.error, task=found.task,
            )
        else:
            message = f"Deleted \"{found.task.title}\"."
            if not await messenger.delete_task(channel_id, message_id):
                message += " The task message could not be removed; delete it by hand."
            result = TaskServiceResult(
                success=True, message=message, task=found.task, message_id=message_id,
            )

    await _reply(update, result)
    await _log_operation(update, context, "Delete", result)


@authorized_only
async def cmd_remindlog(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /remindlog [off] — record actions in the current topic, or stop."""
    metadata: MetadataStore = context.bot_data["metadata_store"]
    switch_off = _command_text(update).lower() == "off"
    thread_id = update.message.message_thread_id if update.message.is_topic_message else None
    if not switch_off and not thread_id:
        await update.message.reply_text(
            "Send /remindlog inside a topic to record actions there, or /remindlog off to stop."
        )
        return

    result = await metadata.update_channel_metadata(
        str(update.effective_chat.id),
        _now(),
        operation_log_thread_id="" if switch_off else str(thread_id),
    )
    if result.success:
        await update.message.reply_text(
            "Operation log switched off." if switch_off else "Actions will be recorded in this topic."
        )
    else:
        await _reply(update, result)


@authorized_only
async def cmd_remindnotice(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /remindnotice — route sweep notices to the current topic."""
    metadata: MetadataStore = context.bot_data["metadata_store"]
    thread_id = update.message.message_thread_id if update.message.is_topic_message else None
    result = await metadata.update_channel_metadata(
        str(update.effective_chat.id),
        _now(),
        remind_notice_thread_id=str(thread_id) if thread_id else None,
    )
    if result.success:
        where = "this topic" if thread_id else "the main chat"
        await update.message.reply_text(f"Reminders will be posted in {where}.")
    else:
        await _reply(update, result)


# ---------------------------------------------------------------------------
# App builder
# ---------------------------------------------------------------------------


def build_app(
    store: TableStorePort | None = None,
    messenger: MessagingPort | None = None,
) -> Application:
    """Build and configure the Telegram Application with all handlers.

    Args:
        store: Table store implementation. Defaults to the STORE_PROVIDER adapter.
        messenger: Messaging implementation. Defaults to TelegramMessenger
                   (created from the bot instance after the app is built).
    """
    app = ApplicationBuilder().token(settings.TELEGRAM_BOT_TOKEN).build()

    if store is None:
        from remindlist.adapters.store_factory import create_table_store
        store = create_table_store(settings)

    if messenger is None:
        from remindlist.adapters.telegram_messenger import TelegramMessenger
        messenger = TelegramMessenger(app.bot)

    tz = settings.tz
    repository = TaskRepository(store, tz=tz)
    metadata_store = MetadataStore(
        store, tz=tz, cache_ttl_seconds=settings.METADATA_CACHE_TTL_SECONDS,
    )
    app.bot_data["repository"] = repository
    app.bot_data["metadata_store"] = metadata_store
    app.bot_data["messenger"] = messenger
    app.bot_data["operation_log"] = OperationLog(metadata_store, messenger, tz=tz)
    app.bot_data["task_service"] = TaskService(
        repository, metadata_store, messenger,
        tz=tz, default_list_title=settings.DEFAULT_LIST_TITLE,
    )

    app.add_handler(CommandHandler("start", cmd_start))
    app.add_handler(CommandHandler("help", cmd_help))
    app.add_handler(CommandHandler("remindinit", cmd_remindinit))
    app.add_handler(CommandHandler("remindadd", cmd_remindadd))
    app.add_handler(CommandHandler("reminddone", cmd_reminddone))
    app.add_handler(CommandHandler("remindedit", cmd_remindedit))
    app.add_handler(CommandHandler("remindpause", cmd_remindpause))
    app.add_handler(CommandHandler("remindresume", cmd_remindresume))
    app.add_handler(CommandHandler("reminditems", cmd_reminditems))
    app.add_handler(CommandHandler("reminddelete", cmd_reminddelete))
    app.add_handler(CommandHandler("remindnotice", cmd_remindnotice))
    app.add_handler(CommandHandler("remindlog", cmd_remindlog))

    _setup_reminder_sweep(app, ReminderSweep(repository, metadata_store, messenger, tz=tz))

    logger.info("Telegram bot application built with %d handlers", len(app.handlers[0]))
    return app


def _setup_reminder_sweep(app: Application, sweep: ReminderSweep) -> None:
    """Register the repeating reminder sweep job."""

    async def _sweep_job_callback(context: ContextTypes.DEFAULT_TYPE) -> None:
        await sweep.run_once(_now())

    app.job_queue.run_repeating(
        _sweep_job_callback,
        interval=settings.SWEEP_INTERVAL_SECONDS,
        first=5,
        name="reminder_sweep",
    )
    logger.info(
        "Reminder sweep scheduled every %d s (%s)",
        settings.SWEEP_INTERVAL_SECONDS, settings.TIMEZONE,
    )


def main() -> None:
    """Entry point: build the app and start polling."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.info("Starting RemindList bot...")
    app = build_app()
    app.run_polling()


if __name__ == "__main__":
    main()
