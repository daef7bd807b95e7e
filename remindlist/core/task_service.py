"""
RemindList — Task Service.

Orchestrates the task lifecycle: add, complete, edit settings, pause and
inventory changes, and (re)initialising a channel. Every operation returns a
structured result with a human-readable message; nothing here raises to the
chat layer. A step that fails after an earlier write is reported as a failure
without rolling the earlier write back.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from remindlist.core.errors import MessagingError, StoreUnavailable, ValidationError
from remindlist.core.inventory import (
    consume_inventory,
    format_inventory_shortage,
    insufficient_inventory_items,
)
from remindlist.core.results import ErrorKind, OperationResult, TaskServiceResult
from remindlist.core.schedule import (
    DEFAULT_TIMEZONE,
    calculate_next_due_at,
    calculate_start_at,
    normalize_time_of_day,
)
from remindlist.core.views import build_task_view
from remindlist.data.models import InventoryItem, RecurringTask, create_recurring_task

if TYPE_CHECKING:
    from remindlist.data.metadata_store import MetadataStore
    from remindlist.data.task_repository import TaskRepository
    from remindlist.ports.messaging_port import MessagingPort

logger = logging.getLogger(__name__)

DEFAULT_LIST_TITLE = "Reminders"

_UNSET = object()


def _new_task_id() -> str:
    return f"task-{uuid.uuid4().hex[:12]}"


@dataclass
class TaskInput:
    """User-supplied fields for a new task."""

    title: str
    interval_days: int
    time_of_day: str = "00:00"
    remind_before_minutes: int | None = None
    description: str | None = None
    overdue_notify_limit: int | None = None
    inventory_items: list[InventoryItem] = field(default_factory=list)


def _failure(error: ErrorKind, message: str, **extra) -> TaskServiceResult:
    return TaskServiceResult(success=False, message=message, error=error, **extra)


class TaskService:
    """Task lifecycle operations for one bot process."""

    def __init__(
        self,
        repository: TaskRepository,
        metadata_store: MetadataStore,
        messenger: MessagingPort,
        *,
        tz: ZoneInfo = DEFAULT_TIMEZONE,
        id_factory: Callable[[], str] = _new_task_id,
        default_list_title: str = DEFAULT_LIST_TITLE,
    ) -> None:
        self._repository = repository
        self._metadata = metadata_store
        self._messenger = messenger
        self._tz = tz
        self._id_factory = id_factory
        self._default_list_title = default_list_title

    # ------------------------------------------------------------------
    # Add
    # ------------------------------------------------------------------

    async def add_task(
        self, channel_id: str, task_input: TaskInput, now: datetime,
    ) -> TaskServiceResult:
        """Create a task, post its message and record the message reference.

        Steps: ensure table -> normalize time of day -> start/next due ->
        construct -> append -> send message -> write message_id back ->
        ensure channel metadata exists.
        """
        ensured = await self._repository.ensure_table(channel_id)
        if not ensured.success:
            return _failure(ensured.error, ensured.message)

        try:
            time_of_day = normalize_time_of_day(task_input.time_of_day)
            start_at = calculate_start_at(now, time_of_day, self._tz)
            next_due_at = calculate_next_due_at(
                task_input.interval_days, time_of_day, start_at, now, tz=self._tz,
            )
            task = create_recurring_task(
                id=self._id_factory(),
                title=task_input.title,
                description=task_input.description,
                interval_days=task_input.interval_days,
                time_of_day=time_of_day,
                remind_before_minutes=task_input.remind_before_minutes,
                overdue_notify_limit=task_input.overdue_notify_limit,
                inventory_items=task_input.inventory_items,
                start_at=start_at,
                next_due_at=next_due_at,
                created_at=now,
            )
        except ValidationError as exc:
            return _failure(ErrorKind.VALIDATION, str(exc))

        appended = await self._repository.append_task(channel_id, task)
        if not appended.success:
            return _failure(appended.error, appended.message)

        try:
            message_id = await self._messenger.send_task(
                channel_id, build_task_view(task, now, self._tz),
            )
        except MessagingError as exc:
            logger.error("Task %s saved but its message could not be sent: %s", task.id, exc)
            return _failure(
                ErrorKind.MESSAGING,
                f"The task was saved but its message could not be posted: {exc}",
                task=task,
            )

        task = replace(task, message_id=message_id)
        linked = await self._repository.update_task(channel_id, task)
        if not linked.success:
            return _failure(linked.error, linked.message, task=task, message_id=message_id)

        ensured_metadata = await self._ensure_metadata(channel_id, now)
        if not ensured_metadata.success:
            return _failure(
                ensured_metadata.error, ensured_metadata.message,
                task=task, message_id=message_id,
            )

        logger.info("Task %s ('%s') added to channel %s", task.id, task.title, channel_id)
        return TaskServiceResult(
            success=True,
            message=f"Added \"{task.title}\" (every {task.interval_days} day(s) at {task.time_of_day}).",
            task=task,
            message_id=message_id,
        )

    async def _ensure_metadata(self, channel_id: str, now: datetime) -> OperationResult:
        existing = await self._metadata.get_channel_metadata(channel_id)
        if existing.success:
            return existing
        if existing.error is not ErrorKind.NOT_FOUND:
            return existing
        # The cached miss may be stale: another process can own the row by now.
        return await self._metadata.create_channel_metadata(
            channel_id, now, update_existing=False, list_title=self._default_list_title,
        )

    # ------------------------------------------------------------------
    # Changes to an existing task (addressed by its message)
    # ------------------------------------------------------------------

    async def get_task(self, channel_id: str, message_id: str) -> TaskServiceResult:
        found = await self._repository.find_task_by_message_id(channel_id, message_id)
        if not found.success:
            return _failure(found.error, found.message)
        return TaskServiceResult(success=True, task=found.task, message_id=message_id)

    async def complete_task(
        self, channel_id: str, message_id: str, now: datetime,
    ) -> TaskServiceResult:
        """Record a completion at ``now`` and schedule the next occurrence.

        Refused while any inventory item has less stock than it consumes.
        """
        def complete(task: RecurringTask) -> RecurringTask:
            short = insufficient_inventory_items(task.inventory_items)
            if short:
                raise ValidationError(
                    f"Not enough stock to complete \"{task.title}\": {format_inventory_shortage(short)}"
                )
            return replace(
                task,
                last_done_at=now,
                next_due_at=calculate_next_due_at(
                    task.interval_days, task.time_of_day, task.start_at, now,
                    last_done_at=now, tz=self._tz,
                ),
                inventory_items=consume_inventory(task.inventory_items),
                last_remind_due_at=None,
                last_overdue_notified_at=None,
                overdue_notify_count=0,
                updated_at=now,
            )

        return await self._apply(channel_id, message_id, now, complete, "Completed")

    async def update_task_settings(
        self,
        channel_id: str,
        message_id: str,
        now: datetime,
        *,
        title: str | None = None,
        description=_UNSET,
        interval_days: int | None = None,
        time_of_day: str | None = None,
        remind_before_minutes: int | None = None,
        overdue_notify_limit=_UNSET,
    ) -> TaskServiceResult:
        """Edit a task's basic settings and reschedule it.

        ``start_at`` is recomputed from the original creation time, the next
        due time from the last completion (if any), and both notification
        markers are cleared.
        """
        def edit(task: RecurringTask) -> RecurringTask:
            new_time = normalize_time_of_day(time_of_day) if time_of_day is not None else task.time_of_day
            new_interval = interval_days if interval_days is not None else task.interval_days
            start_at = calculate_start_at(task.created_at, new_time, self._tz)
            next_due_at = calculate_next_due_at(
                new_interval, new_time, start_at, now,
                last_done_at=task.last_done_at, tz=self._tz,
            )
            return create_recurring_task(
                id=task.id,
                title=title if title is not None else task.title,
                description=task.description if description is _UNSET else description,
                interval_days=new_interval,
                time_of_day=new_time,
                remind_before_minutes=(
                    remind_before_minutes if remind_before_minutes is not None
                    else task.remind_before_minutes
                ),
                overdue_notify_limit=(
                    task.overdue_notify_limit if overdue_notify_limit is _UNSET
                    else overdue_notify_limit
                ),
                inventory_items=task.inventory_items,
                message_id=task.message_id,
                start_at=start_at,
                next_due_at=next_due_at,
                last_done_at=task.last_done_at,
                is_paused=task.is_paused,
                created_at=task.created_at,
                updated_at=now,
            )

        return await self._apply(channel_id, message_id, now, edit, "Updated")

    async def set_paused(
        self, channel_id: str, message_id: str, paused: bool, now: datetime,
    ) -> TaskServiceResult:
        verb = "Paused" if paused else "Resumed"
        return await self._apply(
            channel_id, message_id, now,
            lambda task: replace(task, is_paused=paused, updated_at=now),
            verb,
        )

    async def set_inventory(
        self, channel_id: str, message_id: str, items: list[InventoryItem], now: datetime,
    ) -> TaskServiceResult:
        def restock(task: RecurringTask) -> RecurringTask:
            # Goes through the factory so every item is validated.
            return create_recurring_task(**{
                **vars(task), "inventory_items": list(items), "updated_at": now,
            })

        return await self._apply(channel_id, message_id, now, restock, "Inventory updated for")

    async def _apply(
        self,
        channel_id: str,
        message_id: str,
        now: datetime,
        change: Callable[[RecurringTask], RecurringTask],
        verb: str,
    ) -> TaskServiceResult:
        found = await self._repository.find_task_by_message_id(channel_id, message_id)
        if not found.success:
            return _failure(found.error, found.message)

        try:
            task = change(found.task)
        except ValidationError as exc:
            return _failure(ErrorKind.VALIDATION, str(exc), task=found.task)

        saved = await self._repository.update_task(channel_id, task)
        if not saved.success:
            return _failure(saved.error, saved.message, task=task)

        if not await self._refresh_message(channel_id, task, now):
            return _failure(
                ErrorKind.MESSAGING,
                "The change was saved but the task message could not be updated.",
                task=task, message_id=task.message_id,
            )

        logger.info("%s task %s in channel %s", verb, task.id, channel_id)
        return TaskServiceResult(
            success=True,
            message=f"{verb} \"{task.title}\".",
            task=task,
            message_id=task.message_id,
        )

    async def _refresh_message(self, channel_id: str, task: RecurringTask, now: datetime) -> bool:
        if not task.message_id:
            return True
        return await self._messenger.update_task(
            channel_id, task.message_id, build_task_view(task, now, self._tz),
        )

    # ------------------------------------------------------------------
    # Channel initialisation
    # ------------------------------------------------------------------

    async def initialize_channel(
        self, channel_id: str, now: datetime, list_title: str | None = None,
    ) -> OperationResult:
        """Set a channel up (or re-sync it) for reminders.

        Ensures the task table, re-renders every task message (posting a new
        one where the old message is gone), then creates the channel's
        metadata or updates its title. Safe to run concurrently with itself.
        """
        ensured = await self._repository.ensure_table(channel_id)
        if not ensured.success:
            return ensured

        try:
            tasks = await self._repository.fetch_tasks(channel_id)
        except StoreUnavailable as exc:
            logger.error("Failed to read tasks for channel %s: %s", channel_id, exc)
            return OperationResult.fail(
                ErrorKind.STORE_UNAVAILABLE, f"Could not read the task list: {exc}",
            )

        reposted = 0
        for task in tasks:
            if task.message_id and await self._refresh_message(channel_id, task, now):
                continue
            try:
                message_id = await self._messenger.send_task(
                    channel_id, build_task_view(task, now, self._tz),
                )
            except MessagingError as exc:
                logger.error("Could not repost task %s: %s", task.id, exc)
                return OperationResult.fail(
                    ErrorKind.MESSAGING, f"Could not post the message for \"{task.title}\".",
                )
            linked = await self._repository.update_task(
                channel_id, replace(task, message_id=message_id, updated_at=now),
            )
            if not linked.success:
                return linked
            reposted += 1

        title = list_title or self._default_list_title
        upserted = await self._metadata.create_channel_metadata(
            channel_id, now, list_title=title,
        )
        if not upserted.success:
            return upserted

        logger.info(
            "Channel %s initialised (%s): %d task(s), %d reposted",
            channel_id, upserted.outcome.value, len(tasks), reposted,
        )
        return OperationResult.ok(
            f"Reminder list \"{title}\" is ready with {len(tasks)} task(s)."
        )
