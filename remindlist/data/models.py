"""
RemindList — Data Models.

Recurring tasks and per-channel configuration live in the remote tabular
store; these dataclasses are their in-memory shape. All timestamps are
timezone-aware datetimes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from remindlist.core.errors import ValidationError

DEFAULT_REMIND_BEFORE_MINUTES = 1440
MAX_REMIND_BEFORE_MINUTES = 10080   # 7 days
DEFAULT_TIME_OF_DAY = "00:00"
DEFAULT_CATEGORY = "Other"


@dataclass
class InventoryItem:
    """A consumable attached to a task, e.g. filters used on every change."""

    name: str
    stock: int
    consume: int


@dataclass
class RecurringTask:
    """A reminder that repeats every ``interval_days`` at ``time_of_day``."""

    id: str
    title: str
    interval_days: int
    time_of_day: str                  # "HH:MM", channel-local civil time
    remind_before_minutes: int
    start_at: datetime
    next_due_at: datetime
    created_at: datetime
    updated_at: datetime
    description: str | None = None
    message_id: str | None = None     # lookup only, the message is not owned
    inventory_items: list[InventoryItem] = field(default_factory=list)
    last_done_at: datetime | None = None
    last_remind_due_at: datetime | None = None
    last_overdue_notified_at: datetime | None = None
    overdue_notify_count: int = 0
    overdue_notify_limit: int | None = None   # None -> unbounded
    is_paused: bool = False


@dataclass
class ChannelMetadata:
    """Per-channel configuration record. One row per channel_id."""

    channel_id: str
    message_id: str
    list_title: str
    last_sync_time: datetime
    default_category: str = DEFAULT_CATEGORY
    # None -> never configured, "" -> explicitly disabled
    operation_log_thread_id: str | None = None
    remind_notice_thread_id: str | None = None


def create_recurring_task(
    *,
    id: str,
    title: str,
    interval_days: int,
    time_of_day: str,
    start_at: datetime,
    next_due_at: datetime,
    created_at: datetime,
    updated_at: datetime | None = None,
    description: str | None = None,
    message_id: str | None = None,
    remind_before_minutes: int | None = None,
    inventory_items: list[InventoryItem] | None = None,
    last_done_at: datetime | None = None,
    last_remind_due_at: datetime | None = None,
    last_overdue_notified_at: datetime | None = None,
    overdue_notify_count: int = 0,
    overdue_notify_limit: int | None = None,
    is_paused: bool = False,
) -> RecurringTask:
    """Build a RecurringTask, filling defaults for omitted optional fields.

    No date arithmetic happens here: ``start_at`` and ``next_due_at`` come
    from the schedule calculator.

    Raises:
        ValidationError: on a blank id/title, ``interval_days < 1``, a lead
            window outside 0..10080 minutes, a negative notify limit, or a
            malformed inventory item.
    """
    if interval_days < 1:
        raise ValidationError(f"interval_days must be >= 1, got {interval_days}")

    task_id = (id or "").strip()
    if not task_id:
        raise ValidationError("Task id is required")

    clean_title = (title or "").strip()
    if not clean_title:
        raise ValidationError("Task title is required")

    if remind_before_minutes is None:
        remind_before_minutes = DEFAULT_REMIND_BEFORE_MINUTES
    if not 0 <= remind_before_minutes <= MAX_REMIND_BEFORE_MINUTES:
        raise ValidationError(
            f"remind_before_minutes must be within 0..{MAX_REMIND_BEFORE_MINUTES}, "
            f"got {remind_before_minutes}"
        )

    if overdue_notify_limit is not None and overdue_notify_limit < 0:
        raise ValidationError(f"overdue_notify_limit must be >= 0, got {overdue_notify_limit}")

    if overdue_notify_count < 0:
        raise ValidationError(f"overdue_notify_count must be >= 0, got {overdue_notify_count}")

    items = list(inventory_items or [])
    for item in items:
        validate_inventory_item(item)

    clean_description = description.strip() if description else None

    return RecurringTask(
        id=task_id,
        title=clean_title,
        description=clean_description or None,
        interval_days=interval_days,
        time_of_day=time_of_day,
        remind_before_minutes=remind_before_minutes,
        start_at=start_at,
        next_due_at=next_due_at,
        created_at=created_at,
        updated_at=updated_at or created_at,
        message_id=message_id,
        inventory_items=items,
        last_done_at=last_done_at,
        last_remind_due_at=last_remind_due_at,
        last_overdue_notified_at=last_overdue_notified_at,
        overdue_notify_count=overdue_notify_count,
        overdue_notify_limit=overdue_notify_limit,
        is_paused=is_paused,
    )


def validate_inventory_item(item: InventoryItem) -> None:
    """Raise ValidationError unless the item has a name, stock >= 0, consume >= 1."""
    if not item.name or not item.name.strip():
        raise ValidationError("Inventory item name is required")
    if item.stock < 0:
        raise ValidationError(f"Inventory stock for {item.name!r} must be >= 0")
    if item.consume < 1:
        raise ValidationError(f"Inventory consume for {item.name!r} must be >= 1")
