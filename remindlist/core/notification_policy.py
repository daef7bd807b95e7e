"""Notification policy — decides whether a task needs an alert right now.

No I/O: the predicates only read task state. The caller that acts on a True
result must persist the updated markers (see ``mark_pre_reminder_sent`` and
``mark_overdue_sent``) before moving on, otherwise the same alert fires again
on the next sweep.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from remindlist.core.schedule import DEFAULT_TIMEZONE
from remindlist.data.models import RecurringTask


def should_send_pre_reminder(task: RecurringTask, now: datetime) -> bool:
    """True iff ``now`` is inside the lead window and no pre-reminder was
    issued yet for the current ``next_due_at``.

    The window is ``[next_due_at - remind_before_minutes, next_due_at)``.
    """
    window_start = task.next_due_at - timedelta(minutes=task.remind_before_minutes)
    if not (window_start <= now < task.next_due_at):
        return False
    return task.last_remind_due_at != task.next_due_at


def should_send_overdue(
    task: RecurringTask,
    now: datetime,
    tz: ZoneInfo = DEFAULT_TIMEZONE,
) -> bool:
    """True iff the task is due, not paused, not alerted today, and under its cap.

    "Today" is the calendar day of ``now`` in the channel timezone ``tz``.
    """
    if task.is_paused:
        return False
    if now < task.next_due_at:
        return False
    if task.last_overdue_notified_at is not None and _same_local_day(
        task.last_overdue_notified_at, now, tz,
    ):
        return False
    if task.overdue_notify_limit is not None:
        return task.overdue_notify_count < task.overdue_notify_limit
    return True


def mark_pre_reminder_sent(task: RecurringTask, now: datetime) -> RecurringTask:
    """Return a copy recording that the pre-reminder for next_due_at was sent."""
    return replace(task, last_remind_due_at=task.next_due_at, updated_at=now)


def mark_overdue_sent(task: RecurringTask, now: datetime) -> RecurringTask:
    """Return a copy recording one more overdue alert issued at ``now``."""
    return replace(
        task,
        overdue_notify_count=task.overdue_notify_count + 1,
        last_overdue_notified_at=now,
        updated_at=now,
    )


def _same_local_day(a: datetime, b: datetime, tz: ZoneInfo) -> bool:
    return a.astimezone(tz).date() == b.astimezone(tz).date()
