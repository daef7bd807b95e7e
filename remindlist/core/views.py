"""Task view-model — what the messenger renders for a task.

The core never produces chat markup; adapters turn a TaskView into whatever
their platform displays.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from remindlist.core.durations import format_remaining_duration
from remindlist.core.inventory import format_inventory_summary
from remindlist.core.schedule import DEFAULT_TIMEZONE
from remindlist.data.models import RecurringTask


@dataclass
class TaskView:
    title: str
    due_text: str            # e.g. "2026/1/5 09:00"
    status_text: str         # "Overdue" | "Remaining: 3h 20m" | "Remaining: 4 days"
    interval_text: str
    remind_before_text: str
    is_overdue: bool
    is_paused: bool
    progress: float          # 0.0 .. 1.0 of the current interval elapsed
    description: str | None = None
    inventory_text: str | None = None


def format_due(moment: datetime, tz: ZoneInfo = DEFAULT_TIMEZONE) -> str:
    local = moment.astimezone(tz)
    return f"{local.year}/{local.month}/{local.day} {local:%H:%M}"


def build_task_view(
    task: RecurringTask,
    now: datetime,
    tz: ZoneInfo = DEFAULT_TIMEZONE,
) -> TaskView:
    """Summarize a task's state at ``now`` for display."""
    remaining = task.next_due_at - now
    is_overdue = remaining.total_seconds() < 0

    if is_overdue:
        status = "Overdue"
    elif remaining < timedelta(days=1):
        status = f"Remaining: {format_remaining_duration(int(remaining.total_seconds() // 60))}"
    else:
        local_days = (task.next_due_at.astimezone(tz).date() - now.astimezone(tz).date()).days
        status = f"Remaining: {local_days} day{'s' if local_days != 1 else ''}"

    if task.is_paused:
        status = f"{status} (paused)"

    interval_start = task.last_done_at or task.start_at
    total = (task.next_due_at - interval_start).total_seconds()
    elapsed = (now - interval_start).total_seconds()
    progress = 1.0 if total <= 0 else min(1.0, max(0.0, elapsed / total))

    return TaskView(
        title=task.title,
        description=task.description,
        due_text=format_due(task.next_due_at, tz),
        status_text=status,
        interval_text=f"Every {task.interval_days} day{'s' if task.interval_days != 1 else ''}",
        remind_before_text=f"{format_remaining_duration(task.remind_before_minutes)} before",
        inventory_text=format_inventory_summary(task.inventory_items),
        is_overdue=is_overdue,
        is_paused=task.is_paused,
        progress=progress,
    )
