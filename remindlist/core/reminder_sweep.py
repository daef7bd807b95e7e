"""
RemindList — Reminder Sweep.

Periodic job that walks every registered channel and issues lead-time
reminders, overdue alerts and inventory-shortage notices, then keeps each
task's chat message current. Runs from the bot's job queue.

Alert markers are written back to the store before the next task is looked
at, so a restart in the middle of a sweep never repeats an alert.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from remindlist.core.durations import format_remaining_duration
from remindlist.core.errors import MessagingError, StoreUnavailable
from remindlist.core.inventory import format_inventory_shortage, insufficient_inventory_items
from remindlist.core.notification_policy import (
    mark_overdue_sent,
    mark_pre_reminder_sent,
    should_send_overdue,
    should_send_pre_reminder,
)
from remindlist.core.schedule import DEFAULT_TIMEZONE
from remindlist.core.views import build_task_view, format_due

if TYPE_CHECKING:
    from remindlist.data.metadata_store import MetadataStore
    from remindlist.data.models import ChannelMetadata, RecurringTask
    from remindlist.data.task_repository import TaskRepository
    from remindlist.ports.messaging_port import MessagingPort

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    skipped: bool = False
    channels: int = 0
    pre_reminders: int = 0
    overdue_alerts: int = 0
    shortage_notices: int = 0
    refreshed: int = 0
    failed_channels: list[str] = field(default_factory=list)


class ReminderSweep:
    """One pass over all channels; overlapping passes are skipped."""

    def __init__(
        self,
        repository: TaskRepository,
        metadata_store: MetadataStore,
        messenger: MessagingPort,
        *,
        tz: ZoneInfo = DEFAULT_TIMEZONE,
    ) -> None:
        self._repository = repository
        self._metadata = metadata_store
        self._messenger = messenger
        self._tz = tz
        self._running = False
        self._refreshed_hour: datetime | None = None

    async def run_once(self, now: datetime) -> SweepReport:
        if self._running:
            logger.warning("Previous reminder sweep still running, skipping this one")
            return SweepReport(skipped=True)

        self._running = True
        report = SweepReport()
        # Every task message is re-rendered once per local clock hour,
        # whatever the sweep interval.
        hour = now.astimezone(self._tz).replace(minute=0, second=0, microsecond=0)
        refresh_all = hour != self._refreshed_hour
        try:
            for metadata in await self._metadata.list_channel_metadata():
                report.channels += 1
                try:
                    await self._sweep_channel(metadata, now, refresh_all, report)
                except Exception as exc:
                    logger.error("Reminder sweep failed for channel %s: %s", metadata.channel_id, exc)
                    report.failed_channels.append(metadata.channel_id)
            self._refreshed_hour = hour
        finally:
            self._running = False

        if report.pre_reminders or report.overdue_alerts:
            logger.info(
                "Reminder sweep: %d channel(s), %d pre-reminder(s), %d overdue alert(s)",
                report.channels, report.pre_reminders, report.overdue_alerts,
            )
        return report

    async def _sweep_channel(
        self,
        metadata: ChannelMetadata,
        now: datetime,
        refresh_all: bool,
        report: SweepReport,
    ) -> None:
        channel_id = metadata.channel_id
        thread_id = metadata.remind_notice_thread_id or None

        for task in await self._repository.fetch_tasks(channel_id):
            if task.is_paused or not task.message_id:
                continue

            if should_send_pre_reminder(task, now):
                if not await self._send_pre_reminder(channel_id, task, now, thread_id, report):
                    continue
                task = mark_pre_reminder_sent(task, now)
                await self._persist(channel_id, task)
                report.pre_reminders += 1
            elif should_send_overdue(task, now, self._tz):
                if not await self._notify(channel_id, _overdue_text(task, self._tz), thread_id):
                    continue
                task = mark_overdue_sent(task, now)
                await self._persist(channel_id, task)
                report.overdue_alerts += 1
            elif not refresh_all:
                continue

            if await self._messenger.update_task(
                channel_id, task.message_id, build_task_view(task, now, self._tz),
            ):
                report.refreshed += 1

    async def _send_pre_reminder(
        self,
        channel_id: str,
        task: RecurringTask,
        now: datetime,
        thread_id: str | None,
        report: SweepReport,
    ) -> bool:
        short = insufficient_inventory_items(task.inventory_items)
        if short:
            text = f"Low stock for \"{task.title}\": {format_inventory_shortage(short)}"
            if await self._notify(channel_id, text, thread_id):
                report.shortage_notices += 1

        minutes_left = int((task.next_due_at - now).total_seconds() // 60)
        text = (
            f"Reminder: \"{task.title}\" is due {format_due(task.next_due_at, self._tz)} "
            f"(in {format_remaining_duration(minutes_left)})."
        )
        return await self._notify(channel_id, text, thread_id)

    async def _notify(self, channel_id: str, text: str, thread_id: str | None) -> bool:
        try:
            await self._messenger.send_notice(channel_id, text, thread_id=thread_id)
        except MessagingError as exc:
            logger.error("Failed to send notice to channel %s: %s", channel_id, exc)
            return False
        return True

    async def _persist(self, channel_id: str, task: RecurringTask) -> None:
        saved = await self._repository.update_task(channel_id, task)
        if not saved.success:
            # Stop this channel: later alerts would go out without their markers.
            raise StoreUnavailable(f"Could not save alert marker for task {task.id}: {saved.message}")


def _overdue_text(task: RecurringTask, tz: ZoneInfo) -> str:
    text = f"Overdue: \"{task.title}\" was due {format_due(task.next_due_at, tz)}."
    if task.overdue_notify_limit is not None:
        text += f" (alert {task.overdue_notify_count + 1}/{task.overdue_notify_limit})"
    return text
