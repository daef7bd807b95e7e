"""
RemindList — Task Repository.

Persistence of recurring tasks: one table per channel, named
``remind_list_<channel_id>``, header row first. Rows are encoded and decoded
through the table's own header so older tables keep working as-is.
"""

from __future__ import annotations

import logging
from zoneinfo import ZoneInfo

from remindlist.core.errors import StoreUnavailable
from remindlist.core.results import ErrorKind, OperationResult, TaskResult
from remindlist.core.schedule import DEFAULT_TIMEZONE
from remindlist.data.a1_notation import block_range, row_range
from remindlist.data.models import RecurringTask
from remindlist.data.row_codec import (
    TASK_COLUMNS,
    cell_text,
    header_names,
    is_blank_row,
    task_from_row,
    task_to_row,
)
from remindlist.ports.table_store_port import Row, TableStorePort

logger = logging.getLogger(__name__)

TABLE_PREFIX = "remind_list_"


def table_name_for_channel(channel_id: str) -> str:
    return f"{TABLE_PREFIX}{channel_id}"


class TaskRepository:
    """CRUD over per-channel task tables."""

    def __init__(self, store: TableStorePort, *, tz: ZoneInfo = DEFAULT_TIMEZONE) -> None:
        self._store = store
        self._tz = tz

    # ------------------------------------------------------------------
    # Table bootstrap
    # ------------------------------------------------------------------

    async def ensure_table(self, channel_id: str) -> OperationResult:
        """Create the channel's table with a header row if it does not exist."""
        name = table_name_for_channel(channel_id)
        try:
            rows = await self._store.get_rows(name)
            if rows:
                return OperationResult.ok()
            await self._store.create_table(name)
            await self._store.append_rows(name, [list(TASK_COLUMNS)])
        except StoreUnavailable as exc:
            logger.error("Failed to prepare task table %s: %s", name, exc)
            return OperationResult.fail(
                ErrorKind.STORE_UNAVAILABLE, f"Could not prepare the task list: {exc}",
            )
        logger.info("Task table '%s' created", name)
        return OperationResult.ok()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def fetch_tasks(self, channel_id: str) -> list[RecurringTask]:
        """All tasks of the channel, in table order.

        Raises:
            StoreUnavailable: if the table cannot be read.
        """
        rows = await self._store.get_rows(table_name_for_channel(channel_id))
        if not rows:
            return []
        header = header_names(rows[0])
        return [
            task_from_row(row, self._tz, header)
            for row in rows[1:]
            if not is_blank_row(row) and _row_id(row, header)
        ]

    async def find_task_by_message_id(self, channel_id: str, message_id: str) -> TaskResult:
        """Find the task whose chat message is ``message_id``."""
        try:
            tasks = await self.fetch_tasks(channel_id)
        except StoreUnavailable as exc:
            logger.error("Failed to read tasks for channel %s: %s", channel_id, exc)
            return TaskResult(
                success=False,
                message=f"Could not read the task list: {exc}",
                error=ErrorKind.STORE_UNAVAILABLE,
            )
        for task in tasks:
            if task.message_id == message_id:
                return TaskResult(success=True, task=task)
        return TaskResult(
            success=False,
            message="That message is not a task in this channel.",
            error=ErrorKind.NOT_FOUND,
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def append_task(self, channel_id: str, task: RecurringTask) -> OperationResult:
        """Append one task row in the table's column order."""
        name = table_name_for_channel(channel_id)
        try:
            rows = await self._store.get_rows(name)
            if not rows:
                await self._store.create_table(name)
                await self._store.append_rows(name, [list(TASK_COLUMNS)])
                header: list[str] = list(TASK_COLUMNS)
            else:
                header = header_names(rows[0])
            await self._store.append_rows(name, [task_to_row(task, self._tz, header)])
        except StoreUnavailable as exc:
            logger.error("Failed to append task %s to %s: %s", task.id, name, exc)
            return OperationResult.fail(
                ErrorKind.STORE_UNAVAILABLE, f"Could not save the task: {exc}",
            )
        logger.info("Task %s ('%s') appended to %s", task.id, task.title, name)
        return OperationResult.ok()

    async def update_task(self, channel_id: str, task: RecurringTask) -> OperationResult:
        """Overwrite the row whose id matches ``task.id``; other rows untouched."""
        name = table_name_for_channel(channel_id)
        try:
            rows = await self._store.get_rows(name)
            if not rows:
                return OperationResult.fail(ErrorKind.NOT_FOUND, f"Task {task.id} not found")
            header = header_names(rows[0])
            for index, row in enumerate(rows[1:], start=2):
                if _row_id(row, header) == task.id:
                    await self._store.update_range(
                        name,
                        [task_to_row(task, self._tz, header)],
                        row_range(index, len(header)),
                    )
                    break
            else:
                return OperationResult.fail(ErrorKind.NOT_FOUND, f"Task {task.id} not found")
        except StoreUnavailable as exc:
            logger.error("Failed to update task %s in %s: %s", task.id, name, exc)
            return OperationResult.fail(
                ErrorKind.STORE_UNAVAILABLE, f"Could not update the task: {exc}",
            )
        logger.debug("Task %s updated in %s", task.id, name)
        return OperationResult.ok()

    async def delete_task(self, channel_id: str, task_id: str) -> OperationResult:
        """Remove the task's row, shifting the rows below it up by one.

        Written as a single range update from the deleted row to the old end
        of the table; the freed last row is blanked.
        """
        name = table_name_for_channel(channel_id)
        try:
            rows = await self._store.get_rows(name)
            if not rows:
                return OperationResult.fail(ErrorKind.NOT_FOUND, f"Task {task_id} not found")
            header = header_names(rows[0])
            for index, row in enumerate(rows[1:], start=2):
                if _row_id(row, header) == task_id:
                    break
            else:
                return OperationResult.fail(ErrorKind.NOT_FOUND, f"Task {task_id} not found")

            width = max(len(r) for r in rows)
            shifted = [list(r) + [""] * (width - len(r)) for r in rows[index:]]
            shifted.append([""] * width)
            await self._store.update_range(name, shifted, block_range(index, len(rows), width))
        except StoreUnavailable as exc:
            logger.error("Failed to delete task %s from %s: %s", task_id, name, exc)
            return OperationResult.fail(
                ErrorKind.STORE_UNAVAILABLE, f"Could not delete the task: {exc}",
            )
        logger.info("Task %s deleted from %s", task_id, name)
        return OperationResult.ok()


def _row_id(row: Row, header: list[str]) -> str:
    try:
        index = header.index("id")
    except ValueError:
        index = 0
    return cell_text(row[index]) if index < len(row) else ""
