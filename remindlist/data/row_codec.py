"""Row codec — the only place that knows how entities map to table cells.

Task tables are decoded and encoded through their own header row, so a
table created by an older version (fewer or reordered columns) keeps working
without migration. The metadata table only ever grew columns at the end; its
header is repaired in place by the metadata store and rows are positional.

Cells coming back from the store may be str, int or float. Timestamps are
stored as ISO-8601 with the channel offset (2026-01-05T09:00:00+09:00);
naive legacy values are read as channel-local time.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from remindlist.data.models import (
    DEFAULT_CATEGORY,
    DEFAULT_REMIND_BEFORE_MINUTES,
    DEFAULT_TIME_OF_DAY,
    ChannelMetadata,
    InventoryItem,
    RecurringTask,
)
from remindlist.ports.table_store_port import Cell, Row

logger = logging.getLogger(__name__)

TASK_COLUMNS: tuple[str, ...] = (
    "id",
    "message_id",
    "title",
    "description",
    "interval_days",
    "time_of_day",
    "remind_before_minutes",
    "inventory_items",
    "start_at",
    "next_due_at",
    "last_done_at",
    "last_remind_due_at",
    "overdue_notify_count",
    "overdue_notify_limit",
    "last_overdue_notified_at",
    "is_paused",
    "created_at",
    "updated_at",
)

METADATA_COLUMNS: tuple[str, ...] = (
    "channel_id",
    "message_id",
    "list_title",
    "last_sync_time",
    "default_category",
    "operation_log_thread_id",
    "remind_notice_thread_id",
)

# Stored in place of an explicitly disabled ("") thread id; a blank cell means unset.
DISABLED_SENTINEL = "-"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Cell coercion
# ---------------------------------------------------------------------------


def cell_text(cell: Cell | None) -> str:
    if cell is None:
        return ""
    if isinstance(cell, float) and cell.is_integer():
        return str(int(cell))
    return str(cell).strip()


def _parse_int(text: str, default: int | None) -> int | None:
    if not text:
        return default
    try:
        return int(text)
    except ValueError:
        try:
            return int(float(text))
        except ValueError:
            return default


def format_timestamp(moment: datetime, tz: ZoneInfo) -> str:
    return moment.astimezone(tz).isoformat(timespec="seconds")


def parse_timestamp(text: str, tz: ZoneInfo) -> datetime | None:
    """Parse an ISO-8601 (or "YYYY-MM-DD HH:MM:SS") cell; None when blank/invalid."""
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        logger.warning("Unparseable timestamp cell: %r", text)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


def _format_optional_timestamp(moment: datetime | None, tz: ZoneInfo) -> str:
    return format_timestamp(moment, tz) if moment is not None else ""


def _format_inventory(items: list[InventoryItem]) -> str:
    if not items:
        return ""
    return json.dumps(
        [{"name": i.name, "stock": i.stock, "consume": i.consume} for i in items],
        ensure_ascii=False,
    )


def _parse_inventory(text: str) -> list[InventoryItem]:
    if not text:
        return []
    try:
        raw = json.loads(text)
    except json.JSONDecodeError:
        logger.warning("Ignoring malformed inventory cell: %r", text)
        return []
    if not isinstance(raw, list):
        return []

    items: list[InventoryItem] = []
    for entry in raw:
        if not isinstance(entry, dict) or not str(entry.get("name", "")).strip():
            continue
        try:
            items.append(InventoryItem(
                name=str(entry["name"]),
                stock=int(entry.get("stock", 0)),
                consume=int(entry.get("consume", 1)),
            ))
        except (TypeError, ValueError):
            continue
    return items


def _encode_thread_id(value: str | None) -> str:
    if value is None:
        return ""
    return value or DISABLED_SENTINEL


def _decode_thread_id(text: str) -> str | None:
    if not text:
        return None
    if text == DISABLED_SENTINEL:
        return ""
    return text


# ---------------------------------------------------------------------------
# Headers
# ---------------------------------------------------------------------------


def header_names(row: Row) -> list[str]:
    return [cell_text(c) for c in row]


def header_matches(row: Row, expected: tuple[str, ...]) -> bool:
    return header_names(row) == list(expected)


def is_blank_row(row: Row) -> bool:
    return not any(cell_text(c) for c in row)


def _cells_by_name(row: Row, header: list[str] | tuple[str, ...]) -> dict[str, str]:
    cells: dict[str, str] = {}
    for index, name in enumerate(header):
        if name and name not in cells:
            cells[name] = cell_text(row[index]) if index < len(row) else ""
    return cells


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


def task_to_row(
    task: RecurringTask,
    tz: ZoneInfo,
    header: list[str] | tuple[str, ...] = TASK_COLUMNS,
) -> list[str]:
    """Encode a task in the column order of ``header``; unknown columns stay blank."""
    values = {
        "id": task.id,
        "message_id": task.message_id or "",
        "title": task.title,
        "description": task.description or "",
        "interval_days": str(task.interval_days),
        "time_of_day": task.time_of_day,
        "remind_before_minutes": str(task.remind_before_minutes),
        "inventory_items": _format_inventory(task.inventory_items),
        "start_at": format_timestamp(task.start_at, tz),
        "next_due_at": format_timestamp(task.next_due_at, tz),
        "last_done_at": _format_optional_timestamp(task.last_done_at, tz),
        "last_remind_due_at": _format_optional_timestamp(task.last_remind_due_at, tz),
        "overdue_notify_count": str(task.overdue_notify_count),
        "overdue_notify_limit": "" if task.overdue_notify_limit is None else str(task.overdue_notify_limit),
        "last_overdue_notified_at": _format_optional_timestamp(task.last_overdue_notified_at, tz),
        "is_paused": "1" if task.is_paused else "0",
        "created_at": format_timestamp(task.created_at, tz),
        "updated_at": format_timestamp(task.updated_at, tz),
    }
    return [values.get(name, "") for name in header]


def task_from_row(
    row: Row,
    tz: ZoneInfo,
    header: list[str] | tuple[str, ...] = TASK_COLUMNS,
) -> RecurringTask:
    """Decode a task row laid out according to ``header``.

    Missing or unparseable cells fall back to defaults instead of failing,
    so one damaged row never hides the rest of the table.
    """
    cells = _cells_by_name(row, header)
    created_at = parse_timestamp(cells.get("created_at", ""), tz) or _EPOCH
    start_at = parse_timestamp(cells.get("start_at", ""), tz) or created_at
    next_due_at = parse_timestamp(cells.get("next_due_at", ""), tz) or start_at

    return RecurringTask(
        id=cells.get("id", ""),
        message_id=cells.get("message_id") or None,
        title=cells.get("title", ""),
        description=cells.get("description") or None,
        interval_days=_parse_int(cells.get("interval_days", ""), 1),
        time_of_day=cells.get("time_of_day") or DEFAULT_TIME_OF_DAY,
        remind_before_minutes=_parse_int(
            cells.get("remind_before_minutes", ""), DEFAULT_REMIND_BEFORE_MINUTES,
        ),
        inventory_items=_parse_inventory(cells.get("inventory_items", "")),
        start_at=start_at,
        next_due_at=next_due_at,
        last_done_at=parse_timestamp(cells.get("last_done_at", ""), tz),
        last_remind_due_at=parse_timestamp(cells.get("last_remind_due_at", ""), tz),
        overdue_notify_count=_parse_int(cells.get("overdue_notify_count", ""), 0),
        overdue_notify_limit=_parse_int(cells.get("overdue_notify_limit", ""), None),
        last_overdue_notified_at=parse_timestamp(cells.get("last_overdue_notified_at", ""), tz),
        is_paused=cells.get("is_paused") == "1",
        created_at=created_at,
        updated_at=parse_timestamp(cells.get("updated_at", ""), tz) or created_at,
    )


# ---------------------------------------------------------------------------
# Channel metadata
# ---------------------------------------------------------------------------


def metadata_to_row(metadata: ChannelMetadata, tz: ZoneInfo) -> list[str]:
    return [
        metadata.channel_id,
        metadata.message_id,
        metadata.list_title,
        format_timestamp(metadata.last_sync_time, tz),
        metadata.default_category,
        _encode_thread_id(metadata.operation_log_thread_id),
        _encode_thread_id(metadata.remind_notice_thread_id),
    ]


def metadata_from_row(row: Row, tz: ZoneInfo) -> ChannelMetadata:
    cells = _cells_by_name(row, METADATA_COLUMNS)
    return ChannelMetadata(
        channel_id=cells["channel_id"],
        message_id=cells["message_id"],
        list_title=cells["list_title"],
        last_sync_time=parse_timestamp(cells["last_sync_time"], tz) or _EPOCH,
        default_category=cells["default_category"] or DEFAULT_CATEGORY,
        operation_log_thread_id=_decode_thread_id(cells["operation_log_thread_id"]),
        remind_notice_thread_id=_decode_thread_id(cells["remind_notice_thread_id"]),
    )
