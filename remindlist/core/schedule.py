"""Schedule calculator — pure date/time logic.

Computes the first occurrence and the next due instant of a recurring task.
Every function takes ``now`` explicitly and never reads the clock.

Occurrences are civil (wall-clock) times in the channel's timezone: a task
due every 7 days at 09:00 stays at 09:00 across DST transitions, even though
the elapsed duration between two occurrences then differs from 7 * 24h.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from remindlist.core.errors import ValidationError

DEFAULT_TIMEZONE = ZoneInfo("Asia/Tokyo")

_TIME_RE = re.compile(r"^(\d{1,2})(?::(\d{1,2}))?$")


def normalize_time_of_day(raw: str) -> str:
    """Normalize a time-of-day string to zero-padded "HH:MM".

    Accepts "H:M", "HH:MM" or a bare hour ("9" -> "09:00").

    Raises:
        ValidationError: on malformed input or an out-of-range component.
    """
    text = (raw or "").strip()
    match = _TIME_RE.match(text)
    if not match:
        raise ValidationError(f"Invalid time of day: {raw!r}")

    hour = int(match.group(1))
    minute = int(match.group(2)) if match.group(2) is not None else 0
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValidationError(f"Time of day out of range: {raw!r}")
    return f"{hour:02d}:{minute:02d}"


def _parse_time_of_day(time_of_day: str) -> time:
    hour, minute = map(int, normalize_time_of_day(time_of_day).split(":"))
    return time(hour, minute)


def _at_local(day: date, at: time, tz: ZoneInfo) -> datetime:
    """Combine a civil date and time in ``tz`` into an aware datetime."""
    return datetime.combine(day, at, tzinfo=tz)


def calculate_start_at(
    created_at: datetime,
    time_of_day: str,
    tz: ZoneInfo = DEFAULT_TIMEZONE,
) -> datetime:
    """Anchor the first occurrence to the local calendar day of ``created_at``.

    The result may lie before ``created_at`` (e.g. created at 15:00 for a
    09:00 task); the next occurrence is computed separately.
    """
    local_day = created_at.astimezone(tz).date()
    return _at_local(local_day, _parse_time_of_day(time_of_day), tz)


def calculate_next_due_at(
    interval_days: int,
    time_of_day: str,
    start_at: datetime,
    now: datetime,
    *,
    last_done_at: datetime | None = None,
    tz: ZoneInfo = DEFAULT_TIMEZONE,
) -> datetime:
    """Return the first occurrence strictly after ``now``.

    The series is anchored at ``start_at`` or, once the task has been
    completed, at the local day of ``last_done_at`` plus one interval.
    When the anchor itself is after ``now`` it is returned unchanged.

    Args:
        interval_days: Days between occurrences, >= 1.
        time_of_day: "HH:MM" in ``tz``.
        start_at: First scheduled occurrence.
        now: Reference instant.
        last_done_at: Completion instant, if any.
        tz: The channel's civil timezone.

    Raises:
        ValidationError: if ``interval_days < 1`` or ``time_of_day`` is invalid.
    """
    if interval_days < 1:
        raise ValidationError(f"interval_days must be >= 1, got {interval_days}")

    at = _parse_time_of_day(time_of_day)
    if last_done_at is not None:
        anchor_day = last_done_at.astimezone(tz).date() + timedelta(days=interval_days)
    else:
        anchor_day = start_at.astimezone(tz).date()

    candidate = _at_local(anchor_day, at, tz)
    if candidate > now:
        return candidate

    # Jump close to ``now`` in whole intervals, then step past it.
    elapsed_days = (now.astimezone(tz).date() - anchor_day).days
    day = anchor_day + timedelta(days=(elapsed_days // interval_days) * interval_days)
    candidate = _at_local(day, at, tz)
    while candidate <= now:
        day += timedelta(days=interval_days)
        candidate = _at_local(day, at, tz)
    return candidate
