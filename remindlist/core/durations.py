"""Lead-time parsing and duration formatting for reminder messages."""

from __future__ import annotations

from remindlist.core.errors import ValidationError
from remindlist.data.models import MAX_REMIND_BEFORE_MINUTES

_MINUTES_PER_DAY = 24 * 60

_INVALID_FORMAT = "Lead time must be given as D:HH:MM or HH:MM"
_OUT_OF_RANGE = "Lead time must be between 0:00:00 and 7:00:00"


def parse_remind_before_input(text: str) -> int:
    """Parse "D:HH:MM" or "HH:MM" into a number of minutes.

    Raises:
        ValidationError: on bad format or a value above 7 days.
    """
    normalized = (text or "").strip()
    parts = normalized.split(":") if normalized else []
    if len(parts) not in (2, 3) or not all(p.strip().isdigit() for p in parts):
        raise ValidationError(_INVALID_FORMAT)

    numbers = [int(p) for p in parts]
    if len(numbers) == 2:
        days, (hours, minutes) = 0, numbers
    else:
        days, hours, minutes = numbers
        if hours >= 24:
            raise ValidationError(_INVALID_FORMAT)

    if minutes >= 60:
        raise ValidationError(_INVALID_FORMAT)

    total = (days * 24 + hours) * 60 + minutes
    if total > MAX_REMIND_BEFORE_MINUTES:
        raise ValidationError(_OUT_OF_RANGE)
    return total


def _split_minutes(total_minutes: int) -> tuple[int, int, int]:
    safe = max(0, total_minutes)
    days, remainder = divmod(safe, _MINUTES_PER_DAY)
    hours, minutes = divmod(remainder, 60)
    return days, hours, minutes


def format_remaining_duration(total_minutes: int) -> str:
    """Format minutes as e.g. "1d 2h 5m"; zero renders as "0m"."""
    days, hours, minutes = _split_minutes(total_minutes)
    parts: list[str] = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if minutes or not parts:
        parts.append(f"{minutes}m")
    return " ".join(parts)


def format_remind_before_input(total_minutes: int) -> str:
    """Inverse of parse_remind_before_input, for pre-filling edit prompts."""
    days, hours, minutes = _split_minutes(total_minutes)
    if days:
        return f"{days}:{hours:02d}:{minutes:02d}"
    return f"{hours:02d}:{minutes:02d}"
