"""Tests for remindlist.core.schedule — pure date/time logic."""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from remindlist.core.errors import ValidationError
from remindlist.core.schedule import (
    calculate_next_due_at,
    calculate_start_at,
    normalize_time_of_day,
)

TOKYO = ZoneInfo("Asia/Tokyo")
NEW_YORK = ZoneInfo("America/New_York")


def _tokyo(y, m, d, hh=0, mm=0):
    return datetime(y, m, d, hh, mm, tzinfo=TOKYO)


# ---------------------------------------------------------------------------
# normalize_time_of_day
# ---------------------------------------------------------------------------


class TestNormalizeTimeOfDay:
    def test_pads_components(self):
        assert normalize_time_of_day("7:5") == "07:05"

    def test_already_normalized(self):
        assert normalize_time_of_day("09:30") == "09:30"

    def test_bare_hour(self):
        assert normalize_time_of_day("9") == "09:00"

    def test_strips_whitespace(self):
        assert normalize_time_of_day("  23:59 ") == "23:59"

    @pytest.mark.parametrize("raw", ["24:00", "12:60", "", "ab", "9:", "1:2:3", "-1:00"])
    def test_invalid_raises(self, raw):
        with pytest.raises(ValidationError):
            normalize_time_of_day(raw)


# ---------------------------------------------------------------------------
# calculate_start_at
# ---------------------------------------------------------------------------


class TestCalculateStartAt:
    def test_same_local_day(self):
        start = calculate_start_at(_tokyo(2026, 1, 5, 8, 0), "09:00", TOKYO)
        assert start == _tokyo(2026, 1, 5, 9, 0)

    def test_not_adjusted_when_time_already_passed(self):
        start = calculate_start_at(_tokyo(2026, 1, 5, 15, 0), "09:00", TOKYO)
        assert start == _tokyo(2026, 1, 5, 9, 0)

    def test_uses_local_calendar_day_of_utc_instant(self):
        created = datetime(2026, 1, 4, 20, 0, tzinfo=timezone.utc)  # 05:00 on Jan 5 in Tokyo
        start = calculate_start_at(created, "09:00", TOKYO)
        assert start == _tokyo(2026, 1, 5, 9, 0)


# ---------------------------------------------------------------------------
# calculate_next_due_at
# ---------------------------------------------------------------------------


class TestCalculateNextDueAt:
    def test_weekly_scenario(self):
        due = calculate_next_due_at(
            7, "09:00", _tokyo(2025, 12, 29, 9, 0), _tokyo(2026, 1, 5, 8, 30), tz=TOKYO,
        )
        assert due == _tokyo(2026, 1, 5, 9, 0)
        assert due.isoformat() == "2026-01-05T09:00:00+09:00"

    def test_anchor_in_future_returned_as_is(self):
        start = _tokyo(2026, 1, 5, 9, 0)
        assert calculate_next_due_at(3, "09:00", start, _tokyo(2026, 1, 5, 8, 0), tz=TOKYO) == start

    def test_now_equal_to_occurrence_moves_to_next(self):
        due = calculate_next_due_at(
            7, "09:00", _tokyo(2025, 12, 29, 9, 0), _tokyo(2026, 1, 5, 9, 0), tz=TOKYO,
        )
        assert due == _tokyo(2026, 1, 12, 9, 0)

    def test_far_past_start_jumps_whole_intervals(self):
        due = calculate_next_due_at(
            3, "18:00", _tokyo(2025, 1, 1, 18, 0), _tokyo(2026, 1, 5, 12, 0), tz=TOKYO,
        )
        assert due > _tokyo(2026, 1, 5, 12, 0)
        assert due - _tokyo(2026, 1, 5, 12, 0) <= timedelta(days=3)
        assert (due.date() - datetime(2025, 1, 1).date()).days % 3 == 0
        assert due.hour == 18

    def test_from_completion(self):
        due = calculate_next_due_at(
            7, "09:00", _tokyo(2025, 12, 29, 9, 0), _tokyo(2026, 1, 6, 20, 0),
            last_done_at=_tokyo(2026, 1, 6, 20, 0), tz=TOKYO,
        )
        assert due == _tokyo(2026, 1, 13, 9, 0)

    def test_old_completion_advances_past_now(self):
        due = calculate_next_due_at(
            7, "09:00", _tokyo(2025, 12, 1, 9, 0), _tokyo(2026, 1, 20, 10, 0),
            last_done_at=_tokyo(2026, 1, 1, 7, 0), tz=TOKYO,
        )
        assert due == _tokyo(2026, 1, 22, 9, 0)

    def test_leap_day(self):
        due = calculate_next_due_at(
            1, "09:00", _tokyo(2028, 2, 28, 9, 0), _tokyo(2028, 2, 28, 10, 0), tz=TOKYO,
        )
        assert due == _tokyo(2028, 2, 29, 9, 0)

    def test_keeps_wall_clock_across_dst_start(self):
        start = datetime(2026, 3, 2, 9, 0, tzinfo=NEW_YORK)      # EST
        now = datetime(2026, 3, 9, 8, 0, tzinfo=NEW_YORK)        # EDT
        due = calculate_next_due_at(7, "09:00", start, now, tz=NEW_YORK)
        assert (due.year, due.month, due.day, due.hour, due.minute) == (2026, 3, 9, 9, 0)
        assert due.utcoffset() == timedelta(hours=-4)

    def test_keeps_wall_clock_across_dst_end(self):
        start = datetime(2026, 10, 30, 9, 0, tzinfo=NEW_YORK)    # EDT
        now = datetime(2026, 11, 2, 0, 0, tzinfo=NEW_YORK)       # EST
        due = calculate_next_due_at(1, "09:00", start, now, tz=NEW_YORK)
        assert due == datetime(2026, 11, 2, 9, 0, tzinfo=NEW_YORK)
        assert due.utcoffset() == timedelta(hours=-5)

    @pytest.mark.parametrize("interval", [0, -1])
    def test_invalid_interval_raises(self, interval):
        with pytest.raises(ValidationError):
            calculate_next_due_at(
                interval, "09:00", _tokyo(2026, 1, 1, 9), _tokyo(2026, 1, 2), tz=TOKYO,
            )

    def test_strictly_after_now_and_stable(self):
        start = _tokyo(2025, 6, 15, 0, 0)
        for interval in (1, 2, 3, 7, 14, 30):
            for time_of_day in ("00:00", "09:30", "23:59"):
                for offset_hours in (0, 1, 23, 24 * 40 + 5, 24 * 400):
                    now = start + timedelta(hours=offset_hours)
                    due = calculate_next_due_at(interval, time_of_day, start, now, tz=TOKYO)
                    assert due > now
                    assert due == calculate_next_due_at(interval, time_of_day, start, now, tz=TOKYO)
