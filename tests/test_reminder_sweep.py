"""Tests for remindlist.core.reminder_sweep — periodic alert job."""

import asyncio
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, patch
from zoneinfo import ZoneInfo

import pytest

from remindlist.core.errors import MessagingError, StoreUnavailable
from remindlist.core.reminder_sweep import ReminderSweep
from remindlist.core.results import ErrorKind, OperationResult
from remindlist.data.models import InventoryItem

TOKYO = ZoneInfo("Asia/Tokyo")
CHANNEL = "-100123"


def _tokyo(y, m, d, hh=0, mm=0):
    return datetime(y, m, d, hh, mm, tzinfo=TOKYO)


DUE = _tokyo(2026, 1, 5, 9, 0)


@pytest.fixture
def sweep(repository, metadata_store, messenger, tz):
    return ReminderSweep(repository, metadata_store, messenger, tz=tz)


async def _seed(repository, metadata_store, *tasks, channel=CHANNEL, **metadata):
    await metadata_store.create_channel_metadata(channel, DUE, **metadata)
    for task in tasks:
        await repository.append_task(channel, task)


def _notices(messenger):
    return [c.args[1] for c in messenger.send_notice.await_args_list]


class TestPreReminder:
    @pytest.mark.asyncio
    async def test_sent_once_and_persisted(self, sweep, repository, metadata_store, messenger, make_task):
        await _seed(repository, metadata_store, make_task(next_due_at=DUE, remind_before_minutes=60))

        report = await sweep.run_once(_tokyo(2026, 1, 5, 8, 30))

        assert report.pre_reminders == 1
        assert len(_notices(messenger)) == 1
        assert "Water plants" in _notices(messenger)[0]
        assert "30m" in _notices(messenger)[0]
        stored = (await repository.fetch_tasks(CHANNEL))[0]
        assert stored.last_remind_due_at == DUE
        messenger.update_task.assert_awaited_once()

        again = await sweep.run_once(_tokyo(2026, 1, 5, 8, 45))
        assert again.pre_reminders == 0
        assert len(_notices(messenger)) == 1

    @pytest.mark.asyncio
    async def test_shortage_notice_comes_first(self, sweep, repository, metadata_store, messenger, make_task):
        task = make_task(inventory_items=[InventoryItem(name="Filter", stock=0, consume=1)])
        await _seed(repository, metadata_store, task)

        report = await sweep.run_once(_tokyo(2026, 1, 5, 8, 30))

        notices = _notices(messenger)
        assert report.shortage_notices == 1
        assert notices[0].startswith("Low stock")
        assert notices[1].startswith("Reminder")

    @pytest.mark.asyncio
    async def test_failed_notice_is_retried_next_sweep(self, sweep, repository, metadata_store, messenger, make_task):
        await _seed(repository, metadata_store, make_task())
        messenger.send_notice.side_effect = MessagingError("flood control")

        report = await sweep.run_once(_tokyo(2026, 1, 5, 8, 30))

        assert report.pre_reminders == 0
        assert (await repository.fetch_tasks(CHANNEL))[0].last_remind_due_at is None

    @pytest.mark.asyncio
    async def test_notice_goes_to_configured_thread(self, sweep, repository, metadata_store, messenger, make_task):
        await _seed(repository, metadata_store, make_task(), remind_notice_thread_id="77")
        await sweep.run_once(_tokyo(2026, 1, 5, 8, 30))
        assert messenger.send_notice.await_args.kwargs["thread_id"] == "77"


class TestOverdue:
    @pytest.mark.asyncio
    async def test_once_per_day_with_count(self, sweep, repository, metadata_store, messenger, make_task):
        await _seed(repository, metadata_store, make_task(next_due_at=DUE, overdue_notify_limit=2))

        first = await sweep.run_once(_tokyo(2026, 1, 5, 10, 0))
        same_day = await sweep.run_once(_tokyo(2026, 1, 5, 18, 0))
        next_day = await sweep.run_once(_tokyo(2026, 1, 6, 10, 0))
        capped = await sweep.run_once(_tokyo(2026, 1, 7, 10, 0))

        assert [first.overdue_alerts, same_day.overdue_alerts, next_day.overdue_alerts, capped.overdue_alerts] == [1, 0, 1, 0]
        stored = (await repository.fetch_tasks(CHANNEL))[0]
        assert stored.overdue_notify_count == 2
        assert stored.last_overdue_notified_at == _tokyo(2026, 1, 6, 10, 0)
        assert _notices(messenger)[0].startswith("Overdue")

    @pytest.mark.asyncio
    async def test_paused_and_unlinked_tasks_skipped(self, sweep, repository, metadata_store, messenger, make_task):
        await _seed(
            repository, metadata_store,
            make_task(id="t1", is_paused=True),
            make_task(id="t2", message_id=None),
        )
        report = await sweep.run_once(_tokyo(2026, 1, 5, 10, 0))
        assert report.overdue_alerts == 0
        messenger.send_notice.assert_not_called()
        messenger.update_task.assert_not_called()


class TestRefreshAndFailures:
    @pytest.mark.asyncio
    async def test_hourly_refresh(self, sweep, repository, metadata_store, messenger, make_task):
        await _seed(repository, metadata_store, make_task(next_due_at=DUE))

        on_the_hour = await sweep.run_once(_tokyo(2026, 1, 5, 6, 0))
        past_the_hour = await sweep.run_once(_tokyo(2026, 1, 5, 6, 1))

        assert on_the_hour.refreshed == 1
        assert past_the_hour.refreshed == 0
        messenger.send_notice.assert_not_called()

    @pytest.mark.asyncio
    async def test_hourly_refresh_without_sweep_on_minute_zero(
        self, sweep, repository, metadata_store, messenger, make_task,
    ):
        await _seed(repository, metadata_store, make_task(next_due_at=DUE))

        reports = [
            await sweep.run_once(_tokyo(2026, 1, 5, 5, 30)),
            await sweep.run_once(_tokyo(2026, 1, 5, 5, 45)),
            await sweep.run_once(_tokyo(2026, 1, 5, 6, 2)),
            await sweep.run_once(_tokyo(2026, 1, 5, 6, 17)),
        ]

        assert [r.refreshed for r in reports] == [1, 0, 1, 0]

    @pytest.mark.asyncio
    async def test_overlapping_run_is_skipped(self, sweep, repository, metadata_store, messenger, make_task):
        await _seed(repository, metadata_store, make_task())
        release = asyncio.Event()

        async def slow_notice(*args, **kwargs):
            await release.wait()
            return "1"

        messenger.send_notice.side_effect = slow_notice
        first = asyncio.create_task(sweep.run_once(_tokyo(2026, 1, 5, 8, 30)))
        await asyncio.sleep(0)
        while not messenger.send_notice.await_count:
            await asyncio.sleep(0)

        second = await sweep.run_once(_tokyo(2026, 1, 5, 8, 31))
        release.set()
        report = await first

        assert second.skipped is True
        assert report.pre_reminders == 1
        assert (await sweep.run_once(_tokyo(2026, 1, 5, 8, 32))).skipped is False

    @pytest.mark.asyncio
    async def test_failed_persist_aborts_channel(self, sweep, repository, metadata_store, messenger, make_task):
        await _seed(
            repository, metadata_store,
            make_task(id="t1", message_id="1"),
            make_task(id="t2", message_id="2"),
        )
        failure = OperationResult.fail(ErrorKind.STORE_UNAVAILABLE, "down")

        with patch.object(repository, "update_task", AsyncMock(return_value=failure)):
            report = await sweep.run_once(_tokyo(2026, 1, 5, 10, 0))

        assert report.failed_channels == [CHANNEL]
        assert messenger.send_notice.await_count == 1

    @pytest.mark.asyncio
    async def test_one_channel_failure_does_not_stop_others(
        self, sweep, repository, metadata_store, messenger, make_task,
    ):
        await _seed(repository, metadata_store, make_task(), channel="broken")
        await _seed(repository, metadata_store, make_task(), channel="healthy")
        original = repository.fetch_tasks

        async def fetch(channel_id):
            if channel_id == "broken":
                raise StoreUnavailable("quota exceeded")
            return await original(channel_id)

        with patch.object(repository, "fetch_tasks", side_effect=fetch):
            report = await sweep.run_once(_tokyo(2026, 1, 5, 10, 0))

        assert report.channels == 2
        assert report.failed_channels == ["broken"]
        assert report.overdue_alerts == 1

    @pytest.mark.asyncio
    async def test_no_channels(self, sweep):
        report = await sweep.run_once(_tokyo(2026, 1, 5, 10, 0) + timedelta(days=1))
        assert report.channels == 0
