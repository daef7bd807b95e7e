"""Shared test fixtures and configuration.

Sets up fake environment variables so remindlist.config doesn't sys.exit(),
and provides an in-memory store with the repository, metadata store and
task service wired on top of it.
"""

import os

# Patch env vars BEFORE any remindlist imports
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "fake-token-for-tests")
os.environ.setdefault("STORE_PROVIDER", "memory")
os.environ.setdefault("ALLOWED_CHAT_IDS", "-100123")
os.environ.setdefault("TIMEZONE", "Asia/Tokyo")

from datetime import datetime
from itertools import count
from unittest.mock import AsyncMock
from zoneinfo import ZoneInfo

import pytest

TOKYO = ZoneInfo("Asia/Tokyo")
CHANNEL = "-100123"


def at(text: str) -> datetime:
    """Tokyo-local datetime from "YYYY-MM-DD HH:MM"."""
    return datetime.strptime(text, "%Y-%m-%d %H:%M").replace(tzinfo=TOKYO)


@pytest.fixture
def tz():
    return TOKYO


@pytest.fixture
def memory_store():
    from remindlist.adapters.memory_store import InMemoryTableStore
    return InMemoryTableStore()


@pytest.fixture
def repository(memory_store, tz):
    from remindlist.data.task_repository import TaskRepository
    return TaskRepository(memory_store, tz=tz)


@pytest.fixture
def metadata_store(memory_store, tz):
    from remindlist.data.metadata_store import MetadataStore
    return MetadataStore(memory_store, tz=tz)


@pytest.fixture
def messenger():
    """AsyncMock messenger handing out increasing message ids."""
    ids = count(1000)
    mock = AsyncMock()
    mock.send_task.side_effect = lambda *args, **kwargs: str(next(ids))
    mock.update_task.return_value = True
    mock.delete_task.return_value = True
    mock.send_notice.return_value = "1"
    return mock


@pytest.fixture
def service(repository, metadata_store, messenger, tz):
    from remindlist.core.task_service import TaskService
    ids = count(1)
    return TaskService(
        repository, metadata_store, messenger,
        tz=tz, id_factory=lambda: f"task-{next(ids)}",
    )


@pytest.fixture
def make_task(tz):
    """Factory for a valid RecurringTask with overridable fields."""
    from remindlist.data.models import create_recurring_task

    def _make(**overrides):
        fields = dict(
            id="task-1",
            title="Water plants",
            interval_days=7,
            time_of_day="09:00",
            remind_before_minutes=60,
            start_at=at("2025-12-29 09:00"),
            next_due_at=at("2026-01-05 09:00"),
            created_at=at("2025-12-29 08:00"),
            message_id="555",
        )
        fields.update(overrides)
        return create_recurring_task(**fields)

    return _make
