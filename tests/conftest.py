# tests/conftest.py

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from types import SimpleNamespace

import pytest

from dayminder.core.dates import CalendarDay
from dayminder.core.state import AppState
from dayminder.tasks.repository import TaskRepository
from dayminder.tasks.task_scheduler import ReminderScheduler

from .fakes import FakeBlobStore, FakeClock, FakeNotifier

# Monday morning.
START = datetime(2024, 1, 15, 8, 0)


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and core modules.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="dayminder-test",
        log_level="DEBUG",
        console_enabled=False,
        notifications_enabled=True,
        reminder_poll_seconds=0.01,
        week_view_days=7,
        data_dir=tmp_path,
        db_path=tmp_path / "dayminder.sqlite3",
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(START)


@pytest.fixture()
def blob_store() -> FakeBlobStore:
    return FakeBlobStore()


@pytest.fixture()
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture()
def repo(blob_store: FakeBlobStore, notifier: FakeNotifier, clock: FakeClock) -> TaskRepository:
    return TaskRepository(blob_store, notifier, clock=clock.now)


@pytest.fixture()
def state(settings: SimpleNamespace, blob_store: FakeBlobStore, clock: FakeClock) -> AppState:
    """
    AppState wired with an in-memory blob store and the real reminder scheduler.
    """
    reminders = ReminderScheduler()
    return AppState(
        settings=settings,
        blob_store=blob_store,
        reminders=reminders,
        repository=TaskRepository(blob_store, reminders, clock=clock.now),
        clock=clock.now,
        notifications_permitted=True,
        selected_day=CalendarDay.of(START),
    )
