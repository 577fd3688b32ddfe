# src/dayminder/core/state.py

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..tasks.repository import TaskRepository
from ..tasks.task_scheduler import ReminderScheduler
from .dates import CalendarDay
from .ports import BlobStore


@dataclass
class AppState:
    """
    Application context, built once by the composition root and passed to
    connectors/commands (no module-level mutable state).
    """

    settings: Any

    blob_store: BlobStore
    reminders: ReminderScheduler
    repository: TaskRepository

    clock: Callable[[], datetime] = datetime.now
    notifications_permitted: bool = False
    selected_day: CalendarDay = field(default_factory=CalendarDay.today)

    reminder_loop: asyncio.Task[None] | None = None

    def now(self) -> datetime:
        return self.clock()

    def today(self) -> CalendarDay:
        return CalendarDay.today(self.clock())
