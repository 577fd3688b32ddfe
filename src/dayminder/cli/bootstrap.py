# src/dayminder/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (blob store/reminders/repository),
- owns the startup/shutdown lifecycle of that state.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from datetime import datetime

from ..config import get_settings
from ..core.dates import CalendarDay
from ..core.ports import OutboundMessenger, PermissionAuthority
from ..core.state import AppState
from ..storage.blob_store import SqliteBlobStore
from ..tasks.repository import TaskRepository
from ..tasks.task_scheduler import ReminderScheduler, run_reminder_loop

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None, clock: Callable[[], datetime] = datetime.now) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    blob_store = SqliteBlobStore(settings.db_path)
    reminders = ReminderScheduler()
    repository = TaskRepository(blob_store, reminders, clock=clock)

    return AppState(
        settings=settings,
        blob_store=blob_store,
        reminders=reminders,
        repository=repository,
        clock=clock,
        selected_day=CalendarDay.today(clock()),
    )


async def startup(
    state: AppState,
    permission: PermissionAuthority,
    messenger: OutboundMessenger | None = None,
) -> None:
    """
    Load persisted data, ask for notification permission once, and start the
    reminder loop when a messenger is given.

    A denied permission never blocks task creation; reminders are just not shown.
    """
    await state.repository.load()

    try:
        granted = bool(await permission.request_permission())
    except Exception:
        logger.exception("Permission request failed; reminders will not be shown.")
        granted = False

    state.notifications_permitted = granted
    state.reminders.delivery_enabled = granted
    logger.info("Notification permission %s", "granted" if granted else "denied")

    if messenger is not None:
        interval = float(getattr(state.settings, "reminder_poll_seconds", 15.0))
        state.reminder_loop = asyncio.create_task(
            run_reminder_loop(
                state.reminders,
                messenger,
                interval_seconds=interval,
                clock=state.clock,
                on_start_alarm=state.repository.refresh_reminders,
            )
        )


async def shutdown(state: AppState) -> None:
    """Best-effort teardown (no exceptions should escape)."""
    loop_task = state.reminder_loop
    state.reminder_loop = None
    if loop_task is not None:
        loop_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await loop_task

    try:
        await state.reminders.cancel_all()
    except Exception:
        logger.debug("Cancelling pending reminders failed.", exc_info=True)

    close = getattr(state.blob_store, "close", None)
    if callable(close):
        try:
            close()
        except Exception:
            logger.debug("Blob store close failed.", exc_info=True)
