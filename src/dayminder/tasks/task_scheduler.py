# src/dayminder/tasks/task_scheduler.py

from __future__ import annotations

"""
Reminder scheduler.

An in-process implementation of the NotificationScheduler port plus a small
polling loop that:
- pops reminders whose instant has passed,
- delivers them via an injected messenger port,
- logs and drops deliveries that fail,
- tells the repository when a start alarm fires so it can plan the next round.

The repository only decides *when* reminders fire; how text reaches the user
belongs to the connector.
"""

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..core.ports import OutboundMessenger

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ScheduledReminder:
    handle: str
    at: datetime
    payload: dict[str, Any] = field(default_factory=dict)


class ReminderScheduler:
    """
    Pending reminders keyed by opaque handle.

    `delivery_enabled` mirrors the permission answer obtained at startup:
    reminders are still accepted and tracked when it is False, they are just
    never shown.
    """

    def __init__(self, *, delivery_enabled: bool = True) -> None:
        self._pending: dict[str, ScheduledReminder] = {}
        self.delivery_enabled = delivery_enabled

    async def schedule(self, at: datetime, payload: dict[str, Any]) -> str:
        handle = uuid.uuid4().hex
        self._pending[handle] = ScheduledReminder(handle=handle, at=at, payload=dict(payload))
        logger.debug("Reminder scheduled handle=%s at=%s task=%s", handle, at, payload.get("task_id"))
        return handle

    async def cancel(self, handle: str) -> None:
        if self._pending.pop(handle, None) is not None:
            logger.debug("Reminder cancelled handle=%s", handle)

    async def cancel_many(self, handles: Iterable[str]) -> None:
        for handle in list(handles):
            await self.cancel(handle)

    async def cancel_all(self) -> None:
        n = len(self._pending)
        self._pending.clear()
        logger.debug("All reminders cancelled (%d)", n)

    def pending(self) -> list[ScheduledReminder]:
        return sorted(self._pending.values(), key=lambda r: r.at)

    def pop_due(self, now: datetime, *, limit: int = 32) -> list[ScheduledReminder]:
        due = [r for r in self.pending() if r.at <= now][: max(0, int(limit))]
        for r in due:
            self._pending.pop(r.handle, None)
        return due


def build_reminder_text(payload: dict[str, Any]) -> str:
    title = str(payload.get("title") or "Reminder").strip()
    body = str(payload.get("body") or "").strip()
    return f"{title}: {body}" if body else title


async def run_reminder_loop(
        scheduler: ReminderScheduler,
        messenger: OutboundMessenger,
        *,
        interval_seconds: float = 15.0,
        batch_limit: int = 32,
        clock: Callable[[], datetime] = datetime.now,
        on_start_alarm: Callable[[str], Awaitable[None]] | None = None,
) -> None:
    """
    Simple polling loop.

    Every interval_seconds:
    - pop due reminders (at <= now)
    - if delivery is enabled, send each via messenger.send_text(...)
    - failures are logged; the reminder is not retried
    - popped start alarms are passed to on_start_alarm(task_id), delivered or not

    To stop the loop, cancel the coroutine/task.
    """
    sleep_s = max(0.01, float(interval_seconds))

    while True:
        due = scheduler.pop_due(clock(), limit=int(batch_limit))

        for reminder in due:
            if not scheduler.delivery_enabled:
                logger.debug("Delivery disabled; dropping reminder handle=%s", reminder.handle)
            else:
                await _deliver(messenger, reminder)

            task_id = reminder.payload.get("task_id")
            if on_start_alarm is not None and task_id and reminder.payload.get("is_start_alarm"):
                try:
                    await on_start_alarm(str(task_id))
                except Exception:
                    logger.exception("Re-planning reminders failed task=%s", task_id)

        await asyncio.sleep(sleep_s)


async def _deliver(messenger: OutboundMessenger, reminder: ScheduledReminder) -> None:
    try:
        await messenger.send_text(
            text=build_reminder_text(reminder.payload),
            title=reminder.payload.get("title"),
        )
        logger.info(
            "Reminder delivered handle=%s task=%s",
            reminder.handle,
            reminder.payload.get("task_id"),
        )
    except Exception:
        logger.exception("Reminder delivery failed handle=%s", reminder.handle)
