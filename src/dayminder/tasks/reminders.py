# src/dayminder/tasks/reminders.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from .recurrence import next_occurrence
from .task_models import OffsetReminder, Reminder, SpecificDateReminder, Task

START_ALARM_TITLE = "Task starting"
REMINDER_TITLE = "Reminder"


@dataclass(frozen=True, slots=True)
class PlannedReminder:
    """One notification the scheduler should fire."""

    at: datetime
    title: str
    body: str
    task_id: str
    is_start_alarm: bool = False

    def payload(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "body": self.body,
            "task_id": self.task_id,
            "is_start_alarm": self.is_start_alarm,
        }


def reminder_instant(occurrence: datetime, reminder: Reminder) -> datetime:
    if isinstance(reminder, SpecificDateReminder):
        return reminder.at
    if isinstance(reminder, OffsetReminder):
        return occurrence - reminder.unit.to_timedelta(reminder.value)
    raise TypeError(f"unsupported reminder: {reminder!r}")


def plan_reminders(task: Task, now: datetime) -> list[PlannedReminder]:
    """
    Reminder instants for the task's next occurrence.

    Only instants strictly after `now` are returned; past-due ones are skipped.
    """
    occurrence = next_occurrence(task, now)
    if occurrence is None:
        return []

    planned: list[PlannedReminder] = []

    if task.start_alarm and occurrence > now:
        planned.append(
            PlannedReminder(
                at=occurrence,
                title=START_ALARM_TITLE,
                body=task.title,
                task_id=task.id,
                is_start_alarm=True,
            )
        )

    for reminder in task.reminders:
        at = reminder_instant(occurrence, reminder)
        if at <= now:
            continue
        planned.append(PlannedReminder(at=at, title=REMINDER_TITLE, body=task.title, task_id=task.id))

    return planned
