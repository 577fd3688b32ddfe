# src/dayminder/tasks/ledger.py

"""Per-task completion ledger keyed by calendar day (time-of-day ignored)."""

from __future__ import annotations

from datetime import date, datetime

from ..core.dates import CalendarDay
from .task_models import Task


def toggle(task: Task, day: CalendarDay | date | datetime) -> bool:
    """Flip completion for `day`; returns True if the day is now completed."""
    key = CalendarDay.of(day)
    if key in task.completed_days:
        task.completed_days.discard(key)
        return False
    task.completed_days.add(key)
    return True


def is_completed(task: Task, day: CalendarDay | date | datetime) -> bool:
    return CalendarDay.of(day) in task.completed_days


def completed_days(task: Task) -> list[CalendarDay]:
    return sorted(task.completed_days)
