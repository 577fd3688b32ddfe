# src/dayminder/tasks/recurrence.py

"""
Recurrence resolver.

Given a task's recurrence rule and a reference instant, compute the next
concrete occurrence, or decide whether the task falls on a calendar day.

Rules (weekdays are Sunday=0 .. Saturday=6):
- NONE:           the anchor itself, even when it is in the past
- NEXT_WEEK_ONCE: the anchor while it is at/after `now`, then None forever
- WEEKLY:         earliest selected weekday strictly after `now`
- MONTHLY:        earliest selected day number strictly after `now`;
                  day numbers a month doesn't have are skipped (no clamping)
- YEARLY:         the anchor moved into `now`'s year, or the next one
                  (a Feb 29 anchor lands on Mar 1 in common years)

Repeating kinds only use the anchor's hour and minute.
"""

from __future__ import annotations

import calendar
import logging
from collections.abc import Iterable
from datetime import date, datetime, timedelta

from dateutil.relativedelta import relativedelta

from ..core.dates import CalendarDay, days_in_month, weekday_index
from .task_models import RecurrenceKind, Task

logger = logging.getLogger(__name__)

# How many months past the current one the monthly search looks at.
# Every day number 1..31 occurs at least once in any 3-month window.
MONTHLY_SEARCH_MONTHS = 12


def next_occurrence(task: Task, now: datetime) -> datetime | None:
    """Next instant at/after `now` at which `task` is due (None if it never is)."""
    kind = task.recurrence

    if kind == RecurrenceKind.NONE:
        return task.anchor

    if kind == RecurrenceKind.NEXT_WEEK_ONCE:
        return None if task.anchor < now else task.anchor

    if kind == RecurrenceKind.WEEKLY:
        return _next_weekly(task, now)

    if kind == RecurrenceKind.MONTHLY:
        return _next_monthly(task, now)

    if kind == RecurrenceKind.YEARLY:
        return _next_yearly(task, now)

    logger.warning("Unknown recurrence kind %r for task %s", kind, task.id)
    return task.anchor


def _next_weekly(task: Task, now: datetime) -> datetime | None:
    selected = {d for d in task.weekly_days if 0 <= d <= 6}
    if not selected:
        return None

    hour, minute = task.anchor.hour, task.anchor.minute
    today = now.date()

    for i in range(7):
        day = today + timedelta(days=i)
        if weekday_index(day) not in selected:
            continue
        candidate = datetime(day.year, day.month, day.day, hour, minute)
        if candidate > now:
            return candidate

    # Nothing left this week: first selected weekday of the following week.
    week_start = today - timedelta(days=weekday_index(today))
    day = week_start + timedelta(days=7 + min(selected))
    return datetime(day.year, day.month, day.day, hour, minute)


def _next_monthly(task: Task, now: datetime) -> datetime | None:
    days = sorted(d for d in task.monthly_days if 1 <= d <= 31)
    if not days:
        return None

    hour, minute = task.anchor.hour, task.anchor.minute
    month_start = date(now.year, now.month, 1)

    for offset in range(MONTHLY_SEARCH_MONTHS + 1):
        first = month_start + relativedelta(months=offset)
        length = days_in_month(first.year, first.month)
        for d in days:
            if d > length:
                continue
            candidate = datetime(first.year, first.month, d, hour, minute)
            if candidate > now:
                return candidate

    logger.warning("Monthly task %s has no schedulable day numbers: %s", task.id, days)
    return None


def _anchor_in_year(anchor: datetime, year: int) -> datetime:
    # Feb 29 rolls over to Mar 1 in common years (relativedelta alone would clamp to Feb 28).
    if (anchor.month, anchor.day) == (2, 29) and not calendar.isleap(year):
        return anchor + relativedelta(year=year, month=3, day=1)
    return anchor + relativedelta(year=year)


def _next_yearly(task: Task, now: datetime) -> datetime:
    anchor = task.anchor.replace(second=0, microsecond=0)
    candidate = _anchor_in_year(anchor, now.year)
    if candidate < now:
        candidate = _anchor_in_year(anchor, now.year + 1)
    return candidate


def _pinned_now(day: CalendarDay) -> datetime:
    # Just before local midnight so an occurrence at 00:00 still counts as "after now".
    return day.start() - timedelta(microseconds=1)


def occurrence_on(task: Task, day: CalendarDay | date | datetime) -> datetime | None:
    """The task's occurrence instant on `day`, or None when it isn't due that day."""
    target = CalendarDay.of(day)
    occurrence = next_occurrence(task, _pinned_now(target))
    if occurrence is None or CalendarDay.of(occurrence) != target:
        return None
    return occurrence


def is_due_on(task: Task, day: CalendarDay | date | datetime) -> bool:
    """True iff resolving with `now` pinned to `day` lands on `day`."""
    return occurrence_on(task, day) is not None


def is_next_occurrence_on(task: Task, day: CalendarDay | date | datetime, now: datetime) -> bool:
    """True iff the task's next occurrence relative to `now` falls on `day`."""
    occurrence = next_occurrence(task, now)
    return occurrence is not None and CalendarDay.of(occurrence) == CalendarDay.of(day)


def tasks_due_on(tasks: Iterable[Task], day: CalendarDay | date | datetime) -> list[Task]:
    """Tasks occurring on `day`, ordered by occurrence time then title."""
    matched: list[tuple[datetime, str, Task]] = []
    for task in tasks:
        occurrence = occurrence_on(task, day)
        if occurrence is not None:
            matched.append((occurrence, task.title, task))
    matched.sort(key=lambda item: (item[0], item[1]))
    return [task for _, _, task in matched]


def upcoming(tasks: Iterable[Task], now: datetime, *, limit: int = 20) -> list[tuple[Task, datetime]]:
    """Next occurrence of every task that still lies ahead, soonest first."""
    out: list[tuple[Task, datetime]] = []
    for task in tasks:
        occurrence = next_occurrence(task, now)
        if occurrence is None or occurrence < now:
            continue
        out.append((task, occurrence))
    out.sort(key=lambda item: (item[1], item[0].title))
    return out[: max(0, int(limit))]
