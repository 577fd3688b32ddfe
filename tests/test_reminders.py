# tests/test_reminders.py

from __future__ import annotations

from datetime import datetime

from dayminder.tasks.reminders import (
    REMINDER_TITLE,
    START_ALARM_TITLE,
    plan_reminders,
    reminder_instant,
)
from dayminder.tasks.task_models import (
    OffsetReminder,
    RecurrenceKind,
    ReminderUnit,
    SpecificDateReminder,
    Task,
)


def _task(**kwargs) -> Task:
    base = dict(
        id="t1",
        title="dentist",
        anchor=datetime(2024, 1, 17, 9, 0),
        recurrence=RecurrenceKind.NONE,
        created_at=datetime(2024, 1, 1),
    )
    base.update(kwargs)
    return Task(**base)


def test_reminder_instant_offsets_and_specific_dates() -> None:
    occ = datetime(2024, 1, 17, 9, 0)
    assert reminder_instant(occ, OffsetReminder(ReminderUnit.MINUTES, 10)) == datetime(2024, 1, 17, 8, 50)
    assert reminder_instant(occ, OffsetReminder(ReminderUnit.HOURS, 2)) == datetime(2024, 1, 17, 7, 0)
    assert reminder_instant(occ, OffsetReminder(ReminderUnit.DAYS, 1)) == datetime(2024, 1, 16, 9, 0)
    fixed = datetime(2024, 1, 10, 12, 0)
    assert reminder_instant(occ, SpecificDateReminder(fixed)) == fixed


def test_plan_includes_start_alarm_and_future_reminders() -> None:
    task = _task(
        reminders=(
            OffsetReminder(ReminderUnit.MINUTES, 30),
            OffsetReminder(ReminderUnit.DAYS, 3),  # lands before now
        )
    )
    planned = plan_reminders(task, datetime(2024, 1, 15, 8, 0))

    assert [(p.at, p.title, p.is_start_alarm) for p in planned] == [
        (datetime(2024, 1, 17, 9, 0), START_ALARM_TITLE, True),
        (datetime(2024, 1, 17, 8, 30), REMINDER_TITLE, False),
    ]
    assert planned[0].payload() == {
        "title": START_ALARM_TITLE,
        "body": "dentist",
        "task_id": "t1",
        "is_start_alarm": True,
    }


def test_plan_without_start_alarm() -> None:
    task = _task(start_alarm=False, reminders=(OffsetReminder(ReminderUnit.HOURS, 1),))
    planned = plan_reminders(task, datetime(2024, 1, 15, 8, 0))
    assert [p.at for p in planned] == [datetime(2024, 1, 17, 8, 0)]


def test_past_one_off_plans_nothing() -> None:
    task = _task(reminders=(OffsetReminder(ReminderUnit.MINUTES, 5),))
    assert plan_reminders(task, datetime(2024, 2, 1)) == []


def test_lapsed_next_week_once_plans_nothing() -> None:
    task = _task(recurrence=RecurrenceKind.NEXT_WEEK_ONCE)
    assert plan_reminders(task, datetime(2024, 1, 18)) == []


def test_weekly_plans_for_next_occurrence() -> None:
    task = _task(
        recurrence=RecurrenceKind.WEEKLY,
        weekly_days=frozenset({1}),
        reminders=(OffsetReminder(ReminderUnit.MINUTES, 15),),
    )
    planned = plan_reminders(task, datetime(2024, 1, 15, 10, 0))
    assert [p.at for p in planned] == [datetime(2024, 1, 22, 9, 0), datetime(2024, 1, 22, 8, 45)]
