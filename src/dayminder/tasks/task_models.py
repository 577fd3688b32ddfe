# src/dayminder/tasks/task_models.py

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum, StrEnum
from typing import Any

from ..core.dates import CalendarDay

logger = logging.getLogger(__name__)

TAG_PALETTE_SIZE = 8


class RecurrenceKind(StrEnum):
    """How a task repeats."""

    NONE = "none"
    NEXT_WEEK_ONCE = "next_week_once"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"

    @classmethod
    def from_db(cls, raw: str | None) -> RecurrenceKind:
        if not raw:
            return cls.NONE
        try:
            return cls(raw)
        except ValueError:
            return cls.NONE


class ReminderUnit(StrEnum):
    MINUTES = "minutes"
    HOURS = "hours"
    DAYS = "days"

    def to_timedelta(self, value: int) -> timedelta:
        if self is ReminderUnit.MINUTES:
            return timedelta(minutes=value)
        if self is ReminderUnit.HOURS:
            return timedelta(hours=value)
        return timedelta(days=value)


@dataclass(frozen=True, slots=True)
class OffsetReminder:
    """Fire `value` units before the occurrence."""

    unit: ReminderUnit
    value: int

    def label(self) -> str:
        return f"{self.value} {self.unit.value} before"


@dataclass(frozen=True, slots=True)
class SpecificDateReminder:
    """Fire at an absolute instant."""

    at: datetime

    def label(self) -> str:
        return f"at {self.at.isoformat(sep=' ', timespec='minutes')}"


Reminder = OffsetReminder | SpecificDateReminder

SPECIFIC_DATE = "specific_date"

DEFAULT_REMINDER_OPTIONS: tuple[OffsetReminder, ...] = (
    OffsetReminder(ReminderUnit.MINUTES, 5),
    OffsetReminder(ReminderUnit.MINUTES, 10),
    OffsetReminder(ReminderUnit.MINUTES, 30),
    OffsetReminder(ReminderUnit.HOURS, 1),
    OffsetReminder(ReminderUnit.HOURS, 2),
    OffsetReminder(ReminderUnit.DAYS, 1),
    OffsetReminder(ReminderUnit.DAYS, 3),
    OffsetReminder(ReminderUnit.DAYS, 7),
)

_REMINDER_SHORTHAND = re.compile(r"^(\d+)\s*([mhd])$", re.IGNORECASE)
_SHORTHAND_UNITS = {"m": ReminderUnit.MINUTES, "h": ReminderUnit.HOURS, "d": ReminderUnit.DAYS}


def reminder_to_dict(reminder: Reminder) -> dict[str, Any]:
    if isinstance(reminder, SpecificDateReminder):
        return {"type": SPECIFIC_DATE, "at": reminder.at.isoformat()}
    return {"type": reminder.unit.value, "value": int(reminder.value)}


def reminder_from_dict(raw: dict[str, Any]) -> Reminder:
    kind = str(raw.get("type") or "")
    if kind == SPECIFIC_DATE:
        return SpecificDateReminder(at=datetime.fromisoformat(str(raw["at"])))
    return OffsetReminder(unit=ReminderUnit(kind), value=int(raw["value"]))


def _decode_reminders(raw: Any) -> tuple[Reminder, ...]:
    # A bad entry is dropped on its own so the owning task still loads.
    out: list[Reminder] = []
    for item in raw:
        try:
            out.append(reminder_from_dict(item))
        except (AttributeError, KeyError, TypeError, ValueError):
            logger.warning("Skipping malformed reminder: %r", item)
    return tuple(out)


def _decode_days(raw: Any) -> set[CalendarDay]:
    days: set[CalendarDay] = set()
    for key in raw:
        try:
            days.add(CalendarDay.parse(str(key)))
        except ValueError:
            logger.warning("Skipping malformed completion day: %r", key)
    return days


def parse_reminder(text: str) -> Reminder:
    """
    Parse console shorthand:
      "10m" / "2h" / "1d"     -> offset before the occurrence
      "2024-01-15T08:00"      -> specific date
    """
    s = text.strip()
    m = _REMINDER_SHORTHAND.match(s)
    if m:
        value = int(m.group(1))
        if value <= 0:
            raise ValueError(f"reminder offset must be positive: {text!r}")
        return OffsetReminder(unit=_SHORTHAND_UNITS[m.group(2).lower()], value=value)
    try:
        return SpecificDateReminder(at=datetime.fromisoformat(s))
    except ValueError:
        raise ValueError(f"unrecognized reminder: {text!r}") from None


def new_id() -> str:
    return uuid.uuid4().hex


@dataclass(slots=True)
class Tag:
    id: str
    name: str
    color_index: int
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "color_index": self.color_index,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Tag:
        return cls(
            id=str(raw["id"]),
            name=str(raw.get("name") or ""),
            color_index=int(raw.get("color_index") or 0),
            created_at=datetime.fromisoformat(str(raw["created_at"])),
        )


@dataclass(slots=True)
class Task:
    id: str
    title: str
    anchor: datetime
    recurrence: RecurrenceKind
    created_at: datetime

    weekly_days: frozenset[int] = frozenset()
    monthly_days: frozenset[int] = frozenset()
    tag_id: str | None = None
    start_alarm: bool = True
    reminders: tuple[Reminder, ...] = ()
    completed_days: set[CalendarDay] = field(default_factory=set)

    @property
    def is_repeating(self) -> bool:
        return self.recurrence != RecurrenceKind.NONE

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "anchor": self.anchor.isoformat(),
            "recurrence": self.recurrence.value,
            "weekly_days": sorted(self.weekly_days),
            "monthly_days": sorted(self.monthly_days),
            "tag_id": self.tag_id,
            "start_alarm": self.start_alarm,
            "reminders": [reminder_to_dict(r) for r in self.reminders],
            "completed_days": [d.key() for d in sorted(self.completed_days)],
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Task:
        return cls(
            id=str(raw["id"]),
            title=str(raw.get("title") or ""),
            anchor=datetime.fromisoformat(str(raw["anchor"])),
            recurrence=RecurrenceKind.from_db(raw.get("recurrence")),
            created_at=datetime.fromisoformat(str(raw["created_at"])),
            weekly_days=frozenset(int(d) for d in raw.get("weekly_days") or ()),
            monthly_days=frozenset(int(d) for d in raw.get("monthly_days") or ()),
            tag_id=raw.get("tag_id") or None,
            start_alarm=bool(raw.get("start_alarm", True)),
            reminders=_decode_reminders(raw.get("reminders") or ()),
            completed_days=_decode_days(raw.get("completed_days") or ()),
        )


@dataclass(frozen=True, slots=True)
class TaskDraft:
    """User input for a new task (validated before it reaches storage)."""

    title: str
    anchor: datetime
    recurrence: RecurrenceKind = RecurrenceKind.NONE
    weekly_days: frozenset[int] = frozenset()
    monthly_days: frozenset[int] = frozenset()
    tag_id: str | None = None
    start_alarm: bool = True
    reminders: tuple[Reminder, ...] = ()

    def validate(self) -> None:
        validate_task_fields(
            title=self.title,
            recurrence=self.recurrence,
            weekly_days=self.weekly_days,
            monthly_days=self.monthly_days,
        )

    def build(self, *, task_id: str, created_at: datetime) -> Task:
        weekly, monthly = _days_for_kind(self.recurrence, self.weekly_days, self.monthly_days)
        return Task(
            id=task_id,
            title=self.title.strip(),
            anchor=self.anchor,
            recurrence=self.recurrence,
            created_at=created_at,
            weekly_days=weekly,
            monthly_days=monthly,
            tag_id=self.tag_id,
            start_alarm=self.start_alarm,
            reminders=tuple(self.reminders),
        )


class _Unset(Enum):
    UNSET = "UNSET"


UNSET = _Unset.UNSET


@dataclass(frozen=True, slots=True)
class TaskUpdate:
    """Partial update; fields left as UNSET are kept."""

    title: str | _Unset = UNSET
    anchor: datetime | _Unset = UNSET
    recurrence: RecurrenceKind | _Unset = UNSET
    weekly_days: frozenset[int] | _Unset = UNSET
    monthly_days: frozenset[int] | _Unset = UNSET
    tag_id: str | None | _Unset = UNSET
    start_alarm: bool | _Unset = UNSET
    reminders: tuple[Reminder, ...] | _Unset = UNSET

    def apply(self, task: Task) -> Task:
        """Return a validated copy of `task` with the updates applied."""
        recurrence = task.recurrence if self.recurrence is UNSET else self.recurrence
        weekly = task.weekly_days if self.weekly_days is UNSET else frozenset(self.weekly_days)
        monthly = task.monthly_days if self.monthly_days is UNSET else frozenset(self.monthly_days)
        title = task.title if self.title is UNSET else self.title

        validate_task_fields(
            title=title,
            recurrence=recurrence,
            weekly_days=weekly,
            monthly_days=monthly,
        )
        weekly, monthly = _days_for_kind(recurrence, weekly, monthly)

        return Task(
            id=task.id,
            title=title.strip(),
            anchor=task.anchor if self.anchor is UNSET else self.anchor,
            recurrence=recurrence,
            created_at=task.created_at,
            weekly_days=weekly,
            monthly_days=monthly,
            tag_id=task.tag_id if self.tag_id is UNSET else self.tag_id,
            start_alarm=task.start_alarm if self.start_alarm is UNSET else self.start_alarm,
            reminders=task.reminders if self.reminders is UNSET else tuple(self.reminders),
            completed_days=set(task.completed_days),
        )


@dataclass(frozen=True, slots=True)
class TagDraft:
    name: str
    color_index: int = 0

    def validate(self) -> None:
        validate_tag_fields(name=self.name, color_index=self.color_index)


def validate_task_fields(
    *,
    title: str,
    recurrence: RecurrenceKind,
    weekly_days: frozenset[int],
    monthly_days: frozenset[int],
) -> None:
    if not title or not title.strip():
        raise ValueError("title is required")
    if recurrence == RecurrenceKind.WEEKLY:
        if not weekly_days:
            raise ValueError("weekly tasks need at least one weekday")
        if any(d < 0 or d > 6 for d in weekly_days):
            raise ValueError("weekdays must be 0 (Sunday) .. 6 (Saturday)")
    if recurrence == RecurrenceKind.MONTHLY:
        if not monthly_days:
            raise ValueError("monthly tasks need at least one day number")
        if any(d < 1 or d > 31 for d in monthly_days):
            raise ValueError("day numbers must be 1 .. 31")


def validate_tag_fields(*, name: str, color_index: int) -> None:
    if not name or not name.strip():
        raise ValueError("tag name is required")
    if not 0 <= int(color_index) < TAG_PALETTE_SIZE:
        raise ValueError(f"color index must be 0 .. {TAG_PALETTE_SIZE - 1}")


def _days_for_kind(
    recurrence: RecurrenceKind,
    weekly_days: frozenset[int],
    monthly_days: frozenset[int],
) -> tuple[frozenset[int], frozenset[int]]:
    # Only the set matching the recurrence kind is kept.
    weekly = frozenset(weekly_days) if recurrence == RecurrenceKind.WEEKLY else frozenset()
    monthly = frozenset(monthly_days) if recurrence == RecurrenceKind.MONTHLY else frozenset()
    return weekly, monthly
