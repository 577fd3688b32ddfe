# src/dayminder/core/dates.py

"""
Calendar utilities.

All values are naive local-clock datetimes. Weekdays are numbered
Sunday=0 .. Saturday=6 throughout the app.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

WEEKDAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


@dataclass(frozen=True, slots=True, order=True)
class CalendarDay:
    """A year/month/day identity in local time, independent of time-of-day."""

    year: int
    month: int
    day: int

    def __post_init__(self) -> None:
        # Raises ValueError for impossible dates (e.g. 2024-02-30).
        date(self.year, self.month, self.day)

    @classmethod
    def from_date(cls, value: date | datetime) -> CalendarDay:
        return cls(value.year, value.month, value.day)

    @classmethod
    def of(cls, value: CalendarDay | date | datetime) -> CalendarDay:
        if isinstance(value, CalendarDay):
            return value
        return cls.from_date(value)

    @classmethod
    def today(cls, now: datetime | None = None) -> CalendarDay:
        return cls.from_date(now or datetime.now())

    @classmethod
    def parse(cls, key: str) -> CalendarDay:
        """Parse a "YYYY-MM-DD" key."""
        return cls.from_date(date.fromisoformat(key.strip()))

    def key(self) -> str:
        return f"{self.year:04d}-{self.month:02d}-{self.day:02d}"

    def to_date(self) -> date:
        return date(self.year, self.month, self.day)

    def start(self) -> datetime:
        """Local midnight at the start of this day."""
        return datetime.combine(self.to_date(), time.min)

    def weekday(self) -> int:
        return weekday_index(self.to_date())

    def add_days(self, days: int) -> CalendarDay:
        return CalendarDay.from_date(self.to_date() + timedelta(days=days))

    def __str__(self) -> str:
        return self.key()


def weekday_index(value: date | datetime) -> int:
    """Sunday=0 .. Saturday=6 (Python's weekday() is Monday=0)."""
    return (value.weekday() + 1) % 7


def is_same_day(a: CalendarDay | date | datetime, b: CalendarDay | date | datetime) -> bool:
    return CalendarDay.of(a) == CalendarDay.of(b)


def start_of_day(value: date | datetime) -> datetime:
    return datetime(value.year, value.month, value.day)


def end_of_day(value: date | datetime) -> datetime:
    return datetime.combine(date(value.year, value.month, value.day), time.max)


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def generate_date_range(start: CalendarDay | date | datetime, days: int) -> list[CalendarDay]:
    """Return `days` consecutive calendar days beginning at `start`."""
    first = CalendarDay.of(start)
    return [first.add_days(i) for i in range(max(0, int(days)))]


def generate_month_day_numbers() -> list[int]:
    return list(range(1, 32))


def round_to_nearest_five_minutes(value: datetime) -> datetime:
    # Seconds are ignored when rounding; 58 -> next hour.
    rounded = int(round(value.minute / 5.0)) * 5
    base = value.replace(minute=0, second=0, microsecond=0)
    return base + timedelta(minutes=rounded)


# ---- display helpers (console) ----


def format_date(value: CalendarDay | date | datetime) -> str:
    day = CalendarDay.of(value)
    return f"{day.year}-{day.month:02d}-{day.day:02d} ({WEEKDAY_NAMES[day.weekday()]})"


def format_time(value: datetime) -> str:
    return value.strftime("%H:%M")


def format_date_time(value: datetime) -> str:
    return f"{value.month}/{value.day} ({WEEKDAY_NAMES[weekday_index(value)]}) {format_time(value)}"


def format_short_date(value: CalendarDay | date | datetime) -> str:
    day = CalendarDay.of(value)
    return f"{day.month}/{day.day} ({WEEKDAY_NAMES[day.weekday()]})"
