# src/dayminder/tasks/capability.py

"""
Capability gate: free vs premium entitlements.

Pure functions of the subscription flag and current counts. The limits are
configuration constants; premium lifts every limit.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class LimitedFeature(StrEnum):
    RECURRENCE = "recurrence"
    TAG = "tag"
    MONTHLY_DATES = "monthly_dates"


@dataclass(frozen=True, slots=True)
class Limits:
    """None means unlimited."""

    max_repeating_tasks: int | None
    max_tags: int | None
    max_monthly_days: int | None


FREE_MAX_REPEATING_TASKS = 1
FREE_MAX_TAGS = 3
FREE_MAX_MONTHLY_DAYS = 1

FREE_LIMITS = Limits(
    max_repeating_tasks=FREE_MAX_REPEATING_TASKS,
    max_tags=FREE_MAX_TAGS,
    max_monthly_days=FREE_MAX_MONTHLY_DAYS,
)
PREMIUM_LIMITS = Limits(max_repeating_tasks=None, max_tags=None, max_monthly_days=None)


def limits_for(is_premium: bool) -> Limits:
    return PREMIUM_LIMITS if is_premium else FREE_LIMITS


def can_add_recurring_task(
    is_premium: bool,
    current_recurring_count: int,
    limit: int = FREE_MAX_REPEATING_TASKS,
) -> bool:
    return is_premium or current_recurring_count < limit


def can_add_tag(
    is_premium: bool,
    current_tag_count: int,
    limit: int = FREE_MAX_TAGS,
) -> bool:
    return is_premium or current_tag_count < limit


def can_select_monthly_days(
    is_premium: bool,
    selected_count: int,
    limit: int = FREE_MAX_MONTHLY_DAYS,
) -> bool:
    """Unlike the counters above, this checks a selection size (<=, not <)."""
    return is_premium or selected_count <= limit
