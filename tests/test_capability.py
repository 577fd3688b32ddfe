# tests/test_capability.py

from __future__ import annotations

from dayminder.tasks.capability import (
    FREE_LIMITS,
    PREMIUM_LIMITS,
    can_add_recurring_task,
    can_add_tag,
    can_select_monthly_days,
    limits_for,
)


def test_tag_limit_is_strict_less_than() -> None:
    assert can_add_tag(False, 3, 3) is False
    assert can_add_tag(False, 2, 3) is True
    assert can_add_tag(True, 1000, 3) is True
    assert can_add_tag(False, 2) is True
    assert can_add_tag(False, 3) is False


def test_recurring_limit_defaults_to_one() -> None:
    assert can_add_recurring_task(False, 0) is True
    assert can_add_recurring_task(False, 1) is False
    assert can_add_recurring_task(True, 50) is True


def test_monthly_selection_allows_exactly_the_limit() -> None:
    assert can_select_monthly_days(False, 1) is True
    assert can_select_monthly_days(False, 2) is False
    assert can_select_monthly_days(False, 3, limit=3) is True
    assert can_select_monthly_days(True, 31) is True


def test_limits_for_tier() -> None:
    assert limits_for(False) is FREE_LIMITS
    assert limits_for(True) is PREMIUM_LIMITS
    assert FREE_LIMITS.max_tags == 3
    assert PREMIUM_LIMITS.max_repeating_tasks is None
