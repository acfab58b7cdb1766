"""Streak calculation for habit records."""
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from typing import Optional

from habitstore.models import GoodHabit, Habit
from habitstore.settings import TRACKING_DAYS


@dataclass(frozen=True)
class StreakResult:
    current_streak: int
    longest_streak: int


def current_day_of_month() -> int:
    return date.today().day


def is_completed(record: Habit, day: int) -> bool:
    """Return ``True`` when ``day`` (1-based) meets the habit's completion rule.

    Good habits need the logged value to reach ``goal``; bad habits need it to
    stay at or below ``limit``.  An unlogged day never counts.
    """

    index = day - 1
    if index < 0 or index >= len(record.daily_tracking):
        return False
    value = record.daily_tracking[index]
    if value is None:
        return False
    if isinstance(record, GoodHabit):
        return value >= record.goal
    return value <= record.limit


def recompute_streaks(record: Habit, today: Optional[int] = None) -> StreakResult:
    """Scan days ``1..today`` and return the current and longest streak.

    ``longest_streak`` starts from the value already stored on ``record`` so it
    never decreases.  Days after ``today`` are ignored.
    """

    if today is None:
        today = current_day_of_month()
    today = max(0, min(today, TRACKING_DAYS))

    longest = max(0, record.longest_streak)
    running = 0
    for day in range(1, today + 1):
        if is_completed(record, day):
            running += 1
            longest = max(longest, running)
        else:
            running = 0
    return StreakResult(current_streak=running, longest_streak=longest)


def with_recomputed_streaks(record: Habit, today: Optional[int] = None) -> Habit:
    """Return a copy of ``record`` carrying freshly computed streak counters."""

    result = recompute_streaks(record, today)
    return replace(
        record,
        current_streak=result.current_streak,
        longest_streak=result.longest_streak,
    )


__all__ = [
    "StreakResult",
    "current_day_of_month",
    "is_completed",
    "recompute_streaks",
    "with_recomputed_streaks",
]
