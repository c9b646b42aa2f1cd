"""
Consecutive-day streaks over a daily activity timeline.

A day succeeds when its qualifying count reaches the per-day minimum.
best_streak is the longest run anywhere in the window; current_streak is the
trailing run at the end of the timeline.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Sequence


class StreakPolicy(str, enum.Enum):
    # every day is judged, including the last one
    STRICT = "strict"
    # a failing last day is still open ("no data yet") and does not end the run
    PENDING_TODAY = "pending_today"


@dataclass(frozen=True)
class StreakResult:
    current_streak: int
    best_streak: int
    day_flags: tuple[bool, ...]

    @property
    def window_days(self) -> int:
        return len(self.day_flags)


def daily_counts(
    activity_dates: Iterable[date],
    window_start: date,
    window_end: date,
) -> list[tuple[date, int]]:
    """Zero-filled (day, count) pairs for every calendar day in the window."""
    counts: dict[date, int] = {}
    for d in activity_dates:
        if window_start <= d <= window_end:
            counts[d] = counts.get(d, 0) + 1
    days = (window_end - window_start).days + 1
    return [
        (window_start + timedelta(days=i), counts.get(window_start + timedelta(days=i), 0))
        for i in range(max(0, days))
    ]


def compute_streak(
    daily_activity: Sequence[tuple[date, int]],
    min_per_day: int = 1,
    policy: StreakPolicy = StreakPolicy.STRICT,
) -> StreakResult:
    threshold = max(1, min_per_day)
    flags = tuple(count >= threshold for _, count in daily_activity)

    best = longest_run(flags)

    tail = flags
    if policy == StreakPolicy.PENDING_TODAY and flags and not flags[-1]:
        tail = flags[:-1]
    current = 0
    for ok in reversed(tail):
        if not ok:
            break
        current += 1

    return StreakResult(current_streak=current, best_streak=best, day_flags=flags)


def longest_run(flags: Iterable[bool]) -> int:
    """Longest run of True values."""
    best = run = 0
    for ok in flags:
        run = run + 1 if ok else 0
        best = max(best, run)
    return best
