"""
Tests for consecutive-day streaks
"""
from datetime import date, timedelta

from planner.domain.streak import StreakPolicy, compute_streak, daily_counts, longest_run

START = date(2026, 3, 1)


def _timeline(counts):
    return [(START + timedelta(days=i), c) for i, c in enumerate(counts)]


def test_daily_counts_zero_fills_window():
    dates = [START, START, START + timedelta(days=2), START + timedelta(days=10)]
    timeline = daily_counts(dates, START, START + timedelta(days=3))
    assert [c for _, c in timeline] == [2, 0, 1, 0]
    assert timeline[0][0] == START


def test_daily_counts_empty_window():
    assert daily_counts([START], START, START - timedelta(days=1)) == []


def test_best_and_current_streak():
    result = compute_streak(_timeline([1, 1, 0, 1, 1, 1]))
    assert result.best_streak == 3
    assert result.current_streak == 3
    assert result.window_days == 6


def test_min_per_day_threshold():
    result = compute_streak(_timeline([2, 1, 2, 2]), min_per_day=2)
    assert result.day_flags == (True, False, True, True)
    assert result.best_streak == 2


def test_strict_policy_breaks_on_failing_last_day():
    result = compute_streak(_timeline([1, 1, 1, 0]), policy=StreakPolicy.STRICT)
    assert result.current_streak == 0
    assert result.best_streak == 3


def test_pending_today_keeps_run_alive():
    """A failing last day counts as 'no data yet'."""
    result = compute_streak(_timeline([1, 1, 1, 0]), policy=StreakPolicy.PENDING_TODAY)
    assert result.current_streak == 3
    assert result.best_streak == 3


def test_pending_today_only_forgives_last_day():
    result = compute_streak(_timeline([1, 1, 0, 0]), policy=StreakPolicy.PENDING_TODAY)
    assert result.current_streak == 0


def test_streak_bounds():
    for counts in ([], [0], [1], [1, 0, 1], [1] * 10, [0, 1, 1, 0, 1]):
        for policy in StreakPolicy:
            result = compute_streak(_timeline(counts), policy=policy)
            assert 0 <= result.current_streak <= result.best_streak <= len(counts)


def test_longest_run():
    assert longest_run([]) == 0
    assert longest_run([True, True, False, True]) == 2
