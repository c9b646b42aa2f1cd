"""
Challenge progress: evaluates a challenge definition against go-lives.

Challenge types:
  team        : one pooled value, user_progress holds each user's contribution
  individual  : every user competes alone, the leaderboard ranks user totals
  streak      : consecutive days with at least `streak_min_per_day` go-lives

The window is [start_date, end_date] on go_live_date. Once as_of is past
end_date the challenge is frozen: the same snapshot always yields the same
progress, as_of only moves days_remaining (which stays at 0).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Callable, Iterable, Sequence

from planner.domain.periods import ratio
from planner.domain.records import (
    PREMIUM_SUBS_MONTHLY,
    Challenge,
    QuotaSettings,
    SalesEvent,
    ZERO,
)
from planner.domain.streak import StreakPolicy, compute_streak, daily_counts

ONE = Decimal("1")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class ChallengeProgress:
    challenge_id: int
    current_value: Decimal
    target_value: Decimal
    progress_percent: Decimal
    is_completed: bool
    days_remaining: int
    is_frozen: bool
    user_progress: dict[int, Decimal] = field(default_factory=dict)
    leaderboard: tuple[tuple[int, Decimal], ...] = ()
    completed_by: tuple[int, ...] = ()
    streak_days: tuple[bool, ...] = ()
    current_streak: int = 0
    best_streak: int = 0


def _metric_value(metric: str, premium_threshold: Decimal) -> Callable[[SalesEvent], Decimal]:
    if metric == "subs_arr":
        return lambda ev: ev.subs_arr
    if metric == "pay_arr":
        return lambda ev: ev.pay_arr_value
    if metric == "total_arr":
        return lambda ev: ev.total_arr
    if metric == "terminals":
        return lambda ev: ONE if ev.has_terminal else ZERO
    if metric == "premium_go_lives":
        return lambda ev: ONE if ev.is_premium(premium_threshold) else ZERO
    # go_lives, daily_go_live
    return lambda ev: ONE


def events_in_window(events: Iterable[SalesEvent], start: date, end: date) -> list[SalesEvent]:
    return [ev for ev in events if start <= ev.go_live_date <= end]


def window_months(start: date, end: date, year: int) -> list[int]:
    """Calendar months of `year` touched by [start, end]."""
    months = []
    y, m = start.year, start.month
    while (y, m) <= (end.year, end.month):
        if y == year:
            months.append(m)
        m += 1
        if m > 12:
            m = 1
            y += 1
    return months


def rank(user_progress: dict[int, Decimal]) -> tuple[tuple[int, Decimal], ...]:
    """Highest value first, ties broken by user id."""
    return tuple(sorted(user_progress.items(), key=lambda kv: (-kv[1], kv[0])))


def days_remaining(end_date: date, as_of: date) -> int:
    return max(0, (end_date - as_of).days)


def progress_percent(current: Decimal, target: Decimal) -> Decimal:
    return ratio(current, target) * HUNDRED


def window_subs_target(start: date, end: date, plans: Iterable[QuotaSettings]) -> Decimal:
    """Subs target of the months [start, end] touches, over one user's yearly plans."""
    target = ZERO
    for settings in plans:
        target += sum((settings.subs_target(m) for m in window_months(start, end, settings.year)), ZERO)
    return target


def _achievement_by_user(
    window_events: list[SalesEvent],
    challenge: Challenge,
    settings_by_user: dict[int, Sequence[QuotaSettings]],
) -> dict[int, Decimal]:
    result: dict[int, Decimal] = {}
    for uid, plans in sorted(settings_by_user.items()):
        target = window_subs_target(challenge.start_date, challenge.end_date, plans)
        if target <= 0:
            continue
        actual = sum((ev.subs_arr for ev in window_events if ev.user_id == uid), ZERO)
        result[uid] = actual / target * HUNDRED
    return result


def evaluate(
    challenge: Challenge,
    events: Iterable[SalesEvent],
    as_of: date,
    settings_by_user: dict[int, Sequence[QuotaSettings]] | None = None,
    streak_policy: StreakPolicy = StreakPolicy.STRICT,
    premium_threshold: Decimal = PREMIUM_SUBS_MONTHLY,
) -> ChallengeProgress:
    """
    settings_by_user maps each user to their yearly plans; the achievement
    metric needs one plan per calendar year the window touches.
    """
    window_events = events_in_window(events, challenge.start_date, challenge.end_date)
    target = challenge.target_value
    remaining = days_remaining(challenge.end_date, as_of)
    frozen = as_of > challenge.end_date

    if challenge.is_streak:
        return _evaluate_streak(challenge, window_events, as_of, streak_policy, remaining, frozen)

    if challenge.metric == "achievement":
        user_progress = _achievement_by_user(window_events, challenge, settings_by_user or {})
        pooled = (
            sum(user_progress.values(), ZERO) / len(user_progress)
            if user_progress else ZERO
        )
    else:
        value_of = _metric_value(challenge.metric, premium_threshold)
        user_progress = {}
        for ev in window_events:
            value = value_of(ev)
            if value:
                user_progress[ev.user_id] = user_progress.get(ev.user_id, ZERO) + value
        pooled = sum(user_progress.values(), ZERO)

    leaderboard = rank(user_progress)

    if challenge.type == "individual":
        current = leaderboard[0][1] if leaderboard else ZERO
        completed_by = tuple(uid for uid, value in leaderboard if target > 0 and value >= target)
        is_completed = bool(completed_by)
    else:
        current = pooled
        completed_by = ()
        is_completed = current >= target

    return ChallengeProgress(
        challenge_id=challenge.id,
        current_value=current,
        target_value=target,
        progress_percent=progress_percent(current, target),
        is_completed=is_completed,
        days_remaining=remaining,
        is_frozen=frozen,
        user_progress=user_progress,
        leaderboard=leaderboard,
        completed_by=completed_by,
    )


def _evaluate_streak(
    challenge: Challenge,
    window_events: list[SalesEvent],
    as_of: date,
    policy: StreakPolicy,
    remaining: int,
    frozen: bool,
) -> ChallengeProgress:
    last_day = min(challenge.end_date, as_of)
    timeline = daily_counts((ev.go_live_date for ev in window_events), challenge.start_date, last_day)
    streak = compute_streak(timeline, challenge.streak_min_per_day, policy)

    user_progress: dict[int, Decimal] = {}
    for ev in window_events:
        if ev.go_live_date <= last_day:
            user_progress[ev.user_id] = user_progress.get(ev.user_id, ZERO) + ONE

    best = Decimal(streak.best_streak)
    return ChallengeProgress(
        challenge_id=challenge.id,
        current_value=best,
        target_value=challenge.target_value,
        progress_percent=progress_percent(best, challenge.target_value),
        is_completed=best >= challenge.target_value,
        days_remaining=remaining,
        is_frozen=frozen,
        user_progress=user_progress,
        leaderboard=rank(user_progress),
        streak_days=streak.day_flags,
        current_streak=streak.current_streak,
        best_streak=streak.best_streak,
    )


def evaluate_for_user(
    challenge: Challenge,
    events: Iterable[SalesEvent],
    user_id: int,
    as_of: date,
    settings_by_user: dict[int, Sequence[QuotaSettings]] | None = None,
    streak_policy: StreakPolicy = StreakPolicy.STRICT,
    premium_threshold: Decimal = PREMIUM_SUBS_MONTHLY,
) -> ChallengeProgress:
    """Evaluate against one user's go-lives only (individual challenge view)."""
    own_settings = {}
    if settings_by_user and user_id in settings_by_user:
        own_settings = {user_id: settings_by_user[user_id]}
    return evaluate(
        challenge,
        [ev for ev in events if ev.user_id == user_id],
        as_of,
        settings_by_user=own_settings,
        streak_policy=streak_policy,
        premium_threshold=premium_threshold,
    )


def evaluate_all(
    challenges: Iterable[Challenge],
    events: Iterable[SalesEvent],
    as_of: date,
    settings_by_user: dict[int, Sequence[QuotaSettings]] | None = None,
    streak_policy: StreakPolicy = StreakPolicy.STRICT,
    premium_threshold: Decimal = PREMIUM_SUBS_MONTHLY,
) -> list[ChallengeProgress]:
    """Progress for every active challenge, in the given order."""
    events = list(events)
    return [
        evaluate(c, events, as_of, settings_by_user, streak_policy, premium_threshold)
        for c in challenges
        if c.is_active
    ]
