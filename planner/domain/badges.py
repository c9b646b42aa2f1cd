"""
Badge rules, evaluated over one user's go-lives for a plan year.

Only months up to the as_of month count (all twelve for a past year, none for
a future one). Comparative badges (monthly_king, rocket_start, money_maker)
need the other users' go-lives and are skipped without them.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Sequence

from planner.domain.periods import YEAR_MONTHS, aggregate, ratio
from planner.domain.records import QuotaSettings, SalesEvent, ZERO
from planner.domain.streak import longest_run

RARITIES = ("common", "rare", "epic", "legendary")


@dataclass(frozen=True)
class Badge:
    id: str
    icon: str
    name: str
    rarity: str


@dataclass(frozen=True)
class EarnedBadge:
    badge: Badge
    month: int | None = None
    details: str = ""


ALL_BADGES: dict[str, Badge] = {
    b.id: b
    for b in (
        Badge("first_blood", "🎯", "First Blood", "common"),
        Badge("hot_streak", "🔥", "Hot Streak", "epic"),
        Badge("rocket_start", "🚀", "Rocket Start", "rare"),
        Badge("diamond_closer", "💎", "Diamond Closer", "epic"),
        Badge("sharpshooter", "🎯", "Sharpshooter", "legendary"),
        Badge("monthly_king", "👑", "Monthly King", "epic"),
        Badge("speed_demon", "⚡", "Speed Demon", "rare"),
        Badge("money_maker", "💰", "Money Maker", "epic"),
        Badge("ote_champion", "🏆", "OTE Champion", "legendary"),
        Badge("rising_star", "🌟", "Rising Star", "rare"),
        Badge("terminal_titan", "🤝", "Terminal Titan", "rare"),
        Badge("centurion", "💯", "Centurion", "legendary"),
    )
}

HOT_STREAK_MONTHS = 3
SHARPSHOOTER_MONTHS = 5
DIAMOND_ACHIEVEMENT = Decimal("1.2")
SPEED_DEMON_GO_LIVES = 15
TITAN_MIN_GO_LIVES = 5
TITAN_PENETRATION = Decimal("0.8")
CENTURION_GO_LIVES = 100
RISING_STAR_IMPROVEMENT = Decimal("0.3")


@dataclass(frozen=True)
class _MonthPerf:
    month: int
    subs_target: Decimal
    subs_actual: Decimal
    go_lives: int
    terminal_penetration: Decimal

    @property
    def achievement(self) -> Decimal:
        return ratio(self.subs_actual, self.subs_target)


def last_counted_month(year: int, as_of: date) -> int:
    if year < as_of.year:
        return 12
    if year > as_of.year:
        return 0
    return as_of.month


def _monthly_subs(events: Sequence[SalesEvent], month: int) -> Decimal:
    return sum((ev.subs_arr for ev in events if ev.month == month), ZERO)


def _earn(badge_id: str, month: int | None = None, details: str = "") -> EarnedBadge:
    return EarnedBadge(badge=ALL_BADGES[badge_id], month=month, details=details)


def calculate_badges(
    user_id: int,
    settings: QuotaSettings,
    events: Iterable[SalesEvent],
    as_of: date,
    all_users: dict[int, Sequence[SalesEvent]] | None = None,
) -> list[EarnedBadge]:
    events = [ev for ev in events if ev.user_id == user_id]
    upto = last_counted_month(settings.year, as_of)
    perf = []
    for m in YEAR_MONTHS[:upto]:
        totals = aggregate(events, (m,), settings)
        perf.append(_MonthPerf(
            month=m,
            subs_target=totals.target_subs,
            subs_actual=totals.actual_subs,
            go_lives=totals.go_live_count,
            terminal_penetration=totals.terminal_penetration,
        ))

    earned: list[EarnedBadge] = []

    if events:
        earned.append(_earn("first_blood", details=f"{len(events)} go-lives total"))

    on_target = [p.achievement >= 1 for p in perf]
    hot = longest_run(on_target)
    if hot >= HOT_STREAK_MONTHS:
        earned.append(_earn("hot_streak", details=f"{hot} months streak"))

    diamond = next((p for p in perf if p.achievement >= DIAMOND_ACHIEVEMENT), None)
    if diamond:
        earned.append(_earn(
            "diamond_closer", diamond.month, f"{round(diamond.achievement * 100)}% reached"
        ))

    # months without a target neither extend nor break the run
    sharp = longest_run(p.achievement >= 1 for p in perf if p.subs_target > 0)
    if sharp >= SHARPSHOOTER_MONTHS:
        earned.append(_earn("sharpshooter", details=f"{sharp} months on target"))

    busiest = max(perf, key=lambda p: p.go_lives, default=None)
    if busiest and busiest.go_lives >= SPEED_DEMON_GO_LIVES:
        earned.append(_earn("speed_demon", busiest.month, f"{busiest.go_lives} go-lives"))

    titan = next(
        (p for p in perf if p.go_lives >= TITAN_MIN_GO_LIVES and p.terminal_penetration >= TITAN_PENETRATION),
        None,
    )
    if titan:
        earned.append(_earn(
            "terminal_titan", titan.month, f"{round(titan.terminal_penetration * 100)}% penetration"
        ))

    if len(events) >= CENTURION_GO_LIVES:
        earned.append(_earn("centurion", details=f"{len(events)} go-lives total"))

    for prev, curr in zip(perf, perf[1:]):
        if prev.subs_actual > 0 and curr.subs_actual > 0:
            improvement = (curr.subs_actual - prev.subs_actual) / prev.subs_actual
            if improvement >= RISING_STAR_IMPROVEMENT:
                earned.append(_earn("rising_star", curr.month, f"+{round(improvement * 100)}% improvement"))
                break

    ytd_subs = sum((p.subs_actual for p in perf), ZERO)
    ytd_target = sum((p.subs_target for p in perf), ZERO)
    if ytd_target > 0 and ytd_subs >= ytd_target:
        earned.append(_earn("ote_champion", details=f"{round(ytd_subs / ytd_target * 100)}% OTE"))

    others = {uid: evs for uid, evs in (all_users or {}).items() if uid != user_id}
    if others:
        earned.extend(_comparative_badges(perf, events, others, upto))

    return earned


def _comparative_badges(
    perf: list[_MonthPerf],
    events: list[SalesEvent],
    others: dict[int, Sequence[SalesEvent]],
    upto: int,
) -> list[EarnedBadge]:
    earned = []

    for p in perf:
        if p.subs_actual == 0:
            continue
        if all(_monthly_subs(evs, p.month) <= p.subs_actual for evs in others.values()):
            earned.append(_earn("monthly_king", p.month, "#1 of the month"))
            break

    jan_subs = _monthly_subs(events, 1)
    if upto >= 1 and jan_subs > 0 and all(_monthly_subs(evs, 1) <= jan_subs for evs in others.values()):
        earned.append(_earn("rocket_start", 1, "Best January"))

    best = max(perf, key=lambda p: p.subs_actual, default=None)
    if best and best.subs_actual > 0:
        beaten = any(
            _monthly_subs(evs, m) > best.subs_actual
            for evs in others.values()
            for m in YEAR_MONTHS[:upto]
        )
        if not beaten:
            earned.append(_earn("money_maker", best.month, "Top month"))

    return earned


def new_badges(previous: Iterable[EarnedBadge], current: Iterable[EarnedBadge]) -> list[EarnedBadge]:
    """Badges in `current` whose id was not earned before."""
    seen = {b.badge.id for b in previous}
    return [b for b in current if b.badge.id not in seen]
