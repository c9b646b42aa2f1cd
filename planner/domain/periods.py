"""
Period aggregation over calendar months.

One function serves every granularity: a single month, a quarter, YTD and the
full year are all just month sets passed to aggregate().
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from planner.domain.records import MONTHS_PER_YEAR, QuotaSettings, SalesEvent, ZERO

YEAR_MONTHS: tuple[int, ...] = tuple(range(1, MONTHS_PER_YEAR + 1))


def ratio(actual: Decimal, target: Decimal) -> Decimal:
    """actual / target; 0 when the target is not positive."""
    if target <= 0:
        return ZERO
    return actual / target


def month_set(month: int) -> tuple[int, ...]:
    return (month,)


def quarter_of(month: int) -> int:
    return (month - 1) // 3 + 1


def quarter_months(quarter: int) -> tuple[int, ...]:
    first = (quarter - 1) * 3 + 1
    return (first, first + 1, first + 2)


def ytd_months(current_month: int) -> tuple[int, ...]:
    last = max(0, min(current_month, MONTHS_PER_YEAR))
    return tuple(range(1, last + 1))


def normalize_months(months: Iterable[int]) -> tuple[int, ...]:
    """Sorted, de-duplicated month numbers; anything outside 1..12 dropped."""
    return tuple(sorted({m for m in months if 1 <= m <= MONTHS_PER_YEAR}))


@dataclass(frozen=True)
class PeriodTotals:
    months: tuple[int, ...]
    actual_subs: Decimal = ZERO
    actual_pay: Decimal = ZERO
    go_live_count: int = 0
    terminal_count: int = 0
    # commission-relevant subset (drives achievement and provision)
    commission_subs: Decimal = ZERO
    commission_pay: Decimal = ZERO
    commission_go_lives: int = 0
    commission_terminals: int = 0
    target_subs: Decimal = ZERO
    target_pay: Decimal = ZERO
    target_go_lives: Decimal = ZERO

    @property
    def subs_achievement(self) -> Decimal:
        return ratio(self.commission_subs, self.target_subs)

    @property
    def pay_achievement(self) -> Decimal:
        return ratio(self.commission_pay, self.target_pay)

    @property
    def terminal_penetration(self) -> Decimal:
        if self.go_live_count == 0:
            return ZERO
        return Decimal(self.terminal_count) / Decimal(self.go_live_count)

    @property
    def commission_terminal_penetration(self) -> Decimal:
        if self.commission_go_lives == 0:
            return ZERO
        return Decimal(self.commission_terminals) / Decimal(self.commission_go_lives)


def aggregate(
    events: Iterable[SalesEvent],
    months: Iterable[int],
    settings: QuotaSettings | None = None,
) -> PeriodTotals:
    """
    Sum go-live figures and targets over a set of months.

    Duplicate months are counted once. `settings=None` means zero targets.
    Events are not filtered by year; callers pass one year's snapshot.
    """
    wanted = normalize_months(months)
    month_lookup = set(wanted)

    actual_subs = actual_pay = ZERO
    commission_subs = commission_pay = ZERO
    go_lives = terminals = commission_go_lives = commission_terminals = 0

    for ev in events:
        if ev.month not in month_lookup:
            continue
        go_lives += 1
        actual_subs += ev.subs_arr
        actual_pay += ev.pay_arr_value
        if ev.has_terminal:
            terminals += 1
        if ev.commission_relevant:
            commission_go_lives += 1
            commission_subs += ev.subs_arr
            commission_pay += ev.pay_arr_value
            if ev.has_terminal:
                commission_terminals += 1

    target_subs = target_pay = target_go_lives = ZERO
    if settings is not None:
        for m in wanted:
            target_subs += settings.subs_target(m)
            target_pay += settings.pay_target(m)
            target_go_lives += settings.go_live_target(m)

    return PeriodTotals(
        months=wanted,
        actual_subs=actual_subs,
        actual_pay=actual_pay,
        go_live_count=go_lives,
        terminal_count=terminals,
        commission_subs=commission_subs,
        commission_pay=commission_pay,
        commission_go_lives=commission_go_lives,
        commission_terminals=commission_terminals,
        target_subs=target_subs,
        target_pay=target_pay,
        target_go_lives=target_go_lives,
    )


def aggregate_by_user(
    events: Iterable[SalesEvent],
    months: Iterable[int],
    settings_by_user: dict[int, QuotaSettings] | None = None,
) -> dict[int, PeriodTotals]:
    """aggregate() per user id; users appear if they have events or settings."""
    settings_by_user = settings_by_user or {}
    grouped: dict[int, list[SalesEvent]] = {uid: [] for uid in settings_by_user}
    for ev in events:
        grouped.setdefault(ev.user_id, []).append(ev)
    months = normalize_months(months)
    return {
        uid: aggregate(user_events, months, settings_by_user.get(uid))
        for uid, user_events in sorted(grouped.items())
    }
