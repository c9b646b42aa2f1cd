"""
Commission calculator: monthly results, YTD / quarter / year summaries.

Provision model:
  subs provision      = commission-relevant subs ARR × subs tier rate
  terminal provision  = commission-relevant terminals × terminal rate
                        (bonus rate once terminal penetration reaches the
                        configured threshold, base rate otherwise)
  M0 provision        = subs + terminal           (paid in the go-live month)
  M3 provision        = pay ARR × pay tier rate   (attributed to the go-live
                                                   month, paid three months later)

Tier rates are resolved on each month's own achievement ratio. Period totals
re-derive achievement from summed actual and target instead of averaging
monthly ratios.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Sequence

from planner.domain.periods import (
    YEAR_MONTHS,
    aggregate,
    quarter_months,
    ratio,
    ytd_months,
)
from planner.domain.records import MONTH_NAMES, QuotaSettings, SalesEvent, ZERO
from planner.domain.tiers import resolve_rate, tier_label


@dataclass(frozen=True)
class MonthlyResult:
    month: int
    month_name: str
    go_lives_count: int
    go_lives_target: Decimal
    terminals_count: int
    terminal_penetration: Decimal
    subs_target: Decimal
    subs_actual: Decimal
    subs_achievement: Decimal
    subs_rate: Decimal
    subs_tier_label: str
    subs_provision: Decimal
    terminal_rate: Decimal
    terminal_provision: Decimal
    pay_target: Decimal
    pay_actual: Decimal
    pay_achievement: Decimal
    pay_rate: Decimal
    pay_tier_label: str
    pay_provision: Decimal
    m0_provision: Decimal
    m3_provision: Decimal
    total_provision: Decimal


@dataclass(frozen=True)
class PeriodSummary:
    months: tuple[MonthlyResult, ...]
    total_go_lives: int
    total_go_lives_target: Decimal
    total_terminals: int
    total_subs_target: Decimal
    total_subs_actual: Decimal
    total_subs_achievement: Decimal
    total_pay_target: Decimal
    total_pay_actual: Decimal
    total_pay_achievement: Decimal
    total_subs_provision: Decimal
    total_terminal_provision: Decimal
    total_pay_provision: Decimal
    total_m0_provision: Decimal
    total_m3_provision: Decimal
    total_provision: Decimal

    @property
    def month_numbers(self) -> tuple[int, ...]:
        return tuple(r.month for r in self.months)


def terminal_rate(commission_terminals: int, commission_go_lives: int, settings: QuotaSettings) -> Decimal:
    """Bonus rate at or above the penetration threshold, base rate otherwise."""
    if commission_go_lives == 0:
        return settings.terminal_base
    penetration = Decimal(commission_terminals) / Decimal(commission_go_lives)
    if penetration >= settings.terminal_penetration_threshold:
        return settings.terminal_bonus
    return settings.terminal_base


def calculate_monthly_result(
    month: int,
    events: Iterable[SalesEvent],
    settings: QuotaSettings,
) -> MonthlyResult:
    totals = aggregate(events, (month,), settings)

    subs_achievement = totals.subs_achievement
    subs_rate = resolve_rate(settings.subs_tiers, subs_achievement)
    subs_provision = totals.commission_subs * subs_rate

    t_rate = terminal_rate(totals.commission_terminals, totals.commission_go_lives, settings)
    terminal_provision = totals.commission_terminals * t_rate

    pay_achievement = totals.pay_achievement
    pay_rate = resolve_rate(settings.pay_tiers, pay_achievement)
    pay_provision = totals.commission_pay * pay_rate

    m0 = subs_provision + terminal_provision
    m3 = pay_provision

    return MonthlyResult(
        month=month,
        month_name=MONTH_NAMES[month - 1],
        go_lives_count=totals.go_live_count,
        go_lives_target=totals.target_go_lives,
        terminals_count=totals.terminal_count,
        terminal_penetration=totals.terminal_penetration,
        subs_target=totals.target_subs,
        subs_actual=totals.actual_subs,
        subs_achievement=subs_achievement,
        subs_rate=subs_rate,
        subs_tier_label=tier_label(settings.subs_tiers, subs_achievement),
        subs_provision=subs_provision,
        terminal_rate=t_rate,
        terminal_provision=terminal_provision,
        pay_target=totals.target_pay,
        pay_actual=totals.actual_pay,
        pay_achievement=pay_achievement,
        pay_rate=pay_rate,
        pay_tier_label=tier_label(settings.pay_tiers, pay_achievement),
        pay_provision=pay_provision,
        m0_provision=m0,
        m3_provision=m3,
        total_provision=m0 + m3,
    )


def summarize(results: Sequence[MonthlyResult]) -> PeriodSummary:
    """Totals over a run of monthly results; shared by every period view."""

    def _sum(attr: str):
        return sum((getattr(r, attr) for r in results), ZERO)

    subs_target = _sum("subs_target")
    subs_actual = _sum("subs_actual")
    pay_target = _sum("pay_target")
    pay_actual = _sum("pay_actual")
    m0 = _sum("m0_provision")
    m3 = _sum("m3_provision")

    return PeriodSummary(
        months=tuple(results),
        total_go_lives=sum(r.go_lives_count for r in results),
        total_go_lives_target=_sum("go_lives_target"),
        total_terminals=sum(r.terminals_count for r in results),
        total_subs_target=subs_target,
        total_subs_actual=subs_actual,
        total_subs_achievement=ratio(subs_actual, subs_target),
        total_pay_target=pay_target,
        total_pay_actual=pay_actual,
        total_pay_achievement=ratio(pay_actual, pay_target),
        total_subs_provision=_sum("subs_provision"),
        total_terminal_provision=_sum("terminal_provision"),
        total_pay_provision=_sum("pay_provision"),
        total_m0_provision=m0,
        total_m3_provision=m3,
        total_provision=m0 + m3,
    )


def calculate_period_summary(
    events: Iterable[SalesEvent],
    settings: QuotaSettings,
    months: Iterable[int],
) -> PeriodSummary:
    events = list(events)
    return summarize([calculate_monthly_result(m, events, settings) for m in months])


def calculate_year_summary(events: Iterable[SalesEvent], settings: QuotaSettings) -> PeriodSummary:
    return calculate_period_summary(events, settings, YEAR_MONTHS)


def calculate_ytd_summary(
    events: Iterable[SalesEvent],
    settings: QuotaSettings,
    current_month: int,
) -> PeriodSummary:
    return calculate_period_summary(events, settings, ytd_months(current_month))


def calculate_quarter_summary(
    events: Iterable[SalesEvent],
    settings: QuotaSettings,
    quarter: int,
) -> PeriodSummary:
    return calculate_period_summary(events, settings, quarter_months(quarter))


# ── Combined (all users) view ────────────────────────────────────────────────


def calculate_combined_year_summary(
    events_by_user: dict[int, Sequence[SalesEvent]],
    settings_by_user: dict[int, QuotaSettings],
    year: int | None = None,
) -> PeriodSummary:
    """
    GESAMT view: one aggregation pass over all users' events against settings
    whose targets are summed element-wise.

    Actuals, targets and counts equal the sum of the per-user summaries.
    Rates and provisions are resolved on the pooled achievement.
    """
    combined_settings = QuotaSettings.combine(
        [settings_by_user[uid] for uid in sorted(settings_by_user)], year=year
    )
    all_events = [ev for uid in sorted(events_by_user) for ev in events_by_user[uid]]
    return calculate_year_summary(all_events, combined_settings)


# ── OTE projections ─────────────────────────────────────────────────────────

OTE_SCENARIOS: tuple[tuple[str, Decimal, Decimal], ...] = (
    ("< 50%", Decimal("0.25"), Decimal("0")),
    ("50% - 70%", Decimal("0.60"), Decimal("0.5")),
    ("70% - 85%", Decimal("0.775"), Decimal("0.7")),
    ("85% - 100%", Decimal("0.925"), Decimal("0.85")),
    ("100% - 110%", Decimal("1.05"), Decimal("1.0")),
    ("110% - 120%", Decimal("1.15"), Decimal("1.1")),
    ("120%+", Decimal("1.25"), Decimal("1.2")),
)
OTE_BASELINE_SCENARIO = "100% - 110%"
OTE_TOLERANCE = Decimal("0.10")


@dataclass(frozen=True)
class OteProjection:
    scenario: str
    factor: Decimal
    expected_subs_arr: Decimal
    expected_pay_arr: Decimal
    expected_total_arr: Decimal
    subs_provision: Decimal
    terminal_provision: Decimal
    pay_provision: Decimal
    total_provision: Decimal
    ote_match: bool


@dataclass(frozen=True)
class OteCheck:
    valid: bool
    expected_provision: Decimal
    deviation_percent: Decimal


def _rate_for_band(tiers, band_min: Decimal) -> Decimal:
    for tier in tiers:
        if tier.min == band_min:
            return tier.rate
    return ZERO


def calculate_ote_projections(settings: QuotaSettings) -> list[OteProjection]:
    """Expected annual provision if every month lands in a given achievement band."""
    yearly_subs = sum(settings.monthly_subs_targets, ZERO)
    yearly_pay = sum(settings.monthly_pay_targets, ZERO)
    yearly_go_lives = sum(settings.monthly_go_live_targets, ZERO)
    # assumes the terminal penetration threshold is met
    terminal_provision = yearly_go_lives * settings.terminal_bonus

    low = settings.ote * (1 - OTE_TOLERANCE)
    high = settings.ote * (1 + OTE_TOLERANCE)

    projections = []
    for scenario, factor, band_min in OTE_SCENARIOS:
        subs_arr = yearly_subs * factor
        pay_arr = yearly_pay * factor
        subs_provision = subs_arr * _rate_for_band(settings.subs_tiers, band_min)
        pay_provision = pay_arr * _rate_for_band(settings.pay_tiers, band_min)
        total = subs_provision + terminal_provision + pay_provision
        projections.append(OteProjection(
            scenario=scenario,
            factor=factor,
            expected_subs_arr=subs_arr,
            expected_pay_arr=pay_arr,
            expected_total_arr=subs_arr + pay_arr,
            subs_provision=subs_provision,
            terminal_provision=terminal_provision,
            pay_provision=pay_provision,
            total_provision=total,
            ote_match=settings.ote > 0 and low <= total <= high,
        ))
    return projections


def validate_ote(settings: QuotaSettings) -> OteCheck:
    """Compare the 100-110% scenario against the configured OTE (±10%)."""
    baseline = next(
        p for p in calculate_ote_projections(settings) if p.scenario == OTE_BASELINE_SCENARIO
    )
    if settings.ote <= 0:
        return OteCheck(valid=False, expected_provision=baseline.total_provision, deviation_percent=ZERO)
    deviation = (baseline.total_provision - settings.ote) / settings.ote * 100
    return OteCheck(
        valid=abs(deviation) <= OTE_TOLERANCE * 100,
        expected_provision=baseline.total_provision,
        deviation_percent=deviation,
    )
