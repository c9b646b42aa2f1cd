"""
Pipeline forecast: probability-weighted ARR, funnel, cycle times, buckets.

Stage model:
  sql → demo_booked → demo_completed → sent_quote → close_won | close_lost
  nurture is a side-state reachable from any active stage; close_won and
  close_lost are final.

ARR of a deal = (expected subs monthly + expected pay monthly) × 12.
Only the four active stages feed the pipeline value and the forecast.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Iterable, Sequence

from planner.domain.records import (
    MONTHS_PER_YEAR,
    Opportunity,
    PipelineSettings,
    StageChange,
    ZERO,
)

SQL = "sql"
DEMO_BOOKED = "demo_booked"
DEMO_COMPLETED = "demo_completed"
SENT_QUOTE = "sent_quote"
CLOSE_WON = "close_won"
CLOSE_LOST = "close_lost"
NURTURE = "nurture"

ACTIVE_STAGES: tuple[str, ...] = (SQL, DEMO_BOOKED, DEMO_COMPLETED, SENT_QUOTE)
FUNNEL_STAGES: tuple[str, ...] = ACTIVE_STAGES + (CLOSE_WON,)
TERMINAL_STAGES = frozenset({CLOSE_WON, CLOSE_LOST})
ALL_STAGES = frozenset(FUNNEL_STAGES + (CLOSE_LOST, NURTURE))

DEFAULT_STAGE_PROBABILITY: dict[str, Decimal] = {
    SQL: Decimal("0.15"),
    DEMO_BOOKED: Decimal("0.25"),
    DEMO_COMPLETED: Decimal("0.50"),
    SENT_QUOTE: Decimal("0.75"),
    CLOSE_WON: Decimal("1.0"),
    CLOSE_LOST: Decimal("0"),
    NURTURE: Decimal("0.05"),
}

UNKNOWN_LOST_REASON = "Unknown"
DEFAULT_STUCK_DAYS = 7
DEFAULT_FORECAST_HORIZON = 6


class StageTransitionError(ValueError):
    pass


# ── Value helpers ────────────────────────────────────────────────────────────


def calculate_arr(monthly: Decimal | None) -> Decimal:
    return (monthly or ZERO) * MONTHS_PER_YEAR


def deal_arr(opp: Opportunity) -> Decimal:
    return calculate_arr(opp.expected_subs_monthly) + calculate_arr(opp.expected_pay_monthly)


def default_probability(stage: str, settings: PipelineSettings | None = None) -> Decimal:
    if settings is not None:
        configured = {
            SQL: settings.sql_probability,
            DEMO_BOOKED: settings.demo_booked_probability,
            DEMO_COMPLETED: settings.demo_completed_probability,
            SENT_QUOTE: settings.sent_quote_probability,
        }
        if stage in configured:
            return configured[stage]
    return DEFAULT_STAGE_PROBABILITY.get(stage, ZERO)


def effective_probability(opp: Opportunity, settings: PipelineSettings | None = None) -> Decimal:
    if opp.probability is not None:
        return opp.probability
    return default_probability(opp.stage, settings)


def weighted_value(opp: Opportunity, settings: PipelineSettings | None = None) -> Decimal:
    return deal_arr(opp) * effective_probability(opp, settings)


def is_active(stage: str) -> bool:
    return stage in ACTIVE_STAGES


def is_overdue(opp: Opportunity, as_of: date) -> bool:
    if opp.expected_close_date is None or opp.stage in TERMINAL_STAGES:
        return False
    return opp.expected_close_date < as_of


def is_stuck(opp: Opportunity, as_of: datetime, stuck_days: int = DEFAULT_STUCK_DAYS) -> bool:
    if opp.stage in TERMINAL_STAGES:
        return False
    return as_of - opp.stage_changed_at > timedelta(days=stuck_days)


def expected_close_date(
    stage: str,
    settings: PipelineSettings | None = None,
    from_date: date | None = None,
) -> date | None:
    """Close date implied by the configured stage durations still ahead."""
    if from_date is None:
        return None
    s = settings or PipelineSettings()
    remaining = {
        SQL: s.sql_to_demo_booked_days + s.demo_booked_to_completed_days
        + s.demo_completed_to_quote_days + s.quote_to_close_days,
        DEMO_BOOKED: s.demo_booked_to_completed_days + s.demo_completed_to_quote_days
        + s.quote_to_close_days,
        DEMO_COMPLETED: s.demo_completed_to_quote_days + s.quote_to_close_days,
        SENT_QUOTE: s.quote_to_close_days,
    }.get(stage, 0)
    return from_date + timedelta(days=remaining)


# ── Stage transitions ────────────────────────────────────────────────────────


def can_transition(from_stage: str, to_stage: str) -> bool:
    if from_stage not in ALL_STAGES or to_stage not in ALL_STAGES:
        return False
    if from_stage in TERMINAL_STAGES or from_stage == to_stage:
        return False
    if to_stage in TERMINAL_STAGES:
        return True
    if from_stage == NURTURE:
        return to_stage in ACTIVE_STAGES
    if to_stage == NURTURE:
        return True
    return ACTIVE_STAGES.index(to_stage) > ACTIVE_STAGES.index(from_stage)


def validate_transition(from_stage: str, to_stage: str) -> None:
    if not can_transition(from_stage, to_stage):
        raise StageTransitionError(f"Stage change {from_stage} -> {to_stage} is not allowed")


# ── Analytics ───────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class StageBucket:
    count: int = 0
    value: Decimal = ZERO


@dataclass(frozen=True)
class FunnelStep:
    stage: str
    count: int
    value: Decimal
    conversion_rate: float


@dataclass(frozen=True)
class CycleTimes:
    created_to_demo: float | None
    demo_to_quote: float | None
    quote_to_close: float | None
    total: float | None
    sample_size: int


@dataclass(frozen=True)
class ForecastBucket:
    year: int
    month: int
    count: int
    total_arr: Decimal
    weighted_arr: Decimal

    @property
    def key(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


@dataclass(frozen=True)
class LostReasonRow:
    reason: str
    count: int
    lost_arr: Decimal


@dataclass(frozen=True)
class WinLoss:
    won: StageBucket
    lost: StageBucket
    active: StageBucket
    win_rate: float


@dataclass(frozen=True)
class ForecastResult:
    total_pipeline_value: Decimal
    weighted_pipeline_value: Decimal
    active_deals: int
    overdue_deals: int
    stuck_deals: int
    by_stage: dict[str, StageBucket] = field(default_factory=dict)
    funnel: tuple[FunnelStep, ...] = ()
    lost_count: int = 0
    cycle_times: CycleTimes | None = None
    monthly_forecast: tuple[ForecastBucket, ...] = ()
    lost_reasons: tuple[LostReasonRow, ...] = ()
    win_loss: WinLoss | None = None


def filter_by_date(
    opps: Iterable[Opportunity],
    date_from: date | None = None,
    date_to: date | None = None,
    mode: str = "created",
) -> list[Opportunity]:
    """
    Date-range filter.

    mode "created": by creation date. mode "closed": closed deals by their
    close date, everything else by creation date. Both bounds inclusive.
    """
    result = []
    for opp in opps:
        relevant = opp.created_at.date()
        if mode == "closed" and opp.stage in TERMINAL_STAGES and opp.expected_close_date:
            relevant = opp.expected_close_date
        if date_from and relevant < date_from:
            continue
        if date_to and relevant > date_to:
            continue
        result.append(opp)
    return result


def conversion_funnel(
    opps: Sequence[Opportunity],
    history: Iterable[StageChange] = (),
) -> tuple[list[FunnelStep], int]:
    """
    Deals that ever reached each funnel stage, plus the closed-lost count.

    Reaching a stage (now or in the history) implies every earlier stage, so
    counts never increase along FUNNEL_STAGES. Conversion rates are relative to
    the first stage.
    """
    ids = {o.id for o in opps}
    reached: dict[int, int] = {}
    lost: set[int] = set()

    for opp in opps:
        if opp.stage in FUNNEL_STAGES:
            reached[opp.id] = FUNNEL_STAGES.index(opp.stage)
        if opp.stage == CLOSE_LOST:
            lost.add(opp.id)
    for change in history:
        if change.opportunity_id not in ids:
            continue
        if change.to_stage in FUNNEL_STAGES:
            idx = FUNNEL_STAGES.index(change.to_stage)
            reached[change.opportunity_id] = max(idx, reached.get(change.opportunity_id, -1))
        elif change.to_stage == CLOSE_LOST:
            lost.add(change.opportunity_id)

    counts = [sum(1 for idx in reached.values() if idx >= i) for i in range(len(FUNNEL_STAGES))]
    first = counts[0]
    steps = []
    for i, stage in enumerate(FUNNEL_STAGES):
        value = sum((deal_arr(o) for o in opps if o.stage == stage), ZERO)
        rate = round(counts[i] / first * 100, 1) if first > 0 else 0.0
        steps.append(FunnelStep(stage=stage, count=counts[i], value=value, conversion_rate=rate))
    return steps, len(lost)


def _days(start: date, end: date) -> int:
    return abs((end - start).days)


def _avg(values: list[int]) -> float | None:
    if not values:
        return None
    return round(sum(values) / len(values), 1)


def cycle_times(opps: Iterable[Opportunity]) -> CycleTimes:
    """Average stage-to-stage durations over won deals; empty sets are None."""
    to_demo, to_quote, to_close, total = [], [], [], []
    won = [o for o in opps if o.stage == CLOSE_WON]
    for opp in won:
        created = opp.created_at.date()
        closed = opp.stage_changed_at.date()
        if opp.demo_booked_date:
            to_demo.append(_days(created, opp.demo_booked_date))
        if opp.demo_completed_date and opp.quote_sent_date:
            to_quote.append(_days(opp.demo_completed_date, opp.quote_sent_date))
        if opp.quote_sent_date:
            to_close.append(_days(opp.quote_sent_date, closed))
        total.append(_days(created, closed))
    return CycleTimes(
        created_to_demo=_avg(to_demo),
        demo_to_quote=_avg(to_quote),
        quote_to_close=_avg(to_close),
        total=_avg(total),
        sample_size=len(won),
    )


def monthly_forecast(
    opps: Iterable[Opportunity],
    settings: PipelineSettings | None,
    as_of: date,
    horizon: int = DEFAULT_FORECAST_HORIZON,
) -> list[ForecastBucket]:
    """Active deals bucketed by expected close month, current month onward."""
    current = (as_of.year, as_of.month)
    buckets: dict[tuple[int, int], list[Opportunity]] = {}
    for opp in opps:
        if not is_active(opp.stage) or opp.expected_close_date is None:
            continue
        key = (opp.expected_close_date.year, opp.expected_close_date.month)
        if key < current:
            continue
        buckets.setdefault(key, []).append(opp)

    result = []
    for (year, month) in sorted(buckets)[:horizon]:
        deals = buckets[(year, month)]
        result.append(ForecastBucket(
            year=year,
            month=month,
            count=len(deals),
            total_arr=sum((deal_arr(o) for o in deals), ZERO),
            weighted_arr=sum((weighted_value(o, settings) for o in deals), ZERO),
        ))
    return result


def lost_reason_breakdown(opps: Iterable[Opportunity], catalog: Sequence[str] = ()) -> list[LostReasonRow]:
    """
    Lost deals grouped by reason, most frequent first.

    `catalog` holds the configured reason labels in display order. A free-text
    reason matching a label (case and surrounding blanks ignored) is reported
    under the label's spelling; equal counts follow catalog order, reasons
    outside the catalog come after, sorted by name.
    """
    labels = {label.strip().casefold(): label for label in catalog}
    position = {label: i for i, label in enumerate(catalog)}
    rows: dict[str, list[Opportunity]] = {}
    for opp in opps:
        if opp.stage != CLOSE_LOST:
            continue
        reason = (opp.lost_reason or "").strip()
        reason = labels.get(reason.casefold(), reason) or UNKNOWN_LOST_REASON
        rows.setdefault(reason, []).append(opp)
    result = [
        LostReasonRow(reason=reason, count=len(deals), lost_arr=sum((deal_arr(o) for o in deals), ZERO))
        for reason, deals in rows.items()
    ]
    result.sort(key=lambda r: (-r.count, position.get(r.reason, len(position)), r.reason))
    return result


def _bucket(deals: list[Opportunity]) -> StageBucket:
    return StageBucket(count=len(deals), value=sum((deal_arr(o) for o in deals), ZERO))


def win_loss(opps: Sequence[Opportunity]) -> WinLoss:
    won = [o for o in opps if o.stage == CLOSE_WON]
    lost = [o for o in opps if o.stage == CLOSE_LOST]
    active = [o for o in opps if is_active(o.stage)]
    closed = len(won) + len(lost)
    return WinLoss(
        won=_bucket(won),
        lost=_bucket(lost),
        active=_bucket(active),
        win_rate=round(len(won) / closed * 100, 1) if closed > 0 else 0.0,
    )


def forecast(
    opps: Iterable[Opportunity],
    history: Iterable[StageChange] = (),
    settings: PipelineSettings | None = None,
    as_of: datetime | None = None,
    stuck_days: int = DEFAULT_STUCK_DAYS,
    horizon: int = DEFAULT_FORECAST_HORIZON,
    lost_reason_catalog: Sequence[str] = (),
) -> ForecastResult:
    if as_of is None:
        raise ValueError("as_of is required")
    opps = list(opps)
    today = as_of.date()

    total = weighted = ZERO
    overdue = stuck = 0
    by_stage: dict[str, list[Opportunity]] = {}
    active = [o for o in opps if is_active(o.stage)]
    for opp in active:
        total += deal_arr(opp)
        weighted += weighted_value(opp, settings)
        if is_overdue(opp, today):
            overdue += 1
        if is_stuck(opp, as_of, stuck_days):
            stuck += 1
        by_stage.setdefault(opp.stage, []).append(opp)

    funnel, lost_count = conversion_funnel(opps, history)

    return ForecastResult(
        total_pipeline_value=total,
        weighted_pipeline_value=weighted,
        active_deals=len(active),
        overdue_deals=overdue,
        stuck_deals=stuck,
        by_stage={stage: _bucket(deals) for stage, deals in by_stage.items()},
        funnel=tuple(funnel),
        lost_count=lost_count,
        cycle_times=cycle_times(opps),
        monthly_forecast=tuple(monthly_forecast(opps, settings, today, horizon)),
        lost_reasons=tuple(lost_reason_breakdown(opps, lost_reason_catalog)),
        win_loss=win_loss(opps),
    )
