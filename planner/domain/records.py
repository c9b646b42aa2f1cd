"""
Input records of the analytics engine.

Immutable snapshots handed over by the persistence layer. The engine only
reads them; nothing in planner.domain mutates or stores a record.

Money is Decimal, achievement ratios are Decimal fractions (1.2 == 120%).
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

ZERO = Decimal("0")
MONTHS_PER_YEAR = 12
PREMIUM_SUBS_MONTHLY = Decimal("200")

MONTH_NAMES = (
    "Januar", "Februar", "März", "April", "Mai", "Juni",
    "Juli", "August", "September", "Oktober", "November", "Dezember",
)


def _dec(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _twelve(values) -> tuple[Decimal, ...]:
    return tuple(_dec(v) for v in (values or ()))


# ── Sales events ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class SalesEvent:
    """One go-live: a customer activation booked for a user and a month."""
    user_id: int
    year: int
    month: int
    go_live_date: date
    subs_monthly: Decimal = ZERO
    pay_arr: Decimal | None = None  # entered ~3 months after go-live
    has_terminal: bool = False
    commission_relevant: bool = True
    created_at: datetime | None = None
    customer_name: str = ""
    partner_id: int | None = None
    is_enterprise: bool = False

    @property
    def subs_arr(self) -> Decimal:
        return _dec(self.subs_monthly) * MONTHS_PER_YEAR

    @property
    def pay_arr_value(self) -> Decimal:
        return _dec(self.pay_arr)

    @property
    def total_arr(self) -> Decimal:
        return self.subs_arr + self.pay_arr_value

    def is_premium(self, threshold: Decimal = PREMIUM_SUBS_MONTHLY) -> bool:
        return _dec(self.subs_monthly) > threshold


# ── Quota settings ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Tier:
    """Commission band: applies from `min` achievement upward."""
    min: Decimal
    label: str
    rate: Decimal


def _tiers(*rows: tuple[str, str, str]) -> tuple[Tier, ...]:
    return tuple(Tier(min=Decimal(m), label=label, rate=Decimal(r)) for m, label, r in rows)


DEFAULT_SUBS_TIERS = _tiers(
    ("0", "< 50%", "0"),
    ("0.5", "50% - 70%", "0.015"),
    ("0.7", "70% - 85%", "0.02"),
    ("0.85", "85% - 100%", "0.025"),
    ("1.0", "100% - 110%", "0.029"),
    ("1.1", "110% - 120%", "0.04"),
    ("1.2", "120%+", "0.05"),
)

DEFAULT_PAY_TIERS = _tiers(
    ("0", "< 50%", "0.01"),
    ("0.5", "50% - 70%", "0.015"),
    ("0.7", "70% - 85%", "0.02"),
    ("0.85", "85% - 100%", "0.025"),
    ("1.0", "100% - 110%", "0.029"),
    ("1.1", "110% - 120%", "0.04"),
    ("1.2", "120%+", "0.05"),
)

_EMPTY_TARGETS = (ZERO,) * MONTHS_PER_YEAR


@dataclass(frozen=True)
class QuotaSettings:
    """
    Per-user, per-year plan: monthly targets, commission tiers, terminal pay.

    Target tuples are indexed by month - 1. Shape (12 entries, sorted tiers)
    is a precondition checked at the snapshot boundary, not here.
    """
    user_id: int | None
    year: int
    monthly_subs_targets: tuple[Decimal, ...] = _EMPTY_TARGETS
    monthly_pay_targets: tuple[Decimal, ...] = _EMPTY_TARGETS
    monthly_go_live_targets: tuple[Decimal, ...] = _EMPTY_TARGETS
    subs_tiers: tuple[Tier, ...] = DEFAULT_SUBS_TIERS
    pay_tiers: tuple[Tier, ...] = DEFAULT_PAY_TIERS
    terminal_base: Decimal = Decimal("30")
    terminal_bonus: Decimal = Decimal("50")
    terminal_penetration_threshold: Decimal = Decimal("0.70")
    ote: Decimal = ZERO

    def subs_target(self, month: int) -> Decimal:
        return _target_at(self.monthly_subs_targets, month)

    def pay_target(self, month: int) -> Decimal:
        return _target_at(self.monthly_pay_targets, month)

    def go_live_target(self, month: int) -> Decimal:
        return _target_at(self.monthly_go_live_targets, month)

    @classmethod
    def build(cls, user_id: int | None, year: int, **fields) -> "QuotaSettings":
        """Construct from loose values (lists, floats, strings)."""
        for key in ("monthly_subs_targets", "monthly_pay_targets", "monthly_go_live_targets"):
            if key in fields:
                fields[key] = _twelve(fields[key])
        for key in ("terminal_base", "terminal_bonus", "terminal_penetration_threshold", "ote"):
            if key in fields:
                fields[key] = _dec(fields[key])
        return cls(user_id=user_id, year=year, **fields)

    @classmethod
    def combine(cls, settings: list["QuotaSettings"], year: int | None = None) -> "QuotaSettings":
        """
        Combined (GESAMT) settings: targets summed element-wise across users.

        Tiers and terminal amounts come from the first entry; with no entries
        the result carries zero targets and the default tiers.
        """
        if not settings:
            return cls(user_id=None, year=year or 0)
        first = settings[0]

        def _sum(attr: str) -> tuple[Decimal, ...]:
            return tuple(
                sum((_target_at(getattr(s, attr), m) for s in settings), ZERO)
                for m in range(1, MONTHS_PER_YEAR + 1)
            )

        return cls(
            user_id=None,
            year=year or first.year,
            monthly_subs_targets=_sum("monthly_subs_targets"),
            monthly_pay_targets=_sum("monthly_pay_targets"),
            monthly_go_live_targets=_sum("monthly_go_live_targets"),
            subs_tiers=first.subs_tiers,
            pay_tiers=first.pay_tiers,
            terminal_base=first.terminal_base,
            terminal_bonus=first.terminal_bonus,
            terminal_penetration_threshold=first.terminal_penetration_threshold,
            ote=sum((s.ote for s in settings), ZERO),
        )


def _target_at(values: tuple[Decimal, ...], month: int) -> Decimal:
    if 1 <= month <= len(values):
        return values[month - 1]
    return ZERO


# ── Challenges ──────────────────────────────────────────────────────────────

CHALLENGE_TYPES = frozenset({"team", "individual", "streak"})
CHALLENGE_METRICS = frozenset({
    "go_lives", "subs_arr", "pay_arr", "total_arr", "terminals",
    "achievement", "premium_go_lives", "daily_go_live",
})
REWARD_TYPES = frozenset({"badge", "points", "custom"})


@dataclass(frozen=True)
class Challenge:
    id: int
    name: str
    type: str
    metric: str
    target_value: Decimal
    start_date: date
    end_date: date
    icon: str = "🎯"
    reward_type: str = "points"
    reward_value: str | None = None
    is_active: bool = True
    streak_min_per_day: int = 1
    description: str | None = None

    @property
    def is_streak(self) -> bool:
        return self.type == "streak" or self.metric == "daily_go_live"


# ── Pipeline ────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Opportunity:
    id: int
    user_id: int
    stage: str
    stage_changed_at: datetime
    created_at: datetime
    expected_subs_monthly: Decimal = ZERO
    expected_pay_monthly: Decimal = ZERO
    probability: Decimal | None = None
    expected_close_date: date | None = None
    demo_booked_date: date | None = None
    demo_completed_date: date | None = None
    quote_sent_date: date | None = None
    lost_reason: str | None = None
    has_terminal: bool = False
    name: str = ""


@dataclass(frozen=True)
class StageChange:
    opportunity_id: int
    to_stage: str
    changed_at: datetime
    from_stage: str | None = None


@dataclass(frozen=True)
class PipelineSettings:
    sql_probability: Decimal = Decimal("0.15")
    demo_booked_probability: Decimal = Decimal("0.25")
    demo_completed_probability: Decimal = Decimal("0.50")
    sent_quote_probability: Decimal = Decimal("0.75")
    sql_to_demo_booked_days: int = 7
    demo_booked_to_completed_days: int = 5
    demo_completed_to_quote_days: int = 7
    quote_to_close_days: int = 5
