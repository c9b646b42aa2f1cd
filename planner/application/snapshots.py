"""
Snapshot loading: ORM rows → immutable domain records.

Every service call reads one snapshot through a single Session and hands the
records to the pure engine. Nothing here writes.
"""
import logging
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy.orm import Session

from planner.domain.records import (
    Challenge,
    MONTHS_PER_YEAR,
    Opportunity,
    PipelineSettings,
    QuotaSettings,
    SalesEvent,
    StageChange,
    Tier,
)
from planner.infrastructure.db.models import (
    ChallengeModel,
    GoLive,
    LostReason,
    OpportunityModel,
    OpportunityStageHistory,
    PipelineSettingsModel,
    QuotaSettingsModel,
    User,
)

logger = logging.getLogger(__name__)


class QuotaSettingsValidationError(ValueError):
    pass


class UnknownUserError(ValueError):
    pass


def _dec(value) -> Decimal:
    if value is None:
        return Decimal("0")
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _aware(value: datetime | None) -> datetime | None:
    """SQLite hands back naive timestamps; those are stored as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ── Row mapping ─────────────────────────────────────────────────────────────


def parse_tiers(raw: list | None) -> tuple[Tier, ...] | None:
    if raw is None:
        return None
    return tuple(
        Tier(min=_dec(t.get("min")), label=str(t.get("label", "")), rate=_dec(t.get("rate")))
        for t in raw
    )


def sales_event_from_row(row: GoLive) -> SalesEvent:
    return SalesEvent(
        user_id=row.user_id,
        year=row.year,
        month=row.month,
        go_live_date=row.go_live_date,
        subs_monthly=_dec(row.subs_monthly),
        pay_arr=_dec(row.pay_arr) if row.pay_arr is not None else None,
        has_terminal=bool(row.has_terminal),
        commission_relevant=bool(row.commission_relevant),
        created_at=_aware(row.created_at),
        customer_name=row.customer_name or "",
        partner_id=row.partner_id,
        is_enterprise=bool(row.is_enterprise),
    )


def quota_settings_from_row(row: QuotaSettingsModel) -> QuotaSettings:
    fields = dict(
        monthly_subs_targets=row.monthly_subs_targets,
        monthly_pay_targets=row.monthly_pay_targets,
        monthly_go_live_targets=row.monthly_go_live_targets,
        terminal_base=row.terminal_base,
        terminal_bonus=row.terminal_bonus,
        terminal_penetration_threshold=row.terminal_penetration_threshold,
        ote=row.ote,
    )
    subs_tiers = parse_tiers(row.subs_tiers)
    pay_tiers = parse_tiers(row.pay_tiers)
    if subs_tiers is not None:
        fields["subs_tiers"] = subs_tiers
    if pay_tiers is not None:
        fields["pay_tiers"] = pay_tiers
    return QuotaSettings.build(row.user_id, row.year, **fields)


def challenge_from_row(row: ChallengeModel) -> Challenge:
    return Challenge(
        id=row.id,
        name=row.name,
        type=row.type,
        metric=row.metric,
        target_value=_dec(row.target_value),
        start_date=row.start_date,
        end_date=row.end_date,
        icon=row.icon or "🎯",
        reward_type=row.reward_type or "points",
        reward_value=row.reward_value,
        is_active=bool(row.is_active),
        streak_min_per_day=row.streak_min_per_day or 1,
        description=row.description,
    )


def opportunity_from_row(row: OpportunityModel) -> Opportunity:
    return Opportunity(
        id=row.id,
        user_id=row.user_id,
        stage=row.stage,
        stage_changed_at=_aware(row.stage_changed_at),
        created_at=_aware(row.created_at),
        expected_subs_monthly=_dec(row.expected_subs_monthly),
        expected_pay_monthly=_dec(row.expected_pay_monthly),
        probability=_dec(row.probability) if row.probability is not None else None,
        expected_close_date=row.expected_close_date,
        demo_booked_date=row.demo_booked_date,
        demo_completed_date=row.demo_completed_date,
        quote_sent_date=row.quote_sent_date,
        lost_reason=row.lost_reason,
        has_terminal=bool(row.has_terminal),
        name=row.name or "",
    )


def stage_change_from_row(row: OpportunityStageHistory) -> StageChange:
    return StageChange(
        opportunity_id=row.opportunity_id,
        to_stage=row.to_stage,
        changed_at=_aware(row.changed_at),
        from_stage=row.from_stage,
    )


def pipeline_settings_from_row(row: PipelineSettingsModel | None) -> PipelineSettings:
    if row is None:
        return PipelineSettings()
    return PipelineSettings(
        sql_probability=_dec(row.sql_probability),
        demo_booked_probability=_dec(row.demo_booked_probability),
        demo_completed_probability=_dec(row.demo_completed_probability),
        sent_quote_probability=_dec(row.sent_quote_probability),
        sql_to_demo_booked_days=row.sql_to_demo_booked_days,
        demo_booked_to_completed_days=row.demo_booked_to_completed_days,
        demo_completed_to_quote_days=row.demo_completed_to_quote_days,
        quote_to_close_days=row.quote_to_close_days,
    )


# ── Validation ──────────────────────────────────────────────────────────────


def _check_tiers(name: str, tiers: tuple[Tier, ...]) -> None:
    if not tiers:
        raise QuotaSettingsValidationError(f"{name}: tier list is empty")
    if tiers[0].min != 0:
        raise QuotaSettingsValidationError(f"{name}: first tier must start at 0")
    mins = [t.min for t in tiers]
    if mins != sorted(mins):
        raise QuotaSettingsValidationError(f"{name}: tiers must be sorted by min")


def validate_quota_settings(settings: QuotaSettings) -> None:
    """
    Shape check for a loaded plan.

    Raises:
        QuotaSettingsValidationError: empty or unsorted tiers, first tier not
            at 0, or a target array without exactly 12 entries
    """
    for name in ("monthly_subs_targets", "monthly_pay_targets", "monthly_go_live_targets"):
        if len(getattr(settings, name)) != MONTHS_PER_YEAR:
            raise QuotaSettingsValidationError(f"{name}: expected {MONTHS_PER_YEAR} values")
    _check_tiers("subs_tiers", settings.subs_tiers)
    _check_tiers("pay_tiers", settings.pay_tiers)


# ── Loader ──────────────────────────────────────────────────────────────────


class SnapshotLoader:
    """Read-only queries feeding the analytics engine."""

    def __init__(self, db: Session, validate: bool = True):
        self.db = db
        self.validate = validate

    def get_user(self, user_id: int) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise UnknownUserError(f"User {user_id} not found")
        return user

    def active_user_ids(self) -> list[int]:
        return list(self.active_user_roles())

    def active_user_roles(self) -> dict[int, str]:
        rows = (
            self.db.query(User.id, User.role)
            .filter(User.is_active.is_(True))
            .order_by(User.id)
            .all()
        )
        return {r.id: r.role for r in rows}

    def sales_events(self, year: int, user_id: int | None = None) -> list[SalesEvent]:
        q = self.db.query(GoLive).filter(GoLive.year == year)
        if user_id is not None:
            q = q.filter(GoLive.user_id == user_id)
        return [sales_event_from_row(r) for r in q.order_by(GoLive.go_live_date, GoLive.id).all()]

    def sales_events_between(self, start: date, end: date) -> list[SalesEvent]:
        rows = (
            self.db.query(GoLive)
            .filter(GoLive.go_live_date >= start, GoLive.go_live_date <= end)
            .order_by(GoLive.go_live_date, GoLive.id)
            .all()
        )
        return [sales_event_from_row(r) for r in rows]

    def quota_settings(self, user_id: int, year: int) -> QuotaSettings:
        """
        Plan of one user for one year.

        A missing row is not an error: zero targets with default tiers.
        """
        row = (
            self.db.query(QuotaSettingsModel)
            .filter(QuotaSettingsModel.user_id == user_id, QuotaSettingsModel.year == year)
            .first()
        )
        if row is None:
            logger.warning("No quota settings for user_id=%s year=%s, using zero targets", user_id, year)
            return QuotaSettings(user_id=user_id, year=year)
        settings = quota_settings_from_row(row)
        if self.validate:
            try:
                validate_quota_settings(settings)
            except QuotaSettingsValidationError:
                logger.warning("Invalid quota settings for user_id=%s year=%s", user_id, year)
                raise
        return settings

    def quota_settings_by_user(self, year: int, user_ids: list[int] | None = None) -> dict[int, QuotaSettings]:
        if user_ids is None:
            user_ids = self.active_user_ids()
        return {uid: self.quota_settings(uid, year) for uid in user_ids}

    def challenges(self, active_only: bool = True) -> list[Challenge]:
        q = self.db.query(ChallengeModel)
        if active_only:
            q = q.filter(ChallengeModel.is_active.is_(True))
        return [challenge_from_row(r) for r in q.order_by(ChallengeModel.start_date, ChallengeModel.id).all()]

    def opportunities(self, user_id: int | None = None) -> list[Opportunity]:
        q = self.db.query(OpportunityModel)
        if user_id is not None:
            q = q.filter(OpportunityModel.user_id == user_id)
        return [opportunity_from_row(r) for r in q.order_by(OpportunityModel.id).all()]

    def stage_history(self, opportunity_ids: list[int]) -> list[StageChange]:
        if not opportunity_ids:
            return []
        rows = (
            self.db.query(OpportunityStageHistory)
            .filter(OpportunityStageHistory.opportunity_id.in_(opportunity_ids))
            .order_by(OpportunityStageHistory.changed_at, OpportunityStageHistory.id)
            .all()
        )
        return [stage_change_from_row(r) for r in rows]

    def pipeline_settings(self) -> PipelineSettings:
        row = self.db.query(PipelineSettingsModel).order_by(PipelineSettingsModel.id).first()
        return pipeline_settings_from_row(row)

    def lost_reason_labels(self) -> list[str]:
        """Active lost-reason labels in display order."""
        rows = (
            self.db.query(LostReason.label)
            .filter(LostReason.is_active.is_(True))
            .order_by(LostReason.sort_order, LostReason.label)
            .all()
        )
        return [r.label for r in rows]
