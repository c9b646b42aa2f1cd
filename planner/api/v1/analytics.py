"""
Analytics API endpoints (read-only)
"""
from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from planner.api.deps import get_current_user, get_db, resolve_as_of, resolve_as_of_datetime
from planner.application.challenges import ChallengeService
from planner.application.commission_report import CommissionReportService
from planner.application.pipeline_forecast import PipelineForecastService
from planner.application.rewards import RewardService
from planner.application.snapshots import QuotaSettingsValidationError, UnknownUserError
from planner.domain.permissions import SCOPE_ALL, aggregation_scope, can_view_user
from planner.infrastructure.db.models import User


router = APIRouter(prefix="/api/v1/analytics", tags=["analytics"])


# === Response models ===

class _Out(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class MonthlyResultResponse(_Out):
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


class PeriodSummaryResponse(_Out):
    months: list[MonthlyResultResponse]
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


class OteCheckResponse(_Out):
    valid: bool
    expected_provision: Decimal
    deviation_percent: Decimal


class CommissionReportResponse(_Out):
    user_id: int | None
    year: int
    as_of: date
    year_summary: PeriodSummaryResponse
    ytd_summary: PeriodSummaryResponse
    quarter: int | None
    quarter_summary: PeriodSummaryResponse | None
    ote: OteCheckResponse | None


class ChallengeProgressResponse(_Out):
    challenge_id: int
    current_value: Decimal
    target_value: Decimal
    progress_percent: Decimal
    is_completed: bool
    days_remaining: int
    is_frozen: bool
    user_progress: dict[int, Decimal]
    leaderboard: list[tuple[int, Decimal]]
    completed_by: list[int]
    streak_days: list[bool]
    current_streak: int
    best_streak: int


class BadgeResponse(_Out):
    id: str
    icon: str
    name: str
    rarity: str


class EarnedBadgeResponse(_Out):
    badge: BadgeResponse
    month: int | None
    details: str


class RewardEntryResponse(_Out):
    kind: str
    key: str
    points: int
    description: str
    icon: str


class RewardPointsResponse(_Out):
    go_lives: int
    badges: int
    challenges: int
    total: int
    history: list[RewardEntryResponse]


class LevelResponse(_Out):
    level: int
    name: str
    min_points: int
    icon: str


class RewardLevelResponse(_Out):
    current: LevelResponse
    next: LevelResponse | None
    points_to_next: int
    progress_percent: float


class RewardSummaryResponse(_Out):
    user_id: int
    year: int
    badges: list[EarnedBadgeResponse]
    points: RewardPointsResponse
    level: RewardLevelResponse


class StageBucketResponse(_Out):
    count: int
    value: Decimal


class FunnelStepResponse(_Out):
    stage: str
    count: int
    value: Decimal
    conversion_rate: float


class CycleTimesResponse(_Out):
    created_to_demo: float | None
    demo_to_quote: float | None
    quote_to_close: float | None
    total: float | None
    sample_size: int


class ForecastBucketResponse(_Out):
    key: str
    year: int
    month: int
    count: int
    total_arr: Decimal
    weighted_arr: Decimal


class LostReasonResponse(_Out):
    reason: str
    count: int
    lost_arr: Decimal


class WinLossResponse(_Out):
    won: StageBucketResponse
    lost: StageBucketResponse
    active: StageBucketResponse
    win_rate: float


class ForecastResponse(_Out):
    total_pipeline_value: Decimal
    weighted_pipeline_value: Decimal
    active_deals: int
    overdue_deals: int
    stuck_deals: int
    by_stage: dict[str, StageBucketResponse]
    funnel: list[FunnelStepResponse]
    lost_count: int
    cycle_times: CycleTimesResponse | None
    monthly_forecast: list[ForecastBucketResponse]
    lost_reasons: list[LostReasonResponse]
    win_loss: WinLossResponse | None


# === Helpers ===

def _target_user(user: User, user_id: int | None) -> int:
    """Requested user id, checked against the caller's aggregation scope."""
    target = user_id if user_id is not None else user.id
    if not can_view_user(user.role, user.id, target):
        raise HTTPException(status_code=403, detail="Not allowed to view this user")
    return target


def _require_all_scope(user: User) -> None:
    if aggregation_scope(user.role) != SCOPE_ALL:
        raise HTTPException(status_code=403, detail="Combined view requires access to all users")


def _run(fn, *args, **kwargs):
    """Call a service, mapping its errors to HTTP statuses."""
    try:
        return fn(*args, **kwargs)
    except UnknownUserError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except QuotaSettingsValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))


# === Endpoints ===

@router.get("/commission/{year}", response_model=CommissionReportResponse)
def get_commission_report(
    year: int,
    user_id: int | None = None,
    as_of: date | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Year, YTD and current-quarter commission for one user"""
    target = _target_user(user, user_id)
    report = _run(CommissionReportService(db).user_report, target, year, resolve_as_of(as_of))
    return CommissionReportResponse.model_validate(report)


@router.get("/commission/{year}/combined", response_model=CommissionReportResponse)
def get_combined_commission_report(
    year: int,
    as_of: date | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """GESAMT view over all active users"""
    _require_all_scope(user)
    report = _run(CommissionReportService(db).combined_report, year, resolve_as_of(as_of))
    return CommissionReportResponse.model_validate(report)


@router.get("/challenges", response_model=list[ChallengeProgressResponse])
def get_challenges(
    as_of: date | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    # individual challenges: callers limited to their own data see only themselves
    own_id = None if aggregation_scope(user.role) == SCOPE_ALL else user.id
    progress = _run(ChallengeService(db).progress, resolve_as_of(as_of), user_id=own_id)
    return [ChallengeProgressResponse.model_validate(p) for p in progress]


@router.get("/rewards/{year}", response_model=RewardSummaryResponse)
def get_rewards(
    year: int,
    user_id: int | None = None,
    as_of: date | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    target = _target_user(user, user_id)
    summary = _run(RewardService(db).summary, target, year, resolve_as_of(as_of))
    return RewardSummaryResponse.model_validate(summary)


@router.get("/pipeline/forecast", response_model=ForecastResponse)
def get_pipeline_forecast(
    user_id: int | None = None,
    as_of: date | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    date_mode: str = Query("created", pattern="^(created|closed)$"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Weighted pipeline, funnel and monthly forecast (all deals or one user's)"""
    if user_id is not None:
        user_id = _target_user(user, user_id)
    elif aggregation_scope(user.role) != SCOPE_ALL:
        user_id = user.id
    result = _run(
        PipelineForecastService(db).forecast,
        resolve_as_of_datetime(as_of),
        user_id=user_id,
        date_from=date_from,
        date_to=date_to,
        date_mode=date_mode,
    )
    return ForecastResponse.model_validate(result)
