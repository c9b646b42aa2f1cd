"""
Commission report service: year, YTD and quarter summaries for one user,
plus the combined (GESAMT) view across all active users.
"""
import logging
from dataclasses import dataclass
from datetime import date

from sqlalchemy.orm import Session

from planner.application.snapshots import SnapshotLoader
from planner.config import get_settings
from planner.domain.badges import last_counted_month
from planner.domain.commission import (
    OteCheck,
    PeriodSummary,
    calculate_combined_year_summary,
    calculate_quarter_summary,
    calculate_year_summary,
    calculate_ytd_summary,
    summarize,
    validate_ote,
)
from planner.domain.periods import quarter_of
from planner.domain.permissions import capabilities_for

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommissionReport:
    user_id: int | None
    year: int
    as_of: date
    year_summary: PeriodSummary
    ytd_summary: PeriodSummary
    quarter: int | None
    quarter_summary: PeriodSummary | None
    ote: OteCheck | None


class CommissionReportService:
    """Build commission reports from one snapshot."""

    def __init__(self, db: Session):
        self.db = db
        self.loader = SnapshotLoader(db, validate=get_settings().VALIDATE_QUOTA_SETTINGS)

    def _current_quarter(self, year: int, as_of: date) -> int | None:
        last = last_counted_month(year, as_of)
        return quarter_of(last) if last else None

    def user_report(self, user_id: int, year: int, as_of: date) -> CommissionReport:
        self.loader.get_user(user_id)
        settings = self.loader.quota_settings(user_id, year)
        events = self.loader.sales_events(year, user_id=user_id)

        quarter = self._current_quarter(year, as_of)
        report = CommissionReport(
            user_id=user_id,
            year=year,
            as_of=as_of,
            year_summary=calculate_year_summary(events, settings),
            ytd_summary=calculate_ytd_summary(events, settings, last_counted_month(year, as_of)),
            quarter=quarter,
            quarter_summary=calculate_quarter_summary(events, settings, quarter) if quarter else None,
            ote=validate_ote(settings),
        )
        logger.info(
            "Commission report user_id=%s year=%s: %d go-lives, total provision %s",
            user_id, year, report.year_summary.total_go_lives, report.year_summary.total_provision,
        )
        return report

    def combined_report(self, year: int, as_of: date) -> CommissionReport:
        roles = self.loader.active_user_roles()
        user_ids = list(roles)
        # targets come from plannable users only, go-lives from everyone
        plannable = [uid for uid, role in roles.items() if capabilities_for(role).plannable]
        settings_by_user = self.loader.quota_settings_by_user(year, plannable)
        events = self.loader.sales_events(year)
        events_by_user = {uid: [ev for ev in events if ev.user_id == uid] for uid in user_ids}

        year_summary = calculate_combined_year_summary(events_by_user, settings_by_user, year)
        # monthly results are independent, so YTD is the year cut at the as_of month
        last = last_counted_month(year, as_of)
        ytd_summary = summarize([m for m in year_summary.months if m.month <= last])

        logger.info(
            "Combined commission report year=%s over %d users, %d with targets",
            year, len(user_ids), len(plannable),
        )
        return CommissionReport(
            user_id=None,
            year=year,
            as_of=as_of,
            year_summary=year_summary,
            ytd_summary=ytd_summary,
            quarter=None,
            quarter_summary=None,
            ote=None,
        )

