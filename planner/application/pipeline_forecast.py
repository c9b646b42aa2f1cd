"""Pipeline forecast service"""
import logging
from datetime import date, datetime

from sqlalchemy.orm import Session

from planner.application.snapshots import SnapshotLoader
from planner.config import get_settings
from planner.domain.pipeline import ForecastResult, filter_by_date, forecast

logger = logging.getLogger(__name__)


class PipelineForecastService:
    def __init__(self, db: Session):
        self.db = db
        self.config = get_settings()
        self.loader = SnapshotLoader(db, validate=self.config.VALIDATE_QUOTA_SETTINGS)

    def forecast(
        self,
        as_of: datetime,
        user_id: int | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        date_mode: str = "created",
    ) -> ForecastResult:
        """
        Forecast over all deals, or one user's deals. An optional date range
        narrows the deal set before anything is computed.
        """
        if user_id is not None:
            self.loader.get_user(user_id)
        opps = self.loader.opportunities(user_id=user_id)
        if date_from or date_to:
            opps = filter_by_date(opps, date_from, date_to, date_mode)
        history = self.loader.stage_history([o.id for o in opps])
        settings = self.loader.pipeline_settings()

        result = forecast(
            opps,
            history,
            settings,
            as_of=as_of,
            stuck_days=self.config.PIPELINE_STUCK_DAYS,
            horizon=self.config.FORECAST_HORIZON_MONTHS,
            lost_reason_catalog=self.loader.lost_reason_labels(),
        )
        logger.info(
            "Pipeline forecast user_id=%s: %d active deal(s), weighted %s",
            user_id, result.active_deals, result.weighted_pipeline_value,
        )
        return result
