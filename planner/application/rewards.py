"""
Reward service: badges, points and level for one user and plan year.
"""
import logging
from dataclasses import dataclass
from datetime import date

from sqlalchemy.orm import Session

from planner.application.challenges import ChallengeService
from planner.application.snapshots import SnapshotLoader
from planner.config import get_settings
from planner.domain.badges import EarnedBadge, calculate_badges
from planner.domain.rewards import RewardLevel, RewardPoints, calculate_points, get_reward_level

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RewardSummary:
    user_id: int
    year: int
    badges: list[EarnedBadge]
    points: RewardPoints
    level: RewardLevel


class RewardService:
    def __init__(self, db: Session):
        self.db = db
        self.config = get_settings()
        self.loader = SnapshotLoader(db, validate=self.config.VALIDATE_QUOTA_SETTINGS)

    def summary(self, user_id: int, year: int, as_of: date) -> RewardSummary:
        self.loader.get_user(user_id)
        settings = self.loader.quota_settings(user_id, year)
        all_events = self.loader.sales_events(year)

        by_user: dict[int, list] = {}
        for ev in all_events:
            by_user.setdefault(ev.user_id, []).append(ev)
        own = by_user.get(user_id, [])
        # only go-lives up to as_of earn points
        counted = [ev for ev in own if ev.go_live_date <= as_of]

        badges = calculate_badges(user_id, settings, own, as_of, all_users=by_user)
        completed = ChallengeService(self.db).completed_for_user(user_id, as_of)
        points = calculate_points(counted, badges, completed, self.config.PREMIUM_SUBS_MONTHLY)
        level = get_reward_level(points.total)

        logger.info(
            "Rewards user_id=%s year=%s: %d badge(s), %d points, level %s",
            user_id, year, len(badges), points.total, level.current.name,
        )
        return RewardSummary(user_id=user_id, year=year, badges=badges, points=points, level=level)
