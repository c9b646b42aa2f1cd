"""Challenge progress queries"""
import logging
from datetime import date

from sqlalchemy.orm import Session

from planner.application.snapshots import SnapshotLoader
from planner.config import get_settings
from planner.domain.challenges import ChallengeProgress, evaluate, evaluate_for_user
from planner.domain.records import Challenge, QuotaSettings, SalesEvent
from planner.domain.rewards import CompletedChallenge
from planner.domain.streak import StreakPolicy

logger = logging.getLogger(__name__)


class ChallengeService:
    def __init__(self, db: Session):
        self.db = db
        self.config = get_settings()
        self.loader = SnapshotLoader(db, validate=self.config.VALIDATE_QUOTA_SETTINGS)

    @property
    def streak_policy(self) -> StreakPolicy:
        return StreakPolicy(self.config.STREAK_POLICY)

    def _load(self) -> tuple[list[Challenge], list[SalesEvent]]:
        challenges = self.loader.challenges(active_only=True)
        if not challenges:
            return [], []
        start = min(c.start_date for c in challenges)
        end = max(c.end_date for c in challenges)
        return challenges, self.loader.sales_events_between(start, end)

    def _settings_for(self, challenge: Challenge, cache: dict) -> dict[int, list[QuotaSettings]] | None:
        """Each user's plans for every calendar year the challenge window touches."""
        if challenge.metric != "achievement":
            return None
        settings_by_user: dict[int, list[QuotaSettings]] = {}
        for year in range(challenge.start_date.year, challenge.end_date.year + 1):
            if year not in cache:
                cache[year] = self.loader.quota_settings_by_user(year)
            for uid, settings in cache[year].items():
                settings_by_user.setdefault(uid, []).append(settings)
        return settings_by_user

    def progress(self, as_of: date, user_id: int | None = None) -> list[ChallengeProgress]:
        """
        Progress of every active challenge. With user_id, individual challenges
        are evaluated against that user's go-lives only.
        """
        challenges, events = self._load()
        settings_cache: dict[int, dict[int, QuotaSettings]] = {}
        result = []
        for challenge in challenges:
            settings_by_user = self._settings_for(challenge, settings_cache)
            if user_id is not None and challenge.type == "individual":
                result.append(evaluate_for_user(
                    challenge, events, user_id, as_of,
                    settings_by_user=settings_by_user,
                    streak_policy=self.streak_policy,
                    premium_threshold=self.config.PREMIUM_SUBS_MONTHLY,
                ))
            else:
                result.append(evaluate(
                    challenge, events, as_of,
                    settings_by_user=settings_by_user,
                    streak_policy=self.streak_policy,
                    premium_threshold=self.config.PREMIUM_SUBS_MONTHLY,
                ))
        logger.info("Evaluated %d active challenge(s) as of %s", len(result), as_of)
        return result

    def completed_for_user(self, user_id: int, as_of: date) -> list[CompletedChallenge]:
        """Finished, completed challenges the user took part in."""
        by_id = {c.id: c for c in self.loader.challenges(active_only=True)}
        completed = []
        for p in self.progress(as_of):
            if not (p.is_frozen and p.is_completed):
                continue
            challenge = by_id[p.challenge_id]
            if challenge.type == "individual":
                took_part = user_id in p.completed_by
            else:
                took_part = p.user_progress.get(user_id, 0) > 0
            if not took_part:
                continue
            top = bool(p.leaderboard) and p.leaderboard[0][0] == user_id
            completed.append(CompletedChallenge(challenge=challenge, is_top_contributor=top))
        return completed
