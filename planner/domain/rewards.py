"""
Reward points and levels.

Points:
  go-live               → 10  (25 if premium, +5 with a terminal)
  badge                 → 50 / 100 / 200 / 500  (common / rare / epic / legendary)
  completed challenge   → reward_value when reward_type == "points",
                          otherwise 100 team / 150 individual / 200 streak,
                          +50 for the top contributor

Level ladder: Rookie 0, Starter 100, Rising 300, Pro 600, Expert 1000,
Master 2000, Legend 5000, Champion 10000.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Iterable

from planner.domain.badges import EarnedBadge
from planner.domain.records import PREMIUM_SUBS_MONTHLY, Challenge, SalesEvent

GO_LIVE_BASE_POINTS = 10
GO_LIVE_PREMIUM_POINTS = 25
GO_LIVE_TERMINAL_BONUS = 5

BADGE_POINTS: dict[str, int] = {
    "common": 50,
    "rare": 100,
    "epic": 200,
    "legendary": 500,
}

CHALLENGE_POINTS: dict[str, int] = {
    "team": 100,
    "individual": 150,
    "streak": 200,
}
TOP_CONTRIBUTOR_BONUS = 50


@dataclass(frozen=True)
class Level:
    level: int
    name: str
    min_points: int
    icon: str


REWARD_LEVELS: tuple[Level, ...] = (
    Level(1, "Rookie", 0, "🌱"),
    Level(2, "Starter", 100, "⭐"),
    Level(3, "Rising", 300, "🌟"),
    Level(4, "Pro", 600, "💫"),
    Level(5, "Expert", 1000, "🏆"),
    Level(6, "Master", 2000, "👑"),
    Level(7, "Legend", 5000, "🔱"),
    Level(8, "Champion", 10000, "💎"),
)


@dataclass(frozen=True)
class CompletedChallenge:
    challenge: Challenge
    is_top_contributor: bool = False


@dataclass(frozen=True)
class RewardEntry:
    kind: str  # badge | challenge | go_live
    key: str
    points: int
    description: str
    icon: str


@dataclass(frozen=True)
class RewardPoints:
    go_lives: int
    badges: int
    challenges: int
    history: tuple[RewardEntry, ...] = ()

    @property
    def total(self) -> int:
        return self.go_lives + self.badges + self.challenges

    @property
    def breakdown(self) -> dict[str, int]:
        return {"go_lives": self.go_lives, "badges": self.badges, "challenges": self.challenges}


@dataclass(frozen=True)
class RewardLevel:
    current: Level
    next: Level | None
    points_to_next: int
    progress_percent: float


def go_live_points(event: SalesEvent, premium_threshold: Decimal = PREMIUM_SUBS_MONTHLY) -> int:
    points = GO_LIVE_PREMIUM_POINTS if event.is_premium(premium_threshold) else GO_LIVE_BASE_POINTS
    if event.has_terminal:
        points += GO_LIVE_TERMINAL_BONUS
    return points


def badge_points(badge: EarnedBadge) -> int:
    return BADGE_POINTS.get(badge.badge.rarity, BADGE_POINTS["common"])


def challenge_points(completed: CompletedChallenge) -> int:
    challenge = completed.challenge
    points = None
    if challenge.reward_type == "points" and challenge.reward_value:
        try:
            points = int(Decimal(challenge.reward_value.strip()))
        except (InvalidOperation, ValueError, OverflowError):
            points = None
    if points is None:
        points = CHALLENGE_POINTS.get(challenge.type, CHALLENGE_POINTS["team"])
    if completed.is_top_contributor:
        points += TOP_CONTRIBUTOR_BONUS
    return points


def calculate_points(
    events: Iterable[SalesEvent],
    badges: Iterable[EarnedBadge],
    completed_challenges: Iterable[CompletedChallenge] = (),
    premium_threshold: Decimal = PREMIUM_SUBS_MONTHLY,
) -> RewardPoints:
    history: list[RewardEntry] = []

    badge_total = 0
    for eb in badges:
        pts = badge_points(eb)
        badge_total += pts
        history.append(RewardEntry("badge", eb.badge.id, pts, eb.badge.name, eb.badge.icon))

    challenge_total = 0
    for cc in completed_challenges:
        pts = challenge_points(cc)
        challenge_total += pts
        history.append(RewardEntry(
            "challenge", str(cc.challenge.id), pts, cc.challenge.name, cc.challenge.icon
        ))

    events = list(events)
    go_live_total = sum(go_live_points(ev, premium_threshold) for ev in events)
    if events:
        history.append(RewardEntry("go_live", "go_lives", go_live_total, f"{len(events)} go-lives", "📈"))

    return RewardPoints(
        go_lives=go_live_total,
        badges=badge_total,
        challenges=challenge_total,
        history=tuple(history),
    )


def get_reward_level(points: int) -> RewardLevel:
    current_idx = 0
    for idx, level in enumerate(REWARD_LEVELS):
        if points >= level.min_points:
            current_idx = idx
        else:
            break
    current = REWARD_LEVELS[current_idx]
    nxt = REWARD_LEVELS[current_idx + 1] if current_idx + 1 < len(REWARD_LEVELS) else None

    if nxt is None:
        return RewardLevel(current=current, next=None, points_to_next=0, progress_percent=100.0)

    span = nxt.min_points - current.min_points
    progress = (points - current.min_points) / span * 100 if span > 0 else 100.0
    return RewardLevel(
        current=current,
        next=nxt,
        points_to_next=nxt.min_points - points,
        progress_percent=round(min(max(progress, 0.0), 100.0), 1),
    )
