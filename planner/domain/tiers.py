"""
Tier lookup: achievement ratio -> commission rate.

Tiers are expected sorted ascending by lower bound with the first bound at 0
and the last band open-ended. The lookup does not re-sort or validate.
"""
from decimal import Decimal
from typing import Sequence

from planner.domain.records import Tier, ZERO


def resolve_tier(tiers: Sequence[Tier], achievement: Decimal) -> Tier | None:
    """Return the highest tier whose lower bound is <= achievement."""
    if not tiers:
        return None
    reached = tiers[0]
    for tier in tiers:
        if achievement >= tier.min:
            reached = tier
        else:
            break
    return reached


def resolve_rate(tiers: Sequence[Tier], achievement: Decimal) -> Decimal:
    tier = resolve_tier(tiers, achievement)
    return tier.rate if tier else ZERO


def tier_label(tiers: Sequence[Tier], achievement: Decimal) -> str:
    tier = resolve_tier(tiers, achievement)
    return tier.label if tier else ""
