"""
Daily Quota Accounting

Tracks how many new cards and reviews a user may still study in a deck
today. Quotas are derived from the user's learning limits scaled by the
deck's daily scaler, and consumed by the reviews logged within the trailing
count window.

A review is charged by the card's state *before* the review: a card that was
NEW consumes the new-card quota, anything else consumes the review quota.

Usage:
    limits = resolve_daily_limits(learning_limits, deck.daily_scaler)
    quota = DailyQuota(limits=limits, counts=await audit_log.counts_since(...))

    if quota.exhausted:
        return DailyLimitReached(progress=quota.progress())
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from deckstudy.enums.learning import CardState
from deckstudy.models.learning import (
    DailyLimits,
    DailyProgress,
    LearningLimits,
    ReviewCounts,
)

logger = logging.getLogger(__name__)


def resolve_daily_limits(limits: LearningLimits, daily_scaler: float) -> DailyLimits:
    """
    Scale a user's base limits for one deck.

    Args:
        limits: Base learning limits from the user's settings
        daily_scaler: Deck multiplier (> 0)

    Returns:
        DailyLimits with floor(base × scaler) for each category
    """
    resolved = DailyLimits.scaled(limits, daily_scaler)
    logger.debug(
        f"Daily limits: new={resolved.new_cards_limit}, "
        f"reviews={resolved.review_cards_limit} (scaler={daily_scaler})"
    )
    return resolved


@dataclass(frozen=True)
class DailyQuota:
    """
    Remaining daily capacity for one deck.

    Attributes:
        limits: Scaled limits for the deck
        counts: Reviews already logged inside the count window
    """

    limits: DailyLimits
    counts: ReviewCounts

    @property
    def new_remaining(self) -> int:
        return max(0, self.limits.new_cards_limit - self.counts.new_cards_count)

    @property
    def review_remaining(self) -> int:
        return max(0, self.limits.review_cards_limit - self.counts.review_cards_count)

    @property
    def total_remaining(self) -> int:
        return self.new_remaining + self.review_remaining

    @property
    def exhausted(self) -> bool:
        """True when neither category has capacity left."""
        return self.new_remaining == 0 and self.review_remaining == 0

    def remaining_for(self, state: CardState) -> int:
        """Capacity left in the category a card in ``state`` is charged to."""
        if state == CardState.NEW:
            return self.new_remaining
        return self.review_remaining

    def progress(self) -> DailyProgress:
        return DailyProgress(
            new_cards_seen=self.counts.new_cards_count,
            new_cards_limit=self.limits.new_cards_limit,
            review_cards_seen=self.counts.review_cards_count,
            review_cards_limit=self.limits.review_cards_limit,
            total_remaining=self.total_remaining,
        )
