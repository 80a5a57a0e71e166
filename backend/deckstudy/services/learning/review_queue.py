"""
Review Queue Service

Builds the set of cards a user may study in a deck right now and applies
submitted ratings, enforcing the per-deck daily quotas.

Queue building:
1. Scale the user's learning limits by the deck's daily scaler
2. Count reviews logged in the trailing window (REVIEW_COUNT_WINDOW_HOURS)
3. Stop early with DailyLimitReached when both quotas are used up
4. Fetch new and due candidates, only for categories with quota left
5. Sample each category down to its remaining quota, merge and shuffle
6. Attach rating previews to every selected card

Submission re-checks the quota of the card's pre-review category, because
the queue the user is working from may be stale.

Usage:
    from deckstudy.services.learning import ReviewQueueBuilder

    builder = ReviewQueueBuilder(settings_store, card_store, audit_log, cache)

    result = await builder.build_queue(user_id, deck_id)
    outcome = await builder.submit_review(user_id, card_id, Rating.GOOD)
"""

import logging
import random
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from deckstudy.config.settings import settings
from deckstudy.errors import DeckNotFound
from deckstudy.models.learning import (
    AllCaughtUp,
    Card,
    DailyLimitReached,
    Deck,
    DeckStudyStats,
    EmptyDeck,
    LearningLimits,
    QueuedCard,
    QueueReady,
    QueueResult,
    ReviewCommitted,
    ReviewMetrics,
    ReviewNotFound,
    SubmitResult,
)
from deckstudy.services.learning.fsrs import coerce_rating, ensure_utc, utc_now
from deckstudy.services.learning.parameter_cache import ParameterCache
from deckstudy.services.learning.ports import AuditLog, CardStore, SettingsStore
from deckstudy.services.learning.quotas import DailyQuota, resolve_daily_limits

logger = logging.getLogger(__name__)


class ReviewQueueBuilder:
    """
    Composes the stores and the parameter cache into the study workflow.

    Holds no per-request state; one instance may serve concurrent requests.
    """

    def __init__(
        self,
        settings_store: SettingsStore,
        card_store: CardStore,
        audit_log: AuditLog,
        parameter_cache: ParameterCache,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            settings_store: Per-user learning limits
            card_store: Deck and card access
            audit_log: Review log for quota counts
            parameter_cache: Shared per-user scheduler cache
            rng: Random source for sampling and shuffling
            clock: Returns the current aware UTC time
        """
        self.settings_store = settings_store
        self.card_store = card_store
        self.audit_log = audit_log
        self.parameter_cache = parameter_cache
        self.rng = rng or random.Random()
        self.clock = clock or utc_now

    async def build_queue(self, user_id: str, deck_id: str) -> QueueResult:
        """
        Select the cards the user may study in a deck right now.

        Args:
            user_id: Owner of the deck
            deck_id: Deck to study

        Returns:
            DailyLimitReached, EmptyDeck, AllCaughtUp or QueueReady

        Raises:
            DeckNotFound: If the deck does not exist or is not owned by the user
            ParametersUnavailable: If cards are selected but the user has no
                scheduling parameters
        """
        now = self.clock()
        deck = await self._require_deck(deck_id, user_id)
        quota = await self._daily_quota(user_id, deck, now)
        progress = quota.progress()

        if quota.exhausted:
            logger.info(f"Daily limit reached for user {user_id}, deck {deck_id}")
            return DailyLimitReached(progress=progress)

        new_cards: list[Card] = []
        due_cards: list[Card] = []
        if quota.new_remaining > 0:
            new_cards = await self.card_store.fetch_new(deck_id, user_id)
        if quota.review_remaining > 0:
            due_cards = await self.card_store.fetch_due(deck_id, user_id, now)

        selected = self._take(new_cards, quota.new_remaining) + self._take(
            due_cards, quota.review_remaining
        )
        self.rng.shuffle(selected)

        if not selected:
            total_cards = await self.card_store.count_all(deck_id, user_id)
            if total_cards == 0:
                logger.info(f"Deck {deck_id} has no cards")
                return EmptyDeck(progress=progress)
            logger.info(f"User {user_id} is caught up on deck {deck_id}")
            return AllCaughtUp(total_cards=total_cards, progress=progress)

        scheduler = await self.parameter_cache.get_scheduler(user_id)
        queued = [
            QueuedCard(card=card, metrics=scheduler.preview(card, now))
            for card in selected
        ]

        logger.info(
            f"Built queue for user {user_id}, deck {deck_id}: "
            f"{len(queued)} cards ({len(new_cards)} new / {len(due_cards)} due available)"
        )
        return QueueReady(cards=queued, progress=progress)

    async def submit_review(
        self,
        user_id: str,
        card_id: str,
        rating: Any,
        reviewed_at: Optional[datetime] = None,
    ) -> SubmitResult:
        """
        Apply a rating to a card and persist the new schedule.

        The audit entry is appended only after the card write succeeded; a
        failing append is logged and does not fail the submission.

        Args:
            user_id: Owner of the card
            card_id: Card being reviewed
            rating: Grade 1-4 (Rating or int)
            reviewed_at: Review timestamp for backdated submissions
                (defaults to now)

        Returns:
            ReviewNotFound, DailyLimitReached or ReviewCommitted

        Raises:
            InvalidRating: If rating is not one of the four grades
            ParametersUnavailable: If the user has no scheduling parameters
        """
        rating = coerce_rating(rating)
        now = self.clock()
        review_time = ensure_utc(reviewed_at) if reviewed_at else now

        card = await self.card_store.get_card(card_id, user_id)
        if card is None:
            return ReviewNotFound()

        deck = await self.card_store.get_deck(card.deck_id, user_id)
        if deck is None:
            return ReviewNotFound()

        quota = await self._daily_quota(user_id, deck, now)
        if quota.remaining_for(card.state) <= 0:
            category = "new card" if card.is_new() else "review"
            logger.warning(
                f"Rejected review of card {card_id}: daily {category} limit "
                f"reached for user {user_id}, deck {deck.id}"
            )
            return DailyLimitReached(progress=quota.progress())

        scheduler = await self.parameter_cache.get_scheduler(user_id)
        update, log_entry = scheduler.commit(card, rating, review_time)

        updated = await self.card_store.write_schedule_update(card_id, user_id, update)
        if updated is None:
            logger.info(f"Card {card_id} disappeared before its review was saved")
            return ReviewNotFound()

        try:
            await self.audit_log.append(log_entry)
        except Exception:
            logger.exception(f"Failed to append review log for card {card_id}")

        logger.info(
            f"Reviewed card {card_id} ({rating.name}): "
            f"{card.state.name} -> {updated.state.name}, due {update.due.isoformat()}"
        )
        return ReviewCommitted(card=updated)

    async def preview_metrics(self, card: Card, user_id: str) -> ReviewMetrics:
        """
        Due dates for each rating, for display before the user answers.

        Raises:
            ParametersUnavailable: If the user has no scheduling parameters
            InvalidCard: If card is missing or malformed
        """
        scheduler = await self.parameter_cache.get_scheduler(user_id)
        return scheduler.preview(card, self.clock())

    async def deck_stats(self, user_id: str, deck_id: str) -> DeckStudyStats:
        """
        Card counts for a deck listing.

        remaining_reviews is the number of cards the user could still study
        today: available cards in each category, capped by its quota.

        Raises:
            DeckNotFound: If the deck does not exist or is not owned by the user
        """
        now = self.clock()
        deck = await self._require_deck(deck_id, user_id)
        quota = await self._daily_quota(user_id, deck, now)

        total_cards = await self.card_store.count_all(deck_id, user_id)
        new_available = await self.card_store.count_new(deck_id, user_id)
        due_available = await self.card_store.count_due(deck_id, user_id, now)

        return DeckStudyStats(
            total_cards=total_cards,
            review_ready_cards=new_available + due_available,
            remaining_reviews=min(new_available, quota.new_remaining)
            + min(due_available, quota.review_remaining),
            progress=quota.progress(),
        )

    async def _require_deck(self, deck_id: str, user_id: str) -> Deck:
        deck = await self.card_store.get_deck(deck_id, user_id)
        if deck is None:
            raise DeckNotFound(
                f"Deck {deck_id} not found",
                details={"deck_id": deck_id, "user_id": user_id},
            )
        return deck

    async def _daily_quota(self, user_id: str, deck: Deck, now: datetime) -> DailyQuota:
        limits = await self.settings_store.get_learning_limits(user_id)
        if limits is None:
            logger.debug(f"No learning limits for user {user_id}; using defaults")
            limits = LearningLimits(
                new_cards_per_day=settings.DEFAULT_NEW_CARDS_PER_DAY,
                max_reviews_per_day=settings.DEFAULT_MAX_REVIEWS_PER_DAY,
            )

        since = now - timedelta(hours=settings.REVIEW_COUNT_WINDOW_HOURS)
        counts = await self.audit_log.counts_since(user_id, deck.id, since)
        return DailyQuota(
            limits=resolve_daily_limits(limits, deck.daily_scaler), counts=counts
        )

    def _take(self, candidates: list[Card], remaining: int) -> list[Card]:
        if len(candidates) > remaining:
            return self.rng.sample(candidates, remaining)
        return list(candidates)
