"""
Learning System Models (Pydantic)

Value types for the scheduling core:
- Scheduling parameters and daily learning limits resolved per user
- Cards (the schedule fields the scheduler reads and writes)
- Schedule updates and review log entries produced by a committed review
- Daily quota snapshots and review-queue / submission results

ARCHITECTURE NOTE:
    This file contains PYDANTIC models. The corresponding SQLAlchemy tables
    live in deckstudy/db/models_learning.py.

    Data flows: Storage → SQLAlchemy → Pydantic → Scheduler → Pydantic → Storage

Result types:
    QueueResult and SubmitResult are discriminated unions on ``status`` so
    callers must handle every outcome explicitly:

        match result:
            case QueueReady(cards=cards): ...
            case AllCaughtUp(total_cards=total): ...
            case EmptyDeck() | DailyLimitReached(): ...
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import AliasChoices, ConfigDict, Field, field_validator

from deckstudy.enums.learning import CardState, Rating
from deckstudy.models.base import FrozenModel, StrictResponse

# FSRS-6 uses 21 weights. FSRS-5 vectors (19 weights) are migrated by
# appending a zero short-term exponent and the FSRS-5 fixed decay.
FSRS6_WEIGHT_COUNT = 21
FSRS5_WEIGHT_COUNT = 19
FSRS5_MIGRATION_TAIL: tuple[float, ...] = (0.0, 0.5)


# ===========================================
# Per-user Configuration
# ===========================================


class SchedulingParameters(FrozenModel):
    """
    Immutable FSRS parameter set owned by a user.

    Resolved from the settings store and never mutated in place: a settings
    change produces a new instance and invalidates the cached scheduler.

    Accepts both snake_case and the camelCase keys stored in user settings
    (``requestRetention``, ``maximumInterval``, ``w``, ``enableFuzz``,
    ``enableShortTerm``).
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    request_retention: float = Field(
        ...,
        gt=0.0,
        le=1.0,
        validation_alias=AliasChoices("request_retention", "requestRetention"),
        description="Target probability of recall at the due date",
    )
    maximum_interval: int = Field(
        ...,
        gt=0,
        validation_alias=AliasChoices("maximum_interval", "maximumInterval"),
        description="Longest possible interval in days",
    )
    weights: tuple[float, ...] = Field(
        ...,
        validation_alias=AliasChoices("weights", "w"),
        description="FSRS weight vector (opaque to the scheduler)",
    )
    enable_fuzz: bool = Field(
        False, validation_alias=AliasChoices("enable_fuzz", "enableFuzz")
    )
    enable_short_term: bool = Field(
        True, validation_alias=AliasChoices("enable_short_term", "enableShortTerm")
    )

    @field_validator("weights")
    @classmethod
    def _migrate_weights(cls, weights: tuple[float, ...]) -> tuple[float, ...]:
        if not all(math.isfinite(w) for w in weights):
            raise ValueError("weights must be finite numbers")
        if len(weights) == FSRS5_WEIGHT_COUNT:
            return tuple(weights) + FSRS5_MIGRATION_TAIL
        if len(weights) != FSRS6_WEIGHT_COUNT:
            raise ValueError(
                f"expected {FSRS6_WEIGHT_COUNT} (or {FSRS5_WEIGHT_COUNT}) weights, "
                f"got {len(weights)}"
            )
        return tuple(weights)


class LearningLimits(FrozenModel):
    """Base daily quotas from a user's learning settings."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    new_cards_per_day: int = Field(
        ..., ge=0, validation_alias=AliasChoices("new_cards_per_day", "newCardsPerDay")
    )
    max_reviews_per_day: int = Field(
        ...,
        ge=0,
        validation_alias=AliasChoices("max_reviews_per_day", "maxReviewsPerDay"),
    )


class Deck(StrictResponse):
    """
    Deck fields the review queue needs.

    daily_scaler multiplies both daily quotas for cards in this deck: values
    below 1 slow down difficult decks, values above 1 speed up easy ones.
    """

    id: str
    user_id: str
    name: str = ""
    daily_scaler: float = Field(1.0, gt=0.0)


class DailyLimits(FrozenModel):
    """Per-deck daily quotas derived from LearningLimits and the deck scaler."""

    new_cards_limit: int = Field(..., ge=0)
    review_cards_limit: int = Field(..., ge=0)

    @classmethod
    def scaled(cls, limits: LearningLimits, daily_scaler: float) -> DailyLimits:
        """floor(base × scaler) for both quotas, never negative."""
        return cls(
            new_cards_limit=max(0, math.floor(limits.new_cards_per_day * daily_scaler)),
            review_cards_limit=max(
                0, math.floor(limits.max_reviews_per_day * daily_scaler)
            ),
        )


class ReviewCounts(FrozenModel):
    """Reviews submitted within the trailing window, split by pre-review category."""

    new_cards_count: int = Field(0, ge=0)
    review_cards_count: int = Field(0, ge=0)


class DailyProgress(FrozenModel):
    """Progress snapshot returned alongside every queue and submission result."""

    new_cards_seen: int
    new_cards_limit: int
    review_cards_seen: int
    review_cards_limit: int
    total_remaining: int


# ===========================================
# Cards and Review Outcomes
# ===========================================


class Card(StrictResponse):
    """
    Scheduling view of a card.

    Invariant for NEW cards: due is None and stability, difficulty and reps
    are zero. learning_step is the position in the short-term step sequence
    (only meaningful while LEARNING or RELEARNING).
    """

    id: str
    user_id: str
    deck_id: str

    state: CardState = CardState.NEW
    due: Optional[datetime] = None
    stability: float = Field(0.0, ge=0.0, description="Memory stability in days")
    difficulty: float = Field(0.0, ge=0.0, description="FSRS difficulty (1-10)")
    elapsed_days: float = Field(0.0, ge=0.0)
    scheduled_days: int = Field(0, ge=0)
    reps: int = Field(0, ge=0)
    lapses: int = Field(0, ge=0)
    last_review: Optional[datetime] = None
    learning_step: int = Field(0, ge=0)

    def is_new(self) -> bool:
        """Check if this card has never been reviewed."""
        return self.state == CardState.NEW


class ScheduleUpdate(FrozenModel):
    """Fields written back to the card row after a committed review."""

    state: CardState
    due: datetime
    stability: float
    difficulty: float
    elapsed_days: float
    scheduled_days: int
    reps: int
    lapses: int
    last_review: datetime
    learning_step: int = 0

    def apply_to(self, card: Card) -> Card:
        """Return a copy of ``card`` with these schedule fields."""
        return card.model_copy(update=self.model_dump())


class ReviewLogEntry(FrozenModel):
    """
    Immutable audit record of one committed review.

    state_before decides which daily counter the review is charged to
    (NEW → new cards, anything else → reviews).
    """

    card_id: str
    user_id: str
    deck_id: str
    rating: Rating
    state_before: CardState
    state_after: CardState
    due_before: Optional[datetime] = None
    due_after: datetime
    stability_before: float
    stability_after: float
    difficulty_before: float
    difficulty_after: float
    elapsed_days: float
    last_elapsed_days: float
    scheduled_days: int
    reviewed_at: datetime


class ReviewMetrics(FrozenModel):
    """Candidate next-due timestamps, one per rating."""

    again: datetime
    hard: datetime
    good: datetime
    easy: datetime

    def for_rating(self, rating: Rating) -> datetime:
        return getattr(self, Rating(rating).name.lower())


class QueuedCard(StrictResponse):
    """A card selected for study together with its preview metrics."""

    card: Card
    metrics: ReviewMetrics


class DeckStudyStats(StrictResponse):
    """Per-deck counts shown on deck listings."""

    total_cards: int
    review_ready_cards: int = Field(
        ..., description="New cards plus cards whose due date has passed"
    )
    remaining_reviews: int = Field(
        ..., description="Cards that can still be studied today under the quotas"
    )
    progress: DailyProgress


# ===========================================
# Queue and Submission Results
# ===========================================


class DailyLimitReached(StrictResponse):
    """Both quotas (queue) or the card's category quota (submission) are used up."""

    status: Literal["daily_limit_reached"] = "daily_limit_reached"
    progress: DailyProgress


class EmptyDeck(StrictResponse):
    """The deck has no cards at all."""

    status: Literal["empty_deck"] = "empty_deck"
    progress: DailyProgress


class AllCaughtUp(StrictResponse):
    """The deck has cards but none are eligible right now."""

    status: Literal["all_caught_up"] = "all_caught_up"
    total_cards: int
    progress: DailyProgress


class QueueReady(StrictResponse):
    """Cards selected for study, in presentation order."""

    status: Literal["ready"] = "ready"
    cards: list[QueuedCard]
    progress: DailyProgress


class ReviewNotFound(StrictResponse):
    """The card does not exist or is not owned by the caller."""

    status: Literal["not_found"] = "not_found"


class ReviewCommitted(StrictResponse):
    """The review was applied; ``card`` is the persisted row."""

    status: Literal["committed"] = "committed"
    card: Card


QueueResult = Annotated[
    Union[DailyLimitReached, EmptyDeck, AllCaughtUp, QueueReady],
    Field(discriminator="status"),
]

SubmitResult = Annotated[
    Union[ReviewNotFound, DailyLimitReached, ReviewCommitted],
    Field(discriminator="status"),
]
