"""
FSRS (Free Spaced Repetition Scheduler) Card Scheduler

This module wraps the FSRS library behind the two operations the rest of the
service needs:

- preview(): the next due date for each of the four ratings, without
  changing the card. Shown to the user before they rate a card.
- commit(): applies one rating and returns the fields to persist together
  with an audit log entry.

Key Concepts:
- Stability (S): Days until recall probability decays to 90%
- Difficulty (D): Inherent difficulty of the card (1-10)
- Retrievability (R): Current recall probability based on elapsed time

FSRS State Machine:
    NEW → LEARNING → REVIEW ↔ RELEARNING

The numeric update rule belongs to the library; this module owns the calling
contract: which fields are read, which are produced, and the invariants on
reps, lapses, elapsed days and due ordering.

Note: In fsrs v6+ there is no "New" state. NEW cards are handed to the
library as fresh State.Learning cards with no review history.

Usage:
    from deckstudy.services.learning.fsrs import CardScheduler

    scheduler = CardScheduler(parameters)

    metrics = scheduler.preview(card, now)
    update, log_entry = scheduler.commit(card, Rating.GOOD, now)
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Sequence

from fsrs import Card as FSRSCard, Rating as FSRSRating, Scheduler, State

from deckstudy.config.settings import settings
from deckstudy.enums.learning import CardState, Rating
from deckstudy.errors import InvalidCard, InvalidRating, ParametersUnavailable
from deckstudy.models.learning import (
    Card,
    ReviewLogEntry,
    ReviewMetrics,
    ScheduleUpdate,
    SchedulingParameters,
)
from deckstudy.services.learning.fuzz import fuzz_factor, fuzz_seed, with_review_fuzz

logger = logging.getLogger(__name__)

_ONE_DAY = timedelta(days=1)


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Normalize to an aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def coerce_rating(value: Any) -> Rating:
    """
    Convert a caller-supplied rating to Rating.

    Raises:
        InvalidRating: If value is not one of the four grades (1-4)
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidRating(
            f"Invalid rating: {value!r}. Must be 1-4.", details={"rating": repr(value)}
        )
    try:
        return Rating(int(value))
    except ValueError:
        raise InvalidRating(
            f"Invalid rating: {value!r}. Must be 1-4.", details={"rating": value}
        ) from None


def _validate_card(card: Any) -> Card:
    if card is None:
        raise InvalidCard("Card is required")
    if not isinstance(card, Card):
        raise InvalidCard(f"Expected Card, got {type(card).__name__}")
    if card.is_new():
        if (
            card.due is not None
            or card.stability != 0
            or card.difficulty != 0
            or card.reps != 0
        ):
            raise InvalidCard(
                f"Card {card.id} is new but carries review history",
                details={
                    "card_id": card.id,
                    "due": card.due.isoformat() if card.due else None,
                    "stability": card.stability,
                    "difficulty": card.difficulty,
                    "reps": card.reps,
                },
            )
        return card
    if card.due is None:
        raise InvalidCard(
            f"Card {card.id} is {card.state.name.lower()} but has no due date",
            details={"card_id": card.id},
        )
    if card.stability <= 0 or card.difficulty <= 0:
        raise InvalidCard(
            f"Card {card.id} is {card.state.name.lower()} but has no memory state",
            details={
                "card_id": card.id,
                "stability": card.stability,
                "difficulty": card.difficulty,
            },
        )
    return card


def _minutes(values: Sequence[float]) -> tuple[timedelta, ...]:
    return tuple(timedelta(minutes=v) for v in values)


@dataclass(frozen=True)
class _Outcome:
    """Library result for one rating, before persistence mapping."""

    state: CardState
    step: int
    stability: float
    difficulty: float
    due: datetime


class CardScheduler:
    """
    FSRS scheduler compiled for one SchedulingParameters set.

    Instances are immutable after construction and safe to share between
    concurrent requests; ParameterCache keeps one per user.

    Attributes:
        parameters: The parameter set this scheduler was compiled from
    """

    def __init__(
        self,
        parameters: SchedulingParameters,
        learning_steps: Optional[Sequence[timedelta]] = None,
        relearning_steps: Optional[Sequence[timedelta]] = None,
    ):
        """
        Compile the FSRS scheduler.

        Args:
            parameters: User's scheduling parameters
            learning_steps: Short-term steps for new cards
                (defaults to settings.FSRS_LEARNING_STEPS_MINUTES)
            relearning_steps: Short-term steps after a lapse
                (defaults to settings.FSRS_RELEARNING_STEPS_MINUTES)

        Raises:
            ParametersUnavailable: If FSRS rejects the parameter set
        """
        self.parameters = parameters

        if parameters.enable_short_term:
            if learning_steps is None:
                learning_steps = _minutes(settings.FSRS_LEARNING_STEPS_MINUTES)
            if relearning_steps is None:
                relearning_steps = _minutes(settings.FSRS_RELEARNING_STEPS_MINUTES)
        else:
            # Without short-term scheduling every rating goes straight to REVIEW
            learning_steps = ()
            relearning_steps = ()

        try:
            # Library fuzzing draws from the global random state; fuzz is
            # applied deterministically in _apply_review_intervals instead.
            self._fsrs = Scheduler(
                parameters=parameters.weights,
                desired_retention=parameters.request_retention,
                learning_steps=tuple(learning_steps),
                relearning_steps=tuple(relearning_steps),
                maximum_interval=parameters.maximum_interval,
                enable_fuzzing=False,
            )
        except ValueError as e:
            raise ParametersUnavailable(
                f"Scheduling parameters rejected by FSRS: {e}"
            ) from e

    def preview(self, card: Card, now: Optional[datetime] = None) -> ReviewMetrics:
        """
        Calculate the next due date for every rating without changing the card.

        Args:
            card: Card to preview
            now: Reference time. Defaults to current UTC time.

        Returns:
            ReviewMetrics with again <= hard <= good <= easy

        Raises:
            InvalidCard: If card is missing or malformed
        """
        now = ensure_utc(now or utc_now())
        outcomes = self._repeat(_validate_card(card), now)
        return ReviewMetrics(
            again=outcomes[Rating.AGAIN].due,
            hard=outcomes[Rating.HARD].due,
            good=outcomes[Rating.GOOD].due,
            easy=outcomes[Rating.EASY].due,
        )

    def commit(
        self,
        card: Card,
        rating: Rating,
        now: Optional[datetime] = None,
    ) -> tuple[ScheduleUpdate, ReviewLogEntry]:
        """
        Apply one rating to a card.

        The result is deterministic in (card, rating, parameters, now) and
        always matches the corresponding branch of preview().

        Counters:
            - reps increases by exactly 1
            - lapses increases by 1 when rating is AGAIN and the card was in REVIEW
            - elapsed_days is the gap since the previous review (0 if never reviewed)
            - last_elapsed_days (log only) is the card's previous elapsed_days

        Args:
            card: Current scheduling state of the card
            rating: User's self-assessment (AGAIN, HARD, GOOD, EASY)
            now: Review timestamp. Defaults to current UTC time.
                Pass explicit time for backdated submissions or testing.

        Returns:
            Tuple containing:
                - ScheduleUpdate: Fields to write back to the card row
                - ReviewLogEntry: Audit record with before/after state

        Raises:
            InvalidRating: If rating is not one of the four grades
            InvalidCard: If card is missing or malformed
        """
        rating = coerce_rating(rating)
        card = _validate_card(card)
        now = ensure_utc(now or utc_now())

        outcome = self._repeat(card, now)[rating]

        elapsed_days = 0.0
        if card.last_review is not None:
            elapsed_days = max(
                0.0, (now - ensure_utc(card.last_review)).total_seconds() / 86400
            )
        scheduled_days = max(0, (outcome.due - now).days)
        lapses = card.lapses + (
            1 if rating == Rating.AGAIN and card.state == CardState.REVIEW else 0
        )

        update = ScheduleUpdate(
            state=outcome.state,
            due=outcome.due,
            stability=outcome.stability,
            difficulty=outcome.difficulty,
            elapsed_days=elapsed_days,
            scheduled_days=scheduled_days,
            reps=card.reps + 1,
            lapses=lapses,
            last_review=now,
            learning_step=outcome.step,
        )

        log_entry = ReviewLogEntry(
            card_id=card.id,
            user_id=card.user_id,
            deck_id=card.deck_id,
            rating=rating,
            state_before=card.state,
            state_after=outcome.state,
            due_before=card.due,
            due_after=outcome.due,
            stability_before=card.stability,
            stability_after=outcome.stability,
            difficulty_before=card.difficulty,
            difficulty_after=outcome.difficulty,
            elapsed_days=elapsed_days,
            last_elapsed_days=card.elapsed_days,
            scheduled_days=scheduled_days,
            reviewed_at=now,
        )

        logger.debug(
            f"Scheduled card {card.id}: {card.state.name} -> {outcome.state.name} "
            f"({rating.name}), due {outcome.due.isoformat()}"
        )

        return update, log_entry

    def retrievability(self, card: Card, now: Optional[datetime] = None) -> float:
        """
        Get current recall probability for a card.

        Returns:
            Probability of recall (0.0 to 1.0). New cards return 1.0.
        """
        card = _validate_card(card)
        if card.is_new():
            return 1.0
        now = ensure_utc(now or utc_now())
        return self._fsrs.get_card_retrievability(self._to_fsrs_card(card, now), now)

    def _repeat(self, card: Card, now: datetime) -> dict[Rating, _Outcome]:
        """Run the library once per rating on fresh copies of the card."""
        outcomes: dict[Rating, _Outcome] = {}
        for rating in Rating:
            result, _ = self._fsrs.review_card(
                self._to_fsrs_card(card, now), FSRSRating(rating.value), now
            )
            outcomes[rating] = _Outcome(
                state=CardState(result.state.value),
                step=result.step or 0,
                stability=result.stability,
                difficulty=result.difficulty,
                due=ensure_utc(result.due),
            )
        return self._apply_review_intervals(card, outcomes, now)

    def _apply_review_intervals(
        self,
        card: Card,
        outcomes: dict[Rating, _Outcome],
        now: datetime,
    ) -> dict[Rating, _Outcome]:
        """
        Fuzz REVIEW intervals and keep the four due dates ordered.

        REVIEW intervals must strictly increase with the rating (bounded by
        the maximum interval); short-term steps are left as scheduled.
        """
        factor = None
        if self.parameters.enable_fuzz:
            factor = fuzz_factor(
                fuzz_seed(now, card.reps, card.difficulty, card.stability)
            )

        previous_interval: Optional[int] = None
        for rating in Rating:
            outcome = outcomes[rating]
            if outcome.state != CardState.REVIEW:
                continue
            minimum = 1 if previous_interval is None else previous_interval + 1
            interval = with_review_fuzz(
                factor,
                (outcome.due - now) / _ONE_DAY,
                minimum,
                self.parameters.maximum_interval,
            )
            outcomes[rating] = replace(outcome, due=now + timedelta(days=interval))
            previous_interval = interval

        latest: Optional[datetime] = None
        for rating in Rating:
            if latest is not None and outcomes[rating].due < latest:
                outcomes[rating] = replace(outcomes[rating], due=latest)
            latest = outcomes[rating].due

        return outcomes

    @staticmethod
    def _to_fsrs_card(card: Card, now: datetime) -> FSRSCard:
        # card_id is passed explicitly; the library otherwise derives one
        # from the clock and sleeps to keep it unique
        if card.is_new():
            return FSRSCard(card_id=0, due=now)

        state = State(card.state.value)
        return FSRSCard(
            card_id=0,
            state=state,
            step=None if state == State.Review else card.learning_step,
            stability=card.stability,
            difficulty=card.difficulty,
            due=ensure_utc(card.due),
            last_review=ensure_utc(card.last_review) if card.last_review else None,
        )
