"""
SQLAlchemy Database Models for Study Scheduling

Tables:
- decks: Card collections with their daily quota multiplier
- cards: FSRS scheduling state per card
- review_logs: Append-only audit log of committed reviews
- user_settings: Per-user settings document (FSRS parameters, learning limits)

Only the columns the scheduler reads or writes are mapped, plus identity and
ownership. Card content (front/back) lives elsewhere.

ARCHITECTURE NOTE:
    This file contains SQLALCHEMY models for database persistence.
    There is a corresponding Pydantic file: deckstudy/models/learning.py

    Data flows: Service Layer → Pydantic → SQLAlchemy → Database
"""

from datetime import datetime, timezone
from typing import Optional
import uuid


def _utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


from sqlalchemy import (
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    SmallInteger,
    String,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from deckstudy.db.base import Base


class DeckRecord(Base):
    """
    A user's deck.

    Attributes:
        id: UUID string primary key.
        user_id: Owner of the deck.
        name: Display name.
        daily_scaler: Multiplier applied to the owner's daily limits for
            this deck. Defaults to 1.0.
    """

    __tablename__ = "decks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    name: Mapped[str] = mapped_column(String(255), default="")
    daily_scaler: Mapped[float] = mapped_column(Float, default=1.0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )


class CardRecord(Base):
    """
    Scheduling state of one card.

    Attributes:
        state: CardState value (0 new, 1 learning, 2 review, 3 relearning).
        due: When the card is next due. Null while the card is new.
        stability: Memory stability in days (FSRS).
        difficulty: FSRS difficulty (1-10). 0 while the card is new.
        elapsed_days: Days between the last two reviews.
        scheduled_days: Whole days between the last review and due.
        reps: Number of committed reviews.
        lapses: Times the card was forgotten while in review.
        last_review: Timestamp of the most recent review.
        learning_step: Position in the learning/relearning step sequence.
    """

    __tablename__ = "cards"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    deck_id: Mapped[str] = mapped_column(
        ForeignKey("decks.id", ondelete="CASCADE"), index=True
    )

    # FSRS state
    state: Mapped[int] = mapped_column(SmallInteger, default=0)
    due: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    stability: Mapped[float] = mapped_column(Float, default=0.0)
    difficulty: Mapped[float] = mapped_column(Float, default=0.0)
    elapsed_days: Mapped[float] = mapped_column(Float, default=0.0)
    scheduled_days: Mapped[int] = mapped_column(Integer, default=0)
    reps: Mapped[int] = mapped_column(Integer, default=0)
    lapses: Mapped[int] = mapped_column(Integer, default=0)
    last_review: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    learning_step: Mapped[int] = mapped_column(SmallInteger, default=0)

    __table_args__ = (Index("ix_cards_deck_state_due", "deck_id", "state", "due"),)


class ReviewLogRecord(Base):
    """
    One committed review.

    Rows are only ever inserted. state_before decides which daily quota the
    review was charged to.
    """

    __tablename__ = "review_logs"

    id: Mapped[int] = mapped_column(primary_key=True)
    card_id: Mapped[str] = mapped_column(
        ForeignKey("cards.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[str] = mapped_column(String(36))
    deck_id: Mapped[str] = mapped_column(String(36))

    rating: Mapped[int] = mapped_column(SmallInteger)
    state_before: Mapped[int] = mapped_column(SmallInteger)
    state_after: Mapped[int] = mapped_column(SmallInteger)
    due_before: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    due_after: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    stability_before: Mapped[float] = mapped_column(Float)
    stability_after: Mapped[float] = mapped_column(Float)
    difficulty_before: Mapped[float] = mapped_column(Float)
    difficulty_after: Mapped[float] = mapped_column(Float)
    elapsed_days: Mapped[float] = mapped_column(Float)
    last_elapsed_days: Mapped[float] = mapped_column(Float)
    scheduled_days: Mapped[int] = mapped_column(Integer)
    reviewed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )

    __table_args__ = (
        Index("ix_review_logs_user_deck_reviewed", "user_id", "deck_id", "reviewed_at"),
    )


class UserSettingsRecord(Base):
    """
    Per-user settings document.

    The settings column holds camelCase sections, of which the scheduler
    reads two:

        {
            "fsrsParams": {"requestRetention": 0.9, "maximumInterval": 36500,
                           "w": [...], "enableFuzz": false, "enableShortTerm": true},
            "learning": {"newCardsPerDay": 5, "maxReviewsPerDay": 10}
        }
    """

    __tablename__ = "user_settings"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), unique=True)
    settings: Mapped[dict] = mapped_column(JSONB, default=dict)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, onupdate=_utc_now
    )
