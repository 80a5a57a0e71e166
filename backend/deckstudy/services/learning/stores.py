"""
SQLAlchemy Store Adapters

PostgreSQL implementations of the storage ports used by the review queue.

- SqlSettingsStore opens a short-lived session per lookup, because it backs
  the long-lived ParameterCache.
- SqlCardStore and SqlAuditLog work on the request's AsyncSession.

Every query filters on user_id, so rows owned by other users are invisible.

Usage:
    async with async_session_maker() as session:
        card_store = SqlCardStore(session)
        card = await card_store.get_card(card_id, user_id)
"""

import logging
from datetime import datetime
from typing import Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, select, update as sql_update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from deckstudy.config.settings import settings
from deckstudy.db.models_learning import (
    CardRecord,
    DeckRecord,
    ReviewLogRecord,
    UserSettingsRecord,
)
from deckstudy.enums.learning import CardState
from deckstudy.errors import ParametersUnavailable, ValidationError
from deckstudy.models.learning import (
    Card,
    Deck,
    LearningLimits,
    ReviewCounts,
    ReviewLogEntry,
    ScheduleUpdate,
    SchedulingParameters,
)
from deckstudy.services.learning.ports import AuditLog, CardStore, SettingsStore

logger = logging.getLogger(__name__)

FSRS_PARAMS_KEY = "fsrsParams"
LEARNING_KEY = "learning"


class SqlSettingsStore(SettingsStore):
    """Reads scheduling settings from the user_settings JSONB document."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    async def get_parameters(self, user_id: str) -> Optional[SchedulingParameters]:
        """
        Raises:
            ParametersUnavailable: If the stored parameters are malformed
        """
        section = (await self._load_document(user_id)).get(FSRS_PARAMS_KEY)
        if not section:
            return None
        try:
            return SchedulingParameters.model_validate(section)
        except PydanticValidationError as e:
            raise ParametersUnavailable(
                f"Stored scheduling parameters for user {user_id} are invalid",
                details={"user_id": user_id, "errors": e.errors()},
            ) from e

    async def get_learning_limits(self, user_id: str) -> Optional[LearningLimits]:
        """
        Missing individual limits fall back to the configured defaults.

        Raises:
            ValidationError: If a stored limit is not a non-negative integer
        """
        section = (await self._load_document(user_id)).get(LEARNING_KEY)
        if not section:
            return None
        values = {
            "new_cards_per_day": section.get(
                "newCardsPerDay", settings.DEFAULT_NEW_CARDS_PER_DAY
            ),
            "max_reviews_per_day": section.get(
                "maxReviewsPerDay", settings.DEFAULT_MAX_REVIEWS_PER_DAY
            ),
        }
        try:
            return LearningLimits.model_validate(values)
        except PydanticValidationError as e:
            raise ValidationError(
                f"Stored learning limits for user {user_id} are invalid",
                details={"user_id": user_id, "errors": e.errors()},
            ) from e

    async def _load_document(self, user_id: str) -> dict:
        async with self.session_maker() as session:
            result = await session.execute(
                select(UserSettingsRecord.settings).where(
                    UserSettingsRecord.user_id == user_id
                )
            )
            document = result.scalar_one_or_none()
        return document or {}


class SqlCardStore(CardStore):
    """Deck and card queries on the request session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_deck(self, deck_id: str, user_id: str) -> Optional[Deck]:
        result = await self.db.execute(
            select(DeckRecord).where(
                DeckRecord.id == deck_id, DeckRecord.user_id == user_id
            )
        )
        record = result.scalar_one_or_none()
        return Deck.model_validate(record) if record else None

    async def get_card(self, card_id: str, user_id: str) -> Optional[Card]:
        result = await self.db.execute(
            select(CardRecord).where(
                CardRecord.id == card_id, CardRecord.user_id == user_id
            )
        )
        record = result.scalar_one_or_none()
        return Card.model_validate(record) if record else None

    async def fetch_new(self, deck_id: str, user_id: str) -> list[Card]:
        result = await self.db.execute(
            select(CardRecord).where(
                CardRecord.deck_id == deck_id,
                CardRecord.user_id == user_id,
                CardRecord.state == int(CardState.NEW),
            )
        )
        return [Card.model_validate(r) for r in result.scalars().all()]

    async def fetch_due(
        self, deck_id: str, user_id: str, now: datetime
    ) -> list[Card]:
        result = await self.db.execute(
            select(CardRecord)
            .where(
                CardRecord.deck_id == deck_id,
                CardRecord.user_id == user_id,
                CardRecord.state != int(CardState.NEW),
                CardRecord.due <= now,
            )
            .order_by(CardRecord.due)
        )
        return [Card.model_validate(r) for r in result.scalars().all()]

    async def count_all(self, deck_id: str, user_id: str) -> int:
        result = await self.db.execute(
            select(func.count(CardRecord.id)).where(
                CardRecord.deck_id == deck_id, CardRecord.user_id == user_id
            )
        )
        return result.scalar() or 0

    async def count_new(self, deck_id: str, user_id: str) -> int:
        result = await self.db.execute(
            select(func.count(CardRecord.id)).where(
                CardRecord.deck_id == deck_id,
                CardRecord.user_id == user_id,
                CardRecord.state == int(CardState.NEW),
            )
        )
        return result.scalar() or 0

    async def count_due(self, deck_id: str, user_id: str, now: datetime) -> int:
        result = await self.db.execute(
            select(func.count(CardRecord.id)).where(
                CardRecord.deck_id == deck_id,
                CardRecord.user_id == user_id,
                CardRecord.state != int(CardState.NEW),
                CardRecord.due <= now,
            )
        )
        return result.scalar() or 0

    async def write_schedule_update(
        self, card_id: str, user_id: str, update: ScheduleUpdate
    ) -> Optional[Card]:
        """Conditional write on (id, user_id); None when no row matched."""
        values = update.model_dump()
        values["state"] = int(update.state)
        result = await self.db.execute(
            sql_update(CardRecord)
            .where(CardRecord.id == card_id, CardRecord.user_id == user_id)
            .values(**values)
            .returning(CardRecord)
        )
        record = result.scalar_one_or_none()
        card = Card.model_validate(record) if record else None
        await self.db.commit()

        if card is None:
            logger.debug(f"Schedule update for card {card_id} matched no rows")
        return card


class SqlAuditLog(AuditLog):
    """Review log stored in review_logs."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def counts_since(
        self, user_id: str, deck_id: str, since: datetime
    ) -> ReviewCounts:
        result = await self.db.execute(
            select(
                func.count(ReviewLogRecord.id).filter(
                    ReviewLogRecord.state_before == int(CardState.NEW)
                ),
                func.count(ReviewLogRecord.id).filter(
                    ReviewLogRecord.state_before > int(CardState.NEW)
                ),
            ).where(
                ReviewLogRecord.user_id == user_id,
                ReviewLogRecord.deck_id == deck_id,
                ReviewLogRecord.reviewed_at >= since,
            )
        )
        new_count, review_count = result.one()
        return ReviewCounts(
            new_cards_count=new_count or 0, review_cards_count=review_count or 0
        )

    async def append(self, entry: ReviewLogEntry) -> None:
        values = entry.model_dump()
        for key in ("rating", "state_before", "state_after"):
            values[key] = int(values[key])

        self.db.add(ReviewLogRecord(**values))
        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
