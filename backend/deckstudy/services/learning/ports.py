"""
Storage ports for the review queue.

The queue builder talks to storage only through these interfaces, so it can
be exercised against in-memory fakes in tests and against the SQL adapters
in deckstudy.services.learning.stores in production.

All methods are scoped to a user: a record owned by another user behaves as
if it did not exist.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from deckstudy.models.learning import (
    Card,
    Deck,
    LearningLimits,
    ReviewCounts,
    ReviewLogEntry,
    ScheduleUpdate,
    SchedulingParameters,
)


class SettingsStore(ABC):
    """Per-user settings lookup."""

    @abstractmethod
    async def get_parameters(self, user_id: str) -> Optional[SchedulingParameters]:
        """Return the user's scheduling parameters, or None if none are stored."""
        ...

    @abstractmethod
    async def get_learning_limits(self, user_id: str) -> Optional[LearningLimits]:
        """Return the user's base daily limits, or None if none are stored."""
        ...


class CardStore(ABC):
    """Deck and card access."""

    @abstractmethod
    async def get_deck(self, deck_id: str, user_id: str) -> Optional[Deck]: ...

    @abstractmethod
    async def get_card(self, card_id: str, user_id: str) -> Optional[Card]: ...

    @abstractmethod
    async def fetch_new(self, deck_id: str, user_id: str) -> list[Card]:
        """All NEW cards in the deck."""
        ...

    @abstractmethod
    async def fetch_due(
        self, deck_id: str, user_id: str, now: datetime
    ) -> list[Card]:
        """All non-NEW cards in the deck with ``due <= now``."""
        ...

    @abstractmethod
    async def count_all(self, deck_id: str, user_id: str) -> int: ...

    @abstractmethod
    async def count_new(self, deck_id: str, user_id: str) -> int: ...

    @abstractmethod
    async def count_due(self, deck_id: str, user_id: str, now: datetime) -> int: ...

    @abstractmethod
    async def write_schedule_update(
        self, card_id: str, user_id: str, update: ScheduleUpdate
    ) -> Optional[Card]:
        """
        Persist a schedule update.

        Returns:
            The updated card, or None if no row matched (card deleted or
            not owned by the user).
        """
        ...


class AuditLog(ABC):
    """Review log used for daily quota accounting."""

    @abstractmethod
    async def counts_since(
        self, user_id: str, deck_id: str, since: datetime
    ) -> ReviewCounts:
        """Count reviews logged at or after ``since``, by pre-review category."""
        ...

    @abstractmethod
    async def append(self, entry: ReviewLogEntry) -> None: ...
