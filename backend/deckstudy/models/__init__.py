"""Pydantic models for the application."""

from deckstudy.models.learning import (
    AllCaughtUp,
    Card,
    DailyLimitReached,
    DailyLimits,
    DailyProgress,
    Deck,
    DeckStudyStats,
    EmptyDeck,
    LearningLimits,
    QueuedCard,
    QueueReady,
    QueueResult,
    ReviewCommitted,
    ReviewCounts,
    ReviewLogEntry,
    ReviewMetrics,
    ReviewNotFound,
    ScheduleUpdate,
    SchedulingParameters,
    SubmitResult,
)

__all__ = [
    "AllCaughtUp",
    "Card",
    "DailyLimitReached",
    "DailyLimits",
    "DailyProgress",
    "Deck",
    "DeckStudyStats",
    "EmptyDeck",
    "LearningLimits",
    "QueuedCard",
    "QueueReady",
    "QueueResult",
    "ReviewCommitted",
    "ReviewCounts",
    "ReviewLogEntry",
    "ReviewMetrics",
    "ReviewNotFound",
    "ScheduleUpdate",
    "SchedulingParameters",
    "SubmitResult",
]
