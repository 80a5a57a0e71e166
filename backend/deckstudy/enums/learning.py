"""
Learning System Enums

Defines the ordinal enums shared by the FSRS scheduler, the review queue and
the storage adapters. Values match the integers persisted in the cards and
review_logs tables.
"""

from enum import IntEnum


class CardState(IntEnum):
    """
    FSRS card states in the learning state machine.

    State transitions:
    - NEW → LEARNING (first review) or REVIEW (first review without short-term steps)
    - LEARNING → REVIEW (graduated) or LEARNING (still learning)
    - REVIEW → REVIEW (success) or RELEARNING (lapse)
    - RELEARNING → REVIEW (recovered) or RELEARNING (still struggling)

    A card never returns to NEW once reviewed.
    """

    NEW = 0  # Never reviewed, initial state
    LEARNING = 1  # Being learned, short intervals
    REVIEW = 2  # Graduated, normal spaced intervals
    RELEARNING = 3  # Lapsed and being relearned


class Rating(IntEnum):
    """
    FSRS review ratings.

    User self-assessment after reviewing a card, in increasing order of ease.
    """

    AGAIN = 1  # Complete failure, reset learning
    HARD = 2  # Significant difficulty, shorter interval
    GOOD = 3  # Correct with reasonable effort, normal interval
    EASY = 4  # Too easy, longer interval
