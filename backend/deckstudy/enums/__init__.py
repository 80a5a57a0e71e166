"""
Centralized enum definitions for the application.

Usage:
    from deckstudy.enums import CardState, Rating
"""

from deckstudy.enums.learning import CardState, Rating

__all__ = [
    "CardState",
    "Rating",
]
