"""
Deterministic interval fuzz.

Spreads review intervals over Anki's fuzz ranges so cards learned together
do not keep coming due on the same day. The fuzz factor is drawn from a
``random.Random`` seeded by the review event, so previewing and committing
the same review always land on the same day.

Fuzz ranges (days → +/- share of the part of the interval inside the range):
    2.5 - 7   : 15%
    7   - 20  : 10%
    20  - inf : 5%
Intervals below 2.5 days are never fuzzed.
"""

from __future__ import annotations

import math
import random
from datetime import datetime
from typing import Optional

FUZZ_RANGES: list[tuple[float, float, float]] = [
    (2.5, 7.0, 0.15),
    (7.0, 20.0, 0.1),
    (20.0, float("inf"), 0.05),
]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def fuzz_delta(interval: float) -> float:
    """Half-width of the fuzz window for ``interval`` days."""
    if interval < 2.5:
        return 0.0
    delta = 1.0
    for start, end, factor in FUZZ_RANGES:
        span = max(0.0, min(interval, end) - start)
        delta += factor * span
    return delta


def constrained_fuzz_bounds(
    interval: float, minimum: int, maximum: int
) -> tuple[int, int]:
    """Inclusive [lower, upper] day window, clipped to [minimum, maximum]."""
    minimum = min(minimum, maximum)
    interval = max(float(minimum), min(float(maximum), interval))
    delta = fuzz_delta(interval)
    lower = max(minimum, min(maximum, _round_half_up(interval - delta)))
    upper = max(minimum, min(maximum, _round_half_up(interval + delta)))
    if upper == lower and upper > 2 and upper < maximum:
        upper = lower + 1
    return lower, upper


def with_review_fuzz(
    fuzz_factor: Optional[float],
    interval: float,
    minimum: int,
    maximum: int,
) -> int:
    """
    Final review interval in whole days.

    Args:
        fuzz_factor: Uniform draw in [0, 1), or None to disable fuzz
        interval: Unfuzzed interval in days
        minimum: Smallest allowed result (clipped to ``maximum``)
        maximum: Largest allowed result (the user's maximum interval)
    """
    minimum = min(minimum, maximum)
    if fuzz_factor is None:
        return max(minimum, min(maximum, _round_half_up(interval)))
    lower, upper = constrained_fuzz_bounds(interval, minimum, maximum)
    return min(upper, int(math.floor(lower + fuzz_factor * (1 + upper - lower))))


def fuzz_seed(review_time: datetime, reps: int, difficulty: float, stability: float) -> str:
    """Seed identifying one review event of one card."""
    return f"{int(review_time.timestamp() * 1000)}_{reps}_{difficulty * stability}"


def fuzz_factor(seed: str) -> float:
    """Uniform draw in [0, 1) that depends only on ``seed``."""
    return random.Random(seed).random()
