"""
Shared Test Fixtures and Configuration

This module provides pytest fixtures used across the unit tests.
"""

import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Generator
from unittest.mock import AsyncMock, MagicMock

import pytest
from dotenv import load_dotenv

# Add the backend directory to the path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load .env file from project root BEFORE any fixtures run
_project_root = Path(__file__).parent.parent.parent
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)
else:
    # Try backend directory
    _backend_env = Path(__file__).parent.parent / ".env"
    if _backend_env.exists():
        load_dotenv(_backend_env)

from deckstudy.enums.learning import CardState  # noqa: E402
from deckstudy.models.learning import (  # noqa: E402
    Card,
    Deck,
    LearningLimits,
    ReviewCounts,
    SchedulingParameters,
)
from deckstudy.services.learning.fsrs import CardScheduler  # noqa: E402
from deckstudy.services.learning.ports import (  # noqa: E402
    AuditLog,
    CardStore,
    SettingsStore,
)

# FSRS-6 default weights
DEFAULT_WEIGHTS: tuple[float, ...] = (
    0.212,
    1.2931,
    2.3065,
    8.2956,
    6.4133,
    0.8334,
    3.0194,
    0.001,
    1.8722,
    0.1666,
    0.796,
    1.4835,
    0.0614,
    0.2629,
    1.6483,
    0.6014,
    1.8729,
    0.5425,
    0.0912,
    0.0658,
    0.1542,
)

# FSRS-5 default weights (19 values)
FSRS5_WEIGHTS: tuple[float, ...] = (
    0.40255,
    1.18385,
    3.173,
    15.69105,
    7.1949,
    0.5345,
    1.4604,
    0.0046,
    1.54575,
    0.1192,
    1.01925,
    1.9395,
    0.11,
    0.29605,
    2.2698,
    0.2315,
    2.9898,
    0.51655,
    0.6621,
)

USER_ID = "user-1"
DECK_ID = "deck-1"


# ============================================================================
# Environment Configuration
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment() -> Generator[None, None, None]:
    """
    Set up test environment variables before any tests run.

    This ensures tests run with predictable configuration, overriding
    any values from .env files to ensure test isolation.
    """
    original_env = os.environ.copy()

    test_env = {
        "POSTGRES_HOST": os.environ.get("POSTGRES_HOST", "localhost"),
        "POSTGRES_PORT": os.environ.get("POSTGRES_PORT", "5432"),
        "POSTGRES_USER": os.environ.get("POSTGRES_TEST_USER", "testuser"),
        "POSTGRES_PASSWORD": os.environ.get("POSTGRES_TEST_PASSWORD", "testpass"),
        "POSTGRES_DB": os.environ.get("POSTGRES_TEST_DB", "testdb"),
        "DEBUG": "true",
    }
    os.environ.update(test_env)

    yield

    os.environ.clear()
    os.environ.update(original_env)


# ============================================================================
# Scheduling Fixtures
# ============================================================================


@pytest.fixture
def now() -> datetime:
    """Fixed review time so results are reproducible."""
    return datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def parameters() -> SchedulingParameters:
    return SchedulingParameters(
        request_retention=0.9,
        maximum_interval=36500,
        weights=DEFAULT_WEIGHTS,
        enable_fuzz=False,
        enable_short_term=True,
    )


@pytest.fixture
def scheduler(parameters) -> CardScheduler:
    return CardScheduler(parameters)


@pytest.fixture
def new_card() -> Card:
    """A card that has never been reviewed."""
    return Card(id="card-new", user_id=USER_ID, deck_id=DECK_ID)


@pytest.fixture
def learning_card(now) -> Card:
    """A card on its second learning step."""
    return Card(
        id="card-learning",
        user_id=USER_ID,
        deck_id=DECK_ID,
        state=CardState.LEARNING,
        due=now - timedelta(minutes=1),
        stability=2.3065,
        difficulty=2.118,
        elapsed_days=0.0,
        scheduled_days=0,
        reps=1,
        lapses=0,
        last_review=now - timedelta(minutes=11),
        learning_step=1,
    )


@pytest.fixture
def review_card(now) -> Card:
    """A graduated card that came due today."""
    return Card(
        id="card-review",
        user_id=USER_ID,
        deck_id=DECK_ID,
        state=CardState.REVIEW,
        due=now - timedelta(hours=2),
        stability=10.0,
        difficulty=5.0,
        elapsed_days=3.0,
        scheduled_days=10,
        reps=5,
        lapses=0,
        last_review=now - timedelta(days=10),
    )


@pytest.fixture
def relearning_card(now) -> Card:
    """A card that lapsed and is on its first relearning step."""
    return Card(
        id="card-relearning",
        user_id=USER_ID,
        deck_id=DECK_ID,
        state=CardState.RELEARNING,
        due=now - timedelta(minutes=5),
        stability=1.5,
        difficulty=7.0,
        elapsed_days=12.0,
        scheduled_days=0,
        reps=8,
        lapses=1,
        last_review=now - timedelta(minutes=15),
        learning_step=0,
    )


@pytest.fixture
def deck() -> Deck:
    return Deck(id=DECK_ID, user_id=USER_ID, name="Spanish", daily_scaler=1.0)


# ============================================================================
# Mock Fixtures
# ============================================================================


@pytest.fixture
def mock_settings_store(parameters) -> AsyncMock:
    """Settings store with parameters and 5 new / 10 review limits."""
    store = AsyncMock(spec=SettingsStore)
    store.get_parameters.return_value = parameters
    store.get_learning_limits.return_value = LearningLimits(
        new_cards_per_day=5, max_reviews_per_day=10
    )
    return store


@pytest.fixture
def mock_card_store(deck) -> AsyncMock:
    """Card store holding an empty deck."""
    store = AsyncMock(spec=CardStore)
    store.get_deck.return_value = deck
    store.get_card.return_value = None
    store.fetch_new.return_value = []
    store.fetch_due.return_value = []
    store.count_all.return_value = 0
    store.count_new.return_value = 0
    store.count_due.return_value = 0
    store.write_schedule_update.return_value = None
    return store


@pytest.fixture
def mock_audit_log() -> AsyncMock:
    """Audit log with nothing reviewed in the count window."""
    log = AsyncMock(spec=AuditLog)
    log.counts_since.return_value = ReviewCounts(
        new_cards_count=0, review_cards_count=0
    )
    log.append.return_value = None
    return log


@pytest.fixture
def mock_db_session() -> MagicMock:
    """
    Create a mock database session for unit testing.
    """
    mock = MagicMock()
    mock.execute = AsyncMock()
    mock.commit = AsyncMock()
    mock.rollback = AsyncMock()
    mock.close = AsyncMock()
    return mock
