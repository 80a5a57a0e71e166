"""
Deck Study Test Suite

Test Structure:
    tests/
    ├── conftest.py                  # Shared fixtures and configuration
    └── unit/                        # Unit tests (isolated, no external dependencies)
        ├── test_config.py           # Configuration loading tests
        ├── test_fsrs.py             # Card scheduler tests
        ├── test_fuzz.py             # Interval fuzz tests
        ├── test_learning_models.py  # Pydantic model tests
        ├── test_parameter_cache.py  # Parameter cache tests
        ├── test_quotas.py           # Daily quota tests
        ├── test_review_queue.py     # Queue building and submission tests
        └── test_stores.py           # SQL adapter tests (mocked session)

Running Tests:
    # Run all tests
    pytest backend/tests/ -v

    # Run with coverage
    pytest backend/tests/ --cov=deckstudy --cov-report=html
"""
