"""
Pytest fixtures for the coupon book test suite.

Provides:
- SQLite in-memory database sessions with the chart of accounts seeded
- A deterministic clock and seeded random generator
- User profile factories for targeting tests
- Structured log capture
"""

import json
import logging
import random
from datetime import datetime, timezone
from io import StringIO

import pytest

from couponbook_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from couponbook_kernel.domain.clock import DeterministicClock
from couponbook_kernel.domain.targeting import UserProfile
from couponbook_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from couponbook_kernel.services.chart_service import ChartOfAccountsService

TEST_ACTOR = "test-admin"

FIXED_NOW = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture couponbook logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, accounting):
            accounting.record_event(...)
            logs = captured_logs()
            assert any(r["message"] == "journal_entry_written" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("couponbook")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Time and randomness
# =============================================================================


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(FIXED_NOW)


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def db_engine():
    """Fresh in-memory SQLite database with all tables created."""
    engine = init_engine_from_url("sqlite:///:memory:")
    create_tables()
    yield engine
    drop_tables()
    reset_engine()


@pytest.fixture
def session(db_engine):
    """Session over a seeded chart of accounts; rolled back after the test."""
    s = get_session()
    ChartOfAccountsService(s).seed(created_by=TEST_ACTOR)
    yield s
    s.rollback()
    s.close()


# =============================================================================
# Targeting data
# =============================================================================


@pytest.fixture
def make_user():
    """Factory for UserProfile with sensible defaults."""

    def _make(user_id: str = "user-1", **overrides) -> UserProfile:
        data = {
            "id": f"profile-{user_id}",
            "user_id": user_id,
            "email": f"{user_id}@example.com",
            "signup_date": "2024-09-01",
            "last_activity": "2025-01-10",
            "zip_code": "35223",
            "school_id": "school-mb",
            "grade": "9",
            "referrer_code": None,
        }
        data.update(overrides)
        return UserProfile(**data)

    return _make


@pytest.fixture
def population(make_user) -> list[UserProfile]:
    """A small mixed population across zips, schools and grades."""
    return [
        make_user("u1", zip_code="35223", grade="9"),
        make_user("u2", zip_code="35213", grade="12"),
        make_user("u3", zip_code="90210", school_id="school-bh", grade="10"),
        make_user("u4", zip_code="35223", grade="12", referrer_code="STU_ABC12345"),
        make_user("u5", zip_code=None, school_id=None, grade=None),
    ]
