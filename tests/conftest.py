"""Shared pytest fixtures for NextBestMove tests.

Fixtures:
    - reset_config_cache: Clear the cached config around every test
    - memory_db: Fresh in-memory SQLite database
    - today / now: Fixed reference date and instant
    - sample_relationship: Stored ACTIVE relationship
    - make_action: Factory for stored actions
"""

from datetime import date, datetime
from typing import Any, Callable, Generator

import pytest

from nextbestmove.core.config import reset_config
from nextbestmove.db.database import Database
from nextbestmove.db.models import (
    Action,
    ActionState,
    ActionType,
    Cadence,
    Relationship,
    RelationshipTier,
)

# Monday
TODAY = date(2026, 3, 2)
NOW = datetime(2026, 3, 2, 12, 0)


@pytest.fixture(autouse=True)
def reset_config_cache(monkeypatch: pytest.MonkeyPatch, tmp_path) -> Generator[None, None, None]:
    """Isolate tests from the developer's environment and .env file."""
    for key in (
        "NEXTMOVE_DB_PATH",
        "NEXTMOVE_LOG_PATH",
        "NEXTMOVE_TIMEZONE",
        "NEXTMOVE_WORK_START_HOUR",
        "NEXTMOVE_WORK_END_HOUR",
        "NEXTMOVE_MAX_ACTIONS_PER_DAY",
        "NEXTMOVE_DEBUG",
        "CALENDAR_PROVIDER",
        "CALENDAR_ACCESS_TOKEN",
        "CALENDAR_TIMEOUT",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def memory_db() -> Generator[Database, None, None]:
    """Create an in-memory database for fast tests.

    Yields:
        Database using :memory:, no cleanup needed
    """
    db = Database(":memory:")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def sample_relationship(memory_db: Database) -> Relationship:
    """Stored ACTIVE relationship with a moderate cadence."""
    relationship = Relationship(
        user_id="u1",
        name="Dana Cole",
        tier=RelationshipTier.ACTIVE,
        cadence=Cadence.MODERATE,
    )
    relationship.id = memory_db.create_relationship(relationship)
    return relationship


@pytest.fixture
def make_action(memory_db: Database) -> Callable[..., Action]:
    """Factory that stores an action for user u1 and returns it with its id."""

    def _make(**kwargs: Any) -> Action:
        fields: dict[str, Any] = {
            "user_id": "u1",
            "action_type": ActionType.FOLLOW_UP,
            "state": ActionState.NEW,
            "due_date": TODAY,
        }
        fields.update(kwargs)
        action = Action(**fields)
        action.id = memory_db.create_action(action)
        return action

    return _make
