"""Root conftest for all tests.

Shared fixtures: a transactional in-memory SQLite session patched into every
service module, and a fake text-generation client that records its calls.
"""

from collections.abc import Callable
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from trainer.services.llm.parsing import extract_json

# Every module that does `from trainer.db.session import get_session`
SESSION_CONSUMERS = (
    "trainer.db.session",
    "trainer.programs.service",
    "trainer.weights.service",
    "trainer.calendar.events",
    "trainer.calendar.scheduler",
    "trainer.calendar.catch_up",
    "trainer.workouts.service",
    "trainer.workouts.actions",
    "trainer.tracking.service",
    "trainer.stats.service",
    "trainer.review.service",
)


# Enable foreign key constraints for SQLite
@event.listens_for(Engine, "connect")
def _set_sqlite_pragma(dbapi_connection, connection_record):
    """Enable foreign key constraints in SQLite connections."""
    if type(dbapi_connection).__module__.startswith("sqlite3"):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


@pytest.fixture
def test_user_id() -> str:
    return "user-1"


@pytest.fixture
def fixed_now() -> datetime:
    """A Wednesday, so the current week has days on both sides."""
    return datetime(2026, 3, 11, 15, 30, tzinfo=timezone.utc)


@pytest.fixture(scope="function")
def db_session(monkeypatch):
    """
    Provides a transactional in-memory SQLite DB session for tests.

    This fixture:
    - Creates an isolated in-memory SQLite database per test
    - Patches the engine getters to return it
    - Patches get_session() in every service module to yield the test session
    - Rolls the outer transaction back afterwards instead of deleting rows
    """
    import importlib

    from trainer.db.models import Base

    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
    )

    def mock_get_engine():
        return engine

    monkeypatch.setattr("trainer.db.session._get_engine", mock_get_engine)
    monkeypatch.setattr("trainer.db.session.get_engine", mock_get_engine)

    Base.metadata.create_all(engine)

    connection = engine.connect()
    transaction = connection.begin()
    test_session_local = sessionmaker(bind=connection, autocommit=False, autoflush=False)
    session = test_session_local()

    @contextmanager
    def mock_get_session():
        yield session
        session.flush()

    for module_name in SESSION_CONSUMERS:
        module = importlib.import_module(module_name)
        monkeypatch.setattr(module, "get_session", mock_get_session)

    try:
        yield session
    finally:
        session.rollback()
        if transaction.is_active:
            transaction.rollback()
        session.close()
        connection.close()
        engine.dispose()


class FakeLLMClient:
    """Stand-in for TextGenerationClient that replays queued outputs.

    Each call pops the next queued response; a queued exception is raised
    instead. Calls are recorded as (kind, prompt, system_prompt, model_name).
    """

    def __init__(self, responses: list[Any] | None = None):
        self.responses = list(responses or [])
        self.calls: list[dict[str, Any]] = []

    def queue(self, *responses: Any) -> "FakeLLMClient":
        self.responses.extend(responses)
        return self

    def _next(self) -> str:
        if not self.responses:
            raise AssertionError("FakeLLMClient called with no queued response")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def generate_text(self, prompt: str, *, system_prompt: str, model_name: str | None = None) -> str:
        self.calls.append({"kind": "text", "prompt": prompt, "system_prompt": system_prompt, "model_name": model_name})
        return self._next()

    async def generate_json(
        self,
        prompt: str,
        *,
        system_prompt: str,
        model_name: str | None = None,
    ) -> dict[str, Any] | None:
        self.calls.append({"kind": "json", "prompt": prompt, "system_prompt": system_prompt, "model_name": model_name})
        return extract_json(self._next())


@pytest.fixture
def fake_llm() -> FakeLLMClient:
    return FakeLLMClient()


@pytest.fixture
def make_exercise() -> Callable[..., dict[str, Any]]:
    def _make(name: str = "Goblet Squat", exercise_type: str = "reps", **fields: Any) -> dict[str, Any]:
        defaults = {
            "reps": {"sets": 3, "reps": [10, 10, 10], "load_each": [20], "load_unit": "kg", "rest_seconds": 60},
            "hold": {"sets": 3, "hold_duration_sec": [30, 30, 30], "rest_seconds": 30},
            "duration": {"duration_min": 20, "distance_km": 3.0, "distance_unit": "km"},
            "intervals": {"rounds": 8, "work_sec": 30, "rest_seconds": 30},
        }[exercise_type]
        return {"exercise_name": name, "exercise_type": exercise_type, **defaults, **fields}

    return _make


SAMPLE_PROGRAM_MARKDOWN = """# Your Training Program
A balanced upper/lower split designed for intermediate lifters.

# Goals
**Primary goal:** Build upper body strength
**Secondary goal:** Improve cardiovascular endurance
**Timeline:** 12 weeks

# Weekly Structure
You will train **3** days per week.
Upper/lower push-pull split with dedicated sessions for each movement pattern.

# Training Sessions
## Day 1: Upper Body Push
*45 minutes — moderate intensity*

Progressive chest and shoulder development with compound pressing movements.

## Day 2: Lower Body
*60 minutes — high intensity*

Squat and hinge pattern development with accessory work.

## Day 3: Upper Body Pull
*45 minutes — moderate intensity*

Back and bicep development with rowing and pulling movements.

# Current Phase
**Hypertrophy** — Week 3 of 6
- Rep range: 8-12

# Coach Notes
> User responds well to supersets.

# Milestones
- [x] Complete 12 sessions
- [ ] Dumbbell bench press at 35 lb (currently 25 lb)
"""

MINIMAL_PROGRAM_MARKDOWN = """# Your Training Program
Simple program.

# Weekly Structure
You will train **5** days per week.

# Training Sessions
## Day 1: Full Body
*30 minutes — low intensity*

Basic full body workout."""


@pytest.fixture
def sample_program_markdown() -> str:
    return SAMPLE_PROGRAM_MARKDOWN


@pytest.fixture
def minimal_program_markdown() -> str:
    return MINIMAL_PROGRAM_MARKDOWN
