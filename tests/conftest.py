"""
Pytest configuration and shared fixtures for the test suite.
Ensures proper Python path and provides common fixtures for unit and integration tests.
"""
import os
import sys
from pathlib import Path
from typing import List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Add project root to Python path for imports
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

# Keep test runs from writing a sqlite file or log noise into the checkout
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")


from api.schemas.game_schemas import AssessmentItem, GamePayload, GameTemplate  # noqa: E402
from api.schemas.profile_schemas import (  # noqa: E402
    Buddy,
    Curriculum,
    CurriculumModule,
    DaySchedule,
    ModuleType,
    UserProfile,
)
from api.services.profile_store import ProfileStore  # noqa: E402
from infra.cache.memory_store import InMemoryContentCache  # noqa: E402


class FakeGameGenerator:
    """
    Stand-in for the AI game content generator. Each call returns a question
    with a unique id and unique item names; `templates` overrides the
    template per call and a `None` entry simulates a failed generation.
    """

    def __init__(self, templates: Optional[List[Optional[GameTemplate]]] = None, items_per_question: int = 3):
        self.templates = templates
        self.items_per_question = items_per_question
        self.calls: List[dict] = []

    async def generate(self, module_type, interest, description, gallery, avoid_list, profile_context):
        n = len(self.calls)
        self.calls.append(
            {
                "module_type": module_type,
                "interest": interest,
                "description": description,
                "avoid_list": avoid_list,
                "profile_context": profile_context,
            }
        )
        template = GameTemplate.CHOICE
        if self.templates is not None:
            template = self.templates[n] if n < len(self.templates) else GameTemplate.CHOICE
            if template is None:
                return None
        return GamePayload(
            id=f"q{n + 1}",
            template=template,
            instruction=f"Find the right one ({n + 1})",
            background_theme="Forest",
            items=[
                AssessmentItem(id=f"q{n + 1}_i{k}", name=f"object_{n + 1}_{k}", is_correct=(k == 0))
                for k in range(self.items_per_question)
            ],
        )


# ----- In-memory DB (for tests that need DB without touching real DB) -----
@pytest.fixture
def in_memory_engine():
    """In-memory SQLite shared across threads (the SQL cache runs in asyncio.to_thread)."""
    return create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture
def session_factory(in_memory_engine):
    """Session factory bound to the in-memory engine. Uses api.config.Base for schema."""
    from api.config import Base
    import api.models.models  # noqa: F401
    Base.metadata.create_all(in_memory_engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=in_memory_engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


# ----- Domain fixtures -----
@pytest.fixture
def profile():
    return UserProfile(
        name="Deniz",
        chronological_age=7,
        developmental_age=5,
        interests=["Dinosaurs", "Trains"],
        avoidances=["spiders"],
        assessed_level=1,
    )


@pytest.fixture
def buddy():
    return Buddy(name="Pip", voice_name="Puck")


@pytest.fixture
def curriculum():
    def mod(i: int, t: ModuleType = ModuleType.CHOICE) -> CurriculumModule:
        return CurriculumModule(id=f"m{i}", title=f"Module {i}", description=f"Description {i}", type=t)

    return Curriculum(
        branch="SchoolAge",
        branch_title="Explorers",
        theme="Dinosaurs",
        weekly_schedule=[
            DaySchedule(day="Monday", modules=[mod(1), mod(2), mod(3)]),
            DaySchedule(day="Tuesday", modules=[mod(4), mod(5, ModuleType.VERBAL), mod(6)]),
        ],
    )


@pytest.fixture
def profile_store(profile, buddy):
    return ProfileStore(profile=profile, buddy=buddy)


@pytest.fixture
def memory_cache():
    return InMemoryContentCache()


@pytest.fixture
def fake_game_generator():
    return FakeGameGenerator()


@pytest.fixture
def curriculum_generator(curriculum):
    generator = MagicMock()
    generator.generate = AsyncMock(return_value=curriculum)
    return generator


@pytest.fixture
def no_sleep():
    return AsyncMock(return_value=None)


@pytest.fixture
def make_game_generator():
    """Factory for generators with per-call templates, e.g. make_game_generator(templates=[None, GameTemplate.STORY])."""
    return FakeGameGenerator
