"""
Integration test fixtures. Builds the app around an in-memory DB and fake generators.
"""
import pytest

from api.config import Settings
from api.services.profile_store import ProfileStore


@pytest.fixture
def fast_settings():
    """Settings with every delay zeroed so the worker drains immediately."""
    return Settings(
        database_url="sqlite:///:memory:",
        retry_backoff_seconds=0,
        inter_task_delay_seconds=0,
        question_delay_seconds=0,
        prefetch_debounce_seconds=0,
        prefetch_on_profile_change=False,
    )


@pytest.fixture
def container_factory(session_factory, fast_settings, profile, buddy, curriculum_generator):
    """Returns make(game_generator) -> zero-arg container factory for create_app."""
    from api.bootstrap import build_container

    def make(game_generator):
        def factory():
            return build_container(
                curriculum_generator=curriculum_generator,
                game_generator=game_generator,
                settings=fast_settings,
                session_factory=session_factory,
                profile_store=ProfileStore(profile=profile, buddy=buddy, session_factory=session_factory),
            )

        return factory

    return make


@pytest.fixture
def api_client(container_factory, fake_game_generator):
    """FastAPI TestClient whose worker generates content instantly."""
    from fastapi.testclient import TestClient
    from api.api import create_app

    app = create_app(container_factory(fake_game_generator))
    with TestClient(app) as client:
        yield client


@pytest.fixture
def blocked_api_client(container_factory):
    """TestClient whose generator never returns, so the first task stays in flight."""
    import asyncio
    from fastapi.testclient import TestClient
    from api.api import create_app

    class HangingGenerator:
        async def generate(self, *args, **kwargs):
            await asyncio.sleep(3600)

    app = create_app(container_factory(HangingGenerator()))
    with TestClient(app) as client:
        yield client


@pytest.fixture
def prefetching_api_client(session_factory, fast_settings, profile, buddy, curriculum_generator, fake_game_generator):
    """TestClient whose prefetcher reacts to profile changes, as in production."""
    from fastapi.testclient import TestClient
    from api.api import create_app
    from api.bootstrap import build_container

    settings = fast_settings.model_copy(update={"prefetch_on_profile_change": True})

    def factory():
        return build_container(
            curriculum_generator=curriculum_generator,
            game_generator=fake_game_generator,
            settings=settings,
            session_factory=session_factory,
            profile_store=ProfileStore(profile=profile, buddy=buddy, session_factory=session_factory),
        )

    app = create_app(factory)
    with TestClient(app) as client:
        yield client
