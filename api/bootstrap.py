from __future__ import annotations

import asyncio
import importlib
from dataclasses import dataclass
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session as DBSession

from api.config import Settings, SessionLocal, settings as default_settings
from api.services.collaborators import CurriculumGenerator, GameContentGenerator
from api.services.content_worker import ContentWorker
from api.services.game_pack_loader import GamePackLoader
from api.services.game_session import GameSession
from api.services.prefetch_planner import ContentPrefetcher
from api.services.profile_store import ProfileStore
from api.services.task_executors import build_executor_registry
from infra.cache.sql_store import SqlContentCache
from infra.cache.store import ContentCache


@dataclass
class ServiceContainer:
    settings: Settings
    cache: ContentCache
    profile_store: ProfileStore
    worker: ContentWorker
    loader: GamePackLoader
    prefetcher: ContentPrefetcher

    def new_game_session(self, **collaborators: Any) -> GameSession:
        """GameSession over this container's profile store with the configured thresholds."""
        return GameSession(
            profile_store=self.profile_store,
            target_questions=self.settings.target_questions,
            max_mistakes_for_break=self.settings.max_mistakes_for_break,
            **collaborators,
        )


def build_container(
    *,
    curriculum_generator: CurriculumGenerator,
    game_generator: GameContentGenerator,
    settings: Settings = default_settings,
    session_factory: Callable[[], DBSession] = SessionLocal,
    cache: Optional[ContentCache] = None,
    profile_store: Optional[ProfileStore] = None,
    sleep: Callable[[float], Any] = asyncio.sleep,
) -> ServiceContainer:
    cache = cache or SqlContentCache(session_factory=session_factory)
    profile_store = profile_store or ProfileStore(session_factory=session_factory)

    executors = build_executor_registry(
        curriculum_generator=curriculum_generator,
        game_generator=game_generator,
        profile_store=profile_store,
        cache=cache,
        questions_per_module=settings.questions_per_module,
        question_delay_seconds=settings.question_delay_seconds,
        sleep=sleep,
    )
    worker = ContentWorker(
        executors,
        max_retries=settings.max_retries,
        retry_backoff_seconds=settings.retry_backoff_seconds,
        inter_task_delay_seconds=settings.inter_task_delay_seconds,
        sleep=sleep,
    )
    loader = GamePackLoader(
        profile_store=profile_store,
        cache=cache,
        worker=worker,
        timeout_seconds=settings.loader_timeout_seconds,
    )
    prefetcher = ContentPrefetcher(
        profile_store=profile_store,
        worker=worker,
        window_size=settings.prefetch_window_size,
        debounce_seconds=settings.prefetch_debounce_seconds,
    )
    return ServiceContainer(
        settings=settings,
        cache=cache,
        profile_store=profile_store,
        worker=worker,
        loader=loader,
        prefetcher=prefetcher,
    )


def load_object(path: str) -> Any:
    """Resolve "package.module:attr" and call it if it is a class or factory."""
    if ":" not in path:
        raise ValueError(f"Expected 'module:attr', got {path!r}")
    module_name, attr = path.split(":", 1)
    obj = getattr(importlib.import_module(module_name), attr)
    if isinstance(obj, type) or (callable(obj) and not hasattr(obj, "generate")):
        return obj()
    return obj


def build_container_from_settings(settings: Settings = default_settings) -> ServiceContainer:
    if not settings.curriculum_generator or not settings.game_generator:
        raise RuntimeError(
            "CURRICULUM_GENERATOR and GAME_GENERATOR must point to generator factories "
            "('module:attr') before the API can start."
        )
    return build_container(
        curriculum_generator=load_object(settings.curriculum_generator),
        game_generator=load_object(settings.game_generator),
        settings=settings,
    )
