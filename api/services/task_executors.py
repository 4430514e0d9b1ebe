"""
Task executors: one per task type, each turning a payload into cached content.

Executors receive their collaborators explicitly (generators, profile store,
content cache) and raise on failure; the content worker owns retries.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional

from api.schemas.game_schemas import GamePayload, GameTemplate
from api.schemas.worker_schemas import (
    CurriculumGenerationPayload,
    ModuleContentGenerationPayload,
    TaskType,
)
from api.services.collaborators import CurriculumGenerator, GameContentGenerator
from api.services.errors import GenerationFailedError, InvalidTaskPayloadError
from api.services.profile_store import ProfileStore
from api.utils.logger import get_logger
from infra.cache.store import CachedPack, ContentCache

logger = get_logger(__name__)

QUESTIONS_PER_MODULE = 5
QUESTION_DELAY_SECONDS = 0.5

Sleep = Callable[[float], Awaitable[None]]


class TaskExecutor(ABC):
    """execute(payload) -> None; raises on any failure."""

    task_type: TaskType

    @abstractmethod
    async def execute(self, payload: Any) -> None:
        """RUN THE TASK"""


class CurriculumGenerationExecutor(TaskExecutor):
    task_type = TaskType.GENERATE_CURRICULUM_STRUCTURE

    def __init__(self, *, generator: CurriculumGenerator, profile_store: ProfileStore):
        self.generator = generator
        self.profile_store = profile_store

    async def execute(self, payload: CurriculumGenerationPayload) -> None:
        profile = getattr(payload, "profile", None)
        if not profile:
            raise InvalidTaskPayloadError(self.task_type.value, ["profile"])

        curriculum = await self.generator.generate(profile, [], payload.assessed_level)
        if curriculum is None:
            raise GenerationFailedError("Curriculum generation returned null")
        self.profile_store.set_curriculum(curriculum)


def is_usable_pack(cached: Optional[CachedPack]) -> bool:
    """Shallow shape check: a list of questions, or a pack exposing `questions`."""
    if cached is None:
        return False
    if isinstance(cached, list):
        return True
    return getattr(cached, "questions", None) is not None


class ModuleContentGenerationExecutor(TaskExecutor):
    """
    Generates a multi-question pack for one module.

    - Cache hit short-circuits generation and only hydrates profile state.
    - Questions are generated sequentially; item names already used in this
      module are passed on as an avoid list.
    - A STORY question consumes the whole module.
    """

    task_type = TaskType.GENERATE_MODULE_CONTENT

    def __init__(
        self,
        *,
        generator: GameContentGenerator,
        profile_store: ProfileStore,
        cache: ContentCache,
        questions_per_module: int = QUESTIONS_PER_MODULE,
        question_delay_seconds: float = QUESTION_DELAY_SECONDS,
        sleep: Sleep = asyncio.sleep,
    ):
        self.generator = generator
        self.profile_store = profile_store
        self.cache = cache
        self.questions_per_module = questions_per_module
        self.question_delay_seconds = question_delay_seconds
        self._sleep = sleep

    def _profile_context(self) -> Dict[str, Any]:
        profile = self.profile_store.profile
        buddy = self.profile_store.buddy
        return {
            "name": profile.name if profile else None,
            "buddy_name": buddy.name if buddy else None,
            "age": profile.effective_age if profile else None,
            "avoidances": list(profile.avoidances) if profile else [],
        }

    async def _hydrate_from_cache(self, module_id: str) -> bool:
        if not await self.cache.has_game(module_id):
            return False
        cached = await self.cache.get_game(module_id)
        if not is_usable_pack(cached):
            logger.warning("ignoring malformed cache entry module_id=%s, regenerating", module_id)
            return False
        self.profile_store.cache_module_content(module_id, cached)
        logger.info("cache hit module_id=%s", module_id)
        return True

    async def execute(self, payload: ModuleContentGenerationPayload) -> None:
        module_id = getattr(payload, "module_id", None)
        module_type = getattr(payload, "module_type", None)
        description = getattr(payload, "description", None)
        missing = [
            name for name, value in (
                ("module_id", module_id),
                ("module_type", module_type),
                ("description", description),
            ) if not value
        ]
        if missing:
            raise InvalidTaskPayloadError(self.task_type.value, missing)

        if await self._hydrate_from_cache(module_id):
            return

        profile_context = self._profile_context()
        interest = getattr(payload, "interest", None) or ""
        questions: List[GamePayload] = []
        avoid_list: List[str] = []

        for i in range(self.questions_per_module):
            variant = description if i == 0 else f"{description} (Variation {i + 1})"
            content = await self.generator.generate(
                module_type,
                interest,
                variant,
                None,
                list(avoid_list),
                profile_context,
            )

            if content is not None:
                questions.append(content)
                if content.template == GameTemplate.STORY:
                    logger.debug("story question ends module_id=%s at %s", module_id, i + 1)
                    break
                avoid_list.extend(content.item_names())
            else:
                logger.warning("question %s/%s empty module_id=%s", i + 1, self.questions_per_module, module_id)

            # Rate limit for the external generator
            await self._sleep(self.question_delay_seconds)

        if not questions:
            raise GenerationFailedError(f"Game content generation returned empty for {module_id}")

        pack = GamePayload(
            id=f"pack_{module_id}",
            template=GameTemplate.CHOICE,
            instruction="Lesson Pack",
            background_theme="Pack",
            items=[],
            questions=questions,
        )
        # Cache first: loaders observing profile state may read the cache next
        await self.cache.set_game(module_id, pack)
        self.profile_store.cache_module_content(module_id, pack)
        logger.info("module pack generated module_id=%s questions=%s", module_id, len(questions))


def build_executor_registry(
    *,
    curriculum_generator: CurriculumGenerator,
    game_generator: GameContentGenerator,
    profile_store: ProfileStore,
    cache: ContentCache,
    questions_per_module: int = QUESTIONS_PER_MODULE,
    question_delay_seconds: float = QUESTION_DELAY_SECONDS,
    sleep: Sleep = asyncio.sleep,
) -> Dict[TaskType, TaskExecutor]:
    executors: List[TaskExecutor] = [
        CurriculumGenerationExecutor(generator=curriculum_generator, profile_store=profile_store),
        ModuleContentGenerationExecutor(
            generator=game_generator,
            profile_store=profile_store,
            cache=cache,
            questions_per_module=questions_per_module,
            question_delay_seconds=question_delay_seconds,
            sleep=sleep,
        ),
    ]
    return {e.task_type: e for e in executors}
