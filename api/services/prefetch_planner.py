"""
Prefetch planner: decides which generation tasks to enqueue from the current
profile state (curriculum structure first, then a look-ahead window of modules).
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, List, Optional

from api.schemas.profile_schemas import CurriculumModule
from api.schemas.worker_schemas import (
    CurriculumGenerationPayload,
    ModuleContentGenerationPayload,
    TaskPriority,
    TaskType,
)
from api.services.collaborators import AppStage
from api.services.content_worker import ContentWorker
from api.services.profile_store import ProfileStore
from api.utils.logger import get_logger

logger = get_logger(__name__)

PREFETCH_WINDOW_SIZE = 4
PREFETCH_DEBOUNCE_SECONDS = 2.0
CURRICULUM_STAGES = frozenset({AppStage.CURRICULUM_GENERATION, AppStage.DASHBOARD})
# Profile fields that can change what should be generated next
PREFETCH_FIELDS = frozenset({"profile", "curriculum", "active_module", "stage", "module_contents", "completed_module_ids"})


def priority_for_position(position: int) -> TaskPriority:
    if position == 0:
        return TaskPriority.CRITICAL
    if position == 1:
        return TaskPriority.HIGH
    return TaskPriority.MEDIUM


def should_prefetch_module(
    module: CurriculumModule,
    completed_module_ids: List[str],
    active_module_id: Optional[str],
    module_contents: dict,
) -> bool:
    # Completed modules are skipped unless the child is replaying them
    if module.id in completed_module_ids and module.id != active_module_id:
        return False
    if module.id in module_contents:
        return False
    return True


class ContentPrefetcher:
    def __init__(
        self,
        *,
        profile_store: ProfileStore,
        worker: ContentWorker,
        window_size: int = PREFETCH_WINDOW_SIZE,
        debounce_seconds: float = PREFETCH_DEBOUNCE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.profile_store = profile_store
        self.worker = worker
        self.window_size = window_size
        self.debounce_seconds = debounce_seconds
        self._clock = clock
        self._last_check: Optional[float] = None

    def ensure_curriculum(self) -> bool:
        """Queue a CRITICAL curriculum task when the profile has no curriculum yet."""
        store = self.profile_store
        if store.stage not in CURRICULUM_STAGES or store.curriculum is not None or store.profile is None:
            return False
        if any(t.type == TaskType.GENERATE_CURRICULUM_STRUCTURE for t in self._known_tasks()):
            return False

        logger.info("triggering curriculum structure generation")
        self.worker.add_task(
            TaskType.GENERATE_CURRICULUM_STRUCTURE,
            CurriculumGenerationPayload(
                profile=store.profile,
                assessed_level=store.profile.assessed_level or 0,
            ),
            TaskPriority.CRITICAL,
        )
        return True

    def prefetch_modules(self) -> List[str]:
        """Queue content tasks for the next modules; returns the module ids queued."""
        store = self.profile_store
        if store.curriculum is None or store.profile is None:
            return []

        now = self._clock()
        if self._last_check is not None and now - self._last_check < self.debounce_seconds:
            return []
        self._last_check = now

        modules = store.curriculum.all_modules()
        active_id = store.active_module.id if store.active_module else None
        start = self._start_index(modules, active_id, store.completed_module_ids)

        queued_ids = {
            getattr(t.payload, "module_id", None)
            for t in self._known_tasks()
            if t.type == TaskType.GENERATE_MODULE_CONTENT
        }
        interest = store.profile.interests[0] if store.profile.interests else None

        added: List[str] = []
        for position, module in enumerate(modules[start:start + self.window_size]):
            if not should_prefetch_module(module, store.completed_module_ids, active_id, store.module_contents):
                continue
            if module.id in queued_ids:
                continue
            self.worker.add_task(
                TaskType.GENERATE_MODULE_CONTENT,
                ModuleContentGenerationPayload(
                    module_id=module.id,
                    module_type=module.type,
                    description=module.description,
                    interest=interest,
                ),
                priority_for_position(position),
            )
            added.append(module.id)

        if added:
            logger.info("prefetch queued modules=%s", added)
        return added

    def run(self) -> None:
        self.ensure_curriculum()
        self.prefetch_modules()

    def on_profile_change(self, field: str, value: Any) -> None:
        """ProfileStore listener: re-plan when a relevant field changes inside the event loop."""
        if field not in PREFETCH_FIELDS:
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("profile change outside event loop ignored field=%s", field)
            return
        self.run()

    def attach(self) -> Callable[[], None]:
        """Subscribe to the profile store; returns the unsubscribe callable."""
        return self.profile_store.subscribe(self.on_profile_change)

    def _known_tasks(self):
        active = self.worker.active_task
        return [*self.worker.queue, *([active] if active is not None else [])]

    @staticmethod
    def _start_index(modules: List[CurriculumModule], active_id: Optional[str], completed: List[str]) -> int:
        for idx, m in enumerate(modules):
            if active_id is not None:
                if m.id == active_id:
                    return idx
            elif m.id not in completed:
                return idx
        return 0
