"""
Game pack loader: surfaces a ready-to-play question pack for a module from
memory (profile state) or the durable cache, and optionally waits for the
content worker to produce it.
"""

from __future__ import annotations

import asyncio
from typing import List, Optional

from api.schemas.game_schemas import AssessmentItem, GamePayload, GameTemplate, SpawnMode
from api.schemas.worker_schemas import TaskType
from api.services.content_worker import ContentWorker
from api.services.profile_store import ProfileStore
from api.utils.common import sanitize_pack, unpack_questions
from api.utils.logger import get_logger
from infra.cache.store import ContentCache

logger = get_logger(__name__)

LOADER_TIMEOUT_SECONDS = 10.0
BALLOON_IMAGE = "https://cdn-icons-png.flaticon.com/512/3014/3014524.png"


class GamePackLoader:
    def __init__(
        self,
        *,
        profile_store: ProfileStore,
        cache: ContentCache,
        worker: Optional[ContentWorker] = None,
        timeout_seconds: float = LOADER_TIMEOUT_SECONDS,
    ):
        self.profile_store = profile_store
        self.cache = cache
        self.worker = worker
        self.timeout_seconds = timeout_seconds

    async def load(self, module_id: str) -> List[GamePayload]:
        """Memory first (reacts to the worker finishing), then disk. [] on a miss."""
        in_memory = self.profile_store.module_contents.get(module_id)
        pack = sanitize_pack(unpack_questions(in_memory))
        if pack:
            return pack

        cached = await self.cache.get_game(module_id)
        if cached is None:
            logger.debug("pack not ready module_id=%s", module_id)
            return []
        return sanitize_pack(unpack_questions(cached))

    async def wait_for_pack(self, module_id: str, timeout: Optional[float] = None) -> List[GamePayload]:
        """
        Load the pack, waiting up to `timeout` seconds for it to appear.
        Wakes on a profile-state update for the module or on the pending
        worker task finishing. Returns [] on timeout; redirecting is the
        caller's job.
        """
        pack = await self.load(module_id)
        if pack:
            return pack

        loop = asyncio.get_running_loop()
        ready = loop.create_future()

        def on_change(field: str, value) -> None:
            if field == "module_contents" and value == module_id and not ready.done():
                ready.set_result(None)

        unsubscribe = self.profile_store.subscribe(on_change)
        waiters = [ready]
        task_future = self._pending_task_future(module_id)
        if task_future is not None:
            waiters.append(task_future)
        try:
            await asyncio.wait(
                [asyncio.ensure_future(w) for w in waiters],
                timeout=self.timeout_seconds if timeout is None else timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            unsubscribe()
            if not ready.done():
                ready.cancel()

        pack = await self.load(module_id)
        if not pack:
            logger.warning("timed out waiting for pack module_id=%s", module_id)
        return pack

    def _pending_task_future(self, module_id: str) -> Optional[asyncio.Future]:
        if self.worker is None:
            return None
        candidates = [self.worker.active_task, *self.worker.queue]
        for task in candidates:
            if task is None:
                continue
            if task.type == TaskType.GENERATE_MODULE_CONTENT and getattr(task.payload, "module_id", None) == module_id:
                return self.worker.future_for(task.id)
        return None


def question_at(pack: List[GamePayload], index: int) -> Optional[GamePayload]:
    if 0 <= index < len(pack):
        return pack[index]
    return None


def build_break_pack() -> GamePayload:
    """Balloon-popping filler offered when the child is frustrated."""
    return GamePayload(
        template=GameTemplate.TAP_TRACK,
        instruction="Pop all the balloons!",
        background_theme="Carnival",
        is_break=True,
        spawn_mode=SpawnMode.FALLING,
        items=[
            AssessmentItem(id=f"b{i + 1}", name="Balloon", is_correct=True, image_url=BALLOON_IMAGE)
            for i in range(5)
        ],
    )
