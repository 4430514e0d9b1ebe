from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from api.models.models import CachedGame
from api.schemas.game_schemas import GamePayload
from api.utils.logger import get_logger
from infra.cache.store import CachedPack, ContentCache

logger = get_logger(__name__)


def _dump(pack: CachedPack) -> Any:
    if isinstance(pack, list):
        return [q.model_dump(mode="json") for q in pack]
    return pack.model_dump(mode="json")


def _load(module_id: str, raw: Any) -> Optional[CachedPack]:
    try:
        if isinstance(raw, list):
            return [GamePayload.model_validate(q) for q in raw]
        if isinstance(raw, dict):
            return GamePayload.model_validate(raw)
    except ValidationError as e:
        logger.warning("cache entry unreadable module_id=%s error=%s", module_id, e)
        return None
    logger.warning("cache entry has unexpected shape module_id=%s type=%s", module_id, type(raw).__name__)
    return None


@dataclass
class SqlContentCache(ContentCache):
    """
    SQLAlchemy-backed ContentCache.

    - One row per module id in `cached_games`, payload stored as JSON.
    - Blocking DB calls run in a worker thread so the event loop stays free.
    """

    session_factory: Callable[[], Session]

    def _has(self, module_id: str) -> bool:
        with self.session_factory() as db:
            return db.get(CachedGame, module_id) is not None

    def _get(self, module_id: str) -> Optional[CachedPack]:
        with self.session_factory() as db:
            row = db.get(CachedGame, module_id)
            if row is None:
                return None
            raw = row.payload
        return _load(module_id, raw)

    def _set(self, module_id: str, pack: CachedPack) -> None:
        with self.session_factory() as db:
            row = db.get(CachedGame, module_id)
            if row is None:
                db.add(CachedGame(module_id=module_id, payload=_dump(pack)))
            else:
                row.payload = _dump(pack)
                row.updated_at = datetime.utcnow()
            db.commit()
        logger.debug("cache write module_id=%s", module_id)

    def _remove(self, module_id: str) -> None:
        with self.session_factory() as db:
            row = db.get(CachedGame, module_id)
            if row is not None:
                db.delete(row)
                db.commit()

    def _clear(self) -> None:
        with self.session_factory() as db:
            count = db.query(CachedGame).delete()
            db.commit()
        logger.info("cache cleared rows=%s", count)

    async def has_game(self, module_id: str) -> bool:
        return await asyncio.to_thread(self._has, module_id)

    async def get_game(self, module_id: str) -> Optional[CachedPack]:
        return await asyncio.to_thread(self._get, module_id)

    async def set_game(self, module_id: str, pack: CachedPack) -> None:
        await asyncio.to_thread(self._set, module_id, pack)

    async def remove_game(self, module_id: str) -> None:
        await asyncio.to_thread(self._remove, module_id)

    async def clear(self) -> None:
        await asyncio.to_thread(self._clear)
