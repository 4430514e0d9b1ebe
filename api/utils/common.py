"""
Common utility functions used across services and routes.
"""

import time
from datetime import datetime
from typing import Callable, List, Optional, Sequence
from uuid import uuid4

from api.schemas.game_schemas import GamePayload
from infra.cache.store import CachedPack


def iso_format(dt: datetime) -> str:
    """Format datetime as ISO string with Z suffix."""
    return dt.isoformat() + "Z"


def unpack_questions(content: Optional[CachedPack]) -> List[GamePayload]:
    """Questions of a cached entry: the pack's `questions`, a bare list, or the single payload."""
    if content is None:
        return []
    if isinstance(content, list):
        return list(content)
    if content.questions:
        return list(content.questions)
    return [content]


def sanitize_pack(
    pack: Sequence[GamePayload],
    *,
    id_factory: Callable[[], str] = lambda: uuid4().hex,
    now: Callable[[], float] = time.time,
) -> List[GamePayload]:
    """Return copies of the questions with every missing question/item id filled in."""
    out: List[GamePayload] = []
    for q_idx, q in enumerate(pack):
        items = [
            item if item.id else item.model_copy(update={"id": f"item_{q_idx}_{i_idx}_{id_factory()}"})
            for i_idx, item in enumerate(q.items)
        ]
        out.append(
            q.model_copy(
                update={
                    "id": q.id or f"q_{int(now() * 1000)}_{q_idx}_{id_factory()}",
                    "items": items,
                }
            )
        )
    return out
