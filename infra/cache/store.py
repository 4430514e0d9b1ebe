from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional, Union

from api.schemas.game_schemas import GamePayload

# A cached entry is either a multi-question pack or a bare list of questions.
CachedPack = Union[GamePayload, List[GamePayload]]


class ContentCache(ABC):
    """
    Durable key-value store of generated content, keyed by module id.

    Writes come only from task executors (one at a time, through the content
    worker). Reads come from the pack loader and the executors' cache check.
    """

    @abstractmethod
    async def has_game(self, module_id: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    async def get_game(self, module_id: str) -> Optional[CachedPack]:
        """Return the cached entry, or None when absent or unreadable."""
        raise NotImplementedError

    @abstractmethod
    async def set_game(self, module_id: str, pack: CachedPack) -> None:
        raise NotImplementedError

    @abstractmethod
    async def remove_game(self, module_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def clear(self) -> None:
        raise NotImplementedError
