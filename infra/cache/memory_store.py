from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional

from infra.cache.store import CachedPack, ContentCache


@dataclass
class InMemoryContentCache(ContentCache):
    """Process-local cache. Entries are lost on restart."""

    _entries: Dict[str, CachedPack] = field(default_factory=dict)

    async def has_game(self, module_id: str) -> bool:
        return module_id in self._entries

    async def get_game(self, module_id: str) -> Optional[CachedPack]:
        return self._entries.get(module_id)

    async def set_game(self, module_id: str, pack: CachedPack) -> None:
        self._entries[module_id] = pack

    async def remove_game(self, module_id: str) -> None:
        self._entries.pop(module_id, None)

    async def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
