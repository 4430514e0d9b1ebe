"""
Content cache implementations live here (infra adapters).

`ContentCache` is the contract; `SqlContentCache` is the durable SQLAlchemy
adapter and `InMemoryContentCache` is used by tests and ephemeral runs.
"""

from infra.cache.store import CachedPack, ContentCache
from infra.cache.memory_store import InMemoryContentCache
from infra.cache.sql_store import SqlContentCache

__all__ = ["CachedPack", "ContentCache", "InMemoryContentCache", "SqlContentCache"]
