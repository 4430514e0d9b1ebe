"""
API data models. Single import surface for DB entities.

DB entities (api.models.models):
- CachedGame, SessionLogRecord, CompletedModule
"""

from api.models.models import (
    CachedGame,
    SessionLogRecord,
    CompletedModule,
)

__all__ = [
    "CachedGame",
    "SessionLogRecord",
    "CompletedModule",
]
