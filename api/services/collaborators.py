"""
Contracts for the external collaborators the core calls into.

Generators, buddy speech and navigation are implemented outside this package
(AI provider client, UI shell). The core only depends on these protocols.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable

from api.schemas.game_schemas import GamePayload
from api.schemas.profile_schemas import Curriculum, ModuleType, UserProfile


class AppStage(str, Enum):
    ONBOARDING = "ONBOARDING"
    PHOTO_SETUP = "PHOTO_SETUP"
    BUDDY_CREATION = "BUDDY_CREATION"
    BUDDY_ACTIVATION = "BUDDY_ACTIVATION"
    DASHBOARD = "DASHBOARD"
    GAME_ARENA = "GAME_ARENA"
    ASSESSMENT_SESSION = "ASSESSMENT_SESSION"
    CURRICULUM_GENERATION = "CURRICULUM_GENERATION"
    PARENT_DASHBOARD = "PARENT_DASHBOARD"


@runtime_checkable
class CurriculumGenerator(Protocol):
    async def generate(
        self,
        profile: UserProfile,
        past_history: Sequence[Any],
        assessed_level: int,
    ) -> Optional[Curriculum]:
        ...


@runtime_checkable
class GameContentGenerator(Protocol):
    """
    Produces one question. Implementations retry internally (3 attempts)
    and return None on total failure.
    """

    async def generate(
        self,
        module_type: ModuleType,
        interest: str,
        description: str,
        gallery: Optional[Sequence[Any]],
        avoid_list: List[str],
        profile_context: Dict[str, Any],
    ) -> Optional[GamePayload]:
        ...


class BuddyContext(Protocol):
    def correct_answer(self, score: int) -> None:
        ...

    def wrong_answer(self, consecutive_errors: int) -> None:
        ...


class BuddySpeech(Protocol):
    def speak(
        self,
        text: str,
        voice: Optional[str] = None,
        priority: str = "medium",
        emotion: Optional[str] = None,
    ) -> None:
        ...


class Navigator(Protocol):
    def set_stage(self, stage: AppStage) -> None:
        ...
