"""
Pydantic schemas for the child profile, buddy, curriculum and session logs.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ModuleType(str, Enum):
    MATCHING = "MATCHING"
    PECS = "PECS"
    RECEPTIVE = "RECEPTIVE"
    PHONICS = "PHONICS"
    SIGHT_WORDS = "SIGHT_WORDS"
    COMPREHENSION = "COMPREHENSION"
    FLUENCY = "FLUENCY"
    SAFETY_SIGNS = "SAFETY_SIGNS"
    SOCIAL_SIM = "SOCIAL_SIM"
    INFORMATIONAL = "INFORMATIONAL"
    WRITING_SRSD = "WRITING_SRSD"
    FEEDING = "FEEDING"
    SENTENCE_TRAIN = "SENTENCE_TRAIN"
    MARKET = "MARKET"
    POP_BALLOON = "POP_BALLOON"
    I_SPY = "I_SPY"
    SIGNS = "SIGNS"
    VERBAL = "VERBAL"
    OFFLINE_TASK = "OFFLINE_TASK"
    PHOTO_HUNT = "PHOTO_HUNT"
    SEQUENCING = "SEQUENCING"
    SOCIAL_STORY = "SOCIAL_STORY"
    TRACKING = "TRACKING"
    DRAG_DROP = "DRAG_DROP"
    CHOICE = "CHOICE"
    SPEAKING = "SPEAKING"
    CAMERA = "CAMERA"


# Modules that finish after a single correct answer
SINGLE_QUESTION_MODULE_TYPES = frozenset({ModuleType.OFFLINE_TASK, ModuleType.VERBAL})


class StressLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class UserProfile(BaseModel):
    """Child profile used to personalise generated content."""
    model_config = ConfigDict(frozen=True)

    name: str
    chronological_age: int
    developmental_age: Optional[int] = None
    interests: List[str] = Field(default_factory=list)
    avoidances: List[str] = Field(default_factory=list)
    sensory_triggers: List[str] = Field(default_factory=list)
    communication_style: Optional[Literal["Verbal", "Non-Verbal", "Mixed", "PECS"]] = None
    assessed_level: Optional[Literal[0, 1, 2, 3]] = None

    @property
    def effective_age(self) -> int:
        return self.developmental_age or self.chronological_age


class Buddy(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    personality: Literal["happy", "cool", "smart", "funny"] = "happy"
    voice_name: str = "Puck"


class CurriculumModule(BaseModel):
    """One entry of the weekly schedule."""
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str
    type: ModuleType
    duration_minutes: int = 5
    icon: str = ""


class DaySchedule(BaseModel):
    day: str
    modules: List[CurriculumModule] = Field(default_factory=list)


class Curriculum(BaseModel):
    branch: Literal["EarlyChildhood", "SchoolAge", "Adolescent"]
    branch_title: str = ""
    theme: str = ""
    weekly_schedule: List[DaySchedule] = Field(default_factory=list)

    def all_modules(self) -> List[CurriculumModule]:
        return [m for day in self.weekly_schedule for m in day.modules]


class SessionPerformanceLog(BaseModel):
    """Immutable outcome of one completed module."""
    model_config = ConfigDict(frozen=True)

    id: str
    module_id: str
    module_title: str
    timestamp: str
    duration_seconds: float
    correct_count: int = Field(ge=0)
    mistake_count: int = Field(ge=0)
    stress_level: StressLevel
