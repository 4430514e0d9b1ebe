"""
Pydantic schemas for generated game content.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class GameTemplate(str, Enum):
    """Rendering template a question is played with."""
    CHOICE = "CHOICE"
    DRAG_DROP = "DRAG_DROP"
    TAP_TRACK = "TAP_TRACK"
    SPEAKING = "SPEAKING"
    CAMERA = "CAMERA"
    FEEDING = "FEEDING"
    TRACKING = "TRACKING"
    STORY = "STORY"
    WRITING = "WRITING"
    FLASHCARD = "FLASHCARD"


class SpawnMode(str, Enum):
    FALLING = "FALLING"
    FLOATING = "FLOATING"
    STATIC = "STATIC"


class AssessmentItem(BaseModel):
    """A single tappable/draggable object inside a question."""
    id: str = ""
    name: str = Field(description="Object name, also used for the avoid list")
    is_correct: bool = False
    image_url: Optional[str] = None
    bounding_box: Optional[Tuple[int, int, int, int]] = Field(
        default=None,
        description="[ymin, xmin, ymax, xmax] on a 0-1000 scale",
    )


class GamePayload(BaseModel):
    """
    Generated content for one question, or a multi-question pack when
    `questions` is set.
    """
    model_config = ConfigDict(use_enum_values=False)

    id: Optional[str] = None
    template: GameTemplate
    instruction: str = ""
    background_theme: str = ""
    background_image: Optional[str] = None
    is_break: bool = False
    spawn_mode: Optional[SpawnMode] = None
    scenario_text: Optional[str] = None
    target_word: Optional[str] = None
    is_ordered: Optional[bool] = None
    items: List[AssessmentItem] = Field(default_factory=list)
    questions: Optional[List["GamePayload"]] = None

    def item_names(self) -> List[str]:
        return [item.name for item in self.items]


GamePayload.model_rebuild()
