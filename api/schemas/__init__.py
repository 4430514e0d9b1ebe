"""
API schemas package. Import from submodules or from this package.

Example:
    from api.schemas import GamePayload, TaskType
    from api.schemas.worker_schemas import QueueSnapshot
"""

from api.schemas.game_schemas import AssessmentItem, GamePayload, GameTemplate, SpawnMode
from api.schemas.profile_schemas import (
    Buddy,
    Curriculum,
    CurriculumModule,
    DaySchedule,
    ModuleType,
    SessionPerformanceLog,
    SINGLE_QUESTION_MODULE_TYPES,
    StressLevel,
    UserProfile,
)
from api.schemas.worker_schemas import (
    ContentTask,
    CurriculumGenerationPayload,
    EnqueueTaskRequest,
    EnqueueTaskResponse,
    ModuleContentGenerationPayload,
    PAYLOAD_MODELS,
    QueueSnapshot,
    TaskOutcome,
    TaskPayload,
    TaskPriority,
    TaskStatus,
    TaskStatusResponse,
    TaskType,
    TaskView,
    payload_key,
)

__all__ = [
    # game
    "AssessmentItem",
    "GamePayload",
    "GameTemplate",
    "SpawnMode",
    # profile
    "Buddy",
    "Curriculum",
    "CurriculumModule",
    "DaySchedule",
    "ModuleType",
    "SessionPerformanceLog",
    "SINGLE_QUESTION_MODULE_TYPES",
    "StressLevel",
    "UserProfile",
    # worker
    "ContentTask",
    "CurriculumGenerationPayload",
    "EnqueueTaskRequest",
    "EnqueueTaskResponse",
    "ModuleContentGenerationPayload",
    "PAYLOAD_MODELS",
    "QueueSnapshot",
    "TaskOutcome",
    "TaskPayload",
    "TaskPriority",
    "TaskStatus",
    "TaskStatusResponse",
    "TaskType",
    "TaskView",
    "payload_key",
]
