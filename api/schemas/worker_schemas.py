"""
Schemas for the content worker: task types, payloads, queue snapshots.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from api.schemas.profile_schemas import ModuleType, UserProfile


class TaskType(str, Enum):
    """Kinds of deferred generation work."""
    GENERATE_CURRICULUM_STRUCTURE = "GENERATE_CURRICULUM_STRUCTURE"
    GENERATE_MODULE_CONTENT = "GENERATE_MODULE_CONTENT"


class TaskPriority(str, Enum):
    """CRITICAL > HIGH > MEDIUM > LOW."""
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    @property
    def rank(self) -> int:
        """Lower rank runs first."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    TaskPriority.CRITICAL: 0,
    TaskPriority.HIGH: 1,
    TaskPriority.MEDIUM: 2,
    TaskPriority.LOW: 3,
}


class TaskStatus(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    NOT_FOUND = "NOT_FOUND"


class CurriculumGenerationPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["curriculum"] = "curriculum"
    profile: Optional[UserProfile] = None
    assessed_level: Literal[0, 1, 2, 3] = 0


class ModuleContentGenerationPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["module_content"] = "module_content"
    module_id: str
    module_type: ModuleType
    description: str
    interest: Optional[str] = None


TaskPayload = Union[CurriculumGenerationPayload, ModuleContentGenerationPayload]

PAYLOAD_MODELS: Dict[TaskType, type] = {
    TaskType.GENERATE_CURRICULUM_STRUCTURE: CurriculumGenerationPayload,
    TaskType.GENERATE_MODULE_CONTENT: ModuleContentGenerationPayload,
}


def payload_key(task_type: TaskType, payload: Any) -> Tuple[str, str]:
    """
    Dedup identity of a task: its type plus the canonical JSON of its payload.
    Structurally equal payloads produce the same key regardless of field order.
    """
    if isinstance(payload, BaseModel):
        data = payload.model_dump(mode="json")
    else:
        data = payload
    return TaskType(task_type).value, json.dumps(data, sort_keys=True, default=str)


@dataclass
class ContentTask:
    """A unit of deferred generation work owned by the content worker."""
    type: TaskType
    payload: Any
    priority: TaskPriority = TaskPriority.MEDIUM
    seq: int = 0
    id: str = ""
    status: TaskStatus = TaskStatus.PENDING
    attempts: int = 0
    created_at: datetime = field(default_factory=datetime.utcnow)
    error: Optional[str] = None

    def __post_init__(self):
        if not self.id:
            self.id = f"{self.type.value}_{uuid4()}"

    @property
    def key(self) -> Tuple[str, str]:
        return payload_key(self.type, self.payload)

    @property
    def sort_key(self) -> Tuple[int, int]:
        return self.priority.rank, self.seq

    def to_dict(self) -> Dict[str, Any]:
        payload = self.payload.model_dump(mode="json") if isinstance(self.payload, BaseModel) else self.payload
        return {
            "id": self.id,
            "type": self.type.value,
            "priority": self.priority.value,
            "status": self.status.value,
            "attempts": self.attempts,
            "created_at": self.created_at.isoformat() + "Z",
            "error": self.error,
            "payload": payload,
        }


class TaskOutcome(BaseModel):
    """Resolution of the future handed back by ContentWorker.add_task."""
    model_config = ConfigDict(frozen=True)

    task_id: str
    type: TaskType
    status: TaskStatus
    attempts: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == TaskStatus.COMPLETED


class TaskView(BaseModel):
    id: str
    type: TaskType
    priority: TaskPriority
    status: TaskStatus
    attempts: int
    created_at: str
    error: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)


class QueueSnapshot(BaseModel):
    """Read-only view of the worker broadcast to observers."""
    queue: List[TaskView] = Field(default_factory=list)
    is_processing: bool = False
    active_task_id: Optional[str] = None


class EnqueueTaskRequest(BaseModel):
    type: TaskType
    payload: Dict[str, Any]
    priority: TaskPriority = TaskPriority.MEDIUM


class EnqueueTaskResponse(BaseModel):
    task_id: str
    queued: bool = Field(description="False when an identical task was already pending")
    queue_length: int


class TaskStatusResponse(BaseModel):
    task_id: str
    status: TaskStatus
