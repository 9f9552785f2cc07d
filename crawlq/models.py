from enum import Enum
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field


class TaskStatus(str, Enum):
    PENDING = "pending"
    COMPLETE = "complete"  # ran and produced what it was after
    EMPTY = "empty"        # ran cleanly but found nothing
    FAILED = "failed"      # side effect raised, not retried

    @property
    def terminal(self) -> bool:
        return self is not TaskStatus.PENDING


class Task(BaseModel):
    id: Optional[int] = None
    kind: str
    params: Dict[str, Any] = Field(default_factory=dict)
    version: int = 1
    status: TaskStatus = TaskStatus.PENDING
    attempts: int = 0
    last_error: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class QueueSettings(BaseModel):
    failure_policy: Literal["complete", "retry"] = "complete"
    max_retries: int = Field(default=3, ge=1)
    shutdown: bool = False


DEFAULTS = {
    "failure_policy": "complete",
    "max_retries": 3,
    "shutdown": "false",
}
