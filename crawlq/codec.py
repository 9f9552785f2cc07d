"""
Payload encoding for the tasks table.

A row's payload is a small JSON envelope tagged with the task kind and the
version of its params, e.g. {"kind": "genre_page", "v": 1, "params": {...}}.
"""
from typing import Any, Dict

from pydantic import BaseModel, Field, ValidationError

from .errors import PersistenceError
from .models import Task


class Envelope(BaseModel):
    kind: str = Field(min_length=1)
    v: int = 1
    params: Dict[str, Any] = Field(default_factory=dict)


def encode(task: Task) -> str:
    return Envelope(kind=task.kind, v=task.version, params=task.params).model_dump_json()


def decode(payload: str) -> Envelope:
    try:
        return Envelope.model_validate_json(payload)
    except ValidationError as e:
        raise PersistenceError(f"undecodable task payload: {e.errors()[0]['msg']}") from e
