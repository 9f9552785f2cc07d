"""
Kind -> handler dispatch table.

A handler is a plain function taking the task context and the task params,
returning a terminal TaskStatus (or None for COMPLETE). Kinds may declare a
pydantic model for their params; it is applied when a task is enqueued and
again before the handler runs.
"""
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Type

from pydantic import BaseModel, ValidationError

from .errors import UnknownTaskKind
from .models import Task, TaskStatus

if TYPE_CHECKING:
    from .queue import CommandQueue


Handler = Callable[["TaskContext", Dict[str, Any]], Optional[TaskStatus]]
Fetch = Callable[[str], str]


@dataclass
class Registration:
    kind: str
    handler: Handler
    params_model: Optional[Type[BaseModel]] = None
    version: int = 1


class TaskRegistry:
    def __init__(self):
        self._entries: Dict[str, Registration] = {}

    def add(self, kind: str, handler: Handler, params_model: Optional[Type[BaseModel]] = None, version: int = 1):
        if kind in self._entries:
            raise ValueError(f"kind {kind!r} already registered")
        self._entries[kind] = Registration(kind, handler, params_model, version)

    def register(self, kind: str, params_model: Optional[Type[BaseModel]] = None, version: int = 1):
        def deco(fn: Handler) -> Handler:
            self.add(kind, fn, params_model, version)
            return fn
        return deco

    def resolve(self, kind: str) -> Registration:
        try:
            return self._entries[kind]
        except KeyError:
            raise UnknownTaskKind(kind) from None

    def validate(self, kind: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """Return params normalised by the kind's model. Raises ValueError on bad params."""
        entry = self.resolve(kind)
        if entry.params_model is None:
            return dict(params)
        try:
            return entry.params_model.model_validate(params).model_dump(mode="json")
        except ValidationError as e:
            raise ValueError(f"bad params for {kind}: {e}") from e

    def kinds(self) -> List[str]:
        return sorted(self._entries)


@dataclass
class TaskContext:
    """What a running handler can see: its task, the queue and the fetch function."""
    queue: "CommandQueue"
    task: Task
    fetch: Optional[Fetch] = None
    discovered: List[int] = field(default_factory=list)
    results: List[Any] = field(default_factory=list)

    def enqueue(self, kind: str, **params) -> int:
        task_id = self.queue.enqueue(Task(kind=kind, params=params))
        self.discovered.append(task_id)
        return task_id

    def get(self, url: str) -> str:
        if self.fetch is None:
            raise RuntimeError("no fetch function configured for this queue")
        return self.fetch(url)
