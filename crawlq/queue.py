"""
The durable command queue.

Tasks are rows in the store's tasks table: appended as pending, picked in
storage order by the drain loop, executed one at a time and then stamped
with a terminal status. Nothing is ever deleted, so a run that dies half
way leaves every unfinished task pending for the next drain().
"""
import logging
import sqlite3
import threading
from typing import Dict, List, Optional

from pydantic_core import PydanticSerializationError

from . import codec
from .errors import EmptyQueueError, NotFoundError, PersistenceError, StatusTransitionError
from .models import Task, TaskStatus
from .registry import Fetch, TaskRegistry
from .storage import Store
from .worker import DrainReport, drain_queue

logger = logging.getLogger(__name__)


def _row_to_task(row: sqlite3.Row) -> Task:
    env = codec.decode(row["payload"])
    try:
        status = TaskStatus(row["status"])
    except ValueError as e:
        raise PersistenceError(f"task {row['id']} has unknown status {row['status']!r}") from e
    return Task(
        id=row["id"],
        kind=env.kind,
        version=env.v,
        params=env.params,
        status=status,
        attempts=row["attempts"],
        last_error=row["last_error"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class CommandQueue:
    def __init__(self, store: Store, registry: TaskRegistry, fetch: Optional[Fetch] = None):
        self.store = store
        self.registry = registry
        self.fetch = fetch

    def is_empty(self) -> bool:
        return not self.has_pending()

    def has_pending(self, after_id: int = 0) -> bool:
        return self.store.count_status(TaskStatus.PENDING.value, after_id) > 0

    def enqueue(self, task: Task) -> int:
        """Persist `task` as pending and return its new id."""
        entry = self.registry.resolve(task.kind)
        task.params = self.registry.validate(task.kind, task.params)
        task.version = entry.version
        try:
            payload = codec.encode(task)
        except PydanticSerializationError as e:
            raise PersistenceError(f"cannot serialise {task.kind} params: {e}") from e
        task.id = self.store.insert_task(payload, TaskStatus.PENDING.value)
        task.status = TaskStatus.PENDING
        logger.debug("enqueued task %s (%s) %s", task.id, task.kind, task.params)
        return task.id

    def dequeue_next(self, after_id: int = 0) -> Task:
        """First pending task by storage order, optionally only those with id > after_id."""
        row = self.store.first_with_status(TaskStatus.PENDING.value, after_id)
        if row is None:
            raise EmptyQueueError("no pending tasks")
        return _row_to_task(row)

    def mark_complete(self, task_id: int, status=TaskStatus.COMPLETE, last_error: Optional[str] = None):
        status = TaskStatus(status)
        if not status.terminal:
            raise StatusTransitionError(f"cannot mark task {task_id} as {status.value}")
        row = self.store.get_task(task_id)
        if row is None:
            raise NotFoundError(task_id)
        current = _row_to_task(row).status
        if current == status:
            return
        if current.terminal:
            raise StatusTransitionError(
                f"task {task_id} is already {current.value}, refusing {status.value}"
            )
        self.store.set_status(task_id, status.value, last_error)
        logger.info("task %s -> %s", task_id, status.value)

    def drain(self, cancel: Optional[threading.Event] = None) -> DrainReport:
        return drain_queue(self, cancel)

    # -----------------------------
    # audit
    # -----------------------------
    def get(self, task_id: int) -> Task:
        row = self.store.get_task(task_id)
        if row is None:
            raise NotFoundError(task_id)
        return _row_to_task(row)

    def list(self, status: Optional[TaskStatus] = None) -> List[Task]:
        rows = self.store.list_tasks(TaskStatus(status).value if status else None)
        return [_row_to_task(r) for r in rows]

    def counts(self) -> Dict[str, int]:
        out = {s.value: 0 for s in TaskStatus}
        out.update(dict(self.store.counts_by_status()))
        return out
