class QueueError(Exception):
    """Base class for everything the queue raises."""


class PersistenceError(QueueError):
    """Backing store unreachable, corrupt, or a write failed."""


class EmptyQueueError(QueueError):
    """dequeue_next() called while no pending task is left."""


class NotFoundError(QueueError):
    def __init__(self, task_id: int):
        super().__init__(f"task {task_id} does not exist")
        self.task_id = task_id


class StatusTransitionError(QueueError):
    """Status may only move from pending to a terminal value."""


class UnknownTaskKind(QueueError):
    def __init__(self, kind: str):
        super().__init__(f"no handler registered for kind {kind!r}")
        self.kind = kind


class TaskExecutionError(QueueError):
    """A handler raised while executing a task."""

    def __init__(self, task_id, kind: str, cause: BaseException):
        super().__init__(f"task {task_id} ({kind}) failed: {cause}")
        self.task_id = task_id
        self.kind = kind
        self.cause = cause
