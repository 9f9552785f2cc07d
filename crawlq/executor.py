import logging
from typing import Optional, Tuple

from .errors import PersistenceError, TaskExecutionError
from .models import TaskStatus
from .registry import TaskContext, TaskRegistry

logger = logging.getLogger(__name__)


def run_task(registry: TaskRegistry, ctx: TaskContext) -> Tuple[TaskStatus, Optional[TaskExecutionError]]:
    """
    Executes one task through its handler. Returns (status, error_or_None).
    Store failures propagate; anything else the handler raises comes back
    wrapped in a TaskExecutionError alongside a FAILED status.
    """
    task = ctx.task
    try:
        entry = registry.resolve(task.kind)
        if task.version != entry.version:
            logger.warning(
                "task %s (%s) was stored with params v%d, handler expects v%d",
                task.id, task.kind, task.version, entry.version,
            )
        params = registry.validate(task.kind, task.params)
        status = entry.handler(ctx, params)
        if status is None:
            return TaskStatus.COMPLETE, None
        status = TaskStatus(status)
        if not status.terminal:
            raise ValueError(f"handler for {task.kind} returned non-terminal status {status.value}")
        return status, None
    except PersistenceError:
        raise
    except Exception as e:
        err = TaskExecutionError(task.id, task.kind, e)
        logger.warning("%s", err)
        return TaskStatus.FAILED, err
