import logging
import threading
from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, List, Optional

from .config import load_settings
from .errors import TaskExecutionError
from .executor import run_task
from .registry import TaskContext

if TYPE_CHECKING:
    from .queue import CommandQueue

logger = logging.getLogger(__name__)


@dataclass
class DrainReport:
    outcomes: Counter = field(default_factory=Counter)
    retried: int = 0
    discovered: int = 0
    cancelled: bool = False
    errors: List[TaskExecutionError] = field(default_factory=list)
    results: List[Any] = field(default_factory=list)

    @property
    def executed(self) -> int:
        return sum(self.outcomes.values()) + self.retried


def _should_stop(queue: "CommandQueue", cancel: Optional[threading.Event]) -> bool:
    if cancel is not None and cancel.is_set():
        return True
    return load_settings(queue.store).shutdown


def drain_queue(queue: "CommandQueue", cancel: Optional[threading.Event] = None) -> DrainReport:
    """
    Run pending tasks one at a time until none is left:
      - checks the cancel event and the persisted 'shutdown' flag between tasks
      - follow-up tasks enqueued by a handler are picked up by the same loop
      - on handler failure either marks the task failed (policy 'complete')
        or leaves it pending for a later drain (policy 'retry')
    Store errors propagate; the task in flight then stays pending.
    """
    settings = load_settings(queue.store)
    report = DrainReport()
    # ids at or below the cursor were already attempted in this drain
    cursor = 0
    logger.info("drain started (failure_policy=%s)", settings.failure_policy)

    while queue.has_pending(cursor):
        if _should_stop(queue, cancel):
            report.cancelled = True
            logger.info("drain stopped on request")
            break

        task = queue.dequeue_next(cursor)
        cursor = task.id
        ctx = TaskContext(queue=queue, task=task, fetch=queue.fetch)
        status, err = run_task(queue.registry, ctx)
        report.results.extend(ctx.results)
        report.discovered += len(ctx.discovered)

        last_error = None
        if err is not None:
            report.errors.append(err)
            attempts = task.attempts + 1
            last_error = str(err)[:512]
            queue.store.record_attempt(task.id, attempts, last_error)
            if settings.failure_policy == "retry" and attempts < settings.max_retries:
                report.retried += 1
                logger.info("task %s left pending for retry (%d/%d)", task.id, attempts, settings.max_retries)
                continue

        queue.mark_complete(task.id, status, last_error=last_error)
        report.outcomes[status.value] += 1

    logger.info(
        "drain finished: %s, %d left for retry",
        dict(report.outcomes) or "nothing to do", report.retried,
    )
    return report
