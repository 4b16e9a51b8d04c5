"""Task execution and retry.

``run_pending_tasks`` drains the outbox after a checkout or payment
verification has committed. Each task runs in its own unit of work via
``ExecuteTask``; a failing executor marks its task failed and the next
task still runs.

A task runs while holding its own lock, and a shipment booking also holds
its order's lock, so a task is never executed twice at once and a booking
never races a cancellation of the same order.
"""

import structlog
from protean import handle
from protean.fields import Identifier
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.rewards import get_rewards
from ordering.shared.locks import order_key, settlement_locks, task_key
from ordering.shipment.booking import book_vendor_shipment
from ordering.tasks.task import Task, TaskKind, TaskStatus

logger = structlog.get_logger(__name__)


def _award_points(payload: dict):
    get_rewards().award_order_points(payload["order_id"])


EXECUTORS = {
    TaskKind.AWARD_POINTS: _award_points,
    TaskKind.BOOK_SHIPMENT: book_vendor_shipment,
}


@ordering.command(part_of="Task")
class ExecuteTask:
    task_id = Identifier(required=True)


@ordering.command(part_of="Task")
class RetryTask:
    task_id = Identifier(required=True)


@ordering.command_handler(part_of=Task)
class TaskRunnerHandler:
    @handle(ExecuteTask)
    def execute_task(self, command):
        repo = current_domain.repository_for(Task)
        task = repo.get(command.task_id)
        if task.status != TaskStatus.PENDING.value:
            return task.status

        executor = EXECUTORS[TaskKind(task.kind)]
        try:
            executor(task.data)
        except Exception as e:
            task.mark_failed(str(e))
            logger.error(
                "task_failed",
                task_id=str(task.id),
                kind=task.kind,
                dedupe_key=task.dedupe_key,
                error=str(e),
            )
        else:
            task.mark_completed()
            logger.info("task_completed", task_id=str(task.id), kind=task.kind)

        repo.add(task)
        return task.status

    @handle(RetryTask)
    def retry_task(self, command):
        repo = current_domain.repository_for(Task)
        task = repo.get(command.task_id)
        task.retry()
        repo.add(task)
        return task.status


def _lock_keys(task) -> list[str]:
    keys = [task_key(task.id)]
    order_number = task.data.get("order_number")
    if order_number:
        keys.append(order_key(order_number))
    return keys


def run_pending_tasks(order_id=None) -> dict[str, str]:
    """Execute every pending task (optionally only those of one order).

    Returns a mapping of dedupe key to the task's resulting status.
    """
    tasks = current_domain.repository_for(Task).pending(order_id)
    results = {}
    for task in tasks:
        with settlement_locks.hold(*_lock_keys(task)):
            results[task.dedupe_key] = current_domain.process(ExecuteTask(task_id=task.id), asynchronous=False)
    if results:
        logger.info("pending_tasks_processed", order_id=order_id, results=results)
    return results


def retry_task(task_id) -> str:
    """Requeue a failed task and run it straight away."""
    task = current_domain.repository_for(Task).get(task_id)
    with settlement_locks.hold(*_lock_keys(task)):
        current_domain.process(RetryTask(task_id=task_id), asynchronous=False)
        return current_domain.process(ExecuteTask(task_id=task_id), asynchronous=False)
