"""Enqueue follow-up work inside the caller's unit of work."""

import structlog
from protean.utils.globals import current_domain

from ordering.tasks.task import Task, TaskKind

logger = structlog.get_logger(__name__)


def award_points_key(order_id) -> str:
    return f"{TaskKind.AWARD_POINTS.value}:{order_id}"


def book_shipment_key(order_id, vendor_id) -> str:
    return f"{TaskKind.BOOK_SHIPMENT.value}:{order_id}:{vendor_id}"


def enqueue_task(kind, dedupe_key, payload, order_id=None) -> Task:
    """Record a task unless one with the same dedupe key already exists."""
    repo = current_domain.repository_for(Task)
    existing = repo.find_by_dedupe_key(dedupe_key)
    if existing is not None:
        logger.info("task_already_enqueued", dedupe_key=dedupe_key, status=existing.status)
        return existing

    task = Task.enqueue(kind, dedupe_key, payload=payload, order_id=order_id)
    repo.add(task)
    logger.info("task_enqueued", kind=task.kind, dedupe_key=dedupe_key)
    return task
