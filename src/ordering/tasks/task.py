"""Task aggregate — the outbox of work that follows a successful settlement.

Awarding reward points and booking vendor shipments must never decide the
outcome of a checkout, so settlement only records a Task in the same unit
of work as the payment transition. Tasks are executed afterwards, each in
its own unit of work, and can be retried when they fail.

Every task has a ``dedupe_key`` (``award_points:<order>``,
``book_shipment:<order>:<vendor>``); enqueueing the same key twice yields
one task.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Integer, String, Text

from ordering.domain import ordering
from ordering.tasks.events import TaskCompleted, TaskEnqueued, TaskFailed


class TaskKind(Enum):
    AWARD_POINTS = "award_points"
    BOOK_SHIPMENT = "book_shipment"


class TaskStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


_VALID_TRANSITIONS = {
    TaskStatus.PENDING: {TaskStatus.COMPLETED, TaskStatus.FAILED},
    TaskStatus.FAILED: {TaskStatus.PENDING},  # Via retry
    TaskStatus.COMPLETED: set(),  # Terminal
}


@ordering.aggregate
class Task:
    kind = String(required=True, choices=TaskKind)
    dedupe_key = String(required=True, max_length=255, unique=True)
    payload = Text()  # JSON
    order_id = String(max_length=50)
    status = String(choices=TaskStatus, default=TaskStatus.PENDING.value)
    attempts = Integer(default=0)
    retry_count = Integer(default=0)
    max_retries = Integer(default=3)
    last_error = Text()
    created_at = DateTime()
    completed_at = DateTime()

    @classmethod
    def enqueue(cls, kind, dedupe_key, payload=None, order_id=None, max_retries=3):
        kind = kind.value if isinstance(kind, TaskKind) else kind
        task = cls(
            kind=kind,
            dedupe_key=dedupe_key,
            payload=json.dumps(payload or {}),
            order_id=str(order_id) if order_id else None,
            status=TaskStatus.PENDING.value,
            attempts=0,
            retry_count=0,
            max_retries=max_retries,
            created_at=datetime.now(UTC),
        )
        task.raise_(TaskEnqueued(task_id=str(task.id), kind=kind, dedupe_key=dedupe_key))
        return task

    @property
    def data(self) -> dict:
        return json.loads(self.payload) if self.payload else {}

    def _assert_can_transition(self, target_status):
        current = TaskStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def mark_completed(self):
        self._assert_can_transition(TaskStatus.COMPLETED)
        self.status = TaskStatus.COMPLETED.value
        self.attempts = (self.attempts or 0) + 1
        self.completed_at = datetime.now(UTC)
        self.last_error = None

        self.raise_(TaskCompleted(task_id=str(self.id), kind=self.kind, attempts=self.attempts))

    def mark_failed(self, reason):
        self._assert_can_transition(TaskStatus.FAILED)
        self.status = TaskStatus.FAILED.value
        self.attempts = (self.attempts or 0) + 1
        self.last_error = reason

        self.raise_(
            TaskFailed(
                task_id=str(self.id),
                kind=self.kind,
                reason=reason,
                attempts=self.attempts,
                retry_count=self.retry_count,
                max_retries=self.max_retries,
            )
        )

    def retry(self):
        """Put a failed task back in the queue."""
        if TaskStatus(self.status) != TaskStatus.FAILED:
            raise ValidationError({"status": ["Only failed tasks can be retried"]})
        if self.retry_count >= self.max_retries:
            raise ValidationError({"retry_count": ["Maximum retry attempts exceeded"]})

        self._assert_can_transition(TaskStatus.PENDING)
        self.status = TaskStatus.PENDING.value
        self.retry_count = self.retry_count + 1

    @property
    def can_retry(self) -> bool:
        return self.status == TaskStatus.FAILED.value and self.retry_count < self.max_retries

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "kind": self.kind,
            "dedupe_key": self.dedupe_key,
            "order_id": self.order_id,
            "status": self.status,
            "attempts": self.attempts,
            "retry_count": self.retry_count,
            "last_error": self.last_error,
        }


@ordering.repository(part_of=Task)
class TaskRepository:
    def find_by_dedupe_key(self, dedupe_key) -> Task | None:
        tasks = self._dao.query.filter(dedupe_key=dedupe_key).all().items
        return tasks[0] if tasks else None

    def pending(self, order_id=None) -> list[Task]:
        filters = {"status": TaskStatus.PENDING.value}
        if order_id is not None:
            filters["order_id"] = str(order_id)
        tasks = self._dao.query.filter(**filters).all().items
        return sorted(tasks, key=lambda t: t.created_at or datetime.min.replace(tzinfo=UTC))

    def for_order(self, order_id) -> list[Task]:
        return self._dao.query.filter(order_id=str(order_id)).all().items
