"""Domain events for the Task aggregate."""

from protean.fields import Identifier, Integer, String, Text

from ordering.domain import ordering


@ordering.event(part_of="Task")
class TaskEnqueued:
    task_id = Identifier(required=True)
    kind = String(required=True)
    dedupe_key = String(required=True)


@ordering.event(part_of="Task")
class TaskCompleted:
    task_id = Identifier(required=True)
    kind = String(required=True)
    attempts = Integer(required=True)


@ordering.event(part_of="Task")
class TaskFailed:
    task_id = Identifier(required=True)
    kind = String(required=True)
    reason = Text()
    attempts = Integer(required=True)
    retry_count = Integer(required=True)
    max_retries = Integer(required=True)
