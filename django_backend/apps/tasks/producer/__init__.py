from .events import (
    TaskEventType,
    publish_task_event,
    publish_task_created,
    publish_task_updated,
    publish_task_completed,
    publish_task_first_verified,
    publish_task_second_verified,
    publish_bulk_transition,
)

__all__ = [
    "TaskEventType",
    "publish_task_event",
    "publish_task_created",
    "publish_task_updated",
    "publish_task_completed",
    "publish_task_first_verified",
    "publish_task_second_verified",
    "publish_bulk_transition",
]
