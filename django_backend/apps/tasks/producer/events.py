import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from apps.common.events import EventPayload
from apps.common.events.base import EventPublisherFactory
from apps.common.kafka.config import TASK_EVENTS_TOPIC

logger = logging.getLogger(__name__)


class TaskEventType(Enum):
    TASK_CREATED = "task_created"
    TASK_UPDATED = "task_updated"
    TASK_COMPLETED = "task_completed"
    TASK_FIRST_VERIFIED = "task_first_verified"
    TASK_SECOND_VERIFIED = "task_second_verified"
    TASK_BULK_TRANSITION = "task_bulk_transition"


EVENT_ACTIONS = {
    TaskEventType.TASK_CREATED: "create",
    TaskEventType.TASK_UPDATED: "update",
    TaskEventType.TASK_COMPLETED: "complete",
    TaskEventType.TASK_FIRST_VERIFIED: "first_verify",
    TaskEventType.TASK_SECOND_VERIFIED: "second_verify",
    TaskEventType.TASK_BULK_TRANSITION: "bulk_transition",
}


def publish_task_event(
    event_type: TaskEventType,
    user_id: Optional[int],
    data: Dict[str, Any],
    metadata: Optional[Dict[str, Any]] = None
) -> bool:
    """
    Publish a task event on the task-events topic

    Events about a single task are keyed by its id so they stay ordered on
    one partition; other events are keyed by the acting user.

    Returns:
        bool: True if the publisher accepted the event. Failures are logged,
        never raised, so callers inside request handling are not affected.
    """
    body = dict(data)
    body.setdefault('action', EVENT_ACTIONS[event_type])
    key = str(body['task_id']) if body.get('task_id') is not None else str(user_id)

    try:
        publisher = EventPublisherFactory.get_publisher()
        published = publisher.publish(
            topic=TASK_EVENTS_TOPIC,
            event=EventPayload(event_type=event_type.value, user_id=user_id, data=body, metadata=metadata),
            key=key,
        )
    except Exception as e:
        logger.error(f"Error publishing task event {event_type.value}: {str(e)}")
        return False

    if published:
        logger.info(f"Task event published: {event_type.value} (key {key})")
    else:
        logger.error(f"Failed to publish task event: {event_type.value}")
    return published


def _publish_for_task(event_type: TaskEventType, user_id: int, task_id: int, name: str, **extra):
    return publish_task_event(event_type, user_id, {'task_id': task_id, 'name': name, **extra})


def publish_task_created(user_id: int, task_id: int, name: str, task_type: str,
                         project_id: int = None, parent_task_id: int = None):
    return _publish_for_task(
        TaskEventType.TASK_CREATED, user_id, task_id, name,
        task_type=task_type, project_id=project_id, parent_task_id=parent_task_id,
    )


def publish_task_updated(user_id: int, task_id: int, name: str, changes: Dict[str, Any]):
    return _publish_for_task(TaskEventType.TASK_UPDATED, user_id, task_id, name, changes=changes)


def publish_task_completed(user_id: int, task_id: int, name: str):
    return _publish_for_task(TaskEventType.TASK_COMPLETED, user_id, task_id, name)


def publish_task_first_verified(user_id: int, task_id: int, name: str):
    return _publish_for_task(TaskEventType.TASK_FIRST_VERIFIED, user_id, task_id, name)


def publish_task_second_verified(user_id: int, task_id: int, name: str):
    return _publish_for_task(TaskEventType.TASK_SECOND_VERIFIED, user_id, task_id, name)


def publish_bulk_transition(user_id: int, transition: str, succeeded: List[int], failed: List[int]):
    """Summary of one bulk transition request"""
    return publish_task_event(
        TaskEventType.TASK_BULK_TRANSITION,
        user_id,
        {'transition': transition, 'succeeded': succeeded, 'failed': failed},
    )
