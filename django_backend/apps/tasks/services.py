"""
Server side of the task workflow: the task store queries and the three bulk
transitions. Every item is re-checked with the same guards the client uses;
the server has the final word on eligibility.
"""

import logging
from typing import Any, Iterable, List, Mapping, Optional

from django.db import transaction
from django.utils import timezone

from apps.tasks.celery_tasks import send_task_notification
from apps.tasks.models import Task, TaskAction, TaskHistory, TaskStatus
from apps.tasks.producer import (
    publish_bulk_transition,
    publish_task_completed,
    publish_task_first_verified,
    publish_task_second_verified,
)
from apps.tasks.workflow import (
    ActingUser,
    BulkError,
    BulkResult,
    BulkTransitionRequest,
    TaskRecord,
    TaskRef,
    TransitionKind,
    rejection_reason,
)

logger = logging.getLogger(__name__)

SCOPE_FILTERS = {
    "project": "project_id",
    "status": "status",
    "assignee": "assignees",
    "task_type": "task_type",
}

HISTORY_ACTIONS = {
    TransitionKind.COMPLETE: TaskAction.COMPLETED,
    TransitionKind.FIRST_VERIFY: TaskAction.FIRST_VERIFIED,
    TransitionKind.SECOND_VERIFY: TaskAction.SECOND_VERIFIED,
}

PUBLISHERS = {
    TransitionKind.COMPLETE: publish_task_completed,
    TransitionKind.FIRST_VERIFY: publish_task_first_verified,
    TransitionKind.SECOND_VERIFY: publish_task_second_verified,
}

NOTIFICATIONS = {
    TransitionKind.COMPLETE: "completed",
    TransitionKind.FIRST_VERIFY: "first_verified",
    TransitionKind.SECOND_VERIFY: "second_verified",
}


def task_queryset():
    return Task.objects.select_related("project").prefetch_related("assignees")


def list_tasks(scope: Optional[Mapping[str, Any]] = None) -> List[TaskRecord]:
    """Flat task records for a scope (project, status, assignee, task_type)"""
    qs = task_queryset()
    for key, value in (scope or {}).items():
        if key not in SCOPE_FILTERS:
            raise ValueError(f"Unknown task scope filter: {key}")
        if value not in (None, ""):
            qs = qs.filter(**{SCOPE_FILTERS[key]: value})
    return [TaskRecord.from_model(t) for t in qs.distinct()]


def _apply(task: Task, kind: TransitionKind, actor, now) -> List[str]:
    if kind is TransitionKind.COMPLETE:
        task.status = TaskStatus.DONE
        task.completed_by = actor
        task.completed_at = now
        return ["status", "completed_by", "completed_at", "updated_at"]
    if kind is TransitionKind.FIRST_VERIFY:
        task.first_verified_by = actor
        task.first_verified_at = now
        return ["first_verified_by", "first_verified_at", "updated_at"]
    task.second_verified_by = actor
    task.second_verified_at = now
    return ["second_verified_by", "second_verified_at", "updated_at"]


def _announce(task_id: int, name: str, kind: TransitionKind, actor_id: int):
    PUBLISHERS[kind](actor_id, task_id, name)
    send_task_notification.delay(task_id, NOTIFICATIONS[kind])


def bulk_transition(kind: TransitionKind, task_ids: Iterable[Any], actor,
                    visible_ids: Optional[Iterable[Any]] = None) -> BulkResult:
    """
    Apply ``kind`` to each task independently.

    Ids outside ``visible_ids`` (when given) are reported as not found.

    Each task is locked and transitioned in its own savepoint, so one rejected
    or missing task never rolls back the others.

    Returns:
        BulkResult: tasks transitioned and per-task errors
    """
    acting = ActingUser.from_user(actor)
    success: List[TaskRef] = []
    errors: List[BulkError] = []
    seen = set()
    if visible_ids is not None:
        visible_ids = set(visible_ids)

    with transaction.atomic():
        for task_id in task_ids:
            if task_id in seen:
                continue
            seen.add(task_id)

            try:
                if visible_ids is not None and task_id not in visible_ids:
                    raise Task.DoesNotExist
                with transaction.atomic():
                    task = Task.objects.select_for_update().get(pk=task_id)
                    reason = rejection_reason(TaskRecord.from_model(task), acting, kind)
                    if reason is None:
                        now = timezone.now()
                        task.save(update_fields=_apply(task, kind, actor, now))
                        TaskHistory.objects.create(
                            task=task,
                            user=actor,
                            action=HISTORY_ACTIONS[kind],
                            metadata={"at": now.isoformat()},
                        )
            except Task.DoesNotExist:
                logger.warning(f"{kind.value} requested for missing task {task_id}")
                errors.append(BulkError(task_id=task_id, task_name=str(task_id), error="Task not found"))
                continue

            if reason is not None:
                logger.warning(f"{kind.value} rejected for task {task.id} by user {actor.id}: {reason}")
                errors.append(BulkError(task_id=task.id, task_name=task.name, error=reason))
                continue

            success.append(TaskRef(id=task.id, name=task.name))
            transaction.on_commit(
                lambda t=task.id, n=task.name: _announce(t, n, kind, actor.id)
            )

        succeeded = [s.id for s in success]
        failed = [e.task_id for e in errors]
        transaction.on_commit(
            lambda: publish_bulk_transition(actor.id, kind.value, succeeded, failed)
        )

    logger.info(
        f"{kind.value} by user {actor.id}: {len(success)} succeeded, {len(errors)} failed"
    )
    return BulkResult(success=success, errors=errors)


def mark_tasks_complete(task_ids: Iterable[Any], completed_by) -> BulkResult:
    return bulk_transition(TransitionKind.COMPLETE, task_ids, completed_by)


def first_verify_tasks(task_ids: Iterable[Any], first_verified_by) -> BulkResult:
    return bulk_transition(TransitionKind.FIRST_VERIFY, task_ids, first_verified_by)


def second_verify_tasks(task_ids: Iterable[Any], second_verified_by) -> BulkResult:
    return bulk_transition(TransitionKind.SECOND_VERIFY, task_ids, second_verified_by)


def local_request_fn(actor):
    """In-process request function for ``BulkOperationCoordinator``"""

    def request_fn(request: BulkTransitionRequest) -> BulkResult:
        if request.acting_user_id != actor.id:
            raise PermissionError("Transitions can only be requested for the acting user")
        return bulk_transition(request.kind, request.task_ids, actor)

    return request_fn


def start_task(task: Task, actor) -> Task:
    """Move an open task to in progress; status never moves backwards"""
    if task.status != TaskStatus.OPEN:
        raise ValueError("Only open tasks can be started")
    task.status = TaskStatus.IN_PROGRESS
    task.save(update_fields=["status", "updated_at"])
    TaskHistory.objects.create(
        task=task,
        user=actor,
        action=TaskAction.UPDATED,
        metadata={"from": TaskStatus.OPEN, "to": TaskStatus.IN_PROGRESS},
    )
    logger.info(f"Task {task.id} started by user {actor.id}")
    return task
