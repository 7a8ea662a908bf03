"""
Eligibility rules for the three task transitions.

All functions here are pure: they look only at the task record and the acting
user and never touch the database.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional

from .records import DONE, IN_PROGRESS, ActingUser, Permission, TaskRecord


class TransitionKind(Enum):
    COMPLETE = "complete"
    FIRST_VERIFY = "first_verify"
    SECOND_VERIFY = "second_verify"


def can_complete(task: TaskRecord, user: ActingUser) -> bool:
    if task.status != IN_PROGRESS:
        return False
    if user.has(Permission.MARK_COMPLETE_TASK):
        return True
    return task.project_lead_id is not None and task.project_lead_id == user.id


def can_first_verify(task: TaskRecord, user: ActingUser) -> bool:
    return (
        task.status == DONE
        and not task.is_first_verified
        and user.has(Permission.FIRST_VERIFY_TASK)
    )


def can_second_verify(task: TaskRecord, user: ActingUser) -> bool:
    return (
        task.is_first_verified
        and not task.is_second_verified
        and task.status == DONE
        and user.has(Permission.SECOND_VERIFY_TASK)
    )


GUARDS: Dict[TransitionKind, Callable[[TaskRecord, ActingUser], bool]] = {
    TransitionKind.COMPLETE: can_complete,
    TransitionKind.FIRST_VERIFY: can_first_verify,
    TransitionKind.SECOND_VERIFY: can_second_verify,
}

GUARD_CONDITIONS = {
    TransitionKind.COMPLETE: (
        "only tasks in progress can be marked complete, by users with the "
        "mark-complete-task permission or the project lead"
    ),
    TransitionKind.FIRST_VERIFY: (
        "only completed tasks that are not yet first verified can be first "
        "verified, by users with the first-verify-task permission"
    ),
    TransitionKind.SECOND_VERIFY: (
        "only first verified tasks that are not yet second verified can be "
        "second verified, by users with the second-verify-task permission"
    ),
}


def guard_for(kind: TransitionKind) -> Callable[[TaskRecord, ActingUser], bool]:
    return GUARDS[kind]


def is_allowed(task: TaskRecord, user: ActingUser, kind: TransitionKind) -> bool:
    return GUARDS[kind](task, user)


def _has_capability(task: TaskRecord, user: ActingUser, kind: TransitionKind) -> bool:
    if kind is TransitionKind.COMPLETE:
        return user.has(Permission.MARK_COMPLETE_TASK) or (
            task.project_lead_id is not None and task.project_lead_id == user.id
        )
    if kind is TransitionKind.FIRST_VERIFY:
        return user.has(Permission.FIRST_VERIFY_TASK)
    return user.has(Permission.SECOND_VERIFY_TASK)


def _already_done(task: TaskRecord, kind: TransitionKind) -> bool:
    if kind is TransitionKind.COMPLETE:
        return task.status == DONE
    if kind is TransitionKind.FIRST_VERIFY:
        return task.is_first_verified
    return task.is_second_verified


def _status_ready(task: TaskRecord, kind: TransitionKind) -> bool:
    if kind is TransitionKind.COMPLETE:
        return task.status == IN_PROGRESS
    if kind is TransitionKind.FIRST_VERIFY:
        return task.status == DONE
    return task.status == DONE and task.is_first_verified


def rejection_reason(task: TaskRecord, user: ActingUser, kind: TransitionKind) -> Optional[str]:
    """Why ``user`` cannot apply ``kind`` to ``task`` right now, or None"""
    if is_allowed(task, user, kind):
        return None

    if kind is TransitionKind.COMPLETE:
        if task.status == DONE:
            return "Task is already completed"
        if task.status != IN_PROGRESS:
            return "Only tasks in progress can be marked complete"
        return "You do not have permission to mark this task complete"

    if kind is TransitionKind.FIRST_VERIFY:
        if task.is_first_verified:
            return "Task is already first verified"
        if task.status != DONE:
            return "Only completed tasks can be first verified"
        return "You do not have permission to first verify tasks"

    if task.is_second_verified:
        return "Task is already second verified"
    if not task.is_first_verified:
        return "Task must be first verified before second verification"
    if task.status != DONE:
        return "Only completed tasks can be second verified"
    return "You do not have permission to second verify tasks"


class DisplayState(Enum):
    AVAILABLE = "available"
    NOT_READY = "not_ready"
    NO_PERMISSION = "no_permission"
    DONE = "done"


ACTION_LABELS = {
    TransitionKind.COMPLETE: "Mark Complete",
    TransitionKind.FIRST_VERIFY: "✓ 1st Verify",
    TransitionKind.SECOND_VERIFY: "✓✓ 2nd Verify",
}

DONE_LABELS = {
    TransitionKind.COMPLETE: "Done",
    TransitionKind.FIRST_VERIFY: "✓ 1st done",
    TransitionKind.SECOND_VERIFY: "✓✓ 2nd done",
}


@dataclass(frozen=True)
class TransitionDisplay:
    kind: TransitionKind
    state: DisplayState
    label: str

    @property
    def actionable(self) -> bool:
        return self.state is DisplayState.AVAILABLE


def display_state(task: TaskRecord, user: ActingUser, kind: TransitionKind) -> TransitionDisplay:
    if _already_done(task, kind):
        return TransitionDisplay(kind, DisplayState.DONE, DONE_LABELS[kind])
    if not _status_ready(task, kind):
        return TransitionDisplay(kind, DisplayState.NOT_READY, "Not Ready")
    if not _has_capability(task, user, kind):
        return TransitionDisplay(kind, DisplayState.NO_PERMISSION, "No Permission")
    return TransitionDisplay(kind, DisplayState.AVAILABLE, ACTION_LABELS[kind])


def display_states(task: TaskRecord, user: ActingUser) -> Dict[TransitionKind, TransitionDisplay]:
    return {kind: display_state(task, user, kind) for kind in TransitionKind}
