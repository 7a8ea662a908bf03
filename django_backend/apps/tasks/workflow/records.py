"""
Plain value types the workflow core operates on.

The core never touches the ORM: querysets are converted into ``TaskRecord``
values once (``TaskRecord.from_model``) and REST payloads through
``TaskRecord.from_dict``.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional, Tuple

STORY = "story"
TASK = "task"

OPEN = "open"
IN_PROGRESS = "in_progress"
DONE = "done"

TASK_TYPE_LABELS = {STORY: "Task", TASK: "Subtask"}


def resolve_field(obj: Any, path: str) -> Any:
    """
    Resolve a dotted field path by sequential key lookup.

    Works on mappings and attribute-bearing objects alike. A missing
    intermediate value yields None. Sequences fan out, so ``assignees.username``
    resolves to a list of usernames.
    """
    current = obj
    for part in path.split("."):
        if current is None:
            return None
        if isinstance(current, (list, tuple)):
            values = [resolve_field(item, part) for item in current]
            current = [v for v in values if v is not None]
        elif isinstance(current, Mapping):
            current = current.get(part)
        else:
            current = getattr(current, part, None)
    return current


class Permission(Enum):
    MARK_COMPLETE_TASK = "mark-complete-task"
    FIRST_VERIFY_TASK = "first-verify-task"
    SECOND_VERIFY_TASK = "second-verify-task"

    @classmethod
    def parse_all(cls, names: Iterable[str]) -> FrozenSet["Permission"]:
        """Map permission names onto known capabilities, ignoring the rest"""
        known = {p.value: p for p in cls}
        return frozenset(known[n] for n in names if n in known)


@dataclass(frozen=True)
class ProjectRef:
    id: Any
    name: str = ""
    project_lead_id: Optional[Any] = None


@dataclass(frozen=True)
class UserRef:
    id: Any
    username: str = ""


@dataclass(frozen=True)
class ActingUser:
    id: Any
    permissions: FrozenSet[Permission] = frozenset()

    def has(self, permission: Permission) -> bool:
        return permission in self.permissions

    @classmethod
    def from_user(cls, user) -> "ActingUser":
        return cls(id=user.id, permissions=Permission.parse_all(user.permission_names))


@dataclass(frozen=True)
class TaskRecord:
    id: Any
    name: str
    task_type: str = TASK
    status: str = OPEN
    parent_task_id: Optional[Any] = None
    sub_task_ids: Optional[Tuple[Any, ...]] = None
    project: Optional[ProjectRef] = None
    assignees: Tuple[UserRef, ...] = ()
    tcode: str = ""
    priority: Optional[str] = None
    group: Optional[str] = None
    due_date: Optional[datetime] = None
    first_verified_by: Optional[Any] = None
    first_verified_at: Optional[datetime] = None
    second_verified_by: Optional[Any] = None
    second_verified_at: Optional[datetime] = None
    extra: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def is_story(self) -> bool:
        return self.task_type == STORY

    @property
    def task_type_label(self) -> str:
        return TASK_TYPE_LABELS.get(self.task_type, self.task_type)

    @property
    def is_first_verified(self) -> bool:
        return self.first_verified_by is not None

    @property
    def is_second_verified(self) -> bool:
        return self.second_verified_by is not None

    @property
    def project_lead_id(self) -> Optional[Any]:
        if self.project is None:
            return None
        return self.project.project_lead_id

    @classmethod
    def from_model(cls, task) -> "TaskRecord":
        project = None
        if task.project_id is not None:
            project = ProjectRef(
                id=task.project_id,
                name=task.project.name,
                project_lead_id=task.project.project_lead_id,
            )
        return cls(
            id=task.id,
            name=task.name,
            task_type=task.task_type,
            status=task.status,
            parent_task_id=task.parent_task_id,
            project=project,
            assignees=tuple(UserRef(u.id, u.username) for u in task.assignees.all()),
            tcode=task.tcode,
            priority=task.priority,
            group=task.group or None,
            due_date=task.due_date,
            first_verified_by=task.first_verified_by_id,
            first_verified_at=task.first_verified_at,
            second_verified_by=task.second_verified_by_id,
            second_verified_at=task.second_verified_at,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TaskRecord":
        """Build a record from the REST task payload"""
        project = None
        raw_project = data.get("project")
        if isinstance(raw_project, Mapping):
            project = ProjectRef(
                id=raw_project.get("id"),
                name=raw_project.get("name") or "",
                project_lead_id=raw_project.get("project_lead"),
            )
        elif raw_project is not None:
            project = ProjectRef(id=raw_project)

        sub_task_ids = data.get("sub_task_ids")
        assignees = []
        for a in data.get("assignees") or ():
            if isinstance(a, Mapping):
                assignees.append(UserRef(a.get("id"), a.get("username") or ""))
            else:
                assignees.append(UserRef(a))

        return cls(
            id=data["id"],
            name=data.get("name") or "",
            task_type=data.get("task_type") or TASK,
            status=data.get("status") or OPEN,
            parent_task_id=data.get("parent_task"),
            sub_task_ids=tuple(sub_task_ids) if sub_task_ids is not None else None,
            project=project,
            assignees=tuple(assignees),
            tcode=data.get("tcode") or "",
            priority=data.get("priority"),
            group=data.get("group") or None,
            due_date=data.get("due_date"),
            first_verified_by=data.get("first_verified_by"),
            first_verified_at=data.get("first_verified_at"),
            second_verified_by=data.get("second_verified_by"),
            second_verified_at=data.get("second_verified_at"),
        )
