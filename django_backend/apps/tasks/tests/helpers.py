from apps.tasks.workflow.records import (
    DONE, IN_PROGRESS, OPEN, STORY, TASK, ActingUser, Permission, ProjectRef, TaskRecord,
)

__all__ = [
    "DONE", "IN_PROGRESS", "OPEN", "PROJECT", "Permission",
    "make_user", "story", "subtask", "user",
]

PROJECT = ProjectRef(id=100, name="Acme Audit", project_lead_id=7)


def story(task_id, name, **kwargs):
    kwargs.setdefault("project", PROJECT)
    return TaskRecord(id=task_id, name=name, task_type=STORY, **kwargs)


def subtask(task_id, name, parent=None, **kwargs):
    kwargs.setdefault("project", PROJECT)
    return TaskRecord(id=task_id, name=name, task_type=TASK, parent_task_id=parent, **kwargs)


def user(user_id=1, *permissions):
    return ActingUser(id=user_id, permissions=frozenset(permissions))


def make_user(username, *capabilities, **kwargs):
    """Create a user whose role grants ``capabilities``"""
    from django.contrib.auth import get_user_model

    from apps.users.models import Permission as PermissionModel, Role

    kwargs.setdefault("email", f"{username}@example.com")
    account = get_user_model().objects.create_user(username=username, password="testpass123", **kwargs)
    if capabilities:
        role = Role.objects.create(name=f"{username}-role")
        role.permissions.set([
            PermissionModel.objects.get_or_create(name=getattr(c, "value", c))[0] for c in capabilities
        ])
        account.role = role
        account.save(update_fields=["role"])
    return account
