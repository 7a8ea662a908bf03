from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail

from apps.tasks.models import Task


def _emails(users):
    return sorted({u.email for u in users if getattr(u, "email", None)})


def _notify(users, subject, body):
    recipients = _emails(users)
    if not recipients:
        return 0
    send_mail(subject, body, settings.DEFAULT_FROM_EMAIL, recipients, fail_silently=True)
    return len(recipients)


def _task_recipients(task):
    users = list(task.assignees.all())
    if task.project_id and task.project.project_lead_id:
        users.append(task.project.project_lead)
    return users


@shared_task
def send_task_notification(task_id, notification_type):
    """
    Send email notifications for task workflow events.
    notification_type: completed | first_verified | second_verified | created | updated
    """
    try:
        task = (
            Task.objects.select_related("project__project_lead", "completed_by",
                                        "first_verified_by", "second_verified_by")
            .prefetch_related("assignees")
            .get(pk=task_id)
        )
    except Task.DoesNotExist:
        return 0

    users = _task_recipients(task)
    if not users:
        return 0

    nt = notification_type
    if nt == "completed":
        subject = f"[Task Completed] {task.name}"
        body = f"The task '{task.name}' was marked complete by {task.completed_by}."
    elif nt == "first_verified":
        subject = f"[First Verification] {task.name}"
        body = f"The task '{task.name}' was first verified by {task.first_verified_by}."
    elif nt == "second_verified":
        subject = f"[Second Verification] {task.name}"
        body = f"The task '{task.name}' was second verified by {task.second_verified_by}."
    elif nt == "created":
        subject = f"[Task Created] {task.name}"
        body = f"The task '{task.name}' was created (priority: {task.priority})."
    else:
        subject = f"[Update] {task.name}"
        body = f"The task '{task.name}' has been updated."

    return _notify(users, subject, body)
