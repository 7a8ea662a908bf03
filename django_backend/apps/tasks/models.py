from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models


class TaskStatus(models.TextChoices):
    OPEN = "open", "Open"
    IN_PROGRESS = "in_progress", "In Progress"
    DONE = "done", "Done"


class TaskType(models.TextChoices):
    STORY = "story", "Task"
    TASK = "task", "Subtask"


class TaskPriority(models.TextChoices):
    CRITICAL = "critical", "Critical"
    HIGH = "high", "High"
    MEDIUM = "medium", "Medium"
    LOW = "low", "Low"


class TaskAction(models.TextChoices):
    CREATED = "created", "Created"
    UPDATED = "updated", "Updated"
    COMPLETED = "completed", "Completed"
    FIRST_VERIFIED = "first_verified", "First Verified"
    SECOND_VERIFIED = "second_verified", "Second Verified"


class Project(models.Model):
    name = models.CharField(max_length=200)
    code = models.CharField(max_length=32, blank=True, default="")
    description = models.TextField(blank=True, default="")
    project_lead = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="projects_led",
    )
    members = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        related_name="projects",
        blank=True,
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name


class Task(models.Model):
    name = models.CharField(max_length=200)
    tcode = models.CharField(max_length=32, blank=True, default="")
    description = models.TextField(blank=True, default="")

    task_type = models.CharField(
        max_length=16,
        choices=TaskType.choices,
        default=TaskType.TASK,
    )
    parent_task = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="subtasks",
    )
    status = models.CharField(
        max_length=32,
        choices=TaskStatus.choices,
        default=TaskStatus.OPEN,
    )
    priority = models.CharField(
        max_length=16,
        choices=TaskPriority.choices,
        default=TaskPriority.MEDIUM,
    )
    group = models.CharField(max_length=100, blank=True, default="")
    due_date = models.DateTimeField(null=True, blank=True)
    budgeted_hours = models.DecimalField(
        max_digits=6,
        decimal_places=2,
        default=0,
        validators=[MinValueValidator(0)],
    )

    project = models.ForeignKey(
        Project,
        null=True,
        blank=True,
        on_delete=models.CASCADE,
        related_name="tasks",
    )
    assignees = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        related_name="tasks_assigned",
        blank=True,
    )

    completed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="tasks_completed",
    )
    completed_at = models.DateTimeField(null=True, blank=True)
    first_verified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="tasks_first_verified",
    )
    first_verified_at = models.DateTimeField(null=True, blank=True)
    second_verified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="tasks_second_verified",
    )
    second_verified_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["status"], name="tasks_task_status_idx"),
            models.Index(fields=["task_type"], name="tasks_task_type_idx"),
            models.Index(fields=["due_date"], name="tasks_task_due_idx"),
        ]
        ordering = ["name", "id"]

    def __str__(self) -> str:
        return self.name

    @property
    def sub_task_ids(self):
        return [t.id for t in self.subtasks.all()]

    def clean(self):
        errors = {}
        if self.parent_task_id is not None:
            if self.task_type != TaskType.TASK:
                errors["parent_task"] = "Only subtasks can have a parent task."
            elif self.parent_task.task_type != TaskType.STORY:
                errors["parent_task"] = "A subtask's parent must be a top-level task."
        if self.second_verified_by_id is not None and self.first_verified_by_id is None:
            errors["second_verified_by"] = "Second verification requires first verification."
        if self.first_verified_by_id is not None and self.status != TaskStatus.DONE:
            errors["first_verified_by"] = "Only completed tasks can be verified."
        if errors:
            raise ValidationError(errors)


class TaskHistory(models.Model):
    task = models.ForeignKey(Task, on_delete=models.CASCADE, related_name="history")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="task_events",
    )
    action = models.CharField(max_length=100, choices=TaskAction.choices)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [models.Index(fields=["task", "created_at"], name="tasks_hist_task_created_idx")]

    def __str__(self) -> str:
        return f"{self.action} on {self.task_id}"
