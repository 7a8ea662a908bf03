from django.contrib.auth.models import AbstractUser
from django.db import models


class Capability(models.TextChoices):
    MARK_COMPLETE_TASK = "mark-complete-task", "Mark Complete Task"
    FIRST_VERIFY_TASK = "first-verify-task", "First Verify Task"
    SECOND_VERIFY_TASK = "second-verify-task", "Second Verify Task"


class Permission(models.Model):
    name = models.CharField(max_length=100, unique=True)
    description = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class Role(models.Model):
    name = models.CharField(max_length=100, unique=True)
    permissions = models.ManyToManyField(Permission, related_name="roles", blank=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name

    def permission_names(self):
        return {p.name for p in self.permissions.all()}


class User(AbstractUser):
    display_name = models.CharField(max_length=150, blank=True, default="")
    role = models.ForeignKey(
        Role,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="users",
    )

    def __str__(self):
        return self.username

    @property
    def permission_names(self):
        """Capability names granted through the user's role"""
        if self.role_id is None:
            return set()
        return self.role.permission_names()

    def has_capability(self, capability):
        return str(capability) in self.permission_names
