from io import StringIO

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.test import TestCase

from apps.tasks.models import Project, Task, TaskStatus, TaskType
from apps.users.models import Role

User = get_user_model()


class SeedCommandTest(TestCase):
    """Test cases for the seed management command"""

    def test_seed(self):
        """Test seeding creates roles, users, projects and a valid hierarchy"""
        out = StringIO()
        call_command("seed", users=4, projects=2, seed=7, stdout=out)

        self.assertIn("Seed data created successfully", out.getvalue())
        self.assertEqual(Role.objects.count(), 4)
        self.assertEqual(User.objects.count(), 4)
        self.assertTrue(User.objects.get(username="admin").is_superuser)
        self.assertEqual(Project.objects.count(), 2)
        self.assertEqual(Task.objects.filter(task_type=TaskType.STORY).count(), 8)

        for task in Task.objects.exclude(parent_task=None):
            self.assertEqual(task.task_type, TaskType.TASK)
            self.assertEqual(task.parent_task.task_type, TaskType.STORY)
        for task in Task.objects.exclude(second_verified_by=None):
            self.assertIsNotNone(task.first_verified_by)
            self.assertEqual(task.status, TaskStatus.DONE)

    def test_seed_is_rerunnable(self):
        """Test running the command twice reuses roles and users"""
        call_command("seed", users=3, projects=1, stdout=StringIO())
        call_command("seed", users=3, projects=1, stdout=StringIO())

        self.assertEqual(Role.objects.count(), 4)
        self.assertEqual(User.objects.count(), 3)
        self.assertEqual(Project.objects.count(), 2)
