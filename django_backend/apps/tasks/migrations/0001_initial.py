import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


USER = settings.AUTH_USER_MODEL


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("users", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Project",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("code", models.CharField(blank=True, default="", max_length=32)),
                ("description", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("project_lead", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="projects_led", to=USER)),
                ("members", models.ManyToManyField(blank=True, related_name="projects", to=USER)),
            ],
            options={
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="Task",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("tcode", models.CharField(blank=True, default="", max_length=32)),
                ("description", models.TextField(blank=True, default="")),
                ("task_type", models.CharField(choices=[("story", "Task"), ("task", "Subtask")], default="task", max_length=16)),
                ("status", models.CharField(choices=[("open", "Open"), ("in_progress", "In Progress"), ("done", "Done")], default="open", max_length=32)),
                ("priority", models.CharField(choices=[("critical", "Critical"), ("high", "High"), ("medium", "Medium"), ("low", "Low")], default="medium", max_length=16)),
                ("group", models.CharField(blank=True, default="", max_length=100)),
                ("due_date", models.DateTimeField(blank=True, null=True)),
                ("budgeted_hours", models.DecimalField(decimal_places=2, default=0, max_digits=6, validators=[django.core.validators.MinValueValidator(0)])),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("first_verified_at", models.DateTimeField(blank=True, null=True)),
                ("second_verified_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("parent_task", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="subtasks", to="tasks.task")),
                ("project", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name="tasks", to="tasks.project")),
                ("assignees", models.ManyToManyField(blank=True, related_name="tasks_assigned", to=USER)),
                ("completed_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="tasks_completed", to=USER)),
                ("first_verified_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="tasks_first_verified", to=USER)),
                ("second_verified_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="tasks_second_verified", to=USER)),
            ],
            options={
                "ordering": ["name", "id"],
                "indexes": [
                    models.Index(fields=["status"], name="tasks_task_status_idx"),
                    models.Index(fields=["task_type"], name="tasks_task_type_idx"),
                    models.Index(fields=["due_date"], name="tasks_task_due_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="TaskHistory",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action", models.CharField(choices=[("created", "Created"), ("updated", "Updated"), ("completed", "Completed"), ("first_verified", "First Verified"), ("second_verified", "Second Verified")], max_length=100)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("task", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="history", to="tasks.task")),
                ("user", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="task_events", to=USER)),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["task", "created_at"], name="tasks_hist_task_created_idx")],
            },
        ),
    ]
