import random
from datetime import timedelta

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from apps.tasks.models import Project, Task, TaskPriority, TaskStatus, TaskType
from apps.users.models import Capability, Permission, Role

User = get_user_model()

ROLES = {
    "Manager": [Capability.MARK_COMPLETE_TASK, Capability.FIRST_VERIFY_TASK, Capability.SECOND_VERIFY_TASK],
    "Reviewer": [Capability.FIRST_VERIFY_TASK],
    "Partner": [Capability.SECOND_VERIFY_TASK],
    "Staff": [],
}

STORY_NAMES = [
    'Audit Q1', 'VAT Return', 'Payroll Review', 'Annual Accounts', 'Bank Reconciliation',
    'Inventory Count', 'Tax Planning', 'Fixed Asset Register', 'Expense Review', 'Budget Forecast',
]

SUBTASK_NAMES = [
    'Collect receipts', 'Reconcile ledger', 'Prepare schedules', 'Review invoices',
    'Draft report', 'Client sign-off', 'Check payroll taxes', 'Verify balances',
]


class Command(BaseCommand):
    help = 'Seed the database with sample projects, tasks and roles'

    def add_arguments(self, parser):
        parser.add_argument(
            '--users',
            type=int,
            default=10,
            help='Number of users to create'
        )
        parser.add_argument(
            '--projects',
            type=int,
            default=3,
            help='Number of projects to create'
        )
        parser.add_argument(
            '--seed',
            type=int,
            default=None,
            help='Random seed for reproducible data'
        )

    @transaction.atomic
    def handle(self, *args, **options):
        if options['seed'] is not None:
            random.seed(options['seed'])

        self.stdout.write('🌱 Starting database seeding...')

        roles = self.create_roles()
        users = self.create_users(options['users'], roles)
        projects = self.create_projects(users, options['projects'])
        tasks = self.create_tasks(projects, users)

        self.stdout.write(
            self.style.SUCCESS(
                f'\n✅ Seed data created successfully!\n'
                f'Roles: {len(roles)}\n'
                f'Users: {len(users)}\n'
                f'Projects: {len(projects)}\n'
                f'Tasks: {len(tasks)}\n\n'
                f'Admin user: admin / admin123\n'
                f'Regular users: [username] / password123\n'
            )
        )

    def create_roles(self):
        self.stdout.write('Creating roles and permissions...')
        permissions = {}
        for capability in Capability:
            perm, _ = Permission.objects.get_or_create(
                name=capability.value, defaults={'description': capability.label}
            )
            permissions[capability] = perm

        roles = {}
        for name, capabilities in ROLES.items():
            role, _ = Role.objects.get_or_create(name=name)
            role.permissions.set([permissions[c] for c in capabilities])
            roles[name] = role
        return roles

    def create_users(self, num_users, roles):
        self.stdout.write('Creating users...')

        admin, created = User.objects.get_or_create(
            username='admin',
            defaults={
                'email': 'admin@example.com',
                'is_staff': True,
                'is_superuser': True,
                'role': roles['Manager'],
            }
        )
        if created:
            admin.set_password('admin123')
            admin.save()

        users = [admin]
        role_names = list(roles)
        for i in range(1, num_users):
            user, created = User.objects.get_or_create(
                username=f'user{i}',
                defaults={
                    'email': f'user{i}@example.com',
                    'role': roles[role_names[i % len(role_names)]],
                }
            )
            if created:
                user.set_password('password123')
                user.save()
            users.append(user)
        return users

    def create_projects(self, users, num_projects):
        self.stdout.write('Creating projects...')
        projects = []
        for i in range(num_projects):
            project = Project.objects.create(
                name=f'Client Engagement {i + 1}',
                code=f'P{i + 1:03d}',
                project_lead=random.choice(users),
            )
            project.members.set(random.sample(users, k=min(len(users), 4)))
            projects.append(project)
        return projects

    def create_tasks(self, projects, users):
        self.stdout.write('Creating tasks...')
        tasks = []
        now = timezone.now()
        counter = 1

        for project in projects:
            members = list(project.members.all()) or users
            for story_name in random.sample(STORY_NAMES, k=4):
                story = Task.objects.create(
                    name=story_name,
                    tcode=f'T-{counter:04d}',
                    task_type=TaskType.STORY,
                    status=random.choice(TaskStatus.values),
                    priority=random.choice(TaskPriority.values),
                    project=project,
                    due_date=now + timedelta(days=random.randint(-5, 30)),
                )
                counter += 1
                tasks.append(story)

                for sub_name in random.sample(SUBTASK_NAMES, k=random.randint(0, 3)):
                    sub = Task.objects.create(
                        name=sub_name,
                        tcode=f'T-{counter:04d}',
                        task_type=TaskType.TASK,
                        parent_task=story,
                        project=project,
                        priority=random.choice(TaskPriority.values),
                    )
                    counter += 1
                    sub.assignees.set(random.sample(members, k=1))
                    self.advance(sub, users, now)
                    tasks.append(sub)

            standalone = Task.objects.create(
                name='Client meeting notes',
                tcode=f'T-{counter:04d}',
                task_type=TaskType.TASK,
                project=project,
            )
            counter += 1
            self.advance(standalone, users, now)
            tasks.append(standalone)

        return tasks

    def advance(self, task, users, now):
        """Walk a task forward through the workflow to a random point"""
        step = random.randint(0, 4)
        if step >= 1:
            task.status = TaskStatus.IN_PROGRESS
        if step >= 2:
            task.status = TaskStatus.DONE
            task.completed_by = random.choice(users)
            task.completed_at = now
        if step >= 3:
            task.first_verified_by = random.choice(users)
            task.first_verified_at = now
        if step >= 4:
            task.second_verified_by = random.choice(users)
            task.second_verified_at = now
        task.save()
