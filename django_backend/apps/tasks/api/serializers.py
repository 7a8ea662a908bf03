from django.contrib.auth import get_user_model
from django.db.models import Q
from rest_framework import serializers

from apps.tasks.models import Project, Task, TaskAction, TaskHistory, TaskType
from apps.tasks.workflow import TransitionKind
from apps.tasks.workflow.bulk import BY_FIELDS
from apps.tasks.workflow.hierarchy import SORTABLE_FIELDS

User = get_user_model()


class ProjectSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Project
        fields = ["id", "name", "code", "project_lead"]


class ProjectSerializer(serializers.ModelSerializer):
    members = serializers.PrimaryKeyRelatedField(
        many=True, queryset=User.objects.all(), required=False
    )

    class Meta:
        model = Project
        fields = ["id", "name", "code", "description", "project_lead", "members", "created_at"]
        read_only_fields = ["id", "created_at"]

    def validate_project_lead(self, value):
        request = self.context.get("request")
        if value is None or (request is not None and request.user.is_staff):
            return value
        if self.instance is not None and self.instance.project_lead_id == value.id:
            return value
        raise serializers.ValidationError("Only staff can assign a project lead.")


class MemberProjectField(serializers.PrimaryKeyRelatedField):
    """Projects the requesting user leads or belongs to"""

    def get_queryset(self):
        qs = Project.objects.all()
        request = self.context.get("request")
        if request is None or request.user.is_staff:
            return qs
        u = request.user
        return qs.filter(Q(members=u) | Q(project_lead=u)).distinct()


class AssigneeSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ["id", "username"]


class TaskSerializer(serializers.ModelSerializer):
    project = ProjectSummarySerializer(read_only=True)
    project_id = MemberProjectField(source="project", required=False, allow_null=True)
    assignees = AssigneeSerializer(many=True, read_only=True)
    assignee_ids = serializers.PrimaryKeyRelatedField(
        source="assignees", many=True, queryset=User.objects.all(), required=False
    )
    sub_task_ids = serializers.SerializerMethodField()

    class Meta:
        model = Task
        fields = [
            "id",
            "name",
            "tcode",
            "description",
            "task_type",
            "parent_task",
            "sub_task_ids",
            "status",
            "priority",
            "group",
            "due_date",
            "budgeted_hours",
            "project",
            "project_id",
            "assignees",
            "assignee_ids",
            "completed_by",
            "completed_at",
            "first_verified_by",
            "first_verified_at",
            "second_verified_by",
            "second_verified_at",
            "created_at",
            "updated_at",
        ]
        # workflow fields only move through the transition endpoints
        read_only_fields = [
            "id",
            "status",
            "completed_by",
            "completed_at",
            "first_verified_by",
            "first_verified_at",
            "second_verified_by",
            "second_verified_at",
            "created_at",
            "updated_at",
        ]

    def get_sub_task_ids(self, obj):
        if obj.task_type != TaskType.STORY:
            return None
        return sorted(t.id for t in obj.subtasks.all())

    def validate(self, attrs):
        request = self.context.get("request")
        if (
            self.instance is not None
            and "project" in attrs
            and attrs["project"] != self.instance.project
            and not (request is not None and request.user.is_staff)
        ):
            raise serializers.ValidationError({"project_id": "Only staff can move a task to another project."})

        task_type = attrs.get("task_type", getattr(self.instance, "task_type", TaskType.TASK))
        parent = attrs.get("parent_task", getattr(self.instance, "parent_task", None))
        if parent is not None:
            if task_type != TaskType.TASK:
                raise serializers.ValidationError({"parent_task": "Only subtasks can have a parent task."})
            if parent.task_type != TaskType.STORY:
                raise serializers.ValidationError({"parent_task": "A subtask's parent must be a top-level task."})
        return attrs

    def create(self, validated_data):
        request = self.context["request"]
        assignees = validated_data.pop("assignees", [])
        task = Task.objects.create(**validated_data)
        if assignees:
            task.assignees.set(assignees)
        TaskHistory.objects.create(task=task, user=request.user, action=TaskAction.CREATED)
        return task

    def update(self, instance, validated_data):
        request = self.context["request"]
        assignees = validated_data.pop("assignees", None)
        changes = {k: str(v) for k, v in validated_data.items() if getattr(instance, k) != v}

        for k, v in validated_data.items():
            setattr(instance, k, v)
        instance.save()
        if assignees is not None:
            instance.assignees.set(assignees)
            changes["assignees"] = [u.id for u in assignees]

        TaskHistory.objects.create(
            task=instance, user=request.user, action=TaskAction.UPDATED, metadata=changes
        )
        self.changes = changes
        return instance


class TaskHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = TaskHistory
        fields = ["id", "action", "metadata", "created_at", "user"]


class BulkTransitionSerializer(serializers.Serializer):
    task_ids = serializers.ListField(
        child=serializers.IntegerField(min_value=1), allow_empty=False
    )
    require_first_verified = serializers.BooleanField(required=False, default=False)

    def __init__(self, *args, kind=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.kind = kind
        self.fields[BY_FIELDS[kind]] = serializers.IntegerField(required=False)

    def validate(self, attrs):
        by_field = BY_FIELDS[self.kind]
        user = self.context["request"].user
        if attrs.get(by_field) not in (None, user.id):
            raise serializers.ValidationError(
                {by_field: "Transitions can only be recorded for the authenticated user."}
            )
        if attrs.get("require_first_verified") and self.kind is not TransitionKind.SECOND_VERIFY:
            raise serializers.ValidationError(
                {"require_first_verified": "Only applies to second verification."}
            )
        return attrs


class SelectionSerializer(serializers.Serializer):
    current = serializers.ListField(child=serializers.CharField(), required=False, default=list)
    proposed = serializers.ListField(child=serializers.CharField(), allow_empty=True)


class HierarchyQuerySerializer(serializers.Serializer):
    view = serializers.CharField(required=False, default="project_tasks")
    q = serializers.CharField(required=False, allow_blank=True, default="")
    column = serializers.CharField(required=False, allow_blank=True, default="")
    column_q = serializers.CharField(required=False, allow_blank=True, default="")
    sort = serializers.ChoiceField(choices=SORTABLE_FIELDS, required=False, allow_blank=True, default="")
    order = serializers.ChoiceField(choices=["asc", "desc"], required=False, default="asc")
