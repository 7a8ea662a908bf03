import logging

from django.conf import settings
from django.db import transaction
from django.db.models import Q
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.response import Response

from apps.tasks.celery_tasks import send_task_notification
from apps.tasks.models import Project
from apps.tasks.producer import publish_task_created, publish_task_updated
from apps.tasks.services import bulk_transition, start_task, task_queryset
from apps.tasks.workflow import (
    ActingUser,
    TaskRecord,
    TransitionKind,
    ViewState,
    apply_search,
    build_hierarchy,
    resolve_selection,
)
from apps.tasks.workflow.guards import display_states, is_allowed
from apps.tasks.workflow.search import search_fields_for

from .permissions import IsProjectLeadOrAdmin, IsProjectMemberOrAdmin
from .serializers import (
    BulkTransitionSerializer,
    HierarchyQuerySerializer,
    ProjectSerializer,
    SelectionSerializer,
    TaskHistorySerializer,
    TaskSerializer,
)

logger = logging.getLogger(__name__)


def scoped_tasks(request):
    qs = task_queryset()
    if request.user.is_staff:
        return qs
    u = request.user
    return qs.filter(
        Q(assignees=u) | Q(project__members=u) | Q(project__project_lead=u)
    ).distinct()


def _record_payload(record: TaskRecord):
    return {
        "id": record.id,
        "name": record.name,
        "tcode": record.tcode,
        "task_type": record.task_type,
        "task_type_label": record.task_type_label,
        "status": record.status,
        "parent_task": record.parent_task_id,
        "project": record.project.id if record.project else None,
        "first_verified_by": record.first_verified_by,
        "first_verified_at": record.first_verified_at,
        "second_verified_by": record.second_verified_by,
        "second_verified_at": record.second_verified_at,
    }


def _node_payload(node, result, acting):
    match = result.matches.get(node.key)
    return {
        "key": node.key,
        "kind": node.kind,
        "task": _record_payload(node.task),
        "match": {
            "self_match": match.self_match if match else False,
            "any_child_match": match.any_child_match if match else False,
        },
        "visible": node.key in result.visible,
        "expanded": node.key in result.expanded,
        "transitions": {
            kind.value: {
                "allowed": is_allowed(node.task, acting, kind),
                "state": display.state.value,
                "label": display.label,
            }
            for kind, display in display_states(node.task, acting).items()
        },
        "children": [_node_payload(c, result, acting) for c in node.children],
    }


class ProjectViewSet(viewsets.ModelViewSet):
    serializer_class = ProjectSerializer
    permission_classes = [permissions.IsAuthenticated, IsProjectLeadOrAdmin]

    def get_queryset(self):
        qs = Project.objects.select_related("project_lead").prefetch_related("members")
        u = self.request.user
        if u.is_staff:
            return qs
        return qs.filter(Q(members=u) | Q(project_lead=u)).distinct()


class TaskViewSet(viewsets.ModelViewSet):
    serializer_class = TaskSerializer
    permission_classes = [permissions.IsAuthenticated, IsProjectMemberOrAdmin]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    filterset_fields = ["project", "status", "task_type", "assignees", "parent_task"]
    search_fields = ["name", "tcode"]
    ordering_fields = ["name", "due_date", "priority", "created_at", "updated_at"]
    ordering = ["name"]

    def get_queryset(self):
        return scoped_tasks(self.request).prefetch_related("subtasks")

    def perform_create(self, serializer):
        task = serializer.save()
        user_id = self.request.user.id
        transaction.on_commit(lambda: publish_task_created(
            user_id, task.id, task.name, task.task_type, task.project_id, task.parent_task_id
        ))
        transaction.on_commit(lambda: send_task_notification.delay(task.id, "created"))

    def perform_update(self, serializer):
        task = serializer.save()
        changes = getattr(serializer, "changes", {})
        if changes:
            user_id = self.request.user.id
            transaction.on_commit(lambda: publish_task_updated(user_id, task.id, task.name, changes))
            transaction.on_commit(lambda: send_task_notification.delay(task.id, "updated"))

    def _transition(self, request, kind):
        ser = BulkTransitionSerializer(data=request.data, kind=kind, context={"request": request})
        ser.is_valid(raise_exception=True)
        task_ids = ser.validated_data["task_ids"]
        visible = scoped_tasks(request).filter(id__in=task_ids).values_list("id", flat=True)
        result = bulk_transition(kind, task_ids, request.user, visible_ids=visible)
        return Response(result.to_wire(), status=status.HTTP_200_OK)

    @action(detail=False, methods=["post"], url_path="mark-complete")
    def mark_complete(self, request):
        return self._transition(request, TransitionKind.COMPLETE)

    @action(detail=False, methods=["post"], url_path="first-verify")
    def first_verify(self, request):
        return self._transition(request, TransitionKind.FIRST_VERIFY)

    @action(detail=False, methods=["post"], url_path="second-verify")
    def second_verify(self, request):
        return self._transition(request, TransitionKind.SECOND_VERIFY)

    @action(detail=True, methods=["post"])
    def start(self, request, pk=None):
        task = self.get_object()
        try:
            start_task(task, request.user)
        except ValueError as e:
            return Response({"message": str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(TaskSerializer(task, context={"request": request}).data)

    @action(detail=False, methods=["get"])
    def hierarchy(self, request):
        params = HierarchyQuerySerializer(data=request.query_params)
        params.is_valid(raise_exception=True)
        opts = params.validated_data

        # column query wins when both channels are supplied
        state = ViewState(
            sort_key=opts["sort"] or getattr(settings, "TASK_DEFAULT_SORT", "name"),
            descending=opts["order"] == "desc",
        )
        if opts["q"]:
            state = state.with_global_query(opts["q"])
        if opts["column"] and opts["column_q"]:
            state = state.with_column_query(opts["column"], opts["column_q"])

        records = [TaskRecord.from_model(t) for t in self.filter_queryset(self.get_queryset())]
        tree = build_hierarchy(records, sort_key=state.sort_key, descending=state.descending)
        fields = state.search.active_fields(search_fields_for(opts["view"]))
        result = apply_search(tree, state.search.active_query, fields)
        acting = ActingUser.from_user(request.user)

        return Response({
            "view": opts["view"],
            "query": {
                "channel": state.search.active_channel,
                "text": state.search.active_query,
                "fields": list(fields),
            },
            "expanded": sorted(result.expanded),
            "roots": [_node_payload(n, result, acting) for n in tree.roots],
        })

    @action(detail=False, methods=["post"], url_path="resolve-selection")
    def selection(self, request):
        ser = SelectionSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        resolution = resolve_selection(ser.validated_data["current"], ser.validated_data["proposed"])
        return Response({
            "resolved": sorted(resolution.resolved),
            "had_conflict": resolution.had_conflict,
            "dropped": sorted(resolution.dropped),
            "warning": resolution.warning,
        })

    @action(detail=True, methods=["get"])
    def history(self, request, pk=None):
        task = self.get_object()
        qs = task.history.select_related("user").order_by("-created_at")
        return Response(TaskHistorySerializer(qs, many=True).data)
