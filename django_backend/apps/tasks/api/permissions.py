from rest_framework.permissions import BasePermission, SAFE_METHODS


class IsProjectMemberOrAdmin(BasePermission):
    def has_object_permission(self, request, view, obj):
        u = request.user
        if not u or not u.is_authenticated:
            return False
        if u.is_staff:
            return True
        project = obj.project
        if project is not None and project.project_lead_id == u.id:
            return True
        if request.method in SAFE_METHODS:
            return obj.assignees.filter(id=u.id).exists() or (
                project is not None and project.members.filter(id=u.id).exists()
            )
        return obj.assignees.filter(id=u.id).exists()


class IsProjectLeadOrAdmin(BasePermission):
    def has_object_permission(self, request, view, obj):
        u = request.user
        if request.method in SAFE_METHODS:
            return True
        return u.is_staff or obj.project_lead_id == u.id
