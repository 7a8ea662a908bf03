import logging

from django.contrib.auth import get_user_model
from rest_framework import generics, mixins, permissions, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.users.models import Permission, Role
from .permissions import IsAdminOrReadOnly, IsSelfOrAdmin
from .serializers import (
    PermissionSerializer, RegisterSerializer, RoleSerializer,
    UserRoleSerializer, UserSerializer, UserUpdateSerializer,
)

logger = logging.getLogger(__name__)

User = get_user_model()


class RegisterAPIView(generics.CreateAPIView):
    permission_classes = [permissions.AllowAny]
    serializer_class = RegisterSerializer


class UserViewSet(mixins.ListModelMixin,
                  mixins.RetrieveModelMixin,
                  mixins.UpdateModelMixin,
                  viewsets.GenericViewSet):
    queryset = User.objects.select_related("role").prefetch_related("role__permissions").order_by("id")
    permission_classes = [permissions.IsAuthenticated, IsSelfOrAdmin]

    def get_serializer_class(self):
        if self.action in ["update", "partial_update"]:
            return UserUpdateSerializer
        return UserSerializer

    @action(detail=False, methods=["get"])
    def me(self, request):
        return Response(UserSerializer(request.user).data)

    @action(detail=True, methods=["post"], permission_classes=[permissions.IsAdminUser])
    def role(self, request, pk=None):
        user = self.get_object()
        ser = UserRoleSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        user.role = ser.validated_data["role"]
        user.save(update_fields=["role"])
        logger.info(f"User {user.id} assigned role {user.role_id} by {request.user.id}")
        return Response(UserSerializer(user).data)


class RoleViewSet(viewsets.ModelViewSet):
    queryset = Role.objects.prefetch_related("permissions").order_by("name")
    serializer_class = RoleSerializer
    permission_classes = [permissions.IsAuthenticated, IsAdminOrReadOnly]


class PermissionViewSet(viewsets.ModelViewSet):
    queryset = Permission.objects.all().order_by("name")
    serializer_class = PermissionSerializer
    permission_classes = [permissions.IsAuthenticated, IsAdminOrReadOnly]
