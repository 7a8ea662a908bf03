from django.urls import path, include
from django.views.decorators.csrf import csrf_exempt
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from .views import PermissionViewSet, RegisterAPIView, RoleViewSet, UserViewSet

router = DefaultRouter()
router.register(r"users", UserViewSet, basename="users")
router.register(r"roles", RoleViewSet, basename="roles")
router.register(r"permissions", PermissionViewSet, basename="permissions")

urlpatterns = [
    path("", include(router.urls)),
    path("auth/register/", csrf_exempt(RegisterAPIView.as_view()), name="register"),
    path("auth/token/", csrf_exempt(TokenObtainPairView.as_view()), name="token_obtain_pair"),
    path("auth/token/refresh/", csrf_exempt(TokenRefreshView.as_view()), name="token_refresh"),
]
