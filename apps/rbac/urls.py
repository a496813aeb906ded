"""
RBAC API URLs.

Provides endpoints for:
- Permission catalog
- Role management (list, create, detail, permission assignments)
- Principal role assignments and effective permissions
"""
from django.urls import path
from apps.rbac.views import (
    PermissionListView,
    RoleListView,
    RoleDetailView,
    RolePermissionsView,
    UserRoleAssignView,
    UserRoleRemoveView,
    UserEffectivePermissionsView,
)

app_name = 'rbac'

urlpatterns = [
    # Permission endpoints
    path('permissions', PermissionListView.as_view(), name='permission-list'),

    # Role endpoints
    path('roles', RoleListView.as_view(), name='role-list'),
    path('roles/<uuid:role_id>', RoleDetailView.as_view(), name='role-detail'),
    path('roles/<uuid:role_id>/permissions', RolePermissionsView.as_view(), name='role-permissions'),

    # Principal endpoints
    path('users/<str:user_id>/roles', UserRoleAssignView.as_view(), name='user-role-assign'),
    path('users/<str:user_id>/roles/<uuid:role_id>', UserRoleRemoveView.as_view(), name='user-role-remove'),
    path('users/<str:user_id>/permissions', UserEffectivePermissionsView.as_view(), name='user-permissions'),
]
