"""
Django admin configuration for RBAC app.

The admin is a read-only window onto the role graph: every mutation must go
through ``RoleGraph`` so that it lands in the audit trail.
"""
from django.contrib import admin

from apps.core.admin import ReadOnlyAdminMixin
from .models import (
    Permission,
    Role,
    RolePermission,
    UserPermission,
    UserRole,
)


class RolePermissionInline(ReadOnlyAdminMixin, admin.TabularInline):
    model = RolePermission
    fields = ['permission', 'created_at']
    readonly_fields = fields
    extra = 0


@admin.register(Permission)
class PermissionAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """Admin interface for Permission model."""
    list_display = ['name', 'category', 'description', 'created_at']
    list_filter = ['category']
    search_fields = ['name', 'description']


@admin.register(Role)
class RoleAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """Admin interface for Role model."""
    list_display = ['name', 'is_system', 'permission_count', 'created_at']
    list_filter = ['is_system']
    search_fields = ['name', 'description']
    inlines = [RolePermissionInline]

    def permission_count(self, obj):
        return obj.role_permissions.count()
    permission_count.short_description = 'Permissions'


@admin.register(UserRole)
class UserRoleAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """Admin interface for UserRole model."""
    list_display = ['user', 'role', 'assigned_by', 'created_at']
    list_filter = ['role']
    search_fields = ['user__username', 'user__email', 'role__name']


@admin.register(UserPermission)
class UserPermissionAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """Admin interface for UserPermission model."""
    list_display = ['user', 'permission', 'granted_by', 'reason', 'created_at']
    search_fields = ['user__username', 'user__email', 'permission__name']
