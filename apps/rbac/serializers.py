"""
RBAC serializers for REST API endpoints.

Provides serialization for:
- Permissions
- Roles and role assignments
- Direct permission grants
- Effective permissions

Catalog and role-graph validation (unknown permissions, duplicate roles)
happens in the services; these serializers only shape the input.
"""
from rest_framework import serializers

from apps.rbac.models import Permission, Role, UserRole


class PermissionSerializer(serializers.ModelSerializer):
    """Serializer for Permission model."""

    class Meta:
        model = Permission
        fields = ['id', 'name', 'description', 'category', 'created_at']
        read_only_fields = fields


class PermissionEnsureSerializer(serializers.Serializer):
    """Serializer for registering permissions in the catalog."""

    names = serializers.ListField(
        child=serializers.CharField(max_length=100),
        required=True,
        allow_empty=False,
        help_text="Permission names to create if absent"
    )


class RoleSerializer(serializers.ModelSerializer):
    """Serializer for Role model."""

    permissions = serializers.SerializerMethodField()

    class Meta:
        model = Role
        fields = [
            'id', 'name', 'description', 'is_system',
            'permissions', 'created_at', 'updated_at'
        ]
        read_only_fields = fields

    def get_permissions(self, obj):
        """Sorted permission names held by this role."""
        return sorted(rp.permission.name for rp in obj.role_permissions.all())


class RoleCreateSerializer(serializers.Serializer):
    """Serializer for creating roles."""

    name = serializers.CharField(max_length=100)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    permissions = serializers.ListField(
        child=serializers.CharField(max_length=100),
        required=False,
        default=list,
        help_text="Initial permission names; every name must exist in the catalog"
    )

    def validate_name(self, value):
        """Role names must not be blank."""
        if not value.strip():
            raise serializers.ValidationError("Role name cannot be empty.")
        return value.strip()


class RolePermissionSerializer(serializers.Serializer):
    """Serializer for adding or removing role permissions."""

    permissions = serializers.ListField(
        child=serializers.CharField(max_length=100),
        required=True,
        allow_empty=False,
        help_text="Permission names to add to or remove from the role"
    )


class UserRoleAssignSerializer(serializers.Serializer):
    """Serializer for assigning a role to a user."""

    role_id = serializers.UUIDField(required=True)


class UserRoleSerializer(serializers.ModelSerializer):
    """Serializer for UserRole (role assignments)."""

    user_id = serializers.CharField(read_only=True)
    role_id = serializers.UUIDField(read_only=True)
    role_name = serializers.CharField(source='role.name', read_only=True)
    assigned_by_id = serializers.CharField(read_only=True)

    class Meta:
        model = UserRole
        fields = ['id', 'user_id', 'role_id', 'role_name', 'assigned_by_id', 'created_at']
        read_only_fields = fields

