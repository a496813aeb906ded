"""
RBAC REST API views.

Implements endpoints for:
- Permission catalog (list, ensure)
- Role management (list, create, detail, permission assignments)
- Principal role assignments and effective permissions
"""
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiExample
from drf_spectacular.types import OpenApiTypes

from apps.audit.services import AuditContext
from apps.core.pagination import StandardResultsSetPagination
from apps.core.permissions import RequiresPermission, requires_permission
from apps.rbac.catalog import PermissionCatalog, Perm
from apps.rbac.services import RoleGraph, resolve_user
from apps.rbac.serializers import (
    PermissionSerializer, PermissionEnsureSerializer,
    RoleSerializer, RoleCreateSerializer, RolePermissionSerializer,
    UserRoleAssignSerializer, UserRoleSerializer,
)


@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Permissions'],
        summary='List permissions',
        description='''
List every permission in the catalog, sorted by name.

**Required permission:** `admin.permissions.manage`
        ''',
        responses={
            200: PermissionSerializer(many=True),
            403: OpenApiTypes.OBJECT,
        }
    ),
    post=extend_schema(
        tags=['RBAC - Permissions'],
        summary='Register permissions',
        description='''
Create each named permission if it does not exist yet. Idempotent: names
already in the catalog are returned unchanged.

**Required permission:** `admin.permissions.manage`
        ''',
        request=PermissionEnsureSerializer,
        responses={
            200: PermissionSerializer(many=True),
            400: OpenApiTypes.OBJECT,
            403: OpenApiTypes.OBJECT,
        }
    ),
)
@requires_permission(Perm.ADMIN_PERMISSIONS_MANAGE)
class PermissionListView(APIView):
    """
    GET /v1/permissions
    POST /v1/permissions

    Required permission: admin.permissions.manage
    """

    permission_classes = [RequiresPermission]

    def get(self, request):
        """List the catalog."""
        permissions = PermissionCatalog.list()
        serializer = PermissionSerializer(permissions, many=True)
        return Response({
            'count': len(permissions),
            'permissions': serializer.data
        })

    def post(self, request):
        """Ensure permissions exist."""
        serializer = PermissionEnsureSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        permissions = PermissionCatalog.ensure(serializer.validated_data['names'])

        return Response({
            'count': len(permissions),
            'permissions': PermissionSerializer(permissions, many=True).data
        })


@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Roles'],
        summary='List roles',
        description='''
List all roles with their permissions, sorted by name.

**Required permission:** `admin.roles.manage`
        ''',
        responses={
            200: RoleSerializer(many=True),
            403: OpenApiTypes.OBJECT,
        }
    ),
    post=extend_schema(
        tags=['RBAC - Roles'],
        summary='Create role',
        description='''
Create a role with an initial permission set. Role names are stored upper-cased
and must be unique (case-insensitive). Every permission must already exist in
the catalog; unknown names are rejected, never auto-created.

**Required permission:** `admin.roles.manage`
        ''',
        request=RoleCreateSerializer,
        responses={
            201: RoleSerializer,
            400: OpenApiTypes.OBJECT,
            403: OpenApiTypes.OBJECT,
        },
        examples=[
            OpenApiExample(
                'Create nurse role',
                value={
                    'name': 'NURSE',
                    'description': 'Vitals, MAR, nursing assessments, order viewing',
                    'permissions': ['beds.read', 'nursing.vitals.record'],
                },
                request_only=True
            )
        ]
    ),
)
@requires_permission(Perm.ADMIN_ROLES_MANAGE)
class RoleListView(APIView):
    """
    GET /v1/roles
    POST /v1/roles

    Required permission: admin.roles.manage
    """

    permission_classes = [RequiresPermission]
    pagination_class = StandardResultsSetPagination

    def get(self, request):
        """List roles."""
        roles = RoleGraph.list_roles()

        paginator = self.pagination_class()
        page = paginator.paginate_queryset(roles, request, view=self)

        serializer = RoleSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    def post(self, request):
        """Create a new role."""
        serializer = RoleCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        role = RoleGraph.create_role(
            serializer.validated_data['name'],
            serializer.validated_data['permissions'],
            description=serializer.validated_data['description'],
            created_by=request.user,
            context=AuditContext.from_request(request),
        )

        return Response(
            RoleSerializer(RoleGraph.get_role(role.id)).data,
            status=status.HTTP_201_CREATED
        )


@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Roles'],
        summary='Get role details',
        description='''
Get a role including all of its permissions.

**Required permission:** `admin.roles.manage`
        ''',
        responses={
            200: RoleSerializer,
            403: OpenApiTypes.OBJECT,
            404: OpenApiTypes.OBJECT,
        }
    )
)
@requires_permission(Perm.ADMIN_ROLES_MANAGE)
class RoleDetailView(APIView):
    """
    GET /v1/roles/{id}

    Required permission: admin.roles.manage
    """

    permission_classes = [RequiresPermission]

    def get(self, request, role_id):
        """Get role details."""
        role = RoleGraph.get_role(role_id)
        return Response(RoleSerializer(role).data)


@extend_schema_view(
    post=extend_schema(
        tags=['RBAC - Roles'],
        summary='Add permissions to role',
        description='''
Add permissions to a role. Permissions the role already holds are left alone.

**Required permission:** `admin.roles.manage`
        ''',
        request=RolePermissionSerializer,
        responses={
            200: RoleSerializer,
            400: OpenApiTypes.OBJECT,
            403: OpenApiTypes.OBJECT,
            404: OpenApiTypes.OBJECT,
        }
    ),
    delete=extend_schema(
        tags=['RBAC - Roles'],
        summary='Remove permissions from role',
        description='''
Remove permissions from a role. Principals holding the role lose the
permissions on their very next authorization check.

**Required permission:** `admin.roles.manage`
        ''',
        request=RolePermissionSerializer,
        responses={
            200: RoleSerializer,
            400: OpenApiTypes.OBJECT,
            403: OpenApiTypes.OBJECT,
            404: OpenApiTypes.OBJECT,
        }
    ),
)
@requires_permission(Perm.ADMIN_ROLES_MANAGE)
class RolePermissionsView(APIView):
    """
    POST /v1/roles/{id}/permissions
    DELETE /v1/roles/{id}/permissions

    Required permission: admin.roles.manage
    """

    permission_classes = [RequiresPermission]

    def post(self, request, role_id):
        """Add permissions to the role."""
        serializer = RolePermissionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        role = RoleGraph.assign_permissions(
            role_id,
            serializer.validated_data['permissions'],
            assigned_by=request.user,
            context=AuditContext.from_request(request),
        )
        return Response(RoleSerializer(RoleGraph.get_role(role.id)).data)

    def delete(self, request, role_id):
        """Remove permissions from the role."""
        serializer = RolePermissionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        role = RoleGraph.revoke_permissions(
            role_id,
            serializer.validated_data['permissions'],
            revoked_by=request.user,
            context=AuditContext.from_request(request),
        )
        return Response(RoleSerializer(RoleGraph.get_role(role.id)).data)


@extend_schema_view(
    post=extend_schema(
        tags=['RBAC - Principals'],
        summary='Assign role to user',
        description='''
Give a user a role. Assigning a role the user already holds is a no-op.

**Required permission:** `admin.roles.manage`
        ''',
        request=UserRoleAssignSerializer,
        responses={
            201: UserRoleSerializer,
            400: OpenApiTypes.OBJECT,
            403: OpenApiTypes.OBJECT,
            404: OpenApiTypes.OBJECT,
        }
    )
)
@requires_permission(Perm.ADMIN_ROLES_MANAGE)
class UserRoleAssignView(APIView):
    """
    POST /v1/users/{id}/roles

    Required permission: admin.roles.manage
    """

    permission_classes = [RequiresPermission]

    def post(self, request, user_id):
        """Assign a role to the user."""
        serializer = UserRoleAssignSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user_role = RoleGraph.assign_role(
            resolve_user(user_id),
            serializer.validated_data['role_id'],
            assigned_by=request.user,
            context=AuditContext.from_request(request),
        )
        return Response(UserRoleSerializer(user_role).data, status=status.HTTP_201_CREATED)


@extend_schema_view(
    delete=extend_schema(
        tags=['RBAC - Principals'],
        summary='Remove role from user',
        description='''
Take a role away from a user. Takes effect on the user's next authorization
check.

**Required permission:** `admin.roles.manage`
        ''',
        responses={
            204: None,
            403: OpenApiTypes.OBJECT,
            404: OpenApiTypes.OBJECT,
        }
    )
)
@requires_permission(Perm.ADMIN_ROLES_MANAGE)
class UserRoleRemoveView(APIView):
    """
    DELETE /v1/users/{id}/roles/{role_id}

    Required permission: admin.roles.manage
    """

    permission_classes = [RequiresPermission]

    def delete(self, request, user_id, role_id):
        """Remove the role from the user."""
        removed = RoleGraph.remove_role(
            resolve_user(user_id),
            role_id,
            removed_by=request.user,
            context=AuditContext.from_request(request),
        )
        if not removed:
            return Response(
                {'error': 'User does not hold this role', 'code': 'NOT_ASSIGNED'},
                status=status.HTTP_404_NOT_FOUND
            )
        return Response(status=status.HTTP_204_NO_CONTENT)


@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Principals'],
        summary='Get effective permissions',
        description='''
The user's effective permission set: the union of every assigned role's
permissions plus direct grants. Computed fresh on every request.

**Required permission:** `admin.roles.manage`
        ''',
        responses={
            200: OpenApiTypes.OBJECT,
            403: OpenApiTypes.OBJECT,
        },
        examples=[
            OpenApiExample(
                'Nurse',
                value={
                    'user_id': '42',
                    'roles': ['NURSE'],
                    'permissions': ['beds.read', 'nursing.vitals.record'],
                },
                response_only=True
            )
        ]
    )
)
@requires_permission(Perm.ADMIN_ROLES_MANAGE)
class UserEffectivePermissionsView(APIView):
    """
    GET /v1/users/{id}/permissions

    Required permission: admin.roles.manage
    """

    permission_classes = [RequiresPermission]

    def get(self, request, user_id):
        """Resolve the user's effective permissions."""
        user = resolve_user(user_id)
        return Response({
            'user_id': str(user.pk),
            'roles': [role.name for role in RoleGraph.roles_for(user)],
            'permissions': sorted(RoleGraph.effective_permissions(user)),
        })
