"""
Break-glass REST API views.

Implements endpoints for:
- Listing grants (optionally only active ones, or one principal's)
- Issuing a grant (returns the bearer token once)
- Administratively expiring a grant
"""
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiParameter, OpenApiExample
from drf_spectacular.types import OpenApiTypes

from apps.audit.services import AuditContext
from apps.breakglass.serializers import (
    BreakGlassGrantSerializer, BreakGlassIssueSerializer, GrantListQuerySerializer,
)
from apps.breakglass.services import BreakGlassService
from apps.core.pagination import StandardResultsSetPagination
from apps.core.permissions import RequiresPermission, requires_permission
from apps.rbac.catalog import Perm
from apps.rbac.services import resolve_user


@extend_schema_view(
    get=extend_schema(
        tags=['Break-Glass'],
        summary='List break-glass grants',
        description='''
List break-glass grants newest first.

**Required permission:** `audit.logs.read`

Query parameters:
- `only_active`: only unused, unexpired grants
- `principal`: only grants issued to this user ID
        ''',
        parameters=[
            OpenApiParameter('only_active', OpenApiTypes.BOOL, description='Only active grants'),
            OpenApiParameter('principal', OpenApiTypes.STR, description='Filter by principal ID'),
        ],
        responses={
            200: BreakGlassGrantSerializer(many=True),
            403: OpenApiTypes.OBJECT,
        }
    ),
    post=extend_schema(
        tags=['Break-Glass'],
        summary='Issue break-glass grant',
        description='''
Issue a single-use, time-bounded emergency grant. The bearer token is in the
response **once** and cannot be retrieved again; present it in the
`X-Breakglass-Token` header of the protected request.

**Required permission:** `emergency.access.breakglass`

The justification is mandatory (at least 5 characters by default). The
lifetime defaults to 15 minutes.
        ''',
        request=BreakGlassIssueSerializer,
        responses={
            201: OpenApiTypes.OBJECT,
            400: OpenApiTypes.OBJECT,
            403: OpenApiTypes.OBJECT,
        },
        examples=[
            OpenApiExample(
                'Code blue',
                value={
                    'principal_id': '42',
                    'permission': 'billing.update',
                    'justification': 'code blue override',
                    'ttl_minutes': 15,
                },
                request_only=True
            )
        ]
    ),
)
class GrantListView(APIView):
    """
    GET /v1/breakglass/grants (audit.logs.read)
    POST /v1/breakglass/grants (emergency.access.breakglass)
    """

    permission_classes = [RequiresPermission]
    pagination_class = StandardResultsSetPagination

    @requires_permission(Perm.AUDIT_LOGS_READ)
    def get(self, request):
        """List grants."""
        params = GrantListQuerySerializer(data=request.query_params)
        params.is_valid(raise_exception=True)

        principal = params.validated_data.get('principal')
        grants = BreakGlassService.list_grants(
            principal=resolve_user(principal) if principal else None,
            only_active=params.validated_data['only_active'],
        )

        paginator = self.pagination_class()
        page = paginator.paginate_queryset(grants, request, view=self)

        serializer = BreakGlassGrantSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    @requires_permission(Perm.EMERGENCY_ACCESS_BREAKGLASS)
    def post(self, request):
        """Issue a grant."""
        serializer = BreakGlassIssueSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        principal_id = data.get('principal_id')
        principal = resolve_user(principal_id) if principal_id else request.user

        issued = BreakGlassService.issue(
            principal,
            data['permission'],
            data['justification'],
            resource_scope=data.get('resource_scope'),
            ttl=data.get('ttl_minutes'),
            issued_by=request.user,
            context=AuditContext.from_request(request),
        )

        body = dict(BreakGlassGrantSerializer(issued.grant).data)
        body['token'] = issued.token
        return Response(body, status=status.HTTP_201_CREATED)


@extend_schema_view(
    delete=extend_schema(
        tags=['Break-Glass'],
        summary='Expire break-glass grant',
        description='''
Invalidate a grant before it is used. A consumed or already-expired-by-an-admin
grant cannot be expired again.

**Required permission:** `admin.roles.manage`
        ''',
        responses={
            200: BreakGlassGrantSerializer,
            403: OpenApiTypes.OBJECT,
        }
    )
)
@requires_permission(Perm.ADMIN_ROLES_MANAGE)
class GrantDetailView(APIView):
    """
    DELETE /v1/breakglass/grants/{id}

    Required permission: admin.roles.manage
    """

    permission_classes = [RequiresPermission]

    def delete(self, request, grant_id):
        """Expire the grant."""
        grant = BreakGlassService.expire(
            grant_id,
            revoked_by=request.user,
            context=AuditContext.from_request(request),
        )
        return Response(BreakGlassGrantSerializer(grant).data)
