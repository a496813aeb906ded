"""
Audit REST API views.
"""
from rest_framework.views import APIView
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiParameter
from drf_spectacular.types import OpenApiTypes

from apps.audit.serializers import AuditEntrySerializer, AuditQuerySerializer
from apps.audit.services import AuditTrail
from apps.core.conf import accountability_setting
from apps.core.permissions import RequiresPermission, requires_permission
from apps.rbac.catalog import Perm


@extend_schema_view(
    get=extend_schema(
        tags=['Audit'],
        summary='List audit logs',
        description='''
List audit entries newest first. Supports filtering by resource, actor,
action prefix and time range.

**Required permission:** `audit.logs.read`

Pagination uses `take` (clamped to the configured maximum) and `skip`
(must not be negative).
        ''',
        parameters=[
            OpenApiParameter('take', OpenApiTypes.INT, description='Number of entries to return'),
            OpenApiParameter('skip', OpenApiTypes.INT, description='Number of entries to skip'),
            OpenApiParameter('resource_type', OpenApiTypes.STR, description='Filter by resource type'),
            OpenApiParameter('resource_id', OpenApiTypes.STR, description='Filter by resource ID'),
            OpenApiParameter('actor_id', OpenApiTypes.STR, description='Filter by actor ID'),
            OpenApiParameter('action', OpenApiTypes.STR, description='Filter by action prefix'),
            OpenApiParameter('since', OpenApiTypes.DATETIME, description='Filter from date'),
            OpenApiParameter('until', OpenApiTypes.DATETIME, description='Filter to date'),
        ],
        responses={
            200: AuditEntrySerializer(many=True),
            400: OpenApiTypes.OBJECT,
            403: OpenApiTypes.OBJECT,
        }
    )
)
@requires_permission(Perm.AUDIT_LOGS_READ)
class AuditLogListView(APIView):
    """
    GET /v1/audit-logs

    Required permission: audit.logs.read
    """

    permission_classes = [RequiresPermission]

    def get(self, request):
        """List audit logs."""
        params = AuditQuerySerializer(data=request.query_params)
        params.is_valid(raise_exception=True)
        data = params.validated_data

        filters = {
            'resource_type': data.get('resource_type'),
            'resource_id': data.get('resource_id'),
            'actor_id': data.get('actor_id'),
            'action_prefix': data.get('action'),
            'since': data.get('since'),
            'until': data.get('until'),
        }
        take = data.get('take')
        skip = data['skip']

        entries = AuditTrail.query(take=take, skip=skip, **filters)

        return Response({
            'count': AuditTrail.count(**filters),
            'take': min(
                take if take is not None else accountability_setting('AUDIT_DEFAULT_TAKE'),
                accountability_setting('AUDIT_MAX_TAKE'),
            ),
            'skip': skip,
            'results': AuditEntrySerializer(entries, many=True).data,
        })
