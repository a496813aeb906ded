"""
Break-glass serializers for REST API endpoints.

The raw token is only ever serialized once, in the issuance response.
"""
from rest_framework import serializers

from apps.breakglass.models import BreakGlassGrant


class BreakGlassGrantSerializer(serializers.ModelSerializer):
    """Serializer for BreakGlassGrant model (never exposes the token digest)."""

    permission = serializers.CharField(source='permission.name', read_only=True)
    principal_id = serializers.CharField(read_only=True)
    issued_by_id = serializers.CharField(read_only=True)
    revoked_by_id = serializers.CharField(read_only=True)
    status = serializers.CharField(read_only=True)

    class Meta:
        model = BreakGlassGrant
        fields = [
            'id', 'principal_id', 'permission', 'resource_scope',
            'issued_at', 'expires_at', 'used', 'used_at',
            'justification', 'issued_by_id', 'revoked', 'revoked_by_id',
            'status',
        ]
        read_only_fields = fields


class BreakGlassIssueSerializer(serializers.Serializer):
    """Serializer for issuing a break-glass grant."""

    principal_id = serializers.CharField(
        required=False,
        help_text="User receiving the grant; defaults to the caller"
    )
    permission = serializers.CharField(max_length=100)
    justification = serializers.CharField(
        allow_blank=True,
        trim_whitespace=True,
        help_text="Clinical reason for the override"
    )
    resource_scope = serializers.CharField(
        required=False,
        allow_null=True,
        allow_blank=True,
        max_length=255,
        help_text="Resource the grant is limited to; omit for any resource"
    )
    ttl_minutes = serializers.IntegerField(
        required=False,
        help_text="Lifetime in minutes (default 15)"
    )


class GrantListQuerySerializer(serializers.Serializer):
    """Query parameters accepted by the grant listing."""

    only_active = serializers.BooleanField(required=False, default=False)
    principal = serializers.CharField(required=False)
