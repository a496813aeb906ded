"""
Audit serializers for REST API endpoints.
"""
from rest_framework import serializers

from apps.audit.models import AuditEntry


class AuditEntrySerializer(serializers.ModelSerializer):
    """Serializer for AuditEntry model."""

    class Meta:
        model = AuditEntry
        fields = [
            'id', 'timestamp', 'actor_id', 'action',
            'resource_type', 'resource_id', 'before', 'after', 'metadata',
            'ip_address', 'user_agent', 'request_id',
        ]
        read_only_fields = fields


class AuditQuerySerializer(serializers.Serializer):
    """Query parameters accepted by the audit log listing."""

    take = serializers.IntegerField(required=False)
    skip = serializers.IntegerField(required=False, default=0)
    resource_type = serializers.CharField(required=False, max_length=50)
    resource_id = serializers.CharField(required=False, max_length=64)
    actor_id = serializers.CharField(required=False, max_length=64)
    action = serializers.CharField(
        required=False,
        max_length=100,
        help_text="Action prefix, e.g. 'breakglass.' for every break-glass event"
    )
    since = serializers.DateTimeField(required=False)
    until = serializers.DateTimeField(required=False)
