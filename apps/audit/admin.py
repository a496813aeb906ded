"""
Django admin configuration for the audit app.
"""
from django.contrib import admin

from apps.core.admin import ReadOnlyAdminMixin
from .models import AuditEntry


@admin.register(AuditEntry)
class AuditEntryAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """Read-only admin interface for the audit trail."""
    list_display = ['timestamp', 'actor_id', 'action', 'resource_type', 'resource_id', 'request_id']
    list_filter = ['action', 'resource_type']
    search_fields = ['actor_id', 'action', 'resource_id', 'request_id']
    date_hierarchy = 'timestamp'
