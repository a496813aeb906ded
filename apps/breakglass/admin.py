"""
Django admin configuration for the break-glass app.
"""
from django.contrib import admin

from apps.core.admin import ReadOnlyAdminMixin
from .models import BreakGlassGrant


@admin.register(BreakGlassGrant)
class BreakGlassGrantAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """Read-only admin interface for break-glass grants."""
    list_display = ['id', 'principal', 'permission', 'resource_scope', 'issued_at', 'expires_at', 'used', 'revoked']
    list_filter = ['used', 'revoked', 'permission']
    search_fields = ['principal__username', 'permission__name', 'justification']
    exclude = ['token_hash']
