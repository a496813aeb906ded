"""
Django admin configuration for core app.
"""
from django.contrib import admin


# Customize admin site header and title
admin.site.site_header = "Hospital Accountability Administration"
admin.site.site_title = "Accountability Admin"
admin.site.index_title = "Roles, break-glass grants and the audit trail"


class ReadOnlyAdminMixin:
    """
    Disable add/change/delete in the admin.

    Used for every model whose mutations must go through a service so that
    they are audited.
    """

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
