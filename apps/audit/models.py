"""
Audit trail model.

Entries are append-only: once written they can never be updated or deleted,
neither through the instance nor through a queryset. The trail is the sole
record of what happened and who authorized it.
"""
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from apps.core.exceptions import ImmutableAuditEntryError


class AuditEntryQuerySet(models.QuerySet):
    """QuerySet that refuses every mutating bulk operation."""

    def update(self, **kwargs):
        raise ImmutableAuditEntryError("Audit entries cannot be updated")

    def delete(self):
        raise ImmutableAuditEntryError("Audit entries cannot be deleted")

    def by_action_prefix(self, prefix):
        """Entries whose namespaced action starts with ``prefix``."""
        return self.filter(action__startswith=prefix)

    def for_resource(self, resource_type, resource_id=None):
        """Entries about a resource type and optionally a specific resource."""
        qs = self.filter(resource_type=resource_type)
        if resource_id is not None:
            qs = qs.filter(resource_id=str(resource_id))
        return qs

    def for_actor(self, actor_id):
        """Entries performed by an actor."""
        return self.filter(actor_id=str(actor_id))


class AuditEntry(models.Model):
    """
    Immutable record of a security-relevant event.

    ``actor_id`` is a plain string rather than a foreign key so that nothing
    that happens to a user account can rewrite history.
    """

    id = models.BigAutoField(primary_key=True)
    timestamp = models.DateTimeField(
        db_index=True,
        help_text="Server-assigned time of the event (monotonically non-decreasing)"
    )
    actor_id = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        db_index=True,
        help_text="Actor who performed the action (null for system actions)"
    )

    # Action Details
    action = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Namespaced action (e.g., 'breakglass.use', 'role.create')"
    )
    resource_type = models.CharField(
        max_length=50,
        db_index=True,
        help_text="Type of resource acted upon (e.g., 'Role', 'BreakGlassGrant')"
    )
    resource_id = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        db_index=True,
        help_text="Identifier of the resource acted upon"
    )

    # Change Tracking
    before = models.JSONField(
        null=True,
        blank=True,
        encoder=DjangoJSONEncoder,
        help_text="State snapshot before the change"
    )
    after = models.JSONField(
        null=True,
        blank=True,
        encoder=DjangoJSONEncoder,
        help_text="State snapshot after the change"
    )
    metadata = models.JSONField(
        default=dict,
        blank=True,
        encoder=DjangoJSONEncoder,
        help_text="Additional context metadata"
    )

    # Request Context
    ip_address = models.GenericIPAddressField(
        null=True,
        blank=True,
        help_text="Source IP address of the request"
    )
    request_id = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        db_index=True,
        help_text="Request ID for tracing"
    )
    user_agent = models.TextField(
        blank=True,
        default='',
        help_text="User agent string"
    )

    objects = AuditEntryQuerySet.as_manager()

    class Meta:
        db_table = 'audit_entries'
        ordering = ['-timestamp', '-id']
        verbose_name_plural = 'audit entries'
        indexes = [
            models.Index(fields=['actor_id', 'timestamp'], name='audit_actor_ts_idx'),
            models.Index(fields=['action', 'timestamp'], name='audit_action_ts_idx'),
            models.Index(fields=['resource_type', 'resource_id'], name='audit_resource_idx'),
        ]

    def __str__(self):
        actor = self.actor_id or 'system'
        return f"{self.timestamp:%Y-%m-%d %H:%M:%S} {actor} {self.action}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ImmutableAuditEntryError(
                "Audit entries cannot be updated",
                details={'entry_id': self.pk},
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ImmutableAuditEntryError(
            "Audit entries cannot be deleted",
            details={'entry_id': self.pk},
        )
