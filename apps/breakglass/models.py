"""
Break-glass grant model.

A grant is a time-bounded, single-use permission override issued during a
clinical emergency. Only the SHA-256 digest of the bearer token is stored;
the grant's UUID is the loggable token identifier.
"""
import hashlib

from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from apps.core.models import BaseModel


def hash_token(token):
    """Hex SHA-256 digest of a raw break-glass token."""
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


class BreakGlassGrantQuerySet(models.QuerySet):
    """QuerySet for BreakGlassGrant lookups."""

    def for_principal(self, principal):
        """Grants issued to a principal (user instance or id)."""
        return self.filter(principal_id=getattr(principal, 'pk', principal))

    def active(self, now=None):
        """Unused grants that have not yet expired."""
        now = now or timezone.now()
        return self.filter(used=False, expires_at__gt=now)

    def by_token(self, token):
        """Grant whose stored digest matches the raw token."""
        return self.filter(token_hash=hash_token(token)).first()


class BreakGlassGrant(BaseModel):
    """
    Emergency override for one (principal, permission, scope).

    State: unused -> used exactly once, or unused -> expired once
    ``expires_at`` passes. Neither used nor expired grants authorize again.
    """

    token_hash = models.CharField(
        max_length=64,
        unique=True,
        help_text="SHA-256 digest of the bearer token"
    )
    principal = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='breakglass_grants',
        help_text="Principal allowed to use this grant"
    )
    permission = models.ForeignKey(
        'rbac.Permission',
        on_delete=models.PROTECT,
        related_name='breakglass_grants',
        help_text="Permission this grant overrides"
    )
    resource_scope = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Resource the grant is limited to (null means any resource)"
    )

    # Lifetime
    issued_at = models.DateTimeField(
        default=timezone.now,
        help_text="When the grant was issued"
    )
    expires_at = models.DateTimeField(
        db_index=True,
        help_text="Grant expiration time"
    )
    used = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether the grant has been consumed or revoked"
    )
    used_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the grant was consumed or revoked"
    )

    # Accountability
    justification = models.TextField(
        help_text="Clinical reason the override was needed"
    )
    issued_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='breakglass_grants_issued',
        help_text="User who issued the grant"
    )
    revoked = models.BooleanField(
        default=False,
        help_text="Whether an administrator expired the grant before use"
    )
    revoked_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='breakglass_grants_revoked',
        help_text="Administrator who expired the grant"
    )

    objects = BreakGlassGrantQuerySet.as_manager()

    class Meta:
        db_table = 'breakglass_grants'
        ordering = ['-issued_at']
        indexes = [
            models.Index(
                fields=['principal', 'permission', 'used', 'expires_at'],
                name='breakglass_lookup_idx',
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(expires_at__gt=F('issued_at')),
                name='breakglass_expires_after_issue',
            ),
        ]

    def __str__(self):
        return f"Break-glass {self.id} ({self.permission_id})"

    def is_expired(self, now=None):
        """Whether the grant is past its expiry."""
        return (now or timezone.now()) >= self.expires_at

    def is_active(self, now=None):
        """Check if grant is still usable (not expired and not used)."""
        return not self.used and not self.is_expired(now)

    @property
    def status(self):
        """Lifecycle state: 'active', 'used', 'revoked' or 'expired'."""
        if self.revoked:
            return 'revoked'
        if self.used:
            return 'used'
        if self.is_expired():
            return 'expired'
        return 'active'
