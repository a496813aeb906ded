"""
RBAC models for the hospital access-control core.

Implements:
- Permission (global canonical permissions)
- Role (named bundles of permissions)
- RolePermission (maps permissions to roles)
- UserRole (maps roles to principals)
- UserPermission (direct per-user grants)

Principals are Django's ``AUTH_USER_MODEL``.
"""
import logging
from django.conf import settings
from django.db import models
from apps.core.models import BaseModel

logger = logging.getLogger(__name__)


class PermissionManager(models.Manager):
    """Manager for Permission queries."""

    def by_name(self, name):
        """Find permission by name."""
        return self.filter(name=name).first()

    def by_category(self, category):
        """Get all permissions in a category."""
        return self.filter(category=category)


class Permission(BaseModel):
    """
    Global permission definitions.

    Canonical permissions are synced from the ``Perm`` registry during
    migrate; administrators may add more through the catalog.
    """

    name = models.CharField(
        max_length=100,
        unique=True,
        db_index=True,
        help_text="Unique permission name (e.g., 'billing.update')"
    )
    description = models.TextField(
        blank=True,
        help_text="Detailed description of what this permission grants"
    )
    category = models.CharField(
        max_length=50,
        db_index=True,
        blank=True,
        help_text="Permission category, the prefix before the first dot (e.g., 'billing')"
    )

    # Custom manager
    objects = PermissionManager()

    class Meta:
        db_table = 'permissions'
        ordering = ['name']

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        if not self.category:
            self.category = self.name.split('.', 1)[0]
        super().save(*args, **kwargs)


class RoleManager(models.Manager):
    """Manager for Role queries."""

    def by_name(self, name):
        """Find role by name (case-insensitive)."""
        return self.filter(name__iexact=name).first()

    def system_roles(self):
        """Get system-seeded roles."""
        return self.filter(is_system=True)


class Role(BaseModel):
    """
    Named, reusable bundle of permissions.

    System roles are seeded from the hospital role map; administrators can
    create custom roles.
    """

    name = models.CharField(
        max_length=100,
        unique=True,
        help_text="Role name (e.g., 'NURSE', 'DOCTOR')"
    )
    description = models.TextField(
        blank=True,
        help_text="Role description"
    )
    is_system = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether this is a system-seeded role"
    )

    # Custom manager
    objects = RoleManager()

    class Meta:
        db_table = 'roles'
        ordering = ['name']

    def __str__(self):
        return self.name

    def permission_names(self):
        """Sorted names of every permission granted by this role."""
        return sorted(
            self.role_permissions.values_list('permission__name', flat=True)
        )

    def has_permission(self, permission_name):
        """Check if role has a specific permission."""
        return self.role_permissions.filter(
            permission__name=permission_name
        ).exists()


class RolePermission(BaseModel):
    """
    Maps permissions to roles.

    Unique per (role, permission) so a role's permissions behave as a set.
    """

    role = models.ForeignKey(
        Role,
        on_delete=models.CASCADE,
        related_name='role_permissions',
        help_text="Role that grants this permission"
    )
    permission = models.ForeignKey(
        Permission,
        on_delete=models.PROTECT,
        related_name='role_permissions',
        help_text="Permission being granted"
    )

    class Meta:
        db_table = 'role_permissions'
        ordering = ['role', 'permission']
        constraints = [
            models.UniqueConstraint(fields=['role', 'permission'], name='uniq_role_permission'),
        ]

    def __str__(self):
        return f"{self.role.name} -> {self.permission.name}"


class UserRoleManager(models.Manager):
    """Manager for UserRole queries."""

    def for_user(self, user):
        """Get all role assignments for a principal."""
        return self.filter(user=user)


class UserRole(BaseModel):
    """
    Maps roles to principals.

    A principal can hold multiple roles; permissions are aggregated.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='role_assignments',
        help_text="Principal who has this role"
    )
    role = models.ForeignKey(
        Role,
        on_delete=models.CASCADE,
        related_name='user_roles',
        help_text="Role assigned to the principal"
    )

    # Audit fields
    assigned_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='role_assignments_made',
        help_text="User who assigned this role"
    )

    objects = UserRoleManager()

    class Meta:
        db_table = 'user_roles'
        ordering = ['user', 'role']
        constraints = [
            models.UniqueConstraint(fields=['user', 'role'], name='uniq_user_role'),
        ]

    def __str__(self):
        return f"{self.user} -> {self.role.name}"


class UserPermissionManager(models.Manager):
    """Manager for UserPermission queries."""

    def for_user(self, user):
        """Get all direct grants for a principal."""
        return self.filter(user=user)


class UserPermission(BaseModel):
    """
    Direct per-user permission grant.

    Escape hatch for per-user exceptions outside the role graph.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='direct_permissions',
        help_text="Principal this grant applies to"
    )
    permission = models.ForeignKey(
        Permission,
        on_delete=models.PROTECT,
        related_name='user_permissions',
        help_text="Permission being granted"
    )

    # Audit fields
    reason = models.TextField(
        blank=True,
        help_text="Reason for this grant"
    )
    granted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='direct_permissions_granted',
        help_text="User who created this grant"
    )

    objects = UserPermissionManager()

    class Meta:
        db_table = 'user_permissions'
        ordering = ['user', 'permission']
        constraints = [
            models.UniqueConstraint(fields=['user', 'permission'], name='uniq_user_permission'),
        ]

    def __str__(self):
        return f"GRANT {self.permission.name} to {self.user}"
