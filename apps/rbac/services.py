"""
Role graph services.

Implements:
- RoleGraph: role/permission/principal mutations and effective-permission
  resolution

Every mutation runs inside ``transaction.atomic`` together with its audit
record, so a failed audit write rolls the mutation back. Effective
permissions are recomputed from the database on every call; a revoked role
stops authorizing on the very next check.
"""
import logging
from typing import Iterable, List, Optional, Set

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction

from apps.audit.services import AuditContext, AuditTrail
from apps.core.db import storage_guard
from apps.core.exceptions import (
    AdministrativeInputError,
    DuplicateRoleError,
    RoleNotFoundError,
)
from apps.rbac.catalog import PermissionCatalog, PermissionLike
from apps.rbac.models import (
    Permission, Role, RolePermission, UserPermission, UserRole
)

logger = logging.getLogger(__name__)


def normalize_role_name(name: str) -> str:
    """Role names are stored upper-cased (e.g., 'nurse' -> 'NURSE')."""
    normalized = (name or '').strip().upper()
    if not normalized:
        raise AdministrativeInputError("Role name must not be empty")
    return normalized


def principal_id(principal) -> str:
    """String id for a user instance or a raw primary key."""
    return str(getattr(principal, 'pk', principal))


def is_valid_principal_id(principal) -> bool:
    """Whether a user instance or raw id can be a primary key of the user model."""
    if principal is None:
        return False
    if hasattr(principal, 'pk'):
        return principal.pk is not None
    try:
        return get_user_model()._meta.pk.to_python(principal) is not None
    except ValidationError:
        return False


def resolve_user(user):
    """
    User instance for an instance or primary key.

    Raises:
        AdministrativeInputError: If no such user exists
    """
    if hasattr(user, 'pk'):
        return user
    User = get_user_model()
    try:
        return User.objects.get(pk=user)
    except (User.DoesNotExist, ValidationError, ValueError):
        raise AdministrativeInputError(
            f"User '{user}' does not exist",
            details={'user_id': str(user)},
        )


class RoleGraph:
    """
    Service for the role graph: roles, their permissions and who holds them.
    """

    # ===== LOOKUPS =====

    @classmethod
    def get_role(cls, role) -> Role:
        """
        Fetch a role by instance or id.

        Raises:
            RoleNotFoundError: If no such role exists
        """
        if isinstance(role, Role):
            return role
        try:
            with storage_guard('role lookup'):
                return Role.objects.get(pk=role)
        except (Role.DoesNotExist, ValidationError, ValueError):
            raise RoleNotFoundError(
                f"Role '{role}' does not exist",
                details={'role_id': str(role)},
            )

    @classmethod
    def list_roles(cls) -> List[Role]:
        """All roles sorted by name, with their permissions prefetched."""
        with storage_guard('role listing'):
            return list(
                Role.objects.prefetch_related('role_permissions__permission').order_by('name')
            )

    # ===== ROLES =====

    @classmethod
    def create_role(
        cls,
        name: str,
        initial_permissions: Iterable[PermissionLike] = (),
        description: str = '',
        created_by=None,
        context: Optional[AuditContext] = None,
        is_system: bool = False,
    ) -> Role:
        """
        Create a role holding the given permissions.

        Args:
            name: Role name (normalized to upper case)
            initial_permissions: Permission names, all of which must exist
            description: Human description
            created_by: User performing the action
            context: Audit attribution
            is_system: Whether the role is seeded by the system

        Returns:
            The new Role

        Raises:
            DuplicateRoleError: If a role with the same name exists
            UnknownPermissionError: If any permission is not in the catalog
        """
        normalized = normalize_role_name(name)
        permissions = PermissionCatalog.get_many(initial_permissions)
        context = context or AuditContext.for_actor(created_by)

        duplicate = DuplicateRoleError(
            f"Role '{normalized}' already exists",
            details={'name': normalized},
        )
        with storage_guard('role creation'):
            with transaction.atomic():
                if Role.objects.by_name(normalized) is not None:
                    raise duplicate
                try:
                    with transaction.atomic():
                        role = Role.objects.create(
                            name=normalized,
                            description=description,
                            is_system=is_system,
                        )
                except IntegrityError as exc:
                    # Lost a race with a concurrent create of the same name
                    raise duplicate from exc
                RolePermission.objects.bulk_create([
                    RolePermission(role=role, permission=permission)
                    for permission in permissions
                ])

                AuditTrail.record(
                    'role.create',
                    'Role',
                    resource_id=role.id,
                    after={
                        'name': role.name,
                        'permissions': [p.name for p in permissions],
                    },
                    context=context,
                )

        logger.info(
            f"Role created: {role.name}",
            extra={'role_id': str(role.id), 'permission_count': len(permissions)}
        )
        return role

    @classmethod
    def assign_permissions(
        cls,
        role,
        permissions: Iterable[PermissionLike],
        assigned_by=None,
        context: Optional[AuditContext] = None,
    ) -> Role:
        """
        Add permissions to a role. Already-held permissions are left alone.

        Raises:
            RoleNotFoundError: If the role does not exist
            UnknownPermissionError: If any permission is not in the catalog
        """
        role = cls.get_role(role)
        requested = PermissionCatalog.get_many(permissions)
        context = context or AuditContext.for_actor(assigned_by)

        with storage_guard('role permission assignment'):
            with transaction.atomic():
                before = role.permission_names()
                held = set(before)
                RolePermission.objects.bulk_create([
                    RolePermission(role=role, permission=permission)
                    for permission in requested
                    if permission.name not in held
                ])
                after = role.permission_names()

                AuditTrail.record(
                    'role.permissions.assign',
                    'Role',
                    resource_id=role.id,
                    before={'permissions': before},
                    after={'permissions': after},
                    metadata={'requested': [p.name for p in requested]},
                    context=context,
                )

        return role

    @classmethod
    def revoke_permissions(
        cls,
        role,
        permissions: Iterable[PermissionLike],
        revoked_by=None,
        context: Optional[AuditContext] = None,
    ) -> Role:
        """
        Remove permissions from a role. Permissions the role lacks are ignored.

        Raises:
            RoleNotFoundError: If the role does not exist
            UnknownPermissionError: If any permission is not in the catalog
        """
        role = cls.get_role(role)
        requested = PermissionCatalog.get_many(permissions)
        context = context or AuditContext.for_actor(revoked_by)

        with storage_guard('role permission revocation'):
            with transaction.atomic():
                before = role.permission_names()
                RolePermission.objects.filter(
                    role=role,
                    permission__in=requested,
                ).delete()
                after = role.permission_names()

                AuditTrail.record(
                    'role.permissions.revoke',
                    'Role',
                    resource_id=role.id,
                    before={'permissions': before},
                    after={'permissions': after},
                    metadata={'requested': [p.name for p in requested]},
                    context=context,
                )

        return role

    # ===== PRINCIPALS =====

    @classmethod
    def assign_role(
        cls,
        user,
        role,
        assigned_by=None,
        context: Optional[AuditContext] = None,
    ) -> UserRole:
        """
        Give a principal a role. Re-assigning a held role is a no-op.

        Returns:
            The UserRole assignment
        """
        user = resolve_user(user)
        role = cls.get_role(role)
        context = context or AuditContext.for_actor(assigned_by)

        with storage_guard('role assignment'):
            with transaction.atomic():
                user_role, created = UserRole.objects.get_or_create(
                    user=user,
                    role=role,
                    defaults={'assigned_by': assigned_by if hasattr(assigned_by, 'pk') else None}
                )
                if created:
                    AuditTrail.record(
                        'user.role.assign',
                        'UserRole',
                        resource_id=user_role.id,
                        after={'user_id': principal_id(user), 'role': role.name},
                        metadata={'role_id': str(role.id)},
                        context=context,
                    )

        return user_role

    @classmethod
    def remove_role(
        cls,
        user,
        role,
        removed_by=None,
        context: Optional[AuditContext] = None,
    ) -> bool:
        """
        Take a role away from a principal.

        Returns:
            True if role was removed, False if the principal did not hold it
        """
        user = resolve_user(user)
        role = cls.get_role(role)
        context = context or AuditContext.for_actor(removed_by)

        with storage_guard('role removal'):
            with transaction.atomic():
                deleted_count, _ = UserRole.objects.filter(user=user, role=role).delete()
                if deleted_count:
                    AuditTrail.record(
                        'user.role.remove',
                        'UserRole',
                        before={'user_id': principal_id(user), 'role': role.name},
                        metadata={'role_id': str(role.id)},
                        context=context,
                    )

        return bool(deleted_count)

    @classmethod
    def grant_direct(
        cls,
        user,
        permission: PermissionLike,
        reason: str = '',
        granted_by=None,
        context: Optional[AuditContext] = None,
    ) -> UserPermission:
        """
        Grant a permission directly to a principal, outside any role.

        Raises:
            UnknownPermissionError: If the permission is not in the catalog
        """
        user = resolve_user(user)
        permission = PermissionCatalog.get(permission)
        context = context or AuditContext.for_actor(granted_by)

        with storage_guard('direct permission grant'):
            with transaction.atomic():
                user_permission, created = UserPermission.objects.get_or_create(
                    user=user,
                    permission=permission,
                    defaults={
                        'reason': reason,
                        'granted_by': granted_by if hasattr(granted_by, 'pk') else None,
                    }
                )
                if created:
                    AuditTrail.record(
                        'user.permission.grant',
                        'UserPermission',
                        resource_id=user_permission.id,
                        after={'user_id': principal_id(user), 'permission': permission.name},
                        metadata={'reason': reason},
                        context=context,
                    )

        return user_permission

    @classmethod
    def revoke_direct(
        cls,
        user,
        permission: PermissionLike,
        revoked_by=None,
        context: Optional[AuditContext] = None,
    ) -> bool:
        """
        Remove a direct grant.

        Returns:
            True if a grant was removed
        """
        user = resolve_user(user)
        permission = PermissionCatalog.get(permission)
        context = context or AuditContext.for_actor(revoked_by)

        with storage_guard('direct permission revocation'):
            with transaction.atomic():
                deleted_count, _ = UserPermission.objects.filter(
                    user=user,
                    permission=permission,
                ).delete()
                if deleted_count:
                    AuditTrail.record(
                        'user.permission.revoke',
                        'UserPermission',
                        before={'user_id': principal_id(user), 'permission': permission.name},
                        context=context,
                    )

        return bool(deleted_count)

    # ===== RESOLUTION =====

    @classmethod
    def role_permissions(cls, principal) -> Set[str]:
        """Permission names the principal holds through its roles."""
        with storage_guard('role permission resolution'):
            return set(
                Permission.objects.filter(
                    role_permissions__role__user_roles__user_id=principal_id(principal)
                ).values_list('name', flat=True).distinct()
            )

    @classmethod
    def direct_permissions(cls, principal) -> Set[str]:
        """Permission names granted directly to the principal."""
        with storage_guard('direct permission resolution'):
            return set(
                UserPermission.objects.filter(
                    user_id=principal_id(principal)
                ).values_list('permission__name', flat=True)
            )

    @classmethod
    def effective_permissions(cls, principal) -> Set[str]:
        """
        Union of every assigned role's permissions plus direct grants.

        Recomputed on every call.
        """
        return cls.role_permissions(principal) | cls.direct_permissions(principal)

    @classmethod
    def roles_for(cls, principal) -> List[Role]:
        """Roles held by a principal, sorted by name."""
        with storage_guard('role listing'):
            return list(
                Role.objects.filter(
                    user_roles__user_id=principal_id(principal)
                ).distinct().order_by('name')
            )
