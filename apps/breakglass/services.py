"""
Break-glass override service.

Implements:
- BreakGlassService.issue: mint a single-use, time-bounded grant
- BreakGlassService.validate_and_consume: redeem a bearer token exactly once
- BreakGlassService.consume_matching: token-less redemption used by the
  policy resolver
- listing and administrative expiry

Consumption is decided by a conditional UPDATE filtered on ``used=False`` and
``expires_at > now``; the affected-row count picks the single winner among
concurrent redeemers. Expiry is evaluated lazily at check time.
"""
import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import List, Optional, Union

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F, Q
from django.utils import timezone

from apps.audit.services import AuditContext, AuditTrail
from apps.breakglass.models import BreakGlassGrant, hash_token
from apps.core.conf import accountability_setting
from apps.core.db import storage_guard
from apps.core.exceptions import (
    AlreadyUsedError,
    BreakGlassError,
    ExpiredError,
    ForbiddenError,
    InvalidJustificationError,
    InvalidPermissionError,
    InvalidTTLError,
    NotFoundError,
    PermissionMismatchError,
    PrincipalMismatchError,
    ScopeMismatchError,
    UnknownPermissionError,
)
from apps.core.security_logger import SecurityLogger
from apps.rbac.catalog import (
    Perm,
    PermissionCatalog,
    PermissionLike,
    is_privileged,
    normalize_permission_name,
)
from apps.rbac.services import RoleGraph, principal_id, resolve_user

logger = logging.getLogger(__name__)

REVOKED_REASON = 'revoked'


@dataclass(frozen=True)
class IssuedGrant:
    """
    A freshly issued grant together with its raw bearer token.

    This is the only place the raw token ever exists; it is not stored and
    cannot be recovered later.
    """

    grant: BreakGlassGrant
    token: str

    @property
    def id(self):
        return self.grant.id

    @property
    def expires_at(self):
        return self.grant.expires_at


def normalize_scope(resource_scope) -> Optional[str]:
    """Scope as a string, with blank values meaning 'any resource'."""
    if resource_scope is None:
        return None
    scope = str(resource_scope).strip()
    return scope or None


class BreakGlassService:
    """
    Service for emergency override grants.
    """

    # ===== ISSUANCE =====

    @classmethod
    def _resolve_ttl(cls, ttl: Union[None, int, float, timedelta]) -> timedelta:
        if ttl is None:
            return timedelta(minutes=accountability_setting('BREAKGLASS_DEFAULT_TTL_MINUTES'))
        if not isinstance(ttl, timedelta):
            ttl = timedelta(minutes=ttl)
        maximum = timedelta(minutes=accountability_setting('BREAKGLASS_MAX_TTL_MINUTES'))
        if ttl <= timedelta(0) or ttl > maximum:
            raise InvalidTTLError(
                f"Break-glass lifetime must be positive and at most {maximum}",
                details={
                    'ttl_seconds': ttl.total_seconds(),
                    'max_seconds': maximum.total_seconds(),
                },
            )
        return ttl

    @classmethod
    def validate_issuer(cls, principal, issued_by):
        """
        Four-eyes rule for issuance on behalf of someone else.

        A clinician may open the glass for themselves. Issuing a grant to a
        different principal requires ``admin.roles.manage`` held through a
        role or a direct grant, never through break-glass.

        Raises:
            ForbiddenError: If the issuer may not grant to this principal
        """
        if issued_by is None or principal_id(issued_by) == principal_id(principal):
            return
        if Perm.ADMIN_ROLES_MANAGE.value in RoleGraph.effective_permissions(issued_by):
            return

        SecurityLogger.log_permission_denied(
            principal_id=principal_id(issued_by),
            permission=Perm.ADMIN_ROLES_MANAGE.value,
            resource_scope=principal_id(principal),
        )
        raise ForbiddenError(
            "Issuing a break-glass grant for another principal requires admin.roles.manage",
            details={
                'issued_by': principal_id(issued_by),
                'principal_id': principal_id(principal),
            },
        )

    @classmethod
    def issue(
        cls,
        principal,
        permission: PermissionLike,
        justification: str,
        resource_scope=None,
        ttl: Union[None, int, float, timedelta] = None,
        *,
        issued_by=None,
        context: Optional[AuditContext] = None,
    ) -> IssuedGrant:
        """
        Issue a single-use emergency grant.

        Args:
            principal: User (or id) who may use the grant
            permission: Permission being overridden
            justification: Clinical reason, required
            resource_scope: Resource the grant is limited to, None for any
            ttl: Lifetime as a timedelta or in minutes (default 15 minutes)
            issued_by: User issuing the grant
            context: Audit attribution

        Returns:
            IssuedGrant carrying the raw token, returned exactly once

        Raises:
            InvalidJustificationError: If the justification is empty or too short
            InvalidPermissionError: If the permission is not in the catalog or
                administers the core (``admin.*``, ``audit.*``, break-glass itself)
            InvalidTTLError: If the lifetime is not positive or exceeds the maximum
            ForbiddenError: If issuing for someone else without admin.roles.manage
        """
        justification = (justification or '').strip()
        min_length = accountability_setting('BREAKGLASS_MIN_JUSTIFICATION_LENGTH')
        if len(justification) < max(min_length, 1):
            raise InvalidJustificationError(
                f"Justification must be at least {min_length} characters",
                details={'min_length': min_length},
            )

        try:
            permission_obj = PermissionCatalog.get(permission)
        except UnknownPermissionError as exc:
            raise InvalidPermissionError(exc.message, details=exc.details) from exc

        if is_privileged(permission_obj.name):
            raise InvalidPermissionError(
                f"Permission '{permission_obj.name}' cannot be granted by break-glass",
                details={'permission': permission_obj.name, 'privileged': True},
            )

        ttl = cls._resolve_ttl(ttl)
        principal = resolve_user(principal)
        cls.validate_issuer(principal, issued_by)
        resource_scope = normalize_scope(resource_scope)
        context = context or AuditContext.for_actor(issued_by)

        token = secrets.token_urlsafe(32)
        issued_at = timezone.now()

        with storage_guard('break-glass issuance'):
            with transaction.atomic():
                grant = BreakGlassGrant.objects.create(
                    token_hash=hash_token(token),
                    principal=principal,
                    permission=permission_obj,
                    resource_scope=resource_scope,
                    issued_at=issued_at,
                    expires_at=issued_at + ttl,
                    justification=justification,
                    issued_by=issued_by if hasattr(issued_by, 'pk') else None,
                )
                AuditTrail.record(
                    'breakglass.issue',
                    'BreakGlassGrant',
                    resource_id=grant.id,
                    after={
                        'principal_id': principal_id(principal),
                        'permission': permission_obj.name,
                        'resource_scope': resource_scope,
                        'expires_at': grant.expires_at,
                    },
                    metadata={
                        'justification': justification,
                        'ttl_seconds': int(ttl.total_seconds()),
                    },
                    context=context,
                )

        SecurityLogger.log_breakglass_issued(
            grant_id=str(grant.id),
            principal_id=principal_id(principal),
            permission=permission_obj.name,
            issued_by=context.actor_id,
            expires_at=grant.expires_at,
        )
        return IssuedGrant(grant=grant, token=token)

    # ===== CONSUMPTION =====

    @classmethod
    def _claim(cls, grant: BreakGlassGrant, resource_scope, context: AuditContext) -> bool:
        """
        Flip ``used`` on the grant if nobody else has, and audit the use.

        Returns:
            True if this caller won the grant
        """
        with storage_guard('break-glass consumption'):
            with transaction.atomic():
                now = timezone.now()
                claimed = BreakGlassGrant.objects.filter(
                    pk=grant.pk,
                    used=False,
                    expires_at__gt=now,
                ).update(used=True, used_at=now)
                if not claimed:
                    return False

                grant.used = True
                grant.used_at = now
                AuditTrail.record(
                    'breakglass.use',
                    'BreakGlassGrant',
                    resource_id=grant.id,
                    metadata={
                        'principal_id': str(grant.principal_id),
                        'permission': grant.permission.name,
                        'resource_scope': resource_scope,
                        'justification': grant.justification,
                    },
                    context=context,
                )

        SecurityLogger.log_breakglass_used(
            grant_id=str(grant.id),
            principal_id=str(grant.principal_id),
            permission=grant.permission.name,
            resource_scope=resource_scope,
        )
        return True

    @classmethod
    def _record_rejection(cls, exc: BreakGlassError, principal, permission, resource_scope,
                          grant, context: AuditContext):
        grant_id = str(grant.id) if grant is not None else None
        SecurityLogger.log_breakglass_rejected(
            reason=exc.reason,
            principal_id=principal_id(principal),
            permission=permission,
            grant_id=grant_id,
        )
        AuditTrail.record(
            'breakglass.reject',
            'BreakGlassGrant',
            resource_id=grant_id,
            metadata={
                'reason': exc.reason,
                'principal_id': principal_id(principal),
                'permission': permission,
                'resource_scope': resource_scope,
            },
            context=context,
        )

    @classmethod
    def _check(cls, grant, principal, permission, resource_scope, now):
        if grant is None:
            raise NotFoundError()
        if str(grant.principal_id) != principal_id(principal):
            raise PrincipalMismatchError()
        if grant.permission.name != permission:
            raise PermissionMismatchError()
        if grant.resource_scope is not None and grant.resource_scope != resource_scope:
            raise ScopeMismatchError()
        if grant.used:
            raise AlreadyUsedError()
        if grant.is_expired(now):
            raise ExpiredError()

    @classmethod
    def validate_and_consume(
        cls,
        token: str,
        principal,
        permission: PermissionLike,
        resource_scope=None,
        *,
        context: Optional[AuditContext] = None,
    ) -> BreakGlassGrant:
        """
        Redeem a bearer token for (principal, permission, scope), exactly once.

        Checks run in a fixed order: not found, principal mismatch, permission
        mismatch, scope mismatch, already used, expired. Every failure is
        written to the audit trail as ``breakglass.reject`` before raising.

        Returns:
            The consumed grant

        Raises:
            BreakGlassError: One of its subclasses, naming the failed check
        """
        permission = normalize_permission_name(permission)
        resource_scope = normalize_scope(resource_scope)
        context = context or AuditContext.for_actor(principal)
        grant = None

        try:
            if token:
                with storage_guard('break-glass lookup'):
                    grant = BreakGlassGrant.objects.select_related('permission').by_token(token)
            cls._check(grant, principal, permission, resource_scope, timezone.now())

            if not cls._claim(grant, resource_scope, context):
                # Lost the race; re-read to report why
                grant.refresh_from_db()
                if grant.used:
                    raise AlreadyUsedError()
                raise ExpiredError()
        except BreakGlassError as exc:
            cls._record_rejection(exc, principal, permission, resource_scope, grant, context)
            raise

        return grant

    @classmethod
    def consume_matching(
        cls,
        principal,
        permission: PermissionLike,
        resource_scope=None,
        *,
        context: Optional[AuditContext] = None,
    ) -> Optional[BreakGlassGrant]:
        """
        Consume an active grant for (principal, permission, scope) without a token.

        Scope-specific grants are preferred over wildcard grants, then the
        soonest-expiring grant wins. Returns None when nothing matches.
        """
        permission = normalize_permission_name(permission)
        resource_scope = normalize_scope(resource_scope)
        context = context or AuditContext.for_actor(principal)

        with storage_guard('break-glass lookup'):
            candidates = BreakGlassGrant.objects.active().for_principal(
                principal_id(principal)
            ).filter(
                permission__name=permission,
            ).select_related('permission')
            if resource_scope is None:
                candidates = candidates.filter(resource_scope__isnull=True)
            else:
                candidates = candidates.filter(
                    Q(resource_scope=resource_scope) | Q(resource_scope__isnull=True)
                )
            candidates = list(candidates.order_by(
                F('resource_scope').asc(nulls_last=True),
                'expires_at',
            ))

        for grant in candidates:
            if cls._claim(grant, resource_scope, context):
                return grant
        return None

    # ===== LISTING =====

    @classmethod
    def list_grants(cls, principal=None, only_active: bool = False) -> List[BreakGlassGrant]:
        """Grants newest first, optionally for one principal and only active ones."""
        with storage_guard('break-glass listing'):
            qs = BreakGlassGrant.objects.select_related('permission', 'principal', 'issued_by')
            if principal is not None:
                qs = qs.for_principal(principal)
            if only_active:
                qs = qs.active()
            return list(qs.order_by('-issued_at', '-created_at'))

    @classmethod
    def list_active(cls, principal=None) -> List[BreakGlassGrant]:
        """Unused, unexpired grants newest first."""
        return cls.list_grants(principal=principal, only_active=True)

    # ===== ADMINISTRATION =====

    @classmethod
    def expire(
        cls,
        grant_id,
        *,
        revoked_by=None,
        context: Optional[AuditContext] = None,
    ) -> BreakGlassGrant:
        """
        Administratively invalidate a grant before it is used.

        Raises:
            NotFoundError: If the grant does not exist
            AlreadyUsedError: If the grant was already consumed or revoked
        """
        context = context or AuditContext.for_actor(revoked_by)
        revoker = revoked_by if hasattr(revoked_by, 'pk') else None

        try:
            with storage_guard('break-glass lookup'):
                grant = BreakGlassGrant.objects.select_related('permission').get(pk=grant_id)
        except (BreakGlassGrant.DoesNotExist, ValidationError, ValueError):
            raise NotFoundError(details={'grant_id': str(grant_id)})

        if grant.used:
            raise AlreadyUsedError(details={'grant_id': str(grant.id)})

        with storage_guard('break-glass revocation'):
            with transaction.atomic():
                now = timezone.now()
                revoked = BreakGlassGrant.objects.filter(
                    pk=grant.pk,
                    used=False,
                ).update(used=True, used_at=now, revoked=True, revoked_by=revoker)
                if revoked:
                    AuditTrail.record(
                        'breakglass.revoke',
                        'BreakGlassGrant',
                        resource_id=grant.id,
                        before={'used': False},
                        after={'used': True, 'revoked': True},
                        metadata={
                            'reason': REVOKED_REASON,
                            'principal_id': str(grant.principal_id),
                            'permission': grant.permission.name,
                        },
                        context=context,
                    )

        if not revoked:
            raise AlreadyUsedError(details={'grant_id': str(grant.id)})

        grant.refresh_from_db()
        SecurityLogger.log_breakglass_revoked(
            grant_id=str(grant.id),
            revoked_by=context.actor_id,
        )
        return grant
