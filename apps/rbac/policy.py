"""
Policy resolver.

The single authorization entry point for protected operations:
"may principal P perform permission X on resource R?"

Resolution order:
1. a role held by the principal grants the permission (ROLE)
2. a direct grant (DIRECT_GRANT)
3. an active break-glass grant, consumed on the spot (BREAK_GLASS); never
   for the privileged admin.*, audit.* and break-glass permissions
4. otherwise Denied

The resolver owns no persistence. Break-glass failures collapse into Denied
here; the precise reason lives in the audit trail only.
"""
import enum
import logging
from dataclasses import dataclass
from typing import Optional

from apps.audit.services import AuditContext, AuditTrail
from apps.breakglass.services import BreakGlassService, normalize_scope
from apps.core.conf import accountability_setting
from apps.core.exceptions import BreakGlassError, ForbiddenError
from apps.core.security_logger import SecurityLogger
from apps.rbac.catalog import PermissionLike, is_privileged, resolve_permission
from apps.rbac.services import RoleGraph, is_valid_principal_id, principal_id

logger = logging.getLogger(__name__)


class Via(str, enum.Enum):
    """How an allowed decision was reached."""

    ROLE = 'role'
    DIRECT_GRANT = 'direct_grant'
    BREAK_GLASS = 'break_glass'


@dataclass(frozen=True)
class Decision:
    """Outcome of an authorization check, carrying attribution."""

    allowed: bool
    via: Optional[Via]
    principal_id: Optional[str]
    permission: str
    resource_scope: Optional[str] = None
    grant_id: Optional[str] = None

    def __bool__(self):
        return self.allowed

    @property
    def is_break_glass(self):
        return self.via is Via.BREAK_GLASS


class PolicyResolver:
    """
    Combines the role graph and break-glass grants into one decision.
    """

    @classmethod
    def authorize(
        cls,
        principal,
        permission: PermissionLike,
        resource_scope=None,
        *,
        token: Optional[str] = None,
        context: Optional[AuditContext] = None,
    ) -> Decision:
        """
        Decide whether ``principal`` holds ``permission`` on ``resource_scope``.

        A break-glass grant that authorizes the call is consumed, and its
        ``breakglass.use`` audit entry is written before this returns.

        Args:
            principal: User instance or id; None for anonymous callers
            permission: ``Perm`` member or permission name
            resource_scope: Resource identifier, if the action targets one
            token: Raw break-glass token presented with the request
            context: Audit attribution

        Returns:
            Decision

        Raises:
            UnknownPermissionError: If the permission is not in the catalog
        """
        permission = resolve_permission(permission)
        resource_scope = normalize_scope(resource_scope)

        if principal is None:
            return cls._deny(None, permission, resource_scope, context)

        pid = principal_id(principal)
        if not is_valid_principal_id(principal):
            return cls._deny(pid, permission, resource_scope, context)
        context = context or AuditContext.for_actor(pid)

        if permission in RoleGraph.role_permissions(pid):
            return Decision(True, Via.ROLE, pid, permission, resource_scope)

        if permission in RoleGraph.direct_permissions(pid):
            return Decision(True, Via.DIRECT_GRANT, pid, permission, resource_scope)

        # Administering the core is never an emergency
        if is_privileged(permission):
            return cls._deny(pid, permission, resource_scope, context)

        grant = None
        if token:
            try:
                grant = BreakGlassService.validate_and_consume(
                    token, pid, permission, resource_scope, context=context
                )
            except BreakGlassError:
                grant = None
        else:
            grant = BreakGlassService.consume_matching(
                pid, permission, resource_scope, context=context
            )

        if grant is not None:
            logger.info(
                f"Authorized {permission} via break-glass",
                extra={'principal_id': pid, 'grant_id': str(grant.id)}
            )
            return Decision(
                True, Via.BREAK_GLASS, pid, permission, resource_scope, grant_id=str(grant.id)
            )

        return cls._deny(pid, permission, resource_scope, context)

    @classmethod
    def _deny(cls, pid, permission, resource_scope, context) -> Decision:
        context = context or AuditContext.system()
        SecurityLogger.log_permission_denied(
            principal_id=pid,
            permission=permission,
            resource_scope=resource_scope,
            request_id=context.request_id,
        )
        if accountability_setting('AUDIT_DENIALS'):
            AuditTrail.record(
                'authz.deny',
                'Permission',
                resource_id=permission,
                metadata={
                    'principal_id': pid,
                    'resource_scope': resource_scope,
                },
                context=context,
            )
        return Decision(False, None, pid, permission, resource_scope)

    @classmethod
    def require(
        cls,
        principal,
        permission: PermissionLike,
        resource_scope=None,
        *,
        token: Optional[str] = None,
        context: Optional[AuditContext] = None,
    ) -> Decision:
        """
        Like ``authorize`` but raise on denial.

        Raises:
            ForbiddenError: If the decision is Denied
        """
        decision = cls.authorize(
            principal, permission, resource_scope, token=token, context=context
        )
        if not decision.allowed:
            raise ForbiddenError(
                f"Permission '{decision.permission}' denied",
                details={
                    'principal_id': decision.principal_id,
                    'permission': decision.permission,
                    'resource_scope': decision.resource_scope,
                },
            )
        return decision
