"""
Security event logging for monitoring and alerting.

Logs all security-relevant events including:
- Authorization denials
- Break-glass issuance, use, rejection and revocation
- Audit trail write failures

Critical events are sent to Sentry for immediate alerting.
"""
import logging
from typing import Optional
import sentry_sdk
from django.utils import timezone

logger = logging.getLogger('security')


class SecurityLogger:
    """
    Centralized security event logging.

    All security events are logged with structured data for analysis.
    Critical events trigger Sentry alerts for immediate response.
    Raw break-glass tokens are never passed in; events reference the
    grant id only.
    """

    @classmethod
    def log_permission_denied(
        cls,
        principal_id: Optional[str],
        permission: str,
        resource_scope: Optional[str] = None,
        request_id: Optional[str] = None,
    ):
        """
        Log an authorization denial.

        Args:
            principal_id: Principal whose request was denied
            permission: Permission that was requested
            resource_scope: Resource the request was scoped to, if any
            request_id: Request ID for tracing
        """
        logger.warning(
            "Permission denied",
            extra={
                'event_type': 'permission_denied',
                'principal_id': principal_id,
                'permission': permission,
                'resource_scope': resource_scope,
                'request_id': request_id,
                'timestamp': timezone.now().isoformat()
            }
        )

    @classmethod
    def log_breakglass_issued(
        cls,
        grant_id: str,
        principal_id: str,
        permission: str,
        issued_by: Optional[str],
        expires_at,
    ):
        """Log issuance of an emergency grant."""
        logger.warning(
            "Break-glass grant issued",
            extra={
                'event_type': 'breakglass_issued',
                'grant_id': grant_id,
                'principal_id': principal_id,
                'permission': permission,
                'issued_by': issued_by,
                'expires_at': expires_at.isoformat(),
                'timestamp': timezone.now().isoformat()
            }
        )

    @classmethod
    def log_breakglass_used(
        cls,
        grant_id: str,
        principal_id: str,
        permission: str,
        resource_scope: Optional[str] = None,
    ):
        """
        Log consumption of an emergency grant.

        Every use is forwarded to Sentry so on-call staff see emergency
        access as it happens.
        """
        logger.warning(
            "Break-glass grant used",
            extra={
                'event_type': 'breakglass_used',
                'grant_id': grant_id,
                'principal_id': principal_id,
                'permission': permission,
                'resource_scope': resource_scope,
                'timestamp': timezone.now().isoformat()
            }
        )

        sentry_sdk.capture_message(
            f"Break-glass access used for {permission}",
            level='warning',
            extras={
                'grant_id': grant_id,
                'principal_id': principal_id,
                'permission': permission,
                'resource_scope': resource_scope,
            }
        )

    @classmethod
    def log_breakglass_rejected(
        cls,
        reason: str,
        principal_id: Optional[str],
        permission: str,
        grant_id: Optional[str] = None,
    ):
        """
        Log a failed break-glass validation with its precise reason.

        The reason is for operators only and is never returned to the caller.
        """
        logger.warning(
            "Break-glass validation failed",
            extra={
                'event_type': 'breakglass_rejected',
                'reason': reason,
                'principal_id': principal_id,
                'permission': permission,
                'grant_id': grant_id,
                'timestamp': timezone.now().isoformat()
            }
        )

    @classmethod
    def log_breakglass_revoked(cls, grant_id: str, revoked_by: Optional[str]):
        """Log administrative revocation of an emergency grant."""
        logger.info(
            "Break-glass grant revoked",
            extra={
                'event_type': 'breakglass_revoked',
                'grant_id': grant_id,
                'revoked_by': revoked_by,
                'timestamp': timezone.now().isoformat()
            }
        )

    @classmethod
    def log_audit_write_failure(cls, action: str, resource_type: str, exc: Exception):
        """
        Log a failed audit write.

        The enclosing privileged operation is failed by the caller; this
        makes sure operators hear about it.
        """
        logger.critical(
            "Audit trail write failed",
            extra={
                'event_type': 'audit_write_failure',
                'action': action,
                'resource_type': resource_type,
                'error': str(exc),
                'timestamp': timezone.now().isoformat()
            },
            exc_info=exc,
        )

        sentry_sdk.capture_exception(exc)
