"""
Error taxonomy for the accountability core and the DRF exception handler.

Every domain error carries a human message, a structured ``details`` dict
for callers and operators, a machine ``code`` and the HTTP status the
boundary layer should use. Break-glass validation failures all collapse to
the same external "Forbidden" body so a denied principal cannot learn which
check failed.
"""
import logging
from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status

logger = logging.getLogger(__name__)

FORBIDDEN_MESSAGE = 'Insufficient permission'


class AccountabilityError(Exception):
    """Base exception for accountability-core errors."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = 'ACCOUNTABILITY_ERROR'

    def __init__(self, message=None, details=None):
        self.message = message or self.__class__.__doc__ or self.code
        self.details = details or {}
        super().__init__(self.message)

    def public_message(self):
        """Message safe to echo to the caller."""
        return self.message


# ===== AUTHORIZATION =====

class ForbiddenError(AccountabilityError):
    """Raised when an authorization decision is Denied."""
    status_code = status.HTTP_403_FORBIDDEN
    code = 'FORBIDDEN'

    def public_message(self):
        return FORBIDDEN_MESSAGE


# ===== BREAK-GLASS VALIDATION =====

class BreakGlassError(AccountabilityError):
    """Base class for break-glass token validation failures."""
    status_code = status.HTTP_403_FORBIDDEN
    code = 'FORBIDDEN'
    reason = 'invalid'

    def public_message(self):
        return FORBIDDEN_MESSAGE


class NotFoundError(BreakGlassError):
    """No break-glass grant matches the token."""
    reason = 'not_found'


class ExpiredError(BreakGlassError):
    """Break-glass grant is past its expiry."""
    reason = 'expired'


class AlreadyUsedError(BreakGlassError):
    """Break-glass grant has already been consumed or revoked."""
    reason = 'already_used'


class PrincipalMismatchError(BreakGlassError):
    """Break-glass grant was issued to a different principal."""
    reason = 'principal_mismatch'


class PermissionMismatchError(BreakGlassError):
    """Break-glass grant was issued for a different permission."""
    reason = 'permission_mismatch'


class ScopeMismatchError(BreakGlassError):
    """Break-glass grant is limited to a different resource."""
    reason = 'scope_mismatch'


# ===== ADMINISTRATIVE INPUT =====

class AdministrativeInputError(AccountabilityError):
    """Raised when administrative input fails validation."""
    status_code = status.HTTP_400_BAD_REQUEST
    code = 'INVALID_INPUT'


class DuplicateRoleError(AdministrativeInputError):
    """A role with this name already exists."""
    code = 'DUPLICATE_ROLE'


class UnknownPermissionError(AdministrativeInputError):
    """Permission is not registered in the catalog."""
    code = 'UNKNOWN_PERMISSION'


class InvalidPermissionError(UnknownPermissionError):
    """Break-glass grant requested for a permission unknown to the catalog."""
    code = 'INVALID_PERMISSION'


class InvalidJustificationError(AdministrativeInputError):
    """Break-glass justification is missing or too short."""
    code = 'INVALID_JUSTIFICATION'


class InvalidTTLError(AdministrativeInputError):
    """Break-glass lifetime is outside the allowed window."""
    code = 'INVALID_TTL'


class InvalidPaginationError(AdministrativeInputError):
    """Pagination parameters are out of range."""
    code = 'INVALID_PAGINATION'


class RoleNotFoundError(AdministrativeInputError):
    """Role does not exist."""
    status_code = status.HTTP_404_NOT_FOUND
    code = 'ROLE_NOT_FOUND'


# ===== STORAGE =====

class StorageError(AccountabilityError):
    """Raised when the backing store fails."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = 'STORAGE_ERROR'

    def public_message(self):
        return 'Storage unavailable'


class AuditWriteError(StorageError):
    """Raised when a security event could not be written to the audit trail."""
    code = 'AUDIT_WRITE_FAILED'


class ImmutableAuditEntryError(AccountabilityError):
    """Raised on any attempt to update or delete an audit entry."""
    code = 'AUDIT_IMMUTABLE'


def custom_exception_handler(exc, context):
    """
    Custom exception handler that logs errors and returns consistent format.

    Domain errors are mapped onto their status codes; internal details of
    forbidden outcomes are never echoed back.
    """
    request = context.get('request')
    request_id = getattr(request, 'request_id', None) if request else None

    if isinstance(exc, AccountabilityError):
        log = logger.warning if exc.status_code < 500 else logger.error
        log(
            f"Accountability error: {exc.__class__.__name__}",
            extra={
                'error_code': exc.code,
                'request_id': request_id,
                'path': request.path if request else None,
                'method': request.method if request else None,
            },
            exc_info=exc.status_code >= 500,
        )

        body = {
            'error': exc.public_message(),
            'code': exc.code,
            'request_id': request_id,
        }
        if isinstance(exc, AdministrativeInputError) and exc.details:
            body['details'] = exc.details
        return Response(body, status=exc.status_code)

    # Call DRF's default exception handler first
    response = exception_handler(exc, context)

    logger.error(
        f"API Exception: {exc.__class__.__name__}",
        extra={
            'exception': str(exc),
            'request_id': request_id,
            'path': request.path if request else None,
            'method': request.method if request else None,
        },
        exc_info=response is None
    )

    # If DRF didn't handle it, return a generic 500 error
    if response is None:
        return Response(
            {
                'error': 'Internal server error',
                'detail': 'An unexpected error occurred',
                'request_id': request_id,
            },
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    # Add request_id to all error responses
    if request_id and isinstance(response.data, dict):
        response.data['request_id'] = request_id

    return response
