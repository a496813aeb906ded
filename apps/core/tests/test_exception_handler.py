"""
Tests for the error taxonomy and the DRF exception handler.
"""
import pytest
from django.test import RequestFactory
from rest_framework import status
from rest_framework.exceptions import ValidationError

from apps.core.exceptions import (
    AlreadyUsedError,
    AuditWriteError,
    DuplicateRoleError,
    ExpiredError,
    ForbiddenError,
    ImmutableAuditEntryError,
    InvalidPermissionError,
    NotFoundError,
    PermissionMismatchError,
    PrincipalMismatchError,
    RoleNotFoundError,
    ScopeMismatchError,
    StorageError,
    custom_exception_handler,
)


def handle(exc, request_id='req-1'):
    request = RequestFactory().post('/v1/roles')
    request.request_id = request_id
    return custom_exception_handler(exc, {'request': request})


class TestDomainErrors:
    """Domain errors map onto status codes and a stable body."""

    def test_forbidden_hides_details(self):
        response = handle(ForbiddenError(
            "Permission 'billing.update' denied",
            details={'principal_id': '7', 'permission': 'billing.update'},
        ))

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data == {
            'error': 'Insufficient permission',
            'code': 'FORBIDDEN',
            'request_id': 'req-1',
        }

    @pytest.mark.parametrize('error_class', [
        NotFoundError, ExpiredError, AlreadyUsedError,
        PrincipalMismatchError, PermissionMismatchError, ScopeMismatchError,
    ])
    def test_breakglass_failures_are_indistinguishable(self, error_class):
        response = handle(error_class(details={'grant_id': 'g-1'}))
        plain = handle(ForbiddenError())

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data == plain.data

    def test_breakglass_reasons(self):
        assert [cls.reason for cls in (
            NotFoundError, ExpiredError, AlreadyUsedError,
            PrincipalMismatchError, PermissionMismatchError, ScopeMismatchError,
        )] == [
            'not_found', 'expired', 'already_used',
            'principal_mismatch', 'permission_mismatch', 'scope_mismatch',
        ]

    def test_administrative_error_includes_details(self):
        response = handle(InvalidPermissionError(
            'Unknown permission', details={'missing': ['billing.embezzle']},
        ))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == 'INVALID_PERMISSION'
        assert response.data['error'] == 'Unknown permission'
        assert response.data['details'] == {'missing': ['billing.embezzle']}

    def test_administrative_error_without_details(self):
        response = handle(DuplicateRoleError('Role NURSE already exists'))

        assert response.data['code'] == 'DUPLICATE_ROLE'
        assert 'details' not in response.data

    def test_role_not_found_is_404(self):
        assert handle(RoleNotFoundError()).status_code == status.HTTP_404_NOT_FOUND

    def test_storage_errors_hide_cause(self):
        response = handle(AuditWriteError('disk full on audit volume'))

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert response.data['error'] == 'Storage unavailable'
        assert response.data['code'] == 'AUDIT_WRITE_FAILED'
        assert isinstance(AuditWriteError(), StorageError)

    def test_immutable_audit_is_server_error(self):
        response = handle(ImmutableAuditEntryError())
        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR

    def test_default_message_is_docstring(self):
        assert ScopeMismatchError().message == 'Break-glass grant is limited to a different resource.'


class TestFrameworkErrors:
    """Non-domain exceptions fall through to DRF."""

    def test_validation_error_gets_request_id(self):
        response = handle(ValidationError({'name': ['This field is required.']}))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['name'] == ['This field is required.']
        assert response.data['request_id'] == 'req-1'

    def test_unexpected_error_is_generic_500(self):
        response = handle(ValueError('internal detail'))

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.data['error'] == 'Internal server error'
        assert 'internal detail' not in str(response.data)
