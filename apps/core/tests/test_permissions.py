"""
Tests for the RequiresPermission class, the @requires_permission decorator
and the storage guard.
"""
from unittest.mock import patch

import pytest
from django.contrib.auth.models import AnonymousUser
from django.db import DatabaseError, IntegrityError
from django.test import RequestFactory

from apps.breakglass.services import BreakGlassService
from apps.core.db import storage_guard
from apps.core.exceptions import ForbiddenError, StorageError
from apps.core.permissions import (
    RequiresPermission,
    get_required_permission,
    requires_permission,
)
from apps.rbac.catalog import Perm
from apps.rbac.policy import Via


@requires_permission(Perm.ADMIN_ROLES_MANAGE)
class ClassLevelView:
    def get(self, request):
        return 'listed'


class MethodLevelView:
    @requires_permission(Perm.AUDIT_LOGS_READ)
    def get(self, request):
        return 'read'

    @requires_permission(Perm.EMERGENCY_ACCESS_BREAKGLASS)
    def post(self, request):
        return 'issued'

    def put(self, request):
        return 'open'


@requires_permission(Perm.BEDS_ASSIGN_MANAGE)
class BedAssignmentView:
    def post(self, request):
        return 'assigned'


class ScopedView:
    required_permission = Perm.BILLING_UPDATE

    def get_resource_scope(self, request):
        return 'invoice-1'


def make_request(user, method='get', **headers):
    request = getattr(RequestFactory(), method)('/v1/anything', **headers)
    request.user = user
    request.request_id = 'req-1'
    return request


class TestRequiresPermissionDecorator:
    """@requires_permission."""

    def test_class_decorator_sets_attribute(self):
        assert ClassLevelView.required_permission == Perm.ADMIN_ROLES_MANAGE

    def test_method_decorator_keeps_behavior(self):
        view = MethodLevelView()
        assert view.get(None) == 'read'
        assert view.get.__name__ == 'get'

    def test_method_permission_wins_over_class(self):
        request = RequestFactory().post('/')
        assert get_required_permission(request, MethodLevelView()) == Perm.EMERGENCY_ACCESS_BREAKGLASS
        assert get_required_permission(RequestFactory().get('/'), MethodLevelView()) == Perm.AUDIT_LOGS_READ
        assert get_required_permission(RequestFactory().put('/'), MethodLevelView()) is None
        assert get_required_permission(RequestFactory().get('/'), ClassLevelView()) == Perm.ADMIN_ROLES_MANAGE


@pytest.mark.django_db
class TestRequiresPermissionClass:
    """RequiresPermission.has_permission."""

    def test_open_method_allowed(self, user):
        request = make_request(user, 'put')
        assert RequiresPermission().has_permission(request, MethodLevelView()) is True

    def test_anonymous_returns_false(self):
        request = make_request(AnonymousUser())
        assert RequiresPermission().has_permission(request, ClassLevelView()) is False

    def test_role_holder_allowed_with_decision(self, admin_user):
        request = make_request(admin_user)

        assert RequiresPermission().has_permission(request, ClassLevelView()) is True
        assert request.authz_decision.via == Via.ROLE
        assert request.authz_decision.permission == 'admin.roles.manage'

    def test_denial_raises_forbidden(self, nurse):
        with pytest.raises(ForbiddenError):
            RequiresPermission().has_permission(make_request(nurse), ClassLevelView())

    def test_header_token_consumed(self, nurse):
        issued = BreakGlassService.issue(nurse, Perm.BEDS_ASSIGN_MANAGE, 'code blue override')
        request = make_request(nurse, 'post', HTTP_X_BREAKGLASS_TOKEN=issued.token)

        assert RequiresPermission().has_permission(request, BedAssignmentView()) is True
        assert request.authz_decision.via == Via.BREAK_GLASS
        assert request.authz_decision.grant_id == str(issued.id)

    def test_view_scope_passed_to_resolver(self, nurse):
        BreakGlassService.issue(
            nurse, Perm.BILLING_UPDATE, 'code blue override', resource_scope='invoice-1',
        )
        request = make_request(nurse)

        assert RequiresPermission().has_permission(request, ScopedView()) is True
        assert request.authz_decision.resource_scope == 'invoice-1'


class TestStorageGuard:
    """storage_guard translates database failures."""

    def test_database_error_becomes_storage_error(self):
        with pytest.raises(StorageError) as exc_info:
            with storage_guard('role creation'):
                raise IntegrityError('constraint failed')

        assert exc_info.value.details == {'operation': 'role creation'}
        assert isinstance(exc_info.value.__cause__, DatabaseError)

    def test_other_errors_pass_through(self):
        with pytest.raises(KeyError):
            with storage_guard('role creation'):
                raise KeyError('missing')

    def test_failure_is_logged(self):
        with patch('apps.core.db.logger') as mock_logger:
            with pytest.raises(StorageError):
                with storage_guard('audit query'):
                    raise DatabaseError('gone')

        mock_logger.error.assert_called_once()
