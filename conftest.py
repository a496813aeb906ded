"""
Pytest configuration and fixtures.

The permission catalog is synced from the ``Perm`` registry by the
``post_migrate`` handler while the test database is created, so every test
starts with the full canonical catalog.
"""
import uuid

import pytest
from django.conf import settings


def pytest_configure(config):
    """Configure Django settings for tests."""
    # The test client speaks plain HTTP
    settings.SECURE_SSL_REDIRECT = False


@pytest.fixture
def api_client():
    """Return DRF API client."""
    from rest_framework.test import APIClient
    return APIClient()


@pytest.fixture
def make_user(db):
    """Factory for users with unique usernames."""
    from django.contrib.auth import get_user_model
    User = get_user_model()

    def _make_user(username=None, **kwargs):
        username = username or f"user-{uuid.uuid4().hex[:10]}"
        return User.objects.create_user(
            username=username,
            password='testpass123',
            **kwargs
        )

    return _make_user


@pytest.fixture
def user(make_user):
    """A principal with no roles."""
    return make_user('clinician')


@pytest.fixture
def other_user(make_user):
    """A second principal with no roles."""
    return make_user('colleague')


@pytest.fixture
def make_role(db):
    """Factory for roles created through the role graph."""
    from apps.audit.services import AuditContext
    from apps.rbac.services import RoleGraph

    def _make_role(name, permissions=()):
        return RoleGraph.create_role(name, permissions, context=AuditContext.system())

    return _make_role


@pytest.fixture
def nurse_role(make_role):
    """NURSE role as seeded for the hospital."""
    return make_role('NURSE', [
        'patient.read', 'emr.read', 'emr.update',
        'nursing.vitals.record', 'nursing.mar.manage',
        'nursing.intake.output.record', 'nursing.orders.read',
        'nursing.notes.write', 'prescription.read',
        'lab.result.read', 'beds.status.read', 'beds.read',
        'emergency.alerts.view', 'emergency.access.breakglass',
    ])


@pytest.fixture
def nurse(make_user, nurse_role):
    """A principal holding the NURSE role."""
    from apps.rbac.services import RoleGraph
    principal = make_user('nurse')
    RoleGraph.assign_role(principal, nurse_role)
    return principal


@pytest.fixture
def admin_role(make_role):
    """Administrator role covering the administrative API."""
    return make_role('ADMIN', [
        'admin.roles.manage', 'admin.permissions.manage',
        'audit.logs.read', 'emergency.access.breakglass',
    ])


@pytest.fixture
def admin_user(make_user, admin_role):
    """A principal holding the ADMIN role."""
    from apps.rbac.services import RoleGraph
    principal = make_user('administrator')
    RoleGraph.assign_role(principal, admin_role)
    return principal


@pytest.fixture
def admin_client(api_client, admin_user):
    """API client authenticated as the administrator via JWT."""
    from apps.core.authentication import generate_jwt
    api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {generate_jwt(admin_user)}')
    return api_client


@pytest.fixture
def auth_client(db):
    """Factory for API clients authenticated as a given user via JWT."""
    from rest_framework.test import APIClient
    from apps.core.authentication import generate_jwt

    def _auth_client(principal):
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f'Bearer {generate_jwt(principal)}')
        return client

    return _auth_client
