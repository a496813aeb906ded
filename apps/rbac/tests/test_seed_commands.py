"""
Tests for the seed_permissions and seed_hospital_roles management commands.
"""
from io import StringIO

import pytest
from django.core.management import call_command

from apps.audit.models import AuditEntry
from apps.rbac.catalog import Perm
from apps.rbac.management.commands.seed_hospital_roles import Command as SeedRolesCommand
from apps.rbac.models import Permission, Role
from apps.rbac.policy import PolicyResolver
from apps.rbac.services import RoleGraph


@pytest.mark.django_db
class TestSeedPermissions:
    """seed_permissions restores the registry without duplicating it."""

    def test_restores_deleted_registry_permission(self):
        Permission.objects.filter(name='emergency.alerts.view').delete()

        out = StringIO()
        call_command('seed_permissions', '--quiet-summary', stdout=out)

        assert Permission.objects.filter(name='emergency.alerts.view').exists()
        assert '1 created' in out.getvalue()

    def test_rerun_creates_nothing(self):
        before = Permission.objects.count()
        out = StringIO()
        call_command('seed_permissions', stdout=out)

        assert Permission.objects.count() == before
        assert 'Permissions Summary by Category' in out.getvalue()


@pytest.mark.django_db
class TestSeedHospitalRoles:
    """seed_hospital_roles creates the default system roles."""

    def test_creates_every_default_role(self):
        call_command('seed_hospital_roles', stdout=StringIO())

        names = set(Role.objects.system_roles().values_list('name', flat=True))
        assert names == set(SeedRolesCommand.DEFAULT_ROLES)

        for name, config in SeedRolesCommand.DEFAULT_ROLES.items():
            role = Role.objects.get(name=name)
            assert role.permission_names() == sorted(set(config['permissions']))

    def test_seeding_is_audited_as_system(self):
        call_command('seed_hospital_roles', stdout=StringIO())

        entries = AuditEntry.objects.filter(action='role.create')
        assert entries.count() == len(SeedRolesCommand.DEFAULT_ROLES)
        assert set(entries.values_list('actor_id', flat=True)) == {None}

    def test_rerun_adds_missing_permissions_only(self):
        call_command('seed_hospital_roles', stdout=StringIO())
        nurse = Role.objects.get(name='NURSE')
        RoleGraph.revoke_permissions(nurse, ['beds.read'])

        out = StringIO()
        call_command('seed_hospital_roles', stdout=out)

        assert 'beds.read' in nurse.permission_names()
        assert Role.objects.filter(name='NURSE').count() == 1
        assert 'Updated: NURSE' in out.getvalue()

    def test_seeded_nurse_cannot_update_billing(self, make_user):
        call_command('seed_hospital_roles', stdout=StringIO())
        principal = make_user()
        RoleGraph.assign_role(principal, Role.objects.get(name='NURSE'))

        assert PolicyResolver.authorize(principal, Perm.NURSING_VITALS_RECORD).allowed
        assert not PolicyResolver.authorize(principal, Perm.BILLING_UPDATE).allowed
