"""
Tests for the policy resolver.

Tests:
- Resolution order (role, direct grant, break-glass, deny)
- Break-glass consumption through authorize
- Denial logging and optional denial auditing
"""
from datetime import timedelta
from unittest.mock import patch

import pytest
from django.utils import timezone

from apps.audit.models import AuditEntry
from apps.audit.services import AuditContext
from apps.breakglass.models import BreakGlassGrant, hash_token
from apps.breakglass.services import BreakGlassService
from apps.core.exceptions import ForbiddenError, UnknownPermissionError
from apps.core.security_logger import SecurityLogger
from apps.rbac.catalog import Perm
from apps.rbac.models import Permission
from apps.rbac.policy import Decision, PolicyResolver, Via
from apps.rbac.services import RoleGraph


@pytest.mark.django_db
class TestResolutionOrder:
    """PolicyResolver.authorize resolves role, direct grant, then break-glass."""

    def test_allowed_via_role(self, nurse):
        decision = PolicyResolver.authorize(nurse, Perm.PATIENT_READ)

        assert decision.allowed
        assert decision.via is Via.ROLE
        assert decision.principal_id == str(nurse.pk)
        assert decision.permission == 'patient.read'
        assert decision.grant_id is None

    def test_allowed_via_direct_grant(self, user):
        RoleGraph.grant_direct(user, Perm.INVENTORY_VIEW)

        decision = PolicyResolver.authorize(user, 'inventory.view')

        assert decision.via is Via.DIRECT_GRANT

    def test_denied_without_any_grant(self, user):
        decision = PolicyResolver.authorize(user, Perm.BILLING_UPDATE, 'invoice-1')

        assert not decision
        assert decision.via is None
        assert decision.resource_scope == 'invoice-1'

    def test_anonymous_principal_denied(self):
        decision = PolicyResolver.authorize(None, Perm.PATIENT_READ)
        assert decision == Decision(False, None, None, 'patient.read')

    def test_unknown_permission_fails_fast(self, nurse):
        with pytest.raises(UnknownPermissionError):
            PolicyResolver.authorize(nurse, 'patient.teleport')

    def test_accepts_principal_id(self, nurse):
        assert PolicyResolver.authorize(nurse.pk, Perm.EMR_READ).allowed

    def test_role_wins_over_break_glass_grant(self, nurse):
        issued = BreakGlassService.issue(nurse, Perm.PATIENT_READ, 'code blue override')

        decision = PolicyResolver.authorize(nurse, Perm.PATIENT_READ, token=issued.token)

        assert decision.via is Via.ROLE
        issued.grant.refresh_from_db()
        assert issued.grant.used is False

    def test_role_removal_denies_next_check(self, nurse, nurse_role):
        assert PolicyResolver.authorize(nurse, Perm.PATIENT_READ).allowed

        RoleGraph.remove_role(nurse, nurse_role)

        assert not PolicyResolver.authorize(nurse, Perm.PATIENT_READ).allowed

    def test_require_raises_forbidden(self, user):
        with pytest.raises(ForbiddenError) as exc_info:
            PolicyResolver.require(user, Perm.BILLING_UPDATE)

        assert exc_info.value.public_message() == 'Insufficient permission'
        assert exc_info.value.details['permission'] == 'billing.update'

    def test_require_returns_decision(self, nurse):
        decision = PolicyResolver.require(nurse, Perm.EMR_UPDATE)
        assert decision.via is Via.ROLE


@pytest.mark.django_db
class TestBreakGlassThroughResolver:
    """Break-glass grants authorize exactly one call."""

    def test_nurse_billing_override(self, nurse, admin_user):
        """A nurse without billing rights gets one billing update in an emergency."""
        assert not PolicyResolver.authorize(nurse, Perm.BILLING_UPDATE).allowed

        issued = BreakGlassService.issue(
            nurse, Perm.BILLING_UPDATE, 'code blue override', ttl=15, issued_by=admin_user,
        )
        context = AuditContext(actor_id=str(nurse.pk), request_id='req-1')

        first = PolicyResolver.authorize(
            nurse, Perm.BILLING_UPDATE, token=issued.token, context=context,
        )
        second = PolicyResolver.authorize(
            nurse, Perm.BILLING_UPDATE, token=issued.token, context=context,
        )

        assert first.allowed
        assert first.is_break_glass
        assert first.grant_id == str(issued.id)
        assert not second.allowed

        use = AuditEntry.objects.get(action='breakglass.use')
        assert use.resource_id == str(issued.id)
        assert use.actor_id == str(nurse.pk)
        assert use.request_id == 'req-1'
        assert use.metadata['justification'] == 'code blue override'
        assert use.metadata['permission'] == 'billing.update'

        reject = AuditEntry.objects.get(action='breakglass.reject')
        assert reject.metadata['reason'] == 'already_used'

    def test_tokenless_consumption_of_matching_grant(self, nurse):
        issued = BreakGlassService.issue(nurse, Perm.BILLING_UPDATE, 'code blue override')

        first = PolicyResolver.authorize(nurse, Perm.BILLING_UPDATE)
        second = PolicyResolver.authorize(nurse, Perm.BILLING_UPDATE)

        assert first.via is Via.BREAK_GLASS
        assert first.grant_id == str(issued.id)
        assert not second.allowed

    def test_invalid_token_collapses_to_denied(self, nurse):
        decision = PolicyResolver.authorize(nurse, Perm.BILLING_UPDATE, token='made-up')

        assert not decision.allowed
        reject = AuditEntry.objects.get(action='breakglass.reject')
        assert reject.metadata['reason'] == 'not_found'

    def test_token_for_other_principal_is_not_consumed(self, nurse, user):
        issued = BreakGlassService.issue(nurse, Perm.BILLING_UPDATE, 'code blue override')

        decision = PolicyResolver.authorize(user, Perm.BILLING_UPDATE, token=issued.token)

        assert not decision.allowed
        assert BreakGlassGrant.objects.get(pk=issued.id).used is False

    def test_scoped_grant_only_matches_its_resource(self, nurse):
        BreakGlassService.issue(
            nurse, Perm.BILLING_UPDATE, 'code blue override', resource_scope='invoice-9',
        )

        assert not PolicyResolver.authorize(nurse, Perm.BILLING_UPDATE, 'invoice-1').allowed
        assert not PolicyResolver.authorize(nurse, Perm.BILLING_UPDATE).allowed
        assert PolicyResolver.authorize(nurse, Perm.BILLING_UPDATE, 'invoice-9').allowed


@pytest.mark.django_db
class TestDenialAuditing:
    """Denials are logged, and audited only when configured."""

    def test_denials_not_audited_by_default(self, user):
        PolicyResolver.authorize(user, Perm.BILLING_UPDATE)
        assert not AuditEntry.objects.filter(action='authz.deny').exists()

    def test_denials_audited_when_enabled(self, settings, user):
        settings.ACCOUNTABILITY = {'AUDIT_DENIALS': True}

        PolicyResolver.authorize(
            user, Perm.BILLING_UPDATE, 'invoice-1', context=AuditContext(actor_id=str(user.pk)),
        )

        entry = AuditEntry.objects.get(action='authz.deny')
        assert entry.resource_type == 'Permission'
        assert entry.resource_id == 'billing.update'
        assert entry.metadata == {'principal_id': str(user.pk), 'resource_scope': 'invoice-1'}

    def test_denial_is_logged_to_security_logger(self, user):
        with patch.object(SecurityLogger, 'log_permission_denied') as log_denied:
            PolicyResolver.authorize(user, Perm.BILLING_UPDATE, 'invoice-1')

        log_denied.assert_called_once_with(
            principal_id=str(user.pk),
            permission='billing.update',
            resource_scope='invoice-1',
            request_id=None,
        )


@pytest.mark.django_db
class TestPrivilegedPermissions:
    """Administering the core is never reachable through break-glass."""

    def test_stored_admin_grant_is_never_consumed(self, nurse):
        now = timezone.now()
        grant = BreakGlassGrant.objects.create(
            token_hash=hash_token('legacy-admin-token'),
            principal=nurse,
            permission=Permission.objects.get(name='admin.roles.manage'),
            issued_at=now,
            expires_at=now + timedelta(minutes=15),
            justification='code blue override',
        )

        with_token = PolicyResolver.authorize(
            nurse, Perm.ADMIN_ROLES_MANAGE, token='legacy-admin-token',
        )
        without_token = PolicyResolver.authorize(nurse, Perm.ADMIN_ROLES_MANAGE)

        assert not with_token.allowed
        assert not without_token.allowed
        assert BreakGlassGrant.objects.get(pk=grant.pk).used is False
        assert not AuditEntry.objects.filter(action='breakglass.use').exists()

    def test_role_still_grants_privileged_permission(self, admin_user):
        decision = PolicyResolver.authorize(admin_user, Perm.ADMIN_ROLES_MANAGE)
        assert decision.via is Via.ROLE


@pytest.mark.django_db
class TestMalformedPrincipal:
    """A principal id that cannot name a user is denied, not an error."""

    @pytest.mark.parametrize('principal', ['not-a-user', '', '12abc'])
    def test_malformed_id_is_denied(self, principal):
        decision = PolicyResolver.authorize(principal, Perm.BEDS_READ)

        assert not decision.allowed
        assert decision.principal_id == principal

    def test_malformed_id_require_raises_forbidden(self):
        with pytest.raises(ForbiddenError):
            PolicyResolver.require('not-a-user', Perm.BEDS_READ)

    def test_unknown_numeric_id_is_denied(self):
        assert not PolicyResolver.authorize(987654, Perm.BEDS_READ).allowed
