"""
Tests for the audit trail.

Tests:
- Recording with explicit attribution
- Append-only enforcement
- Newest-first queries, filters and take/skip handling
- Fail-closed writes
"""
from datetime import timedelta
from unittest.mock import patch

import pytest
from django.db import DatabaseError
from django.test import RequestFactory
from django.utils import timezone

from apps.audit.models import AuditEntry
from apps.audit.services import AuditContext, AuditTrail, _MonotonicClock, get_client_ip
from apps.core.exceptions import (
    AuditWriteError,
    ImmutableAuditEntryError,
    InvalidPaginationError,
)
from apps.core.security_logger import SecurityLogger


def record_many(count, action='test.event', **kwargs):
    return [
        AuditTrail.record(action, 'Thing', resource_id=i, **kwargs)
        for i in range(count)
    ]


@pytest.mark.django_db
class TestRecord:
    """AuditTrail.record."""

    def test_record_persists_every_field(self):
        context = AuditContext(
            actor_id='42', ip_address='10.0.0.7', request_id='req-9', user_agent='ward-terminal',
        )

        entry = AuditTrail.record(
            'role.create', 'Role',
            resource_id='abc',
            before=None,
            after={'name': 'NURSE'},
            metadata={'source': 'test'},
            context=context,
        )

        stored = AuditEntry.objects.get(pk=entry.pk)
        assert stored.actor_id == '42'
        assert stored.action == 'role.create'
        assert stored.resource_type == 'Role'
        assert stored.resource_id == 'abc'
        assert stored.after == {'name': 'NURSE'}
        assert stored.metadata == {'source': 'test'}
        assert stored.ip_address == '10.0.0.7'
        assert stored.request_id == 'req-9'
        assert stored.user_agent == 'ward-terminal'
        assert stored.timestamp is not None

    def test_system_context_has_no_actor(self):
        entry = AuditTrail.record('seed.run', 'System')
        assert entry.actor_id is None
        assert entry.metadata == {}

    def test_resource_id_stored_as_string(self):
        entry = AuditTrail.record('thing.touch', 'Thing', resource_id=17)
        assert entry.resource_id == '17'

    def test_datetimes_in_snapshots_are_serialized(self):
        expires = timezone.now()
        entry = AuditTrail.record('thing.touch', 'Thing', after={'expires_at': expires})

        stored = AuditEntry.objects.get(pk=entry.pk)
        assert stored.after['expires_at'].startswith(str(expires.year))

    def test_for_actor_accepts_instance_or_id(self, user):
        assert AuditContext.for_actor(user).actor_id == str(user.pk)
        assert AuditContext.for_actor(7).actor_id == '7'
        assert AuditContext.for_actor(None).actor_id is None


@pytest.mark.django_db
class TestImmutability:
    """Audit entries can never be updated or deleted."""

    def test_save_existing_entry_raises(self):
        entry = AuditTrail.record('thing.touch', 'Thing')
        entry.action = 'thing.forged'

        with pytest.raises(ImmutableAuditEntryError):
            entry.save()

        assert AuditEntry.objects.get(pk=entry.pk).action == 'thing.touch'

    def test_delete_entry_raises(self):
        entry = AuditTrail.record('thing.touch', 'Thing')

        with pytest.raises(ImmutableAuditEntryError):
            entry.delete()

        assert AuditEntry.objects.filter(pk=entry.pk).exists()

    def test_queryset_update_raises(self):
        AuditTrail.record('thing.touch', 'Thing')

        with pytest.raises(ImmutableAuditEntryError):
            AuditEntry.objects.filter(action='thing.touch').update(action='thing.forged')

    def test_queryset_delete_raises(self):
        AuditTrail.record('thing.touch', 'Thing')

        with pytest.raises(ImmutableAuditEntryError):
            AuditEntry.objects.all().delete()

        assert AuditEntry.objects.count() == 1


@pytest.mark.django_db
class TestQuery:
    """AuditTrail.query ordering, filtering and pagination."""

    def test_newest_first(self):
        entries = record_many(3)

        result = AuditTrail.query()

        assert [e.pk for e in result] == [e.pk for e in reversed(entries)]

    def test_take_and_skip(self):
        entries = record_many(5)
        newest_first = [e.pk for e in reversed(entries)]

        assert [e.pk for e in AuditTrail.query(take=2)] == newest_first[:2]
        assert [e.pk for e in AuditTrail.query(take=2, skip=2)] == newest_first[2:4]
        assert AuditTrail.query(take=2, skip=10) == []

    def test_take_is_clamped(self, settings):
        settings.ACCOUNTABILITY = {'AUDIT_MAX_TAKE': 3, 'AUDIT_DEFAULT_TAKE': 2}
        record_many(5)

        assert len(AuditTrail.query(take=100)) == 3
        assert len(AuditTrail.query()) == 2

    @pytest.mark.parametrize('take,skip', [(0, 0), (-1, 0), (5, -1)])
    def test_invalid_pagination(self, take, skip):
        with pytest.raises(InvalidPaginationError):
            AuditTrail.query(take=take, skip=skip)

    def test_filter_by_resource(self):
        AuditTrail.record('role.create', 'Role', resource_id='r1')
        AuditTrail.record('role.create', 'Role', resource_id='r2')
        AuditTrail.record('breakglass.issue', 'BreakGlassGrant', resource_id='r1')

        assert len(AuditTrail.query(resource_type='Role')) == 2
        [entry] = AuditTrail.query(resource_type='Role', resource_id='r1')
        assert entry.action == 'role.create'
        assert len(AuditTrail.query(resource_id='r1')) == 2

    def test_filter_by_actor_and_action_prefix(self):
        AuditTrail.record('breakglass.issue', 'BreakGlassGrant', context=AuditContext(actor_id='1'))
        AuditTrail.record('breakglass.use', 'BreakGlassGrant', context=AuditContext(actor_id='2'))
        AuditTrail.record('role.create', 'Role', context=AuditContext(actor_id='2'))

        assert {e.action for e in AuditTrail.query(action_prefix='breakglass.')} == {
            'breakglass.issue', 'breakglass.use',
        }
        assert {e.action for e in AuditTrail.query(actor_id=2)} == {'breakglass.use', 'role.create'}
        assert AuditTrail.count(actor_id='2', action_prefix='role.') == 1

    def test_filter_by_time_range(self):
        AuditTrail.record('thing.touch', 'Thing')
        now = timezone.now()

        assert len(AuditTrail.query(since=now - timedelta(minutes=5))) == 1
        assert AuditTrail.query(until=now - timedelta(minutes=5)) == []
        assert AuditTrail.query(since=now + timedelta(days=365)) == []


@pytest.mark.django_db
class TestFailClosed:
    """A failed write raises instead of returning silently."""

    def test_storage_failure_raises_audit_write_error(self):
        with patch.object(AuditEntry.objects, 'create', side_effect=DatabaseError('disk full')):
            with patch.object(SecurityLogger, 'log_audit_write_failure') as log_failure:
                with pytest.raises(AuditWriteError) as exc_info:
                    AuditTrail.record('role.create', 'Role')

        assert exc_info.value.details == {'action': 'role.create', 'resource_type': 'Role'}
        assert exc_info.value.status_code == 503
        log_failure.assert_called_once()
        assert AuditEntry.objects.count() == 0


class TestMonotonicClock:
    """Timestamps never go backwards."""

    def test_clock_does_not_go_backwards(self):
        clock = _MonotonicClock()
        later = timezone.now() + timedelta(hours=2)
        earlier = later - timedelta(hours=1)

        with patch('apps.audit.services.timezone.now', side_effect=[later, earlier]):
            first = clock.now()
            second = clock.now()

        assert first == later
        assert second == later

    def test_floor_raises_fresh_clock(self):
        clock = _MonotonicClock()
        floor = timezone.now() + timedelta(hours=1)

        assert clock.now(floor=floor) == floor
        assert clock.now() >= floor

    @pytest.mark.django_db
    def test_entry_never_precedes_one_stored_by_a_faster_clock(self):
        ahead = timezone.now() + timedelta(hours=1)
        stored = AuditEntry.objects.create(
            timestamp=ahead, action='test.other_worker', resource_type='Thing',
        )

        with patch('apps.audit.services._clock', _MonotonicClock()):
            entry = AuditTrail.record('test.event', 'Thing')

        assert entry.timestamp >= ahead
        assert [e.pk for e in AuditTrail.query(take=2)] == [entry.pk, stored.pk]


class TestRequestContext:
    """AuditContext.from_request attribution."""

    def test_from_request_reads_forwarded_ip_and_request_id(self):
        request = RequestFactory().get(
            '/v1/roles',
            HTTP_X_FORWARDED_FOR='203.0.113.5, 10.0.0.1',
            HTTP_USER_AGENT='ward-terminal',
        )
        request.request_id = 'req-77'

        context = AuditContext.from_request(request)

        assert context.actor_id is None
        assert context.ip_address == '203.0.113.5'
        assert context.request_id == 'req-77'
        assert context.user_agent == 'ward-terminal'

    def test_client_ip_falls_back_to_remote_addr(self):
        request = RequestFactory().get('/', REMOTE_ADDR='192.0.2.10')
        assert get_client_ip(request) == '192.0.2.10'
