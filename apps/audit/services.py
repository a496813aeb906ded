"""
Audit trail service.

Implements:
- AuditContext: explicit attribution (actor, source IP, request id)
- AuditTrail: append-only record and newest-first query

``record`` is fail-closed. A storage failure raises ``AuditWriteError``
instead of returning quietly, so a privileged operation wrapped in the same
transaction is rolled back rather than left unaudited.
"""
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from django.db import DatabaseError, transaction
from django.db.models import Max
from django.utils import timezone

from apps.audit.models import AuditEntry
from apps.core.conf import accountability_setting
from apps.core.exceptions import AuditWriteError, InvalidPaginationError
from apps.core.security_logger import SecurityLogger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditContext:
    """
    Who is acting and from where.

    Passed explicitly into every authorize/record call; the core never looks
    up an ambient session.
    """

    actor_id: Optional[str] = None
    ip_address: Optional[str] = None
    request_id: Optional[str] = None
    user_agent: str = ''

    @classmethod
    def system(cls):
        """Context for actions performed by the system itself."""
        return cls()

    @classmethod
    def for_actor(cls, actor, **kwargs):
        """Context for a user instance or raw actor id."""
        if actor is None:
            return cls(**kwargs)
        actor_id = getattr(actor, 'pk', actor)
        return cls(actor_id=str(actor_id), **kwargs)

    @classmethod
    def from_request(cls, request):
        """Build a context from a Django/DRF request at the HTTP boundary."""
        user = getattr(request, 'user', None)
        actor_id = None
        if user is not None and getattr(user, 'is_authenticated', False):
            actor_id = str(user.pk)
        return cls(
            actor_id=actor_id,
            ip_address=get_client_ip(request),
            request_id=getattr(request, 'request_id', None),
            user_agent=request.META.get('HTTP_USER_AGENT', ''),
        )


def get_client_ip(request):
    """Extract client IP from request."""
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        return x_forwarded_for.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


class _MonotonicClock:
    """
    Hands out timestamps that never go backwards within this process.

    Across processes the lower bound comes from the caller: ``record`` passes
    the newest committed timestamp as ``floor``, so an entry never sorts before
    one already stored by another worker whose clock runs ahead. Entries
    inserted concurrently by different workers are ordered by their own
    clocks, with ties broken by id.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._last = None

    def now(self, floor=None):
        with self._lock:
            current = timezone.now()
            if self._last is not None and current < self._last:
                current = self._last
            if floor is not None and current < floor:
                current = floor
            self._last = current
            return current


_clock = _MonotonicClock()


class AuditTrail:
    """
    Append-only, queryable log of security-relevant events.
    """

    @classmethod
    def record(
        cls,
        action: str,
        resource_type: str,
        *,
        resource_id: Any = None,
        before: Optional[Dict[str, Any]] = None,
        after: Optional[Dict[str, Any]] = None,
        metadata: Optional[Dict[str, Any]] = None,
        context: Optional[AuditContext] = None,
    ) -> AuditEntry:
        """
        Append an audit entry.

        Args:
            action: Namespaced action (e.g., 'breakglass.use')
            resource_type: Type of resource acted upon
            resource_id: Identifier of the resource, if any
            before: State snapshot before the change
            after: State snapshot after the change
            metadata: Additional context
            context: Actor and request attribution

        Returns:
            The persisted AuditEntry

        Raises:
            AuditWriteError: If the entry could not be persisted
        """
        context = context or AuditContext.system()

        try:
            with transaction.atomic():
                latest = AuditEntry.objects.aggregate(latest=Max('timestamp'))['latest']
                entry = AuditEntry.objects.create(
                    timestamp=_clock.now(floor=latest),
                    actor_id=context.actor_id,
                    action=action,
                    resource_type=resource_type,
                    resource_id=str(resource_id) if resource_id is not None else None,
                    before=before,
                    after=after,
                    metadata=metadata or {},
                    ip_address=context.ip_address,
                    request_id=context.request_id,
                    user_agent=context.user_agent or '',
                )
        except DatabaseError as exc:
            SecurityLogger.log_audit_write_failure(action, resource_type, exc)
            raise AuditWriteError(
                f"Failed to record audit entry '{action}'",
                details={'action': action, 'resource_type': resource_type},
            ) from exc

        logger.debug(
            f"Audit entry recorded: {action}",
            extra={
                'audit_entry_id': entry.pk,
                'action': action,
                'resource_type': resource_type,
                'request_id': context.request_id,
            }
        )
        return entry

    @classmethod
    def _filtered(
        cls,
        resource_type=None,
        resource_id=None,
        actor_id=None,
        action_prefix=None,
        since=None,
        until=None,
    ):
        qs = AuditEntry.objects.all()
        if resource_type:
            qs = qs.for_resource(resource_type, resource_id)
        elif resource_id is not None:
            qs = qs.filter(resource_id=str(resource_id))
        if actor_id is not None:
            qs = qs.for_actor(actor_id)
        if action_prefix:
            qs = qs.by_action_prefix(action_prefix)
        if since is not None:
            qs = qs.filter(timestamp__gte=since)
        if until is not None:
            qs = qs.filter(timestamp__lte=until)
        return qs

    @classmethod
    def query(
        cls,
        resource_type: Optional[str] = None,
        resource_id: Any = None,
        actor_id: Any = None,
        action_prefix: Optional[str] = None,
        since=None,
        until=None,
        take: Optional[int] = None,
        skip: int = 0,
    ) -> List[AuditEntry]:
        """
        Query audit entries newest-first.

        ``take`` is clamped to ``AUDIT_MAX_TAKE``; ``take < 1`` or
        ``skip < 0`` raise ``InvalidPaginationError``.
        """
        if take is None:
            take = accountability_setting('AUDIT_DEFAULT_TAKE')
        if take < 1:
            raise InvalidPaginationError("take must be at least 1", details={'take': take})
        if skip < 0:
            raise InvalidPaginationError("skip must not be negative", details={'skip': skip})
        take = min(take, accountability_setting('AUDIT_MAX_TAKE'))

        qs = cls._filtered(
            resource_type=resource_type,
            resource_id=resource_id,
            actor_id=actor_id,
            action_prefix=action_prefix,
            since=since,
            until=until,
        )
        return list(qs.order_by('-timestamp', '-id')[skip:skip + take])

    @classmethod
    def count(cls, **filters) -> int:
        """Number of entries matching the same filters as ``query``."""
        return cls._filtered(**filters).count()
