"""
Database helpers shared by the accountability services.
"""
import logging
from contextlib import contextmanager

from django.db import DatabaseError

from apps.core.exceptions import StorageError

logger = logging.getLogger(__name__)


@contextmanager
def storage_guard(operation):
    """
    Re-raise database failures as ``StorageError``.

    Wrap this *outside* any ``transaction.atomic`` block so the transaction
    has already rolled back by the time the error is translated.
    """
    try:
        yield
    except DatabaseError as exc:
        logger.error(
            f"Storage failure during {operation}",
            extra={'operation': operation, 'error': str(exc)},
            exc_info=True,
        )
        raise StorageError(
            f"Storage failure during {operation}",
            details={'operation': operation},
        ) from exc
