"""
RBAC signals.

Keeps the permission catalog in sync with the ``Perm`` registry after every
``migrate`` run.
"""
import logging

from django.db.models.signals import post_migrate
from django.dispatch import receiver

logger = logging.getLogger(__name__)


@receiver(post_migrate, dispatch_uid='rbac_sync_permission_registry')
def sync_permission_registry(sender, app_config=None, using='default', **kwargs):
    """Ensure every registry permission exists once the rbac tables are migrated."""
    if app_config is None or app_config.label != 'rbac':
        return

    # Import here to avoid loading models before the app registry is ready
    from apps.rbac.catalog import PermissionCatalog

    permissions = PermissionCatalog.sync_registry()
    logger.debug(f"Permission registry synced ({len(permissions)} permissions)")
