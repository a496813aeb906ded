"""
Management command to seed canonical permissions.

Ensures every permission in the ``Perm`` registry exists in the catalog.
Also runs automatically after ``migrate``. This command is idempotent and
safe to re-run.
"""
from django.core.management.base import BaseCommand

from apps.rbac.catalog import PermissionCatalog, Perm
from apps.rbac.models import Permission


class Command(BaseCommand):
    help = 'Seed canonical permissions from the registry (idempotent)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--quiet-summary',
            action='store_true',
            help='Skip the per-category summary',
        )

    def handle(self, *args, **options):
        """Create all registry permissions that are missing."""
        self.stdout.write('Seeding canonical permissions...\n')

        before = Permission.objects.count()
        PermissionCatalog.sync_registry()
        created_count = Permission.objects.count() - before

        self.stdout.write(
            self.style.SUCCESS(
                f'✓ Seeding complete: {created_count} created, '
                f'{len(Perm) - created_count} already present'
            )
        )

        if options.get('quiet_summary'):
            return

        self.stdout.write('\n' + '=' * 70)
        self.stdout.write('Permissions Summary by Category:')
        self.stdout.write('=' * 70)

        categories = Permission.objects.values_list('category', flat=True).distinct().order_by('category')

        for category in categories:
            perms = Permission.objects.filter(category=category).order_by('name')
            self.stdout.write(f'\n{category.upper()}:')
            for perm in perms:
                self.stdout.write(f'  • {perm.name:<35} {perm.description}')

        self.stdout.write(f'\nTotal permissions: {Permission.objects.count()}')
