"""
Management command to seed the default hospital roles.

Creates the eight system roles with their permission sets. Existing roles
gain any missing permissions; nothing is removed. Idempotent.
"""
from django.core.management.base import BaseCommand
from django.db import transaction

from apps.audit.services import AuditContext
from apps.rbac.catalog import PermissionCatalog
from apps.rbac.models import Role
from apps.rbac.services import RoleGraph


class Command(BaseCommand):
    help = 'Seed default hospital roles (idempotent)'

    # Default role definitions with their permission mappings
    DEFAULT_ROLES = {
        'ADMINISTRATOR': {
            'description': 'Full system access, user & configuration management',
            'permissions': [
                'admin.users.create', 'admin.users.read', 'admin.users.update', 'admin.users.delete',
                'admin.roles.manage', 'admin.permissions.manage', 'admin.config.manage',
                'audit.logs.read', 'audit.logs.export',
                'patient.read', 'emr.read', 'prescription.read', 'lab.order.read', 'lab.result.read',
                'billing.invoice.read', 'nursing.orders.read', 'surgery.schedule.read',
                'beds.status.read', 'beds.assign.manage', 'inventory.view',
            ],
        },
        'RECEPTIONIST': {
            'description': 'Patient registration, scheduling, bed management',
            'permissions': [
                'patient.create', 'patient.read', 'patient.update', 'patient.history.read',
                'beds.read', 'beds.status.read', 'beds.assign.manage',
            ],
        },
        'DOCTOR': {
            'description': 'Clinical care, EMR, prescriptions, lab orders, surgery',
            'permissions': [
                'patient.read', 'patient.history.read',
                'emr.create', 'emr.read', 'emr.update', 'emr.assess', 'emr.diagnose',
                'emr.discharge.approve', 'emr.history.read',
                'prescription.create', 'prescription.read', 'prescription.approve',
                'lab.order.create', 'lab.order.read', 'lab.result.read',
                'surgery.schedule.create', 'surgery.schedule.read', 'surgery.schedule.update',
                'surgery.notes.read',
                'emergency.access.breakglass', 'emergency.alerts.view',
            ],
        },
        'NURSE': {
            'description': 'Vitals, MAR, nursing assessments, order viewing',
            'permissions': [
                'patient.read', 'patient.read.own',
                'emr.read', 'emr.history.read',
                'prescription.read',
                'nursing.vitals.record', 'nursing.mar.manage',
                'nursing.intake.output.record', 'nursing.orders.read', 'nursing.notes.write',
                'beds.read',
            ],
        },
        'PHARMACIST': {
            'description': 'Drug dispensing, inventory, stock management',
            'permissions': [
                'patient.read',
                'prescription.read', 'prescription.dispense',
                'pharmacy.drug.read', 'pharmacy.inventory.manage',
                'pharmacy.stock.manage', 'pharmacy.dispensing.process',
                'pharmacy.expiry.monitor',
            ],
        },
        'LAB_TECH': {
            'description': 'Lab order processing, sample tracking, result entry',
            'permissions': [
                'patient.read',
                'lab.order.read', 'lab.sample.track', 'lab.result.enter',
                'lab.result.read', 'lab.report.upload',
            ],
        },
        'BILLING_OFFICER': {
            'description': 'Invoicing, claims, discount approval',
            'permissions': [
                'patient.read',
                'billing.invoice.create', 'billing.invoice.read', 'billing.update',
                'billing.claim.manage', 'billing.discount.approve',
                'audit.logs.read',
            ],
        },
        'PATIENT': {
            'description': 'Read-only access to own health records',
            'permissions': [
                'patient.read.own',
                'emr.read.own',
                'prescription.read.own',
            ],
        },
    }

    def handle(self, *args, **options):
        """Seed every default role."""
        self.stdout.write('Seeding hospital roles...\n')

        PermissionCatalog.sync_registry()
        context = AuditContext.system()

        created_count = 0
        updated_count = 0

        with transaction.atomic():
            for role_name, role_config in self.DEFAULT_ROLES.items():
                role = Role.objects.by_name(role_name)

                if role is None:
                    RoleGraph.create_role(
                        role_name,
                        role_config['permissions'],
                        description=role_config['description'],
                        context=context,
                        is_system=True,
                    )
                    created_count += 1
                    self.stdout.write(self.style.SUCCESS(f'✓ Created: {role_name}'))
                    continue

                missing = set(role_config['permissions']) - set(role.permission_names())
                if missing:
                    RoleGraph.assign_permissions(role, sorted(missing), context=context)
                    updated_count += 1
                    self.stdout.write(
                        self.style.WARNING(f'↻ Updated: {role_name} (+{len(missing)} permissions)')
                    )
                else:
                    self.stdout.write(self.style.HTTP_INFO(f'  Exists: {role_name}'))

        self.stdout.write(
            self.style.SUCCESS(
                f'\n✓ Seeding complete: {created_count} roles created, {updated_count} roles updated'
            )
        )
