"""
Permission catalog and the registry of permissions the application checks.

``Perm`` is the closed set of permission identifiers referenced from code.
It is synced into the catalog at migrate time, so call sites use enum
members instead of string literals, and an unknown name fails fast with
``UnknownPermissionError`` rather than quietly denying forever.
"""
import enum
import logging
from typing import Iterable, List, Union

from django.db import transaction

from apps.core.db import storage_guard
from apps.core.exceptions import AdministrativeInputError, UnknownPermissionError
from apps.rbac.models import Permission

logger = logging.getLogger(__name__)


class Perm(str, enum.Enum):
    """Registry of permission identifiers checked by the application."""

    # Administration
    ADMIN_USERS_CREATE = 'admin.users.create'
    ADMIN_USERS_READ = 'admin.users.read'
    ADMIN_USERS_UPDATE = 'admin.users.update'
    ADMIN_USERS_DELETE = 'admin.users.delete'
    ADMIN_ROLES_MANAGE = 'admin.roles.manage'
    ADMIN_PERMISSIONS_MANAGE = 'admin.permissions.manage'
    ADMIN_CONFIG_MANAGE = 'admin.config.manage'

    # Audit
    AUDIT_LOGS_READ = 'audit.logs.read'
    AUDIT_LOGS_EXPORT = 'audit.logs.export'

    # Patients
    PATIENT_CREATE = 'patient.create'
    PATIENT_READ = 'patient.read'
    PATIENT_READ_OWN = 'patient.read.own'
    PATIENT_UPDATE = 'patient.update'
    PATIENT_DELETE = 'patient.delete'
    PATIENT_HISTORY_READ = 'patient.history.read'

    # Electronic medical records
    EMR_CREATE = 'emr.create'
    EMR_READ = 'emr.read'
    EMR_READ_OWN = 'emr.read.own'
    EMR_UPDATE = 'emr.update'
    EMR_ASSESS = 'emr.assess'
    EMR_DIAGNOSE = 'emr.diagnose'
    EMR_DISCHARGE_APPROVE = 'emr.discharge.approve'
    EMR_HISTORY_READ = 'emr.history.read'

    # Prescriptions
    PRESCRIPTION_CREATE = 'prescription.create'
    PRESCRIPTION_READ = 'prescription.read'
    PRESCRIPTION_READ_OWN = 'prescription.read.own'
    PRESCRIPTION_DISPENSE = 'prescription.dispense'
    PRESCRIPTION_APPROVE = 'prescription.approve'

    # Laboratory
    LAB_ORDER_CREATE = 'lab.order.create'
    LAB_ORDER_READ = 'lab.order.read'
    LAB_SAMPLE_TRACK = 'lab.sample.track'
    LAB_RESULT_ENTER = 'lab.result.enter'
    LAB_RESULT_READ = 'lab.result.read'
    LAB_REPORT_UPLOAD = 'lab.report.upload'

    # Pharmacy
    PHARMACY_DRUG_READ = 'pharmacy.drug.read'
    PHARMACY_INVENTORY_MANAGE = 'pharmacy.inventory.manage'
    PHARMACY_STOCK_MANAGE = 'pharmacy.stock.manage'
    PHARMACY_DISPENSING_PROCESS = 'pharmacy.dispensing.process'
    PHARMACY_EXPIRY_MONITOR = 'pharmacy.expiry.monitor'

    # Nursing
    NURSING_VITALS_RECORD = 'nursing.vitals.record'
    NURSING_MAR_MANAGE = 'nursing.mar.manage'
    NURSING_INTAKE_OUTPUT_RECORD = 'nursing.intake.output.record'
    NURSING_ORDERS_READ = 'nursing.orders.read'
    NURSING_NOTES_WRITE = 'nursing.notes.write'

    # Surgery
    SURGERY_SCHEDULE_CREATE = 'surgery.schedule.create'
    SURGERY_SCHEDULE_READ = 'surgery.schedule.read'
    SURGERY_SCHEDULE_UPDATE = 'surgery.schedule.update'
    SURGERY_NOTES_READ = 'surgery.notes.read'

    # Billing
    BILLING_INVOICE_CREATE = 'billing.invoice.create'
    BILLING_INVOICE_READ = 'billing.invoice.read'
    BILLING_UPDATE = 'billing.update'
    BILLING_CLAIM_MANAGE = 'billing.claim.manage'
    BILLING_DISCOUNT_APPROVE = 'billing.discount.approve'

    # Beds and inventory
    BEDS_READ = 'beds.read'
    BEDS_STATUS_READ = 'beds.status.read'
    BEDS_ASSIGN_MANAGE = 'beds.assign.manage'
    INVENTORY_VIEW = 'inventory.view'

    # Emergency
    EMERGENCY_ACCESS_BREAKGLASS = 'emergency.access.breakglass'
    EMERGENCY_ALERTS_VIEW = 'emergency.alerts.view'

    def __str__(self):
        return self.value


PermissionLike = Union[Perm, str]

# Namespaces that govern the accountability core itself
PRIVILEGED_PREFIXES = ('admin.', 'audit.')

# Never obtainable through a break-glass grant
PRIVILEGED_PERMISSIONS = frozenset(
    perm.value for perm in Perm
    if perm.value.startswith(PRIVILEGED_PREFIXES)
) | {Perm.EMERGENCY_ACCESS_BREAKGLASS.value}


def is_privileged(value: PermissionLike) -> bool:
    """
    Whether a permission administers the core rather than patient care.

    Covers every registry entry in the ``admin.`` and ``audit.`` namespaces,
    the right to issue break-glass grants, and any catalog name added later
    under those namespaces.
    """
    name = normalize_permission_name(value)
    return name in PRIVILEGED_PERMISSIONS or name.startswith(PRIVILEGED_PREFIXES)


def normalize_permission_name(value: PermissionLike) -> str:
    """Lower-cased, stripped permission name."""
    name = value.value if isinstance(value, Perm) else str(value)
    name = name.strip().lower()
    if not name:
        raise AdministrativeInputError("Permission name must not be empty")
    return name


def describe(name: str) -> str:
    """Default human description for a permission name."""
    return name.replace('.', ' → ').replace('_', ' ')


class PermissionCatalog:
    """
    Canonical set of permission names.

    Registration is idempotent and safe to run concurrently with itself:
    ``get_or_create`` falls back to a lookup when a racing insert wins.
    """

    @classmethod
    def ensure(cls, names: Iterable[PermissionLike]) -> List[Permission]:
        """
        Create each permission if absent, otherwise return the existing record.

        Duplicate names in one call collapse to a single record. The result is
        ordered by name.
        """
        normalized = sorted({normalize_permission_name(name) for name in names})
        permissions = []
        created_names = []

        with storage_guard('permission catalog ensure'):
            with transaction.atomic():
                for name in normalized:
                    permission, created = Permission.objects.get_or_create(
                        name=name,
                        defaults={'description': describe(name)},
                    )
                    permissions.append(permission)
                    if created:
                        created_names.append(name)

        if created_names:
            logger.info(
                f"Registered {len(created_names)} permission(s)",
                extra={'permissions': created_names}
            )
        return permissions

    @classmethod
    def list(cls) -> List[Permission]:
        """All permissions sorted by name."""
        with storage_guard('permission catalog list'):
            return list(Permission.objects.order_by('name'))

    @classmethod
    def get(cls, name: PermissionLike) -> Permission:
        """
        Fetch a permission by name.

        Raises:
            UnknownPermissionError: If the name is not in the catalog
        """
        normalized = normalize_permission_name(name)
        with storage_guard('permission catalog lookup'):
            permission = Permission.objects.by_name(normalized)
        if permission is None:
            raise UnknownPermissionError(
                f"Permission '{normalized}' does not exist",
                details={'permission': normalized},
            )
        return permission

    @classmethod
    def exists(cls, name: PermissionLike) -> bool:
        """Whether the name is registered in the catalog."""
        normalized = normalize_permission_name(name)
        with storage_guard('permission catalog lookup'):
            return Permission.objects.filter(name=normalized).exists()

    @classmethod
    def get_many(cls, names: Iterable[PermissionLike]) -> List[Permission]:
        """
        Fetch several permissions, validating every name.

        Raises:
            UnknownPermissionError: Listing every missing name
        """
        normalized = sorted({normalize_permission_name(name) for name in names})
        with storage_guard('permission catalog lookup'):
            found = list(Permission.objects.filter(name__in=normalized).order_by('name'))
        missing = sorted(set(normalized) - {p.name for p in found})
        if missing:
            raise UnknownPermissionError(
                f"Unknown permission(s): {', '.join(missing)}",
                details={'missing': missing},
            )
        return found

    @classmethod
    def sync_registry(cls) -> List[Permission]:
        """Ensure every ``Perm`` member exists in the catalog."""
        return cls.ensure(member.value for member in Perm)


def resolve_permission(value: PermissionLike) -> str:
    """
    Validate a permission reference and return its canonical name.

    Raises:
        UnknownPermissionError: If the name is not in the catalog
    """
    normalized = normalize_permission_name(value)
    if not PermissionCatalog.exists(normalized):
        raise UnknownPermissionError(
            f"Permission '{normalized}' does not exist",
            details={'permission': normalized},
        )
    return normalized
