import logging
from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone
from pharmatrack.billing.plans import PlanLimitError
from .models import PharmacyStaff, StaffPermission, StaffShift

logger = logging.getLogger(__name__)

User = get_user_model()


class ShiftError(Exception):
    """Raised on invalid clock-in/clock-out transitions"""


def create_staff_member(pharmacy, data, granted_by=None):
    """
    Create the user account, membership and permission rows for a new
    staff member. Raises PlanLimitError when the pharmacy's user limit is reached.
    """
    active_members = PharmacyStaff.objects.filter(pharmacy=pharmacy, is_active=True).count()
    if active_members >= pharmacy.max_users:
        raise PlanLimitError(
            f'Your plan allows {pharmacy.max_users} user(s). Upgrade to add more staff.'
        )

    with transaction.atomic():
        user = User(
            username=data['email'],
            email=data['email'],
            full_name=data['full_name'],
            phone=data.get('phone'),
            is_active=True,
        )
        user.set_password(data['password'])
        user.save()

        membership = PharmacyStaff.objects.create(
            user=user,
            pharmacy=pharmacy,
            branch=data.get('branch'),
            role=data['role'],
        )
        set_staff_permissions(membership, data.get('permissions') or [], granted_by=granted_by)

    logger.info(f"Staff member {user.id} ({membership.role}) created for pharmacy {pharmacy.id}")
    return membership


def set_staff_permissions(membership, permission_keys, granted_by=None):
    """Replace the membership's explicit grants with the given keys"""
    StaffPermission.objects.filter(staff=membership).delete()
    StaffPermission.objects.bulk_create([
        StaffPermission(staff=membership, permission_key=key, is_granted=True, granted_by=granted_by)
        for key in permission_keys
    ])


def get_open_shift(membership):
    return StaffShift.objects.filter(staff=membership, clock_out__isnull=True).order_by('-clock_in').first()


def clock_in(membership, wifi_name=None, notes=''):
    """Open a shift; enforces the pharmacy's Wi-Fi clock-in rule"""
    if get_open_shift(membership):
        raise ShiftError('You are already clocked in')

    pharmacy = membership.pharmacy
    wifi_verified = False
    if pharmacy.require_wifi_clock_in:
        expected = (pharmacy.store_wifi_name or '').strip().lower()
        if not wifi_name or wifi_name.strip().lower() != expected:
            raise ShiftError('You must be connected to the store Wi-Fi to clock in')
        wifi_verified = True

    return StaffShift.objects.create(
        staff=membership,
        pharmacy=pharmacy,
        branch=membership.branch,
        clock_in_method='wifi' if wifi_verified else 'manual',
        wifi_name=wifi_name,
        wifi_verified=wifi_verified,
        notes=notes or '',
    )


def clock_out(membership):
    shift = get_open_shift(membership)
    if shift is None:
        raise ShiftError('You are not clocked in')
    shift.clock_out = timezone.now()
    shift.save(update_fields=['clock_out'])
    return shift
