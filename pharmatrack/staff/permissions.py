"""
Role and permission resolution for pharmacy members, plus the DRF
permission classes the views rely on.

Owners and managers implicitly hold every permission. Plain staff hold
only the keys explicitly granted to them.
"""
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import BasePermission

from .models import PharmacyStaff, StaffPermission

PERMISSION_KEYS = [
    'view_dashboard',
    'access_inventory',
    'access_customers',
    'access_branches',
    'access_suppliers',
    'view_reports',
    'view_analytics',
    'view_all_sales',
    'view_own_sales',
    'view_financial_data',
    'manage_stock_transfers',
    'manage_staff',
    'manage_settings',
]

PERMISSION_LABELS = {
    'view_dashboard': 'View Dashboard',
    'access_inventory': 'Access Inventory',
    'access_customers': 'Access Customers',
    'access_branches': 'Access Branches',
    'access_suppliers': 'Access Suppliers',
    'view_reports': 'View Reports',
    'view_analytics': 'View Analytics',
    'view_all_sales': 'View All Sales',
    'view_own_sales': 'View Own Sales',
    'view_financial_data': 'View Financial Data',
    'manage_stock_transfers': 'Manage Stock Transfers',
    'manage_staff': 'Manage Staff',
    'manage_settings': 'Manage Settings',
}

ROLE_TEMPLATES = {
    'cashier': {
        'name': 'Cashier',
        'description': 'POS access only, no reports or analytics',
        'permissions': ['view_own_sales'],
    },
    'inventory_manager': {
        'name': 'Inventory Manager',
        'description': 'Full inventory access, basic reports',
        'permissions': ['view_dashboard', 'access_inventory', 'access_suppliers', 'view_reports', 'view_own_sales'],
    },
    'senior_staff': {
        'name': 'Senior Staff',
        'description': 'Full access to all reports and analytics',
        'permissions': ['view_dashboard', 'access_inventory', 'access_customers', 'view_reports',
                        'view_analytics', 'view_financial_data', 'view_all_sales'],
    },
    'full_access': {
        'name': 'Full Access',
        'description': 'Same access as manager except staff management',
        'permissions': [key for key in PERMISSION_KEYS if key not in ('manage_staff', 'manage_settings')],
    },
}


def get_active_membership(user, pharmacy_id=None):
    """
    Return the user's active membership (optionally for a given pharmacy) or None.
    Raises ValidationError when ``pharmacy_id`` is not a number.
    """
    if not user or not user.is_authenticated:
        return None
    if pharmacy_id not in (None, ''):
        try:
            pharmacy_id = int(pharmacy_id)
        except (TypeError, ValueError):
            raise ValidationError({'error': 'X-Pharmacy-Id must be a number'})
    queryset = PharmacyStaff.objects.select_related('pharmacy', 'branch', 'user').filter(
        user=user, is_active=True
    )
    if pharmacy_id:
        queryset = queryset.filter(pharmacy_id=pharmacy_id)
    return queryset.order_by('created_at').first()


def get_granted_permissions(membership):
    """List of permission keys held by a membership"""
    if membership is None:
        return []
    if membership.is_owner_or_manager:
        return list(PERMISSION_KEYS)
    return list(
        StaffPermission.objects.filter(staff=membership, is_granted=True)
        .values_list('permission_key', flat=True)
    )


def has_permission(membership, permission_key):
    if membership is None or not membership.is_active:
        return False
    if membership.is_owner_or_manager:
        return True
    return StaffPermission.objects.filter(
        staff=membership, permission_key=permission_key, is_granted=True
    ).exists()


def _resolve_membership(request):
    membership = getattr(request, 'membership', None)
    if membership is None:
        pharmacy_id = request.headers.get('X-Pharmacy-Id') if hasattr(request, 'headers') else None
        membership = get_active_membership(request.user, pharmacy_id=pharmacy_id)
        request.membership = membership
    return membership


class IsPharmacyMember(BasePermission):
    """Authenticated user with an active pharmacy membership; sets request.membership"""
    message = 'You are not an active member of a pharmacy.'

    def has_permission(self, request, view):
        return _resolve_membership(request) is not None


class IsOwnerOrManager(IsPharmacyMember):
    message = 'Only owners and managers can perform this action.'

    def has_permission(self, request, view):
        membership = _resolve_membership(request)
        return membership is not None and membership.is_owner_or_manager


class IsOwner(IsPharmacyMember):
    message = 'Only the pharmacy owner can perform this action.'

    def has_permission(self, request, view):
        membership = _resolve_membership(request)
        return membership is not None and membership.role == 'owner'


def HasPharmacyPermission(permission_key):
    """Build a permission class requiring a specific pharmacy permission key"""

    class _HasPharmacyPermission(IsPharmacyMember):
        message = f'Missing permission: {permission_key}'

        def has_permission(self, request, view):
            membership = _resolve_membership(request)
            return has_permission(membership, permission_key)

    _HasPharmacyPermission.__name__ = f'HasPharmacyPermission_{permission_key}'
    return _HasPharmacyPermission
