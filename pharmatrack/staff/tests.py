"""
Test suite for Staff module
Tests: staff accounts, permission checks, role rules and shifts
"""
from django.test import TestCase
from rest_framework import status
from pharmatrack.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from pharmatrack.core.models import AuditLog
from pharmatrack.pharmacies.models import Pharmacy
from pharmatrack.staff.models import PharmacyStaff, StaffShift
from pharmatrack.staff.permissions import has_permission, get_granted_permissions, PERMISSION_KEYS
from pharmatrack.staff.services import clock_in, clock_out, ShiftError


class PermissionTests(TestCase):
    """Test permission resolution"""

    def setUp(self):
        self.owner = TestDataFactory.create_user()
        self.pharmacy = TestDataFactory.create_pharmacy(owner=self.owner)

    def test_owner_holds_everything(self):
        membership = PharmacyStaff.objects.get(user=self.owner)
        self.assertTrue(has_permission(membership, 'manage_settings'))
        self.assertEqual(get_granted_permissions(membership), PERMISSION_KEYS)

    def test_staff_only_explicit_grants(self):
        member = TestDataFactory.create_staff(self.pharmacy, permissions=['access_inventory'])
        self.assertTrue(has_permission(member, 'access_inventory'))
        self.assertFalse(has_permission(member, 'view_reports'))

    def test_inactive_member_has_nothing(self):
        member = TestDataFactory.create_staff(self.pharmacy, permissions=['access_inventory'])
        member.is_active = False
        member.save()
        self.assertFalse(has_permission(member, 'access_inventory'))
        self.assertFalse(has_permission(None, 'access_inventory'))

    def test_pharmacy_header_must_be_numeric(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(self.owner)
        response = client.get('/api/v1/staff/', HTTP_X_PHARMACY_ID='abc')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = client.get('/api/v1/auth/me/', HTTP_X_PHARMACY_ID='abc')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = client.get('/api/v1/staff/', HTTP_X_PHARMACY_ID=str(self.pharmacy.id))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        other = TestDataFactory.create_pharmacy()
        response = client.get('/api/v1/staff/', HTTP_X_PHARMACY_ID=str(other.id))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class StaffAPITests(TestCase):
    """Test staff management endpoints"""

    def setUp(self):
        self.owner = TestDataFactory.create_user()
        self.pharmacy = TestDataFactory.create_pharmacy(owner=self.owner)
        Pharmacy.objects.filter(pk=self.pharmacy.pk).update(max_users=5)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)
        self.payload = {
            'email': 'Bola@Pharmacy.ng',
            'password': 'Counter$ales1',
            'full_name': 'Bola <b>Ade</b>',
            'role': 'staff',
            'permissions': ['view_own_sales', 'access_inventory', 'view_own_sales'],
        }

    def test_create_staff(self):
        response = self.client.post('/api/v1/staff/', self.payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['email'], 'bola@pharmacy.ng')
        self.assertEqual(response.data['full_name'], 'Bola Ade')
        self.assertEqual(sorted(response.data['permissions']), ['access_inventory', 'view_own_sales'])
        self.assertTrue(AuditLog.objects.filter(action='staff_change').exists())

    def test_email_length_boundary(self):
        self.payload['email'] = 'a' * 138 + '@pharmacy.ng'
        response = self.client.post('/api/v1/staff/', self.payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        self.payload['email'] = 'b' * 139 + '@pharmacy.ng'
        response = self.client.post('/api/v1/staff/', self.payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('email', response.data)

    def test_user_limit(self):
        Pharmacy.objects.filter(pk=self.pharmacy.pk).update(max_users=1)
        response = self.client.post('/api/v1/staff/', self.payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_402_PAYMENT_REQUIRED)

    def test_invalid_permission_key(self):
        self.payload['permissions'] = ['launch_rockets']
        response = self.client.post('/api/v1/staff/', self.payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cannot_create_owner(self):
        self.payload['role'] = 'owner'
        response = self.client.post('/api/v1/staff/', self.payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_manager_cannot_create_manager(self):
        manager = TestDataFactory.create_staff(self.pharmacy, role='manager')
        client = AuthenticatedAPIClient()
        client.authenticate_user(manager.user)
        self.payload['role'] = 'manager'
        response = client.post('/api/v1/staff/', self.payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_staff_cannot_manage_staff(self):
        member = TestDataFactory.create_staff(self.pharmacy, permissions=['view_reports'])
        client = AuthenticatedAPIClient()
        client.authenticate_user(member.user)
        response = client.get('/api/v1/staff/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_update_permissions(self):
        member = TestDataFactory.create_staff(self.pharmacy, permissions=['view_own_sales'])
        response = self.client.patch(
            f'/api/v1/staff/{member.id}/', {'permissions': ['view_reports']}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['permissions'], ['view_reports'])

    def test_owner_membership_is_protected(self):
        owner_membership = PharmacyStaff.objects.get(user=self.owner)
        response = self.client.delete(f'/api/v1/staff/{owner_membership.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_deactivate(self):
        member = TestDataFactory.create_staff(self.pharmacy)
        response = self.client.delete(f'/api/v1/staff/{member.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        member.refresh_from_db()
        self.assertFalse(member.is_active)

    def test_role_templates(self):
        response = self.client.get('/api/v1/staff/role-templates/')
        self.assertIn('cashier', response.data['templates'])
        self.assertEqual(len(response.data['permissions']), len(PERMISSION_KEYS))


class ShiftTests(TestCase):
    """Test clock-in and clock-out"""

    def setUp(self):
        self.pharmacy = TestDataFactory.create_pharmacy()
        self.member = TestDataFactory.create_staff(self.pharmacy, permissions=['view_own_sales'])

    def test_clock_in_and_out(self):
        shift = clock_in(self.member)
        self.assertTrue(shift.is_open)
        with self.assertRaises(ShiftError):
            clock_in(self.member)

        closed = clock_out(self.member)
        self.assertEqual(closed.id, shift.id)
        self.assertIsNotNone(closed.clock_out)
        with self.assertRaises(ShiftError):
            clock_out(self.member)

    def test_wifi_rule(self):
        Pharmacy.objects.filter(pk=self.pharmacy.pk).update(require_wifi_clock_in=True, store_wifi_name='HealthPlus-5G')
        self.member = PharmacyStaff.objects.get(pk=self.member.pk)
        with self.assertRaises(ShiftError):
            clock_in(self.member, wifi_name='Starlink')
        shift = clock_in(self.member, wifi_name='healthplus-5g ')
        self.assertTrue(shift.wifi_verified)
        self.assertEqual(shift.clock_in_method, 'wifi')

    def test_sales_accumulate_on_shift(self):
        medication = TestDataFactory.create_medication(self.pharmacy)
        shift = clock_in(self.member)
        TestDataFactory.create_sale(self.pharmacy, self.member.user, medication, quantity=2, shift=shift)
        shift.refresh_from_db()
        self.assertEqual(shift.total_transactions, 1)
        self.assertEqual(shift.total_sales, 200)

    def test_api(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(self.member.user)
        response = client.post('/api/v1/shifts/clock-in/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        response = client.get('/api/v1/shifts/current/')
        self.assertTrue(response.data['shift']['is_open'])

        response = client.post('/api/v1/shifts/clock-out/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(StaffShift.objects.filter(clock_out__isnull=True).count(), 0)

        response = client.post('/api/v1/shifts/clock-out/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
