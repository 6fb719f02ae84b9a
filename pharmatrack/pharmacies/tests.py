"""
Test suite for Pharmacies module
Tests: onboarding, settings updates, admin PIN and branch management
"""
from django.core.cache import cache
from django.test import TestCase
from rest_framework import status
from pharmatrack.core.models import AuditLog
from pharmatrack.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from pharmatrack.pharmacies.models import Pharmacy, Branch
from pharmatrack.staff.models import PharmacyStaff


class OnboardingTests(TestCase):
    """Test pharmacy creation"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_pharmacy(self):
        response = self.client.post('/api/v1/pharmacies/', {
            'name': 'HealthPlus Lekki',
            'email': 'lekki@healthplus.ng',
            'phone': '08012345678',
            'address': '5 Admiralty Way, Lekki',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        pharmacy = Pharmacy.objects.get(pk=response.data['id'])
        self.assertEqual(pharmacy.subscription_status, 'trial')
        self.assertIsNotNone(pharmacy.trial_ends_at)
        self.assertTrue(pharmacy.is_subscription_active)

        main = Branch.objects.get(pharmacy=pharmacy)
        self.assertTrue(main.is_main)
        membership = PharmacyStaff.objects.get(pharmacy=pharmacy, user=self.user)
        self.assertEqual(membership.role, 'owner')
        self.assertEqual(membership.branch, main)

    def test_one_pharmacy_per_owner(self):
        TestDataFactory.create_pharmacy(owner=self.user)
        response = self.client.post('/api/v1/pharmacies/', {'name': 'Second'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_blank_name_rejected(self):
        response = self.client.post('/api/v1/pharmacies/', {'name': '   '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_only_memberships(self):
        mine = TestDataFactory.create_pharmacy(owner=self.user)
        TestDataFactory.create_pharmacy()
        response = self.client.get('/api/v1/pharmacies/')
        self.assertEqual([p['id'] for p in response.data], [mine.id])


class PharmacySettingsTests(TestCase):
    """Test reading and updating the active pharmacy"""

    def setUp(self):
        self.owner = TestDataFactory.create_user()
        self.pharmacy = TestDataFactory.create_pharmacy(owner=self.owner)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)

    def test_get_current_includes_limits(self):
        response = self.client.get('/api/v1/pharmacies/current/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['plan_limits']['max_branches'], 1)

    def test_update_settings(self):
        response = self.client.patch(
            '/api/v1/pharmacies/current/', {'alert_phone': '08099998888', 'termii_sender_id': 'HealthPlus'},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.pharmacy.refresh_from_db()
        self.assertEqual(self.pharmacy.alert_phone, '08099998888')

    def test_subscription_fields_read_only(self):
        self.client.patch('/api/v1/pharmacies/current/', {'subscription_status': 'active', 'max_users': 50},
                          format='json')
        self.pharmacy.refresh_from_db()
        self.assertEqual(self.pharmacy.subscription_status, 'trial')
        self.assertEqual(self.pharmacy.max_users, 1)

    def test_staff_cannot_update(self):
        member = TestDataFactory.create_staff(self.pharmacy, permissions=['view_dashboard'])
        client = AuthenticatedAPIClient()
        client.authenticate_user(member.user)
        response = client.patch('/api/v1/pharmacies/current/', {'name': 'Renamed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_non_member(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_user())
        response = client.get('/api/v1/pharmacies/current/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class AdminPinTests(TestCase):
    """Test setting and verifying the admin PIN"""

    def setUp(self):
        cache.clear()
        self.owner = TestDataFactory.create_user()
        self.pharmacy = TestDataFactory.create_pharmacy(owner=self.owner)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)
        self.cashier = TestDataFactory.create_staff(self.pharmacy, permissions=['view_own_sales'])
        self.cashier_client = AuthenticatedAPIClient()
        self.cashier_client.authenticate_user(self.cashier.user)

    def test_set_pin(self):
        response = self.client.post('/api/v1/pharmacies/current/admin-pin/', {'pin': '4821'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.pharmacy.refresh_from_db()
        self.assertTrue(self.pharmacy.admin_pin_hash)
        self.assertNotEqual(self.pharmacy.admin_pin_hash, '4821')
        self.assertTrue(AuditLog.objects.filter(action='admin_pin_set').exists())

        response = self.client.get('/api/v1/pharmacies/current/')
        self.assertTrue(response.data['has_admin_pin'])
        self.assertNotIn('admin_pin_hash', response.data)

    def test_pin_format(self):
        for pin in ['123', '1234567', '12ab']:
            response = self.client.post('/api/v1/pharmacies/current/admin-pin/', {'pin': pin}, format='json')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_staff_cannot_set_pin(self):
        response = self.cashier_client.post('/api/v1/pharmacies/current/admin-pin/', {'pin': '4821'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_verify(self):
        self.client.post('/api/v1/pharmacies/current/admin-pin/', {'pin': '4821'}, format='json')
        response = self.cashier_client.post('/api/v1/pharmacies/current/admin-pin/verify/', {'pin': '4821'},
                                            format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['valid'])
        self.assertTrue(AuditLog.objects.filter(action='admin_pin_verified').exists())

        response = self.cashier_client.post('/api/v1/pharmacies/current/admin-pin/verify/', {'pin': '0000'},
                                            format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['remaining_attempts'], 4)
        self.assertTrue(AuditLog.objects.filter(action='admin_pin_failed').exists())

    def test_verify_without_pin_set(self):
        response = self.cashier_client.post('/api/v1/pharmacies/current/admin-pin/verify/', {'pin': '4821'},
                                            format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['pin_set'])

    def test_lockout_after_failed_attempts(self):
        self.client.post('/api/v1/pharmacies/current/admin-pin/', {'pin': '4821'}, format='json')
        for _ in range(5):
            self.cashier_client.post('/api/v1/pharmacies/current/admin-pin/verify/', {'pin': '1111'}, format='json')

        response = self.cashier_client.post('/api/v1/pharmacies/current/admin-pin/verify/', {'pin': '4821'},
                                            format='json')
        self.assertEqual(response.status_code, status.HTTP_429_TOO_MANY_REQUESTS)
        self.assertEqual(response.data['remaining_attempts'], 0)

        # setting a new PIN clears the lockout
        self.client.post('/api/v1/pharmacies/current/admin-pin/', {'pin': '9035'}, format='json')
        response = self.cashier_client.post('/api/v1/pharmacies/current/admin-pin/verify/', {'pin': '9035'},
                                            format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)


class BranchTests(TestCase):
    """Test branch limits and lifecycle"""

    def setUp(self):
        self.owner = TestDataFactory.create_user()
        self.pharmacy = TestDataFactory.create_pharmacy(owner=self.owner)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)

    def test_branch_limit(self):
        response = self.client.post('/api/v1/branches/', {'name': 'Ikeja'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_402_PAYMENT_REQUIRED)
        self.assertEqual(response.data['error'], 'Branch limit reached')

    def test_create_within_limit(self):
        Pharmacy.objects.filter(pk=self.pharmacy.pk).update(active_branches_limit=3)
        response = self.client.post('/api/v1/branches/', {'name': 'Ikeja', 'address': 'Allen Avenue'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertFalse(response.data['is_main'])

        response = self.client.post('/api/v1/branches/', {'name': 'Ikeja'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_main_branch_cannot_be_removed(self):
        main = Branch.objects.get(pharmacy=self.pharmacy, is_main=True)
        response = self.client.delete(f'/api/v1/branches/{main.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_deactivate_branch(self):
        branch = TestDataFactory.create_branch(self.pharmacy, name='Yaba')
        response = self.client.delete(f'/api/v1/branches/{branch.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        branch.refresh_from_db()
        self.assertFalse(branch.is_active)

        response = self.client.get('/api/v1/branches/', {'is_active': 'true'})
        self.assertEqual(len(response.data), 1)

    def test_foreign_branch(self):
        other = TestDataFactory.create_pharmacy()
        branch = Branch.objects.get(pharmacy=other)
        response = self.client.get(f'/api/v1/branches/{branch.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
