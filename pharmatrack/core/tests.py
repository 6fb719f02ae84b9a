"""
Test suite for Core module
Tests: registration, login, current user, audit logs, currency helpers, caching, demo seeding and migrations
"""
from decimal import Decimal
from io import StringIO

from django.core.cache import cache
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase
from rest_framework import status
from pharmatrack.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from pharmatrack.core.models import AuditLog
from pharmatrack.catalog.models import Medication
from pharmatrack.pharmacies.models import Pharmacy
from pharmatrack.pos.models import Sale
from pharmatrack.core.utils import create_audit_log, snapshot_fields, field_changes
from pharmatrack.core.currency import format_currency, to_minor_units, from_minor_units
from pharmatrack.core.cache_utils import (
    cached_query, pharmacy_cache_version, pharmacy_cache_key, invalidate_pharmacy_cache
)


class AuthAPITests(TestCase):
    """Test registration, login and the current user endpoint"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()

    def test_register(self):
        data = {
            'username': 'chioma',
            'email': 'Chioma@Example.com',
            'password': 'Gr33nLeaf!Pharm',
            'password_confirm': 'Gr33nLeaf!Pharm',
            'full_name': 'Chioma Obi',
        }
        response = self.client.post('/api/v1/auth/register/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn('access', response.data)
        self.assertEqual(response.data['user']['email'], 'chioma@example.com')

    def test_register_password_mismatch(self):
        data = {
            'username': 'chioma',
            'email': 'chioma@example.com',
            'password': 'Gr33nLeaf!Pharm',
            'password_confirm': 'Different!Pass1',
        }
        response = self.client.post('/api/v1/auth/register/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_login(self):
        TestDataFactory.create_user(username='tunde', password='Gr33nLeaf!Pharm')
        response = self.client.post(
            '/api/v1/auth/login/', {'username': 'tunde', 'password': 'Gr33nLeaf!Pharm'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('refresh', response.data)

    def test_me_without_pharmacy(self):
        user = TestDataFactory.create_user()
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNone(response.data['membership'])
        self.assertEqual(response.data['permissions'], [])

    def test_me_with_pharmacy(self):
        owner = TestDataFactory.create_user()
        pharmacy = TestDataFactory.create_pharmacy(owner=owner)
        self.client.authenticate_user(owner)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.data['membership']['role'], 'owner')
        self.assertEqual(response.data['membership']['pharmacy']['id'], pharmacy.id)
        self.assertIn('manage_staff', response.data['permissions'])
        self.assertEqual(response.data['plan_limits']['plan'], 'starter')

    def test_unauthenticated(self):
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class AuditLogTests(TestCase):
    """Test audit log creation and listing"""

    def setUp(self):
        self.owner = TestDataFactory.create_user()
        self.pharmacy = TestDataFactory.create_pharmacy(owner=self.owner)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)

    def test_create_audit_log_requires_fields(self):
        self.assertIsNone(create_audit_log(user=self.owner, action='create', model_name=None, object_id=1))
        log = create_audit_log(
            user=self.owner, action='create', model_name='Medication', object_id=7, pharmacy=self.pharmacy
        )
        self.assertEqual(log.object_id, '7')

    def test_field_changes(self):
        medication = TestDataFactory.create_medication(self.pharmacy)
        before = snapshot_fields(medication, ['unit_price', 'selling_price'])
        medication.selling_price = Decimal('120.00')
        self.assertEqual(field_changes(before, medication), {
            'selling_price': {'old': '100.00', 'new': '120.00'},
        })
        self.assertEqual(field_changes(before, medication, ['unit_price']), {})

    def test_list_is_scoped_to_pharmacy(self):
        other = TestDataFactory.create_pharmacy()
        create_audit_log(user=self.owner, action='create', model_name='Medication', object_id=1,
                         pharmacy=self.pharmacy)
        create_audit_log(user=self.owner, action='update', model_name='Medication', object_id=2, pharmacy=other)

        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)

        response = self.client.get('/api/v1/audit-logs/', {'action': 'update'})
        self.assertEqual(len(response.data), 0)

    def test_list_rejects_malformed_filters(self):
        create_audit_log(user=self.owner, action='create', model_name='Medication', object_id=1,
                         pharmacy=self.pharmacy)
        for params in ({'date_from': 'yesterday'}, {'date_to': '2026-02-30'}, {'user': 'abc'}):
            response = self.client.get('/api/v1/audit-logs/', params)
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get('/api/v1/audit-logs/', {'date_from': '2000-01-01', 'date_to': '2999-12-31'})
        self.assertEqual(len(response.data), 1)

    def test_staff_cannot_read_audit_logs(self):
        member = TestDataFactory.create_staff(self.pharmacy, permissions=['view_reports'])
        client = AuthenticatedAPIClient()
        client.authenticate_user(member.user)
        response = client.get('/api/v1/audit-logs/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_detail_of_foreign_log(self):
        other = TestDataFactory.create_pharmacy()
        log = AuditLog.objects.create(pharmacy=other, action='create', model_name='Medication', object_id='1')
        response = self.client.get(f'/api/v1/audit-logs/{log.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class CurrencyTests(TestCase):

    def test_format_currency(self):
        self.assertEqual(format_currency(Decimal('1250')), '₦1,250.00')
        self.assertEqual(format_currency('-10.5', 'USD'), '-$10.50')
        self.assertEqual(format_currency(3, 'XOF'), 'XOF 3.00')

    def test_minor_units(self):
        self.assertEqual(to_minor_units('7500'), 750000)
        self.assertEqual(to_minor_units(Decimal('0.125')), 13)
        self.assertEqual(from_minor_units(250000), Decimal('2500.00'))


class CacheVersionTests(TestCase):

    def setUp(self):
        cache.clear()

    def test_medication_change_bumps_version(self):
        pharmacy = TestDataFactory.create_pharmacy()
        before = pharmacy_cache_version(pharmacy.id)
        TestDataFactory.create_medication(pharmacy)
        self.assertGreater(pharmacy_cache_version(pharmacy.id), before)

    def test_invalidate(self):
        invalidate_pharmacy_cache(42)
        self.assertEqual(pharmacy_cache_version(42), 2)

    def test_key_changes_with_generation(self):
        first = pharmacy_cache_key('dashboard_metrics', 7, '2026-03-01')
        self.assertEqual(first, pharmacy_cache_key('dashboard_metrics', 7, '2026-03-01'))
        invalidate_pharmacy_cache(7)
        self.assertNotEqual(first, pharmacy_cache_key('dashboard_metrics', 7, '2026-03-01'))

    def test_cached_query(self):
        calls = []

        @cached_query(cache_ttl=60, key_prefix='lookup')
        def lookup(name):
            calls.append(name)
            return name.upper() if name != 'missing' else None

        self.assertEqual(lookup('zinc'), 'ZINC')
        self.assertEqual(lookup('zinc'), 'ZINC')
        self.assertEqual(calls, ['zinc'])

        lookup('missing')
        lookup('missing')
        self.assertEqual(calls, ['zinc', 'missing', 'missing'])


class SeedDemoCommandTests(TestCase):

    def test_seed_demo(self):
        call_command('seed_demo', stdout=StringIO())
        pharmacy = Pharmacy.objects.get(name='Demo Pharmacy Yaba')
        self.assertEqual(pharmacy.subscription_plan, 'pro')
        self.assertEqual(pharmacy.staff_members.count(), 3)
        self.assertEqual(Sale.objects.filter(pharmacy=pharmacy).count(), 4)

        # FEFO drew the near-expiry paracetamol batch down first
        self.assertEqual(Medication.objects.get(pharmacy=pharmacy, batch_number='PCM2312').current_stock, 0)
        self.assertEqual(Medication.objects.get(pharmacy=pharmacy, batch_number='PCM2401').current_stock, 110)
        self.assertTrue(Medication.objects.filter(pharmacy=pharmacy, batch_number='BNL2305').exists())

        with self.assertRaises(CommandError):
            call_command('seed_demo', stdout=StringIO())

        call_command('seed_demo', reset=True, stdout=StringIO())
        self.assertEqual(Pharmacy.objects.filter(name='Demo Pharmacy Yaba').count(), 1)


class MigrationTests(TestCase):
    """Test the shipped migrations cover every model change"""

    def test_no_missing_migrations(self):
        out = StringIO()
        try:
            call_command('makemigrations', '--check', '--dry-run', stdout=out, stderr=StringIO())
        except SystemExit:
            self.fail(f"Models have changes without a migration:\n{out.getvalue()}")
