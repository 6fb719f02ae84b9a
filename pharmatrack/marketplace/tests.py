"""
Test suite for Marketplace module
Tests: public listing rules, search/view tracking, visibility toggles and featured expiry
"""
from datetime import timedelta
from io import StringIO
from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from pharmatrack.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from pharmatrack.catalog.models import Medication
from pharmatrack.marketplace.models import MarketplaceSearch, MarketplaceView
from pharmatrack.marketplace.services import expire_featured, warn_featured_ending
from pharmatrack.notifications.models import Notification
from pharmatrack.pharmacies.models import Pharmacy


class PublicListingTests(TestCase):
    """Test the unauthenticated marketplace listing"""

    def setUp(self):
        self.pharmacy = TestDataFactory.create_pharmacy(address='12 Allen Avenue, Ikeja')
        self.client = AuthenticatedAPIClient()
        self.listed = TestDataFactory.create_medication(self.pharmacy, name='Paracetamol 500mg', is_public=True)

    def names(self, response):
        return [item['name'] for item in response.data['results']]

    def test_only_sellable_public_products(self):
        TestDataFactory.create_medication(self.pharmacy, name='Hidden Syrup', is_public=False)
        TestDataFactory.create_medication(self.pharmacy, name='Empty Tablet', stock=0, is_public=True)
        TestDataFactory.create_medication(self.pharmacy, name='Old Cream', expiry_days=-1, is_public=True)

        response = self.client.get('/api/v1/marketplace/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.names(response), ['Paracetamol 500mg'])
        self.assertNotIn('unit_price', response.data['results'][0])
        self.assertNotIn('current_stock', response.data['results'][0])

    def test_inactive_subscription_hides_products(self):
        Pharmacy.objects.filter(pk=self.pharmacy.pk).update(subscription_status='expired')
        response = self.client.get('/api/v1/marketplace/')
        self.assertEqual(response.data['count'], 0)

    def test_featured_products_first(self):
        TestDataFactory.create_medication(
            self.pharmacy, name='Zinc Tablets', is_public=True, is_featured=True,
            featured_until=timezone.now() + timedelta(days=3)
        )
        TestDataFactory.create_medication(
            self.pharmacy, name='Amlodipine', is_public=True, is_featured=True,
            featured_until=timezone.now() - timedelta(days=1)
        )
        response = self.client.get('/api/v1/marketplace/')
        self.assertEqual(self.names(response), ['Zinc Tablets', 'Amlodipine', 'Paracetamol 500mg'])
        self.assertTrue(response.data['results'][0]['is_featured'])
        self.assertFalse(response.data['results'][1]['is_featured'])

    def test_search_is_recorded(self):
        TestDataFactory.create_medication(self.pharmacy, name='Vitamin C', category='Vitamins', is_public=True)
        response = self.client.get('/api/v1/marketplace/', {'search': 'vitamin', 'location': 'Ikeja'})
        self.assertEqual(self.names(response), ['Vitamin C'])

        search = MarketplaceSearch.objects.get()
        self.assertEqual(search.search_query, 'vitamin')
        self.assertEqual(search.location_filter, 'Ikeja')
        self.assertEqual(search.results_count, 1)

    def test_browsing_without_query_not_recorded(self):
        self.client.get('/api/v1/marketplace/')
        self.assertFalse(MarketplaceSearch.objects.exists())

    def test_pharmacy_filter(self):
        other = TestDataFactory.create_pharmacy()
        TestDataFactory.create_medication(other, name='Ibuprofen', is_public=True)
        response = self.client.get('/api/v1/marketplace/', {'pharmacy': other.id})
        self.assertEqual(self.names(response), ['Ibuprofen'])

        response = self.client.get('/api/v1/marketplace/', {'pharmacy': 'abc'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_detail_records_view(self):
        response = self.client.get(f'/api/v1/marketplace/{self.listed.id}/', {'search': 'para'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pharmacy_name'], self.pharmacy.name)

        view = MarketplaceView.objects.get()
        self.assertEqual(view.medication, self.listed)
        self.assertEqual(view.pharmacy, self.pharmacy)
        self.assertEqual(view.search_query, 'para')

    def test_detail_of_unlisted_product(self):
        hidden = TestDataFactory.create_medication(self.pharmacy, is_public=False)
        response = self.client.get(f'/api/v1/marketplace/{hidden.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertFalse(MarketplaceView.objects.exists())


class VisibilityAPITests(TestCase):
    """Test listing and unlisting products"""

    def setUp(self):
        self.owner = TestDataFactory.create_user()
        self.pharmacy = TestDataFactory.create_pharmacy(owner=self.owner)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)
        self.url = '/api/v1/marketplace/visibility/'

    def test_toggle_by_ids(self):
        first = TestDataFactory.create_medication(self.pharmacy)
        second = TestDataFactory.create_medication(self.pharmacy)
        foreign = TestDataFactory.create_medication(TestDataFactory.create_pharmacy())

        response = self.client.post(
            self.url, {'medication_ids': [first.id, second.id, foreign.id], 'is_public': True}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['updated'], 2)
        self.assertEqual(Medication.objects.filter(is_public=True).count(), 2)
        foreign.refresh_from_db()
        self.assertFalse(foreign.is_public)

    def test_toggle_by_category(self):
        TestDataFactory.create_medication(self.pharmacy, category='Syrup', is_public=True)
        TestDataFactory.create_medication(self.pharmacy, category='Syrup', is_public=True)
        tablet = TestDataFactory.create_medication(self.pharmacy, category='Tablet', is_public=True)

        response = self.client.post(self.url, {'category': 'Syrup', 'is_public': False}, format='json')
        self.assertEqual(response.data['updated'], 2)
        tablet.refresh_from_db()
        self.assertTrue(tablet.is_public)

    def test_requires_target(self):
        response = self.client.post(self.url, {'is_public': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_staff_without_inventory_access(self):
        member = TestDataFactory.create_staff(self.pharmacy, permissions=['view_own_sales'])
        client = AuthenticatedAPIClient()
        client.authenticate_user(member.user)
        response = client.post(self.url, {'category': 'Syrup', 'is_public': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_insights(self):
        medication = TestDataFactory.create_medication(self.pharmacy, name='Vitamin C', is_public=True)
        MarketplaceView.objects.create(pharmacy=self.pharmacy, medication=medication)
        MarketplaceView.objects.create(pharmacy=self.pharmacy, medication=medication)

        response = self.client.get('/api/v1/marketplace/insights/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_views'], 2)
        self.assertEqual(response.data['public_products'], 1)
        self.assertEqual(response.data['top_products'][0]['name'], 'Vitamin C')


class FeaturedExpiryTests(TestCase):
    """Test featured listing expiry and warnings"""

    def setUp(self):
        self.pharmacy = TestDataFactory.create_pharmacy()

    def test_expire_featured(self):
        lapsed = TestDataFactory.create_medication(
            self.pharmacy, is_featured=True, featured_until=timezone.now() - timedelta(minutes=5)
        )
        running = TestDataFactory.create_medication(
            self.pharmacy, is_featured=True, featured_until=timezone.now() + timedelta(days=2)
        )
        self.assertEqual(expire_featured(), 1)
        lapsed.refresh_from_db()
        running.refresh_from_db()
        self.assertFalse(lapsed.is_featured)
        self.assertTrue(running.is_featured)

    def test_warning_sent_once(self):
        medication = TestDataFactory.create_medication(
            self.pharmacy, name='Zinc Tablets', is_featured=True, featured_until=timezone.now() + timedelta(hours=8)
        )
        warned = warn_featured_ending()
        self.assertEqual(warned, [medication])
        notification = Notification.objects.get(entity_type='featured_expiry')
        self.assertEqual(notification.entity_id, str(medication.id))
        self.assertEqual(notification.priority, 'high')

        self.assertEqual(warn_featured_ending(), [])

    def test_command(self):
        TestDataFactory.create_medication(
            self.pharmacy, is_featured=True, featured_until=timezone.now() - timedelta(hours=1)
        )
        out = StringIO()
        call_command('expire_featured', stdout=out)
        self.assertIn('Expired 1 featured listing(s)', out.getvalue())
