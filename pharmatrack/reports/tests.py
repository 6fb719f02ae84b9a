"""
Comprehensive test suite for Reports module
Tests: Dashboard, Sales Summary, NAFDAC Compliance, Expiry Report
"""
from decimal import Decimal
from django.core.cache import cache
from django.test import TestCase
from rest_framework import status
from pharmatrack.core.test_utils import TestDataFactory, AuthenticatedAPIClient


class ReportsTestBase(TestCase):

    def setUp(self):
        cache.clear()
        self.owner = TestDataFactory.create_user(full_name='Ada Owner')
        self.pharmacy = TestDataFactory.create_pharmacy(owner=self.owner)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)


class DashboardTests(ReportsTestBase):
    """Test dashboard KPIs"""

    def test_dashboard_metrics(self):
        TestDataFactory.create_medication(self.pharmacy, name='Paracetamol', stock=100)
        TestDataFactory.create_medication(self.pharmacy, name='Ibuprofen', stock=5)
        TestDataFactory.create_medication(self.pharmacy, name='Old Syrup', stock=10, expiry_days=-2)
        TestDataFactory.create_medication(self.pharmacy, name='Cough Drops', stock=20, expiry_days=10)
        TestDataFactory.create_medication(self.pharmacy, name='Empty', stock=0)

        response = self.client.get('/api/v1/reports/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_skus'], 5)
        self.assertEqual(response.data['low_stock_items'], 1)
        self.assertEqual(response.data['out_of_stock_items'], 1)
        self.assertEqual(response.data['expired_items'], 1)
        self.assertEqual(response.data['expiring_soon_items'], 1)
        # unexpired stock: 125 units at cost 50 and retail 100
        self.assertEqual(response.data['inventory_cost_value'], 6250.0)
        self.assertEqual(response.data['inventory_retail_value'], 12500.0)

    def test_today_sales(self):
        medication = TestDataFactory.create_medication(self.pharmacy, stock=50)
        TestDataFactory.create_sale(self.pharmacy, self.owner, medication, quantity=3)

        response = self.client.get('/api/v1/reports/dashboard/')
        self.assertEqual(response.data['today_sales_count'], 1)
        self.assertEqual(response.data['today_revenue'], 300.0)

    def test_financials_hidden_without_permission(self):
        member = TestDataFactory.create_staff(self.pharmacy, permissions=['view_dashboard'])
        client = AuthenticatedAPIClient()
        client.authenticate_user(member.user)

        response = client.get('/api/v1/reports/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertNotIn('inventory_cost_value', response.data)
        self.assertNotIn('today_revenue', response.data)

    def test_dashboard_requires_permission(self):
        member = TestDataFactory.create_staff(self.pharmacy, permissions=['view_own_sales'])
        client = AuthenticatedAPIClient()
        client.authenticate_user(member.user)
        response = client.get('/api/v1/reports/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class SalesSummaryTests(ReportsTestBase):
    """Test the sales summary report"""

    def setUp(self):
        super().setUp()
        self.paracetamol = TestDataFactory.create_medication(self.pharmacy, name='Paracetamol', stock=100)
        self.vitamin = TestDataFactory.create_medication(
            self.pharmacy, name='Vitamin C', stock=100, selling_price=Decimal('250.00')
        )

    def test_summary_totals(self):
        TestDataFactory.create_sale(self.pharmacy, self.owner, self.paracetamol, quantity=2)
        TestDataFactory.create_sale(self.pharmacy, self.owner, self.vitamin, quantity=1, payment_method='transfer')

        response = self.client.get('/api/v1/reports/sales-summary/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        summary = response.data['summary']
        self.assertEqual(summary['total_revenue'], 450.0)
        self.assertEqual(summary['total_transactions'], 2)
        self.assertEqual(summary['items_sold'], 3)
        self.assertEqual(summary['average_ticket'], 225.0)

        self.assertEqual(response.data['top_products'][0]['name'], 'Vitamin C')
        methods = {row['payment_method']: row['revenue'] for row in response.data['by_payment_method']}
        self.assertEqual(methods, {'cash': 200.0, 'transfer': 250.0})
        self.assertEqual(response.data['by_staff'][0]['name'], 'Ada Owner')

    def test_voided_sales_excluded(self):
        from pharmatrack.pos.services import void_sale
        sale = TestDataFactory.create_sale(self.pharmacy, self.owner, self.paracetamol, quantity=2)
        void_sale(sale, self.owner, reason='Wrong item')

        response = self.client.get('/api/v1/reports/sales-summary/')
        self.assertEqual(response.data['summary']['total_transactions'], 0)

    def test_staff_see_only_their_sales(self):
        member = TestDataFactory.create_staff(self.pharmacy, permissions=['view_reports', 'view_own_sales'])
        TestDataFactory.create_sale(self.pharmacy, self.owner, self.paracetamol, quantity=1)
        TestDataFactory.create_sale(self.pharmacy, member.user, self.paracetamol, quantity=4)

        client = AuthenticatedAPIClient()
        client.authenticate_user(member.user)
        response = client.get('/api/v1/reports/sales-summary/')
        self.assertEqual(response.data['summary']['total_transactions'], 1)
        self.assertEqual(response.data['summary']['total_revenue'], 400.0)

    def test_invalid_dates(self):
        response = self.client.get('/api/v1/reports/sales-summary/?date_from=01-01-2024')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get('/api/v1/reports/sales-summary/?date_from=2024-12-31&date_to=2024-01-01')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_past_range_is_empty(self):
        TestDataFactory.create_sale(self.pharmacy, self.owner, self.paracetamol, quantity=1)
        response = self.client.get('/api/v1/reports/sales-summary/?date_from=2020-01-01&date_to=2020-12-31')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['summary']['total_revenue'], 0.0)


class NafdacComplianceTests(ReportsTestBase):
    """Test the NAFDAC compliance report"""

    def test_compliance_report(self):
        TestDataFactory.create_medication(self.pharmacy, name='Registered', nafdac_reg_number='A4-1234')
        TestDataFactory.create_medication(self.pharmacy, name='Unregistered')
        TestDataFactory.create_medication(self.pharmacy, name='Malformed', nafdac_reg_number='12345')
        TestDataFactory.create_medication(
            self.pharmacy, name='Expired Stock', nafdac_reg_number='B1-123456', expiry_days=-5
        )

        response = self.client.get('/api/v1/reports/nafdac-compliance/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        summary = response.data['summary']
        self.assertEqual(summary['total_batches'], 4)
        self.assertEqual(summary['missing_count'], 1)
        self.assertEqual(summary['invalid_count'], 1)
        self.assertEqual(summary['compliant_batches'], 2)
        self.assertEqual(summary['compliance_rate'], 50.0)
        self.assertEqual(response.data['missing_registration'][0]['name'], 'Unregistered')
        self.assertEqual(response.data['invalid_registration'][0]['name'], 'Malformed')
        self.assertEqual(response.data['expired_on_hand'][0]['name'], 'Expired Stock')

    def test_controlled_drugs_register(self):
        controlled = TestDataFactory.create_medication(self.pharmacy, name='Tramadol 50mg', is_controlled=True)
        regular = TestDataFactory.create_medication(self.pharmacy, name='Paracetamol')
        TestDataFactory.create_sale(self.pharmacy, self.owner, controlled, quantity=2, customer_name='John Doe')
        TestDataFactory.create_sale(self.pharmacy, self.owner, regular, quantity=1)

        response = self.client.get('/api/v1/reports/nafdac-compliance/')
        register = response.data['controlled_drugs_register']
        self.assertEqual(len(register), 1)
        self.assertEqual(register[0]['product_name'], 'Tramadol 50mg')
        self.assertEqual(register[0]['quantity'], 2)
        self.assertEqual(register[0]['customer_name'], 'John Doe')
        self.assertEqual(register[0]['dispensed_by'], 'Ada Owner')

    def test_empty_pharmacy_is_compliant(self):
        response = self.client.get('/api/v1/reports/nafdac-compliance/')
        self.assertEqual(response.data['summary']['compliance_rate'], 100.0)


class ExpiryReportTests(ReportsTestBase):
    """Test the expiry report"""

    def test_expiry_buckets(self):
        TestDataFactory.create_medication(self.pharmacy, name='Expired', stock=10, expiry_days=0)
        TestDataFactory.create_medication(self.pharmacy, name='Soon', stock=4, expiry_days=20)
        TestDataFactory.create_medication(self.pharmacy, name='Later', stock=2, expiry_days=60)
        TestDataFactory.create_medication(self.pharmacy, name='Fine', stock=50, expiry_days=200)
        TestDataFactory.create_medication(self.pharmacy, name='Gone', stock=0, expiry_days=-10)

        response = self.client.get('/api/v1/reports/expiry/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['expired']['count'], 1)
        self.assertEqual(response.data['expired']['value_at_risk'], 500.0)
        self.assertEqual(response.data['within_30_days']['items'][0]['name'], 'Soon')
        self.assertEqual(response.data['within_30_days']['value_at_risk'], 200.0)
        self.assertEqual(response.data['within_90_days']['items'][0]['days_to_expiry'], 60)
