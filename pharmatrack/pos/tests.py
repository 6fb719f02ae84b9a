"""
Comprehensive test suite for POS module
Tests: FEFO checkout, stock refusal, loyalty, voids, carts, counter invoices,
offline sync and receipts
"""
from decimal import Decimal
from django.core.cache import cache
from django.test import TestCase
from rest_framework import status
from pharmatrack.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from pharmatrack.core.models import AuditLog
from pharmatrack.catalog.models import Medication
from pharmatrack.notifications.models import Notification
from pharmatrack.parties.models import Customer
from pharmatrack.pharmacies.pins import set_admin_pin
from pharmatrack.pos.models import Sale, PendingTransaction, Cart
from pharmatrack.pos.receipts import render_receipt
from pharmatrack.pos.services import (
    checkout, void_sale, create_pending_transaction, complete_pending_transaction, sync_offline_transactions,
    CheckoutError, InsufficientStockError,
)
from pharmatrack.staff.models import PharmacyStaff


class CheckoutServiceTests(TestCase):
    """Test the checkout service directly"""

    def setUp(self):
        self.owner = TestDataFactory.create_user(full_name='Kemi Owner')
        self.pharmacy = TestDataFactory.create_pharmacy(owner=self.owner, name='Green Cross')
        self.late = TestDataFactory.create_medication(self.pharmacy, name='Paracetamol', stock=10, expiry_days=300,
                                                      selling_price=Decimal('120.00'))
        self.early = TestDataFactory.create_medication(self.pharmacy, name='Paracetamol', stock=4, expiry_days=40)
        self.expired = TestDataFactory.create_medication(self.pharmacy, name='Paracetamol', stock=50, expiry_days=-1)

    def test_fefo_across_batches(self):
        sale = checkout(self.pharmacy, self.owner, [{'product_name': 'paracetamol', 'quantity': 6}])
        items = list(sale.items.order_by('id'))
        self.assertEqual([(item.medication_id, item.quantity) for item in items],
                         [(self.early.id, 4), (self.late.id, 2)])
        self.assertEqual(sale.subtotal, Decimal('640.00'))
        self.assertEqual(sale.total, Decimal('640.00'))

        self.early.refresh_from_db()
        self.late.refresh_from_db()
        self.expired.refresh_from_db()
        self.assertEqual(self.early.current_stock, 0)
        self.assertEqual(self.late.current_stock, 8)
        self.assertEqual(self.expired.current_stock, 50)

    def test_insufficient_stock_refuses_whole_sale(self):
        other = TestDataFactory.create_medication(self.pharmacy, name='Vitamin C', stock=30)
        with self.assertRaises(InsufficientStockError) as ctx:
            checkout(self.pharmacy, self.owner, [
                {'medication_id': other.id, 'quantity': 2},
                {'product_name': 'Paracetamol', 'quantity': 15},
            ])
        self.assertEqual(ctx.exception.available, 14)
        other.refresh_from_db()
        self.assertEqual(other.current_stock, 30)
        self.assertEqual(Sale.objects.count(), 0)

    def test_quick_item_and_discount(self):
        sale = checkout(self.pharmacy, self.owner, [
            {'quick_item_name': 'Nylon bag', 'quick_item_price': '50', 'quantity': 2},
            {'medication_id': self.early.id, 'quantity': 1},
        ], discount=Decimal('20'))
        self.assertEqual(sale.subtotal, Decimal('200'))
        self.assertEqual(sale.total, Decimal('180.00'))
        quick = sale.items.get(medication__isnull=True)
        self.assertEqual(quick.product_name, 'Nylon bag')

    def test_invalid_lines(self):
        with self.assertRaises(CheckoutError):
            checkout(self.pharmacy, self.owner, [])
        with self.assertRaises(CheckoutError):
            checkout(self.pharmacy, self.owner, [{'product_name': 'Paracetamol', 'quantity': 0}])
        with self.assertRaises(CheckoutError):
            checkout(self.pharmacy, self.owner, [{'medication_id': 99999, 'quantity': 1}])
        with self.assertRaises(CheckoutError):
            checkout(self.pharmacy, self.owner, [{'medication_id': self.early.id, 'quantity': 1}],
                     discount=Decimal('1000'))

    def test_loyalty_points(self):
        customer = TestDataFactory.create_customer(self.pharmacy, full_name='Ngozi Eze')
        sale = checkout(self.pharmacy, self.owner, [{'medication_id': self.late.id, 'quantity': 3}],
                        customer=customer)
        self.assertEqual(sale.customer_name, 'Ngozi Eze')
        self.assertEqual(sale.loyalty_points_awarded, 3)
        customer.refresh_from_db()
        self.assertEqual(customer.loyalty_points, 3)

    def test_low_stock_notification(self):
        checkout(self.pharmacy, self.owner, [{'medication_id': self.early.id, 'quantity': 1}])
        notification = Notification.objects.get(type='low_stock')
        self.assertEqual(notification.entity_id, str(self.early.id))

    def test_client_reference_is_unique(self):
        checkout(self.pharmacy, self.owner, [{'medication_id': self.late.id, 'quantity': 1}], client_reference='T1-0001')
        with self.assertRaises(CheckoutError):
            checkout(self.pharmacy, self.owner, [{'medication_id': self.late.id, 'quantity': 1}],
                     client_reference='T1-0001')

    def test_void_restocks(self):
        customer = TestDataFactory.create_customer(self.pharmacy)
        sale = checkout(self.pharmacy, self.owner, [{'product_name': 'Paracetamol', 'quantity': 6}],
                        customer=customer)
        void_sale(sale, self.owner, reason='Customer returned goods')

        self.early.refresh_from_db()
        self.late.refresh_from_db()
        self.assertEqual(self.early.current_stock, 4)
        self.assertEqual(self.late.current_stock, 10)
        self.assertEqual(self.early.store_quantity, 4)
        customer.refresh_from_db()
        self.assertEqual(customer.loyalty_points, 0)

        with self.assertRaises(CheckoutError):
            void_sale(sale, self.owner)

    def test_discount_must_be_a_number(self):
        for discount in ('abc', 'NaN'):
            with self.assertRaises(CheckoutError):
                checkout(self.pharmacy, self.owner, [{'medication_id': self.late.id, 'quantity': 1}],
                         discount=discount)
        self.late.refresh_from_db()
        self.assertEqual(self.late.current_stock, 10)

    def test_sale_draws_shelf_before_store(self):
        zinc = TestDataFactory.create_medication(self.pharmacy, name='Zinc', stock=10, store_quantity=7,
                                                 shelf_quantity=3)
        checkout(self.pharmacy, self.owner, [{'product_name': 'Zinc', 'quantity': 5}])
        zinc.refresh_from_db()
        self.assertEqual((zinc.current_stock, zinc.shelf_quantity, zinc.store_quantity), (5, 0, 5))
        self.assertFalse(zinc.is_shelved)

    def test_receipt(self):
        sale = checkout(self.pharmacy, self.owner, [{'product_name': 'Paracetamol', 'quantity': 5}],
                        customer_name='Walk-in')
        text = render_receipt(sale)
        self.assertIn('Green Cross', text)
        self.assertIn(sale.receipt_number, text)
        self.assertIn('Cashier: Kemi Owner', text)
        self.assertIn('4x exp', text)
        self.assertIn('₦520.00', text)


class CheckoutAPITests(TestCase):
    """Test checkout, sales and void endpoints"""

    def setUp(self):
        self.owner = TestDataFactory.create_user()
        self.pharmacy = TestDataFactory.create_pharmacy(owner=self.owner)
        self.medication = TestDataFactory.create_medication(self.pharmacy, name='Amoxil', stock=20)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)

    def test_checkout(self):
        response = self.client.post('/api/v1/pos/checkout/', {
            'items': [{'medication_id': self.medication.id, 'quantity': 2}],
            'payment_method': 'transfer',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['receipt_number'].startswith('RCP-'))
        self.assertIn('receipt_text', response.data)
        self.assertTrue(AuditLog.objects.filter(action='sale').exists())

    def test_insufficient_stock_response(self):
        response = self.client.post('/api/v1/pos/checkout/', {
            'items': [{'medication_id': self.medication.id, 'quantity': 25}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Insufficient stock')
        self.assertEqual(response.data['available'], 20)

    def test_duplicate_reference_returns_existing(self):
        payload = {'items': [{'medication_id': self.medication.id, 'quantity': 1}], 'client_reference': 'ABC-1'}
        first = self.client.post('/api/v1/pos/checkout/', payload, format='json')
        second = self.client.post('/api/v1/pos/checkout/', payload, format='json')
        self.assertEqual(second.status_code, status.HTTP_200_OK)
        self.assertTrue(second.data['duplicate'])
        self.assertEqual(first.data['id'], second.data['id'])
        self.medication.refresh_from_db()
        self.assertEqual(self.medication.current_stock, 19)

    def test_foreign_customer(self):
        foreign = TestDataFactory.create_customer(TestDataFactory.create_pharmacy())
        response = self.client.post('/api/v1/pos/checkout/', {
            'items': [{'medication_id': self.medication.id, 'quantity': 1}],
            'customer': foreign.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_sale_list_scoping(self):
        cashier = TestDataFactory.create_staff(self.pharmacy, permissions=['view_own_sales'])
        TestDataFactory.create_sale(self.pharmacy, self.owner, self.medication)
        TestDataFactory.create_sale(self.pharmacy, cashier.user, self.medication, quantity=2)

        response = self.client.get('/api/v1/sales/')
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(response.data['total_revenue'], Decimal('300.00'))

        client = AuthenticatedAPIClient()
        client.authenticate_user(cashier.user)
        response = client.get('/api/v1/sales/')
        self.assertEqual(response.data['count'], 1)

        nobody = TestDataFactory.create_staff(self.pharmacy, permissions=['access_inventory'])
        client.authenticate_user(nobody.user)
        response = client.get('/api/v1/sales/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_void_endpoint(self):
        sale = TestDataFactory.create_sale(self.pharmacy, self.owner, self.medication, quantity=5)
        response = self.client.post(f'/api/v1/sales/{sale.id}/void/', {'reason': 'Wrong product'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'voided')
        self.assertTrue(AuditLog.objects.filter(action='sale_void').exists())

        response = self.client.post(f'/api/v1/sales/{sale.id}/void/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_staff_cannot_void(self):
        sale = TestDataFactory.create_sale(self.pharmacy, self.owner, self.medication)
        cashier = TestDataFactory.create_staff(self.pharmacy, permissions=['view_all_sales'])
        client = AuthenticatedAPIClient()
        client.authenticate_user(cashier.user)
        response = client.post(f'/api/v1/sales/{sale.id}/void/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_staff_void_with_admin_pin(self):
        cache.clear()
        set_admin_pin(self.pharmacy, '4821')
        sale = TestDataFactory.create_sale(self.pharmacy, self.owner, self.medication, quantity=2)
        cashier = TestDataFactory.create_staff(self.pharmacy, permissions=['view_all_sales'])
        client = AuthenticatedAPIClient()
        client.authenticate_user(cashier.user)

        response = client.post(f'/api/v1/sales/{sale.id}/void/', {'admin_pin': '1111'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        response = client.post(f'/api/v1/sales/{sale.id}/void/', {'admin_pin': '4821'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'voided')

    def test_price_lock_discount_needs_admin_pin(self):
        cache.clear()
        self.pharmacy.price_lock_enabled = True
        self.pharmacy.save()
        set_admin_pin(self.pharmacy, '4821')
        cashier = TestDataFactory.create_staff(self.pharmacy, permissions=['view_own_sales'])
        client = AuthenticatedAPIClient()
        client.authenticate_user(cashier.user)
        payload = {'items': [{'medication_id': self.medication.id, 'quantity': 1}], 'discount': '10.00'}

        response = client.post('/api/v1/pos/checkout/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = client.post('/api/v1/pos/checkout/', dict(payload, admin_pin='4821'), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['total'], '90.00')

        # no discount, no PIN needed; managers never need one
        response = client.post('/api/v1/pos/checkout/', {'items': payload['items']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        response = self.client.post('/api/v1/pos/checkout/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_receipt_endpoint(self):
        sale = TestDataFactory.create_sale(self.pharmacy, self.owner, self.medication)
        response = self.client.get(f'/api/v1/sales/{sale.id}/receipt/')
        self.assertIn(sale.receipt_number, response.data['receipt_text'])


class CartAPITests(TestCase):
    """Test held carts"""

    def setUp(self):
        self.owner = TestDataFactory.create_user()
        self.pharmacy = TestDataFactory.create_pharmacy(owner=self.owner)
        self.medication = TestDataFactory.create_medication(self.pharmacy, stock=10)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)

    def test_cart_flow(self):
        response = self.client.post('/api/v1/carts/', {'customer_name': 'Mr Bello'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        cart_id = response.data['id']

        self.client.post(f'/api/v1/carts/{cart_id}/items/', {'medication': self.medication.id, 'quantity': 2},
                         format='json')
        response = self.client.post(f'/api/v1/carts/{cart_id}/items/',
                                    {'medication': self.medication.id, 'quantity': 1}, format='json')
        self.assertEqual(response.data['items'][0]['quantity'], 3)

        response = self.client.post(f'/api/v1/carts/{cart_id}/hold/', {'note': 'Back in 10 minutes'}, format='json')
        self.assertEqual(response.data['status'], 'held')
        response = self.client.post(f'/api/v1/carts/{cart_id}/hold/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(f'/api/v1/carts/{cart_id}/checkout/', {'payment_method': 'cash'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['customer_name'], 'Mr Bello')
        self.assertEqual(Cart.objects.get(pk=cart_id).status, 'completed')

        response = self.client.post(f'/api/v1/carts/{cart_id}/checkout/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_checkout_rejects_bad_discount(self):
        cart = self.client.post('/api/v1/carts/', {}, format='json').data
        self.client.post(f"/api/v1/carts/{cart['id']}/items/", {'medication': self.medication.id, 'quantity': 1},
                         format='json')
        response = self.client.post(f"/api/v1/carts/{cart['id']}/checkout/", {'discount': 'abc'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('discount', response.data)
        self.assertEqual(Cart.objects.get(pk=cart['id']).status, 'active')
        self.medication.refresh_from_db()
        self.assertEqual(self.medication.current_stock, 10)

    def test_quick_item_needs_price(self):
        cart = self.client.post('/api/v1/carts/', {}, format='json').data
        response = self.client.post(f"/api/v1/carts/{cart['id']}/items/", {'item_name': 'Gloves', 'quantity': 1},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_empty_cart_checkout(self):
        cart = self.client.post('/api/v1/carts/', {}, format='json').data
        response = self.client.post(f"/api/v1/carts/{cart['id']}/checkout/", {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_staff_only_see_own_carts(self):
        self.client.post('/api/v1/carts/', {}, format='json')
        cashier = TestDataFactory.create_staff(self.pharmacy)
        client = AuthenticatedAPIClient()
        client.authenticate_user(cashier.user)
        response = client.get('/api/v1/carts/')
        self.assertEqual(response.data, [])


class PendingTransactionTests(TestCase):
    """Test counter invoices and offline replay"""

    def setUp(self):
        self.owner = TestDataFactory.create_user()
        self.pharmacy = TestDataFactory.create_pharmacy(owner=self.owner)
        self.medication = TestDataFactory.create_medication(self.pharmacy, name='Zinc', stock=5)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)

    def test_invoice_then_settle(self):
        response = self.client.post('/api/v1/pending-transactions/', {
            'items': [{'medication_id': self.medication.id, 'quantity': 2}],
            'customer_name': 'Aunty Bisi',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['short_code'].startswith('PH-'))
        self.assertEqual(Decimal(response.data['total_amount']), Decimal('200.00'))
        self.medication.refresh_from_db()
        self.assertEqual(self.medication.current_stock, 5)

        response = self.client.get('/api/v1/pending-transactions/', {'search': response.data['short_code']})
        pending_id = response.data[0]['id']

        response = self.client.post(f'/api/v1/pending-transactions/{pending_id}/complete/', {'payment_method': 'pos'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(PendingTransaction.objects.get(pk=pending_id).status, 'completed')
        self.medication.refresh_from_db()
        self.assertEqual(self.medication.current_stock, 3)

        response = self.client.post(f'/api/v1/pending-transactions/{pending_id}/cancel/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_invoice_settles_once(self):
        membership = PharmacyStaff.objects.get(user=self.owner)
        pending = create_pending_transaction(membership, [{'medication_id': self.medication.id, 'quantity': 2}])
        first = PendingTransaction.objects.get(pk=pending.pk)
        second = PendingTransaction.objects.get(pk=pending.pk)

        complete_pending_transaction(first, membership, 'cash')
        with self.assertRaises(CheckoutError):
            complete_pending_transaction(second, membership, 'cash')

        self.assertEqual(Sale.objects.filter(pharmacy=self.pharmacy).count(), 1)
        self.medication.refresh_from_db()
        self.assertEqual(self.medication.current_stock, 3)

    def test_offline_sync(self):
        membership = PharmacyStaff.objects.get(user=self.owner)
        transactions = [
            {'client_reference': 'OFF-1', 'items': [{'medication_id': self.medication.id, 'quantity': 2}]},
            {'client_reference': 'OFF-2', 'items': [{'medication_id': self.medication.id, 'quantity': 9}]},
            {'client_reference': 'OFF-1', 'items': [{'medication_id': self.medication.id, 'quantity': 2}]},
        ]
        results = sync_offline_transactions(membership, transactions)
        self.assertEqual([r['status'] for r in results], ['completed', 'failed', 'duplicate'])
        self.assertEqual(results[0]['receipt_number'], results[2]['receipt_number'])
        failed = PendingTransaction.objects.get(client_reference='OFF-2')
        self.assertEqual(failed.status, 'failed')
        self.assertIn('Insufficient stock', failed.error_message)
        self.assertEqual(Medication.objects.get(pk=self.medication.pk).current_stock, 3)

    def test_offline_sync_endpoint(self):
        response = self.client.post('/api/v1/pos/sync/', {'transactions': [
            {'client_reference': 'OFF-9', 'items': [{'product_name': 'zinc', 'quantity': 1}], 'payment_method': 'cash'},
        ]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Customer.objects.count(), 0)
        self.assertEqual(Sale.objects.get().client_reference, 'OFF-9')
