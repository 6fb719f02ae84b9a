"""
Test suite for Inventory module
Tests: stock adjustments, branch transfers, shelving and stock level views
"""
from django.test import TestCase
from rest_framework import status
from pharmatrack.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from pharmatrack.core.models import AuditLog
from pharmatrack.catalog.models import Medication
from pharmatrack.pharmacies.models import Branch
from pharmatrack.inventory.models import StockAdjustment, StockTransfer
from pharmatrack.inventory.services import (
    StockError, apply_adjustment, create_transfer, complete_transfer, move_internal
)


class InventoryTestBase(TestCase):

    def setUp(self):
        self.owner = TestDataFactory.create_user()
        self.pharmacy = TestDataFactory.create_pharmacy(owner=self.owner)
        self.main = Branch.objects.get(pharmacy=self.pharmacy, is_main=True)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)


class AdjustmentTests(InventoryTestBase):
    """Test stock adjustments"""

    def test_stock_in(self):
        medication = TestDataFactory.create_medication(self.pharmacy, stock=10)
        adjustment = apply_adjustment(medication, 'in', 5, 'received', user=self.owner)
        medication.refresh_from_db()
        self.assertEqual(medication.current_stock, 15)
        self.assertEqual(medication.store_quantity, 15)
        self.assertEqual(adjustment.previous_stock, 10)
        self.assertEqual(adjustment.new_stock, 15)

    def test_stock_out_clamps_at_zero(self):
        medication = TestDataFactory.create_medication(self.pharmacy, stock=4)
        adjustment = apply_adjustment(medication, 'out', 10, 'damaged')
        medication.refresh_from_db()
        self.assertEqual(medication.current_stock, 0)
        self.assertEqual(adjustment.new_stock, 0)

    def test_zero_quantity(self):
        medication = TestDataFactory.create_medication(self.pharmacy)
        with self.assertRaises(StockError):
            apply_adjustment(medication, 'in', 0, 'found')

    def test_api_creates_audit_entry(self):
        medication = TestDataFactory.create_medication(self.pharmacy, stock=20)
        response = self.client.post('/api/v1/stock-adjustments/', {
            'medication': medication.id,
            'adjustment_type': 'out',
            'quantity': 3,
            'reason': 'expired',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['new_stock'], 17)
        self.assertTrue(AuditLog.objects.filter(action='stock_adjust', object_id=str(response.data['id'])).exists())

        response = self.client.get('/api/v1/stock-adjustments/', {'medication': medication.id})
        self.assertEqual(len(response.data), 1)

    def test_api_rejects_foreign_medication(self):
        foreign = TestDataFactory.create_medication(TestDataFactory.create_pharmacy())
        response = self.client.post('/api/v1/stock-adjustments/', {
            'medication': foreign.id,
            'adjustment_type': 'in',
            'quantity': 3,
            'reason': 'found',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(StockAdjustment.objects.count(), 0)

    def test_permission_required(self):
        member = TestDataFactory.create_staff(self.pharmacy, permissions=['view_own_sales'])
        client = AuthenticatedAPIClient()
        client.authenticate_user(member.user)
        response = client.get('/api/v1/stock-adjustments/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class TransferTests(InventoryTestBase):
    """Test branch-to-branch transfers"""

    def setUp(self):
        super().setUp()
        self.ikeja = TestDataFactory.create_branch(self.pharmacy, name='Ikeja')

    def test_complete_moves_fefo(self):
        late = TestDataFactory.create_medication(
            self.pharmacy, name='Amoxicillin', stock=10, expiry_days=300, branch=self.main, batch_number='LATE'
        )
        early = TestDataFactory.create_medication(
            self.pharmacy, name='Amoxicillin', stock=4, expiry_days=30, branch=self.main, batch_number='EARLY'
        )
        transfer = create_transfer(self.pharmacy, self.main, self.ikeja, [
            {'product_name': 'amoxicillin', 'quantity': 6},
        ])
        complete_transfer(transfer, user=self.owner)

        early.refresh_from_db()
        late.refresh_from_db()
        self.assertEqual(early.current_stock, 0)
        self.assertEqual(late.current_stock, 8)

        received = Medication.objects.filter(pharmacy=self.pharmacy, branch=self.ikeja).order_by('expiry_date')
        self.assertEqual([(m.batch_number, m.current_stock) for m in received], [('EARLY', 4), ('LATE', 2)])

        transfer.refresh_from_db()
        self.assertEqual(transfer.status, 'completed')
        item = transfer.items.get()
        self.assertEqual(item.transferred_quantity, 6)
        self.assertEqual(len(item.batch_details), 2)

    def test_receiving_tops_up_existing_batch(self):
        TestDataFactory.create_medication(
            self.pharmacy, name='Vitamin C', stock=10, branch=self.main, batch_number='VC-1'
        )
        existing = TestDataFactory.create_medication(
            self.pharmacy, name='Vitamin C', stock=2, branch=self.ikeja, batch_number='VC-1'
        )
        transfer = create_transfer(self.pharmacy, self.main, self.ikeja, [{'product_name': 'Vitamin C', 'quantity': 5}])
        complete_transfer(transfer)
        existing.refresh_from_db()
        self.assertEqual(existing.current_stock, 7)
        self.assertEqual(Medication.objects.filter(branch=self.ikeja).count(), 1)

    def test_receiving_keeps_expiry_dates_apart(self):
        TestDataFactory.create_medication(
            self.pharmacy, name='Zinc', stock=5, expiry_days=20, branch=self.main, batch_number=''
        )
        TestDataFactory.create_medication(
            self.pharmacy, name='Zinc', stock=1, expiry_days=700, branch=self.ikeja, batch_number=''
        )
        TestDataFactory.create_medication(
            self.pharmacy, name='Coartem', stock=3, expiry_days=40, branch=self.main, batch_number='CT-9'
        )
        TestDataFactory.create_medication(
            self.pharmacy, name='Coartem', stock=1, expiry_days=400, branch=self.ikeja, batch_number='CT-9'
        )
        transfer = create_transfer(self.pharmacy, self.main, self.ikeja, [
            {'product_name': 'Zinc', 'quantity': 5},
            {'product_name': 'Coartem', 'quantity': 3},
        ])
        complete_transfer(transfer)

        zinc = Medication.objects.filter(branch=self.ikeja, name='Zinc').order_by('expiry_date')
        self.assertEqual([(m.current_stock, m.days_to_expiry) for m in zinc], [(5, 20), (1, 700)])
        coartem = Medication.objects.filter(branch=self.ikeja, name='Coartem').order_by('expiry_date')
        self.assertEqual([(m.current_stock, m.days_to_expiry) for m in coartem], [(3, 40), (1, 400)])

    def test_stale_copy_cannot_complete_again(self):
        medication = TestDataFactory.create_medication(self.pharmacy, name='Zinc', stock=10, branch=self.main)
        transfer = create_transfer(self.pharmacy, self.main, self.ikeja, [{'product_name': 'Zinc', 'quantity': 4}])
        stale = StockTransfer.objects.get(pk=transfer.pk)
        complete_transfer(transfer)
        with self.assertRaises(StockError):
            complete_transfer(stale)
        medication.refresh_from_db()
        self.assertEqual(medication.current_stock, 6)

    def test_transfer_draws_store_before_shelf(self):
        medication = TestDataFactory.create_medication(self.pharmacy, name='Zinc', stock=10, branch=self.main,
                                                       store_quantity=4, shelf_quantity=6)
        transfer = create_transfer(self.pharmacy, self.main, self.ikeja, [{'product_name': 'Zinc', 'quantity': 7}])
        complete_transfer(transfer)
        medication.refresh_from_db()
        self.assertEqual((medication.current_stock, medication.store_quantity, medication.shelf_quantity), (3, 0, 3))

    def test_insufficient_stock_is_all_or_nothing(self):
        paracetamol = TestDataFactory.create_medication(self.pharmacy, name='Paracetamol', stock=50, branch=self.main)
        TestDataFactory.create_medication(self.pharmacy, name='Ibuprofen', stock=2, branch=self.main)
        transfer = create_transfer(self.pharmacy, self.main, self.ikeja, [
            {'product_name': 'Paracetamol', 'quantity': 20},
            {'product_name': 'Ibuprofen', 'quantity': 5},
        ])
        with self.assertRaises(StockError):
            complete_transfer(transfer)

        paracetamol.refresh_from_db()
        self.assertEqual(paracetamol.current_stock, 50)
        self.assertFalse(Medication.objects.filter(branch=self.ikeja).exists())
        transfer.refresh_from_db()
        self.assertEqual(transfer.status, 'pending')

    def test_expired_batches_are_not_transferred(self):
        TestDataFactory.create_medication(self.pharmacy, name='Cough Syrup', stock=10, expiry_days=-5, branch=self.main)
        transfer = create_transfer(self.pharmacy, self.main, self.ikeja, [{'product_name': 'Cough Syrup', 'quantity': 1}])
        with self.assertRaises(StockError):
            complete_transfer(transfer)

    def test_same_branch_rejected(self):
        with self.assertRaises(StockError):
            create_transfer(self.pharmacy, self.main, self.main, [{'product_name': 'X', 'quantity': 1}])

    def test_completed_transfer_cannot_repeat(self):
        TestDataFactory.create_medication(self.pharmacy, name='Zinc', stock=10, branch=self.main)
        transfer = create_transfer(self.pharmacy, self.main, self.ikeja, [{'product_name': 'Zinc', 'quantity': 1}])
        complete_transfer(transfer)
        with self.assertRaises(StockError):
            complete_transfer(transfer)

    def test_api_flow(self):
        TestDataFactory.create_medication(self.pharmacy, name='Zinc', stock=10, branch=self.main)
        response = self.client.post('/api/v1/stock-transfers/', {
            'from_branch': self.main.id,
            'to_branch': self.ikeja.id,
            'items': [{'product_name': 'Zinc', 'quantity': 4}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['transfer_number'].startswith('TRF-'))
        transfer_id = response.data['id']

        response = self.client.post(f'/api/v1/stock-transfers/{transfer_id}/complete/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'completed')
        self.assertTrue(AuditLog.objects.filter(action='stock_transfer').exists())

        response = self.client.delete(f'/api/v1/stock-transfers/{transfer_id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_api_cancel_pending(self):
        transfer = create_transfer(self.pharmacy, self.main, self.ikeja, [{'product_name': 'Zinc', 'quantity': 1}])
        response = self.client.delete(f'/api/v1/stock-transfers/{transfer.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(StockTransfer.objects.get(pk=transfer.pk).status, 'cancelled')

    def test_api_rejects_empty_items_and_foreign_branch(self):
        response = self.client.post('/api/v1/stock-transfers/', {
            'from_branch': self.main.id, 'to_branch': self.ikeja.id, 'items': [],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        foreign = Branch.objects.get(pharmacy=TestDataFactory.create_pharmacy())
        response = self.client.post('/api/v1/stock-transfers/', {
            'from_branch': self.main.id, 'to_branch': foreign.id,
            'items': [{'product_name': 'Zinc', 'quantity': 1}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_transfer_permission(self):
        member = TestDataFactory.create_staff(self.pharmacy, permissions=['access_inventory'])
        client = AuthenticatedAPIClient()
        client.authenticate_user(member.user)
        response = client.get('/api/v1/stock-transfers/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class ShelvingTests(InventoryTestBase):
    """Test store/shelf movements"""

    def test_move_to_shelf_and_back(self):
        medication = TestDataFactory.create_medication(self.pharmacy, stock=30)
        move_internal(medication, 12)
        medication.refresh_from_db()
        self.assertEqual(medication.store_quantity, 18)
        self.assertEqual(medication.shelf_quantity, 12)
        self.assertTrue(medication.is_shelved)
        self.assertEqual(medication.current_stock, 30)

        move_internal(medication, 12, direction='shelf_to_store')
        medication.refresh_from_db()
        self.assertEqual(medication.shelf_quantity, 0)
        self.assertFalse(medication.is_shelved)

    def test_cannot_move_more_than_available(self):
        medication = TestDataFactory.create_medication(self.pharmacy, stock=5)
        with self.assertRaises(StockError):
            move_internal(medication, 6)

    def test_api(self):
        medication = TestDataFactory.create_medication(self.pharmacy, stock=30)
        response = self.client.post('/api/v1/internal-transfers/', {
            'medication': medication.id, 'quantity': 10,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['shelf_quantity'], 10)
        self.assertEqual(response.data['store_quantity'], 20)

        response = self.client.post('/api/v1/internal-transfers/', {
            'medication': medication.id, 'quantity': 100,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class StockLevelTests(InventoryTestBase):
    """Test low and out-of-stock views"""

    def test_low_stock(self):
        TestDataFactory.create_medication(self.pharmacy, name='Low', stock=5)
        TestDataFactory.create_medication(self.pharmacy, name='Plenty', stock=50)
        TestDataFactory.create_medication(self.pharmacy, name='Empty', stock=0)
        TestDataFactory.create_medication(self.pharmacy, name='Expired', stock=3, expiry_days=-1)

        response = self.client.get('/api/v1/stock/low/')
        self.assertEqual([m['name'] for m in response.data], ['Low'])

        response = self.client.get('/api/v1/stock/out-of-stock/')
        self.assertEqual([m['name'] for m in response.data], ['Empty'])

    def test_branch_filter(self):
        ikeja = TestDataFactory.create_branch(self.pharmacy, name='Ikeja')
        TestDataFactory.create_medication(self.pharmacy, name='Main Low', stock=2, branch=self.main)
        TestDataFactory.create_medication(self.pharmacy, name='Ikeja Low', stock=2, branch=ikeja)
        response = self.client.get('/api/v1/stock/low/', {'branch': ikeja.id})
        self.assertEqual([m['name'] for m in response.data], ['Ikeja Low'])
