"""
Comprehensive test suite for Catalog module
Tests: FEFO grouping and allocation, barcode lookup, NAFDAC validation,
pricing, labels, scanning and medication endpoints
"""
import base64
import io
from io import StringIO
from collections import namedtuple
from datetime import date, timedelta
from decimal import Decimal
from unittest.mock import patch

from django.core.cache import cache
from django.core.management import call_command
from django.test import TestCase
from PIL import Image
from rest_framework import status

from pharmatrack.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from pharmatrack.core.models import AuditLog
from pharmatrack.catalog.barcodes import (
    normalize_barcode_for_search, lookup_barcode, find_master_barcode_by_name, generate_internal_barcode
)
from pharmatrack.catalog.fefo import (
    group_medications_by_name, calculate_fefo_deductions, is_expired_batch, find_existing_products_by_name
)
from pharmatrack.catalog.label_generator import generate_label_image
from pharmatrack.catalog.models import Medication, MasterBarcode, get_category_group
from pharmatrack.catalog.pricing import price_with_margin, adjust_price_by_percentage
from pharmatrack.catalog.scanner import decode_barcodes, decode_image_payload, BarcodeDecodeError
from pharmatrack.catalog.validators import is_valid_nafdac_reg_number, normalize_nafdac_reg_number


Batch = namedtuple('Batch', 'name current_stock expiry_date selling_price unit_price reorder_level barcode_id category')

TODAY = date(2025, 6, 1)


def batch(name='Paracetamol', stock=10, days=30, price='100', barcode=None):
    return Batch(name, stock, TODAY + timedelta(days=days), Decimal(price), Decimal('50'), 10, barcode, 'Tablet')


class FefoTests(TestCase):
    """Test grouping and First-Expiry-First-Out allocation on plain batches"""

    def test_expired_from_expiry_date(self):
        self.assertTrue(is_expired_batch(TODAY, TODAY))
        self.assertFalse(is_expired_batch(TODAY + timedelta(days=1), TODAY))
        self.assertFalse(is_expired_batch(None, TODAY))

    def test_grouping_ignores_case_and_expired_stock(self):
        groups = group_medications_by_name([
            batch('Paracetamol', stock=5, days=60, price='120'),
            batch('paracetamol ', stock=7, days=10, price='100', barcode='6151100012345'),
            batch('PARACETAMOL', stock=50, days=-1),
            batch('Amoxil', stock=3, days=90),
        ], today=TODAY)
        self.assertEqual(len(groups), 2)
        para = next(group for group in groups if group['name'].lower().strip() == 'paracetamol')
        self.assertEqual(para['total_stock'], 12)
        self.assertEqual(para['display_price'], Decimal('100'))
        self.assertEqual(para['lowest_price'], Decimal('100'))
        self.assertEqual(para['highest_price'], Decimal('120'))
        self.assertEqual(para['barcode_id'], '6151100012345')
        self.assertTrue(para['has_multiple_batches'])
        self.assertTrue(para['has_expired_batch'])

    def test_deductions_span_batches(self):
        batches = [batch(stock=4, days=90), batch(stock=3, days=20), batch(stock=100, days=-5)]
        result = calculate_fefo_deductions(batches, 'PARACETAMOL', 5, today=TODAY)
        self.assertEqual(result['total_deducted'], 5)
        self.assertEqual([d['quantity'] for d in result['batch_deductions']], [3, 2])
        self.assertEqual(result['batch_deductions'][0]['medication'].expiry_date, TODAY + timedelta(days=20))
        self.assertTrue(result['used_multiple_batches'])
        self.assertEqual(result['batch_expiry_info'][0], '3x exp Jun 25')

    def test_insufficient_stock(self):
        result = calculate_fefo_deductions([batch(stock=2)], 'Paracetamol', 5, today=TODAY)
        self.assertEqual(result['total_deducted'], 2)

    def test_find_existing_products(self):
        found = find_existing_products_by_name([batch('Vitamin C'), batch('Zinc')], ' vitamin c')
        self.assertEqual(len(found), 1)


class ValidatorTests(TestCase):

    def test_nafdac_numbers(self):
        for value in ['A4-1234', '04-5678L', 'B1-123456', ' a4-1234 ']:
            self.assertTrue(is_valid_nafdac_reg_number(value), value)
        for value in ['', None, '12345', 'A4-12', 'A41-1234', 'A4-1234567']:
            self.assertFalse(is_valid_nafdac_reg_number(value), value)
        self.assertEqual(normalize_nafdac_reg_number(' a4- 1234 '), 'A4-1234')

    def test_category_group(self):
        self.assertEqual(get_category_group('Syrup'), 'Pharmaceuticals')
        self.assertEqual(get_category_group('Skincare'), 'Beauty & Personal Care')
        self.assertEqual(get_category_group('Spaceships'), 'Other')


class PricingTests(TestCase):

    def test_margin(self):
        self.assertEqual(price_with_margin(Decimal('80'), 25), Decimal('100.00'))
        self.assertEqual(price_with_margin(None, 25), Decimal('0.00'))

    def test_percentage(self):
        self.assertEqual(adjust_price_by_percentage(Decimal('200'), -10), Decimal('180.00'))
        self.assertEqual(adjust_price_by_percentage('99.99', '5'), Decimal('104.99'))


class BarcodeTests(TestCase):
    """Test barcode normalization and lookup order"""

    def setUp(self):
        self.pharmacy = TestDataFactory.create_pharmacy()

    def test_normalize(self):
        self.assertEqual(normalize_barcode_for_search('0 12345 67890 5'), '12345678905')
        self.assertEqual(normalize_barcode_for_search('012345678905'), '12345678905')
        self.assertEqual(normalize_barcode_for_search('pt-250101-0042'), 'PT2501010042')
        self.assertEqual(normalize_barcode_for_search(''), '')

    def test_inventory_exact_then_normalized(self):
        med = TestDataFactory.create_medication(self.pharmacy, barcode_id='012345678905')
        result = lookup_barcode(self.pharmacy, '012345678905')
        self.assertEqual(result['source'], 'inventory')
        self.assertEqual(result['medications'], [med])

        result = lookup_barcode(self.pharmacy, '0 12345 67890 5')
        self.assertEqual(result['medications'], [med])

    def test_other_pharmacy_not_visible(self):
        TestDataFactory.create_medication(TestDataFactory.create_pharmacy(), barcode_id='5000000000001')
        result = lookup_barcode(self.pharmacy, '5000000000001')
        self.assertIsNone(result['source'])

    def test_master_library_suggestion(self):
        MasterBarcode.objects.create(barcode='6154000010015', product_name='Emzor Paracetamol 500mg',
                                     category='Tablet', manufacturer='Emzor')
        result = lookup_barcode(self.pharmacy, '6154000010015')
        self.assertEqual(result['source'], 'master_library')
        self.assertEqual(result['suggestion']['name'], 'Emzor Paracetamol 500mg')

    def test_master_search_by_name(self):
        entry = MasterBarcode.objects.create(barcode='6154000010015', product_name='Emzor Paracetamol 500mg')
        self.assertEqual(find_master_barcode_by_name('emzor paracetamol 500mg'), entry)
        self.assertEqual(find_master_barcode_by_name('Paracetamol'), entry)
        self.assertEqual(find_master_barcode_by_name('Paracetamol caplets emzor'), entry)
        self.assertIsNone(find_master_barcode_by_name('Amoxicillin'))

    def test_internal_barcode(self):
        code = generate_internal_barcode(self.pharmacy)
        self.assertTrue(code.startswith('PT'))
        self.assertEqual(len(code), 14)


class LabelAndScannerTests(TestCase):

    def test_label_image(self):
        image = generate_label_image('Paracetamol 500mg Tablets by Emzor Pharma', 'PT250101000042',
                                     price=Decimal('350'), currency='NGN', expiry_date='03/2026',
                                     batch_number='BN-1')
        self.assertTrue(image.startswith('data:image/png;base64,'))
        png = base64.b64decode(image.split(',', 1)[1])
        self.assertEqual(Image.open(io.BytesIO(png)).size, (400, 200))

    def test_decode_payload(self):
        self.assertEqual(decode_image_payload(b'raw'), b'raw')
        self.assertEqual(decode_image_payload('data:image/png;base64,' + base64.b64encode(b'abc').decode()), b'abc')
        with self.assertRaises(BarcodeDecodeError):
            decode_image_payload('')

    def test_unreadable_image(self):
        with self.assertRaises(BarcodeDecodeError):
            decode_barcodes(b'not an image')

    @patch('pharmatrack.catalog.scanner._zbar_decode')
    def test_decode_deduplicates(self, mock_decode):
        Symbol = namedtuple('Symbol', 'data type')
        mock_decode.return_value = [
            Symbol(b'6154000010015', 'EAN13'), Symbol(b'6154000010015', 'EAN13'), Symbol(b'', 'QRCODE'),
        ]
        buffer = io.BytesIO()
        Image.new('RGB', (50, 50), 'white').save(buffer, format='PNG')
        results = decode_barcodes(buffer.getvalue())
        self.assertEqual(results, [{'value': '6154000010015', 'symbology': 'EAN13'}])


class MedicationAPITests(TestCase):
    """Test medication endpoints"""

    def setUp(self):
        cache.clear()
        self.owner = TestDataFactory.create_user()
        self.pharmacy = TestDataFactory.create_pharmacy(owner=self.owner)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)

    def test_create_medication(self):
        response = self.client.post('/api/v1/medications/', {
            'name': '  Amoxil 500mg ',
            'category': 'Capsule',
            'batch_number': 'AMX-01',
            'current_stock': 40,
            'expiry_date': (date.today() + timedelta(days=400)).isoformat(),
            'unit_price': '120.00',
            'selling_price': '180.00',
            'nafdac_reg_number': 'a4-1234',
            'generate_barcode': True,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['name'], 'Amoxil 500mg')
        self.assertEqual(response.data['nafdac_reg_number'], 'A4-1234')
        self.assertTrue(response.data['barcode_id'].startswith('PT'))
        self.assertTrue(AuditLog.objects.filter(action='create', model_name='Medication').exists())

    def test_create_validation(self):
        response = self.client.post('/api/v1/medications/', {
            'name': 'Bad',
            'current_stock': -1,
            'expiry_date': '2030-01-01',
            'nafdac_reg_number': '1234',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('current_stock', response.data)
        self.assertIn('nafdac_reg_number', response.data)

    def test_staff_without_inventory_cannot_create(self):
        member = TestDataFactory.create_staff(self.pharmacy, permissions=['view_own_sales'])
        client = AuthenticatedAPIClient()
        client.authenticate_user(member.user)
        response = client.post('/api/v1/medications/', {'name': 'X', 'expiry_date': '2030-01-01'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_list_filters(self):
        TestDataFactory.create_medication(self.pharmacy, name='Old Syrup', expiry_days=-3)
        TestDataFactory.create_medication(self.pharmacy, name='Vitamin C', stock=2)
        TestDataFactory.create_medication(self.pharmacy, name='Zinc')

        response = self.client.get('/api/v1/medications/', {'expired': 'true'})
        self.assertEqual([m['name'] for m in response.data['results']], ['Old Syrup'])

        response = self.client.get('/api/v1/medications/', {'low_stock': 'true'})
        self.assertEqual([m['name'] for m in response.data['results']], ['Vitamin C'])

        response = self.client.get('/api/v1/medications/', {'search': 'zin'})
        self.assertEqual(response.data['count'], 1)

    def test_list_is_tenant_scoped(self):
        TestDataFactory.create_medication(TestDataFactory.create_pharmacy(), name='Foreign')
        response = self.client.get('/api/v1/medications/')
        self.assertEqual(response.data['count'], 0)

    def test_price_change_audited(self):
        med = TestDataFactory.create_medication(self.pharmacy)
        response = self.client.patch(f'/api/v1/medications/{med.id}/', {'selling_price': '150.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        log = AuditLog.objects.get(action='price_change')
        self.assertEqual(log.changes['selling_price'], {'old': '100.00', 'new': '150.00'})

    def test_staff_cannot_delete(self):
        med = TestDataFactory.create_medication(self.pharmacy)
        member = TestDataFactory.create_staff(self.pharmacy, permissions=['access_inventory'])
        client = AuthenticatedAPIClient()
        client.authenticate_user(member.user)
        response = client.delete(f'/api/v1/medications/{med.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        response = self.client.delete(f'/api/v1/medications/{med.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Medication.objects.filter(pk=med.pk).exists())

    def test_grouped(self):
        TestDataFactory.create_medication(self.pharmacy, name='Paracetamol', stock=5, expiry_days=30)
        TestDataFactory.create_medication(self.pharmacy, name='paracetamol', stock=8, expiry_days=200)
        TestDataFactory.create_medication(self.pharmacy, name='Amoxil', stock=0)

        response = self.client.get('/api/v1/medications/grouped/', {'in_stock': 'true'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['total_stock'], 13)
        self.assertEqual(len(response.data[0]['batches']), 2)

    def test_grouped_cache_invalidated_on_change(self):
        TestDataFactory.create_medication(self.pharmacy, name='Paracetamol', stock=5)
        self.client.get('/api/v1/medications/grouped/')
        TestDataFactory.create_medication(self.pharmacy, name='Ibuprofen', stock=5)
        response = self.client.get('/api/v1/medications/grouped/')
        self.assertEqual(len(response.data), 2)

    def test_bulk_price_update(self):
        tablet = TestDataFactory.create_medication(self.pharmacy, category='Tablet')
        syrup = TestDataFactory.create_medication(self.pharmacy, category='Syrup')
        response = self.client.post('/api/v1/medications/bulk-price-update/',
                                    {'category': 'tablet', 'mode': 'margin', 'value': '50'}, format='json')
        self.assertEqual(response.data['updated'], 1)
        tablet.refresh_from_db()
        syrup.refresh_from_db()
        self.assertEqual(tablet.selling_price, Decimal('75.00'))
        self.assertEqual(syrup.selling_price, Decimal('100.00'))

    def test_barcode_lookup_endpoint(self):
        TestDataFactory.create_medication(self.pharmacy, barcode_id='6154000010015')
        response = self.client.get('/api/v1/barcodes/lookup/', {'barcode': '6154000010015'})
        self.assertEqual(response.data['source'], 'inventory')
        self.assertTrue(AuditLog.objects.filter(action='barcode_scan').exists())

        response = self.client.get('/api/v1/barcodes/lookup/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_label_assigns_barcode(self):
        med = TestDataFactory.create_medication(self.pharmacy)
        response = self.client.get(f'/api/v1/medications/{med.id}/label/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        med.refresh_from_db()
        self.assertEqual(response.data['barcode'], med.barcode_id)

    def test_master_library_search(self):
        MasterBarcode.objects.create(barcode='6154000010015', product_name='Emzor Paracetamol 500mg')
        response = self.client.get('/api/v1/barcodes/library/', {'name': 'Paracetamol'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]['barcode'], '6154000010015')

        response = self.client.get('/api/v1/barcodes/library/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class BackfillBarcodesCommandTests(TestCase):

    def setUp(self):
        self.pharmacy = TestDataFactory.create_pharmacy()

    def test_batches_share_barcode(self):
        first = TestDataFactory.create_medication(self.pharmacy, name='Paracetamol 500mg', expiry_days=100)
        second = TestDataFactory.create_medication(self.pharmacy, name='paracetamol 500MG', expiry_days=200)
        out = StringIO()
        call_command('backfill_barcodes', pharmacy=self.pharmacy.id, stdout=out)

        first.refresh_from_db()
        second.refresh_from_db()
        self.assertTrue(first.barcode_id.startswith('PT'))
        self.assertEqual(first.barcode_id, second.barcode_id)
        self.assertIn('Assigned 2 barcodes', out.getvalue())

    def test_existing_barcode_reused(self):
        TestDataFactory.create_medication(self.pharmacy, name='Zinc', barcode_id='6154000010015')
        new_batch = TestDataFactory.create_medication(self.pharmacy, name='Zinc')
        call_command('backfill_barcodes', stdout=StringIO())
        new_batch.refresh_from_db()
        self.assertEqual(new_batch.barcode_id, '6154000010015')

    def test_dry_run(self):
        med = TestDataFactory.create_medication(self.pharmacy)
        out = StringIO()
        call_command('backfill_barcodes', dry_run=True, stdout=out)
        med.refresh_from_db()
        self.assertFalse(med.barcode_id)
        self.assertIn('(dry run)', out.getvalue())
