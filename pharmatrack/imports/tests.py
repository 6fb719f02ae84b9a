"""
Test suite for Imports module
Tests: header matching, value parsing, preview/commit and invoice scans
"""
import os
import tempfile
from datetime import date
from io import StringIO
from decimal import Decimal
from unittest.mock import patch

from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase
from rest_framework import status
from pharmatrack.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from pharmatrack.core.models import AuditLog
from pharmatrack.catalog.models import Medication
from pharmatrack.parties.models import Customer
from pharmatrack.pharmacies.models import Branch
from pharmatrack.imports.field_matcher import (
    similarity, auto_map_headers, detect_field_type_from_values, parse_flexible_date, parse_numeric_value
)
from pharmatrack.imports.configs import get_target_fields
from pharmatrack.imports.services import (
    ImportValidationError, read_csv, resolve_mappings, commit_import, normalize_invoice_result
)

STOCK_CSV = (
    "Product Name,Batch No,Expiry Date,Cost Price,Qty,Remarks\n"
    "Amoxicillin 500mg,AMX2201,2099-12-31,\"₦1,200.00\",40,Keep cool\n"
    "Vitamin C,VTC0101,13/05/2099,350,25,Top shelf\n"
    "Broken Row,BRK0001,,500,5,\n"
)


class FieldMatcherTests(TestCase):
    """Test header similarity and value parsing"""

    def test_similarity(self):
        self.assertEqual(similarity('Batch_No', 'batch no'), 1.0)
        self.assertEqual(similarity('expiry', 'exp'), 0.9)
        self.assertAlmostEqual(similarity('cost price', 'sale price'), 0.35)
        self.assertEqual(similarity('remarks', 'qty'), 0.0)

    def test_auto_map_headers(self):
        headers = ['Product Name', 'Batch No', 'Expiry Date', 'Cost Price', 'Qty', 'Remarks']
        rows = [{'Remarks': 'Keep cool'}, {'Remarks': 'Top shelf'}]
        mappings = auto_map_headers(headers, get_target_fields('medication'), rows)
        self.assertEqual(mappings['Product Name']['mapped_to'], 'name')
        self.assertEqual(mappings['Batch No']['mapped_to'], 'batch_number')
        self.assertEqual(mappings['Expiry Date']['mapped_to'], 'expiry_date')
        self.assertEqual(mappings['Cost Price']['mapped_to'], 'unit_price')
        self.assertEqual(mappings['Qty']['mapped_to'], 'current_stock')
        self.assertIsNone(mappings['Remarks'])

    def test_detect_from_values(self):
        self.assertEqual(detect_field_type_from_values(['2099-01-01', '2099-03-01']), 'expiry_date')
        self.assertEqual(detect_field_type_from_values(['ada@example.com', 'tunde@example.com']), 'email')
        self.assertEqual(detect_field_type_from_values(['₦1,200.00', '₦350.50']), 'price')
        self.assertIsNone(detect_field_type_from_values(['', '  ']))

    def test_parse_flexible_date(self):
        self.assertEqual(parse_flexible_date('2027-03-15'), date(2027, 3, 15))
        self.assertEqual(parse_flexible_date('03/04/2027'), date(2027, 3, 4))
        self.assertEqual(parse_flexible_date('25/04/2027'), date(2027, 4, 25))
        self.assertEqual(parse_flexible_date('12/2027'), date(2027, 12, 1))
        self.assertEqual(parse_flexible_date('15-03-2027'), date(2027, 3, 15))
        self.assertEqual(parse_flexible_date('Mar 2027'), date(2027, 3, 1))
        self.assertIsNone(parse_flexible_date('31/31/2027'))
        self.assertIsNone(parse_flexible_date('soon'))
        self.assertIsNone(parse_flexible_date(''))

    def test_parse_numeric_value(self):
        self.assertEqual(parse_numeric_value('₦1,250.50'), Decimal('1250.50'))
        self.assertEqual(parse_numeric_value('40 packs'), Decimal('40'))
        self.assertEqual(parse_numeric_value('n/a'), Decimal('0'))
        self.assertEqual(parse_numeric_value(None), Decimal('0'))


class ImportServiceTests(TestCase):
    """Test reading, mapping and committing CSV files"""

    def setUp(self):
        self.pharmacy = TestDataFactory.create_pharmacy()

    def test_read_csv_strips_bom_and_sniffs_delimiter(self):
        headers, rows = read_csv('\ufeffName;Phone\nAda Obi;08031234567\n'.encode('utf-8'))
        self.assertEqual(headers, ['Name', 'Phone'])
        self.assertEqual(rows, [{'Name': 'Ada Obi', 'Phone': '08031234567'}])

    def test_read_csv_rejects_empty(self):
        with self.assertRaises(ImportValidationError):
            read_csv(b'   ')
        with self.assertRaises(ImportValidationError):
            read_csv('Name,Phone\n,\n')

    def test_override_mapping(self):
        headers, rows = read_csv(STOCK_CSV)
        mappings = resolve_mappings('medication', headers, rows, {'Remarks': 'location', 'Qty': None})
        self.assertEqual(mappings['Remarks'], {'mapped_to': 'location', 'confidence': 1.0})
        self.assertIsNone(mappings['Qty'])

        with self.assertRaises(ImportValidationError):
            resolve_mappings('medication', headers, rows, {'Remarks': 'colour'})

    def test_commit_medications(self):
        headers, rows = read_csv(STOCK_CSV)
        result = commit_import(self.pharmacy, 'medication', headers, rows)

        self.assertEqual(result['total_rows'], 3)
        self.assertEqual(result['success_count'], 2)
        self.assertEqual(result['error_count'], 1)
        self.assertEqual(result['errors'][0]['row'], 4)
        self.assertEqual(result['metadata_columns_preserved'], 1)

        amoxicillin = Medication.objects.get(pharmacy=self.pharmacy, name='Amoxicillin 500mg')
        self.assertEqual(amoxicillin.unit_price, Decimal('1200.00'))
        self.assertEqual(amoxicillin.current_stock, 40)
        self.assertEqual(amoxicillin.reorder_level, 10)
        self.assertEqual(amoxicillin.metadata, {'Remarks': 'Keep cool'})

        vitamin_c = Medication.objects.get(pharmacy=self.pharmacy, name='Vitamin C')
        self.assertEqual(vitamin_c.expiry_date, date(2099, 5, 13))
        self.assertEqual(vitamin_c.category, 'Other')

    def test_commit_customers(self):
        headers, rows = read_csv('Customer Name,Mobile,Loyalty Card\nAda Obi,08031234567,GOLD-1\n')
        result = commit_import(self.pharmacy, 'customer', headers, rows)
        self.assertEqual(result['success_count'], 1)
        customer = Customer.objects.get(pharmacy=self.pharmacy)
        self.assertEqual(customer.phone, '08031234567')
        self.assertEqual(customer.metadata, {'Loyalty Card': 'GOLD-1'})

    def test_unknown_entity(self):
        with self.assertRaises(ImportValidationError):
            resolve_mappings('prescription', ['Name'], [{'Name': 'x'}])


class InvoiceNormalizationTests(TestCase):
    """Test flattening of invoice extraction results"""

    def test_normalize(self):
        result = normalize_invoice_result({
            'supplierName': 'Emzor',
            'result': {'items': [
                {'productName': 'Paracetamol', 'quantity': 0, 'unitPrice': '₦150', 'expiryDate': '06/2027'},
                {'name': '', 'quantity': 4},
                'garbage',
            ]},
        })
        self.assertEqual(result['supplier'], {'name': 'Emzor'})
        self.assertEqual(len(result['items']), 1)
        item = result['items'][0]
        self.assertEqual(item['name'], 'Paracetamol')
        self.assertEqual(item['quantity'], 1)
        self.assertEqual(item['unit_price'], '150')
        self.assertEqual(item['expiry_date'], '2027-06-01')
        self.assertIsNone(item['selling_price'])

    def test_normalize_non_dict(self):
        result = normalize_invoice_result(None)
        self.assertEqual(result['items'], [])


class ImportAPITests(TestCase):
    """Test the import endpoints"""

    def setUp(self):
        self.owner = TestDataFactory.create_user()
        self.pharmacy = TestDataFactory.create_pharmacy(owner=self.owner)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)

    def test_configs(self):
        response = self.client.get('/api/v1/imports/configs/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(set(response.data.keys()), {'medication', 'customer', 'doctor'})

    def test_preview(self):
        response = self.client.post('/api/v1/imports/preview/', {
            'entity_type': 'medication', 'content': STOCK_CSV,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_rows'], 3)
        self.assertEqual(response.data['unmapped_columns'][0]['source_column'], 'Remarks')
        self.assertEqual(response.data['rows'][0]['row_index'], 2)
        self.assertEqual(response.data['rows'][0]['errors'], [])
        self.assertTrue(response.data['rows'][2]['errors'])
        self.assertFalse(Medication.objects.exists())

    def test_preview_warns_duplicate_batch(self):
        TestDataFactory.create_medication(self.pharmacy, name='Amoxicillin 500mg', batch_number='AMX2201')
        response = self.client.post('/api/v1/imports/preview/', {
            'entity_type': 'medication', 'content': STOCK_CSV,
        }, format='json')
        self.assertIn('A product with this name and batch number already exists', response.data['rows'][0]['warnings'])

    def test_commit_upload_to_main_branch(self):
        upload = SimpleUploadedFile('stock.csv', STOCK_CSV.encode('utf-8'), content_type='text/csv')
        response = self.client.post('/api/v1/imports/commit/', {
            'entity_type': 'medication',
            'file': upload,
            'mappings': '{"Remarks": "location"}',
        }, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['success_count'], 2)

        main = Branch.objects.get(pharmacy=self.pharmacy, is_main=True)
        medication = Medication.objects.get(name='Vitamin C')
        self.assertEqual(medication.branch, main)
        self.assertEqual(medication.location, 'Top shelf')
        self.assertTrue(AuditLog.objects.filter(action='import', object_name='stock.csv').exists())

    def test_commit_rejects_bad_file_type(self):
        upload = SimpleUploadedFile('stock.xlsx', b'PK\x03\x04', content_type='application/octet-stream')
        response = self.client.post('/api/v1/imports/commit/', {'file': upload}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_commit_foreign_branch(self):
        foreign = Branch.objects.get(pharmacy=TestDataFactory.create_pharmacy())
        response = self.client.post('/api/v1/imports/commit/', {
            'entity_type': 'medication', 'content': STOCK_CSV, 'branch': foreign.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_invalid_mappings_json(self):
        response = self.client.post('/api/v1/imports/preview/', {
            'entity_type': 'medication', 'content': STOCK_CSV, 'mappings': 'not json',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_entity_permission(self):
        member = TestDataFactory.create_staff(self.pharmacy, permissions=['access_inventory'])
        client = AuthenticatedAPIClient()
        client.authenticate_user(member.user)
        response = client.post('/api/v1/imports/preview/', {
            'entity_type': 'customer', 'content': 'Name\nAda\n',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    @patch('pharmatrack.ai.dispatcher.dispatch')
    def test_scan_invoice(self, mock_dispatch):
        mock_dispatch.return_value = {
            'supplier': {'name': 'Fidson'},
            'items': [{'name': 'Ciprofloxacin', 'quantity': 3, 'unit_price': 900}],
        }
        response = self.client.post('/api/v1/imports/scan-invoice/', {
            'image_base64': 'data:image/jpeg;base64,AAAA',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['items'][0]['quantity'], 3)
        mock_dispatch.assert_called_once_with(
            'scan_invoice', {'image_base64': 'data:image/jpeg;base64,AAAA'}, pharmacy=self.pharmacy
        )

    def test_scan_invoice_requires_image(self):
        response = self.client.post('/api/v1/imports/scan-invoice/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class ImportMedicationsCommandTests(TestCase):

    def setUp(self):
        self.pharmacy = TestDataFactory.create_pharmacy()
        handle, self.path = tempfile.mkstemp(suffix='.csv')
        with os.fdopen(handle, 'wb') as f:
            f.write(STOCK_CSV.encode('utf-8'))
        self.addCleanup(os.remove, self.path)

    def test_import(self):
        out = StringIO()
        call_command('import_medications', self.path, pharmacy=self.pharmacy.id, stdout=out)
        output = out.getvalue()
        self.assertIn('Medications created: 2', output)
        self.assertIn('Row 4', output)
        self.assertEqual(Medication.objects.filter(pharmacy=self.pharmacy).count(), 2)

    def test_dry_run_saves_nothing(self):
        out = StringIO()
        call_command('import_medications', self.path, pharmacy=self.pharmacy.id, dry_run=True, stdout=out)
        self.assertIn('Dry run: 2 of 3 rows would be imported', out.getvalue())
        self.assertFalse(Medication.objects.filter(pharmacy=self.pharmacy).exists())

    def test_foreign_branch_rejected(self):
        other_branch = Branch.objects.get(pharmacy=TestDataFactory.create_pharmacy(), is_main=True)
        with self.assertRaises(CommandError):
            call_command('import_medications', self.path, pharmacy=self.pharmacy.id,
                         branch=other_branch.id, stdout=StringIO())

    def test_missing_file(self):
        with self.assertRaises(CommandError):
            call_command('import_medications', '/nonexistent/stock.csv', pharmacy=self.pharmacy.id,
                         stdout=StringIO())
