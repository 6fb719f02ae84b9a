"""
Test suite for Parties module
Tests: customers, purchase history, doctors, suppliers and prescriptions
"""
from datetime import timedelta
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from pharmatrack.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from pharmatrack.core.models import AuditLog
from pharmatrack.parties.models import Customer, Supplier, Prescription
from pharmatrack.parties.services import record_refill, PrescriptionError


class PartiesTestBase(TestCase):

    def setUp(self):
        self.owner = TestDataFactory.create_user()
        self.pharmacy = TestDataFactory.create_pharmacy(owner=self.owner)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)


class CustomerAPITests(PartiesTestBase):
    """Test customer endpoints"""

    def test_create_customer(self):
        response = self.client.post('/api/v1/customers/', {
            'full_name': ' Ngozi Eze ',
            'phone': '08023456789',
            'email': 'ngozi@example.com',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['full_name'], 'Ngozi Eze')
        self.assertEqual(response.data['loyalty_points'], 0)
        self.assertTrue(AuditLog.objects.filter(model_name='Customer', action='create').exists())

    def test_blank_name(self):
        response = self.client.post('/api/v1/customers/', {'full_name': '   '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_loyalty_points_read_only(self):
        customer = TestDataFactory.create_customer(self.pharmacy)
        self.client.patch(f'/api/v1/customers/{customer.id}/', {'loyalty_points': 999}, format='json')
        customer.refresh_from_db()
        self.assertEqual(customer.loyalty_points, 0)

    def test_search(self):
        TestDataFactory.create_customer(self.pharmacy, full_name='Ngozi Eze', phone='08011112222')
        TestDataFactory.create_customer(self.pharmacy, full_name='Musa Bello', phone='08033334444')
        response = self.client.get('/api/v1/customers/', {'search': '3333'})
        self.assertEqual([c['full_name'] for c in response.data], ['Musa Bello'])

    def test_tenant_isolation(self):
        foreign = TestDataFactory.create_customer(TestDataFactory.create_pharmacy())
        response = self.client.get(f'/api/v1/customers/{foreign.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        response = self.client.get('/api/v1/customers/')
        self.assertEqual(response.data, [])

    def test_permission_required(self):
        member = TestDataFactory.create_staff(self.pharmacy, permissions=['view_own_sales'])
        client = AuthenticatedAPIClient()
        client.authenticate_user(member.user)
        response = client.get('/api/v1/customers/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_purchase_history(self):
        customer = TestDataFactory.create_customer(self.pharmacy, full_name='Ngozi Eze')
        medication = TestDataFactory.create_medication(self.pharmacy)
        TestDataFactory.create_sale(self.pharmacy, self.owner, medication, quantity=3, customer=customer)
        TestDataFactory.create_sale(self.pharmacy, self.owner, medication, quantity=1)

        response = self.client.get(f'/api/v1/customers/{customer.id}/purchases/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['visits'], 1)
        self.assertEqual(response.data['total_spent'], 300)
        self.assertEqual(response.data['sales'][0]['customer_name'], 'Ngozi Eze')

    def test_delete(self):
        customer = TestDataFactory.create_customer(self.pharmacy)
        response = self.client.delete(f'/api/v1/customers/{customer.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Customer.objects.filter(pk=customer.pk).exists())


class DoctorAPITests(PartiesTestBase):
    """Test prescriber endpoints"""

    def test_create_and_search(self):
        response = self.client.post('/api/v1/doctors/', {
            'full_name': 'Dr. Funke Adeyemi',
            'hospital_clinic': 'LUTH',
            'specialty': 'Paediatrics',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        TestDataFactory.create_doctor(self.pharmacy, full_name='Dr. Okafor', hospital_clinic='Reddington')
        response = self.client.get('/api/v1/doctors/', {'search': 'luth'})
        self.assertEqual([d['full_name'] for d in response.data], ['Dr. Funke Adeyemi'])

    def test_update(self):
        doctor = TestDataFactory.create_doctor(self.pharmacy)
        response = self.client.patch(f'/api/v1/doctors/{doctor.id}/', {'phone': '08055556666'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['phone'], '08055556666')


class SupplierAPITests(PartiesTestBase):
    """Test supplier endpoints"""

    def test_duplicate_name_rejected(self):
        TestDataFactory.create_supplier(self.pharmacy, name='Emzor Pharmaceuticals')
        response = self.client.post('/api/v1/suppliers/', {'name': 'emzor pharmaceuticals'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_same_name_in_other_pharmacy(self):
        TestDataFactory.create_supplier(TestDataFactory.create_pharmacy(), name='Emzor Pharmaceuticals')
        response = self.client.post('/api/v1/suppliers/', {'name': 'Emzor Pharmaceuticals'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_rename_to_itself(self):
        supplier = TestDataFactory.create_supplier(self.pharmacy, name='Fidson')
        response = self.client.put(f'/api/v1/suppliers/{supplier.id}/', {'name': 'Fidson'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_filter_active(self):
        TestDataFactory.create_supplier(self.pharmacy, name='Fidson')
        Supplier.objects.create(pharmacy=self.pharmacy, name='Old Distributor', is_active=False)
        response = self.client.get('/api/v1/suppliers/', {'is_active': 'false'})
        self.assertEqual([s['name'] for s in response.data], ['Old Distributor'])

    def test_inventory_manager_template_can_access(self):
        member = TestDataFactory.create_staff(self.pharmacy, permissions=['access_suppliers'])
        client = AuthenticatedAPIClient()
        client.authenticate_user(member.user)
        response = client.get('/api/v1/suppliers/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)


class PrescriptionAPITests(PartiesTestBase):
    """Test prescriptions, their items and refills"""

    def setUp(self):
        super().setUp()
        self.customer = TestDataFactory.create_customer(self.pharmacy, full_name='Ngozi Eze')
        self.doctor = TestDataFactory.create_doctor(self.pharmacy, full_name='Dr. Funke Adeyemi')
        self.medication = TestDataFactory.create_medication(self.pharmacy, name='Lisinopril 10mg')

    def _create(self, **fields):
        data = {'customer': self.customer, 'max_refills': 2}
        data.update(fields)
        number = f"RX-{Prescription.objects.count() + 1}"
        return Prescription.objects.create(pharmacy=self.pharmacy, prescription_number=number, **data)

    def test_create_with_items(self):
        response = self.client.post('/api/v1/prescriptions/', {
            'customer': self.customer.id,
            'doctor': self.doctor.id,
            'diagnosis': 'Hypertension',
            'max_refills': 3,
            'items': [
                {'medication': self.medication.id, 'medication_name': 'Lisinopril 10mg', 'dosage': '10mg',
                 'frequency': 'Once daily', 'duration': '30 days', 'quantity': 30},
                {'medication_name': 'Aspirin 75mg', 'dosage': '75mg', 'frequency': 'Once daily'},
            ],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['prescription_number'].startswith('RX-'))
        self.assertEqual(response.data['customer_name'], 'Ngozi Eze')
        self.assertEqual(response.data['doctor_name'], 'Dr. Funke Adeyemi')
        self.assertEqual(response.data['refills_remaining'], 3)
        self.assertEqual(len(response.data['items']), 2)
        self.assertTrue(AuditLog.objects.filter(model_name='Prescription', action='create').exists())

    def test_foreign_customer_and_medication_rejected(self):
        other = TestDataFactory.create_pharmacy()
        response = self.client.post('/api/v1/prescriptions/', {
            'customer': TestDataFactory.create_customer(other).id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('customer', response.data)

        response = self.client.post('/api/v1/prescriptions/', {
            'customer': self.customer.id,
            'items': [{'medication': TestDataFactory.create_medication(other).id, 'medication_name': 'X',
                       'dosage': '1', 'frequency': 'daily'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('items', response.data)

    def test_expiry_before_issue_rejected(self):
        today = timezone.localdate()
        response = self.client.post('/api/v1/prescriptions/', {
            'customer': self.customer.id,
            'issue_date': str(today),
            'expiry_date': str(today - timedelta(days=1)),
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_replaces_items(self):
        prescription = self._create()
        prescription.items.create(medication_name='Old', dosage='1', frequency='daily')
        response = self.client.patch(f'/api/v1/prescriptions/{prescription.id}/', {
            'items': [{'medication_name': 'New', 'dosage': '2', 'frequency': 'twice daily'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([item['medication_name'] for item in response.data['items']], ['New'])

    def test_filter_by_customer(self):
        self._create()
        other_customer = TestDataFactory.create_customer(self.pharmacy)
        self._create(customer=other_customer)
        response = self.client.get('/api/v1/prescriptions/', {'customer': self.customer.id})
        self.assertEqual(len(response.data), 1)
        response = self.client.get('/api/v1/prescriptions/', {'customer': 'abc'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_refill_until_allowance_used(self):
        prescription = self._create(max_refills=2, next_refill_reminder=timezone.localdate())
        response = self.client.post(f'/api/v1/prescriptions/{prescription.id}/refill/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['refill_count'], 1)
        self.assertEqual(response.data['status'], 'active')

        response = self.client.post(f'/api/v1/prescriptions/{prescription.id}/refill/')
        self.assertEqual(response.data['refill_count'], 2)
        self.assertEqual(response.data['status'], 'completed')
        self.assertIsNotNone(response.data['last_refill_date'])

        response = self.client.post(f'/api/v1/prescriptions/{prescription.id}/refill/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        prescription.refresh_from_db()
        self.assertEqual(prescription.refill_count, 2)

    def test_expired_prescription_cannot_be_refilled(self):
        prescription = self._create(issue_date=timezone.localdate() - timedelta(days=60),
                                    expiry_date=timezone.localdate() - timedelta(days=1))
        with self.assertRaises(PrescriptionError):
            record_refill(prescription)
        prescription.refresh_from_db()
        self.assertEqual(prescription.status, 'expired')
        self.assertEqual(prescription.refill_count, 0)

    def test_max_refills_cannot_drop_below_used(self):
        prescription = self._create(max_refills=3, refill_count=2)
        response = self.client.patch(f'/api/v1/prescriptions/{prescription.id}/', {'max_refills': 1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_due_refills(self):
        today = timezone.localdate()
        due = self._create(next_refill_reminder=today)
        self._create(next_refill_reminder=today + timedelta(days=3))
        self._create(next_refill_reminder=today, max_refills=1, refill_count=1)
        self._create(next_refill_reminder=today, status='cancelled')

        response = self.client.get('/api/v1/prescriptions/due-refills/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['id'], due.id)

    def test_tenant_isolation(self):
        other = TestDataFactory.create_pharmacy()
        foreign = Prescription.objects.create(pharmacy=other, customer=TestDataFactory.create_customer(other),
                                              prescription_number='RX-FOREIGN')
        response = self.client.get(f'/api/v1/prescriptions/{foreign.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        response = self.client.post(f'/api/v1/prescriptions/{foreign.id}/refill/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
