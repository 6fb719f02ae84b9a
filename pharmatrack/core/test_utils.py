"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from pharmatrack.pharmacies.models import Branch
from pharmatrack.pharmacies.views import create_pharmacy_for_owner
from pharmatrack.staff.models import PharmacyStaff
from pharmatrack.staff.services import set_staff_permissions
from pharmatrack.catalog.models import Medication
from pharmatrack.parties.models import Customer, Doctor, Supplier
from pharmatrack.pos.services import checkout
from decimal import Decimal
from datetime import timedelta
from django.utils import timezone
import random
import string

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', full_name=None, is_staff=False,
                    is_superuser=False):
        """Create a test user"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        return User.objects.create_user(
            username=username,
            email=email,
            password=password,
            full_name=full_name or username,
            is_staff=is_staff,
            is_superuser=is_superuser
        )

    @staticmethod
    def create_pharmacy(owner=None, name=None, **fields):
        """Onboard a pharmacy (trial, main branch, owner membership)"""
        if owner is None:
            owner = TestDataFactory.create_user()
        if not name:
            name = f'Pharmacy {TestDataFactory.random_string(6)}'
        data = {'name': name, 'email': f'{name.replace(" ", "").lower()}@pharmacy.test', 'phone': '08031234567'}
        data.update(fields)
        return create_pharmacy_for_owner(owner, data)

    @staticmethod
    def create_branch(pharmacy, name=None, is_main=False):
        """Create an extra branch"""
        if not name:
            name = f'Branch {TestDataFactory.random_string(6)}'
        return Branch.objects.create(pharmacy=pharmacy, name=name, address='Test Address', is_main=is_main)

    @staticmethod
    def create_staff(pharmacy, role='staff', permissions=None, branch=None, user=None):
        """Add a member to the pharmacy, bypassing the plan's user limit"""
        if user is None:
            user = TestDataFactory.create_user()
        membership = PharmacyStaff.objects.create(user=user, pharmacy=pharmacy, branch=branch, role=role)
        if permissions:
            set_staff_permissions(membership, permissions)
        return membership

    @staticmethod
    def create_medication(pharmacy, name=None, stock=100, expiry_days=365, branch=None, **fields):
        """Create a medication batch"""
        if not name:
            name = f'Medication {TestDataFactory.random_string(6)}'
        data = {
            'category': 'Tablet',
            'batch_number': f'BN-{TestDataFactory.random_string(6).upper()}',
            'current_stock': stock,
            'store_quantity': stock,
            'reorder_level': 10,
            'expiry_date': timezone.localdate() + timedelta(days=expiry_days),
            'unit_price': Decimal('50.00'),
            'selling_price': Decimal('100.00'),
        }
        data.update(fields)
        return Medication.objects.create(pharmacy=pharmacy, branch=branch, name=name, **data)

    @staticmethod
    def create_customer(pharmacy, full_name=None, phone=None, email=None):
        """Create a test customer"""
        if not full_name:
            full_name = f'Customer {TestDataFactory.random_string(6)}'
        if not phone:
            phone = f'080{random.randint(10000000, 99999999)}'
        return Customer.objects.create(pharmacy=pharmacy, full_name=full_name, phone=phone, email=email)

    @staticmethod
    def create_supplier(pharmacy, name=None, phone=None, email=None):
        """Create a test supplier"""
        if not name:
            name = f'Supplier {TestDataFactory.random_string(6)}'
        if not phone:
            phone = f'080{random.randint(10000000, 99999999)}'
        return Supplier.objects.create(pharmacy=pharmacy, name=name, phone=phone, email=email)

    @staticmethod
    def create_doctor(pharmacy, full_name=None, hospital_clinic=None):
        """Create a test prescriber"""
        if not full_name:
            full_name = f'Dr {TestDataFactory.random_string(6)}'
        return Doctor.objects.create(pharmacy=pharmacy, full_name=full_name, hospital_clinic=hospital_clinic)

    @staticmethod
    def create_sale(pharmacy, user, medication, quantity=1, payment_method='cash', customer=None, **kwargs):
        """Check out a single stocked line"""
        return checkout(
            pharmacy,
            user,
            [{'medication_id': medication.id, 'quantity': quantity}],
            payment_method=payment_method,
            customer=customer,
            **kwargs
        )


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
