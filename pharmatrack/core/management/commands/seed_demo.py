"""
Management command to create a demo pharmacy with staff, stock and sales
Usage: python manage.py seed_demo [--reset]
"""
from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.utils import timezone

from pharmatrack.billing.plans import get_plan_limits
from pharmatrack.catalog.models import Medication
from pharmatrack.parties.models import Customer, Supplier
from pharmatrack.pharmacies.models import Pharmacy
from pharmatrack.pharmacies.views import create_pharmacy_for_owner
from pharmatrack.pos.services import checkout
from pharmatrack.staff.permissions import ROLE_TEMPLATES
from pharmatrack.staff.services import set_staff_permissions
from pharmatrack.staff.models import PharmacyStaff

User = get_user_model()

DEMO_OWNER = 'demo_owner'
DEMO_PASSWORD = 'DemoPharm123!'

# name, category, batch, stock, days to expiry, cost, selling, controlled
DEMO_STOCK = [
    ('Paracetamol 500mg', 'Tablet', 'PCM2401', 120, 400, '35.00', '50.00', False),
    ('Paracetamol 500mg', 'Tablet', 'PCM2312', 30, 20, '35.00', '50.00', False),
    ('Amoxicillin 500mg', 'Capsule', 'AMX2402', 80, 300, '120.00', '180.00', False),
    ('Coartem 80/480', 'Tablet', 'CTM2311', 25, 45, '1500.00', '2200.00', False),
    ('Vitamin C 1000mg', 'Vitamins', 'VTC2401', 6, 200, '250.00', '400.00', False),
    ('Benylin Syrup 100ml', 'Syrup', 'BNL2305', 12, -10, '900.00', '1300.00', False),
    ('Tramadol 50mg', 'Capsule', 'TRM2403', 40, 250, '300.00', '450.00', True),
    ('Dettol Antiseptic 250ml', 'Hygiene', 'DTL2402', 0, 500, '1100.00', '1500.00', False),
]

DEMO_SALES = [
    [{'product_name': 'Paracetamol 500mg', 'quantity': 40}],
    [{'product_name': 'Amoxicillin 500mg', 'quantity': 2}, {'product_name': 'Vitamin C 1000mg', 'quantity': 1}],
    [{'product_name': 'Coartem 80/480', 'quantity': 1}],
    [{'product_name': 'Tramadol 50mg', 'quantity': 1}],
]


class Command(BaseCommand):
    help = 'Create a demo pharmacy with staff, medications (including expired and near-expiry batches) and sales'

    def add_arguments(self, parser):
        parser.add_argument(
            '--reset',
            action='store_true',
            help='Delete an existing demo pharmacy and its users first',
        )

    def handle(self, *args, **options):
        existing = User.objects.filter(username=DEMO_OWNER).first()
        if existing:
            if not options['reset']:
                raise CommandError('Demo data already exists. Use --reset to recreate it.')
            Pharmacy.objects.filter(owner=existing).delete()
            User.objects.filter(username__startswith='demo_').delete()
            self.stdout.write(self.style.WARNING('Removed existing demo pharmacy'))

        with transaction.atomic():
            owner = User.objects.create_user(
                username=DEMO_OWNER,
                email='owner@demo.pharmatrack.ng',
                password=DEMO_PASSWORD,
                full_name='Adaeze Okafor',
            )
            pharmacy = create_pharmacy_for_owner(owner, {
                'name': 'Demo Pharmacy Yaba',
                'email': 'hello@demo.pharmatrack.ng',
                'phone': '08030000000',
                'address': '12 Herbert Macaulay Way, Yaba, Lagos',
                'license_number': 'PCN-DEMO-001',
                'pharmacist_in_charge': 'Pharm. Adaeze Okafor',
            })
            limits = get_plan_limits('pro')
            pharmacy.subscription_plan = 'pro'
            pharmacy.max_users = limits['max_users']
            pharmacy.active_branches_limit = limits['max_branches']
            pharmacy.save(update_fields=['subscription_plan', 'max_users', 'active_branches_limit'])
            main_branch = pharmacy.branches.get(is_main=True)

            for username, full_name, template in [
                ('demo_cashier', 'Bola Ahmed', 'cashier'),
                ('demo_stock', 'Emeka Nwosu', 'inventory_manager'),
            ]:
                user = User.objects.create_user(
                    username=username,
                    email=f'{username}@demo.pharmatrack.ng',
                    password=DEMO_PASSWORD,
                    full_name=full_name,
                )
                membership = PharmacyStaff.objects.create(
                    user=user, pharmacy=pharmacy, branch=main_branch, role='staff'
                )
                set_staff_permissions(membership, ROLE_TEMPLATES[template]['permissions'], granted_by=owner)
                self.stdout.write(f'  ✓ Staff {full_name} ({template})')

            today = timezone.localdate()
            for name, category, batch, stock, days, cost, selling, controlled in DEMO_STOCK:
                Medication.objects.create(
                    pharmacy=pharmacy,
                    branch=main_branch,
                    name=name,
                    category=category,
                    batch_number=batch,
                    current_stock=stock,
                    store_quantity=stock,
                    expiry_date=today + timedelta(days=days),
                    unit_price=Decimal(cost),
                    selling_price=Decimal(selling),
                    is_controlled=controlled,
                    is_public=not controlled,
                    nafdac_reg_number=None if controlled else f'A4-{1000 + len(name)}',
                )
            self.stdout.write(f'  ✓ {len(DEMO_STOCK)} medication batches')

            customer = Customer.objects.create(pharmacy=pharmacy, full_name='Tunde Bakare', phone='08021234567')
            Supplier.objects.create(pharmacy=pharmacy, name='Emzor Distribution', phone='012345678',
                                    payment_terms='30 days')

            for items in DEMO_SALES:
                sale = checkout(pharmacy, owner, items, payment_method='cash', customer=customer,
                                branch=main_branch)
                self.stdout.write(f'  ✓ Sale {sale.receipt_number} ({sale.total})')

        self.stdout.write(self.style.SUCCESS(
            f"Demo pharmacy ready. Log in as {DEMO_OWNER} / {DEMO_PASSWORD}"
        ))
