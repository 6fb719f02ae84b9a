from django.db import models
from decimal import Decimal
from pharmatrack.catalog.models import Medication
from pharmatrack.core.models import User
from pharmatrack.parties.models import Customer
from pharmatrack.pharmacies.models import Pharmacy, Branch
from pharmatrack.staff.models import StaffShift


PAYMENT_METHOD_CHOICES = [
    ('cash', 'Cash'),
    ('card', 'Card'),
    ('transfer', 'Bank Transfer'),
    ('pos', 'POS Terminal'),
    ('credit', 'Credit'),
]


class Cart(models.Model):
    """POS carts; held carts are parked transactions resumed later"""
    STATUS_CHOICES = [
        ('active', 'Active'),
        ('held', 'Held'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
    ]

    pharmacy = models.ForeignKey(Pharmacy, on_delete=models.CASCADE, related_name='carts')
    branch = models.ForeignKey(Branch, on_delete=models.SET_NULL, null=True, blank=True, related_name='carts')
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='carts')
    customer = models.ForeignKey(Customer, on_delete=models.SET_NULL, null=True, blank=True, related_name='carts')
    customer_name = models.CharField(max_length=255, blank=True, null=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='active')
    note = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Cart {self.id} ({self.status})"

    class Meta:
        db_table = 'carts'
        ordering = ['-updated_at']


class CartItem(models.Model):
    """Cart line: a product (by batch) or a quick item with a typed name and price"""
    cart = models.ForeignKey(Cart, on_delete=models.CASCADE, related_name='items')
    medication = models.ForeignKey(Medication, on_delete=models.CASCADE, null=True, blank=True, related_name='cart_items')
    item_name = models.CharField(max_length=255, blank=True, null=True)
    item_price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    quantity = models.IntegerField(default=1)

    @property
    def is_quick_item(self):
        return self.medication_id is None

    @property
    def display_name(self):
        return self.medication.name if self.medication_id else self.item_name

    class Meta:
        db_table = 'cart_items'


class Sale(models.Model):
    """Receipt header for a completed checkout"""
    STATUS_CHOICES = [
        ('completed', 'Completed'),
        ('voided', 'Voided'),
    ]

    receipt_number = models.CharField(max_length=50, unique=True)
    pharmacy = models.ForeignKey(Pharmacy, on_delete=models.CASCADE, related_name='sales')
    branch = models.ForeignKey(Branch, on_delete=models.SET_NULL, null=True, blank=True, related_name='sales')
    customer = models.ForeignKey(Customer, on_delete=models.SET_NULL, null=True, blank=True, related_name='sales')
    customer_name = models.CharField(max_length=255, blank=True, null=True)
    sold_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='sales')
    shift = models.ForeignKey(StaffShift, on_delete=models.SET_NULL, null=True, blank=True, related_name='sales')
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES, default='cash')
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    loyalty_points_awarded = models.IntegerField(default=0)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='completed')
    client_reference = models.CharField(max_length=100, blank=True, null=True)
    voided_at = models.DateTimeField(null=True, blank=True)
    voided_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='voided_sales')
    void_reason = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.receipt_number

    class Meta:
        db_table = 'sales'
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(fields=['pharmacy', 'client_reference'], name='uniq_sale_client_reference'),
        ]
        indexes = [
            models.Index(fields=['pharmacy', 'created_at'], name='idx_sale_pharmacy_created'),
        ]


class SaleItem(models.Model):
    """One line per batch drawn from, so voids restock the right batch"""
    sale = models.ForeignKey(Sale, on_delete=models.CASCADE, related_name='items')
    medication = models.ForeignKey(Medication, on_delete=models.SET_NULL, null=True, blank=True, related_name='sale_items')
    product_name = models.CharField(max_length=255)
    batch_number = models.CharField(max_length=100, blank=True)
    quantity = models.IntegerField()
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    total_price = models.DecimalField(max_digits=12, decimal_places=2)
    expiry_label = models.CharField(max_length=50, blank=True)

    def __str__(self):
        return f"{self.product_name} x{self.quantity}"

    class Meta:
        db_table = 'sale_items'


class PendingTransaction(models.Model):
    """
    Sale waiting to be processed: a counter invoice the cashier settles by
    short code, or a sale made offline and uploaded later.
    """
    SOURCE_CHOICES = [
        ('invoice', 'Counter Invoice'),
        ('offline', 'Offline Sale'),
    ]

    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
        ('failed', 'Failed'),
    ]

    pharmacy = models.ForeignKey(Pharmacy, on_delete=models.CASCADE, related_name='pending_transactions')
    branch = models.ForeignKey(Branch, on_delete=models.SET_NULL, null=True, blank=True, related_name='pending_transactions')
    source = models.CharField(max_length=20, choices=SOURCE_CHOICES, default='invoice')
    short_code = models.CharField(max_length=20, blank=True, null=True, db_index=True)
    client_reference = models.CharField(max_length=100, blank=True, null=True, db_index=True)
    items = models.JSONField(default=list)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    customer_name = models.CharField(max_length=255, blank=True, null=True)
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES, blank=True, null=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    error_message = models.TextField(blank=True)
    sale = models.ForeignKey(Sale, on_delete=models.SET_NULL, null=True, blank=True, related_name='pending_transactions')
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='pending_transactions')
    completed_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='completed_pending_transactions')
    completed_at = models.DateTimeField(null=True, blank=True)
    sold_at = models.DateTimeField(null=True, blank=True, help_text='Client-side sale time for offline sales')
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.short_code or self.client_reference or f"Pending {self.id}"

    class Meta:
        db_table = 'pending_transactions'
        ordering = ['-created_at']
