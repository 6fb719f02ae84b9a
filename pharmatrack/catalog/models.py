from django.db import models
from django.utils import timezone
from decimal import Decimal
from pharmatrack.pharmacies.models import Pharmacy, Branch


CATEGORY_GROUPS = {
    'Pharmaceuticals': ['Tablet', 'Syrup', 'Capsule', 'Injection', 'Cream', 'Drops', 'Inhaler', 'Powder'],
    'Health & Wellness': ['Vitamins', 'Supplements', 'First Aid', 'Medical Devices', 'Baby Care', 'Herbal Products'],
    'Beauty & Personal Care': ['Skincare', 'Cosmetics', 'Toiletries', 'Hygiene', 'Hair Care', 'Oral Care'],
    'General Provisions': ['Beverages', 'Snacks', 'Household', 'Pet Care', 'Stationery'],
}

ALL_CATEGORIES = [category for group in CATEGORY_GROUPS.values() for category in group] + ['Other']

CATEGORY_CHOICES = [(category, category) for category in ALL_CATEGORIES]


def get_category_group(category):
    """Group name a category belongs to ('Other' when unknown)"""
    for group, categories in CATEGORY_GROUPS.items():
        if category in categories:
            return group
    return 'Other'


class Medication(models.Model):
    """One stock batch of a product; products with several batches share a name"""
    DISPENSING_UNIT_CHOICES = [
        ('unit', 'Unit'),
        ('pack', 'Pack'),
        ('tab', 'Tab'),
        ('bottle', 'Bottle'),
    ]

    pharmacy = models.ForeignKey(Pharmacy, on_delete=models.CASCADE, related_name='medications')
    branch = models.ForeignKey(Branch, on_delete=models.SET_NULL, null=True, blank=True, related_name='medications')
    name = models.CharField(max_length=255, db_index=True)
    category = models.CharField(max_length=50, choices=CATEGORY_CHOICES, default='Other')
    batch_number = models.CharField(max_length=100, blank=True)
    current_stock = models.IntegerField(default=0)
    reorder_level = models.IntegerField(default=10)
    expiry_date = models.DateField()
    manufacturing_date = models.DateField(null=True, blank=True)
    unit_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'), help_text='Cost price')
    selling_price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    wholesale_price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    shelf_quantity = models.IntegerField(default=0)
    store_quantity = models.IntegerField(default=0)
    barcode_id = models.CharField(max_length=100, blank=True, null=True, db_index=True)
    supplier = models.CharField(max_length=255, blank=True, null=True)
    location = models.CharField(max_length=100, blank=True, null=True)
    min_stock_alert = models.IntegerField(null=True, blank=True)
    is_shelved = models.BooleanField(default=False)
    is_controlled = models.BooleanField(default=False)
    is_public = models.BooleanField(default=False)
    is_featured = models.BooleanField(default=False)
    featured_until = models.DateTimeField(null=True, blank=True)
    nafdac_reg_number = models.CharField(max_length=50, blank=True, null=True)
    dispensing_unit = models.CharField(max_length=10, choices=DISPENSING_UNIT_CHOICES, default='unit')
    active_ingredients = models.JSONField(default=list, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    last_notified_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        if self.batch_number:
            return f"{self.name} ({self.batch_number})"
        return self.name

    @property
    def effective_price(self):
        """Price charged at the till: selling price, falling back to unit price"""
        if self.selling_price:
            return self.selling_price
        return self.unit_price or Decimal('0.00')

    @property
    def is_expired(self):
        return self.expiry_date <= timezone.localdate()

    @property
    def days_to_expiry(self):
        return (self.expiry_date - timezone.localdate()).days

    @property
    def is_low_stock(self):
        threshold = self.min_stock_alert if self.min_stock_alert is not None else self.reorder_level
        return self.current_stock <= threshold

    @property
    def is_currently_featured(self):
        return bool(self.is_featured and self.featured_until and self.featured_until > timezone.now())

    def remove_units(self, quantity, shelf_first=False):
        """
        Take ``quantity`` units off the batch (not saved). Units come from the
        preferred location first and the rest from the other one, so
        shelf + store never exceeds current_stock. Returns the units removed.
        """
        removed = min(quantity, max(self.current_stock, 0))
        self.current_stock -= removed
        if shelf_first:
            from_shelf = min(self.shelf_quantity, removed)
            self.shelf_quantity -= from_shelf
            self.store_quantity = max(0, self.store_quantity - (removed - from_shelf))
        else:
            from_store = min(self.store_quantity, removed)
            self.store_quantity -= from_store
            self.shelf_quantity = max(0, self.shelf_quantity - (removed - from_store))
        self.is_shelved = self.shelf_quantity > 0
        return removed

    def add_units(self, quantity):
        """Receive ``quantity`` units into the back store (not saved)"""
        self.current_stock += quantity
        self.store_quantity += quantity

    class Meta:
        db_table = 'medications'
        ordering = ['name', 'expiry_date']
        indexes = [
            models.Index(fields=['pharmacy', 'name'], name='idx_med_pharmacy_name'),
            models.Index(fields=['pharmacy', 'expiry_date'], name='idx_med_pharmacy_expiry'),
            models.Index(fields=['pharmacy', 'barcode_id'], name='idx_med_pharmacy_barcode'),
            models.Index(fields=['is_public', 'is_featured'], name='idx_med_marketplace'),
        ]


class MasterBarcode(models.Model):
    """Shared barcode library used to prefill products scanned for the first time"""
    barcode = models.CharField(max_length=100, unique=True)
    product_name = models.CharField(max_length=255)
    category = models.CharField(max_length=50, blank=True, null=True)
    manufacturer = models.CharField(max_length=255, blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.barcode} - {self.product_name}"

    class Meta:
        db_table = 'master_barcode_library'
        ordering = ['product_name']
