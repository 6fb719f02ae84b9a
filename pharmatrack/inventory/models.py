from django.db import models
from pharmatrack.catalog.models import Medication
from pharmatrack.core.models import User
from pharmatrack.pharmacies.models import Pharmacy, Branch


class StockAdjustment(models.Model):
    """Stock adjustments (in/out) on a single batch"""
    ADJUSTMENT_TYPE_CHOICES = [
        ('in', 'Stock In'),
        ('out', 'Stock Out'),
    ]

    REASON_CHOICES = [
        ('received', 'Received'),
        ('damaged', 'Damaged'),
        ('expired', 'Expired'),
        ('found', 'Found'),
        ('theft', 'Theft'),
        ('returned', 'Customer Return'),
        ('correction', 'Correction'),
        ('other', 'Other'),
    ]

    pharmacy = models.ForeignKey(Pharmacy, on_delete=models.CASCADE, related_name='stock_adjustments')
    medication = models.ForeignKey(Medication, on_delete=models.CASCADE, related_name='adjustments')
    adjustment_type = models.CharField(max_length=10, choices=ADJUSTMENT_TYPE_CHOICES)
    quantity = models.IntegerField()
    reason = models.CharField(max_length=50, choices=REASON_CHOICES)
    notes = models.TextField(blank=True)
    previous_stock = models.IntegerField(default=0)
    new_stock = models.IntegerField(default=0)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='stock_adjustments')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.adjustment_type} {self.quantity} {self.medication.name}"

    class Meta:
        db_table = 'stock_adjustments'
        ordering = ['-created_at']


class StockTransfer(models.Model):
    """Stock transfers between branches"""
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('in_transit', 'In Transit'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
    ]

    transfer_number = models.CharField(max_length=100, unique=True)
    pharmacy = models.ForeignKey(Pharmacy, on_delete=models.CASCADE, related_name='stock_transfers')
    from_branch = models.ForeignKey(Branch, on_delete=models.CASCADE, related_name='transfers_from')
    to_branch = models.ForeignKey(Branch, on_delete=models.CASCADE, related_name='transfers_to')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='stock_transfers')
    completed_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='completed_stock_transfers')
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.transfer_number

    class Meta:
        db_table = 'stock_transfers'
        ordering = ['-created_at']


class StockTransferItem(models.Model):
    """Items in a stock transfer; batches drawn are recorded on completion"""
    transfer = models.ForeignKey(StockTransfer, on_delete=models.CASCADE, related_name='items')
    product_name = models.CharField(max_length=255)
    quantity = models.IntegerField()
    transferred_quantity = models.IntegerField(default=0)
    batch_details = models.JSONField(default=list, blank=True)

    def __str__(self):
        return f"{self.product_name} x{self.quantity}"

    class Meta:
        db_table = 'stock_transfer_items'


class InternalTransfer(models.Model):
    """Movement between the back store and the shelf within one batch"""
    DIRECTION_CHOICES = [
        ('store_to_shelf', 'Store to Shelf'),
        ('shelf_to_store', 'Shelf to Store'),
    ]

    pharmacy = models.ForeignKey(Pharmacy, on_delete=models.CASCADE, related_name='internal_transfers')
    medication = models.ForeignKey(Medication, on_delete=models.CASCADE, related_name='internal_transfers')
    direction = models.CharField(max_length=20, choices=DIRECTION_CHOICES, default='store_to_shelf')
    quantity = models.IntegerField()
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='internal_transfers')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'internal_transfers'
        ordering = ['-created_at']
