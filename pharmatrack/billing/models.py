from django.db import models
from pharmatrack.core.models import User
from decimal import Decimal
from pharmatrack.pharmacies.models import Pharmacy
from pharmatrack.catalog.models import Medication


class SubscriptionPayment(models.Model):
    """A Paystack charge for a subscription plan or a featured marketplace listing"""
    PURPOSE_CHOICES = [
        ('subscription', 'Subscription'),
        ('featured', 'Featured Listing'),
    ]

    BILLING_PERIOD_CHOICES = [
        ('monthly', 'Monthly'),
        ('annual', 'Annual'),
    ]

    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('completed', 'Completed'),
        ('failed', 'Failed'),
    ]

    pharmacy = models.ForeignKey(Pharmacy, on_delete=models.CASCADE, related_name='payments')
    purpose = models.CharField(max_length=20, choices=PURPOSE_CHOICES, default='subscription')
    plan = models.CharField(max_length=20, blank=True, null=True)
    billing_period = models.CharField(max_length=10, choices=BILLING_PERIOD_CHOICES, default='monthly')
    amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    currency = models.CharField(max_length=3, default='NGN')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    paystack_reference = models.CharField(max_length=100, unique=True, blank=True, null=True)
    paystack_transaction_id = models.CharField(max_length=100, blank=True, null=True)
    medication = models.ForeignKey(
        Medication, on_delete=models.SET_NULL, null=True, blank=True, related_name='featured_payments'
    )
    duration_days = models.IntegerField(null=True, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    is_gift = models.BooleanField(default=False)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='payments')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.get_purpose_display()} - {self.pharmacy.name} - {self.amount} ({self.status})"

    class Meta:
        db_table = 'subscription_payments'
        ordering = ['-created_at']
