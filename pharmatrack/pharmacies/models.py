from django.db import models
from django.utils import timezone
from decimal import Decimal
from pharmatrack.core.models import User


class Pharmacy(models.Model):
    """Pharmacy tenant; every operational record belongs to one"""
    PLAN_CHOICES = [
        ('lite', 'Lite'),
        ('starter', 'Starter'),
        ('pro', 'Pro'),
        ('enterprise', 'Enterprise'),
    ]

    STATUS_CHOICES = [
        ('trial', 'Trial'),
        ('active', 'Active'),
        ('expired', 'Expired'),
        ('cancelled', 'Cancelled'),
    ]

    name = models.CharField(max_length=255)
    email = models.EmailField(blank=True, null=True, db_index=True)
    phone = models.CharField(max_length=30, blank=True, null=True)
    address = models.TextField(blank=True)
    license_number = models.CharField(max_length=100, blank=True, null=True)
    pharmacist_in_charge = models.CharField(max_length=255, blank=True, null=True)
    owner = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='owned_pharmacies')
    currency = models.CharField(max_length=3, default='NGN')
    default_margin_percent = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('20.00'))
    require_wifi_clock_in = models.BooleanField(default=False)
    store_wifi_name = models.CharField(max_length=100, blank=True, null=True)
    price_lock_enabled = models.BooleanField(default=False)
    admin_pin_hash = models.CharField(max_length=128, blank=True, null=True)
    # Subscription
    subscription_plan = models.CharField(max_length=20, choices=PLAN_CHOICES, default='starter')
    subscription_status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='trial')
    trial_ends_at = models.DateTimeField(null=True, blank=True)
    subscription_ends_at = models.DateTimeField(null=True, blank=True)
    auto_renew = models.BooleanField(default=True)
    paystack_customer_code = models.CharField(max_length=100, blank=True, null=True)
    paystack_subscription_code = models.CharField(max_length=100, blank=True, null=True)
    paystack_email_token = models.CharField(max_length=100, blank=True, null=True)
    max_users = models.IntegerField(default=1)
    active_branches_limit = models.IntegerField(default=1)
    cancellation_reason = models.TextField(blank=True, null=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    is_gifted = models.BooleanField(default=False)
    # Alerts
    termii_sender_id = models.CharField(max_length=11, blank=True, null=True)
    alert_phone = models.CharField(max_length=30, blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    @property
    def is_subscription_active(self):
        now = timezone.now()
        if self.subscription_status == 'trial':
            return self.trial_ends_at is None or self.trial_ends_at > now
        if self.subscription_status == 'active':
            return self.subscription_ends_at is None or self.subscription_ends_at > now
        return False

    class Meta:
        db_table = 'pharmacies'
        verbose_name_plural = 'pharmacies'
        ordering = ['name']


class Branch(models.Model):
    """Physical branch of a pharmacy"""
    pharmacy = models.ForeignKey(Pharmacy, on_delete=models.CASCADE, related_name='branches')
    name = models.CharField(max_length=255)
    address = models.TextField(blank=True)
    phone = models.CharField(max_length=30, blank=True, null=True)
    is_main = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.pharmacy.name} - {self.name}"

    class Meta:
        db_table = 'branches'
        ordering = ['-is_main', 'name']
        unique_together = [['pharmacy', 'name']]
