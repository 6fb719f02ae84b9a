from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """Extended user model with additional fields"""
    phone = models.CharField(max_length=30, blank=True, null=True)
    full_name = models.CharField(max_length=255, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def get_display_name(self):
        return self.full_name or self.get_full_name() or self.username

    class Meta:
        db_table = 'users'


class AuditLog(models.Model):
    """Audit log for critical operations"""
    ACTION_CHOICES = [
        ('create', 'Create'),
        ('update', 'Update'),
        ('delete', 'Delete'),
        ('sale', 'Sale'),
        ('sale_void', 'Sale Voided'),
        ('stock_adjust', 'Stock Adjustment'),
        ('stock_transfer', 'Stock Transfer'),
        ('price_change', 'Price Change'),
        ('import', 'Data Import'),
        ('alert_sent', 'Alert Sent'),
        ('subscription_change', 'Subscription Change'),
        ('staff_change', 'Staff Change'),
        ('barcode_scan', 'Barcode Scanned'),
        ('clock_in', 'Clock In'),
        ('clock_out', 'Clock Out'),
        ('admin_pin_set', 'Admin PIN Set'),
        ('admin_pin_verified', 'Admin PIN Verified'),
        ('admin_pin_failed', 'Admin PIN Failed'),
    ]

    pharmacy = models.ForeignKey('pharmacies.Pharmacy', on_delete=models.CASCADE, null=True, blank=True, related_name='audit_logs')
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='audit_logs')
    action = models.CharField(max_length=50, choices=ACTION_CHOICES)
    model_name = models.CharField(max_length=100)
    object_id = models.CharField(max_length=100)
    object_name = models.CharField(max_length=255, blank=True, null=True, help_text="Human-readable name of the object (e.g., medication name, receipt number)")
    object_reference = models.CharField(max_length=255, blank=True, null=True, help_text="Reference identifier (e.g., receipt number, batch number)")
    barcode = models.CharField(max_length=255, blank=True, null=True)
    changes = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.action} {self.model_name}#{self.object_id}"

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='idx_audit_created'),
            models.Index(fields=['action'], name='idx_audit_action'),
            models.Index(fields=['model_name'], name='idx_audit_model'),
            models.Index(fields=['pharmacy', '-created_at'], name='idx_audit_pharmacy_created'),
        ]
