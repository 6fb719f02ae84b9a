from django.db import models
from decimal import Decimal
from pharmatrack.core.models import User
from pharmatrack.pharmacies.models import Pharmacy, Branch


class PharmacyStaff(models.Model):
    """Membership of a user in a pharmacy"""
    ROLE_CHOICES = [
        ('owner', 'Owner'),
        ('manager', 'Manager'),
        ('staff', 'Staff'),
    ]

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='memberships')
    pharmacy = models.ForeignKey(Pharmacy, on_delete=models.CASCADE, related_name='staff_members')
    branch = models.ForeignKey(Branch, on_delete=models.SET_NULL, null=True, blank=True, related_name='staff_members')
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default='staff')
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.user.username} ({self.role}) @ {self.pharmacy.name}"

    @property
    def is_owner_or_manager(self):
        return self.role in ('owner', 'manager')

    class Meta:
        db_table = 'pharmacy_staff'
        ordering = ['created_at']
        unique_together = [['user', 'pharmacy']]


class StaffPermission(models.Model):
    """Explicit permission grant for a staff member"""
    staff = models.ForeignKey(PharmacyStaff, on_delete=models.CASCADE, related_name='permissions')
    permission_key = models.CharField(max_length=50)
    is_granted = models.BooleanField(default=True)
    granted_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='granted_permissions')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.staff_id}:{self.permission_key}={self.is_granted}"

    class Meta:
        db_table = 'staff_permissions'
        unique_together = [['staff', 'permission_key']]


class StaffShift(models.Model):
    """Clock-in/clock-out shift with running sales totals"""
    CLOCK_IN_METHOD_CHOICES = [
        ('manual', 'Manual'),
        ('wifi', 'Wi-Fi'),
    ]

    staff = models.ForeignKey(PharmacyStaff, on_delete=models.CASCADE, related_name='shifts')
    pharmacy = models.ForeignKey(Pharmacy, on_delete=models.CASCADE, related_name='shifts')
    branch = models.ForeignKey(Branch, on_delete=models.SET_NULL, null=True, blank=True, related_name='shifts')
    clock_in = models.DateTimeField(auto_now_add=True)
    clock_out = models.DateTimeField(null=True, blank=True)
    clock_in_method = models.CharField(max_length=20, choices=CLOCK_IN_METHOD_CHOICES, default='manual')
    wifi_name = models.CharField(max_length=100, blank=True, null=True)
    wifi_verified = models.BooleanField(default=False)
    total_sales = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    total_transactions = models.IntegerField(default=0)
    notes = models.TextField(blank=True)

    def __str__(self):
        return f"Shift {self.id} - {self.staff.user.username}"

    @property
    def is_open(self):
        return self.clock_out is None

    class Meta:
        db_table = 'staff_shifts'
        ordering = ['-clock_in']
        indexes = [
            models.Index(fields=['staff', 'clock_out'], name='idx_shift_staff_open'),
        ]
