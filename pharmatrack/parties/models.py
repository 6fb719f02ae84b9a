from django.db import models
from django.utils import timezone
from pharmatrack.pharmacies.models import Pharmacy


class Customer(models.Model):
    """Pharmacy customers (loyalty and purchase history)"""
    pharmacy = models.ForeignKey(Pharmacy, on_delete=models.CASCADE, related_name='customers')
    full_name = models.CharField(max_length=255)
    phone = models.CharField(max_length=30, blank=True, null=True, db_index=True)
    email = models.EmailField(blank=True, null=True)
    date_of_birth = models.DateField(null=True, blank=True)
    address = models.TextField(blank=True)
    loyalty_points = models.IntegerField(default=0)
    notes = models.TextField(blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.full_name

    class Meta:
        db_table = 'customers'
        ordering = ['full_name']


class Doctor(models.Model):
    """Prescribing doctors referenced on prescriptions"""
    pharmacy = models.ForeignKey(Pharmacy, on_delete=models.CASCADE, related_name='doctors')
    full_name = models.CharField(max_length=255)
    phone = models.CharField(max_length=30, blank=True, null=True)
    email = models.EmailField(blank=True, null=True)
    hospital_clinic = models.CharField(max_length=255, blank=True, null=True)
    specialty = models.CharField(max_length=255, blank=True, null=True)
    license_number = models.CharField(max_length=100, blank=True, null=True)
    address = models.TextField(blank=True)
    notes = models.TextField(blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.full_name

    class Meta:
        db_table = 'doctors'
        ordering = ['full_name']


class Supplier(models.Model):
    """Suppliers"""
    pharmacy = models.ForeignKey(Pharmacy, on_delete=models.CASCADE, related_name='suppliers')
    name = models.CharField(max_length=255)
    contact_person = models.CharField(max_length=255, blank=True, null=True)
    phone = models.CharField(max_length=30, blank=True, null=True)
    email = models.EmailField(blank=True, null=True)
    address = models.TextField(blank=True)
    website = models.URLField(blank=True, null=True)
    payment_terms = models.CharField(max_length=255, blank=True, null=True)
    notes = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'suppliers'
        ordering = ['name']
        unique_together = [['pharmacy', 'name']]


class Prescription(models.Model):
    """A customer's prescription with its refill allowance"""
    STATUS_CHOICES = [
        ('active', 'Active'),
        ('completed', 'Completed'),
        ('expired', 'Expired'),
        ('cancelled', 'Cancelled'),
    ]

    pharmacy = models.ForeignKey(Pharmacy, on_delete=models.CASCADE, related_name='prescriptions')
    customer = models.ForeignKey(Customer, on_delete=models.CASCADE, related_name='prescriptions')
    doctor = models.ForeignKey(Doctor, on_delete=models.SET_NULL, null=True, blank=True, related_name='prescriptions')
    prescription_number = models.CharField(max_length=50)
    prescriber_name = models.CharField(max_length=255, blank=True, null=True)
    prescriber_phone = models.CharField(max_length=30, blank=True, null=True)
    diagnosis = models.TextField(blank=True, null=True)
    notes = models.TextField(blank=True, null=True)
    issue_date = models.DateField(default=timezone.localdate)
    expiry_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='active')
    refill_count = models.IntegerField(default=0)
    max_refills = models.IntegerField(default=0)
    last_refill_date = models.DateTimeField(null=True, blank=True)
    next_refill_reminder = models.DateField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.prescription_number} - {self.customer.full_name}"

    @property
    def refills_remaining(self):
        return max(self.max_refills - self.refill_count, 0)

    @property
    def is_expired(self):
        return self.expiry_date is not None and self.expiry_date < timezone.localdate()

    class Meta:
        db_table = 'prescriptions'
        ordering = ['-created_at']
        unique_together = [['pharmacy', 'prescription_number']]
        indexes = [
            models.Index(fields=['pharmacy', 'status'], name='idx_rx_pharmacy_status'),
            models.Index(fields=['pharmacy', 'next_refill_reminder'], name='idx_rx_pharmacy_reminder'),
        ]


class PrescriptionItem(models.Model):
    """One medication line on a prescription"""
    prescription = models.ForeignKey(Prescription, on_delete=models.CASCADE, related_name='items')
    medication = models.ForeignKey('catalog.Medication', on_delete=models.SET_NULL, null=True, blank=True,
                                   related_name='prescription_items')
    medication_name = models.CharField(max_length=255)
    dosage = models.CharField(max_length=100)
    frequency = models.CharField(max_length=100)
    duration = models.CharField(max_length=100, blank=True, null=True)
    quantity = models.IntegerField(default=1)
    instructions = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.medication_name} {self.dosage}"

    class Meta:
        db_table = 'prescription_items'
        ordering = ['id']
