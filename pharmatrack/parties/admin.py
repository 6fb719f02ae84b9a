from django.contrib import admin
from .models import Customer, Doctor, Supplier, Prescription, PrescriptionItem


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ['full_name', 'pharmacy', 'phone', 'email', 'loyalty_points', 'created_at']
    list_filter = ['pharmacy', 'created_at']
    search_fields = ['full_name', 'phone', 'email']
    ordering = ['full_name']


@admin.register(Doctor)
class DoctorAdmin(admin.ModelAdmin):
    list_display = ['full_name', 'pharmacy', 'hospital_clinic', 'specialty', 'phone']
    list_filter = ['pharmacy', 'specialty']
    search_fields = ['full_name', 'hospital_clinic', 'license_number']
    ordering = ['full_name']


@admin.register(Supplier)
class SupplierAdmin(admin.ModelAdmin):
    list_display = ['name', 'pharmacy', 'contact_person', 'phone', 'email', 'is_active', 'created_at']
    list_filter = ['is_active', 'pharmacy', 'created_at']
    search_fields = ['name', 'contact_person', 'email']
    ordering = ['name']


class PrescriptionItemInline(admin.TabularInline):
    model = PrescriptionItem
    extra = 0


@admin.register(Prescription)
class PrescriptionAdmin(admin.ModelAdmin):
    list_display = ['prescription_number', 'customer', 'pharmacy', 'status', 'refill_count', 'max_refills', 'issue_date']
    list_filter = ['status', 'pharmacy', 'issue_date']
    search_fields = ['prescription_number', 'customer__full_name', 'prescriber_name']
    inlines = [PrescriptionItemInline]
    ordering = ['-created_at']
