from django.contrib import admin
from .models import Medication, MasterBarcode


@admin.register(Medication)
class MedicationAdmin(admin.ModelAdmin):
    list_display = ['name', 'pharmacy', 'branch', 'batch_number', 'current_stock', 'expiry_date',
                    'selling_price', 'is_public', 'is_controlled']
    list_filter = ['category', 'is_public', 'is_controlled', 'is_featured', 'expiry_date']
    search_fields = ['name', 'batch_number', 'barcode_id', 'nafdac_reg_number', 'pharmacy__name']
    ordering = ['name', 'expiry_date']


@admin.register(MasterBarcode)
class MasterBarcodeAdmin(admin.ModelAdmin):
    list_display = ['barcode', 'product_name', 'category', 'manufacturer', 'created_at']
    search_fields = ['barcode', 'product_name', 'manufacturer']
    ordering = ['product_name']
