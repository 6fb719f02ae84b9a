from django.urls import path
from .views import (
    medication_list_create, medication_detail, medication_grouped, medication_label,
    category_list, barcode_lookup, barcode_scan_image, bulk_price_update,
    master_barcode_search
)

urlpatterns = [
    path('medications/', medication_list_create, name='medication-list-create'),
    path('medications/grouped/', medication_grouped, name='medication-grouped'),
    path('medications/bulk-price-update/', bulk_price_update, name='medication-bulk-price-update'),
    path('medications/<int:pk>/', medication_detail, name='medication-detail'),
    path('medications/<int:pk>/label/', medication_label, name='medication-label'),
    path('categories/', category_list, name='category-list'),
    path('barcodes/lookup/', barcode_lookup, name='barcode-lookup'),
    path('barcodes/scan/', barcode_scan_image, name='barcode-scan'),
    path('barcodes/library/', master_barcode_search, name='master-barcode-search'),
]
