from django.urls import path
from .views import import_configs, import_preview, import_commit, invoice_scan

urlpatterns = [
    path('imports/configs/', import_configs, name='import-configs'),
    path('imports/preview/', import_preview, name='import-preview'),
    path('imports/commit/', import_commit, name='import-commit'),
    path('imports/scan-invoice/', invoice_scan, name='import-scan-invoice'),
]
