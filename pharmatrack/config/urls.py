"""
URL configuration for the PharmaTrack backend.

Every app is mounted under ``api/v1/``.
"""
from django.contrib import admin
from django.urls import path, include

admin.site.site_header = "PharmaTrack Admin Panel"
admin.site.site_title = "PharmaTrack Admin Portal"
admin.site.index_title = "Welcome to PharmaTrack Admin"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('pharmatrack.core.urls')),
    path('api/v1/', include('pharmatrack.pharmacies.urls')),
    path('api/v1/', include('pharmatrack.staff.urls')),
    path('api/v1/', include('pharmatrack.catalog.urls')),
    path('api/v1/', include('pharmatrack.inventory.urls')),
    path('api/v1/', include('pharmatrack.parties.urls')),
    path('api/v1/', include('pharmatrack.imports.urls')),
    path('api/v1/', include('pharmatrack.pos.urls')),
    path('api/v1/', include('pharmatrack.billing.urls')),
    path('api/v1/', include('pharmatrack.marketplace.urls')),
    path('api/v1/', include('pharmatrack.notifications.urls')),
    path('api/v1/', include('pharmatrack.ai.urls')),
    path('api/v1/', include('pharmatrack.reports.urls')),
]
