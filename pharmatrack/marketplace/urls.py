from django.urls import path
from .views import marketplace_list, marketplace_detail, marketplace_visibility, marketplace_stats

urlpatterns = [
    # Public endpoints
    path('marketplace/', marketplace_list, name='marketplace-list'),
    path('marketplace/<int:pk>/', marketplace_detail, name='marketplace-detail'),

    # Pharmacy endpoints
    path('marketplace/visibility/', marketplace_visibility, name='marketplace-visibility'),
    path('marketplace/insights/', marketplace_stats, name='marketplace-insights'),
]
