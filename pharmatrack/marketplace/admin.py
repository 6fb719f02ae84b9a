from django.contrib import admin
from .models import MarketplaceSearch, MarketplaceView


@admin.register(MarketplaceSearch)
class MarketplaceSearchAdmin(admin.ModelAdmin):
    list_display = ['search_query', 'location_filter', 'results_count', 'viewer_ip', 'searched_at']
    search_fields = ['search_query', 'location_filter']
    ordering = ['-searched_at']


@admin.register(MarketplaceView)
class MarketplaceViewAdmin(admin.ModelAdmin):
    list_display = ['medication', 'pharmacy', 'search_query', 'viewer_ip', 'viewed_at']
    list_filter = ['viewed_at']
    search_fields = ['medication__name', 'pharmacy__name', 'search_query']
    ordering = ['-viewed_at']
