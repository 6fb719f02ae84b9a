from django.db import models
from pharmatrack.pharmacies.models import Pharmacy
from pharmatrack.catalog.models import Medication


class MarketplaceSearch(models.Model):
    """An anonymous search on the public marketplace"""
    search_query = models.CharField(max_length=255)
    location_filter = models.CharField(max_length=255, blank=True, null=True)
    results_count = models.IntegerField(default=0)
    viewer_ip = models.GenericIPAddressField(null=True, blank=True)
    searched_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"'{self.search_query}' ({self.results_count} results)"

    class Meta:
        db_table = 'marketplace_searches'
        ordering = ['-searched_at']


class MarketplaceView(models.Model):
    """A public view of a listed product"""
    pharmacy = models.ForeignKey(Pharmacy, on_delete=models.CASCADE, related_name='marketplace_views')
    medication = models.ForeignKey(
        Medication, on_delete=models.SET_NULL, null=True, blank=True, related_name='marketplace_views'
    )
    search_query = models.CharField(max_length=255, blank=True, null=True)
    viewer_ip = models.GenericIPAddressField(null=True, blank=True)
    viewed_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"View of {self.medication_id} @ {self.pharmacy_id}"

    class Meta:
        db_table = 'marketplace_views'
        ordering = ['-viewed_at']
        indexes = [
            models.Index(fields=['pharmacy', 'viewed_at'], name='idx_mkt_view_pharmacy'),
        ]
