"""
Cache invalidation for inventory-derived data
"""
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver

from pharmatrack.core.cache_utils import invalidate_pharmacy_cache
from .models import Medication


@receiver(post_save, sender=Medication)
@receiver(post_delete, sender=Medication)
def invalidate_medication_cache(sender, instance, **kwargs):
    invalidate_pharmacy_cache(instance.pharmacy_id)
