"""
Barcode generation, normalization and lookup for medications
"""
import logging
import random
import re

from django.utils import timezone

from pharmatrack.core.cache_utils import cached_query, MASTER_LIBRARY_CACHE_TTL
from .models import Medication, MasterBarcode

logger = logging.getLogger(__name__)

INTERNAL_BARCODE_PREFIX = 'PT'


def normalize_barcode_for_search(barcode_str: str) -> str:
    """
    Normalize a barcode for flexible matching:
    - Remove hyphens, spaces, underscores
    - Remove leading zeros from numeric parts
    - Convert to uppercase

    Examples:
    - "0 12345 67890 5" -> "12345678905" (UPC-A typed with spaces)
    - "012345678905" -> "12345678905" (same code read as EAN-13 padding)
    - "pt-260101-0042" -> "PT2601010042"
    """
    if not barcode_str:
        return ''

    normalized = barcode_str.replace('-', '').replace(' ', '').replace('_', '').upper()

    parts = re.split(r'([A-Z]+)', normalized)
    result_parts = []
    for part in parts:
        if not part:
            continue
        if part.isdigit():
            result_parts.append(str(int(part)))
        else:
            result_parts.append(part)
    return ''.join(result_parts)


def generate_internal_barcode(pharmacy) -> str:
    """
    Generate a pharmacy-unique internal barcode for products without one.
    Format: PT + YYMMDD + 6 random digits (Code128 friendly)
    """
    date_part = timezone.now().strftime('%y%m%d')
    barcode = f"{INTERNAL_BARCODE_PREFIX}{date_part}{random.randint(0, 999999):06d}"
    while Medication.objects.filter(pharmacy=pharmacy, barcode_id=barcode).exists():
        barcode = f"{INTERNAL_BARCODE_PREFIX}{date_part}{random.randint(0, 999999):06d}"
    return barcode


def find_master_barcode_by_name(product_name: str):
    """
    Fuzzy search of the master library by product name: exact, then
    containment, then at least half of the significant words matching.
    """
    if not product_name:
        return None
    normalized_name = product_name.lower().strip()
    entries = list(MasterBarcode.objects.all())
    if not entries:
        return None

    for entry in entries:
        if entry.product_name.lower() == normalized_name:
            return entry

    for entry in entries:
        entry_name = entry.product_name.lower()
        if normalized_name in entry_name or entry_name in normalized_name:
            return entry

    name_words = [w for w in normalized_name.split() if len(w) > 2]
    if not name_words:
        return None
    required = (len(name_words) + 1) // 2
    for entry in entries:
        entry_words = entry.product_name.lower().split()
        matching = [
            word for word in name_words
            if any(ew in word or word in ew for ew in entry_words)
        ]
        if len(matching) >= required:
            return entry
    return None


@cached_query(cache_ttl=MASTER_LIBRARY_CACHE_TTL, key_prefix="master_library_name")
def search_master_library(product_name: str):
    """Cached name search of the master library for prefill lookups"""
    return find_master_barcode_by_name((product_name or '').lower().strip())


def lookup_barcode(pharmacy, barcode_value: str) -> dict:
    """
    Resolve a scanned barcode for a pharmacy.

    Order: exact match on the pharmacy's batches, normalized match, then
    the master library (returned as a prefill suggestion for a new product).
    Returns a dict with ``source`` in {'inventory', 'master_library', None}.
    """
    barcode_value = (barcode_value or '').strip()
    if not barcode_value:
        return {'source': None, 'barcode': barcode_value, 'medications': [], 'suggestion': None}

    medications = list(
        Medication.objects.filter(pharmacy=pharmacy, barcode_id=barcode_value).order_by('expiry_date')
    )

    if not medications:
        normalized = normalize_barcode_for_search(barcode_value)
        candidates = Medication.objects.filter(pharmacy=pharmacy, barcode_id__isnull=False).exclude(barcode_id='')
        medications = [
            med for med in candidates.order_by('expiry_date')
            if normalize_barcode_for_search(med.barcode_id) == normalized
        ]

    if medications:
        logger.debug(f"Barcode {barcode_value} matched {len(medications)} batch(es) for pharmacy {pharmacy.id}")
        return {'source': 'inventory', 'barcode': barcode_value, 'medications': medications, 'suggestion': None}

    master = MasterBarcode.objects.filter(barcode=barcode_value).first()
    if master:
        return {
            'source': 'master_library',
            'barcode': barcode_value,
            'medications': [],
            'suggestion': {
                'name': master.product_name,
                'category': master.category or 'Other',
                'manufacturer': master.manufacturer,
                'barcode_id': master.barcode,
            },
        }

    return {'source': None, 'barcode': barcode_value, 'medications': [], 'suggestion': None}
