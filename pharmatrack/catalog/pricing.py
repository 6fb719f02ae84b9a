"""
Price calculations for bulk updates and margin suggestions
"""
from decimal import Decimal, ROUND_HALF_UP

from django.db import transaction

TWO_PLACES = Decimal('0.01')


def price_with_margin(unit_price, margin_percent) -> Decimal:
    """Selling price giving ``margin_percent`` markup over cost"""
    unit_price = Decimal(str(unit_price or 0))
    margin = Decimal(str(margin_percent or 0))
    return (unit_price * (Decimal('1') + margin / Decimal('100'))).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def adjust_price_by_percentage(price, percent) -> Decimal:
    price = Decimal(str(price or 0))
    percent = Decimal(str(percent))
    return (price * (Decimal('1') + percent / Decimal('100'))).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def apply_bulk_price_update(medications, mode, value):
    """
    Update selling prices in bulk.

    mode='percentage' moves the current till price by ``value`` percent;
    mode='margin' sets the selling price to cost plus ``value`` percent.
    Returns a list of (medication, old_price, new_price) tuples.
    """
    changes = []
    with transaction.atomic():
        for med in medications:
            old_price = med.effective_price
            if mode == 'margin':
                new_price = price_with_margin(med.unit_price, value)
            else:
                new_price = adjust_price_by_percentage(old_price, value)
            if new_price == med.selling_price:
                continue
            med.selling_price = new_price
            med.save(update_fields=['selling_price', 'updated_at'])
            changes.append((med, old_price, new_price))
    return changes
