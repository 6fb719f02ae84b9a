"""
First-Expiry-First-Out helpers

Medications are stored one row per batch. These helpers group batches into
products for the POS grid and decide which batches a sale draws from.
They work on any objects exposing the Medication attributes, so they are
used both with querysets and with plain lists.
"""
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional

from django.utils import timezone


def normalize_product_name(name: str) -> str:
    return (name or '').strip().lower()


def is_expired_batch(expiry_date: date, today: Optional[date] = None) -> bool:
    """A batch is treated as expired from its expiry date onwards"""
    if expiry_date is None:
        return False
    today = today or timezone.localdate()
    return expiry_date <= today


def batch_price(batch) -> Decimal:
    """Selling price, falling back to unit price"""
    return batch.selling_price or batch.unit_price or Decimal('0')


def format_expiry_label(expiry_date: date) -> str:
    """Short receipt form of an expiry date, e.g. 'Mar 26'"""
    return expiry_date.strftime('%b %y')


def group_medications_by_name(medications: Iterable, today: Optional[date] = None) -> List[dict]:
    """
    Group batches by case-insensitive trimmed name.

    Stock and price ranges only count non-expired batches. The display price
    and barcode come from the earliest-expiring valid batch, which is the one
    a sale draws from first.
    """
    today = today or timezone.localdate()
    groups = {}
    for med in medications:
        groups.setdefault(normalize_product_name(med.name), []).append(med)

    grouped = []
    for batches in groups.values():
        sorted_batches = sorted(batches, key=lambda b: b.expiry_date)
        valid_batches = [b for b in sorted_batches if not is_expired_batch(b.expiry_date, today)]
        earliest = valid_batches[0] if valid_batches else sorted_batches[0]

        total_stock = sum(b.current_stock for b in valid_batches)

        prices = [batch_price(b) for b in valid_batches]
        prices = [p for p in prices if p > 0]

        if valid_batches:
            average_reorder = sum(b.reorder_level for b in valid_batches) / len(valid_batches)
        else:
            average_reorder = 0
        low_stock_threshold = average_reorder or 10

        barcode_id = earliest.barcode_id
        if not barcode_id:
            barcode_id = next((b.barcode_id for b in sorted_batches if b.barcode_id), None)

        grouped.append({
            'name': earliest.name,
            'category': earliest.category,
            'total_stock': total_stock,
            'lowest_price': min(prices) if prices else Decimal('0'),
            'highest_price': max(prices) if prices else Decimal('0'),
            'display_price': batch_price(earliest),
            'earliest_expiry': earliest.expiry_date,
            'batches': sorted_batches,
            'has_multiple_batches': len(valid_batches) > 1,
            'has_expired_batch': any(is_expired_batch(b.expiry_date, today) for b in sorted_batches),
            'has_low_stock': total_stock <= low_stock_threshold,
            'earliest_batch': earliest,
            'barcode_id': barcode_id,
        })
    return grouped


def calculate_fefo_deductions(medications: Iterable, product_name: str, quantity_needed: int,
                              today: Optional[date] = None) -> dict:
    """
    Work out which batches a sale of ``quantity_needed`` units draws from.

    Only in-stock, non-expired batches with a matching name are considered,
    earliest expiry first. ``total_deducted`` is below ``quantity_needed``
    when there is not enough sellable stock.
    """
    today = today or timezone.localdate()
    target = normalize_product_name(product_name)
    valid_batches = sorted(
        (
            med for med in medications
            if normalize_product_name(med.name) == target
            and med.current_stock > 0
            and not is_expired_batch(med.expiry_date, today)
        ),
        key=lambda b: b.expiry_date,
    )

    batch_deductions = []
    batch_expiry_info = []
    remaining = quantity_needed

    for batch in valid_batches:
        if remaining <= 0:
            break
        deduct = min(remaining, batch.current_stock)
        batch_deductions.append({'medication': batch, 'quantity': deduct})
        batch_expiry_info.append(f"{deduct}x exp {format_expiry_label(batch.expiry_date)}")
        remaining -= deduct

    return {
        'batch_deductions': batch_deductions,
        'total_deducted': quantity_needed - remaining,
        'used_multiple_batches': len(batch_deductions) > 1,
        'batch_expiry_info': batch_expiry_info,
    }


def would_use_multiple_batches(medications: Iterable, product_name: str, quantity: int,
                               today: Optional[date] = None) -> bool:
    return calculate_fefo_deductions(medications, product_name, quantity, today)['used_multiple_batches']


def find_existing_products_by_name(medications: Iterable, product_name: str) -> list:
    """Batches whose name matches ``product_name`` (import duplicate detection)"""
    target = normalize_product_name(product_name)
    return [med for med in medications if normalize_product_name(med.name) == target]
