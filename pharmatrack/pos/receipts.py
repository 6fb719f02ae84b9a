"""
Plain-text receipts sized for 80mm thermal printers
"""
from django.utils import timezone

from pharmatrack.core.currency import format_currency

RECEIPT_WIDTH = 40


def _center(text, width=RECEIPT_WIDTH):
    return text[:width].center(width).rstrip()


def _columns(left, right, width=RECEIPT_WIDTH):
    space = width - len(right) - 1
    return f"{left[:space]:<{space}} {right}"


def render_receipt(sale):
    """Receipt text for a sale: pharmacy header, lines with batch expiry labels, totals"""
    pharmacy = sale.pharmacy
    currency = pharmacy.currency
    divider = '-' * RECEIPT_WIDTH
    created = timezone.localtime(sale.created_at) if sale.created_at else timezone.localtime()

    lines = [_center(pharmacy.name)]
    if pharmacy.address:
        lines.append(_center(pharmacy.address))
    if pharmacy.phone:
        lines.append(_center(f"Tel: {pharmacy.phone}"))
    if sale.branch_id and not sale.branch.is_main:
        lines.append(_center(sale.branch.name))
    lines.append(divider)
    lines.append(f"Receipt #: {sale.receipt_number}")
    lines.append(f"Date: {created.strftime('%b %d, %Y %H:%M')}")
    if sale.sold_by_id:
        lines.append(f"Cashier: {sale.sold_by.get_display_name()}")
    if sale.customer_name:
        lines.append(f"Customer: {sale.customer_name}")
    lines.append(divider)
    lines.append(_columns('Item', 'Amount'))
    lines.append(divider)

    for item in sale.items.all():
        lines.append(_columns(f"{item.product_name} x{item.quantity}", format_currency(item.total_price, currency)))
        detail = f"  @ {format_currency(item.unit_price, currency)}"
        if item.expiry_label:
            detail += f" | {item.expiry_label}"
        lines.append(detail)

    lines.append(divider)
    if sale.discount:
        lines.append(_columns('Subtotal:', format_currency(sale.subtotal, currency)))
        lines.append(_columns('Discount:', f"-{format_currency(sale.discount, currency)}"))
    lines.append(_columns('TOTAL:', format_currency(sale.total, currency)))
    lines.append(_columns('Paid by:', sale.get_payment_method_display()))
    if sale.loyalty_points_awarded:
        lines.append(_columns('Points earned:', str(sale.loyalty_points_awarded)))
    if sale.status == 'voided':
        lines.append(_center('*** VOIDED ***'))
    lines.append(divider)
    lines.append(_center('Thank you for your purchase!'))
    lines.append(_center('Powered by PharmaTrack'))
    return '\n'.join(lines)
