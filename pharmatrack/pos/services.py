"""
Checkout, void and offline replay of POS sales.

Stock is always drawn First-Expiry-First-Out across a product's batches;
the batch rows are locked for the duration of the checkout transaction.
"""
import logging
import random
import string
import uuid
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from django.db import transaction, IntegrityError
from django.db.models import F, Q
from django.utils import timezone

from pharmatrack.catalog.fefo import calculate_fefo_deductions, batch_price, is_expired_batch
from pharmatrack.catalog.models import Medication
from pharmatrack.notifications.services import notify_low_stock
from pharmatrack.parties.models import Customer
from pharmatrack.staff.models import StaffShift
from .models import Sale, SaleItem, PendingTransaction

logger = logging.getLogger(__name__)

LOYALTY_POINT_VALUE = Decimal('100')
TWO_PLACES = Decimal('0.01')


class CheckoutError(Exception):
    """Raised when a checkout request cannot be processed"""


class InsufficientStockError(CheckoutError):
    def __init__(self, product_name, requested, available):
        self.product_name = product_name
        self.requested = requested
        self.available = available
        super().__init__(
            f'Insufficient stock for {product_name}: requested {requested}, available {available}'
        )


def generate_receipt_number():
    """RCP-YYYYMMDD-XXXXXX, unique across sales"""
    date_part = timezone.now().strftime('%Y%m%d')
    receipt_number = f"RCP-{date_part}-{uuid.uuid4().hex[:6].upper()}"
    while Sale.objects.filter(receipt_number=receipt_number).exists():
        receipt_number = f"RCP-{date_part}-{uuid.uuid4().hex[:6].upper()}"
    return receipt_number


def generate_short_code(pharmacy):
    """PH-XXX code a cashier types to settle a counter invoice"""
    chars = string.ascii_uppercase + string.digits
    code = 'PH-' + ''.join(random.choices(chars, k=3))
    while PendingTransaction.objects.filter(pharmacy=pharmacy, short_code=code, status='pending').exists():
        code = 'PH-' + ''.join(random.choices(chars, k=3))
    return code


def loyalty_points_for(total):
    return int(Decimal(total) // LOYALTY_POINT_VALUE)


def _serializable_items(items):
    return [
        {key: str(value) if isinstance(value, Decimal) else value for key, value in item.items()}
        for item in items
    ]


def _resolve_lines(pharmacy, items):
    """
    Normalize checkout lines to dicts with either ``product_name`` (stocked
    product, sold FEFO) or ``quick_item`` name/price. ``medication_id`` lines
    are resolved to their product name.
    """
    lines = []
    for index, item in enumerate(items):
        try:
            quantity = int(item.get('quantity') or 0)
        except (TypeError, ValueError):
            raise CheckoutError(f'Line {index + 1}: quantity must be a whole number')
        if quantity <= 0:
            raise CheckoutError(f'Line {index + 1}: quantity must be greater than zero')

        if item.get('medication_id'):
            medication = Medication.objects.filter(pharmacy=pharmacy, pk=item['medication_id']).first()
            if medication is None:
                raise CheckoutError(f"Line {index + 1}: medication {item['medication_id']} not found")
            lines.append({'product_name': medication.name, 'quantity': quantity})
        elif item.get('product_name'):
            lines.append({'product_name': item['product_name'].strip(), 'quantity': quantity})
        elif item.get('quick_item_name'):
            price = Decimal(str(item.get('quick_item_price') or 0))
            if price < 0:
                raise CheckoutError(f'Line {index + 1}: price cannot be negative')
            lines.append({'quick_item': item['quick_item_name'].strip(), 'price': price, 'quantity': quantity})
        else:
            raise CheckoutError(f'Line {index + 1}: provide medication_id, product_name or quick_item_name')
    return lines


def _lock_batches(pharmacy, product_names, branch=None):
    name_query = Q()
    for name in product_names:
        name_query |= Q(name__iexact=name)
    queryset = Medication.objects.select_for_update().filter(name_query, pharmacy=pharmacy)
    if branch is not None:
        queryset = queryset.filter(Q(branch=branch) | Q(branch__isnull=True))
    return list(queryset.order_by('expiry_date', 'id'))


def checkout(pharmacy, user, items, payment_method='cash', customer=None, customer_name=None,
             discount=Decimal('0'), branch=None, shift=None, client_reference=None):
    """
    Complete a sale.

    Each stocked line is allocated FEFO over the pharmacy's non-expired
    batches; the whole sale is refused with InsufficientStockError if any
    line cannot be filled. Returns the created Sale.
    """
    if not items:
        raise CheckoutError('Cart is empty')

    lines = _resolve_lines(pharmacy, items)
    try:
        discount = Decimal(str(discount or 0))
    except InvalidOperation:
        discount = Decimal('NaN')
    if not discount.is_finite():
        raise CheckoutError('Discount must be a number')
    if discount < 0:
        raise CheckoutError('Discount cannot be negative')

    today = timezone.localdate()
    touched = {}

    with transaction.atomic():
        product_names = {line['product_name'] for line in lines if 'product_name' in line}
        batches = _lock_batches(pharmacy, product_names, branch) if product_names else []

        sale_lines = []
        for line in lines:
            if 'quick_item' in line:
                sale_lines.append({
                    'medication': None,
                    'product_name': line['quick_item'],
                    'batch_number': '',
                    'quantity': line['quantity'],
                    'unit_price': line['price'],
                    'expiry_label': '',
                })
                continue

            result = calculate_fefo_deductions(batches, line['product_name'], line['quantity'], today)
            if result['total_deducted'] < line['quantity']:
                raise InsufficientStockError(line['product_name'], line['quantity'], result['total_deducted'])

            for deduction, label in zip(result['batch_deductions'], result['batch_expiry_info']):
                batch = deduction['medication']
                batch.remove_units(deduction['quantity'], shelf_first=True)
                touched[batch.id] = batch
                sale_lines.append({
                    'medication': batch,
                    'product_name': batch.name,
                    'batch_number': batch.batch_number,
                    'quantity': deduction['quantity'],
                    'unit_price': batch_price(batch),
                    'expiry_label': label,
                })

        subtotal = sum((line['unit_price'] * line['quantity'] for line in sale_lines), Decimal('0'))
        if discount > subtotal:
            raise CheckoutError('Discount cannot exceed the sale subtotal')
        total = (subtotal - discount).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)

        if customer is not None and not customer_name:
            customer_name = customer.full_name
        points = loyalty_points_for(total) if customer is not None else 0

        try:
            with transaction.atomic():
                sale = Sale.objects.create(
                    receipt_number=generate_receipt_number(),
                    pharmacy=pharmacy,
                    branch=branch,
                    customer=customer,
                    customer_name=customer_name or None,
                    sold_by=user,
                    shift=shift,
                    payment_method=payment_method,
                    subtotal=subtotal,
                    discount=discount,
                    total=total,
                    loyalty_points_awarded=points,
                    client_reference=client_reference or None,
                )
        except IntegrityError:
            raise CheckoutError(f'A sale with client reference {client_reference} already exists')

        SaleItem.objects.bulk_create([
            SaleItem(
                sale=sale,
                medication=line['medication'],
                product_name=line['product_name'],
                batch_number=line['batch_number'] or '',
                quantity=line['quantity'],
                unit_price=line['unit_price'],
                total_price=line['unit_price'] * line['quantity'],
                expiry_label=line['expiry_label'],
            )
            for line in sale_lines
        ])

        for batch in touched.values():
            batch.save(update_fields=['current_stock', 'shelf_quantity', 'store_quantity', 'is_shelved', 'updated_at'])

        if shift is not None:
            StaffShift.objects.filter(pk=shift.pk).update(
                total_sales=F('total_sales') + total,
                total_transactions=F('total_transactions') + 1,
            )

        if points:
            Customer.objects.filter(pk=customer.pk).update(loyalty_points=F('loyalty_points') + points)

        for batch in touched.values():
            if batch.current_stock <= batch.reorder_level and not is_expired_batch(batch.expiry_date, today):
                notify_low_stock(batch, batch.current_stock)

    logger.info(f"Sale {sale.receipt_number} completed for pharmacy {pharmacy.id}: total {total}")
    return sale


def void_sale(sale, user, reason=''):
    """Restock every batch the sale drew from and mark it voided"""
    with transaction.atomic():
        sale = Sale.objects.select_for_update().get(pk=sale.pk)
        if sale.status == 'voided':
            raise CheckoutError('Sale is already voided')

        for item in sale.items.select_related('medication'):
            if item.medication_id is None:
                continue
            Medication.objects.filter(pk=item.medication_id).update(
                current_stock=F('current_stock') + item.quantity,
                store_quantity=F('store_quantity') + item.quantity,
                updated_at=timezone.now(),
            )

        if sale.shift_id:
            StaffShift.objects.filter(pk=sale.shift_id).update(
                total_sales=F('total_sales') - sale.total,
                total_transactions=F('total_transactions') - 1,
            )

        if sale.customer_id and sale.loyalty_points_awarded:
            customer = Customer.objects.select_for_update().get(pk=sale.customer_id)
            customer.loyalty_points = max(0, customer.loyalty_points - sale.loyalty_points_awarded)
            customer.save(update_fields=['loyalty_points', 'updated_at'])

        sale.status = 'voided'
        sale.voided_at = timezone.now()
        sale.voided_by = user
        sale.void_reason = reason or ''
        sale.save(update_fields=['status', 'voided_at', 'voided_by', 'void_reason'])

    logger.info(f"Sale {sale.receipt_number} voided by user {user.id if user else None}")
    return sale


def estimate_total(pharmacy, items):
    """Expected total of a set of lines at the current FEFO batch prices, without touching stock"""
    total = Decimal('0')
    today = timezone.localdate()
    for line in _resolve_lines(pharmacy, items):
        if 'quick_item' in line:
            total += line['price'] * line['quantity']
            continue
        batches = Medication.objects.filter(pharmacy=pharmacy, name__iexact=line['product_name'])
        result = calculate_fefo_deductions(batches, line['product_name'], line['quantity'], today)
        total += sum(
            (batch_price(d['medication']) * d['quantity'] for d in result['batch_deductions']), Decimal('0')
        )
    return total.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def create_pending_transaction(membership, items, customer_name=None, notes=''):
    """Counter invoice: items are priced now and settled later by the cashier"""
    pharmacy = membership.pharmacy
    total = estimate_total(pharmacy, items)
    return PendingTransaction.objects.create(
        pharmacy=pharmacy,
        branch=membership.branch,
        source='invoice',
        short_code=generate_short_code(pharmacy),
        items=_serializable_items(items),
        total_amount=total,
        customer_name=customer_name or None,
        created_by=membership.user,
        notes=notes or '',
    )


def complete_pending_transaction(pending, membership, payment_method, shift=None):
    """Settle a counter invoice once; the row is locked while its sale is created"""
    with transaction.atomic():
        pending = PendingTransaction.objects.select_for_update().get(pk=pending.pk)
        if pending.status != 'pending':
            raise CheckoutError(f'Transaction {pending} is already {pending.status}')
        sale = checkout(
            pharmacy=pending.pharmacy,
            user=membership.user,
            items=pending.items,
            payment_method=payment_method,
            customer_name=pending.customer_name,
            branch=pending.branch,
            shift=shift,
        )
        pending.status = 'completed'
        pending.payment_method = payment_method
        pending.completed_by = membership.user
        pending.completed_at = timezone.now()
        pending.sale = sale
        pending.save(update_fields=['status', 'payment_method', 'completed_by', 'completed_at', 'sale'])
    return sale


def sync_offline_transactions(membership, transactions, shift=None):
    """
    Replay sales made while offline. Transactions already processed (same
    client reference) are acknowledged as duplicates; failures are stored
    with their error and reported without stopping the batch.
    """
    pharmacy = membership.pharmacy
    results = []
    for tx in transactions:
        reference = tx['client_reference']
        existing = Sale.objects.filter(pharmacy=pharmacy, client_reference=reference).first()
        if existing:
            results.append({'client_reference': reference, 'status': 'duplicate', 'receipt_number': existing.receipt_number})
            continue

        pending = PendingTransaction.objects.create(
            pharmacy=pharmacy,
            branch=membership.branch,
            source='offline',
            client_reference=reference,
            items=_serializable_items(tx["items"]),
            customer_name=tx.get('customer_name') or None,
            payment_method=tx.get('payment_method') or 'cash',
            sold_at=tx.get('sold_at'),
            created_by=membership.user,
        )
        try:
            sale = checkout(
                pharmacy=pharmacy,
                user=membership.user,
                items=tx['items'],
                payment_method=tx.get('payment_method') or 'cash',
                customer_name=tx.get('customer_name'),
                discount=tx.get('discount') or Decimal('0'),
                branch=membership.branch,
                shift=shift,
                client_reference=reference,
            )
        except CheckoutError as e:
            logger.warning(f"Offline transaction {reference} failed for pharmacy {pharmacy.id}: {str(e)}")
            pending.status = 'failed'
            pending.error_message = str(e)
            pending.save(update_fields=['status', 'error_message'])
            results.append({'client_reference': reference, 'status': 'failed', 'error': str(e)})
            continue

        pending.status = 'completed'
        pending.sale = sale
        pending.total_amount = sale.total
        pending.completed_by = membership.user
        pending.completed_at = timezone.now()
        pending.save(update_fields=['status', 'sale', 'total_amount', 'completed_by', 'completed_at'])
        results.append({'client_reference': reference, 'status': 'completed', 'receipt_number': sale.receipt_number})
    return results
