"""
Stock movements: adjustments, branch transfers and shelving.
"""
import logging
import uuid

from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from pharmatrack.catalog.fefo import calculate_fefo_deductions
from pharmatrack.catalog.models import Medication
from .models import StockAdjustment, StockTransfer, StockTransferItem, InternalTransfer

logger = logging.getLogger(__name__)


class StockError(Exception):
    """Raised when a stock movement cannot be applied"""


def apply_adjustment(medication, adjustment_type, quantity, reason, notes='', user=None):
    """Apply an in/out adjustment to a batch; stock never drops below zero"""
    if quantity <= 0:
        raise StockError('Quantity must be greater than zero')

    with transaction.atomic():
        batch = Medication.objects.select_for_update().get(pk=medication.pk)
        previous_stock = batch.current_stock
        if adjustment_type == 'in':
            batch.add_units(quantity)
        else:
            batch.remove_units(quantity)
        batch.save(update_fields=['current_stock', 'store_quantity', 'shelf_quantity', 'is_shelved', 'updated_at'])

        adjustment = StockAdjustment.objects.create(
            pharmacy=batch.pharmacy,
            medication=batch,
            adjustment_type=adjustment_type,
            quantity=quantity,
            reason=reason,
            notes=notes or '',
            previous_stock=previous_stock,
            new_stock=batch.current_stock,
            created_by=user,
        )
    return adjustment


def generate_transfer_number():
    date_part = timezone.now().strftime('%Y%m%d')
    number = f"TRF-{date_part}-{uuid.uuid4().hex[:6].upper()}"
    while StockTransfer.objects.filter(transfer_number=number).exists():
        number = f"TRF-{date_part}-{uuid.uuid4().hex[:6].upper()}"
    return number


def create_transfer(pharmacy, from_branch, to_branch, items, notes='', user=None):
    if from_branch.id == to_branch.id:
        raise StockError('Source and destination branches must differ')
    with transaction.atomic():
        transfer = StockTransfer.objects.create(
            transfer_number=generate_transfer_number(),
            pharmacy=pharmacy,
            from_branch=from_branch,
            to_branch=to_branch,
            notes=notes or '',
            created_by=user,
        )
        StockTransferItem.objects.bulk_create([
            StockTransferItem(transfer=transfer, product_name=item['product_name'].strip(), quantity=item['quantity'])
            for item in items
        ])
    return transfer


def _receive_batch(source, to_branch, quantity):
    """
    Top up the destination batch with the same name, batch number and expiry,
    or create it. Batches without a batch number are never merged.
    """
    destination = None
    if source.batch_number:
        destination = (
            Medication.objects.select_for_update()
            .filter(pharmacy_id=source.pharmacy_id, branch=to_branch, name__iexact=source.name,
                    batch_number=source.batch_number, expiry_date=source.expiry_date)
            .first()
        )
    if destination:
        destination.add_units(quantity)
        destination.save(update_fields=['current_stock', 'store_quantity', 'updated_at'])
        return destination

    return Medication.objects.create(
        pharmacy_id=source.pharmacy_id,
        branch=to_branch,
        name=source.name,
        category=source.category,
        batch_number=source.batch_number,
        current_stock=quantity,
        store_quantity=quantity,
        reorder_level=source.reorder_level,
        expiry_date=source.expiry_date,
        manufacturing_date=source.manufacturing_date,
        unit_price=source.unit_price,
        selling_price=source.selling_price,
        wholesale_price=source.wholesale_price,
        barcode_id=source.barcode_id,
        supplier=source.supplier,
        min_stock_alert=source.min_stock_alert,
        is_controlled=source.is_controlled,
        nafdac_reg_number=source.nafdac_reg_number,
        dispensing_unit=source.dispensing_unit,
        active_ingredients=source.active_ingredients,
        metadata=source.metadata,
    )


def complete_transfer(transfer, user=None):
    """
    Move the transfer's items: each product is drawn FEFO from the source
    branch and received batch-for-batch at the destination. All-or-nothing.
    """
    today = timezone.localdate()
    with transaction.atomic():
        transfer = StockTransfer.objects.select_for_update().get(pk=transfer.pk)
        if transfer.status in ('completed', 'cancelled'):
            raise StockError(f'Transfer is already {transfer.status}')

        items = list(transfer.items.all())
        name_query = Q()
        for item in items:
            name_query |= Q(name__iexact=item.product_name)
        source_batches = list(
            Medication.objects.select_for_update()
            .filter(name_query, pharmacy=transfer.pharmacy, branch=transfer.from_branch)
            .order_by('expiry_date', 'id')
        )

        for item in items:
            result = calculate_fefo_deductions(source_batches, item.product_name, item.quantity, today)
            if result['total_deducted'] < item.quantity:
                raise StockError(
                    f'Insufficient stock for {item.product_name} at {transfer.from_branch.name}: '
                    f'requested {item.quantity}, available {result["total_deducted"]}'
                )
            details = []
            for deduction in result['batch_deductions']:
                batch = deduction['medication']
                moved = deduction['quantity']
                batch.remove_units(moved)
                batch.save(update_fields=['current_stock', 'store_quantity', 'shelf_quantity', 'is_shelved',
                                          'updated_at'])
                destination = _receive_batch(batch, transfer.to_branch, moved)
                details.append({
                    'source_id': batch.id,
                    'destination_id': destination.id,
                    'batch_number': batch.batch_number,
                    'expiry_date': str(batch.expiry_date),
                    'quantity': moved,
                })
            item.transferred_quantity = result['total_deducted']
            item.batch_details = details
            item.save(update_fields=['transferred_quantity', 'batch_details'])

        transfer.status = 'completed'
        transfer.completed_by = user
        transfer.completed_at = timezone.now()
        transfer.save(update_fields=['status', 'completed_by', 'completed_at', 'updated_at'])

    logger.info(f"Stock transfer {transfer.transfer_number} completed ({len(items)} item(s))")
    return transfer


def move_internal(medication, quantity, direction='store_to_shelf', notes='', user=None):
    """Move units between the back store and the shelf of a batch"""
    if quantity <= 0:
        raise StockError('Quantity must be greater than zero')

    with transaction.atomic():
        batch = Medication.objects.select_for_update().get(pk=medication.pk)
        available = batch.store_quantity if direction == 'store_to_shelf' else batch.shelf_quantity
        if quantity > available:
            raise StockError(f'Only {available} unit(s) available to move')

        if direction == 'store_to_shelf':
            batch.store_quantity -= quantity
            batch.shelf_quantity += quantity
        else:
            batch.shelf_quantity -= quantity
            batch.store_quantity += quantity
        batch.is_shelved = batch.shelf_quantity > 0
        batch.save(update_fields=['store_quantity', 'shelf_quantity', 'is_shelved', 'updated_at'])

        movement = InternalTransfer.objects.create(
            pharmacy=batch.pharmacy,
            medication=batch,
            direction=direction,
            quantity=quantity,
            notes=notes or '',
            created_by=user,
        )
    return movement
