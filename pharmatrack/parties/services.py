import logging
import uuid
from django.db import transaction
from django.utils import timezone
from .models import Prescription, PrescriptionItem

logger = logging.getLogger(__name__)


class PrescriptionError(Exception):
    pass


def generate_prescription_number(pharmacy):
    """RX-YYYYMMDD-XXXX, unique within the pharmacy"""
    date_part = timezone.now().strftime('%Y%m%d')
    number = f"RX-{date_part}-{uuid.uuid4().hex[:4].upper()}"
    while Prescription.objects.filter(pharmacy=pharmacy, prescription_number=number).exists():
        number = f"RX-{date_part}-{uuid.uuid4().hex[:4].upper()}"
    return number


def save_prescription_items(prescription, items):
    """Replace the prescription's lines with ``items``"""
    prescription.items.all().delete()
    PrescriptionItem.objects.bulk_create([
        PrescriptionItem(prescription=prescription, **item) for item in items
    ])


def record_refill(prescription):
    """
    Dispense one refill.

    Only active, unexpired prescriptions with refills left can be
    refilled; an expired one is marked expired. The prescription is
    completed once its last refill is used.
    """
    with transaction.atomic():
        prescription = Prescription.objects.select_for_update().get(pk=prescription.pk)
        if prescription.status != 'active':
            raise PrescriptionError(f'Prescription is {prescription.status}')
        if prescription.is_expired:
            prescription.status = 'expired'
            prescription.save(update_fields=['status', 'updated_at'])
            raise PrescriptionError('Prescription has expired')
        if prescription.refill_count >= prescription.max_refills:
            raise PrescriptionError('Maximum refills reached')

        prescription.refill_count += 1
        prescription.last_refill_date = timezone.now()
        if prescription.refill_count >= prescription.max_refills:
            prescription.status = 'completed'
            prescription.next_refill_reminder = None
        prescription.save(update_fields=[
            'refill_count', 'last_refill_date', 'status', 'next_refill_reminder', 'updated_at'
        ])

    logger.info(
        f"Refill {prescription.refill_count}/{prescription.max_refills} recorded "
        f"for prescription {prescription.prescription_number}"
    )
    return prescription


def prescriptions_due_for_refill(pharmacy, on_date=None):
    """Active prescriptions whose refill reminder has come due and have refills left"""
    on_date = on_date or timezone.localdate()
    queryset = Prescription.objects.filter(
        pharmacy=pharmacy,
        status='active',
        next_refill_reminder__isnull=False,
        next_refill_reminder__lte=on_date,
    ).select_related('customer', 'doctor').prefetch_related('items')
    return [prescription for prescription in queryset if prescription.refill_count < prescription.max_refills]
