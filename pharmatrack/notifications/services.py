import logging
from datetime import timedelta

from django.utils import timezone

from pharmatrack.catalog.models import Medication
from .models import Notification, SentAlert
from .templates import build_alert_message, build_daily_digest
from .termii import send_message, get_sender_id, format_phone_number, TermiiError

logger = logging.getLogger(__name__)

EXPIRY_WINDOW_DAYS = 30
CRITICAL_EXPIRY_DAYS = 7
RENOTIFY_AFTER = timedelta(hours=24)


def create_notification(pharmacy, type, title, message, priority='medium', branch=None, link=None,
                        entity_type=None, entity_id=None, metadata=None):
    return Notification.objects.create(
        pharmacy=pharmacy,
        branch=branch,
        type=type,
        title=title,
        message=message,
        priority=priority,
        link=link,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        metadata=metadata or {},
    )


def notify_low_stock(medication, remaining_stock):
    """
    Raise a low-stock notification after a sale, unless one for the same
    batch is still unread from the last 24 hours.
    """
    recent = Notification.objects.filter(
        pharmacy_id=medication.pharmacy_id,
        type='low_stock',
        entity_type='Medication',
        entity_id=str(medication.id),
        is_read=False,
        created_at__gte=timezone.now() - RENOTIFY_AFTER,
    ).exists()
    if recent:
        return None
    if remaining_stock <= 0:
        title = f"{medication.name} is out of stock"
        priority = 'high'
    else:
        title = f"{medication.name} is below reorder level"
        priority = 'medium'
    return create_notification(
        pharmacy=medication.pharmacy,
        branch=medication.branch,
        type='low_stock',
        title=title,
        message=f"Only {remaining_stock} unit(s) of {medication.name} left (reorder level {medication.reorder_level}).",
        priority=priority,
        link='/inventory',
        entity_type='Medication',
        entity_id=medication.id,
        metadata={'current_stock': remaining_stock, 'reorder_level': medication.reorder_level},
    )


def run_alert_engine(pharmacy, now=None):
    """
    Scan a pharmacy's batches and create expired, expiring and low-stock
    notifications. Each batch is notified at most once per 24 hours.
    Returns counts per notification type.
    """
    now = now or timezone.now()
    today = timezone.localdate(now)
    counts = {'expired': 0, 'expiring': 0, 'low_stock': 0}
    notified_ids = []

    batches = Medication.objects.filter(pharmacy=pharmacy).select_related('branch', 'pharmacy')
    for med in batches:
        if med.last_notified_at and med.last_notified_at > now - RENOTIFY_AFTER:
            continue

        days_left = (med.expiry_date - today).days
        value_at_risk = med.effective_price * med.current_stock
        created = False

        if med.current_stock > 0 and days_left <= 0:
            create_notification(
                pharmacy, 'expired', f"{med.name} has expired",
                f"{med.name} (batch {med.batch_number or 'n/a'}) has expired. Remove it from shelves immediately.",
                priority='critical', branch=med.branch, link='/inventory',
                entity_type='Medication', entity_id=med.id,
                metadata={'expiry_date': str(med.expiry_date), 'value_at_risk': str(value_at_risk)},
            )
            counts['expired'] += 1
            created = True
        elif med.current_stock > 0 and days_left <= EXPIRY_WINDOW_DAYS:
            create_notification(
                pharmacy, 'expiring', f"{med.name} expires in {days_left} day(s)",
                f"{med.name} (batch {med.batch_number or 'n/a'}) expires on {med.expiry_date}. Consider promotional pricing.",
                priority='high' if days_left <= CRITICAL_EXPIRY_DAYS else 'medium', branch=med.branch,
                link='/inventory', entity_type='Medication', entity_id=med.id,
                metadata={'expiry_date': str(med.expiry_date), 'days_left': days_left,
                          'value_at_risk': str(value_at_risk)},
            )
            counts['expiring'] += 1
            created = True

        if med.current_stock <= med.reorder_level:
            create_notification(
                pharmacy, 'low_stock',
                f"{med.name} is out of stock" if med.current_stock == 0 else f"{med.name} is running low",
                f"{med.current_stock} unit(s) left, reorder level {med.reorder_level}.",
                priority='high' if med.current_stock == 0 else 'medium', branch=med.branch,
                link='/inventory', entity_type='Medication', entity_id=med.id,
                metadata={'current_stock': med.current_stock, 'suggested_reorder': med.reorder_level * 2},
            )
            counts['low_stock'] += 1
            created = True

        if created:
            notified_ids.append(med.id)

    if notified_ids:
        Medication.objects.filter(id__in=notified_ids).update(last_notified_at=now)
    logger.info(f"Alert engine for pharmacy {pharmacy.id}: {counts}")
    return counts


def send_alert(pharmacy, alert_type, recipient, message='', channel='sms', user=None, **details):
    """
    Format and send an SMS/WhatsApp alert, recording a SentAlert either way.
    Raises TermiiError when the provider rejects the message.
    """
    body = build_alert_message(alert_type, pharmacy.name, message=message, currency=pharmacy.currency, **details)
    alert = SentAlert(
        pharmacy=pharmacy,
        alert_type=alert_type,
        channel=channel,
        recipient=format_phone_number(recipient),
        message=body,
        sent_by=user,
    )
    try:
        data = send_message(recipient, body, get_sender_id(pharmacy), channel=channel)
    except TermiiError as e:
        alert.status = 'failed'
        alert.error_message = str(e)
        alert.save()
        raise
    alert.provider_message_id = data.get('message_id')
    alert.save()
    return alert, data


def send_daily_summary(pharmacy, now=None):
    """Send the daily digest to the pharmacy's alert phone; returns the SentAlert or None"""
    recipient = pharmacy.alert_phone or pharmacy.phone
    if not recipient:
        logger.info(f"Skipping daily summary for pharmacy {pharmacy.id}: no alert phone configured")
        return None

    today = timezone.localdate(now or timezone.now())
    batches = Medication.objects.filter(pharmacy=pharmacy)
    expiring = [
        med for med in batches.filter(current_stock__gt=0, expiry_date__lte=today + timedelta(days=EXPIRY_WINDOW_DAYS))
        .order_by('expiry_date')
    ]
    low_stock = [med for med in batches.order_by('current_stock') if med.current_stock <= med.reorder_level]
    if not expiring and not low_stock:
        return None

    digest = build_daily_digest(pharmacy, expiring, low_stock, today, currency=pharmacy.currency)
    alert, _ = send_alert(pharmacy, 'daily_summary', recipient, message=digest)
    return alert
