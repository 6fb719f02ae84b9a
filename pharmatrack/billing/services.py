import math
import uuid
import logging
from datetime import timedelta
from decimal import Decimal

from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from pharmatrack.catalog.models import Medication
from pharmatrack.notifications.models import Notification
from pharmatrack.notifications.services import create_notification, send_alert
from pharmatrack.notifications.termii import TermiiError
from pharmatrack.pharmacies.models import Pharmacy
from .models import SubscriptionPayment
from .plans import (
    PLAN_CONFIG,
    PLAN_FEATURES,
    FEATURED_PRICING,
    SUBSCRIPTION_PERIOD_DAYS,
    ANNUAL_PERIOD_DAYS,
    calculate_charge_amount,
    infer_plan_from_amount,
)
from . import paystack

logger = logging.getLogger(__name__)

MANAGE_ACTIONS = ('toggle_auto_renew', 'cancel')
REMINDER_WINDOW_DAYS = 3


def kobo_to_naira(amount) -> Decimal:
    return (Decimal(amount) / Decimal(100)).quantize(Decimal('0.01'))


def generate_reference(prefix: str = 'PT') -> str:
    return f"{prefix}-{timezone.now().strftime('%Y%m%d%H%M%S')}-{uuid.uuid4().hex[:8].upper()}"


def _billing_email(pharmacy, user=None):
    return pharmacy.email or (user.email if user is not None else None) or (
        pharmacy.owner.email if pharmacy.owner_id else None
    )


def create_subscription_payment(pharmacy, plan, billing_period='monthly', user=None, callback_url=None):
    """
    Initialize a Paystack checkout for a plan and record it as a pending
    payment. Raises ValueError for unknown or contact-sales plans and
    PaystackError when the gateway refuses the transaction.
    """
    amount = calculate_charge_amount(plan, billing_period)
    email = _billing_email(pharmacy, user)
    if not email:
        raise ValueError('Pharmacy has no billing email')

    config = PLAN_CONFIG[plan]
    metadata = {
        'pharmacy_id': pharmacy.id,
        'plan': plan,
        'billing_period': billing_period,
        'is_hybrid': config['is_hybrid'],
        'monthly_fee': config['monthly_fee'],
        'type': 'subscription',
    }
    data = paystack.initialize_transaction(email, amount, metadata, callback_url=callback_url)
    reference = data.get('reference') or generate_reference()

    payment = SubscriptionPayment.objects.create(
        pharmacy=pharmacy,
        purpose='subscription',
        plan=plan,
        billing_period=billing_period,
        amount=kobo_to_naira(amount),
        currency=pharmacy.currency or 'NGN',
        paystack_reference=reference,
        metadata=metadata,
        created_by=user,
    )
    logger.info(f"Subscription payment {reference} initialized for pharmacy {pharmacy.id}: {plan} ({billing_period})")
    return payment, {
        'authorization_url': data.get('authorization_url'),
        'access_code': data.get('access_code'),
        'reference': reference,
        'amount': float(payment.amount),
        'email': email,
    }


def create_featured_payment(medication, duration, user=None, callback_url=None):
    """Initialize a Paystack checkout to feature a product on the marketplace"""
    amount = FEATURED_PRICING.get(duration)
    if amount is None:
        raise ValueError('Invalid duration selected')

    pharmacy = medication.pharmacy
    email = _billing_email(pharmacy, user)
    if not email:
        raise ValueError('Pharmacy has no billing email')

    metadata = {
        'pharmacy_id': pharmacy.id,
        'medication_id': medication.id,
        'medication_name': medication.name,
        'duration': duration,
        'type': 'featured_product',
        'custom_fields': [
            {'display_name': 'Product', 'variable_name': 'product', 'value': medication.name},
            {'display_name': 'Duration', 'variable_name': 'duration', 'value': f'{duration} days'},
        ],
    }
    data = paystack.initialize_transaction(email, amount, metadata, callback_url=callback_url)
    reference = data.get('reference') or generate_reference('FT')

    payment = SubscriptionPayment.objects.create(
        pharmacy=pharmacy,
        purpose='featured',
        amount=kobo_to_naira(amount),
        currency=pharmacy.currency or 'NGN',
        paystack_reference=reference,
        medication=medication,
        duration_days=duration,
        metadata=metadata,
        created_by=user,
    )
    logger.info(f"Featured payment {reference} initialized for {medication.name} ({duration} days)")
    return payment, {
        'authorization_url': data.get('authorization_url'),
        'access_code': data.get('access_code'),
        'reference': reference,
        'amount': float(payment.amount),
        'email': email,
    }


def _find_pharmacy(data):
    metadata = data.get('metadata') or {}
    if isinstance(metadata, dict) and metadata.get('pharmacy_id'):
        pharmacy = Pharmacy.objects.filter(pk=metadata['pharmacy_id']).first()
        if pharmacy is not None:
            return pharmacy
    email = (data.get('customer') or {}).get('email')
    if email:
        return Pharmacy.objects.filter(email__iexact=email).first()
    return None


def _complete_payment(reference, data):
    if not reference:
        return None
    payment = SubscriptionPayment.objects.filter(paystack_reference=reference).first()
    if payment is None:
        return None
    payment.status = 'completed'
    if data.get('id') is not None:
        payment.paystack_transaction_id = str(data['id'])
    payment.save(update_fields=['status', 'paystack_transaction_id', 'updated_at'])
    return payment


def _apply_featured_payment(pharmacy, data, metadata, now):
    medication = Medication.objects.filter(pk=metadata.get('medication_id'), pharmacy=pharmacy).first()
    if medication is None:
        logger.warning(f"Featured payment for unknown medication {metadata.get('medication_id')}")
        return {'handled': False, 'reason': 'medication_not_found'}

    duration = int(metadata.get('duration') or 7)
    medication.is_featured = True
    medication.featured_until = now + timedelta(days=duration)
    medication.is_public = True
    medication.save(update_fields=['is_featured', 'featured_until', 'is_public', 'updated_at'])
    _complete_payment(data.get('reference'), data)
    logger.info(f"{medication.name} featured until {medication.featured_until}")
    return {'handled': True, 'type': 'featured', 'medication_id': medication.id}


def _start_starter_maintenance(pharmacy, customer_code, now):
    """After the starter setup fee, enrol the customer on the monthly maintenance plan"""
    try:
        plan_data = paystack.create_plan(
            name=f"PharmaTrack Starter Maintenance - {pharmacy.id}",
            amount=PLAN_CONFIG['starter']['monthly_fee'],
            interval='monthly',
            description='Monthly cloud maintenance for PharmaTrack Starter plan',
        )
        subscription = paystack.create_subscription(
            customer=customer_code,
            plan=plan_data['plan_code'],
            start_date=(now + timedelta(days=SUBSCRIPTION_PERIOD_DAYS)).isoformat(),
        )
    except (paystack.PaystackError, KeyError) as e:
        logger.error(f"Error creating recurring subscription for pharmacy {pharmacy.id}: {e}")
        return None

    code = subscription.get('subscription_code')
    if code:
        pharmacy.paystack_subscription_code = code
        if subscription.get('email_token'):
            pharmacy.paystack_email_token = subscription['email_token']
        pharmacy.save(update_fields=['paystack_subscription_code', 'paystack_email_token', 'updated_at'])
    return code


def _apply_subscription_payment(pharmacy, data, metadata, now):
    amount = int(data.get('amount') or 0)
    plan = metadata.get('plan') if metadata.get('plan') in PLAN_CONFIG else infer_plan_from_amount(amount)
    billing_period = metadata.get('billing_period') or 'monthly'
    days = ANNUAL_PERIOD_DAYS if billing_period == 'annual' and not PLAN_CONFIG[plan]['is_hybrid'] \
        else SUBSCRIPTION_PERIOD_DAYS
    customer_code = (data.get('customer') or {}).get('customer_code')

    pharmacy.subscription_status = 'active'
    pharmacy.subscription_plan = plan
    pharmacy.subscription_ends_at = now + timedelta(days=days)
    pharmacy.max_users = PLAN_FEATURES[plan]['max_users']
    pharmacy.active_branches_limit = PLAN_FEATURES[plan]['max_branches']
    if customer_code:
        pharmacy.paystack_customer_code = customer_code
    pharmacy.save()

    _complete_payment(data.get('reference'), data)

    subscription_code = None
    if plan == 'starter' and amount == PLAN_CONFIG['starter']['setup_fee'] and customer_code:
        subscription_code = _start_starter_maintenance(pharmacy, customer_code, now)

    logger.info(f"Pharmacy {pharmacy.id} subscription active on {plan} until {pharmacy.subscription_ends_at}")
    return {
        'handled': True,
        'type': 'subscription',
        'plan': plan,
        'subscription_code': subscription_code,
    }


@transaction.atomic
def handle_webhook_event(event, now=None):
    """
    Apply a verified Paystack event. Unknown events and events for unknown
    pharmacies are acknowledged without changes.
    """
    now = now or timezone.now()
    event_type = event.get('event')
    data = event.get('data') or {}
    logger.info(f"Paystack webhook event: {event_type}")

    if event_type == 'charge.success':
        pharmacy = _find_pharmacy(data)
        if pharmacy is None:
            logger.warning(f"charge.success for unknown pharmacy (reference {data.get('reference')})")
            return {'handled': False, 'reason': 'pharmacy_not_found'}
        metadata = data.get('metadata') if isinstance(data.get('metadata'), dict) else {}
        if metadata.get('type') == 'featured_product':
            return _apply_featured_payment(pharmacy, data, metadata, now)
        return _apply_subscription_payment(pharmacy, data, metadata, now)

    if event_type == 'subscription.create':
        pharmacy = _find_pharmacy(data)
        if pharmacy is None:
            return {'handled': False, 'reason': 'pharmacy_not_found'}
        pharmacy.paystack_subscription_code = data.get('subscription_code')
        if data.get('email_token'):
            pharmacy.paystack_email_token = data['email_token']
        pharmacy.save(update_fields=['paystack_subscription_code', 'paystack_email_token', 'updated_at'])
        return {'handled': True, 'type': 'subscription_create'}

    if event_type == 'invoice.payment_failed':
        code = (data.get('subscription') or {}).get('subscription_code')
        if not code:
            return {'handled': False, 'reason': 'no_subscription_code'}
        updated = Pharmacy.objects.filter(paystack_subscription_code=code).update(
            subscription_status='expired', updated_at=now
        )
        return {'handled': bool(updated), 'type': 'payment_failed'}

    if event_type in ('subscription.disable', 'subscription.not_renew'):
        code = data.get('subscription_code')
        if not code:
            return {'handled': False, 'reason': 'no_subscription_code'}
        updated = Pharmacy.objects.filter(paystack_subscription_code=code).update(
            subscription_status='cancelled', updated_at=now
        )
        return {'handled': bool(updated), 'type': 'subscription_cancelled'}

    return {'handled': False, 'reason': 'ignored'}


def _gateway_token(pharmacy):
    return pharmacy.paystack_email_token or pharmacy.paystack_customer_code


def toggle_auto_renew(pharmacy):
    """Flip auto-renew locally, mirroring it on the Paystack subscription when there is one"""
    new_value = not pharmacy.auto_renew
    if pharmacy.paystack_subscription_code:
        toggle = paystack.enable_subscription if new_value else paystack.disable_subscription
        try:
            toggle(pharmacy.paystack_subscription_code, _gateway_token(pharmacy))
        except paystack.PaystackError as e:
            logger.warning(f"Paystack subscription management failed for pharmacy {pharmacy.id}: {e}")

    pharmacy.auto_renew = new_value
    pharmacy.save(update_fields=['auto_renew', 'updated_at'])
    logger.info(f"Auto-renew {'enabled' if new_value else 'disabled'} for pharmacy {pharmacy.id}")
    return new_value


def cancel_subscription(pharmacy, reason=None, now=None):
    if pharmacy.paystack_subscription_code:
        try:
            paystack.disable_subscription(pharmacy.paystack_subscription_code, _gateway_token(pharmacy))
        except paystack.PaystackError as e:
            logger.warning(f"Paystack cancel failed for pharmacy {pharmacy.id}: {e}")

    pharmacy.subscription_status = 'cancelled'
    pharmacy.auto_renew = False
    pharmacy.cancellation_reason = reason or None
    pharmacy.cancelled_at = now or timezone.now()
    pharmacy.save(update_fields=[
        'subscription_status', 'auto_renew', 'cancellation_reason', 'cancelled_at', 'updated_at'
    ])
    logger.info(f"Subscription cancelled for pharmacy {pharmacy.id}, reason: {reason}")


def _ends_at(pharmacy):
    return pharmacy.trial_ends_at if pharmacy.subscription_status == 'trial' else pharmacy.subscription_ends_at


def send_subscription_reminders(now=None):
    """
    Remind pharmacies whose trial or subscription ends within
    REMINDER_WINDOW_DAYS: one in-app notification per day, plus an SMS to
    the alert phone when one is configured. Returns the reminded pharmacies
    as (pharmacy, days_left, sms_sent) tuples.
    """
    now = now or timezone.now()
    horizon = now + timedelta(days=REMINDER_WINDOW_DAYS)
    candidates = Pharmacy.objects.filter(
        Q(subscription_status='active', subscription_ends_at__gt=now, subscription_ends_at__lte=horizon) |
        Q(subscription_status='trial', trial_ends_at__gt=now, trial_ends_at__lte=horizon)
    ).order_by('id')

    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
    reminded = []
    for pharmacy in candidates:
        already_sent = Notification.objects.filter(
            pharmacy=pharmacy, type='subscription', created_at__gte=start_of_day
        ).exists()
        if already_sent:
            continue

        days_left = max(1, math.ceil((_ends_at(pharmacy) - now).total_seconds() / 86400))
        label = 'trial' if pharmacy.subscription_status == 'trial' else f'{pharmacy.subscription_plan} subscription'
        if days_left == 1:
            title = '⚠️ Subscription Expires Tomorrow!'
            message = f'Your {label} expires tomorrow. Renew now to avoid service interruption.'
        else:
            title = f'📅 Subscription Expires in {days_left} Days'
            message = f'Your {label} expires in {days_left} days. Renew now to continue using all features.'

        create_notification(
            pharmacy,
            'subscription',
            title,
            message,
            priority='high' if days_left == 1 else 'medium',
            link='/settings/billing',
            metadata={'days_until_expiry': days_left, 'plan': pharmacy.subscription_plan},
        )

        sms_sent = False
        recipient = pharmacy.alert_phone or pharmacy.phone
        if recipient:
            try:
                send_alert(pharmacy, 'subscription_reminder', recipient, message=message)
                sms_sent = True
            except TermiiError as e:
                logger.error(f"Subscription reminder SMS failed for {pharmacy.name}: {e}")
        reminded.append((pharmacy, days_left, sms_sent))

    logger.info(f"Subscription reminders sent to {len(reminded)} pharmacies")
    return reminded


def expire_lapsed_subscriptions(now=None) -> int:
    """Mark trials and subscriptions whose end date has passed as expired"""
    now = now or timezone.now()
    lapsed = Pharmacy.objects.filter(
        Q(subscription_status='active', subscription_ends_at__lte=now) |
        Q(subscription_status='trial', trial_ends_at__lte=now)
    )
    count = lapsed.update(subscription_status='expired', updated_at=now)
    if count:
        logger.info(f"Expired {count} lapsed subscriptions")
    return count
