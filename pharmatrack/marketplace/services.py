import logging
from datetime import timedelta

from django.db.models import Case, Count, IntegerField, Q, Value, When
from django.utils import timezone

from pharmatrack.catalog.models import Medication
from pharmatrack.notifications.models import Notification
from pharmatrack.notifications.services import create_notification
from .models import MarketplaceSearch, MarketplaceView

logger = logging.getLogger(__name__)

FEATURED_WARNING_HOURS = 12
INSIGHTS_WINDOW_DAYS = 30


def active_subscription_q(now, prefix='pharmacy__'):
    """Query matching pharmacies whose trial or paid subscription is running"""
    return (
        Q(**{f'{prefix}subscription_status': 'trial'}) &
        (Q(**{f'{prefix}trial_ends_at__isnull': True}) | Q(**{f'{prefix}trial_ends_at__gt': now}))
    ) | (
        Q(**{f'{prefix}subscription_status': 'active'}) &
        (Q(**{f'{prefix}subscription_ends_at__isnull': True}) | Q(**{f'{prefix}subscription_ends_at__gt': now}))
    )


def public_listings(query=None, pharmacy_id=None, category=None, location=None, now=None):
    """
    Products shown on the public marketplace: listed, in stock, unexpired
    and sold by a pharmacy with a running subscription. Currently featured
    products come first.
    """
    now = now or timezone.now()
    queryset = Medication.objects.filter(
        active_subscription_q(now),
        is_public=True,
        current_stock__gt=0,
        expiry_date__gt=timezone.localdate(now),
    ).select_related('pharmacy')

    if query:
        queryset = queryset.filter(Q(name__icontains=query) | Q(category__icontains=query))
    if category:
        queryset = queryset.filter(category=category)
    if pharmacy_id:
        queryset = queryset.filter(pharmacy_id=pharmacy_id)
    if location:
        queryset = queryset.filter(pharmacy__address__icontains=location)

    return queryset.annotate(
        featured_rank=Case(
            When(is_featured=True, featured_until__gt=now, then=Value(0)),
            default=Value(1),
            output_field=IntegerField(),
        )
    ).order_by('featured_rank', 'name', 'expiry_date')


def record_search(query, results_count, location=None, viewer_ip=None):
    return MarketplaceSearch.objects.create(
        search_query=query[:255],
        location_filter=location or None,
        results_count=results_count,
        viewer_ip=viewer_ip,
    )


def record_view(medication, search_query=None, viewer_ip=None):
    return MarketplaceView.objects.create(
        pharmacy_id=medication.pharmacy_id,
        medication=medication,
        search_query=search_query or None,
        viewer_ip=viewer_ip,
    )


def set_medications_public(pharmacy, medication_ids, is_public) -> int:
    updated = Medication.objects.filter(pharmacy=pharmacy, id__in=medication_ids).update(
        is_public=is_public, updated_at=timezone.now()
    )
    logger.info(f"Marketplace visibility set to {is_public} for {updated} products of pharmacy {pharmacy.id}")
    return updated


def set_category_public(pharmacy, category, is_public) -> int:
    updated = Medication.objects.filter(pharmacy=pharmacy, category=category).update(
        is_public=is_public, updated_at=timezone.now()
    )
    logger.info(f"Marketplace visibility set to {is_public} for category {category} of pharmacy {pharmacy.id}")
    return updated


def marketplace_insights(pharmacy, days=INSIGHTS_WINDOW_DAYS, now=None):
    """Listing and engagement figures for a pharmacy's marketplace presence"""
    now = now or timezone.now()
    since = now - timedelta(days=days)
    views = MarketplaceView.objects.filter(pharmacy=pharmacy, viewed_at__gte=since)
    top_products = (
        views.filter(medication__isnull=False)
        .values('medication_id', 'medication__name')
        .annotate(views=Count('id'))
        .order_by('-views', 'medication__name')[:10]
    )
    products = Medication.objects.filter(pharmacy=pharmacy)
    return {
        'period_days': days,
        'total_views': views.count(),
        'public_products': products.filter(is_public=True).count(),
        'featured_products': products.filter(is_featured=True, featured_until__gt=now).count(),
        'top_products': [
            {'medication_id': row['medication_id'], 'name': row['medication__name'], 'views': row['views']}
            for row in top_products
        ],
    }


def expire_featured(now=None) -> int:
    """Clear the featured flag on listings whose paid period has ended"""
    now = now or timezone.now()
    count = Medication.objects.filter(is_featured=True, featured_until__lte=now).update(
        is_featured=False, updated_at=now
    )
    if count:
        logger.info(f"Expired {count} featured listings")
    return count


def warn_featured_ending(now=None):
    """
    Notify pharmacies whose featured listing ends within
    FEATURED_WARNING_HOURS, at most once per listing in that window.
    """
    now = now or timezone.now()
    ending = Medication.objects.filter(
        is_featured=True,
        featured_until__gt=now,
        featured_until__lte=now + timedelta(hours=FEATURED_WARNING_HOURS),
    ).select_related('pharmacy')

    warned = []
    for medication in ending:
        already_warned = Notification.objects.filter(
            pharmacy=medication.pharmacy,
            entity_type='featured_expiry',
            entity_id=str(medication.id),
            created_at__gte=now - timedelta(hours=FEATURED_WARNING_HOURS),
        ).exists()
        if already_warned:
            continue

        hours_left = max(1, round((medication.featured_until - now).total_seconds() / 3600))
        views = MarketplaceView.objects.filter(medication=medication).count()
        create_notification(
            medication.pharmacy,
            'system',
            f'⏰ Spotlight Ending: {medication.name}',
            f"Your boost expires in {hours_left} hours! You've reached {views} customers. "
            f"Extend now to keep the momentum!",
            priority='high',
            link='/marketplace-insights',
            entity_type='featured_expiry',
            entity_id=medication.id,
            metadata={'views': views, 'hours_left': hours_left},
        )
        warned.append(medication)
    return warned
