import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.core.cache import cache
from django.db.models import Sum, Count, Avg, F, DecimalField, ExpressionWrapper
from django.db.models.functions import Coalesce, TruncDate
from django.utils import timezone
from datetime import datetime, timedelta
from decimal import Decimal

from pharmatrack.catalog.models import Medication
from pharmatrack.catalog.validators import is_valid_nafdac_reg_number
from pharmatrack.core.cache_utils import pharmacy_cache_key, DASHBOARD_METRICS_CACHE_TTL
from pharmatrack.pos.models import Sale, SaleItem
from pharmatrack.staff.permissions import HasPharmacyPermission, has_permission

logger = logging.getLogger(__name__)

EXPIRING_SOON_DAYS = 30
EXPIRY_HORIZON_DAYS = 90

ZERO = Decimal('0.00')
MONEY = DecimalField(max_digits=14, decimal_places=2)


def _parse_period(request, default_days=30):
    """date_from/date_to query params (YYYY-MM-DD), defaulting to the last 30 days"""
    today = timezone.localdate()
    date_from = request.query_params.get('date_from')
    date_to = request.query_params.get('date_to')
    date_from = datetime.strptime(date_from, '%Y-%m-%d').date() if date_from else today - timedelta(days=default_days)
    date_to = datetime.strptime(date_to, '%Y-%m-%d').date() if date_to else today
    return date_from, date_to


def _visible_sales(membership, date_from, date_to):
    """Completed sales in the period; members without view_all_sales only see their own"""
    sales = Sale.objects.filter(
        pharmacy=membership.pharmacy,
        status='completed',
        created_at__date__gte=date_from,
        created_at__date__lte=date_to,
    )
    if not has_permission(membership, 'view_all_sales'):
        sales = sales.filter(sold_by=membership.user)
    if membership.branch_id and not membership.is_owner_or_manager:
        sales = sales.filter(branch=membership.branch)
    return sales


def _stock_value(queryset, price_field):
    value = queryset.aggregate(
        total=Coalesce(Sum(ExpressionWrapper(F('current_stock') * F(price_field), output_field=MONEY)), ZERO)
    )['total']
    return value or ZERO


def _batch_value(medication):
    return medication.current_stock * (medication.unit_price or ZERO)


def build_dashboard_metrics(pharmacy, include_financials=True, today=None):
    """Headline inventory and sales figures for the dashboard"""
    today = today or timezone.localdate()
    batches = Medication.objects.filter(pharmacy=pharmacy)
    unexpired = batches.filter(expiry_date__gt=today)

    low_stock = unexpired.filter(current_stock__gt=0, current_stock__lte=F('reorder_level')).count()
    out_of_stock = batches.filter(current_stock__lte=0).count()
    expired = batches.filter(expiry_date__lte=today, current_stock__gt=0).count()
    expiring = unexpired.filter(
        current_stock__gt=0, expiry_date__lte=today + timedelta(days=EXPIRING_SOON_DAYS)
    ).count()
    total_products = batches.values('name').distinct().count()

    todays_sales = Sale.objects.filter(pharmacy=pharmacy, status='completed', created_at__date=today)
    sales_totals = todays_sales.aggregate(revenue=Coalesce(Sum('total'), ZERO), count=Count('id'))

    metrics = {
        'total_skus': batches.count(),
        'total_products': total_products,
        'low_stock_items': low_stock,
        'out_of_stock_items': out_of_stock,
        'expired_items': expired,
        'expiring_soon_items': expiring,
        'today_sales_count': sales_totals['count'],
    }
    if include_financials:
        metrics.update({
            'inventory_cost_value': float(_stock_value(unexpired, 'unit_price')),
            'inventory_retail_value': float(_stock_value(unexpired.filter(selling_price__isnull=False), 'selling_price')
                                            + _stock_value(unexpired.filter(selling_price__isnull=True), 'unit_price')),
            'today_revenue': float(sales_totals['revenue']),
        })
    return metrics


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasPharmacyPermission('view_dashboard')])
def dashboard(request):
    """Dashboard KPIs; money figures need view_financial_data"""
    membership = request.membership
    pharmacy = membership.pharmacy
    include_financials = has_permission(membership, 'view_financial_data')
    today = timezone.localdate()

    cache_key = pharmacy_cache_key('dashboard_metrics', pharmacy.id, today.isoformat(), include_financials)
    metrics = cache.get(cache_key)
    if metrics is None:
        logger.debug(f"Dashboard cache MISS for pharmacy {pharmacy.id}")
        metrics = build_dashboard_metrics(pharmacy, include_financials=include_financials, today=today)
        cache.set(cache_key, metrics, DASHBOARD_METRICS_CACHE_TTL)
    return Response(metrics)


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasPharmacyPermission('view_reports')])
def sales_summary(request):
    """Sales summary report"""
    membership = request.membership
    try:
        date_from, date_to = _parse_period(request)
    except ValueError:
        return Response({'error': 'Dates must be in YYYY-MM-DD format'}, status=status.HTTP_400_BAD_REQUEST)
    if date_from > date_to:
        return Response({'error': 'date_from must be on or before date_to'}, status=status.HTTP_400_BAD_REQUEST)

    sales = _visible_sales(membership, date_from, date_to)
    branch_id = request.query_params.get('branch')
    if branch_id:
        sales = sales.filter(branch_id=branch_id)

    totals = sales.aggregate(
        revenue=Coalesce(Sum('total'), ZERO),
        discounts=Coalesce(Sum('discount'), ZERO),
        transactions=Count('id'),
        average=Avg('total'),
    )
    items = SaleItem.objects.filter(sale__in=sales)

    top_products = items.values('product_name').annotate(
        quantity=Sum('quantity'),
        revenue=Sum('total_price'),
    ).order_by('-revenue', 'product_name')[:10]

    by_payment_method = sales.values('payment_method').annotate(
        revenue=Sum('total'),
        count=Count('id'),
    ).order_by('-revenue')

    by_staff = sales.values('sold_by_id', 'sold_by__full_name', 'sold_by__username').annotate(
        revenue=Sum('total'),
        count=Count('id'),
    ).order_by('-revenue')

    daily_sales = sales.annotate(date=TruncDate('created_at')).values('date').annotate(
        revenue=Sum('total'),
        count=Count('id'),
    ).order_by('date')

    return Response({
        'period': {
            'from': date_from.isoformat(),
            'to': date_to.isoformat()
        },
        'summary': {
            'total_revenue': float(totals['revenue']),
            'total_discounts': float(totals['discounts']),
            'total_transactions': totals['transactions'],
            'items_sold': items.aggregate(total=Coalesce(Sum('quantity'), 0))['total'],
            'average_ticket': float(totals['average'] or ZERO),
        },
        'top_products': [
            {'name': row['product_name'], 'quantity': row['quantity'], 'revenue': float(row['revenue'])}
            for row in top_products
        ],
        'by_payment_method': [
            {'payment_method': row['payment_method'], 'revenue': float(row['revenue']), 'count': row['count']}
            for row in by_payment_method
        ],
        'by_staff': [
            {
                'user_id': row['sold_by_id'],
                'name': row['sold_by__full_name'] or row['sold_by__username'],
                'revenue': float(row['revenue']),
                'count': row['count'],
            }
            for row in by_staff
        ],
        'daily_breakdown': [
            {'date': row['date'], 'revenue': float(row['revenue']), 'count': row['count']}
            for row in daily_sales
        ],
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasPharmacyPermission('view_reports')])
def nafdac_compliance(request):
    """
    NAFDAC compliance report: batches without a registration number or with
    a malformed one, expired stock still on hand, and the controlled drugs
    register for the period.
    """
    membership = request.membership
    pharmacy = membership.pharmacy
    try:
        date_from, date_to = _parse_period(request)
    except ValueError:
        return Response({'error': 'Dates must be in YYYY-MM-DD format'}, status=status.HTTP_400_BAD_REQUEST)
    today = timezone.localdate()

    batches = Medication.objects.filter(pharmacy=pharmacy).order_by('name', 'expiry_date')
    missing = [med for med in batches if not med.nafdac_reg_number]
    invalid = [
        med for med in batches
        if med.nafdac_reg_number and not is_valid_nafdac_reg_number(med.nafdac_reg_number)
    ]
    expired_on_hand = batches.filter(expiry_date__lte=today, current_stock__gt=0)

    controlled_sales = SaleItem.objects.filter(
        sale__pharmacy=pharmacy,
        sale__status='completed',
        sale__created_at__date__gte=date_from,
        sale__created_at__date__lte=date_to,
        medication__is_controlled=True,
    ).select_related('sale', 'sale__sold_by').order_by('sale__created_at')

    def batch_row(med):
        return {
            'id': med.id,
            'name': med.name,
            'batch_number': med.batch_number,
            'nafdac_reg_number': med.nafdac_reg_number,
            'current_stock': med.current_stock,
            'expiry_date': med.expiry_date,
        }

    total = batches.count()
    compliant = total - len(missing) - len(invalid)
    return Response({
        'period': {
            'from': date_from.isoformat(),
            'to': date_to.isoformat()
        },
        'summary': {
            'total_batches': total,
            'compliant_batches': compliant,
            'compliance_rate': round(compliant / total * 100, 1) if total else 100.0,
            'missing_count': len(missing),
            'invalid_count': len(invalid),
            'expired_on_hand_count': expired_on_hand.count(),
            'controlled_dispensed_count': controlled_sales.count(),
        },
        'missing_registration': [batch_row(med) for med in missing],
        'invalid_registration': [batch_row(med) for med in invalid],
        'expired_on_hand': [batch_row(med) for med in expired_on_hand],
        'controlled_drugs_register': [
            {
                'date': item.sale.created_at,
                'receipt_number': item.sale.receipt_number,
                'product_name': item.product_name,
                'batch_number': item.batch_number,
                'quantity': item.quantity,
                'customer_name': item.sale.customer_name,
                'dispensed_by': item.sale.sold_by.get_display_name() if item.sale.sold_by else None,
            }
            for item in controlled_sales
        ],
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasPharmacyPermission('view_reports')])
def expiry_report(request):
    """Stocked batches grouped into expired, expiring within 30 days and within 90 days"""
    pharmacy = request.membership.pharmacy
    today = timezone.localdate()
    batches = Medication.objects.filter(
        pharmacy=pharmacy,
        current_stock__gt=0,
        expiry_date__lte=today + timedelta(days=EXPIRY_HORIZON_DAYS),
    ).order_by('expiry_date', 'name')

    branch_id = request.query_params.get('branch')
    if branch_id:
        batches = batches.filter(branch_id=branch_id)

    groups = {
        'expired': [],
        'within_30_days': [],
        'within_90_days': [],
    }
    for med in batches:
        days_left = (med.expiry_date - today).days
        if days_left <= 0:
            key = 'expired'
        elif days_left <= EXPIRING_SOON_DAYS:
            key = 'within_30_days'
        else:
            key = 'within_90_days'
        groups[key].append({
            'id': med.id,
            'name': med.name,
            'batch_number': med.batch_number,
            'current_stock': med.current_stock,
            'expiry_date': med.expiry_date,
            'days_to_expiry': days_left,
            'value_at_risk': float(_batch_value(med)),
        })

    return Response({
        key: {
            'count': len(rows),
            'value_at_risk': round(sum(row['value_at_risk'] for row in rows), 2),
            'items': rows,
        }
        for key, rows in groups.items()
    })
