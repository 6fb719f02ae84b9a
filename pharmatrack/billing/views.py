import json
import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, AllowAny
from django.conf import settings
from django.core.paginator import Paginator
from pharmatrack.catalog.models import Medication
from pharmatrack.core.utils import create_audit_log
from pharmatrack.staff.permissions import IsPharmacyMember, IsOwner, HasPharmacyPermission
from .models import SubscriptionPayment
from .paystack import PaystackError, verify_signature
from .plans import PLAN_CONFIG, PLAN_FEATURES, FEATURED_PRICING, get_plan_limits
from .serializers import (
    SubscriptionPaymentSerializer, CreatePaymentSerializer, FeaturedPaymentSerializer, ManageSubscriptionSerializer
)
from .services import (
    create_subscription_payment, create_featured_payment, handle_webhook_event, toggle_auto_renew,
    cancel_subscription
)

logger = logging.getLogger(__name__)


def _public_key():
    return getattr(settings, 'PAYSTACK_PUBLIC_KEY', '')


@api_view(['GET'])
@permission_classes([AllowAny])
def plan_list(request):
    """Plan catalogue with prices in kobo and the features each plan unlocks"""
    plans = [
        {
            'plan': plan,
            **config,
            'features': PLAN_FEATURES[plan],
        }
        for plan, config in PLAN_CONFIG.items()
    ]
    featured = [{'duration': days, 'amount': amount} for days, amount in FEATURED_PRICING.items()]
    return Response({'plans': plans, 'featured_pricing': featured})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def subscription_status(request):
    """Current plan, status and limits of the active pharmacy"""
    pharmacy = request.membership.pharmacy
    return Response({
        'plan': pharmacy.subscription_plan,
        'status': pharmacy.subscription_status,
        'is_active': pharmacy.is_subscription_active,
        'trial_ends_at': pharmacy.trial_ends_at,
        'subscription_ends_at': pharmacy.subscription_ends_at,
        'auto_renew': pharmacy.auto_renew,
        'max_users': pharmacy.max_users,
        'active_branches_limit': pharmacy.active_branches_limit,
        'is_gifted': pharmacy.is_gifted,
        'limits': get_plan_limits(pharmacy.subscription_plan),
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasPharmacyPermission('view_financial_data')])
def payment_list(request):
    """Payments made by the active pharmacy, newest first"""
    payments = SubscriptionPayment.objects.filter(pharmacy=request.membership.pharmacy).select_related('medication')
    purpose = request.query_params.get('purpose')
    if purpose:
        payments = payments.filter(purpose=purpose)

    try:
        page = int(request.query_params.get('page', 1))
        limit = min(int(request.query_params.get('limit', 20)), 100)
    except ValueError:
        return Response({'error': 'page and limit must be integers'}, status=status.HTTP_400_BAD_REQUEST)

    paginator = Paginator(payments, limit)
    page_obj = paginator.get_page(page)
    serializer = SubscriptionPaymentSerializer(page_obj, many=True)
    return Response({
        'results': serializer.data,
        'count': paginator.count,
        'page': page_obj.number,
        'total_pages': paginator.num_pages,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsOwner])
def create_payment(request):
    """Start a Paystack checkout for a subscription plan"""
    serializer = CreatePaymentSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    pharmacy = request.membership.pharmacy
    try:
        _, checkout = create_subscription_payment(
            pharmacy,
            serializer.validated_data['plan'],
            serializer.validated_data['billing_period'],
            user=request.user,
            callback_url=serializer.validated_data.get('callback_url') or None,
        )
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    except PaystackError as e:
        return Response({'error': 'Failed to initialize payment', 'message': str(e)},
                        status=status.HTTP_400_BAD_REQUEST)

    checkout['key'] = _public_key()
    return Response(checkout, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated, HasPharmacyPermission('access_inventory')])
def featured_payment(request):
    """Start a Paystack checkout to feature a product on the marketplace"""
    serializer = FeaturedPaymentSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    medication = Medication.objects.filter(
        pk=serializer.validated_data['medication'], pharmacy=request.membership.pharmacy
    ).first()
    if medication is None:
        return Response({'error': 'Medication not found'}, status=status.HTTP_404_NOT_FOUND)

    try:
        _, checkout = create_featured_payment(
            medication,
            serializer.validated_data['duration'],
            user=request.user,
            callback_url=serializer.validated_data.get('callback_url') or None,
        )
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    except PaystackError as e:
        return Response({'error': 'Failed to initialize payment', 'message': str(e)},
                        status=status.HTTP_400_BAD_REQUEST)

    checkout['key'] = _public_key()
    return Response(checkout, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([AllowAny])
def paystack_webhook(request):
    """Paystack event receiver; the raw body must carry a valid x-paystack-signature"""
    raw_body = request.body
    signature = request.META.get('HTTP_X_PAYSTACK_SIGNATURE')
    if not signature:
        logger.error("Missing Paystack signature - rejecting request")
        return Response({'error': 'Missing signature'}, status=status.HTTP_401_UNAUTHORIZED)
    if not verify_signature(raw_body, signature):
        logger.error("Invalid Paystack signature - rejecting request")
        return Response({'error': 'Invalid signature'}, status=status.HTTP_401_UNAUTHORIZED)

    try:
        event = json.loads(raw_body)
    except ValueError:
        return Response({'error': 'Invalid JSON body'}, status=status.HTTP_400_BAD_REQUEST)

    result = handle_webhook_event(event)
    return Response({'received': True, **result})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsOwner])
def manage_subscription(request):
    """Owner actions on the subscription: toggle_auto_renew or cancel"""
    serializer = ManageSubscriptionSerializer(data=request.data)
    if not serializer.is_valid():
        return Response({'error': 'Invalid action', 'details': serializer.errors},
                        status=status.HTTP_400_BAD_REQUEST)

    pharmacy = request.membership.pharmacy
    action = serializer.validated_data['action']

    if action == 'toggle_auto_renew':
        auto_renew = toggle_auto_renew(pharmacy)
        response = {'success': True, 'auto_renew': auto_renew}
        changes = {'auto_renew': auto_renew}
    else:
        reason = serializer.validated_data.get('cancellation_reason')
        cancel_subscription(pharmacy, reason)
        response = {'success': True, 'message': 'Subscription cancelled'}
        changes = {'subscription_status': 'cancelled', 'cancellation_reason': reason}

    create_audit_log(
        request=request,
        action='subscription_change',
        model_name='Pharmacy',
        object_id=pharmacy.id,
        object_name=pharmacy.name,
        changes=changes,
        pharmacy=pharmacy,
    )
    return Response(response)
