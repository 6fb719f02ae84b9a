import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import Q
from django.shortcuts import get_object_or_404
from pharmatrack.core.utils import create_audit_log
from pharmatrack.staff.permissions import IsPharmacyMember, IsOwnerOrManager
from .models import Notification, SentAlert
from .serializers import NotificationSerializer, SentAlertSerializer, SendAlertSerializer
from .services import send_alert, run_alert_engine
from .termii import TermiiError

logger = logging.getLogger(__name__)


def _scoped_notifications(membership):
    """Pharmacy-wide notifications plus, for plain staff, only their own branch's"""
    queryset = Notification.objects.filter(pharmacy=membership.pharmacy)
    if membership.role == 'staff' and membership.branch_id:
        queryset = queryset.filter(Q(branch_id=membership.branch_id) | Q(branch__isnull=True))
    return queryset


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def notification_list(request):
    """List notifications (filters: is_read, type, priority, limit)"""
    queryset = _scoped_notifications(request.membership)

    is_read = request.query_params.get('is_read')
    if is_read is not None:
        queryset = queryset.filter(is_read=is_read.lower() == 'true')
    notification_type = request.query_params.get('type')
    if notification_type:
        queryset = queryset.filter(type=notification_type)
    priority = request.query_params.get('priority')
    if priority:
        queryset = queryset.filter(priority=priority)

    try:
        limit = min(int(request.query_params.get('limit', 50)), 200)
    except ValueError:
        limit = 50
    serializer = NotificationSerializer(queryset.order_by('-created_at')[:limit], many=True)
    return Response(serializer.data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def notification_unread_count(request):
    count = _scoped_notifications(request.membership).filter(is_read=False).count()
    return Response({'unread_count': count})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def notification_mark_read(request, pk):
    notification = get_object_or_404(_scoped_notifications(request.membership), pk=pk)
    if not notification.is_read:
        notification.is_read = True
        notification.save(update_fields=['is_read'])
    return Response(NotificationSerializer(notification).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def notification_mark_all_read(request):
    updated = _scoped_notifications(request.membership).filter(is_read=False).update(is_read=True)
    return Response({'updated': updated})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsOwnerOrManager])
def send_alert_view(request):
    """Send an SMS/WhatsApp alert to the pharmacy's alert phone (or a given number)"""
    pharmacy = request.membership.pharmacy
    serializer = SendAlertSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    recipient = data.get('recipient_phone') or pharmacy.alert_phone or pharmacy.phone
    if not recipient:
        return Response(
            {'error': 'Missing recipient phone', 'message': 'Set an alert phone in pharmacy settings or provide recipient_phone'},
            status=status.HTTP_400_BAD_REQUEST
        )

    details = {
        key: data.get(key)
        for key in ('item_name', 'item_value', 'days_left', 'current_stock', 'suggested_reorder')
        if data.get(key) is not None
    }
    try:
        alert, provider_data = send_alert(
            pharmacy, data['alert_type'], recipient, message=data.get('message', ''),
            channel=data['channel'], user=request.user, **details
        )
    except TermiiError as e:
        logger.error(f"Alert to {recipient} failed for pharmacy {pharmacy.id}: {str(e)}")
        return Response({'error': str(e), 'details': e.details}, status=status.HTTP_502_BAD_GATEWAY)

    create_audit_log(
        request=request,
        action='alert_sent',
        model_name='SentAlert',
        object_id=alert.id,
        object_name=data['alert_type'],
        changes={
            'alert_type': data['alert_type'],
            'channel': data['channel'],
            'recipient': alert.recipient,
            'message_id': alert.provider_message_id,
            'provider': 'termii',
            'item_name': data.get('item_name'),
        },
        pharmacy=pharmacy,
    )
    return Response({
        'success': True,
        'message_id': alert.provider_message_id,
        'status': 'sent',
        'balance': provider_data.get('balance'),
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsOwnerOrManager])
def sent_alert_list(request):
    alerts = SentAlert.objects.filter(pharmacy=request.membership.pharmacy).select_related('sent_by')[:200]
    return Response(SentAlertSerializer(alerts, many=True).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsOwnerOrManager])
def run_alerts(request):
    """Run the alert engine for the current pharmacy now"""
    counts = run_alert_engine(request.membership.pharmacy)
    return Response(counts)
