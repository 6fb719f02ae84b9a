from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import F, Q
from django.shortcuts import get_object_or_404
from django.utils import timezone
from pharmatrack.catalog.models import Medication
from pharmatrack.catalog.serializers import MedicationSerializer
from pharmatrack.core.utils import create_audit_log
from pharmatrack.staff.permissions import HasPharmacyPermission
from .models import StockAdjustment, StockTransfer, InternalTransfer
from .serializers import StockAdjustmentSerializer, StockTransferSerializer, InternalTransferSerializer
from .services import StockError, apply_adjustment, create_transfer, complete_transfer, move_internal


def _branch_filter(queryset, request):
    branch_id = request.query_params.get('branch')
    if branch_id:
        queryset = queryset.filter(branch_id=branch_id)
    return queryset


# Stock level views (read-only)
@api_view(['GET'])
@permission_classes([IsAuthenticated, HasPharmacyPermission('access_inventory')])
def stock_low(request):
    """Unexpired batches at or below their reorder level that still have stock"""
    pharmacy = request.membership.pharmacy
    queryset = Medication.objects.filter(
        pharmacy=pharmacy,
        current_stock__gt=0,
        current_stock__lte=F('reorder_level'),
        expiry_date__gt=timezone.localdate(),
    ).select_related('branch')
    queryset = _branch_filter(queryset, request).order_by('current_stock', 'name')
    serializer = MedicationSerializer(queryset, many=True)
    return Response(serializer.data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasPharmacyPermission('access_inventory')])
def stock_out_of_stock(request):
    """Batches with no stock left"""
    pharmacy = request.membership.pharmacy
    queryset = Medication.objects.filter(pharmacy=pharmacy, current_stock__lte=0).select_related('branch')
    queryset = _branch_filter(queryset, request).order_by('name')
    serializer = MedicationSerializer(queryset, many=True)
    return Response(serializer.data)


# StockAdjustment views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, HasPharmacyPermission('access_inventory')])
def stock_adjustment_list_create(request):
    """List stock adjustments or apply a new adjustment to a batch"""
    pharmacy = request.membership.pharmacy
    if request.method == 'GET':
        adjustments = StockAdjustment.objects.filter(pharmacy=pharmacy).select_related('medication', 'created_by')
        medication_id = request.query_params.get('medication')
        if medication_id:
            adjustments = adjustments.filter(medication_id=medication_id)
        serializer = StockAdjustmentSerializer(adjustments[:200], many=True)
        return Response(serializer.data)

    serializer = StockAdjustmentSerializer(data=request.data, context={'pharmacy': pharmacy})
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    try:
        adjustment = apply_adjustment(
            data['medication'], data['adjustment_type'], data['quantity'], data['reason'],
            notes=data.get('notes', ''), user=request.user,
        )
    except StockError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    create_audit_log(
        request=request,
        action='stock_adjust',
        model_name='StockAdjustment',
        object_id=str(adjustment.id),
        object_name=adjustment.medication.name,
        object_reference=adjustment.medication.batch_number,
        barcode=adjustment.medication.barcode_id,
        changes={
            'adjustment_type': adjustment.adjustment_type,
            'quantity': str(adjustment.quantity),
            'reason': adjustment.reason,
            'notes': adjustment.notes,
            'previous_stock': str(adjustment.previous_stock),
            'new_stock': str(adjustment.new_stock),
        },
        pharmacy=pharmacy,
    )
    return Response(StockAdjustmentSerializer(adjustment).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasPharmacyPermission('access_inventory')])
def stock_adjustment_detail(request, pk):
    """Retrieve a stock adjustment"""
    adjustment = get_object_or_404(StockAdjustment, pk=pk, pharmacy=request.membership.pharmacy)
    serializer = StockAdjustmentSerializer(adjustment)
    return Response(serializer.data)


# StockTransfer views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, HasPharmacyPermission('manage_stock_transfers')])
def stock_transfer_list_create(request):
    """List branch transfers or create a pending transfer"""
    pharmacy = request.membership.pharmacy
    if request.method == 'GET':
        transfers = StockTransfer.objects.filter(pharmacy=pharmacy).select_related(
            'from_branch', 'to_branch'
        ).prefetch_related('items')
        status_filter = request.query_params.get('status')
        if status_filter:
            transfers = transfers.filter(status=status_filter)
        branch_id = request.query_params.get('branch')
        if branch_id:
            transfers = transfers.filter(Q(from_branch_id=branch_id) | Q(to_branch_id=branch_id))
        serializer = StockTransferSerializer(transfers, many=True)
        return Response(serializer.data)

    serializer = StockTransferSerializer(data=request.data, context={'pharmacy': pharmacy})
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    transfer = create_transfer(
        pharmacy, data['from_branch'], data['to_branch'], data['items'],
        notes=data.get('notes', ''), user=request.user,
    )
    return Response(StockTransferSerializer(transfer).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated, HasPharmacyPermission('manage_stock_transfers')])
def stock_transfer_detail(request, pk):
    """Retrieve a transfer, or cancel it while it is still pending"""
    transfer = get_object_or_404(StockTransfer, pk=pk, pharmacy=request.membership.pharmacy)
    if request.method == 'GET':
        return Response(StockTransferSerializer(transfer).data)

    if transfer.status == 'completed':
        return Response({'error': 'Completed transfers cannot be cancelled'}, status=status.HTTP_400_BAD_REQUEST)
    transfer.status = 'cancelled'
    transfer.save(update_fields=['status', 'updated_at'])
    return Response(StockTransferSerializer(transfer).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, HasPharmacyPermission('manage_stock_transfers')])
def stock_transfer_complete(request, pk):
    """Move the transfer's stock from the source branch to the destination branch"""
    pharmacy = request.membership.pharmacy
    transfer = get_object_or_404(StockTransfer, pk=pk, pharmacy=pharmacy)
    try:
        complete_transfer(transfer, user=request.user)
    except StockError as e:
        return Response({'error': 'Transfer failed', 'message': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    create_audit_log(
        request=request,
        action='stock_transfer',
        model_name='StockTransfer',
        object_id=str(transfer.id),
        object_name=transfer.transfer_number,
        object_reference=transfer.transfer_number,
        changes={
            'from_branch': transfer.from_branch.name,
            'to_branch': transfer.to_branch.name,
            'items': {item.product_name: item.transferred_quantity for item in transfer.items.all()},
        },
        pharmacy=pharmacy,
    )
    return Response(StockTransferSerializer(transfer).data)


# Shelving views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, HasPharmacyPermission('access_inventory')])
def internal_transfer_list_create(request):
    """List store/shelf movements or move units between the store and the shelf"""
    pharmacy = request.membership.pharmacy
    if request.method == 'GET':
        movements = InternalTransfer.objects.filter(pharmacy=pharmacy).select_related('medication')
        serializer = InternalTransferSerializer(movements[:200], many=True)
        return Response(serializer.data)

    serializer = InternalTransferSerializer(data=request.data, context={'pharmacy': pharmacy})
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    try:
        movement = move_internal(
            data['medication'], data['quantity'], direction=data.get('direction', 'store_to_shelf'),
            notes=data.get('notes', ''), user=request.user,
        )
    except StockError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    medication = movement.medication
    return Response({
        'movement': InternalTransferSerializer(movement).data,
        'shelf_quantity': medication.shelf_quantity,
        'store_quantity': medication.store_quantity,
    }, status=status.HTTP_201_CREATED)
