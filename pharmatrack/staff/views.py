import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from pharmatrack.billing.plans import PlanLimitError
from pharmatrack.core.utils import create_audit_log
from .models import PharmacyStaff, StaffShift
from .permissions import (
    IsPharmacyMember, IsOwnerOrManager, ROLE_TEMPLATES, PERMISSION_LABELS, has_permission
)
from .serializers import (
    PharmacyStaffSerializer, StaffCreateSerializer, StaffUpdateSerializer, StaffShiftSerializer
)
from .services import create_staff_member, set_staff_permissions, clock_in, clock_out, get_open_shift, ShiftError

logger = logging.getLogger(__name__)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsOwnerOrManager])
def staff_list_create(request):
    """List pharmacy staff or create a staff account"""
    pharmacy = request.membership.pharmacy

    if request.method == 'GET':
        queryset = PharmacyStaff.objects.filter(pharmacy=pharmacy).select_related('user', 'branch')
        branch_id = request.query_params.get('branch')
        if branch_id:
            queryset = queryset.filter(branch_id=branch_id)
        is_active = request.query_params.get('is_active')
        if is_active is not None:
            queryset = queryset.filter(is_active=is_active.lower() == 'true')
        return Response(PharmacyStaffSerializer(queryset, many=True).data)

    serializer = StaffCreateSerializer(data=request.data, context={'pharmacy': pharmacy})
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    # Managers cannot create other managers
    if serializer.validated_data['role'] == 'manager' and request.membership.role != 'owner':
        return Response({'error': 'Only the owner can create managers'}, status=status.HTTP_403_FORBIDDEN)

    try:
        membership = create_staff_member(pharmacy, serializer.validated_data, granted_by=request.user)
    except PlanLimitError as e:
        return Response({'error': 'User limit reached', 'message': str(e)}, status=status.HTTP_402_PAYMENT_REQUIRED)

    create_audit_log(
        request=request,
        action='staff_change',
        model_name='PharmacyStaff',
        object_id=membership.id,
        object_name=membership.user.get_display_name(),
        changes={'role': membership.role, 'permissions': serializer.validated_data.get('permissions', [])},
        pharmacy=pharmacy,
    )
    return Response(PharmacyStaffSerializer(membership).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsOwnerOrManager])
def staff_detail(request, pk):
    """Retrieve, update (role, branch, permissions) or deactivate a staff member"""
    pharmacy = request.membership.pharmacy
    membership = get_object_or_404(PharmacyStaff.objects.select_related('user', 'branch'), pk=pk, pharmacy=pharmacy)

    if request.method == 'GET':
        return Response(PharmacyStaffSerializer(membership).data)

    if membership.role == 'owner':
        return Response({'error': 'The owner membership cannot be modified'}, status=status.HTTP_400_BAD_REQUEST)
    if membership.role == 'manager' and request.membership.role != 'owner':
        return Response({'error': 'Only the owner can modify managers'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'DELETE':
        membership.is_active = False
        membership.save(update_fields=['is_active', 'updated_at'])
        create_audit_log(
            request=request,
            action='staff_change',
            model_name='PharmacyStaff',
            object_id=membership.id,
            object_name=membership.user.get_display_name(),
            changes={'is_active': False},
            pharmacy=pharmacy,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)

    serializer = StaffUpdateSerializer(data=request.data, context={'pharmacy': pharmacy})
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    changes = {}
    if 'role' in data:
        if data['role'] == 'manager' and request.membership.role != 'owner':
            return Response({'error': 'Only the owner can promote to manager'}, status=status.HTTP_403_FORBIDDEN)
        membership.role = data['role']
        changes['role'] = data['role']
    if 'branch' in data:
        membership.branch = data['branch']
        changes['branch'] = data['branch'].id if data['branch'] else None
    if 'is_active' in data:
        membership.is_active = data['is_active']
        changes['is_active'] = data['is_active']
    membership.save()
    if 'permissions' in data:
        set_staff_permissions(membership, data['permissions'], granted_by=request.user)
        changes['permissions'] = data['permissions']

    create_audit_log(
        request=request,
        action='staff_change',
        model_name='PharmacyStaff',
        object_id=membership.id,
        object_name=membership.user.get_display_name(),
        changes=changes,
        pharmacy=pharmacy,
    )
    return Response(PharmacyStaffSerializer(membership).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def role_templates(request):
    """Permission keys and role templates for the staff permission editor"""
    return Response({
        'permissions': [{'key': key, 'label': label} for key, label in PERMISSION_LABELS.items()],
        'templates': ROLE_TEMPLATES,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def shift_clock_in(request):
    """Clock in the requesting staff member"""
    try:
        shift = clock_in(
            request.membership,
            wifi_name=request.data.get('wifi_name'),
            notes=request.data.get('notes', ''),
        )
    except ShiftError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    create_audit_log(
        request=request,
        action='clock_in',
        model_name='StaffShift',
        object_id=shift.id,
        object_name=request.user.get_display_name(),
        pharmacy=shift.pharmacy,
    )
    return Response(StaffShiftSerializer(shift).data, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def shift_clock_out(request):
    """Clock out the requesting staff member"""
    try:
        shift = clock_out(request.membership)
    except ShiftError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    create_audit_log(
        request=request,
        action='clock_out',
        model_name='StaffShift',
        object_id=shift.id,
        object_name=request.user.get_display_name(),
        changes={'total_sales': str(shift.total_sales), 'total_transactions': shift.total_transactions},
        pharmacy=shift.pharmacy,
    )
    return Response(StaffShiftSerializer(shift).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def shift_current(request):
    """Currently open shift for the requesting staff member, if any"""
    shift = get_open_shift(request.membership)
    return Response({'shift': StaffShiftSerializer(shift).data if shift else None})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def shift_list(request):
    """Shift history; owners/managers and analytics holders see every shift"""
    membership = request.membership
    queryset = StaffShift.objects.filter(pharmacy=membership.pharmacy).select_related('staff__user', 'branch')
    if not (membership.is_owner_or_manager or has_permission(membership, 'view_analytics')):
        queryset = queryset.filter(staff=membership)

    staff_id = request.query_params.get('staff')
    if staff_id:
        queryset = queryset.filter(staff_id=staff_id)
    date_from = request.query_params.get('date_from')
    if date_from:
        queryset = queryset.filter(clock_in__date__gte=date_from)
    date_to = request.query_params.get('date_to')
    if date_to:
        queryset = queryset.filter(clock_in__date__lte=date_to)

    return Response(StaffShiftSerializer(queryset[:200], many=True).data)
