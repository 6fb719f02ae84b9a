import logging
from datetime import timedelta
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.conf import settings
from django.db import transaction, IntegrityError
from django.shortcuts import get_object_or_404
from django.utils import timezone
from pharmatrack.billing.plans import get_plan_limits
from pharmatrack.core.utils import create_audit_log
from pharmatrack.staff.models import PharmacyStaff
from pharmatrack.staff.permissions import IsPharmacyMember, IsOwnerOrManager, has_permission
from .models import Pharmacy, Branch
from .pins import AdminPinError, PinNotSetError, IncorrectPinError, set_admin_pin, verify_admin_pin, pin_error_response
from .serializers import PharmacySerializer, PharmacyCreateSerializer, BranchSerializer, AdminPinSerializer

logger = logging.getLogger(__name__)


def create_pharmacy_for_owner(user, data):
    """
    Onboard a new pharmacy: the pharmacy itself on a trial, its main
    branch and the owner's membership.
    """
    limits = get_plan_limits('starter')
    with transaction.atomic():
        pharmacy = Pharmacy.objects.create(
            owner=user,
            subscription_plan='starter',
            subscription_status='trial',
            trial_ends_at=timezone.now() + timedelta(days=getattr(settings, 'TRIAL_DAYS', 14)),
            max_users=limits['max_users'],
            active_branches_limit=limits['max_branches'],
            **data
        )
        branch = Branch.objects.create(
            pharmacy=pharmacy,
            name='Main Branch',
            address=pharmacy.address,
            phone=pharmacy.phone,
            is_main=True,
        )
        PharmacyStaff.objects.create(user=user, pharmacy=pharmacy, branch=branch, role='owner')
    logger.info(f"Pharmacy {pharmacy.id} onboarded by user {user.id}")
    return pharmacy


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def pharmacy_list_create(request):
    """List pharmacies the user belongs to or onboard a new one"""
    if request.method == 'GET':
        pharmacies = Pharmacy.objects.filter(
            staff_members__user=request.user, staff_members__is_active=True
        ).prefetch_related('branches').distinct()
        serializer = PharmacySerializer(pharmacies, many=True)
        return Response(serializer.data)

    if Pharmacy.objects.filter(owner=request.user).exists():
        return Response(
            {'error': 'You already own a pharmacy'},
            status=status.HTTP_400_BAD_REQUEST
        )
    serializer = PharmacyCreateSerializer(data=request.data)
    if serializer.is_valid():
        pharmacy = create_pharmacy_for_owner(request.user, serializer.validated_data)
        create_audit_log(
            request=request,
            action='create',
            model_name='Pharmacy',
            object_id=pharmacy.id,
            object_name=pharmacy.name,
            pharmacy=pharmacy,
        )
        return Response(PharmacySerializer(pharmacy).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def pharmacy_current(request):
    """Retrieve or update the active pharmacy (update requires manage_settings)"""
    pharmacy = request.membership.pharmacy

    if request.method == 'GET':
        data = PharmacySerializer(pharmacy).data
        data['plan_limits'] = get_plan_limits(pharmacy.subscription_plan)
        return Response(data)

    if not has_permission(request.membership, 'manage_settings'):
        return Response({'error': 'Missing permission: manage_settings'}, status=status.HTTP_403_FORBIDDEN)
    serializer = PharmacySerializer(pharmacy, data=request.data, partial=True)
    if serializer.is_valid():
        serializer.save()
        create_audit_log(
            request=request,
            action='update',
            model_name='Pharmacy',
            object_id=pharmacy.id,
            object_name=pharmacy.name,
            changes={key: str(value) for key, value in serializer.validated_data.items()},
            pharmacy=pharmacy,
        )
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsOwnerOrManager])
def admin_pin_set(request):
    """Set or change the pharmacy's admin PIN (4-6 digits)"""
    pharmacy = request.membership.pharmacy
    serializer = AdminPinSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    set_admin_pin(pharmacy, serializer.validated_data['pin'])
    create_audit_log(
        request=request,
        action='admin_pin_set',
        model_name='Pharmacy',
        object_id=pharmacy.id,
        object_name=pharmacy.name,
        changes={'action': 'Admin PIN was set/changed'},
        pharmacy=pharmacy,
    )
    return Response({'valid': True, 'message': 'PIN set successfully'})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def admin_pin_verify(request):
    """Check the admin PIN before a till override; failures are rate limited"""
    pharmacy = request.membership.pharmacy
    pin = request.data.get('pin')
    if not pin:
        return Response({'valid': False, 'error': 'PIN required'}, status=status.HTTP_400_BAD_REQUEST)

    try:
        verify_admin_pin(pharmacy, pin)
    except PinNotSetError as e:
        return Response({'valid': False, 'error': str(e), 'pin_set': False}, status=status.HTTP_400_BAD_REQUEST)
    except AdminPinError as e:
        if isinstance(e, IncorrectPinError):
            create_audit_log(
                request=request,
                action='admin_pin_failed',
                model_name='Pharmacy',
                object_id=pharmacy.id,
                object_name=pharmacy.name,
                changes={'success': False, 'remaining_attempts': e.remaining_attempts},
                pharmacy=pharmacy,
            )
        return pin_error_response(e)

    create_audit_log(
        request=request,
        action='admin_pin_verified',
        model_name='Pharmacy',
        object_id=pharmacy.id,
        object_name=pharmacy.name,
        changes={'success': True},
        pharmacy=pharmacy,
    )
    return Response({'valid': True})



@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def branch_list_create(request):
    """List the pharmacy's branches or create one within the plan's branch limit"""
    pharmacy = request.membership.pharmacy

    if request.method == 'GET':
        branches = Branch.objects.filter(pharmacy=pharmacy)
        is_active = request.query_params.get('is_active')
        if is_active is not None:
            branches = branches.filter(is_active=is_active.lower() == 'true')
        return Response(BranchSerializer(branches, many=True).data)

    if not request.membership.is_owner_or_manager:
        return Response({'error': 'Only owners and managers can add branches'}, status=status.HTTP_403_FORBIDDEN)

    limit = pharmacy.active_branches_limit
    active_count = Branch.objects.filter(pharmacy=pharmacy, is_active=True).count()
    if active_count >= limit:
        return Response(
            {
                'error': 'Branch limit reached',
                'message': f'Your plan allows {limit} active branch(es). Upgrade to add more.',
            },
            status=status.HTTP_402_PAYMENT_REQUIRED
        )

    serializer = BranchSerializer(data=request.data)
    if serializer.is_valid():
        try:
            with transaction.atomic():
                branch = serializer.save(pharmacy=pharmacy)
        except IntegrityError:
            return Response({'error': 'A branch with this name already exists'}, status=status.HTTP_400_BAD_REQUEST)
        create_audit_log(
            request=request,
            action='create',
            model_name='Branch',
            object_id=branch.id,
            object_name=branch.name,
            pharmacy=pharmacy,
        )
        return Response(BranchSerializer(branch).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsOwnerOrManager])
def branch_detail(request, pk):
    """Retrieve, update or deactivate a branch"""
    branch = get_object_or_404(Branch, pk=pk, pharmacy=request.membership.pharmacy)

    if request.method == 'GET':
        return Response(BranchSerializer(branch).data)
    elif request.method == 'PATCH':
        serializer = BranchSerializer(branch, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if branch.is_main:
            return Response({'error': 'The main branch cannot be removed'}, status=status.HTTP_400_BAD_REQUEST)
        branch.is_active = False
        branch.save(update_fields=['is_active', 'updated_at'])
        return Response(status=status.HTTP_204_NO_CONTENT)
