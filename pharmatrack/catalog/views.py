import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.core.cache import cache
from django.core.paginator import Paginator
from django.db.models import Q
from django.shortcuts import get_object_or_404
from pharmatrack.core.cache_utils import pharmacy_cache_key, MEDICATION_GROUPS_CACHE_TTL
from pharmatrack.core.utils import create_audit_log, snapshot_fields, field_changes
from pharmatrack.staff.permissions import IsPharmacyMember, HasPharmacyPermission, has_permission
from .barcodes import generate_internal_barcode, lookup_barcode, search_master_library
from .fefo import group_medications_by_name
from .filters import MedicationFilter
from .label_generator import generate_label_image
from .models import Medication, MasterBarcode, CATEGORY_GROUPS
from .pricing import apply_bulk_price_update
from .scanner import decode_barcodes, BarcodeDecodeError
from .serializers import (
    MedicationSerializer, GroupedProductSerializer, MasterBarcodeSerializer, BulkPriceUpdateSerializer
)

logger = logging.getLogger(__name__)

PRICE_FIELDS = ('unit_price', 'selling_price', 'wholesale_price')


def _scoped_medications(membership):
    """Medications visible to a member: the whole pharmacy, or the member's branch for plain staff"""
    queryset = Medication.objects.filter(pharmacy=membership.pharmacy).select_related('branch')
    if membership.role == 'staff' and membership.branch_id and not has_permission(membership, 'access_branches'):
        queryset = queryset.filter(Q(branch_id=membership.branch_id) | Q(branch__isnull=True))
    return queryset


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def medication_list_create(request):
    """List medication batches or create a new batch"""
    membership = request.membership

    if request.method == 'GET':
        queryset = _scoped_medications(membership)
        filterset = MedicationFilter(request.query_params, queryset=queryset)
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        queryset = filterset.qs.order_by('name', 'expiry_date')

        try:
            page = int(request.query_params.get('page', 1))
            limit = min(int(request.query_params.get('limit', 50)), 500)
        except ValueError:
            return Response({'error': 'page and limit must be integers'}, status=status.HTTP_400_BAD_REQUEST)

        paginator = Paginator(queryset, limit)
        page_obj = paginator.get_page(page)
        serializer = MedicationSerializer(page_obj, many=True)
        return Response({
            'results': serializer.data,
            'count': paginator.count,
            'next': page_obj.next_page_number() if page_obj.has_next() else None,
            'previous': page_obj.previous_page_number() if page_obj.has_previous() else None,
            'page': page_obj.number,
            'page_size': limit,
            'total_pages': paginator.num_pages,
        })

    if not has_permission(membership, 'access_inventory'):
        return Response({'error': 'Missing permission: access_inventory'}, status=status.HTTP_403_FORBIDDEN)

    serializer = MedicationSerializer(data=request.data, context={'pharmacy': membership.pharmacy})
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    extra = {'pharmacy': membership.pharmacy}
    if 'branch' not in serializer.validated_data and membership.branch_id:
        extra['branch'] = membership.branch
    if not serializer.validated_data.get('barcode_id') and str(request.data.get('generate_barcode', '')).lower() == 'true':
        extra['barcode_id'] = generate_internal_barcode(membership.pharmacy)

    medication = serializer.save(**extra)
    create_audit_log(
        request=request,
        action='create',
        model_name='Medication',
        object_id=medication.id,
        object_name=medication.name,
        object_reference=medication.batch_number,
        barcode=medication.barcode_id,
        changes={'current_stock': medication.current_stock, 'expiry_date': str(medication.expiry_date)},
        pharmacy=membership.pharmacy,
    )
    return Response(MedicationSerializer(medication).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def medication_detail(request, pk):
    """Retrieve, update or delete a medication batch"""
    membership = request.membership
    medication = get_object_or_404(_scoped_medications(membership), pk=pk)

    if request.method == 'GET':
        return Response(MedicationSerializer(medication).data)

    if not has_permission(membership, 'access_inventory'):
        return Response({'error': 'Missing permission: access_inventory'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'PATCH':
        old_prices = snapshot_fields(medication, PRICE_FIELDS)
        serializer = MedicationSerializer(
            medication, data=request.data, partial=True, context={'pharmacy': membership.pharmacy}
        )
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        serializer.save()

        price_changes = field_changes(
            old_prices, medication, [field for field in PRICE_FIELDS if field in serializer.validated_data]
        )
        create_audit_log(
            request=request,
            action='price_change' if price_changes else 'update',
            model_name='Medication',
            object_id=medication.id,
            object_name=medication.name,
            object_reference=medication.batch_number,
            changes=price_changes or {key: str(value) for key, value in serializer.validated_data.items()},
            pharmacy=membership.pharmacy,
        )
        return Response(serializer.data)

    # DELETE
    if not membership.is_owner_or_manager:
        return Response({'error': 'Only owners and managers can delete medications'}, status=status.HTTP_403_FORBIDDEN)
    create_audit_log(
        request=request,
        action='delete',
        model_name='Medication',
        object_id=medication.id,
        object_name=medication.name,
        object_reference=medication.batch_number,
        changes={'current_stock': medication.current_stock},
        pharmacy=membership.pharmacy,
    )
    medication.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def medication_grouped(request):
    """Batches grouped by product name in FEFO order, for the POS product grid"""
    membership = request.membership
    search = request.query_params.get('search', '').strip()
    category = request.query_params.get('category', '').strip()
    in_stock_only = request.query_params.get('in_stock', 'false').lower() == 'true'

    cache_key = pharmacy_cache_key(
        'medication_groups', membership.pharmacy_id, membership.branch_id if membership.role == 'staff' else None,
        search=search, category=category, in_stock=in_stock_only,
    )
    cached = cache.get(cache_key)
    if cached is not None:
        return Response(cached)

    queryset = _scoped_medications(membership)
    if search:
        queryset = queryset.filter(Q(name__icontains=search) | Q(barcode_id=search))
    if category:
        queryset = queryset.filter(category__iexact=category)

    groups = group_medications_by_name(queryset)
    if in_stock_only:
        groups = [group for group in groups if group['total_stock'] > 0]
    groups.sort(key=lambda group: group['name'].lower())

    data = GroupedProductSerializer(groups, many=True).data
    cache.set(cache_key, data, MEDICATION_GROUPS_CACHE_TTL)
    return Response(data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def category_list(request):
    """Category groups for product forms and filters"""
    return Response({'groups': CATEGORY_GROUPS, 'other': 'Other'})


def _serialize_lookup(result):
    return {
        'source': result['source'],
        'barcode': result['barcode'],
        'medications': MedicationSerializer(result['medications'], many=True).data,
        'suggestion': result['suggestion'],
    }


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def barcode_lookup(request):
    """Resolve a scanned barcode against inventory, then the master library"""
    barcode_value = request.query_params.get('barcode', '').strip()
    if not barcode_value:
        return Response({'error': 'barcode parameter is required'}, status=status.HTTP_400_BAD_REQUEST)

    result = lookup_barcode(request.membership.pharmacy, barcode_value)
    create_audit_log(
        request=request,
        action='barcode_scan',
        model_name='Medication',
        object_id=result['medications'][0].id if result['medications'] else 0,
        object_name=result['medications'][0].name if result['medications'] else None,
        barcode=barcode_value,
        changes={'source': result['source']},
        pharmacy=request.membership.pharmacy,
    )
    return Response(_serialize_lookup(result))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def barcode_scan_image(request):
    """Decode barcodes from an uploaded image (multipart 'image' or base64 'image_base64') and look each up"""
    upload = request.FILES.get('image')
    image_data = upload.read() if upload else request.data.get('image_base64')
    if not image_data:
        return Response({'error': 'No image provided'}, status=status.HTTP_400_BAD_REQUEST)

    try:
        decoded = decode_barcodes(image_data)
    except BarcodeDecodeError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    pharmacy = request.membership.pharmacy
    results = []
    for code in decoded:
        lookup = _serialize_lookup(lookup_barcode(pharmacy, code['value']))
        lookup['symbology'] = code['symbology']
        results.append(lookup)
    return Response({'count': len(results), 'results': results})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def medication_label(request, pk):
    """Render a printable Code128 label for a batch, generating a barcode if it has none"""
    membership = request.membership
    medication = get_object_or_404(_scoped_medications(membership), pk=pk)

    if not medication.barcode_id:
        medication.barcode_id = generate_internal_barcode(membership.pharmacy)
        medication.save(update_fields=['barcode_id', 'updated_at'])

    show_price = request.query_params.get('show_price', 'true').lower() == 'true'
    image = generate_label_image(
        product_name=medication.name,
        barcode_value=medication.barcode_id,
        price=medication.effective_price if show_price else None,
        currency=membership.pharmacy.currency,
        expiry_date=medication.expiry_date.strftime('%m/%Y'),
        batch_number=medication.batch_number or None,
    )
    return Response({'barcode': medication.barcode_id, 'image': image})


@api_view(['POST'])
@permission_classes([IsAuthenticated, HasPharmacyPermission('access_inventory')])
def bulk_price_update(request):
    """Update selling prices for selected batches or a whole category"""
    membership = request.membership
    serializer = BulkPriceUpdateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    queryset = _scoped_medications(membership)
    if data.get('medication_ids'):
        queryset = queryset.filter(id__in=data['medication_ids'])
    if data.get('category'):
        queryset = queryset.filter(category__iexact=data['category'])

    changes = apply_bulk_price_update(queryset, data['mode'], data['value'])
    for med, old_price, new_price in changes:
        create_audit_log(
            request=request,
            action='price_change',
            model_name='Medication',
            object_id=med.id,
            object_name=med.name,
            object_reference=med.batch_number,
            changes={'selling_price': {'old': str(old_price), 'new': str(new_price)}, 'mode': data['mode']},
            pharmacy=membership.pharmacy,
        )
    logger.info(f"Bulk price update ({data['mode']} {data['value']}) changed {len(changes)} batch(es) for pharmacy {membership.pharmacy_id}")
    return Response({'updated': len(changes)})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def master_barcode_search(request):
    """Search the shared barcode library by barcode or product name"""
    barcode_value = request.query_params.get('barcode', '').strip()
    name = request.query_params.get('name', '').strip()

    if barcode_value:
        entries = MasterBarcode.objects.filter(barcode=barcode_value)
        return Response(MasterBarcodeSerializer(entries, many=True).data)
    if name:
        entry = search_master_library(name)
        return Response(MasterBarcodeSerializer([entry] if entry else [], many=True).data)
    return Response({'error': 'barcode or name parameter is required'}, status=status.HTTP_400_BAD_REQUEST)
