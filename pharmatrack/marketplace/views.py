from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, AllowAny
from django.core.paginator import Paginator
from django.utils import timezone
from pharmatrack.core.utils import create_audit_log, get_client_ip
from pharmatrack.staff.permissions import HasPharmacyPermission
from .serializers import PublicMedicationSerializer, VisibilityToggleSerializer
from .services import (
    public_listings, record_search, record_view, set_medications_public, set_category_public,
    marketplace_insights
)


@api_view(['GET'])
@permission_classes([AllowAny])
def marketplace_list(request):
    """Public product search across every listed pharmacy; featured products first"""
    query = (request.query_params.get('search') or '').strip()
    location = (request.query_params.get('location') or '').strip()
    try:
        pharmacy_id = int(request.query_params['pharmacy']) if request.query_params.get('pharmacy') else None
        page = int(request.query_params.get('page', 1))
        limit = min(int(request.query_params.get('limit', 24)), 100)
    except ValueError:
        return Response({'error': 'pharmacy, page and limit must be integers'}, status=status.HTTP_400_BAD_REQUEST)

    queryset = public_listings(
        query=query or None,
        pharmacy_id=pharmacy_id,
        category=request.query_params.get('category'),
        location=location or None,
    )

    paginator = Paginator(queryset, limit)
    page_obj = paginator.get_page(page)

    if query:
        record_search(query, paginator.count, location=location, viewer_ip=get_client_ip(request))

    serializer = PublicMedicationSerializer(page_obj, many=True)
    return Response({
        'results': serializer.data,
        'count': paginator.count,
        'next': page_obj.next_page_number() if page_obj.has_next() else None,
        'previous': page_obj.previous_page_number() if page_obj.has_previous() else None,
        'page': page_obj.number,
        'total_pages': paginator.num_pages,
    })


@api_view(['GET'])
@permission_classes([AllowAny])
def marketplace_detail(request, pk):
    """Public product page; each fetch counts as a view for the selling pharmacy"""
    medication = public_listings().filter(pk=pk).first()
    if medication is None:
        return Response({'error': 'Product not found'}, status=status.HTTP_404_NOT_FOUND)

    record_view(medication, search_query=request.query_params.get('search'), viewer_ip=get_client_ip(request))
    return Response(PublicMedicationSerializer(medication).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, HasPharmacyPermission('access_inventory')])
def marketplace_visibility(request):
    """List or unlist products on the marketplace by id or by whole category"""
    serializer = VisibilityToggleSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    pharmacy = request.membership.pharmacy
    is_public = serializer.validated_data['is_public']
    category = serializer.validated_data.get('category')
    if category:
        updated = set_category_public(pharmacy, category, is_public)
        target = category
    else:
        updated = set_medications_public(pharmacy, serializer.validated_data['medication_ids'], is_public)
        target = f"{updated} products"

    create_audit_log(
        request=request,
        action='update',
        model_name='Medication',
        object_id='bulk',
        object_name=f'Marketplace visibility: {target}',
        changes={'is_public': is_public, 'updated': updated},
        pharmacy=pharmacy,
    )
    return Response({'updated': updated, 'is_public': is_public})


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasPharmacyPermission('view_analytics')])
def marketplace_stats(request):
    """Views and listing counts for the active pharmacy"""
    try:
        days = int(request.query_params.get('days', 30))
    except ValueError:
        return Response({'error': 'days must be an integer'}, status=status.HTTP_400_BAD_REQUEST)
    return Response(marketplace_insights(request.membership.pharmacy, days=days, now=timezone.now()))
