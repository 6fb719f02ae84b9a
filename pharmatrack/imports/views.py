import json
import base64
import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from pharmatrack.ai.gemini import AIServiceError, RateLimitError
from pharmatrack.core.utils import create_audit_log
from pharmatrack.pharmacies.models import Branch
from pharmatrack.staff.permissions import IsPharmacyMember, has_permission
from .configs import IMPORT_CONFIGS
from .serializers import ImportRequestSerializer, InvoiceScanSerializer
from .services import ImportValidationError, read_csv, build_preview, commit_import, scan_invoice

logger = logging.getLogger(__name__)

ENTITY_PERMISSIONS = {
    'medication': 'access_inventory',
    'customer': 'access_customers',
    'doctor': 'access_customers',
}


def _mapping_overrides(request):
    """Caller's column mappings; multipart uploads send them as a JSON string"""
    raw = request.data.get('mappings')
    if not raw:
        return None
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            raise ImportValidationError('mappings must be a JSON object')
    if not isinstance(raw, dict):
        raise ImportValidationError('mappings must be a JSON object')
    return raw


def _load_rows(validated_data):
    upload = validated_data.get('file')
    content = upload.read() if upload else validated_data['content']
    return read_csv(content)


def _check_entity_permission(membership, entity_type):
    permission_key = ENTITY_PERMISSIONS[entity_type]
    if not has_permission(membership, permission_key):
        return Response({'error': f'Missing permission: {permission_key}'}, status=status.HTTP_403_FORBIDDEN)
    return None


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def import_configs(request):
    """Importable entity types with their fields and labels"""
    return Response(IMPORT_CONFIGS)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def import_preview(request):
    """Map the uploaded CSV's columns and validate the first rows"""
    serializer = ImportRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    entity_type = serializer.validated_data['entity_type']
    denied = _check_entity_permission(request.membership, entity_type)
    if denied:
        return denied

    try:
        headers, rows = _load_rows(serializer.validated_data)
        preview = build_preview(request.membership.pharmacy, entity_type, headers, rows, _mapping_overrides(request))
    except ImportValidationError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    return Response(preview)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def import_commit(request):
    """Import every valid row of the uploaded CSV"""
    membership = request.membership
    pharmacy = membership.pharmacy
    serializer = ImportRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    entity_type = serializer.validated_data['entity_type']
    denied = _check_entity_permission(membership, entity_type)
    if denied:
        return denied

    branch = None
    branch_id = serializer.validated_data.get('branch')
    if branch_id:
        branch = Branch.objects.filter(pk=branch_id, pharmacy=pharmacy).first()
        if branch is None:
            return Response({'error': 'Branch not found'}, status=status.HTTP_400_BAD_REQUEST)
    elif entity_type == 'medication' and membership.branch_id:
        branch = membership.branch

    try:
        headers, rows = _load_rows(serializer.validated_data)
        result = commit_import(pharmacy, entity_type, headers, rows, _mapping_overrides(request), branch=branch)
    except ImportValidationError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    upload = serializer.validated_data.get('file')
    create_audit_log(
        request=request,
        action='import',
        model_name=entity_type.capitalize(),
        object_id='bulk',
        object_name=upload.name if upload else 'CSV import',
        changes={
            'total_rows': result['total_rows'],
            'success_count': result['success_count'],
            'error_count': result['error_count'],
        },
        pharmacy=pharmacy,
    )
    response_status = status.HTTP_201_CREATED if result['success_count'] else status.HTTP_200_OK
    return Response(result, status=response_status)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def invoice_scan(request):
    """Extract product lines from a supplier invoice photo"""
    denied = _check_entity_permission(request.membership, 'medication')
    if denied:
        return denied

    serializer = InvoiceScanSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    image_data = serializer.validated_data.get('image_base64')
    if not image_data:
        upload = serializer.validated_data['image']
        content_type = getattr(upload, 'content_type', None) or 'image/jpeg'
        image_data = f"data:{content_type};base64,{base64.b64encode(upload.read()).decode('ascii')}"

    try:
        result = scan_invoice(request.membership.pharmacy, image_data)
    except RateLimitError as e:
        return Response({'error': str(e), 'action_failed': True}, status=status.HTTP_429_TOO_MANY_REQUESTS)
    except AIServiceError as e:
        logger.error(f"Invoice scan failed: {e}")
        return Response({'error': str(e), 'action_failed': True}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
    return Response(result)
