from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import Q, Sum, Count
from django.shortcuts import get_object_or_404
from pharmatrack.core.utils import create_audit_log
from pharmatrack.pos.models import Sale
from pharmatrack.pos.serializers import SaleSerializer
from pharmatrack.staff.permissions import HasPharmacyPermission
from .models import Customer, Doctor, Supplier, Prescription
from .serializers import CustomerSerializer, DoctorSerializer, SupplierSerializer, PrescriptionSerializer
from .services import PrescriptionError, record_refill, prescriptions_due_for_refill


def _search(queryset, search, fields):
    if not search:
        return queryset
    query = Q()
    for field in fields:
        query |= Q(**{f'{field}__icontains': search})
    return queryset.filter(query)


def _update_or_delete(request, instance, serializer_class, model_name):
    """Shared PUT/PATCH/DELETE handling for pharmacy-scoped party records"""
    pharmacy = request.membership.pharmacy
    if request.method == 'GET':
        return Response(serializer_class(instance).data)
    if request.method in ('PUT', 'PATCH'):
        serializer = serializer_class(
            instance, data=request.data, partial=request.method == 'PATCH', context={'pharmacy': pharmacy}
        )
        if serializer.is_valid():
            serializer.save()
            create_audit_log(
                request=request,
                action='update',
                model_name=model_name,
                object_id=instance.id,
                object_name=str(instance),
                changes={key: str(value) for key, value in serializer.validated_data.items()},
                pharmacy=pharmacy,
            )
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    # DELETE
    create_audit_log(
        request=request,
        action='delete',
        model_name=model_name,
        object_id=instance.id,
        object_name=str(instance),
        pharmacy=pharmacy,
    )
    instance.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)


# Customer views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, HasPharmacyPermission('access_customers')])
def customer_list_create(request):
    """List customers (search by name, phone or email) or create a customer"""
    pharmacy = request.membership.pharmacy
    if request.method == 'GET':
        queryset = Customer.objects.filter(pharmacy=pharmacy)
        queryset = _search(queryset, request.query_params.get('search', '').strip(), ['full_name', 'phone', 'email'])
        serializer = CustomerSerializer(queryset.order_by('full_name'), many=True)
        return Response(serializer.data)

    serializer = CustomerSerializer(data=request.data, context={'pharmacy': pharmacy})
    if serializer.is_valid():
        customer = serializer.save(pharmacy=pharmacy)
        create_audit_log(request=request, action='create', model_name='Customer',
                         object_id=customer.id, object_name=customer.full_name, pharmacy=pharmacy)
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, HasPharmacyPermission('access_customers')])
def customer_detail(request, pk):
    """Retrieve, update or delete a customer"""
    customer = get_object_or_404(Customer, pk=pk, pharmacy=request.membership.pharmacy)
    return _update_or_delete(request, customer, CustomerSerializer, 'Customer')


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasPharmacyPermission('access_customers')])
def customer_purchase_history(request, pk):
    """Completed sales for a customer with lifetime totals"""
    customer = get_object_or_404(Customer, pk=pk, pharmacy=request.membership.pharmacy)
    sales = Sale.objects.filter(customer=customer, status='completed').prefetch_related('items').order_by('-created_at')
    totals = sales.aggregate(total_spent=Sum('total'), visits=Count('id'))
    return Response({
        'customer': CustomerSerializer(customer).data,
        'total_spent': totals['total_spent'] or 0,
        'visits': totals['visits'],
        'sales': SaleSerializer(sales[:50], many=True).data,
    })


# Doctor views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, HasPharmacyPermission('access_customers')])
def doctor_list_create(request):
    """List doctors or create a doctor"""
    pharmacy = request.membership.pharmacy
    if request.method == 'GET':
        queryset = Doctor.objects.filter(pharmacy=pharmacy)
        queryset = _search(queryset, request.query_params.get('search', '').strip(),
                           ['full_name', 'phone', 'hospital_clinic', 'specialty'])
        serializer = DoctorSerializer(queryset.order_by('full_name'), many=True)
        return Response(serializer.data)

    serializer = DoctorSerializer(data=request.data, context={'pharmacy': pharmacy})
    if serializer.is_valid():
        doctor = serializer.save(pharmacy=pharmacy)
        create_audit_log(request=request, action='create', model_name='Doctor',
                         object_id=doctor.id, object_name=doctor.full_name, pharmacy=pharmacy)
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, HasPharmacyPermission('access_customers')])
def doctor_detail(request, pk):
    """Retrieve, update or delete a doctor"""
    doctor = get_object_or_404(Doctor, pk=pk, pharmacy=request.membership.pharmacy)
    return _update_or_delete(request, doctor, DoctorSerializer, 'Doctor')


# Supplier views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, HasPharmacyPermission('access_suppliers')])
def supplier_list_create(request):
    """List all suppliers or create a new supplier"""
    pharmacy = request.membership.pharmacy
    if request.method == 'GET':
        queryset = Supplier.objects.filter(pharmacy=pharmacy)
        if request.query_params.get('is_active') is not None:
            queryset = queryset.filter(is_active=request.query_params.get('is_active').lower() == 'true')
        queryset = _search(queryset, request.query_params.get('search', '').strip(),
                           ['name', 'contact_person', 'phone', 'email'])
        serializer = SupplierSerializer(queryset.order_by('name'), many=True)
        return Response(serializer.data)

    serializer = SupplierSerializer(data=request.data, context={'pharmacy': pharmacy})
    if serializer.is_valid():
        supplier = serializer.save(pharmacy=pharmacy)
        create_audit_log(request=request, action='create', model_name='Supplier',
                         object_id=supplier.id, object_name=supplier.name, pharmacy=pharmacy)
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, HasPharmacyPermission('access_suppliers')])
def supplier_detail(request, pk):
    """Retrieve, update or delete a supplier"""
    supplier = get_object_or_404(Supplier, pk=pk, pharmacy=request.membership.pharmacy)
    return _update_or_delete(request, supplier, SupplierSerializer, 'Supplier')


# Prescription views
def _prescriptions(pharmacy):
    return Prescription.objects.filter(pharmacy=pharmacy).select_related('customer', 'doctor').prefetch_related('items')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, HasPharmacyPermission('access_customers')])
def prescription_list_create(request):
    """List prescriptions (filter by customer, doctor or status) or create one with its items"""
    pharmacy = request.membership.pharmacy
    if request.method == 'GET':
        queryset = _prescriptions(pharmacy)
        for param in ('customer', 'doctor'):
            value = request.query_params.get(param)
            if value:
                if not value.isdigit():
                    return Response({'error': f'{param} must be a number'}, status=status.HTTP_400_BAD_REQUEST)
                queryset = queryset.filter(**{f'{param}_id': value})
        if request.query_params.get('status'):
            queryset = queryset.filter(status=request.query_params['status'])
        queryset = _search(queryset, request.query_params.get('search', '').strip(),
                           ['prescription_number', 'customer__full_name', 'prescriber_name', 'diagnosis'])
        serializer = PrescriptionSerializer(queryset, many=True)
        return Response(serializer.data)

    serializer = PrescriptionSerializer(data=request.data, context={'pharmacy': pharmacy})
    if serializer.is_valid():
        prescription = serializer.save(pharmacy=pharmacy)
        create_audit_log(request=request, action='create', model_name='Prescription',
                         object_id=prescription.id, object_name=str(prescription),
                         object_reference=prescription.prescription_number, pharmacy=pharmacy)
        return Response(PrescriptionSerializer(prescription).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, HasPharmacyPermission('access_customers')])
def prescription_detail(request, pk):
    """Retrieve, update (items are replaced when given) or delete a prescription"""
    prescription = get_object_or_404(_prescriptions(request.membership.pharmacy), pk=pk)
    return _update_or_delete(request, prescription, PrescriptionSerializer, 'Prescription')


@api_view(['POST'])
@permission_classes([IsAuthenticated, HasPharmacyPermission('access_customers')])
def prescription_refill(request, pk):
    """Record one refill against the prescription's allowance"""
    pharmacy = request.membership.pharmacy
    prescription = get_object_or_404(Prescription, pk=pk, pharmacy=pharmacy)
    try:
        prescription = record_refill(prescription)
    except PrescriptionError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    create_audit_log(
        request=request,
        action='update',
        model_name='Prescription',
        object_id=prescription.id,
        object_name=str(prescription),
        object_reference=prescription.prescription_number,
        changes={'refill_count': prescription.refill_count, 'status': prescription.status},
        pharmacy=pharmacy,
    )
    return Response(PrescriptionSerializer(_prescriptions(pharmacy).get(pk=prescription.pk)).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasPharmacyPermission('access_customers')])
def prescription_due_refills(request):
    """Active prescriptions whose refill reminder date has arrived"""
    due = prescriptions_due_for_refill(request.membership.pharmacy)
    return Response({'count': len(due), 'results': PrescriptionSerializer(due, many=True).data})
