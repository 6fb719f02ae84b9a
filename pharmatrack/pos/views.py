import logging
from datetime import datetime
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.core.paginator import Paginator
from django.db.models import Q, Sum, Count
from django.shortcuts import get_object_or_404
from pharmatrack.core.utils import create_audit_log
from pharmatrack.parties.models import Customer
from pharmatrack.pharmacies.pins import AdminPinError, authorize_override, pin_error_response
from pharmatrack.staff.permissions import IsPharmacyMember, has_permission
from pharmatrack.staff.services import get_open_shift
from .models import Cart, CartItem, Sale, PendingTransaction
from .receipts import render_receipt
from .serializers import (
    CartSerializer, CartItemSerializer, SaleSerializer, CheckoutSerializer, CartCheckoutSerializer, VoidSaleSerializer,
    PendingTransactionSerializer, PendingTransactionCreateSerializer, OfflineSyncSerializer,
)
from .services import (
    checkout, void_sale, create_pending_transaction, complete_pending_transaction,
    sync_offline_transactions, CheckoutError, InsufficientStockError,
)

logger = logging.getLogger(__name__)


def _checkout_error_response(error):
    if isinstance(error, InsufficientStockError):
        return Response({
            'error': 'Insufficient stock',
            'message': str(error),
            'product_name': error.product_name,
            'requested': error.requested,
            'available': error.available,
        }, status=status.HTTP_400_BAD_REQUEST)
    return Response({'error': str(error)}, status=status.HTTP_400_BAD_REQUEST)


def _sale_response(request, sale, response_status=status.HTTP_201_CREATED):
    """Audit the sale and return it with its printable receipt"""
    items = list(sale.items.all())
    create_audit_log(
        request=request,
        action='sale',
        model_name='Sale',
        object_id=sale.id,
        object_name=f"Sale {sale.receipt_number}",
        object_reference=sale.receipt_number,
        changes={
            'receipt_number': sale.receipt_number,
            'total': str(sale.total),
            'payment_method': sale.payment_method,
            'items': [f"{item.product_name} x{item.quantity}" for item in items],
            'customer': sale.customer_name,
        },
        pharmacy=sale.pharmacy,
    )
    data = SaleSerializer(sale).data
    data['receipt_text'] = render_receipt(sale)
    return Response(data, status=response_status)


def _discount_override_response(membership, data):
    """Refusal response when a locked-price discount lacks the admin PIN, else None"""
    if not membership.pharmacy.price_lock_enabled or not data.get('discount'):
        return None
    try:
        authorize_override(membership, data.get('admin_pin'))
    except AdminPinError as e:
        return pin_error_response(e)
    return None


def _resolve_customer(pharmacy, customer_id):
    if not customer_id:
        return None
    return Customer.objects.filter(pharmacy=pharmacy, pk=customer_id).first()


# Direct checkout
@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def checkout_view(request):
    """Complete a sale from a list of lines (FEFO across batches)"""
    membership = request.membership
    serializer = CheckoutSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data
    refused = _discount_override_response(membership, data)
    if refused is not None:
        return refused

    customer = _resolve_customer(membership.pharmacy, data.get('customer'))
    if data.get('customer') and customer is None:
        return Response({'error': 'Customer not found'}, status=status.HTTP_400_BAD_REQUEST)

    reference = data.get('client_reference')
    if reference:
        existing = Sale.objects.filter(pharmacy=membership.pharmacy, client_reference=reference).first()
        if existing:
            data = SaleSerializer(existing).data
            data['receipt_text'] = render_receipt(existing)
            data['duplicate'] = True
            return Response(data, status=status.HTTP_200_OK)

    try:
        sale = checkout(
            pharmacy=membership.pharmacy,
            user=request.user,
            items=data['items'],
            payment_method=data['payment_method'],
            customer=customer,
            customer_name=data.get('customer_name'),
            discount=data.get('discount') or 0,
            branch=membership.branch,
            shift=get_open_shift(membership),
            client_reference=reference,
        )
    except CheckoutError as e:
        return _checkout_error_response(e)
    return _sale_response(request, sale)


# Cart views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def cart_list_create(request):
    """List open/held carts or start a new cart"""
    membership = request.membership
    if request.method == 'GET':
        queryset = Cart.objects.filter(pharmacy=membership.pharmacy).prefetch_related('items__medication')
        status_filter = request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        else:
            queryset = queryset.filter(status__in=['active', 'held'])
        if not membership.is_owner_or_manager:
            queryset = queryset.filter(created_by=request.user)
        return Response(CartSerializer(queryset, many=True).data)

    serializer = CartSerializer(data=request.data)
    if serializer.is_valid():
        customer = serializer.validated_data.get('customer')
        if customer and customer.pharmacy_id != membership.pharmacy_id:
            return Response({'error': 'Customer not found'}, status=status.HTTP_400_BAD_REQUEST)
        cart = serializer.save(pharmacy=membership.pharmacy, branch=membership.branch, created_by=request.user)
        return Response(CartSerializer(cart).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


def _get_cart(request, pk):
    membership = request.membership
    queryset = Cart.objects.filter(pharmacy=membership.pharmacy)
    if not membership.is_owner_or_manager:
        queryset = queryset.filter(created_by=request.user)
    return get_object_or_404(queryset, pk=pk)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def cart_detail(request, pk):
    """Retrieve, update or cancel a cart"""
    cart = _get_cart(request, pk)
    if request.method == 'GET':
        return Response(CartSerializer(cart).data)
    if cart.status in ('completed', 'cancelled'):
        return Response({'error': f'Cart is {cart.status}'}, status=status.HTTP_400_BAD_REQUEST)
    if request.method == 'PATCH':
        serializer = CartSerializer(cart, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    cart.status = 'cancelled'
    cart.save(update_fields=['status', 'updated_at'])
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def cart_items(request, pk):
    """Add a line to a cart; adding the same batch again increases its quantity"""
    cart = _get_cart(request, pk)
    if cart.status not in ('active', 'held'):
        return Response({'error': f'Cart is {cart.status}'}, status=status.HTTP_400_BAD_REQUEST)

    serializer = CartItemSerializer(data=request.data, context={'pharmacy': request.membership.pharmacy})
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    medication = serializer.validated_data.get('medication')
    if medication:
        existing = cart.items.filter(medication=medication).first()
        if existing:
            existing.quantity += serializer.validated_data.get('quantity', 1)
            existing.save(update_fields=['quantity'])
            return Response(CartSerializer(cart).data)
    serializer.save(cart=cart)
    cart.save(update_fields=['updated_at'])
    return Response(CartSerializer(cart).data, status=status.HTTP_201_CREATED)


@api_view(['PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def cart_item_detail(request, pk, item_id):
    """Change a line's quantity or remove it"""
    cart = _get_cart(request, pk)
    item = get_object_or_404(CartItem, pk=item_id, cart=cart)
    if request.method == 'DELETE':
        item.delete()
        return Response(CartSerializer(cart).data)
    serializer = CartItemSerializer(item, data=request.data, partial=True, context={'pharmacy': request.membership.pharmacy})
    if serializer.is_valid():
        serializer.save()
        return Response(CartSerializer(cart).data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def cart_hold(request, pk):
    cart = _get_cart(request, pk)
    if cart.status != 'active':
        return Response({'error': 'Only active carts can be held'}, status=status.HTTP_400_BAD_REQUEST)
    cart.status = 'held'
    if 'note' in request.data:
        cart.note = request.data.get('note') or ''
    cart.save(update_fields=['status', 'note', 'updated_at'])
    return Response(CartSerializer(cart).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def cart_resume(request, pk):
    cart = _get_cart(request, pk)
    if cart.status != 'held':
        return Response({'error': 'Only held carts can be resumed'}, status=status.HTTP_400_BAD_REQUEST)
    cart.status = 'active'
    cart.save(update_fields=['status', 'updated_at'])
    return Response(CartSerializer(cart).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def cart_checkout(request, pk):
    """Checkout a cart - create the sale and deduct stock FEFO"""
    membership = request.membership
    cart = _get_cart(request, pk)
    if cart.status not in ('active', 'held'):
        return Response({'error': f'Cart is {cart.status}'}, status=status.HTTP_400_BAD_REQUEST)

    items = []
    for item in cart.items.all():
        if item.medication_id:
            items.append({'medication_id': item.medication_id, 'quantity': item.quantity})
        else:
            items.append({'quick_item_name': item.item_name, 'quick_item_price': item.item_price, 'quantity': item.quantity})
    if not items:
        return Response({'error': 'Cart is empty'}, status=status.HTTP_400_BAD_REQUEST)

    serializer = CartCheckoutSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    refused = _discount_override_response(membership, serializer.validated_data)
    if refused is not None:
        return refused

    try:
        sale = checkout(
            pharmacy=membership.pharmacy,
            user=request.user,
            items=items,
            payment_method=serializer.validated_data['payment_method'],
            customer=cart.customer,
            customer_name=cart.customer_name,
            discount=serializer.validated_data['discount'],
            branch=cart.branch or membership.branch,
            shift=get_open_shift(membership),
        )
    except CheckoutError as e:
        return _checkout_error_response(e)

    cart.status = 'completed'
    cart.save(update_fields=['status', 'updated_at'])
    return _sale_response(request, sale)


# Sales
def _visible_sales(request):
    """Sales the member may see, or None when they hold neither sales permission"""
    membership = request.membership
    queryset = Sale.objects.filter(pharmacy=membership.pharmacy)
    if has_permission(membership, 'view_all_sales'):
        return queryset
    if has_permission(membership, 'view_own_sales'):
        return queryset.filter(sold_by=request.user)
    return None


def _parse_date(value):
    return datetime.strptime(value, '%Y-%m-%d').date()


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def sale_list(request):
    """List sales (filters: date_from, date_to, status, payment_method, sold_by, search) with totals"""
    queryset = _visible_sales(request)
    if queryset is None:
        return Response({'error': 'You do not have permission to view sales'}, status=status.HTTP_403_FORBIDDEN)

    try:
        if request.query_params.get('date_from'):
            queryset = queryset.filter(created_at__date__gte=_parse_date(request.query_params['date_from']))
        if request.query_params.get('date_to'):
            queryset = queryset.filter(created_at__date__lte=_parse_date(request.query_params['date_to']))
    except ValueError:
        return Response({'error': 'Dates must be in YYYY-MM-DD format'}, status=status.HTTP_400_BAD_REQUEST)

    for param in ('status', 'payment_method', 'sold_by', 'branch'):
        value = request.query_params.get(param)
        if value:
            queryset = queryset.filter(**{param: value})
    search = request.query_params.get('search', '').strip()
    if search:
        queryset = queryset.filter(Q(receipt_number__icontains=search) | Q(customer_name__icontains=search))

    totals = queryset.filter(status='completed').aggregate(revenue=Sum('total'), transactions=Count('id'))

    try:
        page = int(request.query_params.get('page', 1))
        limit = min(int(request.query_params.get('limit', 50)), 500)
    except ValueError:
        return Response({'error': 'page and limit must be integers'}, status=status.HTTP_400_BAD_REQUEST)

    paginator = Paginator(queryset.select_related('sold_by', 'branch').prefetch_related('items').order_by('-created_at'), limit)
    page_obj = paginator.get_page(page)
    return Response({
        'results': SaleSerializer(page_obj, many=True).data,
        'count': paginator.count,
        'next': page_obj.next_page_number() if page_obj.has_next() else None,
        'previous': page_obj.previous_page_number() if page_obj.has_previous() else None,
        'page': page_obj.number,
        'page_size': limit,
        'total_pages': paginator.num_pages,
        'total_revenue': totals['revenue'] or 0,
        'total_transactions': totals['transactions'],
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def sale_detail(request, pk):
    queryset = _visible_sales(request)
    if queryset is None:
        return Response({'error': 'You do not have permission to view sales'}, status=status.HTTP_403_FORBIDDEN)
    sale = get_object_or_404(queryset, pk=pk)
    return Response(SaleSerializer(sale).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def sale_receipt(request, pk):
    """Plain-text receipt for reprinting"""
    queryset = _visible_sales(request)
    if queryset is None:
        return Response({'error': 'You do not have permission to view sales'}, status=status.HTTP_403_FORBIDDEN)
    sale = get_object_or_404(queryset, pk=pk)
    return Response({'receipt_number': sale.receipt_number, 'receipt_text': render_receipt(sale)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def sale_void(request, pk):
    """Void a sale and restock its batches (staff other than managers need the admin PIN)"""
    sale = get_object_or_404(Sale, pk=pk, pharmacy=request.membership.pharmacy)
    serializer = VoidSaleSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    reason = serializer.validated_data['reason']
    try:
        authorize_override(request.membership, serializer.validated_data.get('admin_pin'))
    except AdminPinError as e:
        return pin_error_response(e)

    try:
        sale = void_sale(sale, request.user, reason)
    except CheckoutError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    create_audit_log(
        request=request,
        action='sale_void',
        model_name='Sale',
        object_id=sale.id,
        object_name=f"Sale {sale.receipt_number}",
        object_reference=sale.receipt_number,
        changes={
            'receipt_number': sale.receipt_number,
            'total': str(sale.total),
            'reason': reason,
            'items': [f"{item.product_name} x{item.quantity}" for item in sale.items.all()],
        },
        pharmacy=sale.pharmacy,
    )
    return Response(SaleSerializer(sale).data)


# Pending transactions (counter invoices) and offline sync
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def pending_transaction_list_create(request):
    """List pending counter invoices (search by short code) or create one"""
    membership = request.membership
    if request.method == 'GET':
        queryset = PendingTransaction.objects.filter(pharmacy=membership.pharmacy)
        queryset = queryset.filter(status=request.query_params.get('status', 'pending'))
        source = request.query_params.get('source')
        if source:
            queryset = queryset.filter(source=source)
        if membership.role == 'staff' and membership.branch_id:
            queryset = queryset.filter(branch_id=membership.branch_id)
        search = request.query_params.get('search', '').strip()
        if search:
            queryset = queryset.filter(Q(short_code__icontains=search) | Q(client_reference__icontains=search))
        return Response(PendingTransactionSerializer(queryset[:200], many=True).data)

    serializer = PendingTransactionCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        pending = create_pending_transaction(
            membership,
            serializer.validated_data['items'],
            customer_name=serializer.validated_data.get('customer_name'),
            notes=serializer.validated_data.get('notes', ''),
        )
    except CheckoutError as e:
        return _checkout_error_response(e)
    return Response(PendingTransactionSerializer(pending).data, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def pending_transaction_complete(request, pk):
    """Cashier settles a counter invoice: runs checkout for its items"""
    membership = request.membership
    pending = get_object_or_404(PendingTransaction, pk=pk, pharmacy=membership.pharmacy, source='invoice')
    payment_method = request.data.get('payment_method', 'cash')
    if payment_method not in dict(Sale._meta.get_field('payment_method').choices):
        return Response({'error': 'Invalid payment_method'}, status=status.HTTP_400_BAD_REQUEST)
    try:
        sale = complete_pending_transaction(pending, membership, payment_method, shift=get_open_shift(membership))
    except CheckoutError as e:
        return _checkout_error_response(e)
    return _sale_response(request, sale)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def pending_transaction_cancel(request, pk):
    pending = get_object_or_404(PendingTransaction, pk=pk, pharmacy=request.membership.pharmacy)
    if pending.status != 'pending':
        return Response({'error': f'Transaction is already {pending.status}'}, status=status.HTTP_400_BAD_REQUEST)
    pending.status = 'cancelled'
    pending.save(update_fields=['status'])
    return Response(PendingTransactionSerializer(pending).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def offline_sync(request):
    """Replay sales recorded while the till was offline"""
    membership = request.membership
    serializer = OfflineSyncSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    results = sync_offline_transactions(
        membership, serializer.validated_data['transactions'], shift=get_open_shift(membership)
    )
    for result in results:
        if result['status'] == 'completed':
            sale = Sale.objects.get(pharmacy=membership.pharmacy, receipt_number=result['receipt_number'])
            create_audit_log(
                request=request,
                action='sale',
                model_name='Sale',
                object_id=sale.id,
                object_name=f"Sale {sale.receipt_number}",
                object_reference=sale.receipt_number,
                changes={'total': str(sale.total), 'offline': True, 'client_reference': result['client_reference']},
                pharmacy=membership.pharmacy,
            )

    summary = {
        'completed': sum(1 for r in results if r['status'] == 'completed'),
        'duplicate': sum(1 for r in results if r['status'] == 'duplicate'),
        'failed': sum(1 for r in results if r['status'] == 'failed'),
    }
    logger.info(f"Offline sync for pharmacy {membership.pharmacy_id}: {summary}")
    return Response({'summary': summary, 'results': results})
