from rest_framework import serializers
from .models import Cart, CartItem, Sale, SaleItem, PendingTransaction, PAYMENT_METHOD_CHOICES


class CartItemSerializer(serializers.ModelSerializer):
    display_name = serializers.CharField(read_only=True)
    is_quick_item = serializers.BooleanField(read_only=True)
    unit_price = serializers.SerializerMethodField()

    class Meta:
        model = CartItem
        fields = ['id', 'medication', 'item_name', 'item_price', 'quantity', 'display_name', 'is_quick_item', 'unit_price']

    def get_unit_price(self, obj):
        if obj.medication_id:
            return str(obj.medication.effective_price)
        return str(obj.item_price or 0)

    def validate_quantity(self, value):
        if value <= 0:
            raise serializers.ValidationError('Quantity must be greater than zero')
        return value

    def validate(self, attrs):
        medication = attrs.get('medication', getattr(self.instance, 'medication', None))
        item_name = attrs.get('item_name', getattr(self.instance, 'item_name', None))
        if not medication and not item_name:
            raise serializers.ValidationError('Provide a medication or a quick item name')
        if medication and self.context.get('pharmacy') and medication.pharmacy_id != self.context['pharmacy'].id:
            raise serializers.ValidationError({'medication': 'Medication does not belong to this pharmacy'})
        if not medication and attrs.get('item_price') is None and self.instance is None:
            raise serializers.ValidationError({'item_price': 'Quick items need a price'})
        return attrs


class CartSerializer(serializers.ModelSerializer):
    items = CartItemSerializer(many=True, read_only=True)
    created_by_name = serializers.CharField(source='created_by.get_display_name', read_only=True, default=None)

    class Meta:
        model = Cart
        fields = [
            'id', 'branch', 'created_by', 'created_by_name', 'customer', 'customer_name',
            'status', 'note', 'items', 'created_at', 'updated_at'
        ]
        read_only_fields = ['branch', 'created_by', 'status', 'created_at', 'updated_at']


class SaleItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = SaleItem
        fields = ['id', 'medication', 'product_name', 'batch_number', 'quantity', 'unit_price', 'total_price', 'expiry_label']


class SaleSerializer(serializers.ModelSerializer):
    items = SaleItemSerializer(many=True, read_only=True)
    sold_by_name = serializers.CharField(source='sold_by.get_display_name', read_only=True, default=None)
    branch_name = serializers.CharField(source='branch.name', read_only=True, default=None)

    class Meta:
        model = Sale
        fields = [
            'id', 'receipt_number', 'branch', 'branch_name', 'customer', 'customer_name',
            'sold_by', 'sold_by_name', 'shift', 'payment_method', 'subtotal', 'discount', 'total',
            'loyalty_points_awarded', 'status', 'client_reference', 'voided_at', 'voided_by',
            'void_reason', 'items', 'created_at'
        ]


class CheckoutLineSerializer(serializers.Serializer):
    medication_id = serializers.IntegerField(required=False)
    product_name = serializers.CharField(max_length=255, required=False)
    quick_item_name = serializers.CharField(max_length=255, required=False)
    quick_item_price = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, min_value=0)
    quantity = serializers.IntegerField(min_value=1)

    def validate(self, attrs):
        if not (attrs.get('medication_id') or attrs.get('product_name') or attrs.get('quick_item_name')):
            raise serializers.ValidationError('Provide medication_id, product_name or quick_item_name')
        if attrs.get('quick_item_name') and attrs.get('quick_item_price') is None:
            raise serializers.ValidationError({'quick_item_price': 'Quick items need a price'})
        return attrs


class CheckoutSerializer(serializers.Serializer):
    items = CheckoutLineSerializer(many=True)
    payment_method = serializers.ChoiceField(choices=PAYMENT_METHOD_CHOICES, default='cash')
    customer = serializers.IntegerField(required=False, allow_null=True)
    customer_name = serializers.CharField(max_length=255, required=False, allow_blank=True, allow_null=True)
    discount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, min_value=0, default=0)
    admin_pin = serializers.CharField(max_length=6, required=False, allow_blank=True, write_only=True)
    client_reference = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True)

    def validate_items(self, value):
        if not value:
            raise serializers.ValidationError('Cart is empty')
        return value


class CartCheckoutSerializer(serializers.Serializer):
    payment_method = serializers.ChoiceField(choices=PAYMENT_METHOD_CHOICES, default='cash')
    discount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, min_value=0, default=0)
    admin_pin = serializers.CharField(max_length=6, required=False, allow_blank=True, write_only=True)


class VoidSaleSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')
    admin_pin = serializers.CharField(max_length=6, required=False, allow_blank=True, write_only=True)


class PendingTransactionSerializer(serializers.ModelSerializer):
    receipt_number = serializers.CharField(source='sale.receipt_number', read_only=True, default=None)

    class Meta:
        model = PendingTransaction
        fields = [
            'id', 'branch', 'source', 'short_code', 'client_reference', 'items', 'total_amount',
            'customer_name', 'payment_method', 'status', 'error_message', 'sale', 'receipt_number',
            'created_by', 'completed_by', 'completed_at', 'sold_at', 'notes', 'created_at'
        ]
        read_only_fields = fields


class PendingTransactionCreateSerializer(serializers.Serializer):
    items = CheckoutLineSerializer(many=True)
    customer_name = serializers.CharField(max_length=255, required=False, allow_blank=True, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default='')

    def validate_items(self, value):
        if not value:
            raise serializers.ValidationError('Cart is empty')
        return value


class OfflineTransactionSerializer(serializers.Serializer):
    client_reference = serializers.CharField(max_length=100)
    items = CheckoutLineSerializer(many=True)
    payment_method = serializers.ChoiceField(choices=PAYMENT_METHOD_CHOICES, default='cash')
    customer_name = serializers.CharField(max_length=255, required=False, allow_blank=True, allow_null=True)
    discount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, min_value=0, default=0)
    sold_at = serializers.DateTimeField(required=False, allow_null=True)


class OfflineSyncSerializer(serializers.Serializer):
    transactions = OfflineTransactionSerializer(many=True)

    def validate_transactions(self, value):
        if len(value) > 200:
            raise serializers.ValidationError('At most 200 transactions can be synced at once')
        return value
