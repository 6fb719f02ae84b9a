from rest_framework import serializers
from .models import Medication, MasterBarcode
from .validators import is_valid_nafdac_reg_number, normalize_nafdac_reg_number


class MedicationSerializer(serializers.ModelSerializer):
    effective_price = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    is_expired = serializers.BooleanField(read_only=True)
    is_low_stock = serializers.BooleanField(read_only=True)
    days_to_expiry = serializers.IntegerField(read_only=True)
    branch_name = serializers.CharField(source='branch.name', read_only=True, default=None)

    class Meta:
        model = Medication
        fields = [
            'id', 'pharmacy', 'branch', 'branch_name', 'name', 'category', 'batch_number',
            'current_stock', 'reorder_level', 'expiry_date', 'manufacturing_date',
            'unit_price', 'selling_price', 'wholesale_price', 'effective_price',
            'shelf_quantity', 'store_quantity', 'barcode_id', 'supplier', 'location',
            'min_stock_alert', 'is_shelved', 'is_controlled', 'is_public', 'is_featured',
            'featured_until', 'nafdac_reg_number', 'dispensing_unit', 'active_ingredients',
            'metadata', 'is_expired', 'is_low_stock', 'days_to_expiry', 'created_at', 'updated_at',
        ]
        read_only_fields = ['pharmacy', 'is_featured', 'featured_until', 'created_at', 'updated_at']

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Name is required')
        return value

    def validate_current_stock(self, value):
        if value < 0:
            raise serializers.ValidationError('Stock cannot be negative')
        return value

    def validate_unit_price(self, value):
        if value < 0:
            raise serializers.ValidationError('Price cannot be negative')
        return value

    def validate_selling_price(self, value):
        if value is not None and value < 0:
            raise serializers.ValidationError('Price cannot be negative')
        return value

    def validate_nafdac_reg_number(self, value):
        if not value:
            return None
        if not is_valid_nafdac_reg_number(value):
            raise serializers.ValidationError('Invalid NAFDAC registration number (expected e.g. A4-1234)')
        return normalize_nafdac_reg_number(value)

    def validate(self, attrs):
        manufacturing_date = attrs.get('manufacturing_date')
        expiry_date = attrs.get('expiry_date') or getattr(self.instance, 'expiry_date', None)
        if manufacturing_date and expiry_date and manufacturing_date >= expiry_date:
            raise serializers.ValidationError({'manufacturing_date': 'Manufacturing date must be before expiry date'})
        branch = attrs.get('branch')
        pharmacy = self.context.get('pharmacy')
        if branch and pharmacy and branch.pharmacy_id != pharmacy.id:
            raise serializers.ValidationError({'branch': 'Branch does not belong to this pharmacy'})
        return attrs


class BatchSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Medication
        fields = ['id', 'batch_number', 'current_stock', 'expiry_date', 'unit_price', 'selling_price', 'branch']


class GroupedProductSerializer(serializers.Serializer):
    """Serializes the dicts produced by fefo.group_medications_by_name"""
    name = serializers.CharField()
    category = serializers.CharField()
    total_stock = serializers.IntegerField()
    lowest_price = serializers.DecimalField(max_digits=12, decimal_places=2)
    highest_price = serializers.DecimalField(max_digits=12, decimal_places=2)
    display_price = serializers.DecimalField(max_digits=12, decimal_places=2)
    earliest_expiry = serializers.DateField()
    has_multiple_batches = serializers.BooleanField()
    has_expired_batch = serializers.BooleanField()
    has_low_stock = serializers.BooleanField()
    barcode_id = serializers.CharField(allow_null=True)
    earliest_batch = BatchSummarySerializer()
    batches = BatchSummarySerializer(many=True)


class MasterBarcodeSerializer(serializers.ModelSerializer):
    class Meta:
        model = MasterBarcode
        fields = ['id', 'barcode', 'product_name', 'category', 'manufacturer', 'created_at']


class BulkPriceUpdateSerializer(serializers.Serializer):
    MODE_CHOICES = ['percentage', 'margin']

    medication_ids = serializers.ListField(child=serializers.IntegerField(), required=False)
    category = serializers.CharField(required=False)
    mode = serializers.ChoiceField(choices=MODE_CHOICES)
    value = serializers.DecimalField(max_digits=7, decimal_places=2)

    def validate(self, attrs):
        if not attrs.get('medication_ids') and not attrs.get('category'):
            raise serializers.ValidationError('Provide medication_ids or category')
        if attrs['mode'] == 'margin' and attrs['value'] < 0:
            raise serializers.ValidationError({'value': 'Margin cannot be negative'})
        if attrs['mode'] == 'percentage' and attrs['value'] <= -100:
            raise serializers.ValidationError({'value': 'Percentage change must be greater than -100'})
        return attrs
