from rest_framework import serializers
from .models import StockAdjustment, StockTransfer, StockTransferItem, InternalTransfer


class StockAdjustmentSerializer(serializers.ModelSerializer):
    medication_name = serializers.CharField(source='medication.name', read_only=True)
    batch_number = serializers.CharField(source='medication.batch_number', read_only=True)
    created_by_name = serializers.CharField(source='created_by.get_display_name', read_only=True, default=None)

    class Meta:
        model = StockAdjustment
        fields = [
            'id', 'medication', 'medication_name', 'batch_number', 'adjustment_type', 'quantity', 'reason',
            'notes', 'previous_stock', 'new_stock', 'created_by', 'created_by_name', 'created_at'
        ]
        read_only_fields = ['previous_stock', 'new_stock', 'created_by', 'created_at']

    def validate_quantity(self, value):
        if value <= 0:
            raise serializers.ValidationError('Quantity must be greater than zero')
        return value

    def validate_medication(self, value):
        pharmacy = self.context.get('pharmacy')
        if pharmacy and value.pharmacy_id != pharmacy.id:
            raise serializers.ValidationError('Medication does not belong to this pharmacy')
        return value


class StockTransferItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = StockTransferItem
        fields = ['id', 'product_name', 'quantity', 'transferred_quantity', 'batch_details']
        read_only_fields = ['transferred_quantity', 'batch_details']

    def validate_quantity(self, value):
        if value <= 0:
            raise serializers.ValidationError('Quantity must be greater than zero')
        return value


class StockTransferSerializer(serializers.ModelSerializer):
    items = StockTransferItemSerializer(many=True)
    from_branch_name = serializers.CharField(source='from_branch.name', read_only=True)
    to_branch_name = serializers.CharField(source='to_branch.name', read_only=True)

    class Meta:
        model = StockTransfer
        fields = [
            'id', 'transfer_number', 'from_branch', 'from_branch_name', 'to_branch', 'to_branch_name',
            'status', 'notes', 'created_by', 'completed_by', 'completed_at', 'created_at', 'updated_at', 'items'
        ]
        read_only_fields = ['transfer_number', 'status', 'created_by', 'completed_by', 'completed_at',
                            'created_at', 'updated_at']

    def validate_items(self, value):
        if not value:
            raise serializers.ValidationError('A transfer needs at least one item')
        return value

    def validate(self, attrs):
        pharmacy = self.context.get('pharmacy')
        from_branch = attrs.get('from_branch')
        to_branch = attrs.get('to_branch')
        if pharmacy:
            for field, branch in (('from_branch', from_branch), ('to_branch', to_branch)):
                if branch and branch.pharmacy_id != pharmacy.id:
                    raise serializers.ValidationError({field: 'Branch does not belong to this pharmacy'})
        if from_branch and to_branch and from_branch.id == to_branch.id:
            raise serializers.ValidationError({'to_branch': 'Source and destination branches must differ'})
        return attrs


class InternalTransferSerializer(serializers.ModelSerializer):
    medication_name = serializers.CharField(source='medication.name', read_only=True)

    class Meta:
        model = InternalTransfer
        fields = ['id', 'medication', 'medication_name', 'direction', 'quantity', 'notes', 'created_by', 'created_at']
        read_only_fields = ['created_by', 'created_at']

    def validate_quantity(self, value):
        if value <= 0:
            raise serializers.ValidationError('Quantity must be greater than zero')
        return value

    def validate_medication(self, value):
        pharmacy = self.context.get('pharmacy')
        if pharmacy and value.pharmacy_id != pharmacy.id:
            raise serializers.ValidationError('Medication does not belong to this pharmacy')
        return value
