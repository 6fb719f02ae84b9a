from rest_framework import serializers
from pharmatrack.catalog.models import Medication, ALL_CATEGORIES


class PublicMedicationSerializer(serializers.ModelSerializer):
    """Marketplace view of a batch: no cost price, stock levels or internal metadata"""
    price = serializers.DecimalField(source='effective_price', max_digits=12, decimal_places=2, read_only=True)
    in_stock = serializers.SerializerMethodField()
    is_featured = serializers.BooleanField(source='is_currently_featured', read_only=True)
    pharmacy_id = serializers.IntegerField(read_only=True)
    pharmacy_name = serializers.CharField(source='pharmacy.name', read_only=True)
    pharmacy_address = serializers.CharField(source='pharmacy.address', read_only=True)
    pharmacy_phone = serializers.CharField(source='pharmacy.phone', read_only=True)

    class Meta:
        model = Medication
        fields = [
            'id', 'name', 'category', 'price', 'dispensing_unit', 'expiry_date', 'in_stock', 'is_featured',
            'pharmacy_id', 'pharmacy_name', 'pharmacy_address', 'pharmacy_phone'
        ]

    def get_in_stock(self, obj):
        return obj.current_stock > 0


class VisibilityToggleSerializer(serializers.Serializer):
    medication_ids = serializers.ListField(child=serializers.IntegerField(), required=False, allow_empty=False)
    category = serializers.ChoiceField(choices=ALL_CATEGORIES, required=False)
    is_public = serializers.BooleanField()

    def validate(self, attrs):
        if not attrs.get('medication_ids') and not attrs.get('category'):
            raise serializers.ValidationError('Provide medication_ids or category')
        return attrs
