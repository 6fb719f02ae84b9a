from rest_framework import serializers
from .models import Pharmacy, Branch


class BranchSerializer(serializers.ModelSerializer):
    class Meta:
        model = Branch
        fields = ['id', 'pharmacy', 'name', 'address', 'phone', 'is_main', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['pharmacy', 'created_at', 'updated_at']


class PharmacySerializer(serializers.ModelSerializer):
    is_subscription_active = serializers.BooleanField(read_only=True)
    has_admin_pin = serializers.SerializerMethodField()
    branches = BranchSerializer(many=True, read_only=True)

    class Meta:
        model = Pharmacy
        fields = [
            'id', 'name', 'email', 'phone', 'address', 'license_number', 'pharmacist_in_charge',
            'currency', 'default_margin_percent', 'require_wifi_clock_in', 'store_wifi_name', 'price_lock_enabled',
            'subscription_plan', 'subscription_status', 'trial_ends_at', 'subscription_ends_at',
            'auto_renew', 'max_users', 'active_branches_limit', 'termii_sender_id', 'alert_phone',
            'is_subscription_active', 'has_admin_pin', 'branches', 'created_at', 'updated_at',
        ]
        read_only_fields = [
            'subscription_plan', 'subscription_status', 'trial_ends_at', 'subscription_ends_at',
            'auto_renew', 'max_users', 'active_branches_limit', 'created_at', 'updated_at',
        ]

    def get_has_admin_pin(self, obj):
        return bool(obj.admin_pin_hash)

    def validate_termii_sender_id(self, value):
        if value and len(value) > 11:
            raise serializers.ValidationError('Sender ID cannot exceed 11 characters')
        return value


class PharmacyCreateSerializer(serializers.ModelSerializer):
    class Meta:
        model = Pharmacy
        fields = ['name', 'email', 'phone', 'address', 'license_number', 'pharmacist_in_charge', 'currency']

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Pharmacy name is required')
        return value


class AdminPinSerializer(serializers.Serializer):
    pin = serializers.RegexField(
        r'^\d{4,6}$', max_length=6, error_messages={'invalid': 'PIN must be 4-6 digits'}
    )
