from rest_framework import serializers
from .models import SubscriptionPayment
from .plans import PLAN_CONFIG, FEATURED_PRICING
from .services import MANAGE_ACTIONS


class SubscriptionPaymentSerializer(serializers.ModelSerializer):
    medication_name = serializers.CharField(source='medication.name', read_only=True, default=None)

    class Meta:
        model = SubscriptionPayment
        fields = [
            'id', 'purpose', 'plan', 'billing_period', 'amount', 'currency', 'status', 'paystack_reference',
            'paystack_transaction_id', 'medication', 'medication_name', 'duration_days', 'is_gift',
            'created_at', 'updated_at'
        ]
        read_only_fields = fields


class CreatePaymentSerializer(serializers.Serializer):
    plan = serializers.ChoiceField(choices=list(PLAN_CONFIG.keys()))
    billing_period = serializers.ChoiceField(choices=['monthly', 'annual'], default='monthly')
    callback_url = serializers.URLField(required=False, allow_blank=True)


class FeaturedPaymentSerializer(serializers.Serializer):
    medication = serializers.IntegerField()
    duration = serializers.IntegerField()
    callback_url = serializers.URLField(required=False, allow_blank=True)

    def validate_duration(self, value):
        if value not in FEATURED_PRICING:
            raise serializers.ValidationError('Invalid duration selected')
        return value


class ManageSubscriptionSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=MANAGE_ACTIONS)
    cancellation_reason = serializers.CharField(required=False, allow_blank=True)
