from rest_framework import serializers
from .models import Notification, SentAlert
from .templates import ALERT_TYPES


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = [
            'id', 'branch', 'type', 'title', 'message', 'priority', 'is_read', 'link',
            'entity_type', 'entity_id', 'metadata', 'created_at'
        ]
        read_only_fields = fields


class SentAlertSerializer(serializers.ModelSerializer):
    sent_by_name = serializers.CharField(source='sent_by.get_display_name', read_only=True, default=None)

    class Meta:
        model = SentAlert
        fields = [
            'id', 'alert_type', 'channel', 'recipient', 'message', 'provider_message_id',
            'status', 'error_message', 'sent_by', 'sent_by_name', 'created_at'
        ]


class SendAlertSerializer(serializers.Serializer):
    alert_type = serializers.ChoiceField(choices=ALERT_TYPES)
    channel = serializers.ChoiceField(choices=['sms', 'whatsapp'], default='sms')
    recipient_phone = serializers.CharField(max_length=30, required=False, allow_blank=True)
    message = serializers.CharField(required=False, allow_blank=True, default='')
    item_name = serializers.CharField(max_length=255, required=False, allow_null=True)
    item_value = serializers.DecimalField(max_digits=14, decimal_places=2, required=False, allow_null=True)
    days_left = serializers.IntegerField(required=False, allow_null=True)
    current_stock = serializers.IntegerField(required=False, allow_null=True)
    suggested_reorder = serializers.IntegerField(required=False, allow_null=True, min_value=1)

    def validate(self, attrs):
        if attrs['alert_type'] in ('custom', 'daily_summary') and not attrs.get('message'):
            raise serializers.ValidationError({'message': 'Message is required for this alert type'})
        return attrs
