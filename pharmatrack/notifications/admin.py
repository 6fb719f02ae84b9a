from django.contrib import admin
from .models import Notification, SentAlert


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['title', 'pharmacy', 'type', 'priority', 'is_read', 'created_at']
    list_filter = ['type', 'priority', 'is_read', 'created_at']
    search_fields = ['title', 'message']
    ordering = ['-created_at']


@admin.register(SentAlert)
class SentAlertAdmin(admin.ModelAdmin):
    list_display = ['alert_type', 'pharmacy', 'channel', 'recipient', 'status', 'created_at']
    list_filter = ['alert_type', 'channel', 'status', 'created_at']
    search_fields = ['recipient', 'message', 'provider_message_id']
    ordering = ['-created_at']
