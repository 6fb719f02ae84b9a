from django.contrib import admin
from .models import SubscriptionPayment


@admin.register(SubscriptionPayment)
class SubscriptionPaymentAdmin(admin.ModelAdmin):
    list_display = ['paystack_reference', 'pharmacy', 'purpose', 'plan', 'amount', 'currency', 'status',
                    'is_gift', 'created_at']
    list_filter = ['purpose', 'status', 'plan', 'is_gift', 'created_at']
    search_fields = ['paystack_reference', 'paystack_transaction_id', 'pharmacy__name']
    ordering = ['-created_at']
    readonly_fields = ['created_at', 'updated_at']
