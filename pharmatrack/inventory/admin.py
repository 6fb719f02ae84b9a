from django.contrib import admin
from .models import StockAdjustment, StockTransfer, StockTransferItem, InternalTransfer


@admin.register(StockAdjustment)
class StockAdjustmentAdmin(admin.ModelAdmin):
    list_display = ['medication', 'pharmacy', 'adjustment_type', 'quantity', 'reason', 'previous_stock',
                    'new_stock', 'created_by', 'created_at']
    list_filter = ['adjustment_type', 'reason', 'created_at']
    search_fields = ['medication__name', 'medication__batch_number', 'notes']
    ordering = ['-created_at']
    readonly_fields = ['created_at']


class StockTransferItemInline(admin.TabularInline):
    model = StockTransferItem
    extra = 0
    readonly_fields = ['transferred_quantity', 'batch_details']


@admin.register(StockTransfer)
class StockTransferAdmin(admin.ModelAdmin):
    list_display = ['transfer_number', 'pharmacy', 'from_branch', 'to_branch', 'status', 'created_by', 'created_at']
    list_filter = ['status', 'created_at']
    search_fields = ['transfer_number', 'notes']
    ordering = ['-created_at']
    readonly_fields = ['transfer_number', 'created_at', 'updated_at', 'completed_at']
    inlines = [StockTransferItemInline]


@admin.register(InternalTransfer)
class InternalTransferAdmin(admin.ModelAdmin):
    list_display = ['medication', 'pharmacy', 'direction', 'quantity', 'created_by', 'created_at']
    list_filter = ['direction', 'created_at']
    search_fields = ['medication__name']
    ordering = ['-created_at']
