from django.contrib import admin
from .models import Cart, CartItem, Sale, SaleItem, PendingTransaction


class CartItemInline(admin.TabularInline):
    model = CartItem
    extra = 0


@admin.register(Cart)
class CartAdmin(admin.ModelAdmin):
    list_display = ['id', 'pharmacy', 'branch', 'created_by', 'customer_name', 'status', 'updated_at']
    list_filter = ['status', 'pharmacy']
    inlines = [CartItemInline]


class SaleItemInline(admin.TabularInline):
    model = SaleItem
    extra = 0
    readonly_fields = ['medication', 'product_name', 'batch_number', 'quantity', 'unit_price', 'total_price', 'expiry_label']


@admin.register(Sale)
class SaleAdmin(admin.ModelAdmin):
    list_display = ['receipt_number', 'pharmacy', 'sold_by', 'payment_method', 'total', 'status', 'created_at']
    list_filter = ['status', 'payment_method', 'pharmacy', 'created_at']
    search_fields = ['receipt_number', 'customer_name', 'client_reference']
    ordering = ['-created_at']
    inlines = [SaleItemInline]


@admin.register(PendingTransaction)
class PendingTransactionAdmin(admin.ModelAdmin):
    list_display = ['id', 'pharmacy', 'source', 'short_code', 'client_reference', 'total_amount', 'status', 'created_at']
    list_filter = ['source', 'status', 'pharmacy']
    search_fields = ['short_code', 'client_reference']
    ordering = ['-created_at']
