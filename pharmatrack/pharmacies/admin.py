from django.contrib import admin
from .models import Pharmacy, Branch


class BranchInline(admin.TabularInline):
    model = Branch
    extra = 0


@admin.register(Pharmacy)
class PharmacyAdmin(admin.ModelAdmin):
    list_display = ['name', 'email', 'subscription_plan', 'subscription_status', 'subscription_ends_at', 'created_at']
    list_filter = ['subscription_plan', 'subscription_status', 'is_gifted', 'created_at']
    search_fields = ['name', 'email', 'license_number']
    ordering = ['name']
    inlines = [BranchInline]


@admin.register(Branch)
class BranchAdmin(admin.ModelAdmin):
    list_display = ['name', 'pharmacy', 'phone', 'is_main', 'is_active', 'created_at']
    list_filter = ['is_active', 'is_main']
    search_fields = ['name', 'pharmacy__name']
    ordering = ['pharmacy', 'name']
