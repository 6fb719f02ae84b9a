from django.contrib import admin
from .models import PharmacyStaff, StaffPermission, StaffShift


class StaffPermissionInline(admin.TabularInline):
    model = StaffPermission
    extra = 0
    fk_name = 'staff'


@admin.register(PharmacyStaff)
class PharmacyStaffAdmin(admin.ModelAdmin):
    list_display = ['user', 'pharmacy', 'branch', 'role', 'is_active', 'created_at']
    list_filter = ['role', 'is_active']
    search_fields = ['user__username', 'user__email', 'pharmacy__name']
    inlines = [StaffPermissionInline]


@admin.register(StaffShift)
class StaffShiftAdmin(admin.ModelAdmin):
    list_display = ['staff', 'pharmacy', 'branch', 'clock_in', 'clock_out', 'total_sales', 'total_transactions']
    list_filter = ['clock_in_method', 'wifi_verified']
    search_fields = ['staff__user__username']
    ordering = ['-clock_in']
