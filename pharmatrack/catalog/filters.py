import django_filters
from datetime import timedelta
from django.db.models import Q, F
from django.utils import timezone
from .models import Medication


class MedicationFilter(django_filters.FilterSet):
    """Filter for Medication batches using django-filter"""

    search = django_filters.CharFilter(method='filter_search', label='Search')
    category = django_filters.CharFilter(field_name='category', lookup_expr='iexact')
    branch = django_filters.NumberFilter(field_name='branch_id', lookup_expr='exact')
    barcode = django_filters.CharFilter(field_name='barcode_id', lookup_expr='exact')
    is_public = django_filters.BooleanFilter(field_name='is_public')
    is_controlled = django_filters.BooleanFilter(field_name='is_controlled')
    is_shelved = django_filters.BooleanFilter(field_name='is_shelved')

    expired = django_filters.CharFilter(method='filter_expired', label='Expired')
    expiring_within = django_filters.NumberFilter(method='filter_expiring_within', label='Expiring within (days)')
    low_stock = django_filters.CharFilter(method='filter_low_stock', label='Low Stock')
    out_of_stock = django_filters.CharFilter(method='filter_out_of_stock', label='Out of Stock')

    class Meta:
        model = Medication
        fields = ['search', 'category', 'branch', 'barcode', 'is_public', 'is_controlled', 'is_shelved',
                  'expired', 'expiring_within', 'low_stock', 'out_of_stock']

    def filter_search(self, queryset, name, value):
        """Search name, batch number, barcode, supplier and NAFDAC number"""
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(name__icontains=value) |
            Q(batch_number__icontains=value) |
            Q(barcode_id__icontains=value) |
            Q(supplier__icontains=value) |
            Q(nafdac_reg_number__icontains=value)
        )

    def filter_expired(self, queryset, name, value):
        today = timezone.localdate()
        if value.lower() == 'true':
            return queryset.filter(expiry_date__lte=today)
        if value.lower() == 'false':
            return queryset.filter(expiry_date__gt=today)
        return queryset

    def filter_expiring_within(self, queryset, name, value):
        today = timezone.localdate()
        return queryset.filter(expiry_date__gt=today, expiry_date__lte=today + timedelta(days=int(value)))

    def filter_low_stock(self, queryset, name, value):
        if value.lower() == 'true':
            return queryset.filter(current_stock__lte=F('reorder_level'))
        return queryset

    def filter_out_of_stock(self, queryset, name, value):
        if value.lower() == 'true':
            return queryset.filter(current_stock__lte=0)
        return queryset
