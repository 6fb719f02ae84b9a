from django.urls import path
from .views import (
    customer_list_create, customer_detail, customer_purchase_history,
    doctor_list_create, doctor_detail,
    supplier_list_create, supplier_detail,
    prescription_list_create, prescription_detail, prescription_refill, prescription_due_refills,
)

urlpatterns = [
    # Customer endpoints
    path('customers/', customer_list_create, name='customer-list-create'),
    path('customers/<int:pk>/', customer_detail, name='customer-detail'),
    path('customers/<int:pk>/purchases/', customer_purchase_history, name='customer-purchase-history'),

    # Doctor endpoints
    path('doctors/', doctor_list_create, name='doctor-list-create'),
    path('doctors/<int:pk>/', doctor_detail, name='doctor-detail'),

    # Supplier endpoints
    path('suppliers/', supplier_list_create, name='supplier-list-create'),
    path('suppliers/<int:pk>/', supplier_detail, name='supplier-detail'),

    # Prescription endpoints
    path('prescriptions/', prescription_list_create, name='prescription-list-create'),
    path('prescriptions/due-refills/', prescription_due_refills, name='prescription-due-refills'),
    path('prescriptions/<int:pk>/', prescription_detail, name='prescription-detail'),
    path('prescriptions/<int:pk>/refill/', prescription_refill, name='prescription-refill'),
]
