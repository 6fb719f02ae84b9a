from django.urls import path
from .views import (
    pharmacy_list_create, pharmacy_current, admin_pin_set, admin_pin_verify,
    branch_list_create, branch_detail
)

urlpatterns = [
    path('pharmacies/', pharmacy_list_create, name='pharmacy-list-create'),
    path('pharmacies/current/', pharmacy_current, name='pharmacy-current'),
    path('pharmacies/current/admin-pin/', admin_pin_set, name='admin-pin-set'),
    path('pharmacies/current/admin-pin/verify/', admin_pin_verify, name='admin-pin-verify'),
    path('branches/', branch_list_create, name='branch-list-create'),
    path('branches/<int:pk>/', branch_detail, name='branch-detail'),
]
