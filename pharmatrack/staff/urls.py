from django.urls import path
from .views import (
    staff_list_create, staff_detail, role_templates,
    shift_clock_in, shift_clock_out, shift_current, shift_list
)

urlpatterns = [
    path('staff/', staff_list_create, name='staff-list-create'),
    path('staff/<int:pk>/', staff_detail, name='staff-detail'),
    path('staff/role-templates/', role_templates, name='staff-role-templates'),
    path('shifts/', shift_list, name='shift-list'),
    path('shifts/current/', shift_current, name='shift-current'),
    path('shifts/clock-in/', shift_clock_in, name='shift-clock-in'),
    path('shifts/clock-out/', shift_clock_out, name='shift-clock-out'),
]
