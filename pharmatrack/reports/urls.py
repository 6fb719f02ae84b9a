from django.urls import path
from . import views

urlpatterns = [
    path('reports/dashboard/', views.dashboard, name='reports-dashboard'),
    path('reports/sales-summary/', views.sales_summary, name='sales-summary'),
    path('reports/nafdac-compliance/', views.nafdac_compliance, name='nafdac-compliance'),
    path('reports/expiry/', views.expiry_report, name='expiry-report'),
]
