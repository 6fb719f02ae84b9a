from django.urls import path
from .views import (
    stock_low, stock_out_of_stock,
    stock_adjustment_list_create, stock_adjustment_detail,
    stock_transfer_list_create, stock_transfer_detail, stock_transfer_complete,
    internal_transfer_list_create
)

urlpatterns = [
    # Stock level endpoints
    path('stock/low/', stock_low, name='stock-low'),
    path('stock/out-of-stock/', stock_out_of_stock, name='stock-out-of-stock'),

    # StockAdjustment endpoints
    path('stock-adjustments/', stock_adjustment_list_create, name='stock-adjustment-list-create'),
    path('stock-adjustments/<int:pk>/', stock_adjustment_detail, name='stock-adjustment-detail'),

    # StockTransfer endpoints
    path('stock-transfers/', stock_transfer_list_create, name='stock-transfer-list-create'),
    path('stock-transfers/<int:pk>/', stock_transfer_detail, name='stock-transfer-detail'),
    path('stock-transfers/<int:pk>/complete/', stock_transfer_complete, name='stock-transfer-complete'),

    # Shelving endpoints
    path('internal-transfers/', internal_transfer_list_create, name='internal-transfer-list-create'),
]
