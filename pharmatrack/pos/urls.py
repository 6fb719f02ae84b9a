from django.urls import path
from .views import (
    checkout_view,
    cart_list_create, cart_detail, cart_items, cart_item_detail, cart_hold, cart_resume, cart_checkout,
    sale_list, sale_detail, sale_receipt, sale_void,
    pending_transaction_list_create, pending_transaction_complete, pending_transaction_cancel,
    offline_sync,
)

urlpatterns = [
    path('pos/checkout/', checkout_view, name='pos-checkout'),

    # Cart endpoints
    path('carts/', cart_list_create, name='cart-list-create'),
    path('carts/<int:pk>/', cart_detail, name='cart-detail'),
    path('carts/<int:pk>/items/', cart_items, name='cart-items'),
    path('carts/<int:pk>/items/<int:item_id>/', cart_item_detail, name='cart-item-detail'),
    path('carts/<int:pk>/hold/', cart_hold, name='cart-hold'),
    path('carts/<int:pk>/resume/', cart_resume, name='cart-resume'),
    path('carts/<int:pk>/checkout/', cart_checkout, name='cart-checkout'),

    # Sale endpoints
    path('sales/', sale_list, name='sale-list'),
    path('sales/<int:pk>/', sale_detail, name='sale-detail'),
    path('sales/<int:pk>/receipt/', sale_receipt, name='sale-receipt'),
    path('sales/<int:pk>/void/', sale_void, name='sale-void'),

    # Pending transactions and offline sync
    path('pending-transactions/', pending_transaction_list_create, name='pending-transaction-list-create'),
    path('pending-transactions/<int:pk>/complete/', pending_transaction_complete, name='pending-transaction-complete'),
    path('pending-transactions/<int:pk>/cancel/', pending_transaction_cancel, name='pending-transaction-cancel'),
    path('pos/sync/', offline_sync, name='pos-offline-sync'),
]
