from django.urls import path
from .views import (
    plan_list, subscription_status, payment_list, create_payment, featured_payment, paystack_webhook,
    manage_subscription
)

urlpatterns = [
    path('billing/plans/', plan_list, name='billing-plans'),
    path('billing/subscription/', subscription_status, name='billing-subscription'),
    path('billing/payments/', payment_list, name='billing-payment-list'),
    path('billing/create-payment/', create_payment, name='billing-create-payment'),
    path('billing/featured-payment/', featured_payment, name='billing-featured-payment'),
    path('billing/manage-subscription/', manage_subscription, name='billing-manage-subscription'),
    path('billing/webhook/paystack/', paystack_webhook, name='billing-paystack-webhook'),
]
