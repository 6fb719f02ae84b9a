from django.urls import path
from .views import (
    notification_list, notification_unread_count, notification_mark_read, notification_mark_all_read,
    send_alert_view, sent_alert_list, run_alerts,
)

urlpatterns = [
    path('notifications/', notification_list, name='notification-list'),
    path('notifications/unread-count/', notification_unread_count, name='notification-unread-count'),
    path('notifications/mark-all-read/', notification_mark_all_read, name='notification-mark-all-read'),
    path('notifications/run-alerts/', run_alerts, name='notification-run-alerts'),
    path('notifications/<int:pk>/read/', notification_mark_read, name='notification-mark-read'),
    path('alerts/send/', send_alert_view, name='alert-send'),
    path('alerts/', sent_alert_list, name='alert-list'),
]
