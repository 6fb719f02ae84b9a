from django.urls import path
from .views import pharmacy_ai, ai_actions

urlpatterns = [
    path('ai/', pharmacy_ai, name='pharmacy-ai'),
    path('ai/actions/', ai_actions, name='ai-actions'),
]
