from django.urls import path
from .views import (
    ai_suggestion_generate, ai_suggestion_feedback, ai_suggestion_history, ai_priority_analysis,
    ai_configuration_list_create, ai_configuration_detail
)

urlpatterns = [
    path('ai-suggestions/', ai_suggestion_generate, name='ai-suggestion-generate'),
    path('ai-suggestions/priority/', ai_priority_analysis, name='ai-priority-analysis'),
    path('ai-suggestions/<int:pk>/feedback/', ai_suggestion_feedback, name='ai-suggestion-feedback'),
    path('ai-suggestions/ticket/<int:ticket_id>/', ai_suggestion_history, name='ai-suggestion-history'),
    path('ai-configurations/', ai_configuration_list_create, name='ai-configuration-list-create'),
    path('ai-configurations/<int:pk>/', ai_configuration_detail, name='ai-configuration-detail'),
]
