from django.urls import path
from .views import survey_by_token, pending_surveys, satisfaction_dashboard

urlpatterns = [
    path('satisfaction-surveys/pending/', pending_surveys, name='satisfaction-survey-pending'),
    path('satisfaction-surveys/<str:token>/', survey_by_token, name='satisfaction-survey-token'),
    path('satisfaction-dashboard/', satisfaction_dashboard, name='satisfaction-dashboard'),
]
