from django.contrib import admin
from .models import SatisfactionSurvey


@admin.register(SatisfactionSurvey)
class SatisfactionSurveyAdmin(admin.ModelAdmin):
    list_display = ['ticket', 'customer_email', 'status', 'rating', 'sent_at', 'expires_at', 'responded_at']
    list_filter = ['status', 'rating', 'company']
    search_fields = ['customer_email', 'ticket__ticket_id']
    readonly_fields = ['survey_token', 'sent_at']
    date_hierarchy = 'sent_at'
