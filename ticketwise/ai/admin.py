from django.contrib import admin
from .models import AiConfiguration, AiSuggestion, AiSuggestionLog


@admin.register(AiConfiguration)
class AiConfigurationAdmin(admin.ModelAdmin):
    list_display = ['name', 'provider', 'model', 'analysis_type', 'company', 'department', 'is_active', 'is_default']
    list_filter = ['provider', 'analysis_type', 'is_active', 'is_default']
    search_fields = ['name', 'model']


class AiSuggestionLogInline(admin.TabularInline):
    model = AiSuggestionLog
    extra = 0
    readonly_fields = ['action', 'details', 'user', 'created_at']


@admin.register(AiSuggestion)
class AiSuggestionAdmin(admin.ModelAdmin):
    list_display = ['id', 'ticket', 'user', 'similar_tickets_count', 'confidence_score', 'feedback_rating', 'created_at']
    list_filter = ['suggestion_type', 'feedback_rating']
    search_fields = ['ticket__ticket_id', 'ticket__title']
    readonly_fields = ['created_at', 'updated_at']
    inlines = [AiSuggestionLogInline]
