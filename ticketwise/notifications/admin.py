from django.contrib import admin
from .models import EmailConfig, EmailTemplate, UserNotificationSettings


@admin.register(EmailConfig)
class EmailConfigAdmin(admin.ModelAdmin):
    list_display = ['company', 'provider', 'from_email', 'host', 'port', 'use_tls', 'updated_at']
    list_filter = ['provider']
    exclude = ['password', 'api_key']


@admin.register(EmailTemplate)
class EmailTemplateAdmin(admin.ModelAdmin):
    list_display = ['name', 'type', 'company', 'is_active', 'is_default', 'updated_at']
    list_filter = ['type', 'is_active', 'is_default', 'company']
    search_fields = ['name', 'subject_template']
    ordering = ['type', 'name']


@admin.register(UserNotificationSettings)
class UserNotificationSettingsAdmin(admin.ModelAdmin):
    list_display = ['user', 'email_notifications', 'notification_hours_start', 'notification_hours_end',
                    'weekend_notifications', 'digest_frequency']
    list_filter = ['email_notifications', 'weekend_notifications', 'digest_frequency']
    search_fields = ['user__username', 'user__email']
