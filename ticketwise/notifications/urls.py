from django.urls import path
from .views import (
    email_config, email_config_test,
    email_template_list_create, email_template_detail,
    email_template_preview, email_template_preview_stored, email_template_variables,
    notification_settings
)

urlpatterns = [
    # Email configuration endpoints
    path('email-config/', email_config, name='email-config'),
    path('email-config/test/', email_config_test, name='email-config-test'),

    # Email template endpoints
    path('email-templates/', email_template_list_create, name='email-template-list-create'),
    path('email-templates/preview/', email_template_preview, name='email-template-preview'),
    path('email-templates/variables/', email_template_variables, name='email-template-variables'),
    path('email-templates/<int:pk>/', email_template_detail, name='email-template-detail'),
    path('email-templates/<int:pk>/preview/', email_template_preview_stored, name='email-template-preview-stored'),

    # Notification preference endpoints
    path('notification-settings/', notification_settings, name='notification-settings'),
]
