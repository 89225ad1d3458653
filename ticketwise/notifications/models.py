from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models

from .templating import TEMPLATE_TYPES


class EmailConfig(models.Model):
    """Outgoing email provider settings, one row per company plus a global one"""
    PROVIDER_CHOICES = [
        ('smtp', 'SMTP Personalizado'),
        ('brevo', 'Brevo (SendinBlue)'),
        ('sendgrid', 'SendGrid'),
        ('mailgun', 'Mailgun'),
    ]

    company = models.OneToOneField('core.Company', on_delete=models.CASCADE, null=True, blank=True, related_name='email_config')
    provider = models.CharField(max_length=20, choices=PROVIDER_CHOICES, default='smtp')
    host = models.CharField(max_length=255, blank=True)
    port = models.PositiveIntegerField(default=587)
    username = models.CharField(max_length=255, blank=True)
    password = models.CharField(max_length=255, blank=True)
    api_key = models.CharField(max_length=255, blank=True)
    from_email = models.EmailField()
    from_name = models.CharField(max_length=200, blank=True)
    use_tls = models.BooleanField(default=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.provider} ({self.company or 'global'})"

    class Meta:
        db_table = 'email_configs'


class EmailTemplate(models.Model):
    TYPE_CHOICES = list(TEMPLATE_TYPES.items())

    name = models.CharField(max_length=200)
    type = models.CharField(max_length=50, choices=TYPE_CHOICES)
    description = models.TextField(blank=True)
    subject_template = models.CharField(max_length=500)
    html_template = models.TextField()
    text_template = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    is_default = models.BooleanField(default=False)
    company = models.ForeignKey('core.Company', on_delete=models.CASCADE, null=True, blank=True, related_name='email_templates')
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='created_email_templates')
    updated_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='updated_email_templates')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} ({self.type})"

    class Meta:
        db_table = 'email_templates'
        ordering = ['type', 'name']
        indexes = [
            models.Index(fields=['type', 'company', 'is_active'], name='email_tpl_lookup_idx'),
        ]


class UserNotificationSettings(models.Model):
    """Per-user email notification preferences"""
    DIGEST_CHOICES = [
        ('never', 'Nunca'),
        ('daily', 'Diário'),
        ('weekly', 'Semanal'),
    ]

    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='notification_settings')
    new_ticket_assigned = models.BooleanField(default=True)
    ticket_status_changed = models.BooleanField(default=True)
    new_reply_received = models.BooleanField(default=True)
    ticket_escalated = models.BooleanField(default=True)
    ticket_due_soon = models.BooleanField(default=True)
    ticket_participant_added = models.BooleanField(default=True)
    ticket_participant_removed = models.BooleanField(default=True)
    new_customer_registered = models.BooleanField(default=True)
    new_user_created = models.BooleanField(default=True)
    system_maintenance = models.BooleanField(default=True)
    email_notifications = models.BooleanField(default=True)
    notification_hours_start = models.PositiveSmallIntegerField(default=9, validators=[MinValueValidator(0), MaxValueValidator(23)])
    notification_hours_end = models.PositiveSmallIntegerField(default=18, validators=[MinValueValidator(1), MaxValueValidator(24)])
    weekend_notifications = models.BooleanField(default=False)
    digest_frequency = models.CharField(max_length=10, choices=DIGEST_CHOICES, default='never')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Notification settings for {self.user_id}"

    class Meta:
        db_table = 'user_notification_settings'
