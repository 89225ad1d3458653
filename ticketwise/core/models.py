from django.contrib.auth.models import AbstractUser
from django.db import models


class Company(models.Model):
    """Tenant company. Every non-admin user is scoped to one company."""
    name = models.CharField(max_length=200)
    email = models.EmailField(blank=True)
    domain = models.CharField(max_length=255, blank=True, null=True)
    cnpj = models.CharField(max_length=20, blank=True, null=True)
    phone = models.CharField(max_length=20, blank=True, null=True)
    active = models.BooleanField(default=True)
    ai_permission = models.BooleanField(default=False)
    uses_flexible_sla = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'companies'
        ordering = ['name']
        verbose_name_plural = 'companies'


class User(AbstractUser):
    """Extended user model with role and company"""
    ROLE_CHOICES = [
        ('admin', 'Administrador'),
        ('customer', 'Solicitante'),
        ('support', 'Suporte'),
        ('manager', 'Gerente'),
        ('supervisor', 'Supervisor'),
        ('viewer', 'Visualizador'),
        ('company_admin', 'Administrador da Empresa'),
        ('triage', 'Triagem'),
        ('quality', 'Qualidade'),
        ('integration_bot', 'Bot de Integração'),
    ]

    name = models.CharField(max_length=200, blank=True)
    email = models.EmailField(unique=True)
    role = models.CharField(max_length=30, choices=ROLE_CHOICES, default='customer')
    company = models.ForeignKey(Company, on_delete=models.SET_NULL, null=True, blank=True, related_name='users')
    phone = models.CharField(max_length=20, blank=True, null=True)
    avatar_url = models.URLField(blank=True, null=True)
    ad_user = models.BooleanField(default=False)
    must_change_password = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name or self.username

    @property
    def display_name(self):
        return self.name or self.get_full_name() or self.username

    class Meta:
        db_table = 'users'
        indexes = [
            models.Index(fields=['role'], name='users_role_idx'),
            models.Index(fields=['company'], name='users_company_idx'),
        ]


class SystemSetting(models.Model):
    """Key/value settings, global (company is null) or per company"""
    key = models.CharField(max_length=150)
    value = models.TextField()
    description = models.TextField(blank=True)
    company = models.ForeignKey(Company, on_delete=models.CASCADE, null=True, blank=True, related_name='settings')
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.key

    class Meta:
        db_table = 'system_settings'
        constraints = [
            models.UniqueConstraint(fields=['key', 'company'], name='unique_setting_per_company'),
        ]


class AuditLog(models.Model):
    """Audit log for critical operations"""
    ACTION_CHOICES = [
        ('create', 'Create'),
        ('update', 'Update'),
        ('delete', 'Delete'),
        ('view', 'View'),
        ('status_toggle', 'Status Toggled'),
        ('bulk_import', 'Bulk Import'),
        ('movement_approve', 'Movement Approved'),
        ('movement_reject', 'Movement Rejected'),
        ('survey_response', 'Survey Response'),
        ('ai_suggestion', 'AI Suggestion'),
        ('settings_update', 'Settings Updated'),
    ]

    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='audit_logs')
    company = models.ForeignKey(Company, on_delete=models.SET_NULL, null=True, blank=True, related_name='audit_logs')
    action = models.CharField(max_length=50, choices=ACTION_CHOICES)
    model_name = models.CharField(max_length=100)
    object_id = models.CharField(max_length=100)
    object_name = models.CharField(max_length=255, blank=True, null=True, help_text="Human-readable name of the object (e.g., customer name, ticket number)")
    changes = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='audit_logs_created_idx'),
            models.Index(fields=['action'], name='audit_logs_action_idx'),
            models.Index(fields=['model_name'], name='audit_logs_model_idx'),
        ]
