from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models


class AiConfiguration(models.Model):
    """Provider, model and prompts used for one kind of AI analysis"""
    PROVIDER_CHOICES = [
        ('openai', 'OpenAI'),
        ('anthropic', 'Anthropic'),
        ('google', 'Google'),
    ]

    ANALYSIS_TYPE_CHOICES = [
        ('ticket_priority', 'Prioridade do Ticket'),
        ('ticket_suggestions', 'Sugestões de Atendimento'),
    ]

    name = models.CharField(max_length=200)
    provider = models.CharField(max_length=20, choices=PROVIDER_CHOICES)
    model = models.CharField(max_length=100)
    api_endpoint = models.URLField(max_length=500, blank=True)
    system_prompt = models.TextField(blank=True)
    user_prompt_template = models.TextField(blank=True)
    temperature = models.DecimalField(max_digits=3, decimal_places=2, default=0.3,
                                      validators=[MinValueValidator(0), MaxValueValidator(2)])
    max_tokens = models.PositiveIntegerField(default=1500)
    timeout_seconds = models.PositiveIntegerField(default=30)
    max_retries = models.PositiveIntegerField(default=3)
    analysis_type = models.CharField(max_length=30, choices=ANALYSIS_TYPE_CHOICES, default='ticket_suggestions')
    company = models.ForeignKey('core.Company', on_delete=models.CASCADE, null=True, blank=True, related_name='ai_configurations')
    department = models.ForeignKey('organization.Department', on_delete=models.CASCADE, null=True, blank=True, related_name='ai_configurations')
    is_active = models.BooleanField(default=True)
    is_default = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} ({self.provider}/{self.model})"

    class Meta:
        db_table = 'ai_configurations'
        ordering = ['name']
        indexes = [
            models.Index(fields=['company', 'analysis_type', 'is_active'], name='ai_config_lookup_idx'),
        ]


class AiSuggestion(models.Model):
    """Resolution suggestion generated for a ticket"""
    ticket = models.ForeignKey('tickets.Ticket', on_delete=models.CASCADE, related_name='ai_suggestions')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='ai_suggestions')
    department = models.ForeignKey('organization.Department', on_delete=models.SET_NULL, null=True, blank=True, related_name='ai_suggestions')
    similar_tickets_count = models.PositiveIntegerField(default=0)
    success_rate = models.DecimalField(max_digits=5, decimal_places=2, default=0)
    confidence_score = models.DecimalField(max_digits=5, decimal_places=2, default=0)
    suggestion_type = models.CharField(max_length=20, default='hybrid')
    prompt_used = models.TextField(blank=True)
    ai_response = models.TextField(blank=True)
    structured_suggestion = models.JSONField(default=dict, blank=True)
    feedback_rating = models.PositiveSmallIntegerField(null=True, blank=True,
                                                       validators=[MinValueValidator(1), MaxValueValidator(5)])
    feedback_comment = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Sugestão #{self.id} - {self.ticket.ticket_id}"

    class Meta:
        db_table = 'ai_suggestions'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['ticket', '-created_at'], name='ai_suggestions_ticket_idx'),
        ]


class AiSuggestionLog(models.Model):
    suggestion = models.ForeignKey(AiSuggestion, on_delete=models.CASCADE, related_name='logs')
    action = models.CharField(max_length=50)
    details = models.JSONField(default=dict, blank=True)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='ai_suggestion_logs')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.action} - {self.suggestion_id}"

    class Meta:
        db_table = 'ai_suggestion_logs'
        ordering = ['-created_at']
