from django.conf import settings
from django.db import models


class Ticket(models.Model):
    """Support ticket opened by a requester"""
    STATUS_CHOICES = [
        ('new', 'Novo'),
        ('ongoing', 'Em Andamento'),
        ('suspended', 'Suspenso'),
        ('waiting_customer', 'Aguardando Solicitante'),
        ('escalated', 'Escalado'),
        ('in_analysis', 'Em Análise'),
        ('pending_deployment', 'Aguardando Deploy'),
        ('reopened', 'Reaberto'),
        ('resolved', 'Resolvido'),
        ('closed', 'Encerrado'),
    ]

    PRIORITY_CHOICES = [
        ('low', 'Baixa'),
        ('medium', 'Média'),
        ('high', 'Alta'),
        ('critical', 'Crítica'),
    ]

    ticket_id = models.CharField(max_length=20, unique=True, db_index=True)
    title = models.CharField(max_length=255)
    description = models.TextField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='new')
    priority = models.CharField(max_length=20, choices=PRIORITY_CHOICES, default='medium')
    type = models.CharField(max_length=100, blank=True)
    incident_type = models.CharField(max_length=100, blank=True)
    category = models.CharField(max_length=100, blank=True)
    department = models.ForeignKey('organization.Department', on_delete=models.SET_NULL, null=True, blank=True, related_name='tickets')
    customer = models.ForeignKey('parties.Customer', on_delete=models.SET_NULL, null=True, blank=True, related_name='tickets')
    customer_email = models.EmailField(blank=True)
    assigned_to = models.ForeignKey('organization.Official', on_delete=models.SET_NULL, null=True, blank=True, related_name='assigned_tickets')
    company = models.ForeignKey('core.Company', on_delete=models.CASCADE, null=True, blank=True, related_name='tickets')
    first_response_at = models.DateTimeField(null=True, blank=True)
    resolved_at = models.DateTimeField(null=True, blank=True)
    sla_breached = models.BooleanField(default=False)
    due_soon_notified = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.ticket_id} - {self.title}"

    class Meta:
        db_table = 'tickets'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['company', 'status'], name='tickets_company_status_idx'),
            models.Index(fields=['department', 'status'], name='tickets_dept_status_idx'),
            models.Index(fields=['customer_email'], name='tickets_customer_email_idx'),
            models.Index(fields=['created_at'], name='tickets_created_idx'),
        ]


class TicketReply(models.Model):
    ticket = models.ForeignKey(Ticket, on_delete=models.CASCADE, related_name='replies')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='ticket_replies')
    message = models.TextField()
    is_internal = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"Reply on {self.ticket.ticket_id} by {self.user_id}"

    class Meta:
        db_table = 'ticket_replies'
        ordering = ['created_at']


class TicketStatusHistory(models.Model):
    ticket = models.ForeignKey(Ticket, on_delete=models.CASCADE, related_name='status_history')
    old_status = models.CharField(max_length=20, blank=True)
    new_status = models.CharField(max_length=20)
    changed_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='ticket_status_changes')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.ticket.ticket_id}: {self.old_status} -> {self.new_status}"

    class Meta:
        db_table = 'ticket_status_history'
        ordering = ['-created_at']
