from django.db import models


class SatisfactionSurvey(models.Model):
    """Survey sent to the requester after a ticket is resolved"""
    STATUS_CHOICES = [
        ('sent', 'Enviada'),
        ('responded', 'Respondida'),
        ('expired', 'Expirada'),
    ]

    ticket = models.ForeignKey('tickets.Ticket', on_delete=models.CASCADE, related_name='satisfaction_surveys')
    company = models.ForeignKey('core.Company', on_delete=models.CASCADE, null=True, blank=True, related_name='satisfaction_surveys')
    customer_email = models.EmailField()
    survey_token = models.CharField(max_length=64, unique=True)
    sent_at = models.DateTimeField(auto_now_add=True)
    expires_at = models.DateTimeField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='sent')
    rating = models.PositiveSmallIntegerField(null=True, blank=True)
    comments = models.TextField(blank=True)
    responded_at = models.DateTimeField(null=True, blank=True)
    reminder_5d_sent = models.BooleanField(default=False)
    reminder_3d_sent = models.BooleanField(default=False)
    reminder_1d_sent = models.BooleanField(default=False)

    def __str__(self):
        return f"Survey {self.ticket_id} ({self.status})"

    class Meta:
        db_table = 'satisfaction_surveys'
        ordering = ['-sent_at']
        indexes = [
            models.Index(fields=['customer_email', 'status'], name='surveys_email_status_idx'),
            models.Index(fields=['company', 'status'], name='surveys_company_status_idx'),
        ]
