from django.conf import settings
from django.db import models


class Customer(models.Model):
    """Requesters (clients) who open tickets"""
    name = models.CharField(max_length=200)
    email = models.EmailField(unique=True)
    phone = models.CharField(max_length=20, blank=True, null=True)
    company_name = models.CharField(max_length=200, blank=True, help_text="Free-text organization the requester belongs to")
    company = models.ForeignKey('core.Company', on_delete=models.CASCADE, null=True, blank=True, related_name='customers')
    sector = models.ForeignKey('organization.Sector', on_delete=models.SET_NULL, null=True, blank=True, related_name='customers')
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='customer')
    avatar_url = models.URLField(blank=True, null=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'customers'
        ordering = ['name']
        indexes = [
            models.Index(fields=['company', 'is_active'], name='customers_company_active_idx'),
        ]
