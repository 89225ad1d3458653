from django.conf import settings
from django.db import models


class Department(models.Model):
    """Support departments used for ticket routing and official membership"""
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    company = models.ForeignKey('core.Company', on_delete=models.CASCADE, null=True, blank=True, related_name='departments')
    is_active = models.BooleanField(default=True)
    use_inventory_control = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'departments'
        ordering = ['name']
        constraints = [
            models.UniqueConstraint(fields=['company', 'name'], name='unique_department_name_per_company'),
        ]


class Sector(models.Model):
    """Requester-side organizational sectors"""
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    company = models.ForeignKey('core.Company', on_delete=models.CASCADE, null=True, blank=True, related_name='sectors')
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'sectors'
        ordering = ['name']


class Official(models.Model):
    """Support staff profile (attendant) attached to departments"""
    name = models.CharField(max_length=200)
    email = models.EmailField(unique=True)
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='official')
    company = models.ForeignKey('core.Company', on_delete=models.CASCADE, null=True, blank=True, related_name='officials')
    supervisor = models.ForeignKey('self', on_delete=models.SET_NULL, null=True, blank=True, related_name='supervised')
    manager = models.ForeignKey('self', on_delete=models.SET_NULL, null=True, blank=True, related_name='managed')
    departments = models.ManyToManyField(Department, through='OfficialDepartment', related_name='officials', blank=True)
    avatar_url = models.URLField(blank=True, null=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'officials'
        ordering = ['name']


class OfficialDepartment(models.Model):
    official = models.ForeignKey(Official, on_delete=models.CASCADE, related_name='official_departments')
    department = models.ForeignKey(Department, on_delete=models.CASCADE, related_name='official_departments')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.official.name} - {self.department.name}"

    class Meta:
        db_table = 'official_departments'
        unique_together = ['official', 'department']
