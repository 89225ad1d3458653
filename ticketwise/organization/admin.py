from django.contrib import admin
from .models import Department, Sector, Official, OfficialDepartment


@admin.register(Department)
class DepartmentAdmin(admin.ModelAdmin):
    list_display = ['name', 'company', 'is_active', 'use_inventory_control', 'created_at']
    list_filter = ['is_active', 'company']
    search_fields = ['name', 'description']


@admin.register(Sector)
class SectorAdmin(admin.ModelAdmin):
    list_display = ['name', 'company', 'is_active', 'created_at']
    list_filter = ['is_active', 'company']
    search_fields = ['name', 'description']


class OfficialDepartmentInline(admin.TabularInline):
    model = OfficialDepartment
    extra = 0


@admin.register(Official)
class OfficialAdmin(admin.ModelAdmin):
    list_display = ['name', 'email', 'company', 'is_active', 'created_at']
    list_filter = ['is_active', 'company']
    search_fields = ['name', 'email']
    inlines = [OfficialDepartmentInline]
