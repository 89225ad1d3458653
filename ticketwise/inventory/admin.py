from django.contrib import admin
from .models import (
    ProductCategory, ProductType, InventoryLocation, InventoryProduct, InventoryMovement,
    UserInventoryAssignment
)


@admin.register(ProductCategory)
class ProductCategoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'code', 'company', 'is_consumable', 'requires_serial', 'is_active']
    list_filter = ['is_consumable', 'requires_serial', 'is_active', 'company']
    search_fields = ['name', 'code']


@admin.register(ProductType)
class ProductTypeAdmin(admin.ModelAdmin):
    list_display = ['name', 'code', 'category', 'company', 'is_active']
    list_filter = ['category', 'is_active', 'company']
    search_fields = ['name', 'code']


@admin.register(InventoryLocation)
class InventoryLocationAdmin(admin.ModelAdmin):
    list_display = ['name', 'department', 'company', 'is_active']
    list_filter = ['is_active', 'company']
    search_fields = ['name']


class InventoryMovementInline(admin.TabularInline):
    model = InventoryMovement
    fk_name = 'product'
    extra = 0
    fields = ['movement_type', 'approval_status', 'responsible', 'to_location', 'movement_date']
    readonly_fields = ['movement_date']


@admin.register(InventoryProduct)
class InventoryProductAdmin(admin.ModelAdmin):
    list_display = ['name', 'product_type', 'status', 'serial_number', 'service_tag', 'asset_number',
                    'location', 'company', 'is_deleted']
    list_filter = ['status', 'is_deleted', 'product_type', 'company']
    search_fields = ['name', 'serial_number', 'service_tag', 'asset_number']
    readonly_fields = ['created_by', 'updated_by', 'created_at', 'updated_at']
    inlines = [InventoryMovementInline]


@admin.register(InventoryMovement)
class InventoryMovementAdmin(admin.ModelAdmin):
    list_display = ['product', 'movement_type', 'approval_status', 'responsible', 'approved_by', 'movement_date']
    list_filter = ['movement_type', 'approval_status', 'company']
    search_fields = ['product__name', 'product__serial_number', 'reason']
    date_hierarchy = 'movement_date'


@admin.register(UserInventoryAssignment)
class UserInventoryAssignmentAdmin(admin.ModelAdmin):
    list_display = ['product', 'user', 'assigned_at', 'expected_return_date', 'returned_at']
    list_filter = ['company']
    search_fields = ['product__name', 'user__username', 'user__email']
