from django.contrib.auth import get_user_model
from rest_framework import serializers

from .models import (
    ProductCategory, ProductType, InventoryLocation, InventoryProduct,
    InventoryMovement, UserInventoryAssignment
)

User = get_user_model()

UNIQUE_IDENTIFIERS = {
    'serial_number': 'Número de série',
    'service_tag': 'Service tag',
    'asset_number': 'Número de patrimônio',
}


class ProductCategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = ProductCategory
        fields = ['id', 'name', 'code', 'description', 'company', 'is_consumable', 'requires_serial',
                  'requires_asset_tag', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['company', 'created_at', 'updated_at']

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Nome é obrigatório')
        return value


class ProductTypeSerializer(serializers.ModelSerializer):
    category_name = serializers.CharField(source='category.name', read_only=True, default=None)

    class Meta:
        model = ProductType
        fields = ['id', 'name', 'code', 'category', 'category_name', 'company', 'is_active',
                  'created_at', 'updated_at']
        read_only_fields = ['company', 'created_at', 'updated_at']

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Nome é obrigatório')
        return value


class InventoryLocationSerializer(serializers.ModelSerializer):
    department_name = serializers.CharField(source='department.name', read_only=True, default=None)

    class Meta:
        model = InventoryLocation
        fields = ['id', 'name', 'description', 'company', 'department', 'department_name', 'is_active',
                  'created_at', 'updated_at']
        read_only_fields = ['company', 'created_at', 'updated_at']


class InventoryProductSerializer(serializers.ModelSerializer):
    """
    Asset with its catalog names.

    Unless the category is consumable, each unique identifier may only be
    used once per company among products that were not deleted. The
    company is taken from ``context['company_id']`` on create.
    """
    status_text = serializers.CharField(source='get_status_display', read_only=True)
    product_type_name = serializers.CharField(source='product_type.name', read_only=True)
    category_id = serializers.IntegerField(source='product_type.category_id', read_only=True, default=None)
    category_name = serializers.CharField(source='product_type.category.name', read_only=True, default=None)
    department_name = serializers.CharField(source='department.name', read_only=True, default=None)
    location_name = serializers.CharField(source='location.name', read_only=True, default=None)

    class Meta:
        model = InventoryProduct
        fields = [
            'id', 'name', 'product_type', 'product_type_name', 'category_id', 'category_name', 'company',
            'department', 'department_name', 'location', 'location_name', 'serial_number', 'service_tag',
            'asset_number', 'status', 'status_text', 'purchase_date', 'warranty_expiry', 'purchase_value',
            'invoice_number', 'supplier_name', 'notes', 'specifications', 'created_by', 'updated_by',
            'created_at', 'updated_at'
        ]
        read_only_fields = ['company', 'created_by', 'updated_by', 'created_at', 'updated_at']

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Nome é obrigatório')
        return value

    def validate(self, attrs):
        instance = self.instance
        for field in UNIQUE_IDENTIFIERS:
            if field in attrs:
                attrs[field] = (attrs[field] or '').strip() or None

        product_type = attrs.get('product_type') or (instance.product_type if instance else None)
        category = product_type.category if product_type is not None else None

        serial_number = attrs.get('serial_number', instance.serial_number if instance else None)
        if category is not None and category.requires_serial and not serial_number:
            raise serializers.ValidationError({'serial_number': 'Número de série é obrigatório para esta categoria'})

        if category is not None and category.is_consumable:
            return attrs

        company_id = instance.company_id if instance else self.context.get('company_id')
        products = InventoryProduct.objects.filter(company_id=company_id, is_deleted=False)
        if instance is not None:
            products = products.exclude(pk=instance.pk)
        for field, label in UNIQUE_IDENTIFIERS.items():
            value = attrs.get(field)
            if value and products.filter(**{f'{field}__iexact': value}).exists():
                raise serializers.ValidationError({field: f'{label} já cadastrado para outro produto'})
        return attrs


class InventoryMovementSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    movement_type_text = serializers.CharField(source='get_movement_type_display', read_only=True)
    approval_status_text = serializers.CharField(source='get_approval_status_display', read_only=True)
    responsible_id = serializers.PrimaryKeyRelatedField(
        source='responsible', queryset=User.objects.all(), required=False, allow_null=True
    )
    responsible_name = serializers.CharField(source='responsible.name', read_only=True, default=None)
    approved_by_name = serializers.CharField(source='approved_by.name', read_only=True, default=None)
    from_location_name = serializers.CharField(source='from_location.name', read_only=True, default=None)
    to_location_name = serializers.CharField(source='to_location.name', read_only=True, default=None)
    ticket_number = serializers.CharField(source='ticket.ticket_id', read_only=True, default=None)
    require_approval = serializers.BooleanField(required=False, allow_null=True, default=None, write_only=True)
    expected_return_date = serializers.DateField(required=False, allow_null=True, write_only=True)

    class Meta:
        model = InventoryMovement
        fields = [
            'id', 'product', 'product_name', 'movement_type', 'movement_type_text', 'quantity',
            'from_location', 'from_location_name', 'to_location', 'to_location_name', 'responsible_id',
            'responsible_name', 'ticket', 'ticket_number', 'approval_status', 'approval_status_text',
            'approved_by', 'approved_by_name', 'approval_date', 'approval_notes', 'reason', 'notes',
            'company', 'created_by', 'movement_date', 'require_approval', 'expected_return_date'
        ]
        read_only_fields = ['approval_status', 'approved_by', 'approval_date', 'approval_notes', 'company',
                            'created_by', 'movement_date']

    def validate_quantity(self, value):
        if value < 1:
            raise serializers.ValidationError('Quantidade deve ser maior que zero')
        return value


class MovementDecisionSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class UserInventoryAssignmentSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    user_name = serializers.CharField(source='user.name', read_only=True)
    is_open = serializers.BooleanField(read_only=True)

    class Meta:
        model = UserInventoryAssignment
        fields = ['id', 'product', 'product_name', 'user', 'user_name', 'movement', 'company', 'assigned_at',
                  'expected_return_date', 'returned_at', 'notes', 'is_open']
