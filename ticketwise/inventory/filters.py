import django_filters
from django.db.models import Q

from .models import InventoryProduct, InventoryMovement


class InventoryProductFilter(django_filters.FilterSet):
    """Filter for the asset list and global search"""

    search = django_filters.CharFilter(method='filter_search', label='Search')

    status = django_filters.ChoiceFilter(choices=InventoryProduct.STATUS_CHOICES)
    product_type = django_filters.NumberFilter(field_name='product_type_id', lookup_expr='exact')
    category = django_filters.NumberFilter(field_name='product_type__category_id', lookup_expr='exact')
    department = django_filters.NumberFilter(field_name='department_id', lookup_expr='exact')
    location = django_filters.NumberFilter(field_name='location_id', lookup_expr='exact')

    class Meta:
        model = InventoryProduct
        fields = ['search', 'status', 'product_type', 'category', 'department', 'location']

    def filter_search(self, queryset, name, value):
        """Search name and the three unique identifiers"""
        search = (value or '').strip()
        if not search:
            return queryset
        return queryset.filter(
            Q(name__icontains=search) |
            Q(serial_number__icontains=search) |
            Q(service_tag__icontains=search) |
            Q(asset_number__icontains=search)
        )


class InventoryMovementFilter(django_filters.FilterSet):
    product = django_filters.NumberFilter(field_name='product_id', lookup_expr='exact')
    type = django_filters.ChoiceFilter(field_name='movement_type', choices=InventoryMovement.MOVEMENT_TYPE_CHOICES)
    approval_status = django_filters.ChoiceFilter(choices=InventoryMovement.APPROVAL_STATUS_CHOICES)

    class Meta:
        model = InventoryMovement
        fields = ['product', 'type', 'approval_status']
