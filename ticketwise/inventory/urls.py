from django.urls import path
from .views import (
    product_list_create, product_detail, product_history, product_export,
    product_type_list_create, product_type_detail, product_category_list_create, product_category_detail,
    location_list_create, location_detail, movement_list_create, movement_approve, movement_reject,
    assignment_list, inventory_dashboard
)

urlpatterns = [
    # Products
    path('inventory/products/', product_list_create, name='inventory-product-list-create'),
    path('inventory/products/export/', product_export, name='inventory-product-export'),
    path('inventory/products/<int:pk>/', product_detail, name='inventory-product-detail'),
    path('inventory/products/<int:pk>/history/', product_history, name='inventory-product-history'),

    # Catalog
    path('inventory/product-types/', product_type_list_create, name='inventory-product-type-list-create'),
    path('inventory/product-types/<int:pk>/', product_type_detail, name='inventory-product-type-detail'),
    path('inventory/product-categories/', product_category_list_create, name='inventory-product-category-list-create'),
    path('inventory/product-categories/<int:pk>/', product_category_detail, name='inventory-product-category-detail'),
    path('inventory/locations/', location_list_create, name='inventory-location-list-create'),
    path('inventory/locations/<int:pk>/', location_detail, name='inventory-location-detail'),

    # Movements
    path('inventory/movements/', movement_list_create, name='inventory-movement-list-create'),
    path('inventory/movements/<int:pk>/approve/', movement_approve, name='inventory-movement-approve'),
    path('inventory/movements/<int:pk>/reject/', movement_reject, name='inventory-movement-reject'),

    path('inventory/assignments/', assignment_list, name='inventory-assignment-list'),
    path('inventory/dashboard/', inventory_dashboard, name='inventory-dashboard'),
]
