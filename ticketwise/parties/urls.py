from django.urls import path
from .views import (
    customer_list_create, customer_detail, customer_toggle_status,
    customer_bulk_import, customer_import_template
)

urlpatterns = [
    # Customer endpoints
    path('customers/', customer_list_create, name='customer-list-create'),
    path('customers/bulk-import/', customer_bulk_import, name='customer-bulk-import'),
    path('customers/import-template/', customer_import_template, name='customer-import-template'),
    path('customers/<int:pk>/', customer_detail, name='customer-detail'),
    path('customers/<int:pk>/toggle-status/', customer_toggle_status, name='customer-toggle-status'),
]
