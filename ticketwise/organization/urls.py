from django.urls import path
from .views import (
    sector_list_create, sector_detail,
    department_list_create, department_detail,
    official_list_create, official_detail, official_toggle_status,
)

urlpatterns = [
    # Sector endpoints
    path('sectors/', sector_list_create, name='sector-list-create'),
    path('sectors/<int:pk>/', sector_detail, name='sector-detail'),

    # Department endpoints
    path('departments/', department_list_create, name='department-list-create'),
    path('departments/<int:pk>/', department_detail, name='department-detail'),

    # Official endpoints
    path('officials/', official_list_create, name='official-list-create'),
    path('officials/<int:pk>/', official_detail, name='official-detail'),
    path('officials/<int:pk>/toggle-status/', official_toggle_status, name='official-toggle-status'),
]
