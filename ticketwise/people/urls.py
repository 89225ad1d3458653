from django.urls import path
from .views import person_list_create, person_detail, person_allowed_roles

urlpatterns = [
    path('people/', person_list_create, name='person-list-create'),
    path('people/allowed-roles/', person_allowed_roles, name='person-allowed-roles'),
    path('people/<int:pk>/', person_detail, name='person-detail'),
]
