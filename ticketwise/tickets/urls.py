from django.urls import path
from .views import ticket_list_create, ticket_detail, ticket_replies

urlpatterns = [
    path('tickets/', ticket_list_create, name='ticket-list-create'),
    path('tickets/<int:pk>/', ticket_detail, name='ticket-detail'),
    path('tickets/<int:pk>/replies/', ticket_replies, name='ticket-replies'),
]
