from django.urls import path
from . import views

urlpatterns = [
    path('reports/tickets/', views.tickets_report, name='reports-tickets'),
    path('reports/tickets/export/', views.tickets_export, name='reports-tickets-export'),
    path('reports/performance/', views.performance_report, name='reports-performance'),
    path('reports/clients/', views.clients_report, name='reports-clients'),
    path('reports/departments/', views.departments_report, name='reports-departments'),
]
