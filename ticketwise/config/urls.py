"""
URL configuration for the ticketwise project.

Every app exposes its routes under ``api/v1/``; ``api/`` is kept as an alias
for clients that call the unversioned paths.
"""
from django.contrib import admin
from django.urls import path, include, re_path
from django.conf import settings
from django.views.static import serve

admin.site.site_header = "Ticket Wise Admin Panel"
admin.site.site_title = "Ticket Wise Admin Portal"
admin.site.index_title = "Bem-vindo ao painel administrativo do Ticket Wise"

APP_URLCONFS = [
    'ticketwise.core.urls',
    'ticketwise.organization.urls',
    'ticketwise.parties.urls',
    'ticketwise.people.urls',
    'ticketwise.tickets.urls',
    'ticketwise.notifications.urls',
    'ticketwise.inventory.urls',
    'ticketwise.ai.urls',
    'ticketwise.satisfaction.urls',
    'ticketwise.reports.urls',
]

urlpatterns = [
    path('admin/', admin.site.urls),
]
urlpatterns += [path('api/v1/', include(urlconf)) for urlconf in APP_URLCONFS]
urlpatterns += [path('api/', include(urlconf)) for urlconf in APP_URLCONFS]
urlpatterns += [
    re_path(r'^media/(?P<path>.*)$', serve, {'document_root': settings.MEDIA_ROOT}),
    re_path(r'^static/(?P<path>.*)$', serve, {'document_root': settings.STATIC_ROOT}),
]
