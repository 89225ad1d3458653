from django.contrib import admin
from .models import Ticket, TicketReply, TicketStatusHistory


class TicketReplyInline(admin.TabularInline):
    model = TicketReply
    extra = 0
    readonly_fields = ['user', 'created_at']


@admin.register(Ticket)
class TicketAdmin(admin.ModelAdmin):
    list_display = ['ticket_id', 'title', 'status', 'priority', 'department', 'assigned_to', 'company', 'created_at']
    list_filter = ['status', 'priority', 'company', 'department']
    search_fields = ['ticket_id', 'title', 'customer_email']
    readonly_fields = ['ticket_id', 'created_at', 'updated_at']
    inlines = [TicketReplyInline]
    date_hierarchy = 'created_at'


@admin.register(TicketStatusHistory)
class TicketStatusHistoryAdmin(admin.ModelAdmin):
    list_display = ['ticket', 'old_status', 'new_status', 'changed_by', 'created_at']
    list_filter = ['new_status']
    search_fields = ['ticket__ticket_id']
