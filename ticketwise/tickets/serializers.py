from rest_framework import serializers

from ticketwise.notifications.templating import translate_status, translate_priority
from .models import Ticket, TicketReply, TicketStatusHistory


class TicketSerializer(serializers.ModelSerializer):
    status_text = serializers.SerializerMethodField()
    priority_text = serializers.SerializerMethodField()
    department_name = serializers.CharField(source='department.name', read_only=True, default=None)
    customer_name = serializers.CharField(source='customer.name', read_only=True, default=None)
    assigned_to_name = serializers.CharField(source='assigned_to.name', read_only=True, default=None)

    class Meta:
        model = Ticket
        fields = [
            'id', 'ticket_id', 'title', 'description', 'status', 'status_text', 'priority', 'priority_text',
            'type', 'incident_type', 'category', 'department', 'department_name', 'customer', 'customer_name',
            'customer_email', 'assigned_to', 'assigned_to_name', 'company', 'first_response_at', 'resolved_at',
            'sla_breached', 'created_at', 'updated_at'
        ]
        read_only_fields = ['ticket_id', 'status', 'assigned_to', 'company', 'first_response_at',
                            'resolved_at', 'sla_breached', 'created_at', 'updated_at']

    def get_status_text(self, obj):
        return translate_status(obj.status)

    def get_priority_text(self, obj):
        return translate_priority(obj.priority)

    def validate_title(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Título é obrigatório')
        return value


class TicketUpdateSerializer(TicketSerializer):
    """Partial updates from the ticket screen, status and assignee included"""
    status = serializers.ChoiceField(choices=Ticket.STATUS_CHOICES, required=False)
    assigned_to_id = serializers.IntegerField(required=False, allow_null=True, write_only=True)

    class Meta(TicketSerializer.Meta):
        fields = TicketSerializer.Meta.fields + ['assigned_to_id']
        read_only_fields = ['ticket_id', 'assigned_to', 'company', 'first_response_at', 'resolved_at',
                            'created_at', 'updated_at']


class TicketReplySerializer(serializers.ModelSerializer):
    user_name = serializers.CharField(source='user.name', read_only=True, default=None)
    user_role = serializers.CharField(source='user.role', read_only=True, default=None)
    status = serializers.ChoiceField(choices=Ticket.STATUS_CHOICES, required=False, write_only=True)

    class Meta:
        model = TicketReply
        fields = ['id', 'ticket', 'user', 'user_name', 'user_role', 'message', 'is_internal', 'status', 'created_at']
        read_only_fields = ['ticket', 'user', 'created_at']

    def validate_message(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Mensagem é obrigatória')
        return value


class TicketStatusHistorySerializer(serializers.ModelSerializer):
    changed_by_name = serializers.CharField(source='changed_by.name', read_only=True, default=None)

    class Meta:
        model = TicketStatusHistory
        fields = ['id', 'old_status', 'new_status', 'changed_by', 'changed_by_name', 'created_at']
