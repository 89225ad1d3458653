import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import Q
from django.shortcuts import get_object_or_404

from ticketwise.core.roles import filter_by_company, is_admin, user_can_access_company
from ticketwise.core.utils import create_audit_log, paginate
from ticketwise.organization.models import Official
from ticketwise.parties.models import Customer
from .models import Ticket
from .serializers import (
    TicketSerializer, TicketUpdateSerializer, TicketReplySerializer, TicketStatusHistorySerializer
)
from .services import create_ticket, change_status, assign_ticket, add_reply

logger = logging.getLogger('ticketwise.tickets')


def _ticket_queryset():
    return Ticket.objects.select_related('department', 'customer', 'assigned_to', 'company')


def _visible_tickets(request):
    user = request.user
    if user.role == 'customer':
        return _ticket_queryset().filter(customer_email__iexact=user.email)
    return filter_by_company(_ticket_queryset(), user, request.query_params.get('company_id'))


def _can_view(user, ticket):
    if user.role == 'customer':
        return ticket.customer_email.lower() == user.email.lower()
    return user_can_access_company(user, ticket.company_id)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def ticket_list_create(request):
    """List tickets visible to the user or open a new ticket"""
    if request.method == 'GET':
        params = request.query_params
        queryset = _visible_tickets(request)

        if params.get('status'):
            queryset = queryset.filter(status=params['status'])
        if params.get('priority'):
            queryset = queryset.filter(priority=params['priority'])
        if params.get('department_id'):
            queryset = queryset.filter(department_id=params['department_id'])
        if params.get('assigned_to_id'):
            queryset = queryset.filter(assigned_to_id=params['assigned_to_id'])
        search = params.get('search', '').strip()
        if search:
            queryset = queryset.filter(
                Q(ticket_id__icontains=search) |
                Q(title__icontains=search) |
                Q(description__icontains=search) |
                Q(customer_email__icontains=search)
            )
        queryset = queryset.order_by('-created_at', '-id')
        return Response(paginate(queryset, request, lambda objs: TicketSerializer(objs, many=True).data))
    else:
        serializer = TicketSerializer(data=request.data)
        if serializer.is_valid():
            user = request.user
            data = serializer.validated_data
            if user.role == 'customer':
                data['customer_email'] = user.email
                data['customer'] = Customer.objects.filter(email__iexact=user.email).first()
                company_id = user.company_id
            else:
                if data.get('customer') is not None and not data.get('customer_email'):
                    data['customer_email'] = data['customer'].email
                if not data.get('customer_email'):
                    return Response({'customer_email': ['Email do solicitante é obrigatório']},
                                    status=status.HTTP_400_BAD_REQUEST)
                if data.get('customer') is None:
                    data['customer'] = Customer.objects.filter(email__iexact=data['customer_email']).first()
                company_id = request.data.get('company_id') if is_admin(user) else None
                company_id = company_id or user.company_id

            ticket = create_ticket(company_id=company_id, **data)
            create_audit_log(request, 'create', 'Ticket', ticket.id, object_name=ticket.ticket_id)
            return Response(TicketSerializer(ticket).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
def ticket_detail(request, pk):
    """Retrieve a ticket or apply a partial update"""
    ticket = get_object_or_404(_ticket_queryset(), pk=pk)
    if not _can_view(request.user, ticket):
        return Response({'error': 'Acesso negado'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'GET':
        data = TicketSerializer(ticket).data
        data['status_history'] = TicketStatusHistorySerializer(
            ticket.status_history.select_related('changed_by'), many=True
        ).data
        return Response(data)
    else:
        if request.user.role == 'customer':
            return Response({'error': 'Acesso negado'}, status=status.HTTP_403_FORBIDDEN)

        serializer = TicketUpdateSerializer(ticket, data=request.data, partial=True)
        if serializer.is_valid():
            data = serializer.validated_data
            new_status = data.pop('status', None)
            assign = 'assigned_to_id' in data
            assigned_to_id = data.pop('assigned_to_id', None)

            official = None
            if assign and assigned_to_id is not None:
                official = Official.objects.filter(pk=assigned_to_id, company_id=ticket.company_id).first()
                if official is None:
                    return Response({'assigned_to_id': ['Atendente não encontrado']}, status=status.HTTP_400_BAD_REQUEST)

            if data:
                serializer.save()
            if assign:
                assign_ticket(ticket, official, request.user)
            if new_status:
                change_status(ticket, new_status, request.user)

            create_audit_log(request, 'update', 'Ticket', ticket.id, object_name=ticket.ticket_id,
                             changes={k: str(v) for k, v in request.data.items()})
            ticket.refresh_from_db()
            return Response(TicketSerializer(ticket).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def ticket_replies(request, pk):
    """List the replies of a ticket or add one"""
    ticket = get_object_or_404(_ticket_queryset(), pk=pk)
    if not _can_view(request.user, ticket):
        return Response({'error': 'Acesso negado'}, status=status.HTTP_403_FORBIDDEN)

    is_customer = request.user.role == 'customer'
    if request.method == 'GET':
        replies = ticket.replies.select_related('user')
        if is_customer:
            replies = replies.filter(is_internal=False)
        return Response(TicketReplySerializer(replies, many=True).data)
    else:
        serializer = TicketReplySerializer(data=request.data)
        if serializer.is_valid():
            data = serializer.validated_data
            new_status = data.get('status')
            if is_customer and new_status:
                return Response({'error': 'Acesso negado'}, status=status.HTTP_403_FORBIDDEN)
            reply = add_reply(
                ticket, request.user, data['message'],
                is_internal=data.get('is_internal', False) and not is_customer,
                new_status=new_status,
            )
            return Response(TicketReplySerializer(reply).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
