import logging
from collections import defaultdict
from datetime import timedelta

from django.db.models import Avg
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from ticketwise.core.cache_utils import get_cached, set_cached, REPORTS_NAMESPACE, REPORTS_CACHE_TTL
from ticketwise.core.exceptions import ServiceError
from ticketwise.core.exports import csv_response, excel_response, EXPORT_FORMATS
from ticketwise.core.permissions import HasAnyRole
from ticketwise.core.roles import MANAGEMENT_ROLES, filter_by_company, scoped_company_id, is_admin
from ticketwise.core.utils import parse_date
from ticketwise.notifications.templating import translate_status, translate_priority
from ticketwise.satisfaction.models import SatisfactionSurvey
from ticketwise.tickets.models import Ticket
from ticketwise.tickets.serializers import TicketSerializer

logger = logging.getLogger('ticketwise.reports')

DEFAULT_PERIOD_DAYS = 30
RESOLVED_STATUSES = ('resolved', 'closed')

EXPORT_HEADERS = [
    'Ticket', 'Título', 'Status', 'Prioridade', 'Departamento', 'Solicitante', 'Email do Solicitante',
    'Atendente', 'Criado em', 'Primeira Resposta', 'Resolvido em'
]


def _report_period(request):
    """``date_from``/``date_to`` from the query string, last 30 days by default"""
    params = request.query_params
    today = timezone.localdate()
    try:
        date_from = parse_date(params['date_from']) if params.get('date_from') else today - timedelta(days=DEFAULT_PERIOD_DAYS)
        date_to = parse_date(params['date_to']) if params.get('date_to') else today
    except ValueError:
        raise ServiceError('Data inválida. Use o formato YYYY-MM-DD')
    if date_from > date_to:
        raise ServiceError('A data inicial deve ser anterior à data final')
    return date_from, date_to


def _report_tickets(request, date_from, date_to):
    params = request.query_params
    queryset = filter_by_company(
        Ticket.objects.select_related('department', 'customer', 'assigned_to'),
        request.user, params.get('company_id')
    ).filter(created_at__date__gte=date_from, created_at__date__lte=date_to)

    if params.get('status'):
        queryset = queryset.filter(status=params['status'])
    if params.get('priority'):
        queryset = queryset.filter(priority=params['priority'])
    if params.get('department_id'):
        queryset = queryset.filter(department_id=params['department_id'])
    return queryset.order_by('-created_at', '-id')


def _average_hours(deltas):
    deltas = [delta for delta in deltas if delta is not None]
    if not deltas:
        return None
    return round(sum(delta.total_seconds() for delta in deltas) / len(deltas) / 3600, 2)


def _resolution_time(ticket):
    if ticket.resolved_at is None:
        return None
    return ticket.resolved_at - ticket.created_at


def _first_response_time(ticket):
    if ticket.first_response_at is None:
        return None
    return ticket.first_response_at - ticket.created_at


def _cache_scope(request):
    company_id = scoped_company_id(request.user, request.query_params.get('company_id'))
    return {'company': company_id, 'all_companies': is_admin(request.user) and company_id is None}


def _cached_response(data):
    response = Response(data)
    response['Cache-Control'] = 'private, max-age=60'
    return response


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasAnyRole(*MANAGEMENT_ROLES)])
def tickets_report(request):
    """Ticket list of the period with status, priority and timing summary"""
    date_from, date_to = _report_period(request)
    params = request.query_params
    cached_data, cache_key = get_cached(
        REPORTS_NAMESPACE, 'tickets', date_from=date_from.isoformat(), date_to=date_to.isoformat(),
        status=params.get('status', ''), priority=params.get('priority', ''),
        department=params.get('department_id', ''), **_cache_scope(request)
    )
    if cached_data is not None:
        return _cached_response(cached_data)

    tickets = list(_report_tickets(request, date_from, date_to))
    by_status = defaultdict(int)
    by_priority = defaultdict(int)
    for ticket in tickets:
        by_status[ticket.status] += 1
        by_priority[ticket.priority] += 1

    data = {
        'period': {'from': date_from.isoformat(), 'to': date_to.isoformat()},
        'summary': {
            'total': len(tickets),
            'by_status': dict(by_status),
            'by_priority': dict(by_priority),
            'resolved': sum(by_status[value] for value in RESOLVED_STATUSES),
            'avg_resolution_hours': _average_hours(_resolution_time(ticket) for ticket in tickets),
            'avg_first_response_hours': _average_hours(_first_response_time(ticket) for ticket in tickets),
        },
        'tickets': TicketSerializer(tickets, many=True).data,
    }
    set_cached(cache_key, data, REPORTS_CACHE_TTL)
    return _cached_response(data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasAnyRole(*MANAGEMENT_ROLES)])
def tickets_export(request):
    """Download the ticket report as CSV or XLSX"""
    export_format = request.query_params.get('format', 'csv').lower()
    if export_format not in EXPORT_FORMATS:
        return Response({'error': f'Formato inválido: {export_format}. Use csv ou excel'},
                        status=status.HTTP_400_BAD_REQUEST)

    date_from, date_to = _report_period(request)
    rows = [
        [
            ticket.ticket_id, ticket.title, translate_status(ticket.status), translate_priority(ticket.priority),
            ticket.department.name if ticket.department_id else '',
            ticket.customer.name if ticket.customer_id else '', ticket.customer_email,
            ticket.assigned_to.name if ticket.assigned_to_id else '',
            ticket.created_at, ticket.first_response_at, ticket.resolved_at,
        ]
        for ticket in _report_tickets(request, date_from, date_to)
    ]
    logger.info(f"Ticket report export ({export_format}) with {len(rows)} rows by {request.user.username}")
    if export_format == 'excel':
        return excel_response('relatorio_tickets', 'Tickets', EXPORT_HEADERS, rows)
    return csv_response('relatorio_tickets', EXPORT_HEADERS, rows)


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasAnyRole(*MANAGEMENT_ROLES)])
def performance_report(request):
    """Resolution figures per official and per department"""
    date_from, date_to = _report_period(request)
    cached_data, cache_key = get_cached(
        REPORTS_NAMESPACE, 'performance', date_from=date_from.isoformat(), date_to=date_to.isoformat(),
        department=request.query_params.get('department_id', ''), **_cache_scope(request)
    )
    if cached_data is not None:
        return _cached_response(cached_data)

    officials = {}
    departments = {}
    for ticket in _report_tickets(request, date_from, date_to):
        resolved = ticket.status in RESOLVED_STATUSES
        if ticket.assigned_to_id:
            row = officials.setdefault(ticket.assigned_to_id, {
                'official_id': ticket.assigned_to_id, 'name': ticket.assigned_to.name,
                'assigned': 0, 'resolved': 0, '_first_response': [], '_resolution': [],
            })
            row['assigned'] += 1
            row['resolved'] += int(resolved)
            row['_first_response'].append(_first_response_time(ticket))
            row['_resolution'].append(_resolution_time(ticket))

        department_row = departments.setdefault(ticket.department_id, {
            'department_id': ticket.department_id,
            'name': ticket.department.name if ticket.department_id else 'Sem departamento',
            'total': 0, 'resolved': 0, '_resolution': [],
        })
        department_row['total'] += 1
        department_row['resolved'] += int(resolved)
        department_row['_resolution'].append(_resolution_time(ticket))

    official_rows = []
    for row in officials.values():
        official_rows.append({
            'official_id': row['official_id'],
            'name': row['name'],
            'assigned': row['assigned'],
            'resolved': row['resolved'],
            'resolution_rate': round(row['resolved'] / row['assigned'] * 100, 1),
            'avg_first_response_hours': _average_hours(row['_first_response']),
            'avg_resolution_hours': _average_hours(row['_resolution']),
        })
    department_rows = [
        {
            'department_id': row['department_id'],
            'name': row['name'],
            'total': row['total'],
            'resolved': row['resolved'],
            'avg_resolution_hours': _average_hours(row['_resolution']),
        }
        for row in departments.values()
    ]

    data = {
        'period': {'from': date_from.isoformat(), 'to': date_to.isoformat()},
        'officials': sorted(official_rows, key=lambda row: (-row['resolved'], row['name'])),
        'departments': sorted(department_rows, key=lambda row: row['name']),
    }
    set_cached(cache_key, data, REPORTS_CACHE_TTL)
    return _cached_response(data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasAnyRole(*MANAGEMENT_ROLES)])
def clients_report(request):
    """Ticket counts by status for each requester"""
    date_from, date_to = _report_period(request)
    clients = {}
    for ticket in _report_tickets(request, date_from, date_to):
        key = (ticket.customer_email or '').lower()
        row = clients.setdefault(key, {
            'customer_id': ticket.customer_id,
            'name': ticket.customer.name if ticket.customer_id else key,
            'email': key,
            'total': 0,
            'by_status': defaultdict(int),
        })
        row['total'] += 1
        row['by_status'][ticket.status] += 1

    rows = []
    for row in clients.values():
        row['by_status'] = dict(row['by_status'])
        row['resolved'] = sum(row['by_status'].get(value, 0) for value in RESOLVED_STATUSES)
        rows.append(row)
    rows.sort(key=lambda row: (-row['total'], row['name']))
    return Response({
        'period': {'from': date_from.isoformat(), 'to': date_to.isoformat()},
        'clients': rows,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasAnyRole(*MANAGEMENT_ROLES)])
def departments_report(request):
    """Ticket totals and average satisfaction per department"""
    date_from, date_to = _report_period(request)
    tickets = _report_tickets(request, date_from, date_to)

    departments = {}
    for ticket in tickets:
        row = departments.setdefault(ticket.department_id, {
            'department_id': ticket.department_id,
            'name': ticket.department.name if ticket.department_id else 'Sem departamento',
            'total': 0,
            'resolved': 0,
            'open': 0,
        })
        row['total'] += 1
        if ticket.status in RESOLVED_STATUSES:
            row['resolved'] += 1
        else:
            row['open'] += 1

    ratings = SatisfactionSurvey.objects.filter(
        ticket__in=tickets, status='responded', rating__isnull=False
    ).values('ticket__department_id').annotate(avg=Avg('rating'))
    averages = {row['ticket__department_id']: row['avg'] for row in ratings}
    for department_id, row in departments.items():
        average = averages.get(department_id)
        row['avg_satisfaction'] = round(average, 2) if average is not None else None

    return Response({
        'period': {'from': date_from.isoformat(), 'to': date_to.isoformat()},
        'departments': sorted(departments.values(), key=lambda row: row['name']),
    })
