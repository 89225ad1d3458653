import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import AllowAny, IsAuthenticated
from django.utils import timezone

from ticketwise.core.permissions import IsStaffRole
from ticketwise.core.roles import filter_by_company
from ticketwise.core.utils import create_audit_log, parse_date
from .models import SatisfactionSurvey
from .serializers import SatisfactionSurveySerializer, SurveyResponseSerializer
from .services import (
    SurveyAlreadyRespondedError, build_dashboard, get_theme_colors, load_open_survey, submit_response
)

logger = logging.getLogger('ticketwise.satisfaction')


def _already_responded(survey):
    return Response({
        'error': 'Esta pesquisa já foi respondida',
        'already_responded': True,
        'response': {
            'rating': survey.rating,
            'comments': survey.comments,
            'responded_at': survey.responded_at,
        },
    }, status=status.HTTP_409_CONFLICT)


@api_view(['GET', 'POST'])
@permission_classes([AllowAny])
def survey_by_token(request, token):
    """Public survey page: read the survey or submit the answer"""
    try:
        survey = load_open_survey(token)
    except SurveyAlreadyRespondedError as e:
        return _already_responded(e.survey)

    if request.method == 'GET':
        company = survey.company
        domain = company.domain if company else ''
        return Response({
            'survey': {
                'id': survey.id,
                'ticket_id': survey.ticket_id,
                'customer_email': survey.customer_email,
                'sent_at': survey.sent_at,
                'expires_at': survey.expires_at,
                'status': survey.status,
            },
            'ticket': {
                'ticket_id': survey.ticket.ticket_id,
                'title': survey.ticket.title,
            },
            'company': {
                'name': company.name if company else 'Ticket Wise',
                'domain': domain,
                'colors': get_theme_colors(domain),
            },
        })
    else:
        serializer = SurveyResponseSerializer(data=request.data)
        if serializer.is_valid():
            try:
                survey = submit_response(token, serializer.validated_data['rating'],
                                         serializer.validated_data['comments'])
            except SurveyAlreadyRespondedError as e:
                return _already_responded(e.survey)
            create_audit_log(request, 'survey_response', 'SatisfactionSurvey', survey.id,
                             changes={'rating': survey.rating}, object_name=survey.ticket.ticket_id,
                             company=survey.company)
            return Response({
                'success': True,
                'message': 'Resposta enviada com sucesso!',
                'survey': {
                    'id': survey.id,
                    'rating': survey.rating,
                    'comments': survey.comments,
                    'responded_at': survey.responded_at,
                },
            })
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def pending_surveys(request):
    """Open surveys addressed to the current user's email"""
    surveys = SatisfactionSurvey.objects.select_related('ticket').filter(
        customer_email__iexact=request.user.email,
        status='sent',
        expires_at__gt=timezone.now(),
    ).order_by('-sent_at')
    return Response(SatisfactionSurveySerializer(surveys, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def satisfaction_dashboard(request):
    """Survey statistics for the current company scope"""
    params = request.query_params
    queryset = filter_by_company(SatisfactionSurvey.objects.all(), request.user, params.get('company_id'))

    try:
        if params.get('date_from'):
            queryset = queryset.filter(sent_at__date__gte=parse_date(params['date_from']))
        if params.get('date_to'):
            queryset = queryset.filter(sent_at__date__lte=parse_date(params['date_to']))
    except ValueError:
        return Response({'error': 'Data inválida, use o formato YYYY-MM-DD'}, status=status.HTTP_400_BAD_REQUEST)

    department_id = params.get('department_id')
    if department_id:
        queryset = queryset.filter(ticket__department_id=department_id)

    return Response(build_dashboard(queryset))
