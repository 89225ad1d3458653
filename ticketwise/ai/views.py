import logging
from django.contrib.auth import get_user_model
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from ticketwise.core.permissions import HasAnyRole
from ticketwise.core.roles import (
    AI_ROLES, COMPANY_SETTINGS_ROLES, filter_by_company, scoped_company_id, user_can_access_company, is_admin
)
from ticketwise.core.utils import create_audit_log
from ticketwise.tickets.models import Ticket
from .models import AiConfiguration, AiSuggestion
from .serializers import (
    AiSuggestionSerializer, GenerateSuggestionSerializer, SuggestionFeedbackSerializer, AiConfigurationSerializer,
    PriorityAnalysisSerializer
)
from .services import generate_suggestion, record_feedback, clear_other_defaults, analyze_ticket_priority

logger = logging.getLogger('ticketwise.ai')
User = get_user_model()


@api_view(['POST'])
@permission_classes([IsAuthenticated, HasAnyRole(*AI_ROLES)])
def ai_suggestion_generate(request):
    """Generate a resolution suggestion for a ticket"""
    serializer = GenerateSuggestionSerializer(data=request.data)
    if not serializer.is_valid():
        return Response({'error': 'Dados inválidos', 'details': serializer.errors},
                        status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    ticket = get_object_or_404(Ticket.objects.select_related('department', 'company'), pk=data['ticket_id'])
    if not user_can_access_company(request.user, ticket.company_id):
        return Response({'error': 'Acesso negado'}, status=status.HTTP_403_FORBIDDEN)

    user = request.user
    if data.get('user_id') and data['user_id'] != request.user.id:
        if not is_admin(request.user):
            return Response({'error': 'Acesso negado'}, status=status.HTTP_403_FORBIDDEN)
        user = get_object_or_404(User.objects.select_related('company'), pk=data['user_id'])

    suggestion = generate_suggestion(ticket, user, data['department_id'])
    create_audit_log(request, 'ai_suggestion', 'AiSuggestion', suggestion.id, object_name=ticket.ticket_id,
                     changes={'confidence': float(suggestion.confidence_score)})
    return Response({'success': True, 'data': AiSuggestionSerializer(suggestion).data})


@api_view(['POST'])
@permission_classes([IsAuthenticated, HasAnyRole(*AI_ROLES)])
def ai_suggestion_feedback(request, pk):
    """Rate a suggestion from 1 to 5"""
    suggestion = get_object_or_404(AiSuggestion.objects.select_related('ticket'), pk=pk)
    if not user_can_access_company(request.user, suggestion.ticket.company_id):
        return Response({'error': 'Acesso negado'}, status=status.HTTP_403_FORBIDDEN)

    serializer = SuggestionFeedbackSerializer(data=request.data)
    if serializer.is_valid():
        record_feedback(suggestion, serializer.validated_data['rating'], serializer.validated_data['comment'],
                        request.user)
        return Response({'success': True, 'message': 'Feedback registrado com sucesso'})
    return Response({'error': 'Dados inválidos', 'details': serializer.errors}, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasAnyRole(*AI_ROLES)])
def ai_suggestion_history(request, ticket_id):
    """Suggestions of a ticket, newest first"""
    ticket = get_object_or_404(Ticket, pk=ticket_id)
    if not user_can_access_company(request.user, ticket.company_id):
        return Response({'error': 'Acesso negado'}, status=status.HTTP_403_FORBIDDEN)
    suggestions = ticket.ai_suggestions.select_related('ticket').order_by('-created_at', '-id')
    return Response({'success': True, 'data': AiSuggestionSerializer(suggestions, many=True).data})


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, HasAnyRole(*COMPANY_SETTINGS_ROLES)])
def ai_configuration_list_create(request):
    if request.method == 'GET':
        configs = filter_by_company(
            AiConfiguration.objects.select_related('department'), request.user, request.query_params.get('company_id')
        )
        analysis_type = request.query_params.get('analysis_type')
        if analysis_type:
            configs = configs.filter(analysis_type=analysis_type)
        return Response(AiConfigurationSerializer(configs, many=True).data)
    else:
        company_id = scoped_company_id(request.user, request.data.get('company_id'))
        serializer = AiConfigurationSerializer(data=request.data, context={'company_id': company_id})
        if serializer.is_valid():
            config = serializer.save(company_id=company_id)
            if config.is_default:
                clear_other_defaults(config)
            logger.info(f"AI configuration {config.id} created for company {company_id}")
            create_audit_log(request, 'create', 'AiConfiguration', config.id, object_name=config.name)
            return Response(AiConfigurationSerializer(config).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, HasAnyRole(*COMPANY_SETTINGS_ROLES)])
def ai_configuration_detail(request, pk):
    config = get_object_or_404(AiConfiguration, pk=pk)
    if config.company_id is None and not is_admin(request.user):
        if request.method != 'GET':
            return Response({'error': 'Acesso negado'}, status=status.HTTP_403_FORBIDDEN)
    elif not user_can_access_company(request.user, config.company_id):
        return Response({'error': 'Acesso negado'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'GET':
        return Response(AiConfigurationSerializer(config).data)
    elif request.method in ['PUT', 'PATCH']:
        serializer = AiConfigurationSerializer(config, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            config = serializer.save()
            if config.is_default:
                clear_other_defaults(config)
            create_audit_log(request, 'update', 'AiConfiguration', config.id, object_name=config.name,
                             changes={k: str(v) for k, v in request.data.items()})
            return Response(AiConfigurationSerializer(config).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        name = config.name
        config.delete()
        create_audit_log(request, 'delete', 'AiConfiguration', pk, object_name=name)
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, HasAnyRole(*AI_ROLES)])
def ai_priority_analysis(request):
    """Suggest a priority for a ticket, optionally applying it"""
    serializer = PriorityAnalysisSerializer(data=request.data)
    if not serializer.is_valid():
        return Response({'error': 'Dados inválidos', 'details': serializer.errors},
                        status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    ticket = get_object_or_404(Ticket.objects.select_related('department', 'company'), pk=data['ticket_id'])
    if not user_can_access_company(request.user, ticket.company_id):
        return Response({'error': 'Acesso negado'}, status=status.HTTP_403_FORBIDDEN)

    result = analyze_ticket_priority(ticket, request.user)
    applied = False
    if data['apply'] and not result['used_fallback'] and result['priority'] != ticket.priority:
        old_priority = ticket.priority
        ticket.priority = result['priority']
        ticket.save(update_fields=['priority', 'updated_at'])
        applied = True
        create_audit_log(request, 'update', 'Ticket', ticket.id, object_name=ticket.ticket_id,
                         changes={'priority': f"{old_priority} -> {ticket.priority}", 'source': 'ai'})
    return Response({'success': True, 'data': dict(result, applied=applied)})
