import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.core.exceptions import ValidationError
from django.core.validators import validate_email
from django.db import transaction
from django.db.models import Q
from django.shortcuts import get_object_or_404

from ticketwise.core.exceptions import ServiceError
from ticketwise.core.permissions import HasAnyRole
from ticketwise.core.roles import COMPANY_SETTINGS_ROLES, is_admin, scoped_company_id, user_can_access_company
from ticketwise.core.utils import create_audit_log
from .models import EmailConfig, EmailTemplate, UserNotificationSettings
from .serializers import (
    EmailConfigSerializer, EmailTemplateSerializer, TemplatePreviewSerializer, UserNotificationSettingsSerializer
)
from .services import send_test_email
from .templating import (
    AVAILABLE_VARIABLES, TEMPLATE_TYPES, render_template, sample_data, variables_for_type
)

logger = logging.getLogger('ticketwise.notifications')

EMAIL_CONFIG_DEFAULTS = {
    'id': None,
    'company': None,
    'provider': 'smtp',
    'host': '',
    'port': 587,
    'username': '',
    'password': '',
    'api_key': '',
    'from_email': '',
    'from_name': '',
    'use_tls': True,
    'updated_at': None,
}


def _config_company_id(request):
    requested = request.data.get('company_id') if request.method != 'GET' else None
    return scoped_company_id(request.user, requested or request.query_params.get('company_id'))


def _render_preview(template_type, subject, html, text):
    data = sample_data(template_type)
    return {
        'type': template_type,
        'subject': render_template(subject, data),
        'html': render_template(html, data),
        'text': render_template(text, data),
        'variables': variables_for_type(template_type),
    }


# Email configuration views
@api_view(['GET', 'POST', 'PUT'])
@permission_classes([IsAuthenticated, HasAnyRole(*COMPANY_SETTINGS_ROLES)])
def email_config(request):
    """Read or upsert the email provider configuration of a company"""
    company_id = _config_company_id(request)
    config = EmailConfig.objects.filter(company_id=company_id).first()

    if request.method == 'GET':
        if config is None:
            return Response(dict(EMAIL_CONFIG_DEFAULTS, company=company_id))
        return Response(EmailConfigSerializer(config).data)
    else:
        serializer = EmailConfigSerializer(config, data=request.data, partial=config is not None)
        if serializer.is_valid():
            config = serializer.save(company_id=company_id)
            logger.info(f"Email config ({config.provider}) saved for company {company_id} by {request.user.username}")
            create_audit_log(request, 'settings_update', 'EmailConfig', config.id,
                             changes={'provider': config.provider, 'from_email': config.from_email})
            return Response(EmailConfigSerializer(config).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['POST'])
@permission_classes([IsAuthenticated, HasAnyRole(*COMPANY_SETTINGS_ROLES)])
def email_config_test(request):
    """Send a test message through the configured provider"""
    to_email = (request.data.get('email') or '').strip()
    try:
        validate_email(to_email)
    except ValidationError:
        return Response({'success': False, 'message': 'Email de destino inválido'}, status=status.HTTP_400_BAD_REQUEST)

    try:
        send_test_email(_config_company_id(request), to_email)
    except ServiceError as e:
        return Response({'success': False, 'message': e.message}, status=status.HTTP_400_BAD_REQUEST)
    return Response({'success': True, 'message': f'Email de teste enviado para {to_email}'})


# Email template views
def _template_queryset(request):
    user = request.user
    queryset = EmailTemplate.objects.all()
    company_id = scoped_company_id(user, request.query_params.get('company_id'))
    if company_id is None:
        if not is_admin(user):
            queryset = queryset.filter(company__isnull=True)
    elif is_admin(user):
        queryset = queryset.filter(Q(company_id=company_id) | Q(company__isnull=True))
    else:
        queryset = queryset.filter(company_id=company_id)
    return queryset


def _clear_other_defaults(template):
    if template.is_default:
        EmailTemplate.objects.filter(type=template.type, company_id=template.company_id, is_default=True) \
            .exclude(pk=template.pk).update(is_default=False)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, HasAnyRole(*COMPANY_SETTINGS_ROLES)])
def email_template_list_create(request):
    """List email templates or create a new one"""
    if request.method == 'GET':
        queryset = _template_queryset(request)
        template_type = request.query_params.get('type')
        if template_type:
            queryset = queryset.filter(type=template_type)
        serializer = EmailTemplateSerializer(queryset.order_by('type', 'name'), many=True)
        return Response(serializer.data)
    else:
        serializer = EmailTemplateSerializer(data=request.data)
        if serializer.is_valid():
            company_id = scoped_company_id(request.user, request.data.get('company_id'))
            with transaction.atomic():
                template = serializer.save(company_id=company_id, created_by=request.user, updated_by=request.user)
                _clear_other_defaults(template)
            create_audit_log(request, 'create', 'EmailTemplate', template.id, object_name=template.name)
            return Response(EmailTemplateSerializer(template).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, HasAnyRole(*COMPANY_SETTINGS_ROLES)])
def email_template_detail(request, pk):
    """Retrieve, update or delete an email template"""
    template = get_object_or_404(EmailTemplate, pk=pk)
    if template.company_id is None:
        # Global templates are readable by everyone here, writable by admins
        if request.method != 'GET' and not is_admin(request.user):
            return Response({'error': 'Acesso negado'}, status=status.HTTP_403_FORBIDDEN)
    elif not user_can_access_company(request.user, template.company_id):
        return Response({'error': 'Acesso negado'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'GET':
        return Response(EmailTemplateSerializer(template).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = EmailTemplateSerializer(template, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            with transaction.atomic():
                template = serializer.save(updated_by=request.user)
                _clear_other_defaults(template)
            create_audit_log(request, 'update', 'EmailTemplate', template.id, object_name=template.name)
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        create_audit_log(request, 'delete', 'EmailTemplate', template.id, object_name=template.name)
        template.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, HasAnyRole(*COMPANY_SETTINGS_ROLES)])
def email_template_preview(request):
    """Render unsaved template text with the sample dataset"""
    serializer = TemplatePreviewSerializer(data=request.data)
    if serializer.is_valid():
        data = serializer.validated_data
        return Response(_render_preview(
            data.get('type'), data['subject_template'], data['html_template'], data['text_template']
        ))
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['POST'])
@permission_classes([IsAuthenticated, HasAnyRole(*COMPANY_SETTINGS_ROLES)])
def email_template_preview_stored(request, pk):
    """Render a stored template with the sample dataset"""
    template = get_object_or_404(EmailTemplate, pk=pk)
    if template.company_id is not None and not user_can_access_company(request.user, template.company_id):
        return Response({'error': 'Acesso negado'}, status=status.HTTP_403_FORBIDDEN)
    return Response(_render_preview(
        template.type, template.subject_template, template.html_template, template.text_template
    ))


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasAnyRole(*COMPANY_SETTINGS_ROLES)])
def email_template_variables(request):
    """Variable catalog plus the variables relevant to one template type"""
    template_type = request.query_params.get('type', '')
    return Response({
        'catalog': AVAILABLE_VARIABLES,
        'type_variables': variables_for_type(template_type),
        'types': [{'value': value, 'label': label} for value, label in TEMPLATE_TYPES.items()],
    })


# Notification preference views
@api_view(['GET', 'PUT', 'PATCH'])
@permission_classes([IsAuthenticated])
def notification_settings(request):
    """Current user's notification preferences"""
    prefs, created = UserNotificationSettings.objects.get_or_create(user=request.user)
    if created:
        logger.debug(f"Default notification settings created for user {request.user.id}")

    if request.method == 'GET':
        return Response(UserNotificationSettingsSerializer(prefs).data)
    else:
        serializer = UserNotificationSettingsSerializer(prefs, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            create_audit_log(request, 'settings_update', 'UserNotificationSettings', prefs.id,
                             changes=serializer.validated_data)
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
