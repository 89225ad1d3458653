"""
Email template rendering and the variable catalog offered to template authors.

Templates use ``{{group.key}}``, ``{{group.key.sub}}`` and ``{{key}}``
placeholders. A placeholder whose value is missing or empty is left in the
output exactly as written, so authors can spot typos in previews. Real sends
blank the documented variables that have no value.
"""
import re

from django.conf import settings
from django.utils import timezone

from ticketwise.core.roles import translate_role

DOTTED_PLACEHOLDER = re.compile(r'\{\{(\w+)\.(\w+)(?:\.(\w+))?\}\}')
SIMPLE_PLACEHOLDER = re.compile(r'\{\{(\w+)\}\}')

DATETIME_FORMAT = '%d/%m/%Y %H:%M'

TEMPLATE_TYPES = {
    'new_ticket': 'Novo Ticket',
    'ticket_assigned': 'Ticket Atribuído',
    'ticket_reply': 'Nova Resposta',
    'status_changed': 'Status Alterado',
    'ticket_resolved': 'Ticket Resolvido',
    'ticket_escalated': 'Ticket Escalado',
    'ticket_due_soon': 'Vencimento Próximo',
    'customer_registered': 'Cliente Registrado',
    'user_created': 'Usuário Criado',
    'system_maintenance': 'Manutenção do Sistema',
    'ticket_participant_added': 'Participante Adicionado',
    'ticket_participant_removed': 'Participante Removido',
    'satisfaction_survey': 'Pesquisa de Satisfação',
}

STATUS_LABELS = {
    'new': 'Novo',
    'ongoing': 'Em Andamento',
    'suspended': 'Suspenso',
    'waiting_customer': 'Aguardando Solicitante',
    'escalated': 'Escalado',
    'in_analysis': 'Em Análise',
    'pending_deployment': 'Aguardando Deploy',
    'reopened': 'Reaberto',
    'resolved': 'Resolvido',
    'closed': 'Encerrado',
}

PRIORITY_LABELS = {
    'low': 'Baixa',
    'medium': 'Média',
    'high': 'Alta',
    'critical': 'Crítica',
}


def _lookup(data, *keys):
    value = data
    for key in keys:
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


def _substitute(match, key, value, blank_known):
    if value:
        return str(value)
    if blank_known and key in KNOWN_VARIABLES:
        return ''
    return match.group(0)


def render_template(template, data, blank_known=False):
    """
    Substitute placeholders in ``template`` with values from ``data``.

    With ``blank_known`` a documented variable that has no value renders as
    an empty string instead of staying literal. Unknown placeholders are
    always kept as written.
    """
    if not isinstance(template, str):
        return ''
    data = data or {}

    def replace_dotted(match):
        keys = [key for key in match.groups() if key]
        value = _lookup(data, *keys)
        return _substitute(match, '.'.join(keys), value, blank_known)

    def replace_simple(match):
        return _substitute(match, match.group(1), data.get(match.group(1)), blank_known)

    rendered = DOTTED_PLACEHOLDER.sub(replace_dotted, template)
    return SIMPLE_PLACEHOLDER.sub(replace_simple, rendered)


def translate_status(status):
    if not status:
        return 'Não Definido'
    return STATUS_LABELS.get(status, status)


def translate_priority(priority):
    return PRIORITY_LABELS.get(priority, priority)


def _variables(*pairs):
    return [{'key': key, 'description': description} for key, description in pairs]


AVAILABLE_VARIABLES = {
    'ticket': {
        'label': 'Dados do Ticket',
        'variables': _variables(
            ('ticket.id', 'ID interno do ticket'),
            ('ticket.ticket_id', 'Número do ticket (ex: TKT-2024-001)'),
            ('ticket.title', 'Título do ticket'),
            ('ticket.description', 'Descrição completa do ticket'),
            ('ticket.status', 'Status atual (new, ongoing, resolved)'),
            ('ticket.status_text', 'Status traduzido (Novo, Em Andamento, Resolvido)'),
            ('ticket.priority', 'Prioridade (low, medium, high, critical)'),
            ('ticket.priority_text', 'Prioridade traduzida (Baixa, Média, Alta, Crítica)'),
            ('ticket.type', 'Tipo do ticket'),
            ('ticket.created_at', 'Data e hora de criação (formato ISO)'),
            ('ticket.created_at_formatted', 'Data e hora de criação formatada (dd/mm/aaaa hh:mm)'),
            ('ticket.updated_at', 'Data e hora da última atualização (formato ISO)'),
            ('ticket.updated_at_formatted', 'Data e hora da última atualização formatada'),
            ('ticket.first_response_at_formatted', 'Data da primeira resposta formatada'),
            ('ticket.resolved_at', 'Data e hora de resolução (formato ISO)'),
            ('ticket.resolved_at_formatted', 'Data e hora de resolução formatada'),
            ('ticket.link', 'Link direto para o ticket no sistema'),
            ('ticket.assigned_official_name', 'Nome do atendente responsável'),
        ),
    },
    'customer': {
        'label': 'Dados do Cliente',
        'variables': _variables(
            ('customer.name', 'Nome do cliente'),
            ('customer.email', 'Email do cliente'),
            ('customer.phone', 'Telefone do cliente'),
            ('customer.company', 'Empresa do cliente'),
        ),
    },
    'user': {
        'label': 'Dados do Usuário/Atendente',
        'variables': _variables(
            ('user.name', 'Nome do usuário'),
            ('user.email', 'Email do usuário'),
            ('user.role', 'Função do usuário (admin, support, etc.)'),
            ('user.role_text', 'Função traduzida (Administrador, Suporte, etc.)'),
        ),
    },
    'official': {
        'label': 'Dados do Atendente',
        'variables': _variables(
            ('official.name', 'Nome do atendente'),
            ('official.email', 'Email do atendente'),
            ('official.role', 'Função do atendente'),
            ('official.role_text', 'Função do atendente traduzida'),
        ),
    },
    'reply': {
        'label': 'Dados da Resposta',
        'variables': _variables(
            ('reply.message', 'Conteúdo da resposta'),
            ('reply.created_at', 'Data e hora da resposta (formato ISO)'),
            ('reply.created_at_formatted', 'Data e hora da resposta formatada'),
            ('reply.author_name', 'Nome de quem respondeu (compatibilidade)'),
            ('reply.user.name', 'Nome de quem respondeu'),
            ('reply.user.email', 'Email de quem respondeu'),
            ('reply.user.role', 'Função de quem respondeu'),
            ('reply.user.role_text', 'Função de quem respondeu traduzida'),
        ),
    },
    'status_change': {
        'label': 'Mudança de Status',
        'variables': _variables(
            ('status_change.old_status', 'Status anterior (traduzido)'),
            ('status_change.new_status', 'Novo status (traduzido)'),
            ('status_change.old_status_text', 'Status anterior traduzido'),
            ('status_change.new_status_text', 'Novo status traduzido'),
            ('status_change.created_at_formatted', 'Data da alteração formatada'),
            ('status_change.changed_by.name', 'Nome de quem alterou o status'),
            ('status_change.changed_by.email', 'Email de quem alterou o status'),
            ('status_change.changed_by.role', 'Função de quem alterou o status'),
            ('status_change.changed_by.role_text', 'Função de quem alterou traduzida'),
        ),
    },
    'survey': {
        'label': 'Pesquisa de Satisfação',
        'variables': _variables(
            ('survey.link', 'Link público para responder a pesquisa'),
            ('survey.expires_at_formatted', 'Data limite para responder'),
        ),
    },
    'system': {
        'label': 'Dados do Sistema',
        'variables': _variables(
            ('system.base_url', 'URL base do sistema (específica por domínio)'),
            ('system.company_name', 'Nome da empresa'),
            ('system.support_email', 'Email de suporte'),
            ('system.message', 'Mensagem do sistema (contexto específico)'),
            ('company_name', 'Nome da empresa (compatibilidade)'),
            ('support_email', 'Email de suporte (compatibilidade)'),
            ('base_url', 'URL base do sistema (compatibilidade)'),
        ),
    },
}

KNOWN_VARIABLES = {item['key'] for group in AVAILABLE_VARIABLES.values() for item in group['variables']}

_CUSTOMER_VARS = ['customer.name', 'customer.email', 'customer.company', 'customer.phone']
_USER_VARS = ['user.name', 'user.email', 'user.role', 'user.role_text']
_SYSTEM_VARS = ['system.base_url', 'system.company_name', 'system.support_email']

TYPE_VARIABLES = {
    'new_ticket': [
        'ticket.id', 'ticket.ticket_id', 'ticket.title', 'ticket.description',
        'ticket.priority', 'ticket.priority_text', 'ticket.status', 'ticket.status_text',
        'ticket.type', 'ticket.created_at', 'ticket.updated_at',
    ] + _CUSTOMER_VARS + _SYSTEM_VARS,
    'ticket_assigned': [
        'ticket.id', 'ticket.ticket_id', 'ticket.title', 'ticket.description',
        'ticket.priority', 'ticket.priority_text', 'ticket.status', 'ticket.status_text',
        'ticket.type', 'ticket.created_at',
    ] + _CUSTOMER_VARS + _USER_VARS + _SYSTEM_VARS,
    'ticket_reply': [
        'ticket.id', 'ticket.ticket_id', 'ticket.title', 'ticket.description',
        'ticket.status', 'ticket.status_text',
    ] + _CUSTOMER_VARS + [
        'reply.message', 'reply.created_at', 'reply.user.name', 'reply.user.email',
    ] + _SYSTEM_VARS,
    'status_changed': [
        'ticket.id', 'ticket.ticket_id', 'ticket.title', 'ticket.description',
        'ticket.status', 'ticket.status_text', 'ticket.priority', 'ticket.priority_text',
    ] + _CUSTOMER_VARS + [
        'status_change.old_status', 'status_change.new_status',
        'status_change.old_status_text', 'status_change.new_status_text',
        'status_change.changed_by.name', 'status_change.created_at',
    ] + _SYSTEM_VARS,
    'ticket_resolved': [
        'ticket.id', 'ticket.ticket_id', 'ticket.title', 'ticket.description',
        'ticket.resolved_at', 'ticket.resolved_at_formatted',
    ] + _CUSTOMER_VARS + _USER_VARS + _SYSTEM_VARS,
    'ticket_escalated': [
        'ticket.id', 'ticket.ticket_id', 'ticket.title', 'ticket.description',
        'ticket.priority', 'ticket.priority_text',
    ] + _CUSTOMER_VARS + _USER_VARS + _SYSTEM_VARS,
    'ticket_due_soon': [
        'ticket.id', 'ticket.ticket_id', 'ticket.title', 'ticket.description',
        'ticket.priority', 'ticket.priority_text',
    ] + _CUSTOMER_VARS + _USER_VARS + _SYSTEM_VARS,
    'customer_registered': _CUSTOMER_VARS + _SYSTEM_VARS,
    'user_created': _USER_VARS + _SYSTEM_VARS,
    'system_maintenance': list(_SYSTEM_VARS),
    'satisfaction_survey': [
        'ticket.ticket_id', 'ticket.title', 'ticket.resolved_at_formatted', 'ticket.assigned_official_name',
        'customer.name', 'customer.email', 'survey.link', 'survey.expires_at_formatted',
    ] + _SYSTEM_VARS,
}


def variables_for_type(template_type):
    return list(TYPE_VARIABLES.get(template_type, []))


def _sample_person(name, email, role='support'):
    return {'name': name, 'email': email, 'role': role, 'role_text': translate_role(role)}


def sample_data(template_type=None):
    """Preview dataset used to render templates in the settings screen"""
    support_user = _sample_person('Maria Santos', 'maria.santos@suporte.com')
    return {
        'ticket': {
            'id': 123,
            'ticket_id': 'TKT-2025-001',
            'title': 'Problema com login no sistema',
            'description': 'Usuário não consegue acessar o sistema após redefinir senha.',
            'status': 'ongoing',
            'status_text': 'Em Andamento',
            'priority': 'high',
            'priority_text': 'Alta',
            'type': 'Suporte Técnico',
            'created_at': '2025-01-31T10:30:00Z',
            'created_at_formatted': '31/01/2025 10:30',
            'updated_at': '2025-01-31T14:45:00Z',
            'updated_at_formatted': '31/01/2025 14:45',
            'first_response_at_formatted': '31/01/2025 11:15',
            'resolved_at': None,
            'resolved_at_formatted': '',
            'link': 'https://sistema.empresa.com/tickets/123',
            'assigned_official_name': 'Carlos Oliveira',
        },
        'customer': {
            'name': 'João Silva',
            'email': 'joao.silva@empresa.com',
            'phone': '(11) 99999-9999',
            'company': 'Empresa ABC Ltda',
        },
        'user': dict(support_user),
        'official': _sample_person('Carlos Oliveira', 'carlos.oliveira@suporte.com'),
        'reply': {
            'message': ('Olá! Recebemos seu chamado e já estamos trabalhando na solução. '
                        'Verificamos que o problema está relacionado ao cache do navegador.'),
            'created_at': '2025-01-31T14:45:00Z',
            'created_at_formatted': '31/01/2025 14:45',
            'author_name': 'Maria Santos',
            'user': dict(support_user),
        },
        'survey': {
            'link': 'https://sistema.empresa.com/satisfaction/exemplo-de-token',
            'expires_at_formatted': '07/02/2025 10:30',
        },
        'status_change': {
            'old_status': 'Novo',
            'new_status': 'Em Andamento',
            'old_status_text': 'Novo',
            'new_status_text': 'Em Andamento',
            'created_at_formatted': '31/01/2025 15:00',
            'changed_by': dict(support_user),
        },
        'system': {
            'base_url': 'https://sistema.empresa.com',
            'company_name': 'Sistema de Tickets',
            'support_email': 'suporte@empresa.com',
            'message': 'Mensagem específica do contexto',
        },
        'company_name': 'Sistema de Tickets',
        'support_email': 'suporte@empresa.com',
        'base_url': 'https://sistema.empresa.com',
    }


def format_datetime(value):
    if not value:
        return ''
    if timezone.is_aware(value):
        value = timezone.localtime(value)
    return value.strftime(DATETIME_FORMAT)


def _isoformat(value):
    return value.isoformat() if value else None


def person_context(user):
    if user is None:
        return {}
    return {
        'name': getattr(user, 'name', '') or getattr(user, 'username', ''),
        'email': user.email,
        'role': user.role,
        'role_text': translate_role(user.role),
    }


def system_context(company=None, message=None):
    """``system`` group plus the top-level compatibility keys"""
    system = {
        'base_url': settings.TICKETWISE_BASE_URL,
        'company_name': company.name if company else 'Ticket Wise',
        'support_email': (company.email if company and company.email else settings.TICKETWISE_SUPPORT_EMAIL),
    }
    if message:
        system['message'] = message
    return {
        'system': system,
        'company_name': system['company_name'],
        'support_email': system['support_email'],
        'base_url': system['base_url'],
    }


def build_ticket_context(ticket, user=None, reply=None, status_change=None, message=None):
    """
    Real-data context for sending a ticket notification.

    ``status_change`` is a TicketStatusHistory row, ``reply`` a TicketReply.
    """
    base_url = settings.TICKETWISE_BASE_URL.rstrip('/')
    context = {
        'ticket': {
            'id': ticket.id,
            'ticket_id': ticket.ticket_id,
            'title': ticket.title,
            'description': ticket.description,
            'status': ticket.status,
            'status_text': translate_status(ticket.status),
            'priority': ticket.priority,
            'priority_text': translate_priority(ticket.priority),
            'type': ticket.type,
            'created_at': _isoformat(ticket.created_at),
            'created_at_formatted': format_datetime(ticket.created_at),
            'updated_at': _isoformat(ticket.updated_at),
            'updated_at_formatted': format_datetime(ticket.updated_at),
            'first_response_at_formatted': format_datetime(ticket.first_response_at),
            'resolved_at': _isoformat(ticket.resolved_at),
            'resolved_at_formatted': format_datetime(ticket.resolved_at),
            'link': f"{base_url}/tickets/{ticket.id}",
            'assigned_official_name': ticket.assigned_to.name if ticket.assigned_to_id else '',
        },
        'customer': {
            'name': ticket.customer.name if ticket.customer_id else '',
            'email': ticket.customer_email or (ticket.customer.email if ticket.customer_id else ''),
            'phone': ticket.customer.phone if ticket.customer_id else '',
            'company': ticket.customer.company_name if ticket.customer_id else '',
        },
    }

    if user is not None:
        context['user'] = person_context(user)
    if ticket.assigned_to_id:
        official = ticket.assigned_to
        context['official'] = {
            'name': official.name,
            'email': official.email,
            'role': official.user.role if official.user_id else 'support',
            'role_text': translate_role(official.user.role if official.user_id else 'support'),
        }
    if reply is not None:
        author = person_context(reply.user)
        context['reply'] = {
            'message': reply.message,
            'created_at': _isoformat(reply.created_at),
            'created_at_formatted': format_datetime(reply.created_at),
            'author_name': author.get('name', ''),
            'user': author,
        }
    if status_change is not None:
        old_text = translate_status(status_change.old_status)
        new_text = translate_status(status_change.new_status)
        context['status_change'] = {
            'old_status': old_text,
            'new_status': new_text,
            'old_status_text': old_text,
            'new_status_text': new_text,
            'created_at': _isoformat(status_change.created_at),
            'created_at_formatted': format_datetime(status_change.created_at),
            'changed_by': person_context(status_change.changed_by),
        }

    context.update(system_context(ticket.company, message))
    return context


def survey_link(survey):
    """Public answer page, served from the company's own domain when it has one"""
    domain = survey.company.domain if survey.company_id and survey.company.domain else ''
    base_url = f"https://{domain}" if domain else settings.TICKETWISE_BASE_URL.rstrip('/')
    return f"{base_url}/satisfaction/{survey.survey_token}"


def build_survey_context(survey):
    context = build_ticket_context(survey.ticket)
    context['customer']['email'] = survey.customer_email
    context['survey'] = {
        'link': survey_link(survey),
        'expires_at_formatted': format_datetime(survey.expires_at),
    }
    return context
