"""
AI-assisted resolution suggestions.

A suggestion combines resolved tickets that look like the current one
(keyword and classification scoring) with an answer from the configured
provider. When the provider can not be reached, or has no token, the
suggestion falls back to a generic plan based on the similar tickets.

Priority analysis asks the provider to classify a ticket, retrying failed
calls, and keeps the current priority when no answer can be used.
"""
import json
import logging
import re
import time

import requests
from django.db.models import Q

from ticketwise.core.exceptions import ServiceError, PermissionDeniedError
from ticketwise.core.models import SystemSetting
from ticketwise.core.roles import AI_ROLES
from ticketwise.tickets.models import Ticket, TicketReply
from .models import AiConfiguration, AiSuggestion, AiSuggestionLog

logger = logging.getLogger('ticketwise.ai')

TECHNICAL_KEYWORDS = [
    'vpn', 'rede', 'internet', 'wifi', 'conexão', 'ip', 'dns', 'firewall',
    'impressora', 'scanner', 'monitor', 'teclado', 'mouse', 'notebook', 'desktop',
    'windows', 'office', 'outlook', 'teams', 'excel', 'word', 'powerpoint',
    'email', 'senha', 'login', 'acesso', 'permissão', 'usuário', 'conta',
    'backup', 'arquivo', 'pasta', 'compartilhamento', 'servidor', 'banco',
    'software', 'programa', 'aplicativo', 'instalação', 'atualização',
    'licença', 'antivirus', 'segurança', 'certificado', 'ssl',
]

STOPWORDS = {
    'o', 'a', 'os', 'as', 'um', 'uma', 'de', 'da', 'do', 'das', 'dos',
    'em', 'na', 'no', 'nas', 'nos', 'para', 'por', 'com', 'sem',
    'que', 'quando', 'onde', 'como', 'porque', 'então', 'mas', 'e', 'ou',
    'não', 'sim', 'também', 'ainda', 'já', 'sempre', 'nunca', 'muito',
    'pouco', 'mais', 'menos', 'bem', 'mal', 'hoje', 'ontem', 'amanhã',
    'ser', 'estar', 'ter', 'fazer', 'ir', 'vir', 'dar', 'ver', 'saber',
    'dizer', 'poder', 'querer', 'ficar', 'passar', 'chegar',
    'favor', 'preciso', 'gostaria', 'obrigado', 'obrigada', 'bom', 'boa',
    'dia', 'tarde', 'noite', 'manhã', 'pessoal', 'galera', 'time',
}

# Too common in ticket text to say anything about similarity
GENERIC_WORDS = {'sistema', 'problema', 'erro', 'ticket', 'solicitação', 'chamado'}

MAX_GENERAL_KEYWORDS = 5
CANDIDATES_LIMIT = 50
SIMILAR_TICKETS_LIMIT = 10

TECHNICAL_TITLE_SCORE = 100
TECHNICAL_DESCRIPTION_SCORE = 80
INCIDENT_TYPE_SCORE = 50
CATEGORY_SCORE = 30
GENERAL_TITLE_SCORE = 5
GENERAL_DESCRIPTION_SCORE = 2
MIN_SCORE_TECHNICAL = 80
MIN_SCORE_GENERAL = 50

DEFAULT_CONFIDENCE = 75
UNPARSED_CONFIDENCE = 60
MAX_PARSED_STEPS = 5

GENERIC_STEPS = [
    '1. Analise o problema específico descrito',
    '2. Aplique as soluções baseadas nos casos similares',
    '3. Teste a solução antes de finalizar',
]
FALLBACK_STEPS = [
    '1. Analise o problema específico descrito no ticket',
    '2. Consulte os casos similares para referência',
    '3. Aplique a solução mais adequada',
]
DEFAULT_ESTIMATED_TIME = 'Varia conforme complexidade'

DEFAULT_SYSTEM_PROMPT = (
    'Você é um assistente especializado em suporte técnico. Analise o ticket e casos similares '
    'fornecidos e responda EXCLUSIVAMENTE com JSON válido no formato solicitado.'
)

PROVIDER_ENDPOINTS = {
    'openai': 'https://api.openai.com/v1/chat/completions',
    'anthropic': 'https://api.anthropic.com/v1/messages',
    'google': 'https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent',
}
ANTHROPIC_VERSION = '2023-06-01'

JSON_BLOCK = re.compile(r'\{.*\}', re.DOTALL)
NUMBERED_LINE = re.compile(r'\d+\.\s*[^\n]+')


class AiProviderError(ServiceError):
    pass


def extract_keywords(text):
    """
    Split ticket text into technical and general keywords.

    Returns ``(technical, general)``, both deduplicated in order of first
    appearance. General keywords are capped at five.
    """
    words = re.sub(r'[^\w\s]', ' ', (text or '').lower()).split()
    words = [word for word in words if len(word) > 2 and word not in STOPWORDS]

    technical = [word for word in words if word in TECHNICAL_KEYWORDS]
    general = [word for word in words if word not in TECHNICAL_KEYWORDS and word not in GENERIC_WORDS]
    return list(dict.fromkeys(technical)), list(dict.fromkeys(general))[:MAX_GENERAL_KEYWORDS]


def score_ticket(candidate, ticket, technical, general):
    title = (candidate.title or '').lower()
    description = (candidate.description or '').lower()

    score = sum(TECHNICAL_TITLE_SCORE for keyword in technical if keyword in title)
    score += sum(TECHNICAL_DESCRIPTION_SCORE for keyword in technical if keyword in description)
    if ticket.incident_type and candidate.incident_type == ticket.incident_type:
        score += INCIDENT_TYPE_SCORE
    if ticket.category and candidate.category == ticket.category:
        score += CATEGORY_SCORE
    score += sum(GENERAL_TITLE_SCORE for keyword in general if keyword in title)
    score += sum(GENERAL_DESCRIPTION_SCORE for keyword in general if keyword in description)
    return score


def find_similar_tickets(ticket, department_id):
    """Resolved tickets of the same department that look like ``ticket``, best first"""
    technical, general = extract_keywords(f"{ticket.title} {ticket.description}")
    if not technical and not general:
        return []

    resolved = Ticket.objects.filter(
        department_id=department_id, company_id=ticket.company_id, status='resolved'
    ).exclude(pk=ticket.pk).order_by('-created_at')

    candidates = []
    if technical:
        keyword_filter = Q()
        for keyword in technical:
            keyword_filter |= Q(title__icontains=keyword) | Q(description__icontains=keyword)
        candidates = list(resolved.filter(keyword_filter)[:CANDIDATES_LIMIT])

    if not candidates:
        classification_filter = Q()
        if ticket.incident_type:
            classification_filter |= Q(incident_type=ticket.incident_type)
        if ticket.category:
            classification_filter |= Q(category=ticket.category)
        if classification_filter:
            candidates = list(resolved.filter(classification_filter)[:CANDIDATES_LIMIT])

    min_score = MIN_SCORE_TECHNICAL if technical else MIN_SCORE_GENERAL
    scored = [(score_ticket(candidate, ticket, technical, general), candidate) for candidate in candidates]
    scored = [item for item in scored if item[0] >= min_score]
    scored.sort(key=lambda item: item[0], reverse=True)

    similar = []
    for score, candidate in scored[:SIMILAR_TICKETS_LIMIT]:
        last_reply = TicketReply.objects.filter(ticket=candidate).order_by('-created_at', '-id').first()
        similar.append({
            'id': candidate.id,
            'ticket_id': candidate.ticket_id,
            'title': candidate.title,
            'description': candidate.description,
            'status': candidate.status,
            'resolution': last_reply.message if last_reply else None,
            'score': score,
        })
    logger.debug(f"Ticket {ticket.ticket_id}: {len(similar)} similar tickets (technical={technical}, general={general})")
    return similar


def calculate_success_rate(similar_tickets):
    if not similar_tickets:
        return 0
    resolved = sum(1 for item in similar_tickets if item['status'] == 'resolved')
    return round(resolved / len(similar_tickets) * 100)


def get_ai_configuration(department_id, company_id, analysis_type='ticket_suggestions'):
    """Department config, then the company default, then the global default"""
    configs = AiConfiguration.objects.filter(is_active=True, analysis_type=analysis_type)
    config = configs.filter(department_id=department_id).order_by('-is_default', '-updated_at').first()
    if config is None and company_id is not None:
        config = configs.filter(company_id=company_id, department__isnull=True, is_default=True).first()
    if config is None:
        config = configs.filter(company__isnull=True, department__isnull=True, is_default=True).first()
    return config


def get_api_token(provider, company_id):
    if company_id is not None:
        setting = SystemSetting.objects.filter(
            key=f'ai_{provider}_token_company_{company_id}', company_id=company_id
        ).first()
        if setting is not None and setting.value:
            return setting.value
    setting = SystemSetting.objects.filter(key=f'ai_{provider}_token', company__isnull=True).first()
    return setting.value if setting is not None and setting.value else None


def check_ai_permission(user):
    if user.role not in AI_ROLES:
        raise PermissionDeniedError('Usuário não tem permissão para usar IA')
    if user.role == 'admin':
        return
    if user.company_id and not user.company.ai_permission:
        raise PermissionDeniedError('Empresa não tem permissão para usar IA')


def build_default_prompt(ticket, similar_tickets):
    similar_data = '\n'.join(
        f"- Título: {item['title']}\n  Resolução: {item['resolution'] or 'Não disponível'}"
        for item in similar_tickets
    )
    return f"""
TICKET ATUAL:
- Título: {ticket.title}
- Descrição: {ticket.description}
- Tipo: {ticket.incident_type or 'N/A'}
- Categoria: {ticket.category or 'N/A'}
- Departamento: {ticket.department.name if ticket.department_id else 'N/A'}

CASOS SIMILARES ENCONTRADOS ({len(similar_tickets)}):
{similar_data}

INSTRUÇÕES IMPORTANTES:
1. Analise PRIMEIRO o título e descrição do ticket atual para entender o problema específico
2. Compare com os casos similares para identificar padrões de resolução
3. Gere sugestões RELEVANTES e ESPECÍFICAS para o problema descrito
4. NÃO sugira soluções genéricas que não se aplicam ao problema específico

FORMATO DE RESPOSTA (JSON OBRIGATÓRIO):
{{
  "summary": "Resumo específico do problema e abordagem sugerida",
  "confidence": 85,
  "step_by_step": ["Passo 1: Solução específica para o problema", "Passo 2: Próximo passo relevante"],
  "commands": ["comando específico se aplicável"],
  "additional_notes": "Observações relevantes ao problema",
  "estimated_time": "tempo realista"
}}

CRÍTICO: Responda EXCLUSIVAMENTE com JSON válido. NÃO inclua texto antes ou depois do JSON.
"""


def build_prompt(ticket, similar_tickets, config):
    """Fill the configured prompt template, or fall back to the built-in prompt"""
    template = config.user_prompt_template if config is not None else ''
    if not template:
        return build_default_prompt(ticket, similar_tickets)

    similar_data = '\n\n'.join(
        f"{index}. Título: {item['title']}\n   Descrição: {item['description']}\n"
        f"   Resolução: {item['resolution'] or 'Não disponível'}"
        for index, item in enumerate(similar_tickets, 1)
    )
    replacements = {
        '{ticket_title}': ticket.title or '',
        '{ticket_description}': ticket.description or '',
        '{ticket_type}': ticket.incident_type or 'N/A',
        '{ticket_category}': ticket.category or 'N/A',
        '{department_name}': ticket.department.name if ticket.department_id else 'N/A',
        '{similar_count}': str(len(similar_tickets)),
        '{similar_tickets_data}': similar_data,
    }
    for placeholder, value in replacements.items():
        template = template.replace(placeholder, value)
    return template


def call_provider(config, prompt, token, default_system_prompt=DEFAULT_SYSTEM_PROMPT):
    """Send ``prompt`` to the provider of ``config`` and return the answer text"""
    system_prompt = config.system_prompt or default_system_prompt
    temperature = float(config.temperature)
    endpoint = config.api_endpoint or PROVIDER_ENDPOINTS[config.provider].format(model=config.model)
    timeout = config.timeout_seconds or 30

    if config.provider == 'openai':
        response = requests.post(
            endpoint,
            json={
                'model': config.model,
                'messages': [
                    {'role': 'system', 'content': system_prompt},
                    {'role': 'user', 'content': prompt},
                ],
                'temperature': temperature,
                'max_tokens': config.max_tokens,
            },
            headers={'Authorization': f'Bearer {token}'},
            timeout=timeout,
        )
        response.raise_for_status()
        choices = response.json().get('choices') or [{}]
        text = (choices[0].get('message') or {}).get('content') or ''
    elif config.provider == 'anthropic':
        response = requests.post(
            endpoint,
            json={
                'model': config.model,
                'max_tokens': config.max_tokens,
                'temperature': temperature,
                'system': system_prompt,
                'messages': [{'role': 'user', 'content': prompt}],
            },
            headers={'x-api-key': token, 'anthropic-version': ANTHROPIC_VERSION},
            timeout=timeout,
        )
        response.raise_for_status()
        content = response.json().get('content') or [{}]
        text = content[0].get('text') or ''
    elif config.provider == 'google':
        response = requests.post(
            endpoint,
            params={'key': token},
            json={
                'contents': [{'parts': [{'text': f"{system_prompt}\n\n{prompt}"}]}],
                'generationConfig': {'temperature': temperature, 'maxOutputTokens': config.max_tokens},
            },
            timeout=timeout,
        )
        response.raise_for_status()
        candidates = response.json().get('candidates') or [{}]
        parts = (candidates[0].get('content') or {}).get('parts') or [{}]
        text = parts[0].get('text') or ''
    else:
        raise AiProviderError(f"Provedor {config.provider} não disponível")

    text = text.strip()
    if not text:
        raise AiProviderError(f"Resposta vazia do provedor {config.provider}")
    return text


def parse_ai_response(text, similar_count):
    """Structured suggestion from the provider answer, tolerating non-JSON output"""
    default_summary = f"Análise baseada em {similar_count} casos similares"
    match = JSON_BLOCK.search(text or '')
    try:
        parsed = json.loads(match.group(0) if match else text)
        if not isinstance(parsed, dict):
            raise ValueError('Resposta não é um objeto')
    except ValueError:
        steps = NUMBERED_LINE.findall(text or '')[:MAX_PARSED_STEPS]
        logger.warning('AI answer is not valid JSON, using numbered lines')
        return {
            'summary': default_summary,
            'confidence': UNPARSED_CONFIDENCE,
            'step_by_step': steps or list(GENERIC_STEPS),
            'commands': [],
            'additional_notes': 'Resposta processada com parsing alternativo devido a formato inválido',
            'estimated_time': DEFAULT_ESTIMATED_TIME,
        }

    confidence = parsed.get('confidence')
    return {
        'summary': parsed.get('summary') or default_summary,
        'confidence': confidence if isinstance(confidence, (int, float)) and not isinstance(confidence, bool) else DEFAULT_CONFIDENCE,
        'step_by_step': parsed['step_by_step'] if isinstance(parsed.get('step_by_step'), list) else list(GENERIC_STEPS),
        'commands': parsed['commands'] if isinstance(parsed.get('commands'), list) else [],
        'additional_notes': parsed.get('additional_notes') or 'Sugestão baseada em análise de casos similares',
        'estimated_time': parsed.get('estimated_time') or DEFAULT_ESTIMATED_TIME,
    }


def fallback_suggestion(ticket, similar_count):
    return {
        'summary': f"Baseado em {similar_count} tickets similares, este é um problema relacionado a {ticket.title}.",
        'confidence': min(DEFAULT_CONFIDENCE, 50 + similar_count * 3),
        'step_by_step': list(FALLBACK_STEPS),
        'commands': [],
        'additional_notes': 'Sugestão baseada em análise de casos similares. '
                            'Consulte os tickets relacionados para mais detalhes.',
        'estimated_time': DEFAULT_ESTIMATED_TIME,
    }


def log_action(suggestion, action, details, user=None):
    return AiSuggestionLog.objects.create(suggestion=suggestion, action=action, details=details, user=user)


def generate_suggestion(ticket, user, department_id):
    """
    Build, store and return an AiSuggestion for ``ticket``.

    Raises PermissionDeniedError when ``user`` may not use AI and
    ServiceError when no configuration applies to the department.
    """
    check_ai_permission(user)
    config = get_ai_configuration(department_id, ticket.company_id)
    if config is None:
        raise ServiceError('Configuração de IA não encontrada para este departamento')

    similar = find_similar_tickets(ticket, department_id)
    success_rate = calculate_success_rate(similar)
    prompt = build_prompt(ticket, similar, config)

    raw_response = ''
    token = get_api_token(config.provider, ticket.company_id)
    if not token:
        logger.warning(f"No {config.provider} token for company {ticket.company_id}, using fallback suggestion")
        structured = fallback_suggestion(ticket, len(similar))
    else:
        try:
            raw_response = call_provider(config, prompt, token)
            structured = parse_ai_response(raw_response, len(similar))
        except (requests.exceptions.RequestException, AiProviderError, ValueError) as e:
            logger.error(f"AI provider {config.provider} failed for ticket {ticket.ticket_id}: {str(e)}")
            structured = fallback_suggestion(ticket, len(similar))

    suggestion = AiSuggestion.objects.create(
        ticket=ticket,
        user=user,
        department_id=department_id,
        similar_tickets_count=len(similar),
        success_rate=success_rate,
        confidence_score=structured['confidence'],
        suggestion_type='hybrid',
        prompt_used=prompt,
        ai_response=raw_response or json.dumps(structured, ensure_ascii=False),
        structured_suggestion=structured,
    )
    log_action(suggestion, 'generated', {
        'similar_tickets_count': len(similar),
        'success_rate': success_rate,
        'confidence': structured['confidence'],
        'configuration_id': config.id,
    }, user)
    logger.info(f"AI suggestion {suggestion.id} generated for ticket {ticket.ticket_id} "
                f"({len(similar)} similar, confidence {structured['confidence']})")
    return suggestion


def record_feedback(suggestion, rating, comment='', user=None):
    suggestion.feedback_rating = rating
    suggestion.feedback_comment = comment or ''
    suggestion.save(update_fields=['feedback_rating', 'feedback_comment', 'updated_at'])
    log_action(suggestion, 'rated', {'rating': rating, 'comment': comment or ''}, user)
    return suggestion


# Priority analysis

PRIORITY_KEYWORDS = [
    ('critical', ('critical', 'crítica', 'critica')),
    ('high', ('high', 'alta')),
    ('low', ('low', 'baixa')),
    ('medium', ('medium', 'média', 'media')),
]
PRIORITY_CONFIDENCE = {'critical': 0.9, 'high': 0.8, 'low': 0.8, 'medium': 0.8}
UNPARSED_PRIORITY_CONFIDENCE = 0.1
RETRY_BACKOFF_SECONDS = 1

DEFAULT_PRIORITY_SYSTEM_PROMPT = (
    'Você é um assistente que classifica a prioridade de tickets de suporte técnico. '
    'Responda na primeira linha apenas com uma das palavras: low, medium, high ou critical. '
    'Na linha seguinte, justifique em uma frase.'
)


def build_priority_prompt(ticket, config):
    template = config.user_prompt_template if config is not None else ''
    if not template:
        return f"Título: {ticket.title}\nDescrição: {ticket.description}\n\nQual a prioridade deste ticket?"
    replacements = {
        '{titulo}': ticket.title or '',
        '{descricao}': ticket.description or '',
        '{ticket_title}': ticket.title or '',
        '{ticket_description}': ticket.description or '',
    }
    for placeholder, value in replacements.items():
        template = template.replace(placeholder, value)
    return template


def _priority_in(text):
    words = re.findall(r'\w+', text.lower())
    for value, keywords in PRIORITY_KEYWORDS:
        if any(keyword in words for keyword in keywords):
            return value
    return None


def parse_priority(text):
    """
    Priority named in a provider answer, looked up in the first line before
    the rest of the text.

    Returns ``(priority, justification, confidence)``. An answer without a
    recognizable priority word yields ``(None, text, 0.1)``.
    """
    text = (text or '').strip()
    lines = [line.strip() for line in text.split('\n') if line.strip()]
    priority = _priority_in(lines[0]) if lines else None
    if priority is None:
        priority = _priority_in(text)

    if len(lines) > 1:
        justification = ' '.join(lines[1:])
    else:
        justification = ' '.join(text.split()[1:]) or text

    if priority is None:
        return None, justification, UNPARSED_PRIORITY_CONFIDENCE
    return priority, justification, PRIORITY_CONFIDENCE[priority]


def call_with_retries(config, prompt, token):
    """
    ``call_provider`` retried up to ``config.max_retries`` more times.

    Waits 1, 2, 4... seconds between attempts and raises the last error.
    """
    attempts = 1 + (config.max_retries or 0)
    for attempt in range(1, attempts + 1):
        try:
            return call_provider(config, prompt, token, DEFAULT_PRIORITY_SYSTEM_PROMPT)
        except (requests.exceptions.RequestException, AiProviderError) as e:
            if attempt == attempts:
                raise
            logger.warning(f"AI provider {config.provider} attempt {attempt}/{attempts} failed: {str(e)}")
            time.sleep(RETRY_BACKOFF_SECONDS * 2 ** (attempt - 1))


def fallback_priority(ticket, reason):
    return {
        'priority': ticket.priority or 'medium',
        'justification': f"Prioridade definida automaticamente (fallback): {reason}",
        'confidence': 0,
        'used_fallback': True,
    }


def analyze_ticket_priority(ticket, user=None):
    """
    Ask the configured provider for the priority of ``ticket``.

    Uses the ``ticket_priority`` configuration of the ticket's department or
    company. Without a configuration or token, or when every attempt fails,
    the ticket keeps its current priority and ``used_fallback`` is set.
    """
    if user is not None:
        check_ai_permission(user)
    config = get_ai_configuration(ticket.department_id, ticket.company_id, analysis_type='ticket_priority')
    if config is None:
        return fallback_priority(ticket, 'Nenhuma configuração de IA ativa')

    token = get_api_token(config.provider, ticket.company_id)
    if not token:
        logger.warning(f"No {config.provider} token for company {ticket.company_id}, keeping priority")
        return fallback_priority(ticket, f"Token do provedor {config.provider} não configurado")

    prompt = build_priority_prompt(ticket, config)
    try:
        answer = call_with_retries(config, prompt, token)
    except (requests.exceptions.RequestException, AiProviderError) as e:
        logger.error(f"AI priority analysis failed for ticket {ticket.ticket_id}: {str(e)}")
        return fallback_priority(ticket, str(e))

    priority, justification, confidence = parse_priority(answer)
    if priority is None:
        logger.warning(f"No priority in AI answer for ticket {ticket.ticket_id}: {answer!r}")
        result = fallback_priority(ticket, 'Resposta sem prioridade reconhecível')
        result['justification'] = justification
        result['confidence'] = confidence
        return result

    logger.info(f"AI priority for ticket {ticket.ticket_id}: {priority} (confidence {confidence})")
    return {
        'priority': priority,
        'justification': justification,
        'confidence': confidence,
        'used_fallback': False,
    }


def clear_other_defaults(config):
    """Only one default configuration per company, department and analysis type"""
    AiConfiguration.objects.filter(
        company_id=config.company_id,
        department_id=config.department_id,
        analysis_type=config.analysis_type,
        is_default=True,
    ).exclude(pk=config.pk).update(is_default=False)
