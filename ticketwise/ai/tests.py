"""
Test suite for AI module
Tests: keyword extraction, similar ticket scoring, provider calls and
fallbacks, suggestion endpoints, priority analysis and AI configurations
"""
from unittest.mock import patch, MagicMock

import requests
from django.test import TestCase
from rest_framework import status

from ticketwise.core.exceptions import PermissionDeniedError
from ticketwise.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from ticketwise.tickets.models import TicketReply
from .models import AiConfiguration, AiSuggestion, AiSuggestionLog
from .services import (
    extract_keywords, find_similar_tickets, calculate_success_rate, get_ai_configuration, get_api_token,
    check_ai_permission, build_prompt, parse_ai_response, parse_priority, analyze_ticket_priority,
    UNPARSED_CONFIDENCE, DEFAULT_CONFIDENCE, GENERIC_STEPS
)


def openai_answer(content):
    response = MagicMock(status_code=200)
    response.json.return_value = {'choices': [{'message': {'content': content}}]}
    return response


class KeywordAndScoringTests(TestCase):
    """Test keyword extraction and similar ticket search"""

    def setUp(self):
        self.company = TestDataFactory.create_company(ai_permission=True)
        self.department = TestDataFactory.create_department(company=self.company)

    def test_extract_keywords(self):
        technical, general = extract_keywords('Problema na VPN, impressora e rede! Sistema lento lento')
        self.assertEqual(technical, ['vpn', 'impressora', 'rede'])
        self.assertEqual(general, ['lento'])

    def test_general_keywords_capped(self):
        _, general = extract_keywords('alfa bravo charlie delta echo foxtrot golf')
        self.assertEqual(general, ['alfa', 'bravo', 'charlie', 'delta', 'echo'])

    def test_similar_tickets_by_technical_keyword(self):
        ticket = TestDataFactory.create_ticket(company=self.company, department=self.department,
                                               title='VPN não conecta', description='Erro ao abrir a VPN em casa')
        match = TestDataFactory.create_ticket(company=self.company, department=self.department, status='resolved',
                                              title='VPN caiu', description='Cliente VPN desatualizado')
        TicketReply.objects.create(ticket=match, message='Reinstalado o cliente VPN')
        TestDataFactory.create_ticket(company=self.company, department=self.department, status='ongoing',
                                      title='VPN lenta', description='VPN')
        TestDataFactory.create_ticket(company=self.company, department=self.department, status='resolved',
                                      title='Troca de mouse', description='Mouse quebrado')

        similar = find_similar_tickets(ticket, self.department.id)
        self.assertEqual([item['id'] for item in similar], [match.id])
        self.assertEqual(similar[0]['resolution'], 'Reinstalado o cliente VPN')
        self.assertGreaterEqual(similar[0]['score'], 180)
        self.assertEqual(calculate_success_rate(similar), 100)

    def test_similar_tickets_by_classification(self):
        ticket = TestDataFactory.create_ticket(company=self.company, department=self.department,
                                               title='Lentidão geral', description='Tudo travando',
                                               incident_type='performance')
        match = TestDataFactory.create_ticket(company=self.company, department=self.department, status='resolved',
                                              title='Estação devagar', description='Memória cheia',
                                              incident_type='performance')
        similar = find_similar_tickets(ticket, self.department.id)
        self.assertEqual([item['id'] for item in similar], [match.id])
        self.assertEqual(similar[0]['score'], 50)

    def test_empty_classification_never_matches(self):
        ticket = TestDataFactory.create_ticket(company=self.company, department=self.department,
                                               title='Lentidão geral', description='Tudo travando')
        TestDataFactory.create_ticket(company=self.company, department=self.department, status='resolved',
                                      title='Estação devagar', description='Memória cheia')
        self.assertEqual(find_similar_tickets(ticket, self.department.id), [])

    def test_success_rate_empty(self):
        self.assertEqual(calculate_success_rate([]), 0)


class ConfigurationLookupTests(TestCase):
    """Test configuration and token resolution"""

    def setUp(self):
        self.company = TestDataFactory.create_company(ai_permission=True)
        self.department = TestDataFactory.create_department(company=self.company)

    def test_configuration_fallback_order(self):
        global_default = TestDataFactory.create_ai_configuration()
        self.assertEqual(get_ai_configuration(self.department.id, self.company.id), global_default)
        company_default = TestDataFactory.create_ai_configuration(company=self.company)
        self.assertEqual(get_ai_configuration(self.department.id, self.company.id), company_default)
        department_config = TestDataFactory.create_ai_configuration(company=self.company, department=self.department,
                                                                   is_default=False)
        self.assertEqual(get_ai_configuration(self.department.id, self.company.id), department_config)

    def test_inactive_configuration_ignored(self):
        TestDataFactory.create_ai_configuration(company=self.company, is_active=False)
        self.assertIsNone(get_ai_configuration(self.department.id, self.company.id))

    def test_token_company_first(self):
        TestDataFactory.create_system_setting('ai_openai_token', 'sk-global')
        self.assertEqual(get_api_token('openai', self.company.id), 'sk-global')
        TestDataFactory.create_system_setting(f'ai_openai_token_company_{self.company.id}', 'sk-empresa',
                                              company=self.company)
        self.assertEqual(get_api_token('openai', self.company.id), 'sk-empresa')
        self.assertIsNone(get_api_token('anthropic', self.company.id))

    def test_permission(self):
        check_ai_permission(TestDataFactory.create_user(role='support', company=self.company))
        check_ai_permission(TestDataFactory.create_user(role='admin'))
        with self.assertRaises(PermissionDeniedError):
            check_ai_permission(TestDataFactory.create_user(role='viewer', company=self.company))
        with self.assertRaises(PermissionDeniedError):
            check_ai_permission(TestDataFactory.create_user(role='manager', company=TestDataFactory.create_company()))


class ResponseParsingTests(TestCase):
    """Test prompt building and answer parsing"""

    def test_parse_json_inside_text(self):
        text = 'Segue a análise:\n{"summary": "Reinstalar VPN", "confidence": 90, "step_by_step": ["a"]}\nFim'
        parsed = parse_ai_response(text, 3)
        self.assertEqual(parsed['summary'], 'Reinstalar VPN')
        self.assertEqual(parsed['confidence'], 90)
        self.assertEqual(parsed['commands'], [])

    def test_parse_json_defaults(self):
        parsed = parse_ai_response('{"confidence": "alta", "step_by_step": "não é lista"}', 2)
        self.assertEqual(parsed['summary'], 'Análise baseada em 2 casos similares')
        self.assertEqual(parsed['confidence'], DEFAULT_CONFIDENCE)
        self.assertEqual(parsed['step_by_step'], GENERIC_STEPS)

    def test_parse_numbered_lines(self):
        parsed = parse_ai_response('1. Reinicie o roteador\n2. Teste a conexão\nTexto solto', 1)
        self.assertEqual(parsed['confidence'], UNPARSED_CONFIDENCE)
        self.assertEqual(parsed['step_by_step'], ['1. Reinicie o roteador', '2. Teste a conexão'])

    def test_custom_prompt_template(self):
        company = TestDataFactory.create_company()
        department = TestDataFactory.create_department(company=company, name='Redes')
        ticket = TestDataFactory.create_ticket(company=company, department=department, title='Wifi caindo')
        config = TestDataFactory.create_ai_configuration(
            company=company, user_prompt_template='{ticket_title} / {department_name} / {similar_count} / {ticket_type}'
        )
        self.assertEqual(build_prompt(ticket, [], config), 'Wifi caindo / Redes / 0 / N/A')


class SuggestionAPITests(TestCase):
    """Test suggestion endpoints"""

    def setUp(self):
        self.company = TestDataFactory.create_company(ai_permission=True)
        self.department = TestDataFactory.create_department(company=self.company)
        self.user = TestDataFactory.create_user(role='support', company=self.company)
        self.ticket = TestDataFactory.create_ticket(company=self.company, department=self.department,
                                                    title='Outlook não sincroniza', description='Email parado')
        self.config = TestDataFactory.create_ai_configuration(company=self.company)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def _generate(self, **extra):
        payload = {'ticket_id': self.ticket.id, 'department_id': self.department.id}
        payload.update(extra)
        return self.client.post('/api/v1/ai-suggestions/', payload, format='json')

    @patch('ticketwise.ai.services.requests.post')
    def test_generate_with_provider(self, mock_post):
        mock_post.return_value = openai_answer(
            '{"summary": "Recriar perfil do Outlook", "confidence": 88, "step_by_step": ["Passo 1"], '
            '"commands": ["outlook.exe /resetnavpane"], "estimated_time": "30 minutos"}'
        )
        TestDataFactory.create_system_setting('ai_openai_token', 'sk-test')
        response = self._generate()
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        data = response.data['data']
        self.assertEqual(data['confidence'], 88.0)
        self.assertEqual(data['suggestion']['summary'], 'Recriar perfil do Outlook')
        self.assertEqual(mock_post.call_args[1]['headers']['Authorization'], 'Bearer sk-test')
        suggestion = AiSuggestion.objects.get(pk=data['id'])
        self.assertEqual(suggestion.user_id, self.user.id)
        self.assertTrue(AiSuggestionLog.objects.filter(suggestion=suggestion, action='generated').exists())

    @patch('ticketwise.ai.services.requests.post')
    def test_provider_failure_falls_back(self, mock_post):
        mock_post.side_effect = requests.exceptions.Timeout('timeout')
        TestDataFactory.create_system_setting('ai_openai_token', 'sk-test')
        response = self._generate()
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['suggestion']['confidence'], 50)
        self.assertEqual(mock_post.call_count, 1)

    @patch('ticketwise.ai.services.requests.post')
    def test_no_token_uses_fallback(self, mock_post):
        response = self._generate()
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('Outlook não sincroniza', response.data['data']['suggestion']['summary'])
        mock_post.assert_not_called()

    def test_company_without_ai_permission(self):
        self.company.ai_permission = False
        self.company.save()
        response = self._generate()
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_missing_configuration(self):
        self.config.delete()
        response = self._generate()
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Configuração de IA', response.data['error'])

    def test_invalid_payload(self):
        response = self.client.post('/api/v1/ai-suggestions/', {'ticket_id': 'x'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Dados inválidos')

    def test_user_id_of_someone_else(self):
        other = TestDataFactory.create_user(role='support', company=self.company)
        response = self._generate(user_id=other.id)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_viewer_denied(self):
        self.client.authenticate_user(TestDataFactory.create_user(role='viewer', company=self.company))
        self.assertEqual(self._generate().status_code, status.HTTP_403_FORBIDDEN)

    def test_feedback_and_history(self):
        suggestion_id = self._generate().data['data']['id']
        response = self.client.post(f'/api/v1/ai-suggestions/{suggestion_id}/feedback/', {
            'rating': 4, 'comment': 'Ajudou'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(AiSuggestionLog.objects.filter(action='rated').exists())

        response = self.client.get(f'/api/v1/ai-suggestions/ticket/{self.ticket.id}/')
        self.assertEqual(response.data['data'][0]['feedback_rating'], 4)

        response = self.client.post(f'/api/v1/ai-suggestions/{suggestion_id}/feedback/', {'rating': 9}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class AiConfigurationAPITests(TestCase):
    """Test AI configuration endpoints"""

    def setUp(self):
        self.company = TestDataFactory.create_company()
        self.user = TestDataFactory.create_user(role='company_admin', company=self.company)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_default_replaces_previous(self):
        previous = TestDataFactory.create_ai_configuration(company=self.company)
        response = self.client.post('/api/v1/ai-configurations/', {
            'name': 'Claude', 'provider': 'anthropic', 'model': 'claude-sonnet', 'is_default': True
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['company'], self.company.id)
        previous.refresh_from_db()
        self.assertFalse(previous.is_default)

    def test_department_of_other_company(self):
        department = TestDataFactory.create_department(company=TestDataFactory.create_company())
        response = self.client.post('/api/v1/ai-configurations/', {
            'name': 'GPT', 'provider': 'openai', 'model': 'gpt-4o', 'department': department.id
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('department', response.data)

    def test_global_configuration_read_only(self):
        config = TestDataFactory.create_ai_configuration()
        self.assertEqual(self.client.get(f'/api/v1/ai-configurations/{config.id}/').status_code, status.HTTP_200_OK)
        response = self.client.patch(f'/api/v1/ai-configurations/{config.id}/', {'model': 'gpt-4o'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_list_scoped(self):
        TestDataFactory.create_ai_configuration(company=self.company)
        TestDataFactory.create_ai_configuration(company=TestDataFactory.create_company())
        response = self.client.get('/api/v1/ai-configurations/')
        self.assertEqual(len(response.data), 1)

    def test_delete(self):
        config = TestDataFactory.create_ai_configuration(company=self.company)
        response = self.client.delete(f'/api/v1/ai-configurations/{config.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(AiConfiguration.objects.filter(pk=config.id).exists())


class PriorityAnalysisTests(TestCase):
    """Test AI priority analysis and its retries"""

    def setUp(self):
        self.company = TestDataFactory.create_company(ai_permission=True)
        self.department = TestDataFactory.create_department(company=self.company)
        self.user = TestDataFactory.create_user(role='support', company=self.company)
        self.ticket = TestDataFactory.create_ticket(company=self.company, department=self.department, priority='low',
                                                    title='Servidor de arquivos fora do ar',
                                                    description='Ninguém acessa a pasta compartilhada')
        self.config = TestDataFactory.create_ai_configuration(company=self.company, analysis_type='ticket_priority',
                                                              max_retries=2)
        TestDataFactory.create_system_setting('ai_openai_token', 'sk-test')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_parse_priority(self):
        self.assertEqual(parse_priority('critical\nServidor fora do ar'), ('critical', 'Servidor fora do ar', 0.9))
        self.assertEqual(parse_priority('Alta - afeta a equipe')[0], 'high')
        self.assertEqual(parse_priority('medium\nNão é crítica')[0], 'medium')
        priority, justification, confidence = parse_priority('Não sei dizer')
        self.assertIsNone(priority)
        self.assertEqual(confidence, 0.1)

    @patch('ticketwise.ai.services.time.sleep')
    @patch('ticketwise.ai.services.requests.post')
    def test_retries_until_answer(self, mock_post, mock_sleep):
        mock_post.side_effect = [requests.exceptions.Timeout('timeout'), openai_answer('high\nAfeta vários usuários')]
        result = analyze_ticket_priority(self.ticket, self.user)
        self.assertEqual(result['priority'], 'high')
        self.assertFalse(result['used_fallback'])
        self.assertEqual(result['justification'], 'Afeta vários usuários')
        self.assertEqual(mock_post.call_count, 2)
        mock_sleep.assert_called_once_with(1)
        system_message = mock_post.call_args[1]['json']['messages'][0]['content']
        self.assertIn('low, medium, high ou critical', system_message)

    @patch('ticketwise.ai.services.time.sleep')
    @patch('ticketwise.ai.services.requests.post')
    def test_gives_up_after_max_retries(self, mock_post, mock_sleep):
        """Test one call plus max_retries retries, then the current priority is kept"""
        mock_post.side_effect = requests.exceptions.ConnectionError('sem rede')
        result = analyze_ticket_priority(self.ticket, self.user)
        self.assertEqual(mock_post.call_count, 3)
        self.assertEqual([call[0][0] for call in mock_sleep.call_args_list], [1, 2])
        self.assertEqual(result['priority'], 'low')
        self.assertTrue(result['used_fallback'])
        self.assertEqual(result['confidence'], 0)

    @patch('ticketwise.ai.services.requests.post')
    def test_suggestion_configuration_not_used(self, mock_post):
        self.config.delete()
        TestDataFactory.create_ai_configuration(company=self.company)
        result = analyze_ticket_priority(self.ticket, self.user)
        self.assertTrue(result['used_fallback'])
        self.assertIn('Nenhuma configuração', result['justification'])
        mock_post.assert_not_called()

    @patch('ticketwise.ai.services.requests.post')
    def test_unrecognized_answer_keeps_priority(self, mock_post):
        mock_post.return_value = openai_answer('Depende do contexto')
        result = analyze_ticket_priority(self.ticket, self.user)
        self.assertEqual(result['priority'], 'low')
        self.assertTrue(result['used_fallback'])
        self.assertEqual(mock_post.call_count, 1)

    @patch('ticketwise.ai.services.requests.post')
    def test_endpoint_applies_priority(self, mock_post):
        mock_post.return_value = openai_answer('critical\nTodos os usuários parados')
        response = self.client.post('/api/v1/ai-suggestions/priority/',
                                    {'ticket_id': self.ticket.id, 'apply': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['priority'], 'critical')
        self.assertTrue(response.data['data']['applied'])
        self.ticket.refresh_from_db()
        self.assertEqual(self.ticket.priority, 'critical')

    @patch('ticketwise.ai.services.requests.post')
    def test_endpoint_without_apply_keeps_ticket(self, mock_post):
        mock_post.return_value = openai_answer('high')
        response = self.client.post('/api/v1/ai-suggestions/priority/', {'ticket_id': self.ticket.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['data']['applied'])
        self.ticket.refresh_from_db()
        self.assertEqual(self.ticket.priority, 'low')

    def test_endpoint_company_without_ai_permission(self):
        self.company.ai_permission = False
        self.company.save()
        response = self.client.post('/api/v1/ai-suggestions/priority/', {'ticket_id': self.ticket.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
