"""
Test suite for Notifications module
Tests: template rendering, email configuration, email templates,
notification preferences, provider delivery and ticket notifications
"""
from datetime import datetime
from io import StringIO
from unittest.mock import patch, MagicMock

import requests
from django.core import mail
from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from ticketwise.core.exceptions import ServiceError
from ticketwise.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from ticketwise.tickets.models import TicketReply
from .models import EmailConfig, EmailTemplate, UserNotificationSettings
from .services import (
    EmailSender, EmailNotificationService, should_notify, notify_new_ticket, notify_ticket_reply,
    notify_ticket_resolved, notify_ticket_due_soon, due_soon_message, MAILGUN_SEND_URL, SENDGRID_SEND_URL
)
from .templating import render_template, translate_status, translate_priority, build_ticket_context


class TemplatingTests(TestCase):
    """Test placeholder rendering and translations"""

    def test_render_dotted_and_simple(self):
        data = {
            'ticket': {'ticket_id': 'TKT-2026-0001'},
            'reply': {'user': {'name': 'Maria'}},
            'company_name': 'ACME',
        }
        rendered = render_template('{{ticket.ticket_id}} por {{reply.user.name}} - {{company_name}}', data)
        self.assertEqual(rendered, 'TKT-2026-0001 por Maria - ACME')

    def test_missing_values_stay_literal(self):
        data = {'ticket': {'title': '', 'id': None}}
        rendered = render_template('{{ticket.title}}|{{ticket.id}}|{{customer.name}}|{{base_url}}', data)
        self.assertEqual(rendered, '{{ticket.title}}|{{ticket.id}}|{{customer.name}}|{{base_url}}')

    def test_send_mode_blanks_known_variables_only(self):
        data = {'ticket': {'title': 'Sem rede'}}
        template = '{{ticket.title}}|{{customer.phone}}|{{foo.bar}}'
        self.assertEqual(render_template(template, data, blank_known=True), 'Sem rede||{{foo.bar}}')
        self.assertEqual(render_template(template, data), 'Sem rede|{{customer.phone}}|{{foo.bar}}')

    def test_due_soon_message(self):
        self.assertIn('menos de 1 hora', due_soon_message(1))
        self.assertIn('vence em 3 horas. Atenção urgente', due_soon_message(3))
        self.assertIn('vence em 20 horas', due_soon_message(20))
        self.assertIn('aproximadamente 2 dias', due_soon_message(30))

    def test_non_string_template(self):
        self.assertEqual(render_template(None, {'a': 1}), '')

    def test_translations(self):
        self.assertEqual(translate_status('waiting_customer'), 'Aguardando Solicitante')
        self.assertEqual(translate_status(''), 'Não Definido')
        self.assertEqual(translate_status('custom'), 'custom')
        self.assertEqual(translate_priority('critical'), 'Crítica')

    def test_ticket_context(self):
        company = TestDataFactory.create_company(name='ACME')
        customer = TestDataFactory.create_customer(company=company, name='João', email='joao@acme.com')
        ticket = TestDataFactory.create_ticket(company=company, customer=customer, status='ongoing', priority='high')
        context = build_ticket_context(ticket)
        self.assertEqual(context['ticket']['status_text'], 'Em Andamento')
        self.assertEqual(context['ticket']['priority_text'], 'Alta')
        self.assertTrue(context['ticket']['link'].endswith(f'/tickets/{ticket.id}'))
        self.assertEqual(context['customer']['name'], 'João')
        self.assertEqual(context['system']['company_name'], 'ACME')
        self.assertEqual(context['company_name'], 'ACME')


class EmailConfigTests(TestCase):
    """Test the email configuration endpoints"""

    def setUp(self):
        self.company = TestDataFactory.create_company()
        self.user = TestDataFactory.create_user(role='company_admin', company=self.company)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_defaults_without_config(self):
        """Test the defaults returned before anything is saved"""
        response = self.client.get('/api/v1/email-config/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNone(response.data['id'])
        self.assertEqual(response.data['provider'], 'smtp')
        self.assertEqual(response.data['company'], self.company.id)

    def test_secrets_are_masked(self):
        """Test passwords and API keys are never returned"""
        TestDataFactory.create_email_config(company=self.company, password='segredo123', api_key='chave-abcd')
        response = self.client.get('/api/v1/email-config/')
        self.assertEqual(response.data['password'], '********o123')
        self.assertEqual(response.data['api_key'], '********abcd')

    def test_masked_secret_keeps_stored_value(self):
        """Test sending back the masked value does not overwrite the secret"""
        TestDataFactory.create_email_config(company=self.company, password='segredo123')
        response = self.client.put('/api/v1/email-config/', {
            'password': '********o123', 'from_name': 'Atendimento'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        config = EmailConfig.objects.get(company=self.company)
        self.assertEqual(config.password, 'segredo123')
        self.assertEqual(config.from_name, 'Atendimento')

    def test_api_provider_requires_key(self):
        """Test API providers need an API key"""
        response = self.client.post('/api/v1/email-config/', {
            'provider': 'sendgrid', 'from_email': 'suporte@acme.com'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('api_key', response.data)

    def test_smtp_requires_host(self):
        response = self.client.post('/api/v1/email-config/', {
            'provider': 'smtp', 'from_email': 'suporte@acme.com'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('host', response.data)

    def test_create_config(self):
        """Test saving a configuration for the user's company"""
        response = self.client.post('/api/v1/email-config/', {
            'provider': 'brevo', 'from_email': 'suporte@acme.com', 'api_key': 'xkeysib-1234'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        config = EmailConfig.objects.get(company=self.company)
        self.assertEqual(config.api_key, 'xkeysib-1234')

    def test_manager_denied(self):
        """Test only company administrators manage email settings"""
        self.client.authenticate_user(TestDataFactory.create_user(role='manager', company=self.company))
        response = self.client.get('/api/v1/email-config/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    @patch('ticketwise.notifications.services.requests.post')
    def test_send_test_email(self, mock_post):
        """Test the test message goes through the configured provider"""
        mock_post.return_value = MagicMock(status_code=202)
        TestDataFactory.create_email_config(company=self.company, provider='sendgrid', api_key='SG.key')
        response = self.client.post('/api/v1/email-config/test/', {'email': 'destino@acme.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.assertEqual(mock_post.call_args[0][0], SENDGRID_SEND_URL)

    @patch('ticketwise.notifications.services.requests.post')
    def test_send_test_email_failure(self, mock_post):
        """Test provider failures are reported"""
        mock_post.side_effect = requests.exceptions.ConnectionError('offline')
        TestDataFactory.create_email_config(company=self.company, provider='brevo', api_key='key')
        response = self.client.post('/api/v1/email-config/test/', {'email': 'destino@acme.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['success'])

    def test_send_test_email_invalid_address(self):
        response = self.client.post('/api/v1/email-config/test/', {'email': 'invalido'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class EmailSenderTests(TestCase):
    """Test provider payloads"""

    @patch('ticketwise.notifications.services.requests.post')
    def test_mailgun_uses_sender_domain(self, mock_post):
        mock_post.return_value = MagicMock(status_code=200)
        config = TestDataFactory.create_email_config(provider='mailgun', from_email='noreply@mg.acme.com', api_key='key-1')
        EmailSender(config).send('cliente@acme.com', 'Assunto', '<p>Oi</p>', 'Oi')
        args, kwargs = mock_post.call_args
        self.assertEqual(args[0], MAILGUN_SEND_URL.format(domain='mg.acme.com'))
        self.assertEqual(kwargs['auth'], ('api', 'key-1'))
        self.assertEqual(kwargs['data']['text'], 'Oi')

    @patch('ticketwise.notifications.services.requests.post')
    def test_brevo_payload(self, mock_post):
        mock_post.return_value = MagicMock(status_code=201)
        config = TestDataFactory.create_email_config(provider='brevo', api_key='xkeysib')
        EmailSender(config).send('cliente@acme.com', 'Assunto', '<p>Oi</p>')
        kwargs = mock_post.call_args[1]
        self.assertEqual(kwargs['headers']['api-key'], 'xkeysib')
        self.assertEqual(kwargs['json']['to'], [{'email': 'cliente@acme.com'}])
        self.assertNotIn('textContent', kwargs['json'])

    def test_smtp_without_config_uses_django_backend(self):
        EmailSender().send('cliente@acme.com', 'Assunto', '<p>Oi</p>', 'Oi')
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['cliente@acme.com'])

    def test_unknown_provider(self):
        config = TestDataFactory.create_email_config()
        config.provider = 'pombo'
        with self.assertRaises(ServiceError):
            EmailSender(config).send('cliente@acme.com', 'Assunto', '<p>Oi</p>')


class EmailTemplateTests(TestCase):
    """Test the email template endpoints"""

    def setUp(self):
        self.company = TestDataFactory.create_company()
        self.user = TestDataFactory.create_user(role='company_admin', company=self.company)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_default_clears_previous(self):
        """Test a new default template replaces the previous default"""
        old = TestDataFactory.create_email_template(company=self.company, is_default=True)
        response = self.client.post('/api/v1/email-templates/', {
            'name': 'Novo padrão', 'type': 'new_ticket', 'subject_template': 'Ticket {{ticket.ticket_id}}',
            'html_template': '<p>{{ticket.title}}</p>', 'is_default': True
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['company'], self.company.id)
        old.refresh_from_db()
        self.assertFalse(old.is_default)

    def test_invalid_type(self):
        response = self.client.post('/api/v1/email-templates/', {
            'name': 'X', 'type': 'desconhecido', 'subject_template': 'x', 'html_template': 'x'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_scoped_to_company(self):
        """Test company administrators only list their own templates"""
        TestDataFactory.create_email_template(company=self.company)
        TestDataFactory.create_email_template(company=TestDataFactory.create_company())
        TestDataFactory.create_email_template(template_type='ticket_reply')
        response = self.client.get('/api/v1/email-templates/')
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['company'], self.company.id)

    def test_global_template_read_only(self):
        """Test global templates can be read but not edited by company administrators"""
        template = TestDataFactory.create_email_template(is_default=True)
        self.assertEqual(self.client.get(f'/api/v1/email-templates/{template.id}/').status_code, status.HTTP_200_OK)
        response = self.client.patch(f'/api/v1/email-templates/{template.id}/', {'name': 'Alterado'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_preview_with_sample_data(self):
        """Test rendering unsaved template text"""
        response = self.client.post('/api/v1/email-templates/preview/', {
            'type': 'ticket_reply',
            'subject_template': 'Resposta em {{ticket.ticket_id}}',
            'html_template': '<p>{{reply.user.name}}: {{reply.message}}</p> {{ticket.resolved_at}}',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['subject'], 'Resposta em TKT-2025-001')
        self.assertIn('Maria Santos', response.data['html'])
        self.assertIn('{{ticket.resolved_at}}', response.data['html'])
        self.assertIn('reply.message', response.data['variables'])

    def test_preview_stored(self):
        template = TestDataFactory.create_email_template(company=self.company, subject='Oi {{customer.name}}')
        response = self.client.post(f'/api/v1/email-templates/{template.id}/preview/')
        self.assertEqual(response.data['subject'], 'Oi João Silva')

    def test_variables(self):
        response = self.client.get('/api/v1/email-templates/variables/?type=user_created')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('ticket', response.data['catalog'])
        self.assertIn('user.name', response.data['type_variables'])
        self.assertNotIn('ticket.title', response.data['type_variables'])

    def test_seed_command(self):
        """Test seeding the global default templates"""
        out = StringIO()
        call_command('seed_email_templates', stdout=out)
        self.assertTrue(EmailTemplate.objects.filter(type='ticket_resolved', company__isnull=True, is_default=True).exists())
        survey_template = EmailTemplate.objects.get(type='satisfaction_survey', company__isnull=True)
        self.assertIn('{{survey.link}}', survey_template.html_template)
        call_command('seed_email_templates', stdout=out)
        self.assertEqual(EmailTemplate.objects.filter(type='ticket_resolved').count(), 1)
        self.assertIn('Template already exists', out.getvalue())


class NotificationSettingsTests(TestCase):
    """Test notification preferences"""

    def setUp(self):
        self.user = TestDataFactory.create_user(role='support')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_defaults_created(self):
        response = self.client.get('/api/v1/notification-settings/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['email_notifications'])
        self.assertEqual(response.data['notification_hours_start'], 9)
        self.assertTrue(UserNotificationSettings.objects.filter(user=self.user).exists())

    def test_update(self):
        response = self.client.patch('/api/v1/notification-settings/', {'weekend_notifications': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(UserNotificationSettings.objects.get(user=self.user).weekend_notifications)

    def test_invalid_hours(self):
        response = self.client.patch('/api/v1/notification-settings/', {
            'notification_hours_start': 18, 'notification_hours_end': 9
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_should_notify(self):
        """Test preferences gate notifications by flag, hours and weekend"""
        wednesday_morning = timezone.make_aware(datetime(2026, 3, 4, 10, 0))
        wednesday_night = timezone.make_aware(datetime(2026, 3, 4, 22, 0))
        saturday = timezone.make_aware(datetime(2026, 3, 7, 10, 0))

        self.assertTrue(should_notify(self.user, 'ticket_reply', wednesday_night))

        prefs = UserNotificationSettings.objects.create(user=self.user, new_reply_received=False)
        self.user.refresh_from_db()
        self.assertTrue(should_notify(self.user, 'new_ticket', wednesday_morning))
        self.assertFalse(should_notify(self.user, 'ticket_reply', wednesday_morning))
        self.assertFalse(should_notify(self.user, 'new_ticket', wednesday_night))
        self.assertFalse(should_notify(self.user, 'new_ticket', saturday))

        prefs.email_notifications = False
        prefs.save()
        self.user.refresh_from_db()
        self.assertFalse(should_notify(self.user, 'new_ticket', wednesday_morning))


class TicketNotificationTests(TestCase):
    """Test ticket notifications through the Django mail backend"""

    def setUp(self):
        self.company = TestDataFactory.create_company(name='ACME')
        self.department = TestDataFactory.create_department(company=self.company)
        self.staff = TestDataFactory.create_user(role='support', company=self.company, email='staff@acme.com')
        TestDataFactory.create_official(company=self.company, user=self.staff, departments=[self.department])
        self.customer = TestDataFactory.create_customer(company=self.company, name='João', email='joao@acme.com')

    def test_new_ticket_goes_to_department_staff(self):
        TestDataFactory.create_email_template(is_default=True, subject='Novo {{ticket.ticket_id}} - {{company_name}}')
        ticket = TestDataFactory.create_ticket(company=self.company, customer=self.customer, department=self.department)
        self.assertEqual(notify_new_ticket(ticket), 1)
        self.assertEqual(mail.outbox[0].to, ['staff@acme.com'])
        self.assertEqual(mail.outbox[0].subject, f'Novo {ticket.ticket_id} - ACME')

    def test_company_template_preferred(self):
        TestDataFactory.create_email_template(is_default=True, subject='Global')
        TestDataFactory.create_email_template(company=self.company, subject='Empresa')
        template = EmailNotificationService().get_template('new_ticket', self.company.id)
        self.assertEqual(template.subject_template, 'Empresa')

    def test_no_template_sends_nothing(self):
        ticket = TestDataFactory.create_ticket(company=self.company, customer=self.customer, department=self.department)
        self.assertEqual(notify_new_ticket(ticket), 0)
        self.assertEqual(len(mail.outbox), 0)

    def test_staff_reply_goes_to_requester(self):
        TestDataFactory.create_email_template(template_type='ticket_reply', is_default=True,
                                              subject='Resposta', html='<p>{{reply.message}}</p>')
        ticket = TestDataFactory.create_ticket(company=self.company, customer=self.customer, department=self.department)
        reply = TicketReply.objects.create(ticket=ticket, user=self.staff, message='Resolvido o acesso')
        self.assertEqual(notify_ticket_reply(reply), 1)
        self.assertEqual(mail.outbox[0].to, ['joao@acme.com'])
        self.assertIn('Resolvido o acesso', mail.outbox[0].alternatives[0][0])

    def test_sent_email_blanks_empty_variables(self):
        """Test a sent email shows no raw placeholder for a documented variable without value"""
        TestDataFactory.create_email_template(
            template_type='ticket_resolved', is_default=True, subject='{{ticket.ticket_id}} resolvido',
            html='<p>Telefone: [{{customer.phone}}]</p><p>{{foo.bar}}</p>', text='Telefone: [{{customer.phone}}]'
        )
        ticket = TestDataFactory.create_ticket(company=self.company, customer=self.customer, department=self.department)
        self.assertEqual(notify_ticket_resolved(ticket), 1)
        message = mail.outbox[0]
        self.assertEqual(message.to, ['joao@acme.com'])
        self.assertEqual(message.body, 'Telefone: []')
        html = message.alternatives[0][0]
        self.assertIn('Telefone: []', html)
        self.assertNotIn('{{customer.phone}}', html)
        self.assertIn('{{foo.bar}}', html)

    def test_due_soon_goes_to_assignee(self):
        """Test the due-soon warning goes to the assigned official only"""
        TestDataFactory.create_email_template(template_type='ticket_due_soon', is_default=True,
                                              subject='{{ticket.ticket_id}} vence logo', html='<p>{{system.message}}</p>')
        other = TestDataFactory.create_user(role='support', company=self.company, email='outro@acme.com')
        TestDataFactory.create_official(company=self.company, user=other, departments=[self.department])
        assignee = self.staff.official
        ticket = TestDataFactory.create_ticket(company=self.company, customer=self.customer,
                                               department=self.department, assigned_to=assignee)
        self.assertEqual(notify_ticket_due_soon(ticket, 3), 1)
        self.assertEqual(mail.outbox[0].to, ['staff@acme.com'])
        self.assertIn('vence em 3 horas', mail.outbox[0].alternatives[0][0])

    def test_due_soon_unassigned_goes_to_department(self):
        TestDataFactory.create_email_template(template_type='ticket_due_soon', is_default=True)
        other = TestDataFactory.create_user(role='support', company=self.company, email='outro@acme.com')
        TestDataFactory.create_official(company=self.company, user=other, departments=[self.department])
        ticket = TestDataFactory.create_ticket(company=self.company, customer=self.customer, department=self.department)
        self.assertEqual(notify_ticket_due_soon(ticket, 10), 2)

    def test_duplicate_recipients_sent_once(self):
        TestDataFactory.create_email_template(is_default=True)
        ticket = TestDataFactory.create_ticket(company=self.company, customer=self.customer)
        context = build_ticket_context(ticket)
        sent = EmailNotificationService().notify('new_ticket', ['a@acme.com', 'A@acme.com', None], context, self.company)
        self.assertEqual(sent, 1)
