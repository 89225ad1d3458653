"""
Test suite for Tickets module
Tests: ticket numbering, creation, visibility, status transitions,
assignment, replies and due-date checks
"""
from datetime import datetime, timedelta
from io import StringIO
from unittest.mock import patch

from django.core import mail
from django.core.management import call_command
from django.db import IntegrityError
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from ticketwise.core.exceptions import ServiceError
from ticketwise.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from ticketwise.satisfaction.models import SatisfactionSurvey
from .models import Ticket, TicketStatusHistory
from .services import (
    TICKET_ID_ATTEMPTS, generate_ticket_id, create_ticket, change_status, add_reply, check_tickets_due_soon
)


class TicketServiceTests(TestCase):
    """Test ticket services"""

    def setUp(self):
        self.company = TestDataFactory.create_company()
        self.customer = TestDataFactory.create_customer(company=self.company, email='cliente@acme.com')

    def test_generate_ticket_id_sequence(self):
        now = timezone.make_aware(datetime(2026, 5, 10, 12, 0))
        self.assertEqual(generate_ticket_id(now), 'TKT-2026-0001')
        Ticket.objects.create(ticket_id='TKT-2026-0041', title='Antigo', description='x', company=self.company)
        self.assertEqual(generate_ticket_id(now), 'TKT-2026-0042')
        self.assertEqual(generate_ticket_id(timezone.make_aware(datetime(2027, 1, 1, 12, 0))), 'TKT-2027-0001')

    def test_generate_ticket_id_past_four_digits(self):
        """Test numbering compares numbers, not text"""
        now = timezone.make_aware(datetime(2026, 5, 10, 12, 0))
        for ticket_id in ('TKT-2026-9999', 'TKT-2026-10000', 'TKT-2026-ABCD'):
            Ticket.objects.create(ticket_id=ticket_id, title='Antigo', description='x', company=self.company)
        self.assertEqual(generate_ticket_id(now), 'TKT-2026-10001')

    def test_create_ticket_retries_taken_number(self):
        """Test a number taken between read and insert is retried with the next one"""
        Ticket.objects.create(ticket_id='TKT-2026-0001', title='Antigo', description='x', company=self.company)
        with patch('ticketwise.tickets.services.generate_ticket_id', side_effect=['TKT-2026-0001', 'TKT-2026-0002']):
            ticket = create_ticket(title='Novo', description='y', company=self.company, customer=self.customer)
        self.assertEqual(ticket.ticket_id, 'TKT-2026-0002')

    def test_create_ticket_gives_up(self):
        Ticket.objects.create(ticket_id='TKT-2026-0001', title='Antigo', description='x', company=self.company)
        with patch('ticketwise.tickets.services.generate_ticket_id', return_value='TKT-2026-0001') as generate:
            with self.assertRaises(IntegrityError):
                create_ticket(title='Novo', description='y', company=self.company)
        self.assertEqual(generate.call_count, TICKET_ID_ATTEMPTS)
        self.assertEqual(Ticket.objects.count(), 1)

    def test_escalation_notifies_requester_and_staff(self):
        """Test escalating sends the escalation email to everyone but the actor"""
        TestDataFactory.create_email_template(template_type='ticket_escalated', is_default=True,
                                              subject='{{ticket.ticket_id}} escalado')
        TestDataFactory.create_email_template(template_type='status_changed', is_default=True, subject='Status')
        department = TestDataFactory.create_department(company=self.company)
        actor = TestDataFactory.create_user(role='support', company=self.company, email='ator@acme.com')
        colleague = TestDataFactory.create_user(role='support', company=self.company, email='colega@acme.com')
        for user in (actor, colleague):
            TestDataFactory.create_official(company=self.company, user=user, departments=[department])
        ticket = TestDataFactory.create_ticket(company=self.company, customer=self.customer, department=department)

        change_status(ticket, 'escalated', actor)
        recipients = sorted(message.to[0] for message in mail.outbox)
        self.assertEqual(recipients, ['cliente@acme.com', 'colega@acme.com'])
        self.assertTrue(all(message.subject == f'{ticket.ticket_id} escalado' for message in mail.outbox))

    def test_resolve_stamps_and_creates_survey(self):
        ticket = TestDataFactory.create_ticket(company=self.company, customer=self.customer)
        history = change_status(ticket, 'resolved')
        self.assertEqual(history.old_status, 'new')
        self.assertIsNotNone(ticket.resolved_at)
        survey = SatisfactionSurvey.objects.get(ticket=ticket)
        self.assertEqual(survey.customer_email, 'cliente@acme.com')

        change_status(ticket, 'reopened')
        self.assertIsNone(ticket.resolved_at)
        change_status(ticket, 'resolved')
        self.assertEqual(SatisfactionSurvey.objects.filter(ticket=ticket).count(), 1)

    def test_same_status_is_noop(self):
        ticket = TestDataFactory.create_ticket(company=self.company, status='ongoing')
        self.assertIsNone(change_status(ticket, 'ongoing'))
        self.assertFalse(TicketStatusHistory.objects.filter(ticket=ticket).exists())

    def test_invalid_status(self):
        ticket = TestDataFactory.create_ticket(company=self.company)
        with self.assertRaises(ServiceError):
            change_status(ticket, 'desconhecido')

    def test_first_response_only_for_staff(self):
        ticket = TestDataFactory.create_ticket(company=self.company, customer=self.customer)
        requester = TestDataFactory.create_user(role='customer', company=self.company, email='cliente@acme.com')
        add_reply(ticket, requester, 'Alguma novidade?')
        self.assertIsNone(ticket.first_response_at)

        staff = TestDataFactory.create_user(role='support', company=self.company)
        reply = add_reply(ticket, staff, 'Estamos verificando')
        self.assertEqual(ticket.first_response_at, reply.created_at)
        add_reply(ticket, staff, 'Segunda resposta')
        ticket.refresh_from_db()
        self.assertEqual(ticket.first_response_at, reply.created_at)


class TicketAPITests(TestCase):
    """Test ticket endpoints"""

    def setUp(self):
        self.company = TestDataFactory.create_company()
        self.department = TestDataFactory.create_department(company=self.company)
        self.staff = TestDataFactory.create_user(role='support', company=self.company)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.staff)

    def test_staff_creates_ticket(self):
        """Test staff open tickets on behalf of a requester"""
        customer = TestDataFactory.create_customer(company=self.company, email='pedro@acme.com')
        response = self.client.post('/api/v1/tickets/', {
            'title': 'Impressora travada', 'description': 'Papel preso', 'priority': 'high',
            'department': self.department.id, 'customer_email': 'PEDRO@acme.com'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        ticket = Ticket.objects.get(pk=response.data['id'])
        self.assertTrue(ticket.ticket_id.startswith(f'TKT-{timezone.now().year}-'))
        self.assertEqual(ticket.customer_id, customer.id)
        self.assertEqual(ticket.company_id, self.company.id)
        self.assertEqual(response.data['priority_text'], 'Alta')

    def test_staff_must_name_requester(self):
        response = self.client.post('/api/v1/tickets/', {'title': 'Sem solicitante', 'description': 'x'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('customer_email', response.data)

    def test_customer_creates_own_ticket(self):
        """Test requesters always open tickets for themselves"""
        requester = TestDataFactory.create_user(role='customer', company=self.company, email='ana@acme.com')
        self.client.authenticate_user(requester)
        response = self.client.post('/api/v1/tickets/', {
            'title': 'Sem acesso', 'description': 'Senha expirada', 'customer_email': 'outro@acme.com'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['customer_email'], 'ana@acme.com')

    def test_customer_sees_only_own_tickets(self):
        requester = TestDataFactory.create_user(role='customer', company=self.company, email='ana@acme.com')
        own = TestDataFactory.create_ticket(company=self.company, customer_email='ana@acme.com')
        other = TestDataFactory.create_ticket(company=self.company, customer_email='bia@acme.com')
        self.client.authenticate_user(requester)
        response = self.client.get('/api/v1/tickets/')
        self.assertEqual([ticket['id'] for ticket in response.data['data']], [own.id])
        response = self.client.get(f'/api/v1/tickets/{other.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_list_filters(self):
        TestDataFactory.create_ticket(company=self.company, title='Rede lenta', status='ongoing')
        TestDataFactory.create_ticket(company=self.company, title='Mouse quebrado')
        TestDataFactory.create_ticket(company=TestDataFactory.create_company(), title='Rede de outra empresa')
        response = self.client.get('/api/v1/tickets/?search=rede')
        self.assertEqual([ticket['title'] for ticket in response.data['data']], ['Rede lenta'])
        response = self.client.get('/api/v1/tickets/?status=new')
        self.assertEqual([ticket['title'] for ticket in response.data['data']], ['Mouse quebrado'])

    def test_patch_status_records_history(self):
        """Test status changes through the detail endpoint"""
        ticket = TestDataFactory.create_ticket(company=self.company)
        response = self.client.patch(f'/api/v1/tickets/{ticket.id}/', {'status': 'ongoing'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'ongoing')
        response = self.client.get(f'/api/v1/tickets/{ticket.id}/')
        self.assertEqual(response.data['status_history'][0]['new_status'], 'ongoing')
        self.assertEqual(response.data['status_history'][0]['changed_by'], self.staff.id)

    def test_assign_ticket(self):
        official = TestDataFactory.create_official(company=self.company, user=self.staff)
        ticket = TestDataFactory.create_ticket(company=self.company)
        response = self.client.patch(f'/api/v1/tickets/{ticket.id}/', {'assigned_to_id': official.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['assigned_to'], official.id)

    def test_assign_official_of_other_company(self):
        official = TestDataFactory.create_official(company=TestDataFactory.create_company())
        ticket = TestDataFactory.create_ticket(company=self.company)
        response = self.client.patch(f'/api/v1/tickets/{ticket.id}/', {'assigned_to_id': official.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_customer_can_not_patch(self):
        requester = TestDataFactory.create_user(role='customer', company=self.company, email='ana@acme.com')
        ticket = TestDataFactory.create_ticket(company=self.company, customer_email='ana@acme.com')
        self.client.authenticate_user(requester)
        response = self.client.patch(f'/api/v1/tickets/{ticket.id}/', {'status': 'closed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class TicketReplyTests(TestCase):
    """Test ticket replies"""

    def setUp(self):
        self.company = TestDataFactory.create_company()
        self.staff = TestDataFactory.create_user(role='support', company=self.company)
        self.requester = TestDataFactory.create_user(role='customer', company=self.company, email='ana@acme.com')
        self.ticket = TestDataFactory.create_ticket(company=self.company, customer_email='ana@acme.com')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.staff)

    def test_reply_with_status(self):
        """Test a staff reply may resolve the ticket"""
        response = self.client.post(f'/api/v1/tickets/{self.ticket.id}/replies/', {
            'message': 'Senha redefinida', 'status': 'resolved'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.ticket.refresh_from_db()
        self.assertEqual(self.ticket.status, 'resolved')
        self.assertIsNotNone(self.ticket.first_response_at)
        self.assertTrue(SatisfactionSurvey.objects.filter(ticket=self.ticket).exists())

    def test_internal_replies_hidden_from_requester(self):
        self.client.post(f'/api/v1/tickets/{self.ticket.id}/replies/', {
            'message': 'Verificar com infra', 'is_internal': True
        }, format='json')
        self.client.post(f'/api/v1/tickets/{self.ticket.id}/replies/', {'message': 'Em andamento'}, format='json')
        self.client.authenticate_user(self.requester)
        response = self.client.get(f'/api/v1/tickets/{self.ticket.id}/replies/')
        self.assertEqual([reply['message'] for reply in response.data], ['Em andamento'])

    def test_requester_can_not_change_status(self):
        self.client.authenticate_user(self.requester)
        response = self.client.post(f'/api/v1/tickets/{self.ticket.id}/replies/', {
            'message': 'Pode fechar', 'status': 'closed'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_empty_message(self):
        response = self.client.post(f'/api/v1/tickets/{self.ticket.id}/replies/', {'message': '   '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_reply_notifies_requester(self):
        TestDataFactory.create_email_template(template_type='ticket_reply', is_default=True, subject='Nova resposta')
        self.client.post(f'/api/v1/tickets/{self.ticket.id}/replies/', {'message': 'Estamos verificando'}, format='json')
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['ana@acme.com'])


class TicketDueDateTests(TestCase):
    """Test due-soon warnings and resolution deadline breaches"""

    def setUp(self):
        self.company = TestDataFactory.create_company()
        self.department = TestDataFactory.create_department(company=self.company)
        self.staff = TestDataFactory.create_user(role='support', company=self.company, email='staff@acme.com')
        TestDataFactory.create_official(company=self.company, user=self.staff, departments=[self.department])
        self.customer = TestDataFactory.create_customer(company=self.company, email='cliente@acme.com')
        TestDataFactory.create_email_template(template_type='ticket_due_soon', is_default=True,
                                              subject='{{ticket.ticket_id}} vence logo', html='<p>{{system.message}}</p>')
        TestDataFactory.create_email_template(template_type='ticket_escalated', is_default=True,
                                              subject='{{ticket.ticket_id}} atrasado', html='<p>{{system.message}}</p>')

    def _ticket(self, **kwargs):
        return TestDataFactory.create_ticket(company=self.company, customer=self.customer,
                                             department=self.department, **kwargs)

    def test_warns_once_near_deadline(self):
        """Test a medium ticket is warned with 3 hours left, and only once"""
        ticket = self._ticket(priority='medium')
        now = ticket.created_at + timedelta(hours=21)
        self.assertEqual(check_tickets_due_soon(now), (1, 0))
        self.assertEqual(mail.outbox[0].to, ['staff@acme.com'])
        self.assertIn('vence em 3 horas', mail.outbox[0].alternatives[0][0])
        ticket.refresh_from_db()
        self.assertTrue(ticket.due_soon_notified)

        self.assertEqual(check_tickets_due_soon(now + timedelta(minutes=30)), (0, 0))
        self.assertEqual(len(mail.outbox), 1)

    def test_far_from_deadline_not_warned(self):
        ticket = self._ticket(priority='low')
        self.assertEqual(check_tickets_due_soon(ticket.created_at + timedelta(hours=40)), (0, 0))
        self.assertEqual(len(mail.outbox), 0)

    def test_past_deadline_flags_breach(self):
        """Test a critical ticket past 4 hours is flagged and escalated once"""
        ticket = self._ticket(priority='critical')
        now = ticket.created_at + timedelta(hours=5)
        self.assertEqual(check_tickets_due_soon(now), (0, 1))
        ticket.refresh_from_db()
        self.assertTrue(ticket.sla_breached)
        self.assertEqual(sorted(message.to[0] for message in mail.outbox), ['cliente@acme.com', 'staff@acme.com'])
        self.assertIn('prazo de resolução', mail.outbox[0].alternatives[0][0])

        self.assertEqual(check_tickets_due_soon(now + timedelta(hours=1)), (0, 0))
        self.assertEqual(len(mail.outbox), 2)

    def test_paused_and_finished_tickets_skipped(self):
        waiting = self._ticket(priority='critical', status='waiting_customer')
        self._ticket(priority='critical', status='resolved')
        self.assertEqual(check_tickets_due_soon(waiting.created_at + timedelta(hours=10)), (0, 0))
        waiting.refresh_from_db()
        self.assertFalse(waiting.sla_breached)

    def test_check_command(self):
        ticket = self._ticket(priority='high')
        Ticket.objects.filter(pk=ticket.pk).update(created_at=timezone.now() - timedelta(hours=9))
        out = StringIO()
        call_command('check_due_tickets', stdout=out)
        self.assertIn('0 tickets warned, 1 past deadline', out.getvalue())
