"""
Test suite for Reports module
Tests: ticket report and summary, exports, performance, clients, departments, access rules
"""
from datetime import timedelta

from django.core.cache import cache
from django.test import TestCase
from django.utils import timezone
from openpyxl import load_workbook
from rest_framework import status
import io

from ticketwise.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from ticketwise.tickets.models import Ticket


class ReportsTests(TestCase):
    """Test report endpoints"""

    def setUp(self):
        cache.clear()
        self.company = TestDataFactory.create_company()
        self.other_company = TestDataFactory.create_company()
        self.user = TestDataFactory.create_user(role='manager', company=self.company)
        self.department = TestDataFactory.create_department(company=self.company, name='Infraestrutura')
        self.official = TestDataFactory.create_official(company=self.company, name='Ana Souza', departments=[self.department])
        self.customer = TestDataFactory.create_customer(company=self.company, name='Carlos', email='carlos@cliente.com')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def _resolved_ticket(self, hours):
        ticket = TestDataFactory.create_ticket(
            company=self.company, customer=self.customer, department=self.department,
            assigned_to=self.official, status='resolved', priority='high'
        )
        Ticket.objects.filter(pk=ticket.pk).update(
            resolved_at=ticket.created_at + timedelta(hours=hours),
            first_response_at=ticket.created_at + timedelta(hours=1)
        )
        return ticket

    def test_tickets_report_summary(self):
        """Test totals and averages of the ticket report"""
        self._resolved_ticket(2)
        self._resolved_ticket(4)
        TestDataFactory.create_ticket(company=self.company, customer=self.customer, department=self.department)
        TestDataFactory.create_ticket(company=self.other_company)

        response = self.client.get('/api/v1/reports/tickets/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        summary = response.data['summary']
        self.assertEqual(summary['total'], 3)
        self.assertEqual(summary['resolved'], 2)
        self.assertEqual(summary['by_status'], {'resolved': 2, 'new': 1})
        self.assertEqual(summary['by_priority'], {'high': 2, 'medium': 1})
        self.assertEqual(summary['avg_resolution_hours'], 3.0)
        self.assertEqual(summary['avg_first_response_hours'], 1.0)
        self.assertEqual(len(response.data['tickets']), 3)
        self.assertIn('private', response['Cache-Control'])

    def test_tickets_report_default_period(self):
        """Test the default period covers the last 30 days"""
        response = self.client.get('/api/v1/reports/tickets/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        today = timezone.localdate()
        self.assertEqual(response.data['period']['to'], today.isoformat())
        self.assertEqual(response.data['period']['from'], (today - timedelta(days=30)).isoformat())

    def test_tickets_report_status_filter(self):
        """Test filtering the report by status"""
        self._resolved_ticket(2)
        TestDataFactory.create_ticket(company=self.company)
        response = self.client.get('/api/v1/reports/tickets/?status=new')
        self.assertEqual(response.data['summary']['total'], 1)

    def test_tickets_report_out_of_period(self):
        """Test tickets outside the requested range are ignored"""
        TestDataFactory.create_ticket(company=self.company)
        response = self.client.get('/api/v1/reports/tickets/?date_from=2020-01-01&date_to=2020-12-31')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['summary']['total'], 0)
        self.assertIsNone(response.data['summary']['avg_resolution_hours'])

    def test_invalid_date(self):
        """Test malformed dates are rejected"""
        response = self.client.get('/api/v1/reports/tickets/?date_from=01/02/2024')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('error', response.data)

    def test_inverted_period(self):
        """Test date_from after date_to is rejected"""
        response = self.client.get('/api/v1/reports/tickets/?date_from=2024-12-31&date_to=2024-01-01')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_support_role_denied(self):
        """Test reports are limited to management roles"""
        support = TestDataFactory.create_user(role='support', company=self.company)
        self.client.authenticate_user(support)
        response = self.client.get('/api/v1/reports/tickets/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_unauthenticated(self):
        """Test reports require authentication"""
        self.client.logout()
        response = self.client.get('/api/v1/reports/tickets/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_export_csv(self):
        """Test CSV export of the ticket report"""
        ticket = self._resolved_ticket(2)
        response = self.client.get('/api/v1/reports/tickets/export/?format=csv')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('text/csv', response['Content-Type'])
        self.assertIn('attachment; filename="relatorio_tickets_', response['Content-Disposition'])
        content = response.content.decode('utf-8-sig')
        self.assertIn('Ticket,Título,Status', content)
        self.assertIn(ticket.ticket_id, content)
        self.assertIn('Resolvido', content)

    def test_export_excel(self):
        """Test XLSX export of the ticket report"""
        ticket = self._resolved_ticket(2)
        response = self.client.get('/api/v1/reports/tickets/export/?format=excel')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        workbook = load_workbook(io.BytesIO(response.content))
        sheet = workbook.active
        self.assertEqual(sheet.cell(row=1, column=1).value, 'Ticket')
        self.assertEqual(sheet.cell(row=2, column=1).value, ticket.ticket_id)

    def test_export_invalid_format(self):
        """Test unknown export formats are rejected"""
        response = self.client.get('/api/v1/reports/tickets/export/?format=pdf')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_performance_report(self):
        """Test per official and per department figures"""
        self._resolved_ticket(2)
        TestDataFactory.create_ticket(company=self.company, department=self.department, assigned_to=self.official)

        response = self.client.get('/api/v1/reports/performance/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        official = response.data['officials'][0]
        self.assertEqual(official['name'], 'Ana Souza')
        self.assertEqual(official['assigned'], 2)
        self.assertEqual(official['resolved'], 1)
        self.assertEqual(official['resolution_rate'], 50.0)
        self.assertEqual(official['avg_resolution_hours'], 2.0)
        department = response.data['departments'][0]
        self.assertEqual(department['name'], 'Infraestrutura')
        self.assertEqual(department['total'], 2)

    def test_clients_report(self):
        """Test ticket counts per requester"""
        self._resolved_ticket(2)
        TestDataFactory.create_ticket(company=self.company, customer=self.customer)
        TestDataFactory.create_ticket(company=self.company, customer_email='outro@cliente.com')

        response = self.client.get('/api/v1/reports/clients/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        clients = response.data['clients']
        self.assertEqual(len(clients), 2)
        self.assertEqual(clients[0]['email'], 'carlos@cliente.com')
        self.assertEqual(clients[0]['total'], 2)
        self.assertEqual(clients[0]['resolved'], 1)

    def test_departments_report_with_satisfaction(self):
        """Test department totals include the average survey rating"""
        first = self._resolved_ticket(2)
        second = self._resolved_ticket(3)
        TestDataFactory.create_survey(first, status='responded', rating=5)
        TestDataFactory.create_survey(second, status='responded', rating=4)
        TestDataFactory.create_ticket(company=self.company, department=self.department)

        response = self.client.get('/api/v1/reports/departments/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        department = response.data['departments'][0]
        self.assertEqual(department['total'], 3)
        self.assertEqual(department['resolved'], 2)
        self.assertEqual(department['open'], 1)
        self.assertEqual(department['avg_satisfaction'], 4.5)

    def test_admin_sees_all_companies(self):
        """Test admins see every company unless one is requested"""
        admin = TestDataFactory.create_user(role='admin')
        TestDataFactory.create_ticket(company=self.company)
        TestDataFactory.create_ticket(company=self.other_company)
        self.client.authenticate_user(admin)

        response = self.client.get('/api/v1/reports/tickets/')
        self.assertEqual(response.data['summary']['total'], 2)
        response = self.client.get(f'/api/v1/reports/tickets/?company_id={self.other_company.id}')
        self.assertEqual(response.data['summary']['total'], 1)
