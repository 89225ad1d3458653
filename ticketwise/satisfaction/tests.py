"""
Test suite for Satisfaction module
Tests: public survey page, answering, expiry, pending surveys and dashboard
"""
from datetime import timedelta
from io import StringIO
from unittest.mock import patch

from django.core import mail
from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from ticketwise.core.exceptions import GoneError
from ticketwise.core.models import AuditLog
from ticketwise.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from .models import SatisfactionSurvey
from .services import (
    SurveyAlreadyRespondedError, create_survey_for_ticket, expire_overdue_surveys, get_theme_colors,
    load_open_survey, submit_response, DEFAULT_THEME
)


class SurveyServiceTests(TestCase):
    """Test survey services"""

    def setUp(self):
        self.company = TestDataFactory.create_company()

    def test_no_survey_without_email(self):
        ticket = TestDataFactory.create_ticket(company=self.company)
        self.assertIsNone(create_survey_for_ticket(ticket))

    def test_one_survey_per_ticket(self):
        ticket = TestDataFactory.create_ticket(company=self.company, customer_email='ana@acme.com')
        first = create_survey_for_ticket(ticket)
        self.assertEqual(create_survey_for_ticket(ticket), first)
        self.assertEqual(first.status, 'sent')
        self.assertTrue(first.expires_at > timezone.now() + timedelta(days=6))

    def test_new_survey_emails_link(self):
        """Test the requester receives the answer link when a survey opens"""
        company = TestDataFactory.create_company(domain='suporte.acme.com')
        TestDataFactory.create_email_template('satisfaction_survey', is_default=True,
                                              subject='Avalie o ticket {{ticket.ticket_id}}',
                                              html='<a href="{{survey.link}}">Responder</a>')
        ticket = TestDataFactory.create_ticket(company=company, customer_email='ana@acme.com')
        survey = create_survey_for_ticket(ticket)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['ana@acme.com'])
        self.assertEqual(mail.outbox[0].subject, f'Avalie o ticket {ticket.ticket_id}')
        self.assertIn(f'https://suporte.acme.com/satisfaction/{survey.survey_token}',
                      mail.outbox[0].alternatives[0][0])

        create_survey_for_ticket(ticket)
        self.assertEqual(len(mail.outbox), 1)

    def test_second_answer_conflicts(self):
        """Test only the first answer of a survey is stored"""
        ticket = TestDataFactory.create_ticket(company=self.company, customer_email='ana@acme.com')
        survey = TestDataFactory.create_survey(ticket)
        submit_response(survey.survey_token, 5, 'Rápido')
        with self.assertRaises(SurveyAlreadyRespondedError) as ctx:
            submit_response(survey.survey_token, 1, 'Mudei de ideia')
        self.assertEqual(ctx.exception.survey.rating, 5)
        survey.refresh_from_db()
        self.assertEqual(survey.rating, 5)
        self.assertEqual(survey.comments, 'Rápido')

    def test_answer_over_stale_read_conflicts(self):
        """Test an answer read as open but stored by someone else first is refused"""
        ticket = TestDataFactory.create_ticket(company=self.company, customer_email='ana@acme.com')
        survey = TestDataFactory.create_survey(ticket)
        stale = load_open_survey(survey.survey_token)
        submit_response(survey.survey_token, 4, '')

        with patch('ticketwise.satisfaction.services.load_open_survey', return_value=stale):
            with self.assertRaises(SurveyAlreadyRespondedError):
                submit_response(survey.survey_token, 1, 'Ruim')
        survey.refresh_from_db()
        self.assertEqual(survey.rating, 4)
        self.assertEqual(survey.comments, '')

    def test_answer_after_expiry_is_gone(self):
        """Test an answer is refused once the survey expired in between"""
        ticket = TestDataFactory.create_ticket(company=self.company, customer_email='ana@acme.com')
        survey = TestDataFactory.create_survey(ticket)
        stale = load_open_survey(survey.survey_token)
        SatisfactionSurvey.objects.filter(pk=survey.pk).update(status='expired')

        with patch('ticketwise.satisfaction.services.load_open_survey', return_value=stale):
            with self.assertRaises(GoneError):
                submit_response(survey.survey_token, 5)

    def test_expire_overdue(self):
        ticket = TestDataFactory.create_ticket(company=self.company, customer_email='ana@acme.com')
        overdue = TestDataFactory.create_survey(ticket, expires_in_days=-1)
        other_ticket = TestDataFactory.create_ticket(company=self.company, customer_email='bia@acme.com')
        open_survey = TestDataFactory.create_survey(other_ticket)
        self.assertEqual(expire_overdue_surveys(), 1)
        overdue.refresh_from_db()
        open_survey.refresh_from_db()
        self.assertEqual(overdue.status, 'expired')
        self.assertEqual(open_survey.status, 'sent')

    def test_expire_command(self):
        ticket = TestDataFactory.create_ticket(company=self.company, customer_email='ana@acme.com')
        TestDataFactory.create_survey(ticket, expires_in_days=-2)
        out = StringIO()
        call_command('expire_surveys', stdout=out)
        self.assertIn('1 surveys expired', out.getvalue())

    def test_theme_by_domain(self):
        self.assertEqual(get_theme_colors('suporte.vixbrasil.com')['primary'], '#D4A017')
        self.assertEqual(get_theme_colors(None), DEFAULT_THEME)


class PublicSurveyTests(TestCase):
    """Test the public survey endpoint"""

    def setUp(self):
        self.company = TestDataFactory.create_company(domain='oficinamuda.com')
        self.ticket = TestDataFactory.create_ticket(company=self.company, customer_email='ana@acme.com', title='Sem rede')
        self.survey = TestDataFactory.create_survey(self.ticket)
        self.client = APIClient()
        self.url = f'/api/v1/satisfaction-surveys/{self.survey.survey_token}/'

    def test_get_survey_without_login(self):
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['ticket']['title'], 'Sem rede')
        self.assertEqual(response.data['company']['colors']['primary'], '#005A8B')

    def test_unknown_token(self):
        response = self.client.get('/api/v1/satisfaction-surveys/inexistente/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertIn('error', response.data)

    def test_submit_response(self):
        response = self.client.post(self.url, {'rating': 5, 'comments': ' Ótimo atendimento '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.survey.refresh_from_db()
        self.assertEqual(self.survey.status, 'responded')
        self.assertEqual(self.survey.comments, 'Ótimo atendimento')
        self.assertTrue(AuditLog.objects.filter(action='survey_response', company=self.company).exists())

    def test_low_rating_requires_comment(self):
        response = self.client.post(self.url, {'rating': 2}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('comments', response.data)

    def test_rating_out_of_range(self):
        response = self.client.post(self.url, {'rating': 6}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_already_responded(self):
        """Test a second answer returns the first one"""
        self.client.post(self.url, {'rating': 4}, format='json')
        response = self.client.post(self.url, {'rating': 1, 'comments': 'Mudei de ideia'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertTrue(response.data['already_responded'])
        self.assertEqual(response.data['response']['rating'], 4)

    def test_expired_survey(self):
        """Test an overdue survey is marked expired on access"""
        SatisfactionSurvey.objects.filter(pk=self.survey.pk).update(expires_at=timezone.now() - timedelta(hours=1))
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_410_GONE)
        self.survey.refresh_from_db()
        self.assertEqual(self.survey.status, 'expired')


class SurveyDashboardTests(TestCase):
    """Test pending surveys and the dashboard"""

    def setUp(self):
        self.company = TestDataFactory.create_company()
        self.department = TestDataFactory.create_department(company=self.company, name='Infra')
        self.client = AuthenticatedAPIClient()

    def test_pending_surveys_for_requester(self):
        requester = TestDataFactory.create_user(role='customer', company=self.company, email='ana@acme.com')
        ticket = TestDataFactory.create_ticket(company=self.company, customer_email='ana@acme.com')
        TestDataFactory.create_survey(ticket)
        expired_ticket = TestDataFactory.create_ticket(company=self.company, customer_email='ana@acme.com')
        TestDataFactory.create_survey(expired_ticket, expires_in_days=-1)
        self.client.authenticate_user(requester)
        response = self.client.get('/api/v1/satisfaction-surveys/pending/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([survey['ticket_number'] for survey in response.data], [ticket.ticket_id])

    def test_dashboard(self):
        for rating, comments in ((5, 'Excelente'), (1, 'Demorou demais'), (3, '')):
            ticket = TestDataFactory.create_ticket(company=self.company, department=self.department,
                                                   customer_email='ana@acme.com')
            survey = TestDataFactory.create_survey(ticket, status='responded', rating=rating)
            survey.comments = comments
            survey.save()
        TestDataFactory.create_survey(TestDataFactory.create_ticket(company=self.company, customer_email='b@acme.com'))
        other = TestDataFactory.create_ticket(company=TestDataFactory.create_company(), customer_email='c@acme.com')
        TestDataFactory.create_survey(other, status='responded', rating=5)

        self.client.authenticate_user(TestDataFactory.create_user(role='manager', company=self.company))
        response = self.client.get('/api/v1/satisfaction-dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        data = response.data
        self.assertEqual(data['total_sent'], 4)
        self.assertEqual(data['total_responded'], 3)
        self.assertEqual(data['response_rate'], 75.0)
        self.assertEqual(data['average_rating'], 3.0)
        self.assertEqual(data['rating_distribution'], {'1': 1, '2': 0, '3': 1, '4': 0, '5': 1})
        self.assertEqual(data['by_department'][0]['department_name'], 'Infra')
        self.assertEqual(len(data['latest_comments']), 2)
        self.assertTrue(any(comment['low_rating'] for comment in data['latest_comments']))

    def test_dashboard_invalid_date(self):
        self.client.authenticate_user(TestDataFactory.create_user(role='manager', company=self.company))
        response = self.client.get('/api/v1/satisfaction-dashboard/?date_from=31-12-2026')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_dashboard_denied_to_requesters(self):
        self.client.authenticate_user(TestDataFactory.create_user(role='customer', company=self.company))
        response = self.client.get('/api/v1/satisfaction-dashboard/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
