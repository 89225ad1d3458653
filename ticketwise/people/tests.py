"""
Test suite for People module
Tests: person creation with requester and official profiles, role hierarchy,
profile updates, listing filters and allowed roles
"""
from django.contrib.auth import get_user_model
from django.core import mail
from django.test import TestCase
from rest_framework import status

from ticketwise.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from ticketwise.organization.models import Official
from ticketwise.parties.models import Customer

User = get_user_model()


class PersonCreateTests(TestCase):
    """Test creating people"""

    def setUp(self):
        self.company = TestDataFactory.create_company()
        self.department = TestDataFactory.create_department(company=self.company, name='Service Desk')
        self.manager = TestDataFactory.create_user(role='manager', company=self.company)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.manager)

    def test_create_requester(self):
        """Test a requester-only person becomes a customer"""
        response = self.client.post('/api/v1/people/', {
            'name': 'Lucas', 'email': 'Lucas@Empresa.com', 'password': 'senha123',
            'is_requester': True, 'company_name': 'Filial Sul'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        user = User.objects.get(email='lucas@empresa.com')
        self.assertEqual(user.role, 'customer')
        self.assertEqual(user.username, 'lucas@empresa.com')
        self.assertEqual(user.company_id, self.company.id)
        customer = Customer.objects.get(user=user)
        self.assertEqual(customer.company_name, 'Filial Sul')
        self.assertTrue(response.data['is_requester'])
        self.assertEqual(response.data['accessInfo']['password'], 'senha123')

    def test_create_official_with_departments(self):
        """Test an official person becomes support staff"""
        response = self.client.post('/api/v1/people/', {
            'name': 'Rita', 'email': 'rita@empresa.com', 'password': 'senha123',
            'is_requester': True, 'is_official': True, 'departments': ['service desk']
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        user = User.objects.get(email='rita@empresa.com')
        self.assertEqual(user.role, 'support')
        official = Official.objects.get(user=user)
        self.assertEqual(list(official.departments.all()), [self.department])
        self.assertEqual(response.data['official']['departments'], ['Service Desk'])

    def test_links_existing_customer(self):
        """Test an existing customer with the same email is linked"""
        customer = TestDataFactory.create_customer(company=self.company, email='antigo@empresa.com')
        response = self.client.post('/api/v1/people/', {
            'name': 'Antigo', 'email': 'antigo@empresa.com', 'password': 'senha123', 'is_requester': True
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        customer.refresh_from_db()
        self.assertEqual(customer.user.email, 'antigo@empresa.com')
        self.assertEqual(Customer.objects.filter(email='antigo@empresa.com').count(), 1)

    def test_role_outside_hierarchy(self):
        """Test managers can not create managers"""
        response = self.client.post('/api/v1/people/', {
            'name': 'Chefe', 'email': 'chefe@empresa.com', 'password': 'senha123', 'role': 'manager'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(User.objects.filter(email='chefe@empresa.com').exists())

    def test_support_can_only_create_customers(self):
        """Test support users only create requesters"""
        self.client.authenticate_user(TestDataFactory.create_user(role='support', company=self.company))
        response = self.client.post('/api/v1/people/', {
            'name': 'Visual', 'email': 'visual@empresa.com', 'password': 'senha123', 'role': 'viewer'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = self.client.post('/api/v1/people/', {
            'name': 'Cliente', 'email': 'cliente@empresa.com', 'password': 'senha123', 'is_requester': True
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_password_required(self):
        """Test a password is required on create"""
        response = self.client.post('/api/v1/people/', {'name': 'Sem Senha', 'email': 'sem@empresa.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('password', response.data)

    def test_duplicate_email(self):
        """Test emails are unique across users"""
        TestDataFactory.create_user(email='dup@empresa.com')
        response = self.client.post('/api/v1/people/', {
            'name': 'Dup', 'email': 'DUP@empresa.com', 'password': 'senha123', 'is_requester': True
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('email', response.data)

    def test_create_invalid_email(self):
        """Test a malformed email is rejected"""
        response = self.client.post('/api/v1/people/', {
            'name': 'Rita', 'email': 'rita.empresa.com', 'password': 'senha123'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('email', response.data)
        self.assertFalse(User.objects.filter(name='Rita').exists())

    def test_create_blank_name(self):
        """Test a blank name is rejected"""
        response = self.client.post('/api/v1/people/', {
            'name': '  ', 'email': 'rita@empresa.com', 'password': 'senha123'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('name', response.data)
        self.assertFalse(User.objects.filter(email='rita@empresa.com').exists())

    def test_customer_of_another_user_not_taken(self):
        """Test a requester can not be linked to a customer that already has a login"""
        owner = TestDataFactory.create_user(role='customer', company=self.company, email='dono@empresa.com')
        customer = TestDataFactory.create_customer(company=self.company, email='compartilhado@empresa.com', user=owner)
        response = self.client.post('/api/v1/people/', {
            'name': 'Outro', 'email': 'compartilhado@empresa.com', 'password': 'senha123', 'is_requester': True
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('email', response.data)
        customer.refresh_from_db()
        self.assertEqual(customer.user_id, owner.id)

    def test_create_sends_welcome_email(self):
        """Test a new active person receives the user_created email"""
        TestDataFactory.create_email_template('user_created', is_default=True, subject='Bem-vindo, {{user.name}}',
                                              html='<p>Acesse com {{user.email}}</p>')
        response = self.client.post('/api/v1/people/', {
            'name': 'Lucas', 'email': 'lucas@empresa.com', 'password': 'senha123', 'is_requester': True
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['lucas@empresa.com'])
        self.assertEqual(mail.outbox[0].subject, 'Bem-vindo, Lucas')

    def test_inactive_person_gets_no_welcome_email(self):
        """Test no welcome email goes to a person created inactive"""
        TestDataFactory.create_email_template('user_created', is_default=True)
        response = self.client.post('/api/v1/people/', {
            'name': 'Lucas', 'email': 'lucas@empresa.com', 'password': 'senha123', 'active': False
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(len(mail.outbox), 0)

    def test_unknown_department_aborts(self):
        """Test an unknown department aborts before the user is written"""
        response = self.client.post('/api/v1/people/', {
            'name': 'Rita', 'email': 'rita@empresa.com', 'password': 'senha123',
            'is_official': True, 'departments': ['Inexistente']
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(User.objects.filter(email='rita@empresa.com').exists())


class PersonUpdateTests(TestCase):
    """Test editing people"""

    def setUp(self):
        self.company = TestDataFactory.create_company()
        self.manager = TestDataFactory.create_user(role='manager', company=self.company)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.manager)

    def test_turn_requester_into_official(self):
        """Test adding the official profile changes the role to support"""
        user = TestDataFactory.create_user(role='customer', company=self.company)
        TestDataFactory.create_customer(company=self.company, email=user.email, user=user)
        response = self.client.patch(f'/api/v1/people/{user.id}/', {'is_official': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        user.refresh_from_db()
        self.assertEqual(user.role, 'support')
        self.assertTrue(response.data['is_requester'])
        self.assertTrue(response.data['is_official'])

    def test_remove_official_profile(self):
        """Test removing the official flag deactivates the official"""
        user = TestDataFactory.create_user(role='support', company=self.company)
        official = TestDataFactory.create_official(company=self.company, user=user)
        response = self.client.patch(f'/api/v1/people/{user.id}/', {'is_official': False, 'role': 'viewer'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        official.refresh_from_db()
        self.assertFalse(official.is_active)
        self.assertEqual(response.data['role'], 'viewer')

    def test_remove_requester_profile(self):
        """Test removing the requester flag unlinks the customer"""
        user = TestDataFactory.create_user(role='customer', company=self.company)
        customer = TestDataFactory.create_customer(company=self.company, email=user.email, user=user)
        response = self.client.patch(f'/api/v1/people/{user.id}/', {'is_requester': False, 'role': 'viewer'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        customer.refresh_from_db()
        self.assertIsNone(customer.user_id)

    def test_requester_email_of_another_customer_rejected(self):
        """Test a requester can not move to the email of another customer"""
        user = TestDataFactory.create_user(role='customer', company=self.company)
        customer = TestDataFactory.create_customer(company=self.company, email=user.email, user=user)
        TestDataFactory.create_customer(company=self.company, email='outro@cliente.com')
        response = self.client.patch(f'/api/v1/people/{user.id}/', {'email': 'outro@cliente.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('email', response.data)
        customer.refresh_from_db()
        self.assertEqual(customer.email, user.email)

    def test_requester_email_change_follows_customer(self):
        """Test a new email is copied to the linked customer"""
        user = TestDataFactory.create_user(role='customer', company=self.company)
        customer = TestDataFactory.create_customer(company=self.company, email=user.email, user=user)
        response = self.client.patch(f'/api/v1/people/{user.id}/', {'email': 'novo@cliente.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        customer.refresh_from_db()
        self.assertEqual(customer.email, 'novo@cliente.com')

    def test_update_other_company_denied(self):
        """Test people of other companies can not be edited"""
        user = TestDataFactory.create_user(role='customer', company=TestDataFactory.create_company())
        response = self.client.patch(f'/api/v1/people/{user.id}/', {'name': 'Outro'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_update_higher_role_denied(self):
        """Test managers can not edit company admins"""
        user = TestDataFactory.create_user(role='company_admin', company=self.company)
        response = self.client.patch(f'/api/v1/people/{user.id}/', {'name': 'Outro'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_change_password(self):
        """Test setting a new password"""
        user = TestDataFactory.create_user(role='support', company=self.company)
        response = self.client.patch(f'/api/v1/people/{user.id}/', {'password': 'novasenha'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        user.refresh_from_db()
        self.assertTrue(user.check_password('novasenha'))


class PersonListTests(TestCase):
    """Test the people list and allowed roles"""

    def setUp(self):
        self.company = TestDataFactory.create_company()
        self.manager = TestDataFactory.create_user(role='manager', company=self.company, name='Zeca')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.manager)

    def test_profile_filter(self):
        """Test filtering by requester and official profiles"""
        requester = TestDataFactory.create_user(role='customer', company=self.company, name='Ana')
        TestDataFactory.create_customer(company=self.company, email=requester.email, user=requester)
        staff = TestDataFactory.create_user(role='support', company=self.company, name='Bruno')
        TestDataFactory.create_official(company=self.company, user=staff)

        response = self.client.get('/api/v1/people/?profile=requester')
        self.assertEqual([person['name'] for person in response.data['data']], ['Ana'])
        response = self.client.get('/api/v1/people/?profile=official')
        self.assertEqual([person['name'] for person in response.data['data']], ['Bruno'])
        response = self.client.get('/api/v1/people/?profile=no_profile')
        self.assertEqual([person['name'] for person in response.data['data']], ['Zeca'])

    def test_inactive_hidden(self):
        """Test inactive people are hidden unless requested"""
        TestDataFactory.create_user(role='viewer', company=self.company, name='Inativo', is_active=False)
        response = self.client.get('/api/v1/people/')
        self.assertEqual(response.data['pagination']['total'], 1)
        response = self.client.get('/api/v1/people/?includeInactive=true')
        self.assertEqual(response.data['pagination']['total'], 2)

    def test_allowed_roles(self):
        """Test the roles a manager may assign"""
        response = self.client.get('/api/v1/people/allowed-roles/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([role['value'] for role in response.data['roles']], ['customer', 'support', 'supervisor', 'viewer'])
        self.assertFalse(response.data['can_only_create_customer'])
        self.assertFalse(response.data['can_see_company_selector'])
