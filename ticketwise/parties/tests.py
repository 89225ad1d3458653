"""
Test suite for Parties module
Tests: customer CRUD, login provisioning, status toggling, list caching,
CSV bulk import and the import management command
"""
import os
import tempfile
from io import StringIO

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management import call_command
from django.test import TestCase
from rest_framework import status

from ticketwise.core.models import AuditLog
from ticketwise.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from ticketwise.parties.models import Customer
from ticketwise.parties.services import import_customers, build_import_template

User = get_user_model()


class CustomerTests(TestCase):
    """Test customer endpoints"""

    def setUp(self):
        cache.clear()
        self.company = TestDataFactory.create_company()
        self.user = TestDataFactory.create_user(role='support', company=self.company)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_customer(self):
        """Test creating a customer without a login"""
        response = self.client.post('/api/v1/customers/', {
            'name': 'Paulo Silva', 'email': 'Paulo@Cliente.com', 'phone': '11999990000'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        customer = Customer.objects.get(pk=response.data['id'])
        self.assertEqual(customer.email, 'paulo@cliente.com')
        self.assertEqual(customer.company_id, self.company.id)
        self.assertFalse(response.data['has_user'])
        self.assertTrue(AuditLog.objects.filter(model_name='Customer', action='create').exists())

    def test_create_customer_with_login(self):
        """Test create_user provisions a requester login"""
        response = self.client.post('/api/v1/customers/', {
            'name': 'Paulo Silva', 'email': 'paulo@cliente.com', 'create_user': True, 'password': 'senha123'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        user = User.objects.get(email='paulo@cliente.com')
        self.assertEqual(user.role, 'customer')
        self.assertEqual(user.username, 'paulo@cliente.com')
        self.assertEqual(user.company_id, self.company.id)
        self.assertTrue(user.check_password('senha123'))
        self.assertTrue(response.data['has_user'])

    def test_create_customer_login_requires_password(self):
        """Test a login can not be created without a password"""
        response = self.client.post('/api/v1/customers/', {
            'name': 'Paulo', 'email': 'paulo@cliente.com', 'create_user': True
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('password', response.data)

    def test_create_customer_login_email_taken(self):
        """Test a login is not created over an existing user email"""
        TestDataFactory.create_user(email='paulo@cliente.com')
        response = self.client.post('/api/v1/customers/', {
            'name': 'Paulo', 'email': 'paulo@cliente.com', 'create_user': True, 'password': 'senha123'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Customer.objects.filter(email='paulo@cliente.com').exists())

    def test_duplicate_email(self):
        """Test customer emails are unique ignoring case"""
        TestDataFactory.create_customer(company=self.company, email='paulo@cliente.com')
        response = self.client.post('/api/v1/customers/', {'name': 'Paulo', 'email': 'PAULO@cliente.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_sector_of_other_company_rejected(self):
        """Test the sector must belong to the customer's company"""
        sector = TestDataFactory.create_sector(company=TestDataFactory.create_company())
        response = self.client.post('/api/v1/customers/', {
            'name': 'Paulo', 'email': 'paulo@cliente.com', 'sector': sector.id
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('sector', response.data)

    def test_list_scoped_and_cached(self):
        """Test the list is scoped by company, cached, and refreshed on change"""
        TestDataFactory.create_customer(company=self.company, name='Ana')
        TestDataFactory.create_customer(company=TestDataFactory.create_company(), name='Bia')

        response = self.client.get('/api/v1/customers/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([customer['name'] for customer in response.data['data']], ['Ana'])
        self.assertEqual(response['Cache-Control'], 'private, max-age=60')

        TestDataFactory.create_customer(company=self.company, name='Carla')
        response = self.client.get('/api/v1/customers/')
        self.assertEqual([customer['name'] for customer in response.data['data']], ['Ana', 'Carla'])

    def test_list_search(self):
        """Test searching customers"""
        TestDataFactory.create_customer(company=self.company, name='Ana', email='ana@alpha.com')
        TestDataFactory.create_customer(company=self.company, name='Bia', email='bia@beta.com')
        response = self.client.get('/api/v1/customers/?search=beta')
        self.assertEqual([customer['name'] for customer in response.data['data']], ['Bia'])

    def test_update_syncs_login(self):
        """Test updating a customer updates the linked login"""
        login = TestDataFactory.create_user(role='customer', company=self.company, email='velho@cliente.com')
        customer = TestDataFactory.create_customer(company=self.company, email='velho@cliente.com', user=login)
        response = self.client.patch(f'/api/v1/customers/{customer.id}/', {'email': 'novo@cliente.com', 'name': 'Novo'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        login.refresh_from_db()
        self.assertEqual(login.email, 'novo@cliente.com')
        self.assertEqual(login.username, 'novo@cliente.com')
        self.assertEqual(login.name, 'Novo')

    def test_update_email_of_another_user_rejected(self):
        """Test a customer with a login can not take the email of another user"""
        TestDataFactory.create_user(role='support', company=self.company, email='suporte@empresa.com')
        login = TestDataFactory.create_user(role='customer', company=self.company, email='velho@cliente.com')
        customer = TestDataFactory.create_customer(company=self.company, email='velho@cliente.com', user=login)
        response = self.client.patch(f'/api/v1/customers/{customer.id}/', {'email': 'Suporte@Empresa.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('email', response.data)
        login.refresh_from_db()
        self.assertEqual(login.email, 'velho@cliente.com')
        customer.refresh_from_db()
        self.assertEqual(customer.email, 'velho@cliente.com')

    def test_update_email_matching_another_username_rejected(self):
        """Test the new email can not be the username of another user"""
        TestDataFactory.create_user(username='ana@cliente.com', email='ana.silva@empresa.com', company=self.company)
        login = TestDataFactory.create_user(role='customer', company=self.company, email='velho@cliente.com')
        customer = TestDataFactory.create_customer(company=self.company, email='velho@cliente.com', user=login)
        response = self.client.put(f'/api/v1/customers/{customer.id}/', {
            'name': customer.name, 'email': 'ana@cliente.com'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('email', response.data)

    def test_update_email_without_login_ignores_users(self):
        """Test a customer without a login may share the email of a user"""
        TestDataFactory.create_user(email='compartilhado@empresa.com')
        customer = TestDataFactory.create_customer(company=self.company, email='velho@cliente.com')
        response = self.client.patch(f'/api/v1/customers/{customer.id}/', {'email': 'compartilhado@empresa.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_create_invalid_email(self):
        """Test a malformed email is rejected"""
        response = self.client.post('/api/v1/customers/', {'name': 'Paulo', 'email': 'paulo-sem-arroba'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('email', response.data)
        self.assertFalse(Customer.objects.exists())

    def test_create_blank_name(self):
        """Test a blank name is rejected"""
        response = self.client.post('/api/v1/customers/', {'name': '   ', 'email': 'paulo@cliente.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('name', response.data)
        self.assertFalse(Customer.objects.exists())

    def test_toggle_status(self):
        """Test toggling a customer also toggles its login"""
        login = TestDataFactory.create_user(role='customer', company=self.company)
        customer = TestDataFactory.create_customer(company=self.company, user=login)
        response = self.client.post(f'/api/v1/customers/{customer.id}/toggle-status/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['message'], 'Cliente desativado com sucesso')
        login.refresh_from_db()
        self.assertFalse(login.is_active)

    def test_delete_disables_login(self):
        """Test deleting a customer keeps the login but disables it"""
        login = TestDataFactory.create_user(role='customer', company=self.company)
        customer = TestDataFactory.create_customer(company=self.company, user=login)
        response = self.client.delete(f'/api/v1/customers/{customer.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Customer.objects.filter(pk=customer.id).exists())
        self.assertFalse(User.objects.get(pk=login.id).is_active)

    def test_other_company_denied(self):
        """Test customers of other companies are not accessible"""
        customer = TestDataFactory.create_customer(company=TestDataFactory.create_company())
        response = self.client.get(f'/api/v1/customers/{customer.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class CustomerImportTests(TestCase):
    """Test the CSV bulk import"""

    def setUp(self):
        cache.clear()
        self.company = TestDataFactory.create_company()
        self.user = TestDataFactory.create_user(role='support', company=self.company)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_import_service(self):
        """Test imported, skipped and error rows"""
        TestDataFactory.create_customer(email='existe@cliente.com')
        content = (
            'email;name;phone;password;active;ad_user\n'
            'novo@cliente.com;Novo;11999990000;senha123;true;false\n'
            'existe@cliente.com;Existe;;senha123;true;false\n'
            ';Sem Email;;;;\n'
            'invalido;Invalido;;;;\n'
            'curta@cliente.com;Curta;;123;;\n'
            'gerada@cliente.com;Gerada;;;sim;\n'
        )
        result = import_customers(content, company_id=self.company.id)
        self.assertEqual(result['total'], 6)
        self.assertEqual(result['imported'], 2)
        self.assertEqual(result['skipped'], 1)
        self.assertEqual([error['row'] for error in result['errors']], [4, 5, 6])

        generated = User.objects.get(email='gerada@cliente.com')
        self.assertTrue(generated.must_change_password)
        self.assertEqual(Customer.objects.get(email='novo@cliente.com').company_id, self.company.id)

    def test_import_comma_delimiter_and_bom(self):
        """Test comma separated files with a UTF-8 BOM"""
        content = '\ufeffemail,name\nvirgula@cliente.com,Virgula\n'.encode('utf-8')
        result = import_customers(content)
        self.assertEqual(result['imported'], 1)

    def test_import_missing_headers(self):
        """Test files without the required columns"""
        result = import_customers('phone;password\n1;2\n')
        self.assertEqual(result['imported'], 0)
        self.assertIn('email', result['errors'][0]['error'])

    def test_bulk_import_upload(self):
        """Test uploading the CSV file"""
        upload = SimpleUploadedFile('clientes.csv', b'email;name\narquivo@cliente.com;Arquivo\n', content_type='text/csv')
        response = self.client.post('/api/v1/customers/bulk-import/', {'file': upload}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['imported'], 1)
        self.assertEqual(Customer.objects.get(email='arquivo@cliente.com').company_id, self.company.id)
        self.assertTrue(AuditLog.objects.filter(action='bulk_import').exists())

    def test_bulk_import_requires_content(self):
        """Test the import without a file"""
        response = self.client.post('/api/v1/customers/bulk-import/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_import_template(self):
        """Test the downloadable template"""
        response = self.client.get('/api/v1/customers/import-template/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.content.decode('utf-8'), build_import_template())
        self.assertTrue(build_import_template().startswith('email;name;phone;password;active;ad_user'))

    def test_import_command(self):
        """Test the import_customers management command"""
        with tempfile.NamedTemporaryFile('w', suffix='.csv', delete=False, encoding='utf-8') as f:
            f.write('email;name\ncomando@cliente.com;Comando\n')
            path = f.name
        try:
            out = StringIO()
            call_command('import_customers', '--csv-file', path, '--company-id', str(self.company.id), stdout=out)
        finally:
            os.remove(path)
        self.assertIn('Customers imported: 1', out.getvalue())
        self.assertTrue(Customer.objects.filter(email='comando@cliente.com', company=self.company).exists())
