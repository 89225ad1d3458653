"""
Test suite for Core module
Tests: authentication, companies, system settings, audit logs, global search,
role helpers, caching helpers and export responses
"""
import io

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase
from openpyxl import load_workbook
from rest_framework import status
from rest_framework.request import Request
from rest_framework.test import APIRequestFactory

from ticketwise.core.cache_utils import get_cached, set_cached, invalidate_namespace
from ticketwise.core.exceptions import ServiceError, GoneError, api_exception_handler
from ticketwise.core.exports import csv_response, excel_response
from ticketwise.core.models import AuditLog, Company, SystemSetting
from ticketwise.core.roles import (
    allowed_roles_for, can_assign_role, resolve_role, scoped_company_id, filter_by_company
)
from ticketwise.core.serializers import mask_secret
from ticketwise.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from ticketwise.core.utils import create_audit_log, paginate, parse_bool, parse_date

User = get_user_model()


class AuthenticationTests(TestCase):
    """Test JWT login and the current user endpoint"""

    def setUp(self):
        self.company = TestDataFactory.create_company()
        self.user = TestDataFactory.create_user(username='maria', password='segredo123', role='manager',
                                                company=self.company)
        self.client = AuthenticatedAPIClient()

    def test_login_returns_tokens_and_user(self):
        """Test login returns access, refresh and the serialized user"""
        response = self.client.post('/api/v1/auth/login/', {'username': 'maria', 'password': 'segredo123'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)
        self.assertEqual(response.data['user']['role'], 'manager')

    def test_login_wrong_password(self):
        """Test login with a wrong password"""
        response = self.client.post('/api/v1/auth/login/', {'username': 'maria', 'password': 'errada'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_login_disabled_company(self):
        """Test users of a disabled company can not log in"""
        self.company.active = False
        self.company.save()
        response = self.client.post('/api/v1/auth/login/', {'username': 'maria', 'password': 'segredo123'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_refresh(self):
        """Test refreshing an access token"""
        login = self.client.post('/api/v1/auth/login/', {'username': 'maria', 'password': 'segredo123'}, format='json')
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': login.data['refresh']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)

    def test_me_flags(self):
        """Test access flags of the current user"""
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_admin'])
        self.assertTrue(response.data['can_access_reports'])
        self.assertTrue(response.data['can_use_ai'])
        self.assertFalse(response.data['can_manage_email'])
        self.assertFalse(response.data['can_see_company_selector'])
        self.assertEqual(response.data['company']['id'], self.company.id)

    def test_me_customer_flags(self):
        """Test requesters get no staff screens"""
        customer = TestDataFactory.create_user(role='customer', company=self.company)
        self.client.authenticate_user(customer)
        response = self.client.get('/api/v1/auth/me/')
        self.assertFalse(response.data['can_access_people'])
        self.assertFalse(response.data['can_access_inventory'])

    def test_me_requires_authentication(self):
        """Test the current user endpoint without a token"""
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_unversioned_alias(self):
        """Test routes are also served under /api/"""
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)


class CompanyTests(TestCase):
    """Test company endpoints"""

    def setUp(self):
        self.admin = TestDataFactory.create_user(role='admin')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_create_company(self):
        """Test creating a company writes an audit entry"""
        response = self.client.post('/api/v1/companies/', {'name': 'Acme', 'domain': 'acme.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        company = Company.objects.get(name='Acme')
        self.assertTrue(AuditLog.objects.filter(action='create', model_name='Company', object_id=str(company.id)).exists())

    def test_create_company_blank_name(self):
        """Test a blank company name is rejected"""
        response = self.client.post('/api/v1/companies/', {'name': '   '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_search_companies(self):
        """Test searching companies by name or domain"""
        TestDataFactory.create_company(name='Alpha', domain='alpha.com')
        TestDataFactory.create_company(name='Beta', domain='beta.com')
        response = self.client.get('/api/v1/companies/?search=alpha')
        self.assertEqual([company['name'] for company in response.data], ['Alpha'])

    def test_update_and_delete_company(self):
        """Test partial update and delete"""
        company = TestDataFactory.create_company()
        response = self.client.patch(f'/api/v1/companies/{company.id}/', {'ai_permission': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        company.refresh_from_db()
        self.assertTrue(company.ai_permission)

        response = self.client.delete(f'/api/v1/companies/{company.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Company.objects.filter(pk=company.id).exists())

    def test_non_admin_denied(self):
        """Test company endpoints are admin only"""
        manager = TestDataFactory.create_user(role='company_admin', company=TestDataFactory.create_company())
        self.client.authenticate_user(manager)
        response = self.client.get('/api/v1/companies/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class SystemSettingTests(TestCase):
    """Test system setting endpoints"""

    def setUp(self):
        self.company = TestDataFactory.create_company()
        self.other_company = TestDataFactory.create_company()
        self.company_admin = TestDataFactory.create_user(role='company_admin', company=self.company)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.company_admin)

    def test_company_admin_scoped_to_own_company(self):
        """Test company admins only see their company settings"""
        TestDataFactory.create_system_setting('theme', 'dark', company=self.company)
        TestDataFactory.create_system_setting('theme', 'light', company=self.other_company)
        response = self.client.get('/api/v1/system-settings/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['value'], 'dark')

    def test_create_forces_own_company(self):
        """Test company admins can not write settings of another company"""
        response = self.client.post('/api/v1/system-settings/', {
            'key': 'theme', 'value': 'dark', 'company': self.other_company.id
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        setting = SystemSetting.objects.get(key='theme')
        self.assertEqual(setting.company_id, self.company.id)

    def test_create_upserts_by_key(self):
        """Test posting an existing key updates it"""
        TestDataFactory.create_system_setting('theme', 'dark', company=self.company)
        response = self.client.post('/api/v1/system-settings/', {'key': 'theme', 'value': 'light'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(SystemSetting.objects.filter(key='theme').count(), 1)
        self.assertEqual(SystemSetting.objects.get(key='theme').value, 'light')

    def test_secret_values_masked(self):
        """Test token settings are masked in responses"""
        TestDataFactory.create_system_setting('ai_openai_token', 'sk-abcdef123456', company=self.company)
        response = self.client.get('/api/v1/system-settings/')
        self.assertEqual(response.data[0]['value'], '********3456')

    def test_other_company_setting_not_found(self):
        """Test settings of another company are invisible"""
        setting = TestDataFactory.create_system_setting('theme', 'light', company=self.other_company)
        response = self.client.get(f'/api/v1/system-settings/{setting.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_support_denied(self):
        """Test support users can not manage settings"""
        self.client.authenticate_user(TestDataFactory.create_user(role='support', company=self.company))
        response = self.client.get('/api/v1/system-settings/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class AuditLogTests(TestCase):
    """Test audit log helpers and endpoints"""

    def setUp(self):
        self.company = TestDataFactory.create_company()
        self.user = TestDataFactory.create_user(role='manager', company=self.company)
        self.other = TestDataFactory.create_user(role='manager', company=self.company)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_audit_log_defaults_company(self):
        """Test audit entries default to the user's company"""
        log = create_audit_log(action='update', model_name='Ticket', object_id=10, user=self.user)
        self.assertEqual(log.company_id, self.company.id)
        self.assertEqual(log.object_id, '10')

    def test_create_audit_log_missing_fields(self):
        """Test incomplete audit entries are skipped"""
        self.assertIsNone(create_audit_log(action='update', model_name=None, object_id=1, user=self.user))

    def test_non_admin_sees_own_entries(self):
        """Test non-admins only list their own entries"""
        create_audit_log(action='create', model_name='Ticket', object_id=1, user=self.user)
        other_log = create_audit_log(action='create', model_name='Ticket', object_id=2, user=self.other)
        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual(len(response.data), 1)

        response = self.client.get(f'/api/v1/audit-logs/{other_log.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_filter_by_action(self):
        """Test filtering audit entries by action"""
        create_audit_log(action='create', model_name='Ticket', object_id=1, user=self.user)
        create_audit_log(action='delete', model_name='Ticket', object_id=1, user=self.user)
        response = self.client.get('/api/v1/audit-logs/?action=delete')
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['action'], 'delete')


class GlobalSearchTests(TestCase):
    """Test the global search endpoint"""

    def setUp(self):
        self.company = TestDataFactory.create_company()
        self.user = TestDataFactory.create_user(role='support', company=self.company)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_empty_query(self):
        """Test an empty query returns empty groups"""
        response = self.client.get('/api/v1/search/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['customers'], [])
        self.assertEqual(response.data['inventory_products'], [])

    def test_search_scoped_by_company(self):
        """Test search only returns rows of the user's company"""
        TestDataFactory.create_customer(company=self.company, name='Joana Lima')
        TestDataFactory.create_customer(company=TestDataFactory.create_company(), name='Joana Costa')
        TestDataFactory.create_ticket(company=self.company, title='Impressora da Joana')
        TestDataFactory.create_product(company=self.company, name='Notebook', serial_number='JOANA-01')

        response = self.client.get('/api/v1/search/?q=joana')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([customer['name'] for customer in response.data['customers']], ['Joana Lima'])
        self.assertEqual(len(response.data['tickets']), 1)
        self.assertEqual(len(response.data['inventory_products']), 1)

    def test_customer_denied(self):
        """Test requesters can not use global search"""
        self.client.authenticate_user(TestDataFactory.create_user(role='customer', company=self.company))
        response = self.client.get('/api/v1/search/?q=abc')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class RoleHelperTests(TestCase):
    """Test role hierarchy and company scoping helpers"""

    def test_allowed_roles(self):
        self.assertEqual(allowed_roles_for('support'), ['customer'])
        self.assertNotIn('admin', allowed_roles_for('company_admin'))
        self.assertEqual(allowed_roles_for('viewer'), [])
        self.assertTrue(can_assign_role('manager', 'supervisor'))
        self.assertFalse(can_assign_role('manager', 'manager'))

    def test_resolve_role(self):
        self.assertEqual(resolve_role(True, True), 'support')
        self.assertEqual(resolve_role(True, False, 'manager'), 'customer')
        self.assertEqual(resolve_role(False, False, 'manager'), 'manager')
        self.assertEqual(resolve_role(False, False), 'viewer')

    def test_scoped_company_id(self):
        company = TestDataFactory.create_company()
        admin = TestDataFactory.create_user(role='admin')
        manager = TestDataFactory.create_user(role='manager', company=company)
        self.assertIsNone(scoped_company_id(admin))
        self.assertEqual(scoped_company_id(admin, str(company.id)), company.id)
        self.assertEqual(scoped_company_id(manager, '999'), company.id)

    def test_filter_by_company_without_company(self):
        """Test a non-admin without company only sees unscoped rows"""
        user = TestDataFactory.create_user(role='manager')
        TestDataFactory.create_department(name='Global')
        TestDataFactory.create_department(company=TestDataFactory.create_company(), name='Scoped')
        from ticketwise.organization.models import Department
        names = list(filter_by_company(Department.objects.all(), user).values_list('name', flat=True))
        self.assertEqual(names, ['Global'])


class UtilsTests(TestCase):
    """Test parsing, pagination, caching, errors and exports"""

    def test_parse_bool(self):
        self.assertTrue(parse_bool('sim'))
        self.assertFalse(parse_bool('0', True))
        self.assertIsNone(parse_bool('talvez', None))
        self.assertTrue(parse_bool(None, True))

    def test_parse_date(self):
        self.assertEqual(parse_date('2024-02-29').day, 29)
        with self.assertRaises(ValueError):
            parse_date('29/02/2024')

    def test_paginate(self):
        company = TestDataFactory.create_company()
        for index in range(5):
            TestDataFactory.create_department(company=company, name=f'Dept {index}')
        from ticketwise.organization.models import Department
        request = Request(APIRequestFactory().get('/?page=2&limit=2'))
        result = paginate(Department.objects.order_by('name'), request, lambda objects: [obj.name for obj in objects])
        self.assertEqual(result['data'], ['Dept 2', 'Dept 3'])
        self.assertEqual(result['pagination'], {
            'page': 2, 'limit': 2, 'total': 5, 'totalPages': 3, 'hasNext': True, 'hasPrev': True
        })

    def test_paginate_beyond_last_page(self):
        from ticketwise.organization.models import Department
        request = Request(APIRequestFactory().get('/?page=9'))
        result = paginate(Department.objects.all(), request, lambda objects: list(objects))
        self.assertEqual(result['data'], [])
        self.assertEqual(result['pagination']['totalPages'], 0)

    def test_namespace_invalidation(self):
        cache.clear()
        data, key = get_cached('reports', 'tickets', company=1)
        self.assertIsNone(data)
        set_cached(key, {'total': 3}, 60)
        self.assertEqual(get_cached('reports', 'tickets', company=1)[0], {'total': 3})
        invalidate_namespace('reports')
        self.assertIsNone(get_cached('reports', 'tickets', company=1)[0])

    def test_mask_secret(self):
        self.assertEqual(mask_secret('abcdefgh'), '********efgh')
        self.assertEqual(mask_secret('abc'), '********')
        self.assertEqual(mask_secret(''), '')

    def test_exception_handler(self):
        response = api_exception_handler(ServiceError('Falhou', details={'field': ['x']}), {})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data, {'error': 'Falhou', 'details': {'field': ['x']}})
        self.assertEqual(api_exception_handler(GoneError('Expirou'), {}).status_code, 410)

    def test_csv_response(self):
        response = csv_response('teste', ['Nome', 'Valor'], [['Ação', None]])
        self.assertIn('attachment; filename="teste_', response['Content-Disposition'])
        self.assertEqual(response.content.decode('utf-8-sig').splitlines(), ['Nome,Valor', 'Ação,'])

    def test_excel_response(self):
        response = excel_response('teste', 'Planilha', ['Nome'], [['Linha 1']])
        sheet = load_workbook(io.BytesIO(response.content)).active
        self.assertEqual(sheet.title, 'Planilha')
        self.assertEqual(sheet['A1'].value, 'Nome')
        self.assertTrue(sheet['A1'].font.bold)
        self.assertEqual(sheet['A2'].value, 'Linha 1')


class CreateAdminUserCommandTests(TestCase):
    """Test the create_admin_user command"""

    def test_creates_admin(self):
        out = io.StringIO()
        call_command('create_admin_user', '--email', 'Root@Acme.com', '--password', 'segredo123', stdout=out)
        user = User.objects.get(username='admin')
        self.assertEqual(user.role, 'admin')
        self.assertEqual(user.email, 'root@acme.com')
        self.assertTrue(user.check_password('segredo123'))
        self.assertIn('Created admin user', out.getvalue())

    def test_promotes_existing_user(self):
        user = TestDataFactory.create_user(username='joana', role='viewer')
        call_command('create_admin_user', '--username', 'joana', '--email', user.email, '--password', 'nova123',
                     stdout=io.StringIO())
        user.refresh_from_db()
        self.assertEqual(user.role, 'admin')
        self.assertTrue(user.is_superuser)

    def test_email_taken_by_other_user(self):
        TestDataFactory.create_user(username='outro', email='root@acme.com')
        with self.assertRaises(CommandError):
            call_command('create_admin_user', '--email', 'root@acme.com', '--password', 'x', stdout=io.StringIO())
