"""
Test suite for Organization module
Tests: sectors, departments, officials, department resolution and company scoping
"""
from django.test import TestCase
from rest_framework import status

from ticketwise.core.exceptions import ServiceError
from ticketwise.core.models import AuditLog
from ticketwise.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from ticketwise.organization.models import Department, Sector, Official, OfficialDepartment
from ticketwise.organization.services import resolve_departments, set_official_departments


class SectorTests(TestCase):
    """Test sector endpoints"""

    def setUp(self):
        self.company = TestDataFactory.create_company()
        self.user = TestDataFactory.create_user(role='support', company=self.company)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_sector_uses_own_company(self):
        """Test sectors are created in the user's company"""
        response = self.client.post('/api/v1/sectors/', {'name': ' Financeiro ', 'description': ' Contas '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        sector = Sector.objects.get(pk=response.data['id'])
        self.assertEqual(sector.name, 'Financeiro')
        self.assertEqual(sector.description, 'Contas')
        self.assertEqual(sector.company_id, self.company.id)

    def test_list_is_paginated_and_active_only(self):
        """Test the list envelope hides inactive sectors by default"""
        TestDataFactory.create_sector(company=self.company, name='Compras')
        inactive = TestDataFactory.create_sector(company=self.company, name='Antigo')
        inactive.is_active = False
        inactive.save()

        response = self.client.get('/api/v1/sectors/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([sector['name'] for sector in response.data['data']], ['Compras'])
        self.assertEqual(response.data['pagination']['total'], 1)

        response = self.client.get('/api/v1/sectors/?active_only=false')
        self.assertEqual(response.data['pagination']['total'], 2)

    def test_search(self):
        """Test searching sectors by name"""
        TestDataFactory.create_sector(company=self.company, name='Compras')
        TestDataFactory.create_sector(company=self.company, name='Jurídico')
        response = self.client.get('/api/v1/sectors/?search=jur')
        self.assertEqual([sector['name'] for sector in response.data['data']], ['Jurídico'])

    def test_delete_is_soft(self):
        """Test deleting a sector only deactivates it"""
        sector = TestDataFactory.create_sector(company=self.company)
        response = self.client.delete(f'/api/v1/sectors/{sector.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        sector.refresh_from_db()
        self.assertFalse(sector.is_active)

    def test_other_company_denied(self):
        """Test sectors of other companies are not accessible"""
        sector = TestDataFactory.create_sector(company=TestDataFactory.create_company())
        response = self.client.get(f'/api/v1/sectors/{sector.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_customer_denied(self):
        """Test requesters can not list sectors"""
        self.client.authenticate_user(TestDataFactory.create_user(role='customer', company=self.company))
        response = self.client.get('/api/v1/sectors/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class DepartmentTests(TestCase):
    """Test department endpoints"""

    def setUp(self):
        self.company = TestDataFactory.create_company()
        self.manager = TestDataFactory.create_user(role='manager', company=self.company)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.manager)

    def test_create_department(self):
        """Test creating a department writes an audit entry"""
        response = self.client.post('/api/v1/departments/', {'name': 'Suporte N1'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        department = Department.objects.get(pk=response.data['id'])
        self.assertEqual(department.company_id, self.company.id)
        self.assertTrue(AuditLog.objects.filter(model_name='Department', action='create').exists())

    def test_duplicate_name_rejected(self):
        """Test department names are unique per company, ignoring case"""
        TestDataFactory.create_department(company=self.company, name='Suporte N1')
        response = self.client.post('/api/v1/departments/', {'name': 'suporte n1'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('name', response.data)

    def test_same_name_other_company(self):
        """Test the same name is allowed in another company"""
        TestDataFactory.create_department(company=TestDataFactory.create_company(), name='Suporte N1')
        response = self.client.post('/api/v1/departments/', {'name': 'Suporte N1'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_support_can_read_but_not_write(self):
        """Test support users only read departments"""
        department = TestDataFactory.create_department(company=self.company)
        self.client.authenticate_user(TestDataFactory.create_user(role='support', company=self.company))
        self.assertEqual(self.client.get(f'/api/v1/departments/{department.id}/').status_code, status.HTTP_200_OK)
        response = self.client.post('/api/v1/departments/', {'name': 'Novo'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = self.client.patch(f'/api/v1/departments/{department.id}/', {'name': 'Outro'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_officials_count(self):
        """Test the count of active officials in a department"""
        department = TestDataFactory.create_department(company=self.company)
        TestDataFactory.create_official(company=self.company, departments=[department])
        inactive = TestDataFactory.create_official(company=self.company, departments=[department])
        inactive.is_active = False
        inactive.save()
        response = self.client.get(f'/api/v1/departments/{department.id}/')
        self.assertEqual(response.data['officials_count'], 1)

    def test_delete_is_soft(self):
        """Test deleting a department only deactivates it"""
        department = TestDataFactory.create_department(company=self.company)
        response = self.client.delete(f'/api/v1/departments/{department.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Department.objects.get(pk=department.id).is_active)

    def test_admin_creates_for_requested_company(self):
        """Test admins choose the company with company_id"""
        other = TestDataFactory.create_company()
        self.client.authenticate_user(TestDataFactory.create_user(role='admin'))
        response = self.client.post('/api/v1/departments/', {'name': 'Infra', 'company_id': other.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Department.objects.get(pk=response.data['id']).company_id, other.id)


class OfficialTests(TestCase):
    """Test official endpoints"""

    def setUp(self):
        self.company = TestDataFactory.create_company()
        self.manager = TestDataFactory.create_user(role='manager', company=self.company)
        self.department = TestDataFactory.create_department(company=self.company, name='Infraestrutura')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.manager)

    def test_create_official_by_department_name(self):
        """Test departments may be given by id or name"""
        user = TestDataFactory.create_user(role='support', company=self.company, email='ana@empresa.com')
        response = self.client.post('/api/v1/officials/', {
            'name': 'Ana', 'email': 'ANA@empresa.com', 'department_ids': ['infraestrutura']
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        official = Official.objects.get(pk=response.data['id'])
        self.assertEqual(official.email, 'ana@empresa.com')
        self.assertEqual(official.user_id, user.id)
        self.assertEqual(list(official.departments.all()), [self.department])

    def test_create_official_unknown_department(self):
        """Test unknown departments are reported"""
        response = self.client.post('/api/v1/officials/', {
            'name': 'Ana', 'email': 'ana@empresa.com', 'department_ids': ['Inexistente']
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Inexistente', response.data['error'])
        self.assertFalse(Official.objects.filter(email='ana@empresa.com').exists())

    def test_list_filters(self):
        """Test filtering officials by department and search"""
        TestDataFactory.create_official(company=self.company, name='Bruno', departments=[self.department])
        TestDataFactory.create_official(company=self.company, name='Carla')
        response = self.client.get(f'/api/v1/officials/?department_id={self.department.id}')
        self.assertEqual([official['name'] for official in response.data['data']], ['Bruno'])
        response = self.client.get('/api/v1/officials/?search=carl')
        self.assertEqual([official['name'] for official in response.data['data']], ['Carla'])

    def test_update_departments(self):
        """Test replacing the departments of an official"""
        other_department = TestDataFactory.create_department(company=self.company, name='Redes')
        official = TestDataFactory.create_official(company=self.company, departments=[self.department])
        response = self.client.patch(f'/api/v1/officials/{official.id}/', {
            'department_ids': [str(other_department.id)]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([department['name'] for department in response.data['departments']], ['Redes'])

    def test_toggle_status_updates_user(self):
        """Test toggling an official also toggles the linked user"""
        user = TestDataFactory.create_user(role='support', company=self.company)
        official = TestDataFactory.create_official(company=self.company, user=user)
        response = self.client.post(f'/api/v1/officials/{official.id}/toggle-status/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_active'])
        user.refresh_from_db()
        self.assertFalse(user.is_active)
        self.assertTrue(AuditLog.objects.filter(action='status_toggle', model_name='Official').exists())

    def test_toggle_status_requires_management(self):
        """Test support users can not toggle officials"""
        official = TestDataFactory.create_official(company=self.company)
        self.client.authenticate_user(TestDataFactory.create_user(role='support', company=self.company))
        response = self.client.post(f'/api/v1/officials/{official.id}/toggle-status/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class DepartmentResolutionTests(TestCase):
    """Test department resolution helpers"""

    def setUp(self):
        self.company = TestDataFactory.create_company()
        self.infra = TestDataFactory.create_department(company=self.company, name='Infra')
        self.redes = TestDataFactory.create_department(company=self.company, name='Redes')

    def test_resolve_mixed_values(self):
        departments = resolve_departments([str(self.infra.id), 'REDES', {'name': 'infra'}, ''], self.company.id)
        self.assertEqual(departments, [self.infra, self.redes])

    def test_resolve_other_company(self):
        with self.assertRaises(ServiceError):
            resolve_departments(['Infra'], TestDataFactory.create_company().id)

    def test_set_official_departments(self):
        official = TestDataFactory.create_official(company=self.company, departments=[self.infra])
        set_official_departments(official, [self.redes])
        self.assertEqual(
            list(OfficialDepartment.objects.filter(official=official).values_list('department__name', flat=True)),
            ['Redes']
        )
