"""
Test suite for Inventory module
Tests: asset registration and identifier uniqueness, catalog, movements with
approval flow, assignments, export and dashboard
"""
from io import BytesIO

from django.core.cache import cache
from django.test import TestCase
from openpyxl import load_workbook
from rest_framework import status

from ticketwise.core.exceptions import ServiceError
from ticketwise.core.models import AuditLog
from ticketwise.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from .models import InventoryProduct, ProductCategory, UserInventoryAssignment
from .services import register_movement, approve_movement, requires_approval


class ProductTests(TestCase):
    """Test asset endpoints"""

    def setUp(self):
        cache.clear()
        self.company = TestDataFactory.create_company()
        self.user = TestDataFactory.create_user(role='support', company=self.company)
        self.category = TestDataFactory.create_product_category(company=self.company, name='Notebooks')
        self.product_type = TestDataFactory.create_product_type(company=self.company, category=self.category,
                                                                name='Notebook Dell')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_product(self):
        response = self.client.post('/api/v1/inventory/products/', {
            'name': 'Latitude 5440', 'product_type': self.product_type.id, 'serial_number': ' SN-001 ',
            'service_tag': 'ABC1234'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        product = InventoryProduct.objects.get(pk=response.data['id'])
        self.assertEqual(product.serial_number, 'SN-001')
        self.assertEqual(product.company_id, self.company.id)
        self.assertEqual(product.created_by_id, self.user.id)
        self.assertEqual(response.data['category_name'], 'Notebooks')
        self.assertEqual(response.data['status_text'], 'Disponível')

    def test_duplicate_identifier_rejected(self):
        """Test identifiers are unique per company ignoring case"""
        TestDataFactory.create_product(company=self.company, product_type=self.product_type, service_tag='ABC1234')
        response = self.client.post('/api/v1/inventory/products/', {
            'name': 'Outro', 'product_type': self.product_type.id, 'service_tag': 'abc1234'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(str(response.data['service_tag'][0]), 'Service tag já cadastrado para outro produto')

    def test_identifier_free_after_delete_and_in_other_company(self):
        deleted = TestDataFactory.create_product(company=self.company, product_type=self.product_type,
                                                 serial_number='SN-9')
        deleted.is_deleted = True
        deleted.save()
        TestDataFactory.create_product(company=TestDataFactory.create_company(), serial_number='SN-10')
        for serial in ('SN-9', 'SN-10'):
            response = self.client.post('/api/v1/inventory/products/', {
                'name': 'Reuso', 'product_type': self.product_type.id, 'serial_number': serial
            }, format='json')
            self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_consumables_skip_uniqueness(self):
        consumable = TestDataFactory.create_product_category(company=self.company, is_consumable=True)
        cable_type = TestDataFactory.create_product_type(company=self.company, category=consumable)
        TestDataFactory.create_product(company=self.company, product_type=cable_type, serial_number='LOTE-1')
        response = self.client.post('/api/v1/inventory/products/', {
            'name': 'Cabo HDMI', 'product_type': cable_type.id, 'serial_number': 'LOTE-1'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_serial_required_by_category(self):
        strict = TestDataFactory.create_product_category(company=self.company, requires_serial=True)
        strict_type = TestDataFactory.create_product_type(company=self.company, category=strict)
        response = self.client.post('/api/v1/inventory/products/', {
            'name': 'Servidor', 'product_type': strict_type.id
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('serial_number', response.data)

    def test_update_keeps_own_identifier(self):
        product = TestDataFactory.create_product(company=self.company, product_type=self.product_type,
                                                 serial_number='SN-1')
        response = self.client.patch(f'/api/v1/inventory/products/{product.id}/', {
            'serial_number': 'SN-1', 'notes': 'Tela trocada'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['notes'], 'Tela trocada')

    def test_soft_delete(self):
        product = TestDataFactory.create_product(company=self.company, product_type=self.product_type)
        response = self.client.delete(f'/api/v1/inventory/products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertTrue(InventoryProduct.objects.get(pk=product.id).is_deleted)
        response = self.client.get(f'/api/v1/inventory/products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_list_filters_and_search(self):
        TestDataFactory.create_product(company=self.company, product_type=self.product_type, name='Latitude',
                                       asset_number='PAT-77')
        TestDataFactory.create_product(company=self.company, product_type=self.product_type, name='Vostro',
                                       status='in_use')
        TestDataFactory.create_product(company=TestDataFactory.create_company(), name='Latitude externo')
        response = self.client.get('/api/v1/inventory/products/?search=pat-77')
        self.assertEqual([product['name'] for product in response.data['data']], ['Latitude'])
        response = self.client.get('/api/v1/inventory/products/?status=in_use')
        self.assertEqual([product['name'] for product in response.data['data']], ['Vostro'])
        response = self.client.get(f'/api/v1/inventory/products/?category={self.category.id}')
        self.assertEqual(response.data['pagination']['total'], 2)

    def test_viewer_reads_but_can_not_write(self):
        self.client.authenticate_user(TestDataFactory.create_user(role='viewer', company=self.company))
        self.assertEqual(self.client.get('/api/v1/inventory/products/').status_code, status.HTTP_200_OK)
        response = self.client.post('/api/v1/inventory/products/', {
            'name': 'X', 'product_type': self.product_type.id
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_other_company_denied(self):
        product = TestDataFactory.create_product(company=TestDataFactory.create_company())
        response = self.client.get(f'/api/v1/inventory/products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_export_csv(self):
        TestDataFactory.create_product(company=self.company, product_type=self.product_type, name='Latitude',
                                       serial_number='SN-1')
        response = self.client.get('/api/v1/inventory/products/export/?format=csv')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        content = response.content.decode('utf-8')
        self.assertTrue(content.startswith('\ufeff'))
        self.assertIn('Latitude', content)
        self.assertIn('inventario', response['Content-Disposition'])

    def test_export_excel(self):
        TestDataFactory.create_product(company=self.company, product_type=self.product_type, name='Latitude')
        response = self.client.get('/api/v1/inventory/products/export/?format=excel')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        sheet = load_workbook(BytesIO(response.content)).active
        self.assertEqual(sheet.cell(row=1, column=2).value, 'Nome')
        self.assertEqual(sheet.cell(row=2, column=2).value, 'Latitude')

    def test_export_invalid_format(self):
        response = self.client.get('/api/v1/inventory/products/export/?format=pdf')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class CatalogTests(TestCase):
    """Test categories, types and locations"""

    def setUp(self):
        self.company = TestDataFactory.create_company()
        self.user = TestDataFactory.create_user(role='manager', company=self.company)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_category(self):
        response = self.client.post('/api/v1/inventory/product-categories/', {
            'name': 'Periféricos', 'is_consumable': True
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(ProductCategory.objects.get(pk=response.data['id']).company_id, self.company.id)

    def test_inactive_hidden(self):
        TestDataFactory.create_location(company=self.company, name='Almoxarifado')
        inactive = TestDataFactory.create_location(company=self.company, name='Depósito antigo')
        inactive.is_active = False
        inactive.save()
        response = self.client.get('/api/v1/inventory/locations/')
        self.assertEqual([location['name'] for location in response.data], ['Almoxarifado'])
        response = self.client.get('/api/v1/inventory/locations/?include_inactive=true')
        self.assertEqual(len(response.data), 2)

    def test_protected_category_delete(self):
        """Test a category in use can not be removed"""
        category = TestDataFactory.create_product_category(company=self.company)
        TestDataFactory.create_product_type(company=self.company, category=category)
        response = self.client.delete(f'/api/v1/inventory/product-categories/{category.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(ProductCategory.objects.filter(pk=category.id).exists())

    def test_delete_unused_type(self):
        product_type = TestDataFactory.create_product_type(company=self.company)
        response = self.client.delete(f'/api/v1/inventory/product-types/{product_type.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)


class MovementTests(TestCase):
    """Test movements, approvals and assignments"""

    def setUp(self):
        cache.clear()
        self.company = TestDataFactory.create_company()
        self.support = TestDataFactory.create_user(role='support', company=self.company)
        self.approver = TestDataFactory.create_user(role='supervisor', company=self.company)
        self.employee = TestDataFactory.create_user(role='viewer', company=self.company)
        self.stock = TestDataFactory.create_location(company=self.company, name='Almoxarifado')
        self.desk = TestDataFactory.create_location(company=self.company, name='Mesa 12')
        self.product = TestDataFactory.create_product(company=self.company, location=self.stock,
                                                      serial_number='SN-100')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.support)

    def _withdraw(self, **extra):
        payload = {
            'product': self.product.id, 'movement_type': 'withdrawal', 'responsible_id': self.employee.id,
            'to_location': self.desk.id
        }
        payload.update(extra)
        return self.client.post('/api/v1/inventory/movements/', payload, format='json')

    def test_requires_approval_defaults(self):
        self.assertTrue(requires_approval('withdrawal'))
        self.assertTrue(requires_approval('write_off'))
        self.assertFalse(requires_approval('maintenance'))
        self.assertFalse(requires_approval('transfer', False))
        self.assertTrue(requires_approval('entry', True))

    def test_withdrawal_waits_for_approval(self):
        response = self._withdraw()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['approval_status'], 'pending')
        self.product.refresh_from_db()
        self.assertEqual(self.product.status, 'available')
        self.assertEqual(response.data['from_location'], self.stock.id)

    def test_approve_withdrawal(self):
        """Test approving applies status, location and assignment"""
        movement_id = self._withdraw().data['id']
        self.client.authenticate_user(self.approver)
        response = self.client.post(f'/api/v1/inventory/movements/{movement_id}/approve/', {'notes': 'ok'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['approval_status'], 'approved')
        self.assertEqual(response.data['approved_by'], self.approver.id)
        self.product.refresh_from_db()
        self.assertEqual(self.product.status, 'in_use')
        self.assertEqual(self.product.location_id, self.desk.id)
        assignment = UserInventoryAssignment.objects.get(product=self.product)
        self.assertEqual(assignment.user_id, self.employee.id)
        self.assertIsNone(assignment.returned_at)
        self.assertTrue(AuditLog.objects.filter(action='movement_approve').exists())

    def test_approve_twice(self):
        movement_id = self._withdraw().data['id']
        self.client.authenticate_user(self.approver)
        self.client.post(f'/api/v1/inventory/movements/{movement_id}/approve/', {}, format='json')
        response = self.client.post(f'/api/v1/inventory/movements/{movement_id}/reject/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Movimentação já avaliada')

    def test_support_can_not_approve(self):
        movement_id = self._withdraw().data['id']
        response = self.client.post(f'/api/v1/inventory/movements/{movement_id}/approve/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_reject_keeps_product(self):
        movement_id = self._withdraw().data['id']
        self.client.authenticate_user(self.approver)
        response = self.client.post(f'/api/v1/inventory/movements/{movement_id}/reject/', {'notes': 'Sem estoque'}, format='json')
        self.assertEqual(response.data['approval_status'], 'rejected')
        self.assertEqual(response.data['approval_notes'], 'Sem estoque')
        self.product.refresh_from_db()
        self.assertEqual(self.product.status, 'available')
        self.assertFalse(UserInventoryAssignment.objects.exists())

    def test_withdrawal_requires_responsible(self):
        response = self.client.post('/api/v1/inventory/movements/', {
            'product': self.product.id, 'movement_type': 'withdrawal'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('responsible_id', response.data['details'])

    def test_withdrawal_of_unavailable_product(self):
        self.product.status = 'maintenance'
        self.product.save()
        response = self._withdraw()
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('SN-100', response.data['error'])

    def test_withdrawal_without_approval_and_return(self):
        """Test an immediate withdrawal followed by a return closes the assignment"""
        response = self._withdraw(require_approval=False)
        self.assertEqual(response.data['approval_status'], 'approved')
        self.assertTrue(UserInventoryAssignment.objects.filter(product=self.product, returned_at__isnull=True).exists())

        response = self.client.post('/api/v1/inventory/movements/', {
            'product': self.product.id, 'movement_type': 'return', 'responsible_id': self.employee.id,
            'to_location': self.stock.id
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.product.refresh_from_db()
        self.assertEqual(self.product.status, 'available')
        self.assertEqual(self.product.location_id, self.stock.id)
        self.assertFalse(UserInventoryAssignment.objects.filter(product=self.product, returned_at__isnull=True).exists())

    def test_camel_case_require_approval(self):
        response = self.client.post('/api/v1/inventory/movements/', {
            'product': self.product.id, 'movement_type': 'maintenance', 'requireApproval': 'true'
        }, format='json')
        self.assertEqual(response.data['approval_status'], 'pending')

    def test_approval_rechecks_availability(self):
        """Test a pending withdrawal can not be approved once the product is taken"""
        movement = register_movement(self.product, self.support, {
            'movement_type': 'withdrawal', 'responsible': self.employee
        })
        self.product.status = 'in_use'
        self.product.save()
        with self.assertRaises(ServiceError):
            approve_movement(movement, self.approver)

    def test_written_off_product_can_not_move(self):
        register_movement(self.product, self.support, {'movement_type': 'write_off', 'require_approval': False})
        self.product.refresh_from_db()
        self.assertEqual(self.product.status, 'written_off')
        with self.assertRaises(ServiceError):
            register_movement(self.product, self.support, {'movement_type': 'maintenance'})

    def test_history_and_assignments(self):
        self._withdraw(require_approval=False)
        response = self.client.get(f'/api/v1/inventory/products/{self.product.id}/history/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['movements']), 1)
        self.assertEqual(response.data['assignments'][0]['user'], self.employee.id)
        self.assertTrue(response.data['assignments'][0]['is_open'])

        response = self.client.get(f'/api/v1/inventory/assignments/?open_only=true&user={self.employee.id}')
        self.assertEqual(response.data['pagination']['total'], 1)

    def test_movement_list_filters(self):
        TestDataFactory.create_movement(self.product, self.support, movement_type='maintenance')
        TestDataFactory.create_movement(self.product, self.support, movement_type='withdrawal',
                                        approval_status='pending', responsible=self.employee)
        response = self.client.get('/api/v1/inventory/movements/?approval_status=pending')
        self.assertEqual([movement['movement_type'] for movement in response.data['data']], ['withdrawal'])
        response = self.client.get('/api/v1/inventory/movements/?type=maintenance')
        self.assertEqual(response.data['pagination']['total'], 1)

    def test_dashboard(self):
        TestDataFactory.create_product(company=self.company, status='maintenance')
        TestDataFactory.create_movement(self.product, self.support, movement_type='withdrawal',
                                        approval_status='pending', responsible=self.employee)
        response = self.client.get('/api/v1/inventory/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total'], 2)
        self.assertEqual(response.data['by_status']['maintenance'], 1)
        self.assertEqual(response.data['pending_approvals'], 1)
        self.assertEqual(response.data['open_assignments'], 0)

        TestDataFactory.create_product(company=self.company)
        response = self.client.get('/api/v1/inventory/dashboard/')
        self.assertEqual(response.data['total'], 3)

