"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from ticketwise.core.models import Company, SystemSetting
from ticketwise.organization.models import Department, Sector, Official, OfficialDepartment
from ticketwise.parties.models import Customer
from ticketwise.tickets.models import Ticket
from ticketwise.tickets.services import generate_ticket_id
from ticketwise.notifications.models import EmailConfig, EmailTemplate
from ticketwise.satisfaction.models import SatisfactionSurvey
from ticketwise.inventory.models import (
    ProductCategory, ProductType, InventoryLocation, InventoryProduct, InventoryMovement
)
from ticketwise.ai.models import AiConfiguration
from datetime import timedelta
from django.utils import timezone
import random
import secrets
import string

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_company(name=None, domain=None, ai_permission=False, active=True):
        """Create a test company"""
        if not name:
            name = f'Company_{TestDataFactory.random_string(6)}'
        return Company.objects.create(
            name=name,
            email=f'contato@{name.lower()}.com',
            domain=domain,
            active=active,
            ai_permission=ai_permission
        )

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', role='admin', company=None, name=None,
                    is_active=True):
        """Create a test user"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        return User.objects.create_user(
            username=username,
            email=email,
            password=password,
            role=role,
            company=company,
            name=name or username,
            is_active=is_active
        )

    @staticmethod
    def create_department(company=None, name=None, is_active=True, use_inventory_control=False):
        """Create a test department"""
        if not name:
            name = f'Department_{TestDataFactory.random_string(6)}'
        return Department.objects.create(
            name=name,
            company=company,
            is_active=is_active,
            use_inventory_control=use_inventory_control
        )

    @staticmethod
    def create_sector(company=None, name=None):
        """Create a test sector"""
        if not name:
            name = f'Sector_{TestDataFactory.random_string(6)}'
        return Sector.objects.create(name=name, company=company)

    @staticmethod
    def create_official(company=None, user=None, name=None, email=None, departments=None):
        """Create a test official, optionally linked to a user and departments"""
        if user is not None:
            name = name or user.name
            email = email or user.email
        if not name:
            name = f'Official_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{name.lower()}@test.com'
        official = Official.objects.create(name=name, email=email, user=user, company=company)
        for department in departments or []:
            OfficialDepartment.objects.create(official=official, department=department)
        return official

    @staticmethod
    def create_customer(company=None, name=None, email=None, user=None, sector=None):
        """Create a test customer"""
        if not name:
            name = f'Customer_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{name.lower()}@test.com'
        return Customer.objects.create(
            name=name,
            email=email,
            company=company,
            user=user,
            sector=sector
        )

    @staticmethod
    def create_ticket(company=None, customer=None, department=None, assigned_to=None, title=None,
                      description='Computador não liga após atualização', status='new', priority='medium',
                      customer_email=None, **extra):
        """Create a test ticket without sending notifications"""
        if not title:
            title = f'Ticket {TestDataFactory.random_string(6)}'
        return Ticket.objects.create(
            ticket_id=generate_ticket_id(),
            title=title,
            description=description,
            status=status,
            priority=priority,
            company=company,
            customer=customer,
            customer_email=customer_email or (customer.email if customer else ''),
            department=department,
            assigned_to=assigned_to,
            **extra
        )

    @staticmethod
    def create_email_config(company=None, provider='smtp', from_email='suporte@test.com', **extra):
        """Create a test email configuration"""
        return EmailConfig.objects.create(
            company=company,
            provider=provider,
            host=extra.pop('host', 'smtp.test.com'),
            from_email=from_email,
            from_name=extra.pop('from_name', 'Suporte'),
            **extra
        )

    @staticmethod
    def create_email_template(template_type='new_ticket', company=None, is_default=False, is_active=True,
                              subject='Chamado {{ticket.id}}', html='<p>{{ticket.title}}</p>', text=''):
        """Create a test email template"""
        return EmailTemplate.objects.create(
            name=f'Template_{TestDataFactory.random_string(6)}',
            type=template_type,
            subject_template=subject,
            html_template=html,
            text_template=text,
            company=company,
            is_default=is_default,
            is_active=is_active
        )

    @staticmethod
    def create_survey(ticket, status='sent', rating=None, expires_in_days=7, email=None):
        """Create a test satisfaction survey"""
        return SatisfactionSurvey.objects.create(
            ticket=ticket,
            company=ticket.company,
            customer_email=email or ticket.customer_email or 'cliente@test.com',
            survey_token=secrets.token_urlsafe(32),
            expires_at=timezone.now() + timedelta(days=expires_in_days),
            status=status,
            rating=rating,
            responded_at=timezone.now() if status == 'responded' else None
        )

    @staticmethod
    def create_product_category(company=None, name=None, is_consumable=False, requires_serial=False):
        """Create a test product category"""
        if not name:
            name = f'Category_{TestDataFactory.random_string(6)}'
        return ProductCategory.objects.create(
            name=name,
            company=company,
            is_consumable=is_consumable,
            requires_serial=requires_serial
        )

    @staticmethod
    def create_product_type(company=None, category=None, name=None):
        """Create a test product type"""
        if not name:
            name = f'Type_{TestDataFactory.random_string(6)}'
        if category is None:
            category = TestDataFactory.create_product_category(company=company)
        return ProductType.objects.create(name=name, category=category, company=company)

    @staticmethod
    def create_location(company=None, name=None, department=None):
        """Create a test inventory location"""
        if not name:
            name = f'Location_{TestDataFactory.random_string(6)}'
        return InventoryLocation.objects.create(name=name, company=company, department=department)

    @staticmethod
    def create_product(company=None, product_type=None, name=None, status='available', serial_number=None,
                       location=None, department=None, **extra):
        """Create a test inventory product"""
        if not name:
            name = f'Notebook_{TestDataFactory.random_string(6)}'
        if product_type is None:
            product_type = TestDataFactory.create_product_type(company=company)
        return InventoryProduct.objects.create(
            name=name,
            product_type=product_type,
            company=company,
            status=status,
            serial_number=serial_number,
            location=location,
            department=department,
            **extra
        )

    @staticmethod
    def create_movement(product, user, movement_type='entry', approval_status='approved', responsible=None,
                        to_location=None):
        """Create a test movement row without applying its effects"""
        return InventoryMovement.objects.create(
            product=product,
            movement_type=movement_type,
            approval_status=approval_status,
            responsible=responsible,
            to_location=to_location,
            from_location=product.location,
            company_id=product.company_id,
            created_by=user
        )

    @staticmethod
    def create_ai_configuration(company=None, department=None, provider='openai', is_default=True, is_active=True,
                                **extra):
        """Create a test AI configuration"""
        return AiConfiguration.objects.create(
            name=extra.pop('name', f'AI_{TestDataFactory.random_string(6)}'),
            provider=provider,
            model=extra.pop('model', 'gpt-4o-mini'),
            company=company,
            department=department,
            is_default=is_default,
            is_active=is_active,
            **extra
        )

    @staticmethod
    def create_system_setting(key, value, company=None):
        """Create a test system setting"""
        return SystemSetting.objects.create(key=key, value=value, company=company)


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
