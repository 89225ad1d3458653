import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError, AuthenticationFailed
from django.contrib.auth import get_user_model
from django.core.exceptions import ObjectDoesNotExist
from django.shortcuts import get_object_or_404
from django.db.models import Q
from .models import Company, SystemSetting, AuditLog
from .permissions import IsAdminRole, HasAnyRole
from .roles import (
    COMPANY_SETTINGS_ROLES, MANAGEMENT_ROLES, AI_ROLES, INVENTORY_MANAGER_ROLES,
    STAFF_ROLES, is_admin, can_see_company_selector, filter_by_company, scoped_company_id,
)
from .serializers import (
    UserSerializer, CompanySerializer, SystemSettingSerializer, AuditLogSerializer
)
from .utils import create_audit_log

User = get_user_model()
logger = logging.getLogger('ticketwise.core')


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        data = super().validate(attrs)
        # Ensure user is active
        if not self.user.is_active:
            raise AuthenticationFailed('User account is disabled.')
        if self.user.company_id and not self.user.company.active:
            raise AuthenticationFailed('Company account is disabled.')
        data['user'] = UserSerializer(self.user).data
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['username'] = user.username
        token['role'] = user.role
        token['company_id'] = user.company_id
        return token


class CustomTokenObtainPairView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer


class CustomTokenRefreshSerializer(TokenRefreshSerializer):
    """Custom token refresh serializer that handles deleted users gracefully"""
    def validate(self, attrs):
        try:
            return super().validate(attrs)
        except (InvalidToken, TokenError):
            raise InvalidToken('Token is invalid or expired.')
        except (ObjectDoesNotExist, User.DoesNotExist):
            # User referenced in token doesn't exist anymore
            raise InvalidToken('Token is invalid. User no longer exists.')


class CustomTokenRefreshView(TokenRefreshView):
    """Custom token refresh view that handles deleted users gracefully"""
    serializer_class = CustomTokenRefreshSerializer


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Get current user with company and screen access flags"""
    user = request.user
    user_data = UserSerializer(user).data

    role = user.role
    user_data['is_admin'] = is_admin(user)
    user_data['can_access_people'] = role in STAFF_ROLES
    user_data['can_access_inventory'] = role in INVENTORY_MANAGER_ROLES
    user_data['can_access_reports'] = role in MANAGEMENT_ROLES
    user_data['can_manage_email'] = role in COMPANY_SETTINGS_ROLES
    user_data['can_use_ai'] = role in AI_ROLES
    user_data['can_see_company_selector'] = can_see_company_selector(user)

    return Response(user_data)


# Company views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def company_list_create(request):
    """List all companies or create a new company"""
    if request.method == 'GET':
        companies = Company.objects.all()
        search = request.query_params.get('search', None)
        if search:
            companies = companies.filter(Q(name__icontains=search) | Q(domain__icontains=search))
        serializer = CompanySerializer(companies, many=True)
        return Response(serializer.data)
    else:
        serializer = CompanySerializer(data=request.data)
        if serializer.is_valid():
            company = serializer.save()
            create_audit_log(request, 'create', 'Company', company.id, object_name=company.name, company=company)
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminRole])
def company_detail(request, pk):
    """Retrieve, update or delete a company"""
    company = get_object_or_404(Company, pk=pk)

    if request.method == 'GET':
        serializer = CompanySerializer(company)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = CompanySerializer(company, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(request, 'update', 'Company', company.id, changes=request.data, object_name=company.name)
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        create_audit_log(request, 'delete', 'Company', company.id, object_name=company.name)
        company.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


# SystemSetting views
def _settings_queryset(request):
    queryset = SystemSetting.objects.all().order_by('key')
    return filter_by_company(queryset, request.user, request.query_params.get('company_id'))


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, HasAnyRole(*COMPANY_SETTINGS_ROLES)])
def system_setting_list_create(request):
    """List settings visible to the user or create a new one"""
    if request.method == 'GET':
        queryset = _settings_queryset(request)
        key_prefix = request.query_params.get('prefix', None)
        if key_prefix:
            queryset = queryset.filter(key__startswith=key_prefix)
        serializer = SystemSettingSerializer(queryset, many=True)
        return Response(serializer.data)
    else:
        data = request.data.copy()
        if not is_admin(request.user):
            data['company'] = request.user.company_id
        serializer = SystemSettingSerializer(data=data)
        if serializer.is_valid():
            setting = SystemSetting.objects.filter(
                key=serializer.validated_data['key'],
                company=serializer.validated_data.get('company'),
            ).first()
            if setting:
                serializer = SystemSettingSerializer(setting, data=data)
                serializer.is_valid(raise_exception=True)
            setting = serializer.save()
            create_audit_log(request, 'settings_update', 'SystemSetting', setting.id, object_name=setting.key)
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, HasAnyRole(*COMPANY_SETTINGS_ROLES)])
def system_setting_detail(request, pk):
    """Retrieve, update or delete a setting"""
    setting = get_object_or_404(_settings_queryset(request), pk=pk)

    if request.method == 'GET':
        serializer = SystemSettingSerializer(setting)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        data = request.data.copy()
        if not is_admin(request.user):
            data['company'] = request.user.company_id
        serializer = SystemSettingSerializer(setting, data=data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(request, 'settings_update', 'SystemSetting', setting.id, object_name=setting.key)
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        setting.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


# AuditLog views (read-only)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_list(request):
    """List audit logs with filtering"""
    queryset = AuditLog.objects.select_related('user', 'user__company')

    if not is_admin(request.user):
        queryset = queryset.filter(user=request.user)

    action_filter = request.query_params.get('action', None)
    if action_filter:
        queryset = queryset.filter(action=action_filter)

    model_filter = request.query_params.get('model', None)
    if model_filter:
        queryset = queryset.filter(model_name=model_filter)

    date_from = request.query_params.get('date_from', None)
    date_to = request.query_params.get('date_to', None)
    if date_from:
        queryset = queryset.filter(created_at__date__gte=date_from)
    if date_to:
        queryset = queryset.filter(created_at__date__lte=date_to)

    queryset = queryset.order_by('-created_at')[:500]
    serializer = AuditLogSerializer(queryset, many=True)
    return Response(serializer.data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_detail(request, pk):
    """Retrieve an audit log"""
    audit_log = get_object_or_404(AuditLog, pk=pk)

    if not is_admin(request.user) and audit_log.user != request.user:
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)

    serializer = AuditLogSerializer(audit_log)
    return Response(serializer.data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasAnyRole(*STAFF_ROLES)])
def global_search(request):
    """Global search across customers, officials, tickets and assets"""
    query = request.query_params.get('q', '').strip()

    if not query:
        return Response({
            'customers': [],
            'officials': [],
            'tickets': [],
            'inventory_products': [],
        })

    from ticketwise.parties.models import Customer
    from ticketwise.parties.serializers import CustomerSerializer
    from ticketwise.organization.models import Official
    from ticketwise.organization.serializers import OfficialSerializer
    from ticketwise.tickets.models import Ticket
    from ticketwise.tickets.serializers import TicketSerializer
    from ticketwise.inventory.filters import InventoryProductFilter
    from ticketwise.inventory.models import InventoryProduct
    from ticketwise.inventory.serializers import InventoryProductSerializer

    user = request.user
    company_id = request.query_params.get('company_id')
    results = {}

    customers = filter_by_company(Customer.objects.all(), user, company_id).filter(
        Q(name__icontains=query) |
        Q(email__icontains=query) |
        Q(phone__icontains=query)
    ).order_by('name')[:20]
    results['customers'] = CustomerSerializer(customers, many=True).data

    officials = filter_by_company(Official.objects.all(), user, company_id).filter(
        Q(name__icontains=query) | Q(email__icontains=query)
    ).order_by('name')[:20]
    results['officials'] = OfficialSerializer(officials, many=True).data

    tickets = filter_by_company(Ticket.objects.all(), user, company_id).filter(
        Q(ticket_id__icontains=query) | Q(title__icontains=query)
    ).order_by('-created_at')[:20]
    results['tickets'] = TicketSerializer(tickets, many=True).data

    products_queryset = filter_by_company(InventoryProduct.objects.filter(is_deleted=False), user, company_id)
    products = InventoryProductFilter({'search': query}, queryset=products_queryset).qs[:20]
    results['inventory_products'] = InventoryProductSerializer(products, many=True).data

    logger.debug(f"Global search '{query}' for company {scoped_company_id(user, company_id)}")
    return Response(results)
