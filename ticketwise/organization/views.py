import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Q
from django.shortcuts import get_object_or_404

from ticketwise.core.permissions import IsStaffRole, HasAnyRole
from ticketwise.core.roles import MANAGEMENT_ROLES, is_admin, filter_by_company, scoped_company_id, user_can_access_company
from ticketwise.core.utils import create_audit_log, paginate, parse_bool, MAX_PAGE_SIZE
from .models import Department, Sector, Official
from .serializers import DepartmentSerializer, SectorSerializer, OfficialSerializer
from .services import resolve_departments, set_official_departments

logger = logging.getLogger('ticketwise.organization')
User = get_user_model()


def _target_company_id(request):
    """Company new rows are written to: admins may pick, others use their own"""
    if is_admin(request.user):
        return request.data.get('company_id') or request.query_params.get('company_id') or request.user.company_id
    return request.user.company_id


def _list_named_entities(request, model, serializer_class):
    queryset = filter_by_company(model.objects.all(), request.user, request.query_params.get('company_id'))

    search = request.query_params.get('search', '').strip()
    if search:
        queryset = queryset.filter(Q(name__icontains=search) | Q(description__icontains=search))

    if parse_bool(request.query_params.get('active_only'), default=True):
        queryset = queryset.filter(is_active=True)

    queryset = queryset.order_by('name', 'id')
    return paginate(queryset, request, lambda objs: serializer_class(objs, many=True).data, max_limit=MAX_PAGE_SIZE)


# Sector views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def sector_list_create(request):
    """List sectors (paginated) or create a new sector"""
    if request.method == 'GET':
        return Response(_list_named_entities(request, Sector, SectorSerializer))
    else:
        serializer = SectorSerializer(data=request.data)
        if serializer.is_valid():
            sector = serializer.save(company_id=_target_company_id(request))
            logger.info(f"Sector created: {sector.name} (company {sector.company_id}) by {request.user.username}")
            create_audit_log(request, 'create', 'Sector', sector.id, object_name=sector.name)
            return Response(SectorSerializer(sector).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsStaffRole])
def sector_detail(request, pk):
    """Retrieve, update or deactivate a sector"""
    sector = get_object_or_404(Sector, pk=pk)
    if not user_can_access_company(request.user, sector.company_id):
        return Response({'error': 'Acesso negado'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'GET':
        return Response(SectorSerializer(sector).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = SectorSerializer(sector, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(request, 'update', 'Sector', sector.id, changes=serializer.validated_data, object_name=sector.name)
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        sector.is_active = False
        sector.save(update_fields=['is_active', 'updated_at'])
        create_audit_log(request, 'delete', 'Sector', sector.id, object_name=sector.name)
        return Response(status=status.HTTP_204_NO_CONTENT)


# Department views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def department_list_create(request):
    """List departments (paginated) or create a new department"""
    if request.method == 'GET':
        return Response(_list_named_entities(request, Department, DepartmentSerializer))
    else:
        if request.user.role not in MANAGEMENT_ROLES:
            return Response({'error': 'Acesso negado'}, status=status.HTTP_403_FORBIDDEN)
        company_id = _target_company_id(request)
        serializer = DepartmentSerializer(data=request.data, context={'company_id': company_id})
        if serializer.is_valid():
            department = serializer.save(company_id=company_id)
            create_audit_log(request, 'create', 'Department', department.id, object_name=department.name)
            return Response(DepartmentSerializer(department).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsStaffRole])
def department_detail(request, pk):
    """Retrieve, update or deactivate a department"""
    department = get_object_or_404(Department, pk=pk)
    if not user_can_access_company(request.user, department.company_id):
        return Response({'error': 'Acesso negado'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'GET':
        return Response(DepartmentSerializer(department).data)

    if request.user.role not in MANAGEMENT_ROLES:
        return Response({'error': 'Acesso negado'}, status=status.HTTP_403_FORBIDDEN)

    if request.method in ('PUT', 'PATCH'):
        serializer = DepartmentSerializer(department, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(request, 'update', 'Department', department.id, changes=serializer.validated_data, object_name=department.name)
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        department.is_active = False
        department.save(update_fields=['is_active', 'updated_at'])
        create_audit_log(request, 'delete', 'Department', department.id, object_name=department.name)
        return Response(status=status.HTTP_204_NO_CONTENT)


# Official views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def official_list_create(request):
    """List officials or create a new official"""
    if request.method == 'GET':
        queryset = filter_by_company(
            Official.objects.select_related('supervisor', 'manager', 'user').prefetch_related('departments'),
            request.user, request.query_params.get('company_id')
        )
        if not parse_bool(request.query_params.get('include_inactive')):
            queryset = queryset.filter(is_active=True)
        department_id = request.query_params.get('department_id', None)
        if department_id:
            queryset = queryset.filter(departments__id=department_id)
        search = request.query_params.get('search', '').strip()
        if search:
            queryset = queryset.filter(Q(name__icontains=search) | Q(email__icontains=search))
        queryset = queryset.distinct().order_by('name', 'id')
        return Response(paginate(queryset, request, lambda objs: OfficialSerializer(objs, many=True).data))
    else:
        if request.user.role not in MANAGEMENT_ROLES:
            return Response({'error': 'Acesso negado'}, status=status.HTTP_403_FORBIDDEN)
        company_id = _target_company_id(request)
        serializer = OfficialSerializer(data=request.data)
        if serializer.is_valid():
            department_values = serializer.validated_data.pop('department_ids', [])
            departments = resolve_departments(department_values, company_id)
            with transaction.atomic():
                user = User.objects.filter(email__iexact=serializer.validated_data['email']).first()
                official = serializer.save(company_id=company_id, user=user)
                set_official_departments(official, departments)
            create_audit_log(request, 'create', 'Official', official.id, object_name=official.name)
            return Response(OfficialSerializer(official).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsStaffRole])
def official_detail(request, pk):
    """Retrieve, update or deactivate an official"""
    official = get_object_or_404(Official, pk=pk)
    if not user_can_access_company(request.user, official.company_id):
        return Response({'error': 'Acesso negado'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'GET':
        return Response(OfficialSerializer(official).data)

    if request.user.role not in MANAGEMENT_ROLES:
        return Response({'error': 'Acesso negado'}, status=status.HTTP_403_FORBIDDEN)

    if request.method in ('PUT', 'PATCH'):
        serializer = OfficialSerializer(official, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            department_values = serializer.validated_data.pop('department_ids', None)
            with transaction.atomic():
                serializer.save()
                if department_values is not None:
                    set_official_departments(official, resolve_departments(department_values, official.company_id))
            create_audit_log(request, 'update', 'Official', official.id, object_name=official.name)
            return Response(OfficialSerializer(official).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        official.is_active = False
        official.save(update_fields=['is_active', 'updated_at'])
        create_audit_log(request, 'delete', 'Official', official.id, object_name=official.name)
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, HasAnyRole(*MANAGEMENT_ROLES)])
def official_toggle_status(request, pk):
    """Activate or deactivate an official and the linked user"""
    official = get_object_or_404(Official, pk=pk)
    if not user_can_access_company(request.user, official.company_id):
        return Response({'error': 'Acesso negado'}, status=status.HTTP_403_FORBIDDEN)

    official.is_active = not official.is_active
    official.save(update_fields=['is_active', 'updated_at'])
    if official.user_id:
        User.objects.filter(pk=official.user_id).update(is_active=official.is_active)

    create_audit_log(request, 'status_toggle', 'Official', official.id,
                     changes={'is_active': official.is_active}, object_name=official.name)
    logger.info(f"Official {official.id} active={official.is_active} (company {scoped_company_id(request.user)})")
    return Response(OfficialSerializer(official).data)
