import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.contrib.auth import get_user_model
from django.db.models import Q
from django.shortcuts import get_object_or_404

from ticketwise.core.permissions import IsStaffRole
from ticketwise.core.roles import (
    allowed_roles_for, can_only_create_customer, can_see_company_selector, translate_role, filter_by_company
)
from ticketwise.core.utils import create_audit_log, paginate, parse_bool
from .serializers import PersonSerializer, PersonWriteSerializer
from .services import create_person, update_person

logger = logging.getLogger('ticketwise.people')
User = get_user_model()

PROFILE_FILTERS = {
    'requester': Q(customer__isnull=False),
    'official': Q(official__isnull=False, official__is_active=True),
    'no_profile': Q(customer__isnull=True) & (Q(official__isnull=True) | Q(official__is_active=False)),
}


def _person_queryset():
    return User.objects.select_related('company', 'customer', 'customer__sector', 'official') \
        .prefetch_related('official__departments')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def person_list_create(request):
    """List people with their profiles or create a new person"""
    if request.method == 'GET':
        params = request.query_params
        queryset = filter_by_company(_person_queryset(), request.user, params.get('company_id'))

        if not parse_bool(params.get('includeInactive', params.get('include_inactive'))):
            queryset = queryset.filter(is_active=True)

        search = params.get('search', '').strip()
        if search:
            queryset = queryset.filter(
                Q(name__icontains=search) |
                Q(email__icontains=search) |
                Q(username__icontains=search) |
                Q(role__icontains=search)
            )

        profile = params.get('profile', 'all')
        if profile in PROFILE_FILTERS:
            queryset = queryset.filter(PROFILE_FILTERS[profile])

        queryset = queryset.order_by('name', 'id')
        return Response(paginate(queryset, request, lambda objs: PersonSerializer(objs, many=True).data))
    else:
        serializer = PersonWriteSerializer(data=request.data)
        if serializer.is_valid():
            user = create_person(request.user, serializer.validated_data)
            create_audit_log(request, 'create', 'User', user.id, object_name=user.name,
                             changes={'role': user.role})
            data = PersonSerializer(_person_queryset().get(pk=user.pk)).data
            data['accessInfo'] = {
                'username': user.username,
                'email': user.email,
                'password': serializer.validated_data['password'],
            }
            return Response(data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH'])
@permission_classes([IsAuthenticated, IsStaffRole])
def person_detail(request, pk):
    """Retrieve or update a person"""
    user = get_object_or_404(_person_queryset(), pk=pk)

    if request.method == 'GET':
        if request.user.role != 'admin' and user.company_id != request.user.company_id:
            return Response({'error': 'Acesso negado'}, status=status.HTTP_403_FORBIDDEN)
        return Response(PersonSerializer(user).data)
    else:
        serializer = PersonWriteSerializer(user, data=request.data, partial=True)
        if serializer.is_valid():
            user = update_person(request.user, user, serializer.validated_data)
            changes = {k: v for k, v in serializer.validated_data.items() if k != 'password'}
            create_audit_log(request, 'update', 'User', user.id, object_name=user.name, changes=changes)
            return Response(PersonSerializer(_person_queryset().get(pk=user.pk)).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def person_allowed_roles(request):
    """Roles the current user may hand out on the people screen"""
    role = request.user.role
    return Response({
        'roles': [{'value': r, 'label': translate_role(r)} for r in allowed_roles_for(role)],
        'can_only_create_customer': can_only_create_customer(role),
        'can_see_company_selector': can_see_company_selector(request.user),
    })
