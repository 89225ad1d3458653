import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db import transaction
from django.db.models import Q
from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from django.contrib.auth import get_user_model

from ticketwise.core.cache_utils import get_cached, set_cached, CUSTOMERS_NAMESPACE, CUSTOMER_LIST_CACHE_TTL
from ticketwise.core.permissions import IsStaffRole
from ticketwise.core.roles import is_admin, scoped_company_id, filter_by_company, user_can_access_company
from ticketwise.core.utils import create_audit_log, paginate, parse_bool
from .models import Customer
from .serializers import CustomerSerializer, CustomerCreateSerializer
from .services import create_customer_user, import_customers, build_import_template

logger = logging.getLogger('ticketwise.parties')
User = get_user_model()


def _target_company_id(request):
    if is_admin(request.user):
        return request.data.get('company_id') or request.user.company_id
    return request.user.company_id


def _get_customer_for_user(request, pk):
    customer = get_object_or_404(Customer, pk=pk)
    if not user_can_access_company(request.user, customer.company_id):
        return None
    return customer


# Customer views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def customer_list_create(request):
    """List customers (paginated, searchable) or create a new customer"""
    if request.method == 'GET':
        params = request.query_params
        search = params.get('search', '').strip()
        include_inactive = parse_bool(params.get('include_inactive'))
        company_id = scoped_company_id(request.user, params.get('company_id'))

        # Try cache first
        cached_data, cache_key = get_cached(
            CUSTOMERS_NAMESPACE,
            company=company_id, all_companies=is_admin(request.user) and company_id is None,
            search=search, include_inactive=include_inactive,
            page=params.get('page', '1'), limit=params.get('limit', ''),
        )
        if cached_data is not None:
            response = Response(cached_data)
            response['Cache-Control'] = 'private, max-age=60'
            return response

        queryset = filter_by_company(
            Customer.objects.select_related('sector', 'user'), request.user, params.get('company_id')
        )
        if not include_inactive:
            queryset = queryset.filter(is_active=True)
        if search:
            queryset = queryset.filter(
                Q(name__icontains=search) |
                Q(email__icontains=search) |
                Q(phone__icontains=search) |
                Q(company_name__icontains=search)
            )
        queryset = queryset.order_by('name', 'id')

        response_data = paginate(queryset, request, lambda objs: CustomerSerializer(objs, many=True).data)
        set_cached(cache_key, response_data, CUSTOMER_LIST_CACHE_TTL)

        response = Response(response_data)
        response['Cache-Control'] = 'private, max-age=60'
        return response
    else:
        company_id = _target_company_id(request)
        serializer = CustomerCreateSerializer(data=request.data, context={'company_id': company_id})
        if serializer.is_valid():
            create_user = serializer.validated_data.pop('create_user', False)
            password = serializer.validated_data.pop('password', None)
            email = serializer.validated_data['email']

            with transaction.atomic():
                user = None
                if create_user:
                    user = create_customer_user(
                        email, serializer.validated_data['name'], password,
                        company_id=company_id, phone=serializer.validated_data.get('phone'),
                    )
                customer = serializer.save(company_id=company_id, user=user)

            logger.info(f"Customer created: {customer.email} (company {company_id}) by {request.user.username}")
            create_audit_log(request, 'create', 'Customer', customer.id, object_name=customer.name)

            from ticketwise.notifications.services import notify_customer_registered
            notify_customer_registered(customer)

            return Response(CustomerSerializer(customer).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsStaffRole])
def customer_detail(request, pk):
    """Retrieve, update or delete a customer"""
    customer = _get_customer_for_user(request, pk)
    if customer is None:
        return Response({'error': 'Acesso negado'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'GET':
        serializer = CustomerSerializer(customer)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = CustomerSerializer(
            customer, data=request.data, partial=request.method == 'PATCH',
            context={'company_id': customer.company_id}
        )
        if serializer.is_valid():
            with transaction.atomic():
                customer = serializer.save()
                # Keep the requester login in sync with the profile
                if customer.user_id:
                    User.objects.filter(pk=customer.user_id).update(
                        name=customer.name, email=customer.email, username=customer.email, phone=customer.phone
                    )
            create_audit_log(request, 'update', 'Customer', customer.id,
                             changes={k: str(v) for k, v in serializer.validated_data.items()},
                             object_name=customer.name)
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        with transaction.atomic():
            if customer.user_id:
                User.objects.filter(pk=customer.user_id).update(is_active=False)
            create_audit_log(request, 'delete', 'Customer', customer.id, object_name=customer.name)
            customer.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def customer_toggle_status(request, pk):
    """Activate or deactivate a customer together with its login"""
    customer = _get_customer_for_user(request, pk)
    if customer is None:
        return Response({'error': 'Acesso negado'}, status=status.HTTP_403_FORBIDDEN)

    customer.is_active = not customer.is_active
    customer.save(update_fields=['is_active', 'updated_at'])
    if customer.user_id:
        User.objects.filter(pk=customer.user_id).update(is_active=customer.is_active)

    create_audit_log(request, 'status_toggle', 'Customer', customer.id,
                     changes={'is_active': customer.is_active}, object_name=customer.name)
    return Response({
        'success': True,
        'customer': CustomerSerializer(customer).data,
        'message': 'Cliente ativado com sucesso' if customer.is_active else 'Cliente desativado com sucesso',
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def customer_bulk_import(request):
    """Import customers from an uploaded CSV file or raw CSV text"""
    upload = request.FILES.get('file')
    if upload is not None:
        content = upload.read()
    else:
        content = request.data.get('csv', '')

    if not content:
        return Response({'error': 'Arquivo CSV é obrigatório'}, status=status.HTTP_400_BAD_REQUEST)

    try:
        company_id = _target_company_id(request)
        company_id = int(company_id) if company_id not in (None, '', '0', 0) else None
    except (TypeError, ValueError):
        return Response({'error': 'company_id inválido'}, status=status.HTTP_400_BAD_REQUEST)

    try:
        result = import_customers(content, company_id=company_id)
    except UnicodeDecodeError:
        return Response({'error': 'O arquivo deve estar codificado em UTF-8'}, status=status.HTTP_400_BAD_REQUEST)

    create_audit_log(request, 'bulk_import', 'Customer', company_id or 0,
                     changes={'imported': result['imported'], 'skipped': result['skipped'], 'errors': len(result['errors'])})
    return Response(result)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def customer_import_template(request):
    """Download the CSV template for the bulk import"""
    response = HttpResponse(build_import_template(), content_type='text/csv; charset=utf-8')
    response['Content-Disposition'] = 'attachment; filename="template_importacao_clientes.csv"'
    return response
